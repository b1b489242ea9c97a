"""Prometheus metrics for the proxy surface."""

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

from core.request_types import PipelineState


class BrokerMetrics:
    """Request counters and latencies, kept in a registry owned by one app."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.requests = Counter(
            "network_broker_requests_total",
            "Proxied requests by method and final pipeline state",
            ("method", "outcome"),
            registry=self.registry,
        )
        self.latency = Histogram(
            "network_broker_request_duration_seconds",
            "Time until the proxied response started, by final pipeline state",
            ("outcome",),
            registry=self.registry,
        )

    def observe(self, method: str, outcome: PipelineState, seconds: float) -> None:
        self.requests.labels(method=method, outcome=outcome.value).inc()
        self.latency.labels(outcome=outcome.value).observe(seconds)

    def render(self) -> tuple[bytes, str]:
        """Text exposition of everything in the registry."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
