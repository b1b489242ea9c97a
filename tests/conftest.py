"""
Shared fixtures for broker tests.

Upstream destinations are simulated with httpx.MockTransport, so no test
opens a real outbound connection.
"""

from collections.abc import Callable

import httpx
import pytest
from fastapi.testclient import TestClient

import ui.log_utils as log_utils
from app import create_app
from core.config import Config
from core.request_types import ProxiedExchange

PRIVATE_KEY = "11" * 32
PEER_PUBLIC_KEY = "22" * 32


def make_config(allowlist: list[dict] | None = None, **inbound) -> Config:
    """Build a validated Config with a single tunnel peer."""
    data = {
        "inbound": {
            "wireguard": {
                "localAddress": "fdf0:59dc:33cf:9be8::1",
                "privateKey": PRIVATE_KEY,
                "peers": [
                    {
                        "publicKey": PEER_PUBLIC_KEY,
                        "allowedIps": "fdf0:59dc:33cf:9be8::2/128",
                    }
                ],
            },
            "allowlist": allowlist or [],
            **inbound,
        }
    }
    return Config.model_validate(data)


class RecordingLogger:
    """RequestLogger that keeps every transition for assertions."""

    def __init__(self) -> None:
        self.transitions: list[tuple[ProxiedExchange, str | None]] = []
        self.errors: list[tuple[ProxiedExchange, int, str]] = []

    def log_transition(self, exchange: ProxiedExchange, detail: str | None = None) -> None:
        self.transitions.append((exchange, detail))

    def log_error(self, exchange: ProxiedExchange, status: int, message: str) -> None:
        self.errors.append((exchange, status, message))

    @property
    def states(self):
        return [exchange.state for exchange, _ in self.transitions]


class Upstream:
    """Records forwarded requests and answers them with ``respond``."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.respond: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, text="Hello"
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)


class TrackedStream(httpx.AsyncByteStream):
    """Upstream response body that remembers whether it was closed."""

    def __init__(self, chunks: list[bytes], error: Exception | None = None) -> None:
        self.chunks = chunks
        self.error = error
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error:
            raise self.error

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def cli_log(tmp_path, monkeypatch):
    """Keep the rolling CLI log inside the test's temp dir."""
    log_file = tmp_path / "logs" / "broker.log"
    monkeypatch.setattr(log_utils, "CLI_LOG_FILE", log_file)
    return log_file


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def request_logger():
    return RecordingLogger()


@pytest.fixture
def allowlist():
    return [
        {"url": "http://svc/allowed-get", "allowedMethods": ["GET"]},
        {"url": "http://svc/allowed-post", "allowedMethods": ["POST"]},
        {
            "url": "http://svc/headers",
            "allowedMethods": ["GET"],
            "setRequestHeaders": {"X-Foo": "bar", "Authorization": "Bearer internal-token"},
            "removeResponseHeaders": ["Set-Cookie"],
        },
    ]


@pytest.fixture
def client(allowlist, upstream, request_logger):
    """TestClient for a broker whose destinations are served by ``upstream``."""
    app = create_app(make_config(allowlist), request_logger, transport=httpx.MockTransport(upstream))
    with TestClient(app) as test_client:
        yield test_client
