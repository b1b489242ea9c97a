"""Shared logging utilities."""

from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from core.request_types import PipelineState, ProxiedExchange

LOG_ROOT = Path.cwd() / "logs"
CLI_LOG_FILE = LOG_ROOT / "broker.log"

EVENT_NAMES = {
    PipelineState.RECEIVED: "proxy.received",
    PipelineState.EXTRACTED: "proxy.extracted",
    PipelineState.MATCHED: "proxy.request",
    PipelineState.FORWARDED: "proxy.forwarded",
    PipelineState.SUCCEEDED: "proxy.response",
    PipelineState.REJECTED_PARSE: "proxy.destination_url_parse",
    PipelineState.REJECTED_POLICY: "allowlist.reject",
    PipelineState.REJECTED_UPSTREAM: "proxy.upstream_error",
}

REJECTED_STATES = frozenset(
    {
        PipelineState.REJECTED_PARSE,
        PipelineState.REJECTED_POLICY,
        PipelineState.REJECTED_UPSTREAM,
    }
)


def set_log_root(log_root: Path) -> Path:
    """Point the rolling CLI log at ``log_root``."""
    global CLI_LOG_FILE
    CLI_LOG_FILE = Path(log_root) / "broker.log"
    return CLI_LOG_FILE


def exchange_fields(exchange: ProxiedExchange) -> dict[str, Any]:
    """Audit fields for one pipeline transition."""
    fields: dict[str, Any] = {
        "method": exchange.method,
        "destinationUrl": exchange.target,
        "state": exchange.state.value,
    }
    if exchange.rule is not None:
        fields["allowlist_match"] = exchange.rule.url
    return fields


def format_fields(**extra: Any) -> str:
    return " ".join(f"{k}={v}" for k, v in extra.items())


def write_cli_log(
    level: str,
    message: str,
    **extra: Any,
) -> None:
    """Append a line to the rolling CLI log file."""
    CLI_LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
    extra_str = format_fields(**extra) if extra else ""
    line = f"[{timestamp}] {level}: {message}"
    if extra_str:
        line += f" {extra_str}"
    line += "\n"
    with CLI_LOG_FILE.open("a") as f:
        f.write(line)


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Redact sensitive headers."""
    redacted = {}
    for key, value in headers.items():
        lower = key.lower()
        if "key" in lower or "authorization" in lower or "token" in lower or lower == "cookie":
            redacted[key] = _mask(value)
        else:
            redacted[key] = value
    return redacted


def _mask(value: str) -> str:
    if len(value) <= 10:
        return "***"
    return value[:6] + "..." + value[-4:]
