"""Shared protocol definitions."""

from typing import Protocol

from core.request_types import ProxiedExchange


class RequestLogger(Protocol):
    """Protocol for audit logging of pipeline decisions (AuditLogger, Dashboard)."""

    def log_transition(self, exchange: ProxiedExchange, detail: str | None = None) -> None: ...
    def log_error(self, exchange: ProxiedExchange, status: int, message: str) -> None: ...
