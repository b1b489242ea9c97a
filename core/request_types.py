"""Shared request data types."""

from dataclasses import dataclass, replace
from enum import Enum

from core.allowlist import AllowlistRule
from core.destination import DestinationURL


class PipelineState(str, Enum):
    """Where a proxied request is in the broker pipeline."""

    RECEIVED = "received"
    EXTRACTED = "extracted"
    MATCHED = "matched"
    FORWARDED = "forwarded"
    SUCCEEDED = "succeeded"
    REJECTED_PARSE = "rejected_parse"
    REJECTED_POLICY = "rejected_policy"
    REJECTED_UPSTREAM = "rejected_upstream"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = {
    PipelineState.SUCCEEDED,
    PipelineState.REJECTED_PARSE,
    PipelineState.REJECTED_POLICY,
    PipelineState.REJECTED_UPSTREAM,
}


@dataclass(frozen=True)
class ProxiedExchange:
    """One inbound request tied to the rule that let it through."""

    method: str
    raw_path: str
    state: PipelineState = PipelineState.RECEIVED
    destination: DestinationURL | None = None
    rule: AllowlistRule | None = None

    def advance(self, state: PipelineState, **changes) -> "ProxiedExchange":
        return replace(self, state=state, **changes)

    @property
    def target(self) -> str:
        """Destination for log lines, falling back to the raw path."""
        if self.destination is not None:
            return self.destination.raw
        return self.raw_path
