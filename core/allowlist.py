"""Allowlist rules and exact-match lookup."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from core.exceptions import ConfigurationError


@dataclass(frozen=True)
class AllowlistRule:
    """A single destination URL and what tunnel peers may do with it."""

    url: str
    methods: frozenset[str]
    set_request_headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    remove_response_headers: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.methods:
            raise ConfigurationError(f"allowlist rule for {self.url} has no methods")
        # Freeze whatever the caller handed us
        object.__setattr__(self, "methods", frozenset(self.methods))
        object.__setattr__(
            self, "set_request_headers", MappingProxyType(dict(self.set_request_headers))
        )
        object.__setattr__(self, "remove_response_headers", tuple(self.remove_response_headers))

    def allows(self, method: str) -> bool:
        return method in self.methods


class Allowlist:
    """Read-only set of rules keyed by their exact URL.

    Lookup ignores the order rules were configured in. The URL is compared
    as an exact string: no normalization, no trailing-slash equivalence,
    no case folding.
    """

    def __init__(self, rules: Iterable[AllowlistRule]) -> None:
        by_url: dict[str, AllowlistRule] = {}
        for rule in rules:
            if rule.url in by_url:
                raise ConfigurationError(f"duplicate allowlist rule for {rule.url}")
            by_url[rule.url] = rule
        self._rules = MappingProxyType(by_url)

    def find(self, method: str, url: str) -> AllowlistRule | None:
        """Return the rule permitting ``method`` on ``url``, else None.

        An unknown URL and a known URL with a disallowed method both
        return None.
        """
        rule = self._rules.get(url)
        if rule is None or not rule.allows(method):
            return None
        return rule

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules.values())
