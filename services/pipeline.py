"""Extraction and allowlist matching for proxied requests."""

from core.allowlist import Allowlist
from core.destination import PROXY_PREFIX, extract_destination
from core.exceptions import DestinationParseError, PolicyRejection
from core.protocols import RequestLogger
from core.request_types import PipelineState, ProxiedExchange


class ProxyPipeline:
    """Run the guarded stages that decide whether a request may be forwarded.

    Every transition is reported to the request logger; the allowlist is an
    access-control boundary and its decisions must be auditable.
    """

    def __init__(
        self,
        allowlist: Allowlist,
        logger: RequestLogger,
        prefix: str = PROXY_PREFIX,
    ) -> None:
        self._allowlist = allowlist
        self._logger = logger
        self._prefix = prefix

    @property
    def allowlist(self) -> Allowlist:
        return self._allowlist

    def prepare(self, method: str, raw_path: str) -> ProxiedExchange:
        """Return a MATCHED exchange, or raise the reason it was rejected.

        Raises:
            DestinationParseError: the path does not carry an absolute URL
            PolicyRejection: no rule allows this method on this URL
        """
        exchange = ProxiedExchange(method=method, raw_path=raw_path)
        self._logger.log_transition(exchange)

        try:
            destination = extract_destination(raw_path, self._prefix)
        except DestinationParseError as e:
            self._logger.log_transition(exchange.advance(PipelineState.REJECTED_PARSE), str(e))
            raise
        exchange = exchange.advance(PipelineState.EXTRACTED, destination=destination)
        self._logger.log_transition(exchange)

        rule = self._allowlist.find(method, destination.raw)
        if rule is None:
            self._logger.log_transition(exchange.advance(PipelineState.REJECTED_POLICY))
            raise PolicyRejection(method, destination.raw)
        exchange = exchange.advance(PipelineState.MATCHED, rule=rule)
        self._logger.log_transition(exchange, f"allowlist_match={rule.url}")
        return exchange
