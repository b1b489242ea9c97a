"""Plain audit logger for headless deployments."""

import logging

from core.request_types import PipelineState, ProxiedExchange
from ui.log_utils import (
    EVENT_NAMES,
    REJECTED_STATES,
    exchange_fields,
    format_fields,
    redact_headers,
    write_cli_log,
)

logger = logging.getLogger("network_broker.audit")


class AuditLogger:
    """Write every pipeline transition to the log and the rolling CLI log."""

    def log_transition(self, exchange: ProxiedExchange, detail: str | None = None) -> None:
        event = EVENT_NAMES[exchange.state]
        fields = exchange_fields(exchange)
        if detail:
            fields["detail"] = detail

        level = logging.WARNING if exchange.state in REJECTED_STATES else logging.INFO
        logger.log(level, "%s %s", event, format_fields(**fields))
        write_cli_log(logging.getLevelName(level), event, **fields)

        if exchange.state is PipelineState.MATCHED and exchange.rule.set_request_headers:
            logger.debug(
                "proxy.set_request_headers %s",
                redact_headers(dict(exchange.rule.set_request_headers)),
            )

    def log_error(self, exchange: ProxiedExchange, status: int, message: str) -> None:
        fields = exchange_fields(exchange)
        logger.error("proxy.error status=%s %s error=%s", status, format_fields(**fields), message)
        write_cli_log("ERROR", message[:200], status=status, **fields)
