"""FastAPI route handlers."""

import time

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from core.destination import raw_request_target
from core.exceptions import DestinationParseError, PolicyRejection, UpstreamError
from core.headers import ERROR_RESPONSE_HEADER
from core.protocols import RequestLogger
from core.request_types import PipelineState

HEALTHCHECK_PATH = "/healthcheck"
PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "CONNECT", "TRACE"]


def error_response(status_code: int, message: str) -> JSONResponse:
    """JSON error body flagged with the broker's error header."""
    return JSONResponse(
        content={"error": message},
        status_code=status_code,
        headers={ERROR_RESPONSE_HEADER: "1"},
    )


def _request_body(request: Request):
    """The inbound body as a stream, or None when the request has no body."""
    if "content-length" in request.headers or "transfer-encoding" in request.headers:
        return request.stream()
    return None


async def handle_proxy(request: Request, logger: RequestLogger) -> Response:
    """Extract, match and forward one /proxy/ request.

    Each failure mode maps to its own status: 400 for an unparseable
    destination, 403 for anything the allowlist does not permit, 502/504
    when the destination cannot be reached.
    """
    pipeline = request.app.state.pipeline
    upstream = request.app.state.upstream_client
    metrics = request.app.state.metrics
    start = time.monotonic()

    def observe(outcome: PipelineState) -> None:
        metrics.observe(request.method, outcome, time.monotonic() - start)

    try:
        exchange = pipeline.prepare(request.method, raw_request_target(request.scope))
    except DestinationParseError as e:
        observe(PipelineState.REJECTED_PARSE)
        return error_response(400, str(e))
    except PolicyRejection as e:
        observe(PipelineState.REJECTED_POLICY)
        return error_response(403, str(e))

    forwarded = exchange.advance(PipelineState.FORWARDED)
    logger.log_transition(forwarded)
    client_host = request.client.host if request.client else None
    try:
        response = await upstream.forward(
            forwarded,
            request.headers.raw,
            _request_body(request),
            client_host=client_host,
        )
    except UpstreamError as e:
        failed = forwarded.advance(PipelineState.REJECTED_UPSTREAM)
        logger.log_transition(failed, str(e.__cause__ or e))
        logger.log_error(failed, e.status_code, str(e))
        observe(PipelineState.REJECTED_UPSTREAM)
        return error_response(e.status_code, str(e))

    logger.log_transition(forwarded.advance(PipelineState.SUCCEEDED), f"status={response.status_code}")
    observe(PipelineState.SUCCEEDED)
    return response


async def handle_healthcheck(_request: Request) -> Response:
    """Liveness probe; never consults the allowlist."""
    return JSONResponse("OK")
