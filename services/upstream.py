"""HTTP forwarding of allowlisted requests to their destination."""

import logging
from collections.abc import AsyncIterator, Iterable

import httpx
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from core.exceptions import UpstreamConnectionError, UpstreamTimeoutError
from core.headers import HeaderBuilder
from core.request_types import ProxiedExchange

logger = logging.getLogger(__name__)


class UpstreamClient:
    """Forward requests to their destination with streaming support."""

    def __init__(self, client: httpx.AsyncClient, header_builder: HeaderBuilder | None = None) -> None:
        self._client = client
        self._headers = header_builder or HeaderBuilder()

    async def forward(
        self,
        exchange: ProxiedExchange,
        headers: Iterable[tuple[bytes, bytes]],
        body: AsyncIterator[bytes] | None,
        client_host: str | None = None,
    ) -> StreamingResponse:
        """Send the request to ``exchange.destination`` and stream the answer back.

        Raises UpstreamTimeoutError or UpstreamConnectionError when the
        destination cannot be reached. Nothing is retried.
        """
        destination = exchange.destination
        rule = exchange.rule
        upstream_headers = self._headers.build_request_headers(
            headers, rule, host=destination.netloc, client_host=client_host
        )

        try:
            req = self._client.build_request(
                exchange.method,
                destination.raw,
                headers=upstream_headers,
                content=body,
            )
            response = await self._client.send(req, stream=True)
        except httpx.InvalidURL as e:
            raise UpstreamConnectionError(f"cannot request {destination.raw}: {e}", destination.raw) from e
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"upstream timeout: {e}", destination.raw) from e
        except httpx.RequestError as e:
            raise UpstreamConnectionError(f"upstream connection error: {e}", destination.raw) from e

        try:
            response_headers = self._headers.build_response_headers(response.headers.raw, rule)
            streaming = StreamingResponse(
                self._relay(response, destination.raw),
                status_code=response.status_code,
                background=BackgroundTask(self._cleanup_streaming, response),
            )
        except Exception:
            # No StreamingResponse owns the upstream response yet
            await response.aclose()
            raise
        # Keep repeated headers such as Set-Cookie intact
        streaming.raw_headers = response_headers.raw
        return streaming

    async def _relay(self, response: httpx.Response, destination: str) -> AsyncIterator[bytes]:
        """Yield the undecoded body; always release the upstream connection."""
        try:
            async for chunk in response.aiter_raw():
                yield chunk
        except httpx.HTTPError as e:
            # Headers are already on the wire, so the connection is aborted instead
            logger.warning("proxy.upstream_stream_error destination=%s error=%s", destination, e)
            raise
        finally:
            await response.aclose()

    async def _cleanup_streaming(self, response: httpx.Response) -> None:
        """Clean up streaming resources."""
        await response.aclose()
