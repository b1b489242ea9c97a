"""Access logging middleware."""

import logging
import time

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("network_broker.access")


class AccessLogMiddleware:
    """Log one line per HTTP request, except for ``skip_paths``.

    Written as plain ASGI so streamed proxy responses are not buffered.
    """

    def __init__(self, app: ASGIApp, skip_paths: list[str] | None = None) -> None:
        self.app = app
        self.skip_paths = set(skip_paths or [])

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] in self.skip_paths:
            await self.app(scope, receive, send)
            return

        start = time.monotonic()
        status = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            client = scope.get("client")
            headers = dict(scope.get("headers") or [])
            logger.info(
                "http.request status=%s method=%s path=%s ip=%s latency=%.4f user_agent=%s",
                status,
                scope["method"],
                scope["path"],
                client[0] if client else "-",
                time.monotonic() - start,
                headers.get(b"user-agent", b"-").decode("latin-1"),
            )
