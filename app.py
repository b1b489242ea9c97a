"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response

from api.handlers import HEALTHCHECK_PATH, PROXY_METHODS, handle_healthcheck, handle_proxy
from api.middleware import AccessLogMiddleware
from core.config import Config
from core.destination import PROXY_PREFIX
from core.headers import HeaderBuilder
from core.protocols import RequestLogger
from services.metrics import BrokerMetrics
from services.pipeline import ProxyPipeline
from services.upstream import UpstreamClient

logger = logging.getLogger(__name__)

METRICS_PATH = "/metrics"


def create_app(
    config: Config,
    request_logger: RequestLogger,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``transport`` carries the outbound calls; by default httpx opens its own
    connections.
    """
    settings = config.inbound.upstream
    allowlist = config.build_allowlist()
    metrics = BrokerMetrics()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        limits = httpx.Limits(
            max_connections=settings.max_connections,
            max_keepalive_connections=settings.max_keepalive_connections,
        )
        client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.timeout, connect=settings.connect_timeout),
            limits=limits,
            transport=transport,
            follow_redirects=False,
        )
        app.state.upstream_client = UpstreamClient(client, HeaderBuilder())
        logger.info("broker.start rules=%s", len(allowlist))
        try:
            yield
        finally:
            await client.aclose()
            logger.info("broker.stop")

    app = FastAPI(
        title="Network Broker",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    # Shared by every request, never mutated
    app.state.pipeline = ProxyPipeline(allowlist, request_logger, PROXY_PREFIX)
    app.state.metrics = metrics
    app.add_middleware(AccessLogMiddleware, skip_paths=config.inbound.logging.skip_paths)

    @app.get(HEALTHCHECK_PATH)
    async def healthcheck(request: Request):
        return await handle_healthcheck(request)

    @app.api_route(PROXY_PREFIX + "{destination:path}", methods=PROXY_METHODS)
    async def proxy(request: Request):
        return await handle_proxy(request, request_logger)

    @app.get(METRICS_PATH)
    async def metrics_endpoint():
        content, media_type = metrics.render()
        return Response(content=content, media_type=media_type)

    logger.info("healthcheck.configured path=%s", HEALTHCHECK_PATH)
    logger.info("metrics.configured path=%s", METRICS_PATH)

    return app
