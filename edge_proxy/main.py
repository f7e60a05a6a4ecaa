"""
Edge Proxy - Main Application

Single endpoint answering search queries (``?q=``) and HTTPS page fetches
(``?url=``), memoized in a key-value cache.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
import structlog
from fastapi import FastAPI, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from edge_proxy import __version__
from edge_proxy.cache import ResponseCache, create_store
from edge_proxy.config import Settings, settings
from edge_proxy.envelope import to_response, unhandled_error_envelope
from edge_proxy.logging_config import configure_logging
from edge_proxy.page_fetcher import PageFetcher
from edge_proxy.resolver import ProxyContext, ResponseResolver
from edge_proxy.search_fetcher import SearchFetcher

logger = structlog.get_logger()


def build_context(app_settings: Settings, client: httpx.AsyncClient) -> ProxyContext:
    """Wire the cache and fetchers for one process."""
    store = create_store(app_settings.cache_backend, app_settings.redis_url)
    cache = ResponseCache(
        store,
        ttl_seconds=app_settings.cache_ttl_seconds,
        fail_open=app_settings.cache_fail_open,
    )
    return ProxyContext(
        settings=app_settings,
        cache=cache,
        search_fetcher=SearchFetcher(client, app_settings),
        page_fetcher=PageFetcher(client, app_settings),
    )


def create_app(
    app_settings: Optional[Settings] = None,
    context: Optional[ProxyContext] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        app_settings: Settings to use (defaults to the global instance)
        context: Pre-built collaborators; when given, the app does not own
            the HTTP client or cache and will not close them
    """
    app_settings = app_settings or (context.settings if context else settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup and shutdown."""
        configure_logging(app_settings.log_level, app_settings.log_json)
        logger.info("edge_proxy_starting", version=__version__, environment=app_settings.environment)

        client: Optional[httpx.AsyncClient] = None
        if context is not None:
            proxy_context = context
        else:
            client = httpx.AsyncClient(timeout=app_settings.upstream_timeout_seconds)
            proxy_context = build_context(app_settings, client)

        app.state.context = proxy_context
        app.state.resolver = ResponseResolver(proxy_context)

        logger.info(
            "edge_proxy_started",
            cache_backend=proxy_context.cache.get_stats()["backend"],
            search_configured=bool(app_settings.google_api_key),
        )

        yield

        logger.info("edge_proxy_shutting_down")
        await app.state.resolver.drain_pending_writes()
        if client is not None:
            await client.aclose()
            await proxy_context.cache.close()
        logger.info("edge_proxy_shutdown_complete")

    app = FastAPI(
        title="Edge Proxy",
        description="Search and page-fetch proxy with a key-value response cache",
        version=__version__,
        docs_url="/docs" if app_settings.is_development() else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def catch_all(request: Request, call_next):
        """Outermost boundary: any escaped failure becomes a plain-text 500."""
        try:
            return await call_next(request)
        except Exception as exc:
            logger.error(
                "unhandled_exception",
                error=str(exc),
                path=request.url.path,
                method=request.method,
                exc_info=True,
            )
            return to_response(unhandled_error_envelope(exc))

    @app.get("/")
    async def proxy(request: Request) -> Response:
        """Resolve a search (``q``) or page fetch (``url``)."""
        envelope = await request.app.state.resolver.resolve(request.query_params)
        return to_response(envelope)

    @app.get("/health")
    async def health_check(request: Request) -> Dict[str, Any]:
        """Service health including cache reachability."""
        cache: ResponseCache = request.app.state.context.cache
        reachable = await cache.is_healthy()
        return {
            "status": "healthy" if reachable else "degraded",
            "service": app_settings.service_name,
            "version": __version__,
            "cache": {**cache.get_stats(), "reachable": reachable},
            "pending_cache_writes": request.app.state.resolver.pending_writes,
        }

    @app.get("/metrics")
    async def metrics() -> Response:
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "edge_proxy.main:app",
        host=settings.service_host,
        port=settings.service_port,
        reload=settings.is_development(),
        log_level=settings.log_level.lower(),
    )
