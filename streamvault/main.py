# streamvault/main.py
from __future__ import annotations

"""
# StreamVault — Application Entrypoint (FastAPI)

ASGI application factory and lifecycle for the StreamVault media proxy.

## Design Goals
- Deterministic, testable **app factory** (`create_app`) with explicit lifespan.
- Every shared object (catalog, upstream client, resolver, resolution cache,
  stream proxy) is built once in the lifespan and hung on `app.state`;
  routes reach them through dependencies, never through module globals.
- Explicit **middleware order**: request id → security headers → CORS.
  No gzip: media bytes are relayed as-is so ranges stay exact.
- Centralized exception handling with one JSON error shape.

## Probes
- `/healthz` — liveness (process up).
- `/readyz` — catalog size and resolution-cache counters.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional, Sequence
import logging
import os
import time

import httpx
from fastapi import Depends, FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

# -- Logging bootstrap (Loguru + stdlib intercept) ----------------------------
from streamvault.core import logger as _logsetup  # noqa: F401

from streamvault.api.http_utils import get_cache, get_catalog, json_no_store
from streamvault.api.routers import build_api_router, build_media_router, build_pages_router
from streamvault.core.cache import ResolutionCache
from streamvault.core.config import Settings, settings as default_settings
from streamvault.core.exception_handlers import (
    app_exception_handler,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from streamvault.core.exceptions import AppException
from streamvault.middleware.request_id import RequestIDMiddleware
from streamvault.repositories.catalog import CatalogRepositoryProtocol, get_catalog_repository
from streamvault.security_headers import configure_cors, install_security
from streamvault.services.resolver import MediaResolver
from streamvault.services.strategies import ExtractionStrategy
from streamvault.services.stream_proxy import StreamProxy
from streamvault.services.upstream import build_http_client

logger = logging.getLogger("streamvault")


# ─────────────────────────────────────────────────────────────────────────────
# 🔄 Lifespan: startup & shutdown
# ─────────────────────────────────────────────────────────────────────────────
def _make_lifespan(
    settings: Settings,
    *,
    transport: Optional[httpx.AsyncBaseTransport],
    catalog: Optional[CatalogRepositoryProtocol],
    strategies: Optional[Sequence[ExtractionStrategy]],
    clock: Callable[[], float],
):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """
        Startup:
            - Load the catalog (fails fast on a malformed file).
            - Open the shared upstream HTTP client.
            - Wire resolver → resolution cache → stream proxy.

        Shutdown:
            - Close the upstream client (drops pooled connections).
        """
        app.state.settings = settings
        app.state.catalog = catalog if catalog is not None else get_catalog_repository(settings.CATALOG_DATA_PATH)

        client = build_http_client(settings, transport=transport)
        resolver = MediaResolver(client, settings, strategies=strategies)
        cache = ResolutionCache(
            resolver.resolve,
            ttl_seconds=settings.RESOLUTION_CACHE_TTL_SECONDS,
            negative_ttl_seconds=settings.NEGATIVE_CACHE_TTL_SECONDS,
            clock=clock,
        )
        app.state.http_client = client
        app.state.resolver = resolver
        app.state.resolution_cache = cache
        app.state.stream_proxy = StreamProxy(app.state.catalog, cache, client, settings)

        logger.info(
            "🎬 %s starting up [%s] (%d videos)",
            settings.PROJECT_NAME,
            settings.ENV,
            len(app.state.catalog.list_entries()),
        )
        try:
            yield
        finally:
            await client.aclose()
            logger.info("🛑 %s shutting down", settings.PROJECT_NAME)

    return lifespan


# ─────────────────────────────────────────────────────────────────────────────
# 🏗️ App factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    catalog: Optional[CatalogRepositoryProtocol] = None,
    strategies: Optional[Sequence[ExtractionStrategy]] = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """
    Build and configure the FastAPI app instance.

    Args:
        settings: configuration; defaults to the env-driven singleton.
        transport: optional httpx transport for the upstream client (tests
            pass an `httpx.MockTransport`).
        catalog: optional pre-built catalog; otherwise loaded from
            `CATALOG_DATA_PATH` or the packaged default.
        strategies: optional extraction chain override.
        clock: time source for the resolution cache.
    """
    settings = settings or default_settings
    docs_url = "/docs" if settings.ENABLE_DOCS else None
    openapi_url = "/openapi.json" if settings.ENABLE_DOCS else None

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        docs_url=docs_url,
        redoc_url=None,
        openapi_url=openapi_url,
        lifespan=_make_lifespan(
            settings,
            transport=transport,
            catalog=catalog,
            strategies=strategies,
            clock=clock,
        ),
    )

    # ── Middlewares (last added runs first) ─────────────────────────────────
    configure_cors(app, settings)
    install_security(app)
    app.add_middleware(RequestIDMiddleware)

    # ── Exception handlers ──────────────────────────────────────────────────
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, global_exception_handler)  # type: ignore[arg-type]

    # ── Meta endpoints ──────────────────────────────────────────────────────
    @app.get("/healthz", tags=["meta"])
    async def healthz() -> dict[str, bool]:
        """Liveness probe."""
        return {"ok": True}

    @app.get("/readyz", tags=["meta"])
    async def readyz(
        catalog: CatalogRepositoryProtocol = Depends(get_catalog),
        cache: ResolutionCache = Depends(get_cache),
    ):
        """Readiness probe: catalog loaded and cache counters."""
        catalog_size = len(catalog.list_entries())
        return json_no_store({"ready": catalog_size > 0, "catalog": catalog_size, "cache": cache.stats()})

    # ── Routers ─────────────────────────────────────────────────────────────
    app.include_router(build_api_router(), prefix=settings.API_PREFIX)
    app.include_router(build_media_router())
    app.mount("/static", StaticFiles(directory=str(settings.STATIC_DIR), check_dir=False), name="static")
    app.include_router(build_pages_router(settings.STATIC_DIR))  # catch-all, keep last

    return app


# ─────────────────────────────────────────────────────────────────────────────
# 🚀 Module-level ASGI app for Uvicorn
# ─────────────────────────────────────────────────────────────────────────────
app = create_app()
__all__ = ["create_app", "app", "run"]


def run() -> None:
    """Console entry point (`streamvault`)."""
    import uvicorn

    port = int(os.getenv("PORT", "3000"))
    logger.info("📺 Dashboard: http://localhost:%d", port)
    uvicorn.run(
        "streamvault.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=port,
        reload=os.getenv("RELOAD", "0") == "1",
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        server_header=False,
    )


if __name__ == "__main__":
    run()
