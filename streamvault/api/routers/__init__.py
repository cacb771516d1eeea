"""
🧭 StreamVault • Router Aggregator
==================================

Exports the combined routers and each individual sub-router.

Layout
------
- `/api/videos`, `/api/videos/{id}`   → catalog listing (under `API_PREFIX`)
- `/stream?id=…`                      → media proxy (unversioned, player-facing)
- `/embed/{id}`                       → iframe wrapper page
- everything else                     → static single-page client (see `pages`)

Quick usage
-----------
    from streamvault.api.routers import build_api_router, build_media_router
    app.include_router(build_api_router(), prefix="/api")
    app.include_router(build_media_router())
"""

from fastapi import APIRouter

from .embed import router as embed_router
from .pages import build_pages_router
from .stream import router as stream_router
from .videos import router as videos_router


def build_api_router() -> APIRouter:
    """JSON API mounted under `API_PREFIX`."""
    r = APIRouter()
    r.include_router(videos_router)
    return r


def build_media_router() -> APIRouter:
    """Player-facing routes mounted at the root."""
    r = APIRouter()
    r.include_router(stream_router)
    r.include_router(embed_router)
    return r


__all__ = [
    "build_api_router",
    "build_media_router",
    "build_pages_router",
    "embed_router",
    "stream_router",
    "videos_router",
]
