from __future__ import annotations

"""
StreamVault • Single-page client
================================

Serves `index.html` for `/` and for any path no other route claimed, so the
client-side router can take over. Must be included last.
"""

from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import FileResponse, PlainTextResponse


def build_pages_router(static_dir: Path) -> APIRouter:
    index = Path(static_dir) / "index.html"
    router = APIRouter(tags=["Pages"], include_in_schema=False)

    @router.get("/{full_path:path}")
    async def spa_fallback(full_path: str):
        if not index.is_file():
            return PlainTextResponse("Not Found", status_code=404)
        return FileResponse(index, media_type="text/html")

    return router


__all__ = ["build_pages_router"]
