from __future__ import annotations

"""
StreamVault • Embed page
========================

- GET /embed/{id} → minimal HTML page wrapping the upstream player in an
  iframe. No resolution happens here.
"""

from html import escape

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, PlainTextResponse

from streamvault.api.http_utils import get_catalog, get_settings
from streamvault.core.config import Settings
from streamvault.repositories.catalog import MemoryCatalogRepository

router = APIRouter(tags=["Embed"])
__all__ = ["router", "render_embed_page"]

_EMBED_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <style>
    * {{ margin: 0; padding: 0; box-sizing: border-box; }}
    body {{ background: #000; overflow: hidden; }}
    iframe {{ width: 100vw; height: 100vh; border: none; }}
  </style>
</head>
<body>
  <iframe src="{src}" allowfullscreen allow="autoplay; fullscreen"></iframe>
</body>
</html>
"""


def render_embed_page(src: str, *, title: str = "Video Player") -> str:
    return _EMBED_TEMPLATE.format(src=escape(src, quote=True), title=escape(title))


@router.get("/embed/{content_id}", response_class=HTMLResponse)
async def embed_video(
    content_id: str,
    catalog: MemoryCatalogRepository = Depends(get_catalog),
    settings: Settings = Depends(get_settings),
):
    entry = catalog.get(content_id)
    if entry is None:
        return PlainTextResponse("Video not found", status_code=404)
    return HTMLResponse(render_embed_page(settings.embed_url(entry.upstream_ref)))
