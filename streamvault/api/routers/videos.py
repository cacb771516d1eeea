from __future__ import annotations

"""
StreamVault • Catalog listing (public)
======================================

Route Index
-----------
- GET /videos          → id → summary mapping for the whole catalog
- GET /videos/{id}     → one summary

Only the public fields of a catalog entry are serialized; the upstream
reference identifier never leaves the server.
"""

import logging
from typing import Dict

from fastapi import APIRouter, Depends

from streamvault.api.http_utils import get_catalog, sanitize_content_id
from streamvault.core.exceptions import CatalogMiss
from streamvault.repositories.catalog import MemoryCatalogRepository
from streamvault.schemas.catalog import VideoSummary

log = logging.getLogger(__name__)
router = APIRouter(tags=["Catalog"])
__all__ = ["router"]


@router.get("/videos", response_model=Dict[str, VideoSummary])
async def list_videos(catalog: MemoryCatalogRepository = Depends(get_catalog)) -> Dict[str, VideoSummary]:
    """Return every catalog entry keyed by content id."""
    return {entry.id: VideoSummary(**entry.public_view()) for entry in catalog.list_entries()}


@router.get("/videos/{content_id}", response_model=VideoSummary, responses={404: {"description": "Not Found"}})
async def get_video(content_id: str, catalog: MemoryCatalogRepository = Depends(get_catalog)) -> VideoSummary:
    entry = catalog.get(sanitize_content_id(content_id))
    if entry is None:
        raise CatalogMiss(content_id)
    return VideoSummary(**entry.public_view())
