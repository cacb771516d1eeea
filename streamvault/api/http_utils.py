from __future__ import annotations

"""
StreamVault · HTTP Utilities
============================

Shared helpers for API routers:

- Content id sanitization
- `Range` header parsing (diagnostics only; the raw header is relayed)
- No-store JSON helper
- App-state accessors used as FastAPI dependencies
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from streamvault.core.cache import ResolutionCache
from streamvault.core.config import Settings
from streamvault.core.exceptions import CatalogMiss
from streamvault.repositories.catalog import MemoryCatalogRepository
from streamvault.services.stream_proxy import StreamProxy

__all__ = [
    "RangeRequest",
    "parse_range_header",
    "sanitize_content_id",
    "json_no_store",
    "get_settings",
    "get_catalog",
    "get_cache",
    "get_stream_proxy",
]


# ─────────────────────────────────────────────────────────────────────────────
# 🧩 ID Sanitization
# ─────────────────────────────────────────────────────────────────────────────

_CONTENT_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def sanitize_content_id(content_id: Optional[str]) -> str:
    """Return `content_id` when well-formed; anything else is an unknown id (404)."""
    if content_id and _CONTENT_ID_RE.match(content_id):
        return content_id
    raise CatalogMiss(content_id)


# ─────────────────────────────────────────────────────────────────────────────
# 📐 Range header
# ─────────────────────────────────────────────────────────────────────────────

_RANGE_RE = re.compile(r"^\s*bytes\s*=\s*(\d*)\s*-\s*(\d*)\s*$", re.I)


@dataclass(frozen=True)
class RangeRequest:
    """First byte range of a `Range` header. `start=None` means a suffix range."""

    start: Optional[int]
    end: Optional[int]

    @property
    def is_open_ended(self) -> bool:
        return self.end is None

    def __str__(self) -> str:
        start = "" if self.start is None else str(self.start)
        end = "" if self.end is None else str(self.end)
        return f"bytes={start}-{end}"


def parse_range_header(value: Optional[str]) -> Optional[RangeRequest]:
    """
    Parse the first range of a `bytes=` header.

    Returns None for a missing or unparseable header; the proxy still relays
    whatever the client sent, this is only used for logging.
    """
    if not value:
        return None
    first = value.split(",", 1)[0]
    match = _RANGE_RE.match(first)
    if not match or not (match.group(1) or match.group(2)):
        return None
    start = int(match.group(1)) if match.group(1) else None
    end = int(match.group(2)) if match.group(2) else None
    if start is not None and end is not None and end < start:
        return None
    return RangeRequest(start=start, end=end)


# ─────────────────────────────────────────────────────────────────────────────
# 🧳 No-store JSON helper
# ─────────────────────────────────────────────────────────────────────────────

def json_no_store(payload: Any, status_code: int = 200) -> JSONResponse:
    """Return a JSON response with strict `no-store` caching."""
    resp = JSONResponse(content=payload, status_code=status_code)
    resp.headers["Cache-Control"] = "no-store"
    resp.headers["Pragma"] = "no-cache"
    resp.headers["Expires"] = "0"
    return resp


# ─────────────────────────────────────────────────────────────────────────────
# 🔌 App-state dependencies (built once in the lifespan)
# ─────────────────────────────────────────────────────────────────────────────

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_catalog(request: Request) -> MemoryCatalogRepository:
    return request.app.state.catalog


def get_cache(request: Request) -> ResolutionCache:
    return request.app.state.resolution_cache


def get_stream_proxy(request: Request) -> StreamProxy:
    return request.app.state.stream_proxy
