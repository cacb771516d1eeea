from __future__ import annotations

"""Upstream HTTP plumbing shared by the resolver and the stream proxy.

The upstream host rejects requests without a plausible browser fingerprint,
so every call carries the headers built here. One `httpx.AsyncClient` is
owned by the app lifespan and reused by all requests.
"""

from typing import Dict, Optional

import httpx

from streamvault.core.config import Settings


def page_headers(settings: Settings) -> Dict[str, str]:
    """Headers for fetching the upstream embed page."""
    return {
        "User-Agent": settings.UPSTREAM_USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Referer": settings.upstream_referer,
    }


def probe_headers(settings: Settings) -> Dict[str, str]:
    """Headers for HEAD-probing candidate CDN URLs."""
    return {
        "User-Agent": settings.UPSTREAM_USER_AGENT,
        "Referer": settings.upstream_referer,
    }


def media_headers(settings: Settings, range_header: Optional[str] = None) -> Dict[str, str]:
    """Headers for the media fetch; identity encoding keeps byte ranges exact."""
    headers = {
        "User-Agent": settings.UPSTREAM_USER_AGENT,
        "Accept": "*/*",
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "identity",
        "Referer": settings.upstream_referer,
        "Origin": settings.UPSTREAM_BASE_URL,
    }
    if range_header:
        headers["Range"] = range_header
    return headers


def page_timeout(settings: Settings) -> httpx.Timeout:
    return httpx.Timeout(settings.UPSTREAM_PAGE_TIMEOUT_SECONDS)


def media_timeout(settings: Settings) -> httpx.Timeout:
    return httpx.Timeout(
        settings.UPSTREAM_READ_TIMEOUT_SECONDS,
        connect=settings.UPSTREAM_CONNECT_TIMEOUT_SECONDS,
    )


def build_http_client(settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Create the shared upstream client (redirects followed, pooled connections)."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=page_timeout(settings),
        limits=httpx.Limits(max_connections=200, max_keepalive_connections=40),
        transport=transport,
    )
