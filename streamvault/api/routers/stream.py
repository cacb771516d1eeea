from __future__ import annotations

"""
StreamVault • Media stream (public)
===================================

Route Index
-----------
- GET /stream?id=<content id>   → proxied media bytes

Status codes
------------
- 200 full body, 206 partial body (`Content-Range` copied from upstream)
- 404 unknown id (no upstream I/O happens)
- 500 the media URL could not be resolved
- upstream error status when the media host refuses the fetch
- 502/504 when the media host is unreachable or times out

Responses are always `no-store`; the upstream location never appears in a
header or body sent to the client.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query

from streamvault.api.http_utils import get_stream_proxy, parse_range_header, sanitize_content_id
from streamvault.services.stream_proxy import ProxiedMediaResponse, StreamProxy

log = logging.getLogger(__name__)
router = APIRouter(
    tags=["Stream"],
    responses={
        206: {"description": "Partial Content"},
        404: {"description": "Not Found"},
        500: {"description": "Could not retrieve video"},
    },
)
__all__ = ["router"]


@router.get("/stream")
async def stream_video(
    content_id: Optional[str] = Query(None, alias="id"),
    range_header: Optional[str] = Header(None, alias="Range"),
    proxy: StreamProxy = Depends(get_stream_proxy),
) -> ProxiedMediaResponse:
    """Proxy the media for `id`, honoring the client's `Range` header."""
    content_id = sanitize_content_id(content_id)
    if range_header:
        parsed = parse_range_header(range_header)
        log.debug("Range request for %s: %s", content_id, parsed or f"unparsed {range_header!r}")
    return await proxy.handle_stream_request(content_id, range_header)
