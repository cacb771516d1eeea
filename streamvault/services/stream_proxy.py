from __future__ import annotations

"""
StreamVault • Stream proxy
==========================

Relays upstream media bytes to the client without exposing the upstream URL.

Per request:

    Received → CatalogLookup{found|notfound} → Resolving{cached|miss}
             → UpstreamFetch{ok|rangeOk|failed} → Streaming → {Completed|Aborted}

- Unknown id → `CatalogMiss` (404) before any upstream I/O.
- Resolution failure → `ResolutionFailed` (500, generic message).
- The client's `Range` header goes upstream verbatim with identity encoding,
  so `Content-Range`/`Content-Length` stay byte-exact.
- Upstream non-2xx → `UpstreamFetchFailed` with the upstream status.
- The body is streamed chunk by chunk; when the client goes away the upstream
  response is closed immediately (`Aborted`).
"""

import logging
from typing import Dict, Optional, Tuple

import anyio
import httpx
from starlette.requests import ClientDisconnect
from starlette.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from streamvault.core.cache import ResolutionCache
from streamvault.core.config import Settings
from streamvault.core.exceptions import CatalogMiss, UpstreamFetchFailed, UpstreamUnavailable
from streamvault.repositories.catalog import CatalogRepositoryProtocol
from streamvault.security_headers import NO_STORE
from streamvault.services.upstream import media_headers, media_timeout

log = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "video/mp4"


def relay_headers(upstream: httpx.Response) -> Tuple[int, Dict[str, str]]:
    """Map an upstream media response to the client-facing status and headers."""
    src = upstream.headers
    headers: Dict[str, str] = {
        "Content-Type": src.get("content-type") or DEFAULT_CONTENT_TYPE,
        "Cache-Control": NO_STORE,
        "X-Content-Type-Options": "nosniff",
        "Access-Control-Allow-Origin": "*",
    }
    content_length = src.get("content-length")
    if content_length:
        headers["Content-Length"] = content_length
    content_encoding = src.get("content-encoding")
    if content_encoding and content_encoding.lower() != "identity":
        headers["Content-Encoding"] = content_encoding

    content_range = src.get("content-range")
    if upstream.status_code == 206 or content_range:
        if content_range:
            headers["Content-Range"] = content_range
        headers["Accept-Ranges"] = src.get("accept-ranges") or "bytes"
        return 206, headers

    headers["Accept-Ranges"] = "bytes"
    return upstream.status_code, headers


class ProxiedMediaResponse(StreamingResponse):
    """Streaming response that owns an open upstream `httpx.Response`.

    The upstream body is read lazily, one chunk per client write. Whatever
    ends the response (completion, client disconnect, cancellation) the
    upstream response is closed in `finally`, shielded from cancellation.
    """

    def __init__(
        self,
        upstream: httpx.Response,
        *,
        status_code: int,
        headers: Dict[str, str],
        chunk_size: int = 64 * 1024,
        label: str = "",
    ) -> None:
        self.upstream = upstream
        self.chunk_size = chunk_size
        self.label = label
        self.bytes_sent = 0
        self.completed = False
        super().__init__(self._relay(), status_code=status_code, headers=headers)

    async def _relay(self):
        async for chunk in self.upstream.aiter_raw(self.chunk_size):
            self.bytes_sent += len(chunk)
            yield chunk
        self.completed = True

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        except ClientDisconnect:
            pass
        finally:
            with anyio.CancelScope(shield=True):
                await self.upstream.aclose()
            if self.completed:
                log.info("Stream %s completed (%d bytes)", self.label, self.bytes_sent)
            else:
                log.debug("Stream %s aborted by client after %d bytes", self.label, self.bytes_sent)


class StreamProxy:
    """Glue between catalog, resolution cache and the upstream media host."""

    def __init__(
        self,
        catalog: CatalogRepositoryProtocol,
        cache: ResolutionCache,
        client: httpx.AsyncClient,
        settings: Settings,
    ) -> None:
        self.catalog = catalog
        self.cache = cache
        self.client = client
        self.settings = settings

    async def open_upstream(self, media_url: str, range_header: Optional[str]) -> httpx.Response:
        """Start the upstream media fetch; caller owns (and must close) the response."""
        request = self.client.build_request(
            "GET",
            media_url,
            headers=media_headers(self.settings, range_header),
            timeout=media_timeout(self.settings),
        )
        try:
            upstream = await self.client.send(request, stream=True)
        except httpx.TimeoutException as exc:
            raise UpstreamUnavailable(timed_out=True) from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable() from exc

        if not upstream.is_success:
            await upstream.aclose()
            log.error("Media fetch failed: %s %s", upstream.status_code, upstream.reason_phrase)
            raise UpstreamFetchFailed(upstream.status_code)
        return upstream

    async def handle_stream_request(self, content_id: str, range_header: Optional[str] = None) -> ProxiedMediaResponse:
        entry = self.catalog.get(content_id) if content_id else None
        if entry is None:
            raise CatalogMiss(content_id)

        media_url = await self.cache.get_or_resolve(entry.upstream_ref)
        log.info("Streaming video %s (range=%s)", content_id, range_header or "-")

        upstream = await self.open_upstream(media_url, range_header)
        status_code, headers = relay_headers(upstream)
        return ProxiedMediaResponse(
            upstream,
            status_code=status_code,
            headers=headers,
            chunk_size=self.settings.STREAM_CHUNK_SIZE,
            label=content_id,
        )
