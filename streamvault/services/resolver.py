from __future__ import annotations

"""
StreamVault • Media resolver
============================

Turns an upstream reference identifier into a fetchable media URL.

Flow
----
1. GET the upstream embed page with browser-like headers. Any transport error
   or non-2xx answer fails this resolution (no retry here).
2. Run the ordered strategy chain from `streamvault.services.strategies`; the
   first non-empty match wins and the rest are skipped.
3. Normalize the winner (`\\/` → `/`), resolve it against the embed page URL
   and return it. A candidate that is not http(s) afterwards counts as no
   match, so the chain moves on.
4. Nothing matched → `ResolutionFailed` carrying the per-strategy attempts.

The resolver keeps no state between calls; caching lives in
`streamvault.core.cache.ResolutionCache`.
"""

import logging
from typing import List, Optional, Sequence

import httpx

from streamvault.core.config import Settings
from streamvault.core.exceptions import ExtractionAttempt, ResolutionFailed
from streamvault.services.strategies import (
    ExtractionContext,
    ExtractionStrategy,
    absolute_media_url,
    build_default_strategies,
    normalize_media_url,
)
from streamvault.services.upstream import page_headers, page_timeout

log = logging.getLogger(__name__)

PAGE_SAMPLE_CHARS = 2000


class MediaResolver:
    """Resolve upstream references by scraping the upstream embed page."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        strategies: Optional[Sequence[ExtractionStrategy]] = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.strategies: List[ExtractionStrategy] = list(
            strategies if strategies is not None else build_default_strategies(settings)
        )

    async def fetch_page(self, upstream_ref: str) -> str:
        """Fetch the embed page body for `upstream_ref` or raise `ResolutionFailed`."""
        url = self.settings.embed_url(upstream_ref)
        log.info("Fetching embed page for %s", upstream_ref)
        try:
            resp = await self.client.get(
                url,
                headers=page_headers(self.settings),
                timeout=page_timeout(self.settings),
            )
        except httpx.HTTPError as exc:
            raise ResolutionFailed(upstream_ref, reason=f"embed page unreachable: {type(exc).__name__}") from exc
        if not resp.is_success:
            raise ResolutionFailed(upstream_ref, reason=f"embed page returned {resp.status_code}")
        return resp.text

    async def extract(self, upstream_ref: str, page: str) -> str:
        """Run the strategy chain over `page`; first match wins."""
        ctx = ExtractionContext(
            upstream_ref=upstream_ref,
            page=page,
            client=self.client,
            settings=self.settings,
        )
        page_url = self.settings.embed_url(upstream_ref)
        attempts: List[ExtractionAttempt] = []
        for index, strategy in enumerate(self.strategies):
            try:
                candidate = await strategy.extract(ctx)
            except Exception:
                # A broken strategy counts as "no match"; the chain keeps going.
                log.warning("Strategy %s raised for %s", strategy.name, upstream_ref, exc_info=True)
                candidate = None

            url = absolute_media_url(normalize_media_url(candidate), page_url) if candidate else ""
            attempts.append(ExtractionAttempt(index=index, strategy=strategy.name, matched=bool(url)))
            if url:
                log.info("Resolved %s via %s", upstream_ref, strategy.name)
                log.debug("Media URL for %s: %s", upstream_ref, url)
                return url

        log.debug("No strategy matched %s. Page sample: %s", upstream_ref, page[:PAGE_SAMPLE_CHARS])
        raise ResolutionFailed(upstream_ref, reason="no extraction strategy matched", attempts=attempts)

    async def resolve(self, upstream_ref: str) -> str:
        page = await self.fetch_page(upstream_ref)
        return await self.extract(upstream_ref, page)
