from __future__ import annotations

"""In-memory resolution cache.

One `ResolutionCache` is built at startup and shared by reference; nothing
reads it through module globals. Entries are immutable `CachedResolution`
records replaced wholesale, so readers never observe a half-written entry.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional, Tuple

from streamvault.core.exceptions import ResolutionFailed

log = logging.getLogger(__name__)

ResolveFn = Callable[[str], Awaitable[str]]


@dataclass(frozen=True)
class CachedResolution:
    upstream_ref: str
    media_url: str
    resolved_at_epoch_millis: int


@dataclass
class CacheStats:
    """Counters; `misses` counts resolver calls, waiters served by another call are hits."""

    hits: int = 0
    misses: int = 0
    failures: int = 0
    negative_hits: int = 0
    size: int = 0
    inflight: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "failures": self.failures,
            "negative_hits": self.negative_hits,
            "size": self.size,
            "inflight": self.inflight,
        }


@dataclass
class _Flight:
    """Per-ref lock plus the number of requests holding or waiting on it."""

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    waiters: int = 0


class ResolutionCache:
    """TTL cache in front of a resolver.

    - `get_or_resolve(ref)` returns a valid cached URL without I/O, or calls
      the resolver, stores the result and returns it.
    - An entry is valid strictly while `now - resolved_at < ttl`.
    - Failures are not stored unless `negative_ttl_seconds > 0`, in which case
      a copy of the last `ResolutionFailed` is raised for that short window.
    - Concurrent misses for one ref share a single resolver call. The per-ref
      lock is dropped once the last waiter leaves.
    """

    def __init__(
        self,
        resolve: ResolveFn,
        *,
        ttl_seconds: float = 3600,
        negative_ttl_seconds: float = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._resolve = resolve
        self.ttl_millis = int(ttl_seconds * 1000)
        self.negative_ttl_millis = int(negative_ttl_seconds * 1000)
        self._clock = clock
        self._entries: Dict[str, CachedResolution] = {}
        self._failures: Dict[str, Tuple[int, ResolutionFailed]] = {}
        self._inflight: Dict[str, _Flight] = {}
        self._stats = CacheStats()

    # Helpers
    def _now_millis(self) -> int:
        return int(self._clock() * 1000)

    def _valid(self, entry: Optional[CachedResolution], now: int) -> bool:
        return entry is not None and now - entry.resolved_at_epoch_millis < self.ttl_millis

    def _lookup(self, upstream_ref: str) -> Optional[str]:
        now = self._now_millis()
        entry = self._entries.get(upstream_ref)
        if self._valid(entry, now):
            return entry.media_url  # type: ignore[union-attr]
        failed = self._failures.get(upstream_ref)
        if failed is not None and now - failed[0] < self.negative_ttl_millis:
            self._stats.negative_hits += 1
            stored = failed[1]
            raise ResolutionFailed(upstream_ref, reason=stored.reason, attempts=stored.attempts)
        return None

    # Joining and leaving never await, so the bookkeeping is atomic on the loop.
    def _join(self, upstream_ref: str) -> _Flight:
        flight = self._inflight.get(upstream_ref)
        if flight is None:
            flight = self._inflight[upstream_ref] = _Flight()
        flight.waiters += 1
        return flight

    def _leave(self, upstream_ref: str, flight: _Flight) -> None:
        flight.waiters -= 1
        if flight.waiters == 0 and self._inflight.get(upstream_ref) is flight:
            del self._inflight[upstream_ref]

    # Interface
    def get(self, upstream_ref: str) -> Optional[CachedResolution]:
        """Return the live entry for `upstream_ref`, or None when absent/expired."""
        entry = self._entries.get(upstream_ref)
        return entry if self._valid(entry, self._now_millis()) else None

    async def get_or_resolve(self, upstream_ref: str) -> str:
        url = self._lookup(upstream_ref)
        if url is not None:
            self._stats.hits += 1
            log.debug("Using cached media URL for %s", upstream_ref)
            return url

        flight = self._join(upstream_ref)
        try:
            async with flight.lock:
                # Another request may have resolved this ref while we waited.
                url = self._lookup(upstream_ref)
                if url is not None:
                    self._stats.hits += 1
                    return url
                return await self._resolve_and_store(upstream_ref)
        finally:
            self._leave(upstream_ref, flight)

    async def _resolve_and_store(self, upstream_ref: str) -> str:
        self._stats.misses += 1
        try:
            url = await self._resolve(upstream_ref)
        except ResolutionFailed as exc:
            self._stats.failures += 1
            if self.negative_ttl_millis > 0:
                self._failures[upstream_ref] = (self._now_millis(), exc)
            raise

        self._entries[upstream_ref] = CachedResolution(
            upstream_ref=upstream_ref,
            media_url=url,
            resolved_at_epoch_millis=self._now_millis(),
        )
        self._failures.pop(upstream_ref, None)
        return url

    def invalidate(self, upstream_ref: str) -> None:
        self._entries.pop(upstream_ref, None)
        self._failures.pop(upstream_ref, None)

    def clear(self) -> None:
        self._entries.clear()
        self._failures.clear()

    def stats(self) -> Dict[str, int]:
        self._stats.size = len(self._entries)
        self._stats.inflight = len(self._inflight)
        return self._stats.as_dict()

    def __len__(self) -> int:
        return len(self._entries)
