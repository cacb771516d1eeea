from __future__ import annotations

"""
StreamVault • Extraction strategies
===================================

Each strategy looks at one upstream embed page and either returns a media URL
or `None`. The resolver tries them in a fixed order, most specific first, and
stops at the first hit:

    a. sources_list         `sources: [{ ... file: "<url>"`
    b. file_property        `file: "<url>.mp4"`
    c. source_tag           `<source src="<url>.mp4">`
    d. quoted_video_url     any quoted absolute `http(s)://…​.mp4`
    e. quoted_playlist_url  any quoted absolute `http(s)://…​.m3u8`
    f. cdn_probe            HEAD each configured CDN template, in order
    g. packed_script        URL inside an `eval(function(p,a,c,k,e,d)…)` blob

Page text is only ever pattern-matched; packed scripts are never evaluated.
A strategy that finds nothing returns `None`, which is the normal outcome.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence
from urllib.parse import urljoin, urlsplit

import httpx

from streamvault.core.config import Settings
from streamvault.services.upstream import page_timeout, probe_headers

log = logging.getLogger(__name__)

# Quote characters that may delimit a URL in markup or inline scripts.
_Q = "[\"']"
_NQ = "[^\"']"


@dataclass(frozen=True)
class ExtractionContext:
    upstream_ref: str
    page: str
    client: httpx.AsyncClient
    settings: Settings


class ExtractionStrategy(ABC):
    """One link in the ordered extraction chain."""

    name: str = "strategy"

    @abstractmethod
    async def extract(self, ctx: ExtractionContext) -> Optional[str]:
        """Return a candidate media URL, or None when this strategy finds nothing."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class RegexStrategy(ExtractionStrategy):
    """Return the first capture group of `pattern` found in the page."""

    def __init__(self, name: str, pattern: "re.Pattern[str]", *, group: int = 1) -> None:
        self.name = name
        self.pattern = pattern
        self.group = group

    async def extract(self, ctx: ExtractionContext) -> Optional[str]:
        match = self.pattern.search(ctx.page)
        if not match:
            return None
        return match.group(self.group) or None


class CdnProbeStrategy(ExtractionStrategy):
    """Guess the media URL from known CDN layouts and HEAD-probe them one by one."""

    name = "cdn_probe"

    def __init__(self, templates: Sequence[str]) -> None:
        self.templates = list(templates)

    def candidates(self, upstream_ref: str) -> List[str]:
        return [t.format(ref=upstream_ref) for t in self.templates]

    async def extract(self, ctx: ExtractionContext) -> Optional[str]:
        headers = probe_headers(ctx.settings)
        timeout = page_timeout(ctx.settings)
        for candidate in self.candidates(ctx.upstream_ref):
            log.debug("Probing CDN candidate %s", candidate)
            try:
                resp = await ctx.client.head(candidate, headers=headers, timeout=timeout)
            except httpx.HTTPError as exc:
                log.debug("CDN probe %s failed: %s", candidate, exc)
                continue
            if resp.is_success or resp.status_code == 206:
                return candidate
        return None


class PackedScriptStrategy(ExtractionStrategy):
    """Find a media URL inside `eval(function(p,a,c,k,e,d)...)` packed payloads."""

    name = "packed_script"

    _PACKED_RE = re.compile(r"eval\(function\(p,a,c,k,e,[dr]\).*?(?:</script>|$)", re.S)

    def __init__(self, extensions: Sequence[str]) -> None:
        self.url_pattern = re.compile(
            rf"https?:[\\/]+[^\"'\s]+\.(?:{_alternation(extensions)})(?![A-Za-z0-9])",
            re.I,
        )

    async def extract(self, ctx: ExtractionContext) -> Optional[str]:
        for packed in self._PACKED_RE.finditer(ctx.page):
            match = self.url_pattern.search(packed.group(0))
            if match:
                return match.group(0)
        return None


def _alternation(extensions: Sequence[str]) -> str:
    return "|".join(re.escape(e) for e in extensions)


def _ending_in(extensions: Sequence[str]) -> str:
    """URL body ending in one of `extensions`, optionally followed by a query or fragment."""
    return rf"{_NQ}+?\.(?:{_alternation(extensions)})(?:[?#]{_NQ}*)?"


def build_default_strategies(settings: Settings) -> List[ExtractionStrategy]:
    """The ordered chain used in production, parameterized by configured extensions."""
    video = settings.VIDEO_EXTENSIONS
    playlist = settings.PLAYLIST_EXTENSIONS
    return [
        RegexStrategy(
            "sources_list",
            re.compile(rf"sources:\s*\[\s*\{{[^}}]*file:\s*{_Q}({_NQ}+){_Q}", re.I),
        ),
        RegexStrategy(
            "file_property",
            re.compile(rf"file:\s*{_Q}({_ending_in(video)}){_Q}", re.I),
        ),
        RegexStrategy(
            "source_tag",
            re.compile(rf"<source[^>]+src={_Q}({_ending_in(video)}){_Q}", re.I),
        ),
        RegexStrategy(
            "quoted_video_url",
            re.compile(rf"{_Q}(https?:(?://|\\/\\/){_ending_in(video)}){_Q}", re.I),
        ),
        RegexStrategy(
            "quoted_playlist_url",
            re.compile(rf"{_Q}(https?:(?://|\\/\\/){_ending_in(playlist)}){_Q}", re.I),
        ),
        CdnProbeStrategy(settings.CDN_URL_TEMPLATES),
        PackedScriptStrategy(video),
    ]


def normalize_media_url(url: str) -> str:
    """Strip backslash escapes (`\\/` → `/`) left over from inline scripts."""
    return url.replace("\\", "").strip()


def absolute_media_url(url: str, page_url: str) -> str:
    """Resolve `url` against the page it was found on; "" unless the result is http(s)."""
    if not url:
        return ""
    resolved = urljoin(page_url, url)
    return resolved if urlsplit(resolved).scheme in ("http", "https") else ""


__all__ = [
    "CdnProbeStrategy",
    "ExtractionContext",
    "ExtractionStrategy",
    "PackedScriptStrategy",
    "RegexStrategy",
    "absolute_media_url",
    "build_default_strategies",
    "normalize_media_url",
]
