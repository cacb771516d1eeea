# tests/test_services/test_resolver.py

import httpx
import pytest

from streamvault.core.exceptions import ResolutionFailed
from streamvault.services.resolver import MediaResolver
from streamvault.services.strategies import (
    ExtractionStrategy,
    RegexStrategy,
    build_default_strategies,
    normalize_media_url,
)
from tests.fixtures.app import make_settings
from tests.fixtures.upstream import FakeUpstream

pytestmark = pytest.mark.anyio


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────

async def _resolve(upstream: FakeUpstream, page: str, ref: str = "ref123", **settings_overrides) -> str:
    upstream.page = page
    settings = make_settings(**settings_overrides)
    async with upstream.client() as client:
        return await MediaResolver(client, settings).resolve(ref)


class ExplodingStrategy(ExtractionStrategy):
    name = "exploding"

    async def extract(self, ctx):
        raise RuntimeError("boom")


# ─────────────────────────────────────────────────────────────
# Individual strategies
# ─────────────────────────────────────────────────────────────

async def test_sources_list_wins_over_file_property(upstream):
    page = """
        player.setup({sources: [{file: "https://a.test/hls/master.m3u8", label: "auto"}]});
        var fallback = {file: "https://b.test/v.mp4"};
    """
    assert await _resolve(upstream, page) == "https://a.test/hls/master.m3u8"


async def test_file_property(upstream):
    page = "<script>setup({ file: 'https://b.test/video/v.mp4?t=1' })</script>"
    assert await _resolve(upstream, page) == "https://b.test/video/v.mp4?t=1"


async def test_source_tag_preferred_over_earlier_generic_url(upstream):
    page = """
        <a href="https://d.test/other.mp4">download</a>
        <video><source src="https://c.test/v.mp4" type="video/mp4"></video>
    """
    assert await _resolve(upstream, page) == "https://c.test/v.mp4"


async def test_quoted_video_url_with_escaped_slashes(upstream):
    page = r'<script>var cfg = {"u": "https:\/\/e.test\/path\/v.mp4"};</script>'
    assert await _resolve(upstream, page) == "https://e.test/path/v.mp4"


async def test_quoted_playlist_url(upstream):
    page = '<script>var hls = "https://f.test/stream/master.m3u8?token=abc";</script>'
    assert await _resolve(upstream, page) == "https://f.test/stream/master.m3u8?token=abc"


async def test_extension_must_end_the_url(upstream):
    page = '<script>var x = "https://f.test/file.mp4x/page.html";</script>'
    upstream.page = page
    settings = make_settings()
    async with upstream.client() as client:
        with pytest.raises(ResolutionFailed):
            await MediaResolver(client, settings).resolve("ref123")


async def test_cdn_probe_in_order_and_stops_at_first_hit(upstream):
    upstream.head_ok = {"https://cdn2.test/ref123.mp4"}
    url = await _resolve(upstream, "<html>nothing here</html>")

    assert url == "https://cdn2.test/ref123.mp4"
    assert upstream.head_calls() == ["https://cdn1.test/ref123.mp4", "https://cdn2.test/ref123.mp4"]


async def test_cdn_probe_transport_error_moves_to_next_candidate(upstream):
    upstream.head_ok = {"https://cdn3.test/ref123.mp4"}
    passthrough = upstream.handler

    def flaky(request: httpx.Request) -> httpx.Response:
        if request.url.host == "cdn1.test":
            upstream.calls.append(request)
            raise httpx.ConnectError("refused", request=request)
        return passthrough(request)

    upstream.page = "<html></html>"
    async with httpx.AsyncClient(transport=httpx.MockTransport(flaky)) as client:
        url = await MediaResolver(client, make_settings()).resolve("ref123")

    assert url == "https://cdn3.test/ref123.mp4"
    assert len(upstream.head_calls()) == 3


async def test_packed_script_is_searched_not_executed(upstream):
    page = (
        "<script>eval(function(p,a,c,k,e,d){while(c--)if(k[c])p=p.replace(k[c]);return p}"
        "('0 1',2,2,'3|https://g.test/packed/v.mp4|file'.split('|')))</script>"
    )
    assert await _resolve(upstream, page) == "https://g.test/packed/v.mp4"
    # every CDN template was probed before falling through to the packed script
    assert len(upstream.head_calls()) == 3


async def test_structured_match_skips_network_probes(upstream):
    await _resolve(upstream, 'x = {file: "https://b.test/v.mp4"}')
    assert upstream.head_calls() == []
    assert len(upstream.page_calls()) == 1


async def test_relative_sources_file_is_resolved_against_embed_page(upstream):
    page = 'player.setup({sources: [{file: "/hls/ref123/master.m3u8"}]});'
    assert await _resolve(upstream, page) == "https://upstream.test/hls/ref123/master.m3u8"


async def test_protocol_relative_url_gets_https(upstream):
    page = 'player.setup({sources: [{file: "//cdn.test/v/ref123.mp4"}]});'
    assert await _resolve(upstream, page) == "https://cdn.test/v/ref123.mp4"


async def test_non_http_candidate_falls_through_to_next_strategy(upstream):
    page = """
        player.setup({sources: [{file: "blob:https://upstream.test/8c1e"}]});
        <source src="https://c.test/v.mp4" type="video/mp4">
    """
    assert await _resolve(upstream, page) == "https://c.test/v.mp4"


# ─────────────────────────────────────────────────────────────
# Failures
# ─────────────────────────────────────────────────────────────

async def test_no_strategy_matches_lists_every_attempt(upstream):
    upstream.page = "<html><body>no media</body></html>"
    async with upstream.client() as client:
        with pytest.raises(ResolutionFailed) as exc_info:
            await MediaResolver(client, make_settings()).resolve("ref123")

    err = exc_info.value
    assert err.status_code == 500
    assert err.message == "Could not retrieve video"
    assert [a.strategy for a in err.attempts] == [
        "sources_list",
        "file_property",
        "source_tag",
        "quoted_video_url",
        "quoted_playlist_url",
        "cdn_probe",
        "packed_script",
    ]
    assert not any(a.matched for a in err.attempts)


@pytest.mark.parametrize("status", [403, 404, 500])
async def test_page_error_status_fails_without_probing(upstream, status):
    upstream.page_status = status
    async with upstream.client() as client:
        with pytest.raises(ResolutionFailed) as exc_info:
            await MediaResolver(client, make_settings()).resolve("ref123")
    assert str(status) in exc_info.value.reason
    assert upstream.head_calls() == []


async def test_page_transport_error_fails(upstream):
    upstream.page_exc = httpx.ConnectError("unreachable")
    async with upstream.client() as client:
        with pytest.raises(ResolutionFailed):
            await MediaResolver(client, make_settings()).resolve("ref123")


async def test_raising_strategy_counts_as_no_match(upstream):
    upstream.page = 'file: "https://b.test/v.mp4"'
    settings = make_settings()
    chain = [ExplodingStrategy(), *build_default_strategies(settings)]
    async with upstream.client() as client:
        url = await MediaResolver(client, settings, strategies=chain).resolve("ref123")
    assert url == "https://b.test/v.mp4"


async def test_page_request_carries_browser_headers(upstream):
    await _resolve(upstream, 'file: "https://b.test/v.mp4"')
    (req,) = upstream.page_calls()
    assert str(req.url) == "https://upstream.test/e/ref123"
    assert req.headers["referer"] == "https://upstream.test/"
    assert "Mozilla/5.0" in req.headers["user-agent"]
    assert req.headers["accept-language"].startswith("en-US")


async def test_resolver_is_idempotent_for_unchanged_page(upstream):
    page = 'file: "https://b.test/v.mp4"'
    first = await _resolve(upstream, page)
    second = await _resolve(upstream, page)
    assert first == second


async def test_custom_extensions_from_settings(upstream):
    page = 'file: "https://b.test/v.webm"'
    assert await _resolve(upstream, page, VIDEO_EXTENSIONS=["mp4", "webm"]) == "https://b.test/v.webm"


# ─────────────────────────────────────────────────────────────
# Small pieces
# ─────────────────────────────────────────────────────────────

def test_normalize_media_url_strips_backslashes():
    assert normalize_media_url(r" https:\/\/x.test\/a\/b.mp4 ") == "https://x.test/a/b.mp4"


async def test_regex_strategy_empty_group_is_no_match(upstream):
    import re

    strategy = RegexStrategy("empty", re.compile(r"src=\"()\""))
    upstream.page = 'src=""'
    settings = make_settings()
    async with upstream.client() as client:
        with pytest.raises(ResolutionFailed):
            await MediaResolver(client, settings, strategies=[strategy]).resolve("ref123")
