# tests/test_api/test_stream.py

import httpx
import pytest

from streamvault.security_headers import NO_STORE
from tests.fixtures.upstream import MEDIA_BYTES, MEDIA_URL


# ─────────────────────────────────────────────────────────────
# Unknown / malformed ids
# ─────────────────────────────────────────────────────────────

@pytest.mark.parametrize("query", ["?id=999", "", "?id=", "?id=..%2Fetc", "?id=" + "a" * 200])
def test_unknown_or_malformed_id_is_404_without_upstream_io(client, upstream, query):
    r = client.get(f"/stream{query}")

    assert r.status_code == 404
    body = r.json()
    assert body["error"] is True
    assert body["message"] == "Video not found"
    assert upstream.calls == []


# ─────────────────────────────────────────────────────────────
# Happy paths
# ─────────────────────────────────────────────────────────────

def test_full_body_stream(client, upstream):
    r = client.get("/stream?id=1")

    assert r.status_code == 200
    assert r.content == MEDIA_BYTES
    assert r.headers["content-type"] == "video/mp4"
    assert r.headers["content-length"] == str(len(MEDIA_BYTES))
    assert r.headers["accept-ranges"] == "bytes"
    assert r.headers["cache-control"] == NO_STORE
    assert r.headers["x-content-type-options"] == "nosniff"
    assert r.headers["access-control-allow-origin"] == "*"


def test_upstream_url_never_reaches_the_client(client, upstream):
    r = client.get("/stream?id=1", headers={"Range": "bytes=0-9"})
    assert "media.test" not in "".join(f"{k}:{v}" for k, v in r.headers.items())
    assert MEDIA_URL.encode() not in r.content


def test_range_request_is_relayed_verbatim(client, upstream):
    r = client.get("/stream?id=1", headers={"Range": "bytes=100-199"})

    assert r.status_code == 206
    assert r.headers["content-range"] == f"bytes 100-199/{len(MEDIA_BYTES)}"
    assert r.headers["content-length"] == "100"
    assert r.content == MEDIA_BYTES[100:200]

    (media_req,) = upstream.media_calls()
    assert str(media_req.url) == MEDIA_URL
    assert media_req.headers["range"] == "bytes=100-199"
    assert media_req.headers["accept-encoding"] == "identity"
    assert media_req.headers["referer"] == "https://upstream.test/"
    assert media_req.headers["origin"] == "https://upstream.test"


def test_open_ended_range(client, upstream):
    r = client.get("/stream?id=1", headers={"Range": "bytes=1000-"})
    assert r.status_code == 206
    assert r.headers["content-range"] == f"bytes 1000-1023/{len(MEDIA_BYTES)}"
    assert r.content == MEDIA_BYTES[1000:]


def test_range_ignored_upstream_gives_full_200(client, upstream):
    upstream.honor_ranges = False
    r = client.get("/stream?id=1", headers={"Range": "bytes=0-9"})
    assert r.status_code == 200
    assert r.headers["accept-ranges"] == "bytes"
    assert r.content == MEDIA_BYTES


def test_resolution_is_cached_across_requests(client, upstream, clock):
    client.get("/stream?id=1")
    client.get("/stream?id=1", headers={"Range": "bytes=0-1"})
    assert len(upstream.page_calls()) == 1
    assert len(upstream.media_calls()) == 2

    clock.advance(3600)
    client.get("/stream?id=1")
    assert len(upstream.page_calls()) == 2


def test_ids_sharing_an_upstream_ref_share_the_cache(app_settings, upstream, clock):
    from fastapi.testclient import TestClient

    from streamvault.main import create_app
    from streamvault.repositories.catalog import CatalogEntry, MemoryCatalogRepository

    shared = MemoryCatalogRepository(
        [CatalogEntry(id="a", title="A", upstream_ref="same"), CatalogEntry(id="b", title="B", upstream_ref="same")]
    )
    app = create_app(app_settings, transport=upstream.transport, catalog=shared, clock=clock)
    with TestClient(app) as c:
        assert c.get("/stream?id=a").status_code == 200
        assert c.get("/stream?id=b").status_code == 200
    assert len(upstream.page_calls()) == 1


def test_relative_media_url_is_fetched_from_embed_host(client, upstream):
    upstream.page = 'player.setup({sources: [{file: "/hls/ref123/master.m3u8"}]});'

    for _ in range(2):
        r = client.get("/stream?id=1")
        assert r.status_code == 200
        assert r.content == MEDIA_BYTES

    assert [str(req.url) for req in upstream.media_calls()] == ["https://upstream.test/hls/ref123/master.m3u8"] * 2
    assert len(upstream.page_calls()) == 1


# ─────────────────────────────────────────────────────────────
# Failures
# ─────────────────────────────────────────────────────────────

def test_resolution_failure_is_generic_500_and_not_cached(client, upstream):
    upstream.page = "<html>nothing</html>"

    r = client.get("/stream?id=1")
    assert r.status_code == 500
    assert r.json()["message"] == "Could not retrieve video"
    assert "ref123" not in r.text
    assert upstream.media_calls() == []

    client.get("/stream?id=1")
    assert len(upstream.page_calls()) == 2


@pytest.mark.parametrize("status", [403, 404, 410])
def test_upstream_media_error_status_propagates(client, upstream, status):
    upstream.media_status = status
    r = client.get("/stream?id=1")

    assert r.status_code == status
    assert r.json()["message"] == "Stream failed"


def test_upstream_media_timeout_is_504(client, upstream):
    upstream.media_exc = httpx.ReadTimeout("slow")
    r = client.get("/stream?id=1")
    assert r.status_code == 504


def test_upstream_media_unreachable_is_502(client, upstream):
    upstream.media_exc = httpx.ConnectError("refused")
    r = client.get("/stream?id=1")
    assert r.status_code == 502


def test_error_responses_carry_request_id(client, upstream):
    rid = "0b8f6a4e-3c1d-4f2a-9b7e-5d6c7a8b9c0d"
    r = client.get("/stream?id=999", headers={"X-Request-ID": rid})
    assert r.headers["x-request-id"] == rid
    assert r.json()["request_id"] == rid
