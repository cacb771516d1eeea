# tests/test_config.py

import pytest
from pydantic import ValidationError

from streamvault.core.config import Settings


def _settings(**kw) -> Settings:
    return Settings(_env_file=None, **kw)


def test_defaults():
    s = _settings()
    assert s.RESOLUTION_CACHE_TTL_SECONDS == 3600
    assert s.NEGATIVE_CACHE_TTL_SECONDS == 0
    assert s.VIDEO_EXTENSIONS == ["mp4"]
    assert s.PLAYLIST_EXTENSIONS == ["m3u8"]
    assert len(s.CDN_URL_TEMPLATES) == 5
    assert all("{ref}" in t for t in s.CDN_URL_TEMPLATES)


def test_csv_lists_from_env(monkeypatch):
    monkeypatch.setenv("CDN_URL_TEMPLATES", "https://a.test/{ref}.mp4, https://b.test/{ref}.mp4")
    monkeypatch.setenv("VIDEO_EXTENSIONS", ".MP4, webm")
    s = _settings()
    assert s.CDN_URL_TEMPLATES == ["https://a.test/{ref}.mp4", "https://b.test/{ref}.mp4"]
    assert s.VIDEO_EXTENSIONS == ["mp4", "webm"]


def test_embed_template_requires_placeholder():
    with pytest.raises(ValidationError):
        _settings(UPSTREAM_EMBED_URL_TEMPLATE="https://upstream.test/e/")


def test_empty_extension_list_rejected():
    with pytest.raises(ValidationError):
        _settings(VIDEO_EXTENSIONS=" , ")


def test_upstream_base_is_normalized():
    s = _settings(UPSTREAM_BASE_URL="upstream.test/")
    assert s.UPSTREAM_BASE_URL == "https://upstream.test"
    assert s.upstream_referer == "https://upstream.test/"


def test_embed_url_and_origins():
    s = _settings(UPSTREAM_EMBED_URL_TEMPLATE="https://u.test/e/{ref}", FRONTEND_ORIGINS="https://a.test, https://b.test")
    assert s.embed_url("xyz") == "https://u.test/e/xyz"
    assert s.frontend_origins_list == ["https://a.test", "https://b.test"]
