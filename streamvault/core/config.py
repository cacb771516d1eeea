# streamvault/core/config.py
from __future__ import annotations

"""
# StreamVault — Centralized Configuration (Pydantic v2)

Single `settings` object with strongly-typed, environment-driven config.

## Goals
- Safe defaults for local/dev; the reference upstream works out of the box.
- CSV → list helpers so CDN templates and extensions can be set from env.
- Explicit deadlines for every upstream call (page fetch, probes, media).

## Usage
    from streamvault.core.config import settings
"""

import logging
from pathlib import Path
from typing import Annotated, List, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

log = logging.getLogger(__name__)
load_dotenv()

PACKAGE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_CDN_URL_TEMPLATES = [
    "https://m3.lulucdn.com/{ref}.mp4",
    "https://v.lulucdn.com/{ref}.mp4",
    "https://cdn.lulucdn.com/{ref}.mp4",
    "https://s1.lulucdn.com/{ref}.mp4",
    "https://stream.lulucdn.com/{ref}.mp4",
]


# ─────────────────────────────────────────────────────────────
# Small helpers
# ─────────────────────────────────────────────────────────────
def _split_csv(v: str | None) -> list[str]:
    """Split a comma-separated string into a trimmed list (empty-safe)."""
    if not v:
        return []
    return [s.strip() for s in str(v).split(",") if s and s.strip()]


def _normalize_url_like(v: str | None, *, require_scheme: bool = True) -> str:
    """Normalize to a string URL without trailing slash."""
    s = (v or "").strip()
    if not s:
        return ""
    if require_scheme and not (s.startswith("http://") or s.startswith("https://")):
        s = "https://" + s
    return s.rstrip("/")


# ─────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────
class Settings(BaseSettings):
    """
    Global application settings sourced from environment.

    Upstream:
        - `UPSTREAM_EMBED_URL_TEMPLATE` and `CDN_URL_TEMPLATES` take a `{ref}`
          placeholder for the upstream reference identifier.
        - Timeouts bound every upstream call; the media read timeout applies
          between chunks, so long streams are fine but stalls are not.

    Cache:
        - `RESOLUTION_CACHE_TTL_SECONDS` is fixed for the process lifetime.
        - `NEGATIVE_CACHE_TTL_SECONDS=0` disables failure caching.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── App meta ──────────────────────────────────────────────
    PROJECT_NAME: str = "StreamVault"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"
    ENV: Literal["development", "staging", "production"] = "development"
    ENABLE_DOCS: bool = False

    # ── Catalog / static ──────────────────────────────────────
    CATALOG_DATA_PATH: Optional[Path] = None
    STATIC_DIR: Path = PACKAGE_DIR / "static"

    # ── Upstream host ─────────────────────────────────────────
    UPSTREAM_BASE_URL: str = "https://luluvid.com"
    UPSTREAM_EMBED_URL_TEMPLATE: str = "https://luluvid.com/e/{ref}"
    UPSTREAM_USER_AGENT: str = DEFAULT_USER_AGENT
    CDN_URL_TEMPLATES: Annotated[List[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_CDN_URL_TEMPLATES))
    VIDEO_EXTENSIONS: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["mp4"])
    PLAYLIST_EXTENSIONS: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["m3u8"])

    # ── Resolution cache ──────────────────────────────────────
    RESOLUTION_CACHE_TTL_SECONDS: float = Field(3600, ge=0)
    NEGATIVE_CACHE_TTL_SECONDS: float = Field(0, ge=0, le=600)

    # ── Deadlines & streaming ─────────────────────────────────
    UPSTREAM_PAGE_TIMEOUT_SECONDS: float = Field(15.0, gt=0)
    UPSTREAM_CONNECT_TIMEOUT_SECONDS: float = Field(10.0, gt=0)
    UPSTREAM_READ_TIMEOUT_SECONDS: float = Field(60.0, gt=0)
    STREAM_CHUNK_SIZE: int = Field(64 * 1024, ge=1024, le=8 * 1024 * 1024)

    # ── CORS ──────────────────────────────────────────────────
    FRONTEND_ORIGINS: Optional[str] = "*"  # CSV

    # ── Validators / normalizers ──────────────────────────────
    @field_validator("CDN_URL_TEMPLATES", "VIDEO_EXTENSIONS", "PLAYLIST_EXTENSIONS", mode="before")
    @classmethod
    def _assemble_csv_lists(cls, v: str | List[str]):
        if isinstance(v, str):
            return _split_csv(v)
        return v

    @field_validator("VIDEO_EXTENSIONS", "PLAYLIST_EXTENSIONS")
    @classmethod
    def _normalize_extensions(cls, v: List[str]) -> List[str]:
        exts = [e.strip().lstrip(".").lower() for e in v if e and e.strip().lstrip(".")]
        if not exts:
            raise ValueError("at least one extension is required")
        return exts

    @field_validator("UPSTREAM_BASE_URL", mode="before")
    @classmethod
    def _normalize_upstream_base(cls, v) -> str:
        return _normalize_url_like(str(v or ""))

    @field_validator("UPSTREAM_EMBED_URL_TEMPLATE")
    @classmethod
    def _require_ref_placeholder(cls, v: str) -> str:
        if "{ref}" not in v:
            raise ValueError("UPSTREAM_EMBED_URL_TEMPLATE must contain '{ref}'")
        return v

    # ── Derived / convenience properties ─────────────────────
    @property
    def frontend_origins_list(self) -> List[str]:
        """CORS allow-list; `*` when unset."""
        return _split_csv(self.FRONTEND_ORIGINS) or ["*"]

    @property
    def upstream_referer(self) -> str:
        """Referer expected by the upstream site (base URL with trailing slash)."""
        return f"{self.UPSTREAM_BASE_URL}/"

    def embed_url(self, upstream_ref: str) -> str:
        """Upstream embed page URL for a reference identifier."""
        return self.UPSTREAM_EMBED_URL_TEMPLATE.format(ref=upstream_ref)


# Singleton instance
settings = Settings()
