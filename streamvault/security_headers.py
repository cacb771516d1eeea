# streamvault/security_headers.py
from __future__ import annotations

"""
# StreamVault — Security Headers & CORS

Security headers and CORS utilities for the FastAPI app.

## What you get
- **Headers**: CSP, X-Content-Type-Options, X-Frame-Options, Referrer-Policy,
  Permissions-Policy.
- **Frame rules**: the `/embed/` page may be framed by our own origin; every
  other page is `DENY`.
- **CORS installer**: GET/HEAD playback from the configured origins (`*` by
  default), exposing the range headers players need.

## Quick start
    from streamvault.security_headers import install_security, configure_cors

    app = FastAPI()
    install_security(app)
    configure_cors(app, settings)

## Env knobs
- ENABLE_HTTPS_REDIRECT (default "false")
- SECURITY_SKIP_PATHS (CSV; default "/healthz,/readyz,/docs,/openapi.json")
- CSP_DEFAULT_SRC, CSP_IMG_SRC, CSP_MEDIA_SRC, CSP_FRAME_SRC
- REFERRER_POLICY (default "strict-origin-when-cross-origin")
"""

import os
from dataclasses import dataclass
from typing import List, Tuple

from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send

NO_STORE = "no-store, no-cache, must-revalidate"
EMBED_PREFIX = "/embed/"


# ─────────────────────────────────────────────────────────────
# ⚙️ Configuration
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SecurityHeadersConfig:
    """Runtime configuration for security headers and CSP (env-driven)."""

    csp_default_src: str = os.getenv("CSP_DEFAULT_SRC", "'self'")
    csp_img_src: str = os.getenv("CSP_IMG_SRC", "'self' data: https:")
    csp_media_src: str = os.getenv("CSP_MEDIA_SRC", "'self' blob:")
    csp_frame_src: str = os.getenv("CSP_FRAME_SRC", "'self' https:")
    csp_style_src: str = os.getenv("CSP_STYLE_SRC", "'self' 'unsafe-inline'")

    referrer_policy: str = os.getenv("REFERRER_POLICY", "strict-origin-when-cross-origin")
    permissions_policy: str = os.getenv(
        "PERMISSIONS_POLICY",
        "camera=(), geolocation=(), microphone=(), payment=(), usb=()",
    )

    skip_paths_csv: str = os.getenv("SECURITY_SKIP_PATHS", "/healthz,/readyz,/docs,/openapi.json")


_CFG = SecurityHeadersConfig()


def _build_csp(cfg: SecurityHeadersConfig = _CFG) -> str:
    parts = [
        f"default-src {cfg.csp_default_src}",
        f"img-src {cfg.csp_img_src}",
        f"media-src {cfg.csp_media_src}",
        f"frame-src {cfg.csp_frame_src}",
        f"style-src {cfg.csp_style_src}",
        "frame-ancestors 'self'",
    ]
    return "; ".join(parts)


# ─────────────────────────────────────────────────────────────
# 🧩 Middleware
# ─────────────────────────────────────────────────────────────

class SecurityHeadersMiddleware:
    """Apply security headers idempotently at response start (pure ASGI)."""

    def __init__(self, app: ASGIApp, cfg: SecurityHeadersConfig = _CFG) -> None:
        self.app = app
        self.cfg = cfg
        self._csp = _build_csp(cfg)
        self._skip_prefixes: Tuple[str, ...] = tuple(
            p.strip() for p in (cfg.skip_paths_csv or "").split(",") if p.strip()
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        path = scope.get("path", "")
        if any(path.startswith(prefix) for prefix in self._skip_prefixes):
            return await self.app(scope, receive, send)
        frame_option = "SAMEORIGIN" if path.startswith(EMBED_PREFIX) else "DENY"

        async def send_wrapper(message: Message) -> None:
            if message.get("type") == "http.response.start":
                raw_headers: List[Tuple[bytes, bytes]] = message.setdefault("headers", [])  # type: ignore[assignment]
                _ensure(raw_headers, "X-Content-Type-Options", "nosniff")
                _ensure(raw_headers, "X-Frame-Options", frame_option)
                _ensure(raw_headers, "Referrer-Policy", self.cfg.referrer_policy)
                _ensure(raw_headers, "Permissions-Policy", self.cfg.permissions_policy)
                _ensure(raw_headers, "Content-Security-Policy", self._csp)
            await send(message)

        await self.app(scope, receive, send_wrapper)


def _has_header(raw_headers: List[Tuple[bytes, bytes]], name: str) -> bool:
    lname = name.lower().encode("latin-1")
    return any(h[0].lower() == lname for h in raw_headers)


def _ensure(raw_headers: List[Tuple[bytes, bytes]], name: str, value: str) -> None:
    if not _has_header(raw_headers, name):
        raw_headers.append((name.encode("latin-1"), value.encode("latin-1")))


# ─────────────────────────────────────────────────────────────
# 🔓 Public helpers
# ─────────────────────────────────────────────────────────────

def configure_cors(app, settings) -> None:
    """Install CORS for playback from the configured origins."""
    origins = settings.frontend_origins_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "HEAD", "OPTIONS"],
        allow_headers=["Range", "Content-Type", "X-Request-ID"],
        expose_headers=["Content-Range", "Accept-Ranges", "Content-Length", "X-Request-ID"],
        max_age=3600,
    )


def install_security(app) -> None:
    """Add HTTPS redirect (optional) and the security headers middleware."""
    if os.getenv("ENABLE_HTTPS_REDIRECT", "false").lower() == "true":
        app.add_middleware(HTTPSRedirectMiddleware)

    app.add_middleware(SecurityHeadersMiddleware, cfg=_CFG)


__all__ = [
    "NO_STORE",
    "SecurityHeadersConfig",
    "SecurityHeadersMiddleware",
    "configure_cors",
    "install_security",
]
