# streamvault/core/exceptions.py
from __future__ import annotations

"""
StreamVault — Application Exceptions
====================================
A small, consistent layer on top of FastAPI/Starlette's `HTTPException` that
lets us attach structured metadata and render one JSON error shape from
`streamvault.core.exception_handlers`.

Taxonomy
--------
- `CatalogMiss`          → 404, unknown client-facing content id.
- `ResolutionFailed`     → 500, every extraction strategy exhausted or the
                           upstream page could not be fetched. The message is
                           generic; `reason`/`attempts` are for logs only.
- `UpstreamFetchFailed`  → upstream media fetch returned an error status; the
                           status is propagated as-is.
- `UpstreamUnavailable`  → transport failure or deadline while opening the
                           media stream (502/504).

Client disconnects are not errors and have no exception type here.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from fastapi import HTTPException, status

__all__ = [
    "AppException",
    "CatalogMiss",
    "ExtractionAttempt",
    "ResolutionFailed",
    "UpstreamFetchFailed",
    "UpstreamUnavailable",
]


# ──────────────────────────────────────────────────────────────
# 📦 Core: AppException
# ──────────────────────────────────────────────────────────────
class AppException(HTTPException):
    """Base application-level exception with optional metadata.

    Attributes
    -----------
    status_code : int
        HTTP status code returned to the client.
    message : str
        Human-readable error message (serialized as `detail` as well).
    code : int
        Internal/typed error code. Defaults to `status_code`.
    request_id : str | None
        Optional request correlation id.
    details : Any
        Machine-readable details safe to expose to clients.
    """

    def __init__(
        self,
        *,
        status_code: int,
        message: str,
        code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code: int = int(code or status_code)
        self.message: str = message
        self.request_id: Optional[str] = request_id
        self.details: Optional[Any] = details

    def to_problem(self, *, fallback_request_id: Optional[str] = None) -> Dict[str, Any]:
        """Return the canonical JSON error body."""
        body: Dict[str, Any] = {
            "error": True,
            "message": self.message,
            "code": self.code,
            "request_id": self.request_id or fallback_request_id or "N/A",
        }
        if self.details is not None:
            body["details"] = self.details
        return body


# ──────────────────────────────────────────────────────────────
# 🎬 Catalog
# ──────────────────────────────────────────────────────────────
class CatalogMiss(AppException):
    """Raised when a client-facing content id is not in the catalog."""

    def __init__(self, content_id: Optional[str] = None) -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, message="Video not found")
        self.content_id = content_id


# ──────────────────────────────────────────────────────────────
# 🔎 Resolution
# ──────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class ExtractionAttempt:
    """One step of the strategy chain, kept for diagnostics only."""

    index: int
    strategy: str
    matched: bool


class ResolutionFailed(AppException):
    """No strategy produced a media URL for an upstream reference."""

    def __init__(
        self,
        upstream_ref: str,
        *,
        reason: str = "no extraction strategy matched",
        attempts: Sequence[ExtractionAttempt] = (),
    ) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            message="Could not retrieve video",
        )
        self.upstream_ref = upstream_ref
        self.reason = reason
        self.attempts: List[ExtractionAttempt] = list(attempts)

    def __str__(self) -> str:
        return f"resolution failed for {self.upstream_ref!r}: {self.reason}"


# ──────────────────────────────────────────────────────────────
# 🌊 Upstream media
# ──────────────────────────────────────────────────────────────
class UpstreamFetchFailed(AppException):
    """Upstream media host answered with a non-success status."""

    def __init__(self, upstream_status: int) -> None:
        super().__init__(status_code=upstream_status, message="Stream failed")
        self.upstream_status = upstream_status


class UpstreamUnavailable(AppException):
    """Upstream media host could not be reached in time."""

    def __init__(self, *, timed_out: bool = False) -> None:
        super().__init__(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT if timed_out else status.HTTP_502_BAD_GATEWAY,
            message="Stream failed",
        )
        self.timed_out = timed_out
