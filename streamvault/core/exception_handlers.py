from __future__ import annotations

"""
JSON exception handlers.

`create_app()` installs these. `AppException` subclasses render their own
`to_problem()` body; other HTTP errors and validation errors use a
problem-style shape. Unexpected errors are logged and hidden behind a neutral
500.
"""

import logging

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from streamvault.core.exceptions import AppException, ResolutionFailed
from streamvault.middleware.request_id import get_request_id

log = logging.getLogger(__name__)


def _problem(title: str, detail: str, status_code: int, request: Request) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "type": "about:blank",
            "title": title,
            "detail": detail,
            "status": status_code,
            "instance": request.url.path,
        },
        media_type="application/problem+json",
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:  # type: ignore
    if isinstance(exc, ResolutionFailed):
        log.warning(
            "Resolution failed for %s (%s); attempts=%s",
            exc.upstream_ref,
            exc.reason,
            [f"{a.index}:{a.strategy}" for a in exc.attempts],
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_problem(fallback_request_id=get_request_id(request) or None),
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:  # type: ignore
    title = exc.__class__.__name__.replace("Exception", "").strip() or "Error"
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _problem(title, detail, exc.status_code, request)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # type: ignore
    detail = "Validation error"
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "type": "about:blank",
            "title": detail,
            "detail": detail,
            "status": status.HTTP_422_UNPROCESSABLE_ENTITY,
            "instance": request.url.path,
            "errors": jsonable_encoder(exc.errors()),
        },
        media_type="application/problem+json",
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # type: ignore
    log.exception("Unhandled error on %s", request.url.path)
    return _problem(
        "Internal Server Error",
        "An unexpected error occurred.",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        request,
    )


__all__ = [
    "app_exception_handler",
    "http_exception_handler",
    "validation_exception_handler",
    "global_exception_handler",
]
