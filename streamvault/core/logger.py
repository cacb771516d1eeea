# streamvault/core/logger.py
from __future__ import annotations

"""
Loguru setup, applied once when this module is imported (see `streamvault.main`).

Everything the app logs through the stdlib (uvicorn, Starlette, FastAPI and our
own `logging.getLogger(__name__)` loggers) is forwarded into Loguru, so one set of
sinks carries every line. Each line is tagged with the `request_id` bound by
`RequestIDMiddleware`, or `-` outside a request.

Env: LOG_LEVEL (INFO), LOG_JSON (0), APP_DEBUG (0), LOG_TO_FILE (0),
LOG_DIR (logs), LOG_FILE (streamvault.log), LOG_ROTATION (10 MB).
"""

import inspect
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

INTERCEPTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi", "starlette", "streamvault")

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> <level>{level: <8}</level> "
    "<cyan>{name}</cyan>:{line} [{extra[request_id]}] <level>{message}</level>\n{exception}"
)


def _flag(name: str) -> bool:
    return os.getenv(name, "0").strip().lower() in {"1", "true", "yes", "on"}


def _json_format(record) -> str:
    # Loguru treats the returned string as a template, so the JSON goes in via `extra`.
    record["extra"]["_json"] = json.dumps(
        {
            "time": record["time"].isoformat(),
            "level": record["level"].name,
            "logger": record["name"],
            "line": record["line"],
            "request_id": record["extra"].get("request_id", "-"),
            "message": record["message"],
        },
        ensure_ascii=False,
        default=str,
    )
    return "{extra[_json]}\n{exception}"


class InterceptHandler(logging.Handler):
    """Forward a stdlib `LogRecord` to Loguru, attributed to the code that logged it."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip the frames that belong to the logging package itself.
        frame, depth = inspect.currentframe(), 0
        while frame is not None and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging() -> str:
    """Rebuild the Loguru sinks from the environment and return the active level."""
    load_dotenv()
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    fmt = _json_format if _flag("LOG_JSON") else TEXT_FORMAT
    debug = _flag("APP_DEBUG")

    logger.remove()
    logger.configure(extra={"request_id": "-"})
    logger.add(sys.stdout, level=level, format=fmt, enqueue=True, backtrace=debug, diagnose=debug)

    if _flag("LOG_TO_FILE"):
        log_dir = Path(os.getenv("LOG_DIR", "logs"))
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / os.getenv("LOG_FILE", "streamvault.log"),
            level=level,
            format=fmt,
            rotation=os.getenv("LOG_ROTATION", "10 MB"),
            enqueue=True,
        )

    handler = InterceptHandler()
    for name in INTERCEPTED_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [handler]
        std_logger.setLevel(level)
        std_logger.propagate = False
    return level


configure_logging()
