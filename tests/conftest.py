# tests/conftest.py
"""
Global test bootstrap
- Keeps logging on the console only (no log files during tests)
- Pulls in the upstream fake and app fixtures
"""

from __future__ import annotations

import os

# ──────────────────────────────────────────────────────────────────────────────
# 🌱 Env set BEFORE importing the app so import-time config picks it up
# ──────────────────────────────────────────────────────────────────────────────
os.environ.setdefault("LOG_TO_FILE", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("ENABLE_HTTPS_REDIRECT", "false")

import pytest  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


# ──────────────────────────────────────────────────────────────────────────────
# 📦 Shared fixtures (upstream fake, settings, catalog, app/client)
# ──────────────────────────────────────────────────────────────────────────────
from tests.fixtures.upstream import *  # noqa: F401,F403,E402
from tests.fixtures.app import *       # noqa: F401,F403,E402
