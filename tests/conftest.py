"""Shared pytest fixtures and configuration for the Showsync test suite.

Fixtures here are shared by the unit and integration suites: logging set-up,
an isolated environment, and throwaway SQLite databases.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from pathlib import Path

import aiosqlite
import pytest
from pydantic_settings import SettingsConfigDict

from showsync.core import configure_logging
from showsync.core.settings import Settings
from showsync.storage.database import open_db

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _configure_test_logging() -> None:
    """Reset logging to DEBUG text output before each test.

    ``force=True`` replaces whatever handler an earlier test or pytest's own
    ``log_cli`` installed.
    """
    configure_logging(level="DEBUG", fmt="text", force=True)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove Showsync env vars and disable ``.env`` loading for one test.

    Keeps a developer's shell or local ``.env`` (API keys, database path)
    from leaking into settings-dependent tests.
    """
    prefixes = (
        "TMDB_",
        "ACCOUNT_",
        "AUTO_SYNC",
        "CLOUD_",
        "SYNC_",
        "STEP_",
        "SHOW_",
        "CONNECTIVITY_",
        "DATABASE_",
        "POLL_",
        "LOG_LEVEL",
        "LOG_FORMAT",
        "SHOWSYNC_",
    )
    for key in list(os.environ):
        if any(key.startswith(prefix) for prefix in prefixes):
            monkeypatch.delenv(key, raising=False)

    monkeypatch.setattr(
        Settings,
        "model_config",
        SettingsConfigDict(
            env_file=None,
            env_file_encoding="utf-8",
            extra="ignore",
        ),
    )


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "showsync.db"


@pytest.fixture()
async def db(db_path: Path) -> AsyncIterator[aiosqlite.Connection]:
    """A fresh database with the schema applied."""
    conn = await open_db(db_path)
    try:
        yield conn
    finally:
        await conn.close()


# ---------------------------------------------------------------------------
# Misc helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def logger() -> logging.Logger:
    """Return a logger attributed to test code rather than production code."""
    return logging.getLogger("tests")
