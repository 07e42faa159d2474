"""Smoke tests — verify the test harness and package foundation.

These tests assert nothing about sync behaviour.  They confirm that:

1. pytest-asyncio's ``asyncio_mode = "auto"`` runs undecorated async tests.
2. Every public module imports without errors.
3. The exception taxonomy is rooted at ``ShowsyncError``.

If any of these fail no other test in the suite can be trusted.
"""

from __future__ import annotations

import asyncio
import importlib

import pytest

import showsync
from showsync.core import (
    ConfigError,
    InvalidSyncRequestError,
    OrchestratorError,
    ShowsyncError,
    SourceError,
    SourceFetchError,
    SourceRateLimitError,
    SourceRequestError,
    StorageError,
)


@pytest.mark.parametrize(
    "module",
    [
        "showsync.__main__",
        "showsync.core",
        "showsync.notifiers.notices",
        "showsync.orchestrator",
        "showsync.orchestrator.runner",
        "showsync.sources.tmdb",
        "showsync.sources.connectivity",
        "showsync.storage.repository",
    ],
)
def test_module_imports(module: str) -> None:
    importlib.import_module(module)


def test_version() -> None:
    assert showsync.__version__ == "0.1.0"


def test_exception_hierarchy() -> None:
    for exc_class in (
        ConfigError,
        StorageError,
        SourceError,
        SourceFetchError,
        SourceRateLimitError,
        SourceRequestError,
        OrchestratorError,
        InvalidSyncRequestError,
    ):
        assert issubclass(exc_class, ShowsyncError), exc_class.__name__
    assert issubclass(SourceRateLimitError, SourceError)
    assert issubclass(InvalidSyncRequestError, OrchestratorError)


async def test_async_test_runs() -> None:
    await asyncio.sleep(0)
