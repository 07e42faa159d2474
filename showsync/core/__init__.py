"""Core domain models, settings, logging configuration, and shared utilities."""

from showsync.core.changes import ChangeNotifier
from showsync.core.exceptions import (
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
from showsync.core.logging_config import JsonFormatter, configure_logging
from showsync.core.models import (
    PrimaryOutcome,
    RunState,
    ShowSearchResult,
    SyncRequest,
    SyncType,
    UpdateResult,
)
from showsync.core.settings import Settings

__all__ = [
    # Logging
    "configure_logging",
    "JsonFormatter",
    # Domain models
    "SyncType",
    "SyncRequest",
    "RunState",
    "UpdateResult",
    "PrimaryOutcome",
    "ShowSearchResult",
    # Settings
    "Settings",
    # Change notification
    "ChangeNotifier",
    # Exceptions: base
    "ShowsyncError",
    # Exceptions: config
    "ConfigError",
    # Exceptions: storage
    "StorageError",
    # Exceptions: sources
    "SourceError",
    "SourceFetchError",
    "SourceRateLimitError",
    "SourceRequestError",
    # Exceptions: orchestrator
    "OrchestratorError",
    "InvalidSyncRequestError",
]
