"""Showsync exception taxonomy.

Every custom exception inherits from :class:`ShowsyncError`.  Exceptions are
organised by architectural layer so callers can catch at the right granularity:

    Layer hierarchy
    ---------------
    ShowsyncError
    ├── ConfigError
    ├── StorageError
    ├── SourceError
    │   ├── SourceFetchError
    │   ├── SourceRateLimitError
    │   └── SourceRequestError
    └── OrchestratorError
        └── InvalidSyncRequestError

Only the orchestrator decides whether a failure is fatal to a sync run.  Step
collaborators raise these exceptions; the step sequencer catches them at the
step boundary and records them as recoverable step failures.

Usage:

    from showsync.core.exceptions import SourceFetchError

    raise SourceFetchError("tmdb", "Connection refused") from exc
"""

from __future__ import annotations

import logging

__all__ = [
    "ShowsyncError",
    # Config
    "ConfigError",
    # Storage
    "StorageError",
    # Sources
    "SourceError",
    "SourceFetchError",
    "SourceRateLimitError",
    "SourceRequestError",
    # Orchestrator
    "OrchestratorError",
    "InvalidSyncRequestError",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class ShowsyncError(Exception):
    """Root exception for all Showsync errors."""


# ---------------------------------------------------------------------------
# Config layer
# ---------------------------------------------------------------------------


class ConfigError(ShowsyncError):
    """Raised when the application configuration is invalid or incomplete.

    Examples:
        - ``SYNC_SERVICES`` is unset or points at a missing factory.
        - A variable contains an out-of-range value.
    """


# ---------------------------------------------------------------------------
# Storage layer
# ---------------------------------------------------------------------------


class StorageError(ShowsyncError):
    """Raised when a database or preference operation fails."""


# ---------------------------------------------------------------------------
# Remote sources
# ---------------------------------------------------------------------------


class SourceError(ShowsyncError):
    """Base class for all remote-source errors.

    Args:
        source: Short name of the remote source (e.g. ``"tmdb"``).
        message: Human-readable error description.
    """

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        super().__init__(f"[{source}] {message}")


class SourceFetchError(SourceError):
    """Raised when a source answers with an unusable HTTP status.

    Args:
        source: Short name of the source.
        message: Human-readable error description.
        status_code: The HTTP status that caused the failure, if known.
    """

    def __init__(self, source: str, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(source, message)


class SourceRateLimitError(SourceError):
    """Raised when a source answers HTTP 429.

    Args:
        source: Short name of the source.
        retry_after: Recommended back-off interval in seconds, if known.
    """

    def __init__(self, source: str, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        detail = f"retry after {retry_after}s" if retry_after is not None else "no retry hint"
        super().__init__(source, f"Rate limited, {detail}")


class SourceRequestError(SourceError):
    """Describes a failed request for tracking purposes.

    Built by :func:`~showsync.sources.tmdb.track_failed_request` either from
    an unsuccessful HTTP response (``status_code`` set) or from the exception
    that prevented a response (``cause`` set).  It is logged, not raised.

    Args:
        source: Short name of the source.
        action: What the request was trying to do (e.g. ``"get config"``).
        status_code: HTTP status of the failed response, if any.
        message: Response reason phrase or exception text.
        cause: Exception that prevented a response, if any.
    """

    def __init__(
        self,
        source: str,
        action: str,
        *,
        status_code: int | None = None,
        message: str = "",
        cause: BaseException | None = None,
    ) -> None:
        self.action = action
        self.status_code = status_code
        self.cause = cause
        if status_code is not None:
            detail = f"{action}: HTTP {status_code} {message}".rstrip()
        elif cause is not None:
            detail = f"{action}: {type(cause).__name__}: {cause}"
        else:
            detail = f"{action}: {message or 'unknown failure'}"
        super().__init__(source, detail)


# ---------------------------------------------------------------------------
# Orchestrator layer
# ---------------------------------------------------------------------------


class OrchestratorError(ShowsyncError):
    """Raised for errors originating in the scheduling or orchestration layer."""


class InvalidSyncRequestError(OrchestratorError):
    """Raised when a sync request violates its contract.

    The only case today is a ``SINGLE`` request without a usable show id.
    The step sequencer turns this into an ``INCOMPLETE`` run rather than
    letting it escape to the host process.

    Args:
        message: Human-readable description of the violation.
    """
