"""Structured log event name constants for the sync orchestrator.

Every key transition in the orchestrator emits a log record with an
``event`` field (passed via ``extra={"event": events.X}``).  Named constants
keep the event vocabulary greppable and in one place; in ``LOG_FORMAT=json``
mode the value surfaces as ``extra.event``.

Usage example::

    import logging
    from showsync.core import events

    logger = logging.getLogger(__name__)

    logger.info("Sync started", extra={"event": events.SYNC_START})
"""

from __future__ import annotations

__all__ = [
    # Run lifecycle
    "SYNC_START",
    "SYNC_ABORT_DID_JUST_SYNC",
    "SYNC_FATAL",
    "SYNC_COMPLETE",
    # Steps
    "STEP_START",
    "STEP_ERROR",
    "STEP_TIMEOUT",
    "BACKOFF_UPDATED",
    "INDEX_REBUILT",
    # Requests
    "SYNC_REQUEST_ENQUEUED",
    "SYNC_REQUEST_DROPPED",
    "SYNC_REQUEST_COALESCED",
    # Sources
    "SOURCE_REQUEST_FAILED",
]

# ---------------------------------------------------------------------------
# Run lifecycle
# ---------------------------------------------------------------------------

#: Emitted once when a run starts, before the gate is consulted.
SYNC_START: str = "SYNC_START"

#: The gate rejected a multi-item run because the last one was too recent.
SYNC_ABORT_DID_JUST_SYNC: str = "SYNC_ABORT_DID_JUST_SYNC"

#: Primary reconciliation reported a fatal outcome; remaining steps skipped.
SYNC_FATAL: str = "SYNC_FATAL"

#: Emitted once when a run finishes (successfully or not).
SYNC_COMPLETE: str = "SYNC_COMPLETE"

# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

#: A progress step was published.
STEP_START: str = "STEP_START"

#: A step failed; the run continues.
STEP_ERROR: str = "STEP_ERROR"

#: A collaborator call exceeded the per-step timeout.
STEP_TIMEOUT: str = "STEP_TIMEOUT"

#: The persisted run state (last update, failure counter) was rewritten.
BACKOFF_UPDATED: str = "BACKOFF_UPDATED"

#: The full-text search index was rebuilt.
INDEX_REBUILT: str = "INDEX_REBUILT"

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

#: A sync request was added to the run queue.
SYNC_REQUEST_ENQUEUED: str = "SYNC_REQUEST_ENQUEUED"

#: A sync request was dropped (no account, offline, auto-sync off, not due).
SYNC_REQUEST_DROPPED: str = "SYNC_REQUEST_DROPPED"

#: An identical request was already pending; the new one was merged into it.
SYNC_REQUEST_COALESCED: str = "SYNC_REQUEST_COALESCED"

# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

#: A remote request failed and was tracked.
SOURCE_REQUEST_FAILED: str = "SOURCE_REQUEST_FAILED"
