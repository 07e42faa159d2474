"""Sync gating, step sequencing, backoff and scheduling.

Public API
----------
* :class:`~showsync.orchestrator.sequencer.SyncOrchestrator` — performs one
  sync run and returns a :class:`~showsync.orchestrator.sequencer.SyncReport`.
* :class:`~showsync.orchestrator.scheduler.SyncScheduler` — admits sync
  requests and runs them one at a time.
* :func:`~showsync.orchestrator.scheduler.run_continuous` — worker plus
  periodic due check until cancelled.
* :func:`~showsync.orchestrator.runner.run_once` /
  :func:`~showsync.orchestrator.runner.run_service` — wired entry points used
  by the CLI.
* :func:`~showsync.orchestrator.backoff.next_state`,
  :func:`~showsync.orchestrator.gate.should_run`,
  :func:`~showsync.orchestrator.resolver.resolve` — pure policy helpers.
"""

from showsync.orchestrator.backoff import next_state
from showsync.orchestrator.collaborators import (
    AccountSyncResult,
    ExternalSyncServices,
    PrimarySyncResult,
    SyncCollaborators,
    load_sync_services,
)
from showsync.orchestrator.gate import SYNC_INTERVAL_MINIMUM, is_time_for_sync, should_run
from showsync.orchestrator.progress import ProgressEvent, SyncProgress, SyncStep
from showsync.orchestrator.queue import SyncQueue
from showsync.orchestrator.resolver import ResolvedSync, is_multi_item, resolve
from showsync.orchestrator.runner import open_runtime, run_once, run_service
from showsync.orchestrator.scheduler import SyncScheduler, next_poll_interval, run_continuous
from showsync.orchestrator.sequencer import SyncOrchestrator, SyncReport

__all__ = [
    # Policies
    "next_state",
    "SYNC_INTERVAL_MINIMUM",
    "is_time_for_sync",
    "should_run",
    "ResolvedSync",
    "is_multi_item",
    "resolve",
    # Progress
    "ProgressEvent",
    "SyncProgress",
    "SyncStep",
    # Collaborators
    "AccountSyncResult",
    "ExternalSyncServices",
    "PrimarySyncResult",
    "SyncCollaborators",
    "load_sync_services",
    # Sequencer
    "SyncOrchestrator",
    "SyncReport",
    # Scheduling
    "SyncQueue",
    "SyncScheduler",
    "next_poll_interval",
    "run_continuous",
    # Entry points
    "open_runtime",
    "run_once",
    "run_service",
]
