"""Scheduling facade and the long-running sync service loop.

:class:`SyncScheduler` is the only way the rest of the application asks for
a sync.  It decides whether a request is admitted (account present, network
reachable, auto-sync enabled, rate limit, staleness) and places admitted
requests on the :class:`~showsync.orchestrator.queue.SyncQueue`.  A single
worker (:meth:`SyncScheduler.run_worker`) consumes the queue, so at most one
run executes at a time.

Request paths
~~~~~~~~~~~~~
* :meth:`SyncScheduler.request_if_due` — periodic delta sync once the rate
  limit (including backoff) allows it.
* :meth:`SyncScheduler.request_single_if_stale` — update one show if its
  data is older than the update threshold.
* :meth:`SyncScheduler.request_immediate` and the ``request_*_immediate``
  wrappers — user-initiated runs that bypass the rate limit and jump the
  queue.

Continuous mode
~~~~~~~~~~~~~~~
:func:`run_continuous` runs the worker next to a loop that calls
:meth:`SyncScheduler.request_if_due` on a jittered interval, writes a
heartbeat file after every tick, and shuts down cleanly on ``SIGTERM``.

Typical usage::

    scheduler = SyncScheduler(queue, orchestrator, account="showsync", ...)
    await scheduler.request_delta_immediate(notify_user=True)
    await scheduler.run_pending()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import random
import signal
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import NoReturn

from showsync.core import events
from showsync.core.exceptions import StorageError
from showsync.core.models import SyncRequest, SyncType
from showsync.core.settings import Settings
from showsync.notifiers.notices import Notice
from showsync.orchestrator.collaborators import (
    ConnectivityProbe,
    NoticeSink,
    RunStateRepository,
    StaleCheck,
)
from showsync.orchestrator.gate import is_time_for_sync
from showsync.orchestrator.queue import SyncQueue
from showsync.orchestrator.sequencer import SyncOrchestrator, SyncReport
from showsync.storage.preferences import PreferenceStore

__all__ = [
    "HEARTBEAT_PATH",
    "SyncScheduler",
    "next_poll_interval",
    "run_continuous",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Health-check heartbeat
# ---------------------------------------------------------------------------

#: Path to the heartbeat file written after each due-check tick.  Override
#: via ``SHOWSYNC_HEARTBEAT_PATH`` if ``/tmp`` is not writable.
HEARTBEAT_PATH: str = os.environ.get("SHOWSYNC_HEARTBEAT_PATH", "/tmp/showsync_heartbeat")


def _write_heartbeat(path: str = HEARTBEAT_PATH) -> None:
    """Write the current epoch timestamp to the heartbeat file.

    Errors are logged at WARNING level and never propagated.
    """
    try:
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(str(time.time()))
    except OSError:
        logger.warning("Failed to write heartbeat file '%s'.", path, exc_info=True)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def next_poll_interval(settings: Settings) -> float:
    """Return a randomised sleep interval between due checks.

    Draws uniformly from ``[poll_interval_min, poll_interval_max]``.
    """
    return random.uniform(settings.poll_interval_min, settings.poll_interval_max)


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------


class SyncScheduler:
    """Admits sync requests and runs them one at a time.

    Args:
        queue: Pending requests shared with the worker.
        orchestrator: Performs each run.
        account: Sync account name; ``None`` or empty disables every request.
        connectivity: Network reachability probe.
        stale_check: Decides whether a single show needs an update.
        notices: Receives user-facing notices.
        preferences: Stores the auto-sync flag.
        run_state_store: Source of the last update time for the due check.
        auto_sync_default: Auto-sync value until the user changes it.
        clock: Returns the current UTC time.  Injectable for tests.
    """

    def __init__(
        self,
        queue: SyncQueue,
        orchestrator: SyncOrchestrator,
        *,
        account: str | None,
        connectivity: ConnectivityProbe,
        stale_check: StaleCheck,
        notices: NoticeSink,
        preferences: PreferenceStore,
        run_state_store: RunStateRepository,
        auto_sync_default: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._queue = queue
        self._orchestrator = orchestrator
        self._account = account or None
        self._connectivity = connectivity
        self._stale_check = stale_check
        self._notices = notices
        self._preferences = preferences
        self._run_state_store = run_state_store
        self._auto_sync_default = auto_sync_default
        self._clock = clock

    @property
    def queue(self) -> SyncQueue:
        return self._queue

    # ------------------------------------------------------------------
    # Request paths
    # ------------------------------------------------------------------

    async def request_if_due(self) -> bool:
        """Request a delta sync if the last one is old enough.

        Returns:
            ``True`` if a request was enqueued.
        """
        if self._account is None:
            return self._drop(SyncRequest(SyncType.DELTA), "no sync account")
        if self.is_run_active_or_pending():
            return self._drop(SyncRequest(SyncType.DELTA), "a sync is active or pending")

        try:
            state = await self._run_state_store.load()
        except StorageError:
            logger.warning("Run state unreadable.", exc_info=True)
            return self._drop(SyncRequest(SyncType.DELTA), "storage unavailable")
        if not is_time_for_sync(self._clock(), state.last_update):
            return self._drop(SyncRequest(SyncType.DELTA), "not due yet")
        return await self._request_if_connected(SyncRequest(SyncType.DELTA))

    async def request_single_if_stale(self, show_id: int) -> bool:
        """Request an update of *show_id* if its data is stale.

        Returns:
            ``True`` if a request was enqueued.
        """
        request = SyncRequest(SyncType.SINGLE, show_id=show_id)
        try:
            stale = await self._stale_check.is_update_needed(show_id)
        except StorageError:
            logger.warning("Stale check for show %d failed.", show_id, exc_info=True)
            return self._drop(request, "storage unavailable")
        if not stale:
            return self._drop(request, "show is up to date")
        return await self._request_if_connected(request)

    async def request_if_connected(self, sync_type: SyncType, show_id: int | None = None) -> bool:
        """Request a regular run if online and auto-sync is enabled.

        Returns:
            ``True`` if a request was enqueued.
        """
        return await self._request_if_connected(SyncRequest(sync_type, show_id=show_id))

    async def request_immediate(
        self,
        sync_type: SyncType,
        show_id: int | None = None,
        *,
        notify_user: bool = False,
    ) -> bool:
        """Request a run that bypasses the rate limit and jumps the queue.

        Args:
            sync_type: Scope of the run.
            show_id: Target show for ``SINGLE``.
            notify_user: Show a notice when offline (and abort) or when the
                run was scheduled.

        Returns:
            ``True`` if a request was enqueued.
        """
        request = SyncRequest(sync_type, show_id=show_id, immediate=True, expedited=True)
        if notify_user:
            if not await self._connectivity.is_connected():
                self._notices.show(Notice.NO_CONNECTION)
                return self._drop(request, "offline")
            self._notices.show(Notice.SCHEDULED)
        return self._enqueue(request)

    async def request_delta_immediate(self, *, notify_user: bool = False) -> bool:
        return await self.request_immediate(SyncType.DELTA, notify_user=notify_user)

    async def request_full_immediate(self, *, notify_user: bool = False) -> bool:
        return await self.request_immediate(SyncType.FULL, notify_user=notify_user)

    async def request_single_immediate(self, show_id: int, *, notify_user: bool = False) -> bool:
        return await self.request_immediate(SyncType.SINGLE, show_id, notify_user=notify_user)

    # ------------------------------------------------------------------
    # Status and settings
    # ------------------------------------------------------------------

    def is_run_active_or_pending(self, display_warning: bool = False) -> bool:
        """``True`` if a run is in progress or waiting in the queue.

        Args:
            display_warning: Show :attr:`Notice.IN_PROGRESS` when ``True``
                is returned.
        """
        busy = self._queue.is_active or self._queue.has_pending
        if busy and display_warning:
            self._notices.show(Notice.IN_PROGRESS)
        return busy

    async def is_auto_sync_enabled(self) -> bool:
        """Whether periodic and stale-show syncs may run.  ``False`` without an account."""
        if self._account is None:
            return False
        return await self._preferences.get_sync_automatically(self._auto_sync_default)

    async def set_auto_sync_enabled(self, enabled: bool) -> bool:
        """Persist the auto-sync flag.

        Returns:
            ``False`` if there is no account and nothing was stored.
        """
        if self._account is None:
            logger.debug("No sync account; auto-sync setting not stored.")
            return False
        await self._preferences.set_sync_automatically(enabled)
        logger.info("Auto-sync %s.", "enabled" if enabled else "disabled")
        return True

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    async def run_worker(self) -> NoReturn:
        """Perform queued requests forever, one at a time.

        A failing run is logged and the worker moves on to the next request.
        """
        logger.info("Sync worker started.")
        while True:
            request = await self._queue.get()
            await self._perform(request)

    async def run_pending(self) -> list[SyncReport]:
        """Perform every queued request, then return their reports."""
        reports: list[SyncReport] = []
        while (request := self._queue.get_nowait()) is not None:
            report = await self._perform(request)
            if report is not None:
                reports.append(report)
        return reports

    async def _perform(self, request: SyncRequest) -> SyncReport | None:
        self._queue.mark_active(request)
        try:
            return await self._orchestrator.perform_sync(request)
        except Exception:
            logger.exception("Unhandled exception while performing %s.", request)
            return None
        finally:
            self._queue.mark_done()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _request_if_connected(self, request: SyncRequest) -> bool:
        if self._account is None:
            return self._drop(request, "no sync account")
        if not await self._connectivity.is_connected():
            return self._drop(request, "offline")
        try:
            enabled = await self.is_auto_sync_enabled()
        except StorageError:
            logger.warning("Auto-sync setting unreadable.", exc_info=True)
            return self._drop(request, "storage unavailable")
        if not enabled:
            return self._drop(request, "auto-sync disabled")
        return self._enqueue(request)

    def _enqueue(self, request: SyncRequest) -> bool:
        if self._account is None:
            return self._drop(request, "no sync account")
        self._queue.put(request)
        return True

    @staticmethod
    def _drop(request: SyncRequest, reason: str) -> bool:
        logger.debug(
            "Not requesting %s: %s.",
            request,
            reason,
            extra={"event": events.SYNC_REQUEST_DROPPED, "reason": reason},
        )
        return False


# ---------------------------------------------------------------------------
# Continuous mode
# ---------------------------------------------------------------------------


async def _due_check_loop(scheduler: SyncScheduler, settings: Settings) -> NoReturn:
    """Call :meth:`SyncScheduler.request_if_due` on a jittered interval."""
    logger.info(
        "Due-check loop started, interval range: %d–%d s.",
        settings.poll_interval_min,
        settings.poll_interval_max,
    )
    while True:
        try:
            await scheduler.request_if_due()
        except Exception:
            logger.exception("Unhandled exception in due check, will retry after interval.")

        _write_heartbeat()

        interval = next_poll_interval(settings)
        logger.debug("Next due check in %.0f s.", interval)
        await asyncio.sleep(interval)


async def run_continuous(scheduler: SyncScheduler, settings: Settings) -> NoReturn:
    """Run the sync worker and the periodic due check until cancelled.

    A ``SIGTERM`` handler cancels both tasks; the run in progress stops at
    its next ``await`` and the caller's resource teardown proceeds.  The
    handler is removed in a ``finally`` block.

    Raises:
        asyncio.CancelledError: On shutdown (SIGTERM or Ctrl+C).
    """
    logger.info(
        "Showsync entering continuous mode, due-check interval: %d–%d s.",
        settings.poll_interval_min,
        settings.poll_interval_max,
    )

    worker_task = asyncio.create_task(scheduler.run_worker(), name="showsync-worker")
    due_task = asyncio.create_task(
        _due_check_loop(scheduler, settings), name="showsync-due-check"
    )

    loop = asyncio.get_running_loop()
    _shutdown_signal: list[str] = []

    def _request_graceful_shutdown(signame: str) -> None:
        if not _shutdown_signal:
            _shutdown_signal.append(signame)
            logger.info(
                "Received %s, graceful shutdown requested; cancelling active tasks.",
                signame,
            )
        worker_task.cancel()
        due_task.cancel()

    loop.add_signal_handler(signal.SIGTERM, lambda: _request_graceful_shutdown("SIGTERM"))

    try:
        await asyncio.gather(worker_task, due_task)
    except (asyncio.CancelledError, KeyboardInterrupt):
        if _shutdown_signal:
            logger.info("Graceful shutdown complete (signal: %s).", _shutdown_signal[0])
        else:
            logger.info("Continuous loop cancelled, stopping tasks.")
        worker_task.cancel()
        due_task.cancel()
        await asyncio.gather(worker_task, due_task, return_exceptions=True)
        raise
    finally:
        with contextlib.suppress(Exception):
            loop.remove_signal_handler(signal.SIGTERM)

    raise RuntimeError("run_continuous exited unexpectedly")
