"""Step sequencer: one sync run from request to persisted run state.

:class:`SyncOrchestrator` runs the steps of a sync in a fixed order:

1. **Resolve + gate** — validate the request and apply the rate limit.
   A rejected run returns immediately with no side effects.
2. **Primary reconciliation** — update shows and episodes.  A ``FATAL``
   outcome is the only way a run stops early.
3. **Scope check** — single-show runs skip straight to finalisation.
4. **Configuration** — refresh the TMDB image base URL.
5. **Account sync** — cloud account *or* trakt, never both, followed by a
   data-change signal.
6. **Housekeeping** — search index rebuild when needed, next-episode
   recomputation.
7. **Backoff bookkeeping** — persist the new :class:`RunState`.
8. **Finalise** — refresh episode notifications, publish the terminal
   progress event.

Failure isolation
-----------------
Every collaborator call is bounded by ``step_timeout_s`` and wrapped so that
an exception or timeout becomes a recorded step failure.  Failures degrade
the aggregate :class:`~showsync.core.models.UpdateResult` to ``INCOMPLETE``
(configuration failures only flip the progress error flag) and never stop
the remaining steps.

Observability
-------------
Each call to :meth:`SyncOrchestrator.perform_sync` sets
:data:`~showsync.core.logging_config.SYNC_RUN_ID_CTX` to a fresh 8-char hex
id, so every log line of the run carries it.

Typical usage::

    orchestrator = SyncOrchestrator(collaborators, step_timeout_s=600)
    report = await orchestrator.perform_sync(SyncRequest(SyncType.DELTA))
    print(report.format_report())
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TypeVar

from showsync.core import events
from showsync.core.exceptions import InvalidSyncRequestError
from showsync.core.logging_config import SYNC_RUN_ID_CTX
from showsync.core.models import (
    PrimaryOutcome,
    RunState,
    ShowSearchResult,
    SyncRequest,
    SyncType,
    UpdateResult,
)
from showsync.orchestrator.backoff import next_state
from showsync.orchestrator.collaborators import PrimarySyncResult, SyncCollaborators
from showsync.orchestrator.gate import should_run
from showsync.orchestrator.progress import ProgressListener, SyncProgress, SyncStep
from showsync.orchestrator.resolver import ResolvedSync, resolve

__all__ = ["DEFAULT_STEP_TIMEOUT_S", "SyncReport", "SyncOrchestrator"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_STEP_TIMEOUT_S: float = 600.0


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


@dataclass
class SyncReport:
    """What happened during one :meth:`SyncOrchestrator.perform_sync` call.

    Attributes:
        request: The request that was performed.
        sync_type: Resolved scope (the requested one if resolution failed).
        result: Aggregate outcome; ``None`` when the run was gated or fatal.
        gated: ``True`` if the rate-limit gate rejected the run.
        fatal: ``True`` if primary reconciliation reported ``FATAL``.
        steps: Progress steps in publication order.
        failed_steps: Steps that recorded an error.
        had_errors: Progress error flag at the end of the run.
        new_run_state: Run state written by this run, if any.
        index_rebuilt: ``True`` if the search index was rebuilt.
        new_show_count: Shows reported as newly added by cloud sync.
        duration_s: Wall-clock duration.
        run_id: Log correlation id of the run.
    """

    request: SyncRequest
    sync_type: SyncType | None = None
    result: UpdateResult | None = None
    gated: bool = False
    fatal: bool = False
    steps: list[SyncStep] = field(default_factory=list)
    failed_steps: list[SyncStep] = field(default_factory=list)
    had_errors: bool = False
    new_run_state: RunState | None = None
    index_rebuilt: bool = False
    new_show_count: int = 0
    duration_s: float = 0.0
    run_id: str = "-"

    @property
    def succeeded(self) -> bool:
        """``True`` for a run that executed and ended in ``SUCCESS``."""
        return self.result is UpdateResult.SUCCESS

    def format_report(self) -> str:
        """Return a compact single-line summary for the log.

        Example::

            Sync DELTA_REGULAR: SUCCESS in 3.2s | steps: PRIMARY > CONFIG > SOCIAL | errors: none
        """
        if self.gated:
            return f"Sync {self.request.label}: skipped, synced less than 5 minutes ago"
        outcome = "FATAL" if self.fatal else (self.result.name if self.result else "UNKNOWN")
        path = " > ".join(step.name for step in self.steps) or "(no steps)"
        if self.failed_steps:
            errors = ", ".join(step.name for step in self.failed_steps)
        else:
            errors = "yes" if self.had_errors else "none"
        line = (
            f"Sync {self.request.label}: {outcome} in {self.duration_s:.1f}s"
            f" | steps: {path} | errors: {errors}"
        )
        if self.index_rebuilt:
            line += " | search index rebuilt"
        if self.new_run_state is not None:
            line += f" | failed_count={self.new_run_state.failed_count}"
        return line


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class SyncOrchestrator:
    """Runs sync requests one at a time.

    Args:
        collaborators: Step implementations and stores.
        step_timeout_s: Upper bound for each collaborator call.
        clock: Returns the current UTC time.  Injectable for tests.
        progress_listeners: Attached to the :class:`SyncProgress` of every run.
    """

    def __init__(
        self,
        collaborators: SyncCollaborators,
        *,
        step_timeout_s: float = DEFAULT_STEP_TIMEOUT_S,
        clock: Callable[[], datetime] = _utcnow,
        progress_listeners: Iterable[ProgressListener] = (),
    ) -> None:
        self._c = collaborators
        self._step_timeout_s = step_timeout_s
        self._clock = clock
        self._listeners = list(progress_listeners)

    def add_progress_listener(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def perform_sync(self, request: SyncRequest) -> SyncReport:
        """Perform one sync run.

        Never raises for step failures; only programming errors and
        cancellation propagate.

        Args:
            request: What to sync.

        Returns:
            A :class:`SyncReport` describing the run.
        """
        run_id = uuid.uuid4().hex[:8]
        token = SYNC_RUN_ID_CTX.set(run_id)
        t0 = time.monotonic()
        report = SyncReport(request=request, run_id=run_id)
        try:
            await self._run(request, report, t0)
        finally:
            SYNC_RUN_ID_CTX.reset(token)
        return report

    # ------------------------------------------------------------------
    # Run steps
    # ------------------------------------------------------------------

    async def _run(self, request: SyncRequest, report: SyncReport, t0: float) -> None:
        now = self._clock()
        progress = SyncProgress(self._listeners)
        logger.info("Syncing: %s", request.label, extra={"event": events.SYNC_START})

        # 1. Resolve and gate.
        try:
            resolved = resolve(request)
        except InvalidSyncRequestError as exc:
            logger.error("Invalid sync request: %s", exc, extra={"event": events.STEP_ERROR})
            progress.record_error()
            report.sync_type = request.sync_type
            report.result = UpdateResult.INCOMPLETE
            await self._finalize(progress, report, t0)
            return
        report.sync_type = resolved.sync_type

        state = await self._load_run_state()
        if not should_run(now, state.last_update, request):
            report.gated = True
            report.duration_s = time.monotonic() - t0
            logger.debug(
                "Syncing: ABORT_DID_JUST_SYNC",
                extra={"event": events.SYNC_ABORT_DID_JUST_SYNC},
            )
            return

        # 2. Primary reconciliation.
        progress.publish(SyncStep.PRIMARY)
        primary = await self._sync_primary(resolved, now)
        if primary.outcome is not PrimaryOutcome.SUCCESS:
            progress.record_error()
        if primary.outcome is PrimaryOutcome.FATAL:
            logger.error(
                "Primary sync reported invalid show data; stopping run.",
                extra={"event": events.SYNC_FATAL},
            )
            report.fatal = True
            await self._finalize(progress, report, t0)
            return
        result = primary.outcome.as_update_result()

        # 3. Single-show runs end here.
        if not resolved.is_multi_item:
            report.result = result
            await self._finalize(progress, report, t0)
            return

        # 4. Configuration.
        progress.publish(SyncStep.CONFIG)
        await self._refresh_configuration(progress)

        # 5. Account sync.
        new_shows: dict[int, ShowSearchResult] = {}
        existing_ids = await self._load_existing_ids()
        if existing_ids is None:
            logger.warning("Existing show ids unavailable; skipping account sync.")
            result = UpdateResult.INCOMPLETE
        else:
            account_result, new_shows = await self._sync_account(existing_ids, now, progress)
            if account_result is not UpdateResult.SUCCESS:
                result = UpdateResult.INCOMPLETE
            self._notify_changes()
        report.new_show_count = len(new_shows)

        # 6. Housekeeping.
        if primary.has_updated_shows and not new_shows:
            report.index_rebuilt = await self._rebuild_index()
        await self._attempt("next episode update", self._c.next_episodes.trigger)

        # 7. Backoff bookkeeping.
        new_state = next_state(state, now, result)
        saved, _ = await self._attempt(
            "run state save", lambda: self._c.run_state_store.save(new_state)
        )
        if saved:
            report.new_run_state = new_state

        report.result = result
        await self._finalize(progress, report, t0)

    async def _sync_primary(self, resolved: ResolvedSync, now: datetime) -> PrimarySyncResult:
        ok, primary = await self._attempt(
            "primary sync",
            lambda: self._c.primary.sync(resolved.sync_type, resolved.show_id, now),
        )
        if not ok:
            return PrimarySyncResult(PrimaryOutcome.INCOMPLETE, has_updated_shows=False)
        if not isinstance(primary, PrimarySyncResult):
            logger.error(
                "Primary sync returned %r, treating it as fatal.",
                primary,
                extra={"event": events.STEP_ERROR, "step": "primary sync"},
            )
            return PrimarySyncResult(PrimaryOutcome.FATAL)
        logger.debug("Syncing: primary...DONE (%s)", primary.outcome.name)
        return primary

    async def _refresh_configuration(self, progress: SyncProgress) -> None:
        ok, config = await self._attempt("configuration fetch", self._c.config.fetch)
        if not ok or not config.success:
            progress.record_error()
            return
        if config.image_base_url:
            await self._attempt(
                "image base url save",
                lambda: self._c.image_url_store.set_image_base_url(config.image_base_url),
            )
        logger.debug("Syncing: configuration...DONE")

    async def _sync_account(
        self,
        existing_ids: set[int],
        now: datetime,
        progress: SyncProgress,
    ) -> tuple[UpdateResult, dict[int, ShowSearchResult]]:
        new_shows: dict[int, ShowSearchResult] = {}
        if self._c.cloud_sync_enabled():
            progress.publish(SyncStep.CLOUD)
            ok, outcome = await self._attempt(
                "cloud account sync", lambda: self._c.cloud.sync(existing_ids)
            )
            if ok:
                account_result = outcome.result
                new_shows = dict(outcome.new_shows)
            else:
                account_result = UpdateResult.INCOMPLETE
            logger.debug("Syncing: cloud...DONE (%s)", account_result.name)
        else:
            progress.publish(SyncStep.SOCIAL)
            ok, outcome = await self._attempt(
                "trakt sync", lambda: self._c.social.sync(existing_ids, now)
            )
            account_result = outcome if ok else UpdateResult.INCOMPLETE
            logger.debug("Syncing: trakt...DONE (%s)", account_result.name)

        if account_result is not UpdateResult.SUCCESS:
            progress.record_error()
        return account_result, new_shows

    async def _finalize(self, progress: SyncProgress, report: SyncReport, t0: float) -> None:
        await self._attempt("notification refresh", self._c.notifications.trigger)
        progress.publish_finished()

        report.steps = progress.steps
        report.failed_steps = progress.failed_steps
        report.had_errors = progress.had_errors
        report.duration_s = time.monotonic() - t0
        logger.info(
            "%s",
            report.format_report(),
            extra={
                "event": events.SYNC_COMPLETE,
                "result": report.result.value if report.result else None,
                "fatal": report.fatal,
            },
        )

    # ------------------------------------------------------------------
    # Guarded collaborator calls
    # ------------------------------------------------------------------

    async def _load_run_state(self) -> RunState:
        ok, state = await self._attempt("run state load", self._c.run_state_store.load)
        if not ok:
            logger.warning("Run state unreadable; treating this as the first sync.")
            return RunState.initial()
        return state

    async def _load_existing_ids(self) -> set[int] | None:
        ok, ids = await self._attempt("existing show id load", self._c.existing_ids.get_show_ids)
        return ids if ok else None

    async def _rebuild_index(self) -> bool:
        ok, _ = await self._attempt("search index rebuild", self._c.index.rebuild_search_index)
        return ok

    def _notify_changes(self) -> None:
        try:
            self._c.changes.notify_items_changed()
        except Exception:  # noqa: BLE001
            logger.warning("Data change notification failed.", exc_info=True)

    async def _attempt(
        self,
        label: str,
        call: Callable[[], Awaitable[T]],
    ) -> tuple[bool, Any]:
        """Run one collaborator call with the step timeout.

        Returns:
            ``(True, value)`` on success, ``(False, None)`` if the call raised
            or timed out.  Failures are logged here.
        """
        try:
            return True, await asyncio.wait_for(call(), timeout=self._step_timeout_s)
        except TimeoutError:
            logger.error(
                "%s timed out after %.0f s.",
                label.capitalize(),
                self._step_timeout_s,
                extra={"event": events.STEP_TIMEOUT, "step": label},
            )
        except Exception:  # noqa: BLE001
            logger.error(
                "%s failed.",
                label.capitalize(),
                exc_info=True,
                extra={"event": events.STEP_ERROR, "step": label},
            )
        return False, None
