"""Per-run progress tracking.

A :class:`SyncProgress` is created at the start of every sync run and
receives three kinds of calls from the step sequencer:

* :meth:`SyncProgress.publish` when a step starts;
* :meth:`SyncProgress.record_error` when the current step failed;
* :meth:`SyncProgress.publish_finished` exactly once at the end.

Each call is forwarded to the registered listeners as a
:class:`ProgressEvent`.  Listeners are how a UI or status endpoint follows a
run; a failing listener is logged and ignored.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum

from showsync.core import events

__all__ = ["SyncStep", "ProgressEvent", "ProgressListener", "SyncProgress"]

logger = logging.getLogger(__name__)


class SyncStep(StrEnum):
    """Steps of a run, in execution order."""

    PRIMARY = "primary"
    CONFIG = "config"
    CLOUD = "cloud"
    SOCIAL = "social"


@dataclass(frozen=True)
class ProgressEvent:
    """Snapshot delivered to listeners.

    Attributes:
        step: The step just published, or ``None`` for the terminal event.
        finished: ``True`` only for the terminal event.
        had_errors: Error flag at the time of the event.
        failed_step: For the terminal event, the last step that recorded an
            error, if any.
    """

    step: SyncStep | None
    finished: bool = False
    had_errors: bool = False
    failed_step: SyncStep | None = None


ProgressListener = Callable[[ProgressEvent], None]


class SyncProgress:
    """Ordered step log and error flag for one run.  Single writer."""

    def __init__(self, listeners: Iterable[ProgressListener] = ()) -> None:
        self._listeners: list[ProgressListener] = list(listeners)
        self._steps: list[SyncStep] = []
        self._failed_steps: list[SyncStep] = []
        self._had_errors = False
        self._finished = False

    # ------------------------------------------------------------------
    # Writer API
    # ------------------------------------------------------------------

    def add_listener(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def publish(self, step: SyncStep) -> None:
        """Mark *step* as the current step and notify listeners."""
        self._steps.append(step)
        logger.debug(
            "Syncing: %s", step.name, extra={"event": events.STEP_START, "step": step.value}
        )
        self._emit(ProgressEvent(step=step, had_errors=self._had_errors))

    def record_error(self) -> None:
        """Flag the run as failed and the current step as failed.

        Idempotent.  Before any step is published only the run flag is set.
        """
        self._had_errors = True
        current = self.current_step
        if current is not None and current not in self._failed_steps:
            self._failed_steps.append(current)

    def publish_finished(self) -> None:
        """Emit the terminal event.  Never raises."""
        self._finished = True
        logger.debug("%s", self.format_report())
        self._emit(
            ProgressEvent(
                step=None,
                finished=True,
                had_errors=self._had_errors,
                failed_step=self._failed_steps[-1] if self._failed_steps else None,
            )
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def current_step(self) -> SyncStep | None:
        return self._steps[-1] if self._steps else None

    @property
    def steps(self) -> list[SyncStep]:
        return list(self._steps)

    @property
    def failed_steps(self) -> list[SyncStep]:
        return list(self._failed_steps)

    @property
    def had_errors(self) -> bool:
        return self._had_errors

    @property
    def finished(self) -> bool:
        return self._finished

    def format_report(self) -> str:
        """One-line summary, e.g. ``"Progress: PRIMARY > CONFIG > SOCIAL | errors: CONFIG"``."""
        path = " > ".join(step.name for step in self._steps) or "(no steps)"
        if not self._had_errors:
            errors = "none"
        elif self._failed_steps:
            errors = ", ".join(step.name for step in self._failed_steps)
        else:
            errors = "yes"
        return f"Progress: {path} | errors: {errors}"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _emit(self, event: ProgressEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # noqa: BLE001
                logger.warning("Progress listener %r failed.", listener, exc_info=True)
