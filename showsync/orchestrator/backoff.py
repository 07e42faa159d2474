"""Exponential retry backoff expressed through the persisted last-update time.

The gate only opens :data:`~showsync.orchestrator.gate.SYNC_INTERVAL_MINIMUM`
after ``last_update``.  After a failed run the policy writes a *fake*
``last_update`` so that the next attempt opens ``2 ** (failures + 2)``
minutes later instead: 4, 8, 16 and 32 minutes for the first four
consecutive failures.  From the fifth failure on, the regular five-minute
interval applies.

    ==========  ==========================  =================
    failures    stored last_update          next run allowed
    ==========  ==========================  =================
    0           now − 1 min                 after 4 min
    1           now + 3 min                 after 8 min
    2           now + 11 min                after 16 min
    3           now + 27 min                after 32 min
    ≥ 4         now                         after 5 min
    ==========  ==========================  =================
"""

from __future__ import annotations

from datetime import datetime, timedelta

from showsync.core.models import RunState, UpdateResult
from showsync.orchestrator.gate import SYNC_INTERVAL_MINIMUM_MINUTES

__all__ = ["BACKOFF_MAX_FAILURES", "next_state"]

#: Failure count from which the backoff stops growing.
BACKOFF_MAX_FAILURES: int = 4


def next_state(current: RunState, now: datetime, result: UpdateResult) -> RunState:
    """Compute the run state to persist after a multi-item run.

    Args:
        current: State read at the start of the run.
        now: Start time of the run.
        result: Aggregate outcome of the run.

    Returns:
        ``RunState(now, 0)`` on success, otherwise a shifted ``last_update``
        with the failure counter incremented by one.
    """
    if result is UpdateResult.SUCCESS:
        return RunState(last_update=now, failed_count=0)

    failed = current.failed_count
    if failed < BACKOFF_MAX_FAILURES:
        shift = SYNC_INTERVAL_MINIMUM_MINUTES - 2 ** (failed + 2)
        fake_last_update = now - timedelta(minutes=shift)
    else:
        fake_last_update = now
    return RunState(last_update=fake_last_update, failed_count=failed + 1)
