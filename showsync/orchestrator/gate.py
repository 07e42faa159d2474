"""Rate-limit gate deciding whether a requested run may start."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from showsync.core.models import SyncRequest, SyncType

__all__ = [
    "SYNC_INTERVAL_MINIMUM_MINUTES",
    "SYNC_INTERVAL_MINIMUM",
    "is_time_for_sync",
    "should_run",
]

logger = logging.getLogger(__name__)

SYNC_INTERVAL_MINIMUM_MINUTES: int = 5
SYNC_INTERVAL_MINIMUM: timedelta = timedelta(minutes=SYNC_INTERVAL_MINIMUM_MINUTES)


def is_time_for_sync(now: datetime, last_update: datetime) -> bool:
    """``True`` once strictly more than five minutes passed since *last_update*.

    *last_update* may lie in the future when the backoff policy forward-dated
    it; the gate then stays closed until that shifted time plus five minutes.
    """
    return now - last_update > SYNC_INTERVAL_MINIMUM


def should_run(now: datetime, last_update: datetime, request: SyncRequest) -> bool:
    """Decide whether *request* may run at *now*.

    Immediate requests always run.  Non-immediate single-show requests were
    already filtered by the stale check when they were scheduled, so only
    multi-item requests are rate limited here.
    """
    if request.immediate:
        return True
    if request.sync_type is SyncType.SINGLE:
        return True
    return is_time_for_sync(now, last_update)
