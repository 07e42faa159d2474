"""Pending sync requests and the active-run flag.

:class:`SyncQueue` is the serialisation point between the scheduling facade
(many producers) and the single worker that performs runs.  It provides:

* FIFO order for regular requests and front-of-queue placement for
  expedited ones;
* coalescing of a request identical to one already pending;
* an "active" marker set by the worker while a run is in progress, so the
  facade can answer "is a sync running or pending?".
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque

from showsync.core import events
from showsync.core.models import SyncRequest

__all__ = ["SyncQueue"]

logger = logging.getLogger(__name__)


class SyncQueue:
    """Async queue of :class:`~showsync.core.models.SyncRequest` objects."""

    def __init__(self) -> None:
        self._pending: deque[SyncRequest] = deque()
        self._available = asyncio.Event()
        self._active: SyncRequest | None = None

    def __len__(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    def put(self, request: SyncRequest) -> bool:
        """Add *request* unless an identical one is already pending.

        Expedited requests go to the front.  A duplicate expedited request
        moves the pending copy to the front.

        Returns:
            ``True`` if the request was added, ``False`` if it was coalesced.
        """
        if request in self._pending:
            if request.expedited and self._pending[0] != request:
                self._pending.remove(request)
                self._pending.appendleft(request)
            logger.debug(
                "Coalesced %s with pending request.",
                request,
                extra={"event": events.SYNC_REQUEST_COALESCED},
            )
            return False

        if request.expedited:
            self._pending.appendleft(request)
        else:
            self._pending.append(request)
        self._available.set()
        logger.info(
            "Requested %s (%d pending).",
            request,
            len(self._pending),
            extra={"event": events.SYNC_REQUEST_ENQUEUED},
        )
        return True

    # ------------------------------------------------------------------
    # Consumer
    # ------------------------------------------------------------------

    async def get(self) -> SyncRequest:
        """Wait for and remove the next request."""
        while not self._pending:
            self._available.clear()
            await self._available.wait()
        return self._pending.popleft()

    def get_nowait(self) -> SyncRequest | None:
        """Remove the next request, or return ``None`` if there is none."""
        return self._pending.popleft() if self._pending else None

    def mark_active(self, request: SyncRequest) -> None:
        self._active = request

    def mark_done(self) -> None:
        self._active = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def active(self) -> SyncRequest | None:
        return self._active

    @property
    def is_active(self) -> bool:
        return self._active is not None

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def pending(self) -> list[SyncRequest]:
        """Snapshot of pending requests in run order."""
        return list(self._pending)
