"""Showsync core domain models.

Value types shared by the orchestrator, the scheduling facade, the storage
layer and the step collaborators:

* :class:`SyncType` — scope of a run (``DELTA``, ``SINGLE``, ``FULL``).
* :class:`SyncRequest` — immutable description of one requested run.
* :class:`RunState` — persisted last-update time and failure counter.
* :class:`UpdateResult` — aggregate outcome of a run.
* :class:`PrimaryOutcome` — three-way outcome of primary reconciliation.
* :class:`ShowSearchResult` — descriptor of a show newly added by account sync.

Typical usage::

    from showsync.core.models import SyncRequest, SyncType

    request = SyncRequest(SyncType.SINGLE, show_id=81189, immediate=True)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

__all__ = [
    "EPOCH",
    "SyncType",
    "SyncRequest",
    "RunState",
    "UpdateResult",
    "PrimaryOutcome",
    "ShowSearchResult",
]

logger = logging.getLogger(__name__)

#: UTC epoch; the "never synced" last-update time.
EPOCH: datetime = datetime(1970, 1, 1, tzinfo=UTC)

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SyncType(StrEnum):
    """Scope of a sync run.

    ``DELTA`` and ``FULL`` touch every show (multi-item); ``SINGLE`` updates
    exactly one show and skips configuration refresh, account sync and
    backoff bookkeeping.
    """

    DELTA = "delta"
    SINGLE = "single"
    FULL = "full"

    @property
    def id(self) -> int:  # noqa: A003
        """Stable numeric id used when requests are serialised."""
        return _SYNC_TYPE_IDS[self]

    @property
    def is_multi_item(self) -> bool:
        """``True`` for ``DELTA`` and ``FULL``."""
        return self is not SyncType.SINGLE

    @classmethod
    def from_id(cls, type_id: int) -> SyncType:
        """Return the member with numeric id *type_id*.

        Raises:
            ValueError: If no member has that id.
        """
        for member, member_id in _SYNC_TYPE_IDS.items():
            if member_id == type_id:
                return member
        raise ValueError(f"Unknown sync type id {type_id!r}")


_SYNC_TYPE_IDS: dict[SyncType, int] = {
    SyncType.DELTA: 0,
    SyncType.SINGLE: 1,
    SyncType.FULL: 2,
}


class UpdateResult(StrEnum):
    """Aggregate outcome of a run or of a single step."""

    SUCCESS = "success"
    """Every attempted step completed without error."""

    INCOMPLETE = "incomplete"
    """At least one attempted step failed; independent steps still ran."""


class PrimaryOutcome(StrEnum):
    """Outcome of the primary reconciliation step."""

    SUCCESS = "success"
    INCOMPLETE = "incomplete"
    FATAL = "fatal"
    """Invalid or unknown show data; the whole run stops after this step."""

    def as_update_result(self) -> UpdateResult:
        """Map a non-fatal outcome to :class:`UpdateResult`.

        Raises:
            ValueError: For :attr:`FATAL`, which has no aggregate equivalent.
        """
        if self is PrimaryOutcome.SUCCESS:
            return UpdateResult.SUCCESS
        if self is PrimaryOutcome.INCOMPLETE:
            return UpdateResult.INCOMPLETE
        raise ValueError("FATAL primary outcome has no aggregate result")


# ---------------------------------------------------------------------------
# Requests and persisted state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SyncRequest:
    """Immutable description of one requested sync run.

    Attributes:
        sync_type: Requested scope.
        show_id: TheTVDB id of the show to update; meaningful only for
            :attr:`SyncType.SINGLE`.
        immediate: Bypass the 5-minute rate limit.
        expedited: Jump to the front of the run queue.  Only set by
            immediate requests.
    """

    sync_type: SyncType = SyncType.DELTA
    show_id: int | None = None
    immediate: bool = False
    expedited: bool = False

    @property
    def label(self) -> str:
        """``"DELTA_REGULAR"``-style label used in log lines."""
        suffix = "_IMMEDIATE" if self.immediate else "_REGULAR"
        return f"{self.sync_type.name}{suffix}"

    def __str__(self) -> str:
        target = f" show={self.show_id}" if self.show_id is not None else ""
        return f"SyncRequest({self.label}{target})"


@dataclass(frozen=True)
class RunState:
    """Persisted, process-wide sync bookkeeping.

    Attributes:
        last_update: UTC time of the last run, possibly back-dated or
            forward-dated by the backoff policy.
        failed_count: Consecutive non-successful multi-item runs.
    """

    last_update: datetime = field(default=EPOCH)
    failed_count: int = 0

    def __post_init__(self) -> None:
        if self.failed_count < 0:
            raise ValueError(f"failed_count must be ≥ 0, got {self.failed_count!r}")

    @classmethod
    def initial(cls) -> RunState:
        """State of an installation that has never synced."""
        return cls(last_update=EPOCH, failed_count=0)


# ---------------------------------------------------------------------------
# Account-sync side output
# ---------------------------------------------------------------------------


class ShowSearchResult(BaseModel):
    """A show that account sync found remotely but not locally.

    Account sync hands these to the add-show flow, which updates the search
    index itself; the orchestrator only counts them.
    """

    model_config = {"frozen": True}

    tvdb_id: int = Field(..., gt=0, description="TheTVDB show id.")
    title: str = Field(default="", description="Show title, if known.")
    overview: str = Field(default="", description="Show overview, if known.")
    language: str | None = Field(default=None, description="Content language code.")
