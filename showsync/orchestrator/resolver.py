"""Turns a :class:`~showsync.core.models.SyncRequest` into a concrete scope."""

from __future__ import annotations

from dataclasses import dataclass

from showsync.core.exceptions import InvalidSyncRequestError
from showsync.core.models import SyncRequest, SyncType

__all__ = ["ResolvedSync", "is_multi_item", "resolve"]


@dataclass(frozen=True)
class ResolvedSync:
    """Scope and target of a run.  ``show_id`` is set only for ``SINGLE``."""

    sync_type: SyncType
    show_id: int | None = None

    @property
    def is_multi_item(self) -> bool:
        return is_multi_item(self.sync_type)


def is_multi_item(sync_type: SyncType) -> bool:
    """``True`` for ``DELTA`` and ``FULL``."""
    return sync_type.is_multi_item


def resolve(request: SyncRequest) -> ResolvedSync:
    """Resolve *request*.

    Raises:
        InvalidSyncRequestError: For a ``SINGLE`` request without a positive
            show id.
    """
    if request.sync_type is SyncType.SINGLE:
        if request.show_id is None or request.show_id <= 0:
            raise InvalidSyncRequestError(
                f"SINGLE sync requires a positive show id, got {request.show_id!r}"
            )
        return ResolvedSync(SyncType.SINGLE, request.show_id)
    return ResolvedSync(request.sync_type, None)
