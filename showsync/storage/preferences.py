"""Key/value preference storage and the persisted sync run state.

Two data-access objects share the ``preferences`` table:

* :class:`PreferenceStore` reads and writes individual typed values (the
  TMDB image base URL, the auto-sync flag).
* :class:`RunStateStore` reads and writes the
  :class:`~showsync.core.models.RunState` pair (``last_update`` and
  ``failed_update_counter``) as one unit so a run never leaves half of its
  bookkeeping behind.

Timestamps are stored as integer epoch milliseconds.

Typical usage::

    from showsync.storage.database import open_db
    from showsync.storage.preferences import PreferenceStore, RunStateStore

    conn = await open_db()
    prefs = PreferenceStore(conn)
    state = await RunStateStore(prefs).load()
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import aiosqlite

from showsync.core import events
from showsync.core.exceptions import StorageError
from showsync.core.models import RunState

__all__ = [
    "KEY_LAST_UPDATE",
    "KEY_FAILED_COUNTER",
    "KEY_IMAGE_BASE_URL",
    "KEY_SYNC_AUTOMATICALLY",
    "DEFAULT_IMAGE_BASE_URL",
    "PreferenceStore",
    "RunStateStore",
    "to_epoch_ms",
    "from_epoch_ms",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Keys and defaults
# ---------------------------------------------------------------------------

KEY_LAST_UPDATE: str = "last_update"
KEY_FAILED_COUNTER: str = "failed_update_counter"
KEY_IMAGE_BASE_URL: str = "tmdb_image_base_url"
KEY_SYNC_AUTOMATICALLY: str = "sync_automatically"

#: Used until a configuration fetch has stored a real value.
DEFAULT_IMAGE_BASE_URL: str = "https://image.tmdb.org/t/p/"


def to_epoch_ms(value: datetime) -> int:
    """Convert an aware datetime to integer epoch milliseconds."""
    return int(value.timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=UTC)


# ---------------------------------------------------------------------------
# Generic store
# ---------------------------------------------------------------------------


class PreferenceStore:
    """Typed access to the ``preferences`` key/value table.

    Owns no connection lifecycle; the caller supplies an open connection
    from :func:`~showsync.storage.database.open_db`.

    Args:
        conn: Open, configured :class:`aiosqlite.Connection`.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    @property
    def connection(self) -> aiosqlite.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        """Return the stored string for *key*, or ``None`` if absent."""
        try:
            cursor = await self._conn.execute(
                "SELECT value FROM preferences WHERE key = ? LIMIT 1",
                (key,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to read preference {key!r}: {exc}") from exc
        return row[0] if row is not None else None

    async def set_many(self, values: dict[str, str]) -> None:
        """Write every pair in *values* in a single transaction.

        Raises:
            StorageError: If the write fails; nothing is committed.
        """
        try:
            await self._conn.executemany(
                "INSERT INTO preferences (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                list(values.items()),
            )
            await self._conn.commit()
        except aiosqlite.Error as exc:
            await self._conn.rollback()
            raise StorageError(f"Failed to write preferences {sorted(values)}: {exc}") from exc
        logger.debug("Stored preferences: %s", ", ".join(sorted(values)))

    async def set(self, key: str, value: str) -> None:  # noqa: A003
        await self.set_many({key: value})

    # ------------------------------------------------------------------
    # Typed helpers
    # ------------------------------------------------------------------

    async def get_int(self, key: str, default: int = 0) -> int:
        raw = await self.get(key)
        if raw is None:
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning("Preference %s holds non-integer %r; using %d.", key, raw, default)
            return default

    async def get_bool(self, key: str, default: bool) -> bool:
        raw = await self.get(key)
        if raw is None:
            return default
        return raw == "1"

    async def set_bool(self, key: str, value: bool) -> None:
        await self.set(key, "1" if value else "0")

    # ------------------------------------------------------------------
    # Named preferences
    # ------------------------------------------------------------------

    async def get_image_base_url(self) -> str:
        """Return the stored TMDB image base URL, or the built-in default."""
        return await self.get(KEY_IMAGE_BASE_URL) or DEFAULT_IMAGE_BASE_URL

    async def set_image_base_url(self, url: str) -> None:
        await self.set(KEY_IMAGE_BASE_URL, url)

    async def get_sync_automatically(self, default: bool) -> bool:
        return await self.get_bool(KEY_SYNC_AUTOMATICALLY, default)

    async def set_sync_automatically(self, enabled: bool) -> None:
        await self.set_bool(KEY_SYNC_AUTOMATICALLY, enabled)


# ---------------------------------------------------------------------------
# Run state
# ---------------------------------------------------------------------------


class RunStateStore:
    """Loads and saves the :class:`~showsync.core.models.RunState` pair."""

    def __init__(self, prefs: PreferenceStore) -> None:
        self._prefs = prefs

    async def load(self) -> RunState:
        """Return the persisted state, or :meth:`RunState.initial` if none."""
        last_ms = await self._prefs.get_int(KEY_LAST_UPDATE, 0)
        failed = await self._prefs.get_int(KEY_FAILED_COUNTER, 0)
        return RunState(last_update=from_epoch_ms(last_ms), failed_count=max(failed, 0))

    async def save(self, state: RunState) -> None:
        """Persist both fields of *state* atomically.

        Raises:
            StorageError: If the write fails; the previous state is kept.
        """
        await self._prefs.set_many(
            {
                KEY_LAST_UPDATE: str(to_epoch_ms(state.last_update)),
                KEY_FAILED_COUNTER: str(state.failed_count),
            }
        )
        logger.info(
            "Run state saved: last_update=%s failed_count=%d",
            state.last_update.isoformat(),
            state.failed_count,
            extra={"event": events.BACKOFF_UPDATED},
        )
