"""Show repository: existing ids, staleness checks and the search index.

Provides :class:`ShowRepository`, the single data-access object for the
``shows`` table and its ``shows_search`` FTS5 index.  The orchestrator uses
it in three roles:

* **Existing ids** — :meth:`ShowRepository.get_show_ids` hands the set of
  locally known TheTVDB ids to account sync.  ``None`` signals that the
  set could not be read, which the orchestrator treats as an incomplete run.
* **Stale check** — :meth:`ShowRepository.is_update_needed` decides whether
  a single-show sync request is worth scheduling.
* **Index rebuild** — :meth:`ShowRepository.rebuild_search_index` rebuilds
  the full-text index after primary reconciliation changed show data.

Typical usage::

    from showsync.storage.database import open_db
    from showsync.storage.repository import ShowRepository

    async def run() -> None:
        conn = await open_db()
        repo = ShowRepository(conn)

        await repo.upsert_show(81189, "Breaking Bad", overview="...")
        if await repo.is_update_needed(81189):
            ...
        await conn.close()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import aiosqlite

from showsync.core import events
from showsync.core.exceptions import StorageError
from showsync.core.models import ShowSearchResult
from showsync.storage.preferences import from_epoch_ms, to_epoch_ms

__all__ = [
    "DEFAULT_UPDATE_THRESHOLD",
    "ShowRepository",
]

logger = logging.getLogger(__name__)

#: A show is stale once its last update is older than this.
DEFAULT_UPDATE_THRESHOLD: timedelta = timedelta(hours=12)


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ShowRepository:
    """Data-access object for the ``shows`` and ``shows_search`` tables.

    It owns no connection lifecycle: the caller must supply an open
    :class:`aiosqlite.Connection` and close it when done (see
    :func:`~showsync.storage.database.open_db`).

    Args:
        conn: Open, configured :class:`aiosqlite.Connection`.
        update_threshold: Age after which a show counts as stale.
        clock: Returns the current UTC time.  Injectable for tests.
    """

    def __init__(
        self,
        conn: aiosqlite.Connection,
        *,
        update_threshold: timedelta = DEFAULT_UPDATE_THRESHOLD,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._conn = conn
        self._update_threshold = update_threshold
        self._clock = clock

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_show_ids(self) -> set[int] | None:
        """Return the TheTVDB ids of all local shows.

        Returns:
            The id set (possibly empty), or ``None`` if the query failed.
        """
        try:
            cursor = await self._conn.execute("SELECT tvdb_id FROM shows")
            rows = await cursor.fetchall()
        except aiosqlite.Error:
            logger.warning("Could not load existing show ids.", exc_info=True)
            return None
        return {int(row[0]) for row in rows}

    async def is_update_needed(self, show_id: int) -> bool:
        """Return ``True`` if *show_id* is known and its data is stale.

        Unknown shows are never stale: adding a show is not a sync concern.

        Raises:
            StorageError: If the lookup fails.
        """
        try:
            cursor = await self._conn.execute(
                "SELECT last_updated FROM shows WHERE tvdb_id = ? LIMIT 1",
                (show_id,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageError(f"Stale check for show {show_id} failed: {exc}") from exc
        if row is None:
            logger.debug("Stale check: show %d not found locally.", show_id)
            return False

        age = self._clock() - from_epoch_ms(int(row[0]))
        stale = age > self._update_threshold
        logger.debug("Stale check: show %d age=%s stale=%s", show_id, age, stale)
        return stale

    async def search(self, query: str, limit: int = 20) -> list[ShowSearchResult]:
        """Full-text search over show titles and overviews.

        The query is matched as a phrase so user input cannot inject FTS5
        operators.
        """
        if not query.strip():
            return []
        phrase = '"' + query.replace('"', '""') + '"'
        cursor = await self._conn.execute(
            "SELECT tvdb_id, title, overview FROM shows_search "
            "WHERE shows_search MATCH ? ORDER BY rank LIMIT ?",
            (phrase, limit),
        )
        rows = await cursor.fetchall()
        return [
            ShowSearchResult(tvdb_id=int(row[0]), title=row[1], overview=row[2])
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Write helpers
    # ------------------------------------------------------------------

    async def upsert_show(
        self,
        tvdb_id: int,
        title: str,
        *,
        overview: str = "",
        last_updated: datetime | None = None,
    ) -> None:
        """Insert or update one show row.

        Args:
            tvdb_id: TheTVDB id.
            title: Display title.
            overview: Description text.
            last_updated: Time of the last successful update.  Defaults to
                the current clock time.
        """
        updated = last_updated or self._clock()
        await self._conn.execute(
            """
            INSERT INTO shows (tvdb_id, title, overview, last_updated)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(tvdb_id) DO UPDATE SET
                title = excluded.title,
                overview = excluded.overview,
                last_updated = excluded.last_updated
            """,
            (tvdb_id, title, overview, to_epoch_ms(updated)),
        )
        await self._conn.commit()
        logger.debug("Upserted show %d (%s)", tvdb_id, title)

    async def rebuild_search_index(self) -> int:
        """Rebuild ``shows_search`` from ``shows`` in one transaction.

        Returns:
            Number of rows indexed.

        Raises:
            StorageError: If the rebuild fails; the old index is kept.
        """
        try:
            await self._conn.execute("DELETE FROM shows_search")
            cursor = await self._conn.execute(
                "INSERT INTO shows_search (title, overview, tvdb_id) "
                "SELECT title, overview, tvdb_id FROM shows"
            )
            indexed = cursor.rowcount
            await self._conn.commit()
        except aiosqlite.Error as exc:
            await self._conn.rollback()
            raise StorageError(f"Search index rebuild failed: {exc}") from exc

        logger.info(
            "Search index rebuilt (%d shows).",
            indexed,
            extra={"event": events.INDEX_REBUILT},
        )
        return indexed
