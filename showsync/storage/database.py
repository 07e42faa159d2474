"""Opening the Showsync SQLite file.

One connection is opened per process by the runner and shared by the
preference store and the show repository; both are thin DAOs that never
close it.  :func:`open_db` leaves the file in WAL mode with the schema in
place, so the first run on a fresh machine and every later run take the
same path.

Tables:

* ``preferences``: key/value process state (run state, auto-sync flag,
  TMDB image base URL).
* ``shows``: locally known shows and when each was last updated.
* ``shows_search``: FTS5 index over ``shows``, rebuilt after primary sync.

Typical usage::

    conn = await open_db(Path("data/showsync.db"))
    try:
        prefs = PreferenceStore(conn)
        ...
    finally:
        await conn.close()
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

__all__ = [
    "DEFAULT_DB_PATH",
    "open_db",
    "create_schema",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

#: Fallback database path when no explicit path is passed to :func:`open_db`.
DEFAULT_DB_PATH: Path = Path("showsync.db")

# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

#: ``preferences`` is a plain key/value store for process-wide state.
#:
#: Known keys
#: ----------
#: last_update            Epoch milliseconds of the last multi-item run,
#:                        possibly shifted by the backoff policy.
#: failed_update_counter  Consecutive non-successful multi-item runs.
#: tmdb_image_base_url    ``images.secure_base_url`` from TMDB configuration.
#: sync_automatically     ``"1"`` / ``"0"``; missing means the settings default.
_DDL_PREFERENCES = """\
CREATE TABLE IF NOT EXISTS preferences (
    key    TEXT  NOT NULL,
    value  TEXT  NOT NULL,
    PRIMARY KEY (key)
)"""

#: ``shows`` holds the locally known shows.
#:
#: Column notes
#: ------------
#: tvdb_id       TheTVDB id; PRIMARY KEY.
#: title         Display title.
#: overview      Free-text description, indexed for search.
#: last_updated  Epoch milliseconds of the last successful update of this
#:               show; 0 means never updated.
_DDL_SHOWS = """\
CREATE TABLE IF NOT EXISTS shows (
    tvdb_id       INTEGER  NOT NULL,
    title         TEXT     NOT NULL DEFAULT '',
    overview      TEXT     NOT NULL DEFAULT '',
    last_updated  INTEGER  NOT NULL DEFAULT 0,
    PRIMARY KEY (tvdb_id)
)"""

#: Full-text search index over show titles and overviews.  Rebuilt wholesale
#: by :meth:`~showsync.storage.repository.ShowRepository.rebuild_search_index`.
_DDL_SHOWS_SEARCH = """\
CREATE VIRTUAL TABLE IF NOT EXISTS shows_search USING fts5(
    title,
    overview,
    tvdb_id UNINDEXED
)"""

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

_SCHEMA: tuple[tuple[str, str], ...] = (
    ("preferences", _DDL_PREFERENCES),
    ("shows", _DDL_SHOWS),
    ("shows_search", _DDL_SHOWS_SEARCH),
)


async def open_db(path: Path | str | None = None) -> aiosqlite.Connection:
    """Open the database at *path*, creating file, directories and schema.

    Rows come back as :class:`aiosqlite.Row`, so columns can be read by name.

    Args:
        path: SQLite file.  Defaults to :data:`DEFAULT_DB_PATH`.

    Returns:
        An open connection; the caller closes it.

    Raises:
        aiosqlite.OperationalError: If the file cannot be opened or created.
    """
    db_path = Path(path) if path is not None else DEFAULT_DB_PATH
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    try:
        await _apply_pragmas(conn)
        await create_schema(conn)
    except aiosqlite.Error:
        await conn.close()
        raise

    logger.info("Database ready at %s", db_path)
    return conn


async def create_schema(conn: aiosqlite.Connection) -> None:
    """Create any missing table.  Existing tables and rows are left alone."""
    for _name, ddl in _SCHEMA:
        await conn.execute(ddl)
    await conn.commit()
    logger.debug("Schema verified: %s", ", ".join(name for name, _ in _SCHEMA))


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


async def _apply_pragmas(conn: aiosqlite.Connection) -> None:
    """WAL for readers alongside the single writer; enforce foreign keys."""
    async with conn.execute("PRAGMA journal_mode=WAL") as cursor:
        row = await cursor.fetchone()
    mode = row[0] if row else None
    if mode != "wal":
        logger.warning("SQLite refused WAL mode (journal_mode=%r).", mode)
    await conn.execute("PRAGMA foreign_keys=ON")
