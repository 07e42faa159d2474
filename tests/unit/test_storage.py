"""Unit tests for the SQLite storage layer, run against real temporary files.

Tests cover:
- ``open_db`` — directory creation, WAL mode, idempotent schema.
- ``PreferenceStore`` — typed getters/setters, defaults, atomic writes.
- ``RunStateStore`` — round trip of the run state pair.
- ``ShowRepository`` — existing ids, the stale check and the FTS5 index.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock

import aiosqlite
import pytest

from showsync.core.exceptions import StorageError
from showsync.core.models import EPOCH, RunState
from showsync.storage.database import create_schema, open_db
from showsync.storage.preferences import (
    DEFAULT_IMAGE_BASE_URL,
    KEY_FAILED_COUNTER,
    KEY_LAST_UPDATE,
    PreferenceStore,
    RunStateStore,
    from_epoch_ms,
    to_epoch_ms,
)
from showsync.storage.repository import ShowRepository

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# open_db
# ---------------------------------------------------------------------------


class TestOpenDb:
    async def test_creates_parent_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "dir" / "showsync.db"
        conn = await open_db(path)
        try:
            assert path.exists()
        finally:
            await conn.close()

    async def test_enables_wal(self, db: aiosqlite.Connection) -> None:
        async with db.execute("PRAGMA journal_mode") as cursor:
            row = await cursor.fetchone()
        assert row[0] == "wal"

    async def test_schema_has_all_tables(self, db: aiosqlite.Connection) -> None:
        async with db.execute("SELECT name FROM sqlite_master") as cursor:
            names = {row[0] for row in await cursor.fetchall()}
        assert {"preferences", "shows", "shows_search"} <= names

    async def test_create_schema_is_idempotent(self, db: aiosqlite.Connection) -> None:
        await db.execute("INSERT INTO preferences (key, value) VALUES ('k', 'v')")
        await db.commit()
        await create_schema(db)
        async with db.execute("SELECT value FROM preferences WHERE key = 'k'") as cursor:
            assert (await cursor.fetchone())[0] == "v"

    async def test_reopen_keeps_data(self, db_path: Path) -> None:
        conn = await open_db(db_path)
        await PreferenceStore(conn).set("k", "v")
        await conn.close()

        conn = await open_db(db_path)
        try:
            assert await PreferenceStore(conn).get("k") == "v"
        finally:
            await conn.close()


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


class TestPreferenceStore:
    async def test_missing_key_is_none(self, db: aiosqlite.Connection) -> None:
        assert await PreferenceStore(db).get("nope") is None

    async def test_set_overwrites(self, db: aiosqlite.Connection) -> None:
        prefs = PreferenceStore(db)
        await prefs.set("k", "1")
        await prefs.set("k", "2")
        assert await prefs.get("k") == "2"

    async def test_get_int_with_garbage_uses_default(self, db: aiosqlite.Connection) -> None:
        prefs = PreferenceStore(db)
        await prefs.set("n", "not a number")
        assert await prefs.get_int("n", 7) == 7

    async def test_bool_round_trip(self, db: aiosqlite.Connection) -> None:
        prefs = PreferenceStore(db)
        assert await prefs.get_bool("flag", True)
        await prefs.set_bool("flag", False)
        assert not await prefs.get_bool("flag", True)

    async def test_image_base_url_default_and_update(self, db: aiosqlite.Connection) -> None:
        prefs = PreferenceStore(db)
        assert await prefs.get_image_base_url() == DEFAULT_IMAGE_BASE_URL
        await prefs.set_image_base_url("https://cdn.example/t/p/")
        assert await prefs.get_image_base_url() == "https://cdn.example/t/p/"

    async def test_sync_automatically(self, db: aiosqlite.Connection) -> None:
        prefs = PreferenceStore(db)
        assert not await prefs.get_sync_automatically(False)
        await prefs.set_sync_automatically(True)
        assert await prefs.get_sync_automatically(False)

    async def test_write_failure_raises_storage_error(self, db: aiosqlite.Connection) -> None:
        prefs = PreferenceStore(db)
        await db.execute("DROP TABLE preferences")
        with pytest.raises(StorageError):
            await prefs.set("k", "v")


# ---------------------------------------------------------------------------
# Run state
# ---------------------------------------------------------------------------


class TestRunStateStore:
    def test_epoch_ms_helpers(self) -> None:
        assert to_epoch_ms(EPOCH) == 0
        assert from_epoch_ms(to_epoch_ms(NOW)) == NOW

    async def test_fresh_database_is_initial(self, db: aiosqlite.Connection) -> None:
        assert await RunStateStore(PreferenceStore(db)).load() == RunState.initial()

    async def test_save_then_load(self, db: aiosqlite.Connection) -> None:
        store = RunStateStore(PreferenceStore(db))
        state = RunState(NOW + timedelta(minutes=11), 3)
        await store.save(state)
        assert await store.load() == state

    async def test_save_writes_both_keys_in_one_call(self) -> None:
        prefs = AsyncMock(spec=PreferenceStore)
        await RunStateStore(prefs).save(RunState(NOW, 2))
        prefs.set_many.assert_awaited_once_with(
            {KEY_LAST_UPDATE: str(to_epoch_ms(NOW)), KEY_FAILED_COUNTER: "2"}
        )

    async def test_negative_counter_is_clamped(self, db: aiosqlite.Connection) -> None:
        prefs = PreferenceStore(db)
        await prefs.set(KEY_FAILED_COUNTER, "-4")
        assert (await RunStateStore(prefs).load()).failed_count == 0

    def test_negative_counter_rejected_by_model(self) -> None:
        with pytest.raises(ValueError):
            RunState(NOW, -1)


# ---------------------------------------------------------------------------
# Show repository
# ---------------------------------------------------------------------------


@pytest.fixture()
def repo(db: aiosqlite.Connection) -> ShowRepository:
    return ShowRepository(db, clock=lambda: NOW)


class TestShowRepository:
    async def test_show_ids_empty(self, repo: ShowRepository) -> None:
        assert await repo.get_show_ids() == set()

    async def test_show_ids(self, repo: ShowRepository) -> None:
        await repo.upsert_show(81189, "Breaking Bad")
        await repo.upsert_show(121361, "Game of Thrones")
        assert await repo.get_show_ids() == {81189, 121361}

    async def test_show_ids_none_on_failure(
        self, db: aiosqlite.Connection, repo: ShowRepository
    ) -> None:
        await db.execute("DROP TABLE shows")
        assert await repo.get_show_ids() is None

    async def test_unknown_show_is_not_stale(self, repo: ShowRepository) -> None:
        assert not await repo.is_update_needed(999)

    async def test_recent_show_is_not_stale(self, repo: ShowRepository) -> None:
        await repo.upsert_show(81189, "Breaking Bad", last_updated=NOW - timedelta(hours=11))
        assert not await repo.is_update_needed(81189)

    async def test_stale_check_failure_raises_storage_error(
        self, db: aiosqlite.Connection, repo: ShowRepository
    ) -> None:
        await db.execute("DROP TABLE shows")
        with pytest.raises(StorageError, match="show 81189"):
            await repo.is_update_needed(81189)

    async def test_old_show_is_stale(self, repo: ShowRepository) -> None:
        await repo.upsert_show(81189, "Breaking Bad", last_updated=NOW - timedelta(hours=13))
        assert await repo.is_update_needed(81189)

    async def test_custom_threshold(self, db: aiosqlite.Connection) -> None:
        repo = ShowRepository(db, update_threshold=timedelta(hours=1), clock=lambda: NOW)
        await repo.upsert_show(1, "Show", last_updated=NOW - timedelta(hours=2))
        assert await repo.is_update_needed(1)

    async def test_search_after_rebuild(self, repo: ShowRepository) -> None:
        await repo.upsert_show(81189, "Breaking Bad", overview="A chemistry professor turns cook")
        await repo.upsert_show(121361, "Game of Thrones", overview="Noble families")
        assert await repo.search("chemistry") == []

        indexed = await repo.rebuild_search_index()

        assert indexed == 2
        hits = await repo.search("chemistry")
        assert [h.tvdb_id for h in hits] == [81189]
        assert hits[0].title == "Breaking Bad"

    async def test_rebuild_replaces_old_rows(self, repo: ShowRepository) -> None:
        await repo.upsert_show(1, "Old Title")
        await repo.rebuild_search_index()
        await repo.upsert_show(1, "New Title")
        await repo.rebuild_search_index()

        assert await repo.search("Old") == []
        assert [h.title for h in await repo.search("New")] == ["New Title"]

    async def test_search_blank_and_quoted_queries(self, repo: ShowRepository) -> None:
        await repo.upsert_show(1, 'The "Office"')
        await repo.rebuild_search_index()
        assert await repo.search("   ") == []
        assert [h.tvdb_id for h in await repo.search('"Office"')] == [1]

    async def test_rebuild_failure_raises_storage_error(
        self, db: aiosqlite.Connection, repo: ShowRepository
    ) -> None:
        await db.execute("DROP TABLE shows")
        with pytest.raises(StorageError):
            await repo.rebuild_search_index()
