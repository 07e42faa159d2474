"""SQLite-backed preferences, run state and show data."""

from showsync.storage.database import DEFAULT_DB_PATH, create_schema, open_db
from showsync.storage.preferences import PreferenceStore, RunStateStore
from showsync.storage.repository import ShowRepository

__all__ = [
    "DEFAULT_DB_PATH",
    "open_db",
    "create_schema",
    "PreferenceStore",
    "RunStateStore",
    "ShowRepository",
]
