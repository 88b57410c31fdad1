"""
Key-value storage backends for persisted marker state.

Provides a small get/set/remove interface. The SQLite backend keeps one row
per key on the local device; the in-memory backend is used for tests and
ephemeral sessions.
"""
from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from typing import Dict, Optional, Protocol

from markermap.domain.errors import StorageReadError, StorageWriteError

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str) -> None: ...
    def remove(self, key: str) -> None: ...


class SQLiteKeyValueStorage:
    """SQLite store of string values keyed by string.

    By default the DB is placed under the package-local `data/` directory.
    A `max_bytes` limit, when given, rejects oversized values the way a
    browser storage quota would.
    """

    def __init__(self, db_path: str | Path, max_bytes: Optional[int] = None):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.max_bytes = max_bytes
        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        return sqlite3.connect(str(self.db_path))

    def _init_schema(self) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at INTEGER NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str) -> Optional[str]:
        try:
            conn = self._get_connection()
            try:
                row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise StorageReadError(f"Failed to read key {key!r} from {self.db_path}: {exc}") from exc
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageWriteError(f"Value for key {key!r} must be a string")
        if self.max_bytes is not None and len(value.encode("utf-8")) > self.max_bytes:
            raise StorageWriteError(f"Value for key {key!r} exceeds storage quota of {self.max_bytes} bytes")
        try:
            conn = self._get_connection()
            try:
                conn.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
                    (key, value, int(time.time())),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise StorageWriteError(f"Failed to write key {key!r} to {self.db_path}: {exc}") from exc

    def remove(self, key: str) -> None:
        try:
            conn = self._get_connection()
            try:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise StorageWriteError(f"Failed to remove key {key!r} from {self.db_path}: {exc}") from exc


class InMemoryKeyValueStorage:
    """Dict-backed storage. Counts writes so callers can observe persistence traffic."""

    def __init__(self, initial: Optional[Dict[str, str]] = None, max_bytes: Optional[int] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self.max_bytes = max_bytes
        self.write_count = 0

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageWriteError(f"Value for key {key!r} must be a string")
        if self.max_bytes is not None and len(value.encode("utf-8")) > self.max_bytes:
            raise StorageWriteError(f"Value for key {key!r} exceeds storage quota of {self.max_bytes} bytes")
        self.write_count += 1
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


_default_storage: Optional[SQLiteKeyValueStorage] = None


def get_default_storage() -> SQLiteKeyValueStorage:
    global _default_storage
    if _default_storage is None:
        from markermap.settings import settings

        _default_storage = SQLiteKeyValueStorage(settings.MARKERS_DB_PATH)
    return _default_storage
