# src/storage/sqlite_storage.py - v1
"""SQLite-based storage backend (STORAGE_BACKEND=sqlite).

Uses stdlib sqlite3. A single table holds every key.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from assessflow.storage.base_storage import BaseKeyValueStorage, check_quota

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_entries (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""


class SqliteStorage(BaseKeyValueStorage):
    """SQLite-backed key-value storage."""

    def __init__(self, db_path: Path | str, quota_bytes: int | None = None) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._quota_bytes = quota_bytes
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def get(self, key: str) -> str | None:
        row = self._conn.execute(
            "SELECT value FROM kv_entries WHERE key = ?", (key,)
        ).fetchone()
        return None if row is None else row[0]

    async def set(self, key: str, value: str) -> None:
        row = self._conn.execute(
            "SELECT length(CAST(key AS BLOB)) + length(CAST(value AS BLOB)) "
            "FROM kv_entries WHERE key = ?",
            (key,),
        ).fetchone()
        previous_size = row[0] if row else 0
        check_quota(
            key, value, await self.usage_bytes(), previous_size, self._quota_bytes
        )
        self._conn.execute(
            """INSERT INTO kv_entries (key, value) VALUES (?, ?)
               ON CONFLICT(key) DO UPDATE
               SET value = excluded.value, updated_at = CURRENT_TIMESTAMP""",
            (key, value),
        )
        self._conn.commit()

    async def remove(self, key: str) -> None:
        self._conn.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
        self._conn.commit()

    async def keys(self) -> list[str]:
        return [row[0] for row in self._conn.execute("SELECT key FROM kv_entries")]

    async def usage_bytes(self) -> int:
        row = self._conn.execute(
            "SELECT COALESCE(SUM(length(CAST(key AS BLOB)) "
            "+ length(CAST(value AS BLOB))), 0) FROM kv_entries"
        ).fetchone()
        return int(row[0])

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
