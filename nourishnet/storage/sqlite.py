"""SQLite implementation of the key/value storage."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from pathlib import Path
from typing import Any, Optional

from ..errors import PersistenceUnavailable
from .base import KeyValueStorage

logger = logging.getLogger(__name__)


class SQLiteStorage(KeyValueStorage):
    """Persist key/value pairs in a single SQLite table."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._ensure_schema()
        except sqlite3.Error as e:
            raise PersistenceUnavailable(f"Cannot open {self.db_path}: {e}") from e

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        try:
            with self._conn:
                self._conn.execute(query, params)
        except sqlite3.Error as e:
            logger.error(f"SQLite write failed on {self.db_path}: {e}")
            raise PersistenceUnavailable(str(e)) from e

    def _fetch_value(self, key: str) -> Optional[str]:
        try:
            row = self._conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"SQLite read failed on {self.db_path}: {e}")
            raise PersistenceUnavailable(str(e)) from e
        return row[0] if row else None

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Storage API
    async def get_item(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._fetch_value, key)

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO kv_store (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            key,
            value,
        )

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(
            self._execute, "DELETE FROM kv_store WHERE key = ?", key
        )
