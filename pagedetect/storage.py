"""
Key/Value Stores — Backends for the Detection Cache

The cache persists one whole document under one key. Backends only
need whole-value get/set/remove; they make no atomicity promises
across calls (DetectionCache serializes its own load/mutate/save).

  MemoryStore  in-process dict, values deep-copied in and out
  SQLiteStore  one table, JSON-encoded values

Backend failures surface as StorageError.
"""

from __future__ import annotations

import asyncio
import copy
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping, Optional

from pagedetect.config import settings
from pagedetect.errors import StorageError


class KeyValueStore(ABC):
    """Abstract async key/value backend."""

    @abstractmethod
    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        """Return the values present for keys; absent keys are omitted."""
        ...

    @abstractmethod
    async def set(self, items: Mapping[str, Any]) -> None:
        """Write every key/value pair in items."""
        ...

    @abstractmethod
    async def remove(self, keys: Iterable[str]) -> None:
        """Delete keys; absent keys are ignored."""
        ...


class MemoryStore(KeyValueStore):
    """In-memory store. Copies values so callers never share a document."""

    def __init__(self, initial: Mapping[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(dict(initial or {}))

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        return {k: copy.deepcopy(self._data[k]) for k in keys if k in self._data}

    async def set(self, items: Mapping[str, Any]) -> None:
        for key, value in items.items():
            self._data[key] = copy.deepcopy(value)

    async def remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)


class SQLiteStore(KeyValueStore):
    """Key/value table in SQLite. Blocking calls run in a worker thread."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or settings.CACHE_DB_PATH
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        try:
            with self._get_conn() as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS kv_store (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                """)
                conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"cannot initialise {self.db_path}: {exc}") from exc

    def _get_conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _get_sync(self, keys: list[str]) -> dict[str, Any]:
        if not keys:
            return {}
        placeholders = ",".join("?" for _ in keys)
        with self._lock:
            with self._get_conn() as conn:
                rows = conn.execute(
                    f"SELECT key, value FROM kv_store WHERE key IN ({placeholders})",
                    keys,
                ).fetchall()
        return {key: json.loads(value) for key, value in rows}

    def _set_sync(self, items: dict[str, Any]) -> None:
        rows = [(key, json.dumps(value)) for key, value in items.items()]
        with self._lock:
            with self._get_conn() as conn:
                conn.executemany(
                    "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                    rows,
                )
                conn.commit()

    def _remove_sync(self, keys: list[str]) -> None:
        with self._lock:
            with self._get_conn() as conn:
                conn.executemany("DELETE FROM kv_store WHERE key = ?", [(k,) for k in keys])
                conn.commit()

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        try:
            return await asyncio.to_thread(self._get_sync, list(keys))
        except (sqlite3.Error, ValueError) as exc:
            raise StorageError(f"read failed: {exc}") from exc

    async def set(self, items: Mapping[str, Any]) -> None:
        try:
            await asyncio.to_thread(self._set_sync, dict(items))
        except (sqlite3.Error, TypeError, ValueError) as exc:
            raise StorageError(f"write failed: {exc}") from exc

    async def remove(self, keys: Iterable[str]) -> None:
        try:
            await asyncio.to_thread(self._remove_sync, list(keys))
        except sqlite3.Error as exc:
            raise StorageError(f"remove failed: {exc}") from exc
