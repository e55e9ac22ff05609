from __future__ import annotations

import asyncio
import json
import sqlite3
from collections.abc import Mapping
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any

import aiosqlite
from pydantic import BaseModel


@dataclass(frozen=True)
class CacheEntry:
    id: int
    kind: str
    key: str
    data: Mapping[str, Any]
    created_at: datetime

    @classmethod
    def from_row(cls, cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> CacheEntry:
        row_dict: dict[str, Any] = {col[0]: row[idx] for idx, col in enumerate(cursor.description or [])}
        row_dict["data"] = MappingProxyType(json.loads(row_dict["data"]))
        return cls(**row_dict)


class Cache:
    """Key/value store for API bodies that never change again, e.g. finished operations."""

    DEFAULT_CACHE_DIR = Path.home() / ".cache" / "compute_ops"
    DEFAULT_CACHE_DB_PATH = DEFAULT_CACHE_DIR / "cache.db"
    RETENTION_INTERVAL = 24 * 3600

    SCHEMA = """
         CREATE TABLE IF NOT EXISTS cache (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            kind TEXT NOT NULL,
            key TEXT NOT NULL,
            data TEXT NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP NOT NULL,
            UNIQUE(kind, key)
         );
         CREATE INDEX IF NOT EXISTS idx_cache_kind ON cache(kind);
         CREATE INDEX IF NOT EXISTS idx_cache_created ON cache(created_at);
    """

    def __init__(self, db_path: Path = DEFAULT_CACHE_DB_PATH, retention_days: int = 30) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.retention_days = retention_days
        self.__conn: aiosqlite.Connection | None = None
        self.__lock = asyncio.Lock()
        self.__retention_task: asyncio.Task[None] | None = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self.__conn is None:
            raise RuntimeError("Database connection not initialized. Use 'async with' context.")
        return self.__conn

    async def _init_db(self) -> None:
        async with self.__lock:
            if self.__conn is not None:
                raise RuntimeError("Database already initialized.")

            conn = await aiosqlite.connect(str(self.db_path))
            await conn.execute("PRAGMA journal_mode=WAL")
            conn.row_factory = CacheEntry.from_row  # type: ignore[assignment]
            await conn.executescript(self.SCHEMA)
            await conn.commit()
            self.__conn = conn
            self.__retention_task = asyncio.create_task(self.retain_periodically())

    async def retain_periodically(self) -> None:
        await self._retain()
        while True:
            await asyncio.sleep(self.RETENTION_INTERVAL)
            with suppress(Exception):
                await self._retain()

    async def _retain(self) -> None:
        if self.retention_days <= 0:
            return
        cutoff = (datetime.now(timezone.utc) - timedelta(days=self.retention_days)).isoformat()
        await self.conn.execute("DELETE FROM cache WHERE created_at < ?", (cutoff,))
        await self.conn.commit()

    async def close(self) -> None:
        async with self.__lock:
            if self.__conn is None:
                return
            if self.__retention_task is not None:
                self.__retention_task.cancel()
                await asyncio.gather(self.__retention_task, return_exceptions=True)
            await self.__conn.close()
            self.__conn = None

    async def __aenter__(self) -> Cache:
        await self._init_db()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def get(self, kind: str, key: str) -> CacheEntry | None:
        async with self.conn.execute("""SELECT * FROM cache WHERE kind = ? AND key = ?""", (kind, key)) as cursor:
            return await cursor.fetchone()  # type: ignore[return-value]

    async def put(self, kind: str, key: str, data: dict[str, Any] | BaseModel) -> CacheEntry:
        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json", by_alias=True, exclude_none=True)

        await self.conn.execute(
            """
            INSERT INTO cache (kind, key, data)
            VALUES (?, ?, ?)
            ON CONFLICT(kind, key) DO UPDATE
            SET data=excluded.data
            """,
            (kind, key, json.dumps(data)),
        )
        await self.conn.commit()
        entry = await self.get(kind, key)
        if entry is None:
            raise RuntimeError("Failed to retrieve cache entry after insertion.")
        return entry

    async def delete(self, kind: str, key: str) -> bool:
        cursor = await self.conn.execute("DELETE FROM cache WHERE kind = ? AND key = ?", (kind, key))
        await self.conn.commit()
        return cursor.rowcount > 0
