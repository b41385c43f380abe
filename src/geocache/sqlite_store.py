#!/usr/bin/env python3
"""
SQLite Cache Store
Backing tier for single-host deployments (no Redis required)

Implements:
- get_entry(key) → CacheEntry | None
- set(key, value, ttl_seconds)
- remove(key), exists(key)
- clear_expired()
- get_stats() → {entries, expired_entries, hits, misses, writes, evictions}
"""

import asyncio
import logging
import os
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional

from .stores import CacheBackendError, CacheEntry, CacheStore, _check_ttl

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = os.path.expanduser("~/.cacheking/cache/locations.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    cache_key TEXT PRIMARY KEY,
    value BLOB NOT NULL,
    created_at REAL NOT NULL,
    expires_at REAL NOT NULL,
    hit_count INTEGER DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_cache_expires ON cache_entries(expires_at);
"""


class SQLiteCacheStore(CacheStore):
    """
    SQLite-backed cache store with absolute expiry per row.

    Design principles:
    - Queries run in a worker thread, the event loop never blocks on disk
    - One connection guarded by a lock (sqlite3 objects are not thread-safe)
    - Expired rows read as misses; clear_expired() reclaims them
    """

    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            db_path = DEFAULT_DB_PATH

        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self.conn = sqlite3.connect(db_path, check_same_thread=False, timeout=10.0)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(SCHEMA)
        self.conn.commit()

        self.stats = {
            "hits": 0,
            "misses": 0,
            "writes": 0,
            "evictions": 0,
        }

        logger.info("SQLiteCacheStore initialized at %s", db_path)

    # ── Sync internals (run via asyncio.to_thread) ──

    def _get_entry_sync(self, key: str) -> Optional[CacheEntry]:
        now = time.time()
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(
                "SELECT value, expires_at FROM cache_entries WHERE cache_key = ? AND expires_at > ?",
                (key, now),
            )
            row = cursor.fetchone()
            if row is None:
                self.stats["misses"] += 1
                return None
            cursor.execute(
                "UPDATE cache_entries SET hit_count = hit_count + 1 WHERE cache_key = ?",
                (key,),
            )
            self.conn.commit()
            self.stats["hits"] += 1
        return CacheEntry(value=bytes(row["value"]), expires_at=row["expires_at"])

    def _set_sync(self, key: str, value: bytes, ttl_seconds: float) -> None:
        now = time.time()
        with self._lock:
            self.conn.execute(
                """
                INSERT OR REPLACE INTO cache_entries
                (cache_key, value, created_at, expires_at, hit_count)
                VALUES (?, ?, ?, ?, 0)
                """,
                (key, sqlite3.Binary(value), now, now + ttl_seconds),
            )
            self.conn.commit()
            self.stats["writes"] += 1
        logger.debug("Stored %s (ttl=%ss)", key, ttl_seconds)

    def _exists_sync(self, key: str) -> bool:
        with self._lock:
            cursor = self.conn.execute(
                "SELECT 1 FROM cache_entries WHERE cache_key = ? AND expires_at > ?",
                (key, time.time()),
            )
            return cursor.fetchone() is not None

    def _remove_sync(self, key: str) -> None:
        with self._lock:
            self.conn.execute("DELETE FROM cache_entries WHERE cache_key = ?", (key,))
            self.conn.commit()

    async def _run(self, operation: str, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as e:
            raise CacheBackendError(f"sqlite {operation} failed: {e}") from e

    # ── CacheStore contract ──

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        return await self._run("get", self._get_entry_sync, key)

    async def set(self, key: str, value: bytes, ttl_seconds: float) -> None:
        _check_ttl(ttl_seconds)
        await self._run("set", self._set_sync, key, value, ttl_seconds)

    async def remove(self, key: str) -> None:
        await self._run("remove", self._remove_sync, key)

    async def exists(self, key: str) -> bool:
        return await self._run("exists", self._exists_sync, key)

    async def close(self) -> None:
        self.close_sync()

    # ── Maintenance ──

    def clear_expired(self) -> int:
        """Remove all expired entries. Should be called periodically."""
        now = time.time()

        try:
            with self._lock:
                cursor = self.conn.cursor()
                cursor.execute("DELETE FROM cache_entries WHERE expires_at <= ?", (now,))
                cleared = cursor.rowcount
                self.conn.commit()
                self.stats["evictions"] += cleared

            if cleared > 0:
                logger.info("Cleared %d expired cache entries", cleared)

            return cleared

        except sqlite3.Error as e:
            logger.error("Clear expired error: %s", e)
            return 0

    def get_stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        now = time.time()
        try:
            with self._lock:
                cursor = self.conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM cache_entries")
                entries = cursor.fetchone()["count"]
                cursor.execute(
                    "SELECT COUNT(*) AS count FROM cache_entries WHERE expires_at <= ?", (now,)
                )
                expired_entries = cursor.fetchone()["count"]
        except sqlite3.Error as e:
            logger.warning("Stats query error: %s", e)
            entries = expired_entries = 0

        return {
            "entries": entries,
            "expired_entries": expired_entries,
            "hits": self.stats["hits"],
            "misses": self.stats["misses"],
            "writes": self.stats["writes"],
            "evictions": self.stats["evictions"],
        }

    def close_sync(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("SQLiteCacheStore closed")
