"""
Cache stores. Each one is a single tier of the two-tier cache.

Contract (all coroutines):
- get(key) → bytes | None
- get_entry(key) → CacheEntry | None   (value + absolute expiry)
- set(key, value, ttl_seconds)
- remove(key)                         (absent keys are fine)
- exists(key) → bool

MemoryCacheStore is the process-local tier. RedisCacheStore is the shared
backing tier. SQLiteCacheStore (sqlite_store.py) is a single-host backing tier.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class CacheBackendError(Exception):
    """A cache tier could not be read or written (unreachable, I/O fault)."""


@dataclass(frozen=True)
class CacheEntry:
    value: bytes
    expires_at: Optional[float] = None

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        return (time.time() if now is None else now) >= self.expires_at

    def remaining_ttl(self, now: Optional[float] = None) -> Optional[float]:
        """Seconds left before expiry, or None for entries that never expire."""
        if self.expires_at is None:
            return None
        return max(self.expires_at - (time.time() if now is None else now), 0.0)


class CacheStore(ABC):
    @abstractmethod
    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        ...

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl_seconds: float) -> None:
        ...

    @abstractmethod
    async def remove(self, key: str) -> None:
        ...

    async def get(self, key: str) -> Optional[bytes]:
        entry = await self.get_entry(key)
        return entry.value if entry else None

    async def exists(self, key: str) -> bool:
        return await self.get_entry(key) is not None

    async def close(self) -> None:
        return None


def _check_ttl(ttl_seconds: float) -> None:
    if ttl_seconds <= 0:
        raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")


class MemoryCacheStore(CacheStore):
    """
    In-process LRU store with per-entry absolute expiry.

    Expiry is lazy: entries are dropped when read after their deadline, or by
    purge_expired(). Oldest entries are evicted once max_entries is reached.
    """

    def __init__(self, max_entries: int = 10_000) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry

    async def set(self, key: str, value: bytes, ttl_seconds: float) -> None:
        _check_ttl(ttl_seconds)
        self._entries[key] = CacheEntry(value=value, expires_at=time.time() + ttl_seconds)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted %s from memory store", evicted)

    async def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def purge_expired(self) -> int:
        now = time.time()
        stale = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()


class RedisCacheStore(CacheStore):
    """
    Shared backing tier on Redis.

    Keys are namespaced with `prefix` so several deployments can share one
    Redis. TTLs are written in milliseconds (SET ... PX).
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        prefix: str = "cacheking:",
        client: Optional[aioredis.Redis] = None,
    ) -> None:
        self._prefix = prefix
        self._client = client if client is not None else aioredis.from_url(url)
        logger.info("RedisCacheStore initialized (prefix=%s)", prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        full_key = self._key(key)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                value, pttl = await pipe.get(full_key).pttl(full_key).execute()
        except (RedisError, OSError) as e:
            raise CacheBackendError(f"redis get failed for {key}: {e}") from e

        if value is None or pttl == -2:
            return None
        expires_at = None if pttl < 0 else time.time() + pttl / 1000.0
        if isinstance(value, str):
            value = value.encode("utf-8")
        return CacheEntry(value=value, expires_at=expires_at)

    async def set(self, key: str, value: bytes, ttl_seconds: float) -> None:
        _check_ttl(ttl_seconds)
        try:
            await self._client.set(self._key(key), value, px=max(int(ttl_seconds * 1000), 1))
        except (RedisError, OSError) as e:
            raise CacheBackendError(f"redis set failed for {key}: {e}") from e

    async def remove(self, key: str) -> None:
        try:
            await self._client.delete(self._key(key))
        except (RedisError, OSError) as e:
            raise CacheBackendError(f"redis delete failed for {key}: {e}") from e

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self._client.exists(self._key(key)))
        except (RedisError, OSError) as e:
            raise CacheBackendError(f"redis exists failed for {key}: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("RedisCacheStore closed")
