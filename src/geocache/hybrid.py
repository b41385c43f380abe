"""
Two-tier cache: fast local tier in front of a shared backing tier.

Read-through:  local → backing (populates local with a capped TTL) → miss
Write-through: local gets min(ttl, local cap), backing gets the full ttl

The tiers are written independently. A failing tier is logged and skipped;
the caller's request never fails because of the cache.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Protocol, Type, TypeVar

from .stores import CacheBackendError, CacheStore

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_TTL_CAP = 300.0      # 5 minutes
DEFAULT_TTL = 3600.0               # 1 hour


class Cacheable(Protocol):
    def to_dict(self) -> Dict[str, Any]:
        ...

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Any:
        ...


T = TypeVar("T", bound=Cacheable)


def encode(value: Cacheable) -> bytes:
    return json.dumps(value.to_dict(), separators=(",", ":")).encode("utf-8")


def decode(raw: bytes, model: Type[T]) -> T:
    return model.from_dict(json.loads(raw.decode("utf-8")))


class HybridCache:
    """
    Local + backing cache with per-tier TTLs and graceful degradation.

    Both tiers hold the same serialized bytes, so a value read from either
    tier decodes to an equal object.
    """

    def __init__(
        self,
        local: CacheStore,
        backing: CacheStore,
        local_ttl_cap: float = DEFAULT_LOCAL_TTL_CAP,
        default_ttl: float = DEFAULT_TTL,
    ) -> None:
        if local_ttl_cap <= 0 or default_ttl <= 0:
            raise ValueError("cache TTLs must be positive")
        self.local = local
        self.backing = backing
        self.local_ttl_cap = local_ttl_cap
        self.default_ttl = default_ttl
        self.stats = {
            "local_hits": 0,
            "backing_hits": 0,
            "misses": 0,
            "writes": 0,
            "read_errors": 0,
            "write_errors": 0,
        }

    async def get(self, key: str, model: Type[T]) -> Optional[T]:
        """
        Look the key up in the local tier, then the backing tier.

        Returns:
            Decoded value or None on a miss. Backing faults and corrupt
            payloads count as misses.
        """
        try:
            raw = await self.local.get(key)
        except Exception as e:  # noqa: BLE001
            logger.warning("Local cache read failed for %s: %s", key, e)
            self.stats["read_errors"] += 1
            raw = None

        if raw is not None:
            value = self._decode(key, raw, model)
            if value is not None:
                self.stats["local_hits"] += 1
                logger.debug("Cache hit (local): %s", key)
                return value

        try:
            entry = await self.backing.get_entry(key)
        except CacheBackendError as e:
            logger.warning("Backing cache unavailable for %s, treating as miss: %s", key, e)
            self.stats["read_errors"] += 1
            entry = None

        if entry is None:
            self.stats["misses"] += 1
            logger.debug("Cache miss: %s", key)
            return None

        value = self._decode(key, entry.value, model)
        if value is None:
            self.stats["misses"] += 1
            return None

        remaining = entry.remaining_ttl()
        local_ttl = self.local_ttl_cap if remaining is None else min(remaining, self.local_ttl_cap)
        if local_ttl > 0:
            await self._write_local(key, entry.value, local_ttl)

        self.stats["backing_hits"] += 1
        logger.debug("Cache hit (backing): %s", key)
        return value

    async def set(self, key: str, value: Cacheable, ttl: Optional[float] = None) -> None:
        """Write both tiers. Never raises for tier failures."""
        effective_ttl = self.default_ttl if ttl is None else float(ttl)
        if effective_ttl <= 0:
            logger.debug("Skipping cache write for %s (ttl=%s)", key, effective_ttl)
            return

        raw = encode(value)
        local_ok = await self._write_local(key, raw, min(effective_ttl, self.local_ttl_cap))

        backing_ok = True
        try:
            await self.backing.set(key, raw, effective_ttl)
        except CacheBackendError as e:
            backing_ok = False
            self.stats["write_errors"] += 1
            logger.warning("Backing cache write failed for %s: %s", key, e)

        if local_ok or backing_ok:
            self.stats["writes"] += 1
        logger.debug("Cache set: %s (expires in %ss)", key, effective_ttl)

    async def remove(self, key: str) -> None:
        try:
            await self.local.remove(key)
        except Exception as e:  # noqa: BLE001
            logger.warning("Local cache remove failed for %s: %s", key, e)
        try:
            await self.backing.remove(key)
        except CacheBackendError as e:
            logger.warning("Backing cache remove failed for %s: %s", key, e)
        logger.debug("Cache removed: %s", key)

    async def exists(self, key: str) -> bool:
        try:
            if await self.local.exists(key):
                return True
        except Exception as e:  # noqa: BLE001
            logger.warning("Local cache exists failed for %s: %s", key, e)
        try:
            return await self.backing.exists(key)
        except CacheBackendError as e:
            logger.warning("Backing cache exists failed for %s: %s", key, e)
            return False

    def get_stats(self) -> Dict[str, Any]:
        hits = self.stats["local_hits"] + self.stats["backing_hits"]
        total = hits + self.stats["misses"]
        return {
            **self.stats,
            "hits": hits,
            "total_requests": total,
            "hit_rate_percent": round(hits / total * 100, 1) if total else 0.0,
        }

    async def close(self) -> None:
        await self.local.close()
        await self.backing.close()

    # ── Private ──

    async def _write_local(self, key: str, raw: bytes, ttl: float) -> bool:
        try:
            await self.local.set(key, raw, ttl)
            return True
        except Exception as e:  # noqa: BLE001
            self.stats["write_errors"] += 1
            logger.warning("Local cache write failed for %s: %s", key, e)
            return False

    def _decode(self, key: str, raw: bytes, model: Type[T]) -> Optional[T]:
        try:
            return decode(raw, model)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding undecodable cache entry %s: %s", key, e)
            return None
