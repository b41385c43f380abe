#!/usr/bin/env python3
"""
Unit tests for the CacheIsKing cache layer
Key derivation, store TTLs, two-tier read/write-through, degradation
"""

import asyncio
import os
import sys
import tempfile
import time
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from geocache.hybrid import HybridCache
from geocache.key_generator import CacheKeyGenerator, geocode_key, reverse_geocode_key, route_key
from geocache.sqlite_store import SQLiteCacheStore
from geocache.stores import CacheEntry, MemoryCacheStore
from locator.models import Coordinates, GeocodeResult, RouteResult

SIX_HOURS = 6 * 3600


def sample_result(provider: str = "HERE") -> GeocodeResult:
    return GeocodeResult(
        address="1 Infinite Loop",
        coordinates=Coordinates(37.331686, -122.030656),
        confidence=0.97,
        formatted_address="1 Infinite Loop, Cupertino, CA 95014",
        provider_name=provider,
    )


def advance_clock(monkeypatch, seconds: float) -> None:
    future = time.time() + seconds
    monkeypatch.setattr("time.time", lambda: future)


class TestCacheKeyGenerator:
    """Test deterministic, canonical key derivation."""

    def test_deterministic_keys(self):
        """Test: same inputs → same key."""
        assert geocode_key("1 Infinite Loop") == geocode_key("1 Infinite Loop")

    def test_address_case_and_whitespace_ignored(self):
        assert geocode_key("  1 Infinite Loop ") == geocode_key("1 INFINITE LOOP")

    def test_key_shape(self):
        key = geocode_key("1 Infinite Loop")
        prefix, digest = key.split(":")
        assert prefix == "geocode"
        assert len(digest) == 16
        assert digest == digest.lower()

    def test_coordinates_rounded_to_six_decimals(self):
        a = reverse_geocode_key(Coordinates(51.5034070, -0.1275920))
        b = reverse_geocode_key(Coordinates(51.50340701, -0.12759204))
        assert a == b

    def test_coordinate_difference_at_sixth_decimal(self):
        a = reverse_geocode_key(Coordinates(51.503407, -0.127592))
        b = reverse_geocode_key(Coordinates(51.503408, -0.127592))
        assert a != b

    def test_negative_zero_normalized(self):
        assert CacheKeyGenerator.for_reverse_geocode(-0.0000001, 10.0) == \
            CacheKeyGenerator.for_reverse_geocode(0.0, 10.0)

    def test_operations_do_not_collide(self):
        """Test: different operation → different key for the same numbers."""
        reverse = CacheKeyGenerator.for_reverse_geocode(1.0, 2.0)
        generic = CacheKeyGenerator.generate_key("geocode", "1.000000", "2.000000")
        assert reverse != generic
        assert reverse.startswith("reverse:")

    def test_route_direction_matters(self):
        a, b = Coordinates(52.52, 13.405), Coordinates(48.1351, 11.582)
        assert route_key(a, b) != route_key(b, a)
        assert route_key(a, b).startswith("route:")

    def test_none_parameter_rendered(self):
        assert CacheKeyGenerator.generate_key("x", None) == CacheKeyGenerator.generate_key("x", "null")

    def test_no_collisions_in_sample(self):
        addresses = [f"{n} Main Street, Springfield" for n in range(2000)]
        keys = {geocode_key(address) for address in addresses}
        assert len(keys) == len(addresses)


class TestMemoryCacheStore:
    """Test the local tier: TTL, LRU, removal."""

    def test_write_and_read(self):
        store = MemoryCacheStore()
        asyncio.run(store.set("k", b"value", 60))
        assert asyncio.run(store.get("k")) == b"value"
        assert asyncio.run(store.exists("k"))

    def test_expiration(self, monkeypatch):
        store = MemoryCacheStore()
        asyncio.run(store.set("k", b"value", 60))

        advance_clock(monkeypatch, 61)

        assert asyncio.run(store.get("k")) is None
        assert not asyncio.run(store.exists("k"))
        assert len(store) == 0

    def test_lru_eviction(self):
        store = MemoryCacheStore(max_entries=2)

        async def scenario():
            await store.set("a", b"1", 60)
            await store.set("b", b"2", 60)
            await store.get("a")            # a is now most recent
            await store.set("c", b"3", 60)  # evicts b
            return await store.get("a"), await store.get("b"), await store.get("c")

        assert asyncio.run(scenario()) == (b"1", None, b"3")

    def test_remove_tolerates_absence(self):
        store = MemoryCacheStore()
        asyncio.run(store.remove("missing"))
        assert not asyncio.run(store.exists("missing"))

    def test_purge_expired(self, monkeypatch):
        store = MemoryCacheStore()
        asyncio.run(store.set("short", b"1", 10))
        asyncio.run(store.set("long", b"2", 1000))

        advance_clock(monkeypatch, 11)

        assert store.purge_expired() == 1
        assert len(store) == 1

    def test_rejects_non_positive_ttl(self):
        store = MemoryCacheStore()
        with pytest.raises(ValueError):
            asyncio.run(store.set("k", b"v", 0))

    def test_entry_remaining_ttl(self):
        entry = CacheEntry(value=b"x", expires_at=1000.0)
        assert entry.remaining_ttl(now=400.0) == 600.0
        assert entry.remaining_ttl(now=2000.0) == 0.0
        assert CacheEntry(value=b"x").remaining_ttl(now=0.0) is None


class TestSQLiteCacheStore:
    """Test SQLite backing store CRUD operations."""

    @pytest.fixture
    def store(self):
        """Create temporary store for testing."""
        with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
            db_path = f.name

        store = SQLiteCacheStore(db_path)
        yield store
        store.close_sync()

        # Cleanup
        try:
            os.unlink(db_path)
        except OSError:
            pass

    def test_write_and_read(self, store):
        """Test: write entry, read it back with its expiry."""
        asyncio.run(store.set("geocode:abc", b'{"a": 1}', 120))

        entry = asyncio.run(store.get_entry("geocode:abc"))
        assert entry is not None
        assert entry.value == b'{"a": 1}'
        assert 0 < entry.remaining_ttl() <= 120

        stats = store.get_stats()
        assert stats["hits"] == 1
        assert stats["writes"] == 1

    def test_miss_tracked(self, store):
        assert asyncio.run(store.get("nope")) is None
        assert store.get_stats()["misses"] == 1

    def test_expiration(self, store, monkeypatch):
        """Test: entries expire after TTL."""
        asyncio.run(store.set("k", b"v", 60))
        assert asyncio.run(store.exists("k"))

        advance_clock(monkeypatch, 61)

        assert asyncio.run(store.get("k")) is None
        assert not asyncio.run(store.exists("k"))

    def test_clear_expired(self, store, monkeypatch):
        """Test: clear_expired() removes expired entries only."""
        asyncio.run(store.set("short", b"1", 10))
        asyncio.run(store.set("long", b"2", 1000))

        advance_clock(monkeypatch, 11)

        assert store.clear_expired() == 1
        assert asyncio.run(store.get("long")) == b"2"
        assert store.get_stats()["entries"] == 1

    def test_overwrite_replaces_entry(self, store):
        asyncio.run(store.set("k", b"old", 60))
        asyncio.run(store.set("k", b"new", 60))
        assert asyncio.run(store.get("k")) == b"new"
        assert store.get_stats()["entries"] == 1

    def test_remove(self, store):
        asyncio.run(store.set("k", b"v", 60))
        asyncio.run(store.remove("k"))
        asyncio.run(store.remove("k"))  # absent is fine
        assert asyncio.run(store.get("k")) is None

    def test_exists_does_not_count_hits(self, store):
        asyncio.run(store.set("k", b"v", 60))
        for _ in range(3):
            assert asyncio.run(store.exists("k"))
        assert not asyncio.run(store.exists("absent"))

        stats = store.get_stats()
        assert stats["hits"] == 0
        assert stats["misses"] == 0
        row = store.conn.execute("SELECT hit_count FROM cache_entries WHERE cache_key = 'k'").fetchone()
        assert row["hit_count"] == 0


class TestHybridCache:
    """Test two-tier read-through / write-through semantics."""

    def test_round_trip(self, hybrid):
        """set("geocode:9f3a", R, 6h) → get returns a value equal to R."""
        result = sample_result()
        asyncio.run(hybrid.set("geocode:9f3a", result, SIX_HOURS))
        assert asyncio.run(hybrid.get("geocode:9f3a", GeocodeResult)) == result

    def test_route_round_trip(self, hybrid):
        route = RouteResult(
            origin=Coordinates(52.52, 13.405),
            destination=Coordinates(48.1351, 11.582),
            distance_meters=584000.0,
            duration_seconds=19800.0,
            route_points=(Coordinates(50.0, 12.0),),
            provider_name="HERE",
        )
        asyncio.run(hybrid.set("route:1", route, 60))
        assert asyncio.run(hybrid.get("route:1", RouteResult)) == route

    def test_tier_ttls(self, hybrid, local_store, backing_store):
        """Local tier capped at 5 minutes, backing tier gets the full TTL."""
        asyncio.run(hybrid.set("k", sample_result(), SIX_HOURS))

        local = asyncio.run(local_store.get_entry("k"))
        backing = asyncio.run(backing_store.get_entry("k"))
        assert local.remaining_ttl() == pytest.approx(300, abs=2)
        assert backing.remaining_ttl() == pytest.approx(SIX_HOURS, abs=2)

    def test_short_ttl_not_extended_locally(self, hybrid, local_store):
        asyncio.run(hybrid.set("k", sample_result(), 30))
        local = asyncio.run(local_store.get_entry("k"))
        assert local.remaining_ttl() == pytest.approx(30, abs=2)

    def test_default_ttl_when_none(self, hybrid, backing_store):
        asyncio.run(hybrid.set("k", sample_result(), None))
        backing = asyncio.run(backing_store.get_entry("k"))
        assert backing.remaining_ttl() == pytest.approx(3600, abs=2)

    def test_backing_hit_populates_local(self, hybrid, local_store, backing_store):
        result = sample_result()
        asyncio.run(hybrid.set("k", result, SIX_HOURS))
        asyncio.run(local_store.remove("k"))

        assert asyncio.run(hybrid.get("k", GeocodeResult)) == result
        assert asyncio.run(local_store.exists("k"))
        assert hybrid.get_stats()["backing_hits"] == 1

    def test_backing_hit_local_ttl_uses_remaining(self, hybrid, local_store, backing_store, monkeypatch):
        asyncio.run(hybrid.set("k", sample_result(), 400))
        asyncio.run(local_store.remove("k"))

        advance_clock(monkeypatch, 300)  # 100s left in the backing tier

        asyncio.run(hybrid.get("k", GeocodeResult))
        local = asyncio.run(local_store.get_entry("k"))
        assert local.remaining_ttl() == pytest.approx(100, abs=2)

    def test_expiry(self, hybrid, monkeypatch):
        asyncio.run(hybrid.set("k", sample_result(), 600))

        advance_clock(monkeypatch, 601)

        assert asyncio.run(hybrid.get("k", GeocodeResult)) is None
        assert not asyncio.run(hybrid.exists("k"))

    def test_remove_both_tiers(self, hybrid, local_store, backing_store):
        asyncio.run(hybrid.set("k", sample_result(), 600))
        asyncio.run(hybrid.remove("k"))
        assert not asyncio.run(local_store.exists("k"))
        assert not asyncio.run(backing_store.exists("k"))
        asyncio.run(hybrid.remove("k"))

    def test_exists_backing_only(self, hybrid, local_store):
        asyncio.run(hybrid.set("k", sample_result(), 600))
        asyncio.run(local_store.remove("k"))
        assert asyncio.run(hybrid.exists("k"))

    def test_backing_fault_on_read_is_miss(self, local_store, broken_store):
        cache = HybridCache(local_store, broken_store)
        assert asyncio.run(cache.get("k", GeocodeResult)) is None
        assert not asyncio.run(cache.exists("k"))
        assert cache.get_stats()["read_errors"] == 1

    def test_backing_fault_on_write_keeps_local(self, local_store, broken_store):
        cache = HybridCache(local_store, broken_store)
        result = sample_result()
        asyncio.run(cache.set("k", result, 600))

        assert broken_store.attempts == 1
        assert asyncio.run(cache.get("k", GeocodeResult)) == result
        assert cache.get_stats()["write_errors"] == 1

    def test_local_fault_does_not_block_backing(self, backing_store, broken_store):
        cache = HybridCache(broken_store, backing_store)
        asyncio.run(cache.set("k", sample_result(), 600))
        assert asyncio.run(backing_store.exists("k"))

    def test_corrupt_payload_is_miss(self, hybrid, backing_store):
        asyncio.run(backing_store.set("k", b"not json", 600))
        assert asyncio.run(hybrid.get("k", GeocodeResult)) is None

    def test_stats_accuracy(self, hybrid, local_store):
        """Test: stats accurately reflect cache operations."""
        asyncio.run(hybrid.set("a", sample_result(), 600))
        asyncio.run(hybrid.get("a", GeocodeResult))   # local hit
        asyncio.run(local_store.remove("a"))
        asyncio.run(hybrid.get("a", GeocodeResult))   # backing hit
        asyncio.run(hybrid.get("b", GeocodeResult))   # miss

        stats = hybrid.get_stats()
        assert stats["writes"] == 1
        assert stats["local_hits"] == 1
        assert stats["backing_hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate_percent"] == 66.7

    def test_rejects_bad_ttls(self, local_store, backing_store):
        with pytest.raises(ValueError):
            HybridCache(local_store, backing_store, local_ttl_cap=0)


if __name__ == "__main__":
    # Run tests
    pytest.main([__file__, "-v"])
