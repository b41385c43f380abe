from typing import Callable, List, Optional

import pytest

from geocache.hybrid import HybridCache
from geocache.stores import CacheBackendError, CacheStore, MemoryCacheStore
from locator.models import Coordinates, GeocodeResult, RouteResult
from locator.providers import LocationProvider, ProviderError


class FakeProvider(LocationProvider):
    """Scriptable provider: returns canned results or raises, and records calls."""

    def __init__(
        self,
        name: str,
        allows_caching: bool = True,
        cache_ttl: Optional[float] = None,
        fail: bool = False,
        empty: bool = False,
        healthy: bool = True,
        health_error: Optional[Exception] = None,
    ) -> None:
        self._name = name
        self._allows_caching = allows_caching
        self._cache_ttl = cache_ttl
        self.fail = fail
        self.empty = empty
        self.healthy = healthy
        self.health_error = health_error
        self.calls: List[str] = []
        self.closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def allows_caching(self) -> bool:
        return self._allows_caching

    @property
    def cache_ttl(self) -> Optional[float]:
        return self._cache_ttl

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if self.fail:
            raise ProviderError(self._name, "boom")

    async def geocode(self, address: str) -> GeocodeResult:
        self._check("geocode")
        if self.empty:
            return GeocodeResult(address=address, provider_name=self._name)
        return GeocodeResult(
            address=address,
            coordinates=Coordinates(37.331686, -122.030656),
            confidence=0.97,
            formatted_address="1 Infinite Loop, Cupertino, CA 95014",
            country_code="US",
            city="Cupertino",
            provider_name=self._name,
        )

    async def reverse_geocode(self, coordinates: Coordinates) -> GeocodeResult:
        self._check("reverse_geocode")
        if self.empty:
            return GeocodeResult(coordinates=coordinates, provider_name=self._name)
        return GeocodeResult(
            coordinates=coordinates,
            formatted_address="10 Downing Street, London SW1A 2AA",
            country_code="GB",
            city="London",
            provider_name=self._name,
        )

    async def route(self, origin: Coordinates, destination: Coordinates) -> RouteResult:
        self._check("route")
        if self.empty:
            return RouteResult(origin=origin, destination=destination, provider_name=self._name)
        return RouteResult(
            origin=origin,
            destination=destination,
            distance_meters=5570.0,
            duration_seconds=900.0,
            provider_name=self._name,
        )

    async def is_healthy(self) -> bool:
        self.calls.append("is_healthy")
        if self.health_error is not None:
            raise self.health_error
        return self.healthy

    async def aclose(self) -> None:
        self.closed = True


class BrokenStore(CacheStore):
    """Backing tier that is unreachable for every operation."""

    def __init__(self) -> None:
        self.attempts = 0

    async def get_entry(self, key):
        self.attempts += 1
        raise CacheBackendError("connection refused")

    async def set(self, key, value, ttl_seconds):
        self.attempts += 1
        raise CacheBackendError("connection refused")

    async def remove(self, key):
        self.attempts += 1
        raise CacheBackendError("connection refused")

    async def exists(self, key):
        self.attempts += 1
        raise CacheBackendError("connection refused")


@pytest.fixture
def make_provider() -> Callable[..., FakeProvider]:
    return FakeProvider


@pytest.fixture
def broken_store() -> BrokenStore:
    return BrokenStore()


@pytest.fixture
def local_store() -> MemoryCacheStore:
    return MemoryCacheStore(max_entries=100)


@pytest.fixture
def backing_store() -> MemoryCacheStore:
    return MemoryCacheStore(max_entries=100)


@pytest.fixture
def hybrid(local_store, backing_store) -> HybridCache:
    return HybridCache(local_store, backing_store, local_ttl_cap=300, default_ttl=3600)
