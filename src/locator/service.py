"""
Location Service: Cache-First Provider Cascade

Takes a geocode / reverse-geocode / route query and answers it through:

  Two-tier cache   → local, then backing (hit returns unchanged)
  Providers        → registry order, one at a time, first usable result wins
  Everything fails → empty result with provider_name "None"

Results from providers that allow caching are written to both tiers with the
provider's TTL. Providers that prohibit caching still answer, they are just
never written. Provider failures are absorbed; only cancellation and
programming errors leave this module.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from geocache.hybrid import HybridCache
from geocache.key_generator import geocode_key, reverse_geocode_key, route_key

from .health import HealthSnapshot, probe_providers
from .models import NO_PROVIDER, Coordinates, GeocodeResult, RouteResult
from .observability import LookupLogRecord
from .providers import LocationProvider, ProviderRegistry, RegisteredProvider

logger = logging.getLogger(__name__)


class AttemptStatus(str, Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    ERROR = "error"


@dataclass(frozen=True)
class ProviderAttempt:
    provider: str
    status: AttemptStatus
    result: Optional[Any] = None
    error: Optional[str] = None
    latency_ms: float = 0.0

    def to_log(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 3),
            "error": self.error,
        }


ProviderCall = Callable[[LocationProvider], Awaitable[Any]]


class LocationService:
    """
    Orchestrates cache lookup, ordered provider fallback and cache population.

    1. Derive the cache key
    2. Cache hit → return the cached value as-is
    3. Miss → try providers strictly in registry order
    4. First usable result → cache it if the provider allows, return it
    5. Nothing usable → sentinel result, provider_name "None" (never raises)
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: HybridCache,
        decision_log: bool = True,
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> None:
        self._registry = registry
        self._cache = cache
        self._decision_log = decision_log
        self._on_close = on_close

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def cache(self) -> HybridCache:
        return self._cache

    async def geocode(self, address: str) -> GeocodeResult:
        return await self._lookup(
            operation="geocode",
            key=geocode_key(address),
            model=GeocodeResult,
            call=lambda provider: provider.geocode(address),
            usable=lambda result: result.has_coordinates,
            sentinel=lambda: GeocodeResult(address=address, provider_name=NO_PROVIDER),
            subject=address,
        )

    async def reverse_geocode(self, coordinates: Coordinates) -> GeocodeResult:
        return await self._lookup(
            operation="reverse_geocode",
            key=reverse_geocode_key(coordinates),
            model=GeocodeResult,
            call=lambda provider: provider.reverse_geocode(coordinates),
            usable=lambda result: result.has_formatted_address,
            sentinel=lambda: GeocodeResult(coordinates=coordinates, provider_name=NO_PROVIDER),
            subject=str(coordinates),
        )

    async def route(self, origin: Coordinates, destination: Coordinates) -> RouteResult:
        return await self._lookup(
            operation="route",
            key=route_key(origin, destination),
            model=RouteResult,
            call=lambda provider: provider.route(origin, destination),
            usable=lambda result: result.has_distance,
            sentinel=lambda: RouteResult(
                origin=origin, destination=destination, provider_name=NO_PROVIDER
            ),
            subject=f"{origin} to {destination}",
        )

    async def get_providers_health(self) -> Dict[str, bool]:
        snapshot = await self.get_health_snapshot()
        return dict(snapshot.providers)

    async def get_health_snapshot(self) -> HealthSnapshot:
        snapshot = await probe_providers(self._registry)
        for name, error in snapshot.errors.items():
            logger.warning("Provider %s unhealthy: %s", name, error)
        return snapshot

    async def aclose(self) -> None:
        await self._cache.close()
        await self._registry.aclose()
        if self._on_close is not None:
            await self._on_close()

    async def __aenter__(self) -> "LocationService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ── Private methods ──

    async def _lookup(
        self,
        operation: str,
        key: str,
        model: Type[Any],
        call: ProviderCall,
        usable: Callable[[Any], bool],
        sentinel: Callable[[], Any],
        subject: str,
    ) -> Any:
        started = time.perf_counter()

        cached = await self._cache.get(key, model)
        if cached is not None:
            logger.debug("%s cache hit for %s", operation, subject)
            self._log_decision(operation, key, "cache_hit", cached.provider_name, False, [], started)
            return cached

        attempts: List[ProviderAttempt] = []
        for entry in self._registry:
            attempt = await self._attempt(entry, operation, call, usable, subject)
            attempts.append(attempt)
            if attempt.status is not AttemptStatus.SUCCESS:
                continue

            result = attempt.result
            wrote = False
            if entry.descriptor.allows_caching:
                await self._cache.set(key, result, entry.descriptor.cache_ttl)
                wrote = True
                logger.debug("Cached %s result from %s", operation, entry.name)
            self._log_decision(operation, key, "provider", entry.name, wrote, attempts, started)
            return result

        logger.error("All providers failed for %s: %s", operation, subject)
        self._log_decision(operation, key, "exhausted", NO_PROVIDER, False, attempts, started)
        return sentinel()

    async def _attempt(
        self,
        entry: RegisteredProvider,
        operation: str,
        call: ProviderCall,
        usable: Callable[[Any], bool],
        subject: str,
    ) -> ProviderAttempt:
        logger.debug("Attempting %s with provider: %s", operation, entry.name)
        started = time.perf_counter()
        try:
            result = await call(entry.provider)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Provider %s failed for %s: %s (%s)", entry.name, operation, subject, exc)
            return ProviderAttempt(
                provider=entry.name,
                status=AttemptStatus.ERROR,
                error=str(exc) or type(exc).__name__,
                latency_ms=_elapsed_ms(started),
            )

        latency = _elapsed_ms(started)
        if result is None or not usable(result):
            logger.info("Provider %s returned no %s result for %s", entry.name, operation, subject)
            return ProviderAttempt(provider=entry.name, status=AttemptStatus.EMPTY, latency_ms=latency)

        if result.provider_name != entry.name:
            result = replace(result, provider_name=entry.name)
        return ProviderAttempt(
            provider=entry.name, status=AttemptStatus.SUCCESS, result=result, latency_ms=latency
        )

    def _log_decision(
        self,
        operation: str,
        key: str,
        outcome: str,
        provider: str,
        cached: bool,
        attempts: List[ProviderAttempt],
        started: float,
    ) -> None:
        if not self._decision_log:
            return
        record = LookupLogRecord(
            request_id=uuid.uuid4().hex,
            operation=operation,
            cache_key=key,
            outcome=outcome,
            provider=provider,
            cached=cached,
            attempts=[attempt.to_log() for attempt in attempts],
            latency_ms_total=round(_elapsed_ms(started), 3),
        )
        logger.info("lookup %s", json.dumps(record.to_dict()))


def _elapsed_ms(started: float) -> float:
    return max((time.perf_counter() - started) * 1000.0, 0.0)
