"""Provider contract, capability descriptors and the ordered registry."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .models import Coordinates, GeocodeResult, RouteResult

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """A provider call failed (network, non-success status, unparseable payload)."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class LocationProvider(ABC):
    """
    One external location vendor.

    Implementations raise ProviderError on failure and return an empty
    result (no coordinates / no address / zero distance) when the vendor
    simply has no answer.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def allows_caching(self) -> bool:
        ...

    @property
    def cache_ttl(self) -> Optional[float]:
        """Preferred cache TTL in seconds, None for the cache default."""
        return None

    @abstractmethod
    async def geocode(self, address: str) -> GeocodeResult:
        ...

    @abstractmethod
    async def reverse_geocode(self, coordinates: Coordinates) -> GeocodeResult:
        ...

    @abstractmethod
    async def route(self, origin: Coordinates, destination: Coordinates) -> RouteResult:
        ...

    @abstractmethod
    async def is_healthy(self) -> bool:
        ...

    async def aclose(self) -> None:
        return None


@dataclass(frozen=True)
class ProviderDescriptor:
    name: str
    allows_caching: bool
    cache_ttl: Optional[float] = None
    priority: int = 0


def describe(
    provider: LocationProvider,
    priority: int = 0,
    allows_caching: Optional[bool] = None,
    cache_ttl: Optional[float] = None,
) -> ProviderDescriptor:
    """
    Build the descriptor for a provider from its declared policy plus config.

    Configuration may turn caching off for a provider, never on when the
    provider's terms prohibit it. A configured TTL replaces the provider's.
    """
    caching = provider.allows_caching
    if allows_caching is not None:
        if allows_caching and not provider.allows_caching:
            logger.warning(
                "Ignoring allows_caching=true for %s: provider prohibits caching", provider.name
            )
        caching = caching and allows_caching
    ttl = cache_ttl if cache_ttl is not None else provider.cache_ttl
    return ProviderDescriptor(
        name=provider.name,
        allows_caching=caching,
        cache_ttl=ttl if caching else None,
        priority=priority,
    )


@dataclass(frozen=True)
class RegisteredProvider:
    descriptor: ProviderDescriptor
    provider: LocationProvider

    @property
    def name(self) -> str:
        return self.descriptor.name


class ProviderRegistry:
    """
    Immutable, ordered set of providers.

    Higher priority is tried first; equal priorities keep the order they were
    configured in. The order is fixed here and nowhere else.
    """

    def __init__(self, entries: Iterable[Tuple[ProviderDescriptor, LocationProvider]]) -> None:
        registered: List[RegisteredProvider] = []
        seen: Dict[str, RegisteredProvider] = {}
        for descriptor, provider in entries:
            if descriptor.name in seen:
                raise ValueError(f"Duplicate provider name: {descriptor.name}")
            entry = RegisteredProvider(descriptor=descriptor, provider=provider)
            seen[descriptor.name] = entry
            registered.append(entry)

        # sorted() is stable, so ties keep configuration order
        self._entries: Tuple[RegisteredProvider, ...] = tuple(
            sorted(registered, key=lambda e: -e.descriptor.priority)
        )
        self._by_name = seen
        logger.info("Provider order: %s", ", ".join(self.names()) or "(none)")

    @classmethod
    def from_providers(cls, providers: Iterable[LocationProvider]) -> "ProviderRegistry":
        """Registry in the given order, each provider described by its own policy."""
        providers = list(providers)
        count = len(providers)
        return cls(
            (describe(provider, priority=count - index), provider)
            for index, provider in enumerate(providers)
        )

    def __iter__(self) -> Iterator[RegisteredProvider]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def names(self) -> List[str]:
        return [entry.name for entry in self._entries]

    def get(self, name: str) -> Optional[RegisteredProvider]:
        return self._by_name.get(name)

    async def aclose(self) -> None:
        for entry in self._entries:
            await entry.provider.aclose()
