"""Explicit wiring: config → stores, registry, service. No global container."""

from __future__ import annotations

import logging
import os
from typing import Iterable, List, Optional, Tuple

import httpx

from geocache.hybrid import HybridCache
from geocache.sqlite_store import SQLiteCacheStore
from geocache.stores import CacheStore, MemoryCacheStore, RedisCacheStore

from .config import CacheConfig, LocatorConfig, ProviderConfig
from .providers import LocationProvider, ProviderDescriptor, ProviderRegistry, describe
from .service import LocationService
from .vendors import VENDORS

logger = logging.getLogger(__name__)


def build_backing_store(config: CacheConfig) -> CacheStore:
    if config.backend == "redis":
        return RedisCacheStore(url=config.redis_url, prefix=config.redis_prefix)
    if config.backend == "sqlite":
        return SQLiteCacheStore(config.sqlite_path)
    # no shared tier configured: a second in-process store stands in for it
    return MemoryCacheStore(max_entries=config.local_max_entries)


def build_cache(config: CacheConfig) -> HybridCache:
    return HybridCache(
        local=MemoryCacheStore(max_entries=config.local_max_entries),
        backing=build_backing_store(config),
        local_ttl_cap=config.local_ttl_cap_sec,
        default_ttl=config.default_ttl_sec,
    )


def check_providers(providers: Iterable[ProviderConfig]) -> None:
    """Reject unknown or repeated provider names among the enabled entries."""
    seen = set()
    for provider_config in providers:
        if not provider_config.enabled:
            continue
        name = provider_config.name.lower()
        if name not in VENDORS:
            raise ValueError(
                f"Unknown provider: {provider_config.name} (known: {', '.join(sorted(VENDORS))})"
            )
        if name in seen:
            raise ValueError(f"Provider configured twice: {provider_config.name}")
        seen.add(name)


def build_provider(config: ProviderConfig, client: httpx.AsyncClient) -> Optional[LocationProvider]:
    vendor = VENDORS.get(config.name.lower())
    if vendor is None:
        raise ValueError(f"Unknown provider: {config.name} (known: {', '.join(sorted(VENDORS))})")
    api_key = os.environ.get(config.api_key_env)
    if not api_key:
        logger.warning("Skipping provider %s: %s is not set", config.name, config.api_key_env)
        return None
    return vendor(api_key=api_key, client=client, timeout=config.timeout_sec)


def build_registry(
    providers: Iterable[ProviderConfig], client: httpx.AsyncClient
) -> ProviderRegistry:
    providers = list(providers)
    check_providers(providers)
    entries: List[Tuple[ProviderDescriptor, LocationProvider]] = []
    for provider_config in providers:
        if not provider_config.enabled:
            logger.info("Provider %s disabled by configuration", provider_config.name)
            continue
        provider = build_provider(provider_config, client)
        if provider is None:
            continue
        descriptor = describe(
            provider,
            priority=provider_config.priority,
            allows_caching=provider_config.allows_caching,
            cache_ttl=provider_config.cache_ttl_sec,
        )
        entries.append((descriptor, provider))
    if not entries:
        logger.warning("No providers registered; every lookup will return an empty result")
    return ProviderRegistry(entries)


def build_location_service(
    config: LocatorConfig, client: Optional[httpx.AsyncClient] = None
) -> LocationService:
    """
    Compose the service from configuration.

    The HTTP client is shared by all vendor clients. When one is not passed
    in, the service owns it and closes it in aclose(). Provider configuration
    is checked before the cache or the client is created.
    """
    check_providers(config.providers)
    cache = build_cache(config.cache)

    owns_client = client is None
    http_client = client if client is not None else httpx.AsyncClient()
    registry = build_registry(config.providers, http_client)
    return LocationService(
        registry=registry,
        cache=cache,
        decision_log=config.decision_log,
        on_close=http_client.aclose if owns_client else None,
    )
