"""
CacheIsKing Cache Layer
Deterministic location keys + two-tier (local/backing) caching
"""

from .hybrid import HybridCache
from .key_generator import CacheKeyGenerator, geocode_key, reverse_geocode_key, route_key
from .sqlite_store import SQLiteCacheStore
from .stores import CacheBackendError, CacheEntry, CacheStore, MemoryCacheStore, RedisCacheStore

__all__ = [
    'HybridCache', 'CacheKeyGenerator',
    'geocode_key', 'reverse_geocode_key', 'route_key',
    'CacheStore', 'CacheEntry', 'CacheBackendError',
    'MemoryCacheStore', 'RedisCacheStore', 'SQLiteCacheStore',
]
