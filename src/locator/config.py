"""Configuration loader for the location service."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

CACHE_BACKENDS = ("memory", "redis", "sqlite")


@dataclass(frozen=True)
class CacheConfig:
    backend: str
    local_ttl_cap_sec: float
    default_ttl_sec: float
    local_max_entries: int
    redis_url: str
    redis_prefix: str
    sqlite_path: Optional[str]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheConfig":
        backend = str(data.get("backend", "memory")).lower()
        if backend not in CACHE_BACKENDS:
            raise ValueError(f"Unknown cache backend: {backend} (expected one of {CACHE_BACKENDS})")
        return cls(
            backend=backend,
            local_ttl_cap_sec=float(data.get("local_ttl_cap_sec", 300)),
            default_ttl_sec=float(data.get("default_ttl_sec", 3600)),
            local_max_entries=int(data.get("local_max_entries", 10000)),
            redis_url=data.get("redis_url", "redis://localhost:6379/0"),
            redis_prefix=data.get("redis_prefix", "cacheking:"),
            sqlite_path=data.get("sqlite_path"),
        )


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    enabled: bool
    priority: int
    allows_caching: Optional[bool]
    cache_ttl_sec: Optional[float]
    api_key_env: str
    timeout_sec: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderConfig":
        name = str(data["name"])
        ttl = data.get("cache_ttl_sec")
        caching = data.get("allows_caching")
        return cls(
            name=name,
            enabled=bool(data.get("enabled", True)),
            priority=int(data.get("priority", 0)),
            allows_caching=None if caching is None else bool(caching),
            cache_ttl_sec=None if ttl is None else float(ttl),
            api_key_env=data.get("api_key_env", f"{name.upper()}_API_KEY"),
            timeout_sec=float(data.get("timeout_sec", 10)),
        )


@dataclass(frozen=True)
class LocatorConfig:
    cache: CacheConfig
    providers: Tuple[ProviderConfig, ...]
    decision_log: bool

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocatorConfig":
        return cls(
            cache=CacheConfig.from_dict(data.get("cache", {})),
            providers=tuple(ProviderConfig.from_dict(p) for p in data.get("providers", [])),
            decision_log=_as_bool(data.get("decision_log", True)),
        )


ENV_MAP = {
    "cache.backend": "CACHE_BACKEND",
    "cache.redis_url": "REDIS_URL",
    "cache.redis_prefix": "REDIS_PREFIX",
    "cache.sqlite_path": "SQLITE_CACHE_PATH",
    "cache.local_ttl_cap_sec": "LOCAL_TTL_CAP_SEC",
    "cache.default_ttl_sec": "DEFAULT_TTL_SEC",
    "cache.local_max_entries": "LOCAL_MAX_ENTRIES",
    "decision_log": "DECISION_LOG",
}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = json.loads(json.dumps(config_data))  # deep copy via json

    for dotted_key, env_name in ENV_MAP.items():
        if env_name not in os.environ:
            continue
        value: Any = os.environ[env_name]
        target = merged
        parts = dotted_key.split(".")
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        last = parts[-1]
        if last == "local_max_entries":
            value = int(value)
        elif last in {"local_ttl_cap_sec", "default_ttl_sec"}:
            value = float(value)
        elif last == "decision_log":
            value = _as_bool(value)
        target[last] = value

    return merged


def load_config(config_path: str | Path = "config/locator.defaults.yml") -> LocatorConfig:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = load_yaml(path)
    data = merge_env_overrides(data)
    return LocatorConfig.from_dict(data)
