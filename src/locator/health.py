"""Concurrent provider health probes."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .providers import ProviderRegistry, RegisteredProvider


@dataclass
class HealthSnapshot:
    checked_at: float
    providers: Dict[str, bool] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def any_healthy(self) -> bool:
        return any(self.providers.values())


async def _probe(entry: RegisteredProvider) -> Tuple[str, bool, Optional[str]]:
    try:
        alive = await entry.provider.is_healthy()
        return entry.name, bool(alive), None if alive else "probe returned false"
    except Exception as exc:  # noqa: BLE001
        return entry.name, False, str(exc) or type(exc).__name__


async def probe_providers(registry: ProviderRegistry) -> HealthSnapshot:
    """
    Probe every registered provider at once and join the outcomes.

    A probe that raises is recorded as unhealthy; it never cancels or hides
    the other probes. The snapshot has exactly one entry per provider.
    """
    outcomes = await asyncio.gather(*(_probe(entry) for entry in registry))
    snapshot = HealthSnapshot(checked_at=time.time())
    for name, ok, error in outcomes:
        snapshot.providers[name] = ok
        if error is not None:
            snapshot.errors[name] = error
    return snapshot
