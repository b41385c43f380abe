"""
CacheIsKing Location Layer

Provides:
- Data model (Coordinates, GeocodeResult, RouteResult)
- Provider contract + ordered registry (LocationProvider, ProviderRegistry)
- Cache-first provider cascade (LocationService)
- Vendor clients (HereProvider, TomTomProvider)
- Config loading and explicit wiring (load_config, build_location_service)
"""

from .bootstrap import build_location_service
from .config import LocatorConfig, load_config
from .health import HealthSnapshot
from .models import NO_PROVIDER, Coordinates, GeocodeResult, RouteResult, ValidationError
from .providers import (
    LocationProvider, ProviderDescriptor, ProviderError,
    ProviderRegistry, RegisteredProvider, describe,
)
from .service import AttemptStatus, LocationService, ProviderAttempt
from .vendors import HereProvider, TomTomProvider

__all__ = [
    'Coordinates', 'GeocodeResult', 'RouteResult', 'NO_PROVIDER', 'ValidationError',
    'LocationProvider', 'ProviderDescriptor', 'ProviderError',
    'ProviderRegistry', 'RegisteredProvider', 'describe',
    'LocationService', 'AttemptStatus', 'ProviderAttempt', 'HealthSnapshot',
    'HereProvider', 'TomTomProvider',
    'LocatorConfig', 'load_config', 'build_location_service',
]
