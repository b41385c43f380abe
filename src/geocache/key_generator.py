"""
Cache Key Generation: Canonical Location Keys

Implements:
- generate_key(operation, *params) → "operation:<16 hex chars>"
- for_geocode(address) → trimmed, lower-cased address
- for_reverse_geocode(lat, lon) → coordinates at 6 decimals
- for_route(from_lat, from_lon, to_lat, to_lon) → four coordinates at 6 decimals
- Same logical query = identical key, regardless of case, whitespace or float rendering
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from locator.models import Coordinates

logger = logging.getLogger(__name__)

GEOCODE = "geocode"
REVERSE_GEOCODE = "reverse"
ROUTE = "route"

KEY_SEPARATOR = ":"
DIGEST_LENGTH = 16
COORDINATE_PRECISION = 6


def _format_coordinate(value: float) -> str:
    text = f"{float(value):.{COORDINATE_PRECISION}f}"
    # -0.0000001 and 0.0 print differently but are the same place
    if text.lstrip("-") == f"{0:.{COORDINATE_PRECISION}f}":
        return text.lstrip("-")
    return text


def _canonical_address(address: str) -> str:
    return address.strip().lower()


class CacheKeyGenerator:
    """
    Generate deterministic, compact cache keys for location operations.

    Design:
    - key = operation + ":" + SHA256(param1:param2:...)[:16]
    - The operation prefix stays readable so keys can be inspected in Redis
    - Parameters are canonicalized by the for_* helpers before hashing
    """

    @staticmethod
    def generate_key(operation: str, *parameters: Any) -> str:
        """
        Generate a hashed cache key from already-canonical parameters.

        Args:
            operation: Operation kind (geocode, reverse, route)
            *parameters: Canonical parameter values; None renders as "null"

        Returns:
            "operation:<digest>" with a 16-char lowercase hex digest
        """
        combined = KEY_SEPARATOR.join("null" if p is None else str(p) for p in parameters)
        digest = hashlib.sha256(combined.encode("utf-8")).hexdigest()[:DIGEST_LENGTH]
        key = f"{operation}{KEY_SEPARATOR}{digest}"
        logger.debug("Generated key: %s (operation=%s)", key, operation)
        return key

    @classmethod
    def for_geocode(cls, address: str) -> str:
        return cls.generate_key(GEOCODE, _canonical_address(address))

    @classmethod
    def for_reverse_geocode(cls, latitude: float, longitude: float) -> str:
        return cls.generate_key(
            REVERSE_GEOCODE, _format_coordinate(latitude), _format_coordinate(longitude)
        )

    @classmethod
    def for_route(
        cls, from_lat: float, from_lon: float, to_lat: float, to_lon: float
    ) -> str:
        return cls.generate_key(
            ROUTE,
            _format_coordinate(from_lat),
            _format_coordinate(from_lon),
            _format_coordinate(to_lat),
            _format_coordinate(to_lon),
        )


def geocode_key(address: str) -> str:
    return CacheKeyGenerator.for_geocode(address)


def reverse_geocode_key(coordinates: "Coordinates") -> str:
    return CacheKeyGenerator.for_reverse_geocode(coordinates.latitude, coordinates.longitude)


def route_key(origin: "Coordinates", destination: "Coordinates") -> str:
    return CacheKeyGenerator.for_route(
        origin.latitude, origin.longitude, destination.latitude, destination.longitude
    )
