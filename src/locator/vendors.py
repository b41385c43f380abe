#!/usr/bin/env python3
"""
Vendor Clients: HERE and TomTom

HERE:   caching allowed, 6 hour TTL
TomTom: terms of service prohibit server-side caching

Both normalize vendor JSON into GeocodeResult / RouteResult, raise
ProviderError on transport, status or parse failures, and return an empty
result when the vendor has no match. Health = geocoding "London".
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from .models import Coordinates, GeocodeResult, RouteResult
from .providers import LocationProvider, ProviderError

logger = logging.getLogger(__name__)

HERE_GEOCODE_BASE = "https://geocode.search.hereapi.com/v1"
HERE_ROUTER_BASE = "https://router.hereapi.com/v8"
HERE_CACHE_TTL = 6 * 3600

TOMTOM_BASE = "https://api.tomtom.com"

DEFAULT_TIMEOUT = 10
HEALTH_PROBE_ADDRESS = "London"


class HttpLocationProvider(LocationProvider):
    """Shared HTTP plumbing: one AsyncClient, JSON fetch, error mapping."""

    api_key_param = "apiKey"

    def __init__(
        self,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if not api_key:
            raise ValueError(f"{self.name} requires an API key")
        self._api_key = api_key
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout)

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query = dict(params or {})
        query[self.api_key_param] = self._api_key
        try:
            response = await self._client.get(url, params=query, timeout=self._timeout)
            response.raise_for_status()
            return response.json()
        # error text only carries the status / exception type, the URL holds the API key
        except httpx.HTTPStatusError as e:
            raise ProviderError(self.name, f"HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise ProviderError(self.name, "timeout") from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"request failed ({type(e).__name__})") from e
        except ValueError as e:
            raise ProviderError(self.name, "invalid JSON response") from e

    def _parse_error(self, operation: str, exc: Exception) -> ProviderError:
        return ProviderError(self.name, f"unexpected {operation} payload ({type(exc).__name__}: {exc})")

    async def is_healthy(self) -> bool:
        try:
            await self.geocode(HEALTH_PROBE_ADDRESS)
            return True
        except ProviderError as e:
            logger.debug("%s health probe failed: %s", self.name, e)
            return False

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class HereProvider(HttpLocationProvider):
    api_key_param = "apiKey"

    @property
    def name(self) -> str:
        return "HERE"

    @property
    def allows_caching(self) -> bool:
        return True

    @property
    def cache_ttl(self) -> Optional[float]:
        return HERE_CACHE_TTL

    async def geocode(self, address: str) -> GeocodeResult:
        data = await self._get_json(f"{HERE_GEOCODE_BASE}/geocode", {"q": address})
        try:
            items = data.get("items") or []
            if not items:
                return GeocodeResult(address=address, provider_name=self.name)
            item = items[0]
            position = item["position"]
            return GeocodeResult(
                address=address,
                coordinates=Coordinates(float(position["lat"]), float(position["lng"])),
                confidence=float((item.get("scoring") or {}).get("queryScore", 0.0)),
                formatted_address=item.get("title", ""),
                **self._address_fields(item.get("address") or {}),
                provider_name=self.name,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise self._parse_error("geocode", e) from e

    async def reverse_geocode(self, coordinates: Coordinates) -> GeocodeResult:
        data = await self._get_json(
            f"{HERE_GEOCODE_BASE}/revgeocode",
            {"at": f"{coordinates.latitude},{coordinates.longitude}"},
        )
        try:
            items = data.get("items") or []
            if not items:
                return GeocodeResult(coordinates=coordinates, provider_name=self.name)
            item = items[0]
            return GeocodeResult(
                coordinates=coordinates,
                formatted_address=item.get("title", ""),
                **self._address_fields(item.get("address") or {}),
                provider_name=self.name,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise self._parse_error("reverse geocode", e) from e

    async def route(self, origin: Coordinates, destination: Coordinates) -> RouteResult:
        data = await self._get_json(
            f"{HERE_ROUTER_BASE}/routes",
            {
                "transportMode": "car",
                "origin": f"{origin.latitude},{origin.longitude}",
                "destination": f"{destination.latitude},{destination.longitude}",
                "return": "summary",
            },
        )
        try:
            routes = data.get("routes") or []
            if not routes:
                return RouteResult(origin=origin, destination=destination, provider_name=self.name)
            summary = routes[0]["sections"][0]["summary"]
            return RouteResult(
                origin=origin,
                destination=destination,
                distance_meters=float(summary["length"]),
                duration_seconds=float(summary["duration"]),
                provider_name=self.name,
            )
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise self._parse_error("route", e) from e

    @staticmethod
    def _address_fields(address: Dict[str, Any]) -> Dict[str, str]:
        return {
            "country_code": address.get("countryCode", ""),
            "postal_code": address.get("postalCode", ""),
            "city": address.get("city", ""),
            "state": address.get("state", ""),
        }


class TomTomProvider(HttpLocationProvider):
    api_key_param = "key"

    @property
    def name(self) -> str:
        return "TomTom"

    @property
    def allows_caching(self) -> bool:
        return False  # TomTom prohibits server-side caching

    async def geocode(self, address: str) -> GeocodeResult:
        data = await self._get_json(f"{TOMTOM_BASE}/search/2/geocode/{quote(address, safe='')}.json")
        try:
            results = data.get("results") or []
            if not results:
                return GeocodeResult(address=address, provider_name=self.name)
            result = results[0]
            position = result["position"]
            return GeocodeResult(
                address=address,
                coordinates=Coordinates(float(position["lat"]), float(position["lon"])),
                confidence=float(result.get("score", 0.0)),
                **self._address_fields(result.get("address") or {}),
                provider_name=self.name,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise self._parse_error("geocode", e) from e

    async def reverse_geocode(self, coordinates: Coordinates) -> GeocodeResult:
        data = await self._get_json(
            f"{TOMTOM_BASE}/search/2/reverseGeocode/{coordinates.latitude},{coordinates.longitude}.json"
        )
        try:
            # reverse geocode answers under "addresses", search-style responses under "results"
            results = data.get("addresses") or data.get("results") or []
            if not results:
                return GeocodeResult(coordinates=coordinates, provider_name=self.name)
            return GeocodeResult(
                coordinates=coordinates,
                **self._address_fields(results[0].get("address") or {}),
                provider_name=self.name,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise self._parse_error("reverse geocode", e) from e

    async def route(self, origin: Coordinates, destination: Coordinates) -> RouteResult:
        locations = (
            f"{origin.latitude},{origin.longitude}:{destination.latitude},{destination.longitude}"
        )
        data = await self._get_json(f"{TOMTOM_BASE}/routing/1/calculateRoute/{locations}/json")
        try:
            routes = data.get("routes") or []
            if not routes:
                return RouteResult(origin=origin, destination=destination, provider_name=self.name)
            summary = routes[0]["summary"]
            return RouteResult(
                origin=origin,
                destination=destination,
                distance_meters=float(summary["lengthInMeters"]),
                duration_seconds=float(summary["travelTimeInSeconds"]),
                provider_name=self.name,
            )
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise self._parse_error("route", e) from e

    @staticmethod
    def _address_fields(address: Dict[str, Any]) -> Dict[str, str]:
        return {
            "formatted_address": address.get("freeformAddress", ""),
            "country_code": address.get("countryCode", ""),
            "postal_code": address.get("postalCode", ""),
            "city": address.get("municipality", ""),
            "state": address.get("countrySubdivision", ""),
        }


VENDORS = {
    "here": HereProvider,
    "tomtom": TomTomProvider,
}
