"""Normalized location value objects shared by providers, cache and callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

# provider_name of the result returned when every provider came up empty
NO_PROVIDER = "None"


class ValidationError(ValueError):
    """Caller input rejected at the boundary (never raised by the orchestrator)."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(raw: Optional[str]) -> datetime:
    if not raw:
        return _utcnow()
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def __str__(self) -> str:
        return f"{self.latitude},{self.longitude}"

    def validate(self) -> "Coordinates":
        if not -90.0 <= self.latitude <= 90.0:
            raise ValidationError(f"latitude must be within [-90, 90], got {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValidationError(f"longitude must be within [-180, 180], got {self.longitude}")
        return self

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coordinates":
        return cls(latitude=float(data["latitude"]), longitude=float(data["longitude"]))


def _coords_or_none(data: Optional[Dict[str, Any]]) -> Optional[Coordinates]:
    return Coordinates.from_dict(data) if data else None


@dataclass(frozen=True)
class GeocodeResult:
    address: str = ""
    coordinates: Optional[Coordinates] = None
    confidence: float = 0.0
    formatted_address: str = ""
    country_code: str = ""
    postal_code: str = ""
    city: str = ""
    state: str = ""
    provider_name: str = ""
    response_time: datetime = field(default_factory=_utcnow)

    @property
    def has_coordinates(self) -> bool:
        return self.coordinates is not None

    @property
    def has_formatted_address(self) -> bool:
        return bool(self.formatted_address and self.formatted_address.strip())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "confidence": self.confidence,
            "formatted_address": self.formatted_address,
            "country_code": self.country_code,
            "postal_code": self.postal_code,
            "city": self.city,
            "state": self.state,
            "provider_name": self.provider_name,
            "response_time": self.response_time.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeocodeResult":
        return cls(
            address=data.get("address", ""),
            coordinates=_coords_or_none(data.get("coordinates")),
            confidence=float(data.get("confidence", 0.0)),
            formatted_address=data.get("formatted_address", ""),
            country_code=data.get("country_code", ""),
            postal_code=data.get("postal_code", ""),
            city=data.get("city", ""),
            state=data.get("state", ""),
            provider_name=data["provider_name"],
            response_time=_parse_time(data.get("response_time")),
        )


@dataclass(frozen=True)
class RouteResult:
    origin: Coordinates = field(default_factory=lambda: Coordinates(0.0, 0.0))
    destination: Coordinates = field(default_factory=lambda: Coordinates(0.0, 0.0))
    distance_meters: float = 0.0
    duration_seconds: float = 0.0
    route_points: Tuple[Coordinates, ...] = ()
    instructions: str = ""
    provider_name: str = ""
    response_time: datetime = field(default_factory=_utcnow)

    @property
    def has_distance(self) -> bool:
        return self.distance_meters > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "origin": self.origin.to_dict(),
            "destination": self.destination.to_dict(),
            "distance_meters": self.distance_meters,
            "duration_seconds": self.duration_seconds,
            "route_points": [point.to_dict() for point in self.route_points],
            "instructions": self.instructions,
            "provider_name": self.provider_name,
            "response_time": self.response_time.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RouteResult":
        points: List[Dict[str, Any]] = data.get("route_points") or []
        return cls(
            origin=Coordinates.from_dict(data["origin"]),
            destination=Coordinates.from_dict(data["destination"]),
            distance_meters=float(data.get("distance_meters", 0.0)),
            duration_seconds=float(data.get("duration_seconds", 0.0)),
            route_points=tuple(Coordinates.from_dict(p) for p in points),
            instructions=data.get("instructions", ""),
            provider_name=data["provider_name"],
            response_time=_parse_time(data.get("response_time")),
        )
