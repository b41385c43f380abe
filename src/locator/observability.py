"""Lookup decision log schema enforcement."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

from jsonschema import Draft7Validator

OPERATIONS = ["geocode", "reverse_geocode", "route"]
OUTCOMES = ["cache_hit", "provider", "exhausted"]
ATTEMPT_STATUSES = ["success", "empty", "error"]

LOOKUP_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": [
        "request_id",
        "recorded_at",
        "operation",
        "cache_key",
        "outcome",
        "provider",
        "cached",
        "attempts",
        "latency_ms_total",
    ],
    "properties": {
        "request_id": {"type": "string"},
        "recorded_at": {"type": "string", "format": "date-time"},
        "operation": {"type": "string", "enum": OPERATIONS},
        "cache_key": {"type": "string", "minLength": 1},
        "outcome": {"type": "string", "enum": OUTCOMES},
        "provider": {"type": "string"},
        "cached": {"type": "boolean"},
        "attempts": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["provider", "status", "latency_ms"],
                "properties": {
                    "provider": {"type": "string"},
                    "status": {"type": "string", "enum": ATTEMPT_STATUSES},
                    "latency_ms": {"type": "number", "minimum": 0},
                    "error": {"type": ["string", "null"]},
                },
            },
        },
        "latency_ms_total": {"type": "number", "minimum": 0},
    },
}

_validator = Draft7Validator(LOOKUP_SCHEMA)


def validate_lookup(payload: Dict[str, Any]) -> None:
    errors = sorted(_validator.iter_errors(payload), key=lambda e: [str(p) for p in e.path])
    if errors:
        messages = ", ".join(error.message for error in errors)
        raise ValueError(f"lookup log validation failed: {messages}")


@dataclass
class LookupLogRecord:
    request_id: str
    operation: str
    cache_key: str
    outcome: str
    provider: str
    cached: bool
    latency_ms_total: float
    attempts: List[Dict[str, Any]] = field(default_factory=list)
    recorded_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "request_id": self.request_id,
            "recorded_at": self.recorded_at,
            "operation": self.operation,
            "cache_key": self.cache_key,
            "outcome": self.outcome,
            "provider": self.provider,
            "cached": self.cached,
            "attempts": list(self.attempts),
            "latency_ms_total": self.latency_ms_total,
        }
        validate_lookup(payload)
        return payload
