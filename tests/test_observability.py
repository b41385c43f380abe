import pytest

from locator.observability import LookupLogRecord


def test_lookup_log_schema_roundtrip():
    record = LookupLogRecord(
        request_id="req-1",
        operation="geocode",
        cache_key="geocode:0123456789abcdef",
        outcome="provider",
        provider="HERE",
        cached=True,
        latency_ms_total=12.3,
        attempts=[
            {"provider": "TomTom", "status": "error", "latency_ms": 4.0, "error": "timeout"},
            {"provider": "HERE", "status": "success", "latency_ms": 8.1, "error": None},
        ],
    )

    payload = record.to_dict()

    assert payload["outcome"] == "provider"
    assert payload["attempts"][0]["status"] == "error"


def test_invalid_outcome_rejected():
    record = LookupLogRecord(
        request_id="req-2",
        operation="geocode",
        cache_key="geocode:0123456789abcdef",
        outcome="maybe",
        provider="HERE",
        cached=False,
        latency_ms_total=1.0,
    )

    with pytest.raises(ValueError, match="validation failed"):
        record.to_dict()
