"""
Test Suite for Sample Ingestion

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from datetime import datetime, timezone

import pytest

from engine.enums import CircuitState
from engine.ingest import SampleIngestor, coerce_timestamp
from engine.profiles import profile_from_dict
from engine.registry import GuardRegistry

NOW = 1_700_000_000.0


@pytest.fixture
def registry():
    reg = GuardRegistry()
    reg.register(
        profile_from_dict(
            "order_api",
            {
                "slo_target_pct": 99.95,
                "latency_ceiling_ms": 900,
                "freshness_ceiling_ms": 800,
                "windows": ["5m"],
                "thresholds": {"5m": 10.0},
            },
        )
    )
    return reg


def _counts(registry, service):
    buf = registry.buffer(service)
    buf.compact()
    return buf.count(0)


@pytest.mark.parametrize(
    "value,expected",
    [
        (NOW, NOW),
        (str(NOW), NOW),
        ("2023-11-14T22:13:20Z", NOW),
        ("2023-11-14T22:13:20+00:00", NOW),
        (datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc), NOW),
        (datetime(2023, 11, 14, 22, 13, 20), NOW),
    ],
)
def test_coerce_timestamp_accepts_common_forms(value, expected):
    assert coerce_timestamp(value) == pytest.approx(expected)


@pytest.mark.parametrize("value", [None, "", "yesterday", True, float("nan"), -5, object()])
def test_coerce_timestamp_rejects_unreadable(value):
    assert coerce_timestamp(value) is None


def test_probe_counts_ok_and_failed(registry):
    ing = SampleIngestor(registry)
    assert ing.probe_result("order_api", NOW, ok=True, status_code=200, latency_ms=100)
    assert ing.probe_result("order_api", NOW, ok=False, status_code=503)
    assert _counts(registry, "order_api") == (2, 1)
    assert ing.accepted == 2


def test_slow_probe_counts_as_failure(registry):
    ing = SampleIngestor(registry)
    ing.probe_result("order_api", NOW, ok=True, latency_ms=1500)
    assert _counts(registry, "order_api") == (1, 0)


def test_freshness_against_profile_ceiling(registry):
    ing = SampleIngestor(registry)
    ing.feed_freshness("order_api", NOW, lag_ms=200)
    ing.feed_freshness("order_api", NOW, lag_ms=800)
    assert _counts(registry, "order_api") == (2, 1)


def test_freshness_rejects_non_numeric_lag(registry):
    ing = SampleIngestor(registry)
    assert not ing.feed_freshness("order_api", NOW, lag_ms="slow")
    assert ing.dropped_by_reason() == {"invalid_lag": 1}


def test_heartbeat_and_error_events_are_single_failures(registry):
    ing = SampleIngestor(registry)
    ing.heartbeat_missed("order_api", NOW, missed_count=3, expected_interval_ms=1000)
    ing.error_event("order_api", NOW, kind="5xx", count=10)
    assert _counts(registry, "order_api") == (2, 0)


def test_circuit_state_closed_is_ok(registry):
    ing = SampleIngestor(registry)
    ing.circuit_state("order_api", NOW, CircuitState.closed)
    ing.circuit_state("order_api", NOW, "open")
    ing.circuit_state("order_api", NOW, "half_open")
    assert _counts(registry, "order_api") == (3, 1)
    assert not ing.circuit_state("order_api", NOW, "melted")
    assert ing.dropped_by_reason()["unknown_circuit_state"] == 1


def test_invalid_samples_are_dropped_and_counted(registry):
    ing = SampleIngestor(registry)
    assert not ing.ingest("order_api", "probe", True, None)
    assert not ing.ingest("order_api", "telepathy", True, NOW)
    assert not ing.ingest("", "probe", True, NOW)
    assert ing.dropped == 3
    assert ing.dropped_by_reason() == {"missing_timestamp": 1, "unknown_kind": 1, "invalid_service": 1}
    assert _counts(registry, "order_api") == (0, 0)


def test_unknown_service_gets_a_buffer(registry):
    ing = SampleIngestor(registry)
    assert ing.ingest("newcomer", "probe", False, NOW)
    assert not registry.is_registered("newcomer")
    assert _counts(registry, "newcomer") == (1, 0)


def test_future_timestamps_beyond_skew_are_dropped(registry):
    ing = SampleIngestor(registry, clock=lambda: NOW, max_clock_skew_seconds=30)
    # epoch milliseconds instead of seconds
    assert not ing.error_event("order_api", NOW * 1000)
    assert not ing.probe_result("order_api", NOW + 31, ok=True)
    assert ing.probe_result("order_api", NOW + 30, ok=True)
    assert ing.dropped_by_reason() == {"future_timestamp": 2}
    assert _counts(registry, "order_api") == (1, 1)
