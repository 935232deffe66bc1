"""
Test Suite for Sample Buffers and Window Aggregation

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.enums import SampleKind
from engine.ingest import Sample
from engine.profiles import profile_from_dict
from engine.registry import GuardRegistry
from engine.window import SampleBuffer, WindowAggregator

NOW = 1_700_000_000.0


def _sample(ts, ok=True, service="svc"):
    return Sample(service=service, kind=SampleKind.probe, ok=ok, timestamp=ts)


def _profile(service="svc"):
    return profile_from_dict(
        service,
        {"slo_target_pct": 99.9, "windows": ["5m", "1h"], "thresholds": {"5m": 14.4, "1h": 6.0}},
    )


def test_buffer_counts_out_of_order_samples():
    buf = SampleBuffer("svc", max_samples=100)
    for ts, ok in [(NOW - 10, True), (NOW - 50, False), (NOW - 30, True), (NOW - 400, False)]:
        buf.append(_sample(ts, ok))
    assert buf.pending() == 4
    assert buf.compact() == 4
    assert buf.pending() == 0
    assert buf.oldest() == NOW - 400
    assert buf.newest() == NOW - 10
    assert buf.count(NOW - 300) == (3, 2)
    assert buf.count(NOW - 3600) == (4, 2)
    assert buf.count(NOW - 60, NOW - 20) == (2, 1)


def test_buffer_window_boundary_is_inclusive():
    buf = SampleBuffer("svc", max_samples=10)
    buf.append(_sample(NOW - 300))
    buf.compact()
    assert buf.count(NOW - 300) == (1, 1)
    assert buf.count(NOW - 299.5) == (0, 0)


def test_buffer_evicts_oldest_beyond_capacity():
    buf = SampleBuffer("svc", max_samples=3)
    for i in range(5):
        buf.append(_sample(NOW + i, ok=(i % 2 == 0)))
    buf.compact()
    assert len(buf) == 3
    assert buf.evicted == 2
    assert buf.oldest() == NOW + 2
    assert buf.count(0) == (3, 2)


def test_buffer_purge_keeps_cumulative_counts_consistent():
    buf = SampleBuffer("svc", max_samples=100)
    for i in range(10):
        buf.append(_sample(NOW + i, ok=(i >= 5)))
    buf.compact()
    assert buf.purge(NOW + 5) == 5
    assert buf.count(0) == (5, 5)
    buf.append(_sample(NOW + 20, ok=False))
    buf.compact()
    assert buf.count(0) == (6, 5)


def test_aggregate_unknown_service_is_empty():
    agg = WindowAggregator(GuardRegistry()).aggregate("nobody", 300.0, NOW)
    assert agg.total_samples == 0
    assert agg.ok_samples == 0
    assert agg.window == "300s"


def test_aggregate_all_follows_profile_windows():
    registry = GuardRegistry()
    profile = _profile()
    registry.register(profile)
    buf = registry.buffer("svc")
    buf.append(_sample(NOW - 100, ok=False))
    buf.append(_sample(NOW - 1000))
    buf.append(_sample(NOW - 2000))

    aggs = WindowAggregator(registry).aggregate_all(profile, NOW)
    assert [(a.window, a.total_samples, a.ok_samples) for a in aggs] == [("5m", 1, 0), ("1h", 3, 2)]
    assert aggs[0].error_samples == 1


def test_retention_follows_longest_window_plus_margin():
    registry = GuardRegistry()
    registry.register(_profile())
    aggregator = WindowAggregator(registry, retention_margin_seconds=300, default_retention_seconds=86400)
    assert aggregator.retention_seconds("svc") == 3600 + 300
    assert aggregator.retention_seconds("unregistered") == 86400 + 300


def test_purge_drops_samples_past_retention_only():
    registry = GuardRegistry()
    registry.register(_profile())
    buf = registry.buffer("svc")
    buf.append(_sample(NOW - 5000))
    buf.append(_sample(NOW - 3800))
    buf.append(_sample(NOW - 10))
    aggregator = WindowAggregator(registry, retention_margin_seconds=300)
    assert aggregator.purge_all(NOW) == 1
    assert buf.count(0) == (2, 2)


def test_aggregate_ignores_samples_after_now():
    registry = GuardRegistry()
    profile = _profile()
    registry.register(profile)
    buf = registry.buffer("svc")
    buf.append(_sample(NOW - 10))
    buf.append(_sample(NOW + 20, ok=False))
    buf.append(_sample(NOW * 1000, ok=False))

    aggs = WindowAggregator(registry).aggregate_all(profile, NOW)
    assert [(a.total_samples, a.ok_samples) for a in aggs] == [(1, 1), (1, 1)]
    later = WindowAggregator(registry).aggregate(profile.service, profile.windows[0], NOW + 20)
    assert (later.total_samples, later.ok_samples) == (2, 1)
