"""
Test Suite for Guard Self-Metrics

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import pytest

from engine.metrics import MetricsRecorder

NOW = 1_700_000_000.0


def test_eval_latency_covers_only_the_emitted_interval():
    recorder = MetricsRecorder(history=100)
    for ms in (100.0, 100.0, 100.0):
        recorder.observe_eval(ms)
    first = recorder.snapshot(NOW, 0, {})
    assert first.evaluated == 3
    assert first.avg_eval_ms == pytest.approx(100.0)

    recorder.observe_eval(2.0)
    recorder.observe_eval(4.0)
    second = recorder.snapshot(NOW + 10, 0, {})
    assert second.evaluated == 2
    assert second.avg_eval_ms == pytest.approx(3.0)
    assert second.p95_eval_ms <= 4.0

    empty = recorder.snapshot(NOW + 20, 0, {})
    assert empty.evaluated == 0
    assert empty.avg_eval_ms == 0.0
    assert empty.p95_eval_ms == 0.0


def test_totals_keep_rolling_latency_history():
    recorder = MetricsRecorder(history=2)
    for ms in (50.0, 10.0, 20.0):
        recorder.observe_eval(ms)
    recorder.snapshot(NOW, 0, {})
    totals = recorder.totals()
    assert totals["evaluated"] == 3
    assert totals["avg_eval_ms"] == pytest.approx(15.0)


def test_dropped_samples_are_reported_as_interval_delta():
    recorder = MetricsRecorder()
    assert recorder.snapshot(NOW, 4, {}).dropped_samples == 4
    assert recorder.snapshot(NOW + 10, 6, {"gate": 1}).dropped_samples == 2
    assert recorder.due(NOW + 15, 10) is False
    assert recorder.due(NOW + 20, 10) is True
