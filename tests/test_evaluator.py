"""
Test Suite for the Trigger/Recovery Evaluator

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import pytest

from engine.enums import GuardLifecycle, Severity
from engine.evaluator import TriggerEvaluator, Verdict, classify_severity
from engine.profiles import profile_from_dict
from engine.registry import ServiceGuardState
from engine.slo import BurnRateResult

NOW = 1_700_000_000.0
THRESHOLDS = {"5m": 14.4, "1h": 6.0, "6h": 3.0, "24h": 1.0}


@pytest.fixture
def profile():
    return profile_from_dict(
        "feed_ws",
        {
            "slo_target_pct": 99.9,
            "windows": list(THRESHOLDS),
            "thresholds": THRESHOLDS,
            "stable_after_seconds": 900,
            "recovery_timeout_seconds": 3600,
        },
    )


def _results(**burns):
    return [
        BurnRateResult("feed_ws", label, 100.0, float(burns.get(label, 0.0)), thr, total_samples=100)
        for label, thr in THRESHOLDS.items()
    ]


def _incident(evaluator, profile, start=NOW):
    state = ServiceGuardState("feed_ws")
    ev = evaluator.evaluate(state, profile, _results(**{"1h": 10}), start)
    evaluator.commit(state, ev, start)
    evaluator.mitigated(state)
    return state


@pytest.mark.parametrize(
    "crossed,expected",
    [
        (["5m"], Severity.high),
        (["1h", "6h", "24h"], Severity.high),
        (["6h"], Severity.medium),
        (["6h", "24h"], Severity.medium),
        (["24h"], Severity.low),
    ],
)
def test_classify_severity(profile, crossed, expected):
    assert classify_severity(crossed, profile) is expected


def test_two_window_profile_is_all_fast():
    short = profile_from_dict("svc", {"slo_target_pct": 99.9, "windows": ["1m", "5m"],
                                      "thresholds": {"1m": 14.4, "5m": 6.0}})
    assert classify_severity(["5m"], short) is Severity.high


def test_trigger_from_idle_then_monitoring(profile):
    evaluator = TriggerEvaluator()
    state = ServiceGuardState("feed_ws")
    ev = evaluator.evaluate(state, profile, _results(**{"1h": 10}), NOW)
    assert ev.verdict is Verdict.trigger
    assert ev.crossed == ("1h",)
    assert ev.severity is Severity.high

    assert evaluator.commit(state, ev, NOW) == (GuardLifecycle.idle, GuardLifecycle.triggered)
    assert state.last_trigger == NOW
    assert state.trigger_count == 1
    evaluator.mitigated(state)
    assert state.lifecycle is GuardLifecycle.monitoring


def test_no_trigger_below_thresholds(profile):
    evaluator = TriggerEvaluator()
    state = ServiceGuardState("feed_ws")
    ev = evaluator.evaluate(state, profile, _results(**{"5m": 2, "1h": 5.9}), NOW)
    assert ev.verdict is Verdict.none
    assert evaluator.commit(state, ev, NOW) is None
    assert state.lifecycle is GuardLifecycle.idle


def test_early_warning_is_edge_triggered(profile):
    evaluator = TriggerEvaluator(early_warning_ratio=0.5)
    state = ServiceGuardState("feed_ws")

    ev = evaluator.evaluate(state, profile, _results(**{"5m": 8}), NOW)
    assert ev.verdict is Verdict.early_warning
    assert ev.warning.window == "5m"
    evaluator.commit(state, ev, NOW)
    assert state.warning_active

    ev = evaluator.evaluate(state, profile, _results(**{"5m": 9}), NOW + 5)
    assert ev.verdict is Verdict.none
    evaluator.commit(state, ev, NOW + 5)
    assert state.warning_active

    ev = evaluator.evaluate(state, profile, _results(**{"5m": 1}), NOW + 10)
    evaluator.commit(state, ev, NOW + 10)
    assert not state.warning_active

    ev = evaluator.evaluate(state, profile, _results(**{"5m": 8}), NOW + 15)
    assert ev.verdict is Verdict.early_warning
    evaluator.commit(state, ev, NOW + 15)
    assert state.early_warning_count == 2


def test_stays_monitoring_before_half_stable(profile):
    evaluator = TriggerEvaluator(recovering_fraction=0.5)
    state = _incident(evaluator, profile)
    ev = evaluator.evaluate(state, profile, _results(), NOW + 300)
    assert ev.verdict is Verdict.none
    assert evaluator.commit(state, ev, NOW + 300) is None
    assert state.lifecycle is GuardLifecycle.monitoring


def test_recovering_then_idle(profile):
    evaluator = TriggerEvaluator(recovering_fraction=0.5)
    state = _incident(evaluator, profile)

    ev = evaluator.evaluate(state, profile, _results(), NOW + 600)
    assert ev.verdict is Verdict.recovering
    assert evaluator.commit(state, ev, NOW + 600) == (GuardLifecycle.monitoring, GuardLifecycle.recovering)

    ev = evaluator.evaluate(state, profile, _results(), NOW + 899)
    assert ev.verdict is Verdict.none
    evaluator.commit(state, ev, NOW + 899)
    assert state.lifecycle is GuardLifecycle.recovering

    ev = evaluator.evaluate(state, profile, _results(), NOW + 900)
    assert ev.verdict is Verdict.recover
    assert evaluator.commit(state, ev, NOW + 900) == (GuardLifecycle.recovering, GuardLifecycle.idle)
    assert state.last_recovery == NOW + 900
    assert state.severity is None
    assert state.recovery_count == 1


def test_recrossal_resets_stability_clock(profile):
    evaluator = TriggerEvaluator(recovering_fraction=0.5)
    state = _incident(evaluator, profile)
    ev = evaluator.evaluate(state, profile, _results(), NOW + 600)
    evaluator.commit(state, ev, NOW + 600)
    assert state.lifecycle is GuardLifecycle.recovering

    ev = evaluator.evaluate(state, profile, _results(**{"6h": 4}), NOW + 700)
    assert ev.verdict is Verdict.hold
    evaluator.commit(state, ev, NOW + 700)
    assert state.lifecycle is GuardLifecycle.monitoring
    assert state.stable_since == NOW + 700

    ev = evaluator.evaluate(state, profile, _results(), NOW + 1000)
    assert ev.verdict is Verdict.none
    ev = evaluator.evaluate(state, profile, _results(), NOW + 1600)
    assert ev.verdict is Verdict.recover


def test_higher_severity_recrossal_escalates(profile):
    evaluator = TriggerEvaluator()
    state = ServiceGuardState("feed_ws")
    ev = evaluator.evaluate(state, profile, _results(**{"24h": 2}), NOW)
    assert ev.severity is Severity.low
    evaluator.commit(state, ev, NOW)
    evaluator.mitigated(state)

    ev = evaluator.evaluate(state, profile, _results(**{"5m": 20, "24h": 2}), NOW + 60)
    assert ev.verdict is Verdict.escalate
    assert ev.severity is Severity.high
    evaluator.commit(state, ev, NOW + 60)
    assert state.severity is Severity.high
    assert state.trigger_count == 2


def test_recovery_timeout_flags_once(profile):
    evaluator = TriggerEvaluator()
    state = _incident(evaluator, profile)
    ev = evaluator.evaluate(state, profile, _results(**{"1h": 10}), NOW + 3600)
    assert ev.timed_out
    evaluator.commit(state, ev, NOW + 3600)
    ev = evaluator.evaluate(state, profile, _results(**{"1h": 10}), NOW + 3700)
    assert not ev.timed_out
