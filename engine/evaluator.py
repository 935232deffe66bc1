"""
Trigger/recovery evaluator: compares burn rates against per-window thresholds and drives the per-service lifecycle (idle, triggered, monitoring, recovering) with hysteresis.

Evaluation is split in two steps. ``evaluate`` is a pure classification of
the current burn rates against the service's state; ``commit`` then applies
the resulting lifecycle change, so the scheduler can run the action
controller in between and still commit a single transition per tick.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from config import settings
from engine.enums import GuardLifecycle, Severity
from engine.profiles import ServiceProfile
from engine.registry import ServiceGuardState
from engine.slo.burn import BurnRateResult

log = logging.getLogger(__name__)


class Verdict(str, Enum):
    none = "none"
    trigger = "trigger"
    escalate = "escalate"
    hold = "hold"
    early_warning = "early_warning"
    recovering = "recovering"
    recover = "recover"


@dataclass(frozen=True)
class Evaluation:
    service: str
    verdict: Verdict
    results: Tuple[BurnRateResult, ...]
    crossed: Tuple[str, ...] = ()
    severity: Optional[Severity] = None
    warning: Optional[BurnRateResult] = None
    stable_for: float = 0.0
    timed_out: bool = False

    @property
    def windows(self) -> dict:
        return {
            r.window: {"availability_pct": round(r.availability_pct, 4), "burn_rate": round(r.burn_rate, 4)}
            for r in self.results
        }


def classify_severity(crossed: Sequence[str], profile: ServiceProfile) -> Severity:
    """Classify a crossing by which detectors fired.

    The two shortest windows are the fast-burn detectors (high); any other
    window short of the longest is mid-length (medium); the longest alone is
    low.
    """
    labels = [w.label for w in profile.windows]
    fast = set(labels[:2])
    slow = labels[-1] if len(labels) > 2 else None
    hit = set(crossed)
    if hit & fast:
        return Severity.high
    if hit - {slow}:
        return Severity.medium
    return Severity.low


class TriggerEvaluator:
    def __init__(
        self,
        early_warning_ratio: Optional[float] = None,
        recovering_fraction: Optional[float] = None,
    ) -> None:
        self.early_warning_ratio = float(
            settings.guard_early_warning_ratio if early_warning_ratio is None else early_warning_ratio
        )
        self.recovering_fraction = float(
            settings.guard_recovering_fraction if recovering_fraction is None else recovering_fraction
        )

    def evaluate(
        self,
        state: ServiceGuardState,
        profile: ServiceProfile,
        results: Sequence[BurnRateResult],
        now: float,
    ) -> Evaluation:
        results = tuple(results)
        crossed = tuple(r.window for r in results if r.crossed)

        if not state.in_incident:
            if crossed:
                return Evaluation(profile.service, Verdict.trigger, results, crossed,
                                  severity=classify_severity(crossed, profile))
            warning = self._early_warning(results)
            if warning is not None and not state.warning_active:
                return Evaluation(profile.service, Verdict.early_warning, results, warning=warning)
            return Evaluation(profile.service, Verdict.none, results, warning=warning)

        timed_out = (
            state.last_trigger is not None
            and not state.timeout_alerted
            and now - state.last_trigger >= profile.recovery_timeout_seconds
        )

        if crossed:
            severity = classify_severity(crossed, profile)
            current = state.severity or Severity.low
            verdict = Verdict.escalate if severity.weight() > current.weight() else Verdict.hold
            return Evaluation(profile.service, verdict, results, crossed, severity=severity, timed_out=timed_out)

        anchor = state.stable_since if state.stable_since is not None else state.last_trigger
        stable_for = max(0.0, now - anchor) if anchor is not None else 0.0
        if stable_for >= profile.stable_after_seconds:
            return Evaluation(profile.service, Verdict.recover, results, stable_for=stable_for)
        if (
            state.lifecycle is GuardLifecycle.monitoring
            and stable_for >= profile.stable_after_seconds * self.recovering_fraction
        ):
            return Evaluation(profile.service, Verdict.recovering, results, stable_for=stable_for, timed_out=timed_out)
        return Evaluation(profile.service, Verdict.none, results, stable_for=stable_for, timed_out=timed_out)

    def commit(
        self,
        state: ServiceGuardState,
        evaluation: Evaluation,
        now: float,
    ) -> Optional[Tuple[GuardLifecycle, GuardLifecycle]]:
        """Apply the evaluation to ``state``; returns ``(old, new)`` when the lifecycle moved."""
        before = state.lifecycle
        verdict = evaluation.verdict

        if verdict is Verdict.trigger:
            state.lifecycle = GuardLifecycle.triggered
            state.last_trigger = now
            state.stable_since = now
            state.severity = evaluation.severity
            state.warning_active = False
            state.timeout_alerted = False
            state.trigger_count += 1
        elif verdict is Verdict.escalate:
            state.lifecycle = GuardLifecycle.monitoring
            state.last_trigger = now
            state.stable_since = now
            state.severity = evaluation.severity
            state.trigger_count += 1
        elif verdict is Verdict.hold:
            state.lifecycle = GuardLifecycle.monitoring
            state.stable_since = now
        elif verdict is Verdict.recovering:
            state.lifecycle = GuardLifecycle.recovering
        elif verdict is Verdict.recover:
            state.lifecycle = GuardLifecycle.idle
            state.last_recovery = now
            state.stable_since = None
            state.severity = None
            state.recovery_count += 1
        elif verdict is Verdict.early_warning:
            state.warning_active = True
            state.early_warning_count += 1
        elif not state.in_incident:
            state.warning_active = evaluation.warning is not None

        if evaluation.timed_out:
            state.timeout_alerted = True

        state.last_eval = now
        state.last_results = evaluation.results

        if state.lifecycle is not before:
            log.info("Service %s state: %s -> %s", state.service, before.value, state.lifecycle.value)
            return before, state.lifecycle
        return None

    def mitigated(self, state: ServiceGuardState) -> None:
        """Close a trigger once the controller has handled the plan: triggered -> monitoring."""
        if state.lifecycle is GuardLifecycle.triggered:
            state.lifecycle = GuardLifecycle.monitoring
            log.info("Service %s state: %s -> %s", state.service,
                     GuardLifecycle.triggered.value, GuardLifecycle.monitoring.value)

    def _early_warning(self, results: Tuple[BurnRateResult, ...]) -> Optional[BurnRateResult]:
        if not results:
            return None
        shortest = results[0]
        if shortest.burn_rate > 0 and shortest.burn_rate >= shortest.threshold * self.early_warning_ratio:
            return shortest
        return None
