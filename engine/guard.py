"""
Guard scheduler: the control loop that aggregates windows, computes burn rates, drives the trigger/recovery lifecycle and hands mitigation plans to the action controller for every registered service.

Each tick runs one evaluation cycle off the event loop. A tick that fires
while the previous cycle is still running is skipped and counted rather than
queued, so cycles never overlap and lifecycle state has a single writer.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections import Counter
from typing import Any, Callable, Dict, List, Optional

from config import settings
from engine.actions import ActionController, ActionResult, TRIGGER_REASON, incident_key
from engine.enums import ActionOutcome, Severity
from engine.evaluator import Evaluation, TriggerEvaluator, Verdict
from engine.events import EventBus, GuardAlert, GuardEarlyWarning, GuardMetrics, GuardRecovered, GuardTriggered
from engine.ingest import SampleIngestor
from engine.metrics import MetricsRecorder
from engine.policy import PolicyState
from engine.profiles import ServiceProfile
from engine.registry import GuardRegistry, ServiceGuardState
from engine.slo import budget_status, burn_rates
from engine.window import WindowAggregator

log = logging.getLogger(__name__)

Clock = Callable[[], float]


class GuardScheduler:
    def __init__(
        self,
        registry: Optional[GuardRegistry] = None,
        bus: Optional[EventBus] = None,
        policy: Optional[PolicyState] = None,
        controller: Optional[ActionController] = None,
        evaluator: Optional[TriggerEvaluator] = None,
        metrics: Optional[MetricsRecorder] = None,
        clock: Optional[Clock] = None,
        interval_seconds: Optional[float] = None,
        metrics_interval_seconds: Optional[float] = None,
    ) -> None:
        self.registry = registry or GuardRegistry()
        self.bus = bus or EventBus()
        self.policy = policy or PolicyState()
        self.controller = controller or ActionController(self.registry, self.bus, self.policy)
        self.evaluator = evaluator or TriggerEvaluator()
        self.metrics = metrics or MetricsRecorder()
        self.clock: Clock = clock or time.time
        self.ingestor = SampleIngestor(self.registry, clock=self.clock)
        self.aggregator = WindowAggregator(self.registry)
        self.interval_seconds = float(
            settings.guard_eval_interval_seconds if interval_seconds is None else interval_seconds
        )
        self.metrics_interval_seconds = float(
            settings.guard_metrics_interval_seconds if metrics_interval_seconds is None else metrics_interval_seconds
        )
        self._loop_task: Optional[asyncio.Task] = None
        self._cycle: Optional[asyncio.Task] = None

    # -- registration ---------------------------------------------------------

    def register(self, profile: ServiceProfile) -> ServiceGuardState:
        return self.registry.register(profile)

    def unregister(self, service: str) -> bool:
        removed = self.registry.unregister(service)
        if removed:
            self.controller.ledger.forget_service(service)
        return removed

    # -- evaluation -----------------------------------------------------------

    def run_cycle(self, now: Optional[float] = None) -> List[Evaluation]:
        """Evaluate every registered service once; a failing service never stops the others."""
        now = self.clock() if now is None else float(now)
        self.aggregator.purge_all(now)

        evaluations: List[Evaluation] = []
        for service in self.registry.services():
            try:
                evaluation = self.evaluate_service(service, now)
            except Exception as exc:
                self.metrics.incr("errors")
                log.error("Evaluation failed for %s: %s", service, exc)
                self.bus.publish(
                    GuardAlert(
                        timestamp=now,
                        level="error",
                        message=f"evaluation failed for {service}: {exc}",
                        service=service,
                    )
                )
                continue
            if evaluation is not None:
                evaluations.append(evaluation)

        self.controller.purge(now)
        if self.metrics.due(now, self.metrics_interval_seconds):
            self.emit_metrics(now)
        return evaluations

    def evaluate_service(self, service: str, now: Optional[float] = None) -> Optional[Evaluation]:
        now = self.clock() if now is None else float(now)
        profile = self.registry.profile(service)
        state = self.registry.state(service)
        if profile is None or state is None:
            self.metrics.incr("unknown_service")
            log.debug("Skipped evaluation for %s: unknown_service", service)
            return None

        started = time.perf_counter()
        aggregates = self.aggregator.aggregate_all(profile, now)
        results = burn_rates(
            aggregates,
            profile.slo_target_pct,
            [w.threshold for w in profile.windows],
            profile.min_samples,
        )
        evaluation = self.evaluator.evaluate(state, profile, results, now)
        self._handle(state, profile, evaluation, now)
        self.metrics.observe_eval((time.perf_counter() - started) * 1000.0)
        return evaluation

    def _handle(self, state: ServiceGuardState, profile: ServiceProfile, evaluation: Evaluation, now: float) -> None:
        verdict = evaluation.verdict
        service = profile.service

        if verdict is Verdict.trigger:
            self.evaluator.commit(state, evaluation, now)
            severity = evaluation.severity or Severity.low
            results = self.controller.apply_plan(service, profile.actions_for(severity), severity, now)
            self.evaluator.mitigated(state)
            self._publish_triggered(evaluation, results, now, escalated=False)
            self.metrics.incr("triggers")
            log.warning("Guard triggered for %s (severity=%s, crossed=%s)", service, severity.value,
                        list(evaluation.crossed))

        elif verdict is Verdict.escalate:
            severity = evaluation.severity or Severity.low
            pending = [a for a in profile.actions_for(severity) if a.kind not in state.active_actions]
            self.evaluator.commit(state, evaluation, now)
            results = self.controller.apply_plan(service, pending, severity, now, escalated=True)
            self._publish_triggered(evaluation, results, now, escalated=True)
            self.metrics.incr("triggers")
            log.warning("Guard escalated for %s to %s (crossed=%s)", service, severity.value,
                        list(evaluation.crossed))

        elif verdict is Verdict.recover:
            since = state.last_trigger if state.last_trigger is not None else now
            reverted = self.controller.revert_all(service, now)
            self.evaluator.commit(state, evaluation, now)
            self.bus.publish(
                GuardRecovered(
                    timestamp=now,
                    service=service,
                    since=since,
                    duration_min=round((now - since) / 60.0, 2),
                    actions_reverted=[r.action_kind.value for r in reverted if r.outcome is ActionOutcome.reverted],
                )
            )
            self.metrics.incr("recoveries")
            log.info("Guard recovered for %s after %.1f min", service, (now - since) / 60.0)

        elif verdict is Verdict.early_warning:
            self.evaluator.commit(state, evaluation, now)
            warning = evaluation.warning
            if warning is not None:
                self.bus.publish(
                    GuardEarlyWarning(
                        timestamp=now,
                        service=service,
                        window=warning.window,
                        burn_rate=round(warning.burn_rate, 4),
                        threshold=warning.threshold,
                    )
                )
            self.metrics.incr("early_warnings")

        else:
            self.evaluator.commit(state, evaluation, now)

        if evaluation.timed_out:
            message = (
                f"{service} has not recovered within {profile.recovery_timeout_seconds:.0f}s "
                f"of the last trigger"
            )
            log.warning("%s", message)
            self.bus.publish(GuardAlert(timestamp=now, level="warn", message=message, service=service))

    def _publish_triggered(
        self,
        evaluation: Evaluation,
        results: List[ActionResult],
        now: float,
        escalated: bool,
    ) -> None:
        applied: List[str] = []
        suppressed: Dict[str, str] = {}
        for result in results:
            if result.executed:
                applied.append(result.action_kind.value)
            elif result.cached:
                suppressed[result.action_kind.value] = "duplicate"
            else:
                suppressed[result.action_kind.value] = result.outcome.value
        self.bus.publish(
            GuardTriggered(
                timestamp=now,
                service=evaluation.service,
                windows=evaluation.windows,
                crossed=list(evaluation.crossed),
                severity=(evaluation.severity or Severity.low).value,
                actions_applied=applied,
                actions_suppressed=suppressed,
                idempotency_hash=incident_key(
                    evaluation.service, TRIGGER_REASON, now, self.controller.bucket_seconds
                ),
                escalated=escalated,
            )
        )

    # -- metrics and status ---------------------------------------------------

    def active_counts(self) -> Dict[str, int]:
        counts: Counter[str] = Counter()
        for service in self.registry.services():
            state = self.registry.state(service)
            if state is not None:
                counts.update(kind.value for kind in state.active_kinds())
        return dict(counts)

    def emit_metrics(self, now: Optional[float] = None) -> GuardMetrics:
        now = self.clock() if now is None else float(now)
        event = self.metrics.snapshot(now, self.ingestor.dropped, self.active_counts())
        self.bus.publish(event)
        return event

    def service_status(self, service: str) -> Optional[Dict[str, Any]]:
        snap = self.registry.snapshot(service)
        profile = self.registry.profile(service)
        state = self.registry.state(service)
        if snap is None or profile is None or state is None:
            return None
        seconds = {w.label: w.seconds for w in profile.windows}
        snap["slo_target_pct"] = profile.slo_target_pct
        snap["budget"] = {
            r.window: vars(budget_status(r, seconds.get(r.window, 0.0)))
            for r in state.last_results
        }
        return snap

    def status(self) -> Dict[str, Any]:
        now = self.clock()
        snapshot = self.policy.snapshot
        return {
            "running": self.running,
            "services": {s: self.service_status(s) for s in self.registry.services()},
            "policy": {
                "guard_enabled": snapshot.guard_enabled,
                "allow_tighten": snapshot.allow_tighten,
                "denied_kinds": sorted(k.value for k in snapshot.denied_kinds),
                "max_auto_trim_pct": snapshot.max_auto_trim_pct,
            },
            "halts": {s: {"until": h.until, "reason": h.reason} for s, h in self.policy.halts(now).items()},
            "ingest": {
                "accepted": self.ingestor.accepted,
                "dropped": self.ingestor.dropped,
                "dropped_by_reason": self.ingestor.dropped_by_reason(),
            },
            "metrics": self.metrics.totals(),
            "events": self.bus.counts(),
        }

    # -- loop -----------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._loop())
        log.info("Guard scheduler started (interval=%ss, services=%d)",
                 self.interval_seconds, len(self.registry.services()))

    async def stop(self) -> None:
        task, self._loop_task = self._loop_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        cycle, self._cycle = self._cycle, None
        if cycle is not None and not cycle.done():
            await asyncio.wait({cycle})
        log.info("Guard scheduler stopped")

    def tick(self) -> bool:
        """Start a cycle unless the previous one is still running; returns whether it started."""
        if self._cycle is not None and not self._cycle.done():
            self.metrics.incr("skipped_ticks")
            log.warning("Skipped guard tick: previous cycle still running")
            return False
        self._cycle = asyncio.create_task(asyncio.to_thread(self.run_cycle))
        self._cycle.add_done_callback(self._cycle_done)
        return True

    async def _loop(self) -> None:
        while True:
            self.tick()
            await asyncio.sleep(self.interval_seconds)

    def _cycle_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.metrics.incr("errors")
            log.error("Guard cycle failed: %s", exc)
