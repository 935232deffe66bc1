"""
Action controller deciding whether a mitigation directive may be applied or reverted, enforcing idempotency, policy overrides, upstream halts, cooldowns and the trailing-hour cap on disruptive actions.

The controller never performs the mitigation itself. An approved directive is
recorded in the ledger, reflected in the service's active-action set and
published as a ``guard.action`` event for an external executor to pick up.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from config import settings
from engine.actions.ledger import ActionLedger, ActionRecord, idempotency_key
from engine.enums import ActionKind, ActionOperation, ActionOutcome, Severity
from engine.errors import UnknownService
from engine.events import EventBus, GuardAction, GuardAlert
from engine.policy import PolicyState
from engine.profiles import ActionSpec
from engine.registry import ActiveAction, GuardRegistry, ServiceGuardState

log = logging.getLogger(__name__)

TRIGGER_REASON = "multi_window_burn"
RECOVERY_REASON = "recovery_stable"


@dataclass(frozen=True)
class ActionResult:
    service: str
    action_kind: ActionKind
    operation: ActionOperation
    outcome: ActionOutcome
    idempotency_key: str
    cached: bool = False
    record: Optional[ActionRecord] = None

    @property
    def executed(self) -> bool:
        return self.outcome.executed and not self.cached


class ActionController:
    def __init__(
        self,
        registry: GuardRegistry,
        bus: EventBus,
        policy: Optional[PolicyState] = None,
        ledger: Optional[ActionLedger] = None,
        bucket_seconds: Optional[float] = None,
    ) -> None:
        self._registry = registry
        self._bus = bus
        self.policy = policy or PolicyState()
        self.ledger = ledger or ActionLedger()
        self.bucket_seconds = float(
            settings.guard_idempotency_bucket_seconds if bucket_seconds is None else bucket_seconds
        )

    def apply(
        self,
        service: str,
        action: ActionSpec,
        severity: Severity,
        now: float,
        escalated: bool = False,
        reason: str = TRIGGER_REASON,
    ) -> ActionResult:
        state = self._state(service)
        profile = self._registry.profile(service)
        kind = action.kind
        key = idempotency_key(service, reason, kind, now, self.bucket_seconds)

        cached = self.ledger.lookup(key, now)
        if cached is not None:
            log.info("Returning cached %s outcome for %s/%s (%s)", cached.operation.value, service, kind.value, key)
            return self._result(cached, cached=True)

        snapshot = self.policy.snapshot
        veto = snapshot.veto(kind)
        if veto is not None:
            log.info("Suppressed %s for %s by policy: %s", kind.value, service, veto)
            return self._suppressed(service, kind, key, ActionOutcome.suppressed_policy)

        halt = self.policy.halted(service, now)
        if halt is not None and severity is not Severity.high:
            log.info("Suppressed %s for %s: halted until %.0f (%s)", kind.value, service, halt.until, halt.reason)
            return self._suppressed(service, kind, key, ActionOutcome.suppressed_halt)

        last = self.ledger.last_apply(service, kind)
        if last is not None and profile is not None and now - last.timestamp < profile.cooldown_seconds:
            stepped_up = last.severity is not None and severity.weight() > last.severity.weight()
            if not (escalated or stepped_up):
                log.info(
                    "Suppressed %s for %s: cooldown (%.0fs since last apply)",
                    kind.value, service, now - last.timestamp,
                )
                return self._suppressed(service, kind, key, ActionOutcome.suppressed_cooldown)

        if action.disruptive and profile is not None:
            recent = self.ledger.count_applies(service, kind, now - self.ledger.cap_window_seconds)
            if recent >= profile.max_disruptive_per_hour:
                message = (
                    f"{kind.value} capped for {service}: {recent} applied in the trailing hour "
                    f"(max {profile.max_disruptive_per_hour}); mitigation degraded"
                )
                log.warning("%s", message)
                self._bus.publish(GuardAlert(timestamp=now, level="error", message=message, service=service))
                return self._suppressed(service, kind, key, ActionOutcome.suppressed_cap)

        params = snapshot.shape_params(kind, action.params)
        record = ActionRecord(
            idempotency_key=key,
            service=service,
            action_kind=kind,
            operation=ActionOperation.apply,
            timestamp=now,
            outcome=ActionOutcome.applied,
            severity=severity,
            params=params,
        )
        self.ledger.record(record)
        with state.lock:
            state.active_actions[kind] = ActiveAction(
                kind=kind, applied_at=now, severity=severity, idempotency_key=key, params=params
            )
        self._bus.publish(
            GuardAction(
                timestamp=now,
                service=service,
                kind=ActionOperation.apply.value,
                action_kind=kind.value,
                reason=reason,
                severity=severity.value,
                params=params,
                idempotency_key=key,
            )
        )
        log.warning("Applied %s for %s (severity=%s, key=%s)", kind.value, service, severity.value, key)
        return self._result(record)

    def revert(self, service: str, kind: ActionKind, now: float, reason: str = RECOVERY_REASON) -> ActionResult:
        state = self._state(service)
        key = idempotency_key(service, reason, kind, now, self.bucket_seconds)

        cached = self.ledger.lookup(key, now)
        if cached is not None:
            log.info("Returning cached revert outcome for %s/%s (%s)", service, kind.value, key)
            return self._result(cached, cached=True)

        active = state.active_actions.get(kind)
        if active is None:
            return self._suppressed(service, kind, key, ActionOutcome.not_active, ActionOperation.revert)

        record = ActionRecord(
            idempotency_key=key,
            service=service,
            action_kind=kind,
            operation=ActionOperation.revert,
            timestamp=now,
            outcome=ActionOutcome.reverted,
            severity=active.severity,
            params=dict(active.params),
        )
        self.ledger.record(record)
        with state.lock:
            state.active_actions.pop(kind, None)
        self._bus.publish(
            GuardAction(
                timestamp=now,
                service=service,
                kind=ActionOperation.revert.value,
                action_kind=kind.value,
                reason=reason,
                severity=active.severity.value,
                params=dict(active.params),
                idempotency_key=key,
            )
        )
        log.info("Reverted %s for %s (key=%s)", kind.value, service, key)
        return self._result(record)

    def apply_plan(
        self,
        service: str,
        actions: List[ActionSpec],
        severity: Severity,
        now: float,
        escalated: bool = False,
    ) -> List[ActionResult]:
        return [self.apply(service, action, severity, now, escalated=escalated) for action in actions]

    def revert_all(self, service: str, now: float) -> List[ActionResult]:
        state = self._state(service)
        return [self.revert(service, kind, now) for kind in state.active_kinds()]

    def purge(self, now: float) -> int:
        return self.ledger.purge(now)

    def _state(self, service: str) -> ServiceGuardState:
        state = self._registry.state(service)
        if state is None:
            raise UnknownService(service)
        return state

    @staticmethod
    def _result(record: ActionRecord, cached: bool = False) -> ActionResult:
        return ActionResult(
            service=record.service,
            action_kind=record.action_kind,
            operation=record.operation,
            outcome=record.outcome,
            idempotency_key=record.idempotency_key,
            cached=cached,
            record=record,
        )

    @staticmethod
    def _suppressed(
        service: str,
        kind: ActionKind,
        key: str,
        outcome: ActionOutcome,
        operation: ActionOperation = ActionOperation.apply,
    ) -> ActionResult:
        return ActionResult(service=service, action_kind=kind, operation=operation, outcome=outcome, idempotency_key=key)
