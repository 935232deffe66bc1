"""
Registry for Guarded Services, their Profiles, Sample Buffers and Guard State

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from config import settings
from engine.enums import ActionKind, GuardLifecycle, Severity
from engine.profiles import ServiceProfile
from engine.slo.burn import BurnRateResult
from engine.window.buffer import SampleBuffer

log = logging.getLogger(__name__)


@dataclass
class ActiveAction:
    kind: ActionKind
    applied_at: float
    severity: Severity
    idempotency_key: str
    params: Dict[str, Any] = field(default_factory=dict)


class ServiceGuardState:
    """Long-lived lifecycle state for one service.

    Only the evaluation loop mutates it, and the active-action set only under
    ``lock``; everything else reads ``snapshot()``.
    """

    __slots__ = (
        "service",
        "lock",
        "lifecycle",
        "active_actions",
        "last_trigger",
        "last_recovery",
        "stable_since",
        "severity",
        "warning_active",
        "timeout_alerted",
        "trigger_count",
        "recovery_count",
        "early_warning_count",
        "last_eval",
        "last_results",
    )

    def __init__(self, service: str) -> None:
        self.service = service
        self.lock = threading.RLock()
        self.lifecycle = GuardLifecycle.idle
        self.active_actions: Dict[ActionKind, ActiveAction] = {}
        self.last_trigger: Optional[float] = None
        self.last_recovery: Optional[float] = None
        self.stable_since: Optional[float] = None
        self.severity: Optional[Severity] = None
        self.warning_active = False
        self.timeout_alerted = False
        self.trigger_count = 0
        self.recovery_count = 0
        self.early_warning_count = 0
        self.last_eval: Optional[float] = None
        self.last_results: Tuple[BurnRateResult, ...] = ()

    @property
    def in_incident(self) -> bool:
        return self.lifecycle in (GuardLifecycle.monitoring, GuardLifecycle.recovering)

    def active_kinds(self) -> List[ActionKind]:
        with self.lock:
            return list(self.active_actions)

    def snapshot(self) -> Dict[str, Any]:
        with self.lock:
            active = sorted(k.value for k in self.active_actions)
        return {
            "service": self.service,
            "state": self.lifecycle.value,
            "severity": self.severity.value if self.severity else None,
            "active_actions": active,
            "last_trigger": self.last_trigger,
            "last_recovery": self.last_recovery,
            "stable_since": self.stable_since,
            "trigger_count": self.trigger_count,
            "recovery_count": self.recovery_count,
            "early_warning_count": self.early_warning_count,
            "last_eval": self.last_eval,
            "windows": {
                r.window: {
                    "availability_pct": round(r.availability_pct, 4),
                    "burn_rate": round(r.burn_rate, 4),
                    "threshold": r.threshold,
                }
                for r in self.last_results
            },
        }


class GuardRegistry:
    def __init__(self, max_samples_per_service: Optional[int] = None) -> None:
        self._lock = threading.Lock()
        self._profiles: Dict[str, ServiceProfile] = {}
        self._states: Dict[str, ServiceGuardState] = {}
        self._buffers: Dict[str, SampleBuffer] = {}
        self._max_samples = int(max_samples_per_service or settings.guard_max_samples_per_service)

    def register(self, profile: ServiceProfile) -> ServiceGuardState:
        """Register or reload a profile; guard state survives a reload."""
        with self._lock:
            reloaded = profile.service in self._profiles
            self._profiles[profile.service] = profile
            state = self._states.get(profile.service)
            if state is None:
                state = ServiceGuardState(profile.service)
                self._states[profile.service] = state
            self._buffers.setdefault(profile.service, SampleBuffer(profile.service, self._max_samples))
        log.info("%s profile for %s (windows=%s)", "Reloaded" if reloaded else "Registered",
                 profile.service, [w.label for w in profile.windows])
        return state

    def unregister(self, service: str) -> bool:
        with self._lock:
            removed = self._profiles.pop(service, None) is not None
            self._states.pop(service, None)
            self._buffers.pop(service, None)
        if removed:
            log.info("Unregistered %s", service)
        return removed

    def profile(self, service: str) -> Optional[ServiceProfile]:
        return self._profiles.get(service)

    def state(self, service: str) -> Optional[ServiceGuardState]:
        return self._states.get(service)

    def buffer(self, service: str) -> SampleBuffer:
        buf = self._buffers.get(service)
        if buf is not None:
            return buf
        with self._lock:
            buf = self._buffers.get(service)
            if buf is None:
                buf = SampleBuffer(service, self._max_samples)
                self._buffers[service] = buf
                log.debug("Created sample buffer for unregistered service %s", service)
            return buf

    def existing_buffer(self, service: str) -> Optional[SampleBuffer]:
        return self._buffers.get(service)

    def services(self) -> List[str]:
        with self._lock:
            return list(self._profiles)

    def buffered_services(self) -> List[str]:
        with self._lock:
            return list(self._buffers)

    def is_registered(self, service: str) -> bool:
        return service in self._profiles

    def snapshot(self, service: str) -> Optional[Dict[str, Any]]:
        state = self._states.get(service)
        if state is None:
            return None
        snap = state.snapshot()
        buf = self._buffers.get(service)
        snap["buffered_samples"] = len(buf) + buf.pending() if buf is not None else 0
        return snap
