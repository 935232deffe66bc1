"""
Enumerations for Severity, Sample Kinds, Guard Lifecycle, Action Kinds and Outcomes

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from enum import Enum

from config import SEVERITY_WEIGHTS

class Severity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"

    def weight(self) -> int:
        return SEVERITY_WEIGHTS[self.value]

    def covers(self, other: Severity) -> bool:
        """True when a trigger of this severity is eligible for ``other``-level actions."""
        return self.weight() >= other.weight()


class SampleKind(str, Enum):
    probe = "probe"
    heartbeat = "heartbeat"
    error = "error"
    circuit = "circuit"
    feed = "feed"


class GuardLifecycle(str, Enum):
    idle = "idle"
    triggered = "triggered"
    monitoring = "monitoring"
    recovering = "recovering"


class ActionKind(str, Enum):
    failover = "failover"
    degrade = "degrade"
    gate = "gate"
    circuit = "circuit"


class ActionOperation(str, Enum):
    apply = "apply"
    revert = "revert"


class ActionOutcome(str, Enum):
    applied = "applied"
    reverted = "reverted"
    not_active = "not_active"
    suppressed_cooldown = "suppressed_cooldown"
    suppressed_cap = "suppressed_cap"
    suppressed_policy = "suppressed_policy"
    suppressed_halt = "suppressed_halt"

    @property
    def executed(self) -> bool:
        return self in (ActionOutcome.applied, ActionOutcome.reverted)


class CircuitState(str, Enum):
    open = "open"
    half_open = "half_open"
    closed = "closed"
