"""
Outbound guard events: triggers, early warnings, recoveries, approved actions, alerts and periodic metrics.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""


from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Dict, List, Optional


@dataclass(frozen=True)
class GuardEvent:
    name: ClassVar[str] = "guard.event"

    timestamp: float

    @property
    def service(self) -> Optional[str]:
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.name, **asdict(self)}


@dataclass(frozen=True)
class GuardTriggered(GuardEvent):
    name: ClassVar[str] = "guard.triggered"

    service: str = ""
    windows: Dict[str, Dict[str, float]] = field(default_factory=dict)
    crossed: List[str] = field(default_factory=list)
    severity: str = "low"
    actions_applied: List[str] = field(default_factory=list)
    actions_suppressed: Dict[str, str] = field(default_factory=dict)
    idempotency_hash: str = ""
    escalated: bool = False


@dataclass(frozen=True)
class GuardEarlyWarning(GuardEvent):
    name: ClassVar[str] = "guard.early_warning"

    service: str = ""
    window: str = ""
    burn_rate: float = 0.0
    threshold: float = 0.0


@dataclass(frozen=True)
class GuardRecovered(GuardEvent):
    name: ClassVar[str] = "guard.recovered"

    service: str = ""
    since: float = 0.0
    duration_min: float = 0.0
    actions_reverted: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class GuardAction(GuardEvent):
    name: ClassVar[str] = "guard.action"

    service: str = ""
    kind: str = "apply"
    action_kind: str = ""
    reason: str = ""
    severity: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)
    idempotency_key: str = ""


@dataclass(frozen=True)
class GuardAlert(GuardEvent):
    name: ClassVar[str] = "guard.alert"

    level: str = "warn"
    message: str = ""
    service: Optional[str] = None


@dataclass(frozen=True)
class GuardMetrics(GuardEvent):
    name: ClassVar[str] = "guard.metrics"

    evaluated: int = 0
    triggers: int = 0
    recoveries: int = 0
    early_warnings: int = 0
    avg_eval_ms: float = 0.0
    p95_eval_ms: float = 0.0
    errors: int = 0
    unknown_service: int = 0
    dropped_samples: int = 0
    skipped_ticks: int = 0
    active: Dict[str, int] = field(default_factory=dict)
