"""
Service profiles describing SLO targets, monitored windows, burn thresholds, mitigation actions and guardrail limits for each guarded service.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from config import DISRUPTIVE_ACTION_KINDS, WINDOW_SECONDS, settings
from engine.enums import ActionKind, Severity
from engine.errors import InvalidProfile

_WINDOW_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhd])\s*$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_window(label: str) -> float:
    if label in WINDOW_SECONDS:
        return float(WINDOW_SECONDS[label])
    match = _WINDOW_RE.match(str(label))
    if not match:
        raise InvalidProfile(f"unrecognised window label {label!r}")
    seconds = float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
    if seconds <= 0:
        raise InvalidProfile(f"window {label!r} must be positive")
    return seconds


@dataclass(frozen=True)
class WindowSpec:
    label: str
    seconds: float
    threshold: float


@dataclass(frozen=True)
class ActionSpec:
    kind: ActionKind
    params: Dict[str, Any] = field(default_factory=dict)
    min_severity: Severity = Severity.low
    disruptive: bool = False

    def eligible(self, severity: Severity) -> bool:
        return severity.covers(self.min_severity)


@dataclass(frozen=True)
class ServiceProfile:
    service: str
    slo_target_pct: float
    windows: Tuple[WindowSpec, ...]
    actions: Tuple[ActionSpec, ...] = ()
    latency_ceiling_ms: Optional[float] = None
    freshness_ceiling_ms: Optional[float] = None
    min_samples: int = 5
    stable_after_seconds: float = 900.0
    cooldown_seconds: float = 600.0
    recovery_timeout_seconds: float = 3600.0
    max_disruptive_per_hour: int = 3

    def __post_init__(self) -> None:
        if not self.service or not str(self.service).strip():
            raise InvalidProfile("service must be a non-empty string")
        target = float(self.slo_target_pct)
        if not math.isfinite(target) or target <= 0.0 or target >= 100.0:
            raise InvalidProfile(
                f"{self.service}: slo_target_pct must be within (0, 100), got {self.slo_target_pct}"
            )
        if not self.windows:
            raise InvalidProfile(f"{self.service}: at least one window is required")
        labels = [w.label for w in self.windows]
        if len(set(labels)) != len(labels):
            raise InvalidProfile(f"{self.service}: duplicate window labels {labels}")
        for w in self.windows:
            if not math.isfinite(w.threshold) or w.threshold <= 0:
                raise InvalidProfile(f"{self.service}: threshold for {w.label} must be positive")
        if self.min_samples < 0:
            raise InvalidProfile(f"{self.service}: min_samples must not be negative")
        if self.stable_after_seconds < 0 or self.cooldown_seconds < 0:
            raise InvalidProfile(f"{self.service}: guardrail durations must not be negative")
        if self.max_disruptive_per_hour < 0:
            raise InvalidProfile(f"{self.service}: max_disruptive_per_hour must not be negative")
        # windows are always kept shortest first; severity classification depends on it
        object.__setattr__(self, "windows", tuple(sorted(self.windows, key=lambda w: w.seconds)))

    @property
    def error_budget(self) -> float:
        return 1.0 - self.slo_target_pct / 100.0

    @property
    def longest_window_seconds(self) -> float:
        return self.windows[-1].seconds

    def window(self, label: str) -> WindowSpec:
        for w in self.windows:
            if w.label == label:
                return w
        raise KeyError(label)

    def actions_for(self, severity: Severity) -> List[ActionSpec]:
        return [a for a in self.actions if a.eligible(severity)]

    def action(self, kind: ActionKind) -> Optional[ActionSpec]:
        for a in self.actions:
            if a.kind == kind:
                return a
        return None


def _coerce_action(raw: Any, service: str) -> ActionSpec:
    if isinstance(raw, ActionSpec):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidProfile(f"{service}: action entries must be mappings, got {type(raw).__name__}")
    try:
        kind = ActionKind(raw["kind"])
    except (KeyError, ValueError) as exc:
        raise InvalidProfile(f"{service}: invalid action kind {raw.get('kind')!r}") from exc
    try:
        min_severity = Severity(raw.get("min_severity", Severity.low.value))
    except ValueError as exc:
        raise InvalidProfile(f"{service}: invalid min_severity {raw.get('min_severity')!r}") from exc
    disruptive = raw.get("disruptive")
    if disruptive is None:
        disruptive = kind.value in DISRUPTIVE_ACTION_KINDS
    return ActionSpec(
        kind=kind,
        params=dict(raw.get("params") or {}),
        min_severity=min_severity,
        disruptive=bool(disruptive),
    )


def profile_from_dict(service: str, raw: Mapping[str, Any]) -> ServiceProfile:
    """Build a profile from a plain mapping, filling guardrails from settings.

    ``windows`` is a list of labels (``"5m"``, ``"1h"`` ...) and
    ``thresholds`` maps each label to its burn-rate trigger.
    """
    if not isinstance(raw, Mapping):
        raise InvalidProfile(f"{service}: profile must be a mapping")
    thresholds = raw.get("thresholds") or {}
    labels = list(raw.get("windows") or thresholds.keys())
    windows: List[WindowSpec] = []
    for label in labels:
        if label not in thresholds:
            raise InvalidProfile(f"{service}: no burn threshold configured for window {label!r}")
        try:
            threshold = float(thresholds[label])
        except (TypeError, ValueError) as exc:
            raise InvalidProfile(f"{service}: threshold for {label!r} is not numeric") from exc
        windows.append(WindowSpec(label=str(label), seconds=parse_window(label), threshold=threshold))

    actions = tuple(_coerce_action(a, service) for a in (raw.get("actions") or []))
    kinds = [a.kind for a in actions]
    if len(set(kinds)) != len(kinds):
        raise InvalidProfile(f"{service}: each action kind may be configured once")

    try:
        return ServiceProfile(
            service=service,
            slo_target_pct=float(raw.get("slo_target_pct", 99.9)),
            windows=tuple(windows),
            actions=actions,
            latency_ceiling_ms=_optional_float(raw.get("latency_ceiling_ms")),
            freshness_ceiling_ms=_optional_float(raw.get("freshness_ceiling_ms")),
            min_samples=int(raw.get("min_samples", settings.guard_min_samples)),
            stable_after_seconds=float(raw.get("stable_after_seconds", settings.guard_stable_after_seconds)),
            cooldown_seconds=float(raw.get("cooldown_seconds", settings.guard_cooldown_seconds)),
            recovery_timeout_seconds=float(
                raw.get("recovery_timeout_seconds", settings.guard_recovery_timeout_seconds)
            ),
            max_disruptive_per_hour=int(
                raw.get("max_disruptive_per_hour", settings.guard_max_disruptive_per_hour)
            ),
        )
    except (TypeError, ValueError) as exc:
        raise InvalidProfile(f"{service}: {exc}") from exc


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)
