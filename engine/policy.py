"""
Runtime policy overrides for the guard: policy snapshots that enable or veto action kinds and cap load trimming, plus upstream halt directives that suppress non-critical mitigation for named services for a bounded time.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional

from config import TIGHTEN_ACTION_KINDS
from engine.enums import ActionKind

log = logging.getLogger(__name__)

HALT = "halt"
RESUME = "resume"


@dataclass(frozen=True)
class PolicySnapshot:
    guard_enabled: bool = True
    allow_tighten: bool = True
    denied_kinds: FrozenSet[ActionKind] = field(default_factory=frozenset)
    max_auto_trim_pct: Optional[float] = None

    def veto(self, kind: ActionKind) -> Optional[str]:
        if not self.guard_enabled:
            return "guard_disabled"
        if kind in self.denied_kinds:
            return f"{kind.value}_denied"
        if not self.allow_tighten and kind.value in TIGHTEN_ACTION_KINDS:
            return "tighten_denied"
        return None

    def shape_params(self, kind: ActionKind, params: Dict[str, Any]) -> Dict[str, Any]:
        shaped = dict(params)
        if kind is ActionKind.gate and self.max_auto_trim_pct is not None and "drop_pct" in shaped:
            try:
                shaped["drop_pct"] = min(float(shaped["drop_pct"]), float(self.max_auto_trim_pct))
            except (TypeError, ValueError):
                shaped["drop_pct"] = float(self.max_auto_trim_pct)
        return shaped


@dataclass(frozen=True)
class Halt:
    service: str
    until: float
    reason: str = ""


class PolicyState:
    def __init__(self, snapshot: Optional[PolicySnapshot] = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = snapshot or PolicySnapshot()
        self._halts: Dict[str, Halt] = {}

    @property
    def snapshot(self) -> PolicySnapshot:
        return self._snapshot

    def update(self, snapshot: PolicySnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot
        log.info(
            "Policy updated: enabled=%s allow_tighten=%s denied=%s max_auto_trim=%s",
            snapshot.guard_enabled,
            snapshot.allow_tighten,
            sorted(k.value for k in snapshot.denied_kinds),
            snapshot.max_auto_trim_pct,
        )

    def apply_directive(
        self,
        directive: str,
        services: Iterable[str],
        now: float,
        ttl_seconds: float = 0.0,
        reason: str = "",
    ) -> int:
        """Apply an upstream directive; returns how many services it touched."""
        touched = 0
        with self._lock:
            for service in services:
                if directive == HALT:
                    self._halts[service] = Halt(service=service, until=now + max(0.0, ttl_seconds), reason=reason)
                    touched += 1
                elif directive == RESUME:
                    if self._halts.pop(service, None) is not None:
                        touched += 1
                else:
                    raise ValueError(f"unsupported directive {directive!r}")
        log.info("Upstream %s for %d service(s) (ttl=%ss, reason=%s)", directive, touched, ttl_seconds, reason)
        return touched

    def halted(self, service: str, now: float) -> Optional[Halt]:
        with self._lock:
            halt = self._halts.get(service)
            if halt is None:
                return None
            if halt.until <= now:
                del self._halts[service]
                log.info("Halt for %s expired", service)
                return None
            return halt

    def halts(self, now: float) -> Dict[str, Halt]:
        with self._lock:
            for service in [s for s, h in self._halts.items() if h.until <= now]:
                del self._halts[service]
            return dict(self._halts)
