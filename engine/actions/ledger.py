"""
Time-indexed ledger of applied and reverted mitigation actions, serving idempotency lookups, cooldown checks and trailing-hour disruptive-action counts.

Applied timestamps are kept sorted per (service, action kind) so cap checks are
a binary search instead of a scan over the whole action history.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import bisect
import hashlib
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Tuple

from config import settings
from engine.enums import ActionKind, ActionOperation, ActionOutcome, Severity


def idempotency_key(service: str, trigger: str, kind: ActionKind, now: float, bucket_seconds: float) -> str:
    bucket = int(now // bucket_seconds) if bucket_seconds > 0 else int(now)
    raw = f"{service}:{trigger}:{kind.value}:{bucket}"
    return hashlib.sha256(raw.encode()).hexdigest()[:16]


def incident_key(service: str, trigger: str, now: float, bucket_seconds: float) -> str:
    bucket = int(now // bucket_seconds) if bucket_seconds > 0 else int(now)
    return hashlib.sha256(f"{service}:{trigger}:{bucket}".encode()).hexdigest()[:16]


@dataclass(frozen=True)
class ActionRecord:
    idempotency_key: str
    service: str
    action_kind: ActionKind
    operation: ActionOperation
    timestamp: float
    outcome: ActionOutcome
    severity: Optional[Severity] = None
    params: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "idempotency_key": self.idempotency_key,
            "service": self.service,
            "action_kind": self.action_kind.value,
            "operation": self.operation.value,
            "timestamp": self.timestamp,
            "outcome": self.outcome.value,
            "severity": self.severity.value if self.severity else None,
            "params": dict(self.params),
        }


class ActionLedger:
    def __init__(self, ttl_seconds: Optional[float] = None, cap_window_seconds: Optional[float] = None) -> None:
        self.ttl_seconds = float(settings.guard_idempotency_ttl_seconds if ttl_seconds is None else ttl_seconds)
        self.cap_window_seconds = float(
            settings.guard_cap_window_seconds if cap_window_seconds is None else cap_window_seconds
        )
        self._by_key: Dict[str, ActionRecord] = {}
        self._expiry: Deque[Tuple[float, str]] = deque()
        self._applies: Dict[Tuple[str, ActionKind], List[float]] = {}
        self._last_apply: Dict[Tuple[str, ActionKind], ActionRecord] = {}

    def __len__(self) -> int:
        return len(self._by_key)

    def lookup(self, key: str, now: float) -> Optional[ActionRecord]:
        record = self._by_key.get(key)
        if record is None:
            return None
        if now - record.timestamp >= self.ttl_seconds:
            return None
        return record

    def record(self, record: ActionRecord) -> None:
        self._by_key[record.idempotency_key] = record
        self._expiry.append((record.timestamp, record.idempotency_key))
        if record.operation is ActionOperation.apply and record.outcome is ActionOutcome.applied:
            slot = (record.service, record.action_kind)
            bisect.insort(self._applies.setdefault(slot, []), record.timestamp)
            self._last_apply[slot] = record

    def count_applies(self, service: str, kind: ActionKind, since: float) -> int:
        stamps = self._applies.get((service, kind))
        if not stamps:
            return 0
        return len(stamps) - bisect.bisect_left(stamps, since)

    def last_apply(self, service: str, kind: ActionKind) -> Optional[ActionRecord]:
        return self._last_apply.get((service, kind))

    def records(self, service: Optional[str] = None) -> List[ActionRecord]:
        recs = sorted(self._by_key.values(), key=lambda r: r.timestamp)
        if service is not None:
            recs = [r for r in recs if r.service == service]
        return recs

    def purge(self, now: float) -> int:
        """Expire idempotency records past TTL and apply stamps past the cap window."""
        removed = 0
        while self._expiry and now - self._expiry[0][0] >= self.ttl_seconds:
            ts, key = self._expiry.popleft()
            current = self._by_key.get(key)
            if current is not None and current.timestamp == ts:
                del self._by_key[key]
                removed += 1

        cutoff = now - self.cap_window_seconds
        for slot in list(self._applies):
            stamps = self._applies[slot]
            idx = bisect.bisect_left(stamps, cutoff)
            if idx:
                del stamps[:idx]
            if not stamps:
                del self._applies[slot]
        return removed

    def forget_service(self, service: str) -> None:
        for key in [k for k, r in self._by_key.items() if r.service == service]:
            del self._by_key[key]
        for slot in [s for s in self._applies if s[0] == service]:
            del self._applies[slot]
        for slot in [s for s in self._last_apply if s[0] == service]:
            del self._last_apply[slot]
