"""
Guard self-metrics: per-interval counters and evaluation latency statistics emitted as ``guard.metrics`` events.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, Deque, Dict, Iterable, List, Optional

import numpy as np

from config import settings
from engine.events.models import GuardMetrics

_COUNTERS = ("evaluated", "triggers", "recoveries", "early_warnings", "errors", "unknown_service", "skipped_ticks")


def _latency_stats(durations: Iterable[float]) -> Dict[str, float]:
    data = np.asarray(list(durations), dtype=float)
    if data.size == 0:
        return {"avg_eval_ms": 0.0, "p95_eval_ms": 0.0}
    return {
        "avg_eval_ms": round(float(np.mean(data)), 3),
        "p95_eval_ms": round(float(np.percentile(data, 95)), 3),
    }


class MetricsRecorder:
    def __init__(self, history: Optional[int] = None) -> None:
        self._lock = threading.Lock()
        # rolling history for status totals; the interval list is reset on every snapshot
        self._durations: Deque[float] = deque(maxlen=int(history or settings.guard_eval_history))
        self._interval_durations: List[float] = []
        self._interval: Dict[str, int] = dict.fromkeys(_COUNTERS, 0)
        self._totals: Dict[str, int] = dict.fromkeys(_COUNTERS, 0)
        self._dropped_mark = 0
        self.last_emit: Optional[float] = None

    def incr(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            self._interval[counter] += amount
            self._totals[counter] += amount

    def observe_eval(self, duration_ms: float) -> None:
        with self._lock:
            self._durations.append(float(duration_ms))
            self._interval_durations.append(float(duration_ms))
            self._interval["evaluated"] += 1
            self._totals["evaluated"] += 1

    def latency(self) -> Dict[str, float]:
        """Latency over the rolling evaluation history."""
        with self._lock:
            durations = list(self._durations)
        return _latency_stats(durations)

    def due(self, now: float, interval_seconds: float) -> bool:
        return self.last_emit is None or now - self.last_emit >= interval_seconds

    def snapshot(self, now: float, dropped_total: int, active: Dict[str, int]) -> GuardMetrics:
        """Build the metrics event for the interval ending at ``now`` and reset interval counters."""
        with self._lock:
            interval = dict(self._interval)
            durations, self._interval_durations = self._interval_durations, []
            self._interval = dict.fromkeys(_COUNTERS, 0)
            dropped = max(0, dropped_total - self._dropped_mark)
            self._dropped_mark = dropped_total
            self.last_emit = now
        stats = _latency_stats(durations)
        return GuardMetrics(
            timestamp=now,
            evaluated=interval["evaluated"],
            triggers=interval["triggers"],
            recoveries=interval["recoveries"],
            early_warnings=interval["early_warnings"],
            avg_eval_ms=stats["avg_eval_ms"],
            p95_eval_ms=stats["p95_eval_ms"],
            errors=interval["errors"],
            unknown_service=interval["unknown_service"],
            dropped_samples=dropped,
            skipped_ticks=interval["skipped_ticks"],
            active=dict(active),
        )

    def totals(self) -> Dict[str, Any]:
        with self._lock:
            totals: Dict[str, Any] = dict(self._totals)
        totals.update(self.latency())
        return totals
