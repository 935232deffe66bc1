"""
Sample ingestion: normalizes heterogeneous availability signals (probes, feed freshness, heartbeats, error events, circuit-breaker transitions) into ok/not-ok samples appended to the service's buffer.

Ingestion never raises. Malformed input is dropped and counted so producers
are never coupled to the evaluation loop.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import Counter
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from config import settings
from engine.enums import CircuitState, SampleKind
from engine.ingest.samples import Sample, coerce_kind, coerce_timestamp

if TYPE_CHECKING:
    from engine.registry import GuardRegistry

log = logging.getLogger(__name__)


class SampleIngestor:
    def __init__(
        self,
        registry: GuardRegistry,
        clock: Optional[Callable[[], float]] = None,
        max_clock_skew_seconds: Optional[float] = None,
    ) -> None:
        self._registry = registry
        self._clock = clock or time.time
        self._max_skew = float(
            settings.guard_max_clock_skew_seconds if max_clock_skew_seconds is None else max_clock_skew_seconds
        )
        self._lock = threading.Lock()
        self._accepted = 0
        self._dropped: Counter[str] = Counter()

    def ingest(self, service: Any, kind: Any, ok: Any, timestamp: Any) -> bool:
        if not isinstance(service, str) or not service.strip():
            return self._drop("invalid_service", service)
        sample_kind = coerce_kind(kind)
        if sample_kind is None:
            return self._drop("unknown_kind", service)
        ts = coerce_timestamp(timestamp)
        if ts is None:
            return self._drop("missing_timestamp", service)
        if ts > self._clock() + self._max_skew:
            return self._drop("future_timestamp", service)

        self._registry.buffer(service).append(
            Sample(service=service, kind=sample_kind, ok=bool(ok), timestamp=ts)
        )
        with self._lock:
            self._accepted += 1
        return True

    def probe_result(
        self,
        service: str,
        timestamp: Any,
        ok: bool,
        status_code: Optional[int] = None,
        latency_ms: Optional[float] = None,
    ) -> bool:
        healthy = bool(ok)
        ceiling = self._latency_ceiling(service)
        if healthy and ceiling is not None and latency_ms is not None and latency_ms > ceiling:
            healthy = False
        return self.ingest(service, SampleKind.probe, healthy, timestamp)

    def feed_freshness(self, service: str, timestamp: Any, lag_ms: Any) -> bool:
        try:
            lag = float(lag_ms)
        except (TypeError, ValueError):
            return self._drop("invalid_lag", service)
        if not math.isfinite(lag):
            return self._drop("invalid_lag", service)
        return self.ingest(service, SampleKind.feed, lag < self._freshness_ceiling(service), timestamp)

    def heartbeat_missed(
        self,
        service: str,
        timestamp: Any,
        missed_count: int = 1,
        expected_interval_ms: Optional[float] = None,
    ) -> bool:
        log.debug("Heartbeat missed for %s (count=%s, every=%sms)", service, missed_count, expected_interval_ms)
        return self.ingest(service, SampleKind.heartbeat, False, timestamp)

    def error_event(self, service: str, timestamp: Any, kind: str = "", count: int = 1) -> bool:
        log.debug("Error event for %s (kind=%s, count=%s)", service, kind, count)
        return self.ingest(service, SampleKind.error, False, timestamp)

    def circuit_state(self, service: str, timestamp: Any, state: Any) -> bool:
        try:
            circuit = CircuitState(str(getattr(state, "value", state)))
        except ValueError:
            return self._drop("unknown_circuit_state", service)
        return self.ingest(service, SampleKind.circuit, circuit is CircuitState.closed, timestamp)

    @property
    def accepted(self) -> int:
        return self._accepted

    @property
    def dropped(self) -> int:
        with self._lock:
            return sum(self._dropped.values())

    def dropped_by_reason(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._dropped)

    def _drop(self, reason: str, service: Any) -> bool:
        with self._lock:
            self._dropped[reason] += 1
        log.debug("Dropped sample for %r: %s", service, reason)
        return False

    def _latency_ceiling(self, service: str) -> Optional[float]:
        profile = self._registry.profile(service)
        return profile.latency_ceiling_ms if profile is not None else None

    def _freshness_ceiling(self, service: str) -> float:
        profile = self._registry.profile(service)
        if profile is not None and profile.freshness_ceiling_ms is not None:
            return profile.freshness_ceiling_ms
        return settings.guard_freshness_ceiling_ms
