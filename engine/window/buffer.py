"""
Per-service retention buffer for normalized samples.

Producers append from any thread or coroutine under a short lock; the
evaluation loop is the single consumer that merges pending samples into
timestamp-sorted numpy arrays once per tick, so window counts are two
binary searches over the sorted timestamps plus a cumulative ok-count lookup.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import threading
from typing import List, Optional, Tuple

import numpy as np

from engine.ingest.samples import Sample


class SampleBuffer:
    __slots__ = ("service", "max_samples", "_lock", "_pending", "_ts", "_ok_cum", "_evicted")

    def __init__(self, service: str, max_samples: int) -> None:
        self.service = service
        self.max_samples = max(1, int(max_samples))
        self._lock = threading.Lock()
        self._pending: List[Sample] = []
        self._ts = np.empty(0, dtype=np.float64)
        # _ok_cum[i] is the number of ok samples among the first i retained samples
        self._ok_cum = np.zeros(1, dtype=np.int64)
        self._evicted = 0

    def append(self, sample: Sample) -> None:
        with self._lock:
            self._pending.append(sample)

    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def __len__(self) -> int:
        return int(self._ts.size)

    @property
    def evicted(self) -> int:
        return self._evicted

    def compact(self) -> int:
        """Merge pending samples into the sorted arrays; returns how many were merged."""
        with self._lock:
            batch, self._pending = self._pending, []
        if not batch:
            return 0

        new_ts = np.fromiter((s.timestamp for s in batch), dtype=np.float64, count=len(batch))
        new_ok = np.fromiter((s.ok for s in batch), dtype=np.int64, count=len(batch))

        ts = np.concatenate((self._ts, new_ts))
        ok = np.concatenate((np.diff(self._ok_cum), new_ok))
        order = np.argsort(ts, kind="stable")
        ts, ok = ts[order], ok[order]

        overflow = ts.size - self.max_samples
        if overflow > 0:
            ts, ok = ts[overflow:], ok[overflow:]
            self._evicted += int(overflow)

        self._store(ts, ok)
        return len(batch)

    def purge(self, cutoff: float) -> int:
        """Drop retained samples older than ``cutoff``; returns how many were removed."""
        idx = int(np.searchsorted(self._ts, cutoff, side="left"))
        if idx == 0:
            return 0
        ok = np.diff(self._ok_cum)[idx:]
        self._store(self._ts[idx:], ok)
        return idx

    def count(self, since: float, until: Optional[float] = None) -> Tuple[int, int]:
        """Return ``(total, ok)`` for retained samples with ``since <= ts`` (and ``ts <= until``)."""
        lo = int(np.searchsorted(self._ts, since, side="left"))
        hi = int(self._ts.size) if until is None else int(np.searchsorted(self._ts, until, side="right"))
        if hi <= lo:
            return 0, 0
        return hi - lo, int(self._ok_cum[hi] - self._ok_cum[lo])

    def oldest(self) -> Optional[float]:
        return float(self._ts[0]) if self._ts.size else None

    def newest(self) -> Optional[float]:
        return float(self._ts[-1]) if self._ts.size else None

    def _store(self, ts: np.ndarray, ok: np.ndarray) -> None:
        self._ts = ts
        cum = np.zeros(ts.size + 1, dtype=np.int64)
        if ts.size:
            np.cumsum(ok, out=cum[1:])
        self._ok_cum = cum
