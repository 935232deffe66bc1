"""
Burn-rate calculation turning a window aggregate and an SLO target into an error-budget burn rate.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List

from engine.errors import InvalidProfile
from engine.window.aggregator import WindowAggregate


@dataclass(frozen=True)
class BurnRateResult:
    service: str
    window: str
    availability_pct: float
    burn_rate: float
    threshold: float
    total_samples: int = 0
    sparse: bool = False

    @property
    def crossed(self) -> bool:
        return self.burn_rate >= self.threshold


def error_budget(slo_target_pct: float) -> float:
    """Tolerable bad fraction for a target given in percent (99.9 -> 0.001)."""
    target = float(slo_target_pct)
    if not math.isfinite(target) or target <= 0.0 or target >= 100.0:
        raise InvalidProfile(f"SLO target must be within (0, 100), got {slo_target_pct}")
    return 1.0 - target / 100.0


def availability(aggregate: WindowAggregate, min_samples: int) -> float:
    # sparse windows are optimistic so a handful of failures cannot trigger mitigation
    if aggregate.total_samples <= 0 or aggregate.total_samples < min_samples:
        return 1.0
    return aggregate.ok_samples / aggregate.total_samples


def burn_rate(
    aggregate: WindowAggregate,
    slo_target_pct: float,
    threshold: float = math.inf,
    min_samples: int = 0,
) -> BurnRateResult:
    budget = error_budget(slo_target_pct)
    avail = availability(aggregate, min_samples)
    # clamp float noise so a fully available window reports exactly zero
    burn = max(0.0, (1.0 - avail) / budget)
    return BurnRateResult(
        service=aggregate.service,
        window=aggregate.window,
        availability_pct=avail * 100.0,
        burn_rate=burn,
        threshold=float(threshold),
        total_samples=aggregate.total_samples,
        sparse=aggregate.total_samples < min_samples,
    )


def burn_rates(
    aggregates: List[WindowAggregate],
    slo_target_pct: float,
    thresholds: List[float],
    min_samples: int,
) -> List[BurnRateResult]:
    return [
        burn_rate(agg, slo_target_pct, threshold=thr, min_samples=min_samples)
        for agg, thr in zip(aggregates, thresholds)
    ]
