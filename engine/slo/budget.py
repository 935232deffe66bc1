"""
Budget analysis for guarded services, projecting how much of the error budget a window has consumed and how long the remainder lasts at the current burn rate.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""


from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from engine.slo.burn import BurnRateResult

BUDGET_PERIOD_MINUTES = 30 * 24 * 60


@dataclass(frozen=True)
class BudgetStatus:
    service: str
    window: str
    burn_rate: float
    budget_consumed_pct: float
    minutes_to_exhaustion: Optional[float]
    on_track: bool


def budget_status(
    result: BurnRateResult,
    window_seconds: float,
    period_minutes: float = BUDGET_PERIOD_MINUTES,
) -> BudgetStatus:
    """Share of a period's budget spent over the window, and time left at this rate.

    A burn rate of 1.0 spends the whole budget in exactly ``period_minutes``.
    """
    window_minutes = max(0.0, window_seconds / 60.0)
    consumed = min(100.0, result.burn_rate * window_minutes / period_minutes * 100.0)
    if result.burn_rate <= 0 or not math.isfinite(result.burn_rate):
        remaining: Optional[float] = None
    else:
        remaining = round(max(0.0, period_minutes * (1.0 - consumed / 100.0)) / result.burn_rate, 1)

    return BudgetStatus(
        service=result.service,
        window=result.window,
        burn_rate=round(result.burn_rate, 4),
        budget_consumed_pct=round(consumed, 4),
        minutes_to_exhaustion=remaining,
        on_track=result.burn_rate < 1.0,
    )
