"""
Window aggregation over per-service sample buffers, producing total/ok counts for each trailing window and purging samples past retention.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Union

from config import settings

if TYPE_CHECKING:
    from engine.profiles import ServiceProfile, WindowSpec
    from engine.registry import GuardRegistry

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowAggregate:
    service: str
    window: str
    window_seconds: float
    total_samples: int
    ok_samples: int

    @property
    def error_samples(self) -> int:
        return self.total_samples - self.ok_samples


class WindowAggregator:
    def __init__(
        self,
        registry: GuardRegistry,
        retention_margin_seconds: Optional[float] = None,
        default_retention_seconds: Optional[float] = None,
    ) -> None:
        self._registry = registry
        self._margin = float(
            settings.guard_retention_margin_seconds if retention_margin_seconds is None else retention_margin_seconds
        )
        self._default_retention = float(
            settings.guard_default_retention_seconds if default_retention_seconds is None else default_retention_seconds
        )

    def aggregate(self, service: str, window: Union[WindowSpec, float], now: float) -> WindowAggregate:
        if isinstance(window, (int, float)):
            label, seconds = f"{int(window)}s", float(window)
        else:
            label, seconds = window.label, window.seconds

        buf = self._registry.existing_buffer(service)
        if buf is None:
            return WindowAggregate(service, label, seconds, 0, 0)
        buf.compact()
        total, ok = buf.count(now - seconds, until=now)
        return WindowAggregate(service, label, seconds, total, ok)

    def aggregate_all(self, profile: ServiceProfile, now: float) -> List[WindowAggregate]:
        return [self.aggregate(profile.service, w, now) for w in profile.windows]

    def retention_seconds(self, service: str) -> float:
        profile = self._registry.profile(service)
        if profile is None:
            return self._default_retention + self._margin
        return profile.longest_window_seconds + self._margin

    def purge(self, service: str, now: float) -> int:
        buf = self._registry.existing_buffer(service)
        if buf is None:
            return 0
        buf.compact()
        removed = buf.purge(now - self.retention_seconds(service))
        if removed:
            log.debug("Purged %d samples for %s", removed, service)
        return removed

    def purge_all(self, now: float) -> int:
        return sum(self.purge(service, now) for service in self._registry.buffered_services())
