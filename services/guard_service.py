"""
Process-wide guard service: owns the scheduler and directive dispatcher, loads configured profiles and restores persisted policy at startup.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
from typing import Optional

from config import settings
from engine.dispatch import DirectiveDispatcher
from engine.errors import InvalidProfile
from engine.guard import GuardScheduler
from engine.profiles import profile_from_dict
from store import policy as policy_store

log = logging.getLogger(__name__)


class GuardService:
    def __init__(self, scheduler: Optional[GuardScheduler] = None) -> None:
        self.scheduler = scheduler or GuardScheduler()
        self.dispatcher = DirectiveDispatcher(self.scheduler.bus)

    def load_profiles(self) -> int:
        loaded = 0
        for service, raw in settings.guard_profiles.items():
            try:
                self.scheduler.register(profile_from_dict(service, raw))
                loaded += 1
            except InvalidProfile as exc:
                log.error("Skipping configured profile %s: %s", service, exc)
        return loaded

    async def startup(self) -> None:
        if settings.guard_load_default_profiles:
            log.info("Loaded %d configured service profile(s)", self.load_profiles())
        snapshot = await policy_store.load()
        if snapshot is not None:
            self.scheduler.policy.update(snapshot)
        await self.dispatcher.start()
        await self.scheduler.start()

    async def shutdown(self) -> None:
        await self.scheduler.stop()
        await self.dispatcher.stop()


_guard: Optional[GuardService] = None


def get_guard() -> GuardService:
    global _guard
    if _guard is None:
        _guard = GuardService()
    return _guard


def reset_guard(service: Optional[GuardService] = None) -> None:
    global _guard
    _guard = service
