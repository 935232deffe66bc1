"""
Persistence of the runtime policy snapshot so overrides survive a restart.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from engine.enums import ActionKind
from engine.policy import PolicySnapshot
from store import keys
from store.client import redis_get, redis_set

log = logging.getLogger(__name__)


def _serialise(snapshot: PolicySnapshot) -> dict:
    return {
        "guard_enabled": snapshot.guard_enabled,
        "allow_tighten": snapshot.allow_tighten,
        "denied_kinds": sorted(k.value for k in snapshot.denied_kinds),
        "max_auto_trim_pct": snapshot.max_auto_trim_pct,
    }


def _deserialise(data: dict) -> PolicySnapshot:
    trim = data.get("max_auto_trim_pct")
    return PolicySnapshot(
        guard_enabled=bool(data.get("guard_enabled", True)),
        allow_tighten=bool(data.get("allow_tighten", True)),
        denied_kinds=frozenset(ActionKind(k) for k in data.get("denied_kinds", [])),
        max_auto_trim_pct=float(trim) if trim is not None else None,
    )


async def load() -> Optional[PolicySnapshot]:
    try:
        raw = await redis_get(keys.policy())
        if raw:
            return _deserialise(json.loads(raw))
    except Exception as exc:
        log.debug("Policy load failed: %s", exc)
    return None


async def save(snapshot: PolicySnapshot) -> None:
    try:
        await redis_set(keys.policy(), json.dumps(_serialise(snapshot)))
    except Exception as exc:
        log.debug("Policy save failed: %s", exc)
