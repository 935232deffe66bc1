"""
Outbox of published guard events, kept per event name and per service for replay and audit.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import json
import logging
from typing import List, Optional

from config import OUTBOX_MAX_LEN, OUTBOX_TTL
from engine.events.models import GuardEvent
from store import keys
from store.client import redis_lrange, redis_rpush

log = logging.getLogger(__name__)


def _serialise(event: GuardEvent) -> str:
    return json.dumps(event.to_dict(), default=str, separators=(",", ":"))


async def append(event: GuardEvent) -> None:
    payload = _serialise(event)
    try:
        await redis_rpush(keys.outbox(event.name), payload, ttl=OUTBOX_TTL, max_len=OUTBOX_MAX_LEN)
        if event.service:
            await redis_rpush(keys.service_outbox(event.service), payload, ttl=OUTBOX_TTL, max_len=OUTBOX_MAX_LEN)
    except Exception as exc:
        log.debug("Outbox append failed %s: %s", event.name, exc)


async def load(event_name: str, service: Optional[str] = None, limit: int = 100) -> List[dict]:
    key = keys.service_outbox(service) if service else keys.outbox(event_name)
    try:
        raw = await redis_lrange(key, -limit if limit > 0 else 0, -1)
    except Exception as exc:
        log.debug("Outbox load failed %s: %s", key, exc)
        return []
    out: List[dict] = []
    for item in raw:
        try:
            entry = json.loads(item)
        except (TypeError, ValueError):
            continue
        if service and entry.get("event") != event_name:
            continue
        out.append(entry)
    return out

