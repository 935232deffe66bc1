"""
Redis access for the guard's outbox and persisted policy, with an in-memory fallback while Redis is unreachable.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

from config import REDIS_URL, settings

log = logging.getLogger(__name__)

_redis_client: Any = None
_fallback: dict[str, str] = {}
_fallback_lists: dict[str, list[str]] = {}
_using_fallback = False
_init_lock = asyncio.Lock()
_retry_after_monotonic: float = 0.0

_MAX_FALLBACK_SIZE = int(settings.store_fallback_max_items)
_REDIS_RETRY_COOLDOWN_SECONDS = float(settings.store_redis_retry_cooldown_seconds)
_REDIS_OP_TIMEOUT_SECONDS = 0.5


async def get_redis() -> Any:
    global _redis_client, _using_fallback, _retry_after_monotonic

    if _redis_client is not None:
        return _redis_client
    if time.monotonic() < _retry_after_monotonic:
        _using_fallback = True
        return None

    async with _init_lock:
        if _redis_client is not None:
            return _redis_client
        if time.monotonic() < _retry_after_monotonic:
            _using_fallback = True
            return None
        try:
            import redis.asyncio as aioredis

            client = aioredis.from_url(
                REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=0.5,
                socket_timeout=0.5,
            )
            await asyncio.wait_for(client.ping(), timeout=0.5)
            _redis_client = client
            _retry_after_monotonic = 0.0
            _using_fallback = False
            log.info("Redis connected: %s", REDIS_URL)
            return _redis_client
        except Exception as exc:
            _retry_after_monotonic = time.monotonic() + max(0.0, _REDIS_RETRY_COOLDOWN_SECONDS)
            if not _using_fallback:
                log.warning("Redis unavailable (%s), guard outbox kept in memory", exc)
                _using_fallback = True
            return None


async def close_redis() -> None:
    global _redis_client
    client, _redis_client = _redis_client, None
    if client is not None:
        try:
            await client.aclose()
        except Exception as exc:
            log.debug("Redis close error: %s", exc)


def _fallback_push(key: str, value: str, max_len: Optional[int]) -> None:
    lst = _fallback_lists.setdefault(key, [])
    lst.append(value)
    cap = min(max_len, _MAX_FALLBACK_SIZE) if max_len else _MAX_FALLBACK_SIZE
    if len(lst) > cap:
        del lst[:-cap]


async def redis_get(key: str) -> Optional[str]:
    client = await get_redis()
    if client is None:
        return _fallback.get(key)
    try:
        return await asyncio.wait_for(client.get(key), timeout=_REDIS_OP_TIMEOUT_SECONDS)
    except Exception as exc:
        log.debug("Redis GET error %s: %s", key, exc)
        return _fallback.get(key)


async def redis_set(key: str, value: str, ttl: Optional[int] = None) -> None:
    client = await get_redis()
    if client is None:
        if key in _fallback or len(_fallback) < _MAX_FALLBACK_SIZE:
            _fallback[key] = value
        return
    try:
        if ttl:
            await asyncio.wait_for(client.setex(key, ttl, value), timeout=_REDIS_OP_TIMEOUT_SECONDS)
        else:
            await asyncio.wait_for(client.set(key, value), timeout=_REDIS_OP_TIMEOUT_SECONDS)
    except Exception as exc:
        log.debug("Redis SET error %s: %s", key, exc)
        if key in _fallback or len(_fallback) < _MAX_FALLBACK_SIZE:
            _fallback[key] = value


async def redis_delete(key: str) -> None:
    client = await get_redis()
    if client is None:
        _fallback.pop(key, None)
        _fallback_lists.pop(key, None)
        return
    try:
        await asyncio.wait_for(client.delete(key), timeout=_REDIS_OP_TIMEOUT_SECONDS)
    except Exception as exc:
        log.debug("Redis DEL error %s: %s", key, exc)
        _fallback.pop(key, None)
        _fallback_lists.pop(key, None)


async def redis_rpush(key: str, value: str, ttl: Optional[int] = None, max_len: Optional[int] = None) -> None:
    client = await get_redis()
    if client is None:
        _fallback_push(key, value, max_len)
        return
    try:
        pipe = client.pipeline()
        pipe.rpush(key, value)
        if max_len:
            pipe.ltrim(key, -max_len, -1)
        if ttl:
            pipe.expire(key, ttl)
        await asyncio.wait_for(pipe.execute(), timeout=_REDIS_OP_TIMEOUT_SECONDS)
    except Exception as exc:
        log.debug("Redis RPUSH error %s: %s", key, exc)
        _fallback_push(key, value, max_len)


async def redis_lrange(key: str, start: int = 0, end: int = -1) -> list[str]:
    client = await get_redis()
    if client is None:
        return _slice(_fallback_lists.get(key, []), start, end)
    try:
        return await asyncio.wait_for(client.lrange(key, start, end), timeout=_REDIS_OP_TIMEOUT_SECONDS)
    except Exception as exc:
        log.debug("Redis LRANGE error %s: %s", key, exc)
        return _slice(_fallback_lists.get(key, []), start, end)


def _slice(values: list[str], start: int, end: int) -> list[str]:
    # LRANGE bounds are inclusive
    stop = None if end == -1 else end + 1
    return list(values[start:stop])


def is_using_fallback() -> bool:
    return _using_fallback
