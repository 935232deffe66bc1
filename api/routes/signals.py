"""
Inbound signal routes: probe results, feed freshness, missed heartbeats, error events, circuit-breaker state and raw samples.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter

from api.requests import (
    CircuitRequest,
    ErrorEventRequest,
    FreshnessRequest,
    HeartbeatRequest,
    ProbeRequest,
    SampleRequest,
)
from api.routes.exception import handle_exceptions
from engine.errors import InvalidSample
from services.guard_service import get_guard

router = APIRouter(prefix="/signals", tags=["Signals"])


def _accepted(ok: bool, service: str) -> Dict[str, Any]:
    if not ok:
        raise InvalidSample(f"sample for {service!r} rejected")
    return {"accepted": True, "service": service}


@router.post("/probe", summary="Record a synthetic probe result")
@handle_exceptions
async def probe(req: ProbeRequest) -> Dict[str, Any]:
    ingestor = get_guard().scheduler.ingestor
    return _accepted(
        ingestor.probe_result(req.service, req.ts, req.ok, status_code=req.status_code, latency_ms=req.latency_ms),
        req.service,
    )


@router.post("/freshness", summary="Record a feed freshness measurement")
@handle_exceptions
async def freshness(req: FreshnessRequest) -> Dict[str, Any]:
    ingestor = get_guard().scheduler.ingestor
    return _accepted(ingestor.feed_freshness(req.service, req.ts, req.lag_ms), req.service)


@router.post("/heartbeat", summary="Record a missed heartbeat")
@handle_exceptions
async def heartbeat(req: HeartbeatRequest) -> Dict[str, Any]:
    ingestor = get_guard().scheduler.ingestor
    return _accepted(
        ingestor.heartbeat_missed(req.service, req.ts, req.missed_count, req.expected_interval_ms),
        req.service,
    )


@router.post("/error", summary="Record an error event")
@handle_exceptions
async def error(req: ErrorEventRequest) -> Dict[str, Any]:
    ingestor = get_guard().scheduler.ingestor
    return _accepted(ingestor.error_event(req.service, req.ts, req.kind, req.count), req.service)


@router.post("/circuit", summary="Record a circuit-breaker state")
@handle_exceptions
async def circuit(req: CircuitRequest) -> Dict[str, Any]:
    ingestor = get_guard().scheduler.ingestor
    return _accepted(ingestor.circuit_state(req.service, req.ts, req.state), req.service)


@router.post("/sample", summary="Record a raw success/failure sample")
@handle_exceptions
async def sample(req: SampleRequest) -> Dict[str, Any]:
    ingestor = get_guard().scheduler.ingestor
    return _accepted(ingestor.ingest(req.service, req.kind, req.ok, req.ts), req.service)
