"""
Guard control routes: status, service profile management, policy overrides, upstream directives and recent events.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query

from api.requests import DirectiveRequest, PolicyRequest, ProfileRequest
from api.routes.exception import handle_exceptions
from engine.enums import ActionKind
from engine.errors import UnknownService
from engine.policy import PolicySnapshot
from engine.profiles import profile_from_dict
from services.guard_service import get_guard
from store import outbox
from store import policy as policy_store

router = APIRouter(prefix="/guard", tags=["Guard"])


@router.get("/status", summary="Guard state for every registered service")
@handle_exceptions
async def status() -> Dict[str, Any]:
    guard = get_guard()
    out = guard.scheduler.status()
    out["dispatch"] = {
        "running": guard.dispatcher.running,
        "delivered": guard.dispatcher.delivered,
        "dropped": guard.dispatcher.dropped,
        "executor_failures": guard.dispatcher.executor_failures,
    }
    return out


@router.get("/services/{service}", summary="Guard state for one service")
@handle_exceptions
async def get_service(service: str) -> Dict[str, Any]:
    snap = get_guard().scheduler.service_status(service)
    if snap is None:
        raise UnknownService(service)
    return snap


@router.put("/services/{service}", summary="Register or reload a service profile")
@handle_exceptions
async def put_service(service: str, req: ProfileRequest) -> Dict[str, Any]:
    scheduler = get_guard().scheduler
    profile = profile_from_dict(service, req.to_profile_dict())
    scheduler.register(profile)
    return scheduler.service_status(service) or {"service": service}


@router.delete("/services/{service}", summary="Stop guarding a service")
@handle_exceptions
async def delete_service(service: str) -> Dict[str, Any]:
    if not get_guard().scheduler.unregister(service):
        raise UnknownService(service)
    return {"service": service, "removed": True}


@router.put("/policy", summary="Replace the runtime policy snapshot")
@handle_exceptions
async def put_policy(req: PolicyRequest) -> Dict[str, Any]:
    snapshot = PolicySnapshot(
        guard_enabled=req.guard_enabled,
        allow_tighten=req.allow_tighten,
        denied_kinds=frozenset(ActionKind(k) for k in req.denied_kinds),
        max_auto_trim_pct=req.max_auto_trim_pct,
    )
    get_guard().scheduler.policy.update(snapshot)
    await policy_store.save(snapshot)
    return req.model_dump()


@router.post("/directives", summary="Apply an upstream halt or resume directive")
@handle_exceptions
async def post_directive(req: DirectiveRequest) -> Dict[str, Any]:
    scheduler = get_guard().scheduler
    services = req.services or scheduler.registry.services()
    touched = scheduler.policy.apply_directive(
        req.directive, services, scheduler.clock(), ttl_seconds=req.ttl_seconds, reason=req.reason
    )
    return {"directive": req.directive, "services": services, "touched": touched}


@router.get("/events", summary="Recently published guard events")
@handle_exceptions
async def events(
    name: Optional[str] = Query(default=None),
    service: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    source: str = Query(default="memory"),
) -> Dict[str, Any]:
    if source == "outbox":
        if not name:
            raise HTTPException(status_code=400, detail="name is required when reading the outbox")
        items = await outbox.load(name, service=service, limit=limit)
    elif source == "memory":
        items = [e.to_dict() for e in get_guard().scheduler.bus.recent(name=name, service=service, limit=limit)]
    else:
        raise HTTPException(status_code=400, detail=f"unknown source {source!r}")
    return {"count": len(items), "events": items}
