"""
Entry point for the SLO Guard API server.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from api.routes import router
from config import settings
from services.guard_service import get_guard
from store.client import close_redis

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    stream=sys.stdout,
)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    guard = get_guard()
    await guard.startup()
    try:
        yield
    finally:
        await guard.shutdown()
        await close_redis()


app = FastAPI(
    title="SLO Guard",
    description="Error-budget burn-rate guard: multi-window detection with guarded, idempotent mitigation directives.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router, prefix="/api/v1")


@app.get("/api/v1/ready", tags=["health"], summary="Guard loop readiness probe")
async def ready() -> JSONResponse:
    running = get_guard().scheduler.running
    return JSONResponse(
        status_code=200 if running else 503,
        content={"ready": running},
    )


if __name__ == "__main__":
    uvicorn_kwargs = {
        "host": "0.0.0.0",
        "port": 4323,
        "log_level": "info",
        "access_log": True,
    }
    if settings.ssl_enabled:
        uvicorn_kwargs["ssl_certfile"] = settings.ssl_certfile
        uvicorn_kwargs["ssl_keyfile"] = settings.ssl_keyfile

    uvicorn.run(
        "main:app",
        **uvicorn_kwargs,
    )
