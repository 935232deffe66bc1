"""
Fire-and-forget dispatch of published guard events: every event is appended to the store outbox, and approved action directives are optionally posted to an external executor.

Publishing never blocks the evaluation loop. Events are handed to a bounded
``asyncio.Queue`` and a single consumer task delivers them; when the queue is
full the event is dropped and counted. Executor posts are attempted once and
failures are only logged.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable, Optional

import httpx

from config import settings
from engine.events import ALL_EVENTS, EventBus, GuardAction, GuardEvent
from store import outbox

log = logging.getLogger(__name__)


class DirectiveDispatcher:
    def __init__(
        self,
        bus: EventBus,
        executor_url: Optional[str] = None,
        timeout: Optional[float] = None,
        queue_size: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._bus = bus
        self._transport = transport
        url = settings.guard_executor_url if executor_url is None else executor_url
        self.executor_url = url.rstrip("/") if url else None
        self.timeout = float(settings.guard_executor_timeout if timeout is None else timeout)
        self.queue_size = int(settings.guard_dispatch_queue_size if queue_size is None else queue_size)
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None
        self._client: Optional[httpx.AsyncClient] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.delivered = 0
        self.dropped = 0
        self.executor_failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=max(1, self.queue_size))
        if self.executor_url:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        self._task = asyncio.create_task(self._consume())
        self._unsubscribe = self._bus.subscribe(ALL_EVENTS, self.enqueue)
        log.info("Directive dispatcher started (executor=%s)", self.executor_url or "disabled")

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._queue is not None and self.running:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=self.timeout)
            except asyncio.TimeoutError:
                log.warning("Dispatcher stopped with %d undelivered event(s)", self._queue.qsize())
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()
        log.info("Directive dispatcher stopped (delivered=%d, dropped=%d)", self.delivered, self.dropped)

    def enqueue(self, event: GuardEvent) -> None:
        """Bus handler; safe to call from the evaluation thread."""
        loop = self._loop
        if loop is None or self._queue is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._put(event)
        else:
            loop.call_soon_threadsafe(self._put, event)

    def _put(self, event: GuardEvent) -> None:
        if self._queue is None:
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            log.warning("Dispatch queue full, dropped %s for %s", event.name, event.service)

    async def _consume(self) -> None:
        assert self._queue is not None
        while True:
            event = await self._queue.get()
            try:
                await self.deliver(event)
            except Exception as exc:
                log.warning("Delivery of %s failed: %s", event.name, exc)
            finally:
                self._queue.task_done()

    async def deliver(self, event: GuardEvent) -> None:
        await outbox.append(event)
        if isinstance(event, GuardAction) and self._client is not None and self.executor_url:
            await self._post(event)
        self.delivered += 1

    async def _post(self, event: GuardAction) -> None:
        try:
            resp = await self._client.post(f"{self.executor_url}/directives", json=event.to_dict())
            resp.raise_for_status()
            log.debug("Executor accepted %s %s for %s", event.kind, event.action_kind, event.service)
        except httpx.HTTPError as exc:
            self.executor_failures += 1
            log.warning("Executor post failed for %s %s (%s): %s",
                        event.kind, event.action_kind, event.service, exc)
