"""
Test Suite for the Directive Dispatcher and Event Bus

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import asyncio
import json

import httpx
import pytest

from engine.dispatch import DirectiveDispatcher
from engine.events import ALL_EVENTS, EventBus, GuardAction, GuardAlert
from store import outbox

NOW = 1_700_000_000.0


def _action(kind="apply"):
    return GuardAction(
        timestamp=NOW,
        service="feed_ws",
        kind=kind,
        action_kind="failover",
        reason="multi_window_burn",
        severity="high",
        params={"to": "secondary"},
        idempotency_key="abc123",
    )


def test_bus_fans_out_and_isolates_failing_subscribers():
    bus = EventBus(history=10)
    seen = []

    def broken(event):
        raise RuntimeError("subscriber down")

    bus.subscribe("guard.alert", broken)
    unsubscribe = bus.subscribe(ALL_EVENTS, seen.append)
    bus.publish(GuardAlert(timestamp=NOW, message="hello"))
    assert len(seen) == 1
    unsubscribe()
    bus.publish(GuardAlert(timestamp=NOW, message="again"))
    assert len(seen) == 1
    assert bus.counts() == {"guard.alert": 2}


def test_bus_history_is_bounded_and_filterable():
    bus = EventBus(history=3)
    for i in range(5):
        bus.publish(GuardAlert(timestamp=NOW + i, message=str(i), service="a" if i % 2 else "b"))
    assert [e.message for e in bus.recent()] == ["2", "3", "4"]
    assert [e.message for e in bus.recent(service="a")] == ["3"]
    assert bus.recent(limit=0) == []


def test_event_to_dict_carries_name():
    payload = _action().to_dict()
    assert payload["event"] == "guard.action"
    assert payload["action_kind"] == "failover"


@pytest.mark.asyncio
async def test_published_events_reach_outbox():
    bus = EventBus()
    dispatcher = DirectiveDispatcher(bus, executor_url="")
    await dispatcher.start()
    bus.publish(GuardAlert(timestamp=NOW, level="error", message="capped", service="feed_ws"))
    bus.publish(_action())
    await dispatcher.stop()

    assert dispatcher.delivered == 2
    alerts = await outbox.load("guard.alert")
    assert [a["message"] for a in alerts] == ["capped"]
    per_service = await outbox.load("guard.action", service="feed_ws")
    assert [a["idempotency_key"] for a in per_service] == ["abc123"]


@pytest.mark.asyncio
async def test_events_published_from_worker_thread_are_delivered():
    bus = EventBus()
    dispatcher = DirectiveDispatcher(bus, executor_url="")
    await dispatcher.start()
    await asyncio.to_thread(bus.publish, GuardAlert(timestamp=NOW, message="from thread"))
    await asyncio.sleep(0.01)
    await dispatcher.stop()
    assert dispatcher.delivered == 1


@pytest.mark.asyncio
async def test_actions_posted_to_executor():
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append((request.url.path, json.loads(request.content)))
        return httpx.Response(202)

    bus = EventBus()
    dispatcher = DirectiveDispatcher(
        bus, executor_url="http://executor", transport=httpx.MockTransport(handler)
    )
    await dispatcher.start()
    bus.publish(_action())
    bus.publish(GuardAlert(timestamp=NOW, message="not posted"))
    await dispatcher.stop()

    assert len(received) == 1
    path, body = received[0]
    assert path == "/directives"
    assert body["kind"] == "apply"
    assert body["idempotency_key"] == "abc123"


@pytest.mark.asyncio
async def test_executor_failure_is_logged_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503)

    bus = EventBus()
    dispatcher = DirectiveDispatcher(
        bus, executor_url="http://executor", transport=httpx.MockTransport(handler)
    )
    await dispatcher.start()
    bus.publish(_action())
    await dispatcher.stop()

    assert len(calls) == 1
    assert dispatcher.executor_failures == 1
    assert dispatcher.delivered == 1


@pytest.mark.asyncio
async def test_full_queue_drops_events():
    bus = EventBus()
    dispatcher = DirectiveDispatcher(bus, executor_url="", queue_size=1)
    dispatcher._loop = asyncio.get_running_loop()
    dispatcher._queue = asyncio.Queue(maxsize=1)
    dispatcher.enqueue(GuardAlert(timestamp=NOW, message="kept"))
    dispatcher.enqueue(GuardAlert(timestamp=NOW, message="dropped"))
    assert dispatcher.dropped == 1
    assert dispatcher._queue.qsize() == 1


def test_enqueue_before_start_is_ignored():
    dispatcher = DirectiveDispatcher(EventBus(), executor_url="")
    dispatcher.enqueue(GuardAlert(timestamp=NOW, message="early"))
    assert dispatcher.dropped == 0
    assert not dispatcher.running
