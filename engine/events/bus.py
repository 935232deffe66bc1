"""
In-process publish/subscribe bus for outbound guard events, keeping a bounded history for status queries and fanning out to subscribers such as the directive dispatcher.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""


from __future__ import annotations

import logging
import threading
from collections import Counter, deque
from typing import Callable, Deque, Dict, List, Optional

from config import settings
from engine.events.models import GuardEvent

log = logging.getLogger(__name__)

Handler = Callable[[GuardEvent], None]
ALL_EVENTS = "*"


class EventBus:
    def __init__(self, history: Optional[int] = None) -> None:
        self._lock = threading.Lock()
        self._handlers: Dict[str, List[Handler]] = {}
        self._history: Deque[GuardEvent] = deque(maxlen=max(1, int(history or settings.guard_event_history)))
        self._counts: Counter[str] = Counter()

    def subscribe(self, name: str, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._handlers.setdefault(name, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(name, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def publish(self, event: GuardEvent) -> None:
        with self._lock:
            self._history.append(event)
            self._counts[event.name] += 1
            handlers = list(self._handlers.get(event.name, ())) + list(self._handlers.get(ALL_EVENTS, ()))
        for handler in handlers:
            try:
                handler(event)
            except Exception as exc:
                log.warning("Subscriber %r failed on %s: %s", handler, event.name, exc)

    def recent(self, name: Optional[str] = None, service: Optional[str] = None, limit: int = 100) -> List[GuardEvent]:
        with self._lock:
            events = list(self._history)
        if name:
            events = [e for e in events if e.name == name]
        if service:
            events = [e for e in events if e.service == service]
        return events[-limit:] if limit > 0 else []

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def clear(self) -> None:
        with self._lock:
            self._history.clear()
            self._counts.clear()
