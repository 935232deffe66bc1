"""
Event packages for the outbound guard event stream.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.events.bus import ALL_EVENTS, EventBus
from engine.events.models import (
    GuardAction,
    GuardAlert,
    GuardEarlyWarning,
    GuardEvent,
    GuardMetrics,
    GuardRecovered,
    GuardTriggered,
)

__all__ = [
    "ALL_EVENTS", "EventBus", "GuardEvent", "GuardTriggered", "GuardEarlyWarning",
    "GuardRecovered", "GuardAction", "GuardAlert", "GuardMetrics",
]
