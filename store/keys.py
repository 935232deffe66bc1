"""
Key layout for guard state kept in Redis.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import hashlib

PREFIX = "guard"


def _slug(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()[:32]


def outbox(event_name: str) -> str:
    return f"{PREFIX}:outbox:{event_name}"


def service_outbox(service: str) -> str:
    return f"{PREFIX}:outbox:service:{_slug(service)}"


def policy() -> str:
    return f"{PREFIX}:policy"
