"""
Normalized availability samples and timestamp coercion shared by every signal producer.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from engine.enums import SampleKind


@dataclass(frozen=True)
class Sample:
    service: str
    kind: SampleKind
    ok: bool
    timestamp: float


def coerce_timestamp(value: Any) -> Optional[float]:
    """Return epoch seconds for ``value`` or ``None`` when it cannot be read.

    Accepts epoch seconds (int/float), ``datetime`` (naive values are taken as
    UTC) and ISO-8601 strings, including a trailing ``Z``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        ts = float(value)
        return ts if math.isfinite(ts) and ts >= 0 else None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return coerce_timestamp(float(text))
        except ValueError:
            pass
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return coerce_timestamp(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def coerce_kind(value: Any) -> Optional[SampleKind]:
    if isinstance(value, SampleKind):
        return value
    try:
        return SampleKind(str(value))
    except ValueError:
        return None
