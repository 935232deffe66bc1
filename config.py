"""
Constants and configuration for SLO Guard.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import os
from typing import Any, Dict, Optional

from pydantic_settings import BaseSettings


REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
OUTBOX_TTL: int = int(os.getenv("OUTBOX_TTL", "86400"))
OUTBOX_MAX_LEN: int = int(os.getenv("OUTBOX_MAX_LEN", "5000"))

GUARD_EXECUTOR_URL = os.getenv("GUARD_EXECUTOR_URL", "").rstrip("/")
GUARD_EXECUTOR_TIMEOUT = int(os.getenv("GUARD_EXECUTOR_TIMEOUT", "5"))

# window label -> seconds, used when a profile names windows by label
WINDOW_SECONDS: Dict[str, int] = {
    "5m": 300,
    "30m": 1800,
    "1h": 3600,
    "6h": 21600,
    "24h": 86400,
    "3d": 259200,
}

# weight values assigned to severity labels for comparison and escalation
SEVERITY_WEIGHTS: Dict[str, int] = {
    "low": 1,
    "medium": 2,
    "high": 4,
}

# action kinds that count against the disruptive-action cap unless a profile says otherwise
DISRUPTIVE_ACTION_KINDS = ("failover", "circuit")

# action kinds a policy snapshot may veto through allow_tighten
TIGHTEN_ACTION_KINDS = ("gate", "degrade")

DEFAULT_SERVICE_PROFILES: Dict[str, Dict[str, Any]] = {
    "feed_ws": {
        "slo_target_pct": 99.9,
        "freshness_ceiling_ms": 800,
        "windows": ["5m", "1h", "6h", "24h"],
        "thresholds": {"5m": 14.4, "1h": 6.0, "6h": 3.0, "24h": 1.0},
        "actions": [
            {"kind": "failover", "params": {"to": "secondary"}, "min_severity": "high"},
            {"kind": "degrade", "params": {"drop": ["optional_metrics", "low_priority_topics"]}, "min_severity": "medium"},
            {"kind": "gate", "params": {"type": "rate_limit", "per_min": 60}},
        ],
    },
    "order_api": {
        "slo_target_pct": 99.95,
        "latency_ceiling_ms": 900,
        "windows": ["5m", "1h", "6h", "24h"],
        "thresholds": {"5m": 10.0, "1h": 5.0, "6h": 2.5, "24h": 1.0},
        "actions": [
            {"kind": "circuit", "params": {"policy": "open_on_5xx_spike"}, "min_severity": "high"},
            {"kind": "gate", "params": {"type": "shed_load", "drop_pct": 0.2}, "min_severity": "medium"},
            {"kind": "degrade", "params": {"drop": ["advanced_routes"]}},
        ],
    },
}


class Settings(BaseSettings):
    # scheduler cadence
    guard_eval_interval_seconds: float = float(os.getenv("GUARD_EVAL_INTERVAL_SECONDS", "5"))
    guard_metrics_interval_seconds: float = float(os.getenv("GUARD_METRICS_INTERVAL_SECONDS", "10"))
    guard_eval_history: int = 100

    # sample retention
    guard_retention_margin_seconds: float = 300.0
    guard_default_retention_seconds: float = 86400.0
    guard_max_samples_per_service: int = int(os.getenv("GUARD_MAX_SAMPLES_PER_SERVICE", "200000"))
    guard_max_clock_skew_seconds: float = float(os.getenv("GUARD_MAX_CLOCK_SKEW_SECONDS", "30"))

    # profile defaults, overridable per service
    guard_min_samples: int = int(os.getenv("GUARD_MIN_SAMPLES", "5"))
    guard_freshness_ceiling_ms: float = 1000.0
    guard_stable_after_seconds: float = float(os.getenv("GUARD_STABLE_AFTER_SECONDS", "900"))
    guard_cooldown_seconds: float = float(os.getenv("GUARD_COOLDOWN_SECONDS", "600"))
    guard_recovery_timeout_seconds: float = 3600.0
    guard_max_disruptive_per_hour: int = int(os.getenv("GUARD_MAX_DISRUPTIVE_PER_HOUR", "3"))

    # evaluator tuning
    guard_early_warning_ratio: float = 0.5
    guard_recovering_fraction: float = 0.5

    # controller bookkeeping
    guard_idempotency_ttl_seconds: float = float(os.getenv("GUARD_IDEMPOTENCY_TTL_SECONDS", "3600"))
    guard_idempotency_bucket_seconds: float = float(os.getenv("GUARD_IDEMPOTENCY_BUCKET_SECONDS", "300"))
    guard_cap_window_seconds: float = 3600.0

    # outbound events
    guard_event_history: int = 1000
    guard_dispatch_queue_size: int = 10_000
    guard_executor_url: Optional[str] = GUARD_EXECUTOR_URL or None
    guard_executor_timeout: int = GUARD_EXECUTOR_TIMEOUT

    guard_load_default_profiles: bool = os.getenv("GUARD_LOAD_DEFAULT_PROFILES", "true").lower() == "true"
    guard_profiles: Dict[str, Dict[str, Any]] = DEFAULT_SERVICE_PROFILES

    store_fallback_max_items: int = int(os.getenv("STORE_FALLBACK_MAX_ITEMS", "10000"))
    store_redis_retry_cooldown_seconds: float = float(os.getenv("STORE_REDIS_RETRY_COOLDOWN_SECONDS", "10"))

    # server
    ssl_enabled: bool = os.getenv("GUARD_SSL_ENABLED", "false").lower() == "true"
    ssl_certfile: str = os.getenv("GUARD_SSL_CERTFILE", "")
    ssl_keyfile: str = os.getenv("GUARD_SSL_KEYFILE", "")


settings = Settings()
