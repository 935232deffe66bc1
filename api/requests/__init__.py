from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

Timestamp = Union[float, str]


class ProbeRequest(BaseModel):
    service: str
    ts: Timestamp
    ok: bool
    status_code: Optional[int] = None
    latency_ms: Optional[float] = Field(default=None, ge=0.0)


class FreshnessRequest(BaseModel):
    service: str
    ts: Timestamp
    lag_ms: float


class HeartbeatRequest(BaseModel):
    service: str
    ts: Timestamp
    missed_count: int = Field(default=1, ge=1)
    expected_interval_ms: Optional[float] = None


class ErrorEventRequest(BaseModel):
    service: str
    ts: Timestamp
    kind: str = ""
    count: int = Field(default=1, ge=1)


class CircuitRequest(BaseModel):
    service: str
    ts: Timestamp
    state: Literal["open", "half_open", "closed"]


class SampleRequest(BaseModel):
    service: str
    kind: str
    ok: bool
    ts: Timestamp


class ActionConfig(BaseModel):
    kind: Literal["failover", "degrade", "gate", "circuit"]
    params: Dict[str, Any] = Field(default_factory=dict)
    min_severity: Literal["low", "medium", "high"] = "low"
    disruptive: Optional[bool] = None


class ProfileRequest(BaseModel):
    slo_target_pct: float
    windows: List[str] = Field(default_factory=list)
    thresholds: Dict[str, float]
    actions: List[ActionConfig] = Field(default_factory=list)
    latency_ceiling_ms: Optional[float] = None
    freshness_ceiling_ms: Optional[float] = None
    min_samples: Optional[int] = Field(default=None, ge=0)
    stable_after_seconds: Optional[float] = Field(default=None, ge=0.0)
    cooldown_seconds: Optional[float] = Field(default=None, ge=0.0)
    recovery_timeout_seconds: Optional[float] = Field(default=None, ge=0.0)
    max_disruptive_per_hour: Optional[int] = Field(default=None, ge=0)

    def to_profile_dict(self) -> Dict[str, Any]:
        raw = self.model_dump(exclude_none=True)
        raw["actions"] = [a.model_dump(exclude_none=True) for a in self.actions]
        return raw


class PolicyRequest(BaseModel):
    guard_enabled: bool = True
    allow_tighten: bool = True
    denied_kinds: List[Literal["failover", "degrade", "gate", "circuit"]] = Field(default_factory=list)
    max_auto_trim_pct: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class DirectiveRequest(BaseModel):
    directive: Literal["halt", "resume"]
    services: List[str] = Field(default_factory=list)
    ttl_seconds: float = Field(default=900.0, ge=0.0)
    reason: str = ""
