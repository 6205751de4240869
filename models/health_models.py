"""
Truckinglane Hub — System Health Pydantic Models
==================================================

Probe results, alert state, incidents and request bodies for the health
monitor.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

HealthStatus = Literal["ok", "warn", "fail", "unknown", "disabled"]


class CheckResult(BaseModel):
    """Outcome of a single health probe."""
    service: str
    status: HealthStatus
    error: Optional[str] = None
    diagnosis: Optional[str] = None
    last_at: Optional[str] = None
    message: Optional[str] = None
    latency_ms: Optional[int] = None
    meta: dict[str, Any] = Field(default_factory=dict)


class AlertState(BaseModel):
    """Row of system_alert_state: last known status per service."""
    service_name: str
    last_status: str = "ok"
    last_alerted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AlertDecision(BaseModel):
    service_name: str
    previous_status: str
    new_status: str
    is_state_change: bool
    is_debounced: bool
    should_alert: bool


class Incident(BaseModel):
    id: str
    service: str
    started_at: str
    ended_at: Optional[str] = None
    duration_mins: Optional[int] = None
    reason: str
    diagnosis: str
    resolved: bool


class ServiceStatus(BaseModel):
    status: str = "unknown"
    last_at: Optional[str] = None
    error: Optional[str] = None
    last_success: Optional[str] = None
    last_fail: Optional[str] = None
    fail_reason: Optional[str] = None
    diagnosis: Optional[str] = None
    uptime_24h: Optional[int] = None
    uptime_7d: Optional[int] = None


# ─── Request Models ─────────────────────────────────────────

class HealthEventRequest(BaseModel):
    """Log a health event for a service."""
    service_name: str = Field(min_length=1)
    status: HealthStatus
    error_message: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
