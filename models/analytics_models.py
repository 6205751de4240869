"""
Truckinglane Hub — Analytics Pydantic Models
==============================================

Normalized call, lead and load rows consumed by the canonical analytics
logic, plus the metrics record it produces. Unknown columns coming back
from Supabase are ignored so raw rows validate directly.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ─── Input Records ──────────────────────────────────────────

class CallRecord(BaseModel):
    """A phone call. Duration may arrive under any of three column names."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    created_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    duration_secs: Optional[float] = None
    call_duration_secs: Optional[float] = None
    is_high_intent: Optional[bool] = None
    call_outcome: Optional[str] = None
    termination_reason: Optional[str] = None


class LeadRecord(BaseModel):
    """A lead; phone_call_id links it back to the originating call."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    status: str = "pending"
    created_at: Optional[datetime] = None
    is_high_intent: Optional[bool] = None
    intent_score: Optional[float] = None
    phone_call_id: Optional[str] = None
    booked_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


class LoadRecord(BaseModel):
    """A freight load posted by the agency."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    status: str = "open"
    is_active: bool = True
    created_at: Optional[datetime] = None
    booked_at: Optional[datetime] = None
    booked_source: Optional[str] = None


class AnalyticsThresholds(BaseModel):
    """Second/score thresholds behind the metric definitions."""
    model_config = ConfigDict(frozen=True)

    engaged_secs: float = 20
    quick_hangup_secs: float = 10
    high_intent_duration_secs: float = 45
    intent_score_threshold: float = 70


# ─── Output ─────────────────────────────────────────────────

class AnalyticsMetrics(BaseModel):
    """Flat metrics record shared by every dashboard surface."""
    total_calls: int = 0
    engaged_calls: int = 0
    quick_hangups: int = 0
    total_leads: int = 0
    high_intent_count: int = 0
    booked_leads: int = 0
    closed_leads: int = 0
    pending_leads: int = 0
    claimed_leads: int = 0
    total_minutes: float = 0.0
    open_loads: int = 0
    booked_loads: int = 0
    closed_loads: int = 0
    ai_booked_loads: int = 0
    call_to_lead_rate: float = 0.0
    call_to_booked_rate: float = 0.0
    lead_to_booked_rate: float = 0.0
    engagement_rate: float = 0.0
    warnings: list[str] = Field(default_factory=list)


# ─── Request Models ─────────────────────────────────────────

class MetricsRequest(BaseModel):
    """Compute metrics from records supplied by the caller."""
    calls: list[CallRecord] = Field(default_factory=list)
    leads: list[LeadRecord] = Field(default_factory=list)
    loads: list[LoadRecord] = Field(default_factory=list)


class DateWindow(BaseModel):
    """UTC boundaries for a named reporting range."""
    start_ts: str
    end_ts: str
    label: str
    timezone: str
