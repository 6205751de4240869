"""
Truckinglane Hub — Analytics Router
=====================================
Canonical call/lead/load metrics shared by every dashboard view.

Endpoints:
  POST /api/analytics/metrics      - Metrics from posted records
  GET  /api/analytics/metrics      - Metrics for an agency + date range (Supabase)
  GET  /api/analytics/definitions  - Metric labels and descriptions
  GET  /api/analytics/window       - Resolve a named date range
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query

from models.analytics_models import MetricsRequest
from scripts.analytics.analytics_logic import METRIC_DEFINITIONS, calculate_analytics_metrics
from scripts.analytics.date_windows import DEFAULT_TIMEZONE, get_date_window
from scripts.analytics.period_metrics import get_period_metrics
from scripts.lib.logger import setup_logger

logger = setup_logger("analytics_router")

router = APIRouter(prefix="/api/analytics", tags=["analytics"])

RANGE_PATTERN = "^(today|yesterday|7d|30d|all)$"


@router.post("/metrics")
async def metrics_from_records(body: MetricsRequest):
    """Compute metrics for calls, leads and loads supplied in the request."""
    metrics = calculate_analytics_metrics(body.calls, body.leads, body.loads)
    return metrics.model_dump()


@router.get("/metrics")
def metrics_for_period(
    agency_id: str = Query(..., min_length=1),
    range: str = Query("today", pattern=RANGE_PATTERN),
    timezone: str = Query(DEFAULT_TIMEZONE),
    agent_id: Optional[str] = Query(None, description="Restrict leads to one agent"),
):
    """Fetch an agency's records for the window and compute metrics."""
    return get_period_metrics(agency_id, range, timezone, agent_id)


@router.get("/definitions")
async def metric_definitions():
    return {"definitions": METRIC_DEFINITIONS}


@router.get("/window")
async def date_window(
    range: str = Query("today", pattern=RANGE_PATTERN),
    timezone: str = Query(DEFAULT_TIMEZONE),
):
    """UTC start/end for a range in the given timezone."""
    return get_date_window(range, timezone).model_dump()
