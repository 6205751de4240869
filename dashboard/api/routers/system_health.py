"""
Truckinglane Hub — System Health Router
=========================================

Endpoints:
  POST /api/system-health/log             - Record a health event (+ alerting)
  POST /api/system-health/check           - Probe all monitored services
  POST /api/system-health/infrastructure  - Database/auth/storage/function latency
  GET  /api/system-health/status          - Per-service status and uptime
  GET  /api/system-health/incidents       - Incident history (30 days)
  POST /api/system-health/test-sms        - Send a test alert SMS
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from dashboard.api.middleware import require_scope
from models.health_models import HealthEventRequest
from scripts.health.system_health import (
    get_health_status,
    get_incidents,
    log_health_event,
    run_health_check,
    run_infrastructure_checks,
    send_test_sms,
)
from scripts.lib.logger import setup_logger

logger = setup_logger("system_health_router")

router = APIRouter(prefix="/api/system-health", tags=["system-health"])


@router.post("/log")
async def log_event(body: HealthEventRequest):
    """Store the event; failures are diagnosed and may trigger alerts."""
    return await log_health_event(
        body.service_name, body.status, body.error_message, body.metadata,
    )


@router.post("/check")
async def check():
    return await run_health_check()


@router.post("/infrastructure")
async def infrastructure():
    return await run_infrastructure_checks()


@router.get("/status")
def status():
    return get_health_status()


@router.get("/incidents")
def incidents():
    return get_incidents()


@router.post("/test-sms", dependencies=[Depends(require_scope("admin"))])
async def test_sms():
    return await send_test_sms()
