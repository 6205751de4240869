"""
Truckinglane Hub — API Server
===============================

FastAPI layer over the analytics, scoring and health modules. Routers are
thin: they validate the request, call a module function and return its
result. Every HubError is answered with the shared error body
{"success": false, "code", "error", "debug_id"}.

Route groups:
  /api/health            - Liveness of this service
  /api/analytics/*       - Canonical dashboard metrics and date windows
  /api/scoring/*         - Lead intent, account fit, high-intent keywords
  /api/system-health/*   - Probes, health events, uptime, incidents
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dashboard.api.middleware import APIKeyMiddleware
from dashboard.api.routers.analytics import router as analytics_router
from dashboard.api.routers.scoring import router as scoring_router
from dashboard.api.routers.system_health import router as system_health_router
from scripts.lib.config import get_settings
from scripts.lib.errors import HubError

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


# ─── Lifespan ─────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app):
    """Application startup and shutdown."""
    logger.info("Starting Truckinglane Hub...")

    try:
        from scripts.lib.supabase_client import get_client
        get_client()
        logger.info("Supabase connected")
    except HubError as e:
        logger.warning("Supabase not available: %s", e.message)

    settings = get_settings()
    logger.info(
        "Alert channels: email %s, sms %s",
        "configured" if settings.email_configured else "not configured",
        "configured" if settings.sms_configured else "not configured",
    )

    logger.info("Truckinglane Hub ready")
    yield
    logger.info("Shutting down Truckinglane Hub...")


# ─── App Setup ────────────────────────────────────────────────

settings = get_settings()

app = FastAPI(
    title="Truckinglane Hub",
    version=VERSION,
    description="Freight brokerage analytics, lead/account scoring and system health",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(APIKeyMiddleware, require_auth=settings.require_api_key)


# ─── Error Contract ───────────────────────────────────────────

@app.exception_handler(HubError)
async def hub_error_handler(request: Request, exc: HubError):
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level, "%s %s failed [%s] %s (debug_id=%s)",
        request.method, request.url.path, exc.code, exc.message, exc.debug_id,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    error = HubError("Internal server error", details={"type": type(exc).__name__})
    logger.exception(
        "%s %s raised (debug_id=%s)", request.method, request.url.path, error.debug_id,
    )
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# ─── Include Routers ──────────────────────────────────────────

app.include_router(analytics_router)
app.include_router(scoring_router)
app.include_router(system_health_router)


# ─── Health ───────────────────────────────────────────────────

@app.get("/api/health", tags=["system"])
async def health():
    """Liveness check with integration status."""
    supabase_ok = False
    try:
        from scripts.lib.supabase_client import get_client
        get_client()
        supabase_ok = True
    except HubError as e:
        logger.debug("Supabase unavailable: %s", e.message)

    current = get_settings()
    return {
        "status": "healthy",
        "service": "Truckinglane Hub",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "integrations": {
            "supabase": supabase_ok,
            "email": current.email_configured,
            "sms": current.sms_configured,
        },
    }
