"""
Truckinglane Hub — Health Probes
==================================

Individual checks used by the system-health monitor. Every probe returns a
CheckResult and never raises; an exception inside a probe becomes a fail
result for that probe only.

Service probes (system_health_events):
  elevenlabs_calls, elevenlabs_webhook, ai_assistant, carrier_lookup,
  lead_scoring

Infrastructure probes (status_checks):
  database, auth, storage, edge functions, webhook_processing, calls
"""
from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta
from typing import Awaitable, Callable

import httpx

from models.health_models import CheckResult
from scripts.health.diagnosis import diagnose_failure
from scripts.lib.logger import setup_logger
from scripts.lib.supabase_client import fetch_latest, query_table
from scripts.lib.utils import parse_timestamp, round_half_up

logger = setup_logger("health_probes")

CALL_FRESHNESS = timedelta(minutes=5)
WEBHOOK_FAILURE_WINDOW = timedelta(hours=1)

# (ok_max_ms, warn_max_ms)
LATENCY_THRESHOLDS = {
    "database": (300, 1000),
    "auth": (500, 1500),
    "storage": (500, 1500),
    "edge_functions": (1000, 3000),
}

EDGE_FUNCTIONS = ("ai-assistant", "carrier-lookup")


def classify_latency(latency_ms: int, kind: str) -> str:
    ok_max, warn_max = LATENCY_THRESHOLDS[kind]
    if latency_ms <= ok_max:
        return "ok"
    if latency_ms <= warn_max:
        return "warn"
    return "fail"


def _elapsed_ms(start: float) -> int:
    return int(round_half_up((time.perf_counter() - start) * 1000, 0))


async def guarded(service: str, probe: Callable[[], Awaitable[CheckResult]]) -> CheckResult:
    """Run a probe, turning any exception into a fail result."""
    try:
        return await probe()
    except Exception as e:
        logger.error("Probe %s raised: %s", service, e)
        return CheckResult(
            service=service,
            status="fail",
            error=str(e),
            diagnosis=diagnose_failure(service, str(e)),
        )


# ─── Service probes ─────────────────────────────────────────

async def check_calls(client, now: datetime) -> CheckResult:
    """Latest AI call summary: ok within 5 minutes, warn if older."""
    row = await asyncio.to_thread(
        fetch_latest, "ai_call_summaries", "created_at",
        select="created_at, call_outcome", client=client,
    )
    last_at = (row or {}).get("created_at")
    if not last_at:
        return CheckResult(
            service="elevenlabs_calls", status="unknown",
            diagnosis="No calls recorded yet",
        )

    if parse_timestamp(last_at) > now - CALL_FRESHNESS:
        return CheckResult(service="elevenlabs_calls", status="ok", last_at=last_at)

    return CheckResult(
        service="elevenlabs_calls",
        status="warn",
        last_at=last_at,
        diagnosis=diagnose_failure("elevenlabs_calls", "No successful calls in last 5 minutes"),
    )


async def check_webhook(client, now: datetime) -> CheckResult:
    """Latest webhook plus any failed webhook in the last hour."""
    row = await asyncio.to_thread(
        fetch_latest, "webhook_logs", "processed_at",
        select="processed_at, error", client=client,
    )
    if row:
        result = CheckResult(
            service="elevenlabs_webhook",
            status="warn" if row.get("error") else "ok",
            error=row.get("error") or None,
            last_at=row.get("processed_at"),
        )
    else:
        result = CheckResult(service="elevenlabs_webhook", status="unknown")

    recent = await asyncio.to_thread(
        query_table, "webhook_logs", select="id, error",
        gte={"processed_at": (now - WEBHOOK_FAILURE_WINDOW).isoformat()},
        client=client,
    )
    failed = [r for r in recent if r.get("error")]
    if failed:
        error = f"{len(failed)} failed webhook(s) in last hour"
        result.status = "fail"
        result.error = error
        result.diagnosis = diagnose_failure("elevenlabs_webhook", error)
    return result


async def check_lead_scoring(client, now: datetime) -> CheckResult:
    row = await asyncio.to_thread(
        fetch_latest, "leads", "created_at",
        select="created_at, is_high_intent", client=client,
    )
    if row:
        return CheckResult(service="lead_scoring", status="ok", last_at=row.get("created_at"))
    return CheckResult(service="lead_scoring", status="unknown")


async def ping_function(
    http: httpx.AsyncClient,
    base_url: str,
    api_key: str,
    function_name: str,
    body: dict,
    service: str,
    any_response_ok: bool = False,
) -> CheckResult:
    """
    POST to a Supabase function.

    With any_response_ok, any HTTP answer counts as alive (a 404 for an
    unknown test record still proves the function runs).
    """
    url = f"{base_url}/functions/v1/{function_name}"
    start = time.perf_counter()
    try:
        response = await http.post(
            url, json=body, headers={"Authorization": f"Bearer {api_key}"},
        )
    except httpx.HTTPError as e:
        error = f"{type(e).__name__}: {e}"
        return CheckResult(
            service=service, status="fail", error=error,
            diagnosis=diagnose_failure(service, error),
            latency_ms=_elapsed_ms(start),
        )

    latency = _elapsed_ms(start)
    if response.status_code >= 400 and not any_response_ok:
        error = f"HTTP {response.status_code}: {response.text[:200]}"
        return CheckResult(
            service=service, status="fail", error=error,
            diagnosis=diagnose_failure(service, error), latency_ms=latency,
        )
    return CheckResult(service=service, status="ok", latency_ms=latency)


# ─── Infrastructure probes ──────────────────────────────────

def _latency_result(service: str, kind: str, latency: int, slow_label: str = "High latency") -> CheckResult:
    status = classify_latency(latency, kind)
    return CheckResult(
        service=service,
        status=status,
        message="Healthy" if status == "ok" else f"{slow_label}: {latency}ms",
        latency_ms=latency,
    )


async def check_database(client) -> CheckResult:
    start = time.perf_counter()
    try:
        await asyncio.to_thread(
            lambda: client.table("profiles").select("id").limit(1).execute()
        )
    except Exception as e:
        return CheckResult(
            service="database", status="fail", message="Query failed",
            latency_ms=_elapsed_ms(start), meta={"error": str(e)},
        )
    return _latency_result("database", "database", _elapsed_ms(start))


async def check_auth(client) -> CheckResult:
    start = time.perf_counter()
    try:
        await asyncio.to_thread(lambda: client.auth.admin.list_users(page=1, per_page=1))
    except Exception as e:
        return CheckResult(
            service="auth", status="fail", message="Auth check failed",
            latency_ms=_elapsed_ms(start), meta={"error": str(e)},
        )
    return _latency_result("auth", "auth", _elapsed_ms(start))


async def check_storage(client) -> CheckResult:
    start = time.perf_counter()
    try:
        await asyncio.to_thread(client.storage.list_buckets)
    except Exception as e:
        latency = _elapsed_ms(start)
        if "not found" in str(e).lower():
            return CheckResult(
                service="storage", status="ok", message="No buckets configured",
                latency_ms=latency,
            )
        return CheckResult(
            service="storage", status="warn", message="Storage query issue",
            latency_ms=latency, meta={"error": str(e)},
        )
    return _latency_result("storage", "storage", _elapsed_ms(start))


async def check_edge_function(http: httpx.AsyncClient, base_url: str, function_name: str) -> CheckResult:
    service = function_name.replace("-", "_")
    start = time.perf_counter()
    try:
        response = await http.get(f"{base_url}/functions/v1/{function_name}", params={"health": "true"})
    except httpx.HTTPError as e:
        return CheckResult(
            service=service, status="fail", message="Unreachable",
            latency_ms=_elapsed_ms(start), meta={"error": str(e)},
        )
    latency = _elapsed_ms(start)
    if response.status_code >= 400:
        return CheckResult(
            service=service, status="fail", message=f"HTTP {response.status_code}",
            latency_ms=latency,
        )
    return _latency_result(service, "edge_functions", latency, slow_label="Slow")


async def check_webhook_processing(client, now: datetime) -> CheckResult:
    start = time.perf_counter()
    try:
        row = await asyncio.to_thread(
            fetch_latest, "webhook_logs", "processed_at",
            select="processed_at, error", client=client,
        )
    except Exception as e:
        logger.warning("Webhook processing check failed: %s", e)
        return CheckResult(
            service="webhook_processing", status="warn", message="Could not check",
            latency_ms=_elapsed_ms(start),
        )
    latency = _elapsed_ms(start)
    if not row:
        return CheckResult(
            service="webhook_processing", status="ok", message="No webhooks yet",
            latency_ms=latency,
        )

    minutes_ago = (now - parse_timestamp(row["processed_at"])).total_seconds() / 60
    meta = {"minutes_ago": int(round_half_up(minutes_ago, 0))}
    if row.get("error"):
        message, status = "Last webhook had error", "warn"
    elif minutes_ago > 60:
        message, status = "Idle (no recent activity)", "ok"
    else:
        message, status = "Processing", "ok"
    return CheckResult(
        service="webhook_processing", status=status, message=message,
        latency_ms=latency, meta=meta,
    )


async def check_recent_calls(client, now: datetime) -> CheckResult:
    start = time.perf_counter()
    try:
        row = await asyncio.to_thread(
            fetch_latest, "phone_calls", "created_at",
            select="created_at, call_status", client=client,
        )
    except Exception as e:
        logger.warning("Recent calls check failed: %s", e)
        return CheckResult(
            service="calls", status="warn", message="Could not check",
            latency_ms=_elapsed_ms(start),
        )
    latency = _elapsed_ms(start)
    if not row:
        return CheckResult(service="calls", status="ok", message="No calls yet", latency_ms=latency)

    minutes_ago = (now - parse_timestamp(row["created_at"])).total_seconds() / 60
    meta = {"minutes_ago": int(round_half_up(minutes_ago, 0))}
    if row.get("call_status") == "failed" and minutes_ago < 5:
        return CheckResult(
            service="calls", status="warn", message="Recent call failed",
            latency_ms=latency, meta=meta,
        )
    return CheckResult(
        service="calls", status="ok", message="Operational", latency_ms=latency, meta=meta,
    )
