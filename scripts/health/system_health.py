"""
Truckinglane Hub — System Health Monitor
==========================================

Runs service probes, records health events, derives uptime and incident
history, and routes failures through the alert debouncer.

Functions:
  run_health_check()          - Probe all monitored services, persist, alert
  run_infrastructure_checks() - Database/auth/storage/function latency probes
  log_health_event()          - Record one externally reported event
  get_health_status()         - Per-service status with 24h / 7d uptime
  get_incidents()             - fail -> ok incident history (30 days)
  detect_incidents()          - Pure incident detection over events
  compute_uptime()            - Percentage of ok events
  overall_status()            - Worst status across services
  send_test_sms()             - Verify the SMS alert channel

Usage:
    python -m scripts.health.system_health --action check
    python -m scripts.health.system_health --action status
    python -m scripts.health.system_health --action incidents
    python -m scripts.health.system_health --action infra
"""
from __future__ import annotations

import argparse
import asyncio
import json
from datetime import datetime, timedelta
from typing import Iterable, Optional

import httpx

from integrations.twilio_sms import TwilioSMSNotifier
from models.health_models import CheckResult, Incident, ServiceStatus
from scripts.health import probes
from scripts.health.alerting import AlertStateStore, check_and_alert
from scripts.health.diagnosis import diagnose_failure
from scripts.lib.config import get_settings
from scripts.lib.errors import DataFetchError
from scripts.lib.logger import setup_logger
from scripts.lib.supabase_client import (
    count_rows,
    get_client,
    insert_row,
    query_table,
    upsert_row,
)
from scripts.lib.utils import parse_timestamp, round_half_up, utc_now

logger = setup_logger("system_health")

SERVICES = (
    "elevenlabs_calls",
    "elevenlabs_webhook",
    "ai_assistant",
    "carrier_lookup",
    "lead_scoring",
)

INCIDENT_LOOKBACK = timedelta(days=30)
MAX_EVENTS = 10000
TEST_SMS_TEXT = "This is a test message from Truckinglane System Health."


# ─── Pure helpers ───────────────────────────────────────────

def uptime_from_counts(ok: int, total: int) -> Optional[int]:
    if not total:
        return None
    return int(round_half_up(ok / total * 100, 0))


def compute_uptime(events: Iterable[dict]) -> Optional[int]:
    """round(ok / total * 100), or None when there are no events."""
    statuses = [e.get("status") for e in events]
    return uptime_from_counts(sum(1 for s in statuses if s == "ok"), len(statuses))


def overall_status(statuses: Iterable[str]) -> str:
    statuses = list(statuses)
    if "fail" in statuses:
        return "fail"
    if "warn" in statuses:
        return "warn"
    return "ok"


def _minutes_between(start: datetime, end: datetime) -> int:
    return int(round_half_up((end - start).total_seconds() / 60, 0))


def detect_incidents(events: Iterable[dict], now: Optional[datetime] = None) -> list[Incident]:
    """
    Group health events into incidents.

    An incident opens at the first fail of a service and closes at the next
    ok. Services still failing produce an unresolved incident whose
    duration runs to now. Newest incidents come first.
    """
    now = now or utc_now()
    ordered = sorted(events, key=lambda e: parse_timestamp(e["created_at"]))
    open_incidents: dict[str, dict] = {}
    incidents: list[Incident] = []

    for event in ordered:
        service = event["service_name"]
        status = event.get("status")
        current = open_incidents.get(service)

        if status == "fail" and current is None:
            reason = event.get("error_message") or "Unknown error"
            open_incidents[service] = {
                "started_at": event["created_at"],
                "reason": reason,
                "diagnosis": (event.get("metadata") or {}).get("diagnosis") or reason,
            }
        elif status == "ok" and current is not None:
            incidents.append(Incident(
                id=f"{service}-{current['started_at']}",
                service=service,
                started_at=current["started_at"],
                ended_at=event["created_at"],
                duration_mins=_minutes_between(
                    parse_timestamp(current["started_at"]), parse_timestamp(event["created_at"]),
                ),
                reason=current["reason"],
                diagnosis=current["diagnosis"],
                resolved=True,
            ))
            del open_incidents[service]

    for service, current in open_incidents.items():
        incidents.append(Incident(
            id=f"{service}-{current['started_at']}",
            service=service,
            started_at=current["started_at"],
            ended_at=None,
            duration_mins=_minutes_between(parse_timestamp(current["started_at"]), now),
            reason=current["reason"],
            diagnosis=current["diagnosis"],
            resolved=False,
        ))

    incidents.sort(key=lambda i: parse_timestamp(i.started_at), reverse=True)
    return incidents


# ─── Health check ───────────────────────────────────────────

def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=get_settings().http_timeout_seconds)


async def _collect_service_results(client, http: httpx.AsyncClient, now: datetime) -> list[CheckResult]:
    settings = get_settings()
    base_url = settings.supabase_url.rstrip("/")

    checks = (
        ("elevenlabs_calls", lambda: probes.check_calls(client, now)),
        ("elevenlabs_webhook", lambda: probes.check_webhook(client, now)),
        ("ai_assistant", lambda: probes.ping_function(
            http, base_url, settings.supabase_key, "ai-assistant",
            {"action": "health-check"}, "ai_assistant",
        )),
        ("carrier_lookup", lambda: probes.ping_function(
            http, base_url, settings.supabase_key, "carrier-lookup",
            {"usdot": "123456"}, "carrier_lookup", any_response_ok=True,
        )),
        ("lead_scoring", lambda: probes.check_lead_scoring(client, now)),
    )
    return list(await asyncio.gather(*(probes.guarded(name, fn) for name, fn in checks)))


async def run_health_check(
    client=None,
    http: Optional[httpx.AsyncClient] = None,
    alert_store: Optional[AlertStateStore] = None,
    email=None,
    sms=None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Probe every monitored service concurrently, record one health event per
    service and alert on failures.
    """
    client = client or get_client()
    now = now or utc_now()
    alert_store = alert_store or AlertStateStore(client)

    logger.info("Running health check for %d services", len(SERVICES))
    if http is None:
        async with _http_client() as owned:
            results = await _collect_service_results(client, owned, now)
    else:
        results = await _collect_service_results(client, http, now)

    for result in results:
        await asyncio.to_thread(insert_row, "system_health_events", {
            "service_name": result.service,
            "status": result.status,
            "error_message": result.diagnosis or result.error,
            "metadata": {
                "check_type": "manual",
                "last_at": result.last_at,
                "diagnosis": result.diagnosis,
            },
        }, client=client)

        # Every status moves the alert state; only fail can notify.
        await check_and_alert(
            result.service, result.status, result.error, result.diagnosis,
            store=alert_store, email=email, sms=sms, now=now,
        )

    logger.info(
        "Health check complete: %s",
        ", ".join(f"{r.service}={r.status}" for r in results),
    )
    return {
        "ok": True,
        "timestamp": now.isoformat(),
        "results": {
            r.service: r.model_dump(include={"status", "error", "last_at", "diagnosis"})
            for r in results
        },
    }


async def run_infrastructure_checks(
    client=None,
    http: Optional[httpx.AsyncClient] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Latency probes for platform components, stored in status_checks."""
    client = client or get_client()
    now = now or utc_now()
    base_url = get_settings().supabase_url.rstrip("/")

    async def _run(http_client: httpx.AsyncClient) -> list[CheckResult]:
        checks = [
            ("database", lambda: probes.check_database(client)),
            ("auth", lambda: probes.check_auth(client)),
            ("storage", lambda: probes.check_storage(client)),
        ]
        for name in probes.EDGE_FUNCTIONS:
            checks.append((
                name.replace("-", "_"),
                lambda name=name: probes.check_edge_function(http_client, base_url, name),
            ))
        checks.append(("webhook_processing", lambda: probes.check_webhook_processing(client, now)))
        checks.append(("calls", lambda: probes.check_recent_calls(client, now)))
        return list(await asyncio.gather(*(probes.guarded(n, fn) for n, fn in checks)))

    if http is None:
        async with _http_client() as owned:
            results = await _run(owned)
    else:
        results = await _run(http)

    logger.info(
        "Infrastructure check results: %s",
        ", ".join(f"{r.service}: {r.status}" for r in results),
    )

    checked_at = utc_now().isoformat()
    rows = [
        {
            "service": r.service,
            "status": r.status,
            "message": r.message,
            "meta": r.meta,
            "latency_ms": r.latency_ms,
            "checked_at": checked_at,
        }
        for r in results
    ]
    try:
        await asyncio.to_thread(lambda: client.table("status_checks").insert(rows).execute())
    except Exception as e:
        logger.error("Failed to store infrastructure results: %s", e)

    return {
        "ok": True,
        "overall_status": overall_status(r.status for r in results),
        "checks": [
            r.model_dump(include={"service", "status", "message", "latency_ms", "meta"})
            for r in results
        ],
        "checked_at": checked_at,
    }


# ─── Event logging ──────────────────────────────────────────

async def log_health_event(
    service_name: str,
    status: str,
    error_message: Optional[str] = None,
    metadata: Optional[dict] = None,
    client=None,
    alert_store: Optional[AlertStateStore] = None,
    email=None,
    sms=None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Record a health event reported by another component.

    Failures are diagnosed and sent through the alert debouncer; ok events
    reset the alert state so the next failure counts as a transition.

    Raises:
        DataFetchError: If the event cannot be stored.
    """
    client = client or get_client()
    now = now or utc_now()
    metadata = metadata or {}

    diagnosis = diagnose_failure(service_name, error_message, metadata) if status == "fail" else None
    logger.info(
        "Logging %s = %s%s%s", service_name, status,
        f" ({error_message})" if error_message else "",
        f" [Diagnosis: {diagnosis}]" if diagnosis else "",
    )

    event = {
        "service_name": service_name,
        "status": status,
        "error_message": diagnosis or error_message,
        "metadata": {**metadata, "original_error": error_message, "diagnosis": diagnosis},
    }
    try:
        await asyncio.to_thread(
            lambda: client.table("system_health_events").insert(event).execute()
        )
    except Exception as e:
        logger.error("Health event insert failed for %s: %s", service_name, e)
        raise DataFetchError(f"Failed to log event: {e}", source="system_health_events")

    if status == "fail":
        await check_and_alert(
            service_name, status, error_message, diagnosis,
            store=alert_store or AlertStateStore(client), email=email, sms=sms, now=now,
        )
    elif status == "ok":
        await asyncio.to_thread(upsert_row, "system_alert_state", {
            "service_name": service_name,
            "last_status": "ok",
            "updated_at": now.isoformat(),
        }, on_conflict="service_name", client=client)

    return {"ok": True, "diagnosis": diagnosis}


# ─── Status & incidents ─────────────────────────────────────

def _latest_event(client, service: str, status: Optional[str] = None) -> Optional[dict]:
    filters = {"service_name": service}
    if status:
        filters["status"] = status
    rows = query_table(
        "system_health_events",
        select="status, error_message, created_at, metadata",
        filters=filters, order_by="created_at", desc=True, limit=1, client=client,
    )
    return rows[0] if rows else None


def _window_uptime(client, service: str, since: datetime) -> Optional[int]:
    """Uptime from exact ok/total counts since a point in time."""
    since_filter = {"created_at": since.isoformat()}
    total = count_rows(
        "system_health_events", filters={"service_name": service},
        gte=since_filter, client=client,
    )
    ok = count_rows(
        "system_health_events", filters={"service_name": service, "status": "ok"},
        gte=since_filter, client=client,
    ) if total else 0
    return uptime_from_counts(ok, total)


def _service_status(client, service: str, now: datetime) -> ServiceStatus:
    last_event = _latest_event(client, service)
    last_success = _latest_event(client, service, "ok")
    last_fail = _latest_event(client, service, "fail")

    diagnosis = (
        ((last_fail or {}).get("metadata") or {}).get("diagnosis")
        or ((last_event or {}).get("metadata") or {}).get("diagnosis")
    )
    return ServiceStatus(
        status=(last_event or {}).get("status") or "unknown",
        last_at=(last_event or {}).get("created_at"),
        error=(last_event or {}).get("error_message"),
        last_success=(last_success or {}).get("created_at"),
        last_fail=(last_fail or {}).get("created_at"),
        fail_reason=(last_fail or {}).get("error_message"),
        diagnosis=diagnosis,
        uptime_24h=_window_uptime(client, service, now - timedelta(hours=24)),
        uptime_7d=_window_uptime(client, service, now - timedelta(days=7)),
    )


def get_health_status(client=None, now: Optional[datetime] = None) -> dict:
    """Current status, last success/failure and uptime for every service."""
    client = client or get_client()
    now = now or utc_now()

    services = {service: _service_status(client, service, now) for service in SERVICES}
    return {
        "ok": True,
        "overall_status": overall_status(s.status for s in services.values()),
        "services": {name: s.model_dump() for name, s in services.items()},
        "timestamp": now.isoformat(),
    }


def get_incidents(client=None, now: Optional[datetime] = None) -> dict:
    client = client or get_client()
    now = now or utc_now()
    events = query_table(
        "system_health_events",
        select="service_name, status, error_message, created_at, metadata",
        gte={"created_at": (now - INCIDENT_LOOKBACK).isoformat()},
        order_by="created_at", desc=False, limit=MAX_EVENTS, client=client,
    )
    incidents = detect_incidents(events, now)
    return {"incidents": [i.model_dump() for i in incidents]}


async def send_test_sms(sms: Optional[TwilioSMSNotifier] = None) -> dict:
    """
    Send a test alert text.

    Raises:
        NotificationError: If SMS is not configured or Twilio rejects it.
    """
    sms = sms or TwilioSMSNotifier()
    logger.info("Sending test SMS")
    await sms.send_alert("TEST", diagnosis=TEST_SMS_TEXT)
    return {"success": True, "message": "Test SMS sent"}


def main():
    parser = argparse.ArgumentParser(description="Truckinglane Hub — System Health")
    parser.add_argument(
        "--action", default="check",
        choices=["check", "status", "incidents", "infra"],
    )
    args = parser.parse_args()

    if args.action == "check":
        result = asyncio.run(run_health_check())
    elif args.action == "infra":
        result = asyncio.run(run_infrastructure_checks())
    elif args.action == "status":
        result = get_health_status()
    else:
        result = get_incidents()
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
