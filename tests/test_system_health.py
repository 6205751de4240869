"""Tests for diagnosis, uptime, incidents and the health check runner."""

import threading
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from scripts.health import probes
from scripts.health.alerting import AlertStateStore
from scripts.health.diagnosis import diagnose_failure
from scripts.health.system_health import (
    compute_uptime,
    detect_incidents,
    get_health_status,
    get_incidents,
    log_health_event,
    overall_status,
    run_health_check,
    run_infrastructure_checks,
    send_test_sms,
)
from scripts.lib.errors import DataFetchError, NotificationError

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def supabase_env(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
    for name in ("TWILIO_SID", "TWILIO_TOKEN", "TWILIO_FROM", "ALERT_PHONE"):
        monkeypatch.delenv(name, raising=False)


def ts(minutes_ago: float) -> str:
    return (NOW - timedelta(minutes=minutes_ago)).isoformat()


class StubNotifier:
    is_configured = True

    def __init__(self):
        self.sent = []

    async def send_alert(self, service_name, error_message=None, diagnosis=None):
        self.sent.append(service_name)


def mock_http(status_by_function: dict) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        name = request.url.path.rsplit("/", 1)[-1]
        status = status_by_function.get(name, 200)
        if status is None:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(status, json={"ok": status < 400})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestDiagnoseFailure:
    @pytest.mark.parametrize("error,prefix", [
        ("Request timed out after 10s", "Network timeout"),
        ("HTTP 401 Unauthorized", "Authentication failed"),
        ("HTTP 403 Forbidden", "Authentication failed"),
        ("429 Too Many Requests", "Rate limit exceeded"),
        ("HTTP 503", "Service unavailable"),
        ("ECONNREFUSED 10.0.0.1", "Connection refused"),
        ("getaddrinfo ENOTFOUND api.example.com", "DNS resolution failed"),
    ])
    def test_generic_rules(self, error, prefix):
        assert diagnose_failure("ai_assistant", error).startswith(prefix)

    def test_rule_order_timeout_before_auth(self):
        assert diagnose_failure("x", "401 after timeout").startswith("Network timeout")

    def test_call_pipeline_rule(self):
        result = diagnose_failure("elevenlabs_calls", "Missing call record")
        assert result.startswith("No recent calls detected")

    def test_carrier_lookup_rule(self):
        result = diagnose_failure("carrier_lookup", "FMCSA returned 403")
        assert result == "FMCSA API access denied - Check API key validity or quota."

    def test_missing_downstream_metadata(self):
        result = diagnose_failure("lead_scoring", "", {"missing_downstream": "lead_events"})
        assert "downstream events (lead_events) are missing" in result

    def test_generic_error_truncated(self):
        result = diagnose_failure("svc", "x" * 300)
        assert result == "Error in svc: " + "x" * 100

    def test_unknown(self):
        assert diagnose_failure("svc") == "Unknown failure in svc - Check logs for details."


class TestAggregates:
    def test_uptime(self):
        events = [{"status": "ok"}] * 2 + [{"status": "fail"}]
        assert compute_uptime(events) == 67
        assert compute_uptime([]) is None

    def test_overall_status(self):
        assert overall_status(["ok", "warn", "fail"]) == "fail"
        assert overall_status(["ok", "warn", "unknown"]) == "warn"
        assert overall_status(["ok", "unknown"]) == "ok"
        assert overall_status([]) == "ok"


class TestDetectIncidents:
    def test_resolved_and_ongoing(self):
        events = [
            {"service_name": "a", "status": "ok", "created_at": ts(120)},
            {"service_name": "a", "status": "fail", "created_at": ts(100),
             "error_message": "HTTP 503", "metadata": {"diagnosis": "Service unavailable"}},
            {"service_name": "a", "status": "fail", "created_at": ts(90)},
            {"service_name": "a", "status": "ok", "created_at": ts(70)},
            {"service_name": "b", "status": "fail", "created_at": ts(30), "error_message": None},
        ]
        incidents = detect_incidents(events, NOW)

        assert [i.service for i in incidents] == ["b", "a"]
        ongoing, resolved = incidents
        assert ongoing.resolved is False
        assert ongoing.ended_at is None
        assert ongoing.duration_mins == 30
        assert ongoing.reason == "Unknown error"
        assert resolved.resolved is True
        assert resolved.duration_mins == 30
        assert resolved.diagnosis == "Service unavailable"
        assert resolved.id == f"a-{ts(100)}"

    def test_no_events(self):
        assert detect_incidents([], NOW) == []


class TestServiceChecks:
    @pytest.mark.asyncio
    async def test_call_freshness(self, fake_db):
        fake_db.tables["ai_call_summaries"] = [{"created_at": ts(2)}]
        assert (await probes.check_calls(fake_db, NOW)).status == "ok"

        fake_db.tables["ai_call_summaries"] = [{"created_at": ts(30)}]
        stale = await probes.check_calls(fake_db, NOW)
        assert stale.status == "warn"
        assert stale.diagnosis.startswith("Error in elevenlabs_calls")

        fake_db.tables["ai_call_summaries"] = []
        empty = await probes.check_calls(fake_db, NOW)
        assert empty.status == "unknown"
        assert empty.diagnosis == "No calls recorded yet"

    @pytest.mark.asyncio
    async def test_failed_webhooks_in_last_hour(self, fake_db):
        fake_db.tables["webhook_logs"] = [
            {"id": 1, "processed_at": ts(1), "error": None},
            {"id": 2, "processed_at": ts(20), "error": "bad payload"},
            {"id": 3, "processed_at": ts(200), "error": "old"},
        ]
        result = await probes.check_webhook(fake_db, NOW)
        assert result.status == "fail"
        assert result.error == "1 failed webhook(s) in last hour"

    @pytest.mark.asyncio
    async def test_guarded_check_reports_own_failure(self):
        async def broken():
            raise RuntimeError("connection refused")

        result = await probes.guarded("ai_assistant", broken)
        assert result.status == "fail"
        assert result.diagnosis.startswith("Connection refused")

    def test_latency_classification(self):
        assert probes.classify_latency(300, "database") == "ok"
        assert probes.classify_latency(301, "database") == "warn"
        assert probes.classify_latency(1001, "database") == "fail"
        assert probes.classify_latency(2999, "edge_functions") == "warn"


class TestRunHealthCheck:
    @pytest.fixture
    def db(self, fake_db):
        fake_db.tables["ai_call_summaries"] = [{"created_at": ts(1)}]
        fake_db.tables["webhook_logs"] = [{"id": 1, "processed_at": ts(1), "error": None}]
        fake_db.tables["leads"] = [{"id": "l1", "created_at": ts(10)}]
        return fake_db

    @pytest.mark.asyncio
    async def test_all_healthy(self, db):
        email, sms = StubNotifier(), StubNotifier()
        async with mock_http({}) as http:
            result = await run_health_check(client=db, http=http, email=email, sms=sms, now=NOW)

        statuses = {name: r["status"] for name, r in result["results"].items()}
        assert statuses == {
            "elevenlabs_calls": "ok",
            "elevenlabs_webhook": "ok",
            "ai_assistant": "ok",
            "carrier_lookup": "ok",
            "lead_scoring": "ok",
        }
        assert len(db.tables["system_health_events"]) == 5
        assert email.sent == []

    @pytest.mark.asyncio
    async def test_one_failing_service_does_not_affect_others(self, db):
        email, sms = StubNotifier(), StubNotifier()
        db.failing.add("ai_call_summaries")
        async with mock_http({"ai-assistant": None, "carrier-lookup": 404}) as http:
            result = await run_health_check(
                client=db, http=http, alert_store=AlertStateStore(db),
                email=email, sms=sms, now=NOW,
            )

        results = result["results"]
        assert results["elevenlabs_calls"]["status"] == "fail"
        assert results["ai_assistant"]["status"] == "fail"
        assert results["ai_assistant"]["diagnosis"].startswith("Connection refused")
        assert results["carrier_lookup"]["status"] == "ok"
        assert results["lead_scoring"]["status"] == "ok"
        assert sorted(email.sent) == ["ai_assistant", "elevenlabs_calls"]
        assert sorted(sms.sent) == ["ai_assistant", "elevenlabs_calls"]

    @pytest.mark.asyncio
    async def test_recovery_rearms_alert_without_repeat(self, db, monkeypatch):
        monkeypatch.setenv("ALERT_REPEAT_WHILE_FAILING", "false")
        email, sms = StubNotifier(), StubNotifier()
        store = AlertStateStore(db)
        states = []

        for minutes, status in ((0, 503), (30, 200), (60, 503)):
            async with mock_http({"ai-assistant": status}) as http:
                await run_health_check(
                    client=db, http=http, alert_store=store,
                    email=email, sms=sms, now=NOW + timedelta(minutes=minutes),
                )
            states.append(store.get("ai_assistant").last_status)

        assert states == ["fail", "ok", "fail"]
        assert email.sent.count("ai_assistant") == 2
        assert sms.sent.count("ai_assistant") == 2

    @pytest.mark.asyncio
    async def test_persistence_runs_off_the_event_loop(self, db, monkeypatch):
        calls = []
        table = db.table

        def recording_table(name):
            calls.append((name, threading.get_ident()))
            return table(name)

        monkeypatch.setattr(db, "table", recording_table)
        loop_thread = threading.get_ident()
        async with mock_http({"ai-assistant": 503}) as http:
            await run_health_check(
                client=db, http=http, alert_store=AlertStateStore(db),
                email=StubNotifier(), sms=StubNotifier(), now=NOW,
            )
        await log_health_event("lead_scoring", "ok", client=db, now=NOW)

        writes = [ident for name, ident in calls
                  if name in ("system_health_events", "system_alert_state")]
        assert writes
        assert loop_thread not in writes


class TestInfrastructureChecks:
    @pytest.mark.asyncio
    async def test_results_stored(self, fake_db):
        async with mock_http({"carrier-lookup": 500}) as http:
            result = await run_infrastructure_checks(client=fake_db, http=http, now=NOW)

        by_service = {c["service"]: c for c in result["checks"]}
        assert by_service["carrier_lookup"]["status"] == "fail"
        assert by_service["carrier_lookup"]["message"] == "HTTP 500"
        assert by_service["webhook_processing"]["message"] == "No webhooks yet"
        assert by_service["calls"]["message"] == "No calls yet"
        assert result["overall_status"] == "fail"
        assert len(fake_db.tables["status_checks"]) == 7


class TestLogHealthEvent:
    @pytest.mark.asyncio
    async def test_fail_event_is_diagnosed_and_alerted(self, fake_db):
        email, sms = StubNotifier(), StubNotifier()
        result = await log_health_event(
            "carrier_lookup", "fail", "FMCSA 403", {"load_id": "x"},
            client=fake_db, email=email, sms=sms, now=NOW,
        )

        assert result["diagnosis"].startswith("FMCSA API access denied")
        event = fake_db.tables["system_health_events"][0]
        assert event["error_message"] == result["diagnosis"]
        assert event["metadata"]["original_error"] == "FMCSA 403"
        assert event["metadata"]["load_id"] == "x"
        assert email.sent == ["carrier_lookup"]

    @pytest.mark.asyncio
    async def test_ok_event_resets_alert_state(self, fake_db):
        fake_db.tables["system_alert_state"] = [
            {"service_name": "ai_assistant", "last_status": "fail", "last_alerted_at": ts(1)},
        ]
        result = await log_health_event("ai_assistant", "ok", client=fake_db, now=NOW)

        assert result == {"ok": True, "diagnosis": None}
        assert fake_db.tables["system_alert_state"][0]["last_status"] == "ok"

    @pytest.mark.asyncio
    async def test_insert_failure_raises(self, fake_db):
        fake_db.failing.add("system_health_events")
        with pytest.raises(DataFetchError):
            await log_health_event("ai_assistant", "warn", client=fake_db, now=NOW)


class TestStatusAndIncidents:
    @pytest.fixture
    def db(self, fake_db):
        fake_db.tables["system_health_events"] = [
            {"service_name": "ai_assistant", "status": "ok", "created_at": ts(60 * 48)},
            {"service_name": "ai_assistant", "status": "fail", "created_at": ts(60 * 5),
             "error_message": "Network timeout", "metadata": {"diagnosis": "Network timeout"}},
            {"service_name": "ai_assistant", "status": "ok", "created_at": ts(60 * 4)},
            {"service_name": "ai_assistant", "status": "ok", "created_at": ts(10)},
            {"service_name": "lead_scoring", "status": "warn", "created_at": ts(5)},
        ]
        return fake_db

    def test_status(self, db):
        result = get_health_status(client=db, now=NOW)

        ai = result["services"]["ai_assistant"]
        assert ai["status"] == "ok"
        assert ai["uptime_24h"] == 67
        assert ai["uptime_7d"] == 75
        assert ai["fail_reason"] == "Network timeout"
        assert ai["diagnosis"] == "Network timeout"
        assert result["services"]["carrier_lookup"]["status"] == "unknown"
        assert result["services"]["carrier_lookup"]["uptime_24h"] is None
        assert result["overall_status"] == "warn"

    def test_uptime_counts_every_event_in_window(self, fake_db):
        fake_db.tables["system_health_events"] = (
            [{"service_name": "ai_assistant", "status": "ok", "created_at": ts(3 * 24 * 60)}] * 10000
            + [{"service_name": "ai_assistant", "status": "fail", "created_at": ts(m)}
               for m in range(1, 101)]
        )
        ai = get_health_status(client=fake_db, now=NOW)["services"]["ai_assistant"]

        assert ai["status"] == "fail"
        assert ai["uptime_24h"] == 0
        assert ai["uptime_7d"] == 99

    def test_incidents(self, db):
        incidents = get_incidents(client=db, now=NOW)["incidents"]
        assert len(incidents) == 1
        assert incidents[0]["service"] == "ai_assistant"
        assert incidents[0]["duration_mins"] == 60


class TestSendTestSms:
    @pytest.mark.asyncio
    async def test_sends_through_notifier(self):
        sms = StubNotifier()
        assert (await send_test_sms(sms))["success"] is True
        assert sms.sent == ["TEST"]

    @pytest.mark.asyncio
    async def test_unconfigured_raises(self):
        from integrations.twilio_sms import TwilioSMSNotifier

        with pytest.raises(NotificationError):
            await send_test_sms(TwilioSMSNotifier())
