"""Tests for lead intent scoring and the backfill job."""

import pytest

from scripts.lib.errors import ConfigError
from scripts.scoring.intent_scorer import backfill_intent_scores, score_lead, score_text
from scripts.scoring.rules_config import default_intent_config, load_intent_config

HOT_TRANSCRIPT = (
    "Hi this is MC 123456, calling about load #4521 from Dallas, TX to "
    "Memphis, TN. What's the rate? Sounds good, book it. I have a flatbed "
    "ready ASAP, call me back."
)


class TestScoreText:
    def test_every_text_signal(self):
        result = score_text(HOT_TRANSCRIPT, default_intent_config())
        assert result.score == 120
        assert result.reasons == [
            "MC/DOT number provided",
            "Load number mentioned",
            "Origin/destination cities mentioned",
            "Callback requested",
            "Rate/price discussed",
            "Rate acceptance indicated",
            "Equipment type specified",
            "Urgent/immediate language detected",
        ]

    def test_empty_text(self):
        assert score_text("", default_intent_config()).score == 0

    def test_city_pattern_is_case_sensitive(self):
        assert score_text("dallas, tx", default_intent_config()).reasons == []

    def test_dispatch_request(self):
        result = score_text("Can I talk to dispatch please", default_intent_config())
        assert result.reasons == ["Asked to speak with dispatch"]
        assert result.score == 10


class TestScoreLead:
    def test_caps_at_100_and_flags_high_intent(self):
        lead = {"carrier_mc": "123456", "caller_company": "Acme Freight"}
        result = score_lead(lead, {"transcript": HOT_TRANSCRIPT}, config=default_intent_config())
        assert result.score == 100
        assert result.is_high_intent is True

    def test_fields_below_threshold(self):
        lead = {"carrier_mc": "123", "caller_company": "Acme"}
        result = score_lead(lead, config=default_intent_config())
        assert result.score == 35
        assert result.is_high_intent is False

    def test_threshold_is_inclusive(self):
        lead = {"carrier_usdot": "99", "caller_company": "Acme", "callback_requested_at": "2026-01-01"}
        result = score_lead(lead, config=default_intent_config())
        assert result.score == 50
        assert result.is_high_intent is True

    def test_reasons_count_once_across_sources(self):
        lead = {"carrier_mc": "555", "notes": "MC 555, asked about the rate"}
        conversation = {"transcript": "my mc 555", "summary": "carrier mc 555 wants the rate"}
        result = score_lead(lead, conversation, config=default_intent_config())
        assert result.reasons == ["MC/DOT number provided", "Rate/price discussed"]
        assert result.score == 30

    def test_placeholder_company_ignored(self):
        result = score_lead({"caller_company": "None"}, config=default_intent_config())
        assert result.score == 0

    def test_call_summary_used_when_no_conversation(self):
        result = score_lead(
            {}, call_summary={"transcript": "we need a reefer"}, config=default_intent_config(),
        )
        assert result.reasons == ["Equipment type specified"]


class TestRulesConfig:
    def test_bundled_yaml_matches_defaults(self):
        assert load_intent_config() == default_intent_config()

    def test_keyword_override(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text("intent:\n  keywords:\n    urgent: ['Hot Load']\n")
        config = load_intent_config(path)
        assert config.urgent_keywords == ("hot load",)
        assert score_text("this is a hot load", config).reasons == [
            "Urgent/immediate language detected",
        ]

    def test_invalid_pattern(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text("intent:\n  patterns:\n    cities: '([A-Z'\n")
        with pytest.raises(ConfigError):
            load_intent_config(path)

    def test_missing_rule_keys(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text("intent:\n  rules:\n    - {key: mc_dot, points: 5, reason: MC}\n")
        with pytest.raises(ConfigError):
            load_intent_config(path)

    def test_threshold_from_environment(self, monkeypatch):
        monkeypatch.setenv("INTENT_HIGH_THRESHOLD", "30")
        from scripts.lib.config import get_settings
        get_settings.cache_clear()
        assert default_intent_config().high_intent_threshold == 30


class TestBackfill:
    @pytest.fixture
    def db(self, fake_db):
        fake_db.tables["leads"] = [
            {"id": "l1", "status": "pending", "carrier_mc": "1", "caller_company": "Acme",
             "load_id": "load-1", "intent_score": None},
            {"id": "l2", "status": "booked", "intent_score": 40},
            {"id": "l3", "status": "booked", "intent_score": None, "conversation_id": "cv1"},
        ]
        fake_db.tables["conversations"] = [
            {"id": "cv1", "transcript": "please call me back asap", "summary": None},
        ]
        return fake_db

    def test_updates_open_and_unscored_leads(self, db):
        result = backfill_intent_scores(client=db, config=default_intent_config())

        assert result["processed"] == 2
        assert result["updated"] == 2
        assert result["errors"] is None

        leads = {lead["id"]: lead for lead in db.tables["leads"]}
        assert leads["l1"]["intent_score"] == 55
        assert leads["l1"]["is_high_intent"] is True
        assert leads["l3"]["intent_score"] == 25
        assert leads["l2"]["intent_score"] == 40

        events = db.tables["lead_events"]
        assert {e["lead_id"] for e in events} == {"l1", "l3"}
        assert all(e["event_type"] == "intent_backfill" for e in events)

    def test_dry_run_writes_nothing(self, db):
        result = backfill_intent_scores(client=db, dry_run=True, config=default_intent_config())
        assert result["updated"] == 2
        assert db.tables["leads"][0]["intent_score"] is None
        assert "lead_events" not in db.tables

    def test_one_failing_lead_does_not_stop_batch(self, db):
        db.failing.add("conversations")
        result = backfill_intent_scores(client=db, config=default_intent_config())

        assert result["processed"] == 2
        assert result["updated"] == 1
        assert len(result["errors"]) == 1
        assert result["errors"][0].startswith("Lead l3")
