"""Tests for the voice-agent high-intent keyword check."""

from datetime import datetime, timedelta, timezone

from scripts.scoring.high_intent_keywords import (
    DEFAULT_PREMIUM_RESPONSE,
    HIGH_INTENT_INSTRUCTIONS,
    NORMAL_INSTRUCTIONS,
    check_high_intent,
    match_high_intent_keyword,
)

GLOBAL_LOAD = {
    "keyword": "TL-4521",
    "scope": "global",
    "agent_id": None,
    "premium_response": "Premium load! Give me your callback number.",
    "loads": {"load_number": "TL-4521", "pickup_city": "Dallas", "dest_city": "Memphis"},
}
AGENT_LANE = {
    "keyword": "steel coils",
    "scope": "agent",
    "agent_id": "agent-7",
    "premium_response": None,
    "loads": [{"load_number": "88-100", "pickup_city": "Houston", "dest_city": "Atlanta"}],
}


class TestMatchHighIntentKeyword:
    def test_load_number_ignores_hyphens_and_spaces(self):
        match = match_high_intent_keyword([GLOBAL_LOAD], load_number="tl 4521")
        assert match.is_high_intent is True
        assert match.matched_keyword == "TL-4521"
        assert match.matched_scope == "global"
        assert match.premium_response == GLOBAL_LOAD["premium_response"]
        assert match.instructions == HIGH_INTENT_INSTRUCTIONS

    def test_load_number_matches_linked_load(self):
        match = match_high_intent_keyword([AGENT_LANE], load_number="88100", agent_id="agent-7")
        assert match.is_high_intent is True
        assert match.premium_response == DEFAULT_PREMIUM_RESPONSE

    def test_lane_requires_both_cities_when_both_given(self):
        hit = match_high_intent_keyword(
            [GLOBAL_LOAD], origin_city="dallas", destination_city="memphis",
        )
        miss = match_high_intent_keyword(
            [GLOBAL_LOAD], origin_city="dallas", destination_city="chicago",
        )
        assert hit.is_high_intent is True
        assert miss.is_high_intent is False

    def test_single_city(self):
        assert match_high_intent_keyword([GLOBAL_LOAD], destination_city="Memphis").is_high_intent

    def test_free_text_keyword(self):
        match = match_high_intent_keyword([AGENT_LANE], keyword="coils", agent_id="agent-7")
        assert match.matched_keyword == "steel coils"

    def test_other_agents_keywords_are_ignored(self):
        match = match_high_intent_keyword([AGENT_LANE], keyword="coils", agent_id="agent-9")
        assert match.is_high_intent is False
        assert match.instructions == NORMAL_INSTRUCTIONS

    def test_agent_keywords_win_over_global(self):
        shared = dict(AGENT_LANE, keyword="TL-4521")
        match = match_high_intent_keyword([GLOBAL_LOAD, shared], load_number="TL4521", agent_id="agent-7")
        assert match.matched_scope == "agent"

    def test_no_match(self):
        match = match_high_intent_keyword([GLOBAL_LOAD], load_number="999")
        assert match.is_high_intent is False
        assert match.matched_keyword is None
        assert match.premium_response == DEFAULT_PREMIUM_RESPONSE


class TestCheckHighIntent:
    def test_only_active_unexpired_keywords(self, fake_db):
        future = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
        past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
        fake_db.tables["high_intent_keywords"] = [
            dict(GLOBAL_LOAD, active=True, expires_at=past),
            dict(GLOBAL_LOAD, keyword="TL-9000", active=False, expires_at=future),
            dict(GLOBAL_LOAD, keyword="TL-7777", active=True, expires_at=future,
                 loads={"load_number": "TL-7777"}),
        ]

        assert check_high_intent(load_number="TL-4521", client=fake_db).is_high_intent is False
        assert check_high_intent(load_number="TL-9000", client=fake_db).is_high_intent is False
        assert check_high_intent(load_number="TL-7777", client=fake_db).is_high_intent is True

    def test_database_failure_answers_normal_call(self, fake_db):
        fake_db.failing.add("high_intent_keywords")
        match = check_high_intent(load_number="TL-4521", client=fake_db)
        assert match.is_high_intent is False
        assert match.instructions == NORMAL_INSTRUCTIONS

    def test_malformed_keyword_row_answers_normal_call(self, fake_db):
        future = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
        fake_db.tables["high_intent_keywords"] = [
            dict(GLOBAL_LOAD, keyword=4521, active=True, expires_at=future),
        ]
        match = check_high_intent(load_number="TL-4521", client=fake_db)
        assert match.is_high_intent is False
        assert match.premium_response == DEFAULT_PREMIUM_RESPONSE
        assert match.instructions == NORMAL_INSTRUCTIONS
