"""
Truckinglane Hub — High-Intent Keyword Check
==============================================

Called by the voice agent mid-call: does the caller's load number, lane or
keyword match an active high-intent keyword? A match flips the call into
premium handling (collect company + callback number, no rate negotiation).

Functions:
  match_high_intent_keyword() - Pure matcher over keyword rows
  check_high_intent()         - Load active keywords from Supabase and match

Keyword rows (high_intent_keywords) carry keyword, scope (global|agent),
agent_id, premium_response and an optional linked load
(load_number, pickup_city, dest_city).
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Iterable, Optional

from models.scoring_models import KeywordMatch
from scripts.lib.logger import setup_logger
from scripts.lib.supabase_client import get_client

logger = setup_logger("high_intent_keywords")

DEFAULT_PREMIUM_RESPONSE = (
    "Congratulations! This is a premium load. Please provide your company "
    "name and phone number, and one of our dispatchers will call you right back."
)
HIGH_INTENT_INSTRUCTIONS = (
    "This is a HIGH PRIORITY caller. Immediately use the premium_response and "
    "collect their company name and callback number. Do not continue with "
    "normal rate negotiation."
)
NORMAL_INSTRUCTIONS = (
    "This is a normal call. Proceed with standard load lookup and rate discussion."
)

KEYWORD_SELECT = (
    "id, keyword, keyword_type, scope, agent_id, premium_response, "
    "loads (load_number, pickup_city, dest_city)"
)

_SEPARATORS = re.compile(r"[-\s]")


def _normalize(value: str) -> str:
    return _SEPARATORS.sub("", value).lower()


def _overlaps(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


def _linked_load(row: dict) -> dict:
    load = row.get("loads")
    if isinstance(load, list):
        load = load[0] if load else None
    return load or {}


def _relevant_keywords(keywords: Iterable[dict], agent_id: Optional[str]) -> list[dict]:
    """Global keywords plus this agent's own, agent keywords first."""
    agent_rows = []
    global_rows = []
    for row in keywords:
        scope = row.get("scope")
        if scope == "global":
            global_rows.append(row)
        elif scope == "agent" and agent_id and row.get("agent_id") == agent_id:
            agent_rows.append(row)
    return agent_rows + global_rows


def _row_matches(
    row: dict,
    load_number: Optional[str],
    origin_city: Optional[str],
    destination_city: Optional[str],
    keyword: Optional[str],
) -> bool:
    normalized_keyword = _normalize(row.get("keyword") or "")
    load = _linked_load(row)

    if load_number:
        normalized_load = _normalize(load_number)
        if _overlaps(normalized_keyword, normalized_load):
            return True
        if load.get("load_number") and _overlaps(_normalize(load["load_number"]), normalized_load):
            return True

    if (origin_city or destination_city) and load:
        origin = (origin_city or "").lower()
        destination = (destination_city or "").lower()
        pickup = (load.get("pickup_city") or "").lower()
        dest = (load.get("dest_city") or "").lower()
        if origin and destination:
            if origin in pickup and destination in dest:
                return True
        elif origin and origin in pickup:
            return True
        elif destination and destination in dest:
            return True

    if keyword and _overlaps(normalized_keyword, keyword.lower()):
        return True

    return False


def match_high_intent_keyword(
    keywords: Iterable[dict],
    load_number: Optional[str] = None,
    origin_city: Optional[str] = None,
    destination_city: Optional[str] = None,
    keyword: Optional[str] = None,
    agent_id: Optional[str] = None,
) -> KeywordMatch:
    """
    Match caller details against active keyword rows.

    Checks run per keyword in order: load number (keyword text, then the
    linked load's number), lane (both cities, or whichever one was given),
    then the free-text keyword. The first matching row wins.
    """
    for row in _relevant_keywords(keywords, agent_id):
        if _row_matches(row, load_number, origin_city, destination_city, keyword):
            logger.info(
                "High-intent match: %s (%s)", row.get("keyword"), row.get("scope"),
            )
            return KeywordMatch(
                is_high_intent=True,
                matched_keyword=row.get("keyword"),
                matched_scope=row.get("scope"),
                premium_response=row.get("premium_response") or DEFAULT_PREMIUM_RESPONSE,
                instructions=HIGH_INTENT_INSTRUCTIONS,
            )

    return KeywordMatch(
        premium_response=DEFAULT_PREMIUM_RESPONSE,
        instructions=NORMAL_INSTRUCTIONS,
    )


def check_high_intent(
    load_number: Optional[str] = None,
    origin_city: Optional[str] = None,
    destination_city: Optional[str] = None,
    keyword: Optional[str] = None,
    agent_id: Optional[str] = None,
    client=None,
) -> KeywordMatch:
    """
    Load unexpired active keywords and match them.

    Any database or matching failure is logged and answered with the
    normal-call payload so a live call is never interrupted.
    """
    try:
        client = client or get_client()
        now = datetime.now(timezone.utc).isoformat()
        result = (
            client.table("high_intent_keywords")
            .select(KEYWORD_SELECT)
            .eq("active", True)
            .gt("expires_at", now)
            .execute()
        )
        match = match_high_intent_keyword(
            result.data or [], load_number, origin_city, destination_city, keyword, agent_id,
        )
    except Exception as e:
        logger.error("High-intent keyword check failed: %s", e)
        return KeywordMatch(
            premium_response=DEFAULT_PREMIUM_RESPONSE,
            instructions=NORMAL_INSTRUCTIONS,
        )

    logger.info(
        "High intent check: %s, matched: %s, scope: %s",
        match.is_high_intent, match.matched_keyword, match.matched_scope,
    )
    return match
