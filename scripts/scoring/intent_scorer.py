"""
Truckinglane Hub — Lead Intent Scorer
=======================================

Keyword/field heuristic scoring leads 0-100:

  +20  MC/DOT number (lead field or text)
  +15  Company name on the lead
  +20  Load number (lead link or text)
  +15  Origin/destination "City, ST" in text
  +15  Callback requested (lead field or text)
  +10  Asked for dispatch / a real person
  +10  Rate or price discussed
  +20  Rate acceptance language
  +10  Equipment type mentioned
  +10  Urgent language

Each reason counts once across all sources; the total is capped at 100 and
a score >= 50 marks the lead high intent.

Functions:
  score_text()             - Points and reasons for one block of text
  score_lead()             - Full score for a lead and its call texts
  backfill_intent_scores() - Rescore open/unscored leads in Supabase

Usage:
    python -m scripts.scoring.intent_scorer
    python -m scripts.scoring.intent_scorer --limit 200 --dry-run
"""
from __future__ import annotations

import argparse
import json
import re
from functools import lru_cache
from typing import Optional

from models.scoring_models import IntentScore, IntentScoringConfig
from scripts.lib.logger import setup_logger
from scripts.lib.supabase_client import fetch_one, get_client, insert_row
from scripts.scoring.rules_config import load_intent_config

logger = setup_logger("intent_scorer")

MAX_REPORTED_ERRORS = 10


@lru_cache(maxsize=32)
def _compiled(pattern: str) -> re.Pattern:
    return re.compile(pattern)


def _contains_any(text: str, keywords) -> bool:
    return any(kw in text for kw in keywords)


def _text_checks(config: IntentScoringConfig):
    """(rule key, predicate) pairs evaluated against a text, in rule order."""
    return (
        ("mc_dot", lambda raw, low: bool(_compiled(config.mc_dot_pattern).search(raw))),
        ("load_number", lambda raw, low: bool(_compiled(config.load_number_pattern).search(raw))),
        ("cities", lambda raw, low: bool(_compiled(config.city_pattern).search(raw))),
        ("callback", lambda raw, low: _contains_any(low, config.callback_keywords)),
        ("dispatch", lambda raw, low: _contains_any(low, config.dispatch_keywords)),
        ("rate", lambda raw, low: _contains_any(low, config.rate_keywords)),
        ("rate_accept", lambda raw, low: _contains_any(low, config.rate_accept_keywords)),
        ("equipment", lambda raw, low: _contains_any(low, config.equipment_keywords)),
        ("urgent", lambda raw, low: _contains_any(low, config.urgent_keywords)),
    )


def score_text(text: str, config: Optional[IntentScoringConfig] = None) -> IntentScore:
    """
    Score a single transcript/notes/summary text.

    The returned score is the uncapped sum for this text alone.
    """
    config = config or load_intent_config()
    if not text:
        return IntentScore()

    lowered = text.lower()
    points = 0
    reasons: list[str] = []
    for key, matches in _text_checks(config):
        if matches(text, lowered):
            rule = config.rule(key)
            points += rule.points
            reasons.append(rule.reason)
    return IntentScore(score=points, reasons=reasons)


def _field_rule_keys(lead: dict) -> list[str]:
    keys = []
    if lead.get("carrier_mc") or lead.get("carrier_usdot"):
        keys.append("mc_dot")

    company = lead.get("caller_company")
    if isinstance(company, str) and company.strip() and company != "None":
        keys.append("company")

    if lead.get("load_id"):
        keys.append("load_number")
    if lead.get("callback_requested_at"):
        keys.append("callback")
    return keys


def score_lead(
    lead: dict,
    conversation: Optional[dict] = None,
    call_summary: Optional[dict] = None,
    config: Optional[IntentScoringConfig] = None,
) -> IntentScore:
    """
    Score a lead from its own fields plus transcript, notes and summary.

    Args:
        lead: Lead row.
        conversation: conversations row (transcript, summary), if any.
        call_summary: ai_call_summaries row (transcript, summary), if any.
        config: Rule table; defaults to the loaded YAML/built-in config.

    Returns:
        IntentScore with capped score, ordered reasons and high-intent flag.
    """
    config = config or load_intent_config()
    conversation = conversation or {}
    call_summary = call_summary or {}

    score = 0
    reasons: list[str] = []
    points_by_reason = {rule.reason: rule.points for rule in config.rules}

    def add(reason: str):
        nonlocal score
        if reason not in reasons:
            reasons.append(reason)
            score += points_by_reason[reason]

    for key in _field_rule_keys(lead):
        add(config.rule(key).reason)

    sources = (
        conversation.get("transcript") or call_summary.get("transcript") or "",
        lead.get("notes") or "",
        conversation.get("summary") or call_summary.get("summary") or "",
    )
    for text in sources:
        if text:
            for reason in score_text(text, config).reasons:
                add(reason)

    score = min(config.max_score, score)
    return IntentScore(
        score=score,
        reasons=reasons,
        is_high_intent=score >= config.high_intent_threshold,
    )


def _load_call_texts(client, lead: dict) -> tuple[Optional[dict], Optional[dict]]:
    """Fetch the conversation and AI call summary linked to a lead."""
    conversation = None
    if lead.get("conversation_id"):
        conversation = fetch_one(
            "conversations", "id", lead["conversation_id"],
            select="transcript, summary", client=client,
        )
    elif lead.get("phone_call_id"):
        conversation = fetch_one(
            "conversations", "phone_call_id", lead["phone_call_id"],
            select="transcript, summary", client=client,
        )

    call_summary = None
    if lead.get("phone_call_id"):
        phone_call = fetch_one(
            "phone_calls", "id", lead["phone_call_id"],
            select="elevenlabs_call_id", client=client,
        )
        if phone_call and phone_call.get("elevenlabs_call_id"):
            call_summary = fetch_one(
                "ai_call_summaries", "conversation_id", phone_call["elevenlabs_call_id"],
                select="transcript, summary", client=client,
            )
    return conversation, call_summary


def backfill_intent_scores(
    client=None,
    limit: Optional[int] = None,
    dry_run: bool = False,
    config: Optional[IntentScoringConfig] = None,
) -> dict:
    """
    Rescore every pending/claimed lead and every lead without a score.

    A failure on one lead is recorded and the batch continues.

    Returns:
        Summary with processed/updated counts and up to 10 error strings.
    """
    client = client or get_client()
    config = config or load_intent_config()

    query = (
        client.table("leads")
        .select("*")
        .or_("status.eq.pending,status.eq.claimed,intent_score.is.null")
    )
    if limit:
        query = query.limit(limit)
    leads = query.execute().data or []

    logger.info("Found %d leads to process%s", len(leads), " (dry run)" if dry_run else "")

    processed = 0
    updated = 0
    errors: list[str] = []

    for lead in leads:
        processed += 1
        try:
            conversation, call_summary = _load_call_texts(client, lead)
            result = score_lead(lead, conversation, call_summary, config)

            if dry_run:
                logger.info(
                    "[DRY RUN] Lead %s: %s -> %d (%s)",
                    lead["id"], lead.get("intent_score"), result.score,
                    "; ".join(result.reasons) or "no signals",
                )
                updated += 1
                continue

            client.table("leads").update({
                "intent_score": result.score,
                "is_high_intent": result.is_high_intent,
                "intent_reason_breakdown": result.reasons,
            }).eq("id", lead["id"]).execute()
            updated += 1

            insert_row("lead_events", {
                "lead_id": lead["id"],
                "event_type": "intent_backfill",
                "meta": {
                    "old_score": lead.get("intent_score"),
                    "new_score": result.score,
                    "reasons": result.reasons,
                    "is_high_intent": result.is_high_intent,
                },
            }, client=client)
        except Exception as e:
            logger.error("Intent backfill failed for lead %s: %s", lead.get("id"), e)
            errors.append(f"Lead {lead.get('id')}: {e}")

        if processed % 10 == 0:
            logger.info("Processed %d/%d leads", processed, len(leads))

    logger.info("Backfill complete: %d updated, %d errors", updated, len(errors))

    return {
        "success": True,
        "processed": processed,
        "updated": updated,
        "errors": errors[:MAX_REPORTED_ERRORS] or None,
        "message": f"Backfilled {updated} leads with intent scores",
    }


def main():
    parser = argparse.ArgumentParser(description="Truckinglane Hub — Intent Score Backfill")
    parser.add_argument("--limit", type=int, default=None, help="Max leads to process")
    parser.add_argument("--dry-run", action="store_true", help="Score without writing")
    args = parser.parse_args()

    result = backfill_intent_scores(limit=args.limit, dry_run=args.dry_run)
    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
