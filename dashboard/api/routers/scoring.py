"""
Truckinglane Hub — Scoring Router
===================================

Lead intent, account fit and voice-agent keyword checks.

Endpoints:
  POST /api/scoring/intent/preview      - Score a posted lead (no writes)
  POST /api/scoring/intent/backfill     - Rescore open/unscored leads
  POST /api/scoring/accounts/preview    - Fit-score a posted account (no writes)
  POST /api/scoring/accounts/{id}       - Score, save and auto-queue an account
  POST /api/scoring/high-intent/check   - Keyword check for the voice agent
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from dashboard.api.middleware import require_scope
from models.scoring_models import (
    AccountRecord,
    AccountScoreRequest,
    BackfillRequest,
    HighIntentCheckRequest,
    LeadScoreRequest,
)
from scripts.lib.logger import setup_logger
from scripts.scoring.account_fit import calculate_fit_score, score_account
from scripts.scoring.high_intent_keywords import check_high_intent
from scripts.scoring.intent_scorer import backfill_intent_scores, score_lead

logger = setup_logger("scoring_router")

router = APIRouter(prefix="/api/scoring", tags=["scoring"])


# ─── Intent ─────────────────────────────────────────────────

@router.post("/intent/preview")
async def intent_preview(body: LeadScoreRequest):
    """
    Score a lead and its call texts without touching the database.

    transcript/summary stand in for the linked conversation.
    """
    conversation = {"transcript": body.transcript, "summary": body.summary}
    result = score_lead(body.lead, conversation=conversation)
    return result.model_dump()


@router.post("/intent/backfill", dependencies=[Depends(require_scope("write"))])
def intent_backfill(body: BackfillRequest = BackfillRequest()):
    """Rescore pending/claimed leads and leads with no score yet."""
    logger.info("Intent backfill requested (limit=%s, dry_run=%s)", body.limit, body.dry_run)
    return backfill_intent_scores(limit=body.limit, dry_run=body.dry_run)


# ─── Account fit ────────────────────────────────────────────

@router.post("/accounts/preview")
async def account_preview(account: AccountRecord):
    return calculate_fit_score(account).model_dump()


@router.post("/accounts/{account_id}", dependencies=[Depends(require_scope("write"))])
def account_score(account_id: str, body: AccountScoreRequest = AccountScoreRequest()):
    """
    Score a stored account and queue it for prospecting when it qualifies.

    Accounts scoring 40+ are queued once (priority high >= 80, medium >= 50).
    """
    return score_account(account_id, auto_queue=body.auto_queue)


# ─── Voice agent ────────────────────────────────────────────

@router.post("/high-intent/check")
def high_intent_check(body: HighIntentCheckRequest):
    """Always 200: lookup failures answer as a normal call."""
    match = check_high_intent(
        load_number=body.load_number,
        origin_city=body.origin_city,
        destination_city=body.destination_city,
        keyword=body.keyword,
        agent_id=body.agent_id,
    )
    return match.model_dump()
