"""
Truckinglane Hub — Account Fit Scorer (v1)
============================================

Deterministic fit score (0-100) for prospecting accounts. Same inputs give
the same score every time; v1 weights are locked.

  +30  Commodity match
  +20  Equipment match
  +20  FMCSA enrichment present (MC, DOT or FMCSA payload)
  +10  Geography: US-based or interstate authority
  +10  Business scale: drivers/power units, or several regions
  +10  Website with contact info (+5 for website only)

Queue policy: score >= 80 high, >= 50 medium, else low; only scores >= 40
are queued, once per account.

Functions:
  calculate_fit_score() - Pure scoring of one account
  priority_for_score()  - Priority bucket for a score
  should_queue()        - Auto-queue threshold check
  score_account()       - Fetch, score, persist and queue a stored account

Usage:
    python -m scripts.scoring.account_fit <account_id> [--no-queue]
"""
from __future__ import annotations

import argparse
import json
import re
from datetime import datetime, timezone
from typing import Optional, Union

from models.scoring_models import AccountRecord, FitBreakdown, FitScore, FitScoringConfig
from scripts.lib.errors import NotFoundError, ValidationError
from scripts.lib.logger import setup_logger
from scripts.lib.supabase_client import fetch_one, get_client, insert_row
from scripts.lib.utils import is_blank
from scripts.scoring.rules_config import load_fit_config

logger = setup_logger("account_fit")

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _parse_int(value) -> int:
    """Leading integer of a number or string; anything else is 0."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 0


def _matches_any(values: list[str], targets) -> bool:
    return any(
        target in value or value in target
        for value in values
        for target in targets
    )


def priority_for_score(score: int, config: Optional[FitScoringConfig] = None) -> str:
    config = config or load_fit_config()
    if score >= config.high_priority_score:
        return "high"
    if score >= config.medium_priority_score:
        return "medium"
    return "low"


def should_queue(score: int, config: Optional[FitScoringConfig] = None) -> bool:
    config = config or load_fit_config()
    return score >= config.queue_min_score


def calculate_fit_score(
    account: Union[AccountRecord, dict],
    config: Optional[FitScoringConfig] = None,
) -> FitScore:
    """
    Score an account against the v1 rules.

    Returns:
        FitScore with total, per-signal breakdown, reasons and priority.
    """
    config = config or load_fit_config()
    if not isinstance(account, AccountRecord):
        account = AccountRecord.model_validate(account)

    weights = config.weights
    breakdown = FitBreakdown()
    reasons: list[str] = []
    fmcsa = account.fmcsa_data or {}

    # 1. Commodity
    commodities = [c.lower() for c in account.commodities if not is_blank(c)]
    if _matches_any(commodities, config.target_commodities):
        breakdown.commodity = weights.commodity
        reasons.append(f"+{weights.commodity}: Commodity match ({', '.join(commodities[:3])})")

    # 2. Equipment
    equipment = [e.lower() for e in account.equipment_types if not is_blank(e)]
    if _matches_any(equipment, config.target_equipment):
        breakdown.equipment = weights.equipment
        reasons.append(f"+{weights.equipment}: Equipment match ({', '.join(equipment[:3])})")

    # 3. FMCSA enrichment
    has_mc = not is_blank(account.mc_number)
    has_dot = not is_blank(account.dot_number)
    if has_mc or has_dot or fmcsa:
        breakdown.fmcsa = weights.fmcsa
        identifiers = []
        if has_mc:
            identifiers.append(f"MC-{account.mc_number}")
        if has_dot:
            identifiers.append(f"DOT-{account.dot_number}")
        reasons.append(
            f"+{weights.fmcsa}: FMCSA enrichment ({', '.join(identifiers) or 'data present'})"
        )

    # 4. Geography
    regions = [r.upper() for r in account.regions if not is_blank(r)]
    us_states = set(config.us_states)
    is_us_based = any(r in us_states or r in ("US", "USA") for r in regions)
    phy_state = str(fmcsa.get("phyState") or "").upper()
    carrier_operation = fmcsa.get("carrierOperation") or ""
    has_interstate = "Interstate" in carrier_operation or fmcsa.get("allowedToOperate") == "Y"
    if is_us_based or phy_state in us_states or has_interstate:
        breakdown.geography = weights.geography
        reasons.append(f"+{weights.geography}: US-based / interstate carrier")

    # 5. Business scale
    total_drivers = _parse_int(fmcsa.get("totalDrivers"))
    total_power_units = _parse_int(fmcsa.get("totalPowerUnits"))
    multiple_regions = len(regions) > 1
    if total_drivers > 0 or total_power_units > 0 or multiple_regions:
        breakdown.scale = weights.scale
        details = []
        if total_power_units > 0:
            details.append(f"{total_power_units} trucks")
        if total_drivers > 0:
            details.append(f"{total_drivers} drivers")
        if multiple_regions:
            details.append(f"{len(regions)} regions")
        reasons.append(f"+{weights.scale}: Business scale ({', '.join(details)})")

    # 6. Website
    has_website = not is_blank(account.website)
    has_contact = not is_blank(account.contact_email) or not is_blank(account.contact_phone)
    if has_website and has_contact:
        breakdown.website = weights.website
        reasons.append(f"+{weights.website}: Website with contact info")
    elif has_website:
        breakdown.website = weights.website // 2
        reasons.append(f"+{breakdown.website}: Has website (no contact info)")

    score = min(100, breakdown.total())
    return FitScore(
        score=score,
        breakdown=breakdown,
        reasons=reasons,
        priority=priority_for_score(score, config),
    )


def _queue_account(client, account: dict, result: FitScore) -> bool:
    """Insert a prospecting_queue row unless the account is already queued."""
    account_id = account["id"]
    existing = fetch_one("prospecting_queue", "account_id", account_id, select="id", client=client)
    if existing:
        logger.debug("Account %s already queued", account_id)
        return False

    try:
        client.table("prospecting_queue").insert({
            "account_id": account_id,
            "agency_id": account.get("agency_id"),
            "priority": result.priority,
            "reason": "; ".join(result.reasons[:3]),
            "status": "new",
        }).execute()
    except Exception as e:
        logger.error("Queue insert failed for account %s: %s", account_id, e)
        return False

    logger.info("Account %s queued with priority %s", account_id, result.priority)
    insert_row("account_events", {
        "account_id": account_id,
        "event_type": "queued",
        "meta": {"priority": result.priority, "score": result.score},
    }, client=client)
    return True


def score_account(
    account_id: str,
    auto_queue: bool = True,
    client=None,
    config: Optional[FitScoringConfig] = None,
) -> dict:
    """
    Score a stored account, save the score, and queue it when it qualifies.

    Raises:
        ValidationError: If account_id is empty.
        NotFoundError: If the account does not exist.
    """
    if is_blank(account_id):
        raise ValidationError("account_id is required", field="account_id")

    client = client or get_client()
    config = config or load_fit_config()

    account = fetch_one("accounts", "id", account_id, client=client)
    if not account:
        raise NotFoundError("Account", account_id)

    result = calculate_fit_score(account, config)
    logger.info(
        "Account %s scored %d (%s)", account_id, result.score, "; ".join(result.reasons),
    )

    try:
        client.table("accounts").update({
            "fit_score": result.score,
            "fit_score_breakdown": result.breakdown.model_dump(),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }).eq("id", account_id).execute()
    except Exception as e:
        logger.error("Fit score update failed for account %s: %s", account_id, e)

    insert_row("account_events", {
        "account_id": account_id,
        "event_type": "scored",
        "meta": {
            "score": result.score,
            "breakdown": result.breakdown.model_dump(),
            "reasons": result.reasons,
            "version": config.version,
        },
    }, client=client)

    queued = False
    if auto_queue and should_queue(result.score, config):
        queued = _queue_account(client, account, result)

    return {
        "success": True,
        "account_id": account_id,
        "fit_score": result.score,
        "breakdown": result.breakdown.model_dump(),
        "reasons": result.reasons,
        "queued": queued,
        "priority": result.priority,
    }


def main():
    parser = argparse.ArgumentParser(description="Truckinglane Hub — Account Fit Scorer")
    parser.add_argument("account_id", help="Account ID to score")
    parser.add_argument("--no-queue", action="store_true", help="Skip prospecting queue")
    args = parser.parse_args()

    result = score_account(args.account_id, auto_queue=not args.no_queue)
    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
