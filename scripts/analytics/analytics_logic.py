"""
Truckinglane Hub — Canonical Analytics Logic
===============================================

Single definition of every call/lead/load metric so all dashboards agree.
Everything here is pure: records in, AnalyticsMetrics out.

Definitions:
  Total Calls     - any inbound or outbound call attempt
  Engaged Calls   - call >= 20s OR resulted in a lead OR tagged high intent
  Quick Hangups   - call with a known duration < 10s
  High Intent     - lead tagged, lead intent_score >= 70, call tagged,
                    or call >= 45s
  Rates           - numerator / denominator * 100, 1 decimal, 0 when the
                    denominator is 0

A missing duration means "unknown", never "0 seconds".

Functions:
  get_call_duration()            - Normalized duration or None
  is_engaged_call()              - Engaged-call rule
  is_quick_hangup()              - Quick-hangup rule
  is_high_intent()               - High-intent rule for a call and/or lead
  calculate_analytics_metrics()  - Full metrics record for a period
"""
from __future__ import annotations

from typing import Iterable, Optional

from models.analytics_models import (
    AnalyticsMetrics,
    AnalyticsThresholds,
    CallRecord,
    LeadRecord,
    LoadRecord,
)
from scripts.lib.logger import setup_logger
from scripts.lib.utils import percentage, round_half_up

logger = setup_logger("analytics_logic")

DEFAULT_THRESHOLDS = AnalyticsThresholds()

ENGAGED_THRESHOLD_SECS = DEFAULT_THRESHOLDS.engaged_secs
QUICK_HANGUP_THRESHOLD_SECS = DEFAULT_THRESHOLDS.quick_hangup_secs
HIGH_INTENT_DURATION_THRESHOLD_SECS = DEFAULT_THRESHOLDS.high_intent_duration_secs

METRIC_DEFINITIONS = {
    "total_calls": {
        "label": "Total Calls",
        "description": "Any inbound or outbound call attempt in the selected period.",
    },
    "engaged_calls": {
        "label": "Engaged Calls",
        "description": (
            f"Calls ≥{ENGAGED_THRESHOLD_SECS:g} seconds OR resulting in a Lead "
            "OR tagged High Intent."
        ),
    },
    "quick_hangups": {
        "label": "Quick Hangups",
        "description": (
            f"Calls under {QUICK_HANGUP_THRESHOLD_SECS:g} seconds, typically "
            "disconnects or wrong numbers."
        ),
    },
    "high_intent": {
        "label": "High Intent",
        "description": (
            "Calls/leads with explicit high-intent tag, AI confidence ≥70%, "
            f"or call duration ≥{HIGH_INTENT_DURATION_THRESHOLD_SECS:g}s."
        ),
    },
    "leads": {
        "label": "Leads",
        "description": "Contacts created from calls meeting engagement criteria.",
    },
    "conversion": {
        "label": "Conversion",
        "description": "Percentage of calls that resulted in a booked load.",
    },
    "callback_speed": {
        "label": "Callback Speed",
        "description": "Median time from AI identifying high intent to agent placing follow-up call.",
    },
    "ai_minutes": {
        "label": "AI Minutes",
        "description": "Total minutes of AI-handled call time.",
    },
    "engagement_rate": {
        "label": "Engagement Rate",
        "description": "Percentage of calls that resulted in meaningful engagement.",
    },
}


def _as_call(call) -> CallRecord:
    return call if isinstance(call, CallRecord) else CallRecord.model_validate(call)


def _as_lead(lead) -> LeadRecord:
    return lead if isinstance(lead, LeadRecord) else LeadRecord.model_validate(lead)


def _as_load(load) -> LoadRecord:
    return load if isinstance(load, LoadRecord) else LoadRecord.model_validate(load)


def get_call_duration(call: CallRecord) -> Optional[float]:
    """Duration in seconds from whichever column is present, else None."""
    for value in (call.duration_seconds, call.duration_secs, call.call_duration_secs):
        if value is not None:
            return value
    return None


def is_engaged_call(
    call: CallRecord,
    associated_lead: Optional[LeadRecord] = None,
    thresholds: AnalyticsThresholds = DEFAULT_THRESHOLDS,
) -> bool:
    """Engaged: >= 20s of real duration, tagged high intent, or produced a lead."""
    duration = get_call_duration(call)
    if duration is not None and duration >= thresholds.engaged_secs:
        return True
    if call.is_high_intent:
        return True
    return associated_lead is not None


def is_quick_hangup(
    call: CallRecord,
    thresholds: AnalyticsThresholds = DEFAULT_THRESHOLDS,
) -> bool:
    """Quick hangup: known duration under 10s. Unknown duration never counts."""
    duration = get_call_duration(call)
    if duration is None:
        return False
    return duration < thresholds.quick_hangup_secs


def is_high_intent(
    call: Optional[CallRecord] = None,
    lead: Optional[LeadRecord] = None,
    intent_threshold: Optional[float] = None,
    thresholds: AnalyticsThresholds = DEFAULT_THRESHOLDS,
) -> bool:
    """High intent from either side of the call/lead pair."""
    if intent_threshold is None:
        intent_threshold = thresholds.intent_score_threshold

    if lead is not None:
        if lead.is_high_intent:
            return True
        if lead.intent_score is not None and lead.intent_score >= intent_threshold:
            return True

    if call is not None:
        if call.is_high_intent:
            return True
        duration = get_call_duration(call)
        if duration is not None and duration >= thresholds.high_intent_duration_secs:
            return True

    return False


def build_call_to_lead_map(leads: Iterable[LeadRecord]) -> dict[str, LeadRecord]:
    """Map originating call id -> lead. Later leads win on duplicate call ids."""
    return {lead.phone_call_id: lead for lead in leads if lead.phone_call_id}


def calculate_analytics_metrics(
    calls: Iterable,
    leads: Iterable,
    loads: Iterable,
    thresholds: AnalyticsThresholds = DEFAULT_THRESHOLDS,
) -> AnalyticsMetrics:
    """
    Calculate the canonical metrics for one period.

    Accepts model instances or raw row dicts.

    Returns:
        AnalyticsMetrics with counts, rates and any consistency warnings.
    """
    calls = [_as_call(c) for c in calls]
    leads = [_as_lead(lead) for lead in leads]
    loads = [_as_load(load) for load in loads]

    call_to_lead = build_call_to_lead_map(leads)
    warnings: list[str] = []

    # Call metrics
    total_calls = len(calls)
    engaged_calls = 0
    quick_hangups = 0
    total_seconds = 0.0
    high_intent_calls = 0

    for call in calls:
        duration = get_call_duration(call)
        total_seconds += duration or 0
        associated_lead = call_to_lead.get(call.id) if call.id else None

        if is_engaged_call(call, associated_lead, thresholds):
            engaged_calls += 1
        if is_quick_hangup(call, thresholds):
            quick_hangups += 1
        if is_high_intent(call, associated_lead, thresholds=thresholds):
            high_intent_calls += 1

    # Lead metrics
    total_leads = len(leads)
    status_counts = {"pending": 0, "claimed": 0, "booked": 0, "closed": 0}
    for lead in leads:
        if lead.status in status_counts:
            status_counts[lead.status] += 1

    high_intent_leads = sum(
        1 for lead in leads if is_high_intent(None, lead, thresholds=thresholds)
    )
    high_intent_count = max(high_intent_calls, high_intent_leads)

    # Load metrics
    open_loads = sum(1 for load in loads if load.is_active and load.status == "open")
    booked_loads = sum(1 for load in loads if load.status == "booked")
    closed_loads = sum(1 for load in loads if load.status == "closed")
    ai_booked_loads = sum(
        1 for load in loads if load.status == "booked" and load.booked_source == "ai"
    )

    call_to_lead_rate = percentage(total_leads, total_calls)
    call_to_booked_rate = percentage(booked_loads, total_calls)
    lead_to_booked_rate = percentage(status_counts["booked"], total_leads)
    engagement_rate = percentage(engaged_calls, total_calls)

    # Leads imply engagement; clamp and record it rather than report zero.
    if total_leads > 0 and engaged_calls == 0:
        engaged_calls = min(total_leads, total_calls)
        warnings.append(
            f"Corrected: Leads ({total_leads}) > 0 implies Engaged Calls should be > 0. "
            f"Set to {engaged_calls}."
        )
        logger.warning(
            "Engaged-call invariant violated: %d leads, 0 engaged of %d calls; "
            "reporting engaged_calls=%d",
            total_leads, total_calls, engaged_calls,
        )

    if high_intent_count > 0 and total_calls == 0:
        warnings.append(
            f"Data anomaly: High Intent ({high_intent_count}) > 0 but Total Calls = 0."
        )
        logger.warning(
            "High intent count %d with zero calls in period", high_intent_count,
        )

    return AnalyticsMetrics(
        total_calls=total_calls,
        engaged_calls=engaged_calls,
        quick_hangups=quick_hangups,
        total_leads=total_leads,
        high_intent_count=high_intent_count,
        booked_leads=status_counts["booked"],
        closed_leads=status_counts["closed"],
        pending_leads=status_counts["pending"],
        claimed_leads=status_counts["claimed"],
        total_minutes=round_half_up(total_seconds / 60, 1),
        open_loads=open_loads,
        booked_loads=booked_loads,
        closed_loads=closed_loads,
        ai_booked_loads=ai_booked_loads,
        call_to_lead_rate=call_to_lead_rate,
        call_to_booked_rate=call_to_booked_rate,
        lead_to_booked_rate=lead_to_booked_rate,
        engagement_rate=engagement_rate,
        warnings=warnings,
    )
