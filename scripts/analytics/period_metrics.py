"""
Truckinglane Hub — Period Metrics
====================================

Loads an agency's calls, leads and loads for a date window from Supabase
and runs them through the canonical analytics logic.

Usage:
    python -m scripts.analytics.period_metrics --agency <uuid> --range 7d
"""
from __future__ import annotations

import argparse
import json
from typing import Optional

from models.analytics_models import AnalyticsMetrics, DateWindow
from scripts.analytics.analytics_logic import calculate_analytics_metrics
from scripts.analytics.date_windows import DEFAULT_TIMEZONE, get_date_window
from scripts.lib.logger import setup_logger
from scripts.lib.supabase_client import query_table

logger = setup_logger("period_metrics")

MAX_ROWS = 10000

CALL_COLUMNS = "id, created_at, duration_seconds"
AI_CALL_COLUMNS = (
    "id, created_at, duration_secs, is_high_intent, conversation_id, "
    "termination_reason, call_outcome"
)
LEAD_COLUMNS = (
    "id, status, created_at, is_high_intent, intent_score, "
    "phone_call_id, booked_at, closed_at"
)
LOAD_COLUMNS = "id, status, is_active, created_at, booked_at, booked_source"


def fetch_period_records(
    agency_id: str,
    window: DateWindow,
    agent_id: Optional[str] = None,
    client=None,
) -> tuple[list[dict], list[dict], list[dict]]:
    """
    Fetch calls, leads and loads created inside the window.

    Calls come from ai_call_summaries (voice-agent calls with their
    high-intent flag) and fall back to phone_calls when the agency has none
    in the window. agent_id narrows leads to those claimed by the agent;
    calls and loads are agency-wide.
    """
    date_range = {"gte": {"created_at": window.start_ts}, "lte": {"created_at": window.end_ts}}
    agency = {"agency_id": agency_id}

    calls = query_table(
        "ai_call_summaries", select=AI_CALL_COLUMNS, filters=agency,
        limit=MAX_ROWS, client=client, **date_range,
    )
    call_source = "ai_call_summaries"
    if not calls:
        calls = query_table(
            "phone_calls", select=CALL_COLUMNS, filters=agency,
            limit=MAX_ROWS, client=client, **date_range,
        )
        call_source = "phone_calls"

    lead_filters = dict(agency)
    if agent_id:
        lead_filters["claimed_by"] = agent_id
    leads = query_table(
        "leads", select=LEAD_COLUMNS, filters=lead_filters,
        limit=MAX_ROWS, client=client, **date_range,
    )

    loads = query_table(
        "loads", select=LOAD_COLUMNS, filters=agency,
        limit=MAX_ROWS, client=client, **date_range,
    )

    logger.info(
        "Fetched %d calls (%s), %d leads, %d loads for agency %s (%s)",
        len(calls), call_source, len(leads), len(loads), agency_id, window.label,
    )
    return calls, leads, loads


def get_period_metrics(
    agency_id: str,
    range_type: str = "today",
    tz_name: str = DEFAULT_TIMEZONE,
    agent_id: Optional[str] = None,
    client=None,
) -> dict:
    """Resolve the window, fetch records, and compute the metrics."""
    window = get_date_window(range_type, tz_name)
    calls, leads, loads = fetch_period_records(agency_id, window, agent_id, client=client)
    metrics: AnalyticsMetrics = calculate_analytics_metrics(calls, leads, loads)
    return {
        "agency_id": agency_id,
        "agent_id": agent_id,
        "window": window.model_dump(),
        "metrics": metrics.model_dump(),
    }


def main():
    parser = argparse.ArgumentParser(description="Truckinglane Hub — Period Metrics")
    parser.add_argument("--agency", required=True, help="Agency ID")
    parser.add_argument(
        "--range", default="today",
        choices=["today", "yesterday", "7d", "30d", "all"],
    )
    parser.add_argument("--timezone", default=DEFAULT_TIMEZONE)
    parser.add_argument("--agent", default=None, help="Restrict leads to one agent")
    args = parser.parse_args()

    result = get_period_metrics(args.agency, args.range, args.timezone, args.agent)
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
