"""
Utility functions for Truckinglane Hub.
Rounding, percentage and timestamp helpers shared by analytics, scoring
and health modules.

Usage:
    from scripts.lib.utils import percentage, round_half_up, parse_timestamp
"""
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union


def round_half_up(value: float, digits: int = 1) -> float:
    """Round like Math.round: halves go away from zero for positives."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def percentage(numerator: float, denominator: float, digits: int = 1,
               cap: float = 100.0) -> float:
    """
    numerator / denominator * 100, rounded, 0 for an empty denominator.

    The result is clamped to [0, cap].
    """
    if not denominator:
        return 0.0
    value = round_half_up(numerator / denominator * 100, digits)
    return max(0.0, min(cap, value))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp from Supabase into an aware datetime.

    Naive values are treated as UTC. Returns None for empty input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def is_blank(value) -> bool:
    """True for None and whitespace-only strings."""
    return value is None or (isinstance(value, str) and not value.strip())
