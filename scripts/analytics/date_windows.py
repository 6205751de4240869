"""
Reporting date windows resolved in the user's timezone.

"Today" runs midnight to midnight in the selected IANA timezone; the
boundaries are returned as UTC ISO timestamps ready for range filters.
"""
from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from models.analytics_models import DateWindow
from scripts.lib.errors import ValidationError
from scripts.lib.utils import parse_timestamp

DEFAULT_TIMEZONE = "America/New_York"

RANGE_LABELS = {
    "today": "Today",
    "yesterday": "Yesterday",
    "7d": "Last 7 Days",
    "30d": "Last 30 Days",
    "all": "All Time",
}

ALL_TIME_START = datetime(2020, 1, 1, tzinfo=timezone.utc)
ALL_TIME_END = datetime(2099, 12, 31, 23, 59, 59, tzinfo=timezone.utc)

TIMEZONE_OPTIONS = [
    ("America/New_York", "Eastern Time (ET)"),
    ("America/Chicago", "Central Time (CT)"),
    ("America/Denver", "Mountain Time (MT)"),
    ("America/Phoenix", "Arizona (MST)"),
    ("America/Los_Angeles", "Pacific Time (PT)"),
    ("America/Anchorage", "Alaska Time (AKT)"),
    ("Pacific/Honolulu", "Hawaii Time (HT)"),
    ("UTC", "UTC"),
]


def get_user_timezone(profile_timezone: Optional[str] = None) -> str:
    return profile_timezone or DEFAULT_TIMEZONE


def get_timezone_label(tz_name: str) -> str:
    for value, label in TIMEZONE_OPTIONS:
        if value == tz_name:
            return label
    return tz_name


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _day_bounds(day, tz: ZoneInfo) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day, time.max, tzinfo=tz)
    return start, end


def get_date_window(
    range_type: str,
    tz_name: str = DEFAULT_TIMEZONE,
    now: Optional[datetime] = None,
) -> DateWindow:
    """
    Resolve a named range into UTC boundaries.

    Args:
        range_type: today | yesterday | 7d | 30d | all (anything else = all).
        tz_name: IANA timezone name.
        now: Reference time (defaults to the current time).

    Returns:
        DateWindow with ISO start/end timestamps and a display label.
    """
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown timezone: {tz_name}", field="timezone") from e
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    today = now.astimezone(tz).date()

    if range_type == "today":
        start, end = _day_bounds(today, tz)
    elif range_type == "yesterday":
        start, end = _day_bounds(today - timedelta(days=1), tz)
    elif range_type in ("7d", "30d"):
        days = 7 if range_type == "7d" else 30
        start, _ = _day_bounds(today - timedelta(days=days), tz)
        _, end = _day_bounds(today, tz)
    else:
        range_type = "all"
        start, end = ALL_TIME_START, ALL_TIME_END

    return DateWindow(
        start_ts=_iso(start),
        end_ts=_iso(end),
        label=RANGE_LABELS[range_type],
        timezone=tz_name,
    )


def is_today(
    timestamp: Union[str, datetime],
    tz_name: str = DEFAULT_TIMEZONE,
    now: Optional[datetime] = None,
) -> bool:
    """True when the timestamp falls inside today's window for the timezone."""
    window = get_date_window("today", tz_name, now=now)
    ts = parse_timestamp(timestamp)
    return parse_timestamp(window.start_ts) <= ts <= parse_timestamp(window.end_ts)
