"""Tests for timezone-aware reporting windows."""

from datetime import datetime, timezone

import pytest

from scripts.analytics.date_windows import (
    get_date_window,
    get_timezone_label,
    get_user_timezone,
    is_today,
)
from scripts.lib.errors import ValidationError

# 2026-03-10 15:00 UTC = 11:00 in New York (EDT, UTC-4)
NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


class TestGetDateWindow:
    def test_today_in_new_york(self):
        window = get_date_window("today", "America/New_York", now=NOW)
        assert window.start_ts == "2026-03-10T04:00:00.000Z"
        assert window.end_ts == "2026-03-11T03:59:59.999Z"
        assert window.label == "Today"

    def test_yesterday_crosses_dst_change(self):
        # DST started 2026-03-08; 2026-03-09 is already EDT
        window = get_date_window("yesterday", "America/New_York", now=NOW)
        assert window.start_ts == "2026-03-09T04:00:00.000Z"
        assert window.end_ts == "2026-03-10T03:59:59.999Z"

    def test_seven_days_runs_through_end_of_today(self):
        window = get_date_window("7d", "UTC", now=NOW)
        assert window.start_ts == "2026-03-03T00:00:00.000Z"
        assert window.end_ts == "2026-03-10T23:59:59.999Z"
        assert window.label == "Last 7 Days"

    def test_unknown_range_is_all_time(self):
        window = get_date_window("forever", "UTC", now=NOW)
        assert window.label == "All Time"
        assert window.start_ts == "2020-01-01T00:00:00.000Z"
        assert window.end_ts == "2099-12-31T23:59:59.000Z"

    def test_local_midnight_boundary(self):
        # 03:30 UTC is still the previous day in Chicago
        early = datetime(2026, 3, 10, 3, 30, tzinfo=timezone.utc)
        window = get_date_window("today", "America/Chicago", now=early)
        assert window.start_ts == "2026-03-09T05:00:00.000Z"

    def test_invalid_timezone(self):
        with pytest.raises(ValidationError):
            get_date_window("today", "Mars/Olympus", now=NOW)


class TestIsToday:
    def test_same_local_day(self):
        assert is_today("2026-03-10T04:30:00Z", "America/New_York", now=NOW) is True

    def test_previous_local_day(self):
        assert is_today("2026-03-10T03:30:00Z", "America/New_York", now=NOW) is False


def test_timezone_helpers():
    assert get_user_timezone(None) == "America/New_York"
    assert get_user_timezone("America/Denver") == "America/Denver"
    assert get_timezone_label("America/Chicago") == "Central Time (CT)"
    assert get_timezone_label("Europe/Paris") == "Europe/Paris"
