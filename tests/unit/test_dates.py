"""Unit tests for reference-timezone calendar helpers

Tests cover:
- "today" follows the reference timezone, not UTC
- Lookback window boundaries (local midnight to 23:59:59.999)
- GitHub timestamp formatting
- Strict YYYY-MM-DD parsing
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

import pytest

from coderecall.utils.dates import local_today, parse_date_key, to_github_timestamp, today_key, window_bounds

SEOUL = ZoneInfo("Asia/Seoul")


def test_today_uses_reference_timezone():
    """16:00 UTC on the 9th is already the 10th in Seoul"""
    now = datetime(2025, 3, 9, 16, 0, tzinfo=UTC)
    assert today_key(SEOUL, now) == "2025-03-10"
    assert now.date() == date(2025, 3, 9)


def test_naive_instant_treated_as_utc():
    assert local_today(SEOUL, datetime(2025, 3, 9, 16, 0)) == date(2025, 3, 10)


def test_window_bounds_one_day_ago():
    now = datetime(2025, 3, 10, 3, 0, tzinfo=UTC)
    since, until = window_bounds(1, SEOUL, now)

    assert since == datetime(2025, 3, 9, 0, 0, 0, tzinfo=SEOUL)
    assert until == datetime(2025, 3, 9, 23, 59, 59, 999000, tzinfo=SEOUL)


def test_window_bounds_thirty_days_crosses_month():
    now = datetime(2025, 3, 10, 3, 0, tzinfo=UTC)
    since, _ = window_bounds(30, SEOUL, now)
    assert since.date() == date(2025, 2, 8)


def test_window_bounds_rejects_negative_offset():
    with pytest.raises(ValueError):
        window_bounds(-1, SEOUL)


def test_github_timestamp_is_utc_with_millis():
    now = datetime(2025, 3, 10, 3, 0, tzinfo=UTC)
    since, until = window_bounds(1, SEOUL, now)

    assert to_github_timestamp(since) == "2025-03-08T15:00:00.000Z"
    assert to_github_timestamp(until) == "2025-03-09T14:59:59.999Z"


class TestParseDateKey:
    def test_valid(self):
        assert parse_date_key("2025-03-10") == date(2025, 3, 10)

    @pytest.mark.parametrize("value", ["2025-3-10", "20250310", "2025-03-10T00:00", "", "2025-02-30"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_date_key(value)
