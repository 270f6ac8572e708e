"""
Calendar helpers pinned to the reference timezone.

"Today" and every lookback window are computed in one fixed zone so the date
a day set is stored under is identical for every user and for the server.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utc_now() -> datetime:
    return datetime.now(UTC)


def local_today(tz: ZoneInfo, now: datetime | None = None) -> date:
    """Calendar date in ``tz`` at instant ``now`` (defaults to the current time)."""
    instant = now or utc_now()
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(tz).date()


def today_key(tz: ZoneInfo, now: datetime | None = None) -> str:
    """YYYY-MM-DD key used for day sets and quota dates."""
    return local_today(tz, now).isoformat()


def window_bounds(days_ago: int, tz: ZoneInfo, now: datetime | None = None) -> tuple[datetime, datetime]:
    """
    Local midnight to 23:59:59.999 of the day ``days_ago`` days before today.

    Both bounds are timezone-aware datetimes in ``tz``.
    """
    if days_ago < 0:
        raise ValueError("days_ago must be non-negative")

    target = local_today(tz, now) - timedelta(days=days_ago)
    since = datetime.combine(target, time(0, 0, 0), tzinfo=tz)
    until = datetime.combine(target, time(23, 59, 59, 999000), tzinfo=tz)
    return since, until


def to_github_timestamp(value: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    utc_value = value.astimezone(UTC)
    return utc_value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc_value.microsecond // 1000:03d}Z"


def parse_date_key(value: str) -> date:
    """Parse a YYYY-MM-DD key, raising ValueError on anything else."""
    if not _DATE_KEY_RE.match(value):
        raise ValueError(f"Invalid date: {value!r} (expected YYYY-MM-DD)")
    return date.fromisoformat(value)
