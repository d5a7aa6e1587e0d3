"""
Timezone utilities for HomeQuest.

Timestamps are stored in the database as naive UTC datetimes. Calendar
logic (today, end of day, streaks) is evaluated in the timezone configured
through the TZ environment variable.
"""

import os
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

UTC = ZoneInfo('UTC')


def get_timezone() -> ZoneInfo:
    """Get the configured timezone from environment.

    Returns:
        ZoneInfo for the configured timezone, defaults to UTC
    """
    tz_name = os.environ.get('TZ', 'UTC')
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return UTC


def local_now() -> datetime:
    """Get the current datetime in the configured timezone."""
    return datetime.now(get_timezone())


def local_today() -> date:
    """Get today's date in the configured timezone."""
    return local_now().date()


def utc_now() -> datetime:
    """Get the current datetime in UTC (timezone-aware)."""
    return datetime.now(UTC)


def utc_naive_now() -> datetime:
    """Current UTC time without tzinfo, the form stored in the database."""
    return utc_now().replace(tzinfo=None)


def as_local(dt: datetime) -> datetime:
    """Convert a datetime to the configured timezone.

    Naive values are treated as UTC, matching what the database stores.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(get_timezone())


def to_naive_utc(dt: datetime) -> datetime:
    """Convert an aware datetime to naive UTC for storage and queries."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def start_of_day(day: date) -> datetime:
    """Local midnight of ``day``, as naive UTC."""
    return to_naive_utc(datetime.combine(day, time.min, tzinfo=get_timezone()))


def end_of_day(day: date) -> datetime:
    """Last microsecond of ``day`` in local time, as naive UTC."""
    return to_naive_utc(datetime.combine(day, time.max, tzinfo=get_timezone()))


def resolve_now(now: datetime = None) -> datetime:
    """Normalize an optional ``now`` argument to an aware local datetime."""
    if now is None:
        return local_now()
    return as_local(now)


def parse_hhmm(value: str) -> time:
    """Parse an ``HH:MM`` string into a time."""
    hours, minutes = value.split(':')
    return time(int(hours), int(minutes))


def days_between(earlier: datetime, later: datetime) -> int:
    """Number of whole days elapsed between two datetimes (floored)."""
    return (later - earlier) // timedelta(days=1)
