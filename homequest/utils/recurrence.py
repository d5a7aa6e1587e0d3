"""
Recurrence rule utilities for task templates and scheduled jobs.

Weekday numbers follow the Sunday-first convention used by the API
(0=Sunday ... 6=Saturday); Python's ``date.weekday()`` is Monday-first.
"""

import calendar
from datetime import datetime, timedelta
from typing import Iterable, Optional, Tuple

from dateutil.relativedelta import relativedelta

from homequest.utils.timezone import parse_hhmm

RECURRENCE_RULES = ('daily', 'weekly', 'monthly', 'minutely', 'custom_days')
JOB_FREQUENCIES = ('minutely', 'hourly', 'daily', 'weekly', 'monthly', 'custom')


def sunday_first_weekday(dt) -> int:
    """Convert Python's Monday=0 weekday to Sunday=0."""
    return (dt.weekday() + 1) % 7


def matches_rule(recurrence: str, now: datetime, recurrence_day: Optional[int] = None,
                 recurrence_days: Optional[Iterable[int]] = None) -> bool:
    """
    Check whether a recurrence rule fires on the given local datetime.

    Monthly rules whose day does not exist in the current month fire on
    the last day of that month instead.

    Args:
        recurrence: One of RECURRENCE_RULES
        now: Aware local datetime
        recurrence_day: Weekday (weekly) or day of month (monthly)
        recurrence_days: Set of weekdays (custom_days)

    Returns:
        bool: True if an instance should exist for the current window
    """
    if recurrence in ('daily', 'minutely'):
        return True

    if recurrence == 'weekly':
        return recurrence_day is not None and sunday_first_weekday(now) == recurrence_day

    if recurrence == 'monthly':
        if recurrence_day is None:
            return False
        last_day = calendar.monthrange(now.year, now.month)[1]
        return now.day == min(recurrence_day, last_day)

    if recurrence == 'custom_days':
        return sunday_first_weekday(now) in set(recurrence_days or [])

    return False


def window_start(recurrence: str, now: datetime) -> datetime:
    """Start of the de-duplication window containing ``now``."""
    if recurrence == 'minutely':
        return now.replace(second=0, microsecond=0)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def instance_deadline(recurrence: str, now: datetime, auto_publish_time: Optional[str] = None) -> datetime:
    """
    Deadline for an instance generated at ``now``.

    Minutely instances are due one minute later. Templates with a publish
    time get one full cycle, ending at the same wall-clock time the next
    day. Everything else is due at the end of the local day.
    """
    if recurrence == 'minutely':
        return now + timedelta(minutes=1)

    if auto_publish_time:
        publish = parse_hhmm(auto_publish_time)
        published_at = now.replace(hour=publish.hour, minute=publish.minute, second=0, microsecond=0)
        return published_at + timedelta(days=1)

    return now.replace(hour=23, minute=59, second=59, microsecond=999999)


def publish_time_reached(auto_publish_time: Optional[str], now: datetime) -> bool:
    """True when no publish time is set or it has passed for today."""
    if not auto_publish_time:
        return True
    publish = parse_hhmm(auto_publish_time)
    return (now.hour, now.minute) >= (publish.hour, publish.minute)


def validate_recurrence(recurrence: str, recurrence_day: Optional[int] = None,
                        recurrence_days: Optional[Iterable[int]] = None) -> Tuple[bool, Optional[str]]:
    """
    Validate a template's recurrence settings.

    Returns:
        tuple: (is_valid, error_message)
    """
    if recurrence in (None, 'none'):
        return True, None

    if recurrence not in RECURRENCE_RULES:
        return False, f"Unknown recurrence: {recurrence}"

    if recurrence == 'weekly':
        if recurrence_day is None or not 0 <= recurrence_day <= 6:
            return False, "Weekly recurrence requires recurrence_day between 0 (Sunday) and 6"

    if recurrence == 'monthly':
        if recurrence_day is None or not 1 <= recurrence_day <= 31:
            return False, "Monthly recurrence requires recurrence_day between 1 and 31"

    if recurrence == 'custom_days':
        days = list(recurrence_days or [])
        if not days:
            return False, "custom_days recurrence requires at least one weekday"
        if any(not 0 <= d <= 6 for d in days):
            return False, "recurrence_days must contain weekdays between 0 and 6"

    return True, None


def build_cron_expression(frequency: str, publish_time: Optional[str] = None,
                          recurrence_day: Optional[int] = None,
                          custom_expression: Optional[str] = None) -> str:
    """
    Build a five-field cron expression for a scheduled job.

    Args:
        frequency: One of JOB_FREQUENCIES
        publish_time: "HH:MM" for daily/weekly/monthly jobs (default 00:00)
        recurrence_day: Weekday for weekly jobs, day of month for monthly
        custom_expression: Expression used verbatim for custom jobs
    """
    hour, minute = 0, 0
    if publish_time:
        parsed = parse_hhmm(publish_time)
        hour, minute = parsed.hour, parsed.minute

    if frequency == 'minutely':
        return '* * * * *'
    if frequency == 'hourly':
        return '0 * * * *'
    if frequency == 'daily':
        return f'{minute} {hour} * * *'
    if frequency == 'weekly':
        return f'{minute} {hour} * * {recurrence_day if recurrence_day is not None else 0}'
    if frequency == 'monthly':
        return f'{minute} {hour} {recurrence_day if recurrence_day is not None else 1} * *'
    if frequency == 'custom':
        return custom_expression or '0 0 * * *'

    raise ValueError(f"Unknown job frequency: {frequency}")


def calculate_next_run(frequency: str, now: datetime) -> datetime:
    """
    Next execution time of a scheduled job, relative to ``now``.

    Works on whatever clock ``now`` is expressed in; callers store the
    result as naive UTC.
    """
    if frequency == 'minutely':
        return now.replace(second=0, microsecond=0) + timedelta(minutes=1)

    if frequency == 'hourly':
        return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)

    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if frequency == 'weekly':
        return midnight + timedelta(days=7)

    if frequency == 'monthly':
        return midnight + relativedelta(months=1)

    # daily and custom
    return midnight + timedelta(days=1)
