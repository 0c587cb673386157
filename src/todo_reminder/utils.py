from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Optional

DAY = timedelta(days=1)


# PUBLIC_INTERFACE
def to_local_naive(value: datetime) -> datetime:
    """
    Normalize a datetime to naive local time.

    Aware datetimes are converted to the local timezone and stripped of tzinfo;
    naive datetimes are assumed to already be local and are returned as-is.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def start_of_day(value: datetime) -> datetime:
    """Midnight at the start of the calendar day containing ``value``."""
    return datetime(value.year, value.month, value.day)


def start_of_week(value: datetime, week_start: int = 6) -> datetime:
    """
    Midnight of the most recent ``week_start`` day (Python weekday numbering,
    Monday=0 .. Sunday=6) on or before ``value``.
    """
    midnight = start_of_day(value)
    offset = (midnight.weekday() - week_start) % 7
    return midnight - timedelta(days=offset)


def start_of_month(value: datetime) -> datetime:
    return datetime(value.year, value.month, 1)


def start_of_next_month(value: datetime) -> datetime:
    if value.month == 12:
        return datetime(value.year + 1, 1, 1)
    return datetime(value.year, value.month + 1, 1)


def days_until(moment: datetime, now: datetime) -> int:
    """
    Number of days from ``now`` until ``moment``, rounded up.

    Anything due later today counts as 1, anything already past as 0 or less.
    """
    return math.ceil((moment - now) / DAY)


def in_window(value: Optional[datetime], start: datetime, end: datetime) -> bool:
    """True when ``value`` is set and falls inside the half-open window [start, end)."""
    return value is not None and start <= value < end
