"""
Best-effort parsing of the short date phrases people type for due dates and
reminders. This is a convenience, not a calendar: anything it does not
recognise yields None and the caller decides what to do.

Recognised forms (case-insensitive):
- ``today``, ``tomorrow``
- a weekday name (``friday``): the next such day after today
- ``this <weekday>`` / ``next <weekday>``: the next such day, or the one after
- ``in N day(s)``, ``in N week(s)``, ``in N month(s)``
- ISO dates and datetimes (``2025-12-31``, ``2025-12-31T14:30``)

Phrases resolve to midnight of the matched day; ISO datetimes keep their time.
"""
from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import FR, MO, SA, SU, TH, TU, WE, relativedelta

from .utils import start_of_day, to_local_naive

DAY_MAP = {
    "monday": MO,
    "tuesday": TU,
    "wednesday": WE,
    "thursday": TH,
    "friday": FR,
    "saturday": SA,
    "sunday": SU,
}

_RELATIVE_WEEKDAY = re.compile(rf"^(next|this)\s+({'|'.join(DAY_MAP)})$")
_IN_UNITS = re.compile(r"^in\s+(\d+)\s+(day|week|month)s?$")


def next_weekday(name: str, now: datetime) -> datetime:
    """Midnight of the next day named ``name`` strictly after today."""
    return start_of_day(now) + relativedelta(days=+1, weekday=DAY_MAP[name.lower()](+1))


def _parse_iso(text: str) -> Optional[datetime]:
    try:
        return to_local_naive(date_parser.isoparse(text))
    except (ValueError, OverflowError):
        return None


# PUBLIC_INTERFACE
def parse_natural_date(text: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Resolve a date phrase relative to ``now``; None when it is not understood."""
    now = now or datetime.now()
    value = text.strip().lower()
    if not value:
        return None

    today = start_of_day(now)
    if value == "today":
        return today
    if value == "tomorrow":
        return today + timedelta(days=1)
    if value in DAY_MAP:
        return next_weekday(value, now)

    match = _RELATIVE_WEEKDAY.match(value)
    if match:
        modifier, day_name = match.groups()
        target = next_weekday(day_name, now)
        return target + timedelta(weeks=1) if modifier == "next" else target

    match = _IN_UNITS.match(value)
    if match:
        num, unit = int(match.group(1)), match.group(2)
        try:
            if unit == "day":
                return today + timedelta(days=num)
            if unit == "week":
                return today + timedelta(weeks=num)
            return today + relativedelta(months=num)
        except (OverflowError, ValueError):
            # past datetime.max
            return None

    return _parse_iso(text.strip())
