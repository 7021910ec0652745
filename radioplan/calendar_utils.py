"""
calendar_utils.py — Date arithmetic for the weekly grid

All dates leaving this module are ISO strings (YYYY-MM-DD) built from the
calendar fields of a datetime.date, never from a timezone-normalised instant.
"""

import math
from datetime import date, timedelta
from typing import List, Optional, Union

from .models import Holiday
from .schedule_config import FRENCH_HOLIDAYS, WEEKDAY_OFFSETS, DayOfWeek

DateLike = Union[date, str]


def to_date(value: DateLike) -> date:
    """Accept a date or an ISO string."""
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


def monday_of(value: DateLike) -> date:
    """Return the Monday of the week containing value."""
    d = to_date(value)
    return d - timedelta(days=d.weekday())


def date_for_weekday(week_start: DateLike, day: DayOfWeek) -> str:
    """
    Return the ISO date of `day` within the week starting at `week_start`.

    week_start must be a Monday.
    """
    monday = to_date(week_start)
    if monday.weekday() != 0:
        raise ValueError(f"Week start {monday.isoformat()} is not a Monday")
    result = monday + timedelta(days=WEEKDAY_OFFSETS[day])
    return f"{result.year:04d}-{result.month:02d}-{result.day:02d}"


def week_number(value: DateLike) -> int:
    """
    ISO week number using the Thursday rule: move to the Thursday of the
    containing week, then count weeks from January 1st of that Thursday's year.
    """
    d = to_date(value)
    day_num = d.isoweekday()            # Monday=1 .. Sunday=7
    thursday = d + timedelta(days=4 - day_num)
    year_start = date(thursday.year, 1, 1)
    return math.ceil(((thursday - year_start).days + 1) / 7)


def is_date_in_range(value: DateLike, start: DateLike, end: DateLike) -> bool:
    """Inclusive on both ends."""
    return to_date(start) <= to_date(value) <= to_date(end)


def is_holiday(value: DateLike) -> Optional[Holiday]:
    """Exact date match against the static French holiday table."""
    date_str = to_date(value).isoformat()
    for h in FRENCH_HOLIDAYS:
        if h["date"] == date_str:
            return Holiday(date=h["date"], name=h["name"])
    return None


def get_week_mondays(start: DateLike, weeks: int) -> List[date]:
    """Return `weeks` consecutive Mondays, the first being the Monday of start."""
    first = monday_of(start)
    return [first + timedelta(weeks=i) for i in range(weeks)]
