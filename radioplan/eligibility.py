"""
eligibility.py — Who may sit in a slot

  - is_absent:               absence records vs (date, period)
  - is_eligible_for_activity: profile exclusions + absence for an activity cell
  - get_available_doctors:   pool of replacement candidates for a grid cell

Pools preserve the roster order; the equity sorts downstream rely on it for
tie-breaking.
"""

from typing import Iterable, List, Optional

from .calendar_utils import DateLike, is_date_in_range
from .models import Physician, ScheduleSlot, Unavailability
from .schedule_config import DayOfWeek, Period, SlotType


def is_absent(
    doctor: Physician,
    date_str: DateLike,
    period: Period,
    unavailabilities: Iterable[Unavailability],
) -> bool:
    """
    True if one of the doctor's unavailabilities covers date_str and is
    either whole-day or for exactly this period.
    """
    for u in unavailabilities:
        if u.doctor_id != doctor.id:
            continue
        if not is_date_in_range(date_str, u.start_date, u.end_date):
            continue
        if u.period is None or u.period == period:
            return True
    return False


def is_eligible_for_activity(
    doctor: Physician,
    activity_id: str,
    day: DayOfWeek,
    date_str: DateLike,
    period: Period,
    unavailabilities: Iterable[Unavailability],
) -> bool:
    """Profile exclusions first, then absences."""
    if activity_id in doctor.excluded_activities:
        return False
    if day in doctor.excluded_days:
        return False
    if is_absent(doctor, date_str, period, unavailabilities):
        return False
    return True


def get_available_doctors(
    doctors: List[Physician],
    slots: List[ScheduleSlot],
    unavailabilities: List[Unavailability],
    day: DayOfWeek,
    period: Period,
    date_str: Optional[str] = None,
    slot_type: Optional[SlotType] = None,
) -> List[Physician]:
    """
    Return physicians free to take a slot at (day, period[, date]).

    Weekday and slot-type exclusions always apply. Absence and occupancy
    need a concrete date: without one they are not checked. Only blocking
    slots count as occupancy, for primary and secondary assignees alike.
    """
    available = []
    for doc in doctors:
        if day in doc.excluded_days:
            continue
        if slot_type is not None and slot_type in doc.excluded_slot_types:
            continue
        if date_str:
            if is_absent(doc, date_str, period, unavailabilities):
                continue
            busy = any(
                s.date == date_str
                and s.period == period
                and s.is_blocking
                and doc.id in s.doctor_ids
                for s in slots
            )
            if busy:
                continue
        available.append(doc)
    return available
