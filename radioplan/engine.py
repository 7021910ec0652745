"""
engine.py — RadioPlan week generation and activity auto-assignment

Pipeline (one call per rendered week, full recomputation every time):
  1. template.resolve_template      consultations / RCP from the weekly template
  2. generate_activity_slots        one empty slot per activity × weekday × period
  3. fill_auto_activities           greedy equity assignment (optional)
  The caller then overlays manual overrides (overrides.py) and runs
  constraints.detect_conflicts on the result.

Equity algorithm:
  counts[d] = Σ shift_history[d][*]           (historical seed)
  For each activity, in definition order:
    WEEKLY:   pool = doctors free on EVERY slot of the activity
              winner = min(pool, key=counts)  → every empty slot
              counts[winner] += len(activity slots)
    HALF_DAY: for each slot (Mon AM, Mon PM, Tue AM, ...):
                already assigned → counts[assignee] += 1, keep it
                else pool = eligible doctors not already booked on the same
                     date/period (unless double booking is allowed)
                     winner = min(pool, key=counts); counts[winner] += 1
  Ties go to roster order (stable sort). Deterministic, locally fair, not a
  global optimum.

None of the functions below mutate their inputs.
"""

import copy
import logging
import math
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from .calendar_utils import DateLike, date_for_weekday, monday_of, to_date
from .eligibility import is_absent, is_eligible_for_activity
from .models import (
    ActivityDefinition,
    Physician,
    RcpAttendance,
    RcpDefinition,
    RcpException,
    ScheduleSlot,
    ShiftHistory,
    TemplateSlot,
    Unavailability,
)
from .schedule_config import (
    MONTH_GRID_WEEKS,
    PERIODS,
    WEEK_DAYS,
    Granularity,
    Period,
    SlotType,
)
from .template import resolve_template

logger = logging.getLogger(__name__)


def activity_slot_id(activity_id: str, date_str: str, period: Period) -> str:
    """Generated id of one activity cell."""
    return f"act-{activity_id}-{date_str}-{period.value}"


# ---------------------------------------------------------------------------
# Activity slot generation
# ---------------------------------------------------------------------------

def generate_activity_slots(
    week_start: date,
    activities: List[ActivityDefinition],
) -> List[ScheduleSlot]:
    """
    One unassigned slot per activity × weekday × period, day-major.

    Activities that allow double booking produce non-blocking slots.
    """
    slots: List[ScheduleSlot] = []
    for act in activities:
        for day in WEEK_DAYS:
            date_str = date_for_weekday(week_start, day)
            for period in PERIODS:
                slots.append(ScheduleSlot(
                    id=activity_slot_id(act.id, date_str, period),
                    date=date_str,
                    day=day,
                    period=period,
                    location=act.name,
                    type=SlotType.ACTIVITY,
                    sub_type=act.name,
                    activity_id=act.id,
                    assigned_doctor_id=None,
                    is_generated=True,
                    is_blocking=not act.allow_double_booking,
                ))
    return slots


# ---------------------------------------------------------------------------
# Equity counters
# ---------------------------------------------------------------------------

def seed_shift_counts(
    doctors: List[Physician],
    shift_history: Optional[ShiftHistory],
) -> Dict[str, int]:
    """Running counter per doctor, seeded with the sum of historical counts."""
    shift_history = shift_history or {}
    return {
        d.id: sum((shift_history.get(d.id) or {}).values())
        for d in doctors
    }


def _least_loaded(candidates: List[Physician], counts: Dict[str, int]) -> Physician:
    return sorted(candidates, key=lambda d: counts.get(d.id, 0))[0]


# ---------------------------------------------------------------------------
# Auto-assignment
# ---------------------------------------------------------------------------

def _weekly_candidates(
    activity: ActivityDefinition,
    activity_slots: List[ScheduleSlot],
    doctors: List[Physician],
    unavailabilities: List[Unavailability],
) -> List[Physician]:
    """Doctors free on every slot of a weekly activity."""
    pool = []
    for doc in doctors:
        if activity.id in doc.excluded_activities:
            continue
        if any(is_absent(doc, s.date, s.period, unavailabilities) for s in activity_slots):
            continue
        if any(s.day in doc.excluded_days for s in activity_slots):
            continue
        pool.append(doc)
    return pool


def _is_booked_elsewhere(
    doc: Physician,
    slot: ScheduleSlot,
    slots: List[ScheduleSlot],
) -> bool:
    return any(
        s.date == slot.date
        and s.period == slot.period
        and s.assigned_doctor_id == doc.id
        and s.id != slot.id
        for s in slots
    )


def _fill_weekly_activity(
    activity: ActivityDefinition,
    activity_slots: List[ScheduleSlot],
    doctors: List[Physician],
    unavailabilities: List[Unavailability],
    counts: Dict[str, int],
) -> None:
    candidates = _weekly_candidates(activity, activity_slots, doctors, unavailabilities)
    if not candidates:
        logger.warning(f"Activity '{activity.name}': nobody free for the whole week, left unfilled")
        return

    chosen = _least_loaded(candidates, counts)
    for s in activity_slots:
        if not s.assigned_doctor_id:
            s.assigned_doctor_id = chosen.id
    counts[chosen.id] = counts.get(chosen.id, 0) + len(activity_slots)
    logger.debug(
        f"Activity '{activity.name}' (weekly) → {chosen.id} "
        f"(count={counts[chosen.id]})"
    )


def _fill_half_day_activity(
    activity: ActivityDefinition,
    activity_slots: List[ScheduleSlot],
    all_slots: List[ScheduleSlot],
    doctors: List[Physician],
    unavailabilities: List[Unavailability],
    counts: Dict[str, int],
) -> None:
    for slot in activity_slots:
        if slot.assigned_doctor_id:
            counts[slot.assigned_doctor_id] = counts.get(slot.assigned_doctor_id, 0) + 1
            continue

        candidates = []
        for doc in doctors:
            if not is_eligible_for_activity(
                doc, activity.id, slot.day, slot.date, slot.period, unavailabilities
            ):
                continue
            if not activity.allow_double_booking and _is_booked_elsewhere(doc, slot, all_slots):
                continue
            candidates.append(doc)

        if not candidates:
            logger.warning(
                f"Activity '{activity.name}': no eligible doctor on "
                f"{slot.date} {slot.period.value}, left unfilled"
            )
            continue

        chosen = _least_loaded(candidates, counts)
        slot.assigned_doctor_id = chosen.id
        counts[chosen.id] = counts.get(chosen.id, 0) + 1
        logger.debug(f"{slot.id} → {chosen.id} (count={counts[chosen.id]})")


def fill_auto_activities(
    slots: List[ScheduleSlot],
    activities: List[ActivityDefinition],
    doctors: List[Physician],
    unavailabilities: List[Unavailability],
    shift_history: Optional[ShiftHistory] = None,
) -> List[ScheduleSlot]:
    """
    Fill unassigned activity slots with the least-loaded eligible doctor.

    Args:
        slots:            Template-derived plus activity slots for one week.
        activities:       Activity definitions, processed in order.
        doctors:          Current roster. ORDER breaks equity ties.
        unavailabilities: Absence records.
        shift_history:    {doctor_id: {activity_id: count}} seed for equity.

    Returns:
        A new list of new slots; the input list and its slots are untouched.
    """
    filled = copy.deepcopy(slots)
    counts = seed_shift_counts(doctors, shift_history)

    for act in activities:
        act_slots = [s for s in filled if s.activity_id == act.id]
        if not act_slots:
            continue
        if act.granularity == Granularity.WEEKLY:
            _fill_weekly_activity(act, act_slots, doctors, unavailabilities, counts)
        else:
            _fill_half_day_activity(act, act_slots, filled, doctors, unavailabilities, counts)

    return filled


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def resolve_week(
    week_start: DateLike,
    template: List[TemplateSlot],
    unavailabilities: List[Unavailability],
    doctors: List[Physician],
    activities: List[ActivityDefinition],
    rcp_definitions: List[RcpDefinition],
    auto_fill_activities: bool = True,
    shift_history: Optional[ShiftHistory] = None,
    rcp_attendance: Optional[RcpAttendance] = None,
    rcp_exceptions: Optional[List[RcpException]] = None,
) -> List[ScheduleSlot]:
    """
    Build the full slot set of one week: template slots first, then activity
    slots, then (optionally) auto-fill the activities.

    week_start must be a Monday (date or ISO string).
    """
    monday = to_date(week_start)
    slots = resolve_template(
        monday,
        template,
        doctors,
        rcp_definitions,
        rcp_attendance=rcp_attendance,
        rcp_exceptions=rcp_exceptions,
    )
    slots.extend(generate_activity_slots(monday, activities))

    if not auto_fill_activities:
        return slots

    filled = fill_auto_activities(slots, activities, doctors, unavailabilities, shift_history)
    unfilled = sum(1 for s in filled if s.activity_id and not s.assigned_doctor_id)
    logger.info(
        f"Week {monday.isoformat()}: {len(filled)} slots, "
        f"{unfilled} activity slots unfilled"
    )
    return filled


def resolve_month(
    grid_start: DateLike,
    template: List[TemplateSlot],
    unavailabilities: List[Unavailability],
    doctors: List[Physician],
    activities: List[ActivityDefinition],
    rcp_definitions: List[RcpDefinition],
    auto_fill_activities: bool = True,
    shift_history: Optional[ShiftHistory] = None,
    rcp_attendance: Optional[RcpAttendance] = None,
) -> List[ScheduleSlot]:
    """
    Five consecutive weeks starting at grid_start (a Monday), concatenated.

    RCP exceptions are not applied in the month view.
    """
    first = to_date(grid_start)
    all_slots: List[ScheduleSlot] = []
    for i in range(MONTH_GRID_WEEKS):
        all_slots.extend(resolve_week(
            first + timedelta(weeks=i),
            template,
            unavailabilities,
            doctors,
            activities,
            rcp_definitions,
            auto_fill_activities=auto_fill_activities,
            shift_history=shift_history,
            rcp_attendance=rcp_attendance,
            rcp_exceptions=[],
        ))
    return all_slots


def month_grid_start(value: DateLike) -> date:
    """Monday on or before the first day of value's month."""
    d = to_date(value)
    return monday_of(date(d.year, d.month, 1))


# ---------------------------------------------------------------------------
# Activity load metrics
# ---------------------------------------------------------------------------

def calculate_activity_stats(
    slots: List[ScheduleSlot],
    doctors: List[Physician],
    activity_id: str,
    shift_history: Optional[ShiftHistory] = None,
) -> Dict[str, Any]:
    """
    Per-doctor load for one activity: current slots (primary assignee) plus
    historical count, with mean / std / CV of the combined totals.

    Returns:
        {
          current: {doctor_id: int},
          history: {doctor_id: int},
          totals:  {doctor_id: int},
          mean, std, cv, unfilled,
        }
    """
    shift_history = shift_history or {}
    current: Dict[str, int] = {d.id: 0 for d in doctors}
    history: Dict[str, int] = {
        d.id: (shift_history.get(d.id) or {}).get(activity_id, 0) for d in doctors
    }
    unfilled = 0

    for s in slots:
        if s.activity_id != activity_id:
            continue
        if not s.assigned_doctor_id:
            unfilled += 1
            continue
        if s.assigned_doctor_id in current:
            current[s.assigned_doctor_id] += 1

    totals = {d_id: current[d_id] + history[d_id] for d_id in current}
    values = list(totals.values())
    mean_val = sum(values) / len(values) if values else 0.0
    variance = sum((v - mean_val) ** 2 for v in values) / len(values) if values else 0.0
    std_val = math.sqrt(variance)
    cv = (std_val / mean_val * 100) if mean_val > 0 else 0.0

    return {
        "current": current,
        "history": history,
        "totals": totals,
        "mean": mean_val,
        "std": std_val,
        "cv": cv,
        "unfilled": unfilled,
    }
