"""
template.py — Weekly template → dated slots

For each template entry and a target Monday:
  1. Frequency filter   biweekly entries fire on odd ISO weeks unless the
                        bound RCP definition says EVEN
  2. Date resolution    RCP exceptions cancel or move one occurrence; the
                        slot id always keys off the standard date
  3. Staffing           RCP: confirmed attendance, else dayOfMonth mod pool
                        Other: primary + secondaries straight from the list
  4. Zombie cleanup     ids missing from the roster are dropped
"""

import logging
from datetime import date
from typing import List, Optional, Tuple

from .calendar_utils import date_for_weekday, to_date, week_number
from .models import (
    Physician,
    RcpAttendance,
    RcpDefinition,
    RcpException,
    ScheduleSlot,
    TemplateSlot,
)
from .schedule_config import (
    ATTENDANCE_PRESENT,
    Frequency,
    Period,
    SlotType,
    WeekParity,
)

logger = logging.getLogger(__name__)


def slot_id_for(template_id: str, standard_date: str) -> str:
    """Generated id of a template occurrence."""
    return f"{template_id}-{standard_date}"


# ---------------------------------------------------------------------------
# Step 1: frequency / parity
# ---------------------------------------------------------------------------

def occurs_in_week(
    slot: TemplateSlot,
    week_num: int,
    rcp_definitions: List[RcpDefinition],
) -> bool:
    """
    Decide whether a template entry fires in the given ISO week.

    A biweekly RCP definition bound by location wins over the slot's own
    frequency flag. Without a parity, biweekly means odd weeks only.
    """
    rcp_def = find_rcp_definition(slot, rcp_definitions)
    is_even = week_num % 2 == 0

    if rcp_def is not None and rcp_def.frequency == Frequency.BIWEEKLY:
        if rcp_def.week_parity == WeekParity.EVEN:
            return is_even
        return not is_even
    if slot.frequency == Frequency.BIWEEKLY:
        return not is_even
    return True


def find_rcp_definition(
    slot: TemplateSlot,
    rcp_definitions: List[RcpDefinition],
) -> Optional[RcpDefinition]:
    for r in rcp_definitions:
        if r.name == slot.location:
            return r
    return None


# ---------------------------------------------------------------------------
# Step 2: exceptions
# ---------------------------------------------------------------------------

def apply_rcp_exception(
    slot: TemplateSlot,
    standard_date: str,
    rcp_exceptions: List[RcpException],
) -> Optional[Tuple[str, Period]]:
    """
    Return the (date, period) the occurrence actually takes place on, or
    None when it is cancelled. Only RCP entries honour exceptions.
    """
    if slot.type != SlotType.RCP:
        return standard_date, slot.period

    for ex in rcp_exceptions:
        if ex.rcp_template_id != slot.id or ex.original_date != standard_date:
            continue
        if ex.is_cancelled:
            logger.debug(f"RCP {slot.id} cancelled on {standard_date}")
            return None
        if ex.new_date:
            new_period = ex.new_period or slot.period
            logger.debug(
                f"RCP {slot.id} moved {standard_date}/{slot.period.value} → "
                f"{ex.new_date}/{new_period.value}"
            )
            return ex.new_date, new_period
        break
    return standard_date, slot.period


# ---------------------------------------------------------------------------
# Step 3: staffing
# ---------------------------------------------------------------------------

def confirmed_attendees(
    generated_id: str,
    rcp_attendance: RcpAttendance,
) -> List[str]:
    """Doctors marked PRESENT for this occurrence, in recorded order."""
    decisions = rcp_attendance.get(generated_id) or {}
    return [doc_id for doc_id, decision in decisions.items() if decision == ATTENDANCE_PRESENT]


def pick_unconfirmed_attendee(eligible_ids: List[str], date_str: str) -> Optional[str]:
    """
    Deterministic fallback for an unconfirmed RCP: index the eligible list
    by day-of-month modulo its size. Stable across renders of the same
    date, varies from one week to the next.
    """
    if not eligible_ids:
        return None
    index = to_date(date_str).day % len(eligible_ids)
    return eligible_ids[index]


def unconfirmed_pool(slot: TemplateSlot) -> List[str]:
    """Staffing list for the fallback pick; empty when the primary seat is vacant."""
    if not slot.doctor_ids or slot.doctor_ids[0] is None:
        return []
    return [d for d in slot.doctor_ids if d]


def resolve_staffing(
    slot: TemplateSlot,
    generated_id: str,
    final_date: str,
    rcp_attendance: RcpAttendance,
) -> Tuple[Optional[str], List[str], bool]:
    """Return (primary, secondaries, is_unconfirmed) before zombie cleanup."""
    if slot.type == SlotType.RCP:
        confirmed = confirmed_attendees(generated_id, rcp_attendance)
        if confirmed:
            return confirmed[0], confirmed[1:], False
        return pick_unconfirmed_attendee(unconfirmed_pool(slot), final_date), [], True

    if slot.doctor_ids:
        return slot.doctor_ids[0], [d for d in slot.doctor_ids[1:] if d], False
    return None, [], False


# ---------------------------------------------------------------------------
# Full resolution
# ---------------------------------------------------------------------------

def resolve_template(
    week_start: date,
    template: List[TemplateSlot],
    doctors: List[Physician],
    rcp_definitions: List[RcpDefinition],
    rcp_attendance: Optional[RcpAttendance] = None,
    rcp_exceptions: Optional[List[RcpException]] = None,
) -> List[ScheduleSlot]:
    """
    Expand the weekly template into dated slots for the week of week_start.

    Returns one ScheduleSlot per surviving template entry, in template order.
    """
    rcp_attendance = rcp_attendance or {}
    rcp_exceptions = rcp_exceptions or []
    known_ids = {d.id for d in doctors}
    week_num = week_number(week_start)

    slots: List[ScheduleSlot] = []
    for t in template:
        if not occurs_in_week(t, week_num, rcp_definitions):
            logger.debug(f"Template {t.id} skipped in week {week_num} (parity)")
            continue

        standard_date = date_for_weekday(week_start, t.day)
        placement = apply_rcp_exception(t, standard_date, rcp_exceptions)
        if placement is None:
            continue
        final_date, final_period = placement

        generated_id = slot_id_for(t.id, standard_date)
        primary, secondaries, unconfirmed = resolve_staffing(
            t, generated_id, final_date, rcp_attendance
        )

        # Zombie references: deleted physicians never surface as assignees
        if primary and primary not in known_ids:
            logger.debug(f"{generated_id}: dropping unknown primary {primary}")
            primary = None
        secondaries = [sid for sid in secondaries if sid in known_ids]
        backup = t.backup_doctor_id if t.backup_doctor_id in known_ids else None

        slots.append(ScheduleSlot(
            id=generated_id,
            date=final_date,
            day=t.day,
            period=final_period,
            time=t.time,
            location=t.location,
            type=t.type,
            sub_type=t.sub_type,
            assigned_doctor_id=primary,
            secondary_doctor_ids=secondaries,
            backup_doctor_id=backup,
            is_generated=True,
            is_blocking=t.is_blocking if t.is_blocking is not None else True,
            is_unconfirmed=unconfirmed,
        ))

    logger.info(f"Template resolved for week {week_num}: {len(slots)}/{len(template)} slots")
    return slots
