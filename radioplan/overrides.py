"""
overrides.py — Manual staffing decisions layered over a generated week

A ManualOverrides map is keyed by generated slot id. Because ids are a pure
function of template/activity origin and date, the same map re-applies to
every regeneration of the week:

  slot_id → doctor_id      force the assignment, lock the slot
  slot_id → "__CLOSED__"   empty the slot, lock it, mark it closed
"""

import dataclasses
import logging
from typing import List

from .models import ManualOverrides, ScheduleSlot
from .schedule_config import CLOSED_SENTINEL

logger = logging.getLogger(__name__)


def apply_manual_overrides(
    slots: List[ScheduleSlot],
    overrides: ManualOverrides,
) -> List[ScheduleSlot]:
    """Return new slots with the override overlay applied; ids and order unchanged."""
    result = []
    for slot in slots:
        value = overrides.get(slot.id)
        if not value:
            result.append(slot)
        elif value == CLOSED_SENTINEL:
            result.append(dataclasses.replace(
                slot, assigned_doctor_id=None, is_locked=True, is_closed=True
            ))
        else:
            result.append(dataclasses.replace(slot, assigned_doctor_id=value, is_locked=True))
    return result


def set_override(
    overrides: ManualOverrides,
    slot_id: str,
    doctor_id: str,
) -> ManualOverrides:
    """Return a new map; an empty doctor_id reverts the slot to automatic."""
    updated = dict(overrides)
    if doctor_id:
        updated[slot_id] = doctor_id
    else:
        updated.pop(slot_id, None)
    return updated


def set_weekly_override(
    overrides: ManualOverrides,
    slots: List[ScheduleSlot],
    activity_id: str,
    doctor_id: str,
) -> ManualOverrides:
    """Assign (or revert) every slot of one activity in the given week."""
    updated = dict(overrides)
    for slot in slots:
        if slot.activity_id == activity_id:
            updated = set_override(updated, slot.id, doctor_id)
    logger.debug(f"Weekly override for {activity_id} → {doctor_id or 'auto'}")
    return updated
