"""
constraints.py — Conflict detection over a resolved week

Conflict kinds:
  - UNAVAILABLE (HIGH):          assignee absent on the slot's date/period
  - UNAVAILABLE (MEDIUM):        slot falls on one of the assignee's excluded weekdays
  - COMPETENCE_MISMATCH (HIGH):  assignee excluded from the slot's activity
  - DOUBLE_BOOKING (HIGH):       two blocking slots, same date and period,
                                 same physician (one conflict per unordered pair)

Primary and secondary assignees are treated alike. Unfilled slots are not
conflicts. Conflict ids are derived from the slot / physician / pair identity,
so detection over unchanged input yields the same ids in the same order.

Usage:
  detector = ConflictDetector(doctors, unavailabilities, activities)
  conflicts = detector.check_all(slots)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .eligibility import is_absent
from .models import ActivityDefinition, Physician, ScheduleSlot, Unavailability
from .schedule_config import ConflictSeverity, ConflictType

logger = logging.getLogger(__name__)


@dataclass
class Conflict:
    id: str
    slot_id: str
    doctor_id: str
    type: ConflictType
    description: str
    severity: ConflictSeverity
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return (
            f"[{self.severity.value}] {self.type.value} | slot={self.slot_id} "
            f"| doctor={self.doctor_id} → {self.description}"
        )


class ConflictDetector:
    """
    Scans a fully resolved slot set (overrides already applied) against
    absences and physician exclusion profiles.
    """

    def __init__(
        self,
        doctors: List[Physician],
        unavailabilities: List[Unavailability],
        activities: Optional[List[ActivityDefinition]] = None,
    ):
        self.doctors = doctors
        self.unavailabilities = unavailabilities
        self.activities = activities or []

        self._doctor_by_id: Dict[str, Physician] = {d.id: d for d in doctors}
        self._activity_by_id: Dict[str, ActivityDefinition] = {a.id: a for a in self.activities}

    # -----------------------------------------------------------------------
    # Index
    # -----------------------------------------------------------------------

    @staticmethod
    def index_by_doctor(slots: List[ScheduleSlot]) -> Dict[str, List[ScheduleSlot]]:
        """doctor_id → slots they appear on (primary or secondary), in slot order."""
        doctor_slots: Dict[str, List[ScheduleSlot]] = {}
        for slot in slots:
            for doc_id in slot.doctor_ids:
                doctor_slots.setdefault(doc_id, []).append(slot)
        return doctor_slots

    def _activity_label(self, slot: ScheduleSlot) -> str:
        act = self._activity_by_id.get(slot.activity_id or "")
        if act is not None:
            return act.name
        return slot.sub_type or slot.activity_id or ""

    # -----------------------------------------------------------------------
    # Absences
    # -----------------------------------------------------------------------

    @staticmethod
    def _absence_conflict_id(slot: ScheduleSlot, absence: Unavailability) -> str:
        # Overlapping absence records each get their own conflict
        base = f"conflict-abs-{slot.id}-{absence.doctor_id}"
        return f"{base}-{absence.id}" if absence.id else base

    def check_unavailability(
        self,
        doctor_slots: Dict[str, List[ScheduleSlot]],
    ) -> List[Conflict]:
        conflicts = []
        for absence in self.unavailabilities:
            probe = Physician(id=absence.doctor_id, name=absence.doctor_id)
            for slot in doctor_slots.get(absence.doctor_id, []):
                if not is_absent(probe, slot.date, slot.period, [absence]):
                    continue
                suffix = f" - {absence.period.value}" if absence.period else ""
                conflicts.append(Conflict(
                    id=self._absence_conflict_id(slot, absence),
                    slot_id=slot.id,
                    doctor_id=absence.doctor_id,
                    type=ConflictType.UNAVAILABLE,
                    description=f"Absent ({absence.reason}{suffix})",
                    severity=ConflictSeverity.HIGH,
                    details={"reason": absence.reason, "unavailability_id": absence.id},
                ))
        return conflicts

    # -----------------------------------------------------------------------
    # Profile exclusions
    # -----------------------------------------------------------------------

    def check_exclusions(
        self,
        doctor_slots: Dict[str, List[ScheduleSlot]],
    ) -> List[Conflict]:
        conflicts = []
        for doctor_id, my_slots in doctor_slots.items():
            doc = self._doctor_by_id.get(doctor_id)
            if doc is None:
                continue
            for slot in my_slots:
                if slot.day in doc.excluded_days:
                    conflicts.append(Conflict(
                        id=f"conflict-day-excl-{slot.id}-{doctor_id}",
                        slot_id=slot.id,
                        doctor_id=doctor_id,
                        type=ConflictType.UNAVAILABLE,
                        description=f"Does not work on {slot.day.value}",
                        severity=ConflictSeverity.MEDIUM,
                    ))
                if slot.activity_id and slot.activity_id in doc.excluded_activities:
                    conflicts.append(Conflict(
                        id=f"conflict-act-excl-{slot.id}-{doctor_id}",
                        slot_id=slot.id,
                        doctor_id=doctor_id,
                        type=ConflictType.COMPETENCE_MISMATCH,
                        description=f"Excluded from activity: {self._activity_label(slot)}",
                        severity=ConflictSeverity.HIGH,
                        details={"activity_id": slot.activity_id},
                    ))
        return conflicts

    # -----------------------------------------------------------------------
    # Double booking
    # -----------------------------------------------------------------------

    @staticmethod
    def check_double_booking(
        doctor_slots: Dict[str, List[ScheduleSlot]],
    ) -> List[Conflict]:
        """One conflict per unordered pair of overlapping blocking slots."""
        conflicts = []
        for doctor_id, my_slots in doctor_slots.items():
            for i in range(len(my_slots)):
                for j in range(i + 1, len(my_slots)):
                    s1, s2 = my_slots[i], my_slots[j]
                    if s1.date != s2.date or s1.period != s2.period:
                        continue
                    if not (s1.is_blocking and s2.is_blocking) or s1.id == s2.id:
                        continue
                    conflicts.append(Conflict(
                        id=f"conflict-db-{s1.id}-{s2.id}-{doctor_id}",
                        slot_id=s1.id,
                        doctor_id=doctor_id,
                        type=ConflictType.DOUBLE_BOOKING,
                        description=(
                            f"Double booking: {s1.location} and {s2.location} "
                            f"on {s1.date} {s1.period.value}"
                        ),
                        severity=ConflictSeverity.HIGH,
                        details={"other_slot_id": s2.id},
                    ))
        return conflicts

    # -----------------------------------------------------------------------
    # Run all checks
    # -----------------------------------------------------------------------

    def check_all(self, slots: List[ScheduleSlot]) -> List[Conflict]:
        """Absences first, then exclusions and double bookings per doctor."""
        doctor_slots = self.index_by_doctor(slots)

        conflicts: List[Conflict] = []
        conflicts.extend(self.check_unavailability(doctor_slots))
        conflicts.extend(self.check_exclusions(doctor_slots))
        conflicts.extend(self.check_double_booking(doctor_slots))

        if conflicts:
            logger.info(f"{len(conflicts)} conflicts detected over {len(slots)} slots")
        return conflicts


def detect_conflicts(
    slots: List[ScheduleSlot],
    unavailabilities: List[Unavailability],
    doctors: List[Physician],
    activities: Optional[List[ActivityDefinition]] = None,
) -> List[Conflict]:
    """Functional entry point over ConflictDetector.check_all."""
    return ConflictDetector(doctors, unavailabilities, activities).check_all(slots)
