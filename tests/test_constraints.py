"""
tests/test_constraints.py — Conflict detection over a resolved week.

Tests: absences (whole day / half day, secondaries), weekday and activity
exclusions, double booking pairs, deterministic ids.
"""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from radioplan.constraints import ConflictDetector, detect_conflicts
from radioplan.models import ActivityDefinition, Physician, ScheduleSlot, Unavailability
from radioplan.schedule_config import ConflictSeverity, ConflictType, DayOfWeek, Period, SlotType


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def doctors():
    return [
        Physician(id="d1", name="Dr. Martin"),
        Physician(id="d2", name="Dr. Bernard", excluded_days={DayOfWeek.MONDAY}),
        Physician(id="d3", name="Dr. Dubois", excluded_activities={"unity"}),
    ]


def _slot(slot_id, doctor_id=None, period=Period.MORNING, blocking=True, secondary=None,
          activity_id=None, location="Consultation"):
    return ScheduleSlot(
        id=slot_id,
        date="2024-06-03",
        day=DayOfWeek.MONDAY,
        period=period,
        location=location,
        type=SlotType.ACTIVITY if activity_id else SlotType.CONSULTATION,
        sub_type="Unity" if activity_id else None,
        activity_id=activity_id,
        assigned_doctor_id=doctor_id,
        secondary_doctor_ids=secondary or [],
        is_blocking=blocking,
    )


# ---------------------------------------------------------------------------
# Absences
# ---------------------------------------------------------------------------

class TestUnavailabilityConflicts:

    def test_whole_day_absence(self, doctors):
        u = [Unavailability(id="u1", doctor_id="d1", start_date="2024-06-03",
                            end_date="2024-06-03", reason="Congrès")]
        [c] = detect_conflicts([_slot("s1", "d1")], u, doctors)
        assert c.id == "conflict-abs-s1-d1-u1"
        assert c.type == ConflictType.UNAVAILABLE
        assert c.severity == ConflictSeverity.HIGH
        assert c.description == "Absent (Congrès)"
        assert c.details["unavailability_id"] == "u1"

    def test_half_day_absence_other_period(self, doctors):
        u = [Unavailability(doctor_id="d1", start_date="2024-06-03", end_date="2024-06-03",
                            reason="Formation", period=Period.AFTERNOON)]
        assert detect_conflicts([_slot("s1", "d1")], u, doctors) == []
        [c] = detect_conflicts([_slot("s2", "d1", period=Period.AFTERNOON)], u, doctors)
        assert c.description == "Absent (Formation - AFTERNOON)"

    def test_secondary_is_checked(self, doctors):
        u = [Unavailability(doctor_id="d1", start_date="2024-06-01", end_date="2024-06-10")]
        [c] = detect_conflicts([_slot("s1", None, secondary=["d1"])], u, doctors)
        assert c.doctor_id == "d1"

    def test_unfilled_slot_is_not_a_conflict(self, doctors):
        u = [Unavailability(doctor_id="d1", start_date="2024-06-03", end_date="2024-06-03")]
        assert detect_conflicts([_slot("s1")], u, doctors) == []

    def test_overlapping_absences_get_distinct_ids(self, doctors):
        u = [
            Unavailability(id="u1", doctor_id="d1", start_date="2024-06-01", end_date="2024-06-07"),
            Unavailability(id="u2", doctor_id="d1", start_date="2024-06-03", end_date="2024-06-03"),
        ]
        conflicts = detect_conflicts([_slot("s1", "d1")], u, doctors)
        assert [c.id for c in conflicts] == ["conflict-abs-s1-d1-u1", "conflict-abs-s1-d1-u2"]

    def test_absence_without_id(self, doctors):
        u = [Unavailability(doctor_id="d1", start_date="2024-06-03", end_date="2024-06-03")]
        [c] = detect_conflicts([_slot("s1", "d1")], u, doctors)
        assert c.id == "conflict-abs-s1-d1"


# ---------------------------------------------------------------------------
# Exclusions
# ---------------------------------------------------------------------------

class TestExclusionConflicts:

    def test_excluded_weekday_is_medium(self, doctors):
        [c] = detect_conflicts([_slot("s1", "d2")], [], doctors)
        assert c.type == ConflictType.UNAVAILABLE
        assert c.severity == ConflictSeverity.MEDIUM
        assert c.id == "conflict-day-excl-s1-d2"

    def test_excluded_activity_is_competence_mismatch(self, doctors):
        [c] = detect_conflicts([_slot("s1", "d3", activity_id="unity")], [], doctors)
        assert c.type == ConflictType.COMPETENCE_MISMATCH
        assert c.severity == ConflictSeverity.HIGH
        assert c.description == "Excluded from activity: Unity"

    def test_excluded_activity_uses_definition_name(self, doctors):
        activities = [ActivityDefinition(id="unity", name="Unity Imagerie")]
        [c] = detect_conflicts([_slot("s1", "d3", activity_id="unity")], [], doctors, activities)
        assert c.description == "Excluded from activity: Unity Imagerie"
        assert c.details["activity_id"] == "unity"

    def test_unknown_doctor_has_no_profile_conflicts(self, doctors):
        assert detect_conflicts([_slot("s1", "stranger")], [], doctors) == []


# ---------------------------------------------------------------------------
# Double booking
# ---------------------------------------------------------------------------

class TestDoubleBooking:

    def test_one_conflict_per_pair(self, doctors):
        slots = [_slot("a", "d1"), _slot("b", "d1")]
        conflicts = detect_conflicts(slots, [], doctors)
        assert len(conflicts) == 1
        assert conflicts[0].type == ConflictType.DOUBLE_BOOKING
        assert conflicts[0].id == "conflict-db-a-b-d1"
        assert conflicts[0].details["other_slot_id"] == "b"

    def test_three_slots_three_pairs(self, doctors):
        slots = [_slot("a", "d1"), _slot("b", "d1"), _slot("c", None, secondary=["d1"])]
        conflicts = detect_conflicts(slots, [], doctors)
        assert sorted(c.id for c in conflicts) == [
            "conflict-db-a-b-d1", "conflict-db-a-c-d1", "conflict-db-b-c-d1",
        ]

    def test_non_blocking_never_participates(self, doctors):
        slots = [_slot("a", "d1"), _slot("b", "d1", blocking=False)]
        assert detect_conflicts(slots, [], doctors) == []

    def test_different_period(self, doctors):
        slots = [_slot("a", "d1"), _slot("b", "d1", period=Period.AFTERNOON)]
        assert detect_conflicts(slots, [], doctors) == []


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------

class TestDetector:

    def test_repeatable_ids(self, doctors):
        u = [Unavailability(doctor_id="d1", start_date="2024-06-03", end_date="2024-06-03")]
        slots = [_slot("a", "d1"), _slot("b", "d1"), _slot("c", "d2"), _slot("d", "d3", activity_id="unity")]
        first = [c.id for c in detect_conflicts(slots, u, doctors)]
        second = [c.id for c in detect_conflicts(slots, u, doctors)]
        assert first == second
        assert len(first) == 5

    def test_index_by_doctor(self):
        slots = [_slot("a", "d1", secondary=["d2"]), _slot("b", "d2")]
        index = ConflictDetector.index_by_doctor(slots)
        assert [s.id for s in index["d1"]] == ["a"]
        assert [s.id for s in index["d2"]] == ["a", "b"]
