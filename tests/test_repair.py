"""
tests/test_repair.py — Replacement suggestions for conflicted slots.

Tests: scoring rules, hard exclusions, ranking / top-3 cut, resolve_conflict.
"""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from radioplan.constraints import Conflict, detect_conflicts
from radioplan.models import Physician, ScheduleSlot, Unavailability
from radioplan.repair import (
    count_other_assignments,
    is_hard_excluded,
    resolve_conflict,
    score_candidate,
    suggest_replacements,
)
from radioplan.schedule_config import ConflictSeverity, ConflictType, DayOfWeek, Period, SlotType


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

def _slot(slot_id, doctor_id=None, date="2024-06-03", period=Period.MORNING,
          location="Consultation", slot_type=SlotType.CONSULTATION, activity_id=None):
    return ScheduleSlot(
        id=slot_id,
        date=date,
        day=DayOfWeek.MONDAY,
        period=period,
        location=location,
        type=slot_type,
        activity_id=activity_id,
        assigned_doctor_id=doctor_id,
    )


def _busy(doctor_id, n, prefix="busy"):
    """n filler slots held by doctor_id later in the week."""
    return [
        _slot(f"{prefix}-{doctor_id}-{i}", doctor_id, date="2024-06-05", period=Period.AFTERNOON)
        for i in range(n)
    ]


@pytest.fixture
def absent():
    return Physician(id="P", name="Dr. P", specialties=["Onco"])


@pytest.fixture
def rcp_slot():
    return _slot("S", "P", location="RCP Onco", slot_type=SlotType.RCP)


# ---------------------------------------------------------------------------
# Scenario
# ---------------------------------------------------------------------------

class TestScenario:

    def test_specialist_ranked_first(self, absent, rcp_slot):
        a = Physician(id="A", name="Dr. A", specialties=["Onco"])
        b = Physician(id="B", name="Dr. B", specialties=["Cardio"])
        slots = [rcp_slot] + _busy("B", 1)

        ranked = suggest_replacements(rcp_slot, absent, [b, a], slots)

        assert [r.suggested_doctor_id for r in ranked] == ["A", "B"]
        assert ranked[0].score >= 95
        assert ranked[0].score == 100
        assert ranked[1].score == 50
        assert ranked[1].reasoning == "Available"
        assert "Same specialty (Onco)" in ranked[0].reasoning
        assert "Relevant expertise (Onco)" in ranked[0].reasoning
        assert all(r.original_doctor_id == "P" for r in ranked)


# ---------------------------------------------------------------------------
# Individual rules
# ---------------------------------------------------------------------------

class TestScoring:

    def test_equitable_activity_choice(self, absent):
        slot = _slot("S", "P", location="Unity", slot_type=SlotType.ACTIVITY, activity_id="unity")
        c = Physician(id="C", name="Dr. C")
        s = score_candidate(c, slot, absent, [slot] + _busy("C", 2))
        assert s.score == 90
        assert s.reasoning == "Equitable choice (recommended)"

    def test_idle_on_activity_is_clamped(self, absent):
        slot = _slot("S", "P", location="Unity", slot_type=SlotType.ACTIVITY, activity_id="unity")
        s = score_candidate(Physician(id="C", name="Dr. C"), slot, absent, [slot])
        assert s.score == 100
        assert s.reasoning == "Equitable choice (recommended) • No load this week"

    def test_busy_penalty(self, absent, rcp_slot):
        s = score_candidate(Physician(id="C", name="Dr. C"), rcp_slot, absent, _busy("C", 7))
        assert s.score == 15
        assert s.reasoning == "Busy schedule"

    def test_score_floor(self, absent, rcp_slot):
        s = score_candidate(Physician(id="C", name="Dr. C"), rcp_slot, absent, _busy("C", 11))
        assert s.score == 0

    def test_location_match_case_insensitive(self, absent):
        slot = _slot("S", "P", location="Consultation ORL")
        c = Physician(id="C", name="Dr. C", specialties=["orl"])
        s = score_candidate(c, slot, absent, _busy("C", 1))
        assert s.score == 70
        assert s.reasoning == "Relevant expertise (orl)"

    def test_conflicted_slot_not_counted(self, rcp_slot):
        c = Physician(id="P", name="Dr. P")
        assert count_other_assignments(c, [rcp_slot], rcp_slot.id) == 0


class TestHardExclusions:

    def test_slot_type_exclusion(self, rcp_slot):
        c = Physician(id="C", name="Dr. C", excluded_slot_types={SlotType.RCP})
        assert is_hard_excluded(c, rcp_slot)

    def test_activity_exclusion(self):
        slot = _slot("S", "P", slot_type=SlotType.ACTIVITY, activity_id="unity")
        assert is_hard_excluded(Physician(id="C", name="Dr. C", excluded_activities={"unity"}), slot)
        assert not is_hard_excluded(Physician(id="D", name="Dr. D"), slot)

    def test_excluded_candidates_never_suggested(self, absent, rcp_slot):
        c = Physician(id="C", name="Dr. C", excluded_slot_types={SlotType.RCP})
        d = Physician(id="D", name="Dr. D")
        ranked = suggest_replacements(rcp_slot, absent, [c, d], [rcp_slot])
        assert [r.suggested_doctor_id for r in ranked] == ["D"]


class TestRanking:

    def test_top_three_ties_keep_pool_order(self, absent, rcp_slot):
        pool = [Physician(id=f"C{i}", name=f"Dr. C{i}") for i in range(5)]
        ranked = suggest_replacements(rcp_slot, absent, pool, [rcp_slot])
        assert [r.suggested_doctor_id for r in ranked] == ["C0", "C1", "C2"]
        assert {r.score for r in ranked} == {65}

    def test_empty_pool(self, absent, rcp_slot):
        assert suggest_replacements(rcp_slot, absent, [], [rcp_slot]) == []


# ---------------------------------------------------------------------------
# resolve_conflict
# ---------------------------------------------------------------------------

class TestResolveConflict:

    @pytest.fixture
    def doctors(self):
        return [
            Physician(id="P", name="Dr. P", specialties=["Onco"]),
            Physician(id="Q", name="Dr. Q", specialties=["Onco"]),
            Physician(id="R", name="Dr. R"),
        ]

    def test_busy_and_absent_doctors_not_suggested(self, doctors):
        slots = [_slot("S", "P", location="Consultation Onco"), _slot("T", "Q")]
        absences = [Unavailability(doctor_id="P", start_date="2024-06-03", end_date="2024-06-03")]
        [conflict] = [
            c for c in detect_conflicts(slots, absences, doctors)
            if c.severity == ConflictSeverity.HIGH
        ]
        ranked = resolve_conflict(conflict, slots, doctors, absences)
        assert [r.suggested_doctor_id for r in ranked] == ["R"]
        assert ranked[0].score == 65

    def test_unknown_slot(self, doctors):
        ghost = Conflict(
            id="x", slot_id="missing", doctor_id="P", type=ConflictType.UNAVAILABLE,
            description="", severity=ConflictSeverity.HIGH,
        )
        assert resolve_conflict(ghost, [], doctors, []) == []
