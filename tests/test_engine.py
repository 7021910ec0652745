"""
Tests for the week engine (activity slot generation, equity auto-fill,
week/month resolution, activity load metrics)
"""

import sys
from datetime import date
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from radioplan.engine import (
    _fill_weekly_activity,
    activity_slot_id,
    calculate_activity_stats,
    fill_auto_activities,
    generate_activity_slots,
    month_grid_start,
    resolve_month,
    resolve_week,
    seed_shift_counts,
)
from radioplan.models import (
    ActivityDefinition,
    Physician,
    TemplateSlot,
    Unavailability,
)
from radioplan.schedule_config import DayOfWeek, Granularity, Period, SlotType

WEEK = date(2024, 6, 3)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def pair():
    return [Physician(id="X", name="Dr. X"), Physician(id="Y", name="Dr. Y")]


@pytest.fixture
def astreinte():
    return ActivityDefinition(id="astreinte", name="Astreinte", granularity=Granularity.WEEKLY)


@pytest.fixture
def unity():
    return ActivityDefinition(id="unity", name="Unity", granularity=Granularity.HALF_DAY)


def _week(doctors, activities, template=None, unavailabilities=None, history=None, auto=True):
    return resolve_week(
        WEEK,
        template or [],
        unavailabilities or [],
        doctors,
        activities,
        [],
        auto_fill_activities=auto,
        shift_history=history,
    )


# ---------------------------------------------------------------------------
# Activity slot generation
# ---------------------------------------------------------------------------

class TestGenerateActivitySlots:

    def test_one_slot_per_day_and_period(self, unity):
        slots = generate_activity_slots(WEEK, [unity])
        assert len(slots) == 10
        assert slots[0].id == "act-unity-2024-06-03-MORNING"
        assert slots[1].id == "act-unity-2024-06-03-AFTERNOON"
        assert slots[-1].id == activity_slot_id("unity", "2024-06-07", Period.AFTERNOON)
        assert all(s.assigned_doctor_id is None for s in slots)
        assert all(s.type == SlotType.ACTIVITY and s.activity_id == "unity" for s in slots)

    def test_double_booking_makes_slot_non_blocking(self):
        act = ActivityDefinition(id="a", name="A", allow_double_booking=True)
        assert not any(s.is_blocking for s in generate_activity_slots(WEEK, [act]))


# ---------------------------------------------------------------------------
# Weekly granularity
# ---------------------------------------------------------------------------

class TestWeeklyActivity:

    def test_least_loaded_takes_whole_week(self, pair, astreinte):
        history = {"X": {}, "Y": {"astreinte": 2}}
        slots = _week(pair, [astreinte], history=history)
        assert {s.assigned_doctor_id for s in slots} == {"X"}
        assert len(slots) == 10

    def test_single_absence_disqualifies_for_the_week(self, pair, astreinte):
        absence = [Unavailability(doctor_id="X", start_date="2024-06-05", end_date="2024-06-05",
                                  period=Period.AFTERNOON)]
        slots = _week(pair, [astreinte], unavailabilities=absence)
        assert {s.assigned_doctor_id for s in slots} == {"Y"}

    def test_excluded_weekday_disqualifies(self, astreinte):
        doctors = [
            Physician(id="X", name="Dr. X", excluded_days={DayOfWeek.FRIDAY}),
            Physician(id="Y", name="Dr. Y"),
        ]
        slots = _week(doctors, [astreinte], history={"Y": {"unity": 50}})
        assert {s.assigned_doctor_id for s in slots} == {"Y"}

    def test_nobody_free_leaves_week_unfilled(self, astreinte):
        doctors = [Physician(id="X", name="Dr. X", excluded_activities={"astreinte"})]
        slots = _week(doctors, [astreinte])
        assert all(s.assigned_doctor_id is None for s in slots)

    def test_counter_bumped_by_slot_count(self, pair, astreinte):
        slots = generate_activity_slots(WEEK, [astreinte])
        counts = {"X": 0, "Y": 0}
        _fill_weekly_activity(astreinte, slots, pair, [], counts)
        assert counts == {"X": 10, "Y": 0}

    def test_no_double_counting_across_activities(self, pair, astreinte):
        # X takes the first week-long activity (+10), so Y (9) wins the second
        second = ActivityDefinition(id="permanence", name="Permanence", granularity=Granularity.WEEKLY)
        slots = _week(pair, [astreinte, second], history={"Y": {"old": 9}})
        by_activity = {
            act: {s.assigned_doctor_id for s in slots if s.activity_id == act}
            for act in ("astreinte", "permanence")
        }
        assert by_activity == {"astreinte": {"X"}, "permanence": {"Y"}}


# ---------------------------------------------------------------------------
# Half-day granularity
# ---------------------------------------------------------------------------

class TestHalfDayActivity:

    def test_alternates_between_equal_doctors(self, pair, unity):
        slots = _week(pair, [unity])
        assert [s.assigned_doctor_id for s in slots[:4]] == ["X", "Y", "X", "Y"]

    def test_history_seeds_counter(self, pair, unity):
        slots = _week(pair, [unity], history={"X": {"unity": 3}})
        assert [s.assigned_doctor_id for s in slots[:4]] == ["Y", "Y", "Y", "X"]

    def test_booked_elsewhere_skipped(self, pair, unity):
        consult = TemplateSlot(
            id="t-cs", day=DayOfWeek.MONDAY, period=Period.MORNING,
            location="Consultation", type=SlotType.CONSULTATION, doctor_ids=["X"],
        )
        slots = _week(pair, [unity], template=[consult])
        mon_am = next(s for s in slots if s.id == "act-unity-2024-06-03-MORNING")
        assert mon_am.assigned_doctor_id == "Y"

    def test_double_booking_allowed(self, unity):
        doctors = [Physician(id="X", name="Dr. X")]
        consult = TemplateSlot(
            id="t-cs", day=DayOfWeek.MONDAY, period=Period.MORNING,
            location="Consultation", type=SlotType.CONSULTATION, doctor_ids=["X"],
        )
        strict = _week(doctors, [unity], template=[consult])
        relaxed_act = ActivityDefinition(id="unity", name="Unity", allow_double_booking=True)
        relaxed = _week(doctors, [relaxed_act], template=[consult])
        sid = "act-unity-2024-06-03-MORNING"
        assert next(s for s in strict if s.id == sid).assigned_doctor_id is None
        assert next(s for s in relaxed if s.id == sid).assigned_doctor_id == "X"

    def test_absent_and_excluded_skipped(self, unity):
        doctors = [
            Physician(id="X", name="Dr. X", excluded_activities={"unity"}),
            Physician(id="Y", name="Dr. Y"),
            Physician(id="Z", name="Dr. Z"),
        ]
        absence = [Unavailability(doctor_id="Y", start_date="2024-06-03", end_date="2024-06-07")]
        slots = _week(doctors, [unity], unavailabilities=absence)
        assert {s.assigned_doctor_id for s in slots} == {"Z"}

    def test_preassigned_slot_counts_and_stays(self, pair, unity):
        slots = generate_activity_slots(WEEK, [unity])
        slots[0].assigned_doctor_id = "Y"
        filled = fill_auto_activities(slots, [unity], pair, [])
        assert filled[0].assigned_doctor_id == "Y"
        assert filled[1].assigned_doctor_id == "X"

    def test_input_not_mutated(self, pair, unity):
        slots = generate_activity_slots(WEEK, [unity])
        fill_auto_activities(slots, [unity], pair, [])
        assert all(s.assigned_doctor_id is None for s in slots)


# ---------------------------------------------------------------------------
# Week / month
# ---------------------------------------------------------------------------

class TestResolveWeek:

    def test_deterministic(self, pair, astreinte, unity):
        first = _week(pair, [astreinte, unity])
        second = _week(pair, [astreinte, unity])
        assert first == second

    def test_no_autofill_returns_empty_activity_slots(self, pair, unity):
        slots = _week(pair, [unity], auto=False)
        assert len(slots) == 10
        assert all(s.assigned_doctor_id is None for s in slots)

    def test_template_slots_come_first(self, pair, unity):
        consult = TemplateSlot(
            id="t-cs", day=DayOfWeek.FRIDAY, period=Period.MORNING,
            location="Consultation", type=SlotType.CONSULTATION, doctor_ids=["X"],
        )
        slots = _week(pair, [unity], template=[consult])
        assert slots[0].id == "t-cs-2024-06-07"
        assert len(slots) == 11

    def test_zombie_safety(self, pair, unity):
        consult = TemplateSlot(
            id="t-cs", day=DayOfWeek.MONDAY, period=Period.MORNING,
            location="Consultation", type=SlotType.CONSULTATION,
            doctor_ids=["gone", "Y"], backup_doctor_id="gone",
        )
        slots = _week(pair, [unity], template=[consult])
        for s in slots:
            assert "gone" not in s.doctor_ids
            assert s.backup_doctor_id != "gone"

    def test_non_monday_rejected(self, pair):
        consult = TemplateSlot(
            id="t-cs", day=DayOfWeek.MONDAY, period=Period.MORNING,
            location="Consultation", type=SlotType.CONSULTATION,
        )
        with pytest.raises(ValueError):
            resolve_week("2024-06-04", [consult], [], pair, [], [])


class TestResolveMonth:

    def test_five_weeks(self, pair, unity):
        slots = resolve_month(date(2024, 5, 27), [], [], pair, [unity], [])
        assert len(slots) == 50
        assert slots[0].date == "2024-05-27"
        assert slots[-1].date == "2024-06-28"

    def test_grid_start(self):
        assert month_grid_start("2024-06-15") == date(2024, 5, 27)
        assert month_grid_start(date(2024, 7, 10)) == date(2024, 7, 1)


# ---------------------------------------------------------------------------
# Counters and metrics
# ---------------------------------------------------------------------------

class TestSeedCounts:

    def test_sum_of_history(self, pair):
        counts = seed_shift_counts(pair, {"X": {"a": 2, "b": 3}})
        assert counts == {"X": 5, "Y": 0}


class TestActivityStats:

    def test_shape_and_values(self, pair, unity):
        slots = _week(pair, [unity], auto=False)
        for s in slots[:3]:
            s.assigned_doctor_id = "X"
        slots[3].assigned_doctor_id = "Y"
        stats = calculate_activity_stats(slots, pair, "unity", {"Y": {"unity": 2}})
        assert stats["current"] == {"X": 3, "Y": 1}
        assert stats["history"] == {"X": 0, "Y": 2}
        assert stats["totals"] == {"X": 3, "Y": 3}
        assert stats["mean"] == 3.0
        assert stats["std"] == 0.0
        assert stats["cv"] == 0.0
        assert stats["unfilled"] == 6

    def test_uneven_load(self, pair, unity):
        slots = _week(pair, [unity], auto=False)
        for s in slots[:4]:
            s.assigned_doctor_id = "X"
        stats = calculate_activity_stats(slots, pair, "unity")
        assert stats["mean"] == 2.0
        assert stats["std"] == 2.0
        assert stats["cv"] == pytest.approx(100.0)
