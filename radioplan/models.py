"""
models.py — Scheduling state for RadioPlan

Input entities (Physician, TemplateSlot, Unavailability, ActivityDefinition,
RcpDefinition, RcpException) are frozen: the engine reads them and never
writes back. ScheduleSlot is the engine output and is rebuilt on every call.

Mapping-shaped inputs are plain dicts:
  ShiftHistory     doctor_id → {activity_id: historical count}
  RcpAttendance    generated slot id → {doctor_id: "PRESENT" | other}
  ManualOverrides  generated slot id → doctor_id | "__CLOSED__"
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from .schedule_config import (
    DayOfWeek,
    Frequency,
    Granularity,
    Period,
    SlotType,
    WeekParity,
)

ShiftHistory = Dict[str, Dict[str, int]]
RcpAttendance = Dict[str, Dict[str, str]]
ManualOverrides = Dict[str, str]


@dataclass(frozen=True)
class Physician:
    id: str
    name: str
    color: str = ""                     # presentation only
    specialties: List[str] = field(default_factory=list)
    excluded_days: Set[DayOfWeek] = field(default_factory=set)
    excluded_activities: Set[str] = field(default_factory=set)
    excluded_slot_types: Set[SlotType] = field(default_factory=set)


@dataclass(frozen=True)
class TemplateSlot:
    """
    One recurring entry of the weekly template.

    doctor_ids is the canonical ordered staffing list: the first id is the
    primary physician, the rest are secondaries. Older bundles carrying a
    single default doctor plus secondaries are folded into it by
    config.template_slot_from_dict. A legacy entry with secondaries but no
    default keeps a leading None: the primary seat stays vacant.
    """
    id: str
    day: DayOfWeek
    period: Period
    location: str
    type: SlotType
    time: Optional[str] = None
    sub_type: Optional[str] = None
    frequency: Frequency = Frequency.WEEKLY
    doctor_ids: List[Optional[str]] = field(default_factory=list)
    backup_doctor_id: Optional[str] = None
    is_blocking: Optional[bool] = None  # None → blocking
    is_required: bool = False


@dataclass(frozen=True)
class Unavailability:
    doctor_id: str
    start_date: str                     # YYYY-MM-DD, inclusive
    end_date: str                       # YYYY-MM-DD, inclusive
    reason: str = ""
    period: Optional[Period] = None     # None → whole day
    id: str = ""


@dataclass(frozen=True)
class ActivityDefinition:
    id: str
    name: str
    granularity: Granularity = Granularity.HALF_DAY
    allow_double_booking: bool = False
    color: str = ""


@dataclass(frozen=True)
class RcpDefinition:
    id: str
    name: str                           # binds to TemplateSlot.location
    frequency: Frequency = Frequency.WEEKLY
    week_parity: Optional[WeekParity] = None


@dataclass(frozen=True)
class RcpException:
    rcp_template_id: str
    original_date: str
    is_cancelled: bool = False
    new_date: Optional[str] = None
    new_period: Optional[Period] = None


@dataclass(frozen=True)
class Holiday:
    date: str
    name: str


@dataclass
class ScheduleSlot:
    id: str
    date: str
    day: DayOfWeek
    period: Period
    location: str
    type: SlotType
    time: Optional[str] = None
    sub_type: Optional[str] = None
    activity_id: Optional[str] = None
    assigned_doctor_id: Optional[str] = None
    secondary_doctor_ids: List[str] = field(default_factory=list)
    backup_doctor_id: Optional[str] = None
    is_generated: bool = True
    is_blocking: bool = True
    is_unconfirmed: bool = False
    is_locked: bool = False
    is_closed: bool = False

    @property
    def doctor_ids(self) -> List[str]:
        """Primary followed by secondaries, empty ids skipped."""
        ids = [self.assigned_doctor_id] + list(self.secondary_doctor_ids)
        return [d for d in ids if d]
