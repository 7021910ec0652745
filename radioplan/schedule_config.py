"""
schedule_config.py — Enumerations, sentinels and static tables for RadioPlan

WEEK GRID
─────────
  Five working days (MONDAY..FRIDAY) × two periods (MORNING / AFTERNOON).
  Every generated activity slot lives on one cell of this grid; template
  slots name their own cell.

SLOT TYPES
──────────
  CONSULTATION  ordinary consultation duty (fixed staffing from the template)
  RCP           multidisciplinary review meeting (attendance confirmed per
                occurrence, deterministic fallback otherwise)
  ACTIVITY      rotating activity (on-call, unity, workflow...) filled by the
                auto-assigner

REPLACEMENT SCORING (repair.suggest_replacements)
─────────────────────────────────────────────────
  base 50
  +30 shared specialty with the absent physician
  +40 activity slot and ≤2 other assignments this week
  +15 no other assignment this week
  −5×n when n > 6 other assignments
  +20 specialty found in the slot location name
  clamp to [0, 100], keep the top 3
"""

from enum import Enum
from typing import Dict, List


class DayOfWeek(Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"


class Period(Enum):
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"


class SlotType(Enum):
    CONSULTATION = "CONSULTATION"
    RCP = "RCP"
    ACTIVITY = "ACTIVITY"


class Frequency(Enum):
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"


class WeekParity(Enum):
    ODD = "ODD"
    EVEN = "EVEN"


class Granularity(Enum):
    HALF_DAY = "HALF_DAY"
    WEEKLY = "WEEKLY"


class ConflictType(Enum):
    UNAVAILABLE = "UNAVAILABLE"
    COMPETENCE_MISMATCH = "COMPETENCE_MISMATCH"
    DOUBLE_BOOKING = "DOUBLE_BOOKING"


class ConflictSeverity(Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"


# Monday offset of each working day
WEEKDAY_OFFSETS: Dict[DayOfWeek, int] = {
    DayOfWeek.MONDAY: 0,
    DayOfWeek.TUESDAY: 1,
    DayOfWeek.WEDNESDAY: 2,
    DayOfWeek.THURSDAY: 3,
    DayOfWeek.FRIDAY: 4,
}

WEEK_DAYS: List[DayOfWeek] = list(DayOfWeek)
PERIODS: List[Period] = [Period.MORNING, Period.AFTERNOON]

# Unavailability granularity meaning "the whole day"
ALL_DAY = "ALL_DAY"

# RCP attendance decision that confirms a physician
ATTENDANCE_PRESENT = "PRESENT"

# Manual override value meaning "slot closed"
CLOSED_SENTINEL = "__CLOSED__"

# Number of consecutive weeks rendered by resolve_month
MONTH_GRID_WEEKS = 5


# ---------------------------------------------------------------------------
# Replacement scoring
# ---------------------------------------------------------------------------
REPLACEMENT_WEIGHTS: Dict[str, int] = {
    "base": 50,
    "shared_specialty": 30,
    "equitable_activity": 40,
    "no_load": 15,
    "busy_penalty_per_slot": 5,
    "relevant_expertise": 20,
}
EQUITABLE_MAX_LOAD = 2
BUSY_LOAD_THRESHOLD = 6
MAX_SUGGESTIONS = 3


# ---------------------------------------------------------------------------
# French public holidays (exact ISO date match)
# ---------------------------------------------------------------------------
FRENCH_HOLIDAYS: List[Dict[str, str]] = [
    {"date": "2024-01-01", "name": "Jour de l'An"},
    {"date": "2024-04-01", "name": "Lundi de Pâques"},
    {"date": "2024-05-01", "name": "Fête du Travail"},
    {"date": "2024-05-08", "name": "Victoire 1945"},
    {"date": "2024-05-09", "name": "Ascension"},
    {"date": "2024-05-20", "name": "Lundi de Pentecôte"},
    {"date": "2024-07-14", "name": "Fête Nationale"},
    {"date": "2024-08-15", "name": "Assomption"},
    {"date": "2024-11-01", "name": "Toussaint"},
    {"date": "2024-11-11", "name": "Armistice 1918"},
    {"date": "2024-12-25", "name": "Noël"},

    {"date": "2025-01-01", "name": "Jour de l'An"},
    {"date": "2025-04-21", "name": "Lundi de Pâques"},
    {"date": "2025-05-01", "name": "Fête du Travail"},
    {"date": "2025-05-08", "name": "Victoire 1945"},
    {"date": "2025-05-29", "name": "Ascension"},
    {"date": "2025-06-09", "name": "Lundi de Pentecôte"},
    {"date": "2025-07-14", "name": "Fête Nationale"},
    {"date": "2025-08-15", "name": "Assomption"},
    {"date": "2025-11-01", "name": "Toussaint"},
    {"date": "2025-11-11", "name": "Armistice 1918"},
    {"date": "2025-12-25", "name": "Noël"},

    {"date": "2026-01-01", "name": "Jour de l'An"},
    {"date": "2026-04-06", "name": "Lundi de Pâques"},
    {"date": "2026-05-01", "name": "Fête du Travail"},
    {"date": "2026-05-08", "name": "Victoire 1945"},
    {"date": "2026-05-14", "name": "Ascension"},
    {"date": "2026-05-25", "name": "Lundi de Pentecôte"},
    {"date": "2026-07-14", "name": "Fête Nationale"},
    {"date": "2026-08-15", "name": "Assomption"},
    {"date": "2026-11-01", "name": "Toussaint"},
    {"date": "2026-11-11", "name": "Armistice 1918"},
    {"date": "2026-12-25", "name": "Noël"},
]


def parse_enum(enum_cls, raw):
    """
    Map a raw string (or an existing member) onto an enum member.

    Raises ValueError for unknown values.
    """
    if isinstance(raw, enum_cls):
        return raw
    key = str(raw).strip().upper()
    try:
        return enum_cls(key)
    except ValueError:
        raise ValueError(f"Unknown {enum_cls.__name__} value: {raw!r}") from None
