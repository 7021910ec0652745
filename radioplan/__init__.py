"""
RadioPlan Scheduling Engine

Modules:
- schedule_config: Enumerations, sentinels, holiday table, scoring weights
- models: Physician, TemplateSlot, ScheduleSlot and the other scheduling entities
- template: Weekly template → dated slots (parity, RCP exceptions, attendance)
- engine: Activity slot generation, equity auto-assignment, week/month resolution
- constraints: Conflict detection (absences, exclusions, double booking)
- repair: Replacement suggestions for a conflicted slot
- overrides: Manual override overlay
- config: JSON bundle, CSV loaders, roster maintenance
"""

from .config import (
    ConfigurationError,
    SchedulingConfig,
    config_from_dict,
    config_to_dict,
    load_config,
    save_config,
    load_roster,
    load_unavailabilities,
    remove_physician,
    remove_rcp_definition,
    rename_rcp_definition,
    upsert_rcp_exception,
    remove_rcp_exception,
)

from .engine import (
    resolve_week,
    resolve_month,
    generate_activity_slots,
    fill_auto_activities,
    calculate_activity_stats,
)

from .constraints import Conflict, ConflictDetector, detect_conflicts
from .repair import ReplacementSuggestion, suggest_replacements, resolve_conflict
from .overrides import apply_manual_overrides, set_override, set_weekly_override
from .eligibility import get_available_doctors

__all__ = [
    "ConfigurationError",
    "SchedulingConfig",
    "config_from_dict",
    "config_to_dict",
    "load_config",
    "save_config",
    "load_roster",
    "load_unavailabilities",
    "remove_physician",
    "remove_rcp_definition",
    "rename_rcp_definition",
    "upsert_rcp_exception",
    "remove_rcp_exception",
    "resolve_week",
    "resolve_month",
    "generate_activity_slots",
    "fill_auto_activities",
    "calculate_activity_stats",
    "Conflict",
    "ConflictDetector",
    "detect_conflicts",
    "ReplacementSuggestion",
    "suggest_replacements",
    "resolve_conflict",
    "apply_manual_overrides",
    "set_override",
    "set_weekly_override",
    "get_available_doctors",
]
