"""
config.py — Configuration bundle for RadioPlan

The whole scheduling state lives in one SchedulingConfig snapshot owned by
the host. This module moves it in and out of storage:

  - JSON bundle (camelCase wire format, same shape as the web app export)
  - roster / absence CSV files (pandas)
  - roster maintenance that returns a NEW snapshot (physician removal
    cascade, RCP definition removal / rename, RCP exception upsert)

Legacy template entries carry defaultDoctorId + secondaryDoctorIds instead
of the ordered doctorIds list; template_slot_from_dict folds them into the
canonical list so the engine only ever sees one representation. A missing
default survives the fold as a leading None (vacant primary seat).
"""

import dataclasses
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from .models import (
    ActivityDefinition,
    ManualOverrides,
    Physician,
    RcpAttendance,
    RcpDefinition,
    RcpException,
    ShiftHistory,
    TemplateSlot,
    Unavailability,
)
from .schedule_config import (
    ALL_DAY,
    DayOfWeek,
    Frequency,
    Granularity,
    Period,
    SlotType,
    WeekParity,
    parse_enum,
)

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_BUNDLE_PATH = DEFAULT_CONFIG_DIR / "radioplan_config.json"
DEFAULT_ROSTER_PATH = DEFAULT_CONFIG_DIR / "roster.csv"
DEFAULT_UNAVAILABILITY_PATH = DEFAULT_CONFIG_DIR / "unavailabilities.csv"


class ConfigurationError(ValueError):
    """Malformed configuration bundle or CSV file."""


@dataclass
class SchedulingConfig:
    doctors: List[Physician] = field(default_factory=list)
    template: List[TemplateSlot] = field(default_factory=list)
    rcp_definitions: List[RcpDefinition] = field(default_factory=list)
    postes: List[str] = field(default_factory=list)
    activities: List[ActivityDefinition] = field(default_factory=list)
    unavailabilities: List[Unavailability] = field(default_factory=list)
    shift_history: ShiftHistory = field(default_factory=dict)
    manual_overrides: ManualOverrides = field(default_factory=dict)
    rcp_attendance: RcpAttendance = field(default_factory=dict)
    rcp_exceptions: List[RcpException] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_yes_no(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("yes", "true", "1", "y", "oui")


def _parse_list(raw: Any) -> List[str]:
    """
    Split a list cell: "Onco;Cardio", "Onco,Cardio", "Onco|Cardio" or a real
    list. Empty / NaN → [].
    """
    if raw is None or isinstance(raw, float):
        return []
    if isinstance(raw, (list, tuple, set)):
        return [str(p).strip() for p in raw if str(p).strip()]
    s = str(raw).strip().strip('"').strip("'")
    if not s:
        return []
    parts = re.split(r"[;,|]", s)
    return [p.strip() for p in parts if p.strip()]


def _optional_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, float):
        return None
    s = str(value).strip()
    return s or None


def _require(data: Dict[str, Any], key: str, kind: str) -> Any:
    if key not in data or data[key] is None:
        raise ConfigurationError(f"{kind} entry missing required field '{key}': {data}")
    return data[key]


def _parse_period(raw: Any) -> Optional[Period]:
    """None / "" / ALL_DAY → None (whole day)."""
    if raw is None or (isinstance(raw, str) and raw.strip().upper() in ("", ALL_DAY)):
        return None
    return parse_enum(Period, raw)


def _collection(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    items = data.get(key) or []
    if not isinstance(items, list):
        raise ConfigurationError(f"'{key}' must be a list, got {type(items).__name__}")
    for item in items:
        if not isinstance(item, dict):
            raise ConfigurationError(f"'{key}' entries must be objects, got {item!r}")
    return items


def _mapping(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{key}' must be an object, got {type(value).__name__}")
    return value


def _inner_mapping(value: Any, where: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{where}' must be an object, got {type(value).__name__}")
    return value


def _parse_count(value: Any, where: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"'{where}' must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"'{where}' must be an integer, got {value!r}") from e


# ---------------------------------------------------------------------------
# Entity (de)serialisers
# ---------------------------------------------------------------------------

def physician_from_dict(data: Dict[str, Any]) -> Physician:
    try:
        return Physician(
            id=str(_require(data, "id", "doctor")),
            name=str(data.get("name") or data["id"]),
            color=str(data.get("color") or ""),
            specialties=_parse_list(data.get("specialty", data.get("specialties"))),
            excluded_days={parse_enum(DayOfWeek, d) for d in _parse_list(data.get("excludedDays"))},
            excluded_activities=set(_parse_list(data.get("excludedActivities"))),
            excluded_slot_types={
                parse_enum(SlotType, t) for t in _parse_list(data.get("excludedSlotTypes"))
            },
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid doctor {data.get('id')!r}: {e}") from e


def physician_to_dict(doc: Physician) -> Dict[str, Any]:
    return {
        "id": doc.id,
        "name": doc.name,
        "color": doc.color,
        "specialty": list(doc.specialties),
        "excludedDays": sorted(d.value for d in doc.excluded_days),
        "excludedActivities": sorted(doc.excluded_activities),
        "excludedSlotTypes": sorted(t.value for t in doc.excluded_slot_types),
    }


def template_slot_from_dict(data: Dict[str, Any]) -> TemplateSlot:
    """
    Canonical staffing list: doctorIds when present and non-empty, else the
    legacy defaultDoctorId followed by secondaryDoctorIds. Secondaries
    without a default keep the primary seat empty: [None, *secondaries].
    """
    doctor_ids: List[Optional[str]] = list(_parse_list(data.get("doctorIds")))
    if not doctor_ids:
        default_id = _optional_str(data.get("defaultDoctorId"))
        secondary = _parse_list(data.get("secondaryDoctorIds"))
        if default_id or secondary:
            doctor_ids = [default_id] + secondary

    try:
        return TemplateSlot(
            id=str(_require(data, "id", "template")),
            day=parse_enum(DayOfWeek, _require(data, "day", "template")),
            period=parse_enum(Period, _require(data, "period", "template")),
            location=str(data.get("location") or ""),
            type=parse_enum(SlotType, _require(data, "type", "template")),
            time=_optional_str(data.get("time")),
            sub_type=_optional_str(data.get("subType")),
            frequency=parse_enum(Frequency, data.get("frequency") or Frequency.WEEKLY),
            doctor_ids=doctor_ids,
            backup_doctor_id=_optional_str(data.get("backupDoctorId")),
            is_blocking=None if data.get("isBlocking") is None else _parse_yes_no(data["isBlocking"]),
            is_required=_parse_yes_no(data.get("isRequired", False)),
        )
    except ConfigurationError:
        raise
    except ValueError as e:
        raise ConfigurationError(f"Invalid template slot {data.get('id')!r}: {e}") from e


def template_slot_to_dict(t: TemplateSlot) -> Dict[str, Any]:
    # A vacant primary is only expressible through the legacy fields
    if t.doctor_ids and t.doctor_ids[0] is None:
        staffing = {
            "doctorIds": [],
            "defaultDoctorId": None,
            "secondaryDoctorIds": [d for d in t.doctor_ids[1:] if d],
        }
    else:
        staffing = {"doctorIds": list(t.doctor_ids)}
    return {
        "id": t.id,
        "day": t.day.value,
        "period": t.period.value,
        "time": t.time,
        "location": t.location,
        "type": t.type.value,
        "subType": t.sub_type,
        "frequency": t.frequency.value,
        **staffing,
        "backupDoctorId": t.backup_doctor_id,
        "isBlocking": t.is_blocking,
        "isRequired": t.is_required,
    }


def unavailability_from_dict(data: Dict[str, Any]) -> Unavailability:
    try:
        return Unavailability(
            id=str(data.get("id") or ""),
            doctor_id=str(_require(data, "doctorId", "unavailability")),
            start_date=str(_require(data, "startDate", "unavailability")),
            end_date=str(_require(data, "endDate", "unavailability")),
            reason=str(data.get("reason") or ""),
            period=_parse_period(data.get("period")),
        )
    except ConfigurationError:
        raise
    except ValueError as e:
        raise ConfigurationError(f"Invalid unavailability {data!r}: {e}") from e


def unavailability_to_dict(u: Unavailability) -> Dict[str, Any]:
    return {
        "id": u.id,
        "doctorId": u.doctor_id,
        "startDate": u.start_date,
        "endDate": u.end_date,
        "reason": u.reason,
        "period": u.period.value if u.period else ALL_DAY,
    }


def activity_from_dict(data: Dict[str, Any]) -> ActivityDefinition:
    try:
        return ActivityDefinition(
            id=str(_require(data, "id", "activity")),
            name=str(data.get("name") or data["id"]),
            granularity=parse_enum(Granularity, data.get("granularity") or Granularity.HALF_DAY),
            allow_double_booking=_parse_yes_no(data.get("allowDoubleBooking", False)),
            color=str(data.get("color") or ""),
        )
    except ConfigurationError:
        raise
    except ValueError as e:
        raise ConfigurationError(f"Invalid activity {data.get('id')!r}: {e}") from e


def activity_to_dict(a: ActivityDefinition) -> Dict[str, Any]:
    return {
        "id": a.id,
        "name": a.name,
        "granularity": a.granularity.value,
        "allowDoubleBooking": a.allow_double_booking,
        "color": a.color,
    }


def rcp_definition_from_dict(data: Dict[str, Any]) -> RcpDefinition:
    parity = data.get("weekParity")
    try:
        return RcpDefinition(
            id=str(_require(data, "id", "rcpType")),
            name=str(_require(data, "name", "rcpType")),
            frequency=parse_enum(Frequency, data.get("frequency") or Frequency.WEEKLY),
            week_parity=parse_enum(WeekParity, parity) if parity else None,
        )
    except ConfigurationError:
        raise
    except ValueError as e:
        raise ConfigurationError(f"Invalid RCP definition {data.get('id')!r}: {e}") from e


def rcp_definition_to_dict(r: RcpDefinition) -> Dict[str, Any]:
    return {
        "id": r.id,
        "name": r.name,
        "frequency": r.frequency.value,
        "weekParity": r.week_parity.value if r.week_parity else None,
    }


def rcp_exception_from_dict(data: Dict[str, Any]) -> RcpException:
    new_period = data.get("newPeriod")
    try:
        return RcpException(
            rcp_template_id=str(_require(data, "rcpTemplateId", "rcpException")),
            original_date=str(_require(data, "originalDate", "rcpException")),
            is_cancelled=_parse_yes_no(data.get("isCancelled", False)),
            new_date=_optional_str(data.get("newDate")),
            new_period=parse_enum(Period, new_period) if new_period else None,
        )
    except ConfigurationError:
        raise
    except ValueError as e:
        raise ConfigurationError(f"Invalid RCP exception {data!r}: {e}") from e


def rcp_exception_to_dict(ex: RcpException) -> Dict[str, Any]:
    return {
        "rcpTemplateId": ex.rcp_template_id,
        "originalDate": ex.original_date,
        "isCancelled": ex.is_cancelled,
        "newDate": ex.new_date,
        "newPeriod": ex.new_period.value if ex.new_period else None,
    }


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------

def config_from_dict(data: Dict[str, Any]) -> SchedulingConfig:
    """
    Build a snapshot from a decoded bundle. Missing collections default to
    empty; malformed ones raise ConfigurationError.
    """
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration bundle must be a JSON object, got {type(data).__name__}")

    shift_history: ShiftHistory = {}
    for doc_id, counts in _mapping(data, "shiftHistory").items():
        where = f"shiftHistory.{doc_id}"
        shift_history[str(doc_id)] = {
            str(act): _parse_count(n, f"{where}.{act}")
            for act, n in _inner_mapping(counts, where).items()
        }

    rcp_attendance: RcpAttendance = {}
    for slot_id, decisions in _mapping(data, "rcpAttendance").items():
        rcp_attendance[str(slot_id)] = {
            str(doc_id): str(decision)
            for doc_id, decision in _inner_mapping(decisions, f"rcpAttendance.{slot_id}").items()
        }

    return SchedulingConfig(
        doctors=[physician_from_dict(d) for d in _collection(data, "doctors")],
        template=[template_slot_from_dict(t) for t in _collection(data, "template")],
        rcp_definitions=[rcp_definition_from_dict(r) for r in _collection(data, "rcpTypes")],
        postes=[str(p) for p in (data.get("postes") or [])],
        activities=[activity_from_dict(a) for a in _collection(data, "activityDefinitions")],
        unavailabilities=[unavailability_from_dict(u) for u in _collection(data, "unavailabilities")],
        shift_history=shift_history,
        manual_overrides={str(k): str(v) for k, v in _mapping(data, "manualOverrides").items() if v},
        rcp_attendance=rcp_attendance,
        rcp_exceptions=[rcp_exception_from_dict(e) for e in _collection(data, "rcpExceptions")],
    )


def config_to_dict(config: SchedulingConfig) -> Dict[str, Any]:
    return {
        "doctors": [physician_to_dict(d) for d in config.doctors],
        "template": [template_slot_to_dict(t) for t in config.template],
        "rcpTypes": [rcp_definition_to_dict(r) for r in config.rcp_definitions],
        "postes": list(config.postes),
        "activityDefinitions": [activity_to_dict(a) for a in config.activities],
        "unavailabilities": [unavailability_to_dict(u) for u in config.unavailabilities],
        "shiftHistory": {k: dict(v) for k, v in config.shift_history.items()},
        "manualOverrides": dict(config.manual_overrides),
        "rcpAttendance": {k: dict(v) for k, v in config.rcp_attendance.items()},
        "rcpExceptions": [rcp_exception_to_dict(e) for e in config.rcp_exceptions],
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }


def load_config(config_path: Optional[Path] = None) -> SchedulingConfig:
    """Load a JSON configuration bundle."""
    path = Path(config_path) if config_path else DEFAULT_BUNDLE_PATH
    if not path.exists():
        raise FileNotFoundError(f"Configuration bundle not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e

    config = config_from_dict(data)
    logger.info(
        f"Loaded configuration from {path}: {len(config.doctors)} doctors, "
        f"{len(config.template)} template slots, {len(config.activities)} activities"
    )
    return config


def save_config(config: SchedulingConfig, config_path: Optional[Path] = None) -> Path:
    """Write the bundle as indented JSON; returns the path written."""
    path = Path(config_path) if config_path else DEFAULT_BUNDLE_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)
    logger.info(f"Configuration saved to {path}")
    return path


# ---------------------------------------------------------------------------
# CSV loaders
# ---------------------------------------------------------------------------

def load_roster(roster_path: Optional[Path] = None) -> List[Physician]:
    """
    Load the physician roster from CSV.

    Expected columns:
      id, name, color (optional), specialties,
      excluded_days, excluded_activities, excluded_slot_types (optional)

    List columns accept ';', ',' or '|' separators. Row order is kept: it
    breaks equity ties in the auto-assigner.
    """
    import pandas as pd

    path = Path(roster_path) if roster_path else DEFAULT_ROSTER_PATH
    if not path.exists():
        raise FileNotFoundError(f"Roster file not found: {path}")

    df = pd.read_csv(path, dtype=str)
    missing = {"id", "name"} - set(df.columns)
    if missing:
        raise ConfigurationError(f"Roster {path} missing columns: {sorted(missing)}")

    doctors: List[Physician] = []
    for _, row in df.iterrows():
        doc_id = _optional_str(row.get("id"))
        if not doc_id:
            raise ConfigurationError(f"Roster {path}: row without id: {row.to_dict()}")
        try:
            doctors.append(Physician(
                id=doc_id,
                name=_optional_str(row.get("name")) or doc_id,
                color=_optional_str(row.get("color")) or "",
                specialties=_parse_list(row.get("specialties")),
                excluded_days={parse_enum(DayOfWeek, d) for d in _parse_list(row.get("excluded_days"))},
                excluded_activities=set(_parse_list(row.get("excluded_activities"))),
                excluded_slot_types={
                    parse_enum(SlotType, t) for t in _parse_list(row.get("excluded_slot_types"))
                },
            ))
        except ValueError as e:
            raise ConfigurationError(f"Roster {path}: invalid row for {doc_id}: {e}") from e

    ids = [d.id for d in doctors]
    dupes = sorted({i for i in ids if ids.count(i) > 1})
    if dupes:
        raise ConfigurationError(f"Duplicate doctor ids in roster {path}: {dupes}")

    logger.info(f"Loaded {len(doctors)} doctors from {path}")
    return doctors


def load_unavailabilities(unavailability_path: Optional[Path] = None) -> List[Unavailability]:
    """
    Load absences from CSV: doctor_id, start_date, end_date, reason, period.

    period is MORNING, AFTERNOON, ALL_DAY or empty (whole day). A missing
    file is not an error: no absences.
    """
    import pandas as pd

    path = Path(unavailability_path) if unavailability_path else DEFAULT_UNAVAILABILITY_PATH
    if not path.exists():
        logger.warning(f"Unavailability file not found: {path}. Returning no absences.")
        return []

    df = pd.read_csv(path, dtype=str)
    records: List[Unavailability] = []
    for i, row in df.iterrows():
        try:
            records.append(Unavailability(
                id=_optional_str(row.get("id")) or f"u{i}",
                doctor_id=str(row["doctor_id"]).strip(),
                start_date=str(row["start_date"]).strip(),
                end_date=str(row["end_date"]).strip(),
                reason=_optional_str(row.get("reason")) or "",
                period=_parse_period(_optional_str(row.get("period"))),
            ))
        except (KeyError, ValueError) as e:
            raise ConfigurationError(f"Unavailability file {path}: invalid row {i}: {e}") from e

    logger.info(f"Loaded {len(records)} unavailabilities from {path}")
    return records


# ---------------------------------------------------------------------------
# Roster maintenance
# ---------------------------------------------------------------------------

def remove_physician(config: SchedulingConfig, doctor_id: str) -> SchedulingConfig:
    """
    Return a snapshot without doctor_id: dropped from the roster, the
    template staffing lists and backups, absences, overrides forcing them,
    RCP attendance decisions and shift history.
    """
    template = []
    for t in config.template:
        staffing = [d for d in t.doctor_ids if d != doctor_id]
        if staffing == [None]:
            staffing = []
        template.append(dataclasses.replace(
            t,
            doctor_ids=staffing,
            backup_doctor_id=None if t.backup_doctor_id == doctor_id else t.backup_doctor_id,
        ))
    attendance = {
        slot_id: {d: v for d, v in decisions.items() if d != doctor_id}
        for slot_id, decisions in config.rcp_attendance.items()
    }
    logger.info(f"Removing doctor {doctor_id} from configuration")
    return dataclasses.replace(
        config,
        doctors=[d for d in config.doctors if d.id != doctor_id],
        template=template,
        unavailabilities=[u for u in config.unavailabilities if u.doctor_id != doctor_id],
        manual_overrides={k: v for k, v in config.manual_overrides.items() if v != doctor_id},
        rcp_attendance=attendance,
        shift_history={k: dict(v) for k, v in config.shift_history.items() if k != doctor_id},
    )


def _belongs_to(slot_key: str, template_ids: Set[str]) -> bool:
    """True when a generated slot id ("<template id>-YYYY-MM-DD") comes from one of template_ids."""
    match = re.match(r"^(.*)-\d{4}-\d{2}-\d{2}$", slot_key)
    return bool(match) and match.group(1) in template_ids


def remove_rcp_definition(config: SchedulingConfig, rcp_id: str) -> SchedulingConfig:
    """
    Return a snapshot without the RCP definition rcp_id.

    Template entries bound to it (location or sub-type equal to its name) go
    too, along with everything keyed by their occurrences: manual overrides,
    attendance decisions and exceptions. Overrides whose key mentions the
    name are dropped as well.
    """
    target = next((r for r in config.rcp_definitions if r.id == rcp_id), None)
    if target is None:
        logger.warning(f"RCP definition {rcp_id} not found, configuration unchanged")
        return config

    name = target.name
    removed = {t.id for t in config.template if t.location == name or t.sub_type == name}
    logger.info(f"Removing RCP definition {name} and {len(removed)} template entries")
    return dataclasses.replace(
        config,
        rcp_definitions=[r for r in config.rcp_definitions if r.id != rcp_id],
        template=[t for t in config.template if t.id not in removed],
        manual_overrides={
            k: v for k, v in config.manual_overrides.items()
            if name not in k and not _belongs_to(k, removed)
        },
        rcp_attendance={
            k: dict(v) for k, v in config.rcp_attendance.items() if not _belongs_to(k, removed)
        },
        rcp_exceptions=[e for e in config.rcp_exceptions if e.rcp_template_id not in removed],
    )


def rename_rcp_definition(config: SchedulingConfig, old_name: str, new_name: str) -> SchedulingConfig:
    """
    Rename an RCP definition and rebind the template entries located at it.
    Slot ids key off template ids, so overrides and attendance stay valid.
    """
    new_name = new_name.strip()
    if not new_name:
        raise ConfigurationError("RCP definition name cannot be empty")
    if new_name != old_name and any(r.name == new_name for r in config.rcp_definitions):
        raise ConfigurationError(f"RCP definition named {new_name!r} already exists")

    logger.info(f"Renaming RCP definition {old_name} → {new_name}")
    return dataclasses.replace(
        config,
        rcp_definitions=[
            dataclasses.replace(r, name=new_name) if r.name == old_name else r
            for r in config.rcp_definitions
        ],
        template=[
            dataclasses.replace(t, location=new_name) if t.location == old_name else t
            for t in config.template
        ],
    )


def upsert_rcp_exception(config: SchedulingConfig, exception: RcpException) -> SchedulingConfig:
    """Add an exception, replacing any with the same (template id, original date)."""
    kept = [
        e for e in config.rcp_exceptions
        if not (e.rcp_template_id == exception.rcp_template_id
                and e.original_date == exception.original_date)
    ]
    return dataclasses.replace(config, rcp_exceptions=kept + [exception])


def remove_rcp_exception(
    config: SchedulingConfig,
    template_id: str,
    original_date: str,
) -> SchedulingConfig:
    kept = [
        e for e in config.rcp_exceptions
        if not (e.rcp_template_id == template_id and e.original_date == original_date)
    ]
    return dataclasses.replace(config, rcp_exceptions=kept)
