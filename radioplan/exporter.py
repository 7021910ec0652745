"""
exporter.py — Export layer for RadioPlan weeks

Outputs:
  - CSV: flat (date, period, location, type, doctor, ...) for programmatic review
  - Excel (.xlsx): formatted (date, period) × location grid with doctor names
  - Conflict report (.txt): conflicts grouped by severity, with replacement
    suggestions when provided

Usage:
  from radioplan.exporter import export_to_csv, export_to_excel, export_conflict_report
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .constraints import Conflict
from .models import ScheduleSlot
from .repair import ReplacementSuggestion
from .schedule_config import PERIODS, ConflictSeverity

logger = logging.getLogger(__name__)

CSV_FIELDS = [
    "date", "day", "period", "location", "type", "sub_type",
    "doctor", "secondary", "backup", "locked", "closed", "unconfirmed", "slot_id",
]
CLOSED_LABEL = "CLOSED"
UNFILLED_LABEL = "-"


def _display(doctor_id: Optional[str], name_map: Dict[str, str]) -> str:
    if not doctor_id:
        return ""
    return name_map.get(doctor_id, doctor_id)


def _cell_label(slot: ScheduleSlot, name_map: Dict[str, str]) -> str:
    if slot.is_closed:
        return CLOSED_LABEL
    names = [_display(d, name_map) for d in slot.doctor_ids]
    if not names:
        return UNFILLED_LABEL
    label = " + ".join(names)
    return f"{label} ?" if slot.is_unconfirmed else label


# ---------------------------------------------------------------------------
# CSV Export
# ---------------------------------------------------------------------------

def export_to_csv(
    slots: List[ScheduleSlot],
    output_path: Path,
    name_map: Optional[Dict[str, str]] = None,
) -> None:
    """
    Export slots to flat CSV, one row per slot, sorted by date then period.

    Args:
        slots:       Resolved slots (overrides applied)
        output_path: .csv file path
        name_map:    doctor_id → display name (ids are written when absent)
    """
    import csv
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    names = name_map or {}
    period_rank = {p: i for i, p in enumerate(PERIODS)}

    ordered = sorted(slots, key=lambda s: (s.date, period_rank[s.period]))
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for s in ordered:
            writer.writerow({
                "date": s.date,
                "day": s.day.value,
                "period": s.period.value,
                "location": s.location,
                "type": s.type.value,
                "sub_type": s.sub_type or "",
                "doctor": _display(s.assigned_doctor_id, names),
                "secondary": ";".join(_display(d, names) for d in s.secondary_doctor_ids),
                "backup": _display(s.backup_doctor_id, names),
                "locked": "yes" if s.is_locked else "no",
                "closed": "yes" if s.is_closed else "no",
                "unconfirmed": "yes" if s.is_unconfirmed else "no",
                "slot_id": s.id,
            })

    logger.info(f"CSV exported → {output_path}")


# ---------------------------------------------------------------------------
# Excel Export
# ---------------------------------------------------------------------------

def export_to_excel(
    slots: List[ScheduleSlot],
    output_path: Path,
    name_map: Optional[Dict[str, str]] = None,
) -> None:
    """
    Export slots to a formatted Excel grid.

    Rows = (Date, Period), columns = location, cells = doctor name(s).
    Closed slots read CLOSED, empty ones '-', unconfirmed RCP picks get a '?'.
    """
    import pandas as pd

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    names = name_map or {}

    period_rank = {p: i for i, p in enumerate(PERIODS)}
    ordered = sorted(slots, key=lambda s: (s.date, period_rank[s.period]))
    rows = [
        {
            "Date": s.date,
            "Period": s.period.value,
            "Location": s.location,
            "Staff": _cell_label(s, names),
        }
        for s in ordered
    ]
    df = pd.DataFrame(rows)
    if df.empty:
        df.to_excel(output_path, index=False)
        logger.info(f"Excel exported (empty) → {output_path}")
        return

    # Several slots can share a location cell (e.g. two consultations)
    grid = df.pivot_table(
        index=["Date", "Period"],
        columns="Location",
        values="Staff",
        aggfunc=lambda x: "; ".join(x),
        sort=False,
    )
    location_order = list(dict.fromkeys(s.location for s in slots))
    grid = grid[[loc for loc in location_order if loc in grid.columns]]

    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        grid.to_excel(writer, sheet_name="Schedule")
        _format_excel_grid(writer, "Schedule", grid)

    logger.info(f"Excel exported → {output_path}")


STATUS_COLORS = {
    CLOSED_LABEL: "D9D9D9",     # grey
    UNFILLED_LABEL: "FCE4D6",   # light red
}


def _format_excel_grid(writer: Any, sheet_name: str, grid: Any) -> None:
    """
    Header styling, frozen (Date, Period) columns, alternate row shading.
    CLOSED and unfilled cells get their own fill.
    """
    try:
        from openpyxl.styles import Alignment, Font, PatternFill
        from openpyxl.utils import get_column_letter

        ws = writer.sheets[sheet_name]
        index_cols = grid.index.nlevels
        header_fill = PatternFill("solid", fgColor="1F4E79")
        header_font = Font(bold=True, color="FFFFFF")

        for cell in ws[1]:
            cell.fill = header_fill
            cell.font = header_font
            cell.alignment = Alignment(horizontal="center")
        ws.freeze_panes = ws.cell(row=2, column=index_cols + 1).coordinate

        alt = PatternFill("solid", fgColor="EBF3FB")
        status_fills = {label: PatternFill("solid", fgColor=rgb) for label, rgb in STATUS_COLORS.items()}
        for i, row in enumerate(ws.iter_rows(min_row=2), start=2):
            for cell in row:
                fill = status_fills.get(cell.value)
                if fill is not None:
                    cell.fill = fill
                    cell.alignment = Alignment(horizontal="center")
                elif i % 2 == 0:
                    cell.fill = alt

        for idx in range(1, ws.max_column + 1):
            letter = get_column_letter(idx)
            max_len = max((len(str(c.value)) for c in ws[letter] if c.value), default=8)
            ws.column_dimensions[letter].width = min(max_len + 2, 30)

    except Exception as e:
        logger.warning(f"Excel formatting failed (non-critical): {e}")


# ---------------------------------------------------------------------------
# Conflict Report
# ---------------------------------------------------------------------------

def export_conflict_report(
    conflicts: List[Conflict],
    output_path: Path,
    suggestions: Optional[Dict[str, List[ReplacementSuggestion]]] = None,
    name_map: Optional[Dict[str, str]] = None,
    week_label: str = "",
) -> str:
    """
    Write conflicts grouped by severity (HIGH first).

    Args:
        conflicts:   Output of constraints.detect_conflicts()
        output_path: .txt file path
        suggestions: conflict id → ranked replacements (optional)
        name_map:    doctor_id → display name
        week_label:  Header label (e.g. 'Week of 2024-06-03')

    Returns:
        The report text.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    suggestions = suggestions or {}
    names = name_map or {}
    sep = "=" * 70

    lines = [
        sep,
        f"  CONFLICT REPORT{(': ' + week_label) if week_label else ''}",
        sep,
        "",
        f"  Total conflicts: {len(conflicts)}",
    ]

    for severity in ConflictSeverity:
        group = [c for c in conflicts if c.severity == severity]
        lines += [
            "",
            "─" * 70,
            f"  {severity.value} ({len(group)})",
            "─" * 70,
        ]
        if not group:
            lines.append("  (none)")
            continue
        for c in group:
            lines.append(
                f"  {c.type.value:<20} {_display(c.doctor_id, names):<20} "
                f"{c.slot_id}  {c.description}"
            )
            for s in suggestions.get(c.id, []):
                lines.append(
                    f"      → {_display(s.suggested_doctor_id, names):<20} "
                    f"score={s.score:<4d} {s.reasoning}"
                )

    lines.append("")
    lines.append(sep)

    report_text = "\n".join(lines)
    with open(output_path, "w") as f:
        f.write(report_text)

    logger.info(f"Conflict report exported → {output_path}")
    return report_text
