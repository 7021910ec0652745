"""
dry_run.py — Resolve one week (or a month grid) from a configuration bundle

Full orchestration:
  1. Load the configuration bundle
  2. Resolve template + activity slots (auto-fill unless --no-autofill)
  3. Overlay manual overrides
  4. Detect conflicts and rank replacements for HIGH ones
  5. Export CSV, Excel, conflict report
  6. Print summary to console (optional matplotlib load chart)

Nothing is written back to the bundle.

Usage:
  python -m radioplan.dry_run --week 2024-06-03
  python -m radioplan.dry_run --week 2024-06-05 --month --visual
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from .calendar_utils import is_holiday, monday_of, to_date
from .config import DEFAULT_BUNDLE_PATH, PROJECT_ROOT, ConfigurationError, load_config
from .constraints import detect_conflicts
from .engine import calculate_activity_stats, month_grid_start, resolve_month, resolve_week
from .exporter import export_conflict_report, export_to_csv, export_to_excel
from .models import Physician, ScheduleSlot
from .overrides import apply_manual_overrides
from .repair import resolve_conflict
from .schedule_config import ConflictSeverity, ConflictType

logger = logging.getLogger(__name__)

OUTPUTS_DIR = PROJECT_ROOT / "outputs"


# ---------------------------------------------------------------------------
# Visual analysis (matplotlib)
# ---------------------------------------------------------------------------

def _generate_visual_analysis(
    slots: List[ScheduleSlot],
    doctors: List[Physician],
    output_dir: Path,
    prefix: str,
) -> Optional[Path]:
    """Bar chart of slots held per doctor (primary or secondary) with the mean line."""
    try:
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
    except ImportError:
        logger.warning("matplotlib not installed, skipping load chart. Install with: pip install matplotlib")
        return None

    load = {d.id: 0 for d in doctors}
    for s in slots:
        for doc_id in s.doctor_ids:
            if doc_id in load:
                load[doc_id] += 1

    ordered = sorted(doctors, key=lambda d: load[d.id], reverse=True)
    labels = [d.name for d in ordered]
    values = [load[d.id] for d in ordered]
    mean_val = sum(values) / len(values) if values else 0.0
    colors = [d.color or "#4a90d9" for d in ordered]

    fig, ax = plt.subplots(figsize=(12, 5))
    ax.bar(range(len(labels)), values, color=colors, alpha=0.85, width=0.65)
    ax.axhline(mean_val, color="crimson", linewidth=1.8, linestyle="--", label=f"Mean: {mean_val:.1f}")
    for bar, val in zip(ax.patches, values):
        ax.text(bar.get_x() + bar.get_width() / 2, bar.get_height() + 0.2, str(val), ha="center", va="bottom", fontsize=8)
    ax.set_xticks(list(range(len(labels))))
    ax.set_xticklabels(labels, rotation=40, ha="right", fontsize=9)
    ax.set_ylabel("Half-day slots")
    ax.set_title(f"Load by Doctor ({prefix})", fontsize=13, fontweight="bold")
    ax.legend()
    ax.grid(axis="y", alpha=0.3)
    fig.tight_layout()

    out_path = Path(output_dir) / f"{prefix}_load.png"
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
    print(f"  ✓ Visual  → {out_path.name}")
    return out_path


# ---------------------------------------------------------------------------
# Main orchestrator
# ---------------------------------------------------------------------------

def run_dry_run(
    week: date,
    config_path: Optional[Path] = None,
    output_dir: Path = OUTPUTS_DIR,
    month: bool = False,
    auto_fill: bool = True,
    visual: bool = False,
) -> Dict[str, Any]:
    """
    Resolve, overlay, detect and export for the week containing `week`
    (or the five-week grid of its month).

    Returns:
        Dict with slots, conflicts, suggestions, activity stats, output paths
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    sep = "=" * 70

    start = month_grid_start(week) if month else monday_of(to_date(week))
    label = f"month grid from {start.isoformat()}" if month else f"week of {start.isoformat()}"
    prefix = f"{'month' if month else 'week'}_{start.isoformat()}"

    print(f"\n{sep}")
    print(f"  RADIOPLAN DRY RUN: {label}")
    print(f"{sep}\n")

    # ── 1. Load configuration ──────────────────────────────────────────────
    print("Step 1/5: Loading configuration...")
    config = load_config(config_path)
    print(
        f"  ✓ {len(config.doctors)} doctors | {len(config.template)} template slots | "
        f"{len(config.activities)} activities | {len(config.unavailabilities)} absences | "
        f"{len(config.manual_overrides)} overrides"
    )

    # ── 2. Resolve ─────────────────────────────────────────────────────────
    print("\nStep 2/5: Resolving slots...")
    common = dict(
        template=config.template,
        unavailabilities=config.unavailabilities,
        doctors=config.doctors,
        activities=config.activities,
        rcp_definitions=config.rcp_definitions,
        auto_fill_activities=auto_fill,
        shift_history=config.shift_history,
        rcp_attendance=config.rcp_attendance,
    )
    if month:
        slots = resolve_month(start, **common)
    else:
        slots = resolve_week(start, rcp_exceptions=config.rcp_exceptions, **common)
    unfilled = [s for s in slots if s.activity_id and not s.assigned_doctor_id]
    print(f"  ✓ {len(slots)} slots | {len(unfilled)} activity slots unfilled")

    holidays = sorted({(s.date, h.name) for s in slots for h in [is_holiday(s.date)] if h})
    for day_str, name in holidays:
        print(f"  ⚠ Public holiday: {day_str} ({name})")

    # ── 3. Overrides ───────────────────────────────────────────────────────
    print("\nStep 3/5: Applying manual overrides...")
    slots = apply_manual_overrides(slots, config.manual_overrides)
    locked = sum(1 for s in slots if s.is_locked)
    closed = sum(1 for s in slots if s.is_closed)
    print(f"  ✓ {locked} slots locked ({closed} closed)")

    # ── 4. Conflicts ───────────────────────────────────────────────────────
    print("\nStep 4/5: Detecting conflicts...")
    conflicts = detect_conflicts(slots, config.unavailabilities, config.doctors, config.activities)
    suggestions = {
        c.id: resolve_conflict(c, slots, config.doctors, config.unavailabilities)
        for c in conflicts
        if c.severity == ConflictSeverity.HIGH
    }
    by_type = {t: sum(1 for c in conflicts if c.type == t) for t in ConflictType}
    high = sum(1 for c in conflicts if c.severity == ConflictSeverity.HIGH)
    status = "✓" if high == 0 else "✗"
    print(f"  {status} {len(conflicts)} conflicts ({high} HIGH)")
    for conflict_type, n in by_type.items():
        print(f"    {conflict_type.value:<20} {n}")

    # ── 5. Export ──────────────────────────────────────────────────────────
    print("\nStep 5/5: Exporting outputs...")
    name_map = {d.id: d.name for d in config.doctors}
    csv_path = output_dir / f"{prefix}_schedule.csv"
    xlsx_path = output_dir / f"{prefix}_schedule.xlsx"
    report_path = output_dir / f"{prefix}_conflicts.txt"

    export_to_csv(slots, csv_path, name_map=name_map)
    export_to_excel(slots, xlsx_path, name_map=name_map)
    export_conflict_report(conflicts, report_path, suggestions=suggestions, name_map=name_map, week_label=label)

    print(f"  ✓ CSV:       {csv_path.name}")
    print(f"  ✓ Excel:     {xlsx_path.name}")
    print(f"  ✓ Conflicts: {report_path.name}")

    # ── Summary ────────────────────────────────────────────────────────────
    stats = {
        act.id: calculate_activity_stats(slots, config.doctors, act.id, config.shift_history)
        for act in config.activities
    }

    print(f"\n{sep}")
    print("  SUMMARY")
    print(f"{sep}")
    print(f"  Range:             {label}")
    print(f"  Slots:             {len(slots)}")
    print(f"  Unfilled:          {len(unfilled)}")
    print(f"  Conflicts:         {len(conflicts)}  {status}")

    if stats:
        print("\n  Activity equity (current + history):")
        for act in config.activities:
            st = stats[act.id]
            print(f"    {act.name:<24} mean={st['mean']:5.2f}  CV={st['cv']:6.2f}%  unfilled={st['unfilled']}")

    if suggestions:
        print("\n  Suggested replacements (HIGH conflicts):")
        for c in conflicts:
            ranked = suggestions.get(c.id)
            if not ranked:
                continue
            who = name_map.get(c.doctor_id, c.doctor_id)
            best = ", ".join(f"{name_map.get(r.suggested_doctor_id, r.suggested_doctor_id)} ({r.score})" for r in ranked)
            print(f"    {c.slot_id} [{who}]: {best}")

    chart_path = None
    if visual:
        chart_path = _generate_visual_analysis(slots, config.doctors, output_dir, prefix)

    print(f"\n{sep}\n")

    return {
        "slots": slots,
        "conflicts": conflicts,
        "suggestions": suggestions,
        "activity_stats": stats,
        "outputs": {
            "csv": csv_path,
            "excel": xlsx_path,
            "report": report_path,
            "chart": chart_path,
        },
    }


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    parser = argparse.ArgumentParser(
        description="Resolve a RadioPlan week from a configuration bundle (read-only)"
    )
    parser.add_argument("--week",        required=True, help="Any date of the week, YYYY-MM-DD")
    parser.add_argument("--config",      default=None,  help=f"Bundle path (default: {DEFAULT_BUNDLE_PATH})")
    parser.add_argument("--output-dir",  default=None,  help="Output directory (default: outputs/)")
    parser.add_argument("--month",       action="store_true", help="Resolve the five-week grid of the date's month")
    parser.add_argument("--no-autofill", action="store_true", help="Leave activity slots unassigned")
    parser.add_argument("--visual",      action="store_true", help="Generate a matplotlib load chart")
    args = parser.parse_args(argv)

    try:
        week = to_date(args.week)
    except ValueError as e:
        print(f"Invalid date format: {e}")
        sys.exit(1)

    out_dir = Path(args.output_dir) if args.output_dir else OUTPUTS_DIR
    try:
        run_dry_run(
            week,
            config_path=Path(args.config) if args.config else None,
            output_dir=out_dir,
            month=args.month,
            auto_fill=not args.no_autofill,
            visual=args.visual,
        )
    except (FileNotFoundError, ConfigurationError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
