"""
repair.py — Replacement suggestions for a conflicted slot

When a physician cannot hold a slot, rank the available pool (see
eligibility.get_available_doctors) with a transparent additive score and
keep the best three. Hard exclusions (slot type, activity) are filtered out
before scoring. Weights live in schedule_config.REPLACEMENT_WEIGHTS.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .constraints import Conflict
from .eligibility import get_available_doctors
from .models import Physician, ScheduleSlot, Unavailability
from .schedule_config import (
    BUSY_LOAD_THRESHOLD,
    EQUITABLE_MAX_LOAD,
    MAX_SUGGESTIONS,
    REPLACEMENT_WEIGHTS,
)

logger = logging.getLogger(__name__)

REASON_SEPARATOR = " • "
REASON_AVAILABLE = "Available"


@dataclass
class ReplacementSuggestion:
    original_doctor_id: str
    suggested_doctor_id: str
    reasoning: str
    score: int


def is_hard_excluded(candidate: Physician, slot: ScheduleSlot) -> bool:
    """Candidate excluded from the slot's type or from its activity."""
    if slot.type in candidate.excluded_slot_types:
        return True
    if slot.activity_id and slot.activity_id in candidate.excluded_activities:
        return True
    return False


def count_other_assignments(
    candidate: Physician,
    slots: List[ScheduleSlot],
    exclude_slot_id: str,
) -> int:
    """Slots the candidate holds as primary, the conflicted one excluded."""
    return sum(
        1 for s in slots
        if s.assigned_doctor_id == candidate.id and s.id != exclude_slot_id
    )


def score_candidate(
    candidate: Physician,
    conflict_slot: ScheduleSlot,
    unavailable_doctor: Physician,
    slots: List[ScheduleSlot],
) -> ReplacementSuggestion:
    w = REPLACEMENT_WEIGHTS
    score = w["base"]
    reasons: List[str] = []

    shared = [s for s in candidate.specialties if s in unavailable_doctor.specialties]
    if shared:
        score += w["shared_specialty"]
        reasons.append(f"Same specialty ({', '.join(shared)})")

    load = count_other_assignments(candidate, slots, conflict_slot.id)
    if conflict_slot.activity_id and load <= EQUITABLE_MAX_LOAD:
        score += w["equitable_activity"]
        reasons.append("Equitable choice (recommended)")
    if load == 0:
        score += w["no_load"]
        reasons.append("No load this week")
    elif load > BUSY_LOAD_THRESHOLD:
        score -= load * w["busy_penalty_per_slot"]
        reasons.append("Busy schedule")

    location = conflict_slot.location.lower()
    relevant = next((s for s in candidate.specialties if s.lower() in location), None)
    if relevant:
        score += w["relevant_expertise"]
        reasons.append(f"Relevant expertise ({relevant})")

    return ReplacementSuggestion(
        original_doctor_id=unavailable_doctor.id,
        suggested_doctor_id=candidate.id,
        reasoning=REASON_SEPARATOR.join(reasons) if reasons else REASON_AVAILABLE,
        score=max(0, min(100, score)),
    )


def suggest_replacements(
    conflict_slot: ScheduleSlot,
    unavailable_doctor: Physician,
    available_doctors: List[Physician],
    slots: List[ScheduleSlot],
) -> List[ReplacementSuggestion]:
    """
    Score the available pool for conflict_slot and return the top three,
    best first; equal scores keep the pool order.
    """
    scored = [
        score_candidate(candidate, conflict_slot, unavailable_doctor, slots)
        for candidate in available_doctors
        if not is_hard_excluded(candidate, conflict_slot)
    ]
    ranked = sorted(scored, key=lambda s: s.score, reverse=True)[:MAX_SUGGESTIONS]
    logger.debug(
        f"{conflict_slot.id}: {len(scored)} candidates scored, "
        f"top={[(r.suggested_doctor_id, r.score) for r in ranked]}"
    )
    return ranked


def resolve_conflict(
    conflict: Conflict,
    slots: List[ScheduleSlot],
    doctors: List[Physician],
    unavailabilities: List[Unavailability],
) -> List[ReplacementSuggestion]:
    """
    Suggestions for one detected conflict: look up its slot and physician,
    gather who is free at that date/period, and rank them.
    """
    slot: Optional[ScheduleSlot] = next((s for s in slots if s.id == conflict.slot_id), None)
    doctor: Optional[Physician] = next((d for d in doctors if d.id == conflict.doctor_id), None)
    if slot is None or doctor is None:
        logger.warning(f"Conflict {conflict.id}: slot or doctor no longer exists")
        return []

    pool = get_available_doctors(
        doctors, slots, unavailabilities, slot.day, slot.period, slot.date
    )
    if not pool:
        logger.info(f"Conflict {conflict.id}: nobody available on {slot.date} {slot.period.value}")
        return []
    return suggest_replacements(slot, doctor, pool, slots)
