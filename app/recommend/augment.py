"""
Secondary-serum augmentation for one variant.

Candidates are tried in order: the primary concern's own secondary serum,
then each additional concern's secondary serum, with that concern's core
serum as the retry when its secondary is missing or rejected. A candidate
must clear the variant cap, the safety gates, the duplicate-family check
and pairwise compatibility against every serum already chosen.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from app.catalog.compatibility import evaluate_compatibility
from app.catalog.models import MatrixEntry, MatrixProduct, SkinTypeKey, Slot
from app.reconcile.bands import Band
from app.recommend.matrix import fetch_matrix_entry, resolve_placeholder
from app.recommend.models import CONCERN_LABELS, ConcernSelection, RoutineState, VariantType
from app.recommend.safety import SafetyGates, shares_family

logger = logging.getLogger(__name__)

VARIANT_CAPS: Dict[VariantType, int] = {
    VariantType.CONSERVATIVE: 1,
    VariantType.BALANCED: 2,
    VariantType.COMPREHENSIVE: 3,
}


@dataclass
class AugmentOutcome:
    available: bool = True
    conflict_reason: Optional[str] = None
    covered: List[str] = field(default_factory=list)


def serum_cap(variant_type: VariantType, serum_comfort: int) -> int:
    return min(VARIANT_CAPS.get(variant_type, 1), serum_comfort)


def _try_add(
    routine: RoutineState,
    raw: MatrixProduct,
    gates: SafetyGates,
    bands: Dict[str, Band],
    skin_type: SkinTypeKey,
    notes: List[str],
    source: str,
) -> Tuple[bool, Optional[str]]:
    """Append one candidate for `source`. Returns (added, compatibility rejection reason)."""
    candidate = resolve_placeholder(raw.in_slot(Slot.SECONDARY_SERUM), bands, skin_type)
    if candidate.is_referral:
        notes.append(f"Skipped {source} serum: referral placeholder.")
        return False, None

    gate = gates.blocked_by(candidate)
    if gate is not None:
        notes.append(f"Skipped {candidate.name} due to safety gate ({gate}).")
        return False, None

    duplicate = next((s for s in routine.serums() if shares_family(s, candidate)), None)
    if duplicate is not None:
        notes.append(f"Skipped {candidate.name}: same ingredient family as {duplicate.name}.")
        return False, None

    compat = evaluate_compatibility(routine.serums(), candidate)
    if not compat.allowed:
        notes.append(f"Skipped {candidate.name}: {compat.reason}.")
        return False, compat.reason

    routine.secondary_serums.append(candidate)
    for caution in compat.cautions:
        notes.append(f"Compatibility caution: {caution}.")
    return True, None


def augment_serums(
    routine: RoutineState,
    primary_entry: Optional[MatrixEntry],
    others: List[ConcernSelection],
    variant_type: VariantType,
    cap: int,
    gates: SafetyGates,
    bands: Dict[str, Band],
    skin_type: SkinTypeKey,
    notes: List[str],
) -> AugmentOutcome:
    """
    Grow routine.secondary_serums up to `cap` total serums.

    Only the comprehensive variant fails as a whole: when an additional
    concern's core serum is rejected for compatibility, the outcome is
    marked unavailable instead of silently dropping that concern.
    """
    outcome = AugmentOutcome()

    def has_room() -> bool:
        return 1 + len(routine.secondary_serums) < cap

    if primary_entry is not None and primary_entry.secondary_serum is not None and has_room():
        _try_add(
            routine, primary_entry.secondary_serum, gates, bands, skin_type, notes,
            CONCERN_LABELS[primary_entry.concern],
        )

    for index, concern in enumerate(others):
        if not has_room():
            if variant_type == VariantType.COMPREHENSIVE:
                left_out = ", ".join(c.label for c in others[index:])
                notes.append(f"Serum limit {cap} reached; not covered: {left_out}.")
            break
        entry = fetch_matrix_entry(concern, skin_type, notes)
        if entry is None:
            notes.append(f"Missing matrix entry for {concern.concern.value} {concern.subtype}; unable to add serum.")
            continue
        if entry.has_referral():
            notes.append(f"Skipped {concern.label}: matrix row requires dermatologist referral.")
            continue

        if entry.secondary_serum is not None:
            added, _ = _try_add(routine, entry.secondary_serum, gates, bands, skin_type, notes, concern.label)
        else:
            notes.append(f"No secondary serum defined for {concern.concern.value} {concern.subtype}.")
            added = False
        if added:
            outcome.covered.append(concern.label)
            continue

        added, reason = _try_add(routine, entry.core_serum, gates, bands, skin_type, notes, concern.label)
        if added:
            outcome.covered.append(concern.label)
            continue
        if reason is not None and variant_type == VariantType.COMPREHENSIVE:
            outcome.available = False
            outcome.conflict_reason = f"Cannot cover {concern.label}: {reason}."
            logger.info(f"Comprehensive variant unavailable: {outcome.conflict_reason}")
            break

    return outcome
