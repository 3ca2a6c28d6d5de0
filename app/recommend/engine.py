"""
Skin Consult Recommendation Engine v1.0
=======================================
Reconciled bands + form context -> routine variants with weekly schedules.

This module handles:
1. Safety short-circuits (severe cystic acne -> referral, barrier stress -> barrier-first)
2. Concern ordering and the primary matrix lookup with fallbacks
3. Per-variant serum augmentation (conservative / balanced / comprehensive)
4. Post-assembly safety passes: pregnancy -> isotretinoin -> allergy
5. AM/PM lists and the weekly plan for every variant

SCOPE RULES:
- Never raises for a missing matrix combination; falls back to skin-type defaults
- Each variant is built from a fresh draft; drafts never leak across variants
- Balanced is the recommended variant whenever variants are produced

Usage:
    from app.recommend.engine import generate_recommendations
    from app.recommend.models import RecommendationContext

    result = generate_recommendations(RecommendationContext(
        effective_bands={"acne": "yellow", "sebum": "yellow"},
        skin_type="Oily",
        main_concerns=["Acne"],
    ))
    result.selected.core_serum  # "Benzoyl Peroxide 2.5%"
"""

from __future__ import annotations

import logging
from typing import List, Optional

from app.catalog.loader import get_loader
from app.catalog.models import ConcernKey, MatrixEntry, Slot
from app.reconcile.bands import Band
from app.recommend.augment import augment_serums, serum_cap
from app.recommend.concerns import (
    collect_concern_selections,
    derive_skin_type_key,
    select_primary_concern,
)
from app.recommend.matrix import (
    build_routine_from_entry,
    build_skin_type_fallback_routine,
    fetch_matrix_entry,
)
from app.recommend.models import (
    ConcernSelection,
    RecommendationContext,
    RecommendationResult,
    RoutineState,
    RoutineVariant,
    VariantType,
)
from app.recommend.safety import apply_safety_passes, build_safety_gates
from app.recommend.timing import build_am_pm
from app.schedule.models import ScheduleInput, ScheduleSerum, WeeklyPlan, explicit_timing
from app.schedule.scheduler import DEFAULT_TIMEZONE, build_weekly_plan

logger = logging.getLogger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

ENGINE_VERSION = "1.0.0"

VARIANT_ORDER = (VariantType.CONSERVATIVE, VariantType.BALANCED, VariantType.COMPREHENSIVE)
RECOMMENDED_VARIANT = VariantType.BALANCED

# label, description, irritation risk
VARIANT_PROFILES = {
    VariantType.CONSERVATIVE: (
        "Conservative",
        "Core serum only. The gentlest way to start.",
        "low",
    ),
    VariantType.BALANCED: (
        "Balanced",
        "Core serum plus one compatible secondary serum.",
        "medium",
    ),
    VariantType.COMPREHENSIVE: (
        "Comprehensive",
        "Up to three serums covering every declared concern that fits safely.",
        "high",
    ),
}

REFERRAL_SLOT = "-"
REFERRAL_SUNSCREEN = "- (DERMATOLOGIST REFERRAL REQUIRED)"
REFERRAL_NOTE = "Dermatologist referral required."
BARRIER_FIRST_NOTE = "Barrier-first override: severe barrier compromise."

BARRIER_FIRST_PRODUCTS = {
    Slot.CLEANSER: "Gentle foaming cleanser",
    Slot.CORE_SERUM: "Niacinamide serum",
    Slot.MOISTURIZER: "Barrier repair cream",
    Slot.SUNSCREEN: "Pure mineral sunscreen SPF 50",
}


# =============================================================================
# SHORT-CIRCUIT RESULTS
# =============================================================================

def build_referral_result(
    concerns: Optional[List[ConcernSelection]] = None,
    notes: Optional[List[str]] = None,
) -> RecommendationResult:
    variant = RoutineVariant(
        type=VariantType.REFERRAL,
        label="Dermatologist referral",
        description="A dermatologist needs to assess this skin before any routine is started.",
        irritation_risk="n/a",
        cleanser=REFERRAL_SLOT,
        core_serum=REFERRAL_SLOT,
        secondary_serum=REFERRAL_SLOT,
        moisturizer=REFERRAL_SLOT,
        sunscreen=REFERRAL_SUNSCREEN,
        serum_count=0,
        notes=[REFERRAL_NOTE],
        primary_concern="Safety",
        recommended=True,
        available=False,
        conflict_reason=REFERRAL_NOTE,
    )
    return RecommendationResult(
        routines=[variant],
        selected_index=0,
        primary_concern="Safety",
        concerns=list(concerns or []),
        notes=list(notes or []) + [REFERRAL_NOTE],
    )


def build_barrier_first_result(ctx: RecommendationContext) -> RecommendationResult:
    loader = get_loader()
    notes = [BARRIER_FIRST_NOTE]
    routine = RoutineState(**{
        slot.value: loader.make_product(name, slot) for slot, name in BARRIER_FIRST_PRODUCTS.items()
    })
    apply_safety_passes(routine, build_safety_gates(ctx), notes)
    primary = ConcernSelection(
        concern=ConcernKey.TEXTURE,
        subtype="Barrier",
        band=Band.YELLOW,
        priority=0,
        source="decision",
    )
    variant = _to_variant(
        routine,
        VariantType.BARRIER_FIRST,
        ("Barrier first", "Barrier repair only until the skin settles.", "low"),
        primary,
        [],
        ctx,
        notes,
    )
    variant.recommended = True
    return RecommendationResult(
        routines=[variant],
        selected_index=0,
        primary_concern=variant.primary_concern,
        concerns=[],
        notes=list(notes),
    )


# =============================================================================
# VARIANT ASSEMBLY
# =============================================================================

def build_schedule(routine: RoutineState, ctx: RecommendationContext) -> WeeklyPlan:
    serums = [
        ScheduleSerum(name=s.name, timing=explicit_timing(s.raw_name))
        for s in routine.serums()
    ]
    return build_weekly_plan(
        ScheduleInput(
            cleanser=routine.cleanser.name,
            moisturizer=routine.moisturizer.name,
            serums=serums,
            sunscreen=routine.sunscreen.name,
            sensitivity_band=ctx.sensitivity_band,
            serum_comfort=ctx.serum_comfort,
            pregnancy=ctx.pregnancy,
        ),
        timezone=ctx.timezone or DEFAULT_TIMEZONE,
        now=ctx.now,
    )


def _rationale(others: List[ConcernSelection]) -> Optional[str]:
    if not others:
        return None
    considered = ", ".join(f"{c.concern.value} ({c.band.value})" for c in others)
    return f"Also considered: {considered}."


def _to_variant(
    routine: RoutineState,
    variant_type: VariantType,
    profile,
    primary: ConcernSelection,
    others: List[ConcernSelection],
    ctx: RecommendationContext,
    notes: List[str],
) -> RoutineVariant:
    label, description, risk = profile
    am, pm = build_am_pm(routine)
    secondaries = routine.secondary_serums
    return RoutineVariant(
        type=variant_type,
        label=label,
        description=description,
        irritation_risk=risk,
        cleanser=routine.cleanser.name,
        core_serum=routine.core_serum.name,
        secondary_serum=secondaries[0].name if secondaries else None,
        tertiary_serum=secondaries[1].name if len(secondaries) > 1 else None,
        additional_serums=[s.name for s in secondaries[1:]],
        serum_count=1 + len(secondaries),
        moisturizer=routine.moisturizer.name,
        sunscreen=routine.sunscreen.name,
        am=am,
        pm=pm,
        schedule=build_schedule(routine, ctx),
        notes=notes,
        primary_concern=primary.describe(),
        concern_subtype=primary.subtype,
        rationale=_rationale(others),
    )


def _build_variant(
    variant_type: VariantType,
    base: RoutineState,
    entry: Optional[MatrixEntry],
    primary: ConcernSelection,
    others: List[ConcernSelection],
    ctx: RecommendationContext,
    shared_notes: List[str],
) -> RoutineVariant:
    notes = list(shared_notes)
    routine = base.copy()
    skin_type = derive_skin_type_key(ctx)
    gates = build_safety_gates(ctx)

    outcome = augment_serums(
        routine,
        entry,
        others,
        variant_type,
        serum_cap(variant_type, ctx.serum_comfort),
        gates,
        ctx.effective_bands,
        skin_type,
        notes,
    )
    apply_safety_passes(routine, gates, notes)

    variant = _to_variant(routine, variant_type, VARIANT_PROFILES[variant_type], primary, others, ctx, notes)
    variant.recommended = variant_type == RECOMMENDED_VARIANT
    if not outcome.available:
        variant.available = False
        variant.conflict_reason = outcome.conflict_reason
    return variant


# =============================================================================
# ENTRY POINT
# =============================================================================

def generate_recommendations(ctx: RecommendationContext) -> RecommendationResult:
    """
    Build the routine variants for one consultation.

    Returns a single referral or barrier-first variant when a safety gate
    fires; otherwise conservative, balanced and comprehensive variants with
    balanced selected.
    """
    if ctx.severe_cystic_acne:
        logger.info("Severe cystic acne gate fired; returning referral")
        return build_referral_result()
    if ctx.barrier_stress_high:
        logger.info("Barrier stress gate fired; returning barrier-first routine")
        return build_barrier_first_result(ctx)

    notes: List[str] = []
    concerns = collect_concern_selections(ctx)
    primary, others = select_primary_concern(concerns, notes)
    skin_type = derive_skin_type_key(ctx)

    entry: Optional[MatrixEntry] = None
    if primary is None:
        notes.append("No primary concern detected; defaulting to skin-type routine.")
        primary = ConcernSelection(
            concern=ConcernKey.TEXTURE,
            subtype="General",
            band=Band.BLUE,
            priority=999,
            source="decision",
        )
    else:
        entry = fetch_matrix_entry(primary, skin_type, notes)
        if entry is None:
            notes.append(f"Matrix entry missing for {primary.concern.value} {primary.subtype}.")
        elif entry.has_referral():
            notes.append("Matrix row indicates dermatologist referral.")
            return build_referral_result(concerns, notes)

    if entry is None:
        base = build_skin_type_fallback_routine(skin_type, notes)
    else:
        base = build_routine_from_entry(entry, ctx.effective_bands, skin_type)
        if entry.remarks:
            notes.append(f"Matrix remark: {entry.remarks}")
    if ctx.decision_flags.refer_derm:
        notes.append("Dermatologist review advised alongside this routine.")

    routines = [
        _build_variant(variant_type, base, entry, primary, others, ctx, notes)
        for variant_type in VARIANT_ORDER
    ]
    logger.debug(
        f"Generated {len(routines)} variants for {primary.describe()} "
        f"(skin type {skin_type.value}, {len(others)} other concerns)"
    )
    return RecommendationResult(
        routines=routines,
        selected_index=VARIANT_ORDER.index(RECOMMENDED_VARIANT),
        primary_concern=primary.describe(),
        concerns=concerns,
        notes=notes,
    )
