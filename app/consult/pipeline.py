"""
Skin Consult Pipeline v1.0
==========================
One consultation, end to end: form + machine scan + answers -> routines.

This module handles:
1. Self bands derived from the form
2. Sensitivity battery -> sensitivity band
3. Band reconciliation (auto-fire rules plus answered follow-ups)
4. Optional acne subtype flow, merged worst-wins into the acne band
5. Concern routing (`route:acne` adds Acne when fewer than 3 concerns)
6. Recommendation context -> routine variants with weekly plans

SCOPE RULES:
- Everything is recomputed from the request on every call; nothing is stored
- Follow-ups still pending do not block a recommendation; they are reported
- No HTTP concerns here; see app.consult.router

Usage:
    from app.consult.pipeline import run_consult
    from app.consult.contracts import RecommendRequest

    outcome = run_consult(RecommendRequest(form={"skin_type": "Oily", "main_concerns": ["Acne"]},
                                           machine={"acne": "yellow"}))
    outcome.recommendation.selected.label  # "Balanced"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from app.consult.contracts import ConsultForm, RecommendRequest
from app.reconcile.acne_flow import AcneFlowResult, evaluate_acne_subtype_flow
from app.reconcile.bands import Band, worst_band
from app.reconcile.models import FLAG_ROUTE_ACNE, ReconcileContext, ReconcileResult
from app.reconcile.reconciler import decide_all_band_updates
from app.reconcile.self_report import derive_self_bands
from app.reconcile.sensitivity import SensitivityResult, score_sensitivity
from app.recommend.engine import generate_recommendations
from app.recommend.models import DecisionFlags, RecommendationContext, RecommendationResult

logger = logging.getLogger(__name__)

PIPELINE_VERSION = "1.0.0"

MAX_DECLARED_CONCERNS = 3
DEFAULT_SERUM_COMFORT = 3

ROUTED_CONCERNS = {
    FLAG_ROUTE_ACNE: "Acne",
}


# =============================================================================
# FORM HELPERS
# =============================================================================

def is_yes(value: Any) -> bool:
    return str(value or "").strip().lower() in ("yes", "y", "true")


def reconcile_context_for(form: Optional[ConsultForm]) -> ReconcileContext:
    if form is None:
        return ReconcileContext()
    return ReconcileContext(
        date_of_birth=form.date_of_birth,
        age=form.age,
        pregnancy=form.pregnancy,
        pregnancy_breastfeeding=form.pregnancy_breastfeeding,
    )


def self_bands_for(form: Optional[ConsultForm], explicit: Optional[Mapping[str, str]] = None) -> Dict[str, Band]:
    """Explicit self bands win; otherwise they are derived from the form."""
    if explicit:
        return {k: Band(v) for k, v in explicit.items()}
    if form is None:
        return {}
    return derive_self_bands(form.model_dump())


def route_concerns(concerns: List[str], flags: List[str]) -> List[str]:
    """Add concerns requested by `route:X` flags while fewer than 3 are declared."""
    routed = list(concerns)
    for flag, concern in ROUTED_CONCERNS.items():
        if not any(flag in f.lower() for f in flags):
            continue
        if concern.lower() in (c.lower() for c in routed):
            continue
        if len(routed) >= MAX_DECLARED_CONCERNS:
            logger.debug(f"Not routing to {concern}: {len(routed)} concerns already declared")
            continue
        routed.append(concern)
    return routed


# =============================================================================
# RESULT
# =============================================================================

@dataclass
class ConsultOutcome:
    self_bands: Dict[str, Band]
    reconcile: ReconcileResult
    sensitivity: SensitivityResult
    main_concerns: List[str]
    recommendation: RecommendationResult
    acne_flow: Optional[AcneFlowResult] = None
    flags: List[str] = field(default_factory=list)

    @property
    def effective_bands(self) -> Dict[str, Band]:
        return self.reconcile.effective_bands

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pipeline_version": PIPELINE_VERSION,
            "self_bands": {k: v.value for k, v in self.self_bands.items()},
            "effective_bands": {k: v.value for k, v in self.effective_bands.items()},
            "reconcile": self.reconcile.to_dict(),
            "sensitivity": self.sensitivity.to_dict(),
            "acne_flow": self.acne_flow.to_dict() if self.acne_flow else None,
            "main_concerns": list(self.main_concerns),
            "flags": list(self.flags),
            "recommendation": self.recommendation.to_dict(),
        }


# =============================================================================
# ENTRY POINT
# =============================================================================

def run_consult(request: RecommendRequest) -> ConsultOutcome:
    form = request.form
    ctx = reconcile_context_for(form)
    self_bands = self_bands_for(form)

    sensitivity = score_sensitivity(request.sensitivity_answers, ctx)
    reconcile = decide_all_band_updates(
        request.machine,
        self_bands,
        request.answers,
        ctx,
        sensitivity=sensitivity.band,
    )
    flags = list(reconcile.flags)
    for tag in reconcile.safety:
        if tag not in flags:
            flags.append(tag)

    acne_flow = None
    if request.acne_flow is not None:
        acne_flow = evaluate_acne_subtype_flow(request.acne_flow.subtype, request.acne_flow.answers, ctx)
        if acne_flow.error:
            reconcile.audit_log.append(f"[ACNE-FLOW] {acne_flow.subtype}: {acne_flow.error}")
        elif acne_flow.band is not None:
            previous = reconcile.effective_bands.get("acne")
            merged = worst_band(previous, acne_flow.band)
            reconcile.effective_bands["acne"] = merged
            reconcile.audit_log.append(
                f"[ACNE-FLOW] {acne_flow.subtype}: {acne_flow.band.value} "
                f"(acne {previous.value if previous else '-'} -> {merged.value})"
            )
        for flag in acne_flow.flags:
            if flag not in flags:
                flags.append(flag)

    concerns = route_concerns(form.main_concerns, flags)
    if concerns != form.main_concerns:
        reconcile.audit_log.append(f"[ROUTE] concerns -> {concerns}")

    pregnancy = ctx.is_pregnant() or bool(acne_flow and acne_flow.pregnancy_safe)
    sensitive_skin = is_yes(form.sensitivity) or "sensitive" in (form.skin_type or "").lower()

    recommendation = generate_recommendations(RecommendationContext(
        effective_bands=dict(reconcile.effective_bands),
        skin_type=form.skin_type,
        main_concerns=concerns,
        concern_priority=form.concern_priority,
        decision_flags=DecisionFlags.from_flags(flags),
        acne_categories=form.acne_categories,
        pigmentation_type=form.pigmentation_type,
        texture_type=form.texture_type,
        scar_type=form.scar_type,
        pregnancy=pregnancy,
        recent_isotretinoin=is_yes(form.recent_isotretinoin),
        allergies=form.allergies or [],
        serum_comfort=form.serum_comfort or DEFAULT_SERUM_COMFORT,
        severe_cystic_acne=is_yes(form.severe_cystic_acne),
        barrier_stress_high=is_yes(form.barrier_stress_high),
        sensitive_skin=sensitive_skin,
        timezone=request.timezone,
        now=request.now,
    ))

    logger.info(
        f"Consult complete: {len(reconcile.decisions)} rules fired, "
        f"{len(reconcile.pending)} pending, primary {recommendation.primary_concern}"
    )
    return ConsultOutcome(
        self_bands=self_bands,
        reconcile=reconcile,
        sensitivity=sensitivity,
        main_concerns=concerns,
        recommendation=recommendation,
        acne_flow=acne_flow,
        flags=flags,
    )
