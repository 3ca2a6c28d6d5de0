"""
Skin Consult Band Reconciliation

Machine scan + self report -> follow-up questions -> effective bands.
"""

from app.reconcile.bands import Band, merge_bands, parse_band, worst_band
from app.reconcile.models import ReconcileContext, ReconcileResult
from app.reconcile.reconciler import (
    RECONCILER_VERSION,
    decide_all_band_updates,
    decide_band_updates,
    get_follow_up_questions,
)
from app.reconcile.self_report import derive_self_bands
from app.reconcile.acne_flow import (
    build_acne_subtype_questions,
    evaluate_acne_subtype_flow,
    validate_acne_flow_answers,
)
from app.reconcile.sensitivity import score_sensitivity

__all__ = [
    "Band",
    "merge_bands",
    "parse_band",
    "worst_band",
    "ReconcileContext",
    "ReconcileResult",
    "RECONCILER_VERSION",
    "decide_all_band_updates",
    "decide_band_updates",
    "get_follow_up_questions",
    "derive_self_bands",
    "build_acne_subtype_questions",
    "evaluate_acne_subtype_flow",
    "validate_acne_flow_answers",
    "score_sensitivity",
]
