"""
Skin Consult Endpoints
Thin HTTP wrappers over the reconciler, the recommendation pipeline and the
weekly scheduler. All computation lives in the pure modules; handlers only
translate errors into HTTPException details.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from app.catalog.loader import CATALOG_VERSION, get_loader, to_concern_key
from app.catalog.models import ConfigurationError
from app.consult.contracts import (
    CONTRACT_VERSION,
    AcneFlowRequest,
    FollowUpRequest,
    RecommendRequest,
    ReconcileRequest,
    ScheduleRequest,
    SensitivityRequest,
)
from app.consult.pipeline import PIPELINE_VERSION, reconcile_context_for, run_consult, self_bands_for
from app.reconcile.acne_flow import (
    build_acne_subtype_questions,
    evaluate_acne_subtype_flow,
    validate_acne_flow_answers,
)
from app.reconcile.models import ReconcileContext
from app.reconcile.reconciler import RECONCILER_VERSION, decide_all_band_updates, get_follow_up_questions
from app.reconcile.sensitivity import score_sensitivity
from app.recommend.engine import ENGINE_VERSION
from app.schedule.models import ScheduleInput, ScheduleSerum
from app.schedule.scheduler import DEFAULT_TIMEZONE, SCHEDULER_VERSION, build_weekly_plan
from app.shared.hashing import canonicalize_and_hash

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/consult", tags=["consult"])


def _catalog_error(e: ConfigurationError) -> HTTPException:
    return HTTPException(
        status_code=500,
        detail={
            "error": e.code,
            "message": e.message,
            "action": "Check the catalog data files and reload the service",
        },
    )


@router.get("/health")
def consult_health() -> Dict[str, Any]:
    """Service health plus component versions. Loads the catalog if needed."""
    try:
        loader = get_loader()
    except ConfigurationError as e:
        raise _catalog_error(e)
    return {
        "status": "ok",
        "versions": {
            "contract": CONTRACT_VERSION,
            "reconciler": RECONCILER_VERSION,
            "catalog": CATALOG_VERSION,
            "registry": loader.registry_version,
            "engine": ENGINE_VERSION,
            "scheduler": SCHEDULER_VERSION,
            "pipeline": PIPELINE_VERSION,
        },
        "product_count": len(loader.products),
    }


@router.post("/follow-ups")
def consult_follow_ups(request: FollowUpRequest) -> Dict[str, Any]:
    """Every reconcile rule that applies to this machine/self combination."""
    self_bands = self_bands_for(request.form, request.self_bands)
    follow_ups = get_follow_up_questions(request.machine, self_bands)
    return {
        "self_bands": {k: v.value for k, v in self_bands.items()},
        "follow_ups": [f.to_dict() for f in follow_ups],
        "count": len(follow_ups),
    }


@router.post("/reconcile")
def consult_reconcile(request: ReconcileRequest) -> Dict[str, Any]:
    """Effective bands, decision log and pending rules."""
    self_bands = self_bands_for(request.form, request.self_bands)
    result = decide_all_band_updates(
        request.machine,
        self_bands,
        request.answers,
        reconcile_context_for(request.form),
        sensitivity=request.sensitivity,
    )
    return {"version": RECONCILER_VERSION, **result.to_dict()}


@router.post("/acne-flow/questions")
def acne_flow_questions(request: AcneFlowRequest) -> Dict[str, Any]:
    """
    Question battery for one acne subtype.

    Raises:
        404: Unknown subtype
    """
    ctx = ReconcileContext(pregnancy=request.pregnancy, pregnancy_breastfeeding=request.pregnancy_breastfeeding)
    questions = build_acne_subtype_questions(request.subtype, ctx)
    if not questions:
        raise HTTPException(
            status_code=404,
            detail={"error": "UNKNOWN_ACNE_SUBTYPE", "message": f"No question battery for '{request.subtype}'"},
        )
    return {"subtype": request.subtype, "questions": [q.to_dict() for q in questions]}


@router.post("/acne-flow/evaluate")
def acne_flow_evaluate(request: AcneFlowRequest) -> Dict[str, Any]:
    """
    Evaluate an answered acne battery. Invalid answers are listed, not rejected.

    Raises:
        404: Unknown subtype
    """
    if not build_acne_subtype_questions(request.subtype):
        raise HTTPException(
            status_code=404,
            detail={"error": "UNKNOWN_ACNE_SUBTYPE", "message": f"No question battery for '{request.subtype}'"},
        )
    ctx = ReconcileContext(pregnancy=request.pregnancy, pregnancy_breastfeeding=request.pregnancy_breastfeeding)
    result = evaluate_acne_subtype_flow(request.subtype, request.answers, ctx)
    return {
        **result.to_dict(),
        "validation": validate_acne_flow_answers(request.subtype, request.answers),
    }


@router.post("/sensitivity")
def consult_sensitivity(request: SensitivityRequest) -> Dict[str, Any]:
    ctx = ReconcileContext(date_of_birth=request.date_of_birth, age=request.age)
    return score_sensitivity(request.answers, ctx).to_dict()


@router.post("/recommend")
def consult_recommend(request: RecommendRequest) -> Dict[str, Any]:
    """
    Full pipeline: self bands, sensitivity, reconcile, acne flow, routines.

    Raises:
        500: Catalog integrity failure (CATALOG_CONFIGURATION_ERROR)
    """
    input_hash = canonicalize_and_hash(request.model_dump(mode="json"))
    try:
        outcome = run_consult(request)
    except ConfigurationError as e:
        logger.error(f"Recommend failed for {input_hash}: {e.message}")
        raise _catalog_error(e)
    return {
        "contract_version": CONTRACT_VERSION,
        "input_hash": input_hash,
        **outcome.to_dict(),
    }


@router.post("/schedule")
def consult_schedule(request: ScheduleRequest) -> Dict[str, Any]:
    """Weekly plan for an explicit product set."""
    plan = build_weekly_plan(
        ScheduleInput(
            cleanser=request.cleanser,
            moisturizer=request.moisturizer,
            serums=[ScheduleSerum.from_name(name) for name in request.serums],
            sunscreen=request.sunscreen,
            sensitivity_band=request.sensitivity_band,
            serum_comfort=request.serum_comfort,
            pregnancy=request.pregnancy,
        ),
        timezone=request.timezone or DEFAULT_TIMEZONE,
        now=request.now,
    )
    return {"version": SCHEDULER_VERSION, **plan.to_dict()}


@router.get("/catalog/{concern}/subtypes")
def catalog_subtypes(concern: str) -> Dict[str, Any]:
    """
    Subtypes listed in the concern matrix.

    Raises:
        404: Unknown concern
        500: Catalog integrity failure
    """
    try:
        key = to_concern_key(concern)
    except ConfigurationError:
        raise HTTPException(
            status_code=404,
            detail={"error": "UNKNOWN_CONCERN", "message": f"Unknown concern '{concern}'"},
        )
    try:
        subtypes = get_loader().list_subtypes(key)
    except ConfigurationError as e:
        raise _catalog_error(e)
    return {"concern": key.value, "subtypes": subtypes, "count": len(subtypes)}
