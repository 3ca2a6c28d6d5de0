"""
Skin Consult HTTP Layer

Purpose: request/response contracts, the end-to-end consult pipeline and the
FastAPI router that exposes it.

Version: consult_v1
"""

from .contracts import (
    CONTRACT_VERSION,
    AcneFlowRequest,
    ConsultForm,
    FollowUpRequest,
    RecommendRequest,
    ReconcileRequest,
    ScheduleRequest,
    SensitivityRequest,
)
from .pipeline import PIPELINE_VERSION, ConsultOutcome, run_consult

__all__ = [
    "CONTRACT_VERSION",
    "AcneFlowRequest",
    "ConsultForm",
    "FollowUpRequest",
    "RecommendRequest",
    "ReconcileRequest",
    "ScheduleRequest",
    "SensitivityRequest",
    "PIPELINE_VERSION",
    "ConsultOutcome",
    "run_consult",
]
