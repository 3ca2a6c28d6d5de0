"""
Skin Consult API Contract v1.0
Canonical Pydantic Schemas for the Consult HTTP Layer

This module defines the stable contract between:
- Consult UI -> Reconciler (follow-ups, reconcile, acne flow, sensitivity)
- Consult UI -> Recommendation pipeline
- Consult UI -> Weekly scheduler

IMPORTANT: These schemas are versioned. Any breaking changes
require a version bump (e.g., "1.0" -> "2.0").

Usage:
    from app.consult.contracts import (
        ConsultForm,
        RecommendRequest,
        ScheduleRequest,
    )
"""

from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.reconcile.bands import parse_band


# =============================================================================
# CONTRACT VERSION
# =============================================================================
CONTRACT_VERSION = "1.0"


# =============================================================================
# SHARED VALIDATORS
# =============================================================================

def _check_bands(v: Optional[Dict[str, Any]]) -> Dict[str, str]:
    cleaned: Dict[str, str] = {}
    for key, value in (v or {}).items():
        if value is None or str(value).strip() == "":
            continue
        band = parse_band(value)
        if band is None:
            raise ValueError(f"Unknown band '{value}' for {key}; expected green, blue, yellow or red")
        cleaned[key] = band.value
    return cleaned


def _check_timezone(v: Optional[str]) -> Optional[str]:
    if v is None or not v.strip():
        return None
    try:
        ZoneInfo(v.strip())
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone '{v}'")
    return v.strip()


# =============================================================================
# CONSULTATION FORM
# =============================================================================

class ConsultForm(BaseModel):
    """
    Raw consultation form as captured by the consult UI.

    Yes/No questions stay strings ("Yes", "No", "NA") exactly as the form
    sends them; the pipeline interprets them.
    """
    contract_version: str = Field(default=CONTRACT_VERSION, description="Schema version")

    name: Optional[str] = Field(None, description="Customer display name")
    date_of_birth: Optional[str] = Field(None, description="YYYY-MM-DD")
    age: Optional[int] = Field(None, ge=0, le=120, description="Age in years, used when no date of birth")

    # Skin
    skin_type: Optional[str] = Field(None, description="Dry | Combo | Oily | Sensitive | Normal")
    hydration_levels: Optional[str] = Field(None, description="Hydration option label, carries its band word")
    oil_levels: Optional[str] = Field(None, description="Oil option label, carries its band word")
    sensitivity: Optional[str] = Field(None, description="Self-declared sensitive skin (Yes/No)")

    # Concerns
    main_concerns: List[str] = Field(default_factory=list, description="Declared concerns in pick order")
    concern_priority: List[str] = Field(default_factory=list, description="Concerns ranked by the customer")
    acne_categories: List[str] = Field(default_factory=list, description="Acne categories picked in the form")
    pigmentation_type: Optional[str] = Field(None, description="PIE / PIH / melasma description")
    texture_type: Optional[str] = Field(None, description="Aging / Bumpy description")
    scar_type: Optional[str] = Field(None, description="pie / pih / rolling / keloid / ice pick")

    # Safety
    pregnancy: Optional[str] = Field(None, description="Currently pregnant (Yes/No)")
    pregnancy_breastfeeding: Optional[str] = Field(None, description="Pregnant or breastfeeding answer")
    recent_isotretinoin: Optional[str] = Field(None, description="Isotretinoin in the last 6 months (Yes/No)")
    severe_cystic_acne: Optional[str] = Field(None, description="Severe cystic acne present (Yes/No)")
    barrier_stress_high: Optional[str] = Field(None, description="Severe barrier compromise (Yes/No)")
    allergies: Optional[Union[str, List[str]]] = Field(None, description="Free text or list of allergies")

    # Preferences
    serum_comfort: Optional[int] = Field(None, ge=1, le=3, description="How many serums the customer will use (1-3)")

    @field_validator("main_concerns", "concern_priority", "acne_categories", mode="before")
    @classmethod
    def normalize_lists(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [c.strip() for c in v.split(",") if c.strip()]
        return [str(c).strip() for c in v if c and str(c).strip()]

    @field_validator("serum_comfort", mode="before")
    @classmethod
    def parse_comfort(cls, v):
        if isinstance(v, str):
            digits = "".join(ch for ch in v if ch.isdigit())
            return int(digits[0]) if digits else None
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "contract_version": "1.0",
                "name": "Asha",
                "date_of_birth": "1996-04-12",
                "skin_type": "Oily",
                "hydration_levels": "Comfortable most of the day (Green)",
                "oil_levels": "Shiny by midday (Yellow)",
                "main_concerns": ["Acne", "Pigmentation"],
                "concern_priority": ["Acne", "Pigmentation"],
                "pigmentation_type": "PIH (brown marks)",
                "pregnancy": "No",
                "recent_isotretinoin": "No",
                "severe_cystic_acne": "No",
                "barrier_stress_high": "No",
                "allergies": "",
                "serum_comfort": 2,
            }
        }


# =============================================================================
# RECONCILER REQUESTS
# =============================================================================

class FollowUpRequest(BaseModel):
    """Machine scan bands plus self bands (or the form they derive from)."""
    machine: Dict[str, str] = Field(default_factory=dict, description="Machine scan bands by dimension")
    self_bands: Optional[Dict[str, str]] = Field(None, description="Self-reported bands; derived from form when omitted")
    form: Optional[ConsultForm] = Field(None, description="Consultation form")

    @field_validator("machine", "self_bands", mode="before")
    @classmethod
    def check_bands(cls, v):
        if v is None:
            return v
        return _check_bands(v)

    class Config:
        json_schema_extra = {
            "example": {
                "machine": {"acne": "red", "sebum": "yellow"},
                "self_bands": {"acne_claim": "green", "sebum": "yellow"},
            }
        }


class ReconcileRequest(FollowUpRequest):
    answers: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="Answers keyed by rule id, then question id")
    sensitivity: Optional[str] = Field(None, description="Sensitivity band to merge into effective bands")

    @field_validator("sensitivity")
    @classmethod
    def check_sensitivity(cls, v):
        if v is None:
            return v
        band = parse_band(v)
        if band is None:
            raise ValueError(f"Unknown sensitivity band '{v}'")
        return band.value

    class Config:
        json_schema_extra = {
            "example": {
                "machine": {"acne": "red"},
                "self_bands": {"acne_claim": "green"},
                "answers": {"acne_MAcne_CNone": {"q1": "1-2", "q2": "No", "q3": "Yes", "q4": "No"}},
                "sensitivity": "blue",
            }
        }


class AcneFlowRequest(BaseModel):
    subtype: str = Field(..., description="Comedonal | Inflammatory | Hormonal")
    answers: Dict[str, Any] = Field(default_factory=dict, description="Answers keyed by question id")
    pregnancy: Optional[str] = Field(None, description="Prefills the pregnancy question")
    pregnancy_breastfeeding: Optional[str] = Field(None, description="Prefills the pregnancy question")

    class Config:
        json_schema_extra = {
            "example": {
                "subtype": "Hormonal",
                "answers": {"Q1": "Yes", "Q2": "Yes", "Q3": "NA", "Q4": "1-5", "Q5": "No"},
            }
        }


class SensitivityRequest(BaseModel):
    answers: Dict[str, str] = Field(default_factory=dict, description="Yes/No answers keyed by question id")
    date_of_birth: Optional[str] = Field(None, description="Fills the under-20 question when unanswered")
    age: Optional[int] = Field(None, ge=0, le=120, description="Age in years")

    class Config:
        json_schema_extra = {
            "example": {
                "answers": {"redness": "Yes", "diagnosis": "Yes", "sun": "No"},
                "date_of_birth": "2001-09-30",
            }
        }


# =============================================================================
# PIPELINE REQUESTS
# =============================================================================

class AcneFlowInput(BaseModel):
    subtype: str = Field(..., description="Acne subtype battery that was answered")
    answers: Dict[str, Any] = Field(default_factory=dict)


class RecommendRequest(BaseModel):
    """
    Everything one consultation produced.

    The pipeline recomputes self bands, reconciliation, sensitivity and the
    acne flow from these inputs on every call.
    """
    contract_version: str = Field(default=CONTRACT_VERSION, description="Schema version")
    form: ConsultForm = Field(..., description="Consultation form")
    machine: Dict[str, str] = Field(default_factory=dict, description="Machine scan bands by dimension")
    answers: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="Follow-up answers by rule id")
    sensitivity_answers: Dict[str, str] = Field(default_factory=dict, description="Sensitivity battery answers")
    acne_flow: Optional[AcneFlowInput] = Field(None, description="Answered acne subtype battery")
    timezone: Optional[str] = Field(None, description="IANA zone for the today view")
    now: Optional[datetime] = Field(None, description="Consultation time; defaults to the server clock")

    @field_validator("machine", mode="before")
    @classmethod
    def check_machine(cls, v):
        return _check_bands(v)

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v):
        return _check_timezone(v)

    class Config:
        json_schema_extra = {
            "example": {
                "contract_version": "1.0",
                "form": {
                    "skin_type": "Oily",
                    "oil_levels": "Shiny by midday (Yellow)",
                    "main_concerns": ["Acne"],
                    "serum_comfort": 2,
                },
                "machine": {"acne": "yellow", "sebum": "yellow"},
                "answers": {},
                "sensitivity_answers": {"redness": "No"},
                "timezone": "Asia/Kolkata",
            }
        }


class ScheduleRequest(BaseModel):
    cleanser: str = Field(..., description="Cleanser display name")
    moisturizer: str = Field(..., description="Moisturizer display name")
    serums: List[str] = Field(default_factory=list, description="Serums, core first")
    sunscreen: Optional[str] = Field(None, description="Sunscreen; a generic SPF 50 is used when omitted")
    sensitivity_band: str = Field(default="green", description="Sets the irritation budget")
    serum_comfort: int = Field(default=2, ge=1, le=3, description="Distinct serums allowed in the week")
    pregnancy: bool = Field(default=False, description="Removes retinoids from the plan")
    timezone: Optional[str] = Field(None, description="IANA zone for the today view")
    now: Optional[datetime] = Field(None, description="Reference time for the today view")

    @field_validator("sensitivity_band")
    @classmethod
    def check_band(cls, v):
        band = parse_band(v)
        if band is None:
            raise ValueError(f"Unknown sensitivity band '{v}'")
        return band.value

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v):
        return _check_timezone(v)

    class Config:
        json_schema_extra = {
            "example": {
                "cleanser": "Gentle foaming cleanser",
                "moisturizer": "Gel-cream moisturizer",
                "serums": ["Benzoyl Peroxide 2.5%", "Azelaic acid 10%", "Niacinamide serum"],
                "sensitivity_band": "yellow",
                "serum_comfort": 2,
            }
        }
