"""
Recommendation Models

Input context, the per-variant working draft and the frozen variant output.

RoutineState is mutable on purpose: one draft is built per variant, passed
through the augmentation and safety passes in order, then frozen into a
RoutineVariant and discarded.

Version: recommend_v1
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.catalog.models import ConcernKey, MatrixProduct
from app.reconcile.bands import Band, BandLike, parse_band
from app.reconcile.models import (
    ACNE_CATEGORY_PREFIX,
    ACNE_SUBTYPE_PREFIX,
    FLAG_PREGNANCY_FILTER,
    FLAG_REFER_DERM,
    SAFETY_NODULOCYSTIC,
)


def bands_from_mapping(raw: Optional[Mapping[str, BandLike]]) -> Dict[str, Band]:
    cleaned: Dict[str, Band] = {}
    for key, value in (raw or {}).items():
        band = parse_band(value)
        if band is not None:
            cleaned[key] = band
    return cleaned


class VariantType(str, Enum):
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    COMPREHENSIVE = "comprehensive"
    REFERRAL = "referral"
    BARRIER_FIRST = "barrier-first"


@dataclass
class DecisionFlags:
    """Recommender-relevant view of the reconcile and acne-flow flags."""
    acne_subtype: Optional[str] = None
    texture_subtype: Optional[str] = None
    refer_derm: bool = False
    situational: bool = False
    pregnancy_safe: bool = False

    @classmethod
    def from_flags(cls, flags: Iterable[str]) -> "DecisionFlags":
        result = cls()
        for flag in flags or []:
            if flag.startswith(ACNE_SUBTYPE_PREFIX):
                result.acne_subtype = flag[len(ACNE_SUBTYPE_PREFIX):]
            elif flag.startswith(ACNE_CATEGORY_PREFIX) and result.acne_subtype is None:
                result.acne_subtype = flag[len(ACNE_CATEGORY_PREFIX):]
            if flag == SAFETY_NODULOCYSTIC:
                result.acne_subtype = "Nodulocystic"
            if flag == FLAG_REFER_DERM:
                result.refer_derm = True
            if flag == FLAG_PREGNANCY_FILTER:
                result.pregnancy_safe = True
            if "situational" in flag.lower():
                result.situational = True
        return result


@dataclass
class RecommendationContext:
    """
    Everything generate_recommendations needs, already reconciled.

    Bands are the effective bands (including `sensitivity`); concerns are the
    customer's declared concern labels in the order they were picked.
    """
    effective_bands: Dict[str, Band] = field(default_factory=dict)
    skin_type: Optional[str] = None
    main_concerns: List[str] = field(default_factory=list)
    concern_priority: List[str] = field(default_factory=list)
    decision_flags: DecisionFlags = field(default_factory=DecisionFlags)
    acne_categories: List[str] = field(default_factory=list)
    pigmentation_type: Optional[str] = None
    texture_type: Optional[str] = None
    scar_type: Optional[str] = None
    pregnancy: bool = False
    recent_isotretinoin: bool = False
    allergies: List[str] = field(default_factory=list)
    serum_comfort: int = 3
    severe_cystic_acne: bool = False
    barrier_stress_high: bool = False
    sensitive_skin: bool = False
    timezone: Optional[str] = None
    now: Optional[Any] = None

    def __post_init__(self):
        self.effective_bands = bands_from_mapping(self.effective_bands)
        self.serum_comfort = max(1, min(3, int(self.serum_comfort or 1)))

    def band(self, dimension: str) -> Optional[Band]:
        return self.effective_bands.get(dimension)

    @property
    def sensitivity_band(self) -> Band:
        return self.effective_bands.get("sensitivity", Band.GREEN)


@dataclass
class ConcernSelection:
    concern: ConcernKey
    subtype: str
    band: Band
    priority: int
    source: str = "declared"

    @property
    def label(self) -> str:
        return CONCERN_LABELS[self.concern]

    def describe(self) -> str:
        return f"{self.label} ({self.band.value})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "concern": self.concern.value,
            "subtype": self.subtype,
            "band": self.band.value,
            "priority": self.priority,
            "source": self.source,
        }


CONCERN_LABELS = {
    ConcernKey.ACNE: "Acne",
    ConcernKey.PIGMENTATION: "Pigmentation",
    ConcernKey.PORES: "Pores",
    ConcernKey.TEXTURE: "Texture",
    ConcernKey.SEBUM: "Sebum",
    ConcernKey.ACNESCARS: "Acne scars",
}


@dataclass
class RoutineState:
    cleanser: MatrixProduct
    core_serum: MatrixProduct
    moisturizer: MatrixProduct
    sunscreen: MatrixProduct
    secondary_serums: List[MatrixProduct] = field(default_factory=list)

    def serums(self) -> List[MatrixProduct]:
        return [self.core_serum, *self.secondary_serums]

    def copy(self) -> "RoutineState":
        return RoutineState(
            cleanser=self.cleanser,
            core_serum=self.core_serum,
            moisturizer=self.moisturizer,
            sunscreen=self.sunscreen,
            secondary_serums=list(self.secondary_serums),
        )


@dataclass
class RoutineVariant:
    type: VariantType
    label: str
    description: str
    irritation_risk: str
    cleanser: str
    core_serum: str
    moisturizer: str
    sunscreen: str
    secondary_serum: Optional[str] = None
    tertiary_serum: Optional[str] = None
    additional_serums: List[str] = field(default_factory=list)
    serum_count: int = 0
    am: List[str] = field(default_factory=list)
    pm: List[str] = field(default_factory=list)
    schedule: Optional[Any] = None  # WeeklyPlan
    notes: List[str] = field(default_factory=list)
    primary_concern: Optional[str] = None
    concern_subtype: Optional[str] = None
    rationale: Optional[str] = None
    recommended: bool = False
    available: bool = True
    conflict_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "label": self.label,
            "description": self.description,
            "irritation_risk": self.irritation_risk,
            "recommended": self.recommended,
            "available": self.available,
            "conflict_reason": self.conflict_reason,
            "cleanser": self.cleanser,
            "core_serum": self.core_serum,
            "secondary_serum": self.secondary_serum,
            "tertiary_serum": self.tertiary_serum,
            "additional_serums": list(self.additional_serums),
            "serum_count": self.serum_count,
            "moisturizer": self.moisturizer,
            "sunscreen": self.sunscreen,
            "am": list(self.am),
            "pm": list(self.pm),
            "schedule": self.schedule.to_dict() if self.schedule is not None else None,
            "notes": list(self.notes),
            "primary_concern": self.primary_concern,
            "concern_subtype": self.concern_subtype,
            "rationale": self.rationale,
        }


@dataclass
class RecommendationResult:
    routines: List[RoutineVariant]
    selected_index: int = 0
    primary_concern: Optional[str] = None
    concerns: List[ConcernSelection] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    @property
    def selected(self) -> RoutineVariant:
        return self.routines[self.selected_index]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "routines": [r.to_dict() for r in self.routines],
            "selected_index": self.selected_index,
            "primary_concern": self.primary_concern,
            "concerns": [c.to_dict() for c in self.concerns],
            "notes": list(self.notes),
        }

