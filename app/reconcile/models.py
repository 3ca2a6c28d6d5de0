"""
Skin Consult Reconciler Models

Rules are immutable data records held in a plain registry; nothing here
subclasses anything. Flags and safety tags stay plain strings because the
recommender and consult pipeline match them by substring.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Union

from app.reconcile.bands import Band


# ---------------------------------------------------------------------------
# Flag vocabulary
# ---------------------------------------------------------------------------

ACNE_CATEGORY_PREFIX = "acne-category:"
ACNE_SUBTYPE_PREFIX = "acne-subtype:"
ROUTE_PREFIX = "route:"

FLAG_REFER_DERM = "refer-derm"
FLAG_PREGNANCY_FILTER = "pregnancy-filter"
FLAG_MEDICAL_CONSULT = "medical-consult"
FLAG_ROUTE_ACNE = "route:acne"
FLAG_BARRIER_REPAIR = "barrier-repair"
FLAG_PRODUCT_FILM = "product-film"
FLAG_CLOGGED_PORES = "clogged-pores"
FLAG_SCALP_ANALYSIS = "suggest:scalp-analysis"
FLAG_SCAR_FOLLOWUP = "followup:scar-type"
FLAG_COLOR_PRESS = "educate:color-press-test"
FLAG_SHIFT_TO_MARKS = "shift-focus-to-PIH/PIE"
FLAG_OPTIMIZE_PRODUCTS = "optimize-products"
FLAG_MACHINE_TRUSTED = "machine-reading-trusted"
SAFETY_NODULOCYSTIC = "nodulocystic-suspect"


def acne_category(name: str) -> str:
    return f"{ACNE_CATEGORY_PREFIX}{name}"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

MACHINE_DIMENSIONS = (
    "moisture",
    "sebum",
    "texture",
    "pores",
    "acne",
    "pigmentation_brown",
    "pigmentation_red",
)

# Self-report key that feeds each effective dimension.
SELF_KEY_FOR_DIMENSION = {
    "moisture": "moisture",
    "sebum": "sebum",
    "texture": "texture",
    "pores": "pores",
    "acne": "acne_claim",
    "pigmentation_brown": "pigmentation_brown_claim",
    "pigmentation_red": "pigmentation_red_claim",
}

Answer = Union[str, List[str]]
Answers = Dict[str, Answer]


@dataclass
class ReconcileContext:
    """Context a rule may consult besides its own answers."""
    date_of_birth: Optional[str] = None  # YYYY-MM-DD
    age: Optional[int] = None
    pregnancy: Optional[str] = None
    pregnancy_breastfeeding: Optional[str] = None
    today: Optional[date] = None

    def resolved_age(self) -> Optional[int]:
        if self.age is not None:
            return self.age
        if not self.date_of_birth:
            return None
        try:
            born = datetime.strptime(self.date_of_birth.strip(), "%Y-%m-%d").date()
        except ValueError:
            return None
        today = self.today or date.today()
        years = today.year - born.year
        if (today.month, today.day) < (born.month, born.day):
            years -= 1
        return years

    def is_pregnant(self) -> bool:
        if str(self.pregnancy or "").strip().lower() == "yes":
            return True
        pb = str(self.pregnancy_breastfeeding or "").strip().lower()
        return pb == "yes" or "pregnan" in pb


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Question:
    id: str
    prompt: str
    options: tuple
    multi: bool = False
    prefill: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "prompt": self.prompt, "options": list(self.options), "multi": self.multi}
        if self.prefill:
            data["prefill"] = self.prefill
        return data


@dataclass
class Outcome:
    """Result of one rule decision."""
    scope: str
    verdict: str
    updated_band: Optional[Band] = None
    flags: List[str] = field(default_factory=list)
    safety: List[str] = field(default_factory=list)


Predicate = Callable[[Dict[str, Band], Dict[str, Band]], bool]
Decider = Callable[[Answers, ReconcileContext], Outcome]


@dataclass(frozen=True)
class Rule:
    id: str
    scope: str
    dimension: str
    applicable: Predicate
    decide: Decider
    questions: tuple = ()


@dataclass
class FollowUp:
    """Question set exposed to the consult UI for one applicable rule."""
    rule_id: str
    scope: str
    dimension: str
    questions: List[Question]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "scope": self.scope,
            "dimension": self.dimension,
            "questions": [q.to_dict() for q in self.questions],
        }


@dataclass
class Decision:
    """Decision log entry for one fired rule."""
    rule_id: str
    scope: str
    dimension: str
    verdict: str
    updated_band: Optional[Band]
    flags: List[str]
    safety: List[str]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["updated_band"] = self.updated_band.value if self.updated_band else None
        return data


@dataclass
class ReconcileResult:
    effective_bands: Dict[str, Band]
    decisions: List[Decision]
    flags: List[str]
    safety: List[str]
    pending: List[str]
    audit_log: List[str]

    def band(self, dimension: str) -> Optional[Band]:
        return self.effective_bands.get(dimension)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "effective_bands": {k: v.value for k, v in self.effective_bands.items()},
            "decisions": [d.to_dict() for d in self.decisions],
            "flags": list(self.flags),
            "safety": list(self.safety),
            "pending": list(self.pending),
            "audit_log": list(self.audit_log),
        }
