"""
Acne Subtype Flow v1.0

Fixed count/duration question batteries for the Comedonal, Inflammatory and
Hormonal acne subtypes, and the band each answer set implies.

Count answers are bucketed before thresholds apply:
- "6-15" -> midpoint 10 (rounded half up)
- ">15" -> 16, "<10" -> 9
- "few" 3, "handful" 5, "several" 8, "many" 18
- "None" / "NA" / blank -> 0

Answer problems are reported in the result (`error`) or by
validate_acne_flow_answers, never raised.

Usage:
    from app.reconcile.acne_flow import evaluate_acne_subtype_flow

    result = evaluate_acne_subtype_flow("Comedonal", {"Q1": "Yes", "Q2": ">20"})
    result.band  # Band.RED
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from app.reconcile.bands import Band
from app.reconcile.models import (
    ACNE_SUBTYPE_PREFIX,
    FLAG_MEDICAL_CONSULT,
    FLAG_PREGNANCY_FILTER,
    FLAG_REFER_DERM,
    Question,
    ReconcileContext,
    acne_category,
)


SUBTYPES = ("Comedonal", "Inflammatory", "Hormonal")

SITUATIONAL_CATEGORY = "Situational acne"

YES_NO = ("Yes", "No")
YES_NO_NA = ("Yes", "No", "NA")
LESION_OPTIONS = ("None", "1-5", "6-15", ">15")
COMEDONE_OPTIONS = ("None", "<10", "10-20", ">20")

NOT_HORMONAL_ERROR = (
    "Your answers don't match hormonal acne patterns. Please re-select your breakout type."
)

_RANGE = re.compile(r"(\d+)\s*(?:-|to)\s*(\d+)")
_NUMBER = re.compile(r"\d+")


# =============================================================================
# RESULT
# =============================================================================

@dataclass
class AcneFlowResult:
    subtype: str
    band: Optional[Band] = None
    flags: List[str] = field(default_factory=list)
    remarks: List[str] = field(default_factory=list)
    refer_derm: bool = False
    situational: bool = False
    pregnancy_safe: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subtype": self.subtype,
            "band": self.band.value if self.band else None,
            "flags": list(self.flags),
            "remarks": list(self.remarks),
            "refer_derm": self.refer_derm,
            "situational": self.situational,
            "pregnancy_safe": self.pregnancy_safe,
            "error": self.error,
        }


# =============================================================================
# ANSWER HELPERS
# =============================================================================

def _normalize(value: Any) -> str:
    return str(value if value is not None else "").strip().lower().replace("–", "-")


def count_bucket(value: Any) -> int:
    """Map a count answer to a representative lesion count."""
    text = _normalize(value)
    if not text or text == "na":
        return 0
    if "none" in text or text == "0" or "no pimples" in text:
        return 0

    ranged = _RANGE.search(text)
    if ranged:
        low, high = int(ranged.group(1)), int(ranged.group(2))
        return (low + high + 1) // 2

    number = _NUMBER.search(text)
    if number:
        count = int(number.group(0))
        if ">" in text or "+" in text:
            return count + 1
        if "<" in text:
            return max(count - 1, 0)
        return count

    if "few" in text or "couple" in text:
        return 3
    if "handful" in text:
        return 5
    if "several" in text or "moderate" in text:
        return 8
    if "many" in text or "numerous" in text:
        return 18
    return 0


def _yes(value: Any) -> bool:
    return _normalize(value) in ("yes", "y", "true")


def _pregnant(answers: Mapping[str, Any], ctx: ReconcileContext) -> bool:
    return _yes(ctx.pregnancy) or _yes(ctx.pregnancy_breastfeeding) or _yes(answers.get("Q5"))


def _pregnancy_prefill(ctx: ReconcileContext) -> Optional[str]:
    for value in (ctx.pregnancy, ctx.pregnancy_breastfeeding):
        if value and str(value).strip():
            return str(value)
    return None


# =============================================================================
# QUESTIONS
# =============================================================================

def build_acne_subtype_questions(
    subtype: str,
    ctx: Optional[ReconcileContext] = None,
) -> List[Question]:
    """Question battery for an acne subtype. Unknown subtypes get no questions."""
    ctx = ctx or ReconcileContext()
    prefill = _pregnancy_prefill(ctx)

    if subtype == "Comedonal":
        return [
            Question("Q1", "Do you notice tiny bumps, blackheads or whiteheads (nose, chin, forehead)?", YES_NO),
            Question("Q2", "Roughly how many clogged pores or comedones do you see right now?", COMEDONE_OPTIONS),
            Question("Q3", "Do you also have inflamed pimples right now?", LESION_OPTIONS),
        ]
    if subtype == "Inflammatory":
        return [
            Question("Q1", "How many inflamed (red, swollen, painful) pimples do you currently see?", LESION_OPTIONS),
            Question("Q2", "Do you have deep, painful lumps or nodules under the skin?", YES_NO),
            Question("Q3", "Do you have visible blackheads or whiteheads alongside these breakouts?", COMEDONE_OPTIONS),
            Question("Q4", "Do your breakouts flare with specific triggers (mask, sweat, stress, products)?", YES_NO),
            Question("Q5", "Are you currently pregnant or breastfeeding?", YES_NO_NA, prefill=prefill),
        ]
    if subtype == "Hormonal":
        return [
            Question("Q1", "Do you get breakouts monthly or around your period?", YES_NO),
            Question("Q2", "Are the breakouts mainly on the lower face or jawline?", YES_NO),
            Question("Q3", "Have birth control or your menstrual cycle changed your breakouts?", YES_NO_NA),
            Question("Q4", "How many inflamed lesions do you currently have?", LESION_OPTIONS),
            Question("Q5", "Are you currently pregnant or breastfeeding?", YES_NO_NA, prefill=prefill),
        ]
    return []


def validate_acne_flow_answers(subtype: str, answers: Mapping[str, Any]) -> List[str]:
    """List unknown question ids and answers outside each question's options."""
    questions = {q.id: q for q in build_acne_subtype_questions(subtype)}
    if not questions:
        return [f"Unknown acne subtype: {subtype}"]

    problems: List[str] = []
    for qid, value in answers.items():
        question = questions.get(qid)
        if question is None:
            problems.append(f"Unknown question id for {subtype}: {qid}")
            continue
        allowed = {_normalize(o) for o in question.options}
        if _normalize(value) not in allowed:
            problems.append(f"Invalid answer for {qid}: {value!r}")
    return problems


# =============================================================================
# EVALUATION
# =============================================================================

def _subtype_flags(subtype: str) -> List[str]:
    return [f"{ACNE_SUBTYPE_PREFIX}{subtype}", acne_category(subtype)]


def _lesion_band(lesions: int) -> Band:
    if lesions >= 6:
        return Band.RED
    if lesions >= 1:
        return Band.YELLOW
    return Band.BLUE


def _evaluate_comedonal(answers: Mapping[str, Any]) -> AcneFlowResult:
    noticed = _yes(answers.get("Q1"))
    comedones = count_bucket(answers.get("Q2"))
    inflamed_raw = answers.get("Q3") or ""

    if comedones > 20:
        band = Band.RED
    elif comedones >= 10:
        band = Band.YELLOW
    elif comedones >= 1:
        band = Band.BLUE
    else:
        band = Band.GREEN

    remarks = []
    if not noticed and comedones > 0:
        remarks.append("Machine detected congestion even though customer did not notice bumps.")
    if _normalize(inflamed_raw) not in ("", "none"):
        remarks.append(f"Comedonal acne with inflammatory component (reported inflamed lesions: {inflamed_raw}).")

    return AcneFlowResult(subtype="Comedonal", band=band, flags=_subtype_flags("Comedonal"), remarks=remarks)


def _evaluate_inflammatory(answers: Mapping[str, Any], ctx: ReconcileContext) -> AcneFlowResult:
    lesions = count_bucket(answers.get("Q1"))
    nodules = _yes(answers.get("Q2"))
    comedones = count_bucket(answers.get("Q3"))
    triggers = _yes(answers.get("Q4"))
    pregnant = _pregnant(answers, ctx)

    refer = lesions > 15 or nodules
    band = Band.RED if refer else _lesion_band(lesions)

    result = AcneFlowResult(
        subtype="Inflammatory",
        band=band,
        flags=_subtype_flags("Inflammatory"),
        refer_derm=refer,
        situational=triggers,
        pregnancy_safe=pregnant,
    )
    if refer:
        result.flags.append(FLAG_REFER_DERM)
        result.remarks.append("Severe inflammatory acne; dermatologist referral recommended.")

    if comedones > 20:
        result.remarks.append("Inflammatory acne with severe comedonal component.")
    elif comedones >= 10:
        result.remarks.append("Inflammatory acne with moderate comedonal component.")
    elif comedones >= 1:
        result.remarks.append("Inflammatory acne with mild comedonal component.")

    if triggers:
        result.flags.append(acne_category(SITUATIONAL_CATEGORY))
        result.remarks.append("Situational triggers identified; guide added.")
    if pregnant:
        result.flags.append(FLAG_PREGNANCY_FILTER)
        result.remarks.append("Pregnancy safety considerations active.")
    return result


def _evaluate_hormonal(answers: Mapping[str, Any], ctx: ReconcileContext) -> AcneFlowResult:
    monthly = _yes(answers.get("Q1"))
    if not monthly:
        return AcneFlowResult(subtype="Hormonal", error=NOT_HORMONAL_ERROR)

    jawline = _yes(answers.get("Q2"))
    cycle_change = _yes(answers.get("Q3"))
    lesions = count_bucket(answers.get("Q4"))
    pregnant = _pregnant(answers, ctx)

    refer = lesions > 15
    result = AcneFlowResult(
        subtype="Hormonal",
        band=Band.RED if refer else _lesion_band(lesions),
        flags=_subtype_flags("Hormonal"),
        refer_derm=refer,
        pregnancy_safe=pregnant,
    )
    if refer:
        result.remarks.append("Severe hormonal acne; dermatologist referral recommended.")

    if jawline:
        if not refer and 1 <= lesions <= 5:
            result.remarks.append("Hormonal timing with mild inflammatory lesions; medical consultation recommended.")
        elif not refer:
            result.remarks.append("Hormonal pattern confirmed; medical consultation recommended.")
    else:
        # monthly timing without the jawline pattern reads as inflammatory
        result.subtype = "Inflammatory"
        result.flags = _subtype_flags("Inflammatory") + [FLAG_MEDICAL_CONSULT]
        result.remarks.append("Responses align more with inflammatory acne than classic hormonal patterns.")

    if cycle_change and not any("hormonal" in r.lower() for r in result.remarks):
        result.remarks.append("Hormonal shifts noted; medical consultation recommended.")
    if pregnant:
        result.flags.append(FLAG_PREGNANCY_FILTER)
        result.remarks.append("Pregnancy safety considerations active.")
    if refer:
        result.flags.append(FLAG_REFER_DERM)
    return result


def evaluate_acne_subtype_flow(
    subtype: str,
    answers: Mapping[str, Any],
    ctx: Optional[ReconcileContext] = None,
) -> AcneFlowResult:
    """Evaluate one subtype battery. Unknown subtypes return an empty result."""
    ctx = ctx or ReconcileContext()
    if subtype == "Comedonal":
        return _evaluate_comedonal(answers)
    if subtype == "Inflammatory":
        return _evaluate_inflammatory(answers, ctx)
    if subtype == "Hormonal":
        return _evaluate_hormonal(answers, ctx)
    return AcneFlowResult(subtype=subtype)
