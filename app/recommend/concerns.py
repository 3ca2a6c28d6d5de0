"""
Concern selection: declared labels -> ordered ConcernSelection list.

Acne scars are recognised before acne so "Acne scars" never lands on the
acne rows. Ordering is band severity first, then the customer's own
priority list, then the static concern order.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from app.catalog.models import ConcernKey, SkinTypeKey
from app.reconcile.bands import BAND_PRIORITY, Band, is_elevated
from app.recommend.models import ConcernSelection, RecommendationContext

logger = logging.getLogger(__name__)

STATIC_CONCERN_ORDER = {
    ConcernKey.ACNE: 1,
    ConcernKey.SEBUM: 2,
    ConcernKey.PIGMENTATION: 3,
    ConcernKey.TEXTURE: 4,
    ConcernKey.PORES: 5,
    ConcernKey.ACNESCARS: 6,
}

DEFAULT_SUBTYPE = "General"

CATEGORY_PRECEDENCE = ("Nodulocystic", "Hormonal", "Comedonal", "Situational")

ACNE_PRIORITY_NOTE = "Acne priority override applied."


def normalize_concern_label(label: Optional[str]) -> Optional[ConcernKey]:
    lower = (label or "").lower()
    if "scar" in lower:
        return ConcernKey.ACNESCARS
    if "acne" in lower or "breakout" in lower:
        return ConcernKey.ACNE
    if "sebum" in lower or "oil" in lower:
        return ConcernKey.SEBUM
    if "pigment" in lower:
        return ConcernKey.PIGMENTATION
    if any(term in lower for term in ("texture", "fine lines", "wrinkle", "bumpy")):
        return ConcernKey.TEXTURE
    if "pore" in lower:
        return ConcernKey.PORES
    return None


# ---------------------------------------------------------------------------
# Subtypes
# ---------------------------------------------------------------------------

def _acne_subtype_from(text: str) -> Optional[str]:
    lower = text.lower()
    if "nodul" in lower or "cystic" in lower:
        return "Nodulocystic"
    if "hormonal" in lower:
        return "Hormonal"
    if "comed" in lower:
        return "Comedonal"
    if "situ" in lower:
        return "Situational"
    if "preg" in lower:
        return "Pregnancy"
    if "inflam" in lower:
        return "Inflammatory"
    return None


def infer_acne_subtype(ctx: RecommendationContext) -> str:
    """Decision flags, then acne categories, then pregnancy, then Inflammatory."""
    from_flags = _acne_subtype_from(ctx.decision_flags.acne_subtype or "")
    if from_flags:
        return from_flags
    found = {_acne_subtype_from(category) for category in ctx.acne_categories}
    for subtype in CATEGORY_PRECEDENCE:
        if subtype in found:
            return subtype
    if ctx.pregnancy:
        return "Pregnancy"
    return "Inflammatory"


def infer_texture_subtype(ctx: RecommendationContext) -> str:
    flag = (ctx.decision_flags.texture_subtype or "").lower()
    if "aging" in flag:
        return "Aging"
    if "bumpy" in flag:
        return "Bumpy"
    lowered = [c.lower() for c in ctx.main_concerns]
    if any("fine lines" in c or "wrinkle" in c for c in lowered):
        return "Aging"
    if any("bumpy" in c for c in lowered):
        return "Bumpy"
    if "bump" in (ctx.texture_type or "").lower():
        return "Bumpy"
    return "Aging"


def infer_pigmentation_subtype(ctx: RecommendationContext) -> Tuple[str, Band]:
    red = ctx.band("pigmentation_red") or ctx.band("pigmentation") or Band.GREEN
    brown = ctx.band("pigmentation_brown") or ctx.band("pigmentation") or Band.GREEN
    pig_type = (ctx.pigmentation_type or "").lower()
    if "red" in pig_type or "pie" in pig_type:
        return "PIE", red
    if "brown" in pig_type or "pih" in pig_type:
        return "PIH", brown
    if BAND_PRIORITY[red] < BAND_PRIORITY[brown]:
        return "PIE", red
    return "PIH", brown


def infer_scar_subtype(ctx: RecommendationContext) -> str:
    text = f"{ctx.decision_flags.texture_subtype or ''} {ctx.scar_type or ''}".lower()
    if "pie" in text:
        return "PIE"
    if "pih" in text:
        return "PIH"
    if "rolling" in text:
        return "Rolling"
    if "keloid" in text:
        return "Keloid"
    return "IcePick"


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------

def resolve_concern_priority(concern: ConcernKey, ctx: RecommendationContext) -> int:
    for idx, label in enumerate(ctx.concern_priority):
        if normalize_concern_label(label) == concern:
            return idx + 1
    return STATIC_CONCERN_ORDER.get(concern, 999)


def _selection_for(concern: ConcernKey, ctx: RecommendationContext) -> ConcernSelection:
    subtype = DEFAULT_SUBTYPE
    if concern == ConcernKey.ACNE:
        subtype = infer_acne_subtype(ctx)
        band = ctx.band("acne") or Band.BLUE
    elif concern == ConcernKey.PIGMENTATION:
        subtype, band = infer_pigmentation_subtype(ctx)
    elif concern == ConcernKey.TEXTURE:
        subtype = infer_texture_subtype(ctx)
        band = ctx.band("texture") or Band.BLUE
    elif concern == ConcernKey.ACNESCARS:
        subtype = infer_scar_subtype(ctx)
        band = ctx.band("acne") or Band.YELLOW
    else:
        band = ctx.band(concern.value) or Band.BLUE
    return ConcernSelection(
        concern=concern,
        subtype=subtype,
        band=band,
        priority=resolve_concern_priority(concern, ctx),
    )


def collect_concern_selections(ctx: RecommendationContext) -> List[ConcernSelection]:
    selections: List[ConcernSelection] = []
    seen = set()
    for label in ctx.main_concerns:
        concern = normalize_concern_label(label)
        if concern is None:
            logger.debug(f"Ignoring unrecognised concern label '{label}'")
            continue
        if concern in seen:
            continue
        seen.add(concern)
        selections.append(_selection_for(concern, ctx))

    return sorted(selections, key=lambda s: (BAND_PRIORITY[s.band], s.priority))


def select_primary_concern(
    concerns: List[ConcernSelection],
    notes: List[str],
) -> Tuple[Optional[ConcernSelection], List[ConcernSelection]]:
    if not concerns:
        return None, []
    acne = next((c for c in concerns if c.concern == ConcernKey.ACNE), None)
    if acne is not None:
        notes.append(ACNE_PRIORITY_NOTE)
        return acne, [c for c in concerns if c is not acne]
    return concerns[0], concerns[1:]


def derive_skin_type_key(ctx: RecommendationContext) -> SkinTypeKey:
    if is_elevated(ctx.band("sensitivity")) or ctx.sensitive_skin:
        return SkinTypeKey.SENSITIVE
    lower = (ctx.skin_type or "").lower()
    if "dry" in lower:
        return SkinTypeKey.DRY
    if "combo" in lower or "combination" in lower:
        return SkinTypeKey.COMBO
    if "oily" in lower:
        return SkinTypeKey.OILY
    return SkinTypeKey.NORMAL
