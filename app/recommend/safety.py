"""
Recommendation Safety Gates v1.0

This module handles:
1. Safety gate flags -> one disallow set of ingredient tags
2. Allergy text -> tokens, matched against product keywords and tag families
3. Post-assembly passes, always in this order:
   pregnancy -> isotretinoin recovery -> allergy

SCOPE RULES:
- Gates override matrix defaults; they never add actives of their own
- A substitute is never itself blocked by any active gate
- A substitute from a family already in the routine is avoided; a secondary
  that would duplicate the substitute is dropped instead
- Every swap or drop leaves a note on the variant
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Iterable, List, Optional, Sequence, Set, Union

from app.catalog.loader import get_loader
from app.catalog.models import MatrixProduct, Slot
from app.recommend.models import RecommendationContext, RoutineState

logger = logging.getLogger(__name__)

# =============================================================================
# GATE TABLES
# =============================================================================

PREGNANCY_UNSAFE_TAGS = frozenset({"retinoids", "benzoyl_peroxide", "bha", "aha"})
ISOTRETINOIN_UNSAFE_TAGS = PREGNANCY_UNSAFE_TAGS | {"vitamin_c_ascorbic"}

# Allergy keyword -> ingredient family it rules out
ALLERGY_TAG_TERMS = (
    (("aspirin", "salicyl"), "bha"),
    (("benzoyl",), "benzoyl_peroxide"),
    (("retino",), "retinoids"),
    (("niacinamide",), "niacinamide"),
    (("vitamin c", "ascorb"), "vitamin_c_ascorbic"),
    (("lactic", "aha", "glycol"), "aha"),
    (("azelaic",), "azelaic"),
)

AZELAIC = "Azelaic acid 10%"
NIACINAMIDE = "Niacinamide serum"
VITAMIN_C_DERIVATIVE = "Vitamin C derivative serum"
LAST_RESORT_SERUM = "Bakuchiol peptide serum"
GENTLE_CLEANSERS = ("Gentle foaming cleanser", "Cream cleanser")
BARRIER_MOISTURIZERS = ("Barrier repair cream", "Gel-cream moisturizer")

PREGNANCY_SUBSTITUTES = (AZELAIC, NIACINAMIDE)
ISOTRETINOIN_SUBSTITUTES = (NIACINAMIDE, AZELAIC)

PREGNANCY_REASON = "Pregnancy safety"
ISOTRETINOIN_REASON = "Isotretinoin recovery safety"

_ALLERGY_SPLIT = re.compile(r"[,;/]")


def parse_allergies(raw: Union[str, Iterable[str], None]) -> List[str]:
    """Lowercase allergy tokens, split on , ; and /."""
    if not raw:
        return []
    chunks = [raw] if isinstance(raw, str) else list(raw)
    tokens: List[str] = []
    for chunk in chunks:
        for token in _ALLERGY_SPLIT.split(str(chunk).lower()):
            token = token.strip()
            if token and token not in ("none", "no", "nil", "n/a") and token not in tokens:
                tokens.append(token)
    return tokens


def _overlaps(term: str, allergy: str) -> bool:
    return term in allergy or allergy in term


def allergy_tags(allergies: Sequence[str]) -> Set[str]:
    tags = set()
    for terms, tag in ALLERGY_TAG_TERMS:
        if any(_overlaps(term, allergy) for term in terms for allergy in allergies):
            tags.add(tag)
    return tags


def family(product: MatrixProduct) -> FrozenSet[str]:
    """Ingredient family key; untagged products are their own family."""
    return frozenset(product.tags) or frozenset({product.name.lower()})


def shares_family(a: MatrixProduct, b: MatrixProduct) -> bool:
    return bool(family(a) & family(b))


# =============================================================================
# GATES
# =============================================================================

@dataclass
class SafetyGates:
    pregnancy: bool = False
    isotretinoin: bool = False
    allergies: List[str] = field(default_factory=list)
    disallow: Set[str] = field(default_factory=set)

    def allergen_for(self, product: MatrixProduct) -> Optional[str]:
        """The keyword or allergy token that rules this product out, if any."""
        for keyword in product.keywords:
            for allergy in self.allergies:
                if _overlaps(keyword, allergy):
                    return keyword
        for terms, tag in ALLERGY_TAG_TERMS:
            if not product.has_tag(tag):
                continue
            for allergy in self.allergies:
                if any(_overlaps(term, allergy) for term in terms):
                    return allergy
        return None

    def blocked_by(self, product: MatrixProduct) -> Optional[str]:
        """Gate key blocking this product (a tag or an allergen), else None."""
        for tag in product.tags:
            if tag in self.disallow:
                return tag
        return self.allergen_for(product)


def build_safety_gates(ctx: RecommendationContext) -> SafetyGates:
    allergies = parse_allergies(ctx.allergies)
    disallow: Set[str] = set()
    if ctx.pregnancy:
        disallow |= PREGNANCY_UNSAFE_TAGS
    if ctx.recent_isotretinoin:
        disallow |= ISOTRETINOIN_UNSAFE_TAGS
    disallow |= allergy_tags(allergies)
    return SafetyGates(
        pregnancy=ctx.pregnancy,
        isotretinoin=ctx.recent_isotretinoin,
        allergies=allergies,
        disallow=disallow,
    )


# =============================================================================
# SWAP HELPERS
# =============================================================================

def _first_allowed(names: Sequence[str], slot: Slot, gates: SafetyGates) -> Optional[MatrixProduct]:
    loader = get_loader()
    for name in names:
        product = loader.make_product(name, slot)
        if gates.blocked_by(product) is None:
            return product
    return None


def _replace_core(
    routine: RoutineState,
    substitutes: Sequence[str],
    gates: SafetyGates,
    reason: str,
    notes: List[str],
) -> None:
    loader = get_loader()
    candidates = [loader.make_product(n, Slot.CORE_SERUM) for n in substitutes]
    candidates = [c for c in candidates if gates.blocked_by(c) is None]
    fresh = next(
        (c for c in candidates if not any(shares_family(c, s) for s in routine.secondary_serums)),
        None,
    )
    replacement = fresh or (candidates[0] if candidates else loader.make_product(LAST_RESORT_SERUM, Slot.CORE_SERUM))
    routine.core_serum = replacement
    notes.append(f"{reason}: replaced core serum with {replacement.name}.")

    kept = []
    for serum in routine.secondary_serums:
        if shares_family(serum, replacement):
            notes.append(f"{reason}: dropped {serum.name} (same family as {replacement.name}).")
            continue
        kept.append(serum)
    routine.secondary_serums = kept


def _replace_secondary(
    routine: RoutineState,
    index: int,
    substitutes: Sequence[str],
    gates: SafetyGates,
    reason: str,
    notes: List[str],
) -> bool:
    """Swap or drop one secondary serum. Returns False when it was dropped."""
    loader = get_loader()
    current = routine.secondary_serums[index]
    others = [routine.core_serum] + [s for i, s in enumerate(routine.secondary_serums) if i != index]
    for name in substitutes:
        candidate = loader.make_product(name, Slot.SECONDARY_SERUM)
        if gates.blocked_by(candidate) is not None:
            continue
        if any(shares_family(candidate, o) for o in others):
            continue
        routine.secondary_serums[index] = candidate
        notes.append(f"{reason}: replaced serum #{index + 2} with {candidate.name}.")
        return True
    notes.append(f"{reason}: dropped {current.name}.")
    return False


def _scan_serums(
    routine: RoutineState,
    is_unsafe: Callable[[MatrixProduct], Optional[str]],
    substitutes_for: Callable[[str], Sequence[str]],
    reason_for: Callable[[str], str],
    gates: SafetyGates,
    notes: List[str],
) -> None:
    key = is_unsafe(routine.core_serum)
    if key is not None:
        _replace_core(routine, substitutes_for(key), gates, reason_for(key), notes)

    index = 0
    while index < len(routine.secondary_serums):
        key = is_unsafe(routine.secondary_serums[index])
        if key is None:
            index += 1
            continue
        if _replace_secondary(routine, index, substitutes_for(key), gates, reason_for(key), notes):
            index += 1
        else:
            del routine.secondary_serums[index]


def _tag_check(tags: FrozenSet[str]) -> Callable[[MatrixProduct], Optional[str]]:
    def check(product: MatrixProduct) -> Optional[str]:
        return next((t for t in product.tags if t in tags), None)
    return check


def _switch(
    routine: RoutineState,
    slot: Slot,
    names: Sequence[str],
    gates: SafetyGates,
    reason: str,
    notes: List[str],
) -> None:
    attr = "cleanser" if slot == Slot.CLEANSER else "moisturizer"
    current: MatrixProduct = getattr(routine, attr)
    replacement = _first_allowed(names, slot, gates)
    if replacement is None or replacement.name == current.name:
        return
    setattr(routine, attr, replacement)
    notes.append(f"{reason}: switched {attr} to {replacement.name}.")


# =============================================================================
# PASSES
# =============================================================================

def apply_pregnancy_safety(routine: RoutineState, gates: SafetyGates, notes: List[str]) -> None:
    if not gates.pregnancy:
        return
    check = _tag_check(PREGNANCY_UNSAFE_TAGS)
    _scan_serums(routine, check, lambda _: PREGNANCY_SUBSTITUTES, lambda _: PREGNANCY_REASON, gates, notes)
    if check(routine.cleanser):
        _switch(routine, Slot.CLEANSER, GENTLE_CLEANSERS, gates, PREGNANCY_REASON, notes)
    if check(routine.moisturizer):
        _switch(routine, Slot.MOISTURIZER, BARRIER_MOISTURIZERS, gates, PREGNANCY_REASON, notes)


def apply_isotretinoin_safety(routine: RoutineState, gates: SafetyGates, notes: List[str]) -> None:
    if not gates.isotretinoin:
        return
    check = _tag_check(ISOTRETINOIN_UNSAFE_TAGS)
    _scan_serums(routine, check, lambda _: ISOTRETINOIN_SUBSTITUTES, lambda _: ISOTRETINOIN_REASON, gates, notes)
    if not routine.moisturizer.has_tag("ceramides"):
        _switch(routine, Slot.MOISTURIZER, BARRIER_MOISTURIZERS, gates, ISOTRETINOIN_REASON, notes)
    _switch(routine, Slot.CLEANSER, GENTLE_CLEANSERS, gates, ISOTRETINOIN_REASON, notes)


def allergy_substitutes(allergen: str) -> Sequence[str]:
    if "niacinamide" in allergen:
        return (AZELAIC, VITAMIN_C_DERIVATIVE)
    if "azelaic" in allergen:
        return (VITAMIN_C_DERIVATIVE, NIACINAMIDE)
    if "vitamin c" in allergen or "ascorb" in allergen:
        return (NIACINAMIDE, AZELAIC)
    return (AZELAIC, NIACINAMIDE, VITAMIN_C_DERIVATIVE)


def apply_allergy_safety(routine: RoutineState, gates: SafetyGates, notes: List[str]) -> None:
    if not gates.allergies:
        return

    def reason_for(allergen: str) -> str:
        return f"Allergy safety ({allergen})"

    _scan_serums(routine, gates.allergen_for, allergy_substitutes, reason_for, gates, notes)
    allergen = gates.allergen_for(routine.moisturizer)
    if allergen:
        _switch(routine, Slot.MOISTURIZER, BARRIER_MOISTURIZERS, gates, reason_for(allergen), notes)
    allergen = gates.allergen_for(routine.cleanser)
    if allergen:
        _switch(routine, Slot.CLEANSER, GENTLE_CLEANSERS, gates, reason_for(allergen), notes)


def apply_safety_passes(routine: RoutineState, gates: SafetyGates, notes: List[str]) -> None:
    """Run the three passes in their fixed order; later passes see earlier swaps."""
    apply_pregnancy_safety(routine, gates, notes)
    apply_isotretinoin_safety(routine, gates, notes)
    apply_allergy_safety(routine, gates, notes)
    logger.debug(f"Safety passes done: core={routine.core_serum.name} secondaries={len(routine.secondary_serums)}")
