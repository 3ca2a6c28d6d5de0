"""
Ingredient compatibility table.

Same-routine layering rules between ingredient tags. The table is symmetric;
pairs not listed are allowed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional

from app.catalog.models import MatrixProduct


class Compatibility(str, Enum):
    ALLOW = "allow"
    CAUTION = "caution"
    DISALLOW = "disallow"


def _pairs(*pairs) -> FrozenSet[FrozenSet[str]]:
    return frozenset(frozenset(p) for p in pairs)


DISALLOW_PAIRS = _pairs(
    ("retinoids", "vitamin_c_ascorbic"),
    ("retinoids", "aha"),
    ("retinoids", "bha"),
    ("retinoids", "benzoyl_peroxide"),
    ("vitamin_c_ascorbic", "aha"),
    ("vitamin_c_ascorbic", "bha"),
    ("vitamin_c_ascorbic", "benzoyl_peroxide"),
    ("aha", "bha"),  # double exfoliation
)

CAUTION_PAIRS = _pairs(
    ("retinoids", "azelaic"),
    ("vitamin_c_ascorbic", "peptides"),
    ("aha", "peptides"),
    ("bha", "peptides"),
)


def pair_compatibility(a: str, b: str) -> Compatibility:
    pair = frozenset((a, b))
    if pair in DISALLOW_PAIRS:
        return Compatibility.DISALLOW
    if pair in CAUTION_PAIRS:
        return Compatibility.CAUTION
    return Compatibility.ALLOW


@dataclass
class CompatibilityResult:
    allowed: bool
    cautions: List[str] = field(default_factory=list)
    reason: Optional[str] = None
    conflicting_with: Optional[str] = None


def evaluate_compatibility(
    existing: Iterable[MatrixProduct],
    candidate: MatrixProduct,
) -> CompatibilityResult:
    """
    Check a candidate serum against every serum already chosen.

    The first disallowed pair rejects the candidate; caution pairs are
    collected and the candidate is still allowed.
    """
    cautions: List[str] = []
    for product in existing:
        for a in product.tags:
            for b in candidate.tags:
                verdict = pair_compatibility(a, b)
                if verdict == Compatibility.DISALLOW:
                    return CompatibilityResult(
                        allowed=False,
                        cautions=cautions,
                        reason=f"{candidate.name} conflicts with {product.name}",
                        conflicting_with=product.name,
                    )
                if verdict == Compatibility.CAUTION:
                    note = f"{candidate.name} requires caution with {product.name}"
                    if note not in cautions:
                        cautions.append(note)
    return CompatibilityResult(allowed=True, cautions=cautions)
