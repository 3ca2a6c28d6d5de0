"""
AM/PM placement of leave-on serums and the flat routine step lists.
"""

from __future__ import annotations

from typing import List, Tuple

from app.catalog.models import MatrixProduct
from app.recommend.models import RoutineState
from app.schedule.models import explicit_timing

AM = "am"
PM = "pm"
BOTH = "both"


def serum_timing(product: MatrixProduct) -> str:
    """An explicit AM/PM token in the matrix text wins; otherwise decided by tag."""
    explicit = explicit_timing(product.raw_name) or explicit_timing(product.name)
    if explicit:
        return explicit
    if product.has_tag("retinoids", "peptides"):
        return PM
    if product.has_tag("vitamin_c_ascorbic", "vitamin_c_derivative", "tranexamic"):
        return AM
    if product.has_tag("azelaic", "niacinamide", "ceramides"):
        return BOTH
    if product.has_tag("aha", "bha"):
        return PM
    if product.has_tag("benzoyl_peroxide"):
        return AM
    return BOTH


def build_am_pm(routine: RoutineState) -> Tuple[List[str], List[str]]:
    am_serums: List[str] = []
    pm_serums: List[str] = []
    for serum in routine.serums():
        timing = serum_timing(serum)
        if timing in (AM, BOTH):
            am_serums.append(serum.name)
        if timing in (PM, BOTH):
            pm_serums.append(serum.name)

    am = [routine.cleanser.name, *am_serums, routine.moisturizer.name, routine.sunscreen.name]
    pm = [routine.cleanser.name, *pm_serums, routine.moisturizer.name]
    return am, pm
