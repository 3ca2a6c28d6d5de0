"""
Weekly Active Scheduler v1.0
============================
Places a routine's leave-on actives on weekday nights under an irritation
budget derived from the customer's sensitivity band.

This module handles:
1. Sensitivity band -> (nightly cost cap, minimum rest nights)
2. AM routine, identical every day (at most one AM-eligible serum)
3. PM scaffold: retinoid on Mon/Thu, AHA/BHA on Tue/Sat, flexible picks elsewhere
4. Correction pass: extra rest nights first, then per-night cost downgrades
5. Today's view in the consultation timezone

SCOPE RULES:
- Actives are classified by product name, one active per night
- Every night's cost stays within the cap once the correction pass ran
- The vitamin C vs BPO/retinoid check is advisory only

Usage:
    from app.schedule.scheduler import build_weekly_plan
    from app.schedule.models import ScheduleInput, ScheduleSerum
    from app.reconcile.bands import Band

    plan = build_weekly_plan(ScheduleInput(
        cleanser="Gentle foaming cleanser",
        moisturizer="Gel-cream moisturizer",
        serums=[ScheduleSerum.from_name("Azelaic acid 10%")],
        sensitivity_band=Band.YELLOW,
    ))
    plan.rest_nights  # ['wed', 'fri', 'sun']
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Pattern
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.reconcile.bands import Band, BandLike, parse_band
from app.schedule.models import (
    DAYS,
    CustomerView,
    IrritationBudget,
    RoutineStep,
    ScheduleInput,
    ScheduleSerum,
    WeeklyPlan,
)

logger = logging.getLogger(__name__)

# =============================================================================
# VERSION / CONFIG
# =============================================================================

SCHEDULER_VERSION = "1.0.0"
DEFAULT_TIMEZONE = os.getenv("CONSULT_TIMEZONE", "Asia/Kolkata")
GENERIC_SUNSCREEN = "Broad-spectrum sunscreen SPF 50"

BUDGETS: Dict[Band, IrritationBudget] = {
    Band.GREEN: IrritationBudget(nightly_cap=100, min_rest_nights=2),
    Band.BLUE: IrritationBudget(nightly_cap=100, min_rest_nights=2),
    Band.YELLOW: IrritationBudget(nightly_cap=70, min_rest_nights=3),
    Band.RED: IrritationBudget(nightly_cap=0, min_rest_nights=4),
}

RETINOID_NIGHTS = ("mon", "thu")
ACID_NIGHTS = ("tue", "sat")

# Order in which surplus active nights become rest nights when keep priority ties.
REST_DROP_ORDER = ("sun", "wed", "fri", "tue", "sat", "thu", "mon")

FLEX_PREFERENCE = (
    "niacinamide",
    "azelaic",
    "peptide",
    "alpha_arbutin",
    "tranexamic",
    "vitamin_c",
    "vitamin_c_derivative",
)


# =============================================================================
# ACTIVE CLASSIFICATION
# =============================================================================

@dataclass(frozen=True)
class ActiveSpec:
    category: str
    pattern: Optional[Pattern]
    cost: int
    priority: int


ACTIVE_COST_SPECS = (
    ActiveSpec("retinoid", re.compile(r"retinoid|retinol|adapalene|tretinoin|differin", re.I), 60, 100),
    ActiveSpec("benzoyl_peroxide", re.compile(r"benzoyl\s+peroxide|\bbpo\b", re.I), 50, 95),
    ActiveSpec("bha", re.compile(r"\bbha\b|salicylic", re.I), 60, 85),
    ActiveSpec("aha", re.compile(r"\baha\b|glycolic|lactic|mandelic", re.I), 60, 80),
    ActiveSpec("azelaic", re.compile(r"azelaic", re.I), 30, 70),
    ActiveSpec("tranexamic", re.compile(r"tranexamic", re.I), 20, 55),
    ActiveSpec(
        "vitamin_c_derivative",
        re.compile(r"derivative|tetrahexyldecyl|ethyl ascorbic|\bmap\b|\bsap\b", re.I),
        15,
        48,
    ),
    ActiveSpec("vitamin_c", re.compile(r"vitamin\s*c|ascorbic", re.I), 15, 50),
    ActiveSpec("niacinamide", re.compile(r"niacinamide", re.I), 10, 45),
    ActiveSpec("hyaluronic", re.compile(r"hyaluronic", re.I), 0, 20),
    ActiveSpec("ceramide", re.compile(r"ceramide|barrier\s*cream", re.I), 0, 20),
    ActiveSpec("peptide", re.compile(r"peptide|bakuchiol", re.I), 0, 25),
    ActiveSpec("alpha_arbutin", re.compile(r"alpha\s*arbutin", re.I), 0, 25),
)

UNKNOWN_ACTIVE = ActiveSpec("unknown", None, 0, 10)


def classify_active(name: str) -> ActiveSpec:
    """First matching cost spec for a product name."""
    for spec in ACTIVE_COST_SPECS:
        if spec.pattern.search(name or ""):
            return spec
    return UNKNOWN_ACTIVE


def budget_for_band(band: BandLike) -> IrritationBudget:
    return BUDGETS[parse_band(band) or Band.GREEN]


@dataclass(frozen=True)
class _Active:
    name: str
    timing: Optional[str]
    spec: ActiveSpec

    @property
    def category(self) -> str:
        return self.spec.category

    @property
    def cost(self) -> int:
        return self.spec.cost

    @property
    def priority(self) -> int:
        return self.spec.priority

    @property
    def am_eligible(self) -> bool:
        return self.timing != "pm" and self.category != "retinoid"

    @property
    def pm_eligible(self) -> bool:
        return self.timing != "am"


def _flex_rank(active: _Active) -> int:
    if active.category in FLEX_PREFERENCE:
        return FLEX_PREFERENCE.index(active.category)
    return len(FLEX_PREFERENCE)


# =============================================================================
# PREPARATION
# =============================================================================

def _prepare_actives(
    serums: List[ScheduleSerum],
    pregnancy: bool,
    serum_comfort: int,
    warnings: List[str],
) -> List[_Active]:
    actives: List[_Active] = []
    seen_names = set()
    for serum in serums:
        name = (serum.name or "").strip()
        if not name or name.lower() in seen_names:
            continue
        seen_names.add(name.lower())
        actives.append(_Active(name=name, timing=serum.timing, spec=classify_active(name)))

    if pregnancy:
        kept = []
        for active in actives:
            if active.category == "retinoid":
                warnings.append(f"Removed retinoid due to pregnancy: {active.name}")
                continue
            kept.append(active)
        actives = kept

    # Same family as an earlier serum collapses into the earlier one (core first)
    deduped: List[_Active] = []
    for active in actives:
        duplicate = next(
            (a for a in deduped if a.category == active.category and a.category != "unknown"),
            None,
        )
        if duplicate is not None:
            warnings.append(f"Dropped duplicate active '{active.name}' (same family as {duplicate.name})")
            continue
        deduped.append(active)

    if len(deduped) > serum_comfort:
        left_out = ", ".join(a.name for a in deduped[serum_comfort:])
        warnings.append(f"Serum comfort {serum_comfort}: left out {left_out}.")
        deduped = deduped[:serum_comfort]
    return deduped


def _pick_am_serum(actives: List[_Active], band: Band) -> Optional[_Active]:
    candidates = [a for a in actives if a.am_eligible]
    if band == Band.RED:
        candidates = [a for a in candidates if a.cost == 0]
    for active in candidates:
        if active.timing == "am":
            return active
    return candidates[0] if candidates else None


# =============================================================================
# PM SCAFFOLD + CORRECTION
# =============================================================================

def _scaffold_pm(actives: List[_Active]) -> Dict[str, Optional[_Active]]:
    pm = [a for a in actives if a.pm_eligible]
    nights: Dict[str, Optional[_Active]] = {day: None for day in DAYS}

    retinoid = next((a for a in pm if a.category == "retinoid"), None)
    acid = next((a for a in pm if a.category in ("aha", "bha")), None)
    if retinoid is not None:
        for day in RETINOID_NIGHTS:
            nights[day] = retinoid
    if acid is not None:
        for day in ACID_NIGHTS:
            nights[day] = acid

    flexible = [a for a in pm if a is not retinoid and a is not acid]
    usage = {a.name: 0 for a in flexible}
    for day in DAYS:
        if nights[day] is not None or not flexible:
            continue
        choice = min(flexible, key=lambda a: (usage[a.name], _flex_rank(a)))
        usage[choice.name] += 1
        nights[day] = choice
    return nights


def _enforce_rest_nights(
    nights: Dict[str, Optional[_Active]],
    budget: IrritationBudget,
    nightly_notes: Dict[str, List[str]],
    budget_notes: List[str],
) -> None:
    active_days = [d for d in DAYS if nights[d] is not None]
    excess = len(active_days) - budget.max_active_nights
    if excess <= 0:
        return
    drop_order = sorted(
        active_days,
        key=lambda d: (nights[d].priority, REST_DROP_ORDER.index(d)),
    )
    for day in drop_order[:excess]:
        dropped = nights[day]
        nights[day] = None
        nightly_notes[day].append(f"Rest night (dropped {dropped.name} to keep {budget.min_rest_nights} rest nights).")
    budget_notes.append(f"Added {excess} rest night(s) to meet the minimum of {budget.min_rest_nights}.")


def _enforce_cost_cap(
    nights: Dict[str, Optional[_Active]],
    actives: List[_Active],
    budget: IrritationBudget,
    nightly_notes: Dict[str, List[str]],
    budget_notes: List[str],
) -> None:
    downgrades = [
        a for category in ("azelaic", "niacinamide")
        for a in actives if a.category == category and a.pm_eligible
    ]
    for day in DAYS:
        active = nights[day]
        if active is None or active.cost <= budget.nightly_cap:
            continue
        replacement = next(
            (a for a in downgrades if a is not active and a.cost <= budget.nightly_cap),
            None,
        )
        if replacement is not None:
            nights[day] = replacement
            message = f"{day}: downgraded {active.name} to {replacement.name} (cap {budget.nightly_cap})."
        else:
            nights[day] = None
            message = f"{day}: removed {active.name} (cost {active.cost} exceeds cap {budget.nightly_cap})."
        nightly_notes[day].append(message)
        budget_notes.append(message)
        logger.debug(message)


def _pm_steps(cleanser: str, moisturizer: str, active: Optional[_Active]) -> List[RoutineStep]:
    steps = [RoutineStep(1, "Cleanser", cleanser)]
    if active is not None:
        steps.append(RoutineStep(2, "Serum", active.name))
    steps.append(RoutineStep(len(steps) + 1, "Moisturizer", moisturizer))
    return steps


# =============================================================================
# TODAY VIEW
# =============================================================================

def day_key_for(timezone: str = DEFAULT_TIMEZONE, now: Optional[datetime] = None) -> str:
    try:
        zone = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone '{timezone}'")
    if now is None:
        local = datetime.now(zone)
    elif now.tzinfo is None:
        local = now
    else:
        local = now.astimezone(zone)
    return DAYS[local.weekday()]


def build_customer_view(plan: WeeklyPlan, day: str) -> CustomerView:
    notes = list(plan.warnings)
    for note in plan.budget_notes + plan.nightly_notes.get(day, []):
        if note not in notes:
            notes.append(note)
    return CustomerView(
        day=day,
        am=plan.am,
        pm=plan.pm_by_day[day],
        notes=notes,
        nightly_cost=plan.nightly_cost.get(day, 0),
        nightly_actives=list(plan.nightly_actives.get(day, [])),
    )


# =============================================================================
# ENTRY POINT
# =============================================================================

def build_weekly_plan(
    schedule_input: ScheduleInput,
    timezone: str = DEFAULT_TIMEZONE,
    now: Optional[datetime] = None,
) -> WeeklyPlan:
    """
    Build the AM routine and the 7-night PM grid for one product set.

    Raises ValueError only for an unknown timezone.
    """
    band = parse_band(schedule_input.sensitivity_band) or Band.GREEN
    budget = BUDGETS[band]
    comfort = max(1, min(3, int(schedule_input.serum_comfort or 1)))
    warnings: List[str] = []
    budget_notes: List[str] = []
    nightly_notes: Dict[str, List[str]] = {day: [] for day in DAYS}

    actives = _prepare_actives(schedule_input.serums, schedule_input.pregnancy, comfort, warnings)

    am = [RoutineStep(1, "Cleanser", schedule_input.cleanser)]
    am_serum = _pick_am_serum(actives, band)
    if am_serum is not None:
        am.append(RoutineStep(2, "Serum", am_serum.name))
    am.append(RoutineStep(len(am) + 1, "Moisturizer", schedule_input.moisturizer))
    am.append(RoutineStep(len(am) + 1, "Sunscreen", schedule_input.sunscreen or GENERIC_SUNSCREEN))

    nights = _scaffold_pm(actives)
    _enforce_rest_nights(nights, budget, nightly_notes, budget_notes)
    _enforce_cost_cap(nights, actives, budget, nightly_notes, budget_notes)

    pm_by_day: Dict[str, List[RoutineStep]] = {}
    nightly_cost: Dict[str, int] = {}
    nightly_actives: Dict[str, List[str]] = {}
    rest_nights: List[str] = []
    for day in DAYS:
        active = nights[day]
        pm_by_day[day] = _pm_steps(schedule_input.cleanser, schedule_input.moisturizer, active)
        nightly_cost[day] = active.cost if active else 0
        nightly_actives[day] = [active.name] if active else []
        if active is None:
            rest_nights.append(day)
            if not nightly_notes[day]:
                nightly_notes[day].append("Rest night (cleanser + moisturizer only).")

    if budget.nightly_cap == 0:
        budget_notes.append("Focus on barrier repair due to very high sensitivity.")

    warnings.append(
        f"Irritation budget applied (cap {budget.nightly_cap}, rest nights {budget.min_rest_nights})."
    )
    if am_serum is not None and am_serum.category == "vitamin_c":
        if any(nights[d] is not None and nights[d].category in ("benzoyl_peroxide", "retinoid") for d in DAYS):
            warnings.append("Separated L-ascorbic vitamin C (AM) from BPO/retinoid (PM) to avoid conflicts.")

    plan = WeeklyPlan(
        am=am,
        pm_by_day=pm_by_day,
        warnings=warnings,
        nightly_cost=nightly_cost,
        nightly_actives=nightly_actives,
        nightly_notes=nightly_notes,
        rest_nights=rest_nights,
        budget_notes=budget_notes,
        budget=budget,
    )
    plan.today = build_customer_view(plan, day_key_for(timezone, now))

    logger.debug(
        f"Weekly plan: band={band.value} active_nights={len(plan.active_nights)} "
        f"rest_nights={len(rest_nights)}"
    )
    return plan
