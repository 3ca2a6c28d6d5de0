"""
Skin Consult Band Reconciler v1.0

This module handles:
1. Machine vs self disagreement -> applicable follow-up questions
2. Answered questions -> per-rule outcomes (band update, flags, safety tags)
3. Outcomes -> one effective band per dimension (worst wins across rules)

SCOPE RULES:
- Effective bands are recomputed from scratch on every call
- A rule's updated band replaces the machine band for its dimension
- Dimensions no rule touched keep the machine band (self band when no scan)
- Missing answers never raise; the rule is reported as pending

Usage:
    from app.reconcile.reconciler import decide_all_band_updates

    result = decide_all_band_updates(machine, self_bands, answers_by_rule, ctx)
    result.effective_bands["acne"]  # Band.BLUE
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

from app.reconcile.bands import Band, BandLike, parse_band, worst_band
from app.reconcile.models import (
    Answers,
    Decision,
    FollowUp,
    MACHINE_DIMENSIONS,
    Outcome,
    ReconcileContext,
    ReconcileResult,
    SELF_KEY_FOR_DIMENSION,
)
from app.reconcile.rules import RULES, get_rule

logger = logging.getLogger(__name__)

RECONCILER_VERSION = "1.0.0"


def _clean_bands(raw: Optional[Mapping[str, BandLike]]) -> Dict[str, Band]:
    cleaned: Dict[str, Band] = {}
    for key, value in (raw or {}).items():
        band = parse_band(value)
        if band is not None:
            cleaned[key] = band
    return cleaned


def _answered(rule, answers: Optional[Answers]) -> bool:
    if answers is None:
        return False
    return all(q.id in answers for q in rule.questions)


# =============================================================================
# QUESTIONS
# =============================================================================

def get_follow_up_questions(
    machine: Mapping[str, BandLike],
    self_bands: Mapping[str, BandLike],
) -> List[FollowUp]:
    """Every rule whose predicate holds, in registry order (auto-fire rules included)."""
    m = _clean_bands(machine)
    s = _clean_bands(self_bands)
    return [
        FollowUp(rule.id, rule.scope, rule.dimension, list(rule.questions))
        for rule in RULES
        if rule.applicable(m, s)
    ]


def decide_band_updates(
    rule_id: str,
    answers: Optional[Answers] = None,
    ctx: Optional[ReconcileContext] = None,
) -> Optional[Outcome]:
    """Run one rule's decision table. Unknown rule ids return None."""
    rule = get_rule(rule_id)
    if rule is None:
        logger.warning(f"Unknown reconcile rule: {rule_id}")
        return None
    return rule.decide(answers or {}, ctx or ReconcileContext())


# =============================================================================
# FULL PASS
# =============================================================================

def decide_all_band_updates(
    machine: Mapping[str, BandLike],
    self_bands: Mapping[str, BandLike],
    answers_by_rule: Optional[Mapping[str, Answers]] = None,
    ctx: Optional[ReconcileContext] = None,
    sensitivity: BandLike = None,
) -> ReconcileResult:
    """
    Reconcile machine and self readings into effective bands.

    Rules without questions fire immediately. Rules with questions fire once
    every question has an answer in answers_by_rule[rule.id]; otherwise the
    rule id is listed in `pending`.

    Returns:
        ReconcileResult with effective bands, decision log and audit trail.
    """
    m = _clean_bands(machine)
    s = _clean_bands(self_bands)
    answers_by_rule = answers_by_rule or {}
    ctx = ctx or ReconcileContext()

    updates: Dict[str, Band] = {}
    decisions: List[Decision] = []
    flags: List[str] = []
    safety: List[str] = []
    pending: List[str] = []
    audit_log: List[str] = []

    for rule in RULES:
        if not rule.applicable(m, s):
            continue

        answers = answers_by_rule.get(rule.id)
        if rule.questions and not _answered(rule, answers):
            pending.append(rule.id)
            audit_log.append(f"[PENDING] {rule.id}: awaiting answers")
            continue

        outcome = rule.decide(answers or {}, ctx)
        decisions.append(Decision(
            rule_id=rule.id,
            scope=outcome.scope,
            dimension=rule.dimension,
            verdict=outcome.verdict,
            updated_band=outcome.updated_band,
            flags=list(outcome.flags),
            safety=list(outcome.safety),
        ))
        band_text = outcome.updated_band.value if outcome.updated_band else "-"
        audit_log.append(f"[FIRE] {rule.id}: {band_text} ({outcome.verdict})")

        for flag in outcome.flags:
            if flag not in flags:
                flags.append(flag)
        for tag in outcome.safety:
            if tag not in safety:
                safety.append(tag)

        if outcome.updated_band is not None:
            previous = updates.get(rule.dimension)
            merged = worst_band(previous, outcome.updated_band)
            if previous is not None and merged != previous:
                audit_log.append(
                    f"[MERGE] {rule.dimension}: {previous.value} -> {merged.value} from {rule.id}"
                )
            updates[rule.dimension] = merged

    effective: Dict[str, Band] = {}
    for dimension in MACHINE_DIMENSIONS:
        band = updates.get(dimension) or m.get(dimension) or s.get(SELF_KEY_FOR_DIMENSION[dimension])
        if band is not None:
            effective[dimension] = band

    sensitivity_band = parse_band(sensitivity)
    if sensitivity_band is not None:
        effective["sensitivity"] = sensitivity_band

    logger.debug(f"Reconciled {len(decisions)} rules, {len(pending)} pending")

    return ReconcileResult(
        effective_bands=effective,
        decisions=decisions,
        flags=flags,
        safety=safety,
        pending=pending,
        audit_log=audit_log,
    )
