"""
Sensitivity battery.

Seven yes/no questions, weighted and summed; the score maps to a band that
sets the weekly irritation budget. A missing `seasonal` answer is filled from
the date of birth (under 20 counts as yes).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from app.reconcile.bands import Band
from app.reconcile.models import Question, ReconcileContext

logger = logging.getLogger(__name__)


SENSITIVITY_QUESTIONS: Tuple[Tuple[Question, int], ...] = (
    (Question("redness", "Do you often experience redness, burning or stinging when using skincare products?", ("Yes", "No")), 1),
    (Question("diagnosis", "Have you ever been diagnosed with sensitive skin, rosacea or eczema?", ("Yes", "No")), 2),
    (Question("cleansing", "Would you describe your skin baseline as very dry (tight, flaky, rough)?", ("Yes", "No")), 1),
    (Question("products", "Have you noticed breakouts or irritation when using active ingredients?", ("Yes", "No")), 1),
    (Question("sun", "Does your skin get easily irritated by sun, heat, wind or pollution?", ("Yes", "No")), 1),
    (Question("capillaries", "Do you have visible broken capillaries or flushing on your skin?", ("Yes", "No")), 1),
    (Question("seasonal", "Are you under 20 years of age?", ("Yes", "No")), 1),
)

# (minimum score, band), checked top down
SCORE_THRESHOLDS = (
    (6, Band.RED),
    (4, Band.YELLOW),
    (2, Band.BLUE),
)


@dataclass
class SensitivityResult:
    score: int
    band: Band
    answers: Dict[str, str] = field(default_factory=dict)
    positives: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "band": self.band.value,
            "answers": dict(self.answers),
            "positives": list(self.positives),
        }


def band_for_score(score: int) -> Band:
    for minimum, band in SCORE_THRESHOLDS:
        if score >= minimum:
            return band
    return Band.GREEN


def score_sensitivity(
    answers: Mapping[str, Any],
    ctx: Optional[ReconcileContext] = None,
) -> SensitivityResult:
    """Weighted yes-count over the battery. Unanswered questions count as No."""
    ctx = ctx or ReconcileContext()
    resolved: Dict[str, str] = {}
    for question, _ in SENSITIVITY_QUESTIONS:
        value = answers.get(question.id)
        if value is None or not str(value).strip():
            if question.id == "seasonal":
                age = ctx.resolved_age()
                value = "Yes" if age is not None and age < 20 else "No"
            else:
                value = "No"
        resolved[question.id] = str(value).strip()

    score = 0
    positives = []
    for question, weight in SENSITIVITY_QUESTIONS:
        if resolved[question.id].lower() == "yes":
            score += weight
            positives.append(question.id)

    band = band_for_score(score)
    logger.debug(f"Sensitivity score {score} -> {band.value}")
    return SensitivityResult(score=score, band=band, answers=resolved, positives=positives)
