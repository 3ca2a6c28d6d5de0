"""
Skin Consult Sensitivity Tests
Unit tests for the seven-question sensitivity battery.

Run with:
    pytest tests/test_sensitivity.py -v
"""

from datetime import date

import pytest

from app.reconcile.bands import Band
from app.reconcile.models import ReconcileContext
from app.reconcile.sensitivity import SENSITIVITY_QUESTIONS, band_for_score, score_sensitivity


class TestBattery:
    """Tests for the question table."""

    def test_seven_questions(self):
        """Seven questions, diagnosis weighted double."""
        weights = {q.id: w for q, w in SENSITIVITY_QUESTIONS}
        assert len(weights) == 7
        assert weights["diagnosis"] == 2
        assert sum(weights.values()) == 8


class TestScore:
    """Tests for score_sensitivity."""

    @pytest.mark.parametrize("score,band", [
        (0, Band.GREEN),
        (1, Band.GREEN),
        (2, Band.BLUE),
        (4, Band.YELLOW),
        (5, Band.YELLOW),
        (6, Band.RED),
        (8, Band.RED),
    ])
    def test_thresholds(self, score, band):
        """>=6 red, >=4 yellow, >=2 blue, else green."""
        assert band_for_score(score) == band

    def test_weighted_sum(self):
        """Diagnosis counts twice."""
        result = score_sensitivity({"redness": "Yes", "diagnosis": "Yes", "sun": "yes"})
        assert result.score == 4
        assert result.band == Band.YELLOW
        assert result.positives == ["redness", "diagnosis", "sun"]

    def test_unanswered_counts_as_no(self):
        """Missing answers are No."""
        result = score_sensitivity({})
        assert result.score == 0
        assert result.band == Band.GREEN
        assert result.answers["redness"] == "No"

    def test_seasonal_from_date_of_birth(self):
        """Under-20 is filled from the date of birth."""
        ctx = ReconcileContext(date_of_birth="2010-05-01", today=date(2024, 6, 1))
        result = score_sensitivity({"redness": "Yes"}, ctx)
        assert result.answers["seasonal"] == "Yes"
        assert result.score == 2

    def test_explicit_seasonal_wins(self):
        """An explicit answer is never overwritten."""
        ctx = ReconcileContext(age=15)
        result = score_sensitivity({"seasonal": "No"}, ctx)
        assert result.answers["seasonal"] == "No"
        assert result.score == 0

    def test_to_dict(self):
        """Result serializes the band value."""
        data = score_sensitivity({"diagnosis": "Yes"}).to_dict()
        assert data["band"] == "blue"
        assert data["score"] == 2
