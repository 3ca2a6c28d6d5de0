"""
Skin Consult Pipeline Tests
End-to-end tests for run_consult: sensitivity, reconciliation, the acne
subtype flow, concern routing and the recommendation it feeds.

Run with:
    pytest tests/test_pipeline.py -v
"""

import pytest

from app.consult.contracts import RecommendRequest
from app.consult.pipeline import PIPELINE_VERSION, route_concerns, run_consult, self_bands_for
from app.reconcile.bands import Band
from app.recommend.models import VariantType


# =============================================================================
# FIXTURES
# =============================================================================

def make_request(form=None, **kwargs) -> RecommendRequest:
    base_form = {"skin_type": "Oily", "main_concerns": ["Acne"]}
    base_form.update(form or {})
    values = {
        "form": base_form,
        "machine": {"acne": "yellow", "sebum": "yellow"},
        "timezone": "UTC",
    }
    values.update(kwargs)
    return RecommendRequest(**values)


@pytest.fixture
def oily_acne_outcome():
    return run_consult(make_request())


# =============================================================================
# ROUTING
# =============================================================================

class TestRouteConcerns:
    """Tests for route_concerns."""

    def test_route_adds_acne(self):
        assert route_concerns(["Pigmentation"], ["route:acne"]) == ["Pigmentation", "Acne"]

    def test_no_flag_no_change(self):
        assert route_concerns(["Pigmentation"], ["barrier-repair"]) == ["Pigmentation"]

    def test_already_declared(self):
        assert route_concerns(["acne", "Pores"], ["route:acne"]) == ["acne", "Pores"]

    def test_three_concerns_is_full(self):
        """Routing never pushes past three declared concerns."""
        concerns = ["Pigmentation", "Pores", "Fine lines"]
        assert route_concerns(concerns, ["route:acne"]) == concerns


class TestSelfBands:
    """Tests for self_bands_for."""

    def test_explicit_wins(self):
        assert self_bands_for(None, {"acne_claim": "green"}) == {"acne_claim": Band.GREEN}

    def test_no_form(self):
        assert self_bands_for(None) == {}


# =============================================================================
# PIPELINE
# =============================================================================

class TestRunConsult:
    """Tests for run_consult."""

    def test_basic_consult(self, oily_acne_outcome):
        """Oily yellow acne with no disagreements lands on the BPO row."""
        outcome = oily_acne_outcome
        assert outcome.effective_bands["acne"] == Band.YELLOW
        assert outcome.effective_bands["sensitivity"] == Band.GREEN
        assert outcome.self_bands["acne_claim"] == Band.YELLOW
        selected = outcome.recommendation.selected
        assert selected.type == VariantType.BALANCED
        assert selected.core_serum == "Benzoyl Peroxide 2.5%"

    def test_to_dict(self, oily_acne_outcome):
        data = oily_acne_outcome.to_dict()
        assert data["pipeline_version"] == PIPELINE_VERSION
        assert data["effective_bands"]["acne"] == "yellow"
        assert data["acne_flow"] is None
        assert data["recommendation"]["selected_index"] == 1

    def test_deterministic(self):
        """Same request, same outcome."""
        request = make_request(now="2024-06-03T12:00:00+00:00")
        assert run_consult(request).to_dict() == run_consult(request).to_dict()

    def test_sensitivity_drives_skin_type(self):
        """A yellow sensitivity score switches to the sensitive matrix rows."""
        outcome = run_consult(make_request(
            sensitivity_answers={"redness": "Yes", "diagnosis": "Yes", "sun": "Yes"},
        ))
        assert outcome.sensitivity.score == 4
        assert outcome.effective_bands["sensitivity"] == Band.YELLOW
        assert outcome.recommendation.selected.core_serum == "Azelaic acid 10%"

    def test_route_acne_injects_concern(self):
        """Pimple bumps on smooth skin add Acne to the declared concerns."""
        outcome = run_consult(make_request(
            form={"main_concerns": ["Pigmentation"], "pigmentation_type": "Melasma"},
            machine={"texture": "blue", "sebum": "yellow"},
            answers={"texture_MSmooth_CBumpy": {"q1": "Pimples / breakouts", "q2": "Chin"}},
        ))
        assert "route:acne" in outcome.flags
        assert outcome.main_concerns == ["Pigmentation", "Acne"]
        assert any(line.startswith("[ROUTE]") for line in outcome.reconcile.audit_log)

    def test_acne_flow_merges_worst(self):
        """A red inflammatory battery raises a blue machine reading."""
        outcome = run_consult(make_request(
            machine={"acne": "blue", "sebum": "yellow"},
            acne_flow={
                "subtype": "Inflammatory",
                "answers": {"Q1": "6-15", "Q2": "No", "Q3": "None", "Q4": "No", "Q5": "No"},
            },
        ))
        assert outcome.effective_bands["acne"] == Band.RED
        assert "acne-subtype:Inflammatory" in outcome.flags
        assert "[ACNE-FLOW] Inflammatory: red (acne blue -> red)" in outcome.reconcile.audit_log
        assert outcome.recommendation.selected.concern_subtype == "Inflammatory"

    def test_acne_flow_never_lowers(self):
        """A milder battery leaves a worse band untouched."""
        outcome = run_consult(make_request(
            machine={"acne": "red", "sebum": "yellow"},
            acne_flow={"subtype": "Comedonal", "answers": {"Q1": "Yes", "Q2": "<10", "Q3": "None"}},
        ))
        assert outcome.effective_bands["acne"] == Band.RED

    def test_acne_flow_error_is_logged(self):
        """A not-hormonal answer keeps the band and logs the error."""
        outcome = run_consult(make_request(
            acne_flow={
                "subtype": "Hormonal",
                "answers": {"Q1": "No", "Q2": "Yes", "Q3": "NA", "Q4": "1-5", "Q5": "No"},
            },
        ))
        assert outcome.effective_bands["acne"] == Band.YELLOW
        assert any(line.startswith("[ACNE-FLOW] Hormonal:") for line in outcome.reconcile.audit_log)

    def test_pregnancy_from_form(self):
        """Pregnancy in the form selects the pregnancy-safe acne rows."""
        outcome = run_consult(make_request(form={"pregnancy": "Yes"}))
        selected = outcome.recommendation.selected
        assert selected.concern_subtype == "Pregnancy"
        assert "Benzoyl" not in selected.core_serum

    def test_severe_cystic_referral(self):
        outcome = run_consult(make_request(form={"severe_cystic_acne": "Yes"}))
        assert outcome.recommendation.routines[0].type == VariantType.REFERRAL

    def test_barrier_stress(self):
        outcome = run_consult(make_request(form={"barrier_stress_high": "Yes"}))
        assert outcome.recommendation.routines[0].type == VariantType.BARRIER_FIRST

    def test_pending_rules_do_not_block(self):
        """Unanswered follow-ups are reported; routines are still produced."""
        outcome = run_consult(make_request(machine={"acne": "red", "sebum": "yellow"}, form={"main_concerns": []}))
        assert "acne_MAcne_CNone" in outcome.reconcile.pending
        assert len(outcome.recommendation.routines) == 3

    def test_serum_comfort_from_form(self):
        outcome = run_consult(make_request(form={"serum_comfort": "1 serum"}))
        assert all(r.serum_count == 1 for r in outcome.recommendation.routines)
