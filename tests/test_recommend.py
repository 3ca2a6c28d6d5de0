"""
Skin Consult Recommendation Tests
Unit tests for concern selection, matrix fallbacks, serum augmentation,
safety passes and the variant builder.

Run with:
    pytest tests/test_recommend.py -v
"""

import pytest

from app.catalog import get_loader
from app.catalog.models import ConcernKey, MatrixEntry, MatrixProduct, PlaceholderKind, SkinTypeKey, Slot
from app.reconcile.bands import Band
from app.recommend import (
    ENGINE_VERSION,
    collect_concern_selections,
    fetch_matrix_entry,
    generate_recommendations,
    normalize_concern_label,
    parse_allergies,
    select_primary_concern,
    skin_profile_key,
)
from app.recommend.augment import augment_serums, serum_cap
from app.recommend.concerns import ACNE_PRIORITY_NOTE, derive_skin_type_key, infer_acne_subtype
from app.recommend.engine import REFERRAL_NOTE, REFERRAL_SUNSCREEN
from app.recommend.models import (
    ConcernSelection,
    DecisionFlags,
    RecommendationContext,
    RoutineState,
    VariantType,
)
from app.recommend.safety import SafetyGates


# =============================================================================
# FIXTURES
# =============================================================================

def oily_acne_context(**overrides) -> RecommendationContext:
    """Oily skin, yellow inflammatory acne, no gates."""
    values = dict(
        effective_bands={"acne": "yellow", "sebum": "yellow"},
        skin_type="Oily",
        main_concerns=["Acne"],
        timezone="UTC",
    )
    values.update(overrides)
    return RecommendationContext(**values)


@pytest.fixture
def oily_acne():
    return generate_recommendations(oily_acne_context())


def all_serums(variant):
    return [variant.core_serum, *([variant.secondary_serum] if variant.secondary_serum else []),
            *variant.additional_serums]


# =============================================================================
# CONCERNS
# =============================================================================

class TestConcernLabels:
    """Tests for normalize_concern_label."""

    @pytest.mark.parametrize("label,concern", [
        ("Acne", ConcernKey.ACNE),
        ("Acne scars", ConcernKey.ACNESCARS),
        ("Breakouts", ConcernKey.ACNE),
        ("Oily skin", ConcernKey.SEBUM),
        ("Pigmentation", ConcernKey.PIGMENTATION),
        ("Fine lines", ConcernKey.TEXTURE),
        ("Large pores", ConcernKey.PORES),
        ("Dark circles", None),
        (None, None),
    ])
    def test_labels(self, label, concern):
        """Scars are checked before acne."""
        assert normalize_concern_label(label) == concern


class TestConcernSelection:
    """Tests for ordering and primary selection."""

    def test_band_severity_first(self):
        """A red concern sorts before a blue one."""
        ctx = RecommendationContext(
            effective_bands={"acne": "blue", "pigmentation": "red"},
            main_concerns=["Acne", "Pigmentation"],
        )
        concerns = collect_concern_selections(ctx)
        assert [c.concern for c in concerns] == [ConcernKey.PIGMENTATION, ConcernKey.ACNE]

    def test_customer_priority_breaks_ties(self):
        """Equal bands follow the customer's priority list."""
        ctx = RecommendationContext(
            effective_bands={"acne": "yellow", "pores": "yellow"},
            main_concerns=["Acne", "Large pores"],
            concern_priority=["Large pores", "Acne"],
        )
        concerns = collect_concern_selections(ctx)
        assert concerns[0].concern == ConcernKey.PORES
        assert concerns[0].priority == 1

    def test_duplicates_and_unknown_labels_dropped(self):
        """Each concern appears once; unknown labels are ignored."""
        ctx = RecommendationContext(main_concerns=["Acne", "Breakouts", "Dark circles"])
        assert len(collect_concern_selections(ctx)) == 1

    def test_acne_always_primary(self):
        """Acne wins primary even when another concern sorts first."""
        ctx = RecommendationContext(
            effective_bands={"acne": "blue", "pigmentation": "red"},
            main_concerns=["Pigmentation", "Acne"],
        )
        notes = []
        primary, others = select_primary_concern(collect_concern_selections(ctx), notes)
        assert primary.concern == ConcernKey.ACNE
        assert [c.concern for c in others] == [ConcernKey.PIGMENTATION]
        assert notes == [ACNE_PRIORITY_NOTE]

    def test_no_concerns(self):
        """No concerns gives no primary."""
        assert select_primary_concern([], []) == (None, [])

    def test_scar_band_defaults_to_yellow(self):
        """Acne scars take the acne band, yellow when absent."""
        ctx = RecommendationContext(main_concerns=["Acne scars"], scar_type="Rolling")
        selection = collect_concern_selections(ctx)[0]
        assert selection.subtype == "Rolling"
        assert selection.band == Band.YELLOW


class TestAcneSubtype:
    """Tests for infer_acne_subtype precedence."""

    def test_flag_wins(self):
        ctx = RecommendationContext(
            decision_flags=DecisionFlags(acne_subtype="Comedonal"),
            acne_categories=["Hormonal"],
        )
        assert infer_acne_subtype(ctx) == "Comedonal"

    def test_category_precedence(self):
        """Hormonal outranks comedonal among declared categories."""
        ctx = RecommendationContext(acne_categories=["Comedonal", "Hormonal"])
        assert infer_acne_subtype(ctx) == "Hormonal"

    def test_pregnancy_then_default(self):
        assert infer_acne_subtype(RecommendationContext(pregnancy=True)) == "Pregnancy"
        assert infer_acne_subtype(RecommendationContext()) == "Inflammatory"


class TestSkinType:
    """Tests for derive_skin_type_key."""

    def test_elevated_sensitivity_is_sensitive(self):
        ctx = RecommendationContext(skin_type="Oily", effective_bands={"sensitivity": "yellow"})
        assert derive_skin_type_key(ctx) == SkinTypeKey.SENSITIVE

    @pytest.mark.parametrize("raw,key", [
        ("Dry", SkinTypeKey.DRY),
        ("Combination", SkinTypeKey.COMBO),
        ("Oily", SkinTypeKey.OILY),
        (None, SkinTypeKey.NORMAL),
    ])
    def test_stated_type(self, raw, key):
        assert derive_skin_type_key(RecommendationContext(skin_type=raw)) == key


# =============================================================================
# MATRIX
# =============================================================================

class TestMatrixFallbacks:
    """Tests for fetch_matrix_entry."""

    def test_band_ladder(self):
        """Green acne falls back to the blue row with a note."""
        notes = []
        selection = ConcernSelection(ConcernKey.ACNE, "Inflammatory", Band.GREEN, 1)
        entry = fetch_matrix_entry(selection, SkinTypeKey.OILY, notes)
        assert entry.band == Band.BLUE
        assert notes == ["Fell back to BLUE band for acne Inflammatory."]

    def test_normal_skin_fallback(self):
        """Pores on dry skin use the Normal row."""
        notes = []
        selection = ConcernSelection(ConcernKey.PORES, "General", Band.BLUE, 5)
        entry = fetch_matrix_entry(selection, SkinTypeKey.DRY, notes)
        assert entry.skin_type == SkinTypeKey.NORMAL
        assert "Used Normal skin fallback for pores." in notes

    def test_complete_miss_returns_none(self):
        """A miss on every fallback returns None without raising."""
        selection = ConcernSelection(ConcernKey.ACNE, "Hormonal", Band.BLUE, 1)
        assert fetch_matrix_entry(selection, SkinTypeKey.NORMAL, []) is None

    @pytest.mark.parametrize("bands,key", [
        ({"sebum": Band.GREEN}, "Dry-Hydrated"),
        ({"sebum": Band.BLUE, "moisture": Band.YELLOW}, "Combo-Dehydrated"),
        ({"sebum": Band.YELLOW}, "Oily-Hydrated-Moderate"),
        ({"sebum": Band.RED, "moisture": Band.RED}, "Oily-Dehydrated-Severe"),
        ({}, None),
    ])
    def test_skin_profile_key(self, bands, key):
        assert skin_profile_key(bands) == key


# =============================================================================
# VARIANTS
# =============================================================================

class TestVariants:
    """Tests for the three-variant build."""

    def test_version(self):
        assert ENGINE_VERSION == "1.0.0"

    def test_three_variants_balanced_selected(self, oily_acne):
        """Conservative, balanced, comprehensive; balanced is recommended."""
        assert [r.type for r in oily_acne.routines] == [
            VariantType.CONSERVATIVE, VariantType.BALANCED, VariantType.COMPREHENSIVE,
        ]
        assert oily_acne.selected_index == 1
        assert oily_acne.selected.recommended
        assert [r.recommended for r in oily_acne.routines] == [False, True, False]
        assert [r.irritation_risk for r in oily_acne.routines] == ["low", "medium", "high"]

    def test_matrix_products(self, oily_acne):
        """Matrix row products and resolved sunscreen placeholder."""
        balanced = oily_acne.selected
        assert balanced.cleanser == "Gel-based cleanser"
        assert balanced.core_serum == "Benzoyl Peroxide 2.5%"
        assert balanced.secondary_serum == "Azelaic acid 10%"
        assert balanced.moisturizer == "Oil-free gel moisturizer"
        assert balanced.sunscreen == "Lightweight gel sunscreen SPF 50"
        assert balanced.primary_concern == "Acne (yellow)"
        assert balanced.concern_subtype == "Inflammatory"

    def test_serum_counts(self, oily_acne):
        """Conservative keeps the core only."""
        assert [r.serum_count for r in oily_acne.routines] == [1, 2, 2]
        assert oily_acne.routines[0].secondary_serum is None

    def test_am_pm_lists(self, oily_acne):
        """AM-tagged BPO stays out of PM; azelaic is used twice daily."""
        balanced = oily_acne.selected
        assert balanced.am == [
            "Gel-based cleanser",
            "Benzoyl Peroxide 2.5%",
            "Azelaic acid 10%",
            "Oil-free gel moisturizer",
            "Lightweight gel sunscreen SPF 50",
        ]
        assert balanced.pm == ["Gel-based cleanser", "Azelaic acid 10%", "Oil-free gel moisturizer"]

    def test_every_variant_has_schedule(self, oily_acne):
        for routine in oily_acne.routines:
            assert routine.schedule is not None
            assert len(routine.schedule.pm_by_day) == 7

    def test_serum_comfort_caps(self):
        """Serum comfort 1 caps every variant at one serum."""
        result = generate_recommendations(oily_acne_context(serum_comfort=1))
        assert [r.serum_count for r in result.routines] == [1, 1, 1]

    @pytest.mark.parametrize("variant,comfort,cap", [
        (VariantType.CONSERVATIVE, 3, 1),
        (VariantType.BALANCED, 3, 2),
        (VariantType.COMPREHENSIVE, 3, 3),
        (VariantType.COMPREHENSIVE, 2, 2),
    ])
    def test_serum_cap(self, variant, comfort, cap):
        assert serum_cap(variant, comfort) == cap

    def test_comprehensive_unavailable_on_conflict(self):
        """A second concern whose serums all clash with BPO marks comprehensive unavailable."""
        result = generate_recommendations(oily_acne_context(
            effective_bands={"acne": "yellow", "sebum": "yellow", "texture": "yellow"},
            main_concerns=["Acne", "Fine lines"],
        ))
        balanced = result.routines[1]
        comprehensive = result.routines[2]
        assert balanced.available
        assert not comprehensive.available
        assert comprehensive.conflict_reason == (
            "Cannot cover Texture: Retinol treatment conflicts with Benzoyl Peroxide 2.5%."
        )
        assert balanced.rationale == "Also considered: texture (yellow)."

    def test_comprehensive_names_concerns_past_the_limit(self):
        """Serum comfort 1 leaves Texture uncovered and the comprehensive notes say so."""
        result = generate_recommendations(oily_acne_context(
            effective_bands={"acne": "yellow", "sebum": "yellow", "texture": "yellow"},
            main_concerns=["Acne", "Fine lines"],
            serum_comfort=1,
        ))
        balanced = result.routines[1]
        comprehensive = result.routines[2]
        assert comprehensive.available
        assert "Serum limit 1 reached; not covered: Texture." in comprehensive.notes
        assert not any(n.startswith("Serum limit") for n in balanced.notes)

    def test_placeholder_routine_resolves_by_profile(self):
        """PIE scars resolve placeholders through the oily profile and add a caution."""
        result = generate_recommendations(RecommendationContext(
            effective_bands={"acne": "yellow", "sebum": "yellow"},
            skin_type="Oily",
            main_concerns=["Acne scars"],
            scar_type="PIE",
            timezone="UTC",
        ))
        balanced = result.selected
        assert balanced.cleanser == "Gel-based cleanser"
        assert balanced.core_serum == "Azelaic acid 10%"
        assert balanced.secondary_serum == "Adapalene 0.1%"
        assert any(n.startswith("Compatibility caution:") for n in balanced.notes)
        assert "Matrix remark: Post-inflammatory erythema (red marks)" in result.notes

    def test_no_concerns_uses_skin_type_defaults(self):
        """No declared concern falls back to the skin-type routine."""
        result = generate_recommendations(RecommendationContext(skin_type="Oily", timezone="UTC"))
        balanced = result.selected
        assert balanced.core_serum == "Niacinamide serum"
        assert balanced.serum_count == 1
        assert "No primary concern detected; defaulting to skin-type routine." in result.notes
        assert "Using skin type fallback routine for Oily." in result.notes


class TestAugmentation:
    """Tests for augment_serums on hand-built rows."""

    def _routine(self):
        loader = get_loader()
        return RoutineState(
            cleanser=loader.make_product("Gel-based cleanser", Slot.CLEANSER),
            core_serum=loader.make_product("Benzoyl Peroxide 2.5%", Slot.CORE_SERUM),
            moisturizer=loader.make_product("Oil-free gel", Slot.MOISTURIZER),
            sunscreen=loader.make_product("Lightweight gel sunscreen SPF 50", Slot.SUNSCREEN),
        )

    def test_referral_secondary_is_noted(self):
        """A referral cell in the secondary slot is skipped with a note."""
        routine = self._routine()
        entry = MatrixEntry(
            concern=ConcernKey.ACNE,
            subtype="Inflammatory",
            skin_type=SkinTypeKey.OILY,
            band=Band.YELLOW,
            cleanser=routine.cleanser,
            core_serum=routine.core_serum,
            moisturizer=routine.moisturizer,
            sunscreen=routine.sunscreen,
            secondary_serum=MatrixProduct(
                slot=Slot.SECONDARY_SERUM,
                raw_name="REFERRAL",
                placeholder=PlaceholderKind.REFERRAL,
            ),
        )
        notes = []
        outcome = augment_serums(
            routine, entry, [], VariantType.BALANCED, 2, SafetyGates(),
            {"acne": Band.YELLOW, "sebum": Band.YELLOW}, SkinTypeKey.OILY, notes,
        )
        assert outcome.available
        assert routine.secondary_serums == []
        assert notes == ["Skipped Acne serum: referral placeholder."]


# =============================================================================
# SAFETY SHORT-CIRCUITS
# =============================================================================

class TestShortCircuits:
    """Tests for the referral and barrier-first outcomes."""

    def test_severe_cystic_referral(self):
        """Severe cystic acne returns a single referral variant."""
        result = generate_recommendations(oily_acne_context(severe_cystic_acne=True))
        assert len(result.routines) == 1
        referral = result.routines[0]
        assert referral.type == VariantType.REFERRAL
        assert referral.sunscreen == REFERRAL_SUNSCREEN
        assert referral.core_serum == "-"
        assert referral.serum_count == 0
        assert referral.recommended
        assert not referral.available
        assert result.selected_index == 0

    def test_referral_matrix_row(self):
        """A nodulocystic decision lands on a referral row."""
        result = generate_recommendations(oily_acne_context(
            effective_bands={"acne": "red", "sebum": "yellow"},
            decision_flags=DecisionFlags(acne_subtype="Nodulocystic"),
        ))
        assert result.routines[0].type == VariantType.REFERRAL
        assert "Matrix row indicates dermatologist referral." in result.notes
        assert result.notes[-1] == REFERRAL_NOTE
        assert result.concerns[0].subtype == "Nodulocystic"

    def test_barrier_first(self):
        """High barrier stress returns the barrier-first routine."""
        result = generate_recommendations(oily_acne_context(barrier_stress_high=True))
        assert len(result.routines) == 1
        routine = result.routines[0]
        assert routine.type == VariantType.BARRIER_FIRST
        assert routine.core_serum == "Niacinamide serum"
        assert routine.moisturizer == "Barrier repair cream"
        assert routine.concern_subtype == "Barrier"
        assert routine.recommended

    def test_cystic_beats_barrier(self):
        """The referral gate is checked first."""
        result = generate_recommendations(oily_acne_context(severe_cystic_acne=True, barrier_stress_high=True))
        assert result.routines[0].type == VariantType.REFERRAL


# =============================================================================
# SAFETY PASSES
# =============================================================================

class TestSafetyPasses:
    """Tests for pregnancy, isotretinoin and allergy swaps."""

    def test_pregnancy_comedonal(self):
        """Adapalene and salicylic cleanser are swapped out; substitutes avoid duplicates."""
        result = generate_recommendations(oily_acne_context(acne_categories=["Comedonal"], pregnancy=True))
        conservative, balanced, _ = result.routines
        assert conservative.core_serum == "Azelaic acid 10%"
        assert balanced.core_serum == "Niacinamide serum"
        assert balanced.secondary_serum == "Azelaic acid 10%"
        assert balanced.cleanser == "Gentle foaming cleanser"
        assert any(n.startswith("Pregnancy safety: replaced core serum") for n in balanced.notes)

    def test_pregnancy_removes_unsafe_everywhere(self):
        """No variant keeps a retinoid, BPO or hydroxy acid."""
        result = generate_recommendations(oily_acne_context(pregnancy=True))
        for routine in result.routines:
            for serum in all_serums(routine):
                assert "Adapalene" not in serum
                assert "Benzoyl" not in serum

    def test_isotretinoin_recovery(self):
        """BPO is replaced and the routine turns gentle."""
        result = generate_recommendations(oily_acne_context(recent_isotretinoin=True))
        balanced = result.selected
        assert balanced.core_serum == "Niacinamide serum"
        assert balanced.secondary_serum == "Azelaic acid 10%"
        assert balanced.moisturizer == "Barrier repair cream"
        assert balanced.cleanser == "Gentle foaming cleanser"

    def test_allergy_swap(self):
        """An azelaic allergy swaps the PIE core and never reintroduces it."""
        result = generate_recommendations(RecommendationContext(
            effective_bands={"pigmentation_red": "yellow", "sebum": "yellow"},
            skin_type="Oily",
            main_concerns=["Pigmentation"],
            pigmentation_type="PIE (red marks)",
            allergies=["Azelaic"],
            timezone="UTC",
        ))
        conservative, balanced, _ = result.routines
        assert conservative.core_serum == "Vitamin C derivative serum"
        assert balanced.core_serum == "Vitamin C derivative serum"
        assert balanced.secondary_serum == "Niacinamide serum"
        for routine in result.routines:
            assert not any("Azelaic" in s for s in all_serums(routine))

    def test_allergy_blocks_augmentation(self):
        """A blocked secondary is skipped with a note."""
        result = generate_recommendations(RecommendationContext(
            effective_bands={"pores": "yellow", "sebum": "yellow"},
            skin_type="Oily",
            main_concerns=["Large pores"],
            allergies=["niacinamide"],
            timezone="UTC",
        ))
        balanced = result.selected
        assert balanced.serum_count == 1
        assert "Skipped Niacinamide serum due to safety gate (niacinamide)." in balanced.notes

    def test_parse_allergies(self):
        assert parse_allergies("Niacinamide; aspirin / None") == ["niacinamide", "aspirin"]
        assert parse_allergies(None) == []
