"""
Skin Catalog Tests
Unit tests for the registry/matrix/profile loader, its integrity checks and
the ingredient compatibility table.

Run with:
    pytest tests/test_catalog.py -v
"""

import json
import shutil
from pathlib import Path

import pytest

from app.catalog import (
    CATALOG_VERSION,
    CatalogLoader,
    Compatibility,
    ConcernKey,
    ConfigurationError,
    SkinTypeKey,
    Slot,
    evaluate_compatibility,
    get_loader,
    get_product_info,
    list_subtypes,
    lookup_matrix_entry,
    pair_compatibility,
)
from app.catalog.loader import CATALOG_DIR_ENV, MATRIX_FILE, PROFILES_FILE, REGISTRY_FILE
from app.reconcile.bands import Band

DATA_DIR = Path(__file__).resolve().parent.parent / "app" / "catalog" / "data"


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def fresh_loader():
    """Every test starts and ends with an unloaded catalog."""
    CatalogLoader.reset()
    yield
    CatalogLoader.reset()


@pytest.fixture
def catalog_copy(tmp_path, monkeypatch):
    """A writable copy of the shipped catalog, selected via the env override."""
    for name in (REGISTRY_FILE, MATRIX_FILE, PROFILES_FILE):
        shutil.copy(DATA_DIR / name, tmp_path / name)
    monkeypatch.setenv(CATALOG_DIR_ENV, str(tmp_path))
    return tmp_path


def _append_matrix_row(directory: Path, row: str):
    with open(directory / MATRIX_FILE, "a", encoding="utf-8") as f:
        f.write(row + "\n")


# =============================================================================
# LOADING
# =============================================================================

class TestLoader:
    """Tests for CatalogLoader."""

    def test_version(self):
        """Catalog version is set."""
        assert CATALOG_VERSION == "1.0.0"

    def test_singleton(self):
        """get_loader returns one shared instance."""
        assert get_loader() is get_loader()

    def test_shipped_catalog_loads(self):
        """The shipped data passes every integrity check."""
        loader = get_loader()
        assert loader.registry_version == "1.0"
        assert len(loader.products) > 20

    def test_every_product_has_tags_and_keywords(self):
        """Concrete products always carry tag and keyword lists."""
        for product in get_loader().products:
            assert isinstance(product.tags, list)
            assert product.keywords

    def test_alias_lookup(self):
        """Aliases resolve case-insensitively to the display product."""
        assert get_product_info("10% azelaic acid").name == "Azelaic acid 10%"
        assert get_product_info("Adapalene 0.1% PM").has_tag("retinoids")
        assert get_product_info("unknown thing") is None


class TestMatrixLookup:
    """Tests for lookup_matrix_entry and list_subtypes."""

    def test_known_entry(self):
        """Oily inflammatory yellow resolves to BPO with azelaic."""
        entry = lookup_matrix_entry("acne", "Inflammatory", "Oily", "yellow")
        assert entry.core_serum.name == "Benzoyl Peroxide 2.5%"
        assert entry.secondary_serum.name == "Azelaic acid 10%"
        assert entry.cleanser.name == "Gel-based cleanser"

    def test_enum_keys(self):
        """Enum and string keys are interchangeable."""
        entry = lookup_matrix_entry(ConcernKey.ACNE, "Inflammatory", SkinTypeKey.OILY, Band.YELLOW)
        assert entry is not None

    def test_placeholders_are_kept(self):
        """Skin-type placeholder cells stay unresolved in the matrix."""
        entry = lookup_matrix_entry("acnescars", "PIE", "Oily", "yellow")
        assert entry.cleanser.is_skin_type_placeholder
        assert entry.cleanser.info is None

    def test_referral_rows(self):
        """Nodulocystic rows are referral rows."""
        entry = lookup_matrix_entry("acne", "Nodulocystic", "Oily", "red")
        assert entry.has_referral()

    def test_miss_returns_none(self):
        """Missing combinations and unknown keys return None."""
        assert lookup_matrix_entry("acne", "Inflammatory", "Oily", "green") is None
        assert lookup_matrix_entry("freckles", "General", "Oily", "red") is None
        assert lookup_matrix_entry("acne", "Inflammatory", "Scaly", "red") is None

    def test_list_subtypes(self):
        """Subtypes are listed in matrix order."""
        subtypes = list_subtypes("acne")
        assert subtypes[:3] == ["Inflammatory", "Comedonal", "Situational"]
        assert "Pregnancy" in subtypes
        assert list_subtypes("Acne scars")[0] == "IcePick"
        assert list_subtypes("freckles") == []

    def test_profiles_and_defaults(self):
        """Profile and skin-type default names come from the profile table."""
        loader = get_loader()
        assert loader.profile_product_name("Oily-Hydrated-Moderate", Slot.MOISTURIZER) == "Oil-free gel"
        assert loader.profile_product_name("Oily-Hydrated-Moderate", Slot.CORE_SERUM) is None
        assert loader.skin_type_default_name("Sensitive", Slot.SUNSCREEN) == "Pure mineral sunscreen SPF 50"


# =============================================================================
# INTEGRITY
# =============================================================================

class TestIntegrity:
    """Integrity violations raise ConfigurationError at load."""

    def test_unknown_product(self, catalog_copy):
        """A matrix cell naming an unregistered product fails the load."""
        _append_matrix_row(catalog_copy, "Acne,General,Oily,Blue,Gel cleanser,Snail slime,,Oil-free gel,SKINTYPE_DEFAULT,")
        with pytest.raises(ConfigurationError, match="Snail slime"):
            get_loader()

    def test_missing_required_slot(self, catalog_copy):
        """An empty required slot fails the load."""
        _append_matrix_row(catalog_copy, "Acne,General,Oily,Blue,Gel cleanser,,,Oil-free gel,SKINTYPE_DEFAULT,")
        with pytest.raises(ConfigurationError, match="mandatory"):
            get_loader()

    def test_unknown_band(self, catalog_copy):
        """An unknown band fails the load."""
        _append_matrix_row(catalog_copy, "Acne,General,Oily,Purple,Gel cleanser,Niacinamide,,Oil-free gel,SKINTYPE_DEFAULT,")
        with pytest.raises(ConfigurationError):
            get_loader()

    def test_profile_pointing_at_placeholder(self, catalog_copy):
        """A profile may never point at another placeholder."""
        path = catalog_copy / PROFILES_FILE
        data = json.loads(path.read_text(encoding="utf-8"))
        data["profiles"]["Dry-Hydrated"]["cleanser"] = "SKINTYPE_DEFAULT"
        path.write_text(json.dumps(data), encoding="utf-8")
        with pytest.raises(ConfigurationError, match="placeholder"):
            get_loader()

    def test_missing_file(self, tmp_path, monkeypatch):
        """A missing data file fails the load."""
        monkeypatch.setenv(CATALOG_DIR_ENV, str(tmp_path))
        with pytest.raises(ConfigurationError, match="not found"):
            get_loader()

    def test_error_payload(self):
        """ConfigurationError carries a machine code."""
        err = ConfigurationError("boom")
        assert err.to_dict() == {"error": "CATALOG_CONFIGURATION_ERROR", "message": "boom"}


# =============================================================================
# COMPATIBILITY
# =============================================================================

class TestCompatibility:
    """Tests for the pairwise compatibility table."""

    def test_symmetric(self):
        """Pair order never matters."""
        assert pair_compatibility("retinoids", "aha") == pair_compatibility("aha", "retinoids")

    @pytest.mark.parametrize("a,b,verdict", [
        ("retinoids", "benzoyl_peroxide", Compatibility.DISALLOW),
        ("vitamin_c_ascorbic", "bha", Compatibility.DISALLOW),
        ("retinoids", "azelaic", Compatibility.CAUTION),
        ("niacinamide", "azelaic", Compatibility.ALLOW),
    ])
    def test_pairs(self, a, b, verdict):
        assert pair_compatibility(a, b) == verdict

    def test_disallowed_candidate(self):
        """A disallowed pair rejects the candidate with a reason."""
        loader = get_loader()
        existing = [loader.make_product("Benzoyl Peroxide 2.5%", Slot.CORE_SERUM)]
        result = evaluate_compatibility(existing, loader.make_product("Adapalene 0.1%", Slot.SECONDARY_SERUM))
        assert not result.allowed
        assert result.conflicting_with == "Benzoyl Peroxide 2.5%"

    def test_caution_candidate(self):
        """A caution pair is allowed and noted."""
        loader = get_loader()
        existing = [loader.make_product("Azelaic acid 10%", Slot.CORE_SERUM)]
        result = evaluate_compatibility(existing, loader.make_product("Adapalene 0.1%", Slot.SECONDARY_SERUM))
        assert result.allowed
        assert result.cautions == ["Adapalene 0.1% requires caution with Azelaic acid 10%"]
