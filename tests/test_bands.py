"""
Skin Consult Band Tests
Unit tests for band parsing and worst-wins merging.

Run with:
    pytest tests/test_bands.py -v
"""

import itertools

import pytest

from app.reconcile.bands import (
    BAND_RANK,
    Band,
    band_from_label,
    is_calm,
    is_elevated,
    merge_band_maps,
    merge_bands,
    parse_band,
    worst_band,
)


ALL_BANDS = list(Band)


class TestParseBand:
    """Tests for parse_band and band_from_label."""

    @pytest.mark.parametrize("raw,expected", [
        ("red", Band.RED),
        (" Yellow ", Band.YELLOW),
        ("BLUE", Band.BLUE),
        (Band.GREEN, Band.GREEN),
    ])
    def test_known_values(self, raw, expected):
        """Band names parse case-insensitively."""
        assert parse_band(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "purple", "severe"])
    def test_unknown_values_return_none(self, raw):
        """Unknown values never raise."""
        assert parse_band(raw) is None

    def test_label_band_word(self):
        """The band word inside a form label is extracted."""
        assert band_from_label("Oily all day (Red)") == Band.RED
        assert band_from_label("Comfortable most of the day (Green)") == Band.GREEN

    def test_label_without_band(self):
        """A label with no band word yields None."""
        assert band_from_label("Not sure") is None
        assert band_from_label(None) is None

    def test_label_with_two_bands_takes_worst(self):
        """The most severe word wins."""
        assert band_from_label("Blue to Yellow") == Band.YELLOW


class TestWorstBand:
    """Tests for worst-wins merging."""

    def test_order(self):
        """green < blue < yellow < red."""
        ranks = [BAND_RANK[b] for b in (Band.GREEN, Band.BLUE, Band.YELLOW, Band.RED)]
        assert ranks == sorted(ranks)

    def test_commutative(self):
        """worst_band(a, b) == worst_band(b, a) for every pair."""
        for a, b in itertools.product(ALL_BANDS, ALL_BANDS):
            assert worst_band(a, b) == worst_band(b, a)

    def test_idempotent(self):
        """worst_band(a, a) == a."""
        for a in ALL_BANDS:
            assert worst_band(a, a) == a

    def test_picks_more_severe(self):
        """The merged band is never milder than either input."""
        for a, b in itertools.product(ALL_BANDS, ALL_BANDS):
            merged = worst_band(a, b)
            assert BAND_RANK[merged] == max(BAND_RANK[a], BAND_RANK[b])

    def test_none_is_identity(self):
        """A missing reading never changes the other side."""
        assert worst_band(None, Band.BLUE) == Band.BLUE
        assert worst_band(Band.RED, None) == Band.RED
        assert worst_band(None, None) is None

    def test_merge_many(self):
        """merge_bands folds worst-wins over any number of readings."""
        assert merge_bands([Band.GREEN, None, Band.YELLOW, Band.BLUE]) == Band.YELLOW
        assert merge_bands([]) is None

    def test_merge_maps(self):
        """Maps merge key by key."""
        merged = merge_band_maps(
            {"acne": Band.BLUE, "sebum": Band.RED},
            {"acne": Band.YELLOW, "pores": Band.GREEN},
        )
        assert merged == {"acne": Band.YELLOW, "sebum": Band.RED, "pores": Band.GREEN}


class TestElevation:
    """Tests for is_elevated / is_calm."""

    def test_elevated(self):
        assert is_elevated("yellow")
        assert is_elevated(Band.RED)
        assert not is_elevated("blue")

    def test_calm(self):
        assert is_calm("green")
        assert is_calm(Band.BLUE)
        assert not is_calm("red")

    def test_missing_is_neither(self):
        """A missing reading is neither calm nor elevated."""
        assert not is_calm(None)
        assert not is_elevated(None)
