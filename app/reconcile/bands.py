"""
Skin Consult Bands v1.0
Ordinal severity bands shared by every tracked skin condition.

Ordering: green < blue < yellow < red (total order).
Merging is "worst wins": the more severe band is always kept, so merge is
commutative and idempotent.

Usage:
    from app.reconcile.bands import Band, worst_band, parse_band

    worst_band(Band.BLUE, Band.YELLOW)  # Band.YELLOW
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Dict, Iterable, Optional, Union


# =============================================================================
# BAND ENUM
# =============================================================================

class Band(str, Enum):
    GREEN = "green"
    BLUE = "blue"
    YELLOW = "yellow"
    RED = "red"


BAND_RANK: Dict[Band, int] = {
    Band.GREEN: 0,
    Band.BLUE: 1,
    Band.YELLOW: 2,
    Band.RED: 3,
}

# Sort key used by concern ordering: lower sorts first (most severe first).
BAND_PRIORITY: Dict[Band, int] = {
    Band.RED: 1,
    Band.YELLOW: 2,
    Band.BLUE: 3,
    Band.GREEN: 4,
}

BandLike = Union[Band, str, None]

_BAND_WORD = re.compile(r"\b(red|yellow|blue|green)\b", re.IGNORECASE)


# =============================================================================
# PARSING
# =============================================================================

def parse_band(value: BandLike) -> Optional[Band]:
    """Coerce a band or band name into a Band. Unknown values return None."""
    if value is None:
        return None
    if isinstance(value, Band):
        return value
    text = str(value).strip().lower()
    for band in Band:
        if band.value == text:
            return band
    return None


def band_from_label(label: Optional[str]) -> Optional[Band]:
    """
    Extract the band word embedded in a form label.

    "Oily all day (Red)" -> Band.RED. The most severe word wins when a label
    carries more than one.
    """
    if not label:
        return None
    found = [parse_band(m.group(1)) for m in _BAND_WORD.finditer(label)]
    return merge_bands(found)


def is_elevated(value: BandLike) -> bool:
    """True for yellow/red readings."""
    band = parse_band(value)
    return band in (Band.YELLOW, Band.RED)


def is_calm(value: BandLike) -> bool:
    """True for green/blue readings. Missing readings are not calm."""
    band = parse_band(value)
    return band in (Band.GREEN, Band.BLUE)


# =============================================================================
# MERGE
# =============================================================================

def worst_band(a: BandLike, b: BandLike) -> Optional[Band]:
    """Worst-wins merge of two optional bands."""
    left = parse_band(a)
    right = parse_band(b)
    if left is None:
        return right
    if right is None:
        return left
    return left if BAND_RANK[left] >= BAND_RANK[right] else right


def merge_bands(bands: Iterable[BandLike]) -> Optional[Band]:
    """Worst-wins merge of any number of optional bands."""
    merged: Optional[Band] = None
    for band in bands:
        merged = worst_band(merged, band)
    return merged


def merge_band_maps(
    base: Dict[str, Band],
    updates: Dict[str, Band],
) -> Dict[str, Band]:
    """Merge two dimension -> band maps key by key, worst wins."""
    merged = dict(base)
    for key, band in updates.items():
        merged[key] = worst_band(merged.get(key), band)
    return merged
