"""
Self-reported bands from the consultation form.

The hydration and oil questions carry their band in the option label
("Oily all day (Red)"); declared concerns map to coarse claims.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional

from app.reconcile.bands import Band, band_from_label


CLAIM_BAND = Band.YELLOW

_TEXTURE_CONCERNS = ("dullness", "fine lines")


def _concern_set(concerns: Optional[Iterable[str]]) -> set:
    return {str(c).strip().lower() for c in (concerns or []) if str(c).strip()}


def derive_self_bands(form: Mapping[str, Any]) -> Dict[str, Band]:
    """Derive SelfReportedBands from raw form fields. Unset dimensions are omitted."""
    bands: Dict[str, Band] = {}

    moisture = band_from_label(form.get("hydration_levels"))
    if moisture:
        bands["moisture"] = moisture
    sebum = band_from_label(form.get("oil_levels"))
    if sebum:
        bands["sebum"] = sebum

    concerns = _concern_set(form.get("main_concerns"))
    if "acne" in concerns:
        bands["acne_claim"] = CLAIM_BAND
    if "large pores" in concerns:
        bands["pores"] = CLAIM_BAND
    if any(c in concerns for c in _TEXTURE_CONCERNS):
        bands["texture"] = CLAIM_BAND
    if "pigmentation" in concerns:
        kind = str(form.get("pigmentation_type") or "").lower()
        if "pie" in kind or "red" in kind:
            bands["pigmentation_red_claim"] = CLAIM_BAND
        if "pih" in kind or "brown" in kind or "melasma" in kind:
            bands["pigmentation_brown_claim"] = CLAIM_BAND

    return bands
