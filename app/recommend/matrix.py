"""
Matrix resolution for one concern selection.

fetch_matrix_entry walks a bounded fallback chain (band ladder, then the
General subtype, then Normal skin) and never raises on a miss. Skin-type
placeholders are resolved here into concrete registry products.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from app.catalog.loader import PROFILE_SLOTS, get_loader
from app.catalog.models import MatrixEntry, MatrixProduct, SkinTypeKey, Slot
from app.reconcile.bands import Band, is_elevated
from app.recommend.concerns import DEFAULT_SUBTYPE
from app.recommend.models import ConcernSelection, RoutineState

logger = logging.getLogger(__name__)

BAND_LADDER: Dict[Band, Tuple[Band, ...]] = {
    Band.RED: (Band.RED, Band.YELLOW, Band.BLUE),
    Band.YELLOW: (Band.YELLOW, Band.BLUE),
    Band.BLUE: (Band.BLUE,),
    Band.GREEN: (Band.GREEN, Band.BLUE),
}


def band_fallback_order(band: Optional[Band]) -> Tuple[Band, ...]:
    return BAND_LADDER.get(band, (Band.BLUE,))


def fetch_matrix_entry(
    selection: ConcernSelection,
    skin_type: SkinTypeKey,
    notes: List[str],
) -> Optional[MatrixEntry]:
    """
    Look up the matrix row for a selection.

    Tries the band ladder first, then the General subtype, then Normal skin.
    Each fallback that succeeds leaves a note. Returns None on a complete miss.
    """
    loader = get_loader()
    for band in band_fallback_order(selection.band):
        entry = loader.lookup_matrix_entry(selection.concern, selection.subtype, skin_type, band)
        if entry is not None:
            if band != selection.band:
                notes.append(
                    f"Fell back to {band.value.upper()} band for "
                    f"{selection.concern.value} {selection.subtype}."
                )
            return entry

    if selection.subtype != DEFAULT_SUBTYPE:
        entry = fetch_matrix_entry(replace(selection, subtype=DEFAULT_SUBTYPE), skin_type, notes)
        if entry is not None:
            notes.append(f"Used General subtype fallback for {selection.concern.value}.")
            return entry

    if skin_type != SkinTypeKey.NORMAL:
        entry = fetch_matrix_entry(selection, SkinTypeKey.NORMAL, notes)
        if entry is not None:
            notes.append(f"Used Normal skin fallback for {selection.concern.value}.")
            return entry

    logger.debug(f"No matrix entry for {selection.concern.value}/{selection.subtype}/{skin_type.value}")
    return None


# =============================================================================
# SKIN-TYPE PLACEHOLDERS
# =============================================================================

def skin_profile_key(bands: Dict[str, Band]) -> Optional[str]:
    """
    Profile key from sebum and moisture bands, e.g. "Oily-Dehydrated-Severe".

    No sebum reading means no profile; the caller falls back to the
    stated skin type's defaults.
    """
    sebum = bands.get("sebum")
    if sebum is None:
        return None
    hydration = "Dehydrated" if is_elevated(bands.get("moisture")) else "Hydrated"
    if sebum == Band.GREEN:
        return f"Dry-{hydration}"
    if sebum == Band.BLUE:
        return f"Combo-{hydration}"
    severity = "Severe" if sebum == Band.RED else "Moderate"
    return f"Oily-{hydration}-{severity}"


def resolve_placeholder(
    product: MatrixProduct,
    bands: Dict[str, Band],
    skin_type: SkinTypeKey,
) -> MatrixProduct:
    if not product.is_skin_type_placeholder:
        return product
    loader = get_loader()
    name = None
    # Sensitive skin keeps its own defaults rather than the oil/hydration profile.
    if product.slot in PROFILE_SLOTS and skin_type != SkinTypeKey.SENSITIVE:
        profile_key = skin_profile_key(bands)
        if profile_key is not None:
            name = loader.profile_product_name(profile_key, product.slot)
    if name is None:
        name = loader.skin_type_default_name(skin_type, product.slot)
    resolved = replace(loader.make_product(name, product.slot), dynamic=True)
    logger.debug(f"Resolved {product.slot.value} placeholder to {resolved.name}")
    return resolved


def build_routine_from_entry(
    entry: MatrixEntry,
    bands: Dict[str, Band],
    skin_type: SkinTypeKey,
) -> RoutineState:
    """Primary routine skeleton; secondary serums are added by augmentation."""
    return RoutineState(
        cleanser=resolve_placeholder(entry.cleanser, bands, skin_type),
        core_serum=resolve_placeholder(entry.core_serum, bands, skin_type),
        moisturizer=resolve_placeholder(entry.moisturizer, bands, skin_type),
        sunscreen=resolve_placeholder(entry.sunscreen, bands, skin_type),
    )


def build_skin_type_fallback_routine(skin_type: SkinTypeKey, notes: List[str]) -> RoutineState:
    loader = get_loader()
    notes.append(f"Using skin type fallback routine for {skin_type.value}.")

    def product(slot: Slot) -> MatrixProduct:
        return loader.make_product(loader.skin_type_default_name(skin_type, slot), slot)

    return RoutineState(
        cleanser=product(Slot.CLEANSER),
        core_serum=product(Slot.CORE_SERUM),
        moisturizer=product(Slot.MOISTURIZER),
        sunscreen=product(Slot.SUNSCREEN),
    )
