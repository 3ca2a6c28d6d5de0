"""
Skin Catalog Loader v1.0
========================
Loads the product registry, the concern matrix and the skin profile tables
once per process and indexes them for lookup.

Integrity is checked at load:
- every matrix cell resolves to a registry product or a known placeholder
- required slots (cleanser, core serum, moisturizer, sunscreen) are filled
- concern, band and skin type columns are known values
- profile and skin-type default cells point at concrete products

Any violation raises ConfigurationError; a half-loaded catalog is never used.

Usage:
    from app.catalog.loader import lookup_matrix_entry, get_product_info

    entry = lookup_matrix_entry("acne", "Inflammatory", "Oily", "yellow")
    entry.core_serum.name  # "Benzoyl Peroxide 2.5%"
"""

from __future__ import annotations

import csv
import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from app.catalog.models import (
    ConcernKey,
    ConfigurationError,
    MatrixEntry,
    MatrixProduct,
    PlaceholderKind,
    ProductInfo,
    SkinTypeKey,
    Slot,
)
from app.reconcile.bands import Band, parse_band

logger = logging.getLogger(__name__)

# ============================================================
# VERSION CONSTANTS
# ============================================================

CATALOG_VERSION = "1.0.0"
REGISTRY_FILE = "product_registry_v1_0.json"
MATRIX_FILE = "concern_matrix_v1_0.csv"
PROFILES_FILE = "skin_profiles_v1_0.json"

CATALOG_DIR_ENV = "SKINCARE_CATALOG_DIR"

MATRIX_COLUMNS = {
    "Cleanser": Slot.CLEANSER,
    "CoreSerum": Slot.CORE_SERUM,
    "SecondarySerum": Slot.SECONDARY_SERUM,
    "Moisturizer": Slot.MOISTURIZER,
    "Sunscreen": Slot.SUNSCREEN,
}

PROFILE_SLOTS = (Slot.CLEANSER, Slot.MOISTURIZER, Slot.SUNSCREEN)

ConcernLike = Union[ConcernKey, str]
SkinTypeLike = Union[SkinTypeKey, str]
MatrixKey = Tuple[ConcernKey, str, SkinTypeKey, Band]


def _norm(name: str) -> str:
    return (name or "").strip().lower()


def to_concern_key(raw: ConcernLike) -> ConcernKey:
    if isinstance(raw, ConcernKey):
        return raw
    key = _norm(raw)
    if key == "acne scars":
        key = "acnescars"
    try:
        return ConcernKey(key)
    except ValueError:
        raise ConfigurationError(f"Unsupported concern type '{raw}'")


def to_skin_type(raw: SkinTypeLike) -> SkinTypeKey:
    if isinstance(raw, SkinTypeKey):
        return raw
    try:
        return SkinTypeKey(str(raw).strip())
    except ValueError:
        raise ConfigurationError(f"Unsupported skin type '{raw}'")


def _data_dir() -> Path:
    override = os.getenv(CATALOG_DIR_ENV)
    if override:
        return Path(override)
    return Path(__file__).parent / "data"


# ============================================================
# DATA LOADER (SINGLETON CACHE)
# ============================================================

class CatalogLoader:
    """
    Singleton loader for the product registry, concern matrix and skin profiles.
    Loads data once and caches it in memory.
    """
    _instance = None
    _loaded = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not CatalogLoader._loaded:
            self._products: List[ProductInfo] = []
            self._alias_lookup: Dict[str, ProductInfo] = {}
            self._placeholders: Dict[str, PlaceholderKind] = {}
            self._profiles: Dict[str, Dict[str, str]] = {}
            self._skin_type_defaults: Dict[SkinTypeKey, Dict[str, str]] = {}
            self._matrix: Dict[MatrixKey, MatrixEntry] = {}
            self._subtypes: Dict[ConcernKey, List[str]] = {}
            self._registry_version = "?"
            self._load_data()
            CatalogLoader._loaded = True

    @classmethod
    def reset(cls):
        """Reset the singleton for testing purposes."""
        cls._instance = None
        cls._loaded = False

    # --------------------------------------------------------
    # Loading
    # --------------------------------------------------------

    def _load_data(self):
        data_dir = _data_dir()
        self._load_registry(data_dir / REGISTRY_FILE)
        self._load_profiles(data_dir / PROFILES_FILE)
        self._load_matrix(data_dir / MATRIX_FILE)

    @staticmethod
    def _read_json(path: Path) -> Dict:
        if not path.exists():
            logger.error(f"Catalog file not found: {path}")
            raise ConfigurationError(f"Catalog file not found: {path.name}")
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _fail(self, message: str):
        logger.error(f"CATALOG_CONFIGURATION_ERROR: {message}")
        raise ConfigurationError(message)

    def _load_registry(self, path: Path):
        registry = self._read_json(path)
        self._registry_version = registry.get("version", "?")
        allowed_tags = set(registry.get("ingredient_tags", []))

        for kind, tokens in registry.get("placeholders", {}).items():
            for token in tokens:
                self._placeholders[_norm(token)] = PlaceholderKind(kind)

        for raw in registry.get("products", []):
            try:
                info = ProductInfo(**raw)
            except ValidationError as e:
                self._fail(f"Invalid product record {raw.get('name', '?')}: {e}")
            unknown = [t for t in info.tags if t not in allowed_tags]
            if unknown:
                self._fail(f"Product '{info.name}' uses unknown ingredient tags {unknown}")
            self._products.append(info)
            for alias in [info.name, *info.aliases]:
                key = _norm(alias)
                if key in self._placeholders:
                    self._fail(f"Alias '{alias}' collides with a placeholder token")
                existing = self._alias_lookup.get(key)
                if existing is not None and existing.name != info.name:
                    self._fail(f"Alias '{alias}' maps to both '{existing.name}' and '{info.name}'")
                self._alias_lookup[key] = info

        logger.info(
            f"Loaded product registry v{self._registry_version} "
            f"({len(self._products)} products, {len(self._alias_lookup)} aliases)"
        )

    def _concrete(self, name: str, context: str) -> ProductInfo:
        if _norm(name) in self._placeholders:
            self._fail(f"{context} points at placeholder '{name}'")
        info = self._alias_lookup.get(_norm(name))
        if info is None:
            self._fail(f"{context} references unknown product '{name}'")
        return info

    def _load_profiles(self, path: Path):
        data = self._read_json(path)

        for key, slots in data.get("profiles", {}).items():
            for slot_name, product in slots.items():
                if slot_name not in {s.value for s in PROFILE_SLOTS}:
                    self._fail(f"Profile {key} defines unsupported slot '{slot_name}'")
                self._concrete(product, f"Profile {key}.{slot_name}")
            self._profiles[key] = dict(slots)

        for raw_type, slots in data.get("skin_type_defaults", {}).items():
            skin_type = to_skin_type(raw_type)
            for slot in Slot:
                if slot.value not in slots:
                    self._fail(f"Skin-type default {skin_type.value} is missing slot '{slot.value}'")
                self._concrete(slots[slot.value], f"Skin-type default {skin_type.value}.{slot.value}")
            self._skin_type_defaults[skin_type] = dict(slots)

        missing = [t.value for t in SkinTypeKey if t not in self._skin_type_defaults]
        if missing:
            self._fail(f"No skin-type defaults for {missing}")

        logger.info(
            f"Loaded skin profiles v{data.get('version', '?')} "
            f"({len(self._profiles)} profiles, {len(self._skin_type_defaults)} skin types)"
        )

    def _matrix_product(self, slot: Slot, raw_name: str, row_no: int) -> Optional[MatrixProduct]:
        name = (raw_name or "").strip()
        if not name:
            return None
        kind = self._placeholders.get(_norm(name))
        if kind is not None:
            return MatrixProduct(slot=slot, raw_name=name, placeholder=kind, dynamic=kind == PlaceholderKind.SKIN_TYPE)
        info = self._alias_lookup.get(_norm(name))
        if info is None:
            self._fail(f"Matrix row {row_no}: no product registered for '{name}' ({slot.value})")
        return MatrixProduct(slot=slot, raw_name=name, info=info)

    def _load_matrix(self, path: Path):
        if not path.exists():
            logger.error(f"Catalog file not found: {path}")
            raise ConfigurationError(f"Catalog file not found: {path.name}")

        with open(path, "r", encoding="utf-8", newline="") as f:
            for row_no, row in enumerate(csv.DictReader(f), start=2):
                if not any((v or "").strip() for v in row.values()):
                    continue
                concern = to_concern_key(row["Concern"])
                subtype = (row["Subtype"] or "").strip()
                skin_type = to_skin_type(row["SkinType"])
                band = parse_band(row["Band"])
                if band is None:
                    self._fail(f"Matrix row {row_no}: unsupported band '{row['Band']}'")

                cells = {
                    slot: self._matrix_product(slot, row.get(column), row_no)
                    for column, slot in MATRIX_COLUMNS.items()
                }
                missing = [s.value for s in (Slot.CLEANSER, Slot.CORE_SERUM, Slot.MOISTURIZER, Slot.SUNSCREEN)
                           if cells[s] is None]
                if missing:
                    self._fail(f"Matrix row {row_no} missing mandatory product(s): {missing}")

                entry = MatrixEntry(
                    concern=concern,
                    subtype=subtype,
                    skin_type=skin_type,
                    band=band,
                    cleanser=cells[Slot.CLEANSER],
                    core_serum=cells[Slot.CORE_SERUM],
                    secondary_serum=cells[Slot.SECONDARY_SERUM],
                    moisturizer=cells[Slot.MOISTURIZER],
                    sunscreen=cells[Slot.SUNSCREEN],
                    remarks=(row.get("Remarks") or "").strip() or None,
                )
                self._matrix[(concern, subtype, skin_type, band)] = entry
                subtypes = self._subtypes.setdefault(concern, [])
                if subtype not in subtypes:
                    subtypes.append(subtype)

        logger.info(f"Loaded concern matrix ({len(self._matrix)} entries, {len(self._subtypes)} concerns)")

    # --------------------------------------------------------
    # Lookups
    # --------------------------------------------------------

    @property
    def registry_version(self) -> str:
        return self._registry_version

    @property
    def products(self) -> List[ProductInfo]:
        return list(self._products)

    def lookup_matrix_entry(
        self,
        concern: ConcernLike,
        subtype: str,
        skin_type: SkinTypeLike,
        band: Union[Band, str],
    ) -> Optional[MatrixEntry]:
        try:
            key = (to_concern_key(concern), subtype, to_skin_type(skin_type), parse_band(band))
        except ConfigurationError:
            return None
        return self._matrix.get(key)

    def get_product_info(self, raw_name: str) -> Optional[ProductInfo]:
        return self._alias_lookup.get(_norm(raw_name))

    def list_subtypes(self, concern: ConcernLike) -> List[str]:
        try:
            return list(self._subtypes.get(to_concern_key(concern), []))
        except ConfigurationError:
            return []

    def make_product(self, name: str, slot: Slot) -> MatrixProduct:
        """Instantiate a concrete registry product for a routine slot."""
        info = self.get_product_info(name)
        if info is None:
            raise ConfigurationError(f"No product metadata found for '{name}'")
        return MatrixProduct(slot=slot, raw_name=name, info=info)

    def profile_product_name(self, profile_key: str, slot: Slot) -> Optional[str]:
        return self._profiles.get(profile_key, {}).get(slot.value)

    def skin_type_default_name(self, skin_type: SkinTypeLike, slot: Slot) -> str:
        defaults = self._skin_type_defaults.get(to_skin_type(skin_type))
        if defaults is None:
            defaults = self._skin_type_defaults[SkinTypeKey.NORMAL]
        return defaults[slot.value]


def get_loader() -> CatalogLoader:
    """Get the singleton catalog loader."""
    return CatalogLoader()


def lookup_matrix_entry(
    concern: ConcernLike,
    subtype: str,
    skin_type: SkinTypeLike,
    band: Union[Band, str],
) -> Optional[MatrixEntry]:
    return get_loader().lookup_matrix_entry(concern, subtype, skin_type, band)


def get_product_info(raw_name: str) -> Optional[ProductInfo]:
    return get_loader().get_product_info(raw_name)


def list_subtypes(concern: ConcernLike) -> List[str]:
    return get_loader().list_subtypes(concern)
