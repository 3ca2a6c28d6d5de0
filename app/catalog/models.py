"""
Skin Catalog Models

Pydantic model for registry product metadata, plus the resolved matrix
records the recommender consumes.

Version: catalog_v1
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from app.reconcile.bands import Band


class ConcernKey(str, Enum):
    ACNE = "acne"
    PIGMENTATION = "pigmentation"
    PORES = "pores"
    TEXTURE = "texture"
    SEBUM = "sebum"
    ACNESCARS = "acnescars"


class SkinTypeKey(str, Enum):
    DRY = "Dry"
    COMBO = "Combo"
    OILY = "Oily"
    SENSITIVE = "Sensitive"
    NORMAL = "Normal"


class Slot(str, Enum):
    CLEANSER = "cleanser"
    CORE_SERUM = "core_serum"
    SECONDARY_SERUM = "secondary_serum"
    MOISTURIZER = "moisturizer"
    SUNSCREEN = "sunscreen"


REQUIRED_SLOTS = (Slot.CLEANSER, Slot.CORE_SERUM, Slot.MOISTURIZER, Slot.SUNSCREEN)


class PlaceholderKind(str, Enum):
    """Matrix cells that are not concrete products."""
    REFERRAL = "referral"
    SKIN_TYPE = "skin_type"


class ConfigurationError(Exception):
    """Catalog integrity violation. Raised at load, never tolerated silently."""

    code = "CATALOG_CONFIGURATION_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.code, "message": self.message}


class ProductInfo(BaseModel):
    """
    Registry metadata for one concrete product.

    Every concrete product carries ingredient tags (possibly empty) and
    keywords; keywords drive allergy matching, tags drive compatibility.
    """

    name: str = Field(..., description="Display name")
    slot: str = Field(..., description="cleanser | serum | moisturizer | sunscreen")
    aliases: List[str] = Field(default_factory=list, description="Alternate matrix spellings")
    tags: List[str] = Field(default_factory=list, description="Ingredient tags (e.g. ['retinoids'])")
    keywords: List[str] = Field(default_factory=list, description="Lowercase ingredient keywords")
    default_usage: str = Field(default="both", description="am | pm | both")
    notes: Optional[str] = Field(None, description="Free-text catalog notes")

    @field_validator("tags", "keywords", mode="before")
    @classmethod
    def normalize_terms(cls, v):
        """Normalize terms to a lowercase list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [t.strip().lower() for t in v.split(",") if t.strip()]
        return [str(t).lower().strip() for t in v if t]

    @field_validator("default_usage")
    @classmethod
    def check_usage(cls, v: str) -> str:
        v = v.lower()
        if v not in ("am", "pm", "both"):
            raise ValueError(f"default_usage must be am, pm or both, got {v!r}")
        return v

    def has_tag(self, *tags: str) -> bool:
        return any(tag in self.tags for tag in tags)


@dataclass(frozen=True)
class MatrixProduct:
    """
    One matrix cell: either a concrete registry product or a placeholder.

    Placeholders keep `info=None`; the recommender resolves skin-type
    placeholders into concrete products at recommendation time.
    """
    slot: Slot
    raw_name: str
    info: Optional[ProductInfo] = None
    placeholder: Optional[PlaceholderKind] = None
    dynamic: bool = False

    @property
    def name(self) -> str:
        if self.info is not None:
            return self.info.name
        if self.placeholder == PlaceholderKind.REFERRAL:
            return "Dermatologist referral required"
        return self.raw_name

    @property
    def tags(self) -> List[str]:
        return list(self.info.tags) if self.info else []

    @property
    def keywords(self) -> List[str]:
        return list(self.info.keywords) if self.info else []

    @property
    def is_referral(self) -> bool:
        return self.placeholder == PlaceholderKind.REFERRAL

    @property
    def is_skin_type_placeholder(self) -> bool:
        return self.placeholder == PlaceholderKind.SKIN_TYPE

    def has_tag(self, *tags: str) -> bool:
        return any(tag in self.tags for tag in tags)

    def in_slot(self, slot: Slot) -> "MatrixProduct":
        return replace(self, slot=slot)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slot": self.slot.value,
            "name": self.name,
            "raw_name": self.raw_name,
            "tags": self.tags,
            "placeholder": self.placeholder.value if self.placeholder else None,
            "dynamic": self.dynamic,
        }


@dataclass(frozen=True)
class MatrixEntry:
    concern: ConcernKey
    subtype: str
    skin_type: SkinTypeKey
    band: Band
    cleanser: MatrixProduct
    core_serum: MatrixProduct
    moisturizer: MatrixProduct
    sunscreen: MatrixProduct
    secondary_serum: Optional[MatrixProduct] = None
    remarks: Optional[str] = None

    def required_products(self) -> List[MatrixProduct]:
        return [self.cleanser, self.core_serum, self.moisturizer, self.sunscreen]

    def has_referral(self) -> bool:
        return any(p.is_referral for p in self.required_products())
