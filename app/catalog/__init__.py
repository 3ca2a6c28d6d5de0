"""
Skin Catalog Module

Purpose: product registry, concern matrix and skin profile tables, loaded
once and integrity-checked before any recommendation runs.

This module does NOT:
- Decide what to recommend
- Apply safety gates
- Schedule actives

Version: catalog_v1
"""

from .models import (
    ConcernKey,
    ConfigurationError,
    MatrixEntry,
    MatrixProduct,
    ProductInfo,
    SkinTypeKey,
    Slot,
)
from .loader import (
    CATALOG_VERSION,
    CatalogLoader,
    get_loader,
    get_product_info,
    list_subtypes,
    lookup_matrix_entry,
)
from .compatibility import Compatibility, evaluate_compatibility, pair_compatibility

__version__ = "catalog_v1"

__all__ = [
    "ConcernKey",
    "ConfigurationError",
    "MatrixEntry",
    "MatrixProduct",
    "ProductInfo",
    "SkinTypeKey",
    "Slot",
    "CATALOG_VERSION",
    "CatalogLoader",
    "get_loader",
    "get_product_info",
    "list_subtypes",
    "lookup_matrix_entry",
    "Compatibility",
    "evaluate_compatibility",
    "pair_compatibility",
]
