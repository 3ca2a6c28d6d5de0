"""
Routine Recommendation Module

Purpose: reconciled bands + consult context -> conservative, balanced and
comprehensive routine variants, each with AM/PM lists and a weekly plan.

This module does NOT:
- Ask follow-up questions or change bands
- Load or validate catalog files
- Decide which night an active runs (see app.schedule)

Version: recommend_v1
"""

from .models import (
    ConcernSelection,
    DecisionFlags,
    RecommendationContext,
    RecommendationResult,
    RoutineState,
    RoutineVariant,
    VariantType,
)
from .concerns import collect_concern_selections, normalize_concern_label, select_primary_concern
from .matrix import fetch_matrix_entry, skin_profile_key
from .safety import SafetyGates, apply_safety_passes, build_safety_gates, parse_allergies
from .engine import ENGINE_VERSION, generate_recommendations

__version__ = "recommend_v1"

__all__ = [
    "ConcernSelection",
    "DecisionFlags",
    "RecommendationContext",
    "RecommendationResult",
    "RoutineState",
    "RoutineVariant",
    "VariantType",
    "collect_concern_selections",
    "normalize_concern_label",
    "select_primary_concern",
    "fetch_matrix_entry",
    "skin_profile_key",
    "SafetyGates",
    "apply_safety_passes",
    "build_safety_gates",
    "parse_allergies",
    "ENGINE_VERSION",
    "generate_recommendations",
]
