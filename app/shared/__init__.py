"""Skin Consult Shared Utilities"""

from .hashing import canonicalize_and_hash, verify_hash

__all__ = [
    "canonicalize_and_hash",
    "verify_hash",
]
