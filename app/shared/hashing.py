"""
Skin Consult Canonical Hashing
Single source of truth for request audit hashes.
"""

import hashlib
import json
from typing import Any

# Fields to exclude from hashing (volatile/generated)
VOLATILE_FIELDS = frozenset([
    "now",
    "timestamp",
    "contract_version",
    "_metadata",
])


def canonicalize(obj: Any, exclude_volatile: bool = True) -> str:
    """
    Convert object to canonical JSON string.
    Deterministic: same consultation always produces the same output,
    whatever the key order or the time it was submitted.
    """
    def _clean(o: Any) -> Any:
        if isinstance(o, dict):
            return {
                k: _clean(v)
                for k, v in sorted(o.items())
                if not (exclude_volatile and k in VOLATILE_FIELDS)
            }
        elif isinstance(o, (list, tuple)):
            return [_clean(i) for i in o]
        elif isinstance(o, float):
            return round(o, 10)
        return o

    cleaned = _clean(obj)
    return json.dumps(cleaned, sort_keys=True, separators=(',', ':'), ensure_ascii=True)


def canonicalize_and_hash(obj: Any, exclude_volatile: bool = True) -> str:
    """Returns: "sha256:<64-char-hex>" """
    canonical = canonicalize(obj, exclude_volatile)
    digest = hashlib.sha256(canonical.encode('utf-8')).hexdigest()
    return f"sha256:{digest}"


def verify_hash(obj: Any, expected_hash: str, exclude_volatile: bool = True) -> bool:
    """Check a stored audit hash (e.g. a recommend response's input_hash) against its payload."""
    return canonicalize_and_hash(obj, exclude_volatile) == expected_hash
