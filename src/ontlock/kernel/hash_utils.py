"""Hash utilities with explicit canonicalization rules for stable hashing.

This module provides canonicalization and hashing functions that guarantee
stable, deterministic output across different Python versions and environments.

Key rules:
- Object keys sorted recursively
- Arrays preserve order (array order is content)
- Floats allowed, NaN/Inf BANNED (hard validation error)
- Strings normalized to NFC
- Non-JSON types forbidden
"""

import hashlib
import json
import math
import unicodedata
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ontlock.contracts import ApiSurfaceSnapshot


HASH_LENGTH = 16


class CanonicalizationError(ValueError):
    """Raised when an object cannot be canonicalized."""
    pass


def _normalize_string(s: str) -> str:
    """Normalize string to NFC (Unicode Normalization Form Canonical Composition)."""
    return unicodedata.normalize('NFC', s)


def _validate_json_type(obj: Any, path: str = "") -> None:
    """Validate that object contains only JSON-compatible types.

    Raises CanonicalizationError if non-JSON types are found.

    Note: None vs missing keys - we treat None explicitly. Missing keys in dicts
    are not represented (they simply don't exist). We do NOT treat missing keys
    as equivalent to None.
    """
    if obj is None:
        return
    elif isinstance(obj, bool):
        return
    elif isinstance(obj, int):
        return
    elif isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            raise CanonicalizationError(
                f"Invalid number at {path or '(root)'}: NaN or Inf not allowed"
            )
    elif isinstance(obj, str):
        return
    elif isinstance(obj, dict):
        for key, value in obj.items():
            if not isinstance(key, str):
                raise CanonicalizationError(
                    f"Dictionary keys must be strings at {path or '(root)'}, got {type(key).__name__}"
                )
            _validate_json_type(value, f"{path}.{key}" if path else key)
    elif isinstance(obj, list):
        for i, item in enumerate(obj):
            _validate_json_type(item, f"{path}[{i}]" if path else f"[{i}]")
    else:
        raise CanonicalizationError(
            f"Non-JSON type at {path or '(root)'}: {type(obj).__name__}. "
            f"Only None, bool, int, float, str, dict, and list are allowed."
        )


def _canonicalize_value(obj: Any) -> Any:
    if isinstance(obj, str):
        return _normalize_string(obj)
    elif isinstance(obj, dict):
        # Sort keys recursively
        return {
            _normalize_string(k): _canonicalize_value(v)
            for k, v in sorted(obj.items())
        }
    elif isinstance(obj, list):
        # Arrays preserve order
        return [_canonicalize_value(item) for item in obj]
    return obj


def canonicalize_json(obj: Any) -> str:
    """Canonicalize a JSON-serializable object to a stable string representation.

    Two objects that are structurally equal (same keys and values, any key
    insertion order) canonicalize to the same string.

    Raises:
        CanonicalizationError: If object contains NaN/Inf or non-JSON types
    """
    _validate_json_type(obj)
    canonicalized = _canonicalize_value(obj)
    return json.dumps(canonicalized, sort_keys=True, ensure_ascii=False, separators=(',', ':'))


def hash_canonical(obj: Any) -> str:
    """SHA256 of the canonical form, truncated to HASH_LENGTH hex characters.

    Truncation accepts a birthday-bound collision risk: the hash gates a human
    review, it is not an integrity boundary.
    """
    canonical_str = canonicalize_json(obj)
    return hashlib.sha256(canonical_str.encode('utf-8')).hexdigest()[:HASH_LENGTH]


def hash_snapshot(snapshot: "ApiSurfaceSnapshot") -> str:
    """Compute the content hash of an API surface snapshot."""
    return hash_canonical(snapshot.to_wire())
