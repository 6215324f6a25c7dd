"""
Hash utilities for fingerprints and field comparison.

This module provides functions for generating deterministic hashes of
structured data and for diffing desired against observed field sets.
"""

import hashlib
from typing import Any, Dict, Iterable, Optional, Set, Tuple

from ..exceptions import ErrorCode, ValidationError
from .json_utils import dumps


def _get_nested_value(data: Dict[str, Any], field: str) -> Any:
    """
    Extract a value from a nested dictionary using dot notation.

    Args:
        data: Dictionary to extract from
        field: Field name with dot notation (e.g., "network.zone")

    Returns:
        Extracted value or None if not found
    """
    if "." not in field:
        return data.get(field)

    value: Any = data
    for part in field.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return None

    return value


def calculate_data_hash(
    data: Dict[str, Any],
    ignore_fields: Optional[Iterable[str]] = None,
    sort_keys: bool = True,
) -> str:
    """
    Calculate a deterministic SHA-256 hash of a dictionary.

    Args:
        data: Dictionary to hash
        ignore_fields: Top-level keys to leave out
        sort_keys: Whether to sort dictionary keys for deterministic ordering

    Returns:
        Hex digest string

    Raises:
        ValidationError: If data is None
    """
    if data is None:
        raise ValidationError(
            "Cannot calculate hash for None data",
            error_code=ErrorCode.TYPE_MISMATCH,
            field="data",
            value=data,
        )

    ignored = set(ignore_fields or ())
    filtered = {k: v for k, v in data.items() if k not in ignored}
    serialized = dumps(filtered, sort_keys=sort_keys)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def compare_fields(
    observed: Dict[str, Any],
    desired: Dict[str, Any],
    key_fields: Optional[Iterable[str]] = None,
    ignore_fields: Optional[Iterable[str]] = None,
) -> Dict[str, Tuple[Any, Any]]:
    """
    Compare two field dictionaries and identify differences.

    Args:
        observed: Current values (e.g. remote state)
        desired: Target values
        key_fields: Fields to compare. Defaults to the union of both key sets.
        ignore_fields: Fields excluded from comparison

    Returns:
        Dictionary mapping changed field names to (observed, desired) tuples
    """
    ignored: Set[str] = set(ignore_fields or ())

    if key_fields is not None:
        fields_to_compare = set(key_fields)
    else:
        fields_to_compare = set(observed) | set(desired)

    changes = {}
    for field in sorted(fields_to_compare - ignored):
        old_value = _get_nested_value(observed, field)
        new_value = _get_nested_value(desired, field)
        if old_value != new_value:
            changes[field] = (old_value, new_value)

    return changes
