"""
Key validation, key ordering and key path evaluation.

Valid keys are numbers (``bool`` excluded, NaN excluded), strings, bytes,
datetimes and tuples of valid keys. Lists are accepted and normalized to
tuples so they can be hashed. Across types the order is
numbers < dates < strings < bytes < tuples.
"""

import math
from datetime import datetime
from typing import Any

from tablestore.models.exceptions import DataError

_NUMBER = 0
_DATE = 1
_STRING = 2
_BINARY = 3
_ARRAY = 4

_MISSING = object()


def normalize_key(value: Any) -> Any:
    """
    Validate a key and return its hashable form.

    Raises:
        DataError: If the value is not a valid key.
    """
    if isinstance(value, bool):
        raise DataError(f"not a valid key: {value!r}")
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            raise DataError("NaN is not a valid key")
        return value
    if isinstance(value, (str, datetime)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, (list, tuple)):
        return tuple(normalize_key(item) for item in value)
    raise DataError(f"not a valid key: {value!r}")


def is_valid_key(value: Any) -> bool:
    try:
        normalize_key(value)
    except DataError:
        return False
    return True


def sort_key(key: Any) -> tuple:
    """Map a normalized key to a tuple that orders keys across types."""
    if isinstance(key, (int, float)):
        return (_NUMBER, key)
    if isinstance(key, datetime):
        return (_DATE, key.timestamp())
    if isinstance(key, str):
        return (_STRING, key)
    if isinstance(key, bytes):
        return (_BINARY, key)
    return (_ARRAY, tuple(sort_key(item) for item in key))


def evaluate_key_path(record: Any, key_path: str) -> Any:
    """
    Resolve a dotted key path against a record.

    Returns:
        The value at the path, or ``None`` if any segment is missing.
    """
    value = record
    for segment in key_path.split("."):
        if not isinstance(value, dict) or segment not in value:
            return None
        value = value[segment]
    return value


def has_key_path(record: Any, key_path: str) -> bool:
    value = record
    for segment in key_path.split("."):
        if not isinstance(value, dict):
            return False
        value = value.get(segment, _MISSING)
        if value is _MISSING:
            return False
    return True


def inject_key(record: dict, key_path: str, key: Any) -> None:
    """Write a generated key into a record at the given key path."""
    *parents, leaf = key_path.split(".")
    target = record
    for segment in parents:
        child = target.get(segment)
        if child is None:
            child = target[segment] = {}
        elif not isinstance(child, dict):
            raise DataError(f"cannot inject key at {key_path!r}: {segment!r} is not a mapping")
        target = child
    target[leaf] = key
