"""
Utility helper functions for safe handling of EA payload values.

EA returns numbers as strings, numbers, empty strings or not at all, so
every value read from a raw payload goes through one of these.
"""
import math
import re
from typing import Any, Optional

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_optional_int(value: Any) -> Optional[int]:
    """
    Parse an EA number that may be a string.

    Strings use leading-integer semantics ("12abc" -> 12). Returns None when
    the value is missing, empty or unparsable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match:
            return int(match.group(1))
    return None


def parse_optional_float(value: Any) -> Optional[float]:
    """Float counterpart of parse_optional_int ("7.8" -> 7.8)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return None if math.isnan(number) else number
    if isinstance(value, str):
        match = _LEADING_FLOAT.match(value)
        if match:
            return float(match.group(1))
    return None


def first_present(row: dict, *keys: str) -> Any:
    """Return the first value under keys that is not None."""
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return None


def first_truthy(row: dict, *keys: str) -> Any:
    """Return the first truthy value under keys."""
    for key in keys:
        value = row.get(key)
        if value:
            return value
    return None
