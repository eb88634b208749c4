"""String and number coercion utilities for store documents.

Field values typed in by hand on mobile forms are strings more often than
not ("12", " 3 goats", "1,200").  These helpers turn them into clean
non-negative numbers and text without ever raising.
"""

import math
import re

_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)\s*$")


def safe_int(val, default: int = 0) -> int:
    """Parse the leading integer of *val*, clamped to be non-negative.

    Mirrors the leniency of form data: ``"12"`` -> 12, ``"12 goats"`` -> 12,
    ``"3.7"`` -> 3, ``4.9`` -> 4.  Anything without a leading integer
    (None, "", "abc", booleans, NaN) yields *default*.

    Args:
        val: Value to convert (any type)
        default: Value to return on failure (default: 0)

    Returns:
        int: Parsed value (>= 0) or default
    """
    if val is None or val == "" or isinstance(val, bool):
        return default
    if isinstance(val, int):
        return max(val, 0)
    if isinstance(val, float):
        if not math.isfinite(val):
            return default
        return max(int(val), 0)
    match = _INT_PREFIX.match(str(val))
    if match is None:
        return default
    return max(int(match.group(1)), 0)


def safe_float(val, default: float = 0.0) -> float:
    """Safely convert value to a non-negative float with fallback default.

    Handles:
    - None, empty strings, booleans -> default
    - Numeric types -> float
    - Strings with whitespace and thousands separators
    - Invalid or non-finite input -> default
    - Negative values -> 0.0

    Args:
        val: Value to convert (any type)
        default: Value to return on failure (default: 0.0)

    Returns:
        float: Parsed value or default
    """
    if val is None or val == "" or isinstance(val, bool):
        return default
    if isinstance(val, (int, float)):
        result = float(val)
    else:
        match = _FLOAT_PREFIX.match(str(val).replace(",", ""))
        if match is None:
            return default
        result = float(match.group(1))
    if not math.isfinite(result):
        return default
    return max(result, 0.0)


def as_text(val) -> str:
    """Return *val* as a string, with None mapped to ``""``."""
    if val is None:
        return ""
    return str(val)


def fold(val) -> str:
    """Lower-cased, trimmed text used for case-insensitive comparisons."""
    return as_text(val).strip().lower()
