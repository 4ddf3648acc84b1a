"""Type conversion utilities for safely handling data from providers and the store.

This module is the single source of truth for safe type conversion.
All other modules should import from here instead of defining their own.
"""

import re
from typing import Any

_NOT_APPLICABLE = {"", "not applicable", "n/a", "null"}
_RANGE_SPLIT = re.compile(r"\s*(?:-|–|\bto\b)\s*", re.IGNORECASE)
_LEADING_INT = re.compile(r"^(\d+)")


def safe_float(val: Any, default: float | None = None) -> float | None:
    """Safely convert a value to float.

    Examples:
        >>> safe_float("3.14")
        3.14
        >>> safe_float(None) is None
        True
        >>> safe_float("invalid", default=-1.0)
        -1.0
    """
    if val is None or val == "":
        return default
    try:
        return float(val)
    except (ValueError, TypeError):
        return default


def safe_int(val: Any, default: int | None = None) -> int | None:
    """Safely convert a value to int.

    Examples:
        >>> safe_int("42")
        42
        >>> safe_int(3.7)
        3
        >>> safe_int(None) is None
        True
    """
    if val is None or val == "":
        return default
    try:
        return int(float(val))  # Handle "3.0" -> 3
    except (ValueError, TypeError):
        return default


def clean_text(val: Any) -> str | None:
    """Strip a provider string, mapping placeholder values to None."""
    if val is None:
        return None
    text = str(val).strip()
    if text.lower() in _NOT_APPLICABLE:
        return None
    return text


def parse_leading_int(val: Any) -> int | None:
    """Parse the first integer out of a provider value.

    Handles ranges ("6001 - 7000"), lists ("26001, 7000") and units
    ("26001 lbs") by taking the first number.

    Examples:
        >>> parse_leading_int("6001 - 7000")
        6001
        >>> parse_leading_int("Class 2E: 6,001 - 7,000 lb (2,722 - 3,175 kg)") is None
        True
        >>> parse_leading_int("14500 lbs")
        14500
    """
    text = clean_text(val)
    if text is None:
        return None
    text = _RANGE_SPLIT.split(text, maxsplit=1)[0].strip()
    text = text.split(",", 1)[0].strip()
    match = _LEADING_INT.match(text)
    if not match:
        return None
    return int(match.group(1))


def parse_float(val: Any) -> float | None:
    """Parse a float, dropping any non-numeric characters ("158.0 in" -> 158.0)."""
    text = clean_text(val)
    if text is None:
        return None
    digits = re.sub(r"[^\d.]", "", text)
    if not digits:
        return None
    try:
        return float(digits)
    except ValueError:
        return None


def is_populated(val: Any) -> bool:
    """True when a field holds a value (None and blank strings do not count)."""
    if val is None:
        return False
    if isinstance(val, str) and not val.strip():
        return False
    return True
