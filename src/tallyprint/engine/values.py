"""Truthiness and string conversion of record values."""

from collections.abc import Mapping
from decimal import Decimal
from typing import Any


def is_truthy(value: Any) -> bool:
    """Return the truthiness used by conditional sections.

    Absent (None), False, zero, the empty string and empty lists are falsy;
    everything else a record can hold is truthy.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, Decimal):
        return not value.is_zero()
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (list, tuple, Mapping)):
        return len(value) > 0
    return False


def is_scalar(value: Any) -> bool:
    """Return True for values a scalar marker can print."""
    return isinstance(value, (str, int, float, Decimal))


def scalar_text(value: Any) -> str:
    """Convert a scalar to the text emitted in place of its marker.

    Booleans print as true/false. Numbers use str() and are never rounded here.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    return str(value)
