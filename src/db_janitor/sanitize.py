"""
Column value substitution.

This module provides the substitution policy invoked by the exporter for
every value it streams. Configured columns get synthetic values of the
same coarse kind as the value actually read; everything else passes
through untouched.
"""

import random
from decimal import Decimal
from enum import Enum

from .models import SanitizationConfig

SURROGATE_MIN = 1_000_000
SURROGATE_MAX = 9_999_999
TEXT_MARKER = "-janitor"

# SystemRandom keeps no state between draws, so concurrent calls are independent
_random = random.SystemRandom()


class ValueKind(Enum):
    """Runtime kind of a value read during export."""

    NUMERIC = "numeric"
    TEXT = "text"
    OTHER = "other"


def classify(value: object) -> ValueKind:
    """
    Resolve the runtime kind of a value.

    Only the value actually read is inspected, never the declared column
    type, so a text value in a numeric column is treated as text.

    Args:
        value: A single value read from a row

    Returns:
        The kind used to pick a replacement
    """
    # bool is an int subclass but is not a numeric surrogate target
    if isinstance(value, bool):
        return ValueKind.OTHER
    if isinstance(value, (int, float, Decimal)):
        return ValueKind.NUMERIC
    if isinstance(value, str):
        return ValueKind.TEXT
    return ValueKind.OTHER


def surrogate_number() -> int:
    """Draw a fresh surrogate integer."""
    return _random.randint(SURROGATE_MIN, SURROGATE_MAX)


def substitute(table: str, column: str, value: object, config: SanitizationConfig) -> object:
    """
    Return the value to export for one column of one row.

    Args:
        table: Table the value was read from
        column: Column the value was read from
        value: The original value
        config: Run configuration naming the columns to sanitize

    Returns:
        A random integer for numeric values, the same integer suffixed with
        ``-janitor`` for text values, or the original value when the column
        is not configured or the value is of any other kind
    """
    if column not in config.columns_for(table):
        return value

    kind = classify(value)
    if kind is ValueKind.NUMERIC:
        return surrogate_number()
    if kind is ValueKind.TEXT:
        return f"{surrogate_number()}{TEXT_MARKER}"
    return value
