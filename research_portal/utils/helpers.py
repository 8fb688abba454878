"""Shared input-coercion helpers for request payloads."""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

logger = logging.getLogger(__name__)


def parse_date_input(value):
    """Parse a calendar date, raising ValueError on bad input.

    Accepts YYYY-MM-DD, a full ISO timestamp (only the calendar part is kept,
    so ``2025-01-01T00:00:00Z`` never drifts to the previous day), or a
    ``date`` object. The whole string must parse. Empty input returns None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise ValueError(f"Invalid date: {value!r} (expected YYYY-MM-DD)")


def parse_decimal_input(value):
    """Parse a monetary amount, raising ValueError on bad input. Empty → None."""
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount
