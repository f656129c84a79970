"""Utility functions for the mortgage coach.

This module provides helpers for normalizing and rounding money values and for
handling dates, including adding calendar months and parsing ISO
``YYYY-MM-DD`` strings to ``datetime.date`` instances.
"""

from __future__ import annotations

import calendar
import re
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def to_decimal(value: object) -> Decimal:
    """Convert ``value`` to a ``Decimal`` without going through binary floats.

    Floats are converted via ``str`` so that ``0.1`` becomes ``Decimal("0.1")``.
    Raises ``ValueError`` if the value cannot be interpreted as a number.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid numeric value: {value!r}")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        return decimal_from_str(value)
    raise ValueError(f"Invalid numeric value: {value!r}")


def normalize_money(value: object) -> Decimal:
    """Return ``value`` as a non-negative finite ``Decimal``.

    Anything that is not a finite number (``None``, ``NaN``, junk strings)
    becomes zero, and negative values are clamped to zero.
    """
    try:
        amount = to_decimal(value)
    except ValueError:
        return ZERO
    if not amount.is_finite():
        return ZERO
    return max(ZERO, amount)


def round_money(value: Decimal) -> Decimal:
    """Round a money value half-up to two decimal places."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def is_iso_date(value: str) -> bool:
    return bool(_ISO_DATE_RE.match(value))


def parse_iso_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string into a ``date`` object.

    Raises
    ------
    ValueError
        If the string is not a valid calendar date in that format.
    """
    if not is_iso_date(value.strip()):
        raise ValueError(f"Invalid date string: {value}")
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid date string: {value}") from exc


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and surrounding whitespace. It raises
    ``ValueError`` if conversion fails.
    """
    try:
        cleaned = value.replace(",", "").strip()
        return Decimal(cleaned)
    except (InvalidOperation, AttributeError) as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
