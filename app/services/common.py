"""Common helper functions for service layer.

This module provides reusable utilities for:
- Monetary rounding and display formatting
- Enum coercion of billing-system values
- Identifier normalization
"""

from __future__ import annotations

import enum
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TypeVar

from app.errors import DownstreamFailure, ValidationFailed

E = TypeVar("E", bound=enum.Enum)


def round_money(value: Decimal | int | float | str) -> Decimal:
    """Round monetary value to 2 decimal places.

    Args:
        value: Monetary value to round

    Returns:
        Decimal rounded to 2 decimal places
    """
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_decimal(value, default: Decimal = Decimal("0")) -> Decimal:
    """Parse a billing-system amount, returning ``default`` when unparseable.

    ``inf`` and ``NaN`` spellings count as unparseable.
    """
    if value is None or value == "":
        return default
    try:
        result = Decimal(str(value).replace(",", ""))
    except InvalidOperation:
        return default
    if not result.is_finite():
        return default
    return result


def format_money(value, prefix: str = "$", suffix: str = " USD") -> str:
    """Render an amount the way the client area shows it, e.g. ``$1,547.00 USD``.

    Raises:
        DownstreamFailure: the amount is too large to round to cents
    """
    try:
        amount = round_money(to_decimal(value))
    except InvalidOperation as exc:
        raise DownstreamFailure(f"Unrecognized amount from billing system: {value!r}") from exc
    return f"{prefix}{amount:,}{suffix}"


def coerce_id(value) -> str | None:
    """Normalize a billing-system identifier to a non-empty string."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_enum(enum_cls: type[E], value, label: str) -> E:
    """Map a billing-system value onto ``enum_cls``, matching case-insensitively.

    Raises:
        DownstreamFailure: the billing system returned a value outside the enum
    """
    text = str(value or "").strip().lower()
    for member in enum_cls:
        if str(member.value).lower() == text:
            return member
    raise DownstreamFailure(f"Unrecognized {label} from billing system: {value!r}")


def validate_enum(value, enum_cls: type[E], label: str) -> E | None:
    """Validate caller input against ``enum_cls``.

    Raises:
        ValidationFailed: value is not a member of the enum
    """
    if value is None:
        return None
    text = str(value).strip().lower()
    for member in enum_cls:
        if str(member.value).lower() == text or member.name == text:
            return member
    allowed = ", ".join(str(member.value) for member in enum_cls)
    raise ValidationFailed(f"Invalid {label}. Allowed: {allowed}")
