"""Conversion between human decimal amounts and integer minor units."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .config import MINOR_UNITS_PER_MAJOR
from .errors import ValidationError

_WHOLE = Decimal(1)
_TWO_PLACES = Decimal("0.01")


def to_minor_units(amount: Decimal | int | float | str) -> int:
    """Convert a major-unit amount into an exact count of minor units.

    The value is rounded half away from zero, never truncated, so ``-0.01``
    becomes ``-1``. Floats are converted through ``str`` first: the shortest
    repr is what gets rounded, which is an accepted approximation for values
    that were typed in by a person.
    """

    if isinstance(amount, float):
        amount = str(amount)
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(f"invalid amount: {amount!r}") from exc
    if not value.is_finite():
        raise ValidationError(f"invalid amount: {amount!r}")
    scaled = value * MINOR_UNITS_PER_MAJOR
    return int(scaled.quantize(_WHOLE, rounding=ROUND_HALF_UP))


def to_decimal(minor: int) -> Decimal:
    """Convert minor units back into a major-unit ``Decimal`` (exact)."""

    return (Decimal(int(minor)) / MINOR_UNITS_PER_MAJOR).quantize(_TWO_PLACES)


def parse_amount(text: str | None) -> Decimal:
    """Parse a user supplied amount such as ``"12,34"`` or ``"-5.5"``."""

    if text is None or not str(text).strip():
        raise ValidationError("amount is required")
    normalized = str(text).strip().replace(",", ".")
    try:
        value = Decimal(normalized)
    except InvalidOperation as exc:
        raise ValidationError(f"invalid amount: {text!r}") from exc
    if not value.is_finite():
        raise ValidationError(f"invalid amount: {text!r}")
    return value
