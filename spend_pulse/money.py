"""Decimal helpers for currency and percentage values."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Any

from pydantic import PlainSerializer

_CENT = Decimal("0.01")
_TENTH = Decimal("0.1")
_ONE = Decimal("1")

ZERO = Decimal("0")

# Decimal in Python, plain number in JSON output.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
Percent = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def to_decimal(raw: Any) -> Decimal | None:
    """Parse ``raw`` into a ``Decimal`` or return ``None`` when it is not numeric."""

    if raw is None or isinstance(raw, bool):
        return None
    try:
        d = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return None
    return d if d.is_finite() else None


def round_money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def round_percent(value: Decimal) -> Decimal:
    return value.quantize(_TENTH, rounding=ROUND_HALF_UP)


def round_whole(value: Decimal) -> int:
    """Half-up rounding to an ``int`` (``Decimal.__round__`` is banker's rounding)."""

    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def percent_of(part: Decimal, whole: Decimal) -> Decimal:
    """``part / whole * 100``, or zero when ``whole`` is not positive."""

    if whole <= 0:
        return ZERO
    return part / whole * 100


__all__ = [
    "ZERO",
    "Money",
    "Percent",
    "to_decimal",
    "round_money",
    "round_percent",
    "round_whole",
    "percent_of",
]
