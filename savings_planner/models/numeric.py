"""
Shared numeric helpers for the planning engine.

Currency values travel through the engine as floats and are only rounded at
output boundaries. The projection recurrence works in ``Decimal`` so that
per-step rounding is exact fixed point.
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[int, float, Decimal]

MONTHS_PER_YEAR = 12
CENT = Decimal("0.01")


class InvalidInput(ValueError):
    """Raised when a planning request violates a precondition."""


def ensure_finite(name: str, value: Number) -> None:
    """Reject NaN and infinite values."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise InvalidInput(f"{name} must be a number, got {value!r}")
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise InvalidInput(f"{name} must be finite, got {value}")
    elif not math.isfinite(value):
        raise InvalidInput(f"{name} must be finite, got {value}")


def ensure_non_negative(name: str, value: Number) -> None:
    """Reject non-finite and negative values."""
    ensure_finite(name, value)
    if value < 0:
        raise InvalidInput(f"{name} must be non-negative, got {value}")


def monthly_from_annual(annual_amount: float) -> float:
    """Convert an annual amount to its even monthly pace (no rounding)."""
    return annual_amount / MONTHS_PER_YEAR


def to_decimal(value: Number) -> Decimal:
    """Convert a float to Decimal through its shortest repr.

    ``Decimal(0.1)`` carries the binary expansion of the float; going through
    ``repr`` keeps the value the caller actually wrote.
    """
    if isinstance(value, Decimal):
        return value
    return Decimal(repr(value)) if isinstance(value, float) else Decimal(value)


def quantize_currency(value: Number) -> Decimal:
    """Round half away from zero to whole cents, returning a Decimal."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_currency(value: Number) -> float:
    """Round half away from zero to 2 decimal places."""
    return float(quantize_currency(value))
