"""
Decimal money helpers shared by every rollup stage.

Amounts are held as ``Decimal`` so that category reconciliation is exact:
``displayed + correction == authoritative`` must hold to the last cent, which
binary floats cannot promise.  All rounding is half-up.
"""
import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

ZERO = Decimal("0")
_CENT = Decimal("0.01")
_MILLI = Decimal("0.001")
_ONE = Decimal("1")


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Convert a float/int/str to Decimal via its string form; junk becomes ``default``."""
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    try:
        result = Decimal(str(value).replace(",", "").strip())
    except (InvalidOperation, ValueError):
        return default
    return result if result.is_finite() else default


def round2(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def round3(value: Decimal) -> Decimal:
    return value.quantize(_MILLI, rounding=ROUND_HALF_UP)


def round_int(value: Decimal) -> int:
    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def safe_div(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Division that yields zero instead of raising on a zero denominator."""
    if denominator == 0:
        return ZERO
    return numerator / denominator


def display_won(value: Decimal) -> str:
    """Render boundary only: integer won with thousands separators."""
    return f"{round_int(value):,}"
