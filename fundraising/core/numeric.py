"""
Numeric helpers shared by the totals and analytics code.

Rounding is half away from zero (``ROUND_HALF_UP`` in ``decimal`` terms), which
is what report consumers expect from "rounded to one decimal".
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Union

Number = Union[int, float, Decimal]

CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce a driver value (None, int, float, str, Decimal) to Decimal"""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() keeps the shortest repr and avoids binary noise
        return Decimal(str(value))
    return Decimal(value)


def money(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_half_up(value: Number, places: int = 1) -> float:
    exponent = Decimal(1).scaleb(-places)
    return float(to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP))


def percentage(part: Number, whole: Number, places: int = 1) -> float:
    """part / whole * 100, rounded; 0 when whole is 0"""
    whole_dec = to_decimal(whole)
    if whole_dec == 0:
        return 0.0
    return round_half_up(to_decimal(part) / whole_dec * 100, places)
