"""
Numeric helpers shared by scoring and reporting code
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[int, float]


def round_half_up(value: Number, digits: int = 0) -> Number:
    """Round like a spreadsheet does (2.5 -> 3), not banker's rounding.

    Returns an int when ``digits`` is 0.
    """
    quantum = Decimal(1).scaleb(-digits)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    if digits == 0:
        return int(rounded)
    return float(rounded)


def percentage(part: Number, whole: Number, digits: int = 1) -> float:
    """``part / whole`` as a percentage; 0 when ``whole`` is 0"""
    if not whole:
        return 0.0
    return float(round_half_up(part / whole * 100, digits))
