"""
Half-up rounding shared by every displayed number.

Python's round() sends halves to the even neighbour (round(12.5) == 12);
stored and displayed values round halves up instead, so 12.5 % shows as 13
and a 2.25 average as 2.3. Values go through str() first so the decimal the
float prints as is what gets rounded.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

_ONE = Decimal("1")
_TENTH = Decimal("0.1")


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(_ONE, rounding=ROUND_HALF_UP))


def round_tenth(value: float) -> float:
    return float(Decimal(str(value)).quantize(_TENTH, rounding=ROUND_HALF_UP))
