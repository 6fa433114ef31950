"""Money / rounding helpers.

Centralized so catalog, cart, checkout and the rates endpoint use identical
rounding semantics. Both round half up, matching what shoppers expect from
a displayed price.
"""

from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP


def round2(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def round_whole(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
