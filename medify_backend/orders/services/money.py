# orders/services/money.py

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

TWOPLACES = Decimal("0.01")


def quantize_money(v) -> Decimal:
    """
    Decimal rounded half-up to cents.

    Raises InvalidOperation / ValueError / TypeError for anything that is not
    a finite number; callers decide whether that is a validation error.
    """
    return Decimal(str(v)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
