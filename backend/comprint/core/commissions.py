# comprint/core/commissions.py
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


class CommissionLine(Protocol):
    quantity: int
    unit_price: Decimal
    commission_rate: Decimal


def _to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.1 from dragging binary noise into the sum
    return Decimal(str(value))


def line_commission(quantity, unit_price, commission_rate) -> Decimal:
    """Unrounded commission for one sale line: qty * price * rate / 100."""
    return _to_decimal(quantity) * _to_decimal(unit_price) * _to_decimal(commission_rate) / HUNDRED


def compute_commission_amount(items: Iterable[CommissionLine]) -> Decimal:
    """
    Commission owed for a sale: the sum over its items of
    quantity * unit_price * commission_rate / 100.

    The sum is exact and rounded once, to cents, half-up. An empty item set
    yields 0.00. Item order never matters.
    """
    total = sum(
        (line_commission(i.quantity, i.unit_price, i.commission_rate) for i in items),
        Decimal("0"),
    )
    return total.quantize(CENT, rounding=ROUND_HALF_UP)
