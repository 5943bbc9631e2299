# comprint/core/inventory.py
from __future__ import annotations

from dataclasses import dataclass

DEFAULT_REORDER_LEVEL = 10


class StockAdjustmentError(ValueError):
    pass


@dataclass(frozen=True)
class StockAdjustment:
    previous_quantity: int
    new_quantity: int
    is_restock: bool

    @property
    def is_reduction(self) -> bool:
        return self.new_quantity < self.previous_quantity


def adjust_stock(current: int, quantity: int, *, is_restock: bool) -> StockAdjustment:
    """
    Restock mode adds `quantity` (> 0) to `current`.
    Set mode replaces `current` with `quantity` (>= 0).
    The resulting quantity is never negative.
    """
    if is_restock:
        if quantity <= 0:
            raise StockAdjustmentError("Restock quantity must be greater than 0")
        new_quantity = current + quantity
    else:
        if quantity < 0:
            raise StockAdjustmentError("Quantity cannot be negative")
        new_quantity = quantity

    if new_quantity < 0:
        raise StockAdjustmentError("Resulting quantity cannot be negative")

    return StockAdjustment(previous_quantity=current, new_quantity=new_quantity, is_restock=is_restock)


def is_low_stock(quantity: int, reorder_level: int | None) -> bool:
    level = DEFAULT_REORDER_LEVEL if reorder_level is None else reorder_level
    return quantity <= level
