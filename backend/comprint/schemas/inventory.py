from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from comprint.schemas.catalog import ProductSummary


class InventoryCreate(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(..., ge=0)
    reorder_level: Optional[int] = Field(None, ge=0)


class InventoryReplace(BaseModel):
    """PUT body: quantity is mandatory, reorder_level optional."""

    quantity: int = Field(..., ge=0)
    reorder_level: Optional[int] = Field(None, ge=0)


class InventoryUpdate(BaseModel):
    quantity: Optional[int] = Field(None, ge=0)
    reorder_level: Optional[int] = Field(None, ge=0)


class StockAdjustRequest(BaseModel):
    # Range is checked per mode in comprint.core.inventory.adjust_stock
    quantity: int
    is_restock: bool = False


class InventoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    reorder_level: Optional[int] = None
    last_restock_date: Optional[datetime] = None
    is_low_stock: bool

    product: Optional[ProductSummary] = None

    created_at: datetime
    updated_at: datetime


class StockAdjustResponse(BaseModel):
    data: InventoryResponse
    previous_quantity: int
    is_low_stock: bool
