from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# -----------------------------
# Product categories
# -----------------------------
class ProductCategoryBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class ProductCategoryCreate(ProductCategoryBase):
    pass


class ProductCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("name")
    @classmethod
    def reject_null_name(cls, v: Optional[str]) -> str:
        if v is None:
            raise ValueError("Name cannot be null")
        return v


class ProductCategoryResponse(ProductCategoryBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime


# -----------------------------
# Products
# -----------------------------
class ProductBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    sku: str = Field(..., min_length=3, max_length=50)
    category_id: Optional[uuid.UUID] = None

    cost_price: Decimal = Field(..., gt=0)
    selling_price: Decimal = Field(..., gt=0)
    commission_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)

    image_url: Optional[str] = Field(None, max_length=1000)
    is_active: bool = True


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    sku: Optional[str] = Field(None, min_length=3, max_length=50)
    category_id: Optional[uuid.UUID] = None

    cost_price: Optional[Decimal] = Field(None, gt=0)
    selling_price: Optional[Decimal] = Field(None, gt=0)
    commission_rate: Optional[Decimal] = Field(None, ge=0, le=100)

    image_url: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None

    @field_validator("name", "sku", "cost_price", "selling_price", "commission_rate", "is_active")
    @classmethod
    def reject_null(cls, v):
        # Omit a field to leave it unchanged; these columns are NOT NULL.
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class ProductResponse(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_by: Optional[uuid.UUID] = None

    created_at: datetime
    updated_at: datetime


class ProductSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    sku: str
    category_id: Optional[uuid.UUID] = None
    cost_price: Decimal
    selling_price: Decimal
    image_url: Optional[str] = None
    is_active: bool
