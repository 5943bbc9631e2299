from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from comprint.schemas.catalog import ProductSummary
from comprint.schemas.customers import CustomerResponse
from comprint.schemas.users import UserSummary

PaymentStatus = Literal["pending", "paid", "partial", "cancelled"]
PaymentMethod = Literal["cash", "card", "transfer", "check", "other"]


class SaleItemCreate(BaseModel):
    # Bounded to the column scale so the stored line is exactly what the
    # commission was computed from.
    product_id: uuid.UUID
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    commission_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100, decimal_places=2)
    discount_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100, decimal_places=2)
    total_price: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class SaleCreate(BaseModel):
    # Generated as INV-YYMMDD-NNNN when omitted.
    invoice_number: Optional[str] = Field(None, min_length=1, max_length=40)
    customer_id: Optional[uuid.UUID] = None
    # Defaults to the caller.
    sales_person_id: Optional[uuid.UUID] = None
    sale_date: Optional[datetime] = None

    subtotal: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    total_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)

    payment_status: PaymentStatus = "pending"
    payment_method: PaymentMethod = "cash"
    notes: Optional[str] = None


class SaleCreateRequest(BaseModel):
    """Body: {"sale": {...}, "saleItems": [...]}"""

    model_config = ConfigDict(populate_by_name=True)

    sale: SaleCreate
    sale_items: List[SaleItemCreate] = Field(..., alias="saleItems", min_length=1)


class SaleItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    sale_id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    commission_rate: Decimal
    discount_percent: Decimal
    total_price: Decimal
    created_at: datetime

    product: Optional[ProductSummary] = None


class SaleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    invoice_number: str
    customer_id: Optional[uuid.UUID] = None
    sales_person_id: uuid.UUID
    sale_date: datetime

    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal

    payment_status: str
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    created_at: datetime
    updated_at: datetime


class SaleListItem(SaleResponse):
    customer: Optional[CustomerResponse] = None
    sales_person: Optional[UserSummary] = None


class SaleDetailResponse(SaleListItem):
    items: List[SaleItemResponse] = []
