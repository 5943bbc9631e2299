from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from comprint.schemas.sales import SaleResponse
from comprint.schemas.users import UserSummary


class CommissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    sale_id: uuid.UUID
    sales_person_id: uuid.UUID
    commission_amount: Optional[Decimal] = None
    is_paid: bool
    payment_date: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime


class CommissionDetail(CommissionResponse):
    sale: Optional[SaleResponse] = None
    sales_person: Optional[UserSummary] = None


class CommissionPaymentUpdate(BaseModel):
    is_paid: bool


class CommissionBulkPaymentUpdate(CommissionPaymentUpdate):
    id: uuid.UUID


# -----------------------------
# Repair
# -----------------------------
class RepairDetail(BaseModel):
    id: uuid.UUID
    success: bool
    commission_amount: Optional[Decimal] = None
    error: Optional[str] = None


class RepairResults(BaseModel):
    total: int = 0
    success: int = 0
    failure: int = 0
    details: List[RepairDetail] = []


class RepairResponse(BaseModel):
    results: RepairResults


# -----------------------------
# Reports
# -----------------------------
class CommissionTotals(BaseModel):
    total_commission: Decimal = Decimal("0.00")
    paid_commission: Decimal = Decimal("0.00")
    unpaid_commission: Decimal = Decimal("0.00")
    sale_count: int = 0


class SalesPersonCommissionSummary(CommissionTotals):
    sales_person: Optional[UserSummary] = None


class CommissionSummaryReport(BaseModel):
    summary: List[SalesPersonCommissionSummary]
    totals: CommissionTotals


class CommissionDetailedReport(BaseModel):
    commissions: List[CommissionDetail]
    totals: CommissionTotals
