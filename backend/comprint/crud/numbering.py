# comprint/crud/numbering.py
from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from comprint.core.numbering import (
    INVOICE_PREFIX,
    SERVICE_REQUEST_PREFIX,
    daily_prefix,
    next_sequence_number,
)
from comprint.models.sale import Sale
from comprint.models.service_request import ServiceRequest


async def _next_number(db: AsyncSession, column, kind: str, day: Optional[date]) -> str:
    prefix = daily_prefix(kind, day)
    stmt = select(func.max(column)).where(column.startswith(prefix, autoescape=True))
    latest = (await db.execute(stmt)).scalar()
    return next_sequence_number(prefix, latest)


async def next_invoice_number(db: AsyncSession, day: Optional[date] = None) -> str:
    """INV-YYMMDD-NNNN, one sequence per day."""
    return await _next_number(db, Sale.invoice_number, INVOICE_PREFIX, day)


async def next_request_number(db: AsyncSession, day: Optional[date] = None) -> str:
    """SR-YYMMDD-NNNN, one sequence per day."""
    return await _next_number(db, ServiceRequest.request_number, SERVICE_REQUEST_PREFIX, day)
