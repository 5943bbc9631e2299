from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from comprint.api.deps.permissions import require_permissions
from comprint.auth.permissions import PERM
from comprint.core.errors import NotFoundError
from comprint.core.filters import date_range_clauses, parse_date_bound
from comprint.crud.sales import create_sale_with_items, get_sale_detail
from comprint.db.session import get_db
from comprint.models.sale import Sale
from comprint.models.user import User
from comprint.schemas.common import DataResponse, SuccessResponse
from comprint.schemas.sales import SaleCreateRequest, SaleDetailResponse, SaleListItem

router = APIRouter(prefix="/sales", tags=["sales"])


@router.get("", response_model=DataResponse[List[SaleListItem]])
async def list_sales(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    customerId: Optional[uuid.UUID] = Query(None),
    salesPersonId: Optional[uuid.UUID] = Query(None),
    status_: Optional[str] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.SALES_READ)),
):
    stmt = (
        select(Sale)
        .options(selectinload(Sale.customer), selectinload(Sale.sales_person))
        .order_by(Sale.sale_date.desc())
    )

    start = parse_date_bound(startDate, name="startDate")
    end = parse_date_bound(endDate, name="endDate", end=True)
    for clause in date_range_clauses(Sale.sale_date, start, end):
        stmt = stmt.where(clause)

    if customerId is not None:
        stmt = stmt.where(Sale.customer_id == customerId)
    if salesPersonId is not None:
        stmt = stmt.where(Sale.sales_person_id == salesPersonId)
    if status_:
        stmt = stmt.where(Sale.payment_status == status_)

    result = await db.execute(stmt)
    return {"data": result.scalars().all()}


@router.post("", response_model=DataResponse[SaleDetailResponse], status_code=status.HTTP_201_CREATED)
async def create_sale(
    payload: SaleCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permissions(PERM.SALES_WRITE)),
):
    """
    Body: {"sale": {...}, "saleItems": [{...}, ...]}
    Sale, items and commission are written in one transaction.
    """
    sale = await create_sale_with_items(
        db,
        sale=payload.sale,
        items=payload.sale_items,
        default_sales_person_id=user.id,
    )
    return {"data": sale}


@router.get("/{sale_id}", response_model=DataResponse[SaleDetailResponse])
async def get_sale(
    sale_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.SALES_READ)),
):
    sale = await get_sale_detail(db, sale_id)
    if not sale:
        raise NotFoundError("Sale not found")
    return {"data": sale}


@router.delete("/{sale_id}", response_model=SuccessResponse)
async def delete_sale(
    sale_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.SALES_DELETE)),
):
    sale = await db.get(Sale, sale_id)
    if not sale:
        raise NotFoundError("Sale not found")

    # items and commission are removed by the delete-orphan cascades
    await db.delete(sale)
    await db.commit()
    return SuccessResponse()
