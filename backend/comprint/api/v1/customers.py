from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from comprint.api.deps.permissions import require_permissions
from comprint.auth.permissions import PERM
from comprint.core.errors import NotFoundError
from comprint.core.filters import search_clause
from comprint.db.session import get_db
from comprint.models.customer import Customer
from comprint.models.user import User
from comprint.schemas.common import DataResponse, SuccessResponse
from comprint.schemas.customers import CustomerCreate, CustomerResponse

router = APIRouter(prefix="/customers", tags=["customers"])


async def _get_customer(db: AsyncSession, customer_id: uuid.UUID) -> Customer:
    customer = await db.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


@router.get("", response_model=DataResponse[List[CustomerResponse]])
async def list_customers(
    query: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.CUSTOMERS_READ)),
):
    stmt = select(Customer).order_by(Customer.created_at.desc())
    clause = search_clause(query, Customer.name, Customer.email, Customer.phone, Customer.company)
    if clause is not None:
        stmt = stmt.where(clause)
    result = await db.execute(stmt)
    return {"data": result.scalars().all()}


@router.post("", response_model=DataResponse[CustomerResponse], status_code=status.HTTP_201_CREATED)
async def create_customer(
    payload: CustomerCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permissions(PERM.CUSTOMERS_WRITE)),
):
    customer = Customer(id=uuid.uuid4(), created_by=user.id, **payload.model_dump())
    db.add(customer)
    await db.commit()
    await db.refresh(customer)
    return {"data": customer}


@router.get("/{customer_id}", response_model=DataResponse[CustomerResponse])
async def get_customer(
    customer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.CUSTOMERS_READ)),
):
    return {"data": await _get_customer(db, customer_id)}


@router.put("/{customer_id}", response_model=DataResponse[CustomerResponse])
async def update_customer(
    customer_id: uuid.UUID,
    payload: CustomerCreate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.CUSTOMERS_WRITE)),
):
    customer = await _get_customer(db, customer_id)

    for field, value in payload.model_dump().items():
        setattr(customer, field, value)

    await db.commit()
    await db.refresh(customer)
    return {"data": customer}


@router.delete("/{customer_id}", response_model=SuccessResponse)
async def delete_customer(
    customer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.CUSTOMERS_DELETE)),
):
    customer = await _get_customer(db, customer_id)
    await db.delete(customer)
    await db.commit()
    return SuccessResponse()
