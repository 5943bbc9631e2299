from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from comprint.api.deps.permissions import require_permissions
from comprint.auth.permissions import PERM
from comprint.core.errors import ConflictError, NotFoundError, ValidationError
from comprint.core.filters import parse_bool_flag
from comprint.core.inventory import DEFAULT_REORDER_LEVEL, StockAdjustmentError, adjust_stock
from comprint.core.numbering import utcnow
from comprint.db.session import get_db
from comprint.models.inventory import InventoryRecord
from comprint.models.product import Product
from comprint.schemas.common import DataResponse, SuccessResponse
from comprint.schemas.inventory import (
    InventoryCreate,
    InventoryReplace,
    InventoryResponse,
    InventoryUpdate,
    StockAdjustRequest,
    StockAdjustResponse,
)

router = APIRouter(prefix="/inventory", tags=["inventory"])


async def _load_record(db: AsyncSession, record_id: uuid.UUID) -> InventoryRecord:
    stmt = (
        select(InventoryRecord)
        .where(InventoryRecord.id == record_id)
        .options(selectinload(InventoryRecord.product))
        .execution_options(populate_existing=True)
    )
    record = (await db.execute(stmt)).scalar_one_or_none()
    if not record:
        raise NotFoundError("Inventory record not found")
    return record


@router.get("", response_model=DataResponse[List[InventoryResponse]])
async def list_inventory(
    product_id: Optional[uuid.UUID] = Query(None),
    low_stock: Optional[str] = Query(None),
    out_of_stock: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.INVENTORY_READ)),
):
    stmt = (
        select(InventoryRecord)
        .options(selectinload(InventoryRecord.product))
        .order_by(InventoryRecord.created_at.desc())
    )

    if product_id is not None:
        stmt = stmt.where(InventoryRecord.product_id == product_id)

    if parse_bool_flag(low_stock):
        stmt = stmt.where(
            or_(
                InventoryRecord.quantity <= InventoryRecord.reorder_level,
                # NULL reorder level falls back to the default
                (InventoryRecord.reorder_level.is_(None)) & (InventoryRecord.quantity <= DEFAULT_REORDER_LEVEL),
                InventoryRecord.quantity == 0,
            )
        )

    if parse_bool_flag(out_of_stock):
        stmt = stmt.where(InventoryRecord.quantity == 0)

    result = await db.execute(stmt)
    return {"data": result.scalars().all()}


@router.post("", response_model=DataResponse[InventoryResponse], status_code=status.HTTP_201_CREATED)
async def create_inventory(
    payload: InventoryCreate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.INVENTORY_WRITE)),
):
    if await db.get(Product, payload.product_id) is None:
        raise NotFoundError("Product not found")

    existing = await db.execute(
        select(InventoryRecord.id).where(InventoryRecord.product_id == payload.product_id)
    )
    if existing.first() is not None:
        raise ConflictError("Inventory record already exists for this product")

    record = InventoryRecord(
        id=uuid.uuid4(),
        product_id=payload.product_id,
        quantity=payload.quantity,
        reorder_level=payload.reorder_level if payload.reorder_level is not None else DEFAULT_REORDER_LEVEL,
    )
    db.add(record)
    await db.commit()
    return {"data": await _load_record(db, record.id)}


@router.get("/{record_id}", response_model=DataResponse[InventoryResponse])
async def get_inventory(
    record_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.INVENTORY_READ)),
):
    return {"data": await _load_record(db, record_id)}


async def _apply_changes(db: AsyncSession, record_id: uuid.UUID, changes: dict) -> InventoryRecord:
    record = await _load_record(db, record_id)
    for field, value in changes.items():
        setattr(record, field, value)
    await db.commit()
    return await _load_record(db, record_id)


@router.put("/{record_id}", response_model=DataResponse[InventoryResponse])
async def replace_inventory(
    record_id: uuid.UUID,
    payload: InventoryReplace,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.INVENTORY_WRITE)),
):
    changes = payload.model_dump()
    if changes["reorder_level"] is None:
        changes["reorder_level"] = DEFAULT_REORDER_LEVEL
    return {"data": await _apply_changes(db, record_id, changes)}


@router.patch("/{record_id}", response_model=DataResponse[InventoryResponse])
async def update_inventory(
    record_id: uuid.UUID,
    payload: InventoryUpdate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.INVENTORY_WRITE)),
):
    changes = payload.model_dump(exclude_unset=True)
    if "quantity" in changes and changes["quantity"] is None:
        raise ValidationError("quantity cannot be null")
    return {"data": await _apply_changes(db, record_id, changes)}


@router.delete("/{record_id}", response_model=SuccessResponse)
async def delete_inventory(
    record_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.INVENTORY_WRITE)),
):
    record = await db.get(InventoryRecord, record_id)
    if not record:
        raise NotFoundError("Inventory record not found")

    await db.delete(record)
    await db.commit()
    return SuccessResponse()


@router.post("/{record_id}/stock", response_model=StockAdjustResponse)
async def adjust_inventory_stock(
    record_id: uuid.UUID,
    payload: StockAdjustRequest,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.INVENTORY_ADJUST)),
):
    """
    Restock (`is_restock: true`) adds to the current quantity;
    otherwise the quantity is replaced.
    """
    record = await _load_record(db, record_id)

    try:
        adjustment = adjust_stock(record.quantity, payload.quantity, is_restock=payload.is_restock)
    except StockAdjustmentError as exc:
        raise ValidationError(str(exc))

    record.quantity = adjustment.new_quantity
    if adjustment.is_restock:
        record.last_restock_date = utcnow()

    await db.commit()
    record = await _load_record(db, record_id)

    return {
        "data": record,
        "previous_quantity": adjustment.previous_quantity,
        "is_low_stock": record.is_low_stock,
    }
