from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from comprint.api.deps.permissions import require_permissions
from comprint.auth.permissions import PERM
from comprint.core.errors import ConflictError, NotFoundError
from comprint.core.filters import parse_bool_flag, search_clause
from comprint.core.inventory import DEFAULT_REORDER_LEVEL
from comprint.db.session import get_db
from comprint.models.inventory import InventoryRecord
from comprint.models.product import Product
from comprint.models.product_category import ProductCategory
from comprint.models.sale import SaleItem
from comprint.models.user import User
from comprint.schemas.catalog import ProductCreate, ProductResponse, ProductUpdate
from comprint.schemas.common import MessageResponse

router = APIRouter(prefix="/products", tags=["products"])


async def _get_product(db: AsyncSession, product_id: uuid.UUID) -> Product:
    product = await db.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


async def _ensure_unique_sku(db: AsyncSession, sku: str, exclude_id: Optional[uuid.UUID] = None) -> None:
    # exact (case-sensitive) match
    stmt = select(Product.id).where(Product.sku == sku)
    if exclude_id is not None:
        stmt = stmt.where(Product.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise ConflictError("A product with this SKU already exists")


async def _ensure_category(db: AsyncSession, category_id: Optional[uuid.UUID]) -> None:
    if category_id is not None and await db.get(ProductCategory, category_id) is None:
        raise NotFoundError("Category not found")


@router.get("", response_model=List[ProductResponse])
async def list_products(
    query: Optional[str] = Query(None),
    category: Optional[uuid.UUID] = Query(None),
    active: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.CATALOG_READ)),
):
    stmt = select(Product).order_by(Product.name)

    clause = search_clause(query, Product.name, Product.description, Product.sku)
    if clause is not None:
        stmt = stmt.where(clause)

    if category is not None:
        stmt = stmt.where(Product.category_id == category)

    is_active = parse_bool_flag(active)
    if is_active is not None:
        stmt = stmt.where(Product.is_active.is_(is_active))

    result = await db.execute(stmt)
    return result.scalars().all()


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permissions(PERM.CATALOG_WRITE)),
):
    await _ensure_unique_sku(db, payload.sku)
    await _ensure_category(db, payload.category_id)

    product = Product(id=uuid.uuid4(), created_by=user.id, **payload.model_dump())
    # Every product starts with an empty stock record, written in the same transaction.
    product.inventory = InventoryRecord(
        id=uuid.uuid4(),
        quantity=0,
        reorder_level=DEFAULT_REORDER_LEVEL,
    )

    db.add(product)
    await db.commit()
    await db.refresh(product)
    return product


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.CATALOG_READ)),
):
    return await _get_product(db, product_id)


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.CATALOG_WRITE)),
):
    product = await _get_product(db, product_id)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("sku") is not None and changes["sku"] != product.sku:
        await _ensure_unique_sku(db, changes["sku"], exclude_id=product.id)
    if "category_id" in changes:
        await _ensure_category(db, changes["category_id"])

    for field, value in changes.items():
        setattr(product, field, value)

    await db.commit()
    await db.refresh(product)
    return product


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(
    product_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.CATALOG_WRITE)),
):
    product = await _get_product(db, product_id)

    sold = (
        await db.execute(select(func.count(SaleItem.id)).where(SaleItem.product_id == product.id))
    ).scalar() or 0
    if sold:
        raise ConflictError("Cannot delete product that has been sold")

    # inventory record goes with it (delete-orphan cascade)
    await db.delete(product)
    await db.commit()
    return MessageResponse(message="Product deleted successfully")
