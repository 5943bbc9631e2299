from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from comprint.api.deps.permissions import require_permissions
from comprint.auth.permissions import PERM
from comprint.core.errors import ConflictError, NotFoundError
from comprint.core.filters import search_clause
from comprint.db.session import get_db
from comprint.models.product import Product
from comprint.models.product_category import ProductCategory
from comprint.schemas.catalog import ProductCategoryCreate, ProductCategoryResponse, ProductCategoryUpdate
from comprint.schemas.common import MessageResponse

router = APIRouter(prefix="/categories", tags=["categories"])


async def _get_category(db: AsyncSession, category_id: uuid.UUID) -> ProductCategory:
    category = await db.get(ProductCategory, category_id)
    if not category:
        raise NotFoundError("Category not found")
    return category


@router.get("", response_model=List[ProductCategoryResponse])
async def list_categories(
    query: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.CATALOG_READ)),
):
    stmt = select(ProductCategory).order_by(ProductCategory.name)
    clause = search_clause(query, ProductCategory.name, ProductCategory.description)
    if clause is not None:
        stmt = stmt.where(clause)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.post("", response_model=ProductCategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: ProductCategoryCreate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.CATALOG_WRITE)),
):
    category = ProductCategory(id=uuid.uuid4(), **payload.model_dump())
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return category


@router.get("/{category_id}", response_model=ProductCategoryResponse)
async def get_category(
    category_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.CATALOG_READ)),
):
    return await _get_category(db, category_id)


@router.patch("/{category_id}", response_model=ProductCategoryResponse)
async def update_category(
    category_id: uuid.UUID,
    payload: ProductCategoryUpdate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.CATALOG_WRITE)),
):
    category = await _get_category(db, category_id)

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(category, field, value)

    await db.commit()
    await db.refresh(category)
    return category


@router.delete("/{category_id}", response_model=MessageResponse)
async def delete_category(
    category_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.CATALOG_WRITE)),
):
    category = await _get_category(db, category_id)

    in_use = (
        await db.execute(select(func.count(Product.id)).where(Product.category_id == category.id))
    ).scalar() or 0
    if in_use:
        raise ConflictError("Cannot delete category that is in use by products")

    await db.delete(category)
    await db.commit()
    return MessageResponse(message="Category deleted successfully")
