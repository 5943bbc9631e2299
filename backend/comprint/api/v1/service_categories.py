from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from comprint.api.deps.permissions import require_permissions
from comprint.auth.permissions import PERM
from comprint.core.errors import ConflictError
from comprint.core.filters import parse_bool_flag, search_clause
from comprint.db.session import get_db
from comprint.models.service_category import ServiceCategory
from comprint.schemas.service import ServiceCategoryCreate, ServiceCategoryResponse

router = APIRouter(prefix="/service-categories", tags=["service-categories"])


@router.get("", response_model=List[ServiceCategoryResponse])
async def list_service_categories(
    query: Optional[str] = Query(None),
    active: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.SERVICE_READ)),
):
    stmt = select(ServiceCategory).order_by(ServiceCategory.name)

    clause = search_clause(query, ServiceCategory.name, ServiceCategory.description)
    if clause is not None:
        stmt = stmt.where(clause)

    is_active = parse_bool_flag(active)
    if is_active is not None:
        stmt = stmt.where(ServiceCategory.is_active.is_(is_active))

    result = await db.execute(stmt)
    return result.scalars().all()


@router.post("", response_model=ServiceCategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_service_category(
    payload: ServiceCategoryCreate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.SERVICE_CATEGORIES_WRITE)),
):
    existing = await db.execute(select(ServiceCategory.id).where(ServiceCategory.name == payload.name))
    if existing.first() is not None:
        raise ConflictError("A service category with this name already exists")

    category = ServiceCategory(id=uuid.uuid4(), **payload.model_dump())
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return category
