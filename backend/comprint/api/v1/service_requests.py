# backend/comprint/api/v1/service_requests.py
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from comprint.api.deps.auth import get_current_user
from comprint.api.deps.permissions import require_permissions
from comprint.api.deps.service_requests import get_editable_service_request, get_viewable_service_request
from comprint.auth.permissions import PERM, ROLE_TECHNICIAN, is_permitted
from comprint.core.errors import AuthorizationError, NotFoundError, ValidationError
from comprint.core.filters import parse_bool_flag, search_clause
from comprint.crud.numbering import next_request_number
from comprint.crud.service_requests import apply_update, detail_options, ensure_references, get_service_request_detail
from comprint.db.session import get_db
from comprint.models.service_request import ServiceRequest, ServiceRequestUpdate
from comprint.models.user import User
from comprint.schemas.common import MessageResponse
from comprint.schemas.service import (
    ServiceRequestCreate,
    ServiceRequestDetail,
    ServiceRequestEdit,
    ServiceUpdateCreate,
    ServiceUpdateResponse,
    UpdateType,
)

router = APIRouter(prefix="/service-requests", tags=["service-requests"])


@router.get("", response_model=List[ServiceRequestDetail])
async def list_service_requests(
    query: Optional[str] = Query(None),
    status_: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = Query(None),
    technician_id: Optional[uuid.UUID] = Query(None),
    category_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permissions(PERM.SERVICE_READ)),
):
    stmt = select(ServiceRequest).options(*detail_options()).order_by(ServiceRequest.created_at.desc())

    if user.role == ROLE_TECHNICIAN:
        stmt = stmt.where(ServiceRequest.assigned_technician_id == user.id)
    elif technician_id is not None:
        stmt = stmt.where(ServiceRequest.assigned_technician_id == technician_id)

    clause = search_clause(
        query,
        ServiceRequest.title,
        ServiceRequest.description,
        ServiceRequest.request_number,
        ServiceRequest.device_serial_number,
    )
    if clause is not None:
        stmt = stmt.where(clause)

    if status_:
        stmt = stmt.where(ServiceRequest.status == status_)
    if priority:
        stmt = stmt.where(ServiceRequest.priority == priority)
    if category_id is not None:
        stmt = stmt.where(ServiceRequest.service_category_id == category_id)

    result = await db.execute(stmt)
    return result.scalars().all()


@router.post("", response_model=ServiceRequestDetail, status_code=status.HTTP_201_CREATED)
async def create_service_request(
    payload: ServiceRequestCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permissions(PERM.SERVICE_CREATE)),
):
    if payload.assigned_technician_id is not None and not is_permitted(
        role=user.role, required=PERM.SERVICE_ASSIGN
    ):
        raise AuthorizationError("Only admins can assign technicians")

    data = payload.model_dump()
    await ensure_references(db, data)

    sr = ServiceRequest(
        id=uuid.uuid4(),
        request_number=await next_request_number(db),
        created_by=user.id,
        status="pending",
        payment_status="pending",
        **data,
    )
    db.add(sr)
    await db.commit()
    return await get_service_request_detail(db, sr.id)


@router.get("/{service_request_id}", response_model=ServiceRequestDetail)
async def get_service_request(
    sr: ServiceRequest = Depends(get_viewable_service_request),
    db: AsyncSession = Depends(get_db),
):
    return await get_service_request_detail(db, sr.id)


@router.put("/{service_request_id}", response_model=ServiceRequestDetail)
async def update_service_request(
    payload: ServiceRequestEdit,
    sr: ServiceRequest = Depends(get_editable_service_request),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Partial update. Technicians may only touch status, internal_notes,
    final_cost and completed_date; only admins may (re)assign technicians.
    A request containing any disallowed field is rejected as a whole.
    """
    await apply_update(db, sr, payload.model_dump(exclude_unset=True), user=user)
    await db.commit()
    return await get_service_request_detail(db, sr.id)


@router.delete("/{service_request_id}", response_model=MessageResponse)
async def delete_service_request(
    service_request_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.SERVICE_DELETE)),
):
    sr = await db.get(ServiceRequest, service_request_id)
    if sr is None:
        raise NotFoundError("Service request not found")

    if sr.status == "completed":
        raise ValidationError("Cannot delete a completed service request")

    # attachments and updates go with it; blobs are left to storage lifecycle rules
    await db.delete(sr)
    await db.commit()
    return MessageResponse(message="Service request deleted successfully")


# -----------------------------
# Updates (timeline)
# -----------------------------
@router.get("/{service_request_id}/updates", response_model=List[ServiceUpdateResponse])
async def list_service_request_updates(
    customer_visible: Optional[str] = Query(None),
    update_type: Optional[UpdateType] = Query(None),
    sr: ServiceRequest = Depends(get_viewable_service_request),
    db: AsyncSession = Depends(get_db),
):
    stmt = (
        select(ServiceRequestUpdate)
        .where(ServiceRequestUpdate.service_request_id == sr.id)
        .options(selectinload(ServiceRequestUpdate.updated_by_user))
        .order_by(ServiceRequestUpdate.created_at.desc())
    )

    visible = parse_bool_flag(customer_visible)
    if visible is not None:
        stmt = stmt.where(ServiceRequestUpdate.is_customer_visible.is_(visible))
    if update_type:
        stmt = stmt.where(ServiceRequestUpdate.update_type == update_type)

    result = await db.execute(stmt)
    return result.scalars().all()


@router.post(
    "/{service_request_id}/updates",
    response_model=ServiceUpdateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_service_request_update(
    payload: ServiceUpdateCreate,
    sr: ServiceRequest = Depends(get_editable_service_request),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    entry = ServiceRequestUpdate(
        id=uuid.uuid4(),
        service_request_id=sr.id,
        updated_by=user.id,
        **payload.model_dump(),
    )
    db.add(entry)
    await db.commit()

    stmt = (
        select(ServiceRequestUpdate)
        .where(ServiceRequestUpdate.id == entry.id)
        .options(selectinload(ServiceRequestUpdate.updated_by_user))
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one()
