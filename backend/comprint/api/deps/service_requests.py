from __future__ import annotations

import uuid

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from comprint.api.deps.permissions import require_permissions
from comprint.auth.permissions import PERM, can_edit_service_request, can_view_service_request
from comprint.core.errors import AuthorizationError, NotFoundError
from comprint.db.session import get_db
from comprint.models.service_request import ServiceRequest
from comprint.models.user import User


async def load_service_request(db: AsyncSession, service_request_id: uuid.UUID) -> ServiceRequest:
    sr = await db.get(ServiceRequest, service_request_id)
    if sr is None:
        raise NotFoundError("Service request not found")
    return sr


async def get_viewable_service_request(
    service_request_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permissions(PERM.SERVICE_READ)),
) -> ServiceRequest:
    """Technicians only see requests assigned to them."""
    sr = await load_service_request(db, service_request_id)
    if not can_view_service_request(
        role=user.role, user_id=user.id, assigned_technician_id=sr.assigned_technician_id
    ):
        raise AuthorizationError("You don't have permission to view this service request")
    return sr


async def get_editable_service_request(
    service_request_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permissions(PERM.SERVICE_UPDATE)),
) -> ServiceRequest:
    """Admin, sales, or the technician assigned to the request."""
    sr = await load_service_request(db, service_request_id)
    if not can_edit_service_request(
        role=user.role, user_id=user.id, assigned_technician_id=sr.assigned_technician_id
    ):
        raise AuthorizationError("You don't have permission to edit this service request")
    return sr
