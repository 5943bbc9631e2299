# comprint/crud/service_requests.py
from __future__ import annotations

import uuid
from typing import Any, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from comprint.auth.permissions import disallowed_fields
from comprint.core.errors import AuthorizationError, NotFoundError
from comprint.core.roles import UserRole
from comprint.models.customer import Customer
from comprint.models.service_category import ServiceCategory
from comprint.models.service_request import ServiceRequest, ServiceRequestUpdate
from comprint.models.user import User


def detail_options():
    return (
        selectinload(ServiceRequest.service_category),
        selectinload(ServiceRequest.customer),
        selectinload(ServiceRequest.assigned_technician),
        selectinload(ServiceRequest.created_by_user),
    )


async def get_service_request_detail(db: AsyncSession, service_request_id: uuid.UUID) -> Optional[ServiceRequest]:
    stmt = (
        select(ServiceRequest)
        .where(ServiceRequest.id == service_request_id)
        .options(*detail_options())
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def ensure_references(db: AsyncSession, changes: Mapping[str, Any]) -> None:
    """404 for any referenced category / customer / technician that does not exist."""
    category_id = changes.get("service_category_id")
    if category_id is not None and await db.get(ServiceCategory, category_id) is None:
        raise NotFoundError("Service category not found")

    customer_id = changes.get("customer_id")
    if customer_id is not None and await db.get(Customer, customer_id) is None:
        raise NotFoundError("Customer not found")

    technician_id = changes.get("assigned_technician_id")
    if technician_id is not None:
        technician = await db.get(User, technician_id)
        if technician is None or technician.role != UserRole.TECHNICIAN.value:
            raise NotFoundError("Technician not found")


async def apply_update(
    db: AsyncSession,
    sr: ServiceRequest,
    changes: Mapping[str, Any],
    *,
    user: User,
) -> None:
    """
    All-or-nothing field update of a service request.

    Every requested field must be allowed for the caller's role; otherwise
    nothing is applied and the offending fields are named in the error.
    Status changes and technician (re)assignments are logged to the
    request's update timeline in the same transaction. Does not commit.
    """
    rejected = disallowed_fields(user.role, changes.keys())
    if rejected:
        raise AuthorizationError(f"{user.role} users cannot update: {', '.join(rejected)}")

    await ensure_references(db, changes)

    old_status = sr.status
    old_technician = sr.assigned_technician_id

    for field, value in changes.items():
        setattr(sr, field, value)

    if "status" in changes and changes["status"] is not None and changes["status"] != old_status:
        db.add(
            ServiceRequestUpdate(
                id=uuid.uuid4(),
                service_request_id=sr.id,
                updated_by=user.id,
                update_type="status_change",
                title=f"Status changed to {changes['status']}",
                status_from=old_status,
                status_to=changes["status"],
            )
        )

    if "assigned_technician_id" in changes and changes["assigned_technician_id"] != old_technician:
        technician_id = changes["assigned_technician_id"]
        db.add(
            ServiceRequestUpdate(
                id=uuid.uuid4(),
                service_request_id=sr.id,
                updated_by=user.id,
                update_type="technician_assigned",
                title="Technician assigned" if technician_id else "Technician unassigned",
                is_customer_visible=False,
            )
        )
