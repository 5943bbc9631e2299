# backend/comprint/api/v1/service_attachments.py
from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from comprint.api.deps.auth import get_current_user
from comprint.api.deps.permissions import require_permissions
from comprint.api.deps.service_requests import (
    get_editable_service_request,
    get_viewable_service_request,
    load_service_request,
)
from comprint.auth.permissions import PERM, can_edit_service_request, can_manage_attachment
from comprint.core.errors import AuthorizationError, NotFoundError, PlatformError, ValidationError
from comprint.core.storage import ATTACHMENTS_BUCKET, LocalStorage, get_storage
from comprint.db.session import get_db
from comprint.models.service_request import ServiceRequest, ServiceRequestAttachment
from comprint.models.user import User
from comprint.schemas.common import SuccessResponse
from comprint.schemas.service import AttachmentCreate, AttachmentResponse, AttachmentUpdate, UploadResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/service-requests", tags=["service-requests"])

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

ALLOWED_FILE_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "application/pdf",
        "text/plain",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    }
)


def _extension(filename: Optional[str]) -> str:
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower()
        if ext.isalnum():
            return ext
    return "bin"


async def _load_attachment(db: AsyncSession, service_request_id: uuid.UUID, attachment_id: uuid.UUID):
    stmt = (
        select(ServiceRequestAttachment)
        .where(
            ServiceRequestAttachment.id == attachment_id,
            ServiceRequestAttachment.service_request_id == service_request_id,
        )
        .options(selectinload(ServiceRequestAttachment.uploaded_by_user))
        .execution_options(populate_existing=True)
    )
    attachment = (await db.execute(stmt)).scalar_one_or_none()
    if not attachment:
        raise NotFoundError("Attachment not found")
    return attachment


def _ensure_can_manage(user: User, sr: ServiceRequest, attachment: ServiceRequestAttachment) -> None:
    if not can_manage_attachment(
        role=user.role,
        user_id=user.id,
        uploaded_by=attachment.uploaded_by,
        assigned_technician_id=sr.assigned_technician_id,
    ):
        raise AuthorizationError("You don't have permission to modify this attachment")


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    file: Optional[UploadFile] = File(None),
    serviceRequestId: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    isCustomerVisible: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
    user: User = Depends(require_permissions(PERM.SERVICE_UPDATE)),
):
    """
    Multipart upload: store the blob, then record the attachment row.
    If the row cannot be written the blob is removed again (best effort).
    """
    if file is None:
        raise ValidationError("No file provided")
    if not serviceRequestId:
        raise ValidationError("Service request ID is required")

    try:
        request_id = uuid.UUID(serviceRequestId)
    except ValueError:
        raise ValidationError("Invalid service request ID")

    data = await file.read()
    if len(data) > MAX_FILE_SIZE:
        raise ValidationError("File size exceeds 10MB limit")
    if file.content_type not in ALLOWED_FILE_TYPES:
        raise ValidationError("File type not allowed")

    sr = await load_service_request(db, request_id)
    if not can_edit_service_request(role=user.role, user_id=user.id, assigned_technician_id=sr.assigned_technician_id):
        raise AuthorizationError("You don't have permission to upload files to this service request")

    path = f"service-requests/{sr.id}/{uuid.uuid4()}.{_extension(file.filename)}"
    try:
        await storage.upload(ATTACHMENTS_BUCKET, path, data)
    except OSError:
        logger.exception("Storage upload failed for %s", path)
        raise PlatformError("Failed to upload file to storage")

    attachment = ServiceRequestAttachment(
        id=uuid.uuid4(),
        service_request_id=sr.id,
        uploaded_by=user.id,
        file_name=file.filename or path.rsplit("/", 1)[-1],
        file_url=storage.get_public_url(ATTACHMENTS_BUCKET, path),
        file_type=file.content_type,
        file_size=len(data),
        description=description or None,
        is_customer_visible=isCustomerVisible == "true",
    )
    db.add(attachment)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Attachment insert failed, removing blob %s", path)
        try:
            await storage.remove(ATTACHMENTS_BUCKET, path)
        except OSError:
            logger.warning("Could not remove orphaned blob %s", path)
        raise PlatformError("Failed to create attachment record")

    return UploadResponse(
        message="File uploaded successfully",
        attachment=AttachmentResponse.model_validate(await _load_attachment(db, sr.id, attachment.id)),
    )


@router.get("/{service_request_id}/attachments", response_model=List[AttachmentResponse])
async def list_attachments(
    sr: ServiceRequest = Depends(get_viewable_service_request),
    db: AsyncSession = Depends(get_db),
):
    stmt = (
        select(ServiceRequestAttachment)
        .where(ServiceRequestAttachment.service_request_id == sr.id)
        .options(selectinload(ServiceRequestAttachment.uploaded_by_user))
        .order_by(ServiceRequestAttachment.created_at.desc())
    )
    result = await db.execute(stmt)
    return result.scalars().all()


@router.post(
    "/{service_request_id}/attachments",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_attachment(
    payload: AttachmentCreate,
    sr: ServiceRequest = Depends(get_editable_service_request),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Record an attachment whose blob is already hosted (metadata only)."""
    attachment = ServiceRequestAttachment(
        id=uuid.uuid4(),
        service_request_id=sr.id,
        uploaded_by=user.id,
        **payload.model_dump(),
    )
    db.add(attachment)
    await db.commit()
    return await _load_attachment(db, sr.id, attachment.id)


@router.get("/{service_request_id}/attachments/{attachment_id}", response_model=AttachmentResponse)
async def get_attachment(
    attachment_id: uuid.UUID,
    sr: ServiceRequest = Depends(get_viewable_service_request),
    db: AsyncSession = Depends(get_db),
):
    return await _load_attachment(db, sr.id, attachment_id)


@router.put("/{service_request_id}/attachments/{attachment_id}", response_model=AttachmentResponse)
async def update_attachment(
    attachment_id: uuid.UUID,
    payload: AttachmentUpdate,
    sr: ServiceRequest = Depends(get_viewable_service_request),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    attachment = await _load_attachment(db, sr.id, attachment_id)
    _ensure_can_manage(user, sr, attachment)

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(attachment, field, value)

    await db.commit()
    return await _load_attachment(db, sr.id, attachment_id)


@router.delete("/{service_request_id}/attachments/{attachment_id}", response_model=SuccessResponse)
async def delete_attachment(
    attachment_id: uuid.UUID,
    sr: ServiceRequest = Depends(get_viewable_service_request),
    db: AsyncSession = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
    user: User = Depends(get_current_user),
):
    attachment = await _load_attachment(db, sr.id, attachment_id)
    _ensure_can_manage(user, sr, attachment)

    # Blob first; a storage failure does not block removing the row.
    path = storage.path_from_public_url(ATTACHMENTS_BUCKET, attachment.file_url)
    if path:
        try:
            await storage.remove(ATTACHMENTS_BUCKET, path)
        except (OSError, ValueError):
            logger.warning("Could not remove blob %s for attachment %s", path, attachment_id)

    await db.delete(attachment)
    await db.commit()
    return SuccessResponse()
