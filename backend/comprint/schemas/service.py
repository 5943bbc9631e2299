from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from comprint.schemas.customers import CustomerResponse
from comprint.schemas.users import UserSummary

ServicePriority = Literal["low", "medium", "high", "urgent"]
ServiceStatus = Literal[
    "pending",
    "assigned",
    "in_progress",
    "waiting_parts",
    "completed",
    "on_hold",
    "cancelled",
]
ServicePaymentStatus = Literal["pending", "paid", "refunded"]
UpdateType = Literal[
    "status_change",
    "note_added",
    "technician_assigned",
    "parts_added",
    "customer_contacted",
    "payment_received",
    "completion_notice",
    "issue_found",
    "progress_update",
    "general_update",
]


# -----------------------------
# Service categories
# -----------------------------
class ServiceCategoryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    estimated_duration: Optional[int] = Field(None, gt=0)
    base_price: Optional[Decimal] = Field(None, gt=0)
    is_active: bool = True


class ServiceCategoryResponse(ServiceCategoryCreate):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime


# -----------------------------
# Service requests
# -----------------------------
class ServiceRequestCreate(BaseModel):
    title: str = Field(..., min_length=2, max_length=200)
    description: str = Field(..., min_length=10)
    service_category_id: uuid.UUID
    customer_id: Optional[uuid.UUID] = None
    priority: ServicePriority = "medium"

    device_type: Optional[str] = Field(None, max_length=100)
    device_brand: Optional[str] = Field(None, max_length=100)
    device_model: Optional[str] = Field(None, max_length=100)
    device_serial_number: Optional[str] = Field(None, max_length=100)

    estimated_completion: Optional[datetime] = None
    estimated_cost: Optional[Decimal] = Field(None, gt=0)
    customer_notes: Optional[str] = Field(None, max_length=1000)
    internal_notes: Optional[str] = Field(None, max_length=1000)
    assigned_technician_id: Optional[uuid.UUID] = None


class ServiceRequestEdit(BaseModel):
    """
    Partial update. The keys a caller actually sends (exclude_unset) are
    checked against the role's field policy before anything is applied.
    """

    title: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = Field(None, min_length=10)
    service_category_id: Optional[uuid.UUID] = None
    customer_id: Optional[uuid.UUID] = None
    priority: Optional[ServicePriority] = None
    status: Optional[ServiceStatus] = None

    device_type: Optional[str] = Field(None, max_length=100)
    device_brand: Optional[str] = Field(None, max_length=100)
    device_model: Optional[str] = Field(None, max_length=100)
    device_serial_number: Optional[str] = Field(None, max_length=100)

    estimated_completion: Optional[datetime] = None
    estimated_cost: Optional[Decimal] = Field(None, gt=0)
    final_cost: Optional[Decimal] = Field(None, gt=0)
    customer_notes: Optional[str] = Field(None, max_length=1000)
    internal_notes: Optional[str] = Field(None, max_length=1000)
    assigned_technician_id: Optional[uuid.UUID] = None
    payment_status: Optional[ServicePaymentStatus] = None
    completed_date: Optional[datetime] = None

    @field_validator("title", "description", "service_category_id", "priority", "status", "payment_status")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class ServiceRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    request_number: str
    title: str
    description: str
    service_category_id: uuid.UUID
    customer_id: Optional[uuid.UUID] = None
    priority: str
    status: str

    device_type: Optional[str] = None
    device_brand: Optional[str] = None
    device_model: Optional[str] = None
    device_serial_number: Optional[str] = None

    estimated_completion: Optional[datetime] = None
    estimated_cost: Optional[Decimal] = None
    final_cost: Optional[Decimal] = None
    customer_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    assigned_technician_id: Optional[uuid.UUID] = None
    payment_status: str
    completed_date: Optional[datetime] = None
    created_by: Optional[uuid.UUID] = None

    created_at: datetime
    updated_at: datetime


class ServiceRequestDetail(ServiceRequestResponse):
    service_category: Optional[ServiceCategoryResponse] = None
    customer: Optional[CustomerResponse] = None
    assigned_technician: Optional[UserSummary] = None
    created_by_user: Optional[UserSummary] = None


# -----------------------------
# Attachments
# -----------------------------
class AttachmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    service_request_id: uuid.UUID
    uploaded_by: Optional[uuid.UUID] = None
    file_name: str
    file_url: str
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    description: Optional[str] = None
    is_customer_visible: bool
    created_at: datetime

    uploaded_by_user: Optional[UserSummary] = None


class AttachmentCreate(BaseModel):
    """Metadata-only attachment (blob already stored elsewhere)."""

    file_name: str = Field(..., min_length=1, max_length=255)
    file_url: str = Field(..., min_length=1, max_length=1000)
    file_type: Optional[str] = Field(None, max_length=255)
    file_size: Optional[int] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=500)
    is_customer_visible: bool = False


class AttachmentUpdate(BaseModel):
    description: Optional[str] = Field(None, max_length=500)
    is_customer_visible: Optional[bool] = None

    @field_validator("is_customer_visible")
    @classmethod
    def reject_null(cls, v: Optional[bool]) -> bool:
        if v is None:
            raise ValueError("is_customer_visible cannot be null")
        return v


class UploadResponse(BaseModel):
    message: str
    attachment: AttachmentResponse


# -----------------------------
# Updates (timeline)
# -----------------------------
class ServiceUpdateCreate(BaseModel):
    update_type: UpdateType
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    status_from: Optional[str] = None
    status_to: Optional[str] = None
    is_customer_visible: bool = True
    notification_sent: bool = False


class ServiceUpdateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    service_request_id: uuid.UUID
    updated_by: Optional[uuid.UUID] = None
    update_type: str
    title: str
    description: Optional[str] = None
    status_from: Optional[str] = None
    status_to: Optional[str] = None
    is_customer_visible: bool
    notification_sent: bool
    created_at: datetime

    updated_by_user: Optional[UserSummary] = None
