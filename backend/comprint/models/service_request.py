# comprint/models/service_request.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from comprint.db.base import Base

SERVICE_PRIORITIES = ("low", "medium", "high", "urgent")
SERVICE_STATUSES = (
    "pending",
    "assigned",
    "in_progress",
    "waiting_parts",
    "completed",
    "on_hold",
    "cancelled",
)
SERVICE_PAYMENT_STATUSES = ("pending", "paid", "refunded")
UPDATE_TYPES = (
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
)


class ServiceRequest(Base):
    __tablename__ = "service_requests"
    __table_args__ = (
        Index("ix_service_requests_status", "status"),
        Index("ix_service_requests_assigned_technician", "assigned_technician_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # SR-YYMMDD-NNNN
    request_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    service_category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("service_categories.id", ondelete="RESTRICT"), nullable=False
    )
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True
    )

    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    device_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    device_brand: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    device_model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    device_serial_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    estimated_completion: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    estimated_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    final_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    customer_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    internal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    assigned_technician_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    service_category = relationship("ServiceCategory")
    customer = relationship("Customer")
    assigned_technician = relationship("User", foreign_keys=[assigned_technician_id])
    created_by_user = relationship("User", foreign_keys=[created_by])

    attachments = relationship(
        "ServiceRequestAttachment",
        back_populates="service_request",
        cascade="all, delete-orphan",
    )
    updates = relationship(
        "ServiceRequestUpdate",
        back_populates="service_request",
        cascade="all, delete-orphan",
    )


class ServiceRequestAttachment(Base):
    __tablename__ = "service_request_attachments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    service_request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    uploaded_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    file_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_customer_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    service_request = relationship("ServiceRequest", back_populates="attachments")
    uploaded_by_user = relationship("User")


class ServiceRequestUpdate(Base):
    """Timeline entry on a service request (status changes, notes, contact log)."""

    __tablename__ = "service_request_updates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    service_request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    update_type: Mapped[str] = mapped_column(String(40), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status_from: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    status_to: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    is_customer_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notification_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    service_request = relationship("ServiceRequest", back_populates="updates")
    updated_by_user = relationship("User")
