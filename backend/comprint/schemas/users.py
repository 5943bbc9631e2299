# backend/comprint/schemas/users.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from comprint.core.roles import UserRole


def _normalize_full_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    v = " ".join(value.strip().split())
    return v or None


class UserSummary(BaseModel):
    """Embedded user shape (sales person, technician, uploader)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    full_name: str
    staff_id: str
    role: UserRole


class UserResponse(UserSummary):
    branch_id: Optional[uuid.UUID] = None
    address: Optional[str] = None
    contact_number: Optional[str] = None
    profile_image_url: Optional[str] = None
    is_active: bool

    created_at: datetime
    updated_at: datetime


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    full_name: str = Field(min_length=2, max_length=200)
    staff_id: str = Field(min_length=1, max_length=50)
    role: UserRole
    branch_id: Optional[uuid.UUID] = None
    contact_number: Optional[str] = Field(default=None, max_length=32)
    address: Optional[str] = Field(default=None, max_length=500)

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        normalized = _normalize_full_name(v)
        if not normalized:
            raise ValueError("Full name is required")
        return normalized


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    full_name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    staff_id: Optional[str] = Field(default=None, min_length=1, max_length=50)
    role: Optional[UserRole] = None
    branch_id: Optional[uuid.UUID] = None
    contact_number: Optional[str] = Field(default=None, max_length=32)
    address: Optional[str] = Field(default=None, max_length=500)
    profile_image_url: Optional[str] = Field(default=None, max_length=1000)
    is_active: Optional[bool] = None

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_full_name(v)


class UserCreatedResponse(BaseModel):
    success: bool = True
    userId: uuid.UUID


# -----------------------------
# Auth
# -----------------------------
class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Allow null to clear; reject empty strings via validators (normalize -> None)
    full_name: Optional[str] = Field(default=None, max_length=200)
    contact_number: Optional[str] = Field(default=None, max_length=32)
    address: Optional[str] = Field(default=None, max_length=500)
    profile_image_url: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_full_name(v)
