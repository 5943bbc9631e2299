from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BranchBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    location: str = Field(..., min_length=1, max_length=500)
    commission_cutoff: Decimal = Field(default=Decimal("0"), ge=0)
    commission_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)


class BranchCreate(BranchBase):
    pass


class BranchUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    location: Optional[str] = Field(None, min_length=1, max_length=500)
    commission_cutoff: Optional[Decimal] = Field(None, ge=0)
    commission_percentage: Optional[Decimal] = Field(None, ge=0, le=100)

    @field_validator("name", "location", "commission_cutoff", "commission_percentage")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class BranchResponse(BranchBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
