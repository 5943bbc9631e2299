# backend/comprint/api/v1/auth.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from comprint.api.deps.auth import get_current_user
from comprint.core.errors import AuthenticationError, ValidationError
from comprint.core.security import create_access_token, verify_password
from comprint.db.session import get_db
from comprint.models.user import User
from comprint.schemas.users import LoginRequest, ProfileUpdateRequest, TokenResponse, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    """
    Body: {"email": "...", "password": "..."}
    Returns a bearer token whose `sub` is the user id.
    """
    email = User.normalize_email(payload.email)
    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()

    # Same message for unknown email and bad password.
    if user is None or not verify_password(payload.password, user.password_hash):
        logger.info("Failed login for %s", email)
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise AuthenticationError("User inactive")

    return TokenResponse(
        access_token=create_access_token(str(user.id)),
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return user


@router.patch("/me", response_model=UserResponse)
async def update_me(
    payload: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    if "full_name" in changes and changes["full_name"] is None:
        raise ValidationError("full_name cannot be empty")

    for field, value in changes.items():
        setattr(user, field, value)

    await db.commit()
    await db.refresh(user)
    return user
