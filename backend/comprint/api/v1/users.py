from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from comprint.api.deps.permissions import require_permissions
from comprint.auth.permissions import PERM
from comprint.core.errors import ConflictError, NotFoundError, ValidationError
from comprint.core.filters import parse_bool_flag, search_clause
from comprint.core.roles import UserRole
from comprint.core.security import hash_password
from comprint.db.session import get_db
from comprint.models.branch import Branch
from comprint.models.user import User
from comprint.schemas.common import SuccessResponse
from comprint.schemas.users import UserCreate, UserCreatedResponse, UserResponse, UserUpdate

router = APIRouter(prefix="/users", tags=["users"])


async def _get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


async def _ensure_branch(db: AsyncSession, branch_id: Optional[uuid.UUID]) -> None:
    if branch_id is not None and await db.get(Branch, branch_id) is None:
        raise NotFoundError("Branch not found")


@router.get("", response_model=List[UserResponse])
async def list_users(
    query: Optional[str] = Query(None),
    role: Optional[UserRole] = Query(None),
    branch_id: Optional[uuid.UUID] = Query(None),
    active: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.USERS_READ)),
):
    stmt = select(User).order_by(User.full_name)

    clause = search_clause(query, User.full_name, User.email, User.staff_id)
    if clause is not None:
        stmt = stmt.where(clause)
    if role is not None:
        stmt = stmt.where(User.role == role.value)
    if branch_id is not None:
        stmt = stmt.where(User.branch_id == branch_id)

    is_active = parse_bool_flag(active)
    if is_active is not None:
        stmt = stmt.where(User.is_active.is_(is_active))

    result = await db.execute(stmt)
    return result.scalars().all()


@router.post("", response_model=UserCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.USERS_WRITE)),
):
    email = User.normalize_email(payload.email)
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.first() is not None:
        raise ConflictError("A user with this email already exists")

    await _ensure_branch(db, payload.branch_id)

    user = User(
        id=uuid.uuid4(),
        email=email,
        password_hash=hash_password(payload.password),
        full_name=payload.full_name,
        staff_id=payload.staff_id,
        role=payload.role.value,
        branch_id=payload.branch_id,
        contact_number=payload.contact_number or None,
        address=payload.address or None,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    return UserCreatedResponse(userId=user.id)


@router.patch("/{user_id}", response_model=SuccessResponse)
async def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.USERS_WRITE)),
):
    user = await _get_user(db, user_id)
    changes = payload.model_dump(exclude_unset=True)

    for required in ("full_name", "staff_id", "role", "is_active"):
        if required in changes and changes[required] is None:
            raise ValidationError(f"{required} cannot be null")

    if "branch_id" in changes:
        await _ensure_branch(db, changes["branch_id"])
    if changes.get("role") is not None:
        changes["role"] = UserRole(changes["role"]).value

    for field, value in changes.items():
        setattr(user, field, value)

    await db.commit()
    return SuccessResponse()


@router.delete("/{user_id}", response_model=SuccessResponse)
async def delete_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current: User = Depends(require_permissions(PERM.USERS_WRITE)),
):
    if user_id == current.id:
        raise ValidationError("You cannot delete your own account")

    user = await _get_user(db, user_id)
    await db.delete(user)
    await db.commit()
    return SuccessResponse()


@router.post("/{user_id}/toggle-status", response_model=SuccessResponse)
async def toggle_user_status(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.USERS_WRITE)),
):
    user = await _get_user(db, user_id)
    user.is_active = not user.is_active
    await db.commit()
    return SuccessResponse()
