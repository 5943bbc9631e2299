from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from comprint.api.deps.permissions import require_permissions
from comprint.auth.permissions import PERM
from comprint.core.errors import ConflictError, NotFoundError
from comprint.db.session import get_db
from comprint.models.branch import Branch
from comprint.models.user import User
from comprint.schemas.branches import BranchCreate, BranchResponse, BranchUpdate
from comprint.schemas.common import SuccessResponse

router = APIRouter(prefix="/branches", tags=["branches"])


async def _get_branch(db: AsyncSession, branch_id: uuid.UUID) -> Branch:
    branch = await db.get(Branch, branch_id)
    if not branch:
        raise NotFoundError("Branch not found")
    return branch


@router.get("", response_model=List[BranchResponse])
async def list_branches(
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.BRANCHES_READ)),
):
    result = await db.execute(select(Branch).order_by(Branch.name.asc()))
    return result.scalars().all()


@router.post("", response_model=BranchResponse, status_code=status.HTTP_201_CREATED)
async def create_branch(
    payload: BranchCreate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.BRANCHES_WRITE)),
):
    branch = Branch(id=uuid.uuid4(), **payload.model_dump())
    db.add(branch)
    await db.commit()
    await db.refresh(branch)
    return branch


@router.patch("/{branch_id}", response_model=SuccessResponse)
async def update_branch(
    branch_id: uuid.UUID,
    payload: BranchUpdate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.BRANCHES_WRITE)),
):
    branch = await _get_branch(db, branch_id)

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(branch, field, value)

    await db.commit()
    return SuccessResponse()


@router.delete("/{branch_id}", response_model=SuccessResponse)
async def delete_branch(
    branch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.BRANCHES_WRITE)),
):
    branch = await _get_branch(db, branch_id)

    user_count = (
        await db.execute(select(func.count(User.id)).where(User.branch_id == branch.id))
    ).scalar() or 0
    if user_count:
        raise ConflictError("Cannot delete branch with associated users")

    await db.delete(branch)
    await db.commit()
    return SuccessResponse()
