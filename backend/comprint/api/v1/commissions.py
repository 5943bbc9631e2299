from __future__ import annotations

import uuid
from decimal import Decimal
from typing import List, Literal, Optional, Union

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from comprint.api.deps.permissions import require_permissions
from comprint.auth.permissions import PERM, is_permitted
from comprint.core.errors import AuthorizationError, NotFoundError
from comprint.core.filters import date_range_clauses, parse_bool_flag, parse_date_bound
from comprint.core.numbering import utcnow
from comprint.crud.commissions import repair_commission, repair_commissions
from comprint.db.session import get_db
from comprint.models.sales_commission import SalesCommission
from comprint.models.user import User
from comprint.schemas.commissions import (
    CommissionBulkPaymentUpdate,
    CommissionDetail,
    CommissionDetailedReport,
    CommissionPaymentUpdate,
    CommissionSummaryReport,
    CommissionTotals,
    RepairResponse,
    SalesPersonCommissionSummary,
)
from comprint.schemas.common import DataResponse
from comprint.schemas.users import UserSummary

router = APIRouter(prefix="/commissions", tags=["commissions"])


def _detail_query():
    return select(SalesCommission).options(
        selectinload(SalesCommission.sale),
        selectinload(SalesCommission.sales_person),
    )


def _filtered_query(
    user: User,
    *,
    startDate: Optional[str],
    endDate: Optional[str],
    salesPersonId: Optional[uuid.UUID],
    isPaid: Optional[str],
):
    stmt = _detail_query().order_by(SalesCommission.created_at.desc())

    # Without read_all a caller only ever sees their own commissions.
    if not is_permitted(role=user.role, required=PERM.COMMISSIONS_READ_ALL):
        stmt = stmt.where(SalesCommission.sales_person_id == user.id)
    elif salesPersonId is not None:
        stmt = stmt.where(SalesCommission.sales_person_id == salesPersonId)

    start = parse_date_bound(startDate, name="startDate")
    end = parse_date_bound(endDate, name="endDate", end=True)
    for clause in date_range_clauses(SalesCommission.created_at, start, end):
        stmt = stmt.where(clause)

    paid = parse_bool_flag(isPaid)
    if paid is not None:
        stmt = stmt.where(SalesCommission.is_paid.is_(paid))

    return stmt


async def _load_commission(db: AsyncSession, commission_id: uuid.UUID) -> SalesCommission:
    stmt = (
        _detail_query()
        .where(SalesCommission.id == commission_id)
        .execution_options(populate_existing=True)
    )
    commission = (await db.execute(stmt)).scalar_one_or_none()
    if not commission:
        raise NotFoundError("Commission not found")
    return commission


async def _set_paid(db: AsyncSession, commission_id: uuid.UUID, is_paid: bool) -> SalesCommission:
    commission = await db.get(SalesCommission, commission_id)
    if not commission:
        raise NotFoundError("Commission not found")

    commission.is_paid = is_paid
    commission.payment_date = utcnow() if is_paid else None
    await db.commit()
    return await _load_commission(db, commission_id)


def _totals(commissions) -> CommissionTotals:
    totals = CommissionTotals()
    for c in commissions:
        amount = c.commission_amount or Decimal("0")
        totals.total_commission += amount
        if c.is_paid:
            totals.paid_commission += amount
        else:
            totals.unpaid_commission += amount
        totals.sale_count += 1
    return totals


@router.get("", response_model=DataResponse[List[CommissionDetail]])
async def list_commissions(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    salesPersonId: Optional[uuid.UUID] = Query(None),
    isPaid: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permissions(PERM.COMMISSIONS_READ)),
):
    stmt = _filtered_query(
        user, startDate=startDate, endDate=endDate, salesPersonId=salesPersonId, isPaid=isPaid
    )
    result = await db.execute(stmt)
    return {"data": result.scalars().all()}


@router.patch("", response_model=DataResponse[CommissionDetail])
async def mark_commission_paid(
    payload: CommissionBulkPaymentUpdate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.COMMISSIONS_WRITE)),
):
    """Body: {"id": "...", "is_paid": true}"""
    return {"data": await _set_paid(db, payload.id, payload.is_paid)}


@router.post("/repair", response_model=RepairResponse)
async def repair_all_commissions(
    onlyZeroAmount: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.COMMISSIONS_REPAIR)),
):
    """
    Recompute every commission (or only zero/NULL ones) from its sale's
    items. Failing rows are reported, not fatal.
    """
    results = await repair_commissions(db, only_zero_amount=bool(parse_bool_flag(onlyZeroAmount)))
    return RepairResponse(results=results)


@router.get(
    "/reports",
    response_model=DataResponse[Union[CommissionSummaryReport, CommissionDetailedReport]],
)
async def commission_report(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    salesPersonId: Optional[uuid.UUID] = Query(None),
    isPaid: Optional[str] = Query(None),
    reportType: Literal["summary", "detailed"] = Query("summary"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permissions(PERM.COMMISSIONS_READ)),
):
    stmt = _filtered_query(
        user, startDate=startDate, endDate=endDate, salesPersonId=salesPersonId, isPaid=isPaid
    )
    commissions = (await db.execute(stmt)).scalars().all()
    totals = _totals(commissions)

    if reportType == "detailed":
        report = CommissionDetailedReport(
            commissions=[CommissionDetail.model_validate(c) for c in commissions],
            totals=totals,
        )
        return {"data": report}

    by_person: dict = {}
    for c in commissions:
        by_person.setdefault(c.sales_person_id, []).append(c)

    summary = []
    for rows in by_person.values():
        person_totals = _totals(rows)
        summary.append(
            SalesPersonCommissionSummary(
                sales_person=UserSummary.model_validate(rows[0].sales_person),
                **person_totals.model_dump(),
            )
        )
    summary.sort(key=lambda s: s.total_commission, reverse=True)

    return {"data": CommissionSummaryReport(summary=summary, totals=totals)}


@router.get("/{commission_id}", response_model=DataResponse[CommissionDetail])
async def get_commission(
    commission_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permissions(PERM.COMMISSIONS_READ)),
):
    commission = await _load_commission(db, commission_id)
    if (
        not is_permitted(role=user.role, required=PERM.COMMISSIONS_READ_ALL)
        and commission.sales_person_id != user.id
    ):
        raise AuthorizationError("You can only view your own commissions")
    return {"data": commission}


@router.patch("/{commission_id}", response_model=DataResponse[CommissionDetail])
async def update_commission(
    commission_id: uuid.UUID,
    payload: CommissionPaymentUpdate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.COMMISSIONS_WRITE)),
):
    return {"data": await _set_paid(db, commission_id, payload.is_paid)}


@router.post("/{commission_id}/repair", response_model=DataResponse[CommissionDetail])
async def repair_single_commission(
    commission_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.COMMISSIONS_REPAIR)),
):
    commission = await repair_commission(db, commission_id)
    return {"data": await _load_commission(db, commission.id)}
