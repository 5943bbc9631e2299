# comprint/crud/commissions.py
from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from comprint.core.commissions import compute_commission_amount
from comprint.core.errors import NotFoundError
from comprint.core.numbering import utcnow
from comprint.models.sale import Sale, SaleItem
from comprint.models.sales_commission import SalesCommission
from comprint.schemas.commissions import RepairDetail, RepairResults

logger = logging.getLogger(__name__)


async def recompute_commission(db: AsyncSession, commission_id: uuid.UUID, sale_id: uuid.UUID) -> Decimal:
    """
    Recompute one commission from its sale's items and overwrite the stored
    amount. Does not commit.
    """
    sale_exists = (await db.execute(select(Sale.id).where(Sale.id == sale_id))).first()
    if sale_exists is None:
        raise NotFoundError("Sale not found")

    items = (await db.execute(select(SaleItem).where(SaleItem.sale_id == sale_id))).scalars().all()
    amount = compute_commission_amount(items)

    await db.execute(
        update(SalesCommission)
        .where(SalesCommission.id == commission_id)
        .values(commission_amount=amount, updated_at=utcnow())
    )
    return amount


async def repair_commission(db: AsyncSession, commission_id: uuid.UUID) -> SalesCommission:
    commission = await db.get(SalesCommission, commission_id)
    if not commission:
        raise NotFoundError("Commission not found")

    amount = await recompute_commission(db, commission.id, commission.sale_id)
    await db.commit()
    await db.refresh(commission)
    logger.info("Repaired commission %s: %s", commission_id, amount)
    return commission


async def repair_commissions(db: AsyncSession, *, only_zero_amount: bool = False) -> RepairResults:
    """
    Best-effort batch: each commission is recomputed and committed on its
    own, a failing row is rolled back and recorded, and the batch continues.
    """
    stmt = select(SalesCommission.id, SalesCommission.sale_id).order_by(SalesCommission.created_at)
    if only_zero_amount:
        stmt = stmt.where(
            or_(SalesCommission.commission_amount.is_(None), SalesCommission.commission_amount == 0)
        )

    # Plain tuples: rollback below expires ORM instances.
    rows = [(cid, sid) for cid, sid in (await db.execute(stmt)).all()]

    results = RepairResults(total=len(rows))
    for commission_id, sale_id in rows:
        try:
            amount = await recompute_commission(db, commission_id, sale_id)
            await db.commit()
        except Exception as exc:
            await db.rollback()
            logger.exception("Commission repair failed for %s", commission_id)
            results.failure += 1
            results.details.append(RepairDetail(id=commission_id, success=False, error=str(exc)))
            continue

        results.success += 1
        results.details.append(RepairDetail(id=commission_id, success=True, commission_amount=amount))

    logger.info(
        "Commission repair finished: total=%s success=%s failure=%s",
        results.total,
        results.success,
        results.failure,
    )
    return results
