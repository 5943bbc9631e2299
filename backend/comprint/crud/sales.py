# comprint/crud/sales.py
from __future__ import annotations

import uuid
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from comprint.core.commissions import compute_commission_amount
from comprint.core.errors import ConflictError, NotFoundError
from comprint.core.numbering import utcnow
from comprint.crud.numbering import next_invoice_number
from comprint.models.customer import Customer
from comprint.models.product import Product
from comprint.models.sale import Sale, SaleItem
from comprint.models.sales_commission import SalesCommission
from comprint.models.user import User
from comprint.schemas.sales import SaleCreate, SaleItemCreate


async def get_sale_detail(db: AsyncSession, sale_id: uuid.UUID) -> Optional[Sale]:
    stmt = (
        select(Sale)
        .where(Sale.id == sale_id)
        .options(
            selectinload(Sale.customer),
            selectinload(Sale.sales_person),
            selectinload(Sale.items).selectinload(SaleItem.product),
        )
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def _ensure_references(
    db: AsyncSession,
    sale: SaleCreate,
    sales_person_id: uuid.UUID,
    items: Sequence[SaleItemCreate],
) -> None:
    if await db.get(User, sales_person_id) is None:
        raise NotFoundError("Sales person not found")

    if sale.customer_id is not None and await db.get(Customer, sale.customer_id) is None:
        raise NotFoundError("Customer not found")

    product_ids = {i.product_id for i in items}
    found = set((await db.execute(select(Product.id).where(Product.id.in_(product_ids)))).scalars().all())
    missing = product_ids - found
    if missing:
        raise NotFoundError(f"Product not found: {', '.join(sorted(str(m) for m in missing))}")


async def create_sale_with_items(
    db: AsyncSession,
    *,
    sale: SaleCreate,
    items: Sequence[SaleItemCreate],
    default_sales_person_id: uuid.UUID,
) -> Sale:
    """
    Writes the sale, its items and (when the amount is > 0) its commission
    in one transaction. Either all rows land or none do.
    """
    sales_person_id = sale.sales_person_id or default_sales_person_id
    await _ensure_references(db, sale, sales_person_id, items)

    invoice_number = sale.invoice_number or await next_invoice_number(db)
    exists = await db.execute(select(Sale.id).where(Sale.invoice_number == invoice_number))
    if exists.first() is not None:
        raise ConflictError("Invoice number already exists")

    new_sale = Sale(
        id=uuid.uuid4(),
        invoice_number=invoice_number,
        customer_id=sale.customer_id,
        sales_person_id=sales_person_id,
        sale_date=sale.sale_date or utcnow(),
        subtotal=sale.subtotal,
        tax_amount=sale.tax_amount,
        discount_amount=sale.discount_amount,
        total_amount=sale.total_amount,
        payment_status=sale.payment_status,
        payment_method=sale.payment_method,
        notes=sale.notes,
    )
    new_sale.items = [
        SaleItem(
            id=uuid.uuid4(),
            product_id=i.product_id,
            quantity=i.quantity,
            unit_price=i.unit_price,
            commission_rate=i.commission_rate,
            discount_percent=i.discount_percent,
            total_price=i.total_price,
        )
        for i in items
    ]

    amount = compute_commission_amount(items)
    if amount > 0:
        new_sale.commission = SalesCommission(
            id=uuid.uuid4(),
            sales_person_id=sales_person_id,
            commission_amount=amount,
            is_paid=False,
        )

    db.add(new_sale)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return await get_sale_detail(db, new_sale.id)
