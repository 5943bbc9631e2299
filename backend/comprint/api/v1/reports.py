from __future__ import annotations

import uuid
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from comprint.api.deps.permissions import require_permissions
from comprint.auth.permissions import PERM
from comprint.core.commissions import CENT
from comprint.core.filters import date_range_clauses, parse_date_bound
from comprint.core.inventory import DEFAULT_REORDER_LEVEL, is_low_stock
from comprint.core.numbering import utcnow
from comprint.db.session import get_db
from comprint.models.customer import Customer
from comprint.models.inventory import InventoryRecord
from comprint.models.product import Product
from comprint.models.sale import Sale, SaleItem
from comprint.schemas.catalog import ProductSummary
from comprint.schemas.customers import CustomerResponse
from comprint.schemas.reports import (
    CategoryStats,
    CustomerAcquisition,
    CustomerReport,
    CustomerRetention,
    CustomerStats,
    DailySales,
    HourlySales,
    LowStockProduct,
    PerformerStats,
    PeriodSales,
    ProductPerformanceReport,
    ProductStats,
    SalesPerformanceReport,
    TimeAnalyticsReport,
    WeekdaySales,
)
from comprint.schemas.users import UserSummary

router = APIRouter(prefix="/reports", tags=["reports"])

TOP_PERFORMERS = 5
TOP_PRODUCTS = 10
TOP_CUSTOMERS = 10
TREND_DAYS = 30
WEEKDAYS = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


@router.get("/sales-performance", response_model=SalesPerformanceReport)
async def sales_performance(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.REPORTS_READ)),
):
    """
    Totals and top performers over paid sales in the date range, plus a
    daily trend for the last 30 days (days without sales included as 0).
    """
    stmt = (
        select(Sale)
        .where(Sale.payment_status == "paid")
        .options(selectinload(Sale.sales_person))
    )
    start = parse_date_bound(startDate, name="startDate")
    end = parse_date_bound(endDate, name="endDate", end=True)
    for clause in date_range_clauses(Sale.sale_date, start, end):
        stmt = stmt.where(clause)

    sales = (await db.execute(stmt)).scalars().all()

    total_revenue = sum((s.total_amount for s in sales), Decimal("0"))
    average = (total_revenue / len(sales)).quantize(CENT, rounding=ROUND_HALF_UP) if sales else Decimal("0.00")

    per_person: dict = {}
    for s in sales:
        stats = per_person.setdefault(
            s.sales_person_id,
            {"sales_person": s.sales_person, "sale_count": 0, "revenue": Decimal("0")},
        )
        stats["sale_count"] += 1
        stats["revenue"] += s.total_amount
    top = sorted(per_person.values(), key=lambda p: p["revenue"], reverse=True)[:TOP_PERFORMERS]

    today = utcnow().date()
    first_day = today - timedelta(days=TREND_DAYS - 1)
    by_day: dict = defaultdict(lambda: [0, Decimal("0")])
    for s in sales:
        day = s.sale_date.date()
        if first_day <= day <= today:
            by_day[day][0] += 1
            by_day[day][1] += s.total_amount

    trend = []
    for offset in range(TREND_DAYS):
        day = first_day + timedelta(days=offset)
        count, revenue = by_day.get(day, (0, Decimal("0")))
        trend.append(DailySales(day=day, sale_count=count, revenue=revenue))

    return SalesPerformanceReport(
        totalSales=len(sales),
        totalRevenue=total_revenue,
        averageOrderValue=average,
        topPerformers=[
            PerformerStats(
                sales_person=UserSummary.model_validate(p["sales_person"]),
                sale_count=p["sale_count"],
                revenue=p["revenue"],
            )
            for p in top
        ],
        salesTrend=trend,
    )


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _sale_profit(sale: Sale) -> Decimal:
    return sum(
        (i.quantity * (i.unit_price - i.product.cost_price) for i in sale.items if i.product is not None),
        Decimal("0"),
    )


@router.get("/product-performance", response_model=ProductPerformanceReport)
async def product_performance(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    categoryId: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.REPORTS_READ)),
):
    """
    Top ten products by revenue (with profit against cost price), totals per
    category, and products at or below their reorder level.
    Cancelled sales are left out.
    """
    stmt = (
        select(SaleItem)
        .join(Sale, SaleItem.sale_id == Sale.id)
        .where(Sale.payment_status != "cancelled")
        .options(selectinload(SaleItem.product).selectinload(Product.category))
    )
    start = parse_date_bound(startDate, name="startDate")
    end = parse_date_bound(endDate, name="endDate", end=True)
    for clause in date_range_clauses(Sale.sale_date, start, end):
        stmt = stmt.where(clause)
    if categoryId is not None:
        stmt = stmt.join(Product, SaleItem.product_id == Product.id).where(Product.category_id == categoryId)

    items = (await db.execute(stmt)).scalars().all()

    per_product: dict = {}
    per_category: dict = {}
    for item in items:
        product = item.product
        revenue = item.quantity * item.unit_price

        stats = per_product.setdefault(
            product.id,
            {"product": product, "total_quantity": 0, "total_revenue": Decimal("0"), "total_profit": Decimal("0")},
        )
        stats["total_quantity"] += item.quantity
        stats["total_revenue"] += revenue
        stats["total_profit"] += item.quantity * (item.unit_price - product.cost_price)

        if product.category is None:
            continue
        cat = per_category.setdefault(
            product.category_id,
            {
                "category_id": product.category_id,
                "category_name": product.category.name,
                "total_quantity": 0,
                "total_revenue": Decimal("0"),
                "products": set(),
            },
        )
        cat["total_quantity"] += item.quantity
        cat["total_revenue"] += revenue
        cat["products"].add(product.id)

    top = sorted(per_product.values(), key=lambda p: p["total_revenue"], reverse=True)[:TOP_PRODUCTS]
    categories = sorted(per_category.values(), key=lambda c: c["total_revenue"], reverse=True)

    inv_stmt = (
        select(InventoryRecord)
        .join(Product, InventoryRecord.product_id == Product.id)
        .options(selectinload(InventoryRecord.product))
        .order_by(InventoryRecord.quantity, Product.name)
    )
    if categoryId is not None:
        inv_stmt = inv_stmt.where(Product.category_id == categoryId)
    records = (await db.execute(inv_stmt)).scalars().all()

    return ProductPerformanceReport(
        topProducts=[
            ProductStats(
                product=ProductSummary.model_validate(p["product"]),
                total_quantity=p["total_quantity"],
                total_revenue=p["total_revenue"],
                total_profit=p["total_profit"],
            )
            for p in top
        ],
        categoryPerformance=[
            CategoryStats(
                category_id=c["category_id"],
                category_name=c["category_name"],
                total_quantity=c["total_quantity"],
                total_revenue=c["total_revenue"],
                product_count=len(c["products"]),
            )
            for c in categories
        ],
        lowStockProducts=[
            LowStockProduct(
                product=ProductSummary.model_validate(r.product),
                current_stock=r.quantity,
                reorder_level=DEFAULT_REORDER_LEVEL if r.reorder_level is None else r.reorder_level,
            )
            for r in records
            if is_low_stock(r.quantity, r.reorder_level)
        ],
    )


@router.get("/customers", response_model=CustomerReport)
async def customer_report(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.REPORTS_READ)),
):
    """Top ten customers over paid sales, new customers per day, and repeat-purchase rate."""
    start = parse_date_bound(startDate, name="startDate")
    end = parse_date_bound(endDate, name="endDate", end=True)

    stmt = (
        select(Sale)
        .where(Sale.payment_status == "paid", Sale.customer_id.is_not(None))
        .options(selectinload(Sale.customer))
    )
    for clause in date_range_clauses(Sale.sale_date, start, end):
        stmt = stmt.where(clause)
    sales = (await db.execute(stmt)).scalars().all()

    per_customer: dict = {}
    for s in sales:
        stats = per_customer.setdefault(
            s.customer_id,
            {"customer": s.customer, "total_purchases": 0, "total_spent": Decimal("0"), "last_purchase_date": s.sale_date},
        )
        stats["total_purchases"] += 1
        stats["total_spent"] += s.total_amount
        if _as_utc(s.sale_date) > _as_utc(stats["last_purchase_date"]):
            stats["last_purchase_date"] = s.sale_date
    top = sorted(per_customer.values(), key=lambda c: c["total_spent"], reverse=True)[:TOP_CUSTOMERS]

    returning = sum(1 for c in per_customer.values() if c["total_purchases"] > 1)
    buyers = len(per_customer)
    rate = (Decimal(returning) * 100 / buyers).quantize(CENT, rounding=ROUND_HALF_UP) if buyers else Decimal("0.00")

    cust_stmt = select(Customer.created_at)
    for clause in date_range_clauses(Customer.created_at, start, end):
        cust_stmt = cust_stmt.where(clause)
    joined = Counter(_as_utc(created).date() for created in (await db.execute(cust_stmt)).scalars().all())

    return CustomerReport(
        topCustomers=[
            CustomerStats(
                customer=CustomerResponse.model_validate(c["customer"]),
                total_purchases=c["total_purchases"],
                total_spent=c["total_spent"],
                last_purchase_date=c["last_purchase_date"],
            )
            for c in top
        ],
        customerAcquisition=[CustomerAcquisition(day=day, new_customers=n) for day, n in sorted(joined.items())],
        customerRetention=CustomerRetention(
            returning_customers=returning,
            new_customers=buyers - returning,
            retention_rate=rate,
        ),
    )


@router.get("/time-analytics", response_model=TimeAnalyticsReport)
async def time_analytics(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_permissions(PERM.REPORTS_READ)),
):
    """
    Paid sales bucketed by day and by month (revenue and profit), by hour of
    day and by weekday. Buckets are in UTC; hour and weekday buckets are
    always complete.
    """
    stmt = (
        select(Sale)
        .where(Sale.payment_status == "paid")
        .options(selectinload(Sale.items).selectinload(SaleItem.product))
    )
    start = parse_date_bound(startDate, name="startDate")
    end = parse_date_bound(endDate, name="endDate", end=True)
    for clause in date_range_clauses(Sale.sale_date, start, end):
        stmt = stmt.where(clause)
    sales = (await db.execute(stmt)).scalars().all()

    daily: dict = defaultdict(lambda: [0, Decimal("0"), Decimal("0")])
    monthly: dict = defaultdict(lambda: [0, Decimal("0"), Decimal("0")])
    hourly = [[0, Decimal("0")] for _ in range(24)]
    weekly = [[0, Decimal("0")] for _ in WEEKDAYS]

    for s in sales:
        when = _as_utc(s.sale_date)
        profit = _sale_profit(s)
        for bucket in (daily[f"{when:%Y-%m-%d}"], monthly[f"{when:%Y-%m}"]):
            bucket[0] += 1
            bucket[1] += s.total_amount
            bucket[2] += profit
        hourly[when.hour][0] += 1
        hourly[when.hour][1] += s.total_amount
        # isoweekday: Monday=1 .. Sunday=7; the list starts on Sunday
        day_index = when.isoweekday() % 7
        weekly[day_index][0] += 1
        weekly[day_index][1] += s.total_amount

    def periods(buckets: dict) -> list:
        return [
            PeriodSales(period=key, sale_count=count, revenue=revenue, profit=profit)
            for key, (count, revenue, profit) in sorted(buckets.items())
        ]

    return TimeAnalyticsReport(
        dailySales=periods(daily),
        monthlySales=periods(monthly),
        salesByHour=[HourlySales(hour=h, sale_count=c, revenue=r) for h, (c, r) in enumerate(hourly)],
        salesByDayOfWeek=[
            WeekdaySales(day_of_week=name, sale_count=c, revenue=r) for name, (c, r) in zip(WEEKDAYS, weekly)
        ],
    )
