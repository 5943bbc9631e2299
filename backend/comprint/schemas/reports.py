from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel

from comprint.schemas.catalog import ProductSummary
from comprint.schemas.customers import CustomerResponse
from comprint.schemas.users import UserSummary


class PerformerStats(BaseModel):
    sales_person: UserSummary
    sale_count: int
    revenue: Decimal


class DailySales(BaseModel):
    day: date
    sale_count: int
    revenue: Decimal


class SalesPerformanceReport(BaseModel):
    totalSales: int
    totalRevenue: Decimal
    averageOrderValue: Decimal
    topPerformers: List[PerformerStats]
    salesTrend: List[DailySales]


# -----------------------------
# Product performance
# -----------------------------
class ProductStats(BaseModel):
    product: ProductSummary
    total_quantity: int
    total_revenue: Decimal
    total_profit: Decimal


class CategoryStats(BaseModel):
    category_id: uuid.UUID
    category_name: str
    total_quantity: int
    total_revenue: Decimal
    product_count: int


class LowStockProduct(BaseModel):
    product: ProductSummary
    current_stock: int
    reorder_level: int


class ProductPerformanceReport(BaseModel):
    topProducts: List[ProductStats]
    categoryPerformance: List[CategoryStats]
    lowStockProducts: List[LowStockProduct]


# -----------------------------
# Customers
# -----------------------------
class CustomerStats(BaseModel):
    customer: CustomerResponse
    total_purchases: int
    total_spent: Decimal
    last_purchase_date: datetime


class CustomerAcquisition(BaseModel):
    day: date
    new_customers: int


class CustomerRetention(BaseModel):
    returning_customers: int
    new_customers: int
    # percent of purchasing customers with more than one paid sale
    retention_rate: Decimal


class CustomerReport(BaseModel):
    topCustomers: List[CustomerStats]
    customerAcquisition: List[CustomerAcquisition]
    customerRetention: CustomerRetention


# -----------------------------
# Time-based analytics
# -----------------------------
class PeriodSales(BaseModel):
    period: str  # YYYY-MM-DD or YYYY-MM
    sale_count: int
    revenue: Decimal
    profit: Decimal


class HourlySales(BaseModel):
    hour: int
    sale_count: int
    revenue: Decimal


class WeekdaySales(BaseModel):
    day_of_week: str
    sale_count: int
    revenue: Decimal


class TimeAnalyticsReport(BaseModel):
    dailySales: List[PeriodSales]
    monthlySales: List[PeriodSales]
    salesByHour: List[HourlySales]
    salesByDayOfWeek: List[WeekdaySales]
