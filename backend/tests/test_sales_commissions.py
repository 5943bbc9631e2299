# tests/test_sales_commissions.py
from __future__ import annotations

import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy import func, select, update

from comprint.core.commissions import compute_commission_amount
from comprint.models.sale import Sale, SaleItem
from comprint.models.sales_commission import SalesCommission
from conftest import auth_headers
from test_catalog import create_product


def _line(quantity, unit_price, commission_rate):
    return SimpleNamespace(quantity=quantity, unit_price=unit_price, commission_rate=commission_rate)


async def create_sale(client, user, products, *, payment_status="paid", **sale_overrides) -> dict:
    """Two 50.00 units at 10% plus one 100.00 unit at 5% => commission 15.00."""
    first, second = products
    sale = {
        "subtotal": "200.00",
        "total_amount": "200.00",
        "payment_status": payment_status,
        "payment_method": "cash",
    }
    sale.update(sale_overrides)
    items = [
        {
            "product_id": first["id"],
            "quantity": 2,
            "unit_price": "50.00",
            "commission_rate": "10",
            "total_price": "100.00",
        },
        {
            "product_id": second["id"],
            "quantity": 1,
            "unit_price": "100.00",
            "commission_rate": "5",
            "total_price": "100.00",
        },
    ]
    r = await client.post(
        "/api/v1/sales", json={"sale": sale, "saleItems": items}, headers=auth_headers(user)
    )
    assert r.status_code == 201, r.text
    return r.json()["data"]


@pytest_asyncio.fixture()
async def products(client, admin):
    return (
        await create_product(client, admin, sku="MS-001", name="Wireless Mouse"),
        await create_product(client, admin, sku="KB-001", name="Keyboard"),
    )


# -----------------------------
# Commission arithmetic
# -----------------------------
def test_commission_is_sum_of_lines_rounded_once():
    items = [_line(2, Decimal("50.00"), Decimal("10")), _line(1, Decimal("100.00"), Decimal("5"))]
    assert compute_commission_amount(items) == Decimal("15.00")
    assert compute_commission_amount(list(reversed(items))) == Decimal("15.00")


def test_commission_worked_example():
    # {qty 2, price 100, rate 5} + {qty 1, price 50, rate 10} = 10 + 5
    items = [_line(2, Decimal("100"), Decimal("5")), _line(1, Decimal("50"), Decimal("10"))]
    assert compute_commission_amount(items) == Decimal("15.00")


def test_commission_rounds_half_up_to_cents():
    # 1 * 0.10 * 25% = 0.025 -> 0.03
    assert compute_commission_amount([_line(1, "0.10", "25")]) == Decimal("0.03")
    # three lines of 0.0033.. each: rounding happens on the total, not per line
    lines = [_line(1, "0.10", "3.33")] * 3
    assert compute_commission_amount(lines) == Decimal("0.01")


def test_commission_of_no_items_is_zero():
    assert compute_commission_amount([]) == Decimal("0.00")


# -----------------------------
# Sales
# -----------------------------
@pytest.mark.asyncio
async def test_create_sale_writes_items_and_commission(client, db, sales_user, products):
    sale = await create_sale(client, sales_user, products)

    assert sale["sales_person_id"] == str(sales_user.id)
    assert sale["invoice_number"].startswith("INV-")
    assert len(sale["items"]) == 2
    assert {i["product"]["sku"] for i in sale["items"]} == {"MS-001", "KB-001"}

    commission = (
        await db.execute(select(SalesCommission).where(SalesCommission.sale_id == uuid.UUID(sale["id"])))
    ).scalar_one()
    assert commission.commission_amount == Decimal("15.00")
    assert commission.sales_person_id == sales_user.id
    assert commission.is_paid is False


@pytest.mark.asyncio
async def test_invoice_numbers_increase_within_the_day(client, sales_user, products):
    first = await create_sale(client, sales_user, products)
    second = await create_sale(client, sales_user, products)

    prefix = first["invoice_number"][:-4]
    assert second["invoice_number"].startswith(prefix)
    assert int(second["invoice_number"][-4:]) == int(first["invoice_number"][-4:]) + 1


@pytest.mark.asyncio
async def test_sale_without_commission_rates_has_no_commission(client, db, sales_user, products):
    items = [
        {"product_id": products[0]["id"], "quantity": 1, "unit_price": "10.00", "total_price": "10.00"},
    ]
    r = await client.post(
        "/api/v1/sales",
        json={"sale": {"subtotal": "10.00", "total_amount": "10.00"}, "saleItems": items},
        headers=auth_headers(sales_user),
    )
    assert r.status_code == 201, r.text
    assert r.json()["data"]["payment_status"] == "pending"

    count = (await db.execute(select(func.count(SalesCommission.id)))).scalar()
    assert count == 0


@pytest.mark.asyncio
async def test_duplicate_invoice_number_conflicts_and_writes_nothing(client, db, sales_user, products):
    await create_sale(client, sales_user, products, invoice_number="INV-MANUAL-1")

    r = await client.post(
        "/api/v1/sales",
        json={
            "sale": {"invoice_number": "INV-MANUAL-1", "subtotal": "1", "total_amount": "1"},
            "saleItems": [
                {"product_id": products[0]["id"], "quantity": 1, "unit_price": "1", "total_price": "1"}
            ],
        },
        headers=auth_headers(sales_user),
    )
    assert r.status_code == 409

    assert (await db.execute(select(func.count(Sale.id)))).scalar() == 1
    assert (await db.execute(select(func.count(SaleItem.id)))).scalar() == 2


@pytest.mark.asyncio
async def test_sale_with_unknown_product_is_rejected(client, db, sales_user, products):
    r = await client.post(
        "/api/v1/sales",
        json={
            "sale": {"subtotal": "1", "total_amount": "1"},
            "saleItems": [
                {"product_id": str(uuid.uuid4()), "quantity": 1, "unit_price": "1", "total_price": "1"}
            ],
        },
        headers=auth_headers(sales_user),
    )
    assert r.status_code == 404
    assert (await db.execute(select(func.count(Sale.id)))).scalar() == 0


@pytest.mark.asyncio
async def test_sale_requires_at_least_one_item(client, sales_user):
    r = await client.post(
        "/api/v1/sales",
        json={"sale": {"subtotal": "1", "total_amount": "1"}, "saleItems": []},
        headers=auth_headers(sales_user),
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_sale_amounts_finer_than_cents_are_rejected(client, db, sales_user, products):
    r = await client.post(
        "/api/v1/sales",
        json={
            "sale": {"subtotal": "3.02", "total_amount": "3.02"},
            "saleItems": [
                {
                    "product_id": products[0]["id"],
                    "quantity": 3,
                    "unit_price": "1.005",
                    "commission_rate": "100",
                    "total_price": "3.02",
                }
            ],
        },
        headers=auth_headers(sales_user),
    )
    assert r.status_code == 400
    assert isinstance(r.json()["error"], list)
    assert (await db.execute(select(func.count(Sale.id)))).scalar() == 0


@pytest.mark.asyncio
async def test_commission_at_creation_matches_repair(client, db, admin, sales_user, products):
    # 3 * 1.01 * 33.33% = 1.009899 -> 1.01
    r = await client.post(
        "/api/v1/sales",
        json={
            "sale": {"subtotal": "3.03", "total_amount": "3.03"},
            "saleItems": [
                {
                    "product_id": products[0]["id"],
                    "quantity": 3,
                    "unit_price": "1.01",
                    "commission_rate": "33.33",
                    "total_price": "3.03",
                }
            ],
        },
        headers=auth_headers(sales_user),
    )
    assert r.status_code == 201, r.text
    commission = (
        await db.execute(
            select(SalesCommission).where(SalesCommission.sale_id == uuid.UUID(r.json()["data"]["id"]))
        )
    ).scalar_one()
    assert commission.commission_amount == Decimal("1.01")

    r = await client.post(f"/api/v1/commissions/{commission.id}/repair", headers=auth_headers(admin))
    assert r.status_code == 200, r.text
    assert Decimal(r.json()["data"]["commission_amount"]) == Decimal("1.01")


@pytest.mark.asyncio
async def test_list_sales_filters(client, admin, sales_user, products):
    paid = await create_sale(client, sales_user, products, payment_status="paid")
    await create_sale(client, admin, products, payment_status="pending")

    r = await client.get("/api/v1/sales", params={"status": "paid"}, headers=auth_headers(admin))
    assert r.status_code == 200
    assert [s["id"] for s in r.json()["data"]] == [paid["id"]]

    r = await client.get(
        "/api/v1/sales", params={"salesPersonId": str(admin.id)}, headers=auth_headers(admin)
    )
    assert len(r.json()["data"]) == 1
    assert r.json()["data"][0]["sales_person"]["id"] == str(admin.id)

    r = await client.get("/api/v1/sales", params={"startDate": "2000-01-01", "endDate": "2000-01-31"}, headers=auth_headers(admin))
    assert r.json()["data"] == []

    r = await client.get("/api/v1/sales", params={"startDate": "yesterday"}, headers=auth_headers(admin))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_only_admin_deletes_sales_and_delete_cascades(client, db, admin, sales_user, products):
    sale = await create_sale(client, sales_user, products)

    r = await client.delete(f"/api/v1/sales/{sale['id']}", headers=auth_headers(sales_user))
    assert r.status_code == 403

    r = await client.delete(f"/api/v1/sales/{sale['id']}", headers=auth_headers(admin))
    assert r.status_code == 200

    assert (await db.execute(select(func.count(SaleItem.id)))).scalar() == 0
    assert (await db.execute(select(func.count(SalesCommission.id)))).scalar() == 0


@pytest.mark.asyncio
async def test_sold_product_cannot_be_deleted(client, admin, sales_user, products):
    await create_sale(client, sales_user, products)

    r = await client.delete(f"/api/v1/products/{products[0]['id']}", headers=auth_headers(admin))
    assert r.status_code == 409
    assert r.json() == {"error": "Cannot delete product that has been sold"}


# -----------------------------
# Commissions
# -----------------------------
@pytest.mark.asyncio
async def test_sales_user_sees_only_own_commissions(client, db, admin, sales_user, products):
    own = await create_sale(client, sales_user, products)
    await create_sale(client, admin, products)

    r = await client.get("/api/v1/commissions", headers=auth_headers(sales_user))
    assert r.status_code == 200
    data = r.json()["data"]
    assert [c["sale_id"] for c in data] == [own["id"]]

    # asking for someone else's rows does not widen the view
    r = await client.get(
        "/api/v1/commissions", params={"salesPersonId": str(admin.id)}, headers=auth_headers(sales_user)
    )
    assert all(c["sales_person_id"] == str(sales_user.id) for c in r.json()["data"])

    r = await client.get("/api/v1/commissions", headers=auth_headers(admin))
    assert len(r.json()["data"]) == 2

    others = (
        await db.execute(select(SalesCommission.id).where(SalesCommission.sales_person_id == admin.id))
    ).scalar_one()
    r = await client.get(f"/api/v1/commissions/{others}", headers=auth_headers(sales_user))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_mark_commission_paid_and_unpaid(client, db, admin, sales_user, products):
    sale = await create_sale(client, sales_user, products)
    commission_id = (
        await db.execute(select(SalesCommission.id).where(SalesCommission.sale_id == uuid.UUID(sale["id"])))
    ).scalar_one()

    r = await client.patch(
        f"/api/v1/commissions/{commission_id}", json={"is_paid": True}, headers=auth_headers(sales_user)
    )
    assert r.status_code == 403

    r = await client.patch(
        "/api/v1/commissions",
        json={"id": str(commission_id), "is_paid": True},
        headers=auth_headers(admin),
    )
    assert r.status_code == 200, r.text
    assert r.json()["data"]["is_paid"] is True
    assert r.json()["data"]["payment_date"] is not None

    r = await client.patch(
        f"/api/v1/commissions/{commission_id}", json={"is_paid": False}, headers=auth_headers(admin)
    )
    assert r.json()["data"]["is_paid"] is False
    assert r.json()["data"]["payment_date"] is None


@pytest.mark.asyncio
async def test_repair_recomputes_zeroed_commissions(client, db, admin, sales_user, products):
    sale = await create_sale(client, sales_user, products)
    await db.execute(update(SalesCommission).values(commission_amount=Decimal("0")))
    await db.commit()

    r = await client.post(
        "/api/v1/commissions/repair", params={"onlyZeroAmount": "true"}, headers=auth_headers(admin)
    )
    assert r.status_code == 200, r.text
    results = r.json()["results"]
    assert results["total"] == 1
    assert results["success"] == 1
    assert results["failure"] == 0
    assert Decimal(results["details"][0]["commission_amount"]) == Decimal("15.00")

    amount = (
        await db.execute(
            select(SalesCommission.commission_amount).where(SalesCommission.sale_id == uuid.UUID(sale["id"]))
        )
    ).scalar_one()
    assert amount == Decimal("15.00")

    # nothing left at zero
    r = await client.post(
        "/api/v1/commissions/repair", params={"onlyZeroAmount": "true"}, headers=auth_headers(admin)
    )
    assert r.json()["results"]["total"] == 0


@pytest.mark.asyncio
async def test_repair_batch_continues_past_failing_rows(client, db, admin, sales_user, products):
    await create_sale(client, sales_user, products)

    # commission pointing at a sale that no longer exists
    orphan = SalesCommission(
        id=uuid.uuid4(),
        sale_id=uuid.uuid4(),
        sales_person_id=sales_user.id,
        commission_amount=Decimal("1.00"),
        is_paid=False,
    )
    db.add(orphan)
    await db.commit()

    r = await client.post("/api/v1/commissions/repair", headers=auth_headers(admin))
    assert r.status_code == 200
    results = r.json()["results"]
    assert results["total"] == 2
    assert results["success"] == 1
    assert results["failure"] == 1

    failed = [d for d in results["details"] if not d["success"]]
    assert failed[0]["id"] == str(orphan.id)
    assert failed[0]["error"] == "Sale not found"


@pytest.mark.asyncio
async def test_repair_single_commission(client, db, admin, sales_user, products):
    sale = await create_sale(client, sales_user, products)
    commission_id = (
        await db.execute(select(SalesCommission.id).where(SalesCommission.sale_id == uuid.UUID(sale["id"])))
    ).scalar_one()
    await db.execute(
        update(SalesCommission).where(SalesCommission.id == commission_id).values(commission_amount=None)
    )
    await db.commit()

    r = await client.post(f"/api/v1/commissions/{commission_id}/repair", headers=auth_headers(admin))
    assert r.status_code == 200, r.text
    assert Decimal(r.json()["data"]["commission_amount"]) == Decimal("15.00")

    r = await client.post(f"/api/v1/commissions/{uuid.uuid4()}/repair", headers=auth_headers(admin))
    assert r.status_code == 404

    r = await client.post(f"/api/v1/commissions/{commission_id}/repair", headers=auth_headers(sales_user))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_commission_reports(client, admin, sales_user, products):
    await create_sale(client, sales_user, products)
    await create_sale(client, sales_user, products)
    await create_sale(client, admin, products)

    r = await client.get("/api/v1/commissions/reports", headers=auth_headers(admin))
    assert r.status_code == 200, r.text
    report = r.json()["data"]
    assert Decimal(report["totals"]["total_commission"]) == Decimal("45.00")
    assert report["totals"]["sale_count"] == 3

    top = report["summary"][0]
    assert top["sales_person"]["id"] == str(sales_user.id)
    assert Decimal(top["total_commission"]) == Decimal("30.00")
    assert Decimal(top["unpaid_commission"]) == Decimal("30.00")

    r = await client.get(
        "/api/v1/commissions/reports", params={"reportType": "detailed"}, headers=auth_headers(sales_user)
    )
    detailed = r.json()["data"]
    assert len(detailed["commissions"]) == 2
    assert Decimal(detailed["totals"]["total_commission"]) == Decimal("30.00")
