# tests/test_catalog.py
from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from comprint.models.inventory import InventoryRecord
from conftest import auth_headers


async def create_category(client, user, name="Laptops") -> dict:
    r = await client.post("/api/v1/categories", json={"name": name}, headers=auth_headers(user))
    assert r.status_code == 201, r.text
    return r.json()


async def create_product(client, user, *, sku="LT-001", category_id=None, **overrides) -> dict:
    payload = {
        "name": "ThinkPad T14",
        "sku": sku,
        "category_id": category_id,
        "cost_price": "800.00",
        "selling_price": "1000.00",
        "commission_rate": "5",
    }
    payload.update(overrides)
    r = await client.post("/api/v1/products", json=payload, headers=auth_headers(user))
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_create_product_also_creates_empty_inventory_record(client, db, admin):
    product = await create_product(client, admin)
    assert Decimal(product["selling_price"]) == Decimal("1000.00")
    assert product["created_by"] == str(admin.id)

    record = (
        await db.execute(select(InventoryRecord).where(InventoryRecord.product_id == uuid.UUID(product["id"])))
    ).scalar_one()
    assert record.quantity == 0
    assert record.reorder_level == 10


@pytest.mark.asyncio
async def test_duplicate_sku_conflicts_and_sku_match_is_exact(client, admin):
    await create_product(client, admin, sku="LT-001")

    r = await client.post(
        "/api/v1/products",
        json={"name": "Other", "sku": "LT-001", "cost_price": "1", "selling_price": "2"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 409
    assert r.json() == {"error": "A product with this SKU already exists"}

    # different case is a different SKU
    await create_product(client, admin, sku="lt-001")


@pytest.mark.asyncio
async def test_sales_role_reads_but_cannot_write_catalog(client, admin, sales_user):
    await create_product(client, admin)

    r = await client.get("/api/v1/products", headers=auth_headers(sales_user))
    assert r.status_code == 200
    assert len(r.json()) == 1

    r = await client.post(
        "/api/v1/products",
        json={"name": "Nope", "sku": "NO-1", "cost_price": "1", "selling_price": "2"},
        headers=auth_headers(sales_user),
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_product_filters(client, admin):
    laptops = await create_category(client, admin, "Laptops")
    printers = await create_category(client, admin, "Printers")
    await create_product(client, admin, sku="LT-001", name="ThinkPad T14", category_id=laptops["id"])
    await create_product(
        client, admin, sku="PR-001", name="LaserJet Pro", category_id=printers["id"], is_active=False
    )

    headers = auth_headers(admin)

    r = await client.get("/api/v1/products", params={"query": "laser"}, headers=headers)
    assert [p["sku"] for p in r.json()] == ["PR-001"]

    r = await client.get("/api/v1/products", params={"category": laptops["id"]}, headers=headers)
    assert [p["sku"] for p in r.json()] == ["LT-001"]

    r = await client.get("/api/v1/products", params={"active": "true"}, headers=headers)
    assert [p["sku"] for p in r.json()] == ["LT-001"]


@pytest.mark.asyncio
async def test_product_update_rejects_taken_sku(client, admin):
    await create_product(client, admin, sku="LT-001")
    other = await create_product(client, admin, sku="LT-002")

    r = await client.patch(
        f"/api/v1/products/{other['id']}", json={"sku": "LT-001"}, headers=auth_headers(admin)
    )
    assert r.status_code == 409

    r = await client.patch(
        f"/api/v1/products/{other['id']}", json={"selling_price": "1200"}, headers=auth_headers(admin)
    )
    assert r.status_code == 200
    assert Decimal(r.json()["selling_price"]) == Decimal("1200")


@pytest.mark.asyncio
async def test_category_in_use_cannot_be_deleted(client, admin):
    category = await create_category(client, admin)
    product = await create_product(client, admin, category_id=category["id"])

    r = await client.delete(f"/api/v1/categories/{category['id']}", headers=auth_headers(admin))
    assert r.status_code == 409

    r = await client.delete(f"/api/v1/products/{product['id']}", headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json() == {"message": "Product deleted successfully"}

    r = await client.delete(f"/api/v1/categories/{category['id']}", headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json() == {"message": "Category deleted successfully"}


@pytest.mark.asyncio
async def test_deleting_product_removes_its_inventory_record(client, db, admin):
    product = await create_product(client, admin)

    r = await client.delete(f"/api/v1/products/{product['id']}", headers=auth_headers(admin))
    assert r.status_code == 200

    count = (await db.execute(select(func.count(InventoryRecord.id)))).scalar()
    assert count == 0


@pytest.mark.asyncio
async def test_category_search(client, admin):
    await create_category(client, admin, "Laptops")
    await create_category(client, admin, "Printers & Scanners")

    r = await client.get("/api/v1/categories", params={"query": "print"}, headers=auth_headers(admin))
    assert r.status_code == 200
    assert [c["name"] for c in r.json()] == ["Printers & Scanners"]
