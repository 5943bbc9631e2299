# tests/test_customers.py
from __future__ import annotations

import pytest

from conftest import auth_headers

CUSTOMER = {
    "name": "Acme Traders",
    "email": "accounts@acme.example.com",
    "phone": "+254700111222",
    "company": "Acme Ltd",
}


@pytest.mark.asyncio
async def test_customer_crud(client, sales_user):
    headers = auth_headers(sales_user)

    r = await client.post("/api/v1/customers", json=CUSTOMER, headers=headers)
    assert r.status_code == 201, r.text
    customer = r.json()["data"]
    assert customer["created_by"] == str(sales_user.id)

    r = await client.put(
        f"/api/v1/customers/{customer['id']}",
        json={**CUSTOMER, "phone": "+254700999888", "company": None},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["data"]["phone"] == "+254700999888"
    assert r.json()["data"]["company"] is None

    r = await client.get("/api/v1/customers", params={"query": "acme"}, headers=headers)
    assert [c["id"] for c in r.json()["data"]] == [customer["id"]]

    r = await client.delete(f"/api/v1/customers/{customer['id']}", headers=headers)
    assert r.status_code == 200

    r = await client.get(f"/api/v1/customers/{customer['id']}", headers=headers)
    assert r.status_code == 404
    assert r.json() == {"error": "Customer not found"}


@pytest.mark.asyncio
async def test_customer_validation(client, sales_user):
    r = await client.post(
        "/api/v1/customers",
        json={**CUSTOMER, "email": "not-an-email"},
        headers=auth_headers(sales_user),
    )
    assert r.status_code == 400
    assert isinstance(r.json()["error"], list)


@pytest.mark.asyncio
async def test_technician_reads_but_cannot_write_customers(client, sales_user, technician):
    r = await client.post("/api/v1/customers", json=CUSTOMER, headers=auth_headers(sales_user))
    assert r.status_code == 201

    r = await client.get("/api/v1/customers", headers=auth_headers(technician))
    assert r.status_code == 200
    assert len(r.json()["data"]) == 1

    r = await client.post("/api/v1/customers", json=CUSTOMER, headers=auth_headers(technician))
    assert r.status_code == 403
