# tests/test_users.py
from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select

from comprint.core.security import verify_password
from comprint.models.branch import Branch
from comprint.models.user import User
from conftest import auth_headers


def _new_user_payload(**overrides) -> dict:
    payload = {
        "email": "new.staff@example.com",
        "password": "s3cret-pass",
        "full_name": "New Staff",
        "staff_id": "CS-100",
        "role": "technician",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_admin_creates_user_and_duplicate_email_conflicts(client, db, admin):
    r = await client.post("/api/v1/users", json=_new_user_payload(), headers=auth_headers(admin))
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["success"] is True

    created = await db.get(User, uuid.UUID(body["userId"]))
    assert created.role == "technician"
    assert verify_password("s3cret-pass", created.password_hash)

    dup = await client.post(
        "/api/v1/users",
        json=_new_user_payload(email="NEW.STAFF@example.com"),
        headers=auth_headers(admin),
    )
    assert dup.status_code == 409


@pytest.mark.asyncio
async def test_non_admin_cannot_manage_users(client, sales_user):
    r = await client.get("/api/v1/users", headers=auth_headers(sales_user))
    assert r.status_code == 403

    r = await client.post("/api/v1/users", json=_new_user_payload(), headers=auth_headers(sales_user))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_list_users_filters_by_role_and_active(client, admin, sales_user, technician):
    r = await client.get("/api/v1/users", params={"role": "technician"}, headers=auth_headers(admin))
    assert r.status_code == 200
    assert [u["id"] for u in r.json()] == [str(technician.id)]

    r = await client.post(f"/api/v1/users/{sales_user.id}/toggle-status", headers=auth_headers(admin))
    assert r.status_code == 200

    r = await client.get("/api/v1/users", params={"active": "false"}, headers=auth_headers(admin))
    assert [u["id"] for u in r.json()] == [str(sales_user.id)]


@pytest.mark.asyncio
async def test_update_user_role_and_unknown_branch(client, db, admin, sales_user):
    r = await client.patch(
        f"/api/v1/users/{sales_user.id}",
        json={"role": "technician"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 200

    role = (await db.execute(select(User.role).where(User.id == sales_user.id))).scalar_one()
    assert role == "technician"

    r = await client.patch(
        f"/api/v1/users/{sales_user.id}",
        json={"branch_id": str(uuid.uuid4())},
        headers=auth_headers(admin),
    )
    assert r.status_code == 404
    assert r.json() == {"error": "Branch not found"}


@pytest.mark.asyncio
async def test_admin_cannot_delete_self(client, admin, sales_user):
    r = await client.delete(f"/api/v1/users/{admin.id}", headers=auth_headers(admin))
    assert r.status_code == 400

    r = await client.delete(f"/api/v1/users/{sales_user.id}", headers=auth_headers(admin))
    assert r.status_code == 200

    r = await client.delete(f"/api/v1/users/{sales_user.id}", headers=auth_headers(admin))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_branch_with_users_cannot_be_deleted(client, db, admin):
    r = await client.post(
        "/api/v1/branches",
        json={"name": "Westlands", "location": "Nairobi", "commission_percentage": "2.5"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 201, r.text
    branch_id = r.json()["id"]

    staff = await client.post(
        "/api/v1/users",
        json=_new_user_payload(branch_id=branch_id),
        headers=auth_headers(admin),
    )
    assert staff.status_code == 201

    r = await client.delete(f"/api/v1/branches/{branch_id}", headers=auth_headers(admin))
    assert r.status_code == 409

    await client.delete(f"/api/v1/users/{staff.json()['userId']}", headers=auth_headers(admin))
    r = await client.delete(f"/api/v1/branches/{branch_id}", headers=auth_headers(admin))
    assert r.status_code == 200
    assert await db.get(Branch, uuid.UUID(branch_id)) is None


@pytest.mark.asyncio
async def test_branches_listed_by_name(client, admin, sales_user):
    for name in ("Mombasa Road", "CBD"):
        r = await client.post(
            "/api/v1/branches",
            json={"name": name, "location": "Nairobi"},
            headers=auth_headers(admin),
        )
        assert r.status_code == 201

    r = await client.get("/api/v1/branches", headers=auth_headers(sales_user))
    assert r.status_code == 200
    assert [b["name"] for b in r.json()] == ["CBD", "Mombasa Road"]

    forbidden = await client.post(
        "/api/v1/branches",
        json={"name": "Thika", "location": "Thika"},
        headers=auth_headers(sales_user),
    )
    assert forbidden.status_code == 403
