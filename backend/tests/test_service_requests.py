# tests/test_service_requests.py
from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select

from comprint.auth.permissions import disallowed_fields
from comprint.models.service_request import ServiceRequest, ServiceRequestUpdate
from conftest import auth_headers, create_service_request


# -----------------------------
# Field policy
# -----------------------------
def test_disallowed_fields_per_role():
    assert disallowed_fields("technician", ["status", "internal_notes"]) == []
    assert disallowed_fields("technician", ["status", "estimated_cost", "title"]) == ["estimated_cost", "title"]
    assert disallowed_fields("sales", ["assigned_technician_id", "title"]) == ["assigned_technician_id"]
    assert disallowed_fields("admin", ["assigned_technician_id", "payment_status"]) == []
    assert disallowed_fields("unknown", ["status"]) == ["status"]


# -----------------------------
# Categories
# -----------------------------
@pytest.mark.asyncio
async def test_service_category_names_are_unique(client, admin, sales_user, service_category):
    r = await client.post(
        "/api/v1/service-categories", json={"name": "Laptop Repair"}, headers=auth_headers(admin)
    )
    assert r.status_code == 409

    r = await client.post(
        "/api/v1/service-categories", json={"name": "Printer Repair"}, headers=auth_headers(sales_user)
    )
    assert r.status_code == 403

    r = await client.get("/api/v1/service-categories", params={"active": "true"}, headers=auth_headers(sales_user))
    assert [c["name"] for c in r.json()] == ["Laptop Repair"]


# -----------------------------
# Requests
# -----------------------------
@pytest.mark.asyncio
async def test_create_request_generates_number_and_starts_pending(client, sales_user, service_category):
    sr = await create_service_request(client, sales_user, service_category, status="completed")

    assert sr["request_number"].startswith("SR-")
    assert sr["status"] == "pending"
    assert sr["payment_status"] == "pending"
    assert sr["created_by"] == str(sales_user.id)
    assert sr["service_category"]["name"] == "Laptop Repair"

    second = await create_service_request(client, sales_user, service_category)
    assert int(second["request_number"][-4:]) == int(sr["request_number"][-4:]) + 1


@pytest.mark.asyncio
async def test_only_admin_assigns_technicians(client, admin, sales_user, technician, service_category):
    r = await client.post(
        "/api/v1/service-requests",
        json={
            "title": "No power",
            "description": "Unit does not power on at all.",
            "service_category_id": service_category["id"],
            "assigned_technician_id": str(technician.id),
        },
        headers=auth_headers(sales_user),
    )
    assert r.status_code == 403

    sr = await create_service_request(client, admin, service_category, assigned_technician_id=str(technician.id))
    assert sr["assigned_technician"]["id"] == str(technician.id)

    # a non-technician cannot be the assignee
    r = await client.put(
        f"/api/v1/service-requests/{sr['id']}",
        json={"assigned_technician_id": str(sales_user.id)},
        headers=auth_headers(admin),
    )
    assert r.status_code == 404
    assert r.json() == {"error": "Technician not found"}

    r = await client.put(
        f"/api/v1/service-requests/{sr['id']}",
        json={"assigned_technician_id": str(technician.id), "priority": "low"},
        headers=auth_headers(sales_user),
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_technician_sees_only_assigned_requests(client, admin, technician, service_category):
    mine = await create_service_request(client, admin, service_category, assigned_technician_id=str(technician.id))
    other = await create_service_request(client, admin, service_category)

    r = await client.get("/api/v1/service-requests", headers=auth_headers(technician))
    assert r.status_code == 200
    assert [s["id"] for s in r.json()] == [mine["id"]]

    r = await client.get(f"/api/v1/service-requests/{other['id']}", headers=auth_headers(technician))
    assert r.status_code == 403

    r = await client.get(f"/api/v1/service-requests/{mine['id']}", headers=auth_headers(technician))
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_technician_update_is_all_or_nothing(client, db, admin, technician, service_category):
    sr = await create_service_request(client, admin, service_category, assigned_technician_id=str(technician.id))

    r = await client.put(
        f"/api/v1/service-requests/{sr['id']}",
        json={"status": "in_progress", "estimated_cost": 50},
        headers=auth_headers(technician),
    )
    assert r.status_code == 403
    assert "estimated_cost" in r.json()["error"]

    status = (
        await db.execute(select(ServiceRequest.status).where(ServiceRequest.id == uuid.UUID(sr["id"])))
    ).scalar_one()
    assert status == "pending"

    r = await client.put(
        f"/api/v1/service-requests/{sr['id']}",
        json={"status": "completed", "internal_notes": "Replaced LCD cable"},
        headers=auth_headers(technician),
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "completed"
    assert r.json()["internal_notes"] == "Replaced LCD cable"


@pytest.mark.asyncio
async def test_status_change_and_assignment_are_logged(client, db, admin, technician, service_category):
    sr = await create_service_request(client, admin, service_category)

    r = await client.put(
        f"/api/v1/service-requests/{sr['id']}",
        json={"assigned_technician_id": str(technician.id), "status": "assigned"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 200, r.text

    rows = (
        await db.execute(
            select(ServiceRequestUpdate).where(ServiceRequestUpdate.service_request_id == uuid.UUID(sr["id"]))
        )
    ).scalars().all()
    by_type = {u.update_type: u for u in rows}
    assert set(by_type) == {"status_change", "technician_assigned"}
    assert by_type["status_change"].status_from == "pending"
    assert by_type["status_change"].status_to == "assigned"
    assert by_type["technician_assigned"].is_customer_visible is False

    r = await client.get(
        f"/api/v1/service-requests/{sr['id']}/updates",
        params={"customer_visible": "true"},
        headers=auth_headers(admin),
    )
    assert [u["update_type"] for u in r.json()] == ["status_change"]


@pytest.mark.asyncio
async def test_unassigned_technician_cannot_edit(client, admin, technician, service_category):
    sr = await create_service_request(client, admin, service_category)

    r = await client.put(
        f"/api/v1/service-requests/{sr['id']}",
        json={"status": "in_progress"},
        headers=auth_headers(technician),
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_update_rejects_null_for_required_fields(client, admin, service_category):
    sr = await create_service_request(client, admin, service_category)

    r = await client.put(
        f"/api/v1/service-requests/{sr['id']}", json={"title": None}, headers=auth_headers(admin)
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_list_filters(client, admin, sales_user, service_category):
    await create_service_request(client, admin, service_category, title="Keyboard sticky", priority="low")
    target = await create_service_request(client, admin, service_category, device_serial_number="ZX-999")

    r = await client.get("/api/v1/service-requests", params={"query": "zx-9"}, headers=auth_headers(sales_user))
    assert [s["id"] for s in r.json()] == [target["id"]]

    r = await client.get("/api/v1/service-requests", params={"priority": "low"}, headers=auth_headers(sales_user))
    assert [s["title"] for s in r.json()] == ["Keyboard sticky"]


@pytest.mark.asyncio
async def test_delete_rules(client, admin, sales_user, service_category):
    sr = await create_service_request(client, admin, service_category)

    r = await client.delete(f"/api/v1/service-requests/{sr['id']}", headers=auth_headers(sales_user))
    assert r.status_code == 403

    done = await create_service_request(client, admin, service_category)
    r = await client.put(
        f"/api/v1/service-requests/{done['id']}", json={"status": "completed"}, headers=auth_headers(admin)
    )
    assert r.status_code == 200
    r = await client.delete(f"/api/v1/service-requests/{done['id']}", headers=auth_headers(admin))
    assert r.status_code == 400

    r = await client.delete(f"/api/v1/service-requests/{sr['id']}", headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json() == {"message": "Service request deleted successfully"}

    r = await client.get(f"/api/v1/service-requests/{sr['id']}", headers=auth_headers(admin))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_manual_timeline_entry(client, sales_user, service_category):
    sr = await create_service_request(client, sales_user, service_category)

    r = await client.post(
        f"/api/v1/service-requests/{sr['id']}/updates",
        json={"update_type": "customer_contacted", "title": "Called customer", "is_customer_visible": False},
        headers=auth_headers(sales_user),
    )
    assert r.status_code == 201, r.text
    assert r.json()["updated_by_user"]["id"] == str(sales_user.id)

    r = await client.get(
        f"/api/v1/service-requests/{sr['id']}/updates",
        params={"update_type": "customer_contacted"},
        headers=auth_headers(sales_user),
    )
    assert len(r.json()) == 1
