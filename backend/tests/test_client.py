# tests/test_client.py
from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport
from sqlalchemy import update

from comprint.client.api import ApiError, ComprintClient
from comprint.client.cache import QueryCache, RoleCache
from comprint.core.roles import UserRole
from comprint.models.inventory import InventoryRecord
from comprint.models.user import User
from conftest import TEST_PASSWORD, create_user
from test_catalog import create_product


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# -----------------------------
# Caches
# -----------------------------
def test_query_cache_expires_entries():
    clock = FakeClock()
    cache = QueryCache(ttl=30, clock=clock)
    cache.set(("inventory",), ["a"])

    assert cache.get(("inventory",)) == ["a"]
    clock.advance(29)
    assert ("inventory",) in cache
    clock.advance(1)
    assert cache.get(("inventory",)) is None
    assert len(cache) == 0


def test_query_cache_invalidates_by_prefix():
    cache = QueryCache(ttl=30, clock=FakeClock())
    cache.set(("inventory",), 1)
    cache.set(("inventory", "r-1"), 2)
    cache.set(("products",), 3)

    assert cache.invalidate(("inventory",)) == 2
    assert ("products",) in cache
    assert ("inventory", "r-1") not in cache


def test_role_cache_is_time_bounded():
    clock = FakeClock()
    roles = RoleCache(ttl=300, clock=clock)
    roles.set("u-1", "sales")
    roles.set("u-2", "admin")

    assert roles.get("u-1") == "sales"
    roles.invalidate("u-1")
    assert roles.get("u-1") is None

    clock.advance(300)
    assert roles.get("u-2") is None


# -----------------------------
# API client against the app
# -----------------------------
@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture()
async def api(app, clock):
    async with ComprintClient(
        "http://test/api/v1",
        transport=ASGITransport(app=app),
        clock=clock,
    ) as c:
        yield c


@pytest_asyncio.fixture()
async def signed_in_sales(api, db):
    user = await create_user(db, UserRole.SALES, "counter@example.com", with_password=True)
    await db.commit()
    await api.sign_in("counter@example.com", TEST_PASSWORD)
    return user


@pytest.mark.asyncio
async def test_sign_in_caches_role(api, signed_in_sales):
    assert api.user_id == str(signed_in_sales.id)
    assert api.roles.get(api.user_id) == "sales"
    assert await api.role() == "sales"

    await api.sign_out()
    assert await api.role() is None
    assert len(api.cache) == 0


@pytest.mark.asyncio
async def test_refresh_role_picks_up_a_changed_role(api, db, signed_in_sales):
    await db.execute(update(User).where(User.id == signed_in_sales.id).values(role="admin"))
    await db.commit()

    # still cached
    assert await api.role() == "sales"
    assert await api.refresh_role() == "admin"


@pytest.mark.asyncio
async def test_errors_surface_as_api_error(api, signed_in_sales):
    with pytest.raises(ApiError) as exc_info:
        await api.create_branch({"name": "Nope", "location": "Nowhere"})
    assert exc_info.value.status_code == 403
    assert exc_info.value.error == "You do not have permission to perform this action"


@pytest.mark.asyncio
async def test_bad_credentials(api, db):
    await create_user(db, UserRole.SALES, "counter@example.com", with_password=True)
    await db.commit()

    with pytest.raises(ApiError) as exc_info:
        await api.sign_in("counter@example.com", "wrong-password")
    assert exc_info.value.status_code == 401
    assert api.user_id is None


@pytest.mark.asyncio
async def test_reads_are_cached_until_a_mutation_invalidates_them(api, client, db, admin, signed_in_sales):
    await create_product(client, admin)

    records = await api.list_inventory()
    assert records[0]["quantity"] == 0
    record_id = records[0]["id"]

    # changed behind the client's back: the cached answer is still served
    await db.execute(update(InventoryRecord).values(quantity=7))
    await db.commit()
    assert (await api.list_inventory())[0]["quantity"] == 0

    # mutation through the client drops the inventory entries
    result = await api.update_stock(record_id, 3, is_restock=True)
    assert result["previous_quantity"] == 7
    assert (await api.list_inventory())[0]["quantity"] == 10


@pytest.mark.asyncio
async def test_cached_reads_expire(api, clock, client, db, admin, signed_in_sales):
    await create_product(client, admin)
    assert (await api.list_inventory())[0]["quantity"] == 0

    await db.execute(update(InventoryRecord).values(quantity=4))
    await db.commit()

    clock.advance(31)
    assert (await api.list_inventory())[0]["quantity"] == 4


@pytest.mark.asyncio
async def test_stock_reduction_can_be_declined(api, client, admin, signed_in_sales):
    await create_product(client, admin)
    record_id = (await api.list_inventory())[0]["id"]
    await api.update_stock(record_id, 20)

    asked = []

    def decline(current, new):
        asked.append((current, new))
        return False

    assert await api.update_stock(record_id, 5, confirm_reduction=decline) is None
    assert asked == [(20, 5)]
    assert (await api.get_inventory(record_id))["quantity"] == 20

    async def accept(current, new):
        return True

    result = await api.update_stock(record_id, 5, confirm_reduction=accept)
    assert result["data"]["quantity"] == 5
    assert result["is_low_stock"] is True

    # increases never ask
    result = await api.update_stock(record_id, 50, confirm_reduction=decline)
    assert result["data"]["quantity"] == 50
    assert asked == [(20, 5)]
