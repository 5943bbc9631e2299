from __future__ import annotations

import os
import uuid

# Settings are read at import time; point them at an in-memory database first.
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from comprint.core.roles import UserRole
from comprint.core.security import create_access_token, hash_password
from comprint.core.storage import LocalStorage, get_storage
from comprint.db.session import get_db

# Ensure Base + models are registered before create_all
from comprint.db.base import Base
import comprint.models  # noqa: F401
from comprint.models.user import User

TEST_PASSWORD = "correct-horse-42"


# ---------------------------------------------------------
# Engine + schema lifecycle (fresh database per test)
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture()
def sessionmaker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ---------------------------------------------------------
# DB session for assertions / setup
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def db(sessionmaker):
    """
    Session for test setup & assertions ONLY.
    Commit setup rows before calling the API.
    """
    async with sessionmaker() as session:
        yield session


@pytest.fixture()
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path / "storage", "http://test/storage")


# ---------------------------------------------------------
# FastAPI app + dependency overrides
# ---------------------------------------------------------
@pytest.fixture()
def app(sessionmaker, storage):
    from comprint.main import app as fastapi_app

    async def _override_get_db():
        async with sessionmaker() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    fastapi_app.dependency_overrides[get_storage] = lambda: storage
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------
# HTTP client
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as ac:
        yield ac


# ---------------------------------------------------------
# Helpers
# ---------------------------------------------------------
async def create_user(
    db,
    role: UserRole = UserRole.SALES,
    email: str | None = None,
    *,
    with_password: bool = False,
    is_active: bool = True,
) -> User:
    suffix = uuid.uuid4().hex[:8]
    user = User(
        id=uuid.uuid4(),
        email=(email or f"{role.value}-{suffix}@example.com").lower(),
        password_hash=hash_password(TEST_PASSWORD) if with_password else None,
        full_name=f"{role.value.title()} {suffix}",
        staff_id=f"S-{suffix}",
        role=role.value,
        is_active=is_active,
    )
    db.add(user)
    await db.flush()
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest_asyncio.fixture()
async def admin(db) -> User:
    user = await create_user(db, UserRole.ADMIN)
    await db.commit()
    return user


@pytest_asyncio.fixture()
async def sales_user(db) -> User:
    user = await create_user(db, UserRole.SALES)
    await db.commit()
    return user


@pytest_asyncio.fixture()
async def technician(db) -> User:
    user = await create_user(db, UserRole.TECHNICIAN)
    await db.commit()
    return user


@pytest_asyncio.fixture()
async def service_category(client, admin) -> dict:
    r = await client.post(
        "/api/v1/service-categories",
        json={"name": "Laptop Repair", "estimated_duration": 48, "base_price": "1500"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 201, r.text
    return r.json()


async def create_service_request(client, user, category, **overrides) -> dict:
    payload = {
        "title": "Screen flickers",
        "description": "Display flickers when the lid is moved.",
        "service_category_id": category["id"],
        "priority": "high",
        "device_serial_number": "SN-12345",
    }
    payload.update(overrides)
    r = await client.post("/api/v1/service-requests", json=payload, headers=auth_headers(user))
    assert r.status_code == 201, r.text
    return r.json()
