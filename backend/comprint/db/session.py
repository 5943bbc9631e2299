from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from comprint.core.config import settings


def build_engine(url: str) -> AsyncEngine:
    """
    Postgres (asyncpg) in every deployed environment.
    SQLite is accepted for local runs; it gets no pool tuning.
    """
    backend = make_url(url).get_backend_name()
    if backend == "sqlite":
        return create_async_engine(url, echo=False)

    return create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,  # hosted Postgres drops idle connections
        pool_recycle=300,
    )


engine: AsyncEngine = build_engine(settings.DATABASE_URL_ASYNC_CLEAN)

SessionFactory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One AsyncSession per request; anything left uncommitted is rolled back on close."""
    async with SessionFactory() as session:
        yield session
