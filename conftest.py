"""Shared pytest fixtures for SellOutLedger tests.

Database fixtures run against an in-memory SQLite database (aiosqlite) so
the suite needs no running PostgreSQL; the application only uses
dialect-neutral SQL.
"""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.features.data_platform.models import CatalogCacheEntry, Client, Product
from app.main import app


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Async database session on the test engine."""
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture
async def client(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client whose requests use the test database."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
async def seeded_catalog(db_session: AsyncSession) -> dict[str, int]:
    """Two clients, three products and their catalog cache entries.

    Returns:
        Client code -> client id.
    """
    rm = Client(code="MZCL-000008", name="RM")
    deprati = Client(code="MZCL-000009", name="De Prati")
    db_session.add_all([rm, deprati])
    db_session.add_all(
        [
            Product(barcode="CB1", item_code="IT-1", name="Crema Facial 50ml"),
            Product(barcode="CB2", item_code="IT-2", name="Shampoo 400ml"),
            Product(barcode="CB3", item_code="IT-3", name="Jabón Líquido"),
            CatalogCacheEntry(
                catalog_code="MAT-001", barcode="CB1", description="CREMA FACIAL 50ML", brand="NIVEA"
            ),
            CatalogCacheEntry(
                catalog_code="MAT-002", barcode="CB2", description="SHAMPOO 400ML", brand="SEDAL"
            ),
            # Catalog-only code: present in the cache, absent from the product table
            CatalogCacheEntry(
                catalog_code="MAT-009", barcode="CB9", description="SIN PRODUCTO", brand="OTRA"
            ),
        ]
    )
    await db_session.commit()
    return {rm.code: rm.id, deprati.code: deprati.id}
