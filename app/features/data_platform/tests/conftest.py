"""Fixtures for data platform tests.

``db_session`` comes from the repository-level conftest (in-memory SQLite).
"""

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.data_platform.models import Client, Product, SalesRecord


@pytest.fixture
async def sample_client(db_session: AsyncSession) -> Client:
    """Persisted client."""
    client = Client(code="MZCL-000008", name="RM")
    db_session.add(client)
    await db_session.commit()
    return client


@pytest.fixture
async def sample_product(db_session: AsyncSession) -> Product:
    """Persisted product identity."""
    product = Product(barcode="7861234567890", item_code="IT-1", name="Crema Facial")
    db_session.add(product)
    await db_session.commit()
    return product


@pytest.fixture
def make_record(sample_client: Client, sample_product: Product):
    """Factory for unsaved ledger rows on 2024-01-10 at store ST1."""

    def _make(**overrides) -> SalesRecord:
        values = {
            "client_id": sample_client.id,
            "year": 2024,
            "month": 1,
            "day": 10,
            "barcode": sample_product.barcode,
            "store_code": "ST1",
            "product_id": sample_product.id,
            "sales_units": Decimal("3"),
            "sales_value": Decimal("12.50"),
        }
        values.update(overrides)
        return SalesRecord(**values)

    return _make
