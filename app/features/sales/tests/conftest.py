"""Feature-specific test fixtures for the sales ledger module."""

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.data_platform.models import SalesRecord


def _record(client_id: int, month: int, day: int, barcode: str, store: str, brand: str, units: int):
    return SalesRecord(
        client_id=client_id,
        year=2024,
        month=month,
        day=day,
        barcode=barcode,
        store_code=store,
        brand=brand,
        sales_units=Decimal(units),
        sales_value=Decimal(units * 4),
    )


@pytest.fixture
async def ledger(db_session: AsyncSession, seeded_catalog: dict[str, int]) -> dict[str, int]:
    """Ledger rows for both seeded clients.

    Returns:
        Label -> record id. ``jan10``, ``jan11`` and ``feb01`` belong to RM
        (MZCL-000008); ``other`` belongs to De Prati (MZCL-000009).
    """
    rm = seeded_catalog["MZCL-000008"]
    deprati = seeded_catalog["MZCL-000009"]
    rows = {
        "jan10": _record(rm, 1, 10, "CB1", "ST1", "NIVEA", 3),
        "jan11": _record(rm, 1, 11, "CB2", "ST1", "SEDAL", 1),
        "feb01": _record(rm, 2, 1, "CB1", "ST2", "NIVEA", 2),
        "other": _record(deprati, 1, 10, "CB1", "ST1", "NIVEA", 9),
    }
    db_session.add_all(rows.values())
    await db_session.commit()
    return {label: record.id for label, record in rows.items()}
