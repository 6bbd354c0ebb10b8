"""Tests for the buffered ledger reconciler (in-memory SQLite)."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.features.data_platform.models import SalesRecord
from app.features.ingest.extractor import LedgerCandidate
from app.features.ingest.incidents import RECORD_ERROR, IncidenceLog
from app.features.ingest.layouts import SheetKind
from app.features.ingest.reconciliation import LedgerReconciler, collapse_duplicates


def candidate(
    barcode: str = "CB1",
    store_code: str | None = "ST1",
    day: int = 10,
    units: str = "3",
    value: str = "12.50",
    kind: SheetKind = SheetKind.VENTAS,
    row_number: int = 2,
    brand: str | None = "NIVEA",
) -> LedgerCandidate:
    return LedgerCandidate(
        kind=kind,
        sheet=kind.value,
        row_number=row_number,
        sale_date=date(2024, 1, day),
        barcode=barcode,
        store_code=store_code,  # type: ignore[arg-type]
        store_name=store_code,
        city="Quito",
        brand=brand,
        product_name="CREMA FACIAL 50ML",
        description="CREMA FACIAL 50ML",
        units=Decimal(units),
        value=Decimal(value),
        catalog_code="MAT-001",
    )


@pytest.fixture
async def client_id(seeded_catalog) -> int:
    return seeded_catalog["MZCL-000008"]


async def _records(db_session) -> list[SalesRecord]:
    result = await db_session.execute(select(SalesRecord).order_by(SalesRecord.id))
    return list(result.scalars().all())


async def _reconcile(db_session, client_id, candidates, kind=SheetKind.VENTAS, **kwargs):
    incidents = IncidenceLog()
    reconciler = LedgerReconciler(db_session, client_id, kind, incidents, **kwargs)
    for item in candidates:
        await reconciler.add(item)
    stats = await reconciler.close()
    return stats, incidents


class TestCollapseDuplicates:
    """Tests for collapse_duplicates()."""

    def test_last_candidate_wins(self):
        first = candidate(units="1")
        last = candidate(units="9")
        other = candidate(barcode="CB2")

        assert collapse_duplicates([first, other, last]) == [last, other]


class TestLedgerReconciler:
    """Tests for LedgerReconciler."""

    async def test_inserts_new_keys(self, db_session, client_id):
        stats, incidents = await _reconcile(
            db_session, client_id, [candidate(), candidate(barcode="CB2")]
        )

        assert (stats.inserted, stats.updated, stats.failed) == (2, 0, 0)
        records = await _records(db_session)
        assert [record.barcode for record in records] == ["CB1", "CB2"]
        assert records[0].client_id == client_id
        assert (records[0].year, records[0].month, records[0].day) == (2024, 1, 10)
        assert records[0].sales_units == Decimal("3")
        assert records[0].stock_units == Decimal("0")
        assert len(incidents) == 0

    async def test_existing_key_is_updated(self, db_session, client_id):
        await _reconcile(db_session, client_id, [candidate()])

        stats, _ = await _reconcile(db_session, client_id, [candidate(units="5", value="20")])

        assert (stats.inserted, stats.updated) == (0, 1)
        (record,) = await _records(db_session)
        assert record.sales_units == Decimal("5")
        assert record.sales_value == Decimal("20")

    async def test_other_client_rows_not_matched(self, db_session, seeded_catalog):
        await _reconcile(db_session, seeded_catalog["MZCL-000009"], [candidate()])

        stats, _ = await _reconcile(db_session, seeded_catalog["MZCL-000008"], [candidate()])

        assert stats.inserted == 1
        assert len(await _records(db_session)) == 2

    async def test_changed_key_inserts(self, db_session, client_id):
        await _reconcile(db_session, client_id, [candidate()])

        stats, _ = await _reconcile(
            db_session, client_id, [candidate(day=11), candidate(store_code="ST2")]
        )

        assert (stats.inserted, stats.updated) == (2, 0)
        assert len(await _records(db_session)) == 3

    async def test_stock_update_preserves_sales(self, db_session, client_id):
        await _reconcile(db_session, client_id, [candidate(units="3", value="12.50")])

        stats, _ = await _reconcile(
            db_session,
            client_id,
            [candidate(units="7", value="70", kind=SheetKind.STOCK, brand="OTRA")],
            kind=SheetKind.STOCK,
        )

        assert stats.updated == 1
        (record,) = await _records(db_session)
        assert record.sales_units == Decimal("3")
        assert record.sales_value == Decimal("12.50")
        assert record.stock_units == Decimal("7")
        assert record.stock_value == Decimal("70")
        assert record.brand == "NIVEA"

    async def test_sales_update_preserves_stock(self, db_session, client_id):
        await _reconcile(
            db_session,
            client_id,
            [candidate(units="7", value="70", kind=SheetKind.STOCK)],
            kind=SheetKind.STOCK,
        )

        await _reconcile(db_session, client_id, [candidate(units="2", value="8")])

        (record,) = await _records(db_session)
        assert record.stock_units == Decimal("7")
        assert record.sales_units == Decimal("2")

    async def test_stock_insert_zeroes_sales(self, db_session, client_id):
        await _reconcile(
            db_session,
            client_id,
            [candidate(units="4", value="40", kind=SheetKind.STOCK)],
            kind=SheetKind.STOCK,
        )

        (record,) = await _records(db_session)
        assert record.sales_units == Decimal("0")
        assert record.sales_value == Decimal("0")
        assert record.stock_units == Decimal("4")

    async def test_flushes_at_batch_boundary(self, db_session, client_id):
        reconciler = LedgerReconciler(
            db_session, client_id, SheetKind.VENTAS, IncidenceLog(), batch_size=2
        )

        await reconciler.add(candidate(barcode="CB1"))
        assert reconciler.pending == 1
        await reconciler.add(candidate(barcode="CB2"))
        assert reconciler.pending == 0
        assert reconciler.stats.batches == 1
        assert len(await _records(db_session)) == 2

        await reconciler.add(candidate(barcode="CB3"))
        stats = await reconciler.close()

        assert stats.batches == 2
        assert stats.inserted == 3

    async def test_duplicates_in_batch_collapse(self, db_session, client_id):
        stats, _ = await _reconcile(
            db_session, client_id, [candidate(units="1"), candidate(units="6")]
        )

        assert stats.inserted == 1
        (record,) = await _records(db_session)
        assert record.sales_units == Decimal("6")

    async def test_small_lookup_chunks(self, db_session, client_id):
        await _reconcile(db_session, client_id, [candidate(barcode=f"C{i}") for i in range(5)])

        stats, _ = await _reconcile(
            db_session,
            client_id,
            [candidate(barcode=f"C{i}", units="9") for i in range(5)],
            lookup_chunk_size=2,
        )

        assert (stats.inserted, stats.updated) == (0, 5)

    async def test_failed_batch_replayed_per_record(self, db_session, client_id, monkeypatch):
        execute = db_session.execute

        async def execute_rejecting_cb2(statement, params=None, **kwargs):
            if isinstance(params, list) and any(p.get("barcode") == "CB2" for p in params):
                raise IntegrityError(
                    "INSERT INTO sales_record", params, Exception("CHECK constraint failed")
                )
            return await execute(statement, params, **kwargs)

        monkeypatch.setattr(db_session, "execute", execute_rejecting_cb2)
        good = candidate(barcode="CB1", row_number=2)
        bad = candidate(barcode="CB2", row_number=3)

        stats, incidents = await _reconcile(db_session, client_id, [good, bad])
        monkeypatch.undo()

        assert (stats.inserted, stats.failed) == (1, 1)
        (record,) = await _records(db_session)
        assert record.barcode == "CB1"
        (incidence,) = incidents.incidences
        assert incidence.code == RECORD_ERROR
        assert incidence.row == 3
        assert incidence.sheet == "VENTAS"
        assert incidence.reason.startswith("Error guardando registro CB2:")

    async def test_empty_close_is_noop(self, db_session, client_id):
        stats, _ = await _reconcile(db_session, client_id, [])
        assert stats.batches == 0
