"""Reconciliation engine: buffered match-or-insert into the sales ledger.

Candidates are buffered up to a batch size. At each batch boundary the
engine collapses duplicate keys (last one wins), loads the ids of the keys
that already exist in one chunked query, then issues one bulk UPDATE by
primary key for matches and one bulk INSERT for the rest. The batch is
committed and the session's identity map released, which bounds memory
independently of file size.

If a batch write fails, the batch is rolled back and replayed one record at
a time, each committed on its own, so a bad record cannot sink its batch.

Sales and stock share the composite key but not the measures: the sales
path never touches stock figures of an existing row and vice versa.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.features.data_platform.models import SalesRecord
from app.features.ingest.catalog import chunked
from app.features.ingest.extractor import LedgerCandidate
from app.features.ingest.incidents import RECORD_ERROR, IncidenceLog
from app.features.ingest.layouts import SheetKind

logger = get_logger(__name__)

LedgerKey = tuple[int, int, int, str, str]

ZERO = Decimal("0")

# Columns refreshed on an existing row, per data kind
SALES_UPDATE_FIELDS = (
    "sales_units",
    "sales_value",
    "brand",
    "product_name",
    "description",
    "catalog_code",
    "product_id",
    "store_name",
    "city",
)
STOCK_UPDATE_FIELDS = ("stock_units", "stock_value")


@dataclass
class ReconciliationStats:
    """Outcome counts of a reconciler's lifetime."""

    inserted: int = 0
    updated: int = 0
    failed: int = 0
    batches: int = 0


def collapse_duplicates(candidates: Sequence[LedgerCandidate]) -> list[LedgerCandidate]:
    """Keep the last candidate per composite key."""
    latest: dict[LedgerKey, LedgerCandidate] = {}
    for candidate in candidates:
        latest[candidate.key] = candidate
    return list(latest.values())


class LedgerReconciler:
    """Buffered upsert of ledger candidates for one client and data kind."""

    def __init__(
        self,
        db: AsyncSession,
        client_id: int,
        kind: SheetKind,
        incidents: IncidenceLog,
        batch_size: int = 2000,
        lookup_chunk_size: int = 900,
    ) -> None:
        self.db = db
        self.client_id = client_id
        self.kind = kind
        self.incidents = incidents
        self.batch_size = batch_size
        self.lookup_chunk_size = lookup_chunk_size
        self.stats = ReconciliationStats()
        self._buffer: list[LedgerCandidate] = []

    @property
    def pending(self) -> int:
        """Number of buffered candidates."""
        return len(self._buffer)

    async def add(self, candidate: LedgerCandidate) -> None:
        """Buffer a candidate, flushing when the batch is full."""
        self._buffer.append(candidate)
        if len(self._buffer) >= self.batch_size:
            await self.flush()

    async def close(self) -> ReconciliationStats:
        """Flush the remainder and return the final counts."""
        await self.flush()
        logger.info(
            "ingest.reconciliation_completed",
            kind=self.kind.value,
            inserted=self.stats.inserted,
            updated=self.stats.updated,
            failed=self.stats.failed,
            batches=self.stats.batches,
        )
        return self.stats

    async def flush(self) -> None:
        """Write the buffered batch and release the session working set."""
        if not self._buffer:
            return

        batch = collapse_duplicates(self._buffer)
        self._buffer = []

        try:
            inserted, updated = await self._write(batch)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning(
                "ingest.batch_write_failed",
                kind=self.kind.value,
                batch_size=len(batch),
                error=str(e),
                error_type=type(e).__name__,
            )
            inserted, updated = await self._replay(batch)

        self.db.expunge_all()
        self.stats.inserted += inserted
        self.stats.updated += updated
        self.stats.batches += 1

        logger.info(
            "ingest.batch_flushed",
            kind=self.kind.value,
            batch_size=len(batch),
            inserted=inserted,
            updated=updated,
        )

    # ------------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------------

    async def _existing_ids(self, batch: Sequence[LedgerCandidate]) -> dict[LedgerKey, int]:
        """Load ids of ledger rows matching the batch keys.

        One query per chunk of barcodes, narrowed by the batch's years; the
        exact key match happens in memory.
        """
        wanted = {candidate.key for candidate in batch}
        years = {candidate.sale_date.year for candidate in batch}
        barcodes = {candidate.barcode for candidate in batch}

        found: dict[LedgerKey, int] = {}
        for chunk in chunked(barcodes, self.lookup_chunk_size):
            stmt = select(
                SalesRecord.id,
                SalesRecord.year,
                SalesRecord.month,
                SalesRecord.day,
                SalesRecord.barcode,
                SalesRecord.store_code,
            ).where(
                SalesRecord.client_id == self.client_id,
                SalesRecord.year.in_(years),
                SalesRecord.barcode.in_(chunk),
            )
            result = await self.db.execute(stmt)
            for row in result:
                key = (row.year, row.month, row.day, row.barcode, row.store_code)
                if key in wanted:
                    found[key] = row.id
        return found

    def _insert_values(self, candidate: LedgerCandidate) -> dict[str, Any]:
        year, month, day, barcode, store_code = candidate.key
        is_sales = self.kind is SheetKind.VENTAS
        return {
            "client_id": self.client_id,
            "year": year,
            "month": month,
            "day": day,
            "barcode": barcode,
            "store_code": store_code,
            "brand": candidate.brand,
            "product_name": candidate.product_name,
            "description": candidate.description,
            "catalog_code": candidate.catalog_code,
            "product_id": candidate.product_id,
            "store_name": candidate.store_name,
            "city": candidate.city,
            "sales_units": candidate.units if is_sales else ZERO,
            "sales_value": candidate.value if is_sales else ZERO,
            "stock_units": ZERO if is_sales else candidate.units,
            "stock_value": ZERO if is_sales else candidate.value,
        }

    def _update_values(self, record_id: int, candidate: LedgerCandidate) -> dict[str, Any]:
        values = self._insert_values(candidate)
        fields = SALES_UPDATE_FIELDS if self.kind is SheetKind.VENTAS else STOCK_UPDATE_FIELDS
        return {"id": record_id, **{name: values[name] for name in fields}}

    async def _write(self, batch: Sequence[LedgerCandidate]) -> tuple[int, int]:
        """Split a batch into bulk UPDATE and bulk INSERT statements.

        Returns:
            (inserted, updated) counts.
        """
        existing = await self._existing_ids(batch)

        updates: list[dict[str, Any]] = []
        inserts: list[dict[str, Any]] = []
        for candidate in batch:
            record_id = existing.get(candidate.key)
            if record_id is None:
                inserts.append(self._insert_values(candidate))
            else:
                updates.append(self._update_values(record_id, candidate))

        if updates:
            await self.db.execute(update(SalesRecord), updates)
        if inserts:
            await self.db.execute(insert(SalesRecord), inserts)
        return len(inserts), len(updates)

    async def _replay(self, batch: Sequence[LedgerCandidate]) -> tuple[int, int]:
        """Write a failed batch record by record, isolating bad records."""
        inserted = updated = 0
        for candidate in batch:
            try:
                record_inserted, record_updated = await self._write([candidate])
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                self.stats.failed += 1
                reason = str(e).splitlines()[0] if str(e) else type(e).__name__
                self.incidents.add(
                    RECORD_ERROR,
                    f"Error guardando registro {candidate.barcode}: {reason}",
                    candidate.row_number,
                    candidate.sheet,
                )
                continue
            inserted += record_inserted
            updated += record_updated
        return inserted, updated
