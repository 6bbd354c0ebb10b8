"""Service layer for client-scoped ledger maintenance.

Every operation is scoped by client business code: a record owned by
another client behaves exactly like a missing one.
"""

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.core.logging import get_logger
from app.features.data_platform.models import SalesRecord, normalize_store_code
from app.features.ingest.service import resolve_client_id
from app.features.sales.schemas import (
    BulkDeleteResponse,
    SalesRecordResponse,
    SalesRecordUpdate,
)
from app.shared.schemas import PaginatedResponse, PaginationParams
from app.shared.utils import paginate_response

logger = get_logger(__name__)

# Fields an update may clear; null on any other field is ignored.
# store_code accepts null and maps it to the no-store sentinel.
NULLABLE_FIELDS = frozenset(
    {"store_code", "brand", "product_name", "description", "store_name", "city"}
)


class SalesLedgerService:
    """List, read, update and delete ledger records of one client."""

    def __init__(self, delete_batch_size: int = 5000) -> None:
        self.delete_batch_size = delete_batch_size

    async def list_records(
        self,
        db: AsyncSession,
        client_code: str,
        pagination: PaginationParams,
        year: int | None = None,
        month: int | None = None,
        brand: str | None = None,
    ) -> PaginatedResponse[SalesRecordResponse]:
        """List a client's records with pagination and filtering.

        Args:
            db: Database session.
            client_code: Client business code.
            pagination: Page parameters.
            year: Filter by year.
            month: Filter by month.
            brand: Filter by brand (case-insensitive exact match).

        Returns:
            Paginated records, newest day first.

        Raises:
            UnknownClientError: If the client code is not registered.
        """
        client_id = await resolve_client_id(db, client_code)

        stmt = select(SalesRecord).where(SalesRecord.client_id == client_id)
        if year is not None:
            stmt = stmt.where(SalesRecord.year == year)
        if month is not None:
            stmt = stmt.where(SalesRecord.month == month)
        if brand:
            stmt = stmt.where(func.lower(SalesRecord.brand) == brand.strip().lower())

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await db.execute(count_stmt)).scalar_one()

        stmt = (
            stmt.order_by(
                SalesRecord.year.desc(),
                SalesRecord.month.desc(),
                SalesRecord.day.desc(),
                SalesRecord.id,
            )
            .offset(pagination.offset)
            .limit(pagination.limit)
        )
        records = (await db.execute(stmt)).scalars().all()

        logger.info(
            "sales.records_listed",
            client_code=client_code,
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            filters={"year": year, "month": month, "brand": brand},
        )

        return paginate_response(
            [SalesRecordResponse.model_validate(record) for record in records],
            total,
            pagination,
        )

    async def _owned_record(
        self,
        db: AsyncSession,
        client_code: str,
        record_id: int,
    ) -> SalesRecord:
        client_id = await resolve_client_id(db, client_code)
        stmt = select(SalesRecord).where(
            SalesRecord.id == record_id,
            SalesRecord.client_id == client_id,
        )
        record = (await db.execute(stmt)).scalar_one_or_none()
        if record is None:
            raise NotFoundError(
                message=f"Sales record not found: {record_id}",
                details={"record_id": record_id, "client_code": client_code},
            )
        return record

    async def get_record(
        self,
        db: AsyncSession,
        client_code: str,
        record_id: int,
    ) -> SalesRecordResponse:
        """Get one of the client's records.

        Raises:
            NotFoundError: If the record does not exist or belongs to another client.
        """
        record = await self._owned_record(db, client_code, record_id)
        return SalesRecordResponse.model_validate(record)

    async def update_record(
        self,
        db: AsyncSession,
        client_code: str,
        record_id: int,
        payload: SalesRecordUpdate,
    ) -> SalesRecordResponse:
        """Apply a partial update to one of the client's records.

        Args:
            db: Database session.
            client_code: Client business code.
            record_id: Record ID.
            payload: Fields to change.

        Returns:
            The updated record.

        Raises:
            NotFoundError: If the record is not visible to the client.
            ConflictError: If the change collides with another record's key.
        """
        record = await self._owned_record(db, client_code, record_id)

        changes = {
            name: value
            for name, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or name in NULLABLE_FIELDS
        }
        if "store_code" in changes:
            changes["store_code"] = normalize_store_code(changes["store_code"])
        for name, value in changes.items():
            setattr(record, name, value)

        try:
            await db.flush()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictError(
                message="Another record already uses this day, barcode and store",
                details={"record_id": record_id, "changes": sorted(changes)},
            ) from e

        await db.refresh(record)
        logger.info(
            "sales.record_updated",
            client_code=client_code,
            record_id=record_id,
            fields=sorted(changes),
        )
        return SalesRecordResponse.model_validate(record)

    async def delete_record(
        self,
        db: AsyncSession,
        client_code: str,
        record_id: int,
    ) -> None:
        """Delete one of the client's records.

        Raises:
            NotFoundError: If the record is not visible to the client.
        """
        record = await self._owned_record(db, client_code, record_id)
        await db.delete(record)
        await db.flush()
        logger.info("sales.record_deleted", client_code=client_code, record_id=record_id)

    async def bulk_delete(
        self,
        db: AsyncSession,
        client_code: str,
        ids: list[int],
    ) -> BulkDeleteResponse:
        """Delete many of the client's records.

        Ids that do not exist or belong to another client are counted as
        omitted. A storage failure rolls the whole delete back and is
        reported with ``ok=false``, never as a partial success.

        Args:
            db: Database session.
            client_code: Client business code.
            ids: Record IDs to delete.

        Returns:
            Requested, deleted and omitted counts.

        Raises:
            UnknownClientError: If the client code is not registered.
        """
        client_id = await resolve_client_id(db, client_code)
        requested = set(ids)

        try:
            owned: list[int] = []
            for chunk in chunked_ids(requested, self.delete_batch_size):
                stmt = select(SalesRecord.id).where(
                    SalesRecord.client_id == client_id,
                    SalesRecord.id.in_(chunk),
                )
                owned.extend((await db.execute(stmt)).scalars().all())

            for chunk in chunked_ids(owned, self.delete_batch_size):
                await db.execute(
                    delete(SalesRecord)
                    .where(SalesRecord.client_id == client_id, SalesRecord.id.in_(chunk))
                    .execution_options(synchronize_session=False)
                )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                "sales.bulk_delete_failed",
                client_code=client_code,
                requested=len(requested),
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return BulkDeleteResponse(
                ok=False,
                requested=len(requested),
                deleted=0,
                omitted=0,
                message=f"Error eliminando {len(requested)} registros: {type(e).__name__}",
            )

        deleted = len(owned)
        omitted = len(requested) - deleted
        logger.info(
            "sales.bulk_deleted",
            client_code=client_code,
            requested=len(requested),
            deleted=deleted,
            omitted=omitted,
        )
        return BulkDeleteResponse(
            ok=True,
            requested=len(requested),
            deleted=deleted,
            omitted=omitted,
            message=f"Se eliminaron {deleted} de {len(requested)} registros solicitados.",
        )


def chunked_ids(ids: set[int] | list[int], size: int) -> list[list[int]]:
    """Split ids into sorted chunks of at most ``size``."""
    ordered = sorted(ids)
    return [ordered[start : start + size] for start in range(0, len(ordered), size)]
