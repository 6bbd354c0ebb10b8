"""API routes for client-scoped sales ledger maintenance."""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db
from app.features.sales.schemas import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    SalesRecordResponse,
    SalesRecordUpdate,
)
from app.features.sales.service import SalesLedgerService
from app.shared.schemas import PaginatedResponse, PaginationParams

router = APIRouter(prefix="/sales", tags=["sales"])

CLIENT_CODE_QUERY = Query(
    ...,
    alias="codCliente",
    min_length=1,
    description="Client business code; records of other clients are invisible",
)


def get_service() -> SalesLedgerService:
    """Build the service from settings."""
    return SalesLedgerService(delete_batch_size=get_settings().sales_delete_batch_size)


@router.get(
    "",
    response_model=PaginatedResponse[SalesRecordResponse],
    summary="List ledger records",
    description="""
List a client's ledger records, newest day first.

**Filtering Options**:
- `year`, `month`: period filters (exact match)
- `brand`: brand filter (case-insensitive exact match)

**Pagination**: 1-indexed pages, `page_size` up to 1000.
""",
)
async def list_sales_records(
    client_code: str = CLIENT_CODE_QUERY,
    year: int | None = Query(None, ge=1900, le=9999, description="Filter by year"),
    month: int | None = Query(None, ge=1, le=12, description="Filter by month"),
    brand: str | None = Query(None, description="Filter by brand"),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(50, ge=1, le=1000, description="Records per page"),
    db: AsyncSession = Depends(get_db),
    service: SalesLedgerService = Depends(get_service),
) -> PaginatedResponse[SalesRecordResponse]:
    """List a client's ledger records.

    Args:
        client_code: Client business code.
        year: Filter by year.
        month: Filter by month.
        brand: Filter by brand.
        page: Page number.
        page_size: Records per page.
        db: Database session.
        service: Ledger service.

    Returns:
        Paginated records.
    """
    return await service.list_records(
        db=db,
        client_code=client_code,
        pagination=PaginationParams(page=page, page_size=page_size),
        year=year,
        month=month,
        brand=brand,
    )


@router.get(
    "/{record_id}",
    response_model=SalesRecordResponse,
    summary="Get ledger record by ID",
)
async def get_sales_record(
    record_id: int,
    client_code: str = CLIENT_CODE_QUERY,
    db: AsyncSession = Depends(get_db),
    service: SalesLedgerService = Depends(get_service),
) -> SalesRecordResponse:
    """Get one ledger record; 404 if it belongs to another client."""
    return await service.get_record(db=db, client_code=client_code, record_id=record_id)


@router.put(
    "/{record_id}",
    response_model=SalesRecordResponse,
    summary="Update ledger record",
    description="""
Partially update a ledger record. Omitted fields are left unchanged.

**Error Handling**:
- 404 if the record does not exist or belongs to another client
- 409 if a key change collides with an existing record
""",
)
async def update_sales_record(
    record_id: int,
    payload: SalesRecordUpdate,
    client_code: str = CLIENT_CODE_QUERY,
    db: AsyncSession = Depends(get_db),
    service: SalesLedgerService = Depends(get_service),
) -> SalesRecordResponse:
    """Update one ledger record."""
    return await service.update_record(
        db=db,
        client_code=client_code,
        record_id=record_id,
        payload=payload,
    )


@router.delete(
    "/{record_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete ledger record",
)
async def delete_sales_record(
    record_id: int,
    client_code: str = CLIENT_CODE_QUERY,
    db: AsyncSession = Depends(get_db),
    service: SalesLedgerService = Depends(get_service),
) -> Response:
    """Delete one ledger record; 404 if it belongs to another client."""
    await service.delete_record(db=db, client_code=client_code, record_id=record_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "",
    response_model=BulkDeleteResponse,
    summary="Delete ledger records in bulk",
    description="""
Delete many ledger records of one client.

Ids that do not exist or belong to another client are skipped and counted
in `omitidos`. A storage failure is reported with `ok=false` and nothing is
deleted.
""",
)
async def bulk_delete_sales_records(
    request: BulkDeleteRequest,
    client_code: str = CLIENT_CODE_QUERY,
    db: AsyncSession = Depends(get_db),
    service: SalesLedgerService = Depends(get_service),
) -> BulkDeleteResponse:
    """Delete the client's records among the requested ids."""
    return await service.bulk_delete(db=db, client_code=client_code, ids=request.ids)
