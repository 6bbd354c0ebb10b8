"""Client-scoped maintenance of sales ledger records."""

from app.features.sales.routes import router
from app.features.sales.schemas import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    SalesRecordResponse,
    SalesRecordUpdate,
)
from app.features.sales.service import SalesLedgerService

__all__ = [
    "BulkDeleteRequest",
    "BulkDeleteResponse",
    "SalesLedgerService",
    "SalesRecordResponse",
    "SalesRecordUpdate",
    "router",
]
