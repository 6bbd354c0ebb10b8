"""Sell-out ingestion pipeline.

One call ingests one workbook for one client:

1. resolve the client (fatal if unknown) and open the workbook (fatal if
   unreadable),
2. plan every sheet of the partner layout (header row and column map),
3. pre-scan the planned sheets for candidate product codes,
4. resolve those codes against the catalog references in bulk,
5. walk each sheet again, attach catalog data and feed the reconciler,
6. summarize counts and incidences.

The caller always gets an ``IngestionSummary``; fatal errors are recorded
as a single GENERAL incidence and stop the run, leaving already flushed
batches committed.
"""

from __future__ import annotations

import time
import zipfile
from io import BytesIO

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook.workbook import Workbook
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.exceptions import BadRequestError, SellOutError, UnknownClientError
from app.core.logging import get_logger
from app.features.data_platform.models import Client
from app.features.ingest.catalog import (
    CatalogMemo,
    CatalogResolver,
    CatalogResolverProtocol,
    RunCatalog,
)
from app.features.ingest.extractor import (
    ExtractedRow,
    LedgerCandidate,
    RowStatus,
    SheetPlan,
    SheetStats,
    extract_row,
    is_blank_row,
    iter_data_rows,
    plan_sheet,
    scan_codes,
)
from app.features.ingest.incidents import (
    GENERAL,
    GENERAL_SHEET,
    INVALID_DATE,
    MISSING_CODE,
    NO_ROW,
    ROW_ERROR,
    IncidenceLog,
    RunCounters,
)
from app.features.ingest.layouts import PartnerLayout, SheetKind
from app.features.ingest.reconciliation import LedgerReconciler
from app.features.ingest.schemas import IngestionSummary

logger = get_logger(__name__)

ACCEPTED_EXTENSIONS = (".xlsx", ".xlsm")


class UnreadableWorkbookError(BadRequestError):
    """The upload is not a readable spreadsheet."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            message=f"No se pudo leer el archivo Excel: {reason}",
            details={"reason": reason},
        )


# ============================================================================
# COLLABORATORS
# ============================================================================


async def resolve_client_id(db: AsyncSession, client_code: str) -> int:
    """Resolve a client business code to its id.

    Args:
        db: Async database session.
        client_code: Client business code.

    Returns:
        Client id.

    Raises:
        UnknownClientError: If no client has that code.
    """
    result = await db.execute(select(Client.id).where(Client.code == client_code))
    client_id = result.scalar_one_or_none()
    if client_id is None:
        raise UnknownClientError(client_code)
    return client_id


def open_workbook(content: bytes) -> Workbook:
    """Open spreadsheet bytes in streaming, values-only mode.

    Args:
        content: Raw ``.xlsx``/``.xlsm`` bytes.

    Returns:
        Read-only workbook; the caller closes it.

    Raises:
        UnreadableWorkbookError: If the bytes are not a readable workbook.
    """
    try:
        return load_workbook(BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise UnreadableWorkbookError(str(e) or type(e).__name__) from e


def check_upload_name(filename: str | None) -> None:
    """Reject file names without a supported spreadsheet extension.

    Raises:
        BadRequestError: If the extension is not ``.xlsx`` or ``.xlsm``.
    """
    if not filename or not filename.lower().endswith(ACCEPTED_EXTENSIONS):
        raise BadRequestError(
            message="Formato no soportado: se espera un archivo .xlsx o .xlsm",
            details={"filename": filename, "accepted": list(ACCEPTED_EXTENSIONS)},
        )


# ============================================================================
# ROW RESOLUTION
# ============================================================================


async def resolve_row(
    extracted: ExtractedRow,
    plan: SheetPlan,
    catalog: RunCatalog,
    incidents: IncidenceLog,
) -> list[LedgerCandidate]:
    """Turn a classified row into catalog-enriched candidates.

    Rows that fail validation or lookup are recorded in the incidence log
    and yield no candidates.

    Args:
        extracted: Classified row.
        plan: Sheet plan.
        catalog: Per-run catalog view.
        incidents: Incidence log.

    Returns:
        Candidates ready for reconciliation.
    """
    sheet = plan.kind.value
    row = extracted.row_number
    code = extracted.barcode

    if extracted.status is RowStatus.INVALID_DATE:
        incidents.add(INVALID_DATE, f"Fecha vacía o inválida (código {code or '-'}).", row, sheet)
        return []

    if extracted.status is RowStatus.MISSING_CODE:
        incidents.add(MISSING_CODE, "Código de producto vacío.", row, sheet)
        incidents.mark_unmatched(MISSING_CODE)
        return []

    if extracted.status is not RowStatus.OK or code is None:
        return []

    match = await catalog.match(code)
    if match.entry is None:
        incidents.add(code, "No existe en la caché de catálogo (barcode).", row, sheet)
        incidents.mark_unmatched(code)
        return []
    if match.product_id is None:
        incidents.add(code, "No existe en la tabla de productos (barcode).", row, sheet)
        incidents.mark_unmatched(code)
        return []

    entry = match.entry
    for candidate in extracted.candidates:
        candidate.catalog_code = entry.catalog_code
        candidate.product_id = match.product_id
        candidate.brand = entry.brand or candidate.brand
        candidate.description = entry.description or candidate.description
        candidate.product_name = entry.description or candidate.product_name
    return extracted.candidates


async def process_sheet(
    db: AsyncSession,
    workbook: Workbook,
    plan: SheetPlan,
    client_id: int,
    catalog: RunCatalog,
    incidents: IncidenceLog,
    settings: Settings,
) -> tuple[SheetStats, int, int]:
    """Main pass over one planned sheet.

    Args:
        db: Async database session.
        workbook: Open workbook.
        plan: Sheet plan.
        client_id: Owning client id.
        catalog: Per-run catalog view, warmed by the pre-scan.
        incidents: Incidence log.
        settings: Application settings.

    Returns:
        (sheet stats, records inserted, records updated).
    """
    stats = SheetStats(kind=plan.kind)
    reconciler = LedgerReconciler(
        db,
        client_id,
        plan.kind,
        incidents,
        batch_size=settings.ingest_batch_size,
        lookup_chunk_size=settings.ingest_lookup_chunk_size,
    )

    for row_number, cells in iter_data_rows(workbook, plan):
        if is_blank_row(cells):
            continue
        stats.rows_read += 1

        try:
            extracted = extract_row(plan, cells, row_number)
            stats.defaulted_cells += extracted.defaulted_cells
            candidates = await resolve_row(extracted, plan, catalog, incidents)
        except SQLAlchemyError:
            raise
        except Exception as e:
            logger.warning(
                "ingest.row_failed",
                sheet=plan.sheet_name,
                row=row_number,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            incidents.add(ROW_ERROR, f"Error procesando fila: {e}", row_number, plan.kind.value)
            continue

        for candidate in candidates:
            await reconciler.add(candidate)
            stats.rows_processed += 1

    result = await reconciler.close()
    logger.info(
        "ingest.sheet_processed",
        sheet=plan.sheet_name,
        kind=plan.kind.value,
        rows_read=stats.rows_read,
        rows_processed=stats.rows_processed,
        defaulted_cells=stats.defaulted_cells,
    )
    return stats, result.inserted, result.updated


# ============================================================================
# PIPELINE
# ============================================================================


def _record_fatal(
    incidents: IncidenceLog,
    reason: str,
    error: Exception,
    filename: str | None,
    client_code: str,
) -> None:
    incidents.add(GENERAL, f"ERROR FATAL: {reason}", NO_ROW, GENERAL_SHEET)
    logger.error(
        "ingest.run_failed",
        file=filename,
        client_code=client_code,
        error=reason,
        error_type=type(error).__name__,
        exc_info=not isinstance(error, SellOutError),
    )


async def _run(
    db: AsyncSession,
    workbook: Workbook,
    layout: PartnerLayout,
    client_id: int,
    resolver: CatalogResolverProtocol,
    incidents: IncidenceLog,
    counters: RunCounters,
    settings: Settings,
) -> None:
    plans: list[SheetPlan] = []
    for sheet_layout in layout.sheets:
        plan = plan_sheet(
            workbook,
            sheet_layout,
            incidents,
            max_scan_rows=settings.ingest_header_scan_rows,
            max_columns=settings.ingest_header_scan_columns,
        )
        if plan is not None:
            plans.append(plan)

    codes: set[str] = set()
    for plan in plans:
        codes |= scan_codes(workbook, plan)

    catalog = RunCatalog(db, resolver, CatalogMemo(settings.ingest_catalog_memo_size))
    await catalog.warm(codes)

    for plan in plans:
        stats, inserted, updated = await process_sheet(
            db, workbook, plan, client_id, catalog, incidents, settings
        )
        if plan.kind is SheetKind.VENTAS:
            counters.sales_rows_read += stats.rows_read
            counters.sales_rows_processed += stats.rows_processed
        else:
            counters.stock_rows_read += stats.rows_read
            counters.stock_rows_processed += stats.rows_processed
        counters.records_inserted += inserted
        counters.records_updated += updated


async def ingest_sell_out_file(
    db: AsyncSession,
    content: bytes,
    filename: str | None,
    layout: PartnerLayout,
    client_code: str | None = None,
    resolver: CatalogResolverProtocol | None = None,
    settings: Settings | None = None,
) -> IngestionSummary:
    """Ingest one sell-out workbook into the ledger.

    Args:
        db: Async database session.
        content: Raw workbook bytes.
        filename: Original file name, echoed in the summary.
        layout: Partner layout describing the workbook.
        client_code: Client business code; blank means the layout default.
        resolver: Catalog resolver (defaults to the database-backed one).
        settings: Application settings (defaults to the cached settings).

    Returns:
        IngestionSummary with counts, unmatched codes and incidences.
    """
    settings = settings or get_settings()
    resolver = resolver or CatalogResolver(chunk_size=settings.ingest_lookup_chunk_size)
    code = (client_code or "").strip() or layout.default_client_code

    started = time.perf_counter()
    incidents = IncidenceLog()
    counters = RunCounters()

    logger.info(
        "ingest.run_started",
        file=filename,
        client_code=code,
        layout=layout.code,
        size_bytes=len(content),
    )

    try:
        client_id = await resolve_client_id(db, code)
        workbook = open_workbook(content)
        try:
            await _run(db, workbook, layout, client_id, resolver, incidents, counters, settings)
        finally:
            workbook.close()
    except SellOutError as e:
        _record_fatal(incidents, e.message, e, filename, code)
    except SQLAlchemyError as e:
        await db.rollback()
        _record_fatal(incidents, str(e), e, filename, code)
    except Exception as e:
        # Corrupt sheet XML only surfaces while rows are streamed
        _record_fatal(incidents, str(e) or type(e).__name__, e, filename, code)

    summary = incidents.summarize(
        file_name=filename,
        client_code=code,
        layout=layout.code,
        counters=counters,
        elapsed_seconds=time.perf_counter() - started,
    )
    logger.info(
        "ingest.run_completed",
        file=filename,
        client_code=code,
        ok=summary.ok,
        sales_rows_read=summary.sales_rows_read,
        sales_rows_processed=summary.sales_rows_processed,
        stock_rows_read=summary.stock_rows_read,
        stock_rows_processed=summary.stock_rows_processed,
        inserted=summary.records_inserted,
        updated=summary.records_updated,
        unmatched=len(summary.unmatched_codes),
        incidences=len(summary.incidences),
        elapsed_seconds=summary.elapsed_seconds,
    )
    return summary
