"""Ingest API routes for sell-out spreadsheet uploads."""

from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.exceptions import BadRequestError, PayloadTooLargeError
from app.core.logging import get_logger
from app.features.ingest.incidents import render_text_report, report_filename
from app.features.ingest.layouts import get_layout
from app.features.ingest.schemas import IngestionSummary
from app.features.ingest.service import check_upload_name, ingest_sell_out_file

logger = get_logger(__name__)

router = APIRouter(prefix="/ingest", tags=["ingest"])


def _check_upload_size(size_bytes: int, settings: Settings) -> None:
    if size_bytes > settings.max_upload_bytes:
        raise PayloadTooLargeError(
            message=f"El archivo supera el límite de {settings.ingest_max_upload_mb} MB.",
            details={"size_bytes": size_bytes, "limit_bytes": settings.max_upload_bytes},
        )


@router.post(
    "/sell-out",
    response_model=IngestionSummary,
    status_code=status.HTTP_200_OK,
    summary="Upload a sell-out workbook",
    description="""
Ingest one retail partner workbook into the sales ledger.

The partner `layout` decides which sheets are read and how their headers
map to ledger fields. `codCliente` defaults to the layout's client.

**Idempotency:** Rows are merged by (client, year, month, day, barcode,
store). Uploading the same file twice updates the existing records.

**Partial success:** Row-level problems (bad date, missing code, code
unknown to the catalog) are reported as incidences and do not stop the
run. `ok` is false only when a sheet could not be read at all or the run
aborted.

Set `txt=true` to download the incidence report as plain text instead.
""",
)
async def upload_sell_out(
    file: UploadFile = File(..., description="Partner workbook (.xlsx/.xlsm)"),
    client_code: str | None = Form(None, alias="codCliente"),
    layout: str | None = Form(None, description="Partner layout code"),
    txt: bool = Form(False, description="Return the incidence report as text"),
    db: AsyncSession = Depends(get_db),
) -> IngestionSummary | PlainTextResponse:
    """Ingest an uploaded sell-out workbook.

    Args:
        file: Uploaded workbook.
        client_code: Client business code (blank -> layout default).
        layout: Partner layout code (blank -> configured default).
        txt: Return a downloadable text report instead of JSON.
        db: Async database session from dependency.

    Returns:
        Run summary, or a plain-text report attachment.

    Raises:
        BadRequestError: Empty file, unsupported file type or unknown layout.
        PayloadTooLargeError: File exceeds the configured upload limit.
    """
    settings = get_settings()
    partner = get_layout(layout or settings.ingest_default_layout)
    check_upload_name(file.filename)

    # Declared size first, then a capped read for uploads that do not declare one
    if file.size is not None:
        _check_upload_size(file.size, settings)
    content = await file.read(settings.max_upload_bytes + 1)
    if not content:
        raise BadRequestError(message="El archivo está vacío.", details={"filename": file.filename})
    _check_upload_size(len(content), settings)

    logger.info(
        "ingest.upload_received",
        filename=file.filename,
        size_bytes=len(content),
        client_code=client_code,
        layout=partner.code,
        txt=txt,
    )

    summary = await ingest_sell_out_file(
        db,
        content,
        file.filename,
        partner,
        client_code=client_code,
        settings=settings,
    )

    if txt:
        now = datetime.now()
        filename = report_filename(partner.label, now)
        return PlainTextResponse(
            render_text_report(summary, now, title=partner.label),
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    return summary
