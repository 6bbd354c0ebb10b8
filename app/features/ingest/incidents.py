"""Incidence log: structured anomaly sink for one ingestion run."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime

from app.core.logging import get_logger
from app.features.ingest.schemas import IncidenceResponse, IngestionSummary

logger = get_logger(__name__)

# Sheet-level or fatal failure; the only code that makes a run unsuccessful
GENERAL = "GENERAL"
MISSING_CODE = "CODBARRA_VACIO"
INVALID_DATE = "FECHA_INVALIDA"
ROW_ERROR = "ERROR_FILA"
RECORD_ERROR = "ERROR_REGISTRO"

GENERAL_SHEET = "GENERAL"
NO_ROW = -1


@dataclass(frozen=True)
class Incidence:
    """An anomaly found while reading or reconciling a file.

    Attributes:
        code: Offending product code, or an incidence type such as GENERAL.
        reason: Human-readable reason.
        row: 1-based row number, -1 for sheet-level incidences.
        sheet: Sheet kind label, or GENERAL.
    """

    code: str
    reason: str
    row: int = NO_ROW
    sheet: str = GENERAL_SHEET


@dataclass
class RunCounters:
    """Per-run counts merged from each sheet's contribution."""

    sales_rows_read: int = 0
    sales_rows_processed: int = 0
    stock_rows_read: int = 0
    stock_rows_processed: int = 0
    records_inserted: int = 0
    records_updated: int = 0


class IncidenceLog:
    """Append-only incidence sink plus the set of unmatched codes."""

    def __init__(self) -> None:
        self._incidences: list[Incidence] = []
        self._unmatched: set[str] = set()

    def add(
        self,
        code: str,
        reason: str,
        row: int = NO_ROW,
        sheet: str = GENERAL_SHEET,
    ) -> Incidence:
        """Record an incidence.

        Args:
            code: Offending code or incidence type.
            reason: Human-readable reason.
            row: 1-based row number.
            sheet: Sheet label.

        Returns:
            The recorded incidence.
        """
        incidence = Incidence(code=code, reason=reason, row=row, sheet=sheet)
        self._incidences.append(incidence)
        log = logger.warning if code == GENERAL else logger.debug
        log("ingest.incidence_recorded", code=code, reason=reason, row=row, sheet=sheet)
        return incidence

    def mark_unmatched(self, code: str) -> None:
        """Add a code to the unmatched set."""
        self._unmatched.add(code)

    @property
    def incidences(self) -> tuple[Incidence, ...]:
        """Incidences in recording order."""
        return tuple(self._incidences)

    @property
    def unmatched_codes(self) -> list[str]:
        """Sorted unique unmatched codes."""
        return sorted(self._unmatched)

    @property
    def has_general(self) -> bool:
        """Whether a sheet-level or fatal failure was recorded."""
        return any(incidence.code == GENERAL for incidence in self._incidences)

    def __len__(self) -> int:
        return len(self._incidences)

    def __iter__(self) -> Iterator[Incidence]:
        return iter(self._incidences)

    def summarize(
        self,
        *,
        file_name: str | None,
        client_code: str,
        layout: str,
        counters: RunCounters,
        elapsed_seconds: float,
    ) -> IngestionSummary:
        """Build the run summary.

        Args:
            file_name: Uploaded file name.
            client_code: Client business code.
            layout: Partner layout code.
            counters: Row and record counts accumulated by the run.
            elapsed_seconds: Wall-clock duration of the run.

        Returns:
            IngestionSummary with ``ok`` set from the absence of GENERAL incidences.
        """
        return IngestionSummary(
            ok=not self.has_general,
            file_name=file_name,
            client_code=client_code,
            layout=layout,
            sales_rows_read=counters.sales_rows_read,
            sales_rows_processed=counters.sales_rows_processed,
            stock_rows_read=counters.stock_rows_read,
            stock_rows_processed=counters.stock_rows_processed,
            records_inserted=counters.records_inserted,
            records_updated=counters.records_updated,
            unmatched_codes=self.unmatched_codes,
            incidences=[
                IncidenceResponse(
                    code=incidence.code,
                    reason=incidence.reason,
                    row=incidence.row,
                    sheet=incidence.sheet,
                )
                for incidence in self._incidences
            ],
            elapsed_seconds=round(elapsed_seconds, 3),
        )


# ============================================================================
# TEXT REPORT
# ============================================================================


def render_text_report(
    summary: IngestionSummary,
    generated_at: datetime,
    title: str = "RM",
) -> str:
    """Render a run summary as a flat, line-oriented report.

    Unmatched codes are listed on their own, followed by a tab-separated
    detail table with one line per incidence.

    Args:
        summary: Run summary.
        generated_at: Timestamp printed in the header block.
        title: Partner label used in the report title.

    Returns:
        Report text, newline-terminated.
    """
    lines = [
        f"INCIDENCIAS DE CARGA {title}",
        f"Archivo: {summary.file_name or ''}",
        f"Fecha/Hora: {generated_at:%Y-%m-%d %H:%M:%S}",
        f"Ventas - Filas leídas: {summary.sales_rows_read}",
        f"Ventas - Filas procesadas: {summary.sales_rows_processed}",
        f"Stock  - Filas leídas: {summary.stock_rows_read}",
        f"Stock  - Filas procesadas: {summary.stock_rows_processed}",
        f"Registros insertados: {summary.records_inserted}",
        f"Registros actualizados: {summary.records_updated}",
        f"Tiempo (s): {summary.elapsed_seconds}",
        "",
        "CODIGOS_NO_ENCONTRADOS",
    ]
    lines.extend(summary.unmatched_codes or ["Sin códigos no encontrados."])

    lines.extend(["", "DETALLE_INCIDENCIAS", "HOJA\tFILA\tCODIGO\tMOTIVO"])
    if not summary.incidences:
        lines.append("Sin incidencias.")
    for incidence in summary.incidences:
        lines.append(f"{incidence.sheet}\t{incidence.row}\t{incidence.code}\t{incidence.reason}")

    return "\n".join(lines) + "\n"


def report_filename(label: str, now: datetime) -> str:
    """File name for a downloadable incidence report."""
    return f"incidencias_{label}_{now:%Y%m%d_%H%M%S}.txt"
