"""Sheet planning and row extraction.

A sheet is first *planned*: located in the workbook, its header row found
and its columns mapped. Planned sheets are then walked row by row, each row
classified into an ``ExtractedRow`` carrying zero or more ledger candidates.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from itertools import islice
from typing import Any

from openpyxl.workbook.workbook import Workbook

from app.core.logging import get_logger
from app.features.data_platform.models import normalize_store_code
from app.features.ingest.coercion import CellKind, cell_text, coerce
from app.features.ingest.headers import build_column_map, find_header_row
from app.features.ingest.incidents import GENERAL, NO_ROW, IncidenceLog
from app.features.ingest.layouts import SheetKind, SheetLayout, StoreBand

logger = get_logger(__name__)

# Spreadsheet summary-row marker found in partner exports
SUMMARY_ROW_MARKER = "resultado"


class RowStatus(str, Enum):
    """Classification of one data row."""

    EMPTY = "empty"
    SUMMARY = "summary"
    INACTIVE = "inactive"
    INVALID_DATE = "invalid_date"
    MISSING_CODE = "missing_code"
    OK = "ok"


@dataclass(frozen=True)
class StoreColumn:
    """A store's (units, value) column pair in a wide layout."""

    store_code: str
    store_name: str
    units_column: int
    value_column: int


@dataclass(frozen=True)
class SheetPlan:
    """A sheet ready for extraction.

    Attributes:
        layout: Sheet layout it was planned from.
        sheet_name: Actual worksheet title.
        header_index: 0-based index of the header row.
        column_map: Field name -> 0-based column.
        stores: Store column pairs (wide layouts only).
    """

    layout: SheetLayout
    sheet_name: str
    header_index: int
    column_map: dict[str, int]
    stores: tuple[StoreColumn, ...] = ()

    @property
    def kind(self) -> SheetKind:
        return self.layout.kind

    @property
    def first_data_row(self) -> int:
        """1-based number of the first row below the header."""
        return self.header_index + 2


@dataclass
class LedgerCandidate:
    """A value destined for one ledger row.

    Catalog fields are filled in by the pipeline after resolution.
    """

    kind: SheetKind
    sheet: str
    row_number: int
    sale_date: date
    barcode: str
    store_code: str
    store_name: str | None
    city: str | None
    brand: str | None
    product_name: str | None
    description: str | None
    units: Decimal
    value: Decimal
    catalog_code: str | None = None
    product_id: int | None = None

    @property
    def key(self) -> tuple[int, int, int, str, str]:
        """Composite key within a client: (year, month, day, barcode, store)."""
        return (
            self.sale_date.year,
            self.sale_date.month,
            self.sale_date.day,
            self.barcode,
            self.store_code,
        )


@dataclass
class ExtractedRow:
    """Outcome of classifying one data row."""

    status: RowStatus
    row_number: int
    barcode: str | None = None
    candidates: list[LedgerCandidate] = field(default_factory=list)
    defaulted_cells: int = 0


@dataclass
class SheetStats:
    """A sheet's contribution to the run counts."""

    kind: SheetKind
    rows_read: int = 0
    rows_processed: int = 0
    defaulted_cells: int = 0


# ============================================================================
# PLANNING
# ============================================================================


def locate_sheet(workbook: Workbook, layout: SheetLayout) -> Any | None:
    """Find the worksheet for a sheet layout.

    Sheet names match case-insensitively and ignoring surrounding blanks.

    Args:
        workbook: Open workbook.
        layout: Sheet layout.

    Returns:
        The worksheet, or None if absent and no fallback applies.
    """
    wanted = {name.strip().upper() for name in layout.sheet_names}
    for title in workbook.sheetnames:
        if title.strip().upper() in wanted:
            return workbook[title]
    if layout.fallback_to_first and workbook.sheetnames:
        return workbook.worksheets[0]
    return None


def leading_rows(worksheet: Any, max_rows: int) -> list[tuple[Any, ...]]:
    """Read the first ``max_rows`` rows as value tuples."""
    return [tuple(row) for row in islice(worksheet.iter_rows(values_only=True), max_rows)]


def locate_store_columns(
    rows: Sequence[Sequence[Any]],
    header_index: int,
    band: StoreBand,
) -> tuple[StoreColumn, ...]:
    """Find the store column pairs of a wide layout.

    The store code row is the first row above the header with a text cell
    containing the band marker; store names come from the row right below
    it. A store code seen twice keeps its first column pair, and a code cell
    with no name below it is ignored.

    Args:
        rows: Leading rows of the sheet.
        header_index: 0-based header row index.
        band: Store band description.

    Returns:
        Store column pairs in column order.
    """
    marker = band.marker.lower()
    for index in range(min(header_index, len(rows))):
        codes_row = rows[index]
        code_columns = [
            column
            for column, cell in enumerate(codes_row)
            if isinstance(cell, str) and marker in cell.lower()
        ]
        if not code_columns:
            continue

        names_row = rows[index + 1] if index + 1 < len(rows) else ()
        stores: list[StoreColumn] = []
        seen: set[str] = set()
        for column in code_columns:
            name = cell_text(names_row[column]) if column < len(names_row) else None
            store_code = normalize_store_code(cell_text(codes_row[column]))
            if name is None or store_code in seen:
                continue
            seen.add(store_code)
            stores.append(
                StoreColumn(
                    store_code=store_code,
                    store_name=name,
                    units_column=column,
                    value_column=column + band.value_offset,
                )
            )
        return tuple(stores)
    return ()


def plan_sheet(
    workbook: Workbook,
    layout: SheetLayout,
    incidents: IncidenceLog,
    max_scan_rows: int = 30,
    max_columns: int = 120,
) -> SheetPlan | None:
    """Locate a sheet, its header row and its columns.

    Structural failures are recorded as one GENERAL incidence for the sheet
    kind; the caller skips the sheet and carries on with the others.

    Args:
        workbook: Open workbook.
        layout: Sheet layout.
        incidents: Incidence log for structural failures.
        max_scan_rows: Header scan depth.
        max_columns: Columns inspected per header row.

    Returns:
        SheetPlan, or None if the sheet is absent or unusable.
    """
    label = layout.kind.value
    worksheet = locate_sheet(workbook, layout)
    if worksheet is None:
        if not layout.optional:
            incidents.add(GENERAL, f"No se encontró la hoja {label}.", NO_ROW, label)
        return None

    rows = leading_rows(worksheet, max_scan_rows)
    header_index = find_header_row(rows, layout.required_headers, max_scan_rows, max_columns)
    if header_index is None:
        incidents.add(
            GENERAL,
            f"No se encontró encabezado de {label} (requiere {layout.describe_required()}).",
            NO_ROW,
            label,
        )
        return None

    column_map = build_column_map(rows[header_index], layout.aliases, max_columns)
    missing = [name for name in layout.required_fields if name not in column_map]
    if missing:
        expected = ", ".join("/".join(layout.aliases[name]) for name in missing)
        incidents.add(
            GENERAL,
            f"Encabezado de {label} sin columnas requeridas: {expected}.",
            NO_ROW,
            label,
        )
        return None

    stores: tuple[StoreColumn, ...] = ()
    if layout.store_band is not None:
        stores = locate_store_columns(rows, header_index, layout.store_band)
        if not stores:
            incidents.add(
                GENERAL,
                f"No se encontró una fila con celdas que contengan "
                f"'{layout.store_band.marker}' en {label}.",
                NO_ROW,
                label,
            )
            return None

    logger.info(
        "ingest.sheet_planned",
        sheet=worksheet.title,
        kind=label,
        header_row=header_index + 1,
        columns=column_map,
        stores=len(stores),
    )
    return SheetPlan(
        layout=layout,
        sheet_name=worksheet.title,
        header_index=header_index,
        column_map=column_map,
        stores=stores,
    )


# ============================================================================
# EXTRACTION
# ============================================================================


def iter_data_rows(workbook: Workbook, plan: SheetPlan) -> Iterator[tuple[int, tuple[Any, ...]]]:
    """Yield (1-based row number, cell values) for rows below the header."""
    worksheet = workbook[plan.sheet_name]
    rows = worksheet.iter_rows(min_row=plan.first_data_row, values_only=True)
    for offset, cells in enumerate(rows):
        yield plan.first_data_row + offset, tuple(cells)


def _is_blank(cell: Any) -> bool:
    return cell is None or (isinstance(cell, str) and not cell.strip())


def is_blank_row(cells: Sequence[Any]) -> bool:
    """Whether every cell of a row is empty or whitespace."""
    return all(_is_blank(cell) for cell in cells)


def _cell(cells: Sequence[Any], column: int | None) -> Any:
    if column is None or column >= len(cells):
        return None
    return cells[column]


class _RowReader:
    """Reads typed fields from one row, counting defaulted cells."""

    def __init__(self, plan: SheetPlan, cells: Sequence[Any]) -> None:
        self.plan = plan
        self.cells = cells
        self.defaulted = 0

    def field(self, name: str) -> Any:
        column = self.plan.column_map.get(name)
        if column is None:
            return coerce(None, self.plan.layout.kinds.get(name, CellKind.TEXT)).value
        return self.at(column, self.plan.layout.kinds[name])

    def at(self, column: int, kind: CellKind) -> Any:
        raw = _cell(self.cells, column)
        coerced = coerce(raw, kind)
        if coerced.defaulted and not _is_blank(raw):
            self.defaulted += 1
        return coerced.value


def _positive(*measures: Decimal) -> bool:
    return any(measure > 0 for measure in measures)


def extract_row(plan: SheetPlan, cells: Sequence[Any], row_number: int) -> ExtractedRow:
    """Classify one data row and extract its ledger candidates.

    Classification order: blank row, summary marker, measure test, date,
    product code. Stock rows check the product code before the measure
    test, so a blank code is reported even when the stock is zero. Only
    ``OK`` rows carry candidates.

    Args:
        plan: Sheet plan.
        cells: Cell values of the row.
        row_number: 1-based row number.

    Returns:
        ExtractedRow with the status and, for usable rows, its candidates.
    """
    if is_blank_row(cells):
        return ExtractedRow(status=RowStatus.EMPTY, row_number=row_number)

    reader = _RowReader(plan, cells)
    barcode = reader.field("code")

    def outcome(status: RowStatus, **extra: Any) -> ExtractedRow:
        return ExtractedRow(
            status=status,
            row_number=row_number,
            barcode=barcode,
            defaulted_cells=reader.defaulted,
            **extra,
        )

    if barcode is not None and barcode.lower() == SUMMARY_ROW_MARKER:
        return outcome(RowStatus.SUMMARY)

    if plan.kind is SheetKind.STOCK and barcode is None:
        return outcome(RowStatus.MISSING_CODE)

    # (store_code, store_name, units, value) for each measured store
    measured: list[tuple[str, str | None, Decimal, Decimal]] = []
    if plan.stores:
        for store in plan.stores:
            units = reader.at(store.units_column, CellKind.DECIMAL)
            value = reader.at(store.value_column, CellKind.DECIMAL)
            if _positive(units, value):
                measured.append((store.store_code, store.store_name, units, value))
    else:
        units = reader.field("units")
        value = reader.field("value")
        if _positive(units, value):
            store_code = normalize_store_code(reader.field("store"))
            measured.append((store_code, store_code, units, value))

    if not measured:
        return outcome(RowStatus.INACTIVE)

    sale_date = reader.field("date")
    if sale_date is None:
        return outcome(RowStatus.INVALID_DATE)

    if barcode is None:
        return outcome(RowStatus.MISSING_CODE)

    city = reader.field("city")
    brand = reader.field("brand")
    product_name = reader.field("product_name")
    candidates = [
        LedgerCandidate(
            kind=plan.kind,
            sheet=plan.kind.value,
            row_number=row_number,
            sale_date=sale_date,
            barcode=barcode,
            store_code=store_code,
            store_name=store_name,
            city=city,
            brand=brand,
            product_name=product_name,
            description=product_name,
            units=units,
            value=value,
        )
        for store_code, store_name, units, value in measured
    ]
    return outcome(RowStatus.OK, candidates=candidates)


def scan_codes(workbook: Workbook, plan: SheetPlan) -> set[str]:
    """Pre-scan pass: collect the codes of every usable row of a sheet."""
    codes: set[str] = set()
    for row_number, cells in iter_data_rows(workbook, plan):
        extracted = extract_row(plan, cells, row_number)
        if extracted.status is RowStatus.OK and extracted.barcode is not None:
            codes.add(extracted.barcode)
    logger.info("ingest.sheet_prescanned", sheet=plan.sheet_name, codes=len(codes))
    return codes
