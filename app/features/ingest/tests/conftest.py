"""Feature-specific test fixtures for ingest module."""

from collections.abc import Sequence
from io import BytesIO
from typing import Any

import pytest
from openpyxl import Workbook

from app.features.ingest.catalog import CatalogEntry

RM_SALES_HEADER = [
    "Fecha Venta",
    "Nombre Tienda",
    "Ciudad",
    "REF_Proveedor",
    "Ventas en UDD",
    "Ventas en USD sin IVA",
]

RM_STOCK_HEADER = [
    "Fecha Corte",
    "Tienda",
    "Ciudad",
    "REF_Proveedor",
    "Cantidad Unidades",
    "Cantidad Dolares",
]


def build_workbook(sheets: dict[str, Sequence[Sequence[Any]]]) -> bytes:
    """Serialize sheets (title -> rows) into .xlsx bytes."""
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        worksheet = workbook.create_sheet(title)
        for row in rows:
            worksheet.append(list(row))
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def rm_workbook(
    sales_rows: Sequence[Sequence[Any]] = (),
    stock_rows: Sequence[Sequence[Any]] | None = None,
    preamble: Sequence[Sequence[Any]] = (),
) -> bytes:
    """RM workbook: VENTAS sheet, optional STOCK sheet, optional title rows."""
    sheets: dict[str, list[Sequence[Any]]] = {
        "VENTAS": [*preamble, RM_SALES_HEADER, *sales_rows],
    }
    if stock_rows is not None:
        sheets["STOCK"] = [RM_STOCK_HEADER, *stock_rows]
    return build_workbook(sheets)


def deprati_workbook(rows: Sequence[Sequence[Any]]) -> bytes:
    """De Prati wide workbook with two stores (T01, T02).

    Columns: Marca, Descripcion, Codigo de Barras, Dia Natural, then a
    (units, value) pair per store.
    """
    store_codes = [None, None, None, None, "Tienda T01", None, "Tienda T02", None]
    store_names = [None, None, None, None, "Quicentro", None, "Mall del Sol", None]
    header = [
        "Marca",
        "Descripcion",
        "Codigo de Barras",
        "Dia Natural",
        "Unidades",
        "Valor",
        "Unidades",
        "Valor",
    ]
    return build_workbook(
        {"Reporte": [["Reporte de ventas"], store_codes, store_names, header, *rows]}
    )


class FakeCatalogResolver:
    """In-memory catalog resolver that records the code sets it was asked for."""

    def __init__(
        self,
        entries: dict[str, CatalogEntry] | None = None,
        product_ids: dict[str, int] | None = None,
    ) -> None:
        self.entries = entries if entries is not None else {
            "CB1": CatalogEntry("MAT-001", "CB1", "CREMA FACIAL 50ML", "NIVEA"),
            "CB2": CatalogEntry("MAT-002", "CB2", "SHAMPOO 400ML", "SEDAL"),
        }
        self.product_ids = product_ids if product_ids is not None else {"CB1": 1, "CB2": 2}
        self.calls: list[set[str]] = []

    async def resolve_entries(self, db: Any, codes: set[str]) -> dict[str, CatalogEntry]:
        self.calls.append(set(codes))
        return {code: self.entries[code] for code in codes if code in self.entries}

    async def resolve_product_ids(self, db: Any, codes: set[str]) -> dict[str, int]:
        return {code: self.product_ids[code] for code in codes if code in self.product_ids}


@pytest.fixture
def fake_resolver() -> FakeCatalogResolver:
    """Catalog resolver knowing CB1 and CB2."""
    return FakeCatalogResolver()


@pytest.fixture
def make_resolver():
    """Factory for resolvers with custom catalog contents."""
    return FakeCatalogResolver


@pytest.fixture
def workbook_bytes():
    """Builder serializing {sheet title: rows} into .xlsx bytes."""
    return build_workbook


@pytest.fixture
def rm_file():
    """Builder for RM workbooks."""
    return rm_workbook


@pytest.fixture
def deprati_file():
    """Builder for De Prati wide workbooks."""
    return deprati_workbook
