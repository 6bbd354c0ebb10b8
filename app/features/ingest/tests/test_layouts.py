"""Tests for the partner layout registry."""

import pytest

from app.core.exceptions import BadRequestError
from app.features.ingest.coercion import CellKind
from app.features.ingest.layouts import (
    DEPRATI_LAYOUT,
    LAYOUTS,
    RM_LAYOUT,
    SheetKind,
    get_layout,
)


class TestRegistry:
    """Tests for layout lookup."""

    def test_registered_layouts(self):
        assert set(LAYOUTS) == {"rm", "deprati"}

    @pytest.mark.parametrize("code", ["rm", "RM", " Rm "])
    def test_lookup_is_case_insensitive(self, code):
        assert get_layout(code) is RM_LAYOUT

    @pytest.mark.parametrize("code", ["walmart", "", None])
    def test_unknown_layout_rejected(self, code):
        with pytest.raises(BadRequestError) as exc_info:
            get_layout(code)
        assert exc_info.value.details["available"] == ["deprati", "rm"]


class TestRmLayout:
    """Tests for the RM layout definition."""

    def test_default_client(self):
        assert RM_LAYOUT.default_client_code == "MZCL-000008"

    def test_sales_then_stock(self):
        assert [sheet.kind for sheet in RM_LAYOUT.sheets] == [SheetKind.VENTAS, SheetKind.STOCK]

    def test_sales_sheet_falls_back_to_first(self):
        sales = RM_LAYOUT.sheets[0]
        assert sales.fallback_to_first is True
        assert sales.optional is False

    def test_stock_sheet_is_optional(self):
        stock = RM_LAYOUT.sheets[1]
        assert stock.optional is True
        assert stock.fallback_to_first is False

    def test_field_kinds(self):
        kinds = RM_LAYOUT.sheets[0].kinds
        assert kinds["date"] is CellKind.DATE
        assert kinds["code"] is CellKind.TEXT
        assert kinds["units"] is CellKind.DECIMAL

    def test_store_aliases_prefer_store_name(self):
        assert RM_LAYOUT.sheets[0].aliases["store"] == ("nombre_tienda", "tienda")
        assert RM_LAYOUT.sheets[1].aliases["store"] == ("tienda", "nombre_tienda")

    def test_describe_required(self):
        assert RM_LAYOUT.sheets[0].describe_required() == (
            "fecha_venta, nombre_tienda, ref_proveedor"
        )


class TestDepratiLayout:
    """Tests for the De Prati wide layout definition."""

    def test_default_client(self):
        assert DEPRATI_LAYOUT.default_client_code == "MZCL-000009"

    def test_single_wide_sales_sheet(self):
        (sheet,) = DEPRATI_LAYOUT.sheets
        assert sheet.kind is SheetKind.VENTAS
        assert sheet.store_band is not None
        assert sheet.store_band.marker == "tienda"

    def test_describe_required_lists_alternatives(self):
        (sheet,) = DEPRATI_LAYOUT.sheets
        described = sheet.describe_required()
        assert "codigo_de_barras/cod_barra/no_mat_proveedor" in described
        assert "dia_natural/fecha/fecha_venta/date" in described
