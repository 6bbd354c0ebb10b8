"""Tests for header discovery and column mapping."""

from datetime import datetime

import pytest

from app.features.ingest.headers import build_column_map, find_header_row, normalize_header


class TestNormalizeHeader:
    """Tests for normalize_header()."""

    @pytest.mark.parametrize(
        "raw",
        ["Fecha Venta", "FECHA_VENTA", "fecha-venta ", "  Fecha   Venta", "Fécha.Venta"],
    )
    def test_variants_normalize_alike(self, raw):
        assert normalize_header(raw) == "fecha_venta"

    def test_none_and_blank(self):
        assert normalize_header(None) == ""
        assert normalize_header("   ") == ""

    def test_accents_removed(self):
        assert normalize_header("Código de Barras") == "codigo_de_barras"
        assert normalize_header("Año") == "ano"


class TestFindHeaderRow:
    """Tests for find_header_row()."""

    def test_header_on_first_row(self):
        rows = [("Fecha Venta", "Nombre Tienda", "REF_Proveedor")]
        assert find_header_row(rows, ["fecha_venta", "nombre_tienda", "ref_proveedor"]) == 0

    def test_header_after_title_rows(self):
        rows = [
            ("Reporte de ventas RM",),
            (),
            (None, None),
            ("FECHA VENTA", "nombre tienda", "Ref Proveedor", "Ciudad"),
        ]
        assert find_header_row(rows, ["fecha_venta", "nombre_tienda", "ref_proveedor"]) == 3

    def test_missing_required_name(self):
        rows = [("Fecha Venta", "Nombre Tienda")]
        assert find_header_row(rows, ["fecha_venta", "ref_proveedor"]) is None

    def test_scan_depth_limit(self):
        rows = [("x",)] * 5 + [("Fecha Venta", "REF_Proveedor")]
        assert find_header_row(rows, ["fecha_venta", "ref_proveedor"], max_scan_rows=5) is None
        assert find_header_row(rows, ["fecha_venta", "ref_proveedor"], max_scan_rows=6) == 5

    def test_column_limit(self):
        rows = [("Fecha Venta", None, None, "REF_Proveedor")]
        assert find_header_row(rows, ["fecha_venta", "ref_proveedor"], max_columns=3) is None

    def test_non_text_cells_never_match(self):
        rows = [(datetime(2024, 1, 10), 45301, "ref_proveedor")]
        assert find_header_row(rows, ["ref_proveedor", "fecha_venta"]) is None

    def test_alternative_group(self):
        rows = [("Cod Barra", "Dia Natural")]
        required = [("codigo_de_barras", "cod_barra"), ("dia_natural", "fecha")]
        assert find_header_row(rows, required) == 0


class TestBuildColumnMap:
    """Tests for build_column_map()."""

    def test_maps_fields_to_columns(self):
        header = ("Fecha Venta", "Nombre Tienda", "Ciudad", "REF_Proveedor")
        aliases = {"date": ["fecha_venta"], "store": ["nombre_tienda"], "code": ["ref_proveedor"]}
        assert build_column_map(header, aliases) == {"date": 0, "store": 1, "code": 3}

    def test_first_alias_wins(self):
        header = ("Tienda", "Nombre Tienda")
        assert build_column_map(header, {"store": ["nombre_tienda", "tienda"]}) == {"store": 1}

    def test_falls_back_to_later_alias(self):
        header = ("Tienda",)
        assert build_column_map(header, {"store": ["nombre_tienda", "tienda"]}) == {"store": 0}

    def test_duplicate_header_maps_leftmost(self):
        header = ("Unidades", "Valor", "Unidades", "Valor")
        assert build_column_map(header, {"units": ["unidades"]}) == {"units": 0}

    def test_unmapped_field_is_absent(self):
        header = ("Fecha Venta",)
        assert build_column_map(header, {"date": ["fecha_venta"], "city": ["ciudad"]}) == {
            "date": 0
        }

    def test_aliases_are_normalized(self):
        header = ("REF PROVEEDOR",)
        assert build_column_map(header, {"code": ["Ref-Proveedor"]}) == {"code": 0}
