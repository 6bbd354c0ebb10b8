"""Tests for the incidence log, run summary and text report."""

from datetime import datetime

from app.features.ingest.incidents import (
    GENERAL,
    INVALID_DATE,
    MISSING_CODE,
    IncidenceLog,
    RunCounters,
    render_text_report,
    report_filename,
)


def _summary(log: IncidenceLog, **counts):
    return log.summarize(
        file_name="ventas.xlsx",
        client_code="MZCL-000008",
        layout="rm",
        counters=RunCounters(**counts),
        elapsed_seconds=1.23456,
    )


class TestIncidenceLog:
    """Tests for IncidenceLog."""

    def test_records_in_order(self):
        log = IncidenceLog()
        log.add(INVALID_DATE, "Fecha vacía o inválida (código CB1).", 4, "VENTAS")
        log.add("CB9", "No existe en la tabla de productos (barcode).", 7, "VENTAS")

        assert len(log) == 2
        assert [incidence.code for incidence in log] == [INVALID_DATE, "CB9"]
        assert log.incidences[1].row == 7

    def test_defaults_to_sheet_level(self):
        incidence = IncidenceLog().add(GENERAL, "Hoja ilegible.")
        assert incidence.row == -1
        assert incidence.sheet == "GENERAL"

    def test_unmatched_codes_sorted_unique(self):
        log = IncidenceLog()
        for code in ["CB9", "CB3", "CB9", MISSING_CODE]:
            log.mark_unmatched(code)
        assert log.unmatched_codes == ["CB3", "CB9", MISSING_CODE]

    def test_has_general(self):
        log = IncidenceLog()
        log.add(INVALID_DATE, "x", 2, "VENTAS")
        assert log.has_general is False
        log.add(GENERAL, "y")
        assert log.has_general is True


class TestSummarize:
    """Tests for IncidenceLog.summarize()."""

    def test_row_incidences_keep_ok(self):
        log = IncidenceLog()
        log.add(INVALID_DATE, "x", 2, "VENTAS")
        summary = _summary(log, sales_rows_read=3, sales_rows_processed=2, records_inserted=2)

        assert summary.ok is True
        assert summary.sales_rows_read == 3
        assert summary.sales_rows_processed == 2
        assert summary.records_inserted == 2
        assert summary.elapsed_seconds == 1.235
        assert summary.incidences[0].sheet == "VENTAS"

    def test_general_incidence_clears_ok(self):
        log = IncidenceLog()
        log.add(GENERAL, "No se encontró encabezado de VENTAS.", -1, "VENTAS")
        assert _summary(log).ok is False

    def test_wire_names(self):
        log = IncidenceLog()
        log.add("CB9", "No existe", 5, "STOCK")
        log.mark_unmatched("CB9")

        data = _summary(log, stock_rows_read=1).model_dump(by_alias=True)

        assert data["archivo"] == "ventas.xlsx"
        assert data["codCliente"] == "MZCL-000008"
        assert data["filasLeidasStock"] == 1
        assert data["codigosNoEncontrados"] == ["CB9"]
        assert data["incidencias"] == [
            {"codigo": "CB9", "motivo": "No existe", "fila": 5, "hoja": "STOCK"}
        ]
        assert data["tiempoSegundos"] == 1.235


class TestTextReport:
    """Tests for the plain-text incidence report."""

    def test_report_layout(self):
        log = IncidenceLog()
        log.add(MISSING_CODE, "Código de producto vacío.", 4, "VENTAS")
        log.mark_unmatched(MISSING_CODE)
        log.mark_unmatched("CB9")
        summary = _summary(
            log, sales_rows_read=3, sales_rows_processed=2, records_inserted=1, records_updated=1
        )

        text = render_text_report(summary, datetime(2024, 2, 1, 9, 30, 5))
        lines = text.splitlines()

        assert lines[0] == "INCIDENCIAS DE CARGA RM"
        assert lines[1] == "Archivo: ventas.xlsx"
        assert lines[2] == "Fecha/Hora: 2024-02-01 09:30:05"
        assert "Ventas - Filas leídas: 3" in lines
        assert "Ventas - Filas procesadas: 2" in lines
        assert "Registros insertados: 1" in lines
        assert "Registros actualizados: 1" in lines

        codes_at = lines.index("CODIGOS_NO_ENCONTRADOS")
        assert lines[codes_at + 1 : codes_at + 3] == ["CB9", MISSING_CODE]

        detail_at = lines.index("DETALLE_INCIDENCIAS")
        assert lines[detail_at + 1] == "HOJA\tFILA\tCODIGO\tMOTIVO"
        assert lines[detail_at + 2] == "VENTAS\t4\tCODBARRA_VACIO\tCódigo de producto vacío."
        assert text.endswith("\n")

    def test_empty_report(self):
        summary = _summary(IncidenceLog())
        text = render_text_report(summary, datetime(2024, 2, 1), title="DEPRATI")

        assert text.startswith("INCIDENCIAS DE CARGA DEPRATI\n")
        assert "Sin códigos no encontrados." in text
        assert "Sin incidencias." in text

    def test_report_filename(self):
        name = report_filename("RM", datetime(2024, 2, 1, 9, 30, 5))
        assert name == "incidencias_RM_20240201_093005.txt"
