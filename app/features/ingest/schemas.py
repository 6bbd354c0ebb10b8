"""Pydantic schemas for the sell-out ingest API.

Response fields keep the Spanish wire names partner tooling already reads
(``filasLeidasVentas``, ``codigosNoEncontrados``...); attributes are English.
"""

from pydantic import BaseModel, ConfigDict, Field


class IncidenceResponse(BaseModel):
    """One anomaly recorded during a run."""

    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(..., alias="codigo", description="Offending code or incidence type")
    reason: str = Field(..., alias="motivo", description="Human-readable reason")
    row: int = Field(..., alias="fila", description="1-based row number, -1 for sheet-level")
    sheet: str = Field(..., alias="hoja", description="Sheet kind or GENERAL")


class IngestionSummary(BaseModel):
    """Result of one spreadsheet ingestion run.

    ``ok`` is false only when a sheet-level or fatal failure occurred;
    row-level incidences never flip it.
    """

    model_config = ConfigDict(populate_by_name=True)

    ok: bool = Field(..., description="No GENERAL incidence was recorded")
    file_name: str | None = Field(None, alias="archivo", description="Uploaded file name")
    client_code: str = Field(..., alias="codCliente", description="Client business code")
    layout: str = Field(..., description="Partner layout code")
    sales_rows_read: int = Field(0, ge=0, alias="filasLeidasVentas")
    sales_rows_processed: int = Field(0, ge=0, alias="filasProcesadasVentas")
    stock_rows_read: int = Field(0, ge=0, alias="filasLeidasStock")
    stock_rows_processed: int = Field(0, ge=0, alias="filasProcesadasStock")
    records_inserted: int = Field(0, ge=0, alias="registrosInsertados")
    records_updated: int = Field(0, ge=0, alias="registrosActualizados")
    unmatched_codes: list[str] = Field(
        default_factory=list,
        alias="codigosNoEncontrados",
        description="Sorted unique codes that could not be resolved",
    )
    incidences: list[IncidenceResponse] = Field(default_factory=list, alias="incidencias")
    elapsed_seconds: float = Field(0.0, ge=0, alias="tiempoSegundos")
