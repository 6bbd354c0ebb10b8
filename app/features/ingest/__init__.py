"""Ingest feature: sell-out spreadsheet ingestion into the sales ledger."""

from app.features.ingest.layouts import LAYOUTS, PartnerLayout, get_layout
from app.features.ingest.routes import router
from app.features.ingest.schemas import IncidenceResponse, IngestionSummary
from app.features.ingest.service import ingest_sell_out_file

__all__ = [
    "LAYOUTS",
    "IncidenceResponse",
    "IngestionSummary",
    "PartnerLayout",
    "get_layout",
    "ingest_sell_out_file",
    "router",
]
