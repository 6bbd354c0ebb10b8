"""Pydantic schemas for the sales ledger maintenance endpoints."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Record Schemas
# =============================================================================


class SalesRecordResponse(BaseModel):
    """One ledger row.

    The composite key (client, year, month, day, barcode, store_code) is
    unique within a client.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Ledger record ID, used by get/update/delete.")
    client_id: int = Field(..., description="Owning client ID.")
    year: int = Field(..., description="Calendar year of the sale or stock cut-off.")
    month: int = Field(..., ge=1, le=12, description="Month number (1-12).")
    day: int = Field(..., ge=1, le=31, description="Day of month (1-31).")
    barcode: str = Field(..., description="Product barcode as reported by the partner.")
    store_code: str = Field(
        ...,
        description="Store code. 'SIN_TIENDA' stands for rows reported without a store.",
    )
    brand: str | None = Field(None, description="Brand from the catalog cache.")
    product_name: str | None = Field(None, description="Product name.")
    description: str | None = Field(None, description="Catalog description.")
    catalog_code: str | None = Field(None, description="ERP material code.")
    product_id: int | None = Field(None, description="Canonical product ID.")
    store_name: str | None = Field(None, description="Store display name.")
    city: str | None = Field(None, description="Store city.")
    sales_units: Decimal = Field(..., description="Units sold.")
    sales_value: Decimal = Field(..., description="Currency value sold.")
    stock_units: Decimal = Field(..., description="Units in stock.")
    stock_value: Decimal = Field(..., description="Currency value in stock.")
    created_at: datetime = Field(..., description="When the record was first ingested.")
    updated_at: datetime = Field(..., description="When the record was last changed.")


class SalesRecordUpdate(BaseModel):
    """Partial update of a ledger row; omitted fields are left unchanged.

    Changing a key field moves the record to another (day, barcode, store)
    and fails with 409 if that key is already taken.
    """

    model_config = ConfigDict(extra="forbid")

    year: int | None = Field(None, ge=1900, le=9999)
    month: int | None = Field(None, ge=1, le=12)
    day: int | None = Field(None, ge=1, le=31)
    barcode: str | None = Field(None, min_length=1, max_length=50)
    store_code: str | None = Field(None, max_length=100)
    brand: str | None = Field(None, max_length=100)
    product_name: str | None = Field(None, max_length=255)
    description: str | None = Field(None, max_length=255)
    store_name: str | None = Field(None, max_length=150)
    city: str | None = Field(None, max_length=100)
    sales_units: Decimal | None = Field(None, ge=0)
    sales_value: Decimal | None = Field(None, ge=0)
    stock_units: Decimal | None = Field(None, ge=0)
    stock_value: Decimal | None = Field(None, ge=0)


# =============================================================================
# Bulk Delete Schemas
# =============================================================================


class BulkDeleteRequest(BaseModel):
    """Ids to delete; ids owned by other clients are skipped."""

    ids: list[int] = Field(..., min_length=1, description="Ledger record IDs")


class BulkDeleteResponse(BaseModel):
    """Outcome of a bulk delete."""

    model_config = ConfigDict(populate_by_name=True)

    ok: bool = Field(..., description="The delete was applied")
    requested: int = Field(..., ge=0, alias="solicitados", description="Distinct ids requested")
    deleted: int = Field(..., ge=0, alias="eliminados", description="Records actually deleted")
    omitted: int = Field(
        ..., ge=0, alias="omitidos", description="Ids not found or owned by another client"
    )
    message: str = Field(..., alias="mensaje", description="Human-readable outcome")
