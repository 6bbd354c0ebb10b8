"""Data platform ORM models for the sell-out ledger.

Reference tables (read-only for the ingestion pipeline):
- Client: client registry resolved by business code
- Product: internal product-identity table keyed by barcode
- CatalogCacheEntry: pricing/description cache keyed by barcode

Ledger:
- SalesRecord: one row per (client, year, month, day, barcode, store_code)
"""

from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.shared.models import TimestampMixin

# Placeholder store code for rows that carry no store; keeps blank stores
# from colliding with real ones in the composite key.
NO_STORE_CODE = "SIN_TIENDA"

MEASURE_PRECISION = Numeric(18, 4)


def normalize_store_code(store_code: str | None) -> str:
    """Map null/blank store codes to the sentinel and trim the rest."""
    if store_code is None:
        return NO_STORE_CODE
    trimmed = store_code.strip()
    return trimmed or NO_STORE_CODE


# ============================================================================
# REFERENCE TABLES
# ============================================================================


class Client(TimestampMixin, Base):
    """Client registry.

    Attributes:
        id: Primary key.
        code: Business code (e.g., "MZCL-000008").
        name: Display name.
    """

    __tablename__ = "client"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(30), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200))

    sales_records: Mapped[list["SalesRecord"]] = relationship(back_populates="client")


class Product(TimestampMixin, Base):
    """Internal product-identity table.

    Attributes:
        id: Primary key, the canonical product identity.
        barcode: External barcode as reported by retail partners.
        item_code: Internal item code.
        name: Product display name.
    """

    __tablename__ = "product"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    barcode: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    item_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    sales_records: Mapped[list["SalesRecord"]] = relationship(back_populates="product")


class CatalogCacheEntry(TimestampMixin, Base):
    """Pricing/description cache replicated from the ERP catalog.

    Attributes:
        id: Primary key.
        catalog_code: ERP material code.
        barcode: External barcode.
        description: Catalog description.
        brand: Catalog brand.
    """

    __tablename__ = "catalog_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    catalog_code: Mapped[str] = mapped_column(String(50))
    barcode: Mapped[str] = mapped_column(String(50), index=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    brand: Mapped[str | None] = mapped_column(String(100), nullable=True)


# ============================================================================
# LEDGER
# ============================================================================


class SalesRecord(TimestampMixin, Base):
    """Per-client, per-day, per-store, per-product sales and stock figures.

    Grain is (client_id, year, month, day, barcode, store_code), enforced by
    a unique constraint. Sales ingestion touches only the sales measures and
    stock ingestion only the stock measures of an existing row.

    Attributes:
        id: Surrogate primary key.
        client_id: Owning client (FK).
        year: Calendar year.
        month: Month number (1-12).
        day: Day of month (1-31).
        barcode: Product barcode.
        store_code: Normalized store code (never blank).
        brand: Brand from the catalog cache.
        product_name: Product name from the catalog cache.
        description: Catalog description.
        catalog_code: ERP material code from the catalog cache.
        product_id: Canonical product identity (FK).
        store_name: Store display name.
        city: Store city.
        sales_units: Units sold.
        sales_value: Currency value sold.
        stock_units: Units in stock.
        stock_value: Currency value in stock.
    """

    __tablename__ = "sales_record"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(Integer, ForeignKey("client.id"), index=True)
    year: Mapped[int] = mapped_column(Integer)
    month: Mapped[int] = mapped_column(Integer)
    day: Mapped[int] = mapped_column(Integer)
    barcode: Mapped[str] = mapped_column(String(50))
    store_code: Mapped[str] = mapped_column(String(100), default=NO_STORE_CODE)
    brand: Mapped[str | None] = mapped_column(String(100), nullable=True)
    product_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    catalog_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    product_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("product.id"), nullable=True, index=True
    )
    store_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sales_units: Mapped[Decimal] = mapped_column(MEASURE_PRECISION, default=Decimal("0"))
    sales_value: Mapped[Decimal] = mapped_column(MEASURE_PRECISION, default=Decimal("0"))
    stock_units: Mapped[Decimal] = mapped_column(MEASURE_PRECISION, default=Decimal("0"))
    stock_value: Mapped[Decimal] = mapped_column(MEASURE_PRECISION, default=Decimal("0"))

    client: Mapped["Client"] = relationship(back_populates="sales_records")
    product: Mapped["Product | None"] = relationship(back_populates="sales_records")

    __table_args__ = (
        UniqueConstraint(
            "client_id",
            "year",
            "month",
            "day",
            "barcode",
            "store_code",
            name="uq_sales_record_grain",
        ),
        # Key lookups during reconciliation filter by client + barcode
        Index("ix_sales_record_client_barcode", "client_id", "barcode"),
        # Listing filters by client + period
        Index("ix_sales_record_client_period", "client_id", "year", "month"),
        CheckConstraint("month >= 1 AND month <= 12", name="ck_sales_record_month"),
        CheckConstraint("day >= 1 AND day <= 31", name="ck_sales_record_day"),
    )
