"""create_sell_out_ledger_tables

Revision ID: 3c1a9e7d2b40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c1a9e7d2b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Apply migration - create reference tables and the sales ledger."""
    op.create_table(
        "client",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=30), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_client_code"), "client", ["code"], unique=True)

    op.create_table(
        "product",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("barcode", sa.String(length=50), nullable=False),
        sa.Column("item_code", sa.String(length=50), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_product_barcode"), "product", ["barcode"], unique=True)

    # Replicated from the ERP; the pipeline only reads it
    op.create_table(
        "catalog_cache",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("catalog_code", sa.String(length=50), nullable=False),
        sa.Column("barcode", sa.String(length=50), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("brand", sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_catalog_cache_barcode"), "catalog_cache", ["barcode"], unique=False)

    op.create_table(
        "sales_record",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        # Composite key
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("day", sa.Integer(), nullable=False),
        sa.Column("barcode", sa.String(length=50), nullable=False),
        sa.Column("store_code", sa.String(length=100), nullable=False),
        # Catalog data
        sa.Column("brand", sa.String(length=100), nullable=True),
        sa.Column("product_name", sa.String(length=255), nullable=True),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("catalog_code", sa.String(length=50), nullable=True),
        sa.Column("product_id", sa.Integer(), nullable=True),
        # Store data
        sa.Column("store_name", sa.String(length=150), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        # Measures
        sa.Column("sales_units", sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column("sales_value", sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column("stock_units", sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column("stock_value", sa.Numeric(precision=18, scale=4), nullable=False),
        *_timestamps(),
        # Constraints
        sa.ForeignKeyConstraint(["client_id"], ["client.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["product.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "client_id",
            "year",
            "month",
            "day",
            "barcode",
            "store_code",
            name="uq_sales_record_grain",
        ),
        sa.CheckConstraint("month >= 1 AND month <= 12", name="ck_sales_record_month"),
        sa.CheckConstraint("day >= 1 AND day <= 31", name="ck_sales_record_day"),
    )
    op.create_index(op.f("ix_sales_record_client_id"), "sales_record", ["client_id"], unique=False)
    op.create_index(
        op.f("ix_sales_record_product_id"), "sales_record", ["product_id"], unique=False
    )
    op.create_index(
        "ix_sales_record_client_barcode", "sales_record", ["client_id", "barcode"], unique=False
    )
    op.create_index(
        "ix_sales_record_client_period",
        "sales_record",
        ["client_id", "year", "month"],
        unique=False,
    )


def downgrade() -> None:
    """Revert migration - drop the ledger and reference tables."""
    op.drop_index("ix_sales_record_client_period", table_name="sales_record")
    op.drop_index("ix_sales_record_client_barcode", table_name="sales_record")
    op.drop_index(op.f("ix_sales_record_product_id"), table_name="sales_record")
    op.drop_index(op.f("ix_sales_record_client_id"), table_name="sales_record")
    op.drop_table("sales_record")

    op.drop_index(op.f("ix_catalog_cache_barcode"), table_name="catalog_cache")
    op.drop_table("catalog_cache")

    op.drop_index(op.f("ix_product_barcode"), table_name="product")
    op.drop_table("product")

    op.drop_index(op.f("ix_client_code"), table_name="client")
    op.drop_table("client")
