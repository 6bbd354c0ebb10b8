"""Declarative partner layout registry.

Each retail partner ships sell-out files in its own shape. A layout lists,
per sheet kind, where to find the sheet, which header names identify the
header row and which header aliases feed each logical field. Adding a
partner is a data change here.

Logical field names used by the extractor:

- ``date``: sale or cut-off date
- ``code``: product barcode / supplier reference
- ``store``: store code (long layouts)
- ``units`` / ``value``: measures (long layouts)
- ``city``, ``brand``, ``product_name``: optional descriptive fields
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from app.core.exceptions import BadRequestError
from app.features.ingest.coercion import CellKind
from app.features.ingest.headers import RequiredHeader


class SheetKind(str, Enum):
    """Data kind carried by a sheet; also the sheet label in incidences."""

    VENTAS = "VENTAS"
    STOCK = "STOCK"


@dataclass(frozen=True)
class FieldSpec:
    """One logical field and the header texts it may appear under.

    Attributes:
        name: Logical field name.
        aliases: Accepted header texts in priority order.
        kind: Cell kind the field is coerced into.
    """

    name: str
    aliases: tuple[str, ...]
    kind: CellKind


@dataclass(frozen=True)
class StoreBand:
    """Wide layout where every store owns a (units, value) column pair.

    The store codes sit in a row above the header whose cells contain
    ``marker``; the store display names sit in the row right below it.

    Attributes:
        marker: Case-insensitive substring identifying store code cells.
        value_offset: Column distance from the units to the value column.
    """

    marker: str = "tienda"
    value_offset: int = 1


@dataclass(frozen=True)
class SheetLayout:
    """How to locate and read one sheet kind.

    Attributes:
        kind: Data kind (sales or stock).
        sheet_names: Candidate sheet names, matched case-insensitively.
        required_headers: Normalized names identifying the header row.
        fields: Field specs.
        required_fields: Fields that must be mapped for the sheet to be usable.
        fallback_to_first: Use the first sheet when no name matches.
        optional: Skip silently when the sheet is absent.
        store_band: Store column band for wide layouts.
    """

    kind: SheetKind
    sheet_names: tuple[str, ...]
    required_headers: tuple[RequiredHeader, ...]
    fields: tuple[FieldSpec, ...]
    required_fields: tuple[str, ...]
    fallback_to_first: bool = False
    optional: bool = False
    store_band: StoreBand | None = None

    @property
    def aliases(self) -> dict[str, tuple[str, ...]]:
        """Field name -> ordered aliases."""
        return {spec.name: spec.aliases for spec in self.fields}

    @property
    def kinds(self) -> dict[str, CellKind]:
        """Field name -> cell kind."""
        return {spec.name: spec.kind for spec in self.fields}

    def describe_required(self) -> str:
        """Human-readable list of the header names identifying this sheet."""
        parts = [
            name if isinstance(name, str) else "/".join(name) for name in self.required_headers
        ]
        return ", ".join(parts)


@dataclass(frozen=True)
class PartnerLayout:
    """A retail partner's file layout.

    Attributes:
        code: Layout code used by the upload endpoint.
        label: Label used in report titles and file names.
        default_client_code: Client the data belongs to when none is given.
        sheets: Sheet layouts, processed in order.
    """

    code: str
    label: str
    default_client_code: str
    sheets: tuple[SheetLayout, ...] = field(default_factory=tuple)


# ============================================================================
# PARTNER LAYOUTS
# ============================================================================

RM_LAYOUT = PartnerLayout(
    code="rm",
    label="RM",
    default_client_code="MZCL-000008",
    sheets=(
        SheetLayout(
            kind=SheetKind.VENTAS,
            sheet_names=("VENTAS",),
            required_headers=("fecha_venta", "nombre_tienda", "ref_proveedor"),
            fields=(
                FieldSpec("date", ("fecha_venta",), CellKind.DATE),
                FieldSpec("store", ("nombre_tienda", "tienda"), CellKind.TEXT),
                FieldSpec("code", ("ref_proveedor",), CellKind.TEXT),
                FieldSpec("value", ("ventas_en_usd_sin_iva",), CellKind.DECIMAL),
                FieldSpec("units", ("ventas_en_udd",), CellKind.DECIMAL),
                FieldSpec("city", ("ciudad",), CellKind.TEXT),
            ),
            required_fields=("date", "store", "code"),
            fallback_to_first=True,
        ),
        SheetLayout(
            kind=SheetKind.STOCK,
            sheet_names=("STOCK",),
            required_headers=("fecha_corte", "tienda", "ref_proveedor"),
            fields=(
                FieldSpec("date", ("fecha_corte",), CellKind.DATE),
                FieldSpec("store", ("tienda", "nombre_tienda"), CellKind.TEXT),
                FieldSpec("code", ("ref_proveedor",), CellKind.TEXT),
                FieldSpec("units", ("cantidad_unidades",), CellKind.DECIMAL),
                FieldSpec("value", ("cantidad_dolares",), CellKind.DECIMAL),
                FieldSpec("city", ("ciudad",), CellKind.TEXT),
            ),
            required_fields=("date", "store", "code"),
            optional=True,
        ),
    ),
)

DEPRATI_LAYOUT = PartnerLayout(
    code="deprati",
    label="DEPRATI",
    default_client_code="MZCL-000009",
    sheets=(
        SheetLayout(
            kind=SheetKind.VENTAS,
            sheet_names=(),
            required_headers=(
                ("codigo_de_barras", "cod_barra", "no_mat_proveedor"),
                ("dia_natural", "fecha", "fecha_venta", "date"),
            ),
            fields=(
                FieldSpec("brand", ("marca", "brand", "marcas"), CellKind.TEXT),
                FieldSpec(
                    "product_name",
                    ("nombre_producto", "producto", "descripcion", "descripciones"),
                    CellKind.TEXT,
                ),
                FieldSpec(
                    "code",
                    ("codigo_de_barras", "cod_barra", "no_mat_proveedor"),
                    CellKind.TEXT,
                ),
                FieldSpec("date", ("dia_natural", "fecha", "fecha_venta", "date"), CellKind.DATE),
            ),
            required_fields=("code", "date"),
            fallback_to_first=True,
            store_band=StoreBand(),
        ),
    ),
)

LAYOUTS: dict[str, PartnerLayout] = {
    layout.code: layout for layout in (RM_LAYOUT, DEPRATI_LAYOUT)
}


def get_layout(code: str | None) -> PartnerLayout:
    """Look up a partner layout by code.

    Args:
        code: Layout code, case-insensitive.

    Returns:
        The partner layout.

    Raises:
        BadRequestError: If no layout is registered under ``code``.
    """
    key = (code or "").strip().lower()
    layout = LAYOUTS.get(key)
    if layout is None:
        raise BadRequestError(
            message=f"Unknown layout '{code}'",
            details={"available": sorted(LAYOUTS)},
        )
    return layout
