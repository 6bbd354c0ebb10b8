"""Header row discovery and alias-driven column mapping.

Partner files put their header row anywhere in the first few rows, with
inconsistent casing, accents and punctuation. Header texts are normalized
before comparison so ``"FECHA_VENTA"``, ``"Fecha Venta"`` and
``"fecha-venta "`` all match the logical field ``fecha_venta``.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

_SEPARATOR_RUN = re.compile(r"[^a-z0-9]+")

# A required header is one name, or a group of interchangeable names.
RequiredHeader = str | Sequence[str]


def normalize_header(text: str | None) -> str:
    """Normalize a header cell text for comparison.

    Lowercases, strips diacritics, collapses runs of non-alphanumeric
    characters into ``_`` and trims leading/trailing ``_``.

    Args:
        text: Raw header text.

    Returns:
        Normalized header, empty string for None/blank.
    """
    if text is None:
        return ""
    decomposed = unicodedata.normalize("NFD", text.strip().lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _SEPARATOR_RUN.sub("_", stripped).strip("_")


def normalized_row(cells: Sequence[Any], max_columns: int) -> list[str]:
    """Normalize the text cells of a row; non-text cells become ``""``."""
    return [
        normalize_header(cell) if isinstance(cell, str) else ""
        for cell in cells[:max_columns]
    ]


def _satisfied(required: RequiredHeader, present: set[str]) -> bool:
    if isinstance(required, str):
        return required in present
    return any(name in present for name in required)


def find_header_row(
    rows: Sequence[Sequence[Any]],
    required_names: Iterable[RequiredHeader],
    max_scan_rows: int = 30,
    max_columns: int = 120,
) -> int | None:
    """Locate the header row of a sheet.

    Only text cells take part in matching; numeric and date cells never
    satisfy a required name.

    Args:
        rows: Leading rows of the sheet as cell value tuples.
        required_names: Normalized names that must all appear in the row.
            An entry may be a group of alternatives, any one of which counts.
        max_scan_rows: Scan depth.
        max_columns: Number of leading columns inspected per row.

    Returns:
        0-based index of the first qualifying row, or None if not found.
    """
    required = list(required_names)
    for index, cells in enumerate(rows[:max_scan_rows]):
        if not cells:
            continue
        present = {name for name in normalized_row(cells, max_columns) if name}
        if all(_satisfied(name, present) for name in required):
            return index
    return None


def build_column_map(
    header_cells: Sequence[Any],
    aliases: Mapping[str, Sequence[str]],
    max_columns: int = 120,
) -> dict[str, int]:
    """Map logical field names to 0-based column indexes.

    For each field the alias list is consulted in order and the first alias
    present in the header row wins. A header text that occurs more than once
    maps to its left-most column.

    Args:
        header_cells: Cell values of the header row.
        aliases: Field name -> ordered list of normalized aliases.
        max_columns: Number of leading columns inspected.

    Returns:
        Field name -> column index for every field that could be mapped.
    """
    positions: dict[str, int] = {}
    for column, name in enumerate(normalized_row(header_cells, max_columns)):
        if name and name not in positions:
            positions[name] = column

    column_map: dict[str, int] = {}
    for field, candidates in aliases.items():
        for alias in candidates:
            column = positions.get(normalize_header(alias))
            if column is not None:
                column_map[field] = column
                break
    return column_map
