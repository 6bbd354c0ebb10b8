"""Tolerant conversion of raw spreadsheet cells into typed values.

Cells arrive as openpyxl produces them in data-only mode: ``str``, ``int``,
``float``, ``bool``, ``datetime``/``date``/``time`` or ``None``. Date-formatted
numeric cells are already converted to ``datetime`` by openpyxl; bare serial
numbers in a date column are converted here from the spreadsheet epoch.

Coercion never raises. A value that cannot be read degrades to the kind's
default and the result is flagged as ``defaulted`` so callers can tell a
real zero from a zero that stands in for unreadable content.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, NamedTuple

from openpyxl.utils.datetime import from_excel

from app.core.logging import get_logger

logger = get_logger(__name__)


class CellKind(str, Enum):
    """Scalar kinds a cell can be coerced into."""

    INTEGER = "integer"
    DECIMAL = "decimal"
    TEXT = "text"
    DATE = "date"


class CoercedValue(NamedTuple):
    """Coercion outcome.

    Attributes:
        value: Typed value, or the kind's default.
        defaulted: True when the value did not come from cell content.
    """

    value: Any
    defaulted: bool


# Day-first European variants first, then ISO, then month-first.
DATE_PATTERNS: tuple[str, ...] = (
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d-%b-%Y",
)

# Largest serial openpyxl can map (9999-12-31)
_MAX_EXCEL_SERIAL = 2958465

_NUMBER_NOISE = re.compile(r"[^\d.,\-]")

# "1.234.567" or "1,234,567": one separator repeated between 3-digit groups
_GROUPED_INTEGER = re.compile(r"^-?\d{1,3}([.,])\d{3}(?:\1\d{3})+$")

# Time part after a space or a "T" followed by a digit
_TIME_PART = re.compile(r"[ T](?=\d)")

_DEFAULTS: dict[CellKind, Any] = {
    CellKind.INTEGER: 0,
    CellKind.DECIMAL: Decimal("0"),
    CellKind.TEXT: None,
    CellKind.DATE: None,
}


def coerce(value: Any, kind: CellKind) -> CoercedValue:
    """Convert a raw cell value into ``kind``.

    Args:
        value: Raw cell value.
        kind: Requested scalar kind.

    Returns:
        CoercedValue with the typed value and the defaulted flag.
    """
    default = _DEFAULTS[kind]
    if value is None or (isinstance(value, str) and not value.strip()):
        return CoercedValue(default, True)

    try:
        if kind is CellKind.DECIMAL:
            result: Any = parse_decimal(value)
        elif kind is CellKind.INTEGER:
            number = parse_decimal(value)
            result = int(number) if number is not None else None
        elif kind is CellKind.DATE:
            result = parse_date(value)
        else:
            result = cell_text(value)
    except (ArithmeticError, ValueError, TypeError, OverflowError) as e:
        logger.debug(
            "ingest.cell_coercion_failed",
            kind=kind.value,
            raw=repr(value),
            error=str(e),
        )
        result = None

    if result is None:
        logger.debug("ingest.cell_coercion_defaulted", kind=kind.value, raw=repr(value))
        return CoercedValue(default, True)
    return CoercedValue(result, False)


def parse_decimal(value: Any) -> Decimal | None:
    """Parse a numeric cell, accepting locale-formatted text.

    ``"1.234,56"``, ``"1,234.56"`` and ``"$ 1234,56"`` all parse to
    ``Decimal("1234.56")``: the right-most of ``.``/``,`` is the decimal
    separator when both occur, a lone ``,`` is a decimal separator. A single
    separator repeated between 3-digit groups (``"1.234.567"``) is a
    thousands separator.

    Args:
        value: Raw cell value.

    Returns:
        Parsed decimal, or None if the value is not numeric.
    """
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, int | float):
        if isinstance(value, float) and value != value:  # NaN
            return None
        return Decimal(str(value))
    if isinstance(value, Decimal):
        return value
    if not isinstance(value, str):
        return None

    text = _NUMBER_NOISE.sub("", value.strip())
    if text in ("", "-", ".", ","):
        return None

    grouped = _GROUPED_INTEGER.match(text)
    if grouped:
        text = text.replace(grouped.group(1), "")
    elif "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".")

    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def parse_date(value: Any) -> date | None:
    """Parse a date cell.

    Args:
        value: Raw cell value (datetime, date, serial number or text).

    Returns:
        Parsed date, or None if unparseable.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool) or isinstance(value, time):
        return None
    if isinstance(value, int | float):
        if not 0 < value <= _MAX_EXCEL_SERIAL:
            return None
        converted = from_excel(value)
        return converted.date() if isinstance(converted, datetime) else None
    if not isinstance(value, str):
        return None

    text = value.strip()
    # Drop any time part: "2024-01-10 00:00:00", "2024-01-10T08:30"
    text = _TIME_PART.split(text, maxsplit=1)[0]

    for pattern in DATE_PATTERNS:
        try:
            return datetime.strptime(text, pattern).date()
        except ValueError:
            continue
    return None


def cell_text(value: Any) -> str | None:
    """Render a cell as trimmed text.

    Integral numbers render without a fractional part so barcodes stored as
    numbers come back as ``"7861234567890"`` rather than ``"7.86123456789e12"``.

    Args:
        value: Raw cell value.

    Returns:
        Trimmed text, or None for blank cells.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value != value:
            return None
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, Decimal):
        return str(int(value)) if value == value.to_integral_value() else str(value)
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip() or None
