"""
Cell Coercion

Spreadsheet cells arrive as plain scalars, formula wrappers carrying a
computed result and a display text, or rich text split in runs.

DESIGN DECISION: One function, `coerce_cell`, resolves every shape into a
typed scalar (text, number, date). Callers never inspect cell types
themselves. Coercion fails soft: anything unparsable becomes None, it never
raises.

Currency text follows the Brazilian convention ('.' thousands, ',' decimal)
unless the last separator says otherwise:
    "R$ 1.234,56" -> Decimal("1234.56")
    "1234.56"     -> Decimal("1234.56")
    "1.234"       -> Decimal("1234")
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from openpyxl.cell.rich_text import CellRichText
from openpyxl.utils.datetime import from_excel
from pydantic import BaseModel, ConfigDict


class ComputedResult(BaseModel):
    """A formula cell: the computed value plus its display text."""
    model_config = ConfigDict(frozen=True)

    result: Any = None
    text: Optional[str] = None


class RichText(BaseModel):
    """A formatted text cell, stored as its text runs."""
    model_config = ConfigDict(frozen=True)

    runs: tuple[str, ...] = ()

    @property
    def text(self) -> str:
        return "".join(self.runs)


Scalar = Union[str, int, float, Decimal, date, datetime, bool, None]
CellValue = Union[ComputedResult, RichText, Scalar]

# Excel serial day numbers between 1970-01-01 and 9999-12-31
EXCEL_SERIAL_MIN = 25569
EXCEL_SERIAL_MAX = 2958465

_DMY_DATE = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4})$")
_ISO_DATE = re.compile(
    r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ]\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+\-]\d{2}:?\d{2})?)?$"
)
_CURRENCY = re.compile(r"^\(?[+\-]?\s*(?:R\$)?\s*[+\-]?\s*\d[\d.,\s]*\)?$", re.IGNORECASE)


def from_openpyxl(value: Any) -> CellValue:
    """Wrap an openpyxl cell value into the cell union."""
    if isinstance(value, CellRichText):
        return RichText(runs=tuple(getattr(part, "text", str(part)) for part in value))
    return value


def unwrap_cell(raw: CellValue) -> Scalar:
    """Computed result first, then display text, then the value itself."""
    if isinstance(raw, ComputedResult):
        if raw.result is not None and raw.result != "":
            return raw.result
        return raw.text
    if isinstance(raw, RichText):
        return raw.text
    return raw


def parse_decimal_text(text: str) -> Optional[Decimal]:
    """
    Parse a currency-looking string into a Decimal.

    The last separator present is the decimal marker, except that a lone
    '.' followed by exactly three digits is a thousands separator and a
    lone ',' is always the decimal marker.
    """
    text = text.strip()
    negative = "-" in text or (text.startswith("(") and text.endswith(")"))
    cleaned = re.sub(r"[^\d.,]", "", text)
    if not any(ch.isdigit() for ch in cleaned):
        return None

    last_comma = cleaned.rfind(",")
    last_dot = cleaned.rfind(".")
    if last_comma >= 0 and last_dot >= 0:
        thousands, decimal_mark = (".", ",") if last_comma > last_dot else (",", ".")
    elif last_comma >= 0:
        thousands, decimal_mark = (",", None) if cleaned.count(",") > 1 else (None, ",")
    elif last_dot >= 0:
        if cleaned.count(".") > 1 or len(cleaned) - last_dot - 1 == 3:
            thousands, decimal_mark = ".", None
        else:
            thousands, decimal_mark = None, "."
    else:
        thousands, decimal_mark = None, None

    if thousands:
        cleaned = cleaned.replace(thousands, "")
    if decimal_mark:
        cleaned = cleaned.replace(decimal_mark, ".")

    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    return -value if negative else value


def parse_date_text(text: str) -> Optional[date]:
    """Parse dd/mm/yyyy (also with '-' or '.') or ISO yyyy-mm-dd[Thh:mm...]."""
    text = text.strip()
    match = _DMY_DATE.match(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
    else:
        match = _ISO_DATE.match(text)
        if not match:
            return None
        year, month, day = (int(g) for g in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _looks_like_date(text: str) -> bool:
    return bool(_DMY_DATE.match(text) or _ISO_DATE.match(text))


def coerce_cell(raw: CellValue) -> Union[str, int, float, Decimal, date, bool, None]:
    """
    Resolve a raw cell into a typed scalar.

    Already-typed scalars come back unchanged (datetimes are reduced to
    their calendar date). Date strings become dates, currency strings
    become Decimals, other text is returned stripped. Blank or unparsable
    cells give None.
    """
    value = unwrap_cell(raw)
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, (date, bool, int, float, Decimal)):
        return value

    text = str(value).strip()
    if not text:
        return None
    if _looks_like_date(text):
        return parse_date_text(text)
    if _CURRENCY.match(text):
        return parse_decimal_text(text)
    return text


def coerce_date(raw: CellValue) -> Optional[date]:
    """Coerce to a calendar date, accepting Excel serial day numbers."""
    value = coerce_cell(raw)
    if isinstance(value, date):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return None
    if not EXCEL_SERIAL_MIN <= value <= EXCEL_SERIAL_MAX:
        return None
    try:
        converted = from_excel(float(value))
    except (ValueError, OverflowError):
        return None
    return converted.date() if isinstance(converted, datetime) else None


def coerce_amount(raw: CellValue) -> Optional[Decimal]:
    """Coerce to a signed Decimal amount."""
    value = coerce_cell(raw)
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        value = Decimal(str(value))
    elif isinstance(value, int):
        value = Decimal(value)
    if not isinstance(value, Decimal) or not value.is_finite():
        return None
    return value


def coerce_text(raw: CellValue) -> Optional[str]:
    """Coerce to stripped text; dates render as ISO strings."""
    value = unwrap_cell(raw)
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    return text or None
