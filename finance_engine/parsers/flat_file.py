"""
Flat File Parser

Reads a single delimited file (CSV export) into draft transactions.

Header names are matched against a synonym table so that Portuguese and
English exports both work. A row is accepted only when date, type and
description are all present; rejected rows are dropped but still reported
as diagnostics. A missing amount is taken as zero. Flat files are assumed
to be pre-flattened: installments are never parsed or expanded here.
"""

import csv
import io
from typing import Optional, Sequence, Union

import structlog
from pydantic import ValidationError

from finance_engine.exceptions import RowParseError
from finance_engine.models.transaction import (
    DEFAULT_CATEGORY,
    Diagnostic,
    DraftTransaction,
    ImportSummary,
    ParseResult,
)
from finance_engine.parsers.cells import coerce_amount, coerce_date, coerce_text
from finance_engine.parsers.ledger_sheet import parse_direction
from finance_engine.parsers.normalize import normalize_label


logger = structlog.get_logger(__name__)

DEFAULT_DELIMITER = ","

FLAT_FILE_COLUMNS: dict[str, tuple[str, ...]] = {
    "date": ("data", "date"),
    "description": ("descricao", "description", "historico", "memo"),
    "amount": ("valor", "value", "amount"),
    "direction": ("tipo", "type"),
    "category": ("categoria", "category"),
    "institution": ("instituicao", "institution", "banco", "bank"),
    "notes": ("observacao", "observacoes", "notes"),
}

# Column order assumed when the file has no header line
DEFAULT_COLUMN_ORDER = ("date", "description", "amount", "direction", "category")


def sniff_delimiter(first_line: str) -> str:
    """';' for exports that use it (common with comma decimals), else ','."""
    return ";" if first_line.count(";") > first_line.count(",") else ","


def map_header(header: Sequence[str]) -> dict[str, int]:
    """Map semantic fields to column indexes. The first matching column wins."""
    columns: dict[str, int] = {}
    for index, name in enumerate(header):
        label = normalize_label(name or "")
        for field, synonyms in FLAT_FILE_COLUMNS.items():
            if field not in columns and label in synonyms:
                columns[field] = index
                break
    return columns


def _decode(content: Union[bytes, str], encoding: str) -> str:
    if isinstance(content, str):
        return content
    try:
        return content.decode(encoding)
    except UnicodeDecodeError:
        # Spreadsheet exports saved with a legacy code page
        return content.decode("latin-1")


def parse_flat_file(
    content: Union[bytes, str],
    delimiter: Optional[str] = DEFAULT_DELIMITER,
    has_header: bool = True,
    encoding: str = "utf-8-sig",
) -> ParseResult:
    """
    Parse a delimited file.

    Args:
        content: raw file bytes or already-decoded text
        delimiter: single character; None sniffs ',' or ';' from the first line
        has_header: False assumes DEFAULT_COLUMN_ORDER
        encoding: text encoding of `content` when given as bytes

    Raises:
        ValueError: If the delimiter is not a single character
    """
    text = _decode(content, encoding)
    if delimiter is None:
        delimiter = sniff_delimiter(text.split("\n", 1)[0])
    if len(delimiter) != 1:
        raise ValueError(f"Delimiter must be a single character, got {delimiter!r}")

    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    if has_header:
        header = next(reader, None)
        if header is None:
            return ParseResult()
        columns = map_header(header)
    else:
        columns = {field: index for index, field in enumerate(DEFAULT_COLUMN_ORDER)}

    transactions: list[DraftTransaction] = []
    errors: list[Diagnostic] = []
    for row in reader:
        if not any(cell.strip() for cell in row):
            continue
        line = reader.line_num
        try:
            transactions.append(_parse_row(row, columns, line, errors))
        except RowParseError as e:
            logger.debug("flat_file_row_rejected", row=line, reason=e.message)
            errors.append(e.to_diagnostic())

    logger.info(
        "flat_file_parsed",
        transactions=len(transactions),
        rejected=len(errors),
        delimiter=delimiter,
    )
    return ParseResult(
        transactions=transactions,
        errors=errors,
        summary=ImportSummary.from_transactions(transactions),
    )


def _parse_row(
    row: Sequence[str],
    columns: dict[str, int],
    line: int,
    errors: list[Diagnostic],
) -> DraftTransaction:
    def cell(field: str) -> Optional[str]:
        index = columns.get(field)
        if index is None or index >= len(row):
            return None
        return row[index]

    tx_date = coerce_date(cell("date"))
    direction = parse_direction(coerce_text(cell("direction")))
    description = coerce_text(cell("description"))

    problems = []
    if tx_date is None:
        problems.append("invalid or missing date")
    if direction is None:
        problems.append("invalid or missing type")
    if not description:
        problems.append("missing description")
    if problems:
        raise RowParseError(f"Row rejected: {', '.join(problems)}", row=line)

    amount = coerce_amount(cell("amount"))
    if amount is None:
        if coerce_text(cell("amount")):
            errors.append(Diagnostic(
                row=line,
                message=f"Unreadable amount {cell('amount')!r}, imported as 0",
                code="invalid_amount",
            ))
        amount = 0

    try:
        return DraftTransaction(
            date=tx_date,
            description=description,
            amount=abs(amount),
            direction=direction,
            category=coerce_text(cell("category")) or DEFAULT_CATEGORY,
            institution=coerce_text(cell("institution")),
            notes=coerce_text(cell("notes")),
            source_row=line,
        )
    except ValidationError as e:
        raise RowParseError.from_validation_error(e, row=line) from e
