"""
Parsers Package

Everything that turns raw input (workbooks, delimited files, extraction
JSON) into draft transactions.
"""

from finance_engine.parsers.cells import (
    ComputedResult,
    RichText,
    coerce_amount,
    coerce_cell,
    coerce_date,
    coerce_text,
)
from finance_engine.parsers.extraction import is_statement_payment, normalize_extraction
from finance_engine.parsers.flat_file import parse_flat_file
from finance_engine.parsers.installment_text import (
    DEFAULT_INSTALLMENT_PATTERNS,
    parse_installment_text,
    parse_installment_text_strict,
)
from finance_engine.parsers.ledger_sheet import LedgerSheetParser, parse_ledger_sheet
from finance_engine.parsers.months import MonthTable

__all__ = [
    "ComputedResult",
    "DEFAULT_INSTALLMENT_PATTERNS",
    "LedgerSheetParser",
    "MonthTable",
    "RichText",
    "coerce_amount",
    "coerce_cell",
    "coerce_date",
    "coerce_text",
    "is_statement_payment",
    "normalize_extraction",
    "parse_flat_file",
    "parse_installment_text",
    "parse_installment_text_strict",
    "parse_ledger_sheet",
]
