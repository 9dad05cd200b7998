"""Tests for cell coercion."""

import pytest
from datetime import date, datetime
from decimal import Decimal

from finance_engine.parsers.cells import (
    ComputedResult,
    RichText,
    coerce_amount,
    coerce_cell,
    coerce_date,
    coerce_text,
    parse_decimal_text,
)


class TestCoerceCell:
    """Tests for the single cell-resolution function."""

    @pytest.mark.parametrize("value", [5, 2.5, Decimal("1.50"), date(2025, 1, 1), True])
    def test_typed_scalars_are_unchanged(self, value):
        """Coercing an already-typed scalar returns it unchanged."""
        assert coerce_cell(value) == value
        assert coerce_cell(coerce_cell(value)) == value

    def test_datetime_becomes_date(self):
        """Spreadsheet datetimes are reduced to their calendar date."""
        assert coerce_cell(datetime(2025, 3, 10, 14, 30)) == date(2025, 3, 10)

    def test_computed_result_preferred_over_text(self):
        """A formula cell resolves to its computed result."""
        cell = ComputedResult(result=Decimal("10"), text="R$ 10,00")
        assert coerce_cell(cell) == Decimal("10")

    def test_computed_result_falls_back_to_text(self):
        """Without a result, the display text is coerced instead."""
        cell = ComputedResult(result=None, text="R$ 1.234,56")
        assert coerce_cell(cell) == Decimal("1234.56")

    def test_rich_text_is_joined(self):
        """Rich text runs are concatenated."""
        assert coerce_cell(RichText(runs=("Mer", "cado"))) == "Mercado"

    @pytest.mark.parametrize("text,expected", [
        ("R$ 1.234,56", Decimal("1234.56")),
        ("1234.56", Decimal("1234.56")),
        ("1.234", Decimal("1234")),
        ("150,5", Decimal("150.5")),
        ("-R$ 50,00", Decimal("-50.00")),
        ("(50,00)", Decimal("-50.00")),
    ])
    def test_currency_strings(self, text, expected):
        """Currency text in Brazilian notation becomes a Decimal."""
        assert coerce_cell(text) == expected

    @pytest.mark.parametrize("text,expected", [
        ("10/03/2025", date(2025, 3, 10)),
        ("10.03.2025", date(2025, 3, 10)),
        ("2025-03-10", date(2025, 3, 10)),
        ("2026-01-21T00:00:00.000Z", date(2026, 1, 21)),
    ])
    def test_date_strings(self, text, expected):
        """Day-first and ISO date strings become dates."""
        assert coerce_cell(text) == expected

    def test_invalid_date_is_none(self):
        """A date-shaped string with an impossible date gives None."""
        assert coerce_cell("31/02/2025") is None

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_is_none(self, value):
        """Blank cells give None."""
        assert coerce_cell(value) is None

    def test_plain_text_is_stripped(self):
        """Other text is returned stripped."""
        assert coerce_cell("  Farmácia  ") == "Farmácia"


class TestTypedHelpers:
    """Tests for coerce_amount, coerce_date and coerce_text."""

    def test_amount_never_raises(self):
        """Unparsable amounts give None."""
        assert coerce_amount("abc") is None
        assert coerce_amount(None) is None
        assert coerce_amount(True) is None

    def test_amount_from_float(self):
        """Floats are converted through their shortest repr."""
        assert coerce_amount(150.5) == Decimal("150.5")

    def test_excel_serial_date(self):
        """Excel serial day numbers are accepted as dates."""
        assert coerce_date(45678) == date(2025, 1, 21)

    def test_small_number_is_not_a_date(self):
        """Numbers outside the serial range are not dates."""
        assert coerce_date(15) is None

    def test_text_renders_dates_as_iso(self):
        """Dates become ISO strings in text form."""
        assert coerce_text(date(2025, 3, 10)) == "2025-03-10"

    def test_parse_decimal_without_digits(self):
        """Text without digits is not a number."""
        assert parse_decimal_text("R$") is None
