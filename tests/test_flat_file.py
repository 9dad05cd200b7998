"""Tests for the delimited flat file parser."""

import pytest
from datetime import date
from decimal import Decimal

from finance_engine.models.transaction import Direction
from finance_engine.parsers.flat_file import map_header, parse_flat_file, sniff_delimiter


class TestFlatFileParser:
    """Tests for parse_flat_file."""

    def test_comma_separated_portuguese_headers(self):
        """A plain CSV export becomes drafts."""
        content = (
            "Data,Descrição,Valor,Tipo,Categoria\n"
            "2025-03-10,Mercado,150.00,Despesa,Alimentação\n"
            "2025-03-11,Salário,5000,Receita,\n"
        )

        result = parse_flat_file(content)

        assert result.errors == []
        market, salary = result.transactions
        assert market.date == date(2025, 3, 10)
        assert market.amount == Decimal("150.00")
        assert market.category == "Alimentação"
        assert salary.direction == Direction.INCOME
        assert salary.category == "Other"
        assert result.summary.total_income == Decimal("5000")

    def test_english_headers(self):
        """Header synonyms accept English exports."""
        content = "date,description,amount,type\n2025-03-10,Salary,5000,Income\n"
        result = parse_flat_file(content)
        assert result.transactions[0].description == "Salary"
        assert result.transactions[0].direction == Direction.INCOME

    def test_semicolon_sniffing_with_comma_decimals(self):
        """delimiter=None detects ';' and comma decimals parse."""
        content = "Data;Descrição;Valor;Tipo\n10/03/2025;Mercado;1.234,56;Despesa\n"

        result = parse_flat_file(content, delimiter=None)

        assert result.transactions[0].amount == Decimal("1234.56")
        assert result.transactions[0].date == date(2025, 3, 10)

    def test_row_missing_direction_is_dropped_and_reported(self):
        """Rows without date, type or description are dropped with a diagnostic."""
        content = (
            "data,descricao,valor,tipo\n"
            "2025-03-10,Mercado,10.00,Despesa\n"
            "2025-03-11,Padaria,5.00,\n"
        )

        result = parse_flat_file(content)

        assert len(result.transactions) == 1
        assert len(result.errors) == 1
        assert result.errors[0].row == 3
        assert "type" in result.errors[0].message

    def test_oversized_description_is_a_row_diagnostic(self):
        """A description over the field limit rejects its row only."""
        long_text = "x" * 301
        content = (
            "data,descricao,valor,tipo\n"
            f"2025-03-10,{long_text},10.00,Despesa\n"
            "2025-03-11,Padaria,5.00,Despesa\n"
        )

        result = parse_flat_file(content)

        assert [t.description for t in result.transactions] == ["Padaria"]
        assert result.errors[0].row == 2
        assert "300 characters" in result.errors[0].message

    def test_missing_amount_is_zero(self):
        """A blank amount becomes 0 without a diagnostic."""
        content = "data,descricao,valor,tipo\n2025-03-10,Mercado,,Despesa\n"
        result = parse_flat_file(content)
        assert result.transactions[0].amount == Decimal("0")
        assert result.errors == []

    def test_unreadable_amount_is_zero_with_diagnostic(self):
        """An unreadable amount becomes 0 and is reported."""
        content = "data,descricao,valor,tipo\n2025-03-10,Mercado,abc,Despesa\n"
        result = parse_flat_file(content)
        assert result.transactions[0].amount == Decimal("0")
        assert [e.code for e in result.errors] == ["invalid_amount"]

    def test_negative_amount_stored_as_absolute(self):
        """Amounts are never negative."""
        content = "data,descricao,valor,tipo\n2025-03-10,Estorno,-45.90,Receita\n"
        assert parse_flat_file(content).transactions[0].amount == Decimal("45.90")

    def test_without_header(self):
        """has_header=False assumes date, description, amount, type, category."""
        content = "2025-03-10,Mercado,50.00,Despesa,Alimentação\n"
        result = parse_flat_file(content, has_header=False)
        assert result.transactions[0].description == "Mercado"
        assert result.transactions[0].category == "Alimentação"
        assert result.transactions[0].source_row == 1

    def test_latin1_bytes(self):
        """Bytes that are not UTF-8 fall back to latin-1."""
        content = "Data;Descrição;Valor;Tipo\n10/03/2025;Padaria;12,50;Despesa\n".encode("latin-1")
        result = parse_flat_file(content, delimiter=";")
        assert result.transactions[0].amount == Decimal("12.50")

    def test_blank_lines_ignored(self):
        """Empty lines are neither drafts nor diagnostics."""
        content = "data,descricao,valor,tipo\n\n2025-03-10,Mercado,10,Despesa\n,,,\n"
        result = parse_flat_file(content)
        assert len(result.transactions) == 1
        assert result.errors == []

    def test_empty_file(self):
        """An empty file parses to nothing."""
        result = parse_flat_file("")
        assert result.transactions == []
        assert result.errors == []

    def test_invalid_delimiter(self):
        """Delimiters must be a single character."""
        with pytest.raises(ValueError, match="single character"):
            parse_flat_file("a;;b", delimiter=";;")


class TestFlatFileHelpers:
    """Tests for header mapping and delimiter sniffing."""

    def test_map_header_first_match_wins(self):
        """The first column matching a field is used."""
        assert map_header(["Valor", "Data", "Value"]) == {"amount": 0, "date": 1}

    def test_sniff(self):
        """';' wins only when it outnumbers ','."""
        assert sniff_delimiter("a;b;c") == ";"
        assert sniff_delimiter("a,b;c,d") == ","
