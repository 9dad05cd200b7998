"""Tests for the tab-name month lookup."""

import pytest

from finance_engine.parsers.months import MonthTable


class TestMonthTable:
    """Tests for the tab-name month lookup."""

    @pytest.mark.parametrize("tab,month", [
        ("JAN", 1),
        ("fev", 2),
        ("MARÇO 2025", 3),
        ("Março", 3),
        ("SETEMBRO", 9),
        ("dez-2024", 12),
    ])
    def test_pt_br_tabs(self, tab, month):
        """Abbreviations and full names match case and accent insensitively."""
        assert MonthTable().month_for(tab) == month

    def test_non_month_tab(self):
        """Tabs that name no month give None."""
        assert MonthTable().month_for("Resumo") is None
        assert MonthTable().month_for("2025") is None

    def test_first_token_wins_on_ambiguity(self):
        """A tab containing two months resolves to the earlier token."""
        assert MonthTable().month_for("JUN/JUL") == 6

    def test_english_locale(self):
        """The en_US table uses English abbreviations."""
        assert MonthTable("en_US").month_for("Feb") == 2

    def test_unknown_locale(self):
        """Unsupported locales are rejected."""
        with pytest.raises(ValueError, match="Unsupported month locale"):
            MonthTable("xx_XX")

    def test_year_from_tab(self):
        """Years embedded in tab names are read."""
        assert MonthTable.year_for("JAN 2025") == 2025
        assert MonthTable.year_for("JAN") is None

    @pytest.mark.parametrize("tab", ["OUTROS", "PARCELAMENTOS", "DEVEDORES", "D. FIXA", "Mais"])
    def test_words_merely_starting_with_a_token(self, tab):
        """Ordinary words that begin with a month abbreviation are not months."""
        assert MonthTable().month_for(tab) is None

    @pytest.mark.parametrize("tab,month", [
        ("Set. 2025", 9),
        ("SETEMB", 9),
        ("Junho/Julho", 6),
        ("JAN2025", 1),
    ])
    def test_word_fallback(self, tab, month):
        """Abbreviations and truncated names inside longer tab names still match."""
        assert MonthTable().month_for(tab) == month
