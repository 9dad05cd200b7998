"""
Calendar Month Lookup for Ledger Tabs

Ledger workbooks carry one tab per month, named with a month abbreviation
("JAN", "Fev", "MARÇO 2025", ...).

DESIGN DECISION: The lookup table is an explicit, per-locale object owned
by the ledger parser. Nothing here is global mutable state.

Lookup order:
1. Exact match against the locale's abbreviations or full month names
   (case and accent insensitive).
2. Word fallback: each word of the tab name ("JUN/JUL", "Set. 2025") is
   tried against every month in calendar order. A word matches when it
   starts with the abbreviation and is itself a prefix of the full name
   ("SETEMB"), so "OUTROS" or "PARCELAMENTOS" never become months. The
   first month matched wins.
"""

import re
from typing import Optional

from finance_engine.parsers.normalize import strip_accents

MONTH_TOKENS: dict[str, tuple[str, ...]] = {
    "pt_BR": ("JAN", "FEV", "MAR", "ABR", "MAI", "JUN",
              "JUL", "AGO", "SET", "OUT", "NOV", "DEZ"),
    "en_US": ("JAN", "FEB", "MAR", "APR", "MAY", "JUN",
              "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"),
}

MONTH_NAMES: dict[str, tuple[str, ...]] = {
    "pt_BR": ("JANEIRO", "FEVEREIRO", "MARÇO", "ABRIL", "MAIO", "JUNHO",
              "JULHO", "AGOSTO", "SETEMBRO", "OUTUBRO", "NOVEMBRO", "DEZEMBRO"),
    "en_US": ("JANUARY", "FEBRUARY", "MARCH", "APRIL", "MAY", "JUNE",
              "JULY", "AUGUST", "SEPTEMBER", "OCTOBER", "NOVEMBER", "DECEMBER"),
}

_YEAR = re.compile(r"(?<!\d)((?:19|20)\d{2})(?!\d)")
_NON_LETTERS = re.compile(r"[^A-Z]")
_WORDS = re.compile(r"[A-Z]+")


class MonthTable:
    """Maps tab names to calendar months (1-12) for one locale."""

    def __init__(self, locale: str = "pt_BR"):
        if locale not in MONTH_TOKENS:
            raise ValueError(
                f"Unsupported month locale {locale!r}; expected one of {sorted(MONTH_TOKENS)}"
            )
        self.locale = locale
        self._tokens = MONTH_TOKENS[locale]
        self._names = tuple(self._letters(name) for name in MONTH_NAMES[locale])
        self._exact: dict[str, int] = {}
        for index, token in enumerate(self._tokens, start=1):
            self._exact[token] = index
        for index, name in enumerate(self._names, start=1):
            self._exact[name] = index

    @staticmethod
    def _letters(text: str) -> str:
        return _NON_LETTERS.sub("", strip_accents(text).upper())

    def month_for(self, tab_name: str) -> Optional[int]:
        """Return the month number for a tab name, or None if it is not a month tab."""
        letters = self._letters(tab_name)
        if not letters:
            return None
        if letters in self._exact:
            return self._exact[letters]
        words = _WORDS.findall(strip_accents(tab_name).upper())
        for index, (token, name) in enumerate(zip(self._tokens, self._names), start=1):
            if any(word.startswith(token) and name.startswith(word) for word in words):
                return index
        return None

    @staticmethod
    def year_for(tab_name: str) -> Optional[int]:
        """Year embedded in a tab name such as 'JAN 2025' or 'fev-2024'."""
        match = _YEAR.search(tab_name)
        return int(match.group(1)) if match else None
