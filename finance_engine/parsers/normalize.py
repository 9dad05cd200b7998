"""Text normalization shared by the parsers and the matchers."""

import re
import unicodedata

INSTALLMENT_SUFFIX = re.compile(r"\s*\(\s*\d+\s*/\s*\d+\s*\)\s*$")
_WHITESPACE = re.compile(r"\s+")


def strip_accents(text: str) -> str:
    """'Descrição' -> 'Descricao'."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_label(text: str) -> str:
    """Lower-case, accent-free, single-spaced form used for header and keyword lookups."""
    return _WHITESPACE.sub(" ", strip_accents(text).lower()).strip()


def strip_installment_suffix(description: str) -> str:
    """'Notebook (3/12)' -> 'Notebook'."""
    return INSTALLMENT_SUFFIX.sub("", description).strip()
