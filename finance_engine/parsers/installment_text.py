"""
Installment Text Parsing

Statements and ledgers describe installments in free text:
"Parcela 02 de 12", "parcela 3/10", "1 de 2", "06/10".

The patterns are tried in order and the first one whose numbers satisfy
1 <= N <= M wins. Pass a different pattern tuple to support other phrasings
without touching callers.
"""

import re
from typing import Optional, Sequence

from finance_engine.exceptions import AmbiguousInstallmentError
from finance_engine.models.transaction import InstallmentInfo

DEFAULT_INSTALLMENT_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"parcela\s*(\d{1,3})\s*de\s*(\d{1,3})", re.IGNORECASE),
    re.compile(r"parcela\s*(\d{1,3})\s*/\s*(\d{1,3})", re.IGNORECASE),
    re.compile(r"(?<!\d)(\d{1,3})\s+de\s+(\d{1,3})(?!\d)", re.IGNORECASE),
    re.compile(r"(?<!\d)(\d{1,3})\s*/\s*(\d{1,3})(?!\d)"),
)


def parse_installment_text(
    text: Optional[str],
    patterns: Sequence[re.Pattern] = DEFAULT_INSTALLMENT_PATTERNS,
) -> Optional[InstallmentInfo]:
    """
    Parse installment text into {current, total}.

    Returns None when the text is blank or matches no pattern.
    """
    if not text or not text.strip():
        return None
    for pattern in patterns:
        match = pattern.search(text)
        if not match:
            continue
        current, total = int(match.group(1)), int(match.group(2))
        if 1 <= current <= total:
            return InstallmentInfo(current=current, total=total)
    return None


def parse_installment_text_strict(
    text: Optional[str],
    patterns: Sequence[re.Pattern] = DEFAULT_INSTALLMENT_PATTERNS,
) -> Optional[InstallmentInfo]:
    """
    Like `parse_installment_text`, but non-blank text that matches nothing
    raises AmbiguousInstallmentError instead of returning None.
    """
    info = parse_installment_text(text, patterns)
    if info is None and text and text.strip():
        raise AmbiguousInstallmentError(text)
    return info
