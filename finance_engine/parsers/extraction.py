"""
Extraction Normalizer

Turns the document-extraction result (a single receipt/invoice or a whole
card statement) into draft transactions.

Classification of statement lines, in order:
1. Statement payment: description or category mentions a payment keyword
   ("pagamento", "pagto", "pag fatura", "crédito recebido"). These move
   money between the card and the paying account and are not expenses.
   They are held back and listed so the caller can confirm the exclusion
   or re-include them (a merchant named "Pagamento Digital" would match).
2. Refund: flagged `isRefund` or carrying a negative amount. Normalized to
   an Income draft with `is_refund` and the absolute amount.
3. Everything else is an Expense with the absolute amount.

The selected total is expenses minus refunds, i.e. what is actually owed.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

import structlog
from pydantic import ValidationError

from finance_engine.exceptions import AmbiguousInstallmentError, RowParseError
from finance_engine.models.transaction import (
    DEFAULT_CATEGORY,
    Diagnostic,
    Direction,
    DraftTransaction,
    ExtractedLine,
    ExtractionResult,
    NormalizedExtraction,
    SkippedPayment,
)
from finance_engine.parsers.cells import coerce_date
from finance_engine.parsers.installment_text import (
    DEFAULT_INSTALLMENT_PATTERNS,
    parse_installment_text_strict,
)
from finance_engine.parsers.normalize import normalize_label


logger = structlog.get_logger(__name__)

PAYMENT_KEYWORDS = ("pagamento", "pagto", "pag fatura", "credito recebido")
DEFAULT_MIN_CONFIDENCE = 0.6
STATEMENT_TAB = "statement"
UNIDENTIFIED_DESCRIPTION = "Unidentified transaction"


def is_statement_payment(
    texts: Iterable[Optional[str]],
    keywords: Sequence[str] = PAYMENT_KEYWORDS,
) -> bool:
    """True when any of the texts contains a payment keyword (case and accent insensitive)."""
    for text in texts:
        if not text:
            continue
        label = normalize_label(text)
        if any(keyword in label for keyword in keywords):
            return True
    return False


def normalize_extraction(
    result: ExtractionResult,
    include_payment_indices: Iterable[int] = (),
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    payment_keywords: Sequence[str] = PAYMENT_KEYWORDS,
    installment_patterns=DEFAULT_INSTALLMENT_PATTERNS,
) -> NormalizedExtraction:
    """
    Normalize an extraction result into drafts.

    Args:
        result: validated extraction service output
        include_payment_indices: statement line indexes the user confirmed
            are real expenses despite matching a payment keyword
        min_confidence: below this a low-confidence warning is added
        payment_keywords: keywords marking statement payments
        installment_patterns: patterns for the installment text parser

    Returns:
        NormalizedExtraction with drafts, diagnostics, skipped payments,
        refund count and the selected total
    """
    normalized = NormalizedExtraction(
        extraction_method=result.extraction_method,
        confidence=result.confidence,
        statement=result.statement_info,
    )
    if result.confidence < min_confidence:
        normalized.errors.append(Diagnostic(
            message=(
                f"Extraction confidence {result.confidence:.0%} is below "
                f"{min_confidence:.0%}; review every value"
            ),
            code="low_confidence",
        ))

    if result.is_multi_transaction:
        _normalize_statement(
            result,
            normalized,
            set(include_payment_indices),
            payment_keywords,
            installment_patterns,
        )
    else:
        _normalize_single(result, normalized)

    expenses = sum(
        (t.amount for t in normalized.transactions if t.direction == Direction.EXPENSE),
        Decimal("0"),
    )
    refunds = sum(
        (t.amount for t in normalized.transactions if t.is_refund),
        Decimal("0"),
    )
    normalized.refund_count = sum(1 for t in normalized.transactions if t.is_refund)
    normalized.selected_total = expenses - refunds

    logger.info(
        "extraction_normalized",
        method=result.extraction_method.value,
        transactions=len(normalized.transactions),
        skipped_payments=len(normalized.skipped_payments),
        refunds=normalized.refund_count,
        diagnostics=len(normalized.errors),
    )
    return normalized


def _normalize_single(result: ExtractionResult, normalized: NormalizedExtraction) -> None:
    tx_date = coerce_date(result.date)
    if tx_date is None:
        normalized.errors.append(Diagnostic(
            row=1,
            message="Document date could not be read",
            code="missing_date",
        ))
        return
    if result.amount == 0:
        normalized.errors.append(Diagnostic(
            row=1,
            message="Document amount could not be read",
            code="missing_amount",
        ))
        return

    is_refund = result.amount < 0
    try:
        draft = DraftTransaction(
            date=tx_date,
            description=result.merchant or UNIDENTIFIED_DESCRIPTION,
            amount=abs(result.amount),
            direction=Direction.INCOME if is_refund else Direction.EXPENSE,
            category=result.category or DEFAULT_CATEGORY,
            is_refund=is_refund,
            items=result.items or [],
            source_row=1,
        )
    except ValidationError as e:
        normalized.errors.append(RowParseError.from_validation_error(e, row=1).to_diagnostic())
        return
    normalized.transactions.append(draft)


def _normalize_statement(
    result: ExtractionResult,
    normalized: NormalizedExtraction,
    include_payment_indices: set[int],
    payment_keywords: Sequence[str],
    installment_patterns,
) -> None:
    statement = result.statement_info
    due_date = coerce_date(statement.due_date) if statement else None
    normalized.statement_due_date = due_date

    for index, line in enumerate(result.transactions):
        row = index + 1
        description = line.merchant or line.description or UNIDENTIFIED_DESCRIPTION

        if index not in include_payment_indices and is_statement_payment(
            (line.merchant, line.description, line.category), payment_keywords
        ):
            normalized.skipped_payments.append(SkippedPayment(
                index=index,
                description=description,
                amount=abs(line.amount),
            ))
            continue

        tx_date = coerce_date(line.date) or due_date
        if tx_date is None:
            normalized.errors.append(Diagnostic(
                tab=STATEMENT_TAB,
                row=row,
                message=f"Line '{description}' has no readable date",
                code="missing_date",
            ))
            continue

        installment = None
        try:
            installment = parse_installment_text_strict(line.installment_info, installment_patterns)
        except AmbiguousInstallmentError as e:
            normalized.errors.append(Diagnostic(
                tab=STATEMENT_TAB,
                row=row,
                message=f"{e}; kept as a single transaction",
                code="ambiguous_installment",
            ))

        try:
            draft = _line_to_draft(line, description, tx_date, installment, statement, row)
        except ValidationError as e:
            logger.debug("statement_line_rejected", row=row, errors=e.error_count())
            normalized.errors.append(
                RowParseError.from_validation_error(e, tab=STATEMENT_TAB, row=row).to_diagnostic()
            )
            continue
        normalized.transactions.append(draft)


def _line_to_draft(
    line: ExtractedLine,
    description: str,
    tx_date: date,
    installment,
    statement,
    row: int,
) -> DraftTransaction:
    is_refund = line.is_refund or line.amount < 0
    return DraftTransaction(
        date=tx_date,
        description=description,
        amount=abs(line.amount),
        direction=Direction.INCOME if is_refund else Direction.EXPENSE,
        category=line.category or DEFAULT_CATEGORY,
        installment=installment,
        institution=statement.institution if statement else None,
        card_last_digits=line.card_last_digits or (statement.card_last_digits if statement else None),
        is_refund=is_refund,
        source_tab=STATEMENT_TAB,
        source_row=row,
    )
