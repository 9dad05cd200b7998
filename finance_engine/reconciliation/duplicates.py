"""
Duplicate and Candidate Match Detection

Two checks share one word-overlap similarity measure:

STRICT DUPLICATE (blocks accidental re-import):
    same calendar year and month (not necessarily the same day, to
    tolerate recurring and installment drift)
    AND |amount1 - amount2| <= AMOUNT_TOLERANCE
    AND similarity >= STRICT_SIMILARITY, where similarity is the overlap
    divided by the SMALLER word set. Identical normalized descriptions
    short-circuit to a match.

LOOSE CANDIDATE (offers invoice/statement merges, user-confirmed):
    same amount tolerance, dates within LOOSE_WINDOW_DAYS, and
    similarity >= LOOSE_SIMILARITY with overlap divided by the LARGER
    word set.

INSTALLMENT GROUP (blocks re-importing an ongoing purchase):
    a statement line for installment N of M is checked against stored
    rows of expanded groups instead of its own month. The group is dated
    at its due dates, months away from the purchase date the line shows.
    Plan size M must agree, amounts must match and the strict similarity
    applies to the description root.

Descriptions are compared lower-cased with installment suffixes such as
"(1/12)" removed; only words longer than two characters count.

The strict and loose checks are symmetric in their two arguments.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, Sequence, Union

import structlog
from dateutil.relativedelta import relativedelta

from finance_engine.models.transaction import DraftTransaction, ExistingTransaction
from finance_engine.parsers.normalize import strip_installment_suffix


logger = structlog.get_logger(__name__)

STRICT_SIMILARITY = 0.5
LOOSE_SIMILARITY = 0.3
AMOUNT_TOLERANCE = Decimal("0.01")
LOOSE_WINDOW_DAYS = 5
MIN_WORD_LENGTH = 3


def normalize_description(description: str) -> str:
    return strip_installment_suffix(description).lower().strip()


def description_words(description: str, min_word_length: int = MIN_WORD_LENGTH) -> set[str]:
    return {
        word
        for word in normalize_description(description).split()
        if len(word) >= min_word_length
    }


def description_similarity(
    first: str,
    second: str,
    denominator: Callable[[int, int], int] = min,
    min_word_length: int = MIN_WORD_LENGTH,
) -> float:
    """
    Word-overlap similarity in [0, 1].

    Args:
        denominator: `min` (strict check) or `max` (loose check) of the two
            word-set sizes
    """
    if normalize_description(first) == normalize_description(second):
        return 1.0
    words_a = description_words(first, min_word_length)
    words_b = description_words(second, min_word_length)
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / denominator(len(words_a), len(words_b))


def amounts_match(first: Decimal, second: Decimal, tolerance: Decimal = AMOUNT_TOLERANCE) -> bool:
    return abs(Decimal(first) - Decimal(second)) <= tolerance


Transaction = Union[DraftTransaction, ExistingTransaction]


def is_strict_duplicate(
    first: Transaction,
    second: Transaction,
    threshold: float = STRICT_SIMILARITY,
    tolerance: Decimal = AMOUNT_TOLERANCE,
    min_word_length: int = MIN_WORD_LENGTH,
) -> bool:
    """True when the two transactions look like the same real-world event."""
    if (first.date.year, first.date.month) != (second.date.year, second.date.month):
        return False
    if not amounts_match(first.amount, second.amount, tolerance):
        return False
    similarity = description_similarity(
        first.description, second.description, min, min_word_length
    )
    return similarity >= threshold


def is_installment_duplicate(
    draft: DraftTransaction,
    existing: ExistingTransaction,
    threshold: float = STRICT_SIMILARITY,
    tolerance: Decimal = AMOUNT_TOLERANCE,
    min_word_length: int = MIN_WORD_LENGTH,
) -> bool:
    """True when the draft is another statement's view of a stored installment group."""
    if draft.installment is None or draft.installment.total <= 1:
        return False
    if not existing.installment_group_id or existing.installment is None:
        return False
    if draft.installment.total != existing.installment.total:
        return False
    if not amounts_match(draft.amount, existing.amount, tolerance):
        return False
    similarity = description_similarity(
        draft.description, existing.description, min, min_word_length
    )
    return similarity >= threshold


def is_candidate_match(
    first: Transaction,
    second: Transaction,
    threshold: float = LOOSE_SIMILARITY,
    tolerance: Decimal = AMOUNT_TOLERANCE,
    window_days: int = LOOSE_WINDOW_DAYS,
    min_word_length: int = MIN_WORD_LENGTH,
) -> bool:
    """True when the two transactions could be merged after user review."""
    if abs((first.date - second.date).days) > window_days:
        return False
    if not amounts_match(first.amount, second.amount, tolerance):
        return False
    similarity = description_similarity(
        first.description, second.description, max, min_word_length
    )
    return similarity >= threshold


def find_duplicates(
    drafts: Sequence[DraftTransaction],
    existing: Sequence[ExistingTransaction],
    threshold: float = STRICT_SIMILARITY,
    tolerance: Decimal = AMOUNT_TOLERANCE,
    min_word_length: int = MIN_WORD_LENGTH,
    installment_groups: bool = False,
) -> dict[int, ExistingTransaction]:
    """
    Strict duplicate scan of drafts against an existing-ledger snapshot.

    Args:
        installment_groups: also match installment drafts against stored
            installment groups across months (set for drafts that will be
            expanded on commit)

    Returns:
        {draft index: first matching existing transaction}. The snapshot
        is only read, never modified.
    """
    by_month: dict[tuple[int, int], list[ExistingTransaction]] = {}
    grouped: list[ExistingTransaction] = []
    for tx in existing:
        by_month.setdefault((tx.date.year, tx.date.month), []).append(tx)
        if tx.installment_group_id:
            grouped.append(tx)

    duplicates: dict[int, ExistingTransaction] = {}
    for index, draft in enumerate(drafts):
        for candidate in by_month.get((draft.date.year, draft.date.month), ()):
            if is_strict_duplicate(draft, candidate, threshold, tolerance, min_word_length):
                duplicates[index] = candidate
                break
        if index in duplicates or not installment_groups:
            continue
        for candidate in grouped:
            if is_installment_duplicate(draft, candidate, threshold, tolerance, min_word_length):
                duplicates[index] = candidate
                break

    if duplicates:
        logger.info("duplicates_detected", count=len(duplicates), drafts=len(drafts))
    return duplicates


def find_candidate_matches(
    draft: DraftTransaction,
    existing: Sequence[ExistingTransaction],
    threshold: float = LOOSE_SIMILARITY,
    tolerance: Decimal = AMOUNT_TOLERANCE,
    window_days: int = LOOSE_WINDOW_DAYS,
    min_word_length: int = MIN_WORD_LENGTH,
) -> list[ExistingTransaction]:
    """
    Existing transactions the user may merge the draft into.

    Ordered by similarity (highest first), then by date proximity.
    """
    scored: list[tuple[float, int, ExistingTransaction]] = []
    for candidate in existing:
        if not is_candidate_match(
            draft, candidate, threshold, tolerance, window_days, min_word_length
        ):
            continue
        similarity = description_similarity(
            draft.description, candidate.description, max, min_word_length
        )
        scored.append((similarity, abs((draft.date - candidate.date).days), candidate))

    scored.sort(key=lambda item: (-item[0], item[1]))
    return [candidate for _, _, candidate in scored]


def month_bounds(dates: Sequence[date]) -> tuple[date, date]:
    """First day of the earliest month and last day of the latest month."""
    start = min(dates).replace(day=1)
    end = max(dates) + relativedelta(day=31)
    return start, end


def snapshot_bounds(
    drafts: Sequence[DraftTransaction],
    installment_groups: bool = False,
) -> tuple[date, date]:
    """
    Date range of the existing ledger a duplicate scan needs.

    With `installment_groups`, an installment draft widens the range by its
    plan length on both sides, plus the two months a due date can trail the
    purchase, so every member of a stored group for it falls inside.
    """
    start, end = month_bounds([d.date for d in drafts])
    if not installment_groups:
        return start, end
    for draft in drafts:
        if draft.installment is None or draft.installment.total <= 1:
            continue
        total = draft.installment.total
        start = min(start, draft.date + relativedelta(months=-total, day=1))
        end = max(end, draft.date + relativedelta(months=total + 2, day=31))
    return start, end
