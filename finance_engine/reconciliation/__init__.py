"""
Reconciliation Package

Installment expansion, duplicate/match detection and account resolution:
the steps between parsed drafts and a persistable batch.
"""

from finance_engine.reconciliation.accounts import propose_account, resolve_account
from finance_engine.reconciliation.duplicates import (
    AMOUNT_TOLERANCE,
    LOOSE_SIMILARITY,
    LOOSE_WINDOW_DAYS,
    STRICT_SIMILARITY,
    description_similarity,
    find_candidate_matches,
    find_duplicates,
    is_candidate_match,
    is_installment_duplicate,
    is_strict_duplicate,
    snapshot_bounds,
)
from finance_engine.reconciliation.installments import (
    build_installment_group,
    expand_installments,
    first_due_date,
)

__all__ = [
    "AMOUNT_TOLERANCE",
    "LOOSE_SIMILARITY",
    "LOOSE_WINDOW_DAYS",
    "STRICT_SIMILARITY",
    "build_installment_group",
    "description_similarity",
    "expand_installments",
    "find_candidate_matches",
    "find_duplicates",
    "first_due_date",
    "is_candidate_match",
    "is_installment_duplicate",
    "is_strict_duplicate",
    "propose_account",
    "resolve_account",
    "snapshot_bounds",
]
