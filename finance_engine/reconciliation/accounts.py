"""
Account Resolution

Links a draft to one of the user's accounts by card digits or institution.

Rule order:
1. Card digits present: only an Active CreditCard account with the same
   last four digits matches. Exact only; a digit collision must never
   attach a purchase to the wrong card, so there is no fuzzy step and no
   institution fallback.
2. Institution present: exact case-insensitive match on the account's
   institution, then substring containment in either direction between
   the search term and the account's name or institution.

Archived accounts never match. When nothing matches, the caller is
offered (never automatically given) a proposed account.
"""

from typing import Optional, Sequence

import structlog

from finance_engine.models.transaction import (
    Account,
    AccountProposal,
    AccountStatus,
    AccountType,
    normalize_card_digits,
)


logger = structlog.get_logger(__name__)


def _active(accounts: Sequence[Account]) -> list[Account]:
    return [a for a in accounts if a.status == AccountStatus.ACTIVE]


def match_by_card_digits(accounts: Sequence[Account], card_last_digits: str) -> Optional[Account]:
    digits = normalize_card_digits(card_last_digits)
    if digits is None:
        return None
    for account in _active(accounts):
        if account.type == AccountType.CREDIT_CARD and account.card_last_digits == digits:
            return account
    return None


def match_by_institution(accounts: Sequence[Account], institution: str) -> Optional[Account]:
    term = institution.strip().lower()
    if not term:
        return None
    active = _active(accounts)

    for account in active:
        if account.institution and account.institution.strip().lower() == term:
            return account

    for account in active:
        for field in (account.name, account.institution):
            if not field:
                continue
            value = field.strip().lower()
            if value and (term in value or value in term):
                return account
    return None


def resolve_account(
    accounts: Sequence[Account],
    card_last_digits: Optional[str] = None,
    institution: Optional[str] = None,
) -> Optional[Account]:
    """
    Find the account a draft belongs to.

    Returns:
        The matching Active account, or None
    """
    if normalize_card_digits(card_last_digits) is not None:
        account = match_by_card_digits(accounts, card_last_digits)
        logger.debug(
            "account_resolved",
            rule="card_digits",
            matched=account.id if account else None,
        )
        return account

    if institution:
        account = match_by_institution(accounts, institution)
        logger.debug(
            "account_resolved",
            rule="institution",
            matched=account.id if account else None,
        )
        return account

    return None


def propose_account(
    card_last_digits: Optional[str] = None,
    institution: Optional[str] = None,
    holder_name: Optional[str] = None,
) -> Optional[AccountProposal]:
    """
    Build the account offered for creation when resolution fails.

    Card accounts are named "<holder> <institution> **** 1234"; other
    accounts just take the institution name. Returns None when there is
    nothing to name the account after.
    """
    digits = normalize_card_digits(card_last_digits)
    if digits is not None:
        parts = [holder_name, institution, f"**** {digits}"]
        name = " ".join(p.strip() for p in parts if p and p.strip())
        return AccountProposal(
            name=name,
            type=AccountType.CREDIT_CARD,
            institution=institution,
            card_last_digits=digits,
            holder_name=holder_name,
        )
    if institution and institution.strip():
        return AccountProposal(
            name=institution.strip(),
            type=AccountType.CHECKING,
            institution=institution.strip(),
            holder_name=holder_name,
        )
    return None
