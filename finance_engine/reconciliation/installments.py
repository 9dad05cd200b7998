"""
Installment Expansion

A statement line such as "NOTEBOOK  Parcela 02 de 12" stands for a whole
plan. Expansion produces one dated draft per installment, all sharing a
freshly generated group id.

Dating, in priority order:
- Precise mode: the linked card account knows its billing cycle
  (closing day, due day). Installment #1 falls on the due date of the cycle
  the purchase belongs to, and installment i falls (i - 1) months later.
- Fallback mode: no cycle known. Installment i falls (i - current) months
  from the statement due date, or from the draft date when there is no
  statement.

Precise mode wins whenever both are possible because it reflects the card's
actual billing contract rather than one statement snapshot.

Installments up to and including the current one are Paid (already billed);
later ones are Pending.
"""

from datetime import date
from typing import Optional
from uuid import uuid4

import structlog
from dateutil.relativedelta import relativedelta

from finance_engine.models.transaction import (
    Account,
    DraftTransaction,
    InstallmentGroup,
    InstallmentInfo,
    InstallmentStatus,
)
from finance_engine.parsers.normalize import strip_installment_suffix


logger = structlog.get_logger(__name__)


def first_due_date(purchase: date, closing_day: int, due_day: int) -> date:
    """
    Due date of the first installment of a purchase.

    A purchase made after the closing day belongs to the next cycle. When
    the due day comes before the closing day, the bill is due the month
    after the cycle closes. Days beyond the end of a month are clamped.

    Example:
        purchase 2025-03-15, closing 30, due 7 -> 2025-04-07
        purchase 2025-03-15, closing 10, due 20 -> 2025-04-20
    """
    closing = purchase + relativedelta(day=closing_day)
    if purchase > closing:
        closing = purchase + relativedelta(months=1, day=closing_day)
    months_to_due = 1 if due_day < closing_day else 0
    return closing + relativedelta(months=months_to_due, day=due_day)


def installment_dates(
    draft: DraftTransaction,
    account: Optional[Account] = None,
    statement_due_date: Optional[date] = None,
) -> list[date]:
    """Dates of installments 1..total for an installment draft."""
    info = draft.installment
    if info is None:
        return [draft.date]

    if account is not None and account.has_billing_cycle:
        anchor = first_due_date(draft.date, account.closing_day, account.due_day)
        return [
            anchor + relativedelta(months=i - 1, day=account.due_day)
            for i in range(1, info.total + 1)
        ]

    base = statement_due_date or draft.date
    return [
        base + relativedelta(months=i - info.current)
        for i in range(1, info.total + 1)
    ]


def build_installment_group(
    draft: DraftTransaction,
    account: Optional[Account] = None,
    statement_due_date: Optional[date] = None,
) -> InstallmentGroup:
    """
    Expand an installment draft into its full group.

    Args:
        draft: draft carrying installment {current, total} with total > 1
        account: linked account; its billing cycle enables precise dating
        statement_due_date: due date of the statement the draft came from

    Raises:
        ValueError: If the draft is not a multi-installment draft
    """
    info = draft.installment
    if info is None or info.total <= 1:
        raise ValueError("Draft does not carry a multi-installment plan")

    group_id = uuid4()
    root = strip_installment_suffix(draft.description)
    members = []
    for number, due in enumerate(installment_dates(draft, account, statement_due_date), start=1):
        status = InstallmentStatus.PAID if number <= info.current else InstallmentStatus.PENDING
        members.append(draft.model_copy(
            deep=True,
            update={
                "date": due,
                "description": f"{root} ({number}/{info.total})",
                "installment": InstallmentInfo(current=number, total=info.total),
                "installment_status": status,
                "group_id": group_id,
            },
        ))

    mode = "precise" if account is not None and account.has_billing_cycle else "fallback"
    logger.debug(
        "installments_expanded",
        group_id=str(group_id),
        total=info.total,
        current=info.current,
        mode=mode,
    )
    return InstallmentGroup(group_id=group_id, total=info.total, members=members)


def expand_installments(
    draft: DraftTransaction,
    account: Optional[Account] = None,
    statement_due_date: Optional[date] = None,
) -> list[DraftTransaction]:
    """
    Expand a draft into its installment series.

    A draft without installment info, or with total <= 1, is not an
    installment and comes back alone and unchanged.
    """
    if draft.installment is None or draft.installment.total <= 1:
        return [draft]
    return build_installment_group(draft, account, statement_due_date).members
