"""
In-Memory Storage

A process-local ledger used by tests and by callers that persist elsewhere.
Batches are validated completely before anything is appended, which gives
the same all-or-nothing guarantee as the real backends.
"""

from typing import Optional
from uuid import UUID, uuid4

from pydantic import ValidationError

from finance_engine.models.audit import AuditEvent
from finance_engine.models.transaction import (
    Account,
    AccountProposal,
    DraftTransaction,
    ExistingTransaction,
    TransactionFilters,
    utc_now,
)
from finance_engine.services.storage.interface import (
    AuditStorageInterface,
    PersistenceError,
    TransactionStorageInterface,
)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Transactions and accounts held in lists."""

    def __init__(
        self,
        transactions: Optional[list[ExistingTransaction]] = None,
        accounts: Optional[list[Account]] = None,
    ):
        self._transactions: list[ExistingTransaction] = list(transactions or [])
        self._accounts: list[Account] = list(accounts or [])

    @property
    def transactions(self) -> list[ExistingTransaction]:
        return list(self._transactions)

    @property
    def accounts(self) -> list[Account]:
        return list(self._accounts)

    async def create_many(
        self,
        transactions: list[DraftTransaction],
        dashboard_id: Optional[str] = None,
    ) -> int:
        now = utc_now()
        try:
            rows = [
                ExistingTransaction(
                    **draft.model_dump(),
                    id=str(uuid4()),
                    dashboard_id=dashboard_id,
                    installment_group_id=str(draft.group_id) if draft.group_id else None,
                    created_at=now,
                    updated_at=now,
                )
                for draft in transactions
            ]
        except ValidationError as e:
            raise PersistenceError(f"Batch rejected, nothing written: {e}") from e

        self._transactions.extend(rows)
        return len(rows)

    async def find_many(
        self,
        filters: Optional[TransactionFilters] = None,
    ) -> list[ExistingTransaction]:
        filters = filters or TransactionFilters()
        found = [tx for tx in self._transactions if filters.matches(tx)]
        found.sort(key=lambda tx: tx.date)
        return found

    async def find_accounts(self, dashboard_id: Optional[str] = None) -> list[Account]:
        if dashboard_id is None:
            return list(self._accounts)
        return [a for a in self._accounts if a.dashboard_id in (None, dashboard_id)]

    async def create_account(
        self,
        fields: AccountProposal,
        dashboard_id: Optional[str] = None,
    ) -> Account:
        account = Account(
            id=str(uuid4()),
            dashboard_id=dashboard_id,
            **fields.model_dump(),
        )
        self._accounts.append(account)
        return account


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events
