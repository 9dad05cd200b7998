"""
Abstract Storage Interface

DESIGN DECISION: The ledger store is an external collaborator. The engine
only needs four operations (batch create, filtered read, list accounts,
create account) plus an append-only audit log, so that is all the
interface asks for. This allows us to:
1. Swap Google Sheets for a relational database later
2. Use in-memory storage for testing
3. Keep the import flow decoupled from storage implementation

CRITICAL: `create_many` is all-or-nothing. Either every transaction of the
batch is written or none is; an installment group is never left half
persisted.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from finance_engine.models.audit import AuditEvent
from finance_engine.models.transaction import (
    Account,
    AccountProposal,
    DraftTransaction,
    ExistingTransaction,
    TransactionFilters,
)


class TransactionStorageInterface(ABC):
    """
    Abstract interface for the ledger store.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def create_many(
        self,
        transactions: list[DraftTransaction],
        dashboard_id: Optional[str] = None,
    ) -> int:
        """
        Persist a batch of drafts atomically.

        Args:
            transactions: drafts to write (installment groups already expanded)
            dashboard_id: ledger the rows belong to

        Returns:
            Number of rows written

        Raises:
            PersistenceError: If the batch could not be written; nothing
                              from the batch is persisted in that case
        """
        pass

    @abstractmethod
    async def find_many(
        self,
        filters: Optional[TransactionFilters] = None,
    ) -> list[ExistingTransaction]:
        """
        Read persisted transactions.

        Args:
            filters: optional filters (dashboard, date range, direction, ...)

        Returns:
            Matching transactions, oldest first
        """
        pass

    @abstractmethod
    async def find_accounts(self, dashboard_id: Optional[str] = None) -> list[Account]:
        """List the accounts of a dashboard (all accounts when None)."""
        pass

    @abstractmethod
    async def create_account(
        self,
        fields: AccountProposal,
        dashboard_id: Optional[str] = None,
    ) -> Account:
        """
        Create an account from a confirmed proposal.

        Raises:
            StorageError: If the account could not be created
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events of one import action, in chronological order.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class PersistenceError(StorageError):
    """A write failed; the whole batch is treated as not written."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
