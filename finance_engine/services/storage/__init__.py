"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the ledger
store. Google Sheets is the production backend; the in-memory store backs
tests and embedding callers.
"""

from finance_engine.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    PersistenceError,
    StorageError,
    TransactionStorageInterface,
)
from finance_engine.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
)
from finance_engine.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "PersistenceError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryTransactionStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
]
