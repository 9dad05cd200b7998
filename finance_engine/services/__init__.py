"""Services package."""

from finance_engine.services.extraction import (
    DocumentExtractor,
    GeminiExtractionService,
    check_document_upload,
)
from finance_engine.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    PersistenceError,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    # Extraction services
    "DocumentExtractor",
    "GeminiExtractionService",
    "check_document_upload",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    "InMemoryAuditStorage",
    "InMemoryTransactionStorage",
    "NotFoundError",
    "PersistenceError",
    "StorageError",
    "TransactionStorageInterface",
]
