"""
Data Models Package

This package contains all Pydantic models used by the ingestion engine.
All data flowing through the engine must conform to these schemas.
"""

from finance_engine.models.transaction import (
    Account,
    AccountProposal,
    AccountStatus,
    AccountType,
    Diagnostic,
    Direction,
    DraftTransaction,
    DuplicateDecision,
    ExistingTransaction,
    ExtractedLine,
    ExtractionMethod,
    ExtractionResult,
    ImportPreview,
    ImportReport,
    ImportSource,
    ImportSummary,
    InstallmentGroup,
    InstallmentInfo,
    InstallmentStatus,
    MonthSummary,
    NormalizedExtraction,
    ParseResult,
    RecurringExpense,
    SkippedPayment,
    StatementInfo,
    TransactionFilters,
    TransactionItem,
)
from finance_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "Account",
    "AccountProposal",
    "AccountStatus",
    "AccountType",
    "Diagnostic",
    "Direction",
    "DraftTransaction",
    "DuplicateDecision",
    "ExistingTransaction",
    "ExtractedLine",
    "ExtractionMethod",
    "ExtractionResult",
    "ImportPreview",
    "ImportReport",
    "ImportSource",
    "ImportSummary",
    "InstallmentGroup",
    "InstallmentInfo",
    "InstallmentStatus",
    "MonthSummary",
    "NormalizedExtraction",
    "ParseResult",
    "RecurringExpense",
    "SkippedPayment",
    "StatementInfo",
    "TransactionFilters",
    "TransactionItem",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
