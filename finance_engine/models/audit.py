"""
Audit Models for the Ingestion Engine

Every import step is logged for audit purposes, so a user can reconstruct
how a document turned into ledger rows (or why it did not).

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from finance_engine.models.transaction import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of the import pipeline has its own event type.
    """
    # Upload and extraction
    DOCUMENT_RECEIVED = "document_received"
    DOCUMENT_REJECTED = "document_rejected"
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"

    # Parsing and reconciliation
    PARSE_COMPLETED = "parse_completed"
    DUPLICATES_DETECTED = "duplicates_detected"

    # Caller decisions and persistence
    IMPORT_COMMITTED = "import_committed"
    IMPORT_CANCELLED = "import_cancelled"
    PERSISTENCE_FAILED = "persistence_failed"

    # Accounts
    ACCOUNT_PROPOSED = "account_proposed"
    ACCOUNT_CREATED = "account_created"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant import step creates one of these.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'document', 'import', 'account')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - all events of one import share this
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.document_received(document_id, "application/pdf", 1024, correlation_id)
        event = AuditEventBuilder.import_committed(preview_id, report_counts, correlation_id)
    """

    @staticmethod
    def document_received(
        document_id: UUID,
        mime_type: str,
        size_bytes: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_RECEIVED,
            entity_type="document",
            entity_id=document_id,
            correlation_id=correlation_id,
            description=f"Document received ({mime_type}, {size_bytes} bytes)",
            details={"mime_type": mime_type, "size_bytes": size_bytes},
            is_user_action=True,
        )

    @staticmethod
    def document_rejected(
        document_id: UUID,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="document",
            entity_id=document_id,
            correlation_id=correlation_id,
            description="Document rejected at upload boundary",
            error_message=reason,
        )

    @staticmethod
    def extraction_completed(
        document_id: UUID,
        method: str,
        confidence: float,
        line_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            entity_type="document",
            entity_id=document_id,
            correlation_id=correlation_id,
            description=f"Extraction completed with {confidence:.0%} confidence",
            details={
                "method": method,
                "confidence": confidence,
                "line_count": line_count,
            },
        )

    @staticmethod
    def extraction_failed(
        document_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="document",
            entity_id=document_id,
            correlation_id=correlation_id,
            description="Document extraction failed",
            error_message=error_message,
        )

    @staticmethod
    def parse_completed(
        preview_id: UUID,
        source: str,
        transaction_count: int,
        diagnostic_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        severity = AuditSeverity.WARNING if diagnostic_count else AuditSeverity.INFO
        return AuditEvent(
            event_type=AuditEventType.PARSE_COMPLETED,
            severity=severity,
            entity_type="import",
            entity_id=preview_id,
            correlation_id=correlation_id,
            description=(
                f"Parsed {transaction_count} transactions from {source} "
                f"with {diagnostic_count} diagnostics"
            ),
            details={
                "source": source,
                "transaction_count": transaction_count,
                "diagnostic_count": diagnostic_count,
            },
        )

    @staticmethod
    def duplicates_detected(
        preview_id: UUID,
        duplicates: dict[int, str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATES_DETECTED,
            severity=AuditSeverity.WARNING,
            entity_type="import",
            entity_id=preview_id,
            correlation_id=correlation_id,
            description=f"{len(duplicates)} drafts match existing transactions",
            details={"duplicates": {str(k): v for k, v in duplicates.items()}},
        )

    @staticmethod
    def import_committed(
        preview_id: UUID,
        counts: dict[str, int],
        decision: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMMITTED,
            entity_type="import",
            entity_id=preview_id,
            correlation_id=correlation_id,
            description=f"Import committed: {counts.get('imported', 0)} transactions written",
            details={"counts": counts, "decision": decision},
            is_user_action=True,
        )

    @staticmethod
    def import_cancelled(
        preview_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_CANCELLED,
            entity_type="import",
            entity_id=preview_id,
            correlation_id=correlation_id,
            description="User cancelled the import after duplicate warning",
            is_user_action=True,
        )

    @staticmethod
    def persistence_failed(
        preview_id: UUID,
        batch_size: int,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="import",
            entity_id=preview_id,
            correlation_id=correlation_id,
            description=f"Batch of {batch_size} transactions was not written",
            details={"batch_size": batch_size},
            error_message=error_message,
        )

    @staticmethod
    def account_proposed(
        name: str,
        account_type: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_PROPOSED,
            entity_type="account",
            correlation_id=correlation_id,
            description=f"No matching account, proposed: {name}",
            details={"name": name, "type": account_type},
        )

    @staticmethod
    def account_created(
        account_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            correlation_id=correlation_id,
            description=f"Account created: {name}",
            details={"account_id": account_id, "name": name},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )

