"""
Audit Logger

DESIGN DECISION: Every step of an import is logged. This provides:
1. Traceability from a document to the rows it produced
2. Debugging capability when an extraction or batch write fails
3. A history the user can review

The audit logger:
- Is async to not block the import flow
- Gracefully handles failures (a broken audit store never fails an import)
- Supports correlation IDs so all events of one import can be traced
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_engine.models.audit import AuditEvent, AuditEventBuilder
from finance_engine.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit store, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("finance_engine.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_document_received(
        self,
        document_id: UUID,
        mime_type: str,
        size_bytes: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.document_received(
            document_id=document_id,
            mime_type=mime_type,
            size_bytes=size_bytes,
            correlation_id=correlation_id,
        ))

    async def log_document_rejected(
        self,
        document_id: UUID,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.document_rejected(
            document_id=document_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_extraction_completed(
        self,
        document_id: UUID,
        method: str,
        confidence: float,
        line_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_completed(
            document_id=document_id,
            method=method,
            confidence=confidence,
            line_count=line_count,
            correlation_id=correlation_id,
        ))

    async def log_extraction_failed(
        self,
        document_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_failed(
            document_id=document_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_parse_completed(
        self,
        preview_id: UUID,
        source: str,
        transaction_count: int,
        diagnostic_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.parse_completed(
            preview_id=preview_id,
            source=source,
            transaction_count=transaction_count,
            diagnostic_count=diagnostic_count,
            correlation_id=correlation_id,
        ))

    async def log_duplicates_detected(
        self,
        preview_id: UUID,
        duplicates: dict[int, str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.duplicates_detected(
            preview_id=preview_id,
            duplicates=duplicates,
            correlation_id=correlation_id,
        ))

    async def log_import_committed(
        self,
        preview_id: UUID,
        counts: dict[str, int],
        decision: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.import_committed(
            preview_id=preview_id,
            counts=counts,
            decision=decision,
            correlation_id=correlation_id,
        ))

    async def log_import_cancelled(
        self,
        preview_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.import_cancelled(
            preview_id=preview_id,
            correlation_id=correlation_id,
        ))

    async def log_persistence_failed(
        self,
        preview_id: UUID,
        batch_size: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.persistence_failed(
            preview_id=preview_id,
            batch_size=batch_size,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_account_proposed(
        self,
        name: str,
        account_type: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.account_proposed(
            name=name,
            account_type=account_type,
            correlation_id=correlation_id,
        ))

    async def log_account_created(
        self,
        account_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.account_created(
            account_id=account_id,
            name=name,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new import and pass it through all
    subsequent operations.
    """
    return uuid4()
