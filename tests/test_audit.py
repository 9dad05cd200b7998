"""Tests for audit events and the audit logger."""

import asyncio
import json
from uuid import uuid4

from finance_engine.audit import AuditLogger, create_correlation_id
from finance_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finance_engine.services.storage import AuditStorageInterface, InMemoryAuditStorage


class BrokenAuditStorage(AuditStorageInterface):
    async def append_event(self, event):
        raise RuntimeError("sheet unavailable")

    async def get_events_by_correlation_id(self, correlation_id):
        return []


class TestAuditModels:
    """Tests for audit-related models."""

    def test_event_creation(self):
        """Test AuditEvent creation with defaults."""
        event = AuditEvent(
            event_type=AuditEventType.DOCUMENT_RECEIVED,
            description="Document received",
        )
        assert event.event_id is not None
        assert event.severity == AuditSeverity.INFO
        assert event.is_user_action is False

    def test_to_sheets_row(self):
        """Rows have one column per audit field, details as JSON."""
        correlation_id = uuid4()
        event = AuditEventBuilder.duplicates_detected(uuid4(), {0: "tx-1"}, correlation_id)

        row = event.to_sheets_row()

        assert len(row) == 11
        assert row[2] == "duplicates_detected"
        assert row[3] == "warning"
        assert row[6] == str(correlation_id)
        assert json.loads(row[8]) == {"duplicates": {"0": "tx-1"}}

    def test_parse_completed_severity(self):
        """Parses with diagnostics are warnings."""
        clean = AuditEventBuilder.parse_completed(uuid4(), "flat_file", 3, 0, uuid4())
        noisy = AuditEventBuilder.parse_completed(uuid4(), "flat_file", 3, 2, uuid4())
        assert clean.severity == AuditSeverity.INFO
        assert noisy.severity == AuditSeverity.WARNING

    def test_persistence_failed(self):
        """Failed batches record their size and the error."""
        event = AuditEventBuilder.persistence_failed(uuid4(), 12, "quota exceeded", uuid4())
        assert event.severity == AuditSeverity.ERROR
        assert event.details == {"batch_size": 12}
        assert event.error_message == "quota exceeded"

    def test_import_committed_is_user_action(self):
        """Commits are user decisions."""
        event = AuditEventBuilder.import_committed(uuid4(), {"imported": 4}, "discard", uuid4())
        assert event.is_user_action
        assert "4 transactions" in event.description


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_events_reach_storage(self):
        """Events are appended and retrievable by correlation id."""
        storage = InMemoryAuditStorage()
        audit = AuditLogger(storage)
        correlation_id = create_correlation_id()

        async def run():
            await audit.log_document_received(uuid4(), "application/pdf", 1024, correlation_id)
            await audit.log_import_cancelled(uuid4(), correlation_id)
            await audit.log_error("Boom", "unrelated")
            return await storage.get_events_by_correlation_id(correlation_id)

        events = asyncio.run(run())

        assert [e.event_type for e in events] == [
            AuditEventType.DOCUMENT_RECEIVED,
            AuditEventType.IMPORT_CANCELLED,
        ]
        assert len(storage.events) == 3

    def test_without_storage(self):
        """Local-only logging always succeeds."""
        event = AuditEventBuilder.import_cancelled(uuid4(), uuid4())
        assert asyncio.run(AuditLogger().log(event)) is True

    def test_storage_failure_is_swallowed(self):
        """A broken audit store never breaks the caller."""
        event = AuditEventBuilder.import_cancelled(uuid4(), uuid4())
        assert asyncio.run(AuditLogger(BrokenAuditStorage()).log(event)) is False
