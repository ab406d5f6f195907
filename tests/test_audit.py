"""
Tests for the audit logger.
"""

import pytest

from hero_vault.audit import AuditLogger, create_correlation_id
from hero_vault.models.audit import AuditEventBuilder, AuditEventType, AuditSeverity
from hero_vault.services.storage import InMemoryAuditStorage


class ExplodingAuditStorage(InMemoryAuditStorage):
    """Storage that fails every write."""

    async def append_event(self, event):
        raise RuntimeError("sheet unavailable")


@pytest.mark.asyncio
class TestAuditLogger:
    """Test local logging and persistence."""

    async def test_events_are_persisted(self):
        storage = InMemoryAuditStorage()
        audit_logger = AuditLogger(storage)
        correlation_id = create_correlation_id()

        await audit_logger.log_session_bound("ada@example_com", 0, True, correlation_id)
        await audit_logger.log_action_applied("ada@example_com", "deposit", 1, correlation_id)
        await audit_logger.log_save_failed(
            player_key="ada@example_com",
            version=1,
            error_type="SyncFailureError",
            error_message="network down",
            correlation_id=correlation_id,
        )

        events = await storage.get_events_by_player("ada@example_com")
        assert [e.event_type for e in events] == [
            AuditEventType.SESSION_BOUND,
            AuditEventType.ACTION_APPLIED,
            AuditEventType.SAVE_FAILED,
        ]
        assert all(e.correlation_id == correlation_id for e in events)
        assert events[2].severity == AuditSeverity.ERROR

    async def test_without_storage_logs_locally(self):
        audit_logger = AuditLogger()
        assert await audit_logger.log(
            AuditEventBuilder.signed_out("ada@example_com", create_correlation_id())
        ) is True

    async def test_storage_failure_does_not_raise(self):
        """A broken audit sink never breaks the caller."""
        audit_logger = AuditLogger(ExplodingAuditStorage())
        assert await audit_logger.log(
            AuditEventBuilder.signed_out("ada@example_com", create_correlation_id())
        ) is False

    async def test_debug_events_are_accepted(self):
        storage = InMemoryAuditStorage()
        audit_logger = AuditLogger(storage)

        await audit_logger.log_snapshot_applied("ada@example_com", 1, 2, create_correlation_id())

        recent = await storage.get_recent_events()
        assert recent[0].severity == AuditSeverity.DEBUG

    async def test_log_error(self):
        storage = InMemoryAuditStorage()
        audit_logger = AuditLogger(storage)

        await audit_logger.log_error("SyncFailureError", "boom", details={"operation": "delete"})

        recent = await storage.get_recent_events()
        assert recent[0].event_type == AuditEventType.SYSTEM_ERROR
        assert recent[0].details == {"operation": "delete"}

    def test_correlation_ids_are_unique(self):
        assert create_correlation_id() != create_correlation_id()
