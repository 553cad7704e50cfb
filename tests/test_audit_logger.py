"""Tests for the audit logger."""

from budget_engine.audit import AuditLogger, create_correlation_id
from budget_engine.models.audit import AuditEventBuilder, AuditEventType

from conftest import USER_ID


class FailingAuditStorage:
    async def append_event(self, event):
        raise RuntimeError("audit table unavailable")


class TestAuditLogger:

    async def test_local_only(self):
        """Without storage the event is only logged locally."""
        event = AuditEventBuilder.rule_hard_deleted(rule_id="r1", user_id=USER_ID)
        assert await AuditLogger().log(event)

    async def test_storage_failure_does_not_raise(self):
        event = AuditEventBuilder.rule_hard_deleted(rule_id="r1", user_id=USER_ID)
        assert await AuditLogger(FailingAuditStorage()).log(event) is False

    async def test_helpers_never_raise_on_storage_failure(self):
        logger = AuditLogger(FailingAuditStorage())
        await logger.log_rule_created(rule_id="r1", label="Rent", start_month="2026-01", user_id=USER_ID)

    async def test_persisted_with_correlation(self, audit_storage):
        logger = AuditLogger(audit_storage)
        cid = create_correlation_id()

        await logger.log_rule_created(
            rule_id="r1", label="Rent", start_month="2026-01", user_id=USER_ID, correlation_id=cid,
        )
        await logger.log_rule_soft_deleted(
            rule_id="r1", end_month="2026-05", user_id=USER_ID, correlation_id=cid,
        )

        events = await audit_storage.get_events_by_entity("rule", "r1")
        assert [e.event_type for e in events] == [
            AuditEventType.RULE_CREATED,
            AuditEventType.RULE_SOFT_DELETED,
        ]
        assert {e.correlation_id for e in events} == {cid}

    async def test_error_event(self, audit_storage):
        logger = AuditLogger(audit_storage)
        await logger.log_error("StorageError", "disk full", {"operation": "edit_rule"})

        event = (await audit_storage.get_recent_events(limit=1))[0]
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.error_message == "disk full"
