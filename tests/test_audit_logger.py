"""
Tests for the audit logger.
"""

import pytest
from uuid import uuid4

from pairledger.audit import AuditLogger, create_correlation_id
from pairledger.models.audit import AuditEventBuilder, AuditEventType
from pairledger.services.storage import InMemoryAuditStorage


class FailingAuditStorage(InMemoryAuditStorage):

    async def append_event(self, event):
        raise RuntimeError("sheet unavailable")


class TestAuditLogger:
    """Tests for AuditLogger."""

    @pytest.mark.asyncio
    async def test_persists_to_storage(self, audit_logger, audit_storage):
        correlation_id = create_correlation_id()

        await audit_logger.log_settlement_recorded(
            settlement_id=uuid4(),
            period="2024-03",
            from_user_id="bob",
            to_user_id="alice",
            amount="£10.00",
            correlation_id=correlation_id,
        )

        events = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert [e.event_type for e in events] == [AuditEventType.SETTLEMENT_RECORDED]

    @pytest.mark.asyncio
    async def test_local_only_logging(self):
        logger = AuditLogger()

        await logger.log_external_service_error(
            service="google_sheets",
            error_message="quota exceeded",
            correlation_id=create_correlation_id(),
        )

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_raise(self):
        logger = AuditLogger(FailingAuditStorage())

        await logger.log_period_locked(
            period="2024-03",
            action="add",
            correlation_id=create_correlation_id(),
        )

    @pytest.mark.asyncio
    async def test_log_returns_storage_result(self, audit_logger):
        event = AuditEventBuilder.expense_deleted(
            expense_id=uuid4(),
            period="2024-03",
            correlation_id=uuid4(),
        )

        assert await audit_logger.log(event) is True
        assert await AuditLogger(FailingAuditStorage()).log(event) is False

    def test_correlation_ids_are_unique(self):
        assert create_correlation_id() != create_correlation_id()
