"""
Audit Logger

DESIGN DECISION: Every ledger change is logged.
This provides:
1. A record of who settled or unsettled a period
2. Debugging capability when a balance looks wrong
3. History that survives deleted settlement rows

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from pairledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from pairledger.services.storage import AuditStorageInterface


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
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("pairledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_expense_added(
        self,
        expense_id: UUID,
        period: str,
        amount: str,
        payer_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.expense_added(
            expense_id=expense_id,
            period=period,
            amount=amount,
            payer_id=payer_id,
            correlation_id=correlation_id,
        ))

    async def log_expense_updated(
        self,
        expense_id: UUID,
        period: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.expense_updated(
            expense_id=expense_id,
            period=period,
            correlation_id=correlation_id,
        ))

    async def log_expense_deleted(
        self,
        expense_id: UUID,
        period: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(
            expense_id=expense_id,
            period=period,
            correlation_id=correlation_id,
        ))

    async def log_expense_rejected(
        self,
        expense_id: UUID,
        period: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log an expense that failed validation."""
        await self.log(AuditEventBuilder.expense_rejected(
            expense_id=expense_id,
            period=period,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_period_locked(
        self,
        period: str,
        action: str,
        correlation_id: UUID,
        expense_id: Optional[UUID] = None,
    ) -> None:
        """Log an expense change refused because the period is settled."""
        await self.log(AuditEventBuilder.period_locked_rejection(
            period=period,
            action=action,
            correlation_id=correlation_id,
            expense_id=expense_id,
        ))

    async def log_balance_computed(
        self,
        period: str,
        net_balance: str,
        expense_count: int,
        settlement_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.balance_computed(
            period=period,
            net_balance=net_balance,
            expense_count=expense_count,
            settlement_count=settlement_count,
            correlation_id=correlation_id,
        ))

    async def log_data_integrity_error(
        self,
        period: str,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a balance computation rejected because of bad data."""
        await self.log(AuditEventBuilder.data_integrity_error(
            period=period,
            error_type=error_type,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_settlement_recorded(
        self,
        settlement_id: UUID,
        period: str,
        from_user_id: str,
        to_user_id: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.settlement_recorded(
            settlement_id=settlement_id,
            period=period,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_settlement_conflict(
        self,
        period: str,
        existing_settlement_id: Optional[UUID],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.settlement_conflict(
            period=period,
            existing_settlement_id=existing_settlement_id,
            correlation_id=correlation_id,
        ))

    async def log_settlement_removed(
        self,
        settlement_id: UUID,
        period: Optional[str],
        removed: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.settlement_removed(
            settlement_id=settlement_id,
            period=period,
            removed=removed,
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

    Use this at the start of a new user action (e.g., marking a month settled).
    Pass it through all subsequent operations.
    """
    return uuid4()
