"""
Audit Models for PairLedger

Every action that changes the ledger is logged for audit purposes.
This provides:
1. Traceability of who settled or unsettled a period, and when
2. Debugging information when a balance looks wrong
3. Ability to reconstruct history after an "unsettle"

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from pairledger.models.ledger import utcnow


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Expenses
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    EXPENSE_REJECTED = "expense_rejected"
    PERIOD_LOCKED_REJECTION = "period_locked_rejection"

    # Balance
    BALANCE_COMPUTED = "balance_computed"
    DATA_INTEGRITY_ERROR = "data_integrity_error"

    # Settlements
    SETTLEMENT_RECORDED = "settlement_recorded"
    SETTLEMENT_CONFLICT = "settlement_conflict"
    SETTLEMENT_REMOVED = "settlement_removed"

    # System events
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

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'settlement', 'period')"
    )
    entity_id: Optional[UUID] = None
    period: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one settle action)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "period": self.period,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         period, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            self.period or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_added(expense_id, period, amount, payer_id, correlation_id)
        event = AuditEventBuilder.settlement_recorded(...)
    """

    @staticmethod
    def expense_added(
        expense_id: UUID,
        period: str,
        amount: str,
        payer_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=expense_id,
            period=period,
            correlation_id=correlation_id,
            description=f"Expense added: {amount} paid by {payer_id}",
            details={
                "amount": amount,
                "payer_id": payer_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_updated(
        expense_id: UUID,
        period: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense_id,
            period=period,
            correlation_id=correlation_id,
            description="Expense updated",
            is_user_action=True,
        )

    @staticmethod
    def expense_deleted(
        expense_id: UUID,
        period: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            period=period,
            correlation_id=correlation_id,
            description="Expense deleted",
            is_user_action=True,
        )

    @staticmethod
    def expense_rejected(
        expense_id: UUID,
        period: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=expense_id,
            period=period,
            correlation_id=correlation_id,
            description=f"Expense rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def period_locked_rejection(
        period: str,
        action: str,
        correlation_id: UUID,
        expense_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERIOD_LOCKED_REJECTION,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=expense_id,
            period=period,
            correlation_id=correlation_id,
            description=f"Rejected {action}: period {period} is settled",
            details={"action": action},
            is_user_action=True,
        )

    @staticmethod
    def balance_computed(
        period: str,
        net_balance: str,
        expense_count: int,
        settlement_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="period",
            period=period,
            correlation_id=correlation_id,
            description=f"Balance for {period}: {net_balance}",
            details={
                "net_balance": net_balance,
                "expense_count": expense_count,
                "settlement_count": settlement_count,
            },
        )

    @staticmethod
    def data_integrity_error(
        period: str,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_INTEGRITY_ERROR,
            severity=AuditSeverity.ERROR,
            entity_type="period",
            period=period,
            correlation_id=correlation_id,
            description=f"Balance for {period} could not be computed",
            error_code=error_type,
            error_message=error_message,
        )

    @staticmethod
    def settlement_recorded(
        settlement_id: UUID,
        period: str,
        from_user_id: str,
        to_user_id: str,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_RECORDED,
            entity_type="settlement",
            entity_id=settlement_id,
            period=period,
            correlation_id=correlation_id,
            description=f"Settlement recorded: {from_user_id} paid {to_user_id} {amount}",
            details={
                "from_user_id": from_user_id,
                "to_user_id": to_user_id,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def settlement_conflict(
        period: str,
        existing_settlement_id: Optional[UUID],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_CONFLICT,
            severity=AuditSeverity.WARNING,
            entity_type="settlement",
            entity_id=existing_settlement_id,
            period=period,
            correlation_id=correlation_id,
            description=f"Period {period} was already settled",
        )

    @staticmethod
    def settlement_removed(
        settlement_id: UUID,
        period: Optional[str],
        removed: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_REMOVED,
            entity_type="settlement",
            entity_id=settlement_id,
            period=period,
            correlation_id=correlation_id,
            description=(
                "Settlement removed" if removed
                else "Settlement already removed, nothing to do"
            ),
            details={"removed": removed},
            is_user_action=True,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
