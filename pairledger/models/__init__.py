"""
Data Models Package

This package contains all Pydantic models used in PairLedger.
All data flowing through the ledger must conform to these schemas.
"""

from pairledger.models.ledger import (
    BalanceResult,
    Expense,
    Party,
    PeriodOverview,
    PeriodSummary,
    Settlement,
    SettlementDirection,
    SettlementRecommendation,
    SplitPolicy,
    ValidationIssue,
    ValidationResult,
)
from pairledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from pairledger.models.period import (
    period_for_date,
    previous_period,
    validate_period,
)

__all__ = [
    # Ledger models
    "BalanceResult",
    "Expense",
    "Party",
    "PeriodOverview",
    "PeriodSummary",
    "Settlement",
    "SettlementDirection",
    "SettlementRecommendation",
    "SplitPolicy",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Period helpers
    "period_for_date",
    "previous_period",
    "validate_period",
]
