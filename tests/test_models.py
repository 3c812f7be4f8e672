"""
Tests for PairLedger models

Test strategy:
1. Unit tests for individual components (models, engine, validator)
2. Flow tests on in-memory storage
3. No real API calls in tests (fake worksheets for Google Sheets)
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from pairledger.exceptions import NonPositiveAmountError
from pairledger.models.ledger import (
    Expense,
    Party,
    Settlement,
    SettlementDirection,
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


class TestExpenseModel:
    """Tests for the Expense model."""

    def test_expense_creation(self):
        """Test Expense creation with defaults."""
        expense = Expense(
            amount=Decimal("12.50"),
            payer_id="alice",
            period="2024-03",
            expense_date=date(2024, 3, 4),
        )
        assert expense.amount == Decimal("12.50")
        assert expense.split_policy == SplitPolicy.EQUAL
        assert expense.category == "Other"
        assert expense.id is not None

    def test_expense_strips_whitespace(self):
        """Test that whitespace is stripped from text fields."""
        expense = Expense(
            amount=Decimal("1.00"),
            payer_id="  alice ",
            category=" Groceries ",
            period="2024-03",
            expense_date=date(2024, 3, 4),
        )
        assert expense.payer_id == "alice"
        assert expense.category == "Groceries"

    @pytest.mark.parametrize("amount", ["0", "-0.01", "-100"])
    def test_expense_rejects_non_positive_amount(self, amount):
        """Non-positive amounts raise the typed error, not a ValidationError."""
        with pytest.raises(NonPositiveAmountError) as exc_info:
            Expense(
                amount=Decimal(amount),
                payer_id="alice",
                period="2024-03",
                expense_date=date(2024, 3, 4),
            )
        assert exc_info.value.record_type == "expense"
        assert exc_info.value.retryable is False

    def test_expense_rejects_fractional_cents(self):
        """Test that more than two decimal places are rejected."""
        with pytest.raises(ValidationError):
            Expense(
                amount=Decimal("1.005"),
                payer_id="alice",
                period="2024-03",
                expense_date=date(2024, 3, 4),
            )

    @pytest.mark.parametrize("period", ["2024-3", "2024-13", "24-03", "March"])
    def test_expense_rejects_bad_period(self, period):
        """Test that the period must be YYYY-MM."""
        with pytest.raises(ValidationError):
            Expense(
                amount=Decimal("1.00"),
                payer_id="alice",
                period=period,
                expense_date=date(2024, 3, 4),
            )

    def test_split_policy_values(self):
        """Test split policy string values."""
        assert SplitPolicy("50/50") == SplitPolicy.EQUAL
        assert SplitPolicy("100%") == SplitPolicy.PAYER_OWED_FULL


class TestSettlementModel:
    """Tests for Settlement and SettlementDirection."""

    def test_settlement_is_frozen(self):
        """Settlements are never edited once built."""
        settlement = Settlement(
            from_user_id="bob",
            to_user_id="alice",
            amount=Decimal("10.00"),
            period="2024-03",
        )
        with pytest.raises(ValidationError):
            settlement.amount = Decimal("5.00")

    def test_settlement_rejects_same_party(self):
        """Test that a party cannot settle with themselves."""
        with pytest.raises(ValidationError):
            Settlement(
                from_user_id="alice",
                to_user_id="alice",
                amount=Decimal("10.00"),
                period="2024-03",
            )

    def test_settlement_rejects_zero_amount(self):
        with pytest.raises(NonPositiveAmountError):
            Settlement(
                from_user_id="bob",
                to_user_id="alice",
                amount=Decimal("0"),
                period="2024-03",
            )

    def test_settlement_direction(self):
        """Test the direction property."""
        settlement = Settlement(
            from_user_id="bob",
            to_user_id="alice",
            amount=Decimal("10.00"),
            period="2024-03",
        )
        assert settlement.direction == SettlementDirection(
            from_user_id="bob", to_user_id="alice"
        )

    def test_naive_recorded_at_treated_as_utc(self):
        settlement = Settlement(
            from_user_id="bob",
            to_user_id="alice",
            amount=Decimal("10.00"),
            period="2024-03",
            recorded_at=datetime(2024, 3, 20, 12, 0),
        )
        assert settlement.recorded_at == datetime(2024, 3, 20, 12, 0, tzinfo=timezone.utc)

    def test_aware_recorded_at_kept(self):
        plus_one = timezone(timedelta(hours=1))
        settlement = Settlement(
            from_user_id="bob",
            to_user_id="alice",
            amount=Decimal("10.00"),
            period="2024-03",
            recorded_at=datetime(2024, 3, 20, 12, 0, tzinfo=plus_one),
        )
        assert settlement.recorded_at.utcoffset() == timedelta(hours=1)

    def test_direction_rejects_same_party(self):
        with pytest.raises(ValidationError):
            SettlementDirection(from_user_id="bob", to_user_id="bob")

    def test_party_requires_id(self):
        with pytest.raises(ValidationError):
            Party(id="", name="Nobody")


class TestPeriodHelpers:
    """Tests for YYYY-MM period helpers."""

    def test_period_for_date(self):
        assert period_for_date(date(2024, 3, 31)) == "2024-03"

    def test_previous_period(self):
        assert previous_period("2024-03") == "2024-02"

    def test_previous_period_wraps_year(self):
        assert previous_period("2024-01") == "2023-12"

    def test_validate_period_rejects_garbage(self):
        with pytest.raises(ValueError):
            validate_period("2024-00")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.SETTLEMENT_RECORDED,
            description="Settlement recorded",
        )
        assert event.event_type == AuditEventType.SETTLEMENT_RECORDED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None
        assert event.timestamp is not None

    def test_audit_event_to_sheets_row(self):
        """Test conversion to a Google Sheets row."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            period="2024-03",
            correlation_id=correlation_id,
            description="Expense added",
            details={"amount": "£10.00"},
            is_user_action=True,
        )
        row = event.to_sheets_row()

        assert len(row) == 12
        assert row[2] == "expense_added"
        assert row[6] == "2024-03"
        assert row[7] == str(correlation_id)
        assert row[9] == '{"amount": "\\u00a310.00"}'
        assert row[11] == "True"

    def test_audit_event_builder_settlement_recorded(self):
        """Test AuditEventBuilder.settlement_recorded."""
        settlement_id = uuid4()
        correlation_id = uuid4()

        event = AuditEventBuilder.settlement_recorded(
            settlement_id=settlement_id,
            period="2024-03",
            from_user_id="bob",
            to_user_id="alice",
            amount="£10.00",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.SETTLEMENT_RECORDED
        assert event.entity_id == settlement_id
        assert event.period == "2024-03"
        assert event.details["from_user_id"] == "bob"
        assert event.is_user_action is True

    def test_audit_event_builder_settlement_removed_idempotent(self):
        """A no-op removal is still audited, with removed=False."""
        event = AuditEventBuilder.settlement_removed(
            settlement_id=uuid4(),
            period=None,
            removed=False,
            correlation_id=uuid4(),
        )
        assert event.details == {"removed": False}
        assert "already removed" in event.description

    def test_audit_event_builder_data_integrity_error(self):
        event = AuditEventBuilder.data_integrity_error(
            period="2024-03",
            error_type="UnknownPayerError",
            error_message="Unknown party id(s) ['carol']",
            correlation_id=uuid4(),
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_code == "UnknownPayerError"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            expense_id=uuid4(),
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="payer_id",
                    issue_type="unknown_payer",
                    message="Unknown payer",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            expense_id=uuid4(),
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="expense_date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0

    def test_validation_issue_rejects_unknown_severity(self):
        with pytest.raises(ValidationError):
            ValidationIssue(
                field="amount",
                issue_type="x",
                message="x",
                severity="fatal",
            )


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
