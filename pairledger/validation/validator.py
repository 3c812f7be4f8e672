"""
Two-Stage Expense Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Types, required fields, YYYY-MM period format, positive amount
- Done by the pydantic Expense model before this module ever sees it

STAGE 2 - SEMANTIC VALIDATION:
- Payer must be one of the two parties
- The period must not be settled (locked)
- Suspiciously large amounts
- Future dates
- Expense date outside its period
- Duplicate detection

Errors block the write. Warnings are shown to the user but the
expense is still saved.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for human review.
"""

from datetime import date, timedelta
from typing import Optional

import structlog

from pairledger.config import LedgerSettings, get_settings
from pairledger.formatting import format_currency
from pairledger.models.ledger import (
    Expense,
    Party,
    ValidationIssue,
    ValidationResult,
)
from pairledger.models.period import period_for_date
from pairledger.services.storage import ExpenseStorageInterface, StorageError

logger = structlog.get_logger(__name__)


class LedgerValidator:
    """
    Semantic checks for an expense about to be written.

    Duplicate checks need expense storage; without it they are skipped.
    """

    def __init__(
        self,
        expense_storage: Optional[ExpenseStorageInterface] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = expense_storage
        self._settings = settings or get_settings().ledger

    def _validate_semantic(
        self,
        expense: Expense,
        parties: list[Party],
        period_settled: bool,
        today: date,
    ) -> list[ValidationIssue]:
        issues = []

        party_ids = {party.id for party in parties}
        if expense.payer_id not in party_ids:
            issues.append(ValidationIssue(
                field="payer_id",
                issue_type="unknown_payer",
                message=f"Payer '{expense.payer_id}' is not part of this ledger",
                severity="error",
                suggested_fix="Pick one of: " + ", ".join(sorted(party_ids)),
            ))

        if period_settled:
            issues.append(ValidationIssue(
                field="period",
                issue_type="period_locked",
                message=f"{expense.period} has already been settled",
                severity="error",
                suggested_fix="Unsettle the month first, or log it in the current month",
            ))

        max_amount = self._settings.max_expense_amount
        if expense.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({format_currency(expense.amount, self._settings.currency_symbol)}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if expense.expense_date > max_future_date:
            issues.append(ValidationIssue(
                field="expense_date",
                issue_type="future_date",
                message=f"Expense date ({expense.expense_date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if period_for_date(expense.expense_date) != expense.period:
            issues.append(ValidationIssue(
                field="period",
                issue_type="inconsistent",
                message=(
                    f"Expense dated {expense.expense_date} is filed "
                    f"under {expense.period}"
                ),
                severity="warning",
                suggested_fix="Check the month the expense belongs to",
            ))

        return issues

    async def _check_duplicates(
        self,
        expense: Expense,
    ) -> list[ValidationIssue]:
        """
        Flag an expense with the same amount, payer, date and description
        as one already stored.
        """
        issues = []

        if self._storage is None:
            return issues

        try:
            existing = await self._storage.list_expenses(
                period=expense.period,
                payer_id=expense.payer_id,
            )
        except StorageError as e:
            # Duplicate detection is advisory
            logger.warning("duplicate_check_failed", error=str(e))
            return issues

        for other in existing:
            if other.id == expense.id:
                continue
            if (
                other.amount == expense.amount
                and other.expense_date == expense.expense_date
                and other.description.lower() == expense.description.lower()
            ):
                issues.append(ValidationIssue(
                    field="duplicate",
                    issue_type="potential_duplicate",
                    message=(
                        f"A {format_currency(expense.amount, self._settings.currency_symbol)} "
                        f"expense on {expense.expense_date} may already exist"
                    ),
                    severity="warning",
                    suggested_fix="Please verify this isn't a duplicate entry",
                ))
                break

        return issues

    async def validate(
        self,
        expense: Expense,
        parties: list[Party],
        period_settled: bool = False,
        check_duplicates: bool = True,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run the semantic stage for an already parsed expense.

        Args:
            expense: The expense to validate
            parties: The two people sharing the ledger
            period_settled: Whether the expense's period is locked. ExpenseFlow
                refuses locked periods before validating, so only direct
                callers (forms, imports) need to pass this.
            check_duplicates: Whether to look for duplicates (requires storage)
            today: Reference date for the future-date check

        Returns:
            ValidationResult with all issues found
        """
        all_issues = self._validate_semantic(
            expense,
            parties,
            period_settled,
            today or date.today(),
        )

        if check_duplicates:
            all_issues.extend(await self._check_duplicates(expense))

        warnings = [
            issue.message for issue in all_issues if issue.severity == "warning"
        ]

        return ValidationResult(
            expense_id=expense.id,
            is_valid=not any(issue.severity == "error" for issue in all_issues),
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show to non-technical users.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed!"

        lines = []

        if result.has_errors:
            lines.append("❌ This expense can't be saved:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        if result.is_valid:
            lines.append("")
            lines.append("The expense was saved, but please double-check it.")

        return "\n".join(lines)
