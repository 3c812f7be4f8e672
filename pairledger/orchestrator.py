"""
Main Orchestrator for PairLedger

This module ties together all the components and defines the
end-to-end flows for:
1. Expenses (validate → lock check → save → audit)
2. Settlement (snapshot → balance → recommend → record → audit)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The balance engine only ever sees a complete, fresh period snapshot
- No expense changes in a settled period
- Settlements are appended or removed, never edited
- Every step is audited

The engine itself stays pure. Everything that talks to storage lives here.
"""

from typing import Optional
from uuid import UUID

import structlog

from pairledger.audit import AuditLogger, create_correlation_id
from pairledger.engine import SettlementRecommender, calculate_balance, resolve_parties
from pairledger.exceptions import LedgerError, NothingToSettleError, PeriodLockedError
from pairledger.formatting import format_currency
from pairledger.models.ledger import (
    BalanceResult,
    Expense,
    Party,
    PeriodOverview,
    Settlement,
    ValidationResult,
)
from pairledger.models.period import previous_period, validate_period
from pairledger.queries import build_period_summary
from pairledger.services.storage import (
    AuditStorageInterface,
    DuplicateSettlementError,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsPartyStorage,
    GoogleSheetsSettlementStorage,
    InMemoryExpenseStorage,
    InMemoryPartyStorage,
    InMemorySettlementStorage,
    NotFoundError,
    PartyStorageInterface,
    SettlementStorageInterface,
    StorageError,
)
from pairledger.validation import LedgerValidator

logger = structlog.get_logger(__name__)


class PeriodDataReader:
    """
    Read-through cache for one flow call.

    Each period's expenses and settlements, and the party list, are
    fetched at most once. A new reader is created per call and thrown
    away afterwards, so nothing stale survives between calls.
    """

    def __init__(
        self,
        expense_storage: ExpenseStorageInterface,
        settlement_storage: SettlementStorageInterface,
        party_storage: PartyStorageInterface,
    ):
        self._expense_storage = expense_storage
        self._settlement_storage = settlement_storage
        self._party_storage = party_storage
        self._expenses: dict[str, list[Expense]] = {}
        self._settlements: dict[str, list[Settlement]] = {}
        self._parties: Optional[list[Party]] = None

    async def expenses(self, period: str) -> list[Expense]:
        if period not in self._expenses:
            self._expenses[period] = await self._expense_storage.list_expenses(
                period=period
            )
        return self._expenses[period]

    async def settlements(self, period: str) -> list[Settlement]:
        """Settlements of a period, newest first."""
        if period not in self._settlements:
            self._settlements[period] = (
                await self._settlement_storage.list_settlements(period)
            )
        return self._settlements[period]

    async def parties(self) -> list[Party]:
        if self._parties is None:
            self._parties = await self._party_storage.list_parties()
        return self._parties

    async def is_settled(self, period: str) -> bool:
        return bool(await self.settlements(period))


class ExpenseFlow:
    """
    Orchestrates expense changes.

    Flow:
    1. Lock check → a settled period refuses changes (PeriodLockedError)
    2. Validate → semantic checks, errors block the write
    3. Save → persist to storage
    4. Audit
    """

    def __init__(
        self,
        expense_storage: ExpenseStorageInterface,
        settlement_storage: SettlementStorageInterface,
        party_storage: PartyStorageInterface,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._expense_storage = expense_storage
        self._settlement_storage = settlement_storage
        self._party_storage = party_storage
        self._validator = validator or LedgerValidator(expense_storage)
        self._audit_logger = audit_logger

    def _reader(self) -> PeriodDataReader:
        return PeriodDataReader(
            self._expense_storage,
            self._settlement_storage,
            self._party_storage,
        )

    async def _ensure_unlocked(
        self,
        reader: PeriodDataReader,
        period: str,
        action: str,
        correlation_id: UUID,
        expense_id: Optional[UUID] = None,
    ) -> None:
        if await reader.is_settled(period):
            if self._audit_logger:
                await self._audit_logger.log_period_locked(
                    period=period,
                    action=action,
                    correlation_id=correlation_id,
                    expense_id=expense_id,
                )
            raise PeriodLockedError(period)

    async def _validate(
        self,
        reader: PeriodDataReader,
        expense: Expense,
        correlation_id: UUID,
    ) -> ValidationResult:
        # The lock is enforced by _ensure_unlocked before validation runs
        validation = await self._validator.validate(expense, await reader.parties())

        if not validation.is_valid and self._audit_logger:
            await self._audit_logger.log_expense_rejected(
                expense_id=expense.id,
                period=expense.period,
                issues=[issue.model_dump() for issue in validation.issues],
                correlation_id=correlation_id,
            )

        return validation

    async def add_expense(
        self,
        expense: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> ValidationResult:
        """
        Validate and save a new expense.

        Returns:
            The validation result. The expense was saved iff is_valid.

        Raises:
            PeriodLockedError: The expense's period is settled
        """
        correlation_id = correlation_id or create_correlation_id()
        reader = self._reader()

        await self._ensure_unlocked(
            reader, expense.period, "add", correlation_id, expense.id
        )

        validation = await self._validate(reader, expense, correlation_id)
        if not validation.is_valid:
            return validation

        await self._expense_storage.add_expense(expense)

        if self._audit_logger:
            await self._audit_logger.log_expense_added(
                expense_id=expense.id,
                period=expense.period,
                amount=format_currency(expense.amount),
                payer_id=expense.payer_id,
                correlation_id=correlation_id,
            )

        return validation

    async def update_expense(
        self,
        expense: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> ValidationResult:
        """
        Replace a stored expense.

        Both the old and the new period must be open: moving an expense
        into or out of a settled month would change a closed balance.

        Raises:
            NotFoundError: No expense with this ID
            PeriodLockedError: The old or new period is settled
        """
        correlation_id = correlation_id or create_correlation_id()
        reader = self._reader()

        existing = await self._expense_storage.get_expense(expense.id)
        if existing is None:
            raise NotFoundError(f"Expense not found: {expense.id}")

        for period in dict.fromkeys((existing.period, expense.period)):
            await self._ensure_unlocked(
                reader, period, "update", correlation_id, expense.id
            )

        validation = await self._validate(reader, expense, correlation_id)
        if not validation.is_valid:
            return validation

        await self._expense_storage.update_expense(expense)

        if self._audit_logger:
            await self._audit_logger.log_expense_updated(
                expense_id=expense.id,
                period=expense.period,
                correlation_id=correlation_id,
            )

        return validation

    async def delete_expense(
        self,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete an expense.

        Returns:
            True if deleted, False if it did not exist

        Raises:
            PeriodLockedError: The expense's period is settled
        """
        correlation_id = correlation_id or create_correlation_id()

        existing = await self._expense_storage.get_expense(expense_id)
        if existing is None:
            return False

        await self._ensure_unlocked(
            self._reader(), existing.period, "delete", correlation_id, expense_id
        )

        deleted = await self._expense_storage.delete_expense(expense_id)

        if deleted and self._audit_logger:
            await self._audit_logger.log_expense_deleted(
                expense_id=expense_id,
                period=existing.period,
                correlation_id=correlation_id,
            )

        return deleted


class SettlementFlow:
    """
    Orchestrates balance computation and the "close the period" transition.

    Every call fetches a fresh snapshot of the period. Balances are never
    cached across calls.
    """

    def __init__(
        self,
        expense_storage: ExpenseStorageInterface,
        settlement_storage: SettlementStorageInterface,
        party_storage: PartyStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        recommender: Optional[SettlementRecommender] = None,
    ):
        self._expense_storage = expense_storage
        self._settlement_storage = settlement_storage
        self._party_storage = party_storage
        self._audit_logger = audit_logger
        self._recommender = recommender or SettlementRecommender()

    def _reader(self) -> PeriodDataReader:
        return PeriodDataReader(
            self._expense_storage,
            self._settlement_storage,
            self._party_storage,
        )

    async def _compute(
        self,
        reader: PeriodDataReader,
        period: str,
        current_party_id: Optional[str],
        correlation_id: UUID,
    ) -> tuple[Party, Party, BalanceResult]:
        validate_period(period)

        try:
            parties = await reader.parties()
            expenses = await reader.expenses(period)
            settlements = await reader.settlements(period)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="storage",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        try:
            party_a, party_b = resolve_parties(parties, current_party_id)
            balance = calculate_balance(
                expenses,
                settlements,
                party_a.id,
                party_b.id,
                period=period,
            )
        except LedgerError as e:
            if self._audit_logger:
                await self._audit_logger.log_data_integrity_error(
                    period=period,
                    error_type=type(e).__name__,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_balance_computed(
                period=period,
                net_balance=str(balance.net_balance),
                expense_count=balance.expense_count,
                settlement_count=balance.settlement_count,
                correlation_id=correlation_id,
            )

        return party_a, party_b, balance

    async def compute_balance(
        self,
        period: str,
        current_party_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> BalanceResult:
        """
        Balance of a period from the point of view of current_party_id
        (positive: the other party owes them).

        Raises:
            LedgerError: The period's data is inconsistent. Nothing is
                shown rather than a wrong number.
        """
        correlation_id = correlation_id or create_correlation_id()
        _, _, balance = await self._compute(
            self._reader(), period, current_party_id, correlation_id
        )
        return balance

    async def get_period_overview(
        self,
        period: str,
        current_party_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PeriodOverview:
        """Everything needed to show one period's settlement state."""
        correlation_id = correlation_id or create_correlation_id()
        reader = self._reader()

        party_a, party_b, balance = await self._compute(
            reader, period, current_party_id, correlation_id
        )
        settlements = await reader.settlements(period)

        previous = previous_period(period)
        previous_unsettled = (
            bool(await reader.expenses(previous))
            and not await reader.is_settled(previous)
        )

        return PeriodOverview(
            period=period,
            party_a=party_a,
            party_b=party_b,
            balance=balance,
            recommendation=self._recommender.recommend(balance),
            is_settled=bool(settlements),
            settlements=settlements,
            summary=build_period_summary(period, await reader.expenses(period)),
            previous_period_unsettled=previous_unsettled,
        )

    async def settle_period(
        self,
        period: str,
        current_party_id: Optional[str] = None,
        recorded_by: Optional[str] = None,
        notes: Optional[str] = None,
        allow_resettle: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> Settlement:
        """
        Record the recommended settlement for a period ("Mark as settled").

        The balance is recomputed from a fresh snapshot right before
        recording; the amount recorded is the rounded-up recommendation.

        Raises:
            DuplicateSettlementError: The period is already settled
                (retryable: re-fetch and show the settled state)
            NothingToSettleError: The balance is within the threshold
            LedgerError: The period's data is inconsistent
        """
        correlation_id = correlation_id or create_correlation_id()
        reader = self._reader()

        existing = await reader.settlements(period)
        if existing and not allow_resettle:
            await self._log_conflict(period, existing[0].id, correlation_id)
            raise DuplicateSettlementError(period, existing[0].id)

        _, _, balance = await self._compute(
            reader, period, current_party_id, correlation_id
        )
        recommendation = self._recommender.recommend(balance)
        if not recommendation.needs_settlement:
            raise NothingToSettleError(period)

        try:
            settlement_id = await self._settlement_storage.record_settlement(
                period=period,
                direction=recommendation.direction,
                amount=recommendation.amount,
                notes=notes,
                recorded_by=recorded_by,
                allow_resettle=allow_resettle,
            )
        except DuplicateSettlementError as e:
            await self._log_conflict(period, e.existing_settlement_id, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_settlement_recorded(
                settlement_id=settlement_id,
                period=period,
                from_user_id=recommendation.direction.from_user_id,
                to_user_id=recommendation.direction.to_user_id,
                amount=format_currency(recommendation.amount),
                correlation_id=correlation_id,
            )

        settlement = await self._settlement_storage.get_settlement(settlement_id)
        if settlement is None:
            raise NotFoundError(f"Settlement not found after recording: {settlement_id}")
        return settlement

    async def _log_conflict(
        self,
        period: str,
        existing_settlement_id: Optional[UUID],
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_settlement_conflict(
                period=period,
                existing_settlement_id=existing_settlement_id,
                correlation_id=correlation_id,
            )

    async def remove_settlement(
        self,
        settlement_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Remove a settlement row, re-opening its period.

        Idempotent: returns False if the settlement is already gone.
        """
        correlation_id = correlation_id or create_correlation_id()

        settlement = await self._settlement_storage.get_settlement(settlement_id)
        removed = await self._settlement_storage.remove_settlement(settlement_id)

        if self._audit_logger:
            await self._audit_logger.log_settlement_removed(
                settlement_id=settlement_id,
                period=settlement.period if settlement else None,
                removed=removed,
                correlation_id=correlation_id,
            )

        return removed

    async def unsettle_period(
        self,
        period: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Remove the most recent settlement of a period ("Unsettle").

        Returns:
            True if a settlement was removed, False if there was none
        """
        validate_period(period)
        latest = await self._settlement_storage.get_latest_settlement(period)
        if latest is None:
            return False
        return await self.remove_settlement(latest.id, correlation_id)


def create_app_components(
    use_storage: bool = True,
    parties: Optional[list[Party]] = None,
) -> tuple[ExpenseFlow, SettlementFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.
        parties: The two parties for in-memory storage

    Returns:
        (expense_flow, settlement_flow, sheets_client)
    """
    sheets_client = None
    audit_storage: Optional[AuditStorageInterface] = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            expense_storage = GoogleSheetsExpenseStorage(sheets_client)
            settlement_storage = GoogleSheetsSettlementStorage(sheets_client)
            party_storage = GoogleSheetsPartyStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            audit_storage = None

    if audit_storage is None:
        expense_storage = InMemoryExpenseStorage()
        settlement_storage = InMemorySettlementStorage()
        party_storage = InMemoryPartyStorage(parties)

    # Local-only logging when there is no audit storage
    audit_logger = AuditLogger(audit_storage)

    expense_flow = ExpenseFlow(
        expense_storage=expense_storage,
        settlement_storage=settlement_storage,
        party_storage=party_storage,
        audit_logger=audit_logger,
    )

    settlement_flow = SettlementFlow(
        expense_storage=expense_storage,
        settlement_storage=settlement_storage,
        party_storage=party_storage,
        audit_logger=audit_logger,
    )

    return expense_flow, settlement_flow, sheets_client
