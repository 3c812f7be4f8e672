"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the balance engine decoupled from storage entirely

The engine never writes. Everything that changes state goes through
these interfaces, and settlements only ever get appended or removed.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pairledger.exceptions import LedgerError
from pairledger.models.audit import AuditEvent
from pairledger.models.ledger import (
    Expense,
    Party,
    Settlement,
    SettlementDirection,
    SplitPolicy,
)


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage operations.
    """

    @abstractmethod
    async def add_expense(self, expense: Expense) -> bool:
        """
        Save a new expense.

        Raises:
            DuplicateError: An expense with the same ID exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        """Retrieve an expense by ID, or None."""
        pass

    @abstractmethod
    async def update_expense(self, expense: Expense) -> bool:
        """
        Replace an existing expense.

        Raises:
            NotFoundError: If the expense doesn't exist
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: UUID) -> bool:
        """
        Delete an expense.

        Returns:
            True if deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def list_expenses(
        self,
        period: Optional[str] = None,
        payer_id: Optional[str] = None,
        category: Optional[str] = None,
        split_policy: Optional[SplitPolicy] = None,
    ) -> list[Expense]:
        """
        List expenses with optional filters.

        Returns:
            Matching expenses, oldest expense_date first
        """
        pass


class SettlementStorageInterface(ABC):
    """
    Abstract interface for the settlement ledger.

    Settlements are append-only. The only mutations are:
    - record_settlement: append, at most one per period unless
      re-settlement is explicitly requested
    - remove_settlement: delete a row to re-open a period ("unsettle")
    """

    @abstractmethod
    async def list_settlements(self, period: str) -> list[Settlement]:
        """
        All settlements of a period, newest first.
        """
        pass

    @abstractmethod
    async def get_settlement(self, settlement_id: UUID) -> Optional[Settlement]:
        pass

    async def get_latest_settlement(self, period: str) -> Optional[Settlement]:
        """Most recent settlement of a period, or None."""
        settlements = await self.list_settlements(period)
        return settlements[0] if settlements else None

    async def is_period_settled(self, period: str) -> bool:
        """
        A period is settled when at least one settlement row exists for it,
        whatever the current balance is.
        """
        return bool(await self.list_settlements(period))

    @abstractmethod
    async def record_settlement(
        self,
        period: str,
        direction: SettlementDirection,
        amount: Decimal,
        recorded_at: Optional[datetime] = None,
        notes: Optional[str] = None,
        recorded_by: Optional[str] = None,
        allow_resettle: bool = False,
    ) -> UUID:
        """
        Append a settlement for a period.

        CRITICAL: The existence check and the insert must be atomic per
        period. Two concurrent calls for the same period must not both succeed.

        Returns:
            ID of the new settlement

        Raises:
            DuplicateSettlementError: The period already has a settlement and
                allow_resettle is False, or a concurrent writer won the race
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def remove_settlement(self, settlement_id: UUID) -> bool:
        """
        Delete a settlement row.

        Idempotent: removing a settlement that is already gone returns
        False instead of raising.
        """
        pass


class PartyStorageInterface(ABC):
    """Supplies the people sharing the ledger."""

    @abstractmethod
    async def list_parties(self) -> list[Party]:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID, in chronological order.
        """
        pass

    @abstractmethod
    async def get_events_by_period(self, period: str) -> list[AuditEvent]:
        """
        Get all events for a period, in chronological order.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    retryable: bool = False


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class DuplicateSettlementError(DuplicateError, LedgerError):
    """
    The period already has a settlement.

    Recoverable: the caller should re-fetch and show "already settled".
    """
    retryable = True

    def __init__(
        self,
        period: str,
        existing_settlement_id: Optional[UUID] = None,
    ):
        self.period = period
        self.existing_settlement_id = existing_settlement_id
        super().__init__(f"Period {period} is already settled")


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    retryable = True
