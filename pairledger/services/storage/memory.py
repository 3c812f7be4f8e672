"""
In-Memory Storage Implementation

Used for tests and for running the flows without Google credentials.
Behaves like the real backends: the settlement ledger refuses a second
settlement for a period, and the check and the insert happen under one lock.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pairledger.models.audit import AuditEvent
from pairledger.models.ledger import (
    Expense,
    Party,
    Settlement,
    SettlementDirection,
    SplitPolicy,
    utcnow,
)
from pairledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    DuplicateSettlementError,
    ExpenseStorageInterface,
    NotFoundError,
    PartyStorageInterface,
    SettlementStorageInterface,
)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """Expenses kept in a dict keyed by ID."""

    def __init__(self, expenses: Optional[list[Expense]] = None):
        self._expenses: dict[UUID, Expense] = {}
        for expense in expenses or []:
            self._expenses[expense.id] = expense

    async def add_expense(self, expense: Expense) -> bool:
        if expense.id in self._expenses:
            raise DuplicateError(f"Expense already exists: {expense.id}")
        self._expenses[expense.id] = expense
        return True

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        return self._expenses.get(expense_id)

    async def update_expense(self, expense: Expense) -> bool:
        if expense.id not in self._expenses:
            raise NotFoundError(f"Expense not found: {expense.id}")
        self._expenses[expense.id] = expense.model_copy(
            update={"updated_at": utcnow()}
        )
        return True

    async def delete_expense(self, expense_id: UUID) -> bool:
        return self._expenses.pop(expense_id, None) is not None

    async def list_expenses(
        self,
        period: Optional[str] = None,
        payer_id: Optional[str] = None,
        category: Optional[str] = None,
        split_policy: Optional[SplitPolicy] = None,
    ) -> list[Expense]:
        expenses = []
        for expense in self._expenses.values():
            if period and expense.period != period:
                continue
            if payer_id and expense.payer_id != payer_id:
                continue
            if category and expense.category.lower() != category.lower():
                continue
            if split_policy and expense.split_policy != split_policy:
                continue
            expenses.append(expense)

        expenses.sort(key=lambda e: (e.expense_date, e.created_at))
        return expenses


class InMemorySettlementStorage(SettlementStorageInterface):
    """
    Append-only settlement ledger in memory.

    One asyncio.Lock guards check-then-insert, so two concurrent
    "mark as settled" calls for a period cannot both succeed.
    """

    def __init__(self, settlements: Optional[list[Settlement]] = None):
        self._settlements: dict[UUID, Settlement] = {}
        self._lock = asyncio.Lock()
        for settlement in settlements or []:
            self._settlements[settlement.id] = settlement

    def _for_period(self, period: str) -> list[Settlement]:
        settlements = [s for s in self._settlements.values() if s.period == period]
        settlements.sort(key=lambda s: s.recorded_at, reverse=True)
        return settlements

    async def list_settlements(self, period: str) -> list[Settlement]:
        return self._for_period(period)

    async def get_settlement(self, settlement_id: UUID) -> Optional[Settlement]:
        return self._settlements.get(settlement_id)

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
        settlement = Settlement(
            from_user_id=direction.from_user_id,
            to_user_id=direction.to_user_id,
            amount=amount,
            period=period,
            recorded_at=recorded_at or utcnow(),
            notes=notes,
            recorded_by=recorded_by,
        )

        async with self._lock:
            existing = self._for_period(period)
            if existing and not allow_resettle:
                raise DuplicateSettlementError(period, existing[0].id)
            self._settlements[settlement.id] = settlement

        return settlement.id

    async def remove_settlement(self, settlement_id: UUID) -> bool:
        async with self._lock:
            return self._settlements.pop(settlement_id, None) is not None


class InMemoryPartyStorage(PartyStorageInterface):

    def __init__(self, parties: Optional[list[Party]] = None):
        self._parties = list(parties or [])

    async def list_parties(self) -> list[Party]:
        return list(self._parties)


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit events appended to a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_period(self, period: str) -> list[AuditEvent]:
        events = [e for e in self.events if e.period == period]
        return sorted(events, key=lambda e: e.timestamp)
