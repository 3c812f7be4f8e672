"""
Tests for the in-memory storage backends.
"""

import asyncio
import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from pairledger.models.ledger import SettlementDirection, SplitPolicy
from pairledger.services.storage import (
    DuplicateError,
    DuplicateSettlementError,
    InMemoryExpenseStorage,
    InMemorySettlementStorage,
    NotFoundError,
)

B_TO_A = SettlementDirection(from_user_id="bob", to_user_id="alice")


class TestInMemoryExpenseStorage:
    """Tests for InMemoryExpenseStorage."""

    @pytest.mark.asyncio
    async def test_add_and_get(self, make_expense):
        storage = InMemoryExpenseStorage()
        expense = make_expense("12.00")

        assert await storage.add_expense(expense) is True
        assert await storage.get_expense(expense.id) == expense

    @pytest.mark.asyncio
    async def test_add_duplicate_rejected(self, make_expense):
        expense = make_expense()
        storage = InMemoryExpenseStorage([expense])

        with pytest.raises(DuplicateError):
            await storage.add_expense(expense)

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, make_expense):
        with pytest.raises(NotFoundError):
            await InMemoryExpenseStorage().update_expense(make_expense())

    @pytest.mark.asyncio
    async def test_update_bumps_updated_at(self, make_expense):
        expense = make_expense("5.00")
        storage = InMemoryExpenseStorage([expense])

        await storage.update_expense(expense.model_copy(update={"amount": Decimal("6.00")}))
        stored = await storage.get_expense(expense.id)

        assert stored.amount == Decimal("6.00")
        assert stored.updated_at >= expense.updated_at

    @pytest.mark.asyncio
    async def test_delete(self, make_expense):
        expense = make_expense()
        storage = InMemoryExpenseStorage([expense])

        assert await storage.delete_expense(expense.id) is True
        assert await storage.delete_expense(expense.id) is False

    @pytest.mark.asyncio
    async def test_list_filters_and_orders(self, make_expense):
        late = make_expense("1.00", expense_date=date(2024, 3, 20))
        early = make_expense("2.00", expense_date=date(2024, 3, 2), category="Groceries")
        bobs = make_expense("3.00", payer_id="bob", split_policy=SplitPolicy.PAYER_OWED_FULL)
        other_month = make_expense("4.00", period="2024-04")
        storage = InMemoryExpenseStorage([late, early, bobs, other_month])

        assert await storage.list_expenses(period="2024-03", payer_id="alice") == [early, late]
        assert await storage.list_expenses(category="groceries") == [early]
        assert await storage.list_expenses(split_policy=SplitPolicy.PAYER_OWED_FULL) == [bobs]

    @pytest.mark.asyncio
    async def test_naive_created_at_sorts_with_aware(self, make_expense):
        older = make_expense("1.00", created_at=datetime(2024, 3, 15, 9, 0))
        newer = make_expense("2.00")
        storage = InMemoryExpenseStorage([newer, older])

        assert older.created_at.tzinfo == timezone.utc
        assert await storage.list_expenses(period="2024-03") == [older, newer]


class TestInMemorySettlementStorage:
    """Tests for the append-only settlement ledger."""

    @pytest.mark.asyncio
    async def test_record_and_settled(self):
        storage = InMemorySettlementStorage()
        assert await storage.is_period_settled("2024-03") is False

        settlement_id = await storage.record_settlement(
            "2024-03", B_TO_A, Decimal("10.00"), recorded_by="bob"
        )

        settlement = await storage.get_settlement(settlement_id)
        assert settlement.amount == Decimal("10.00")
        assert settlement.recorded_by == "bob"
        assert await storage.is_period_settled("2024-03") is True
        assert await storage.is_period_settled("2024-04") is False

    @pytest.mark.asyncio
    async def test_second_settlement_rejected(self):
        storage = InMemorySettlementStorage()
        first_id = await storage.record_settlement("2024-03", B_TO_A, Decimal("10.00"))

        with pytest.raises(DuplicateSettlementError) as exc_info:
            await storage.record_settlement("2024-03", B_TO_A, Decimal("10.00"))

        assert exc_info.value.existing_settlement_id == first_id
        assert exc_info.value.retryable is True
        assert len(await storage.list_settlements("2024-03")) == 1

    @pytest.mark.asyncio
    async def test_allow_resettle(self):
        storage = InMemorySettlementStorage()
        base = datetime(2024, 4, 1, tzinfo=timezone.utc)
        await storage.record_settlement("2024-03", B_TO_A, Decimal("10.00"), recorded_at=base)
        second_id = await storage.record_settlement(
            "2024-03",
            B_TO_A,
            Decimal("2.00"),
            recorded_at=base + timedelta(hours=1),
            allow_resettle=True,
        )

        settlements = await storage.list_settlements("2024-03")
        assert len(settlements) == 2
        assert settlements[0].id == second_id
        assert (await storage.get_latest_settlement("2024-03")).id == second_id

    @pytest.mark.asyncio
    async def test_naive_recorded_at_stays_comparable(self):
        """A naive timestamp is stored as UTC and sorts against aware ones."""
        storage = InMemorySettlementStorage()
        first_id = await storage.record_settlement(
            "2024-03", B_TO_A, Decimal("10.00"), recorded_at=datetime(2024, 3, 20)
        )
        second_id = await storage.record_settlement(
            "2024-03", B_TO_A, Decimal("2.00"), allow_resettle=True
        )

        settlements = await storage.list_settlements("2024-03")

        assert [s.id for s in settlements] == [second_id, first_id]
        assert settlements[1].recorded_at.tzinfo == timezone.utc
        assert await storage.is_period_settled("2024-03") is True

    @pytest.mark.asyncio
    async def test_concurrent_settle_only_one_wins(self):
        storage = InMemorySettlementStorage()

        results = await asyncio.gather(
            *(
                storage.record_settlement("2024-03", B_TO_A, Decimal("10.00"))
                for _ in range(5)
            ),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, DuplicateSettlementError)]
        assert len(winners) == 1
        assert len(losers) == 4
        assert len(await storage.list_settlements("2024-03")) == 1

    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self):
        storage = InMemorySettlementStorage()
        settlement_id = await storage.record_settlement("2024-03", B_TO_A, Decimal("10.00"))

        assert await storage.remove_settlement(settlement_id) is True
        assert await storage.remove_settlement(settlement_id) is False
        assert await storage.is_period_settled("2024-03") is False
