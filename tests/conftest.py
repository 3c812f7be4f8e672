"""
Shared fixtures.

Tests run entirely on in-memory storage. No real Google Sheets calls.
"""

from datetime import date
from decimal import Decimal

import pytest

from pairledger.audit import AuditLogger
from pairledger.config import LedgerSettings
from pairledger.models.ledger import Expense, Party, Settlement, SplitPolicy
from pairledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryPartyStorage,
    InMemorySettlementStorage,
)

PERIOD = "2024-03"


@pytest.fixture
def alice():
    return Party(id="alice", name="Alice", email="alice@example.com")


@pytest.fixture
def bob():
    return Party(id="bob", name="Bob")


@pytest.fixture
def parties(alice, bob):
    return [alice, bob]


@pytest.fixture
def make_expense():
    """Build an expense in PERIOD with sensible defaults."""
    def _make(
        amount="10.00",
        payer_id="alice",
        split_policy=SplitPolicy.EQUAL,
        period=PERIOD,
        expense_date=None,
        **kwargs,
    ):
        return Expense(
            amount=Decimal(amount),
            payer_id=payer_id,
            split_policy=split_policy,
            period=period,
            expense_date=expense_date or date.fromisoformat(f"{period}-15"),
            **kwargs,
        )
    return _make


@pytest.fixture
def make_settlement():
    def _make(amount="10.00", from_user_id="bob", to_user_id="alice", period=PERIOD, **kwargs):
        return Settlement(
            amount=Decimal(amount),
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            period=period,
            **kwargs,
        )
    return _make


@pytest.fixture
def ledger_settings():
    return LedgerSettings(
        currency_symbol="£",
        settled_threshold=Decimal("0.005"),
        minor_unit=Decimal("0.01"),
        max_expense_amount=Decimal("10000"),
        future_date_tolerance_days=7,
    )


@pytest.fixture
def expense_storage():
    return InMemoryExpenseStorage()


@pytest.fixture
def settlement_storage():
    return InMemorySettlementStorage()


@pytest.fixture
def party_storage(parties):
    return InMemoryPartyStorage(parties)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)
