"""
Tests for the settlement recommender.
"""

import pytest
from decimal import Decimal

from pairledger.config import LedgerSettings
from pairledger.engine import (
    SettlementRecommender,
    calculate_balance,
    recommend_settlement,
    round_up_to_minor_unit,
)
from pairledger.models.ledger import BalanceResult, SettlementDirection


def balance_of(net: str) -> BalanceResult:
    return BalanceResult(
        period="2024-03",
        party_a_id="alice",
        party_b_id="bob",
        net_balance=Decimal(net),
        expense_balance=Decimal(net),
    )


class TestRecommendSettlement:
    """Tests for recommend_settlement."""

    @pytest.mark.parametrize("net", ["0", "0.004", "-0.004", "0.005", "-0.005"])
    def test_within_threshold_is_settled(self, net):
        recommendation = recommend_settlement(balance_of(net))

        assert recommendation.is_settled is True
        assert recommendation.direction is None
        assert recommendation.amount == Decimal("0")
        assert recommendation.needs_settlement is False

    def test_just_above_threshold_needs_settlement(self):
        recommendation = recommend_settlement(balance_of("0.006"))

        assert recommendation.is_settled is False
        assert recommendation.amount == Decimal("0.01")
        assert recommendation.exact_amount == Decimal("0.006")

    def test_positive_balance_b_pays_a(self):
        recommendation = recommend_settlement(balance_of("10.00"))

        assert recommendation.direction == SettlementDirection(
            from_user_id="bob", to_user_id="alice"
        )
        assert recommendation.amount == Decimal("10.00")

    def test_negative_balance_a_pays_b(self):
        recommendation = recommend_settlement(balance_of("-42.50"))

        assert recommendation.direction == SettlementDirection(
            from_user_id="alice", to_user_id="bob"
        )
        assert recommendation.amount == Decimal("42.50")

    def test_amount_rounds_up(self):
        recommendation = recommend_settlement(balance_of("10.001"))

        assert recommendation.amount == Decimal("10.01")
        assert recommendation.exact_amount == Decimal("10.001")

    def test_negative_amount_rounds_up_in_magnitude(self):
        recommendation = recommend_settlement(balance_of("-10.001"))
        assert recommendation.amount == Decimal("10.01")

    def test_recording_recommendation_settles(self, make_expense, make_settlement):
        """Paying the rounded-up amount leaves at most half a cent."""
        expenses = [make_expense("33.33", payer_id="alice")]
        balance = calculate_balance(expenses, [], "alice", "bob")
        recommendation = recommend_settlement(balance)

        settlement = make_settlement(
            str(recommendation.amount),
            from_user_id=recommendation.direction.from_user_id,
            to_user_id=recommendation.direction.to_user_id,
        )
        after = calculate_balance(expenses, [settlement], "alice", "bob")

        assert recommend_settlement(after).is_settled is True


class TestRoundUpToMinorUnit:

    @pytest.mark.parametrize("amount,expected", [
        ("10.001", "10.01"),
        ("10.00", "10.00"),
        ("10.009", "10.01"),
        ("0.005", "0.01"),
    ])
    def test_ceiling(self, amount, expected):
        assert round_up_to_minor_unit(Decimal(amount)) == Decimal(expected)


class TestSettlementRecommender:
    """Tests for the settings-driven recommender."""

    def test_uses_configured_threshold(self):
        recommender = SettlementRecommender(
            LedgerSettings(settled_threshold=Decimal("1.00"))
        )

        assert recommender.recommend(balance_of("0.99")).is_settled is True
        assert recommender.recommend(balance_of("1.01")).is_settled is False

    def test_uses_configured_minor_unit(self):
        recommender = SettlementRecommender(
            LedgerSettings(minor_unit=Decimal("1"), settled_threshold=Decimal("0.5"))
        )
        assert recommender.recommend(balance_of("10.20")).amount == Decimal("11")

    def test_is_settled(self, ledger_settings):
        recommender = SettlementRecommender(ledger_settings)

        assert recommender.is_settled(balance_of("-0.004")) is True
        assert recommender.is_settled(balance_of("-0.006")) is False

    def test_display_amount(self, ledger_settings):
        recommender = SettlementRecommender(ledger_settings)
        assert recommender.display_amount(Decimal("-3.001")) == Decimal("3.01")
