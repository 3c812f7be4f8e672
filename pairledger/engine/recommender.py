"""
Settlement Recommender

Turns a signed balance into "who pays whom, and how much".

Policy:
- A balance within the settled threshold (half a minor unit by default)
  counts as settled. Exact equality to zero is never the test.
- The amount shown and recorded is rounded UP to the minor unit, so the
  party who is owed never ends up short because of rounding.
"""

from decimal import ROUND_CEILING, Decimal
from typing import Optional

from pairledger.config import LedgerSettings, get_settings
from pairledger.models.ledger import (
    BalanceResult,
    SettlementDirection,
    SettlementRecommendation,
)

SETTLED_THRESHOLD = Decimal("0.005")
MINOR_UNIT = Decimal("0.01")


def round_up_to_minor_unit(
    amount: Decimal,
    minor_unit: Decimal = MINOR_UNIT,
) -> Decimal:
    """Ceiling to the minor unit: 10.001 -> 10.01, 10.00 -> 10.00."""
    return amount.quantize(minor_unit, rounding=ROUND_CEILING)


def is_within_threshold(
    net_balance: Decimal,
    threshold: Decimal = SETTLED_THRESHOLD,
) -> bool:
    return -threshold <= net_balance <= threshold


def recommend_settlement(
    balance: BalanceResult,
    threshold: Decimal = SETTLED_THRESHOLD,
    minor_unit: Decimal = MINOR_UNIT,
) -> SettlementRecommendation:
    """
    Derive direction and amount from a balance.

    net < -threshold: A owes B
    net > threshold:  B owes A
    otherwise:        settled, no direction, amount 0
    """
    net = balance.net_balance

    if net < -threshold:
        direction = SettlementDirection(
            from_user_id=balance.party_a_id,
            to_user_id=balance.party_b_id,
        )
    elif net > threshold:
        direction = SettlementDirection(
            from_user_id=balance.party_b_id,
            to_user_id=balance.party_a_id,
        )
    else:
        return SettlementRecommendation(is_settled=True)

    exact = abs(net)
    return SettlementRecommendation(
        direction=direction,
        amount=round_up_to_minor_unit(exact, minor_unit),
        exact_amount=exact,
        is_settled=False,
    )


class SettlementRecommender:
    """
    Applies the configured settlement policy.

    Reads threshold and minor unit from LedgerSettings so every caller
    uses the same definition of "settled".
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    @property
    def threshold(self) -> Decimal:
        return self._settings.settled_threshold

    @property
    def minor_unit(self) -> Decimal:
        return self._settings.minor_unit

    def recommend(self, balance: BalanceResult) -> SettlementRecommendation:
        return recommend_settlement(
            balance,
            threshold=self.threshold,
            minor_unit=self.minor_unit,
        )

    def is_settled(self, balance: BalanceResult) -> bool:
        return is_within_threshold(balance.net_balance, self.threshold)

    def display_amount(self, amount: Decimal) -> Decimal:
        return round_up_to_minor_unit(abs(amount), self.minor_unit)
