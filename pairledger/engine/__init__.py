"""
Balance & Settlement Engine

Pure, synchronous functions. No storage access, no cached state:
call them again whenever the data changes.
"""

from pairledger.engine.balance import calculate_balance, resolve_parties
from pairledger.engine.recommender import (
    MINOR_UNIT,
    SETTLED_THRESHOLD,
    SettlementRecommender,
    is_within_threshold,
    recommend_settlement,
    round_up_to_minor_unit,
)

__all__ = [
    "MINOR_UNIT",
    "SETTLED_THRESHOLD",
    "SettlementRecommender",
    "calculate_balance",
    "is_within_threshold",
    "recommend_settlement",
    "resolve_parties",
    "round_up_to_minor_unit",
]
