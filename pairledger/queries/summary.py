"""
Period Summary

DESIGN DECISION: Summaries are DETERMINISTIC aggregations over stored
expenses. Nothing is estimated; an empty period gives an all-zero summary.

The grand total covers every expense, whatever its split policy. The
50/50 pool the balance is computed from is reported separately as
equal_split_total.
"""

from collections import defaultdict
from decimal import Decimal

from pairledger.exceptions import PeriodMismatchError
from pairledger.models.ledger import Expense, PeriodSummary, SplitPolicy
from pairledger.models.period import validate_period

ZERO = Decimal("0")


def build_period_summary(period: str, expenses: list[Expense]) -> PeriodSummary:
    """
    Aggregate one period's expenses.

    Raises:
        PeriodMismatchError: An expense belongs to another period
    """
    validate_period(period)

    periods = {expense.period for expense in expenses} - {period}
    if periods:
        raise PeriodMismatchError(sorted(periods | {period}))

    total = ZERO
    equal_total = ZERO
    owed_full_total = ZERO
    paid_by_party: dict[str, Decimal] = defaultdict(lambda: ZERO)
    by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
    by_location: dict[str, Decimal] = defaultdict(lambda: ZERO)

    for expense in expenses:
        total += expense.amount
        if expense.split_policy == SplitPolicy.EQUAL:
            equal_total += expense.amount
        else:
            owed_full_total += expense.amount

        paid_by_party[expense.payer_id] += expense.amount
        by_category[expense.category] += expense.amount
        # Location is optional
        if expense.location:
            by_location[expense.location] += expense.amount

    return PeriodSummary(
        period=period,
        total_expenses=total,
        equal_split_total=equal_total,
        payer_owed_full_total=owed_full_total,
        paid_by_party=dict(paid_by_party),
        category_totals=dict(by_category),
        location_totals=dict(by_location),
        expense_count=len(expenses),
    )
