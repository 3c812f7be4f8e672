"""
Balance Calculator

DESIGN DECISION: The balance is always recomputed from the complete
expense and settlement set of a period. There is no running total that
gets patched as records change, so there is nothing to drift.

The calculation, for parties A and B:

    paid_equal[p]   = sum of 50/50 expenses paid by p
    owed_full[p]    = sum of 100% expenses paid by p (the other party owes it all)
    fair_share      = (sum of 50/50 expenses) / 2
    expense_balance = paid_equal[A] - fair_share + owed_full[A] - owed_full[B]
    net_settled     = sum(A -> B transfers) - sum(B -> A transfers)
    net_balance     = expense_balance + net_settled

Positive net_balance: B owes A. Negative: A owes B.
A transfer from B to A pays down what B owes, so it lowers the balance;
a transfer from A to B raises it by the same amount.

IMPORTANT: Nothing is silently dropped. A record that names an unknown
party fails the whole computation, because skipping it would break the
guarantee that every recorded pound is accounted for.
"""

from decimal import Decimal
from typing import Iterable, Optional, Sequence

from pairledger.exceptions import (
    InvalidPartyCountError,
    NonPositiveAmountError,
    PeriodMismatchError,
    UnknownPayerError,
    UnsupportedSplitPolicyError,
)
from pairledger.models.ledger import (
    BalanceResult,
    Expense,
    Party,
    Settlement,
    SplitPolicy,
)

ZERO = Decimal("0")


def resolve_parties(
    parties: Sequence[Party],
    current_party_id: Optional[str] = None,
) -> tuple[Party, Party]:
    """
    Check that there are exactly two distinct parties and order them.

    The current user (if given) becomes party A, so a positive balance
    always reads "the other person owes you".

    Raises:
        InvalidPartyCountError: not exactly two distinct parties
        UnknownPayerError: current_party_id is not one of them
    """
    if len(parties) != 2:
        raise InvalidPartyCountError(len(parties))

    first, second = parties
    if first.id == second.id:
        raise InvalidPartyCountError(1, f"Both parties share the id {first.id!r}")

    if current_party_id is None or current_party_id == first.id:
        return first, second
    if current_party_id == second.id:
        return second, first
    raise UnknownPayerError([current_party_id], [first.id, second.id])


def _check_period(
    expenses: Sequence[Expense],
    settlements: Sequence[Settlement],
    period: Optional[str],
) -> Optional[str]:
    """Return the single period all records share."""
    seen = {record.period for record in expenses}
    seen.update(record.period for record in settlements)
    if period is not None:
        seen.add(period)
    if len(seen) > 1:
        raise PeriodMismatchError(seen)
    return next(iter(seen), None)


def _check_amounts(records: Iterable, record_type: str) -> None:
    # Records built with model_construct() skip the model validators
    for record in records:
        if record.amount <= 0:
            raise NonPositiveAmountError(record.amount, record_type)


def calculate_balance(
    expenses: Sequence[Expense],
    settlements: Sequence[Settlement],
    party_a_id: str,
    party_b_id: str,
    period: Optional[str] = None,
) -> BalanceResult:
    """
    Compute the outstanding balance between two parties for one period.

    Args:
        expenses: Every expense of the period
        settlements: Every settlement already recorded for the period
        party_a_id: Party whose point of view the sign follows
        party_b_id: The other party
        period: Expected period. If given, every record must belong to it.

    Returns:
        BalanceResult. net_balance > 0 means B owes A.

    Raises:
        InvalidPartyCountError: the two ids are missing or identical
        UnknownPayerError: a record references someone else
        NonPositiveAmountError: a record has amount <= 0
        PeriodMismatchError: records come from different periods
        UnsupportedSplitPolicyError: an expense has an unknown split policy
    """
    if not party_a_id or not party_b_id or party_a_id == party_b_id:
        raise InvalidPartyCountError(
            len({pid for pid in (party_a_id, party_b_id) if pid})
        )
    known = {party_a_id, party_b_id}

    unknown = [e.payer_id for e in expenses if e.payer_id not in known]
    for settlement in settlements:
        unknown.extend(
            pid for pid in (settlement.from_user_id, settlement.to_user_id)
            if pid not in known
        )
    if unknown:
        raise UnknownPayerError(unknown, known)

    _check_amounts(expenses, "expense")
    _check_amounts(settlements, "settlement")
    resolved_period = _check_period(expenses, settlements, period)

    paid_equal = {party_a_id: ZERO, party_b_id: ZERO}
    owed_full = {party_a_id: ZERO, party_b_id: ZERO}
    total_equal = ZERO

    for expense in expenses:
        if expense.split_policy == SplitPolicy.EQUAL:
            paid_equal[expense.payer_id] += expense.amount
            total_equal += expense.amount
        elif expense.split_policy == SplitPolicy.PAYER_OWED_FULL:
            owed_full[expense.payer_id] += expense.amount
        else:
            raise UnsupportedSplitPolicyError(expense.split_policy)

    fair_share = total_equal / 2
    expense_balance = (
        paid_equal[party_a_id]
        - fair_share
        + owed_full[party_a_id]
        - owed_full[party_b_id]
    )

    net_settled_a_to_b = ZERO
    for settlement in settlements:
        if settlement.from_user_id == party_a_id:
            net_settled_a_to_b += settlement.amount
        else:
            net_settled_a_to_b -= settlement.amount

    return BalanceResult(
        period=resolved_period,
        party_a_id=party_a_id,
        party_b_id=party_b_id,
        net_balance=expense_balance + net_settled_a_to_b,
        expense_balance=expense_balance,
        net_settled_a_to_b=net_settled_a_to_b,
        total_equal=total_equal,
        fair_share=fair_share,
        paid_equal=paid_equal,
        owed_full=owed_full,
        expense_count=len(expenses),
        settlement_count=len(settlements),
    )
