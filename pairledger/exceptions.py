"""
Ledger Errors

DESIGN DECISION: The engine never returns a best-guess number.
Any input it cannot account for raises a typed error, so the caller can
show a clear message instead of a wrong balance.

Every error says whether retrying can help. Only a lost settlement race
is retryable; data-integrity faults need a human to fix the data.
"""

from typing import Iterable, Optional


class LedgerError(Exception):
    """Base exception for balance and settlement failures."""

    retryable: bool = False


class InvalidPartyCountError(LedgerError):
    """The ledger needs exactly two distinct parties."""

    def __init__(self, count: int, message: Optional[str] = None):
        self.count = count
        super().__init__(
            message or f"Expected exactly 2 parties, got {count}"
        )


class UnknownPayerError(LedgerError):
    """An expense or settlement references someone outside the two parties."""

    def __init__(self, unknown_ids: Iterable[str], known_ids: Iterable[str]):
        self.unknown_ids = sorted(set(unknown_ids))
        self.known_ids = sorted(set(known_ids))
        super().__init__(
            f"Unknown party id(s) {self.unknown_ids}; "
            f"known parties are {self.known_ids}"
        )


class NonPositiveAmountError(LedgerError):
    """An expense or settlement amount is zero or negative."""

    def __init__(self, amount, record_type: str = "record"):
        self.amount = amount
        self.record_type = record_type
        super().__init__(
            f"{record_type.capitalize()} amount must be greater than zero, got {amount}"
        )


class PeriodMismatchError(LedgerError):
    """Records passed to one computation belong to different periods."""

    def __init__(self, periods: Iterable[str]):
        self.periods = sorted(set(periods))
        super().__init__(
            f"Records span more than one period: {self.periods}"
        )


class PeriodLockedError(LedgerError):
    """An expense change was attempted in a period that is already settled."""

    def __init__(self, period: str):
        self.period = period
        super().__init__(
            f"Period {period} is settled. Remove the settlement before changing its expenses."
        )


class NothingToSettleError(LedgerError):
    """Settlement requested while the balance is already within tolerance."""

    def __init__(self, period: str):
        self.period = period
        super().__init__(f"Nothing to settle for {period}: the balance is zero")


class UnsupportedSplitPolicyError(LedgerError):
    """An expense carries a split policy the balance engine cannot apply."""

    def __init__(self, split_policy):
        self.split_policy = split_policy
        super().__init__(f"Unsupported split policy: {split_policy!r}")
