"""Expense validation package."""

from pairledger.validation.validator import LedgerValidator

__all__ = ["LedgerValidator"]
