"""Read-only aggregations over ledger data."""

from pairledger.queries.summary import build_period_summary

__all__ = ["build_period_summary"]
