"""
Period helpers.

A period is a calendar month written as "YYYY-MM". Every expense and
settlement belongs to exactly one period, and all balances are scoped to one.
"""

import re
from datetime import date

PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

_PERIOD_RE = re.compile(PERIOD_PATTERN)


def validate_period(period: str) -> str:
    """Return the period unchanged, or raise ValueError if it is not YYYY-MM."""
    if not isinstance(period, str) or not _PERIOD_RE.match(period):
        raise ValueError(f"Invalid period: {period!r}. Expected YYYY-MM")
    return period


def period_for_date(day: date) -> str:
    """The period a given date falls in."""
    return day.strftime("%Y-%m")


def previous_period(period: str) -> str:
    validate_period(period)
    year, month = (int(part) for part in period.split("-"))
    if month == 1:
        return f"{year - 1}-12"
    return f"{year}-{month - 1:02d}"
