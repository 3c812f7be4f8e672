"""Money formatting shared by validation messages and audit descriptions."""

from decimal import Decimal
from typing import Optional

from pairledger.config import get_settings


def format_currency(amount: Decimal, symbol: Optional[str] = None) -> str:
    """
    Format an amount with the ledger currency symbol.

    format_currency(Decimal("1234.5")) -> "£1,234.50"
    format_currency(Decimal("-3")) -> "-£3.00"
    """
    if symbol is None:
        symbol = get_settings().ledger.currency_symbol
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"
