"""
PairLedger - Shared Expense Ledger for Two

Tracks what two people spend together and works out who owes whom,
month by month.

DESIGN PRINCIPLES:
1. The balance engine is pure: same data in, same balance out
2. Fail early, fail visibly (no balance is better than a wrong one)
3. Settlements are append-only
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "PairLedger Team"
