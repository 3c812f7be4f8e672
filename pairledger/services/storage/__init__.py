"""
Storage Services Package

Provides abstract interfaces and concrete implementations for ledger storage.
Google Sheets is the shared backend; the in-memory backend serves tests and
local runs. Both honour the same settlement rules.
"""

from pairledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    DuplicateSettlementError,
    ExpenseStorageInterface,
    NotFoundError,
    PartyStorageInterface,
    SettlementStorageInterface,
    StorageError,
)
from pairledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryPartyStorage,
    InMemorySettlementStorage,
)
from pairledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsPartyStorage,
    GoogleSheetsSettlementStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ExpenseStorageInterface",
    "PartyStorageInterface",
    "SettlementStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "DuplicateSettlementError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "InMemoryPartyStorage",
    "InMemorySettlementStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "GoogleSheetsPartyStorage",
    "GoogleSheetsSettlementStorage",
]
