"""Services package."""

from pairledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    DuplicateSettlementError,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsPartyStorage,
    GoogleSheetsSettlementStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryPartyStorage,
    InMemorySettlementStorage,
    NotFoundError,
    PartyStorageInterface,
    SettlementStorageInterface,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "DuplicateSettlementError",
    "ExpenseStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "GoogleSheetsPartyStorage",
    "GoogleSheetsSettlementStorage",
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "InMemoryPartyStorage",
    "InMemorySettlementStorage",
    "NotFoundError",
    "PartyStorageInterface",
    "SettlementStorageInterface",
    "StorageError",
]
