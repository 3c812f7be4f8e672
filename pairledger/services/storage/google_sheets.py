"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the shared backend because:
1. Both people can look at the raw ledger directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- No transactions. The settlement ledger serialises writers inside one
  process with a lock, and detects writers in other processes by reading
  the sheet back after appending: the earliest row for a period wins,
  later rows are deleted and reported as a conflict.
- Limited query capabilities (we filter in Python)
- Malformed rows are an error, not skipped. A skipped expense row would
  silently change the balance.
"""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional, TypeVar
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pairledger.config import GoogleSheetsSettings, get_settings
from pairledger.exceptions import LedgerError
from pairledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from pairledger.models.ledger import (
    Expense,
    Party,
    Settlement,
    SettlementDirection,
    SplitPolicy,
    utcnow,
)
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

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Column mappings for Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "period",
    "expense_date",
    "amount",
    "description",
    "category",
    "location",
    "payer_id",
    "split_policy",
    "created_at",
    "updated_at",
]

# Column mappings for Settlements sheet
SETTLEMENT_COLUMNS = [
    "id",
    "period",
    "from_user_id",
    "to_user_id",
    "amount",
    "recorded_at",
    "notes",
    "recorded_by",
]

PARTY_COLUMNS = ["id", "name", "email"]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "period",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

sheets_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type((DuplicateError, NotFoundError, LedgerError)),
    reraise=True,
)


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and creates missing worksheets with headers.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.expenses_sheet_name, EXPENSE_COLUMNS)

    def get_settlements_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.settlements_sheet_name, SETTLEMENT_COLUMNS)

    def get_parties_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.parties_sheet_name, PARTY_COLUMNS, rows=10)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


def _parse_rows(
    rows: list[list],
    parse: Callable[[list], T],
    entity: str,
) -> list[T]:
    """Parse data rows (header excluded). Any malformed row fails the read."""
    parsed = []
    for row in rows:
        if not row or not row[0]:
            continue
        try:
            parsed.append(parse(row))
        except LedgerError:
            raise
        except Exception as e:
            raise StorageError(f"Malformed {entity} row {row[0]!r}: {e}")
    return parsed


def _find_row_index(all_rows: list[list], entity_id: UUID) -> Optional[int]:
    """1-based sheet row index of an entity, header included in all_rows."""
    for idx, row in enumerate(all_rows[1:], start=2):
        if row and row[0] == str(entity_id):
            return idx
    return None


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    Google Sheets implementation of expense storage.

    One expense per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _expense_to_row(self, expense: Expense) -> list:
        return [
            str(expense.id),
            expense.period,
            expense.expense_date.isoformat(),
            str(expense.amount),
            expense.description,
            expense.category,
            expense.location,
            expense.payer_id,
            expense.split_policy.value,
            expense.created_at.isoformat(),
            expense.updated_at.isoformat(),
        ]

    def _row_to_expense(self, row: list) -> Expense:
        return Expense(
            id=UUID(_safe_get(row, 0)),
            period=_safe_get(row, 1),
            expense_date=date.fromisoformat(_safe_get(row, 2)),
            amount=Decimal(_safe_get(row, 3)),
            description=_safe_get(row, 4),
            category=_safe_get(row, 5, "Other"),
            location=_safe_get(row, 6),
            payer_id=_safe_get(row, 7),
            split_policy=SplitPolicy(_safe_get(row, 8, SplitPolicy.EQUAL.value)),
            created_at=datetime.fromisoformat(_safe_get(row, 9)),
            updated_at=datetime.fromisoformat(_safe_get(row, 10)),
        )

    @sheets_retry
    async def add_expense(self, expense: Expense) -> bool:
        try:
            sheet = self._client.get_expenses_sheet()
            if _find_row_index(sheet.get_all_values(), expense.id) is not None:
                raise DuplicateError(f"Expense already exists: {expense.id}")
            sheet.append_row(self._expense_to_row(expense), value_input_option="RAW")
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        try:
            sheet = self._client.get_expenses_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == str(expense_id):
                    return self._row_to_expense(row)
            return None
        except (StorageError, LedgerError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}")

    async def update_expense(self, expense: Expense) -> bool:
        try:
            sheet = self._client.get_expenses_sheet()
            idx = _find_row_index(sheet.get_all_values(), expense.id)
            if idx is None:
                raise NotFoundError(f"Expense not found: {expense.id}")

            new_row = self._expense_to_row(
                expense.model_copy(update={"updated_at": utcnow()})
            )
            for col_idx, value in enumerate(new_row, start=1):
                sheet.update_cell(idx, col_idx, value)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update expense: {e}")

    async def delete_expense(self, expense_id: UUID) -> bool:
        try:
            sheet = self._client.get_expenses_sheet()
            idx = _find_row_index(sheet.get_all_values(), expense_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")

    async def list_expenses(
        self,
        period: Optional[str] = None,
        payer_id: Optional[str] = None,
        category: Optional[str] = None,
        split_policy: Optional[SplitPolicy] = None,
    ) -> list[Expense]:
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")

        # Filter on the raw period column first so other months' rows
        # don't have to parse for this one to load
        if period:
            all_rows = [row for row in all_rows if _safe_get(row, 1) == period]

        expenses = []
        for expense in _parse_rows(all_rows, self._row_to_expense, "expense"):
            if payer_id and expense.payer_id != payer_id:
                continue
            if category and expense.category.lower() != category.lower():
                continue
            if split_policy and expense.split_policy != split_policy:
                continue
            expenses.append(expense)

        expenses.sort(key=lambda e: (e.expense_date, e.created_at))
        return expenses


class GoogleSheetsSettlementStorage(SettlementStorageInterface):
    """
    Google Sheets implementation of the settlement ledger.

    Rows are only appended or deleted, never edited.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = asyncio.Lock()

    def _settlement_to_row(self, settlement: Settlement) -> list:
        return [
            str(settlement.id),
            settlement.period,
            settlement.from_user_id,
            settlement.to_user_id,
            str(settlement.amount),
            settlement.recorded_at.isoformat(),
            settlement.notes or "",
            settlement.recorded_by or "",
        ]

    def _row_to_settlement(self, row: list) -> Settlement:
        return Settlement(
            id=UUID(_safe_get(row, 0)),
            period=_safe_get(row, 1),
            from_user_id=_safe_get(row, 2),
            to_user_id=_safe_get(row, 3),
            amount=Decimal(_safe_get(row, 4)),
            recorded_at=datetime.fromisoformat(_safe_get(row, 5)),
            notes=_safe_get(row, 6) or None,
            recorded_by=_safe_get(row, 7) or None,
        )

    @sheets_retry
    def _read_rows(self) -> list[list]:
        return self._client.get_settlements_sheet().get_all_values()

    def _period_rows(self, all_rows: list[list], period: str) -> list[list]:
        """Data rows of one period, in sheet (append) order."""
        return [row for row in all_rows[1:] if row and row[0] and _safe_get(row, 1) == period]

    async def list_settlements(self, period: str) -> list[Settlement]:
        try:
            rows = self._period_rows(self._read_rows(), period)
        except Exception as e:
            raise StorageError(f"Failed to list settlements: {e}")

        settlements = _parse_rows(rows, self._row_to_settlement, "settlement")
        settlements.sort(key=lambda s: s.recorded_at, reverse=True)
        return settlements

    async def get_settlement(self, settlement_id: UUID) -> Optional[Settlement]:
        try:
            all_rows = self._read_rows()
        except Exception as e:
            raise StorageError(f"Failed to get settlement: {e}")

        idx = _find_row_index(all_rows, settlement_id)
        if idx is None:
            return None
        return _parse_rows([all_rows[idx - 1]], self._row_to_settlement, "settlement")[0]

    async def record_settlement(
        self,
        period: str,
        direction: SettlementDirection,
        amount: Decimal,
        recorded_at: Optional[datetime] = None,
        notes: Optional[str] = None,
        recorded_by: Optional[str] = None,
        allow_resettle: bool = False,
    ) -> UUID:
        settlement = Settlement(
            from_user_id=direction.from_user_id,
            to_user_id=direction.to_user_id,
            amount=amount,
            period=period,
            recorded_at=recorded_at or utcnow(),
            notes=notes,
            recorded_by=recorded_by,
        )

        async with self._lock:
            try:
                existing = self._period_rows(self._read_rows(), period)
                if existing and not allow_resettle:
                    raise DuplicateSettlementError(period, UUID(existing[0][0]))

                sheet = self._client.get_settlements_sheet()
                sheet.append_row(
                    self._settlement_to_row(settlement),
                    value_input_option="RAW",
                )

                if not allow_resettle:
                    # Another process may have appended between our read and write
                    winners = self._period_rows(self._read_rows(), period)
                    if winners and winners[0][0] != str(settlement.id):
                        self._delete_row(settlement.id)
                        logger.warning(
                            "settlement_race_lost",
                            period=period,
                            settlement_id=str(settlement.id),
                            winner_id=winners[0][0],
                        )
                        raise DuplicateSettlementError(period, UUID(winners[0][0]))
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to record settlement: {e}")

        return settlement.id

    def _delete_row(self, settlement_id: UUID) -> bool:
        sheet = self._client.get_settlements_sheet()
        idx = _find_row_index(sheet.get_all_values(), settlement_id)
        if idx is None:
            return False
        sheet.delete_rows(idx)
        return True

    async def remove_settlement(self, settlement_id: UUID) -> bool:
        async with self._lock:
            try:
                return self._delete_row(settlement_id)
            except Exception as e:
                raise StorageError(f"Failed to remove settlement: {e}")


class GoogleSheetsPartyStorage(PartyStorageInterface):
    """The Parties sheet: one row per person."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def list_parties(self) -> list[Party]:
        try:
            rows = self._client.get_parties_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list parties: {e}")

        return _parse_rows(
            rows,
            lambda row: Party(
                id=_safe_get(row, 0),
                name=_safe_get(row, 1) or _safe_get(row, 0),
                email=_safe_get(row, 2) or None,
            ),
            "party",
        )


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=UUID(_safe_get(row, 5)) if _safe_get(row, 5) else None,
            period=_safe_get(row, 6) or None,
            correlation_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    @sheets_retry
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning(
                "audit_sheet_write_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    def _matching_events(self, column: int, value: str) -> list[AuditEvent]:
        try:
            all_rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and _safe_get(row, column) == value:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    # A damaged audit row must not hide the rest of the trail
                    continue

        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return self._matching_events(7, str(correlation_id))

    async def get_events_by_period(self, period: str) -> list[AuditEvent]:
        return self._matching_events(6, period)
