"""
Google Sheets Row Store Implementation

DESIGN DECISION: Google Sheets is used as the hosted row store because:
1. Users can view their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

Each table is one worksheet whose first row holds the column names.
Cells hold strings; booleans are written as real booleans and come
back as "TRUE"/"FALSE"; empty cells are None.

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No server-side transactions: atomic() keeps an undo journal and
  compensates every write of a failed block
- Limited query capabilities (we filter in Python)
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_tracker.config import get_settings
from finance_tracker.models.audit import AuditEvent
from finance_tracker.models.finance import (
    Budget,
    Category,
    IncomeSplitAllocation,
    IncomeSplitRule,
    PaymentMethod,
    RecurringTransaction,
    SplitParticipant,
    Transaction,
    TransactionSplit,
    UserProfile,
)
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    Row,
    RowStoreInterface,
    StorageError,
    normalize_value,
    row_matches,
)
from finance_tracker.services.storage.memory import sort_rows

logger = structlog.get_logger(__name__)

STORED_MODELS = [
    UserProfile,
    Category,
    PaymentMethod,
    Transaction,
    TransactionSplit,
    SplitParticipant,
    Budget,
    RecurringTransaction,
    IncomeSplitRule,
    IncomeSplitAllocation,
]


def _model_columns(model) -> list[str]:
    return [name for name in model.model_fields if name not in model.row_exclude]


def _model_booleans(model) -> set[str]:
    return {
        name
        for name, field in model.model_fields.items()
        if field.annotation is bool and name not in model.row_exclude
    }


# Column layout of every worksheet
TABLE_COLUMNS: dict[str, list[str]] = {
    model.table: _model_columns(model) for model in STORED_MODELS
}
TABLE_COLUMNS["user_profiles"].append("password_hash")
TABLE_COLUMNS["audit_log"] = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details",
    "error_message",
    "is_user_action",
]

BOOLEAN_COLUMNS: dict[str, set[str]] = {
    model.table: _model_booleans(model) for model in STORED_MODELS
}
BOOLEAN_COLUMNS["audit_log"] = {"is_user_action"}

# audit_log rows are keyed by event_id rather than id
ID_COLUMNS = {"audit_log": "event_id"}

_retry_policy = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def record_to_cells(table: str, record: Row) -> list:
    """Convert a row dict to worksheet cells in column order."""
    cells = []
    for column in TABLE_COLUMNS[table]:
        value = normalize_value(record.get(column))
        if value is None:
            cells.append("")
        elif isinstance(value, bool):
            cells.append(value)
        else:
            cells.append(str(value))
    return cells


def cells_to_record(table: str, header: list[str], cells: list[str]) -> Row:
    """Convert worksheet cells back to a row dict."""
    booleans = BOOLEAN_COLUMNS.get(table, set())
    record: Row = {}
    for index, column in enumerate(header):
        cell = cells[index] if index < len(cells) else ""
        if cell == "":
            record[column] = None
        elif column in booleans:
            record[column] = str(cell).upper() == "TRUE"
        else:
            record[column] = cell
    return record


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = get_settings().google_sheets

    @_retry_policy
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

    def get_worksheet(self, table: str) -> gspread.Worksheet:
        """Get or create the worksheet for a table."""
        if table not in TABLE_COLUMNS:
            raise StorageError(f"Unknown table: {table}")

        if table not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(table)
            except gspread.WorksheetNotFound:
                # Create the sheet with headers
                sheet = spreadsheet.add_worksheet(
                    title=table,
                    rows=1000,
                    cols=len(TABLE_COLUMNS[table]),
                )
                sheet.append_row(TABLE_COLUMNS[table])
            self._worksheets[table] = sheet
        return self._worksheets[table]


class GoogleSheetsRowStore(RowStoreInterface):
    """
    Google Sheets implementation of the row store.

    One worksheet per table, one row per record.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._journal: Optional[list[tuple[str, str, Row]]] = None

    def _id_column(self, table: str) -> str:
        return ID_COLUMNS.get(table, "id")

    def _read(self, table: str) -> tuple[gspread.Worksheet, list[str], list[Row]]:
        """Read a whole table: (sheet, header, records)."""
        sheet = self._client.get_worksheet(table)
        values = sheet.get_all_values()
        if not values:
            return sheet, list(TABLE_COLUMNS[table]), []
        header = values[0]
        records = [
            cells_to_record(table, header, cells)
            for cells in values[1:]
            if cells and any(cells)
        ]
        return sheet, header, records

    def _locate(self, table: str, row_id: Any) -> tuple[gspread.Worksheet, int, Row]:
        """Find a record and its 1-based sheet row index."""
        sheet = self._client.get_worksheet(table)
        values = sheet.get_all_values()
        if not values:
            raise NotFoundError(f"{table} row not found: {row_id}")
        header = values[0]
        id_index = header.index(self._id_column(table))
        key = str(normalize_value(row_id))
        for index, cells in enumerate(values[1:], start=2):  # Row 1 is header
            if len(cells) > id_index and cells[id_index] == key:
                return sheet, index, cells_to_record(table, header, cells)
        raise NotFoundError(f"{table} row not found: {row_id}")

    def _record(self, action: str, table: str, record: Row) -> None:
        if self._journal is not None:
            self._journal.append((action, table, record))

    async def select(
        self,
        table: str,
        where: Optional[dict[str, Any]] = None,
        gte: Optional[dict[str, Any]] = None,
        lte: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Row]:
        try:
            _, _, records = self._read(table)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {table}: {e}")

        rows = [r for r in records if row_matches(r, where, gte, lte)]
        rows = sort_rows(rows, order_by, descending)
        return rows[:limit] if limit is not None else rows

    async def get(self, table: str, row_id: Any) -> Optional[Row]:
        try:
            _, _, record = self._locate(table, row_id)
            return record
        except NotFoundError:
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get {table} row: {e}")

    @_retry_policy
    async def _append(self, table: str, record: Row) -> None:
        sheet = self._client.get_worksheet(table)
        sheet.append_row(record_to_cells(table, record), value_input_option="RAW")

    @_retry_policy
    async def _overwrite(self, table: str, index: int, record: Row) -> None:
        sheet = self._client.get_worksheet(table)
        sheet.update(
            range_name=f"A{index}",
            values=[record_to_cells(table, record)],
            value_input_option="RAW",
        )

    async def insert(self, table: str, row: Row) -> Row:
        id_column = self._id_column(table)
        record = {k: normalize_value(v) for k, v in row.items()}
        record.setdefault(id_column, str(uuid4()))

        if await self.get(table, record[id_column]) is not None:
            raise DuplicateError(f"{table} row already exists: {record[id_column]}")

        try:
            await self._append(table, record)
        except Exception as e:
            raise StorageError(f"Failed to insert into {table}: {e}")

        self._record("insert", table, record)
        return record

    async def update(self, table: str, row_id: Any, values: Row) -> Row:
        try:
            _, index, previous = self._locate(table, row_id)
            updated = dict(previous)
            updated.update({
                k: normalize_value(v)
                for k, v in values.items()
                if k != self._id_column(table)
            })
            await self._overwrite(table, index, updated)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {table} row: {e}")

        self._record("update", table, previous)
        return updated

    async def update_where(
        self,
        table: str,
        where: dict[str, Any],
        values: Row,
    ) -> int:
        matching = await self.select(table, where=where)
        for record in matching:
            await self.update(table, record[self._id_column(table)], values)
        return len(matching)

    async def delete(self, table: str, row_id: Any) -> bool:
        try:
            sheet, index, previous = self._locate(table, row_id)
            sheet.delete_rows(index)
        except NotFoundError:
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete {table} row: {e}")

        self._record("delete", table, previous)
        return True

    async def _undo(self, journal: list[tuple[str, str, Row]]) -> None:
        """Compensate journaled writes, newest first."""
        for action, table, record in reversed(journal):
            row_id = record[self._id_column(table)]
            try:
                if action == "insert":
                    await self.delete(table, row_id)
                elif action == "update":
                    await self.update(table, row_id, record)
                elif action == "delete":
                    await self._append(table, record)
            except Exception as e:
                logger.error(
                    "atomic_undo_failed",
                    table=table,
                    action=action,
                    row_id=row_id,
                    error=str(e),
                )

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        if self._journal is not None:
            yield
            return

        self._journal = []
        try:
            yield
        except BaseException:
            journal, self._journal = self._journal, None
            await self._undo(journal)
            raise
        finally:
            self._journal = None


class RowStoreAuditStorage(AuditStorageInterface):
    """
    Audit log kept in the `audit_log` table of any row store.

    Audit events are append-only.
    """

    TABLE = "audit_log"

    def __init__(self, store: RowStoreInterface):
        self._store = store

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            await self._store.insert(self.TABLE, event.to_row())
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID, oldest first."""
        rows = await self._store.select(
            self.TABLE,
            where={"correlation_id": correlation_id},
            order_by="timestamp",
        )
        return [AuditEvent.from_row(row) for row in rows]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events, newest first."""
        rows = await self._store.select(
            self.TABLE,
            order_by="timestamp",
            descending=True,
            limit=limit,
        )
        return [AuditEvent.from_row(row) for row in rows]
