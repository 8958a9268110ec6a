"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the hosted row store.
This allows us to:
1. Swap the spreadsheet backend for a real database later
2. Use in-memory storage for testing
3. Keep the query layer decoupled from the storage implementation

The interface is intentionally small - select/insert/update/delete
against named tables, plus an atomic block for multi-step writes.
Rows are plain dicts of JSON-compatible values (see StoredModel.to_row).
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from finance_tracker.models.audit import AuditEvent

Row = dict[str, Any]


def normalize_value(value: Any) -> Any:
    """Bring a filter value into the form rows store it in."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def row_matches(
    row: Row,
    where: Optional[dict[str, Any]] = None,
    gte: Optional[dict[str, Any]] = None,
    lte: Optional[dict[str, Any]] = None,
) -> bool:
    """
    Shared filter semantics for every implementation.

    `where` is equality, `gte` / `lte` are inclusive bounds compared on
    the stored form (ISO dates compare correctly as strings).
    """
    for column, value in (where or {}).items():
        if row.get(column) != normalize_value(value):
            return False
    for column, value in (gte or {}).items():
        cell = row.get(column)
        if cell is None or cell < normalize_value(value):
            return False
    for column, value in (lte or {}).items():
        cell = row.get(column)
        if cell is None or cell > normalize_value(value):
            return False
    return True


class RowStoreInterface(ABC):
    """
    Abstract interface for the hosted row store.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods. Every table has an `id` column.
    """

    @abstractmethod
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
        """
        Select rows from a table.

        Args:
            table: Table name
            where: Equality filters {column: value}
            gte: Inclusive lower bounds {column: value}
            lte: Inclusive upper bounds {column: value}
            order_by: Column to sort by
            descending: Sort direction
            limit: Maximum number of rows

        Returns:
            Matching rows
        """
        pass

    @abstractmethod
    async def get(self, table: str, row_id: Any) -> Optional[Row]:
        """
        Fetch a single row by id.

        Returns:
            The row if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert(self, table: str, row: Row) -> Row:
        """
        Insert a row.

        Returns:
            The stored row

        Raises:
            DuplicateError: If a row with the same id exists
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def update(self, table: str, row_id: Any, values: Row) -> Row:
        """
        Update columns of one row.

        Returns:
            The updated row

        Raises:
            NotFoundError: If the row doesn't exist
            StorageError: If the update fails
        """
        pass

    @abstractmethod
    async def update_where(
        self,
        table: str,
        where: dict[str, Any],
        values: Row,
    ) -> int:
        """
        Update every row matching `where`.

        Returns:
            Number of rows updated
        """
        pass

    @abstractmethod
    async def delete(self, table: str, row_id: Any) -> bool:
        """
        Hard-delete a row by id.

        Returns:
            True if a row was deleted
        """
        pass

    @abstractmethod
    def atomic(self) -> AbstractAsyncContextManager[None]:
        """
        Group writes into one all-or-nothing operation.

        Usage:
            async with store.atomic():
                await store.insert("transactions", ...)
                await store.insert("transaction_splits", ...)

        If the block raises, every write made inside it is undone and the
        exception propagates. Nested blocks join the outermost one.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one split bill).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class InvariantViolationError(StorageError):
    """Stored data breaks an invariant (e.g., two active income rules)."""
    pass
