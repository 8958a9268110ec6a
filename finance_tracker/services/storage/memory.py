"""
In-Memory Row Store

Keeps every table as a list of dicts. Used by the test suite and when
the app runs with `storage_backend=memory`.

atomic() snapshots all tables on entry and restores the snapshot if the
block raises, so a failed multi-step write leaves nothing behind.
"""

import copy
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional
from uuid import uuid4

from finance_tracker.services.storage.interface import (
    DuplicateError,
    NotFoundError,
    Row,
    RowStoreInterface,
    normalize_value,
    row_matches,
)


def sort_rows(rows: list[Row], order_by: Optional[str], descending: bool) -> list[Row]:
    if not order_by:
        return rows
    # Rows missing the column sort last in either direction
    present = [r for r in rows if r.get(order_by) is not None]
    missing = [r for r in rows if r.get(order_by) is None]
    present.sort(key=lambda r: r[order_by], reverse=descending)
    return present + missing


class InMemoryRowStore(RowStoreInterface):
    """Row store backed by Python dicts."""

    def __init__(self, tables: Optional[dict[str, list[Row]]] = None):
        self._tables: dict[str, list[Row]] = tables if tables is not None else {}
        self._in_atomic = False

    def _table(self, table: str) -> list[Row]:
        return self._tables.setdefault(table, [])

    def _find(self, table: str, row_id: Any) -> Optional[Row]:
        key = normalize_value(row_id)
        for row in self._table(table):
            if row.get("id") == key:
                return row
        return None

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
        rows = [
            dict(row)
            for row in self._table(table)
            if row_matches(row, where, gte, lte)
        ]
        rows = sort_rows(rows, order_by, descending)
        return rows[:limit] if limit is not None else rows

    async def get(self, table: str, row_id: Any) -> Optional[Row]:
        row = self._find(table, row_id)
        return dict(row) if row else None

    async def insert(self, table: str, row: Row) -> Row:
        stored = {k: normalize_value(v) for k, v in row.items()}
        stored.setdefault("id", str(uuid4()))
        if self._find(table, stored["id"]) is not None:
            raise DuplicateError(f"{table} row already exists: {stored['id']}")
        self._table(table).append(stored)
        return dict(stored)

    async def update(self, table: str, row_id: Any, values: Row) -> Row:
        row = self._find(table, row_id)
        if row is None:
            raise NotFoundError(f"{table} row not found: {row_id}")
        row.update({k: normalize_value(v) for k, v in values.items() if k != "id"})
        return dict(row)

    async def update_where(
        self,
        table: str,
        where: dict[str, Any],
        values: Row,
    ) -> int:
        count = 0
        for row in self._table(table):
            if row_matches(row, where):
                row.update({k: normalize_value(v) for k, v in values.items() if k != "id"})
                count += 1
        return count

    async def delete(self, table: str, row_id: Any) -> bool:
        row = self._find(table, row_id)
        if row is None:
            return False
        self._table(table).remove(row)
        return True

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        if self._in_atomic:
            yield
            return

        snapshot = copy.deepcopy(self._tables)
        self._in_atomic = True
        try:
            yield
        except BaseException:
            self._tables.clear()
            self._tables.update(snapshot)
            raise
        finally:
            self._in_atomic = False
