"""Tests for the row stores and the audit table."""

import asyncio
from datetime import datetime

import pytest
from uuid import uuid4

from finance_tracker.models.audit import AuditEvent, AuditEventType
from finance_tracker.services.storage import (
    DuplicateError,
    GoogleSheetsRowStore,
    InMemoryRowStore,
    NotFoundError,
    RowStoreAuditStorage,
)
from finance_tracker.services.storage.google_sheets import (
    TABLE_COLUMNS,
    cells_to_record,
    record_to_cells,
)


class FakeWorksheet:
    """Keeps cells the way Sheets returns them: strings, booleans as TRUE/FALSE."""

    def __init__(self, header):
        self.values = [list(header)]

    @staticmethod
    def _cell(value):
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        return str(value)

    def get_all_values(self):
        return [list(row) for row in self.values]

    def append_row(self, cells, value_input_option=None):
        self.values.append([self._cell(c) for c in cells])

    def update(self, range_name=None, values=None, value_input_option=None):
        index = int(range_name[1:]) - 1
        self.values[index] = [self._cell(c) for c in values[0]]

    def delete_rows(self, index):
        del self.values[index - 1]


class FakeSheetsClient:

    def __init__(self):
        self.sheets = {}

    def get_worksheet(self, table):
        if table not in self.sheets:
            self.sheets[table] = FakeWorksheet(TABLE_COLUMNS[table])
        return self.sheets[table]


def memory_store():
    return InMemoryRowStore()


def sheets_store():
    return GoogleSheetsRowStore(client=FakeSheetsClient())


STORES = [memory_store, sheets_store]


def category_row(user_id, name, **extra):
    row = {
        "id": str(uuid4()),
        "user_id": str(user_id),
        "name": name,
        "type": "expense",
        "is_custom": False,
        "created_at": "2024-03-01T00:00:00",
    }
    row.update(extra)
    return row


@pytest.mark.parametrize("make_store", STORES)
class TestRowStore:
    """Behaviour shared by every RowStoreInterface implementation."""

    def test_insert_and_get(self, make_store):
        store = make_store()
        user_id = uuid4()

        async def run():
            row = await store.insert("categories", category_row(user_id, "Food"))
            return row, await store.get("categories", row["id"])

        inserted, fetched = asyncio.run(run())
        assert fetched["name"] == "Food"
        assert fetched["is_custom"] is False
        assert fetched["id"] == inserted["id"]

    def test_get_missing_returns_none(self, make_store):
        store = make_store()
        assert asyncio.run(store.get("categories", uuid4())) is None

    def test_duplicate_id_is_rejected(self, make_store):
        store = make_store()
        row = category_row(uuid4(), "Food")

        async def run():
            await store.insert("categories", row)
            await store.insert("categories", row)

        with pytest.raises(DuplicateError):
            asyncio.run(run())

    def test_select_filters_orders_and_limits(self, make_store):
        store = make_store()
        user_id = uuid4()

        async def run():
            for name in ("Rent", "Food", "Fun"):
                await store.insert("categories", category_row(user_id, name))
            await store.insert("categories", category_row(uuid4(), "Other user"))
            return await store.select(
                "categories",
                where={"user_id": user_id},
                order_by="name",
                limit=2,
            )

        rows = asyncio.run(run())
        assert [r["name"] for r in rows] == ["Food", "Fun"]

    def test_select_date_range(self, make_store):
        store = make_store()
        user_id = uuid4()

        async def run():
            for day in ("2024-02-29", "2024-03-01", "2024-03-31", "2024-04-01"):
                await store.insert("transactions", {
                    "user_id": str(user_id),
                    "type": "expense",
                    "amount": "1.00",
                    "description": day,
                    "transaction_date": day,
                    "is_split": False,
                })
            return await store.select(
                "transactions",
                gte={"transaction_date": "2024-03-01"},
                lte={"transaction_date": "2024-03-31"},
                order_by="transaction_date",
                descending=True,
            )

        rows = asyncio.run(run())
        assert [r["description"] for r in rows] == ["2024-03-31", "2024-03-01"]

    def test_update_and_update_where(self, make_store):
        store = make_store()
        user_id = uuid4()

        async def run():
            a = await store.insert("categories", category_row(user_id, "A", is_custom=True))
            await store.insert("categories", category_row(user_id, "B", is_custom=True))
            await store.update("categories", a["id"], {"name": "A2"})
            count = await store.update_where(
                "categories",
                {"user_id": user_id, "is_custom": True},
                {"is_custom": False},
            )
            return count, await store.select("categories", order_by="name")

        count, rows = asyncio.run(run())
        assert count == 2
        assert [r["name"] for r in rows] == ["A2", "B"]
        assert all(r["is_custom"] is False for r in rows)

    def test_update_missing_row_raises(self, make_store):
        store = make_store()
        with pytest.raises(NotFoundError):
            asyncio.run(store.update("categories", uuid4(), {"name": "x"}))

    def test_delete(self, make_store):
        store = make_store()

        async def run():
            row = await store.insert("categories", category_row(uuid4(), "Food"))
            first = await store.delete("categories", row["id"])
            second = await store.delete("categories", row["id"])
            return first, second, await store.select("categories")

        first, second, rows = asyncio.run(run())
        assert (first, second) == (True, False)
        assert rows == []

    def test_atomic_rolls_back_every_write(self, make_store):
        store = make_store()
        user_id = uuid4()

        async def run():
            kept = await store.insert("categories", category_row(user_id, "Kept"))
            try:
                async with store.atomic():
                    await store.insert("categories", category_row(user_id, "New"))
                    await store.update("categories", kept["id"], {"name": "Renamed"})
                    await store.delete("categories", kept["id"])
                    raise RuntimeError("boom")
            except RuntimeError:
                pass
            return await store.select("categories")

        rows = asyncio.run(run())
        assert [r["name"] for r in rows] == ["Kept"]

    def test_atomic_commits_on_success(self, make_store):
        store = make_store()

        async def run():
            async with store.atomic():
                async with store.atomic():
                    await store.insert("categories", category_row(uuid4(), "Inner"))
                await store.insert("categories", category_row(uuid4(), "Outer"))
            return await store.select("categories", order_by="name")

        assert [r["name"] for r in asyncio.run(run())] == ["Inner", "Outer"]

    def test_nested_failure_rolls_back_outer_block(self, make_store):
        store = make_store()

        async def run():
            with pytest.raises(ValueError):
                async with store.atomic():
                    await store.insert("categories", category_row(uuid4(), "Outer"))
                    async with store.atomic():
                        raise ValueError("inner")
            return await store.select("categories")

        assert asyncio.run(run()) == []


class TestSheetsCells:
    """Cell conversion for the spreadsheet backend."""

    def test_record_to_cells_follows_column_order(self):
        record = {"name": "Food", "id": "abc", "is_custom": True, "icon": None}
        cells = record_to_cells("categories", record)
        columns = TABLE_COLUMNS["categories"]
        assert cells[columns.index("id")] == "abc"
        assert cells[columns.index("is_custom")] is True
        assert cells[columns.index("icon")] == ""

    def test_cells_to_record_restores_types(self):
        header = ["id", "name", "is_custom", "icon"]
        record = cells_to_record("categories", header, ["abc", "TRUE", "FALSE", ""])
        # Text columns keep text even when it reads like a boolean
        assert record["name"] == "TRUE"
        assert record["is_custom"] is False
        assert record["icon"] is None

    def test_short_rows_are_padded(self):
        record = cells_to_record("categories", ["id", "name"], ["abc"])
        assert record == {"id": "abc", "name": None}

    def test_user_profiles_carry_password_hash(self):
        assert "password_hash" in TABLE_COLUMNS["user_profiles"]

    def test_every_table_has_a_worksheet_layout(self):
        for table in (
            "user_profiles", "transactions", "categories", "payment_methods",
            "budgets", "recurring_transactions", "income_split_rules",
            "income_split_allocations", "transaction_splits",
            "split_participants", "audit_log",
        ):
            assert TABLE_COLUMNS[table]


@pytest.mark.parametrize("make_store", STORES)
class TestAuditStorage:

    def test_append_and_query_by_correlation(self, make_store):
        audit = RowStoreAuditStorage(make_store())
        correlation_id = uuid4()

        async def run():
            for minute, description in enumerate(("first", "second")):
                await audit.append_event(AuditEvent(
                    event_type=AuditEventType.TRANSACTION_RECORDED,
                    timestamp=datetime(2024, 3, 1, 12, minute),
                    description=description,
                    correlation_id=correlation_id,
                    details={"n": description},
                ))
            await audit.append_event(AuditEvent(
                event_type=AuditEventType.USER_SIGNED_IN,
                timestamp=datetime(2024, 3, 1, 12, 30),
                description="unrelated",
            ))
            return (
                await audit.get_events_by_correlation_id(correlation_id),
                await audit.get_recent_events(limit=10),
            )

        related, recent = asyncio.run(run())
        assert [e.description for e in related] == ["first", "second"]
        assert related[0].details == {"n": "first"}
        assert len(recent) == 3
        assert recent[0].description == "unrelated"
