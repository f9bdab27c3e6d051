"""
Tests for the document stores and audit storage.

The Google Sheets store is exercised against an in-process fake of the
gspread worksheet API.
"""

import asyncio
import json

import pytest
from tenacity import wait_none

from accounts_keeper.models import AuditEventBuilder
from accounts_keeper.services.storage import (
    BatchCommitError,
    BatchOperation,
    GoogleSheetsAuditStorage,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    NotFoundError,
    WriteBatch,
)


class TestInMemoryDocumentStore:
    """Tests for the dict-backed store."""

    def test_add_get_query(self):
        """Test insert, fetch and equality-filtered query."""
        store = InMemoryDocumentStore()

        async def scenario():
            first = await store.add("accounts", {"userId": "u1", "name": "Cash"})
            await store.add("accounts", {"userId": "u2", "name": "Bank"})
            fetched = await store.get("accounts", first)
            mine = await store.query("accounts", {"userId": "u1"})
            return first, fetched, mine

        first, fetched, mine = asyncio.run(scenario())
        assert fetched.id == first
        assert fetched.data["name"] == "Cash"
        assert [d.id for d in mine] == [first]

    def test_returned_documents_are_copies(self):
        """Test mutating a returned document doesn't change the store."""
        store = InMemoryDocumentStore()

        async def scenario():
            doc_id = await store.add("accounts", {"userId": "u1", "name": "Cash"})
            fetched = await store.get("accounts", doc_id)
            fetched.data["name"] = "Changed"
            return await store.get("accounts", doc_id)

        assert asyncio.run(scenario()).data["name"] == "Cash"

    def test_update_missing_raises(self):
        """Test updating a missing document raises NotFoundError."""
        store = InMemoryDocumentStore()
        with pytest.raises(NotFoundError):
            asyncio.run(store.update("accounts", "nope", {"name": "x"}))

    def test_set_merge(self):
        """Test set with merge keeps existing fields."""
        store = InMemoryDocumentStore()

        async def scenario():
            await store.set("user_settings", "u1", {"currency": "INR", "currencySymbol": "₹"})
            await store.set("user_settings", "u1", {"currency": "USD"}, merge=True)
            return await store.get("user_settings", "u1")

        assert asyncio.run(scenario()).data == {"currency": "USD", "currencySymbol": "₹"}

    def test_batch_commits_everything(self):
        """Test every operation in a batch is applied."""
        store = InMemoryDocumentStore()

        async def scenario():
            keep = await store.add("transactions", {"userId": "u1"})
            drop = await store.add("transactions", {"userId": "u1"})
            batch = store.batch()
            batch.delete("transactions", drop)
            new_id = batch.set("transactions", {"userId": "u1", "amount": "5"})
            await store.commit(batch)
            return keep, drop, new_id

        keep, drop, new_id = asyncio.run(scenario())
        assert store.count("transactions") == 2
        assert asyncio.run(store.get("transactions", drop)) is None
        assert asyncio.run(store.get("transactions", new_id)).data["amount"] == "5"

    def test_failed_batch_applies_nothing(self):
        """Test a batch with a bad operation leaves the store unchanged."""
        store = InMemoryDocumentStore()
        doc_id = asyncio.run(store.add("transactions", {"userId": "u1"}))

        batch = WriteBatch()
        batch.delete("transactions", doc_id)
        batch.operations.append(BatchOperation("rename", "transactions", doc_id))

        with pytest.raises(BatchCommitError):
            asyncio.run(store.commit(batch))
        assert store.count("transactions") == 1


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the document store."""

    def __init__(self, sheet_id: int, rows=None):
        self.id = sheet_id
        self.rows = [["id", "user_id", "data_json", "updated_at"]] + (rows or [])

    def get_all_values(self):
        return [list(r) for r in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append(list(row))

    def batch_update(self, data, value_input_option=None):
        for item in data:
            row_number = int(item["range"].split(":")[0][1:])
            self.rows[row_number - 1] = list(item["values"][0])

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSpreadsheet:
    def __init__(self):
        self.requests = []

    def batch_update(self, body):
        self.requests.append(body)


class FakeSheetsClient:
    def __init__(self, sheets):
        self.sheets = sheets
        self.spreadsheet = FakeSpreadsheet()

    def get_collection_sheet(self, collection):
        return self.sheets[collection]

    def get_spreadsheet(self):
        return self.spreadsheet


def sheet_row(doc_id, data):
    return [doc_id, data.get("userId", ""), json.dumps(data), "2024-01-01T00:00:00"]


class TestGoogleSheetsDocumentStore:
    """Tests for the Sheets store against a fake worksheet."""

    def make_store(self):
        transactions = FakeWorksheet(11, [
            sheet_row("t1", {"userId": "u1", "accountId": "a1"}),
            ["", "", "", ""],
            ["t2", "u1", "{not json", ""],
            sheet_row("t3", {"userId": "u2", "accountId": "a9"}),
        ])
        accounts = FakeWorksheet(22, [sheet_row("a1", {"userId": "u1", "name": "Cash"})])
        client = FakeSheetsClient({"transactions": transactions, "accounts": accounts})
        return GoogleSheetsDocumentStore(client), client

    def test_query_skips_empty_and_malformed_rows(self):
        """Test blank and unparseable rows are skipped."""
        store, _ = self.make_store()
        documents = asyncio.run(store.query("transactions"))
        assert [d.id for d in documents] == ["t1", "t3"]

    def test_query_filters(self):
        """Test equality filters apply to the document body."""
        store, _ = self.make_store()
        documents = asyncio.run(store.query("transactions", {"userId": "u2"}))
        assert [d.id for d in documents] == ["t3"]

    def test_update_rewrites_row(self):
        """Test update merges into the stored document."""
        store, client = self.make_store()
        asyncio.run(store.update("accounts", "a1", {"name": "Wallet"}))
        stored = json.loads(client.sheets["accounts"].rows[1][2])
        assert stored == {"userId": "u1", "name": "Wallet"}

    def test_update_missing_raises(self):
        """Test updating a missing document raises NotFoundError."""
        store, _ = self.make_store()
        with pytest.raises(NotFoundError):
            asyncio.run(store.update("accounts", "nope", {"name": "x"}))

    def test_batch_is_one_request_in_safe_order(self):
        """Test a batch becomes one batchUpdate: updates, deletes bottom-up, appends."""
        store, client = self.make_store()
        batch = WriteBatch()
        batch.delete("transactions", "t1")
        batch.delete("transactions", "t3")
        batch.set("accounts", {"userId": "u1", "name": "Bank"}, doc_id="a1")
        batch.set("transactions", {"userId": "u1", "accountId": "a1"}, doc_id="t9")

        asyncio.run(store.commit(batch))

        assert len(client.spreadsheet.requests) == 1
        requests = client.spreadsheet.requests[0]["requests"]
        kinds = [next(iter(r)) for r in requests]
        assert kinds == ["updateCells", "deleteDimension", "deleteDimension", "appendCells"]

        # t3 sits on sheet row 5, t1 on row 2; bottom-up means t3 first
        starts = [r["deleteDimension"]["range"]["startIndex"] for r in requests[1:3]]
        assert starts == [4, 1]

    def test_empty_batch_sends_nothing(self):
        """Test committing an empty batch makes no API call."""
        store, client = self.make_store()
        asyncio.run(store.commit(WriteBatch()))
        assert client.spreadsheet.requests == []

    def test_unknown_operation_fails_batch(self):
        """Test an unknown operation fails the whole batch."""
        store, client = self.make_store()
        batch = WriteBatch()
        batch.operations.append(BatchOperation("rename", "accounts", "a1"))
        with pytest.raises(BatchCommitError):
            asyncio.run(store.commit(batch))
        assert client.spreadsheet.requests == []


class FlakyAuditSheet:
    """Audit worksheet whose first `failures` appends raise."""

    def __init__(self, failures):
        self.failures = failures
        self.rows = []

    def append_row(self, row, value_input_option=None):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("quota exceeded")
        self.rows.append(list(row))


class FakeAuditClient:
    def __init__(self, sheet):
        self.sheet = sheet

    def get_audit_sheet(self):
        return self.sheet


class TestGoogleSheetsAuditStorage:
    """Tests for appending audit rows."""

    @pytest.fixture(autouse=True)
    def no_backoff(self, monkeypatch):
        monkeypatch.setattr(GoogleSheetsAuditStorage._append_row.retry, "wait", wait_none())

    def event(self):
        return AuditEventBuilder.data_exported(user_id="u1", transaction_count=2, category_count=1)

    def test_transient_failure_is_retried(self):
        """Test an append that fails once is retried and lands."""
        sheet = FlakyAuditSheet(failures=1)
        storage = GoogleSheetsAuditStorage(FakeAuditClient(sheet))
        event = self.event()

        assert asyncio.run(storage.append_event(event)) is True
        assert len(sheet.rows) == 1
        assert sheet.rows[0][0] == str(event.event_id)

    def test_persistent_failure_returns_false(self):
        """Test an append that keeps failing gives up without raising."""
        sheet = FlakyAuditSheet(failures=5)
        storage = GoogleSheetsAuditStorage(FakeAuditClient(sheet))

        assert asyncio.run(storage.append_event(self.event())) is False
        assert sheet.rows == []
        assert sheet.failures == 2
