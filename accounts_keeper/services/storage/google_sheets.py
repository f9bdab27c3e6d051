"""
Google Sheets Storage Implementation

DESIGN DECISION: The hosted backend is a spreadsheet the user can open
and read without any database to run.

Each collection lives in its own worksheet, one document per row:
    id | user_id | data_json | updated_at

TRADEOFFS:
- Every query reads the whole worksheet and filters in Python, which is
  fine at personal-ledger volumes
- Write batches are sent as a single spreadsheets.batchUpdate call,
  which the API applies all-or-nothing
"""

import json
from datetime import datetime
from typing import Any, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from accounts_keeper.config import get_settings
from accounts_keeper.models.audit import AuditEvent
from accounts_keeper.services.storage.interface import (
    OWNER_FIELD,
    AuditStorageInterface,
    BatchCommitError,
    ConnectionError,
    DocumentStore,
    NotFoundError,
    StorageError,
    StoredDocument,
    WriteBatch,
    new_document_id,
)


logger = structlog.get_logger(__name__)

# Column layout shared by every collection worksheet
DOCUMENT_COLUMNS = [
    "id",
    "user_id",
    "data_json",
    "updated_at",
]

# Audit worksheet columns
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Thin gspread wrapper shared by the document and audit stores.

    Connects lazily and retries transient API errors.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets
        self._worksheets: dict[str, gspread.Worksheet] = {}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """Authorize with the service account key."""
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
        """The spreadsheet named by GOOGLE_SHEETS_SPREADSHEET_ID, connecting on first use."""
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

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # first use: add the worksheet and its header row
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_collection_sheet(self, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        if collection not in self._worksheets:
            title = f"{self._settings.worksheet_prefix}{collection}"
            self._worksheets[collection] = self._get_or_create(
                title, DOCUMENT_COLUMNS, rows=1000
            )
        return self._worksheets[collection]

    def get_audit_sheet(self) -> gspread.Worksheet:
        """The audit worksheet, created on first use."""
        return self._get_or_create(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,
        )


def _cell(value: str) -> dict:
    return {"userEnteredValue": {"stringValue": value}}


class GoogleSheetsDocumentStore(DocumentStore):
    """
    Google Sheets implementation of the document store.

    Document bodies are JSON-serialized into the data_json column.
    The owner is duplicated into user_id so the sheet stays readable.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _document_to_row(self, doc_id: str, data: dict) -> list[str]:
        """Convert a document to a spreadsheet row."""
        return [
            doc_id,
            str(data.get(OWNER_FIELD, "")),
            json.dumps(data, ensure_ascii=False, default=str),
            datetime.utcnow().isoformat(),
        ]

    def _row_to_document(self, row: list) -> StoredDocument:
        """Convert a spreadsheet row to a document."""
        raw = row[2] if len(row) > 2 else ""
        return StoredDocument(row[0], json.loads(raw) if raw else {})

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_all(self, collection: str) -> list[tuple[int, StoredDocument]]:
        """
        Read every document with its 1-based sheet row number.

        Malformed rows are skipped.
        """
        sheet = self._client.get_collection_sheet(collection)
        rows = sheet.get_all_values()[1:]  # Skip header

        documents = []
        for row_number, row in enumerate(rows, start=2):
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                documents.append((row_number, self._row_to_document(row)))
            except (ValueError, IndexError):
                logger.warning(
                    "malformed_row_skipped",
                    collection=collection,
                    row_number=row_number,
                )
        return documents

    def _find(self, collection: str, doc_id: str) -> Optional[tuple[int, StoredDocument]]:
        for row_number, document in self._read_all(collection):
            if document.id == doc_id:
                return row_number, document
        return None

    def _write_row(self, collection: str, row_number: int, doc_id: str, data: dict) -> None:
        sheet = self._client.get_collection_sheet(collection)
        sheet.batch_update(
            [{
                "range": f"A{row_number}:D{row_number}",
                "values": [self._document_to_row(doc_id, data)],
            }],
            value_input_option="RAW",
        )

    async def query(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[StoredDocument]:
        try:
            documents = [document for _, document in self._read_all(collection)]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to query {collection}: {e}")

        if not filters:
            return documents
        return [
            document for document in documents
            if all(document.data.get(k) == v for k, v in filters.items())
        ]

    async def get(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        try:
            found = self._find(collection, doc_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get {collection}/{doc_id}: {e}")
        return found[1] if found else None

    async def add(self, collection: str, data: dict) -> str:
        doc_id = new_document_id()
        try:
            sheet = self._client.get_collection_sheet(collection)
            sheet.append_row(self._document_to_row(doc_id, data), value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to add to {collection}: {e}")
        return doc_id

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict,
        merge: bool = False,
    ) -> None:
        try:
            found = self._find(collection, doc_id)
            if found is None:
                sheet = self._client.get_collection_sheet(collection)
                sheet.append_row(self._document_to_row(doc_id, data), value_input_option="RAW")
                return
            row_number, existing = found
            body = {**existing.data, **data} if merge else data
            self._write_row(collection, row_number, doc_id, body)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to set {collection}/{doc_id}: {e}")

    async def update(self, collection: str, doc_id: str, data: dict) -> None:
        try:
            found = self._find(collection, doc_id)
            if found is None:
                raise NotFoundError(f"{collection}/{doc_id} not found")
            row_number, existing = found
            self._write_row(collection, row_number, doc_id, {**existing.data, **data})
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {collection}/{doc_id}: {e}")

    async def delete(self, collection: str, doc_id: str) -> bool:
        try:
            found = self._find(collection, doc_id)
            if found is None:
                return False
            sheet = self._client.get_collection_sheet(collection)
            sheet.delete_rows(found[0])
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {collection}/{doc_id}: {e}")

    def build_batch_requests(self, batch: WriteBatch) -> list[dict]:
        """
        Translate a WriteBatch into spreadsheets.batchUpdate requests.

        Requests are ordered so row indices stay valid while the API
        applies them: in-place updates, then row deletions bottom-up,
        then appends.
        """
        # collection -> doc_id -> (row_number or None, data or None when deleted)
        state: dict[str, dict[str, tuple[Optional[int], Optional[dict]]]] = {}
        original_rows: dict[str, dict[str, int]] = {}

        for op in batch.operations:
            if op.collection not in state:
                rows = self._read_all(op.collection)
                state[op.collection] = {
                    document.id: (row_number, document.data)
                    for row_number, document in rows
                }
                original_rows[op.collection] = {
                    document.id: row_number for row_number, document in rows
                }
            docs = state[op.collection]
            row_number, current = docs.get(op.doc_id, (None, None))

            if op.kind == "set":
                body = {**current, **op.data} if (op.merge and current) else dict(op.data)
                docs[op.doc_id] = (row_number, body)
            elif op.kind == "delete":
                docs[op.doc_id] = (row_number, None)
            else:
                raise BatchCommitError(f"Unknown batch operation: {op.kind}")

        updates: list[dict] = []
        deletes: list[tuple[int, int]] = []
        appends: list[dict] = []

        for collection, docs in state.items():
            sheet_id = self._client.get_collection_sheet(collection).id
            for doc_id, (row_number, body) in docs.items():
                if row_number is None:
                    if body is not None:
                        appends.append({
                            "appendCells": {
                                "sheetId": sheet_id,
                                "rows": [{"values": [_cell(v) for v in self._document_to_row(doc_id, body)]}],
                                "fields": "userEnteredValue",
                            }
                        })
                elif body is None:
                    deletes.append((sheet_id, row_number))
                elif original_rows[collection].get(doc_id) == row_number:
                    updates.append({
                        "updateCells": {
                            "start": {"sheetId": sheet_id, "rowIndex": row_number - 1, "columnIndex": 0},
                            "rows": [{"values": [_cell(v) for v in self._document_to_row(doc_id, body)]}],
                            "fields": "userEnteredValue",
                        }
                    })

        requests = list(updates)
        for sheet_id, row_number in sorted(deletes, key=lambda d: (d[0], -d[1])):
            requests.append({
                "deleteDimension": {
                    "range": {
                        "sheetId": sheet_id,
                        "dimension": "ROWS",
                        "startIndex": row_number - 1,
                        "endIndex": row_number,
                    }
                }
            })
        requests.extend(appends)
        return requests

    async def commit(self, batch: WriteBatch) -> None:
        if not batch.operations:
            return
        try:
            requests = self.build_batch_requests(batch)
            if requests:
                self._client.get_spreadsheet().batch_update({"requests": requests})
        except BatchCommitError:
            raise
        except Exception as e:
            raise BatchCommitError(f"Failed to commit batch: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """Audit events as rows of the audit worksheet."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_row(self, row: list) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(row, value_input_option="RAW")

    async def append_event(self, event: AuditEvent) -> bool:
        """Add one row; False once the retries are used up."""
        try:
            self._append_row(event.to_sheets_row())
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False
