"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted storage backend because:
1. Non-technical users can view their splits directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

Each collection is a worksheet. Each document is one row:

    id | user_id | updated_at | document_json

The owner id gets its own column so a reader of the sheet can see whose
data a row is; everything else lives in the JSON column.

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (an update rewrites one row's cells in one place)
- Limited query capabilities (we filter in Python)
- No server push: subscribers are notified after writes made through
  this process only
"""

import json
from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from split_tracker.config import get_settings
from split_tracker.models.split import generate_document_id, utcnow
from split_tracker.services.storage.interface import (
    OWNER_FIELD,
    ConnectionError,
    DocumentStoreInterface,
    ErrorCallback,
    NotFoundError,
    SnapshotCallback,
    StorageError,
    Subscription,
    SubscriptionHub,
)


DOCUMENT_COLUMNS = [
    "id",
    "user_id",
    "updated_at",
    "document_json",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

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

    def get_collection_sheet(self, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(collection)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=collection,
                rows=self._settings.worksheet_rows,
                cols=len(DOCUMENT_COLUMNS),
            )
            sheet.append_row(DOCUMENT_COLUMNS)
        return sheet


class GoogleSheetsDocumentStore(DocumentStoreInterface):
    """
    Google Sheets implementation of the document store.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._hub = SubscriptionHub()

    def _document_to_row(self, doc_id: str, document: dict) -> list:
        """Convert a document to a spreadsheet row."""
        body = {key: value for key, value in document.items() if key != "id"}
        return [
            doc_id,
            str(body.get(OWNER_FIELD) or ""),
            utcnow().isoformat(),
            json.dumps(body),
        ]

    def _row_to_document(self, row: list) -> dict:
        """Convert a spreadsheet row to a document."""
        body = json.loads(row[3]) if len(row) > 3 and row[3] else {}
        return {"id": row[0], **body}

    def _rows(self, collection: str) -> list[list]:
        # Skip header
        return self._client.get_collection_sheet(collection).get_all_values()[1:]

    def _find_row(self, sheet: gspread.Worksheet, doc_id: str) -> tuple[int, Optional[list]]:
        """Return (sheet row number, row) for a document id."""
        all_rows = sheet.get_all_values()
        # Start from 2 (row 1 is header)
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == doc_id:
                return idx, row
        return 0, None

    def _read_collection(self, collection: str) -> list[dict]:
        documents = []
        for row in self._rows(collection):
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                documents.append(self._row_to_document(row))
            except json.JSONDecodeError:
                continue  # Skip malformed rows
        return documents

    def _publish(self, collection: str) -> None:
        """
        Push fresh snapshots after a write.

        The write has already happened, so a failed read is reported to the
        subscribers and never raised to the writer.
        """
        if not self._hub.subscriber_count(collection):
            return
        try:
            documents = self._read_collection(collection)
        except Exception as e:
            self._hub.fail(collection, e)
            return
        self._hub.publish(
            collection,
            lambda owner_id: [d for d in documents if d.get(OWNER_FIELD) == owner_id],
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _sheet(self, collection: str) -> gspread.Worksheet:
        return self._client.get_collection_sheet(collection)

    async def create(self, collection: str, document: dict) -> str:
        """
        Append a document row.

        The append itself is not retried: a retry after a lost response
        would write the document twice under two ids.
        """
        try:
            sheet = self._sheet(collection)
            doc_id = generate_document_id()
            sheet.append_row(self._document_to_row(doc_id, document), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to create document in {collection}: {e}")

        self._publish(collection)
        return doc_id

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        """Retrieve a document by its id."""
        try:
            sheet = self._sheet(collection)
            _, row = self._find_row(sheet, str(doc_id))
        except Exception as e:
            raise StorageError(f"Failed to get document: {e}")

        return self._row_to_document(row) if row else None

    async def update(self, collection: str, doc_id: str, fields: dict) -> bool:
        """Merge fields into an existing document row."""
        try:
            sheet = self._sheet(collection)
            idx, row = self._find_row(sheet, str(doc_id))
            if row is None:
                raise NotFoundError(f"Document not found: {collection}/{doc_id}")

            document = self._row_to_document(row)
            document.update(fields)
            new_row = self._document_to_row(str(doc_id), document)

            # Update each cell in the row
            for col_idx, value in enumerate(new_row, start=1):
                sheet.update_cell(idx, col_idx, value)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update document: {e}")

        self._publish(collection)
        return True

    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document row by id."""
        try:
            sheet = self._sheet(collection)
            idx, row = self._find_row(sheet, str(doc_id))
            if row is None:
                return False
            sheet.delete_rows(idx)
        except Exception as e:
            raise StorageError(f"Failed to delete document: {e}")

        self._publish(collection)
        return True

    async def query(self, collection: str, **equals: Any) -> list[dict]:
        """List documents matching all given field values."""
        try:
            documents = self._read_collection(collection)
        except Exception as e:
            raise StorageError(f"Failed to query {collection}: {e}")

        return [
            document for document in documents
            if all(document.get(field) == value for field, value in equals.items())
        ]

    def subscribe(
        self,
        collection: str,
        owner_id: str,
        callback: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        subscription = self._hub.add(collection, owner_id, callback, on_error)

        def _initial_snapshot(owner: str) -> list[dict]:
            return [
                d for d in self._read_collection(collection)
                if d.get(OWNER_FIELD) == owner
            ]

        self._hub.deliver(owner_id, callback, on_error, _initial_snapshot)
        return subscription
