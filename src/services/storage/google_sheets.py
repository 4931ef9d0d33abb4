"""
Google Sheets Remote Store

DESIGN DECISION: The remote store of record is a spreadsheet the
household already owns. They can read and correct rows by hand, and
Google keeps the history.

TRADEOFFS:
- Every call is a network round trip; a month of household data is small
- No transactions; the reconciling store serializes writes per collection
- Filtering happens in Python after a full sheet read

Each collection is one worksheet. A document is one row:
id, created_at, updated_at, data_json. Keeping the payload as JSON means
new fields never require a sheet migration.

gspread is synchronous; every call runs on a worker thread so a slow
sheet never blocks the event loop and remote timeouts can fire.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from src.config import GoogleSheetsSettings, get_settings
from src.services.storage.interface import (
    ConnectionError,
    NotFoundError,
    RemoteStoreInterface,
    StorageError,
)


# Column layout of every collection worksheet
DOCUMENT_COLUMNS = [
    "id",
    "created_at",
    "updated_at",
    "data_json",
]

# Stamped by the store; never stored inside data_json
_META_FIELDS = {"id", "created_at", "updated_at"}


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
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

    def get_collection_sheet(self, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        if collection in self._worksheets:
            return self._worksheets[collection]

        title = f"{self._settings.worksheet_prefix}{collection}"
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(DOCUMENT_COLUMNS),
            )
            sheet.append_row(DOCUMENT_COLUMNS)
        self._worksheets[collection] = sheet
        return sheet


class GoogleSheetsRemoteStore(RemoteStoreInterface):
    """
    Google Sheets implementation of the remote document store.

    Documents are stored as rows in a per-collection worksheet.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _document_to_row(
        self,
        document_id: str,
        created_at: str,
        updated_at: str,
        data: dict[str, Any],
    ) -> list:
        """Convert a document to a spreadsheet row."""
        payload = {k: v for k, v in data.items() if k not in _META_FIELDS}
        return [
            document_id,
            created_at,
            updated_at,
            json.dumps(payload, ensure_ascii=False, default=str),
        ]

    def _row_to_document(self, row: list) -> dict[str, Any]:
        """Convert a spreadsheet row to a document."""
        # Handle missing columns gracefully
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        data_json = safe_get(3)
        data = json.loads(data_json) if data_json else {}
        return {
            **data,
            "id": safe_get(0),
            "created_at": safe_get(1) or None,
            "updated_at": safe_get(2) or None,
        }

    def _find_row(self, sheet: gspread.Worksheet, document_id: str) -> tuple[int, list]:
        """Return (sheet row number, row values), or (0, []) if absent."""
        all_rows = sheet.get_all_values()
        # Start from 2 (row 1 is header)
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == document_id:
                return idx, row
        return 0, []

    def _write_row(self, sheet: gspread.Worksheet, row_number: int, row: list) -> None:
        sheet.update(
            range_name=f"A{row_number}:D{row_number}",
            values=[row],
            value_input_option="RAW",
        )

    # -------------------------------------------------------------------------
    # Blocking gspread bodies, run on a worker thread
    # -------------------------------------------------------------------------

    def _create(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        sheet = self._client.get_collection_sheet(collection)
        now = _utc_now()
        row = self._document_to_row(uuid4().hex, now, now, data)
        sheet.append_row(row, value_input_option="RAW")
        return self._row_to_document(row)

    def _get(self, collection: str, document_id: str) -> Optional[dict[str, Any]]:
        sheet = self._client.get_collection_sheet(collection)
        row_number, row = self._find_row(sheet, document_id)
        if not row_number:
            return None
        return self._row_to_document(row)

    def _list(self, collection: str) -> list[dict[str, Any]]:
        sheet = self._client.get_collection_sheet(collection)
        all_rows = sheet.get_all_values()[1:]  # Skip header

        documents = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                documents.append(self._row_to_document(row))
            except json.JSONDecodeError:
                continue  # Skip malformed rows
        return documents

    def _update(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        sheet = self._client.get_collection_sheet(collection)
        row_number, row = self._find_row(sheet, document_id)
        if not row_number:
            raise NotFoundError(f"Document not found: {collection}/{document_id}")

        existing = self._row_to_document(row)
        new_row = self._document_to_row(
            document_id,
            existing.get("created_at") or "",
            _utc_now(),
            {**existing, **data},
        )
        self._write_row(sheet, row_number, new_row)

    def _delete(self, collection: str, document_id: str) -> None:
        sheet = self._client.get_collection_sheet(collection)
        row_number, _ = self._find_row(sheet, document_id)
        if row_number:
            sheet.delete_rows(row_number)

    def _set(
        self,
        collection: str,
        document_id: str,
        data: dict[str, Any],
        merge: bool,
    ) -> None:
        sheet = self._client.get_collection_sheet(collection)
        row_number, row = self._find_row(sheet, document_id)
        now = _utc_now()

        if not row_number:
            sheet.append_row(
                self._document_to_row(document_id, now, now, data),
                value_input_option="RAW",
            )
            return

        existing = self._row_to_document(row)
        payload = {**existing, **data} if merge else data
        self._write_row(
            sheet,
            row_number,
            self._document_to_row(
                document_id,
                existing.get("created_at") or now,
                now,
                payload,
            ),
        )

    # -------------------------------------------------------------------------
    # RemoteStoreInterface
    # -------------------------------------------------------------------------

    async def create_document(
        self,
        collection: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """Append a new document row."""
        try:
            return await asyncio.to_thread(self._create, collection, data)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to create document in {collection}: {e}")

    async def get_document(
        self,
        collection: str,
        document_id: str,
    ) -> Optional[dict[str, Any]]:
        """Retrieve a document by its id."""
        try:
            return await asyncio.to_thread(self._get, collection, document_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get document from {collection}: {e}")

    async def list_documents(self, collection: str) -> list[dict[str, Any]]:
        """List all documents of a collection, skipping malformed rows."""
        try:
            return await asyncio.to_thread(self._list, collection)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list documents in {collection}: {e}")

    async def update_document(
        self,
        collection: str,
        document_id: str,
        data: dict[str, Any],
    ) -> None:
        """Merge fields into an existing document."""
        try:
            await asyncio.to_thread(self._update, collection, document_id, data)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update document in {collection}: {e}")

    async def delete_document(self, collection: str, document_id: str) -> None:
        """Delete a document row if present."""
        try:
            await asyncio.to_thread(self._delete, collection, document_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete document from {collection}: {e}")

    async def set_document(
        self,
        collection: str,
        document_id: str,
        data: dict[str, Any],
        merge: bool = False,
    ) -> None:
        """Upsert a document under a fixed id."""
        try:
            await asyncio.to_thread(self._set, collection, document_id, data, merge)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to set document in {collection}: {e}")
