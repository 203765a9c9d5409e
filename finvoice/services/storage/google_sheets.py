"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the remote backend because:
1. Non-technical users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

Each collection gets its own worksheet. Rows carry the owning user id so
one spreadsheet can hold several users; every read filters on it and every
write requires it.

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (the coordinator compensates instead)
- Limited query capabilities (we filter in Python)

Reads, updates and deletes are retried with exponential back-off. Inserts
are not: a retried append could store the same record twice.
"""

import json
from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finvoice.config import GoogleSheetsSettings, get_settings
from finvoice.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finvoice.models.ledger import Collection, utc_now
from finvoice.services.storage.interface import (
    AuditStorageInterface,
    LedgerStoreInterface,
    MalformedRecordError,
    NotAuthenticatedError,
    NotFoundError,
    StoreError,
    StoreUnavailableError,
)


logger = structlog.get_logger(__name__)

# Column mappings for every ledger worksheet
LEDGER_COLUMNS = [
    "id",
    "user_id",
    "created_at",
    "updated_at",
    "payload_json",
]

# Column mappings for Audit sheet
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
]

PROTECTED_FIELDS = frozenset({"id", "created_at"})

remote_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type(
        (NotFoundError, NotAuthenticatedError, MalformedRecordError)
    ),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
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
                raise StoreUnavailableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StoreUnavailableError(f"Failed to connect to Google Sheets: {e}")

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
                raise StoreUnavailableError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        if title in self._worksheets:
            return self._worksheets[title]
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        self._worksheets[title] = sheet
        return sheet

    def get_collection_sheet(self, collection: Collection) -> gspread.Worksheet:
        """Get or create the worksheet of a ledger collection."""
        return self._get_or_create(
            self._settings.sheet_name_for(collection.value),
            LEDGER_COLUMNS,
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


def _safe_get(row: list, index: int, default: str = "") -> str:
    # Handle missing columns gracefully
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsLedgerStore(LedgerStoreInterface):
    """
    Google Sheets implementation of the ledger store.

    One record per row. The record's own fields are JSON-serialized into
    `payload_json`; id, owner and timestamps get their own columns so rows
    can be found without parsing.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _record_to_row(
        self,
        user_id: str,
        record: dict[str, Any],
        updated_at: datetime,
    ) -> list:
        payload = {k: v for k, v in record.items() if k not in PROTECTED_FIELDS}
        return [
            record["id"],
            user_id,
            record["created_at"],
            updated_at.isoformat(),
            json.dumps(payload, default=str),
        ]

    def _row_to_record(self, row: list) -> dict[str, Any]:
        payload_json = _safe_get(row, 4)
        try:
            record = json.loads(payload_json) if payload_json else {}
        except ValueError as e:
            raise MalformedRecordError(f"Bad payload in row {row[0]}: {e}")
        if not isinstance(record, dict):
            raise MalformedRecordError(f"Payload of row {row[0]} is not an object")
        record["id"] = _safe_get(row, 0)
        record["created_at"] = _safe_get(row, 2)
        return record

    def _user_rows(self, sheet: gspread.Worksheet, user_id: str):
        """Yield (sheet row number, row) for the user's rows, header skipped."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] and _safe_get(row, 1) == user_id:
                yield idx, row

    @staticmethod
    def _require_user(user_id: str) -> None:
        if not user_id:
            raise NotAuthenticatedError("A user id is required to access the ledger")

    @remote_retry
    async def list_records(
        self,
        user_id: str,
        collection: Collection,
    ) -> list[dict[str, Any]]:
        self._require_user(user_id)
        try:
            sheet = self._client.get_collection_sheet(collection)
            records = []
            for _, row in self._user_rows(sheet, user_id):
                try:
                    records.append(self._row_to_record(row))
                except MalformedRecordError as e:
                    logger.warning("ledger_row_skipped", record_id=row[0], error=str(e))
            return records
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to list {collection.value}: {e}")

    @remote_retry
    async def get_record(
        self,
        user_id: str,
        collection: Collection,
        record_id: str,
    ) -> Optional[dict[str, Any]]:
        self._require_user(user_id)
        try:
            sheet = self._client.get_collection_sheet(collection)
            for _, row in self._user_rows(sheet, user_id):
                if row[0] == record_id:
                    return self._row_to_record(row)
            return None
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to get {collection.value} record: {e}")

    async def insert_record(
        self,
        user_id: str,
        collection: Collection,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        self._require_user(user_id)
        now = utc_now()
        record = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
        record["id"] = uuid4().hex
        record["created_at"] = now.isoformat()
        try:
            sheet = self._client.get_collection_sheet(collection)
            sheet.append_row(
                self._record_to_row(user_id, record, now),
                value_input_option="RAW",
            )
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to insert {collection.value} record: {e}")
        return record

    @remote_retry
    async def update_record(
        self,
        user_id: str,
        collection: Collection,
        record_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        self._require_user(user_id)
        try:
            sheet = self._client.get_collection_sheet(collection)
            for idx, row in self._user_rows(sheet, user_id):
                if row[0] != record_id:
                    continue
                record = self._row_to_record(row)
                record.update({k: v for k, v in changes.items() if k not in PROTECTED_FIELDS})
                new_row = self._record_to_row(user_id, record, utc_now())

                # Update each cell in the row
                for col_idx, value in enumerate(new_row, start=1):
                    sheet.update_cell(idx, col_idx, value)
                return record

            raise NotFoundError(f"{collection.value} record not found: {record_id}")
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to update {collection.value} record: {e}")

    @remote_retry
    async def delete_record(
        self,
        user_id: str,
        collection: Collection,
        record_id: str,
    ) -> bool:
        self._require_user(user_id)
        try:
            sheet = self._client.get_collection_sheet(collection)
            for idx, row in self._user_rows(sheet, user_id):
                if row[0] == record_id:
                    sheet.delete_rows(idx)
                    return True
            return False
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to delete {collection.value} record: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        details_json = _safe_get(row, 9)
        correlation_id = _safe_get(row, 7)
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            user_id=_safe_get(row, 4) or None,
            entity_type=_safe_get(row, 5) or None,
            entity_id=_safe_get(row, 6) or None,
            correlation_id=UUID(correlation_id) if correlation_id else None,
            description=_safe_get(row, 8),
            details=json.loads(details_json) if details_json else {},
            error_message=_safe_get(row, 10) or None,
        )

    def _read_events(self, keep) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0] or not keep(row):
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, TypeError) as e:
                logger.warning("audit_row_skipped", event_id=row[0], error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_append_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    @remote_retry
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = self._read_events(lambda row: _safe_get(row, 7) == str(correlation_id))
        except Exception as e:
            raise StoreError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    @remote_retry
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            events = self._read_events(
                lambda row: _safe_get(row, 5) == entity_type and _safe_get(row, 6) == entity_id
            )
        except Exception as e:
            raise StoreError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    @remote_retry
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._read_events(lambda row: True)
        except Exception as e:
            raise StoreError(f"Failed to get audit events: {e}")
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
