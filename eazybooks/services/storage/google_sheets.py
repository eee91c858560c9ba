"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted backend because:
1. Owners can view their books directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for a small business)
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter in Python)

Each record type gets its own worksheet. A row holds the indexed columns
(id, owner, timestamps) plus the full record as JSON, so adding a field
to a model never requires a sheet migration.
"""

import json
from datetime import datetime
from typing import Any, Optional
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

from eazybooks.config import GoogleSheetsSettings, get_settings
from eazybooks.models.access import Business, Identity, UserProfile
from eazybooks.models.audit import AuditEvent, AuditEventType, AuditSeverity
from eazybooks.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    IdentityProviderInterface,
    InvalidRecordError,
    NotFoundError,
    RecordStoreInterface,
    RecordT,
    StorageError,
    apply_patch,
)


logger = structlog.get_logger(__name__)


# Column layout shared by every record worksheet
RECORD_COLUMNS = [
    "id",
    "user_id",
    "created_at",
    "updated_at",
    "payload_json",
]

PROFILE_COLUMNS = [
    "id",
    "user_id",
    "first_name",
    "last_name",
    "email",
    "role",
    "subscription_tier",
    "is_admin",
    "belongs_to_business_id",
    "onboarding_completed",
]

BUSINESS_COLUMNS = [
    "id",
    "name",
    "owner_id",
    "currency",
    "default_tax_percentage",
    "tax_id",
    "email",
    "phone",
    "city",
    "state",
    "country",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "actor_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

_BOOLEAN_COLUMNS = {"is_admin", "onboarding_completed"}


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

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

    def get_worksheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """Get a worksheet by title, creating it with a header row if missing."""
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

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


def _find_row(
    rows: list[list[str]],
    record_id: str,
    owner_id: str,
) -> Optional[tuple[int, list[str]]]:
    """1-based sheet row index and values of a record, header excluded."""
    for idx, row in enumerate(rows[1:], start=2):
        if len(row) >= 2 and row[0] == record_id and row[1] == owner_id:
            return idx, row
    return None


class GoogleSheetsRecordStore(RecordStoreInterface):
    """
    Google Sheets implementation of the record store.

    Worksheets are named after the record type ("incomes", "taxes", ...).
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self, model: type) -> gspread.Worksheet:
        return self._client.get_worksheet(model.record_type, RECORD_COLUMNS)

    def _record_to_row(self, record: Any) -> list:
        return [
            record.id,
            record.user_id,
            record.created_at.isoformat(),
            record.updated_at.isoformat(),
            record.model_dump_json(),
        ]

    def _row_to_record(self, model: type[RecordT], row: list[str]) -> RecordT:
        payload = row[4] if len(row) > 4 else ""
        if not payload:
            raise ValueError(f"Row for {row[0]} has no payload")
        return model.model_validate_json(payload)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def list_records(
        self,
        model: type[RecordT],
        owner_id: str,
    ) -> list[RecordT]:
        try:
            rows = self._sheet(model).get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list {model.record_type}: {e}")

        records = []
        for row in rows:
            if len(row) < 2 or row[1] != owner_id:
                continue
            try:
                records.append(self._row_to_record(model, row))
            except ValueError as e:
                logger.warning(
                    "malformed_row_skipped",
                    record_type=model.record_type,
                    record_id=row[0],
                    error=str(e),
                )
        return records

    async def get_record(
        self,
        model: type[RecordT],
        owner_id: str,
        record_id: str,
    ) -> Optional[RecordT]:
        try:
            rows = self._sheet(model).get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to get {model.record_type}: {e}")

        found = _find_row(rows, record_id, owner_id)
        if found is None:
            return None
        try:
            return self._row_to_record(model, found[1])
        except ValueError as e:
            raise InvalidRecordError(f"Malformed {model.record_type} row {record_id}: {e}")

    @retry(
        retry=retry_if_not_exception_type(DuplicateError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def create_record(self, record: RecordT) -> RecordT:
        try:
            sheet = self._sheet(type(record))
            existing_ids = sheet.col_values(1)[1:]
        except Exception as e:
            raise StorageError(f"Failed to save {record.record_type}: {e}")

        if record.id in existing_ids:
            raise DuplicateError(f"{record.record_type} already exists: {record.id}")

        try:
            sheet.append_row(self._record_to_row(record), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save {record.record_type}: {e}")
        return record

    async def update_record(
        self,
        model: type[RecordT],
        owner_id: str,
        record_id: str,
        patch: dict[str, Any],
    ) -> RecordT:
        try:
            sheet = self._sheet(model)
            rows = sheet.get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to update {model.record_type}: {e}")

        found = _find_row(rows, record_id, owner_id)
        if found is None:
            raise NotFoundError(f"{model.record_type} not found: {record_id}")

        idx, row = found
        updated = apply_patch(self._row_to_record(model, row), patch)
        try:
            sheet.update(
                range_name=f"A{idx}:E{idx}",
                values=[self._record_to_row(updated)],
                raw=True,
            )
        except Exception as e:
            raise StorageError(f"Failed to update {model.record_type}: {e}")
        return updated

    async def delete_record(
        self,
        model: type[RecordT],
        owner_id: str,
        record_id: str,
    ) -> bool:
        try:
            sheet = self._sheet(model)
            found = _find_row(sheet.get_all_values(), record_id, owner_id)
            if found is None:
                return False
            sheet.delete_rows(found[0])
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete {model.record_type}: {e}")


def _clean_sheet_row(row: dict[str, Any], columns: list[str]) -> dict[str, Any]:
    """
    Keep known columns, drop blank cells and parse boolean cells.

    gspread turns numeric-looking cells into numbers; everything else is
    handed back as text and left to the model to parse.
    """
    cleaned: dict[str, Any] = {}
    for column in columns:
        value = row.get(column)
        if value is None or str(value).strip() == "":
            continue
        text = str(value).strip()
        if column in _BOOLEAN_COLUMNS:
            cleaned[column] = text.lower() in ("true", "1", "yes")
        else:
            cleaned[column] = text
    return cleaned


class GoogleSheetsIdentityProvider(IdentityProviderInterface):
    """
    Resolves the signed-in user from the Profiles and Businesses sheets.

    Authentication itself happens upstream (the Streamlit session
    supplies `user_id` and `email`); this provider only loads the
    profile and business that go with it.
    """

    def __init__(
        self,
        user_id: Optional[str],
        email: Optional[str] = None,
        client: Optional[GoogleSheetsClient] = None,
    ):
        self._user_id = user_id
        self._email = email
        self._client = client or GoogleSheetsClient()

    def _load_profile(self) -> Optional[UserProfile]:
        sheet = self._client.get_worksheet(
            self._client.settings.profiles_sheet_name, PROFILE_COLUMNS
        )
        for row in sheet.get_all_records():
            if str(row.get("user_id", "")) == self._user_id:
                return UserProfile.model_validate(_clean_sheet_row(row, PROFILE_COLUMNS))
        return None

    def _load_business(self, profile: UserProfile) -> Optional[Business]:
        sheet = self._client.get_worksheet(
            self._client.settings.businesses_sheet_name, BUSINESS_COLUMNS
        )
        for row in sheet.get_all_records():
            if profile.belongs_to_business_id:
                matches = str(row.get("id", "")) == profile.belongs_to_business_id
            else:
                matches = str(row.get("owner_id", "")) == profile.user_id
            if matches:
                return Business.model_validate(_clean_sheet_row(row, BUSINESS_COLUMNS))
        return None

    @retry(
        retry=retry_if_not_exception_type(InvalidRecordError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def get_identity(self) -> Optional[Identity]:
        if not self._user_id:
            return None

        try:
            profile = self._load_profile()
            business = self._load_business(profile) if profile else None
        except ConnectionError:
            raise
        except ValueError as e:
            raise InvalidRecordError(f"Invalid profile or business row: {e}")
        except Exception as e:
            raise StorageError(f"Failed to load identity: {e}")

        return Identity(
            user_id=self._user_id,
            email=self._email or (profile.email if profile else None),
            profile=profile,
            business=business,
        )


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            actor_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
        )

    def _read_events(self, keep) -> list[AuditEvent]:
        try:
            rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in rows:
            if not row or not row[0] or not keep(row):
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError as e:
                logger.warning("malformed_audit_row_skipped", event_id=row[0], error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        wanted = str(correlation_id)
        events = self._read_events(lambda row: len(row) > 7 and row[7] == wanted)
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = self._read_events(
            lambda row: len(row) > 6 and row[5] == entity_type and row[6] == entity_id
        )
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = self._read_events(lambda row: True)
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
