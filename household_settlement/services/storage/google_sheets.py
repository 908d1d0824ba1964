"""
Google Sheets Client and Audit Storage

DESIGN DECISION: Many households already keep their shared ledger in a
spreadsheet, so Google Sheets is a first-class ledger source:
1. Non-technical members can read and edit the data directly
2. No database setup required for the ledger itself
3. The audit trail lands next to the data it describes

TRADEOFFS:
- No transactions, so Sheets is NEVER used for settlement state
  (that needs compare-and-set; see sql.py)
- Limited query capabilities (we filter in Python)
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from household_settlement.config import get_settings
from household_settlement.config.settings import GoogleSheetsSettings
from household_settlement.models.audit import AuditEvent, AuditEventType, AuditSeverity
from household_settlement.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    StorageError,
)


# Column mappings for the ledger sheets; row 1 of each sheet must match
MEMBER_COLUMNS = [
    "household_id",
    "member_id",
    "display_name",
    "is_active",
]

EXPENSE_COLUMNS = [
    "record_id",
    "household_id",
    "period",
    "payer_member_id",
    "amount_minor_units",
    "should_apportion",
    "beneficiary_member_id",
    "description",
    "occurred_on",
]

INCOME_COLUMNS = [
    "household_id",
    "member_id",
    "period",
    "gross_amount",
    "deduction_amount",
    "declared_at",
]

POLICY_COLUMNS = [
    "household_id",
    "weighting_mode",
    "rounding_mode",
    "missing_income_policy",
    "include_personal_reimbursements",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "household_id",
    "period",
    "settlement_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
    "actor_id",
]


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
        The ledger sheets are only read; the audit sheet is appended to.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
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

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def batch_get_tables(self, sheet_names: list[str]) -> dict[str, list[list[str]]]:
        """
        Read several whole worksheets in ONE API call.

        A single batch read is the closest Sheets gets to a consistent
        snapshot: every table reflects the same moment.

        Returns:
            {sheet_name: rows}, header row included so callers can check it
        """
        spreadsheet = self.get_spreadsheet()
        response = spreadsheet.values_batch_get([f"'{name}'" for name in sheet_names])
        value_ranges = response.get("valueRanges", [])
        tables = {}
        for name, value_range in zip(sheet_names, value_ranges):
            tables[name] = value_range.get("values", [])
        return tables

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.audit_sheet_name)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=self._settings.audit_sheet_name,
                rows=5000,
                cols=len(AUDIT_COLUMNS),
            )
            sheet.append_row(AUDIT_COLUMNS)
        return sheet


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
            household_id=safe_get(4) or None,
            period_label=safe_get(5) or None,
            settlement_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_code=safe_get(10) or None,
            error_message=safe_get(11) or None,
            actor_id=safe_get(12) or None,
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        all_rows = sheet.get_all_values()[1:]

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception:
                continue  # Hand-edited rows are not our problem here
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
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
        """Get events by correlation ID."""
        try:
            events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_settlement(
        self,
        settlement_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by settlement."""
        try:
            events = [e for e in self._read_events() if e.settlement_id == settlement_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
