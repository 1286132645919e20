"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the persistent backend because:
1. Users can look at their budget directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for a household budget)
- No transactions (generation is idempotent, so a retry repairs a partial write)
- Limited query capabilities (we filter in Python)

Dates are stored as ISO YYYY-MM-DD strings. Range queries compare those
strings lexicographically, which matches chronological order.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tickbudget.config import get_settings
from tickbudget.models.budget import (
    Frequency,
    Occurrence,
    OccurrenceStatus,
    Rule,
)
from tickbudget.models.audit import AuditEvent, AuditEventType, AuditSeverity
from tickbudget.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
)


RULE_COLUMNS = [
    "id",
    "profile_id",
    "category_id",
    "name",
    "amount",
    "frequency",
    "anchor_date",
    "end_date",
    "description",
    "created_at",
    "updated_at",
]

OCCURRENCE_COLUMNS = [
    "id",
    "rule_id",
    "profile_id",
    "due_date",
    "status",
    "paid_at",
    "snapshot_name",
    "snapshot_amount",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "profile_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Writes are retried on transient failures, never on constraint violations
write_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type((DuplicateError, NotFoundError)),
    reraise=True,
)


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


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

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
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

    def get_rules_sheet(self) -> gspread.Worksheet:
        """Get or create the Rules worksheet."""
        return self._get_or_create_sheet(
            self._settings.rules_sheet_name, RULE_COLUMNS, rows=500
        )

    def get_occurrences_sheet(self) -> gspread.Worksheet:
        """Get or create the Occurrences worksheet."""
        return self._get_or_create_sheet(
            self._settings.occurrences_sheet_name, OCCURRENCE_COLUMNS, rows=5000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsBudgetStorage(BudgetStorageInterface):
    """
    Google Sheets implementation of rule and occurrence storage.

    One rule per row on the Rules sheet, one occurrence per row on the
    Occurrences sheet. Row 1 of each sheet is the header.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    def _rule_to_row(self, rule: Rule) -> list:
        return [
            str(rule.id),
            str(rule.profile_id),
            str(rule.category_id) if rule.category_id else "",
            rule.name,
            str(rule.amount),
            rule.frequency.value,
            rule.anchor_date.isoformat(),
            rule.end_date.isoformat() if rule.end_date else "",
            rule.description or "",
            rule.created_at.isoformat(),
            rule.updated_at.isoformat(),
        ]

    def _row_to_rule(self, row: list) -> Rule:
        return Rule(
            id=UUID(_cell(row, 0)),
            profile_id=UUID(_cell(row, 1)),
            category_id=UUID(_cell(row, 2)) if _cell(row, 2) else None,
            name=_cell(row, 3),
            amount=Decimal(_cell(row, 4)),
            frequency=Frequency(_cell(row, 5)),
            anchor_date=date.fromisoformat(_cell(row, 6)),
            end_date=date.fromisoformat(_cell(row, 7)) if _cell(row, 7) else None,
            description=_cell(row, 8) or None,
            created_at=datetime.fromisoformat(_cell(row, 9)),
            updated_at=datetime.fromisoformat(_cell(row, 10)),
        )

    def _occurrence_to_row(self, occurrence: Occurrence) -> list:
        return [
            str(occurrence.id),
            str(occurrence.rule_id),
            str(occurrence.profile_id),
            occurrence.due_date.isoformat(),
            occurrence.status.value,
            occurrence.paid_at.isoformat() if occurrence.paid_at else "",
            occurrence.snapshot_name,
            str(occurrence.snapshot_amount),
            occurrence.created_at.isoformat(),
        ]

    def _row_to_occurrence(self, row: list) -> Occurrence:
        return Occurrence(
            id=UUID(_cell(row, 0)),
            rule_id=UUID(_cell(row, 1)),
            profile_id=UUID(_cell(row, 2)),
            due_date=date.fromisoformat(_cell(row, 3)),
            status=OccurrenceStatus(_cell(row, 4)),
            paid_at=datetime.fromisoformat(_cell(row, 5)) if _cell(row, 5) else None,
            snapshot_name=_cell(row, 6),
            snapshot_amount=Decimal(_cell(row, 7)),
            created_at=datetime.fromisoformat(_cell(row, 8)),
        )

    def _find_row(self, all_rows: list[list], entity_id: UUID) -> Optional[int]:
        """1-based sheet row number of an ID, skipping the header."""
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == str(entity_id):
                return idx
        return None

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    @write_retry
    async def save_rule(self, rule: Rule) -> bool:
        try:
            sheet = self._client.get_rules_sheet()
            if self._find_row(sheet.get_all_values(), rule.id) is not None:
                raise DuplicateError(f"Rule already exists: {rule.id}")
            sheet.append_row(self._rule_to_row(rule), value_input_option="RAW")
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save rule: {e}")

    async def get_rule(self, rule_id: UUID) -> Optional[Rule]:
        try:
            sheet = self._client.get_rules_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == str(rule_id):
                    return self._row_to_rule(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get rule: {e}")

    @write_retry
    async def update_rule(self, rule: Rule) -> bool:
        try:
            sheet = self._client.get_rules_sheet()
            idx = self._find_row(sheet.get_all_values(), rule.id)
            if idx is None:
                raise NotFoundError(f"Rule not found: {rule.id}")

            for col_idx, value in enumerate(self._rule_to_row(rule), start=1):
                sheet.update_cell(idx, col_idx, value)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update rule: {e}")

    async def delete_rule(self, rule_id: UUID) -> bool:
        try:
            sheet = self._client.get_rules_sheet()
            idx = self._find_row(sheet.get_all_values(), rule_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete rule: {e}")

    async def list_rules_by_scope(self, profile_id: UUID) -> list[Rule]:
        try:
            sheet = self._client.get_rules_sheet()
            rules = []
            for row in sheet.get_all_values()[1:]:
                if not row or not row[0]:
                    continue
                if _cell(row, 1) != str(profile_id):
                    continue
                rules.append(self._row_to_rule(row))
            return rules
        except Exception as e:
            raise StorageError(f"Failed to list rules: {e}")

    # -------------------------------------------------------------------------
    # Occurrences
    # -------------------------------------------------------------------------

    async def query_occurrences_by_scope_and_date_range(
        self,
        profile_id: UUID,
        start: date,
        end: date,
    ) -> list[Occurrence]:
        lower, upper = start.isoformat(), end.isoformat()
        try:
            sheet = self._client.get_occurrences_sheet()
            occurrences = []
            for row in sheet.get_all_values()[1:]:
                if not row or not row[0]:
                    continue
                if _cell(row, 2) != str(profile_id):
                    continue
                if not lower <= _cell(row, 3) <= upper:
                    continue
                occurrences.append(self._row_to_occurrence(row))
            return occurrences
        except Exception as e:
            raise StorageError(f"Failed to query occurrences: {e}")

    def _check_unique(self, all_rows: list[list], occurrence: Occurrence) -> None:
        rule_id, due = str(occurrence.rule_id), occurrence.due_date.isoformat()
        for row in all_rows[1:]:
            if not row or not row[0]:
                continue
            if row[0] != str(occurrence.id) and _cell(row, 1) == rule_id and _cell(row, 3) == due:
                raise DuplicateError(
                    f"Rule {rule_id} already has an occurrence on {due}"
                )

    @write_retry
    async def insert_occurrence(self, occurrence: Occurrence) -> bool:
        try:
            sheet = self._client.get_occurrences_sheet()
            all_rows = sheet.get_all_values()
            if self._find_row(all_rows, occurrence.id) is not None:
                raise DuplicateError(f"Occurrence already exists: {occurrence.id}")
            self._check_unique(all_rows, occurrence)
            sheet.append_row(
                self._occurrence_to_row(occurrence), value_input_option="RAW"
            )
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert occurrence: {e}")

    @write_retry
    async def update_occurrence(self, occurrence: Occurrence) -> bool:
        try:
            sheet = self._client.get_occurrences_sheet()
            all_rows = sheet.get_all_values()
            new_row = self._occurrence_to_row(occurrence)
            idx = self._find_row(all_rows, occurrence.id)

            if idx is None:
                self._check_unique(all_rows, occurrence)
                sheet.append_row(new_row, value_input_option="RAW")
                return True

            for col_idx, value in enumerate(new_row, start=1):
                sheet.update_cell(idx, col_idx, value)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update occurrence: {e}")

    async def delete_occurrences_by_rule(self, rule_id: UUID) -> int:
        try:
            sheet = self._client.get_occurrences_sheet()
            all_rows = sheet.get_all_values()
            doomed = [
                idx
                for idx, row in enumerate(all_rows[1:], start=2)
                if row and _cell(row, 1) == str(rule_id)
            ]
            # Bottom-up so earlier row numbers stay valid
            for idx in reversed(doomed):
                sheet.delete_rows(idx)
            return len(doomed)
        except Exception as e:
            raise StorageError(f"Failed to delete occurrences: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            entity_type=_cell(row, 4) or None,
            entity_id=UUID(_cell(row, 5)) if _cell(row, 5) else None,
            profile_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
            correlation_id=UUID(_cell(row, 7)) if _cell(row, 7) else None,
            description=_cell(row, 8),
            details=json.loads(_cell(row, 9)) if _cell(row, 9) else {},
            error_message=_cell(row, 10) or None,
            is_user_action=_cell(row, 11).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError:
                continue  # Skip malformed rows
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
        try:
            events = [
                e for e in self._read_events() if e.correlation_id == correlation_id
            ]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._read_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events()
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
