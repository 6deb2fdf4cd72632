"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the shared store for the counter because:
1. The owner can read the ledgers directly in Sheets at day's end
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

LAYOUT (one spreadsheet, four worksheets):
- Entries:   one row per ledger entry, in posting order
- Orderings: one row per pinned entry (scope, position, entry_id)
- Meta:      key/value rows (next_transaction_number, saved_at)
- AuditLog:  append-only audit events

TRADEOFFS:
- No transactions: persist_state rewrites Entries, then Orderings, then
  Meta. A crash in between leaves Meta behind, which load_state tolerates
  by resuming the counter above the highest stored entry number.
- Limited query capabilities (we filter in Python)
"""

import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from cashbook.config import GoogleSheetsSettings, get_settings
from cashbook.models.audit import AuditEvent, AuditEventType, AuditSeverity
from cashbook.models.ledger import (
    EntryDirection,
    LedgerEntry,
    LedgerKind,
    LedgerState,
)
from cashbook.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


# Column mappings for Entries sheet (matches LedgerEntry.to_sheets_row)
ENTRY_COLUMNS = [
    "entry_id",
    "transaction_number",
    "transaction_type",
    "direction",
    "amount",
    "ledger",
    "notes",
    "created_at",
    "display_date",
    "display_time",
]

# Column mappings for Orderings sheet
ORDERING_COLUMNS = [
    "scope",
    "position",
    "entry_id",
]

# Scope value used for the cross-ledger credits view
ALL_CREDITS_SCOPE = "all_credits"

# Column mappings for Meta sheet
META_COLUMNS = [
    "key",
    "value",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
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
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
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

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
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
        return sheet

    def get_entries_sheet(self) -> gspread.Worksheet:
        """Get or create the Entries worksheet."""
        return self._get_or_create_sheet(
            self._settings.entries_sheet_name, ENTRY_COLUMNS, rows=5000
        )

    def get_orderings_sheet(self) -> gspread.Worksheet:
        """Get or create the Orderings worksheet."""
        return self._get_or_create_sheet(
            self._settings.orderings_sheet_name, ORDERING_COLUMNS
        )

    def get_meta_sheet(self) -> gspread.Worksheet:
        """Get or create the Meta worksheet."""
        return self._get_or_create_sheet(
            self._settings.meta_sheet_name, META_COLUMNS, rows=20
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


def _safe_getter(row: list):
    """Index into a sheet row, treating missing/blank cells as ''."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger state storage.

    persist_state() rewrites the three ledger worksheets in full.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_entry(self, row: list) -> LedgerEntry:
        """Convert a spreadsheet row to a LedgerEntry."""
        safe_get = _safe_getter(row)
        return LedgerEntry(
            entry_id=UUID(safe_get(0)),
            transaction_number=int(safe_get(1)),
            transaction_type=safe_get(2),
            direction=EntryDirection(safe_get(3)),
            amount=Decimal(safe_get(4)),
            ledger=LedgerKind.from_name(safe_get(5)),
            notes=safe_get(6),
            created_at=datetime.fromisoformat(safe_get(7)),
            display_date=safe_get(8),
            display_time=safe_get(9),
        )

    @staticmethod
    def _orderings_to_rows(state: LedgerState) -> list[list]:
        rows = []
        for kind, entry_ids in state.manual_orders.items():
            for position, entry_id in enumerate(entry_ids):
                rows.append([kind.value, str(position), str(entry_id)])
        for position, entry_id in enumerate(state.all_credits_order):
            rows.append([ALL_CREDITS_SCOPE, str(position), str(entry_id)])
        return rows

    @staticmethod
    def _rows_to_orderings(
        rows: list[list],
    ) -> tuple[dict[LedgerKind, list[UUID]], list[UUID]]:
        scoped: dict[str, list[tuple[int, UUID]]] = {}
        for row in rows:
            if not row or not row[0]:
                continue
            safe_get = _safe_getter(row)
            scoped.setdefault(safe_get(0), []).append(
                (int(safe_get(1, "0")), UUID(safe_get(2)))
            )

        def ordered(pairs: list[tuple[int, UUID]]) -> list[UUID]:
            return [entry_id for _, entry_id in sorted(pairs, key=lambda p: p[0])]

        all_credits = ordered(scoped.pop(ALL_CREDITS_SCOPE, []))
        manual_orders = {
            LedgerKind.from_name(scope): ordered(pairs)
            for scope, pairs in scoped.items()
        }
        return manual_orders, all_credits

    def _read_entries(self) -> list[LedgerEntry]:
        sheet = self._client.get_entries_sheet()
        all_rows = sheet.get_all_values()[1:]  # Skip header

        entries = []
        for line_number, row in enumerate(all_rows, start=2):
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                entries.append(self._row_to_entry(row))
            except (ValueError, InvalidOperation) as e:
                # A skipped row would silently change a balance
                raise StorageError(f"Malformed entry on row {line_number}: {e}")
        return entries

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def load_entries(self) -> list[LedgerEntry]:
        """Load every stored entry in posting order."""
        try:
            return self._read_entries()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load entries: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def load_state(self) -> Optional[LedgerState]:
        """Load entries, orderings and meta. None if nothing was ever saved."""
        try:
            entries = self._read_entries()
            ordering_rows = self._client.get_orderings_sheet().get_all_values()[1:]
            meta_rows = self._client.get_meta_sheet().get_all_values()[1:]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load ledger state: {e}")

        meta = {row[0]: row[1] for row in meta_rows if len(row) >= 2 and row[0]}
        if not entries and "next_transaction_number" not in meta:
            return None

        try:
            manual_orders, all_credits_order = self._rows_to_orderings(ordering_rows)
            return LedgerState(
                next_transaction_number=int(meta.get("next_transaction_number") or 1),
                entries=entries,
                manual_orders=manual_orders,
                all_credits_order=all_credits_order,
                saved_at=(
                    datetime.fromisoformat(meta["saved_at"])
                    if meta.get("saved_at")
                    else datetime.now()
                ),
            )
        except ValueError as e:
            raise StorageError(f"Malformed ledger state: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def persist_state(self, state: LedgerState) -> bool:
        """Rewrite Entries, Orderings and Meta from this state."""
        try:
            self._rewrite(
                self._client.get_entries_sheet(),
                ENTRY_COLUMNS,
                [entry.to_sheets_row() for entry in state.entries],
            )
            self._rewrite(
                self._client.get_orderings_sheet(),
                ORDERING_COLUMNS,
                self._orderings_to_rows(state),
            )
            self._rewrite(
                self._client.get_meta_sheet(),
                META_COLUMNS,
                [
                    ["next_transaction_number", str(state.next_transaction_number)],
                    ["saved_at", state.saved_at.isoformat()],
                ],
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to persist ledger state: {e}")

    @staticmethod
    def _rewrite(sheet: gspread.Worksheet, columns: list[str], rows: list[list]) -> None:
        sheet.clear()
        sheet.update(
            values=[columns] + rows,
            range_name="A1",
            value_input_option="RAW",
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
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _read_events(self, keep) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        all_rows = sheet.get_all_values()[1:]

        events = []
        for row in all_rows:
            if not row or not row[0] or not keep(row):
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, json.JSONDecodeError) as e:
                # Hand-edited audit rows shouldn't hide the rest of the log
                logger.warning("audit_row_skipped", event_id=row[0], error=str(e))
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
            # Don't raise - audit logging should not break the main flow
            logger.warning(
                "audit_append_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = self._read_events(
                lambda row: len(row) > 6 and row[6] == str(correlation_id)
            )
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            events = self._read_events(
                lambda row: len(row) > 5 and row[4] == entity_type and row[5] == str(entity_id)
            )
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
            events = self._read_events(lambda row: True)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
