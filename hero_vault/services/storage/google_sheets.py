"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the remote document store because:
1. Players (and their parents) can look at their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

Each player is one row: the normalized key, the raw email, the version,
an update timestamp and the full PlayerState as a JSON document.

TRADEOFFS:
- No push notifications: subscribe() polls the row
- No transactions: create_if_absent is read-then-append and can race
- Saves are not retried; a failed save is reported to the caller
- gspread blocks, so sheet calls run in the default executor

The implementation follows the abstract interface, so we can swap
to a real document database later without changing the session.
"""

import asyncio
import json
from datetime import date, datetime
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from hero_vault.config import get_settings
from hero_vault.models.audit import AuditEvent, AuditEventType, AuditSeverity
from hero_vault.models.player import PlayerState, new_player_state
from hero_vault.services.storage.interface import (
    AuditStorageInterface,
    CorruptDocumentError,
    NotFoundError,
    PlayerSyncGateway,
    SnapshotCallback,
    StaleWriteError,
    Subscription,
    SyncError,
    SyncFailureError,
    resolve_base_version,
)


logger = structlog.get_logger(__name__)


# Column mappings for Players sheet
PLAYER_COLUMNS = [
    "key",
    "email",
    "version",
    "updated_at",
    "document_json",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "player_key",
    "state_version",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
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
                raise SyncFailureError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise SyncFailureError(f"Failed to connect to Google Sheets: {e}")

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
                raise SyncFailureError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
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

    def get_players_sheet(self) -> gspread.Worksheet:
        """Get or create the Players worksheet."""
        return self._get_or_create_sheet(
            self._settings.players_sheet_name, PLAYER_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class PollingSubscription(Subscription):
    """
    Watches one player row by polling.

    The first poll delivers the current document; after that a snapshot
    is delivered whenever the stored JSON changes.
    """

    def __init__(
        self,
        gateway: "GoogleSheetsPlayerGateway",
        key: str,
        on_change: SnapshotCallback,
        interval: float,
    ):
        self._gateway = gateway
        self._key = key
        self._on_change = on_change
        self._interval = interval
        self._last_document: Optional[str] = None
        self._task = asyncio.get_running_loop().create_task(self._run())

    @property
    def active(self) -> bool:
        return not self._task.done()

    def cancel(self) -> None:
        self._task.cancel()

    async def _run(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self._interval)

    async def poll_once(self) -> None:
        """Check the row once and deliver a snapshot if it changed."""
        loop = asyncio.get_running_loop()
        try:
            document = await loop.run_in_executor(
                None, self._gateway._read_document, self._key
            )
        except SyncError as e:
            # Transient; the next poll tries again
            logger.warning("snapshot_poll_failed", player_key=self._key, error=str(e))
            return

        if document is None or document == self._last_document:
            return
        self._last_document = document

        try:
            self._on_change(PlayerState.from_document(json.loads(document)))
        except Exception as e:
            logger.error("snapshot_callback_failed", player_key=self._key, error=str(e))


class GoogleSheetsPlayerGateway(PlayerSyncGateway):
    """
    Google Sheets implementation of the sync gateway.

    Player documents are stored as rows with one player per row.
    The document itself is JSON-serialized into the last column.

    gspread is blocking, so every sheet call runs in the default
    executor and the event loop keeps serving other tasks meanwhile.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        key_placeholder: Optional[str] = None,
        poll_interval: Optional[float] = None,
    ):
        app_settings = get_settings().app
        super().__init__(key_placeholder or app_settings.key_placeholder)
        self._client = client or GoogleSheetsClient()
        self._poll_interval = poll_interval or app_settings.sync_poll_interval_seconds

    def _state_to_row(self, key: str, state: PlayerState) -> list:
        """Convert a PlayerState to a spreadsheet row."""
        return [
            key,
            state.email,
            str(state.version),
            datetime.utcnow().isoformat(),
            json.dumps(state.to_document()),
        ]

    def _find_row(self, sheet: gspread.Worksheet, key: str) -> tuple[Optional[int], Optional[list]]:
        """Return (1-based row index, row) for a key, or (None, None)."""
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # Start from 2 (row 1 is header)
            if row and row[0] == key:
                return idx, row
        return None, None

    def _read_document(self, key: str) -> Optional[str]:
        """Raw JSON document for a key, or None. Blocking."""
        try:
            sheet = self._client.get_players_sheet()
            _, row = self._find_row(sheet, key)
        except SyncError:
            raise
        except Exception as e:
            raise SyncFailureError(f"Failed to read player {key}: {e}")

        if row is None or len(row) < len(PLAYER_COLUMNS) or not row[4]:
            return None
        return row[4]

    @retry(
        retry=retry_if_exception_type(SyncFailureError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def load(self, email: str) -> PlayerState:
        """
        Load a player document by email.

        Transport failures are retried. A row whose document cannot be
        parsed raises CorruptDocumentError straight away.
        """
        key = self.key_for(email)
        loop = asyncio.get_running_loop()
        document = await loop.run_in_executor(None, self._read_document, key)
        if document is None:
            raise NotFoundError(f"No player record for key: {key}")
        try:
            return PlayerState.from_document(json.loads(document))
        except Exception as e:
            raise CorruptDocumentError(f"Stored document for {key} is unreadable: {e}")

    async def create_if_absent(
        self,
        email: str,
        name: str,
        today: Optional[date] = None,
    ) -> PlayerState:
        """Read the row; append a default document if there is none."""
        try:
            return await self.load(email)
        except NotFoundError:
            pass

        key = self.key_for(email)
        state = new_player_state(name=name, email=email, today=today)

        def _sync():
            try:
                sheet = self._client.get_players_sheet()
                sheet.append_row(self._state_to_row(key, state), value_input_option="RAW")
            except SyncError:
                raise
            except Exception as e:
                raise SyncFailureError(f"Failed to create player {key}: {e}")

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _sync)
        return state

    async def save(
        self,
        state: PlayerState,
        *,
        base_version: Optional[int] = None,
        overwrite: bool = False,
    ) -> PlayerState:
        """Write the whole document unless the row moved past base_version."""
        key = self.key_for(state.email)
        base = resolve_base_version(state, base_version)

        def _sync():
            try:
                sheet = self._client.get_players_sheet()
                idx, row = self._find_row(sheet, key)
                new_row = self._state_to_row(key, state)

                if idx is None:
                    sheet.append_row(new_row, value_input_option="RAW")
                    return state

                if not overwrite:
                    stored_version = int(row[2]) if len(row) > 2 and row[2] else 0
                    if stored_version != base:
                        raise StaleWriteError(key, stored_version, state.version, base)

                sheet.update(
                    range_name=f"A{idx}:E{idx}",
                    values=[new_row],
                    value_input_option="RAW",
                )
                return state
            except SyncError:
                raise
            except Exception as e:
                raise SyncFailureError(f"Failed to save player {key}: {e}")

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _sync)

    def subscribe(
        self,
        email: str,
        on_change: SnapshotCallback,
    ) -> Subscription:
        """Start polling the player's row."""
        return PollingSubscription(
            self,
            self.key_for(email),
            on_change,
            self._poll_interval,
        )

    async def delete(self, email: str) -> bool:
        """Delete a player's row."""
        key = self.key_for(email)

        def _sync():
            try:
                sheet = self._client.get_players_sheet()
                idx, _ = self._find_row(sheet, key)
                if idx is None:
                    return False
                sheet.delete_rows(idx)
                return True
            except SyncError:
                raise
            except Exception as e:
                raise SyncFailureError(f"Failed to delete player {key}: {e}")

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _sync)


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
            player_key=safe_get(4) or None,
            state_version=int(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        def _sync():
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, _sync)
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_event_write_failed", event_id=str(event.event_id), error=str(e))
            return False

    def _read_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise SyncFailureError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception:
                logger.warning("audit_row_unreadable", row_id=row[0])
        return events

    async def get_events_by_player(
        self,
        player_key: str,
    ) -> list[AuditEvent]:
        """Get events for one player, oldest first."""
        loop = asyncio.get_running_loop()
        events = await loop.run_in_executor(None, self._read_events)
        events = [e for e in events if e.player_key == player_key]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events, newest first."""
        loop = asyncio.get_running_loop()
        events = await loop.run_in_executor(None, self._read_events)
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
