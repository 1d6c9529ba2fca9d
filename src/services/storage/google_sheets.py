"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted storage backend because:
1. Non-technical users can view their budget data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

Each row kind lives in its own worksheet (Profiles, Entries, Streaks,
Badges, AuditLog), one row per record, header in row 1.

TRADEOFFS:
- Not suitable for high-volume data (we're fine for a household)
- No transactions. Conditional writes re-read the row immediately before
  writing it, which narrows the race window but cannot close it entirely
- Limited query capabilities (we filter in Python)
"""

import json
from datetime import date, datetime, timezone
from typing import Optional
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

from src.config import GoogleSheetsSettings, get_settings
from src.models.audit import AUDIT_COLUMNS, AuditEvent, AuditEventType, AuditSeverity
from src.models.budget import (
    BadgeGrant,
    BadgeId,
    LogEntry,
    OnboardingStage,
    StreakState,
    TimeSlot,
    UserProfile,
)
from src.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConflictError,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


PROFILE_COLUMNS = [
    "user_id",
    "nickname",
    "payday",
    "monthly_income",
    "fixed_costs",
    "savings_goal",
    "onboarding_stage",
    "experience_points",
    "level",
    "streak_count",
    "version",
    "created_at",
    "updated_at",
]

ENTRY_COLUMNS = [
    "id",
    "user_id",
    "group_id",
    "label",
    "price",
    "raw_text",
    "created_at",
    "time_slot",
    "expires_at",
]

STREAK_COLUMNS = [
    "user_id",
    "current_streak",
    "longest_streak",
    "last_activity_date",
]

BADGE_COLUMNS = [
    "user_id",
    "badge_id",
    "granted_at",
]

# Errors that describe the data, not the connection: retrying cannot help.
_NON_RETRYABLE = (ConflictError, DuplicateError, NotFoundError)

sheets_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type(_NON_RETRYABLE),
    reraise=True,
)


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Sheets drops trailing empty cells, so short rows are normal."""
    try:
        return row[index] if row[index] not in (None, "") else default
    except IndexError:
        return default


def _optional_int(value: str) -> Optional[int]:
    return int(value) if value != "" else None


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

    def worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet, writing the header row on creation."""
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

    def get_profiles_sheet(self) -> gspread.Worksheet:
        return self.worksheet(self._settings.profiles_sheet_name, PROFILE_COLUMNS)

    def get_entries_sheet(self) -> gspread.Worksheet:
        return self.worksheet(self._settings.entries_sheet_name, ENTRY_COLUMNS, rows=5000)

    def get_streaks_sheet(self) -> gspread.Worksheet:
        return self.worksheet(self._settings.streaks_sheet_name, STREAK_COLUMNS)

    def get_badges_sheet(self) -> gspread.Worksheet:
        return self.worksheet(self._settings.badges_sheet_name, BADGE_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


# =============================================================================
# ROW CONVERTERS
# =============================================================================

def profile_to_row(profile: UserProfile) -> list:
    return [
        profile.user_id,
        profile.nickname or "",
        profile.payday if profile.payday is not None else "",
        profile.monthly_income,
        profile.fixed_costs,
        profile.savings_goal,
        profile.onboarding_stage.value,
        profile.experience_points,
        profile.level,
        profile.streak_count,
        profile.version,
        profile.created_at.isoformat(),
        profile.updated_at.isoformat(),
    ]


def row_to_profile(row: list) -> UserProfile:
    return UserProfile(
        user_id=_safe_get(row, 0),
        nickname=_safe_get(row, 1) or None,
        payday=_optional_int(_safe_get(row, 2)),
        monthly_income=int(_safe_get(row, 3, "0")),
        fixed_costs=int(_safe_get(row, 4, "0")),
        savings_goal=int(_safe_get(row, 5, "0")),
        onboarding_stage=OnboardingStage(_safe_get(row, 6, OnboardingStage.INIT.value)),
        experience_points=int(_safe_get(row, 7, "0")),
        level=int(_safe_get(row, 8, "1")),
        streak_count=int(_safe_get(row, 9, "0")),
        version=int(_safe_get(row, 10, "0")),
        created_at=datetime.fromisoformat(_safe_get(row, 11)),
        updated_at=datetime.fromisoformat(_safe_get(row, 12)),
    )


def entry_to_row(entry: LogEntry) -> list:
    return [
        str(entry.id),
        entry.user_id,
        entry.group_id or "",
        entry.label,
        entry.price if entry.price is not None else "",
        entry.raw_text,
        entry.created_at.isoformat(),
        entry.time_slot.value if entry.time_slot else "",
        entry.expires_at.isoformat() if entry.expires_at else "",
    ]


def row_to_entry(row: list) -> LogEntry:
    return LogEntry(
        id=UUID(_safe_get(row, 0)),
        user_id=_safe_get(row, 1),
        group_id=_safe_get(row, 2) or None,
        label=_safe_get(row, 3),
        price=_optional_int(_safe_get(row, 4)),
        raw_text=_safe_get(row, 5),
        created_at=datetime.fromisoformat(_safe_get(row, 6)),
        time_slot=TimeSlot(_safe_get(row, 7)) if _safe_get(row, 7) else None,
        expires_at=datetime.fromisoformat(_safe_get(row, 8)) if _safe_get(row, 8) else None,
    )


def streak_to_row(state: StreakState) -> list:
    return [
        state.user_id,
        state.current_streak,
        state.longest_streak,
        state.last_activity_date.isoformat(),
    ]


def row_to_streak(row: list) -> StreakState:
    return StreakState(
        user_id=_safe_get(row, 0),
        current_streak=int(_safe_get(row, 1, "0")),
        longest_streak=int(_safe_get(row, 2, "0")),
        last_activity_date=date.fromisoformat(_safe_get(row, 3)),
    )


def badge_to_row(grant: BadgeGrant) -> list:
    return [
        grant.user_id,
        grant.badge_id.value,
        grant.granted_at.isoformat(),
    ]


def row_to_badge(row: list) -> BadgeGrant:
    return BadgeGrant(
        user_id=_safe_get(row, 0),
        badge_id=BadgeId(_safe_get(row, 1)),
        granted_at=datetime.fromisoformat(_safe_get(row, 2)),
    )


def row_to_event(row: list) -> AuditEvent:
    return AuditEvent(
        event_id=UUID(_safe_get(row, 0)),
        timestamp=datetime.fromisoformat(_safe_get(row, 1)),
        event_type=AuditEventType(_safe_get(row, 2)),
        severity=AuditSeverity(_safe_get(row, 3)),
        entity_type=_safe_get(row, 4) or None,
        entity_id=_safe_get(row, 5) or None,
        correlation_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
        description=_safe_get(row, 7),
        details=json.loads(_safe_get(row, 8)) if _safe_get(row, 8) else {},
        error_message=_safe_get(row, 9) or None,
        is_user_action=_safe_get(row, 10).lower() == "true",
    )


def _find_row(sheet: gspread.Worksheet, key: str) -> tuple[Optional[int], Optional[list]]:
    """Locate a row by its first column. Returns (1-based row index, row)."""
    all_rows = sheet.get_all_values()
    for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
        if row and row[0] == key:
            return idx, row
    return None, None


# =============================================================================
# STORAGE
# =============================================================================

class GoogleSheetsBudgetStorage(BudgetStorageInterface):
    """
    Google Sheets implementation of budget storage.

    Profiles and streaks are keyed by user id (first column). Entries and
    badge grants are append-only rows.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -- profiles ------------------------------------------------------------

    @sheets_retry
    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        try:
            _, row = _find_row(self._client.get_profiles_sheet(), user_id)
            return row_to_profile(row) if row else None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get profile: {e}")

    @sheets_retry
    async def create_profile(self, profile: UserProfile) -> UserProfile:
        try:
            sheet = self._client.get_profiles_sheet()
            idx, _ = _find_row(sheet, profile.user_id)
            if idx is not None:
                raise DuplicateError(f"Profile already exists: {profile.user_id}")
            sheet.append_row(profile_to_row(profile), value_input_option="RAW")
            return profile
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to create profile: {e}")

    @sheets_retry
    async def update_profile(self, profile: UserProfile) -> UserProfile:
        try:
            sheet = self._client.get_profiles_sheet()
            idx, row = _find_row(sheet, profile.user_id)
            if idx is None:
                raise NotFoundError(f"Profile not found: {profile.user_id}")

            stored_version = int(_safe_get(row, 10, "0"))
            if stored_version != profile.version:
                raise ConflictError(
                    f"Profile {profile.user_id} is at version {stored_version}, "
                    f"not {profile.version}"
                )

            updated = profile.model_copy(update={
                "version": profile.version + 1,
                "updated_at": datetime.now(timezone.utc),
            })
            sheet.update(
                range_name=f"A{idx}",
                values=[profile_to_row(updated)],
                value_input_option="RAW",
            )
            return updated
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update profile: {e}")

    # -- entries -------------------------------------------------------------

    @sheets_retry
    async def add_entry(self, entry: LogEntry) -> bool:
        try:
            sheet = self._client.get_entries_sheet()
            sheet.append_row(entry_to_row(entry), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save entry: {e}")

    async def _user_entries(self, user_id: str) -> list[LogEntry]:
        try:
            all_rows = self._client.get_entries_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list entries: {e}")

        entries = []
        for row in all_rows:
            if len(row) < 2 or row[1] != user_id:
                continue
            try:
                entries.append(row_to_entry(row))
            except ValueError as e:
                logger.warning("malformed_entry_row", row_id=_safe_get(row, 0), error=str(e))
        return entries

    @sheets_retry
    async def list_entries(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[LogEntry]:
        entries = [
            entry for entry in await self._user_entries(user_id)
            if (date_from is None or entry.local_date >= date_from)
            and (date_to is None or entry.local_date <= date_to)
        ]
        entries.sort(key=lambda e: e.created_at)
        return entries

    @sheets_retry
    async def list_recent_entries(self, user_id: str, limit: int = 10) -> list[LogEntry]:
        entries = await self._user_entries(user_id)
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[:limit]

    # -- gamification --------------------------------------------------------

    @sheets_retry
    async def get_streak(self, user_id: str) -> Optional[StreakState]:
        try:
            _, row = _find_row(self._client.get_streaks_sheet(), user_id)
            return row_to_streak(row) if row else None
        except Exception as e:
            raise StorageError(f"Failed to get streak: {e}")

    @sheets_retry
    async def save_streak(
        self,
        state: StreakState,
        expected_last_activity: Optional[date],
    ) -> bool:
        try:
            sheet = self._client.get_streaks_sheet()
            idx, row = _find_row(sheet, state.user_id)
            stored_last = date.fromisoformat(_safe_get(row, 3)) if row else None
            if stored_last != expected_last_activity:
                raise ConflictError(
                    f"Streak for {state.user_id} changed since it was read"
                )

            if idx is None:
                sheet.append_row(streak_to_row(state), value_input_option="RAW")
            else:
                sheet.update(
                    range_name=f"A{idx}",
                    values=[streak_to_row(state)],
                    value_input_option="RAW",
                )
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save streak: {e}")

    @sheets_retry
    async def list_badges(self, user_id: str) -> list[BadgeGrant]:
        try:
            all_rows = self._client.get_badges_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list badges: {e}")
        return [row_to_badge(row) for row in all_rows if row and row[0] == user_id]

    @sheets_retry
    async def grant_badge(self, grant: BadgeGrant) -> bool:
        try:
            sheet = self._client.get_badges_sheet()
            for row in sheet.get_all_values()[1:]:
                if len(row) > 1 and row[0] == grant.user_id and row[1] == grant.badge_id.value:
                    return False
            sheet.append_row(badge_to_row(grant), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to grant badge: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @sheets_retry
    async def _append_row(self, event: AuditEvent) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event, giving up quietly once retries run out."""
        try:
            await self._append_row(event)
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning(
                "audit_write_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(row_to_event(row))
            except ValueError as e:
                logger.warning("malformed_audit_row", row_id=row[0], error=str(e))

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
