"""
In-Memory Storage Implementation

Process-local backend used for tests and the local chat console.
Honors the same conditional-write contract as the Google Sheets backend.
An asyncio.Lock makes each check-and-write atomic within the event loop.
"""

import asyncio
from datetime import date, datetime, timezone
from typing import Optional

from src.models.audit import AuditEvent
from src.models.budget import (
    BadgeGrant,
    LogEntry,
    StreakState,
    UserProfile,
)
from src.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConflictError,
    DuplicateError,
    NotFoundError,
)


class InMemoryBudgetStorage(BudgetStorageInterface):
    """Dict-backed profiles, entries, streaks and badges."""

    def __init__(self):
        self._profiles: dict[str, UserProfile] = {}
        self._entries: dict[str, list[LogEntry]] = {}
        self._streaks: dict[str, StreakState] = {}
        self._badges: dict[str, list[BadgeGrant]] = {}
        self._lock = asyncio.Lock()

    # -- profiles ------------------------------------------------------------

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        profile = self._profiles.get(user_id)
        return profile.model_copy() if profile else None

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        async with self._lock:
            if profile.user_id in self._profiles:
                raise DuplicateError(f"Profile already exists: {profile.user_id}")
            self._profiles[profile.user_id] = profile.model_copy()
            return profile.model_copy()

    async def update_profile(self, profile: UserProfile) -> UserProfile:
        async with self._lock:
            stored = self._profiles.get(profile.user_id)
            if stored is None:
                raise NotFoundError(f"Profile not found: {profile.user_id}")
            if stored.version != profile.version:
                raise ConflictError(
                    f"Profile {profile.user_id} is at version {stored.version}, "
                    f"not {profile.version}"
                )
            updated = profile.model_copy(update={
                "version": profile.version + 1,
                "updated_at": datetime.now(timezone.utc),
            })
            self._profiles[profile.user_id] = updated
            return updated.model_copy()

    # -- entries -------------------------------------------------------------

    async def add_entry(self, entry: LogEntry) -> bool:
        async with self._lock:
            entries = self._entries.setdefault(entry.user_id, [])
            if any(e.id == entry.id for e in entries):
                raise DuplicateError(f"Entry already exists: {entry.id}")
            entries.append(entry)
            return True

    async def list_entries(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[LogEntry]:
        entries = []
        for entry in self._entries.get(user_id, []):
            if date_from and entry.local_date < date_from:
                continue
            if date_to and entry.local_date > date_to:
                continue
            entries.append(entry)
        entries.sort(key=lambda e: e.created_at)
        return entries

    async def list_recent_entries(self, user_id: str, limit: int = 10) -> list[LogEntry]:
        entries = sorted(
            self._entries.get(user_id, []),
            key=lambda e: e.created_at,
            reverse=True,
        )
        return entries[:limit]

    # -- gamification --------------------------------------------------------

    async def get_streak(self, user_id: str) -> Optional[StreakState]:
        state = self._streaks.get(user_id)
        return state.model_copy() if state else None

    async def save_streak(
        self,
        state: StreakState,
        expected_last_activity: Optional[date],
    ) -> bool:
        async with self._lock:
            stored = self._streaks.get(state.user_id)
            stored_last = stored.last_activity_date if stored else None
            if stored_last != expected_last_activity:
                raise ConflictError(
                    f"Streak for {state.user_id} changed since it was read"
                )
            self._streaks[state.user_id] = state.model_copy()
            return True

    async def list_badges(self, user_id: str) -> list[BadgeGrant]:
        return list(self._badges.get(user_id, []))

    async def grant_badge(self, grant: BadgeGrant) -> bool:
        async with self._lock:
            grants = self._badges.setdefault(grant.user_id, [])
            if any(g.badge_id == grant.badge_id for g in grants):
                return False
            grants.append(grant)
            return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
