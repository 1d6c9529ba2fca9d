"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just the four row kinds the budget core needs: profiles, log entries,
streaks and badge grants (plus the audit log).

CONCURRENCY: Every mutable row kind is written with a conditional write.
- update_profile: succeeds only if the stored version matches
- save_streak: succeeds only if the stored last-activity date matches
- grant_badge: insert-if-absent
A lost race raises ConflictError (or returns False for badges) instead of
silently overwriting another event's work.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

from src.models.audit import AuditEvent
from src.models.budget import (
    BadgeGrant,
    BadgeId,
    LogEntry,
    StreakState,
    UserProfile,
)


class ProfileStorageInterface(ABC):
    """
    Abstract interface for user profile storage.

    Profiles are created on first contact and never deleted.
    """

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        """
        Retrieve a profile by user id.

        Returns:
            The profile if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_profile(self, profile: UserProfile) -> UserProfile:
        """
        Insert a new profile.

        Returns:
            The stored profile

        Raises:
            DuplicateError: If a profile already exists for this user
        """
        pass

    @abstractmethod
    async def update_profile(self, profile: UserProfile) -> UserProfile:
        """
        Compare-and-swap update.

        The write succeeds only if the stored version equals profile.version.
        The stored copy gets version + 1 and a fresh updated_at.

        Returns:
            The stored profile (with the bumped version)

        Raises:
            NotFoundError: If the profile doesn't exist
            ConflictError: If another write got there first
        """
        pass


class EntryStorageInterface(ABC):
    """
    Abstract interface for log entry storage.

    Entries are append-only.
    """

    @abstractmethod
    async def add_entry(self, entry: LogEntry) -> bool:
        """
        Append a log entry.

        Raises:
            DuplicateError: If an entry with the same id exists
        """
        pass

    @abstractmethod
    async def list_entries(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[LogEntry]:
        """
        List a user's entries whose local date is in [date_from, date_to].

        Returns:
            Entries in chronological order
        """
        pass

    @abstractmethod
    async def list_recent_entries(
        self,
        user_id: str,
        limit: int = 10,
    ) -> list[LogEntry]:
        """
        Get the user's most recent entries.

        Returns:
            Entries, newest first
        """
        pass


class GamificationStorageInterface(ABC):
    """Abstract interface for streak and badge state."""

    @abstractmethod
    async def get_streak(self, user_id: str) -> Optional[StreakState]:
        pass

    @abstractmethod
    async def save_streak(
        self,
        state: StreakState,
        expected_last_activity: Optional[date],
    ) -> bool:
        """
        Compare-and-swap on the last activity date.

        Args:
            state: The new streak state
            expected_last_activity: The last_activity_date the caller read,
                or None if it read no streak at all

        Raises:
            ConflictError: If the stored state no longer matches
        """
        pass

    @abstractmethod
    async def list_badges(self, user_id: str) -> list[BadgeGrant]:
        pass

    @abstractmethod
    async def grant_badge(self, grant: BadgeGrant) -> bool:
        """
        Insert a badge grant if the user does not already hold it.

        Returns:
            True if newly granted, False if already held
        """
        pass

    async def owned_badges(self, user_id: str) -> set[BadgeId]:
        """Convenience: badge ids already held by the user."""
        return {grant.badge_id for grant in await self.list_badges(user_id)}


class BudgetStorageInterface(
    ProfileStorageInterface,
    EntryStorageInterface,
    GamificationStorageInterface,
):
    """Everything the budget assistant persists, behind one object."""


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConflictError(StorageError):
    """A conditional write lost to a concurrent update."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
