"""
Gamification Service

Applies the pure streak and badge rules to stored state after each logged
entry, and grants experience points.

CONCURRENCY: Streak and profile writes are compare-and-swap. A lost race
raises ConflictError; the whole read-compute-write step is then retried
from a fresh read. Badge grants are insert-if-absent, so two events that
both earn a badge grant it once.
"""

from datetime import datetime
from typing import NamedTuple, Optional
from uuid import UUID

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random,
)

from src.audit import AuditLogger
from src.config import GamificationSettings, get_settings
from src.engine import BadgeFacts, StreakUpdate, advance_streak, evaluate_badges
from src.models.budget import BadgeGrant, BadgeId, UserProfile
from src.services.storage import BudgetStorageInterface, ConflictError, NotFoundError


cas_retry = retry(
    retry=retry_if_exception_type(ConflictError),
    stop=stop_after_attempt(3),
    wait=wait_random(min=0, max=0.1),
    reraise=True,
)


class GamificationOutcome(NamedTuple):
    """Everything a logged entry changed on the gamification side."""
    streak: StreakUpdate
    new_badges: list[BadgeId]
    profile: UserProfile
    leveled_up: bool


class GamificationService:
    """Streaks, badges and experience for logged entries."""

    def __init__(
        self,
        storage: BudgetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[GamificationSettings] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().gamification

    @cas_retry
    async def record_activity(
        self,
        user_id: str,
        local_now: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> StreakUpdate:
        """
        Advance the user's streak for the local calendar day of `local_now`.

        Same-day repeats are a no-op and write nothing.

        Raises:
            ConflictError: If the streak kept changing under us after retries
        """
        previous = await self._storage.get_streak(user_id)
        update = advance_streak(previous, user_id, local_now.date())
        if not update.changed:
            return update

        expected = previous.last_activity_date if previous else None
        try:
            await self._storage.save_streak(update.state, expected_last_activity=expected)
        except ConflictError:
            await self._audit.log_concurrent_update(user_id, "streak", correlation_id)
            raise

        await self._audit.log_streak_updated(
            user_id=user_id,
            current_streak=update.state.current_streak,
            is_new_record=update.is_new_record,
            correlation_id=correlation_id,
        )
        return update

    async def award_badges(
        self,
        user_id: str,
        facts: BadgeFacts,
        granted_at: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> list[BadgeId]:
        """Evaluate every badge rule and grant what is newly earned."""
        owned = await self._storage.owned_badges(user_id)
        granted = []
        for badge in evaluate_badges(facts, owned, self._settings):
            grant = BadgeGrant(user_id=user_id, badge_id=badge, granted_at=granted_at)
            if await self._storage.grant_badge(grant):
                granted.append(badge)
                await self._audit.log_badge_granted(user_id, badge.value, correlation_id)
        return granted

    @cas_retry
    async def grant_experience(
        self,
        user_id: str,
        streak_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[UserProfile, bool]:
        """
        Add one entry's worth of XP, recompute the level and mirror the streak.

        Returns:
            (stored profile, whether the level went up)
        """
        profile = await self._storage.get_profile(user_id)
        if profile is None:
            raise NotFoundError(f"Profile not found: {user_id}")

        xp = profile.experience_points + self._settings.xp_per_entry
        level = 1 + xp // self._settings.xp_per_level
        updated = profile.model_copy(update={
            "experience_points": xp,
            "level": level,
            "streak_count": streak_count,
        })
        try:
            stored = await self._storage.update_profile(updated)
        except ConflictError:
            await self._audit.log_concurrent_update(user_id, "profile", correlation_id)
            raise
        return stored, level > profile.level

    async def on_entry_logged(
        self,
        user_id: str,
        local_now: datetime,
        log_count_today: int,
        correlation_id: Optional[UUID] = None,
    ) -> GamificationOutcome:
        """Run streak, badges and XP for one freshly stored entry."""
        streak = await self.record_activity(user_id, local_now, correlation_id)
        facts = BadgeFacts(
            log_count_today=log_count_today,
            current_streak=streak.state.current_streak,
            local_hour=local_now.hour,
        )
        badges = await self.award_badges(user_id, facts, local_now, correlation_id)
        profile, leveled_up = await self.grant_experience(
            user_id, streak.state.current_streak, correlation_id
        )
        return GamificationOutcome(
            streak=streak,
            new_badges=badges,
            profile=profile,
            leveled_up=leveled_up,
        )
