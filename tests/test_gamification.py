"""
Tests for streaks, badges and the gamification service.
"""

import asyncio
import pytest
from datetime import date, datetime, timedelta, timezone

from src.audit import AuditLogger
from src.config import GamificationSettings
from src.engine import BadgeFacts, advance_streak, evaluate_badges
from src.models.audit import AuditEventType
from src.models.budget import BadgeGrant, BadgeId, StreakState, UserProfile
from src.services.gamification import GamificationService
from src.services.storage import ConflictError, InMemoryAuditStorage, InMemoryBudgetStorage


JST = timezone(timedelta(hours=9))


class TestAdvanceStreak:
    """Tests for advance_streak."""

    def test_first_activity_starts_streak(self):
        update = advance_streak(None, "U1", date(2024, 4, 25))
        assert update.state.current_streak == 1
        assert update.state.longest_streak == 1
        assert update.changed is True
        assert update.is_new_record is True

    def test_same_day_is_noop(self):
        """Test that logging twice on one day never changes the streak."""
        state = StreakState(
            user_id="U1",
            current_streak=2,
            longest_streak=5,
            last_activity_date=date(2024, 4, 25),
        )
        update = advance_streak(state, "U1", date(2024, 4, 25))
        assert update.changed is False
        assert update.state == state

    def test_next_day_extends(self):
        state = StreakState(
            user_id="U1",
            current_streak=2,
            longest_streak=5,
            last_activity_date=date(2024, 4, 25),
        )
        update = advance_streak(state, "U1", date(2024, 4, 26))
        assert update.state.current_streak == 3
        assert update.state.longest_streak == 5
        assert update.is_new_record is False

    def test_gap_resets_to_one(self):
        state = StreakState(
            user_id="U1",
            current_streak=4,
            longest_streak=4,
            last_activity_date=date(2024, 4, 25),
        )
        update = advance_streak(state, "U1", date(2024, 4, 28))
        assert update.state.current_streak == 1
        assert update.state.longest_streak == 4

    def test_new_record_updates_longest(self):
        state = StreakState(
            user_id="U1",
            current_streak=3,
            longest_streak=3,
            last_activity_date=date(2024, 4, 25),
        )
        update = advance_streak(state, "U1", date(2024, 4, 26))
        assert update.is_new_record is True
        assert update.state.longest_streak == 4

    def test_crosses_month_boundary(self):
        state = StreakState(
            user_id="U1",
            current_streak=1,
            longest_streak=1,
            last_activity_date=date(2024, 2, 29),
        )
        update = advance_streak(state, "U1", date(2024, 3, 1))
        assert update.state.current_streak == 2

    def test_longest_never_below_current(self):
        state = None
        day = date(2024, 1, 1)
        for offset in [0, 1, 2, 5, 6, 7, 8, 8, 20]:
            state = advance_streak(state, "U1", day + timedelta(days=offset)).state
            assert state.longest_streak >= state.current_streak
        assert state.longest_streak == 4


class TestEvaluateBadges:
    """Tests for evaluate_badges."""

    def test_first_entry(self):
        badges = evaluate_badges(BadgeFacts(1, 1, 12), owned=[])
        assert badges == [BadgeId.FIRST_ENTRY]

    def test_second_entry_of_day_is_not_first(self):
        assert evaluate_badges(BadgeFacts(2, 1, 12), owned=[]) == []

    def test_streak_badge_at_three_days(self):
        assert BadgeId.STREAK_3 in evaluate_badges(BadgeFacts(2, 3, 12), owned=[])
        assert BadgeId.STREAK_3 not in evaluate_badges(BadgeFacts(2, 2, 12), owned=[])

    def test_early_bird_and_night_owl(self):
        assert evaluate_badges(BadgeFacts(2, 1, 5), owned=[]) == [BadgeId.EARLY_BIRD]
        assert evaluate_badges(BadgeFacts(2, 1, 6), owned=[]) == []
        assert evaluate_badges(BadgeFacts(2, 1, 22), owned=[]) == [BadgeId.NIGHT_OWL]

    def test_night_owl_can_be_disabled(self):
        settings = GamificationSettings(late_badge_enabled=False)
        assert evaluate_badges(BadgeFacts(2, 1, 23), owned=[], settings=settings) == []

    def test_all_rules_evaluated_in_one_call(self):
        badges = evaluate_badges(BadgeFacts(1, 3, 4), owned=[])
        assert badges == [BadgeId.FIRST_ENTRY, BadgeId.STREAK_3, BadgeId.EARLY_BIRD]

    def test_owned_badges_never_returned(self):
        badges = evaluate_badges(
            BadgeFacts(1, 3, 4),
            owned=[BadgeId.FIRST_ENTRY, BadgeId.EARLY_BIRD],
        )
        assert badges == [BadgeId.STREAK_3]


class ConflictOnceStorage(InMemoryBudgetStorage):
    """Another event sneaks in a same-day streak write before our first save."""

    def __init__(self):
        super().__init__()
        self.save_calls = 0

    async def save_streak(self, state, expected_last_activity):
        self.save_calls += 1
        if self.save_calls == 1:
            await super().save_streak(state, expected_last_activity)
        return await super().save_streak(state, expected_last_activity)


class AlwaysConflictStorage(InMemoryBudgetStorage):

    def __init__(self):
        super().__init__()
        self.save_calls = 0

    async def save_streak(self, state, expected_last_activity):
        self.save_calls += 1
        raise ConflictError("always stale")


class TestGamificationService:
    """Tests for GamificationService with in-memory storage."""

    def setup_method(self):
        self.audit_storage = InMemoryAuditStorage()
        self.audit = AuditLogger(self.audit_storage)

    def make_service(self, storage):
        asyncio.run(storage.create_profile(UserProfile(user_id="U1")))
        return GamificationService(storage, self.audit, GamificationSettings())

    def test_first_entry_grants_badge_streak_and_xp(self):
        storage = InMemoryBudgetStorage()
        service = self.make_service(storage)
        now = datetime(2024, 4, 25, 12, 0, tzinfo=JST)

        outcome = asyncio.run(service.on_entry_logged("U1", now, log_count_today=1))

        assert outcome.streak.state.current_streak == 1
        assert outcome.new_badges == [BadgeId.FIRST_ENTRY]
        assert outcome.profile.experience_points == 10
        assert outcome.profile.streak_count == 1
        assert outcome.leveled_up is False

    def test_badges_are_granted_once(self):
        storage = InMemoryBudgetStorage()
        service = self.make_service(storage)
        now = datetime(2024, 4, 25, 12, 0, tzinfo=JST)

        asyncio.run(service.on_entry_logged("U1", now, log_count_today=1))
        again = asyncio.run(service.award_badges("U1", BadgeFacts(1, 1, 12), now))

        assert again == []
        grants = asyncio.run(storage.list_badges("U1"))
        assert [g.badge_id for g in grants] == [BadgeId.FIRST_ENTRY]

    def test_grant_badge_is_insert_if_absent(self):
        storage = InMemoryBudgetStorage()
        grant = BadgeGrant(user_id="U1", badge_id=BadgeId.NIGHT_OWL)
        assert asyncio.run(storage.grant_badge(grant)) is True
        assert asyncio.run(storage.grant_badge(grant)) is False

    def test_level_up_every_hundred_xp(self):
        storage = InMemoryBudgetStorage()
        service = self.make_service(storage)

        results = [
            asyncio.run(service.grant_experience("U1", streak_count=1))
            for _ in range(10)
        ]

        profile, leveled_up = results[-1]
        assert profile.experience_points == 100
        assert profile.level == 2
        assert leveled_up is True
        assert not any(up for _, up in results[:-1])

    def test_streak_across_days(self):
        storage = InMemoryBudgetStorage()
        service = self.make_service(storage)
        start = datetime(2024, 4, 25, 12, 0, tzinfo=JST)

        for offset in range(3):
            outcome = asyncio.run(service.on_entry_logged(
                "U1", start + timedelta(days=offset), log_count_today=1
            ))

        assert outcome.streak.state.current_streak == 3
        assert BadgeId.STREAK_3 in outcome.new_badges
        assert outcome.profile.streak_count == 3

    def test_lost_streak_race_is_retried_without_double_count(self):
        """Test that a same-day concurrent write is re-read, not overwritten."""
        storage = ConflictOnceStorage()
        service = self.make_service(storage)
        now = datetime(2024, 4, 25, 12, 0, tzinfo=JST)

        update = asyncio.run(service.record_activity("U1", now))

        assert update.changed is False
        assert update.state.current_streak == 1
        assert storage.save_calls == 1
        types = [e.event_type for e in self.audit_storage.events]
        assert AuditEventType.CONCURRENT_UPDATE in types

    def test_persistent_conflict_gives_up_after_three_attempts(self):
        storage = AlwaysConflictStorage()
        service = self.make_service(storage)
        now = datetime(2024, 4, 25, 12, 0, tzinfo=JST)

        with pytest.raises(ConflictError):
            asyncio.run(service.record_activity("U1", now))
        assert storage.save_calls == 3

    def test_stale_profile_update_conflicts(self):
        storage = InMemoryBudgetStorage()
        asyncio.run(storage.create_profile(UserProfile(user_id="U1")))
        stale = asyncio.run(storage.get_profile("U1"))

        asyncio.run(storage.update_profile(stale.model_copy(update={"nickname": "Aki"})))
        with pytest.raises(ConflictError):
            asyncio.run(storage.update_profile(stale.model_copy(update={"nickname": "Bo"})))

        assert asyncio.run(storage.get_profile("U1")).nickname == "Aki"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
