"""
Tests for the Google Sheets storage adapter.

A fake client hands out in-process worksheets that behave like gspread's:
values come back as strings and row 1 is the header.
"""

import asyncio
import pytest
from datetime import date, datetime, timedelta, timezone

from tenacity import wait_none

from src.models.audit import AuditEventBuilder, AuditEventType
from src.models.budget import (
    BadgeGrant,
    BadgeId,
    LogEntry,
    OnboardingStage,
    StreakState,
    UserProfile,
)
from src.services.storage import (
    ConflictError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    NotFoundError,
)
from src.services.storage.google_sheets import (
    BADGE_COLUMNS,
    ENTRY_COLUMNS,
    PROFILE_COLUMNS,
    STREAK_COLUMNS,
)
from src.models.audit import AUDIT_COLUMNS


JST = timezone(timedelta(hours=9))


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the adapter."""

    def __init__(self, columns):
        self.rows = [list(columns)]

    def get_all_values(self):
        return [["" if v is None else str(v) for v in row] for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append(list(values))

    def update(self, range_name=None, values=None, value_input_option=None):
        index = int(range_name[1:]) - 1
        self.rows[index] = list(values[0])


class FakeSheetsClient:

    def __init__(self):
        self.profiles = FakeWorksheet(PROFILE_COLUMNS)
        self.entries = FakeWorksheet(ENTRY_COLUMNS)
        self.streaks = FakeWorksheet(STREAK_COLUMNS)
        self.badges = FakeWorksheet(BADGE_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_profiles_sheet(self):
        return self.profiles

    def get_entries_sheet(self):
        return self.entries

    def get_streaks_sheet(self):
        return self.streaks

    def get_badges_sheet(self):
        return self.badges

    def get_audit_sheet(self):
        return self.audit


class BrokenAuditClient(FakeSheetsClient):

    def __init__(self, failures=None):
        super().__init__()
        self.failures = failures
        self.calls = 0

    def get_audit_sheet(self):
        self.calls += 1
        if self.failures is None or self.calls <= self.failures:
            raise RuntimeError("quota exceeded")
        return self.audit


def make_entry(user_id: str, day: date, price, hour: int = 12, label: str = "item") -> LogEntry:
    return LogEntry.create(
        user_id=user_id,
        label=label,
        price=price,
        created_at=datetime(day.year, day.month, day.day, hour, tzinfo=JST),
    )


class TestProfileRows:
    """Tests for profile storage."""

    def setup_method(self):
        self.client = FakeSheetsClient()
        self.storage = GoogleSheetsBudgetStorage(self.client)

    def test_round_trip(self):
        profile = UserProfile(
            user_id="U1",
            nickname="Aki",
            payday=25,
            monthly_income=200000,
            fixed_costs=80000,
            savings_goal=30000,
            onboarding_stage=OnboardingStage.COMPLETE,
        )
        asyncio.run(self.storage.create_profile(profile))

        loaded = asyncio.run(self.storage.get_profile("U1"))
        assert loaded == profile

    def test_unfinished_profile_round_trip(self):
        asyncio.run(self.storage.create_profile(UserProfile(user_id="U2")))
        loaded = asyncio.run(self.storage.get_profile("U2"))
        assert loaded.payday is None
        assert loaded.nickname is None
        assert loaded.onboarding_stage == OnboardingStage.INIT

    def test_missing_profile_is_none(self):
        assert asyncio.run(self.storage.get_profile("nobody")) is None

    def test_duplicate_create_rejected(self):
        asyncio.run(self.storage.create_profile(UserProfile(user_id="U1")))
        with pytest.raises(DuplicateError):
            asyncio.run(self.storage.create_profile(UserProfile(user_id="U1")))

    def test_update_bumps_version_in_place(self):
        asyncio.run(self.storage.create_profile(UserProfile(user_id="U1")))
        profile = asyncio.run(self.storage.get_profile("U1"))

        stored = asyncio.run(self.storage.update_profile(
            profile.model_copy(update={"nickname": "Aki"})
        ))

        assert stored.version == 1
        assert len(self.client.profiles.rows) == 2  # header + one profile
        assert asyncio.run(self.storage.get_profile("U1")).nickname == "Aki"

    def test_stale_update_conflicts(self):
        asyncio.run(self.storage.create_profile(UserProfile(user_id="U1")))
        stale = asyncio.run(self.storage.get_profile("U1"))
        asyncio.run(self.storage.update_profile(stale.model_copy(update={"nickname": "Aki"})))

        with pytest.raises(ConflictError):
            asyncio.run(self.storage.update_profile(stale.model_copy(update={"nickname": "Bo"})))

    def test_update_missing_profile(self):
        with pytest.raises(NotFoundError):
            asyncio.run(self.storage.update_profile(UserProfile(user_id="ghost")))


class TestEntryRows:
    """Tests for entry storage."""

    def setup_method(self):
        self.storage = GoogleSheetsBudgetStorage(FakeSheetsClient())

    def test_round_trip_keeps_optional_fields(self):
        entry = LogEntry.create(
            user_id="U1",
            label="coffee",
            price=None,
            created_at=datetime(2024, 4, 25, 8, 30, tzinfo=JST),
            raw_text="coffee",
            group_id="G1",
            retention_hours=24,
        )
        asyncio.run(self.storage.add_entry(entry))

        [loaded] = asyncio.run(self.storage.list_entries("U1"))
        assert loaded == entry

    def test_list_filters_by_user_and_local_date(self):
        for entry in [
            make_entry("U1", date(2024, 4, 24), 100),
            make_entry("U1", date(2024, 4, 26), 300, hour=9),
            make_entry("U1", date(2024, 4, 25), 200),
            make_entry("U2", date(2024, 4, 25), 999),
        ]:
            asyncio.run(self.storage.add_entry(entry))

        entries = asyncio.run(self.storage.list_entries(
            "U1", date_from=date(2024, 4, 25), date_to=date(2024, 4, 26)
        ))
        assert [e.price for e in entries] == [200, 300]

    def test_recent_entries_newest_first(self):
        for hour in [8, 12, 19]:
            asyncio.run(self.storage.add_entry(
                make_entry("U1", date(2024, 4, 25), hour * 100, hour=hour)
            ))

        recent = asyncio.run(self.storage.list_recent_entries("U1", limit=2))
        assert [e.price for e in recent] == [1900, 1200]


class TestGamificationRows:
    """Tests for streak and badge storage."""

    def setup_method(self):
        self.client = FakeSheetsClient()
        self.storage = GoogleSheetsBudgetStorage(self.client)

    def test_streak_insert_then_update_in_place(self):
        first = StreakState(
            user_id="U1",
            current_streak=1,
            longest_streak=1,
            last_activity_date=date(2024, 4, 25),
        )
        second = StreakState(
            user_id="U1",
            current_streak=2,
            longest_streak=2,
            last_activity_date=date(2024, 4, 26),
        )
        asyncio.run(self.storage.save_streak(first, expected_last_activity=None))
        asyncio.run(self.storage.save_streak(second, expected_last_activity=date(2024, 4, 25)))

        assert len(self.client.streaks.rows) == 2
        assert asyncio.run(self.storage.get_streak("U1")) == second

    def test_stale_streak_write_conflicts(self):
        state = StreakState(
            user_id="U1",
            current_streak=1,
            longest_streak=1,
            last_activity_date=date(2024, 4, 25),
        )
        asyncio.run(self.storage.save_streak(state, expected_last_activity=None))

        with pytest.raises(ConflictError):
            asyncio.run(self.storage.save_streak(state, expected_last_activity=None))

    def test_badge_grant_is_insert_if_absent(self):
        grant = BadgeGrant(user_id="U1", badge_id=BadgeId.FIRST_ENTRY)
        assert asyncio.run(self.storage.grant_badge(grant)) is True
        assert asyncio.run(self.storage.grant_badge(grant)) is False
        assert asyncio.run(self.storage.owned_badges("U1")) == {BadgeId.FIRST_ENTRY}
        assert asyncio.run(self.storage.list_badges("U2")) == []


class TestAuditRows:
    """Tests for audit storage."""

    @pytest.fixture(autouse=True)
    def no_backoff(self, monkeypatch):
        monkeypatch.setattr(GoogleSheetsAuditStorage._append_row.retry, "wait", wait_none())

    def test_append_and_read_back(self):
        storage = GoogleSheetsAuditStorage(FakeSheetsClient())
        event = AuditEventBuilder.badge_granted(user_id="U1", badge_id="streak_3")

        assert asyncio.run(storage.append_event(event)) is True

        [loaded] = asyncio.run(storage.get_recent_events())
        assert loaded.event_id == event.event_id
        assert loaded.event_type == AuditEventType.BADGE_GRANTED
        assert loaded.details == {"badge_id": "streak_3"}

    def test_write_failure_does_not_raise(self):
        """Test that audit persistence failures never break the main flow."""
        client = BrokenAuditClient()
        storage = GoogleSheetsAuditStorage(client)
        event = AuditEventBuilder.profile_created(user_id="U1")
        assert asyncio.run(storage.append_event(event)) is False
        assert client.calls == 3

    def test_transient_failure_is_retried(self):
        client = BrokenAuditClient(failures=1)
        storage = GoogleSheetsAuditStorage(client)
        event = AuditEventBuilder.profile_created(user_id="U1")

        assert asyncio.run(storage.append_event(event)) is True
        assert client.calls == 2
        assert len(client.audit.rows) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
