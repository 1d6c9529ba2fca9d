"""
End-to-end tests for BudgetAssistant with in-memory storage.

Events carry fixed timestamps; the forecast and suggestion RNG is seeded.
"""

import asyncio
import pytest
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import numpy as np

from src.audit import AuditLogger
from src.config import AppSettings, ForecastSettings
from src.engine import ForecastEngine
from src.models.audit import AuditEventType
from src.models.budget import BadgeId, HealthTier, OnboardingStage, UserProfile
from src.models.chat import BudgetReportCard, CardReply, ChatEvent, ReceiptCard, TextReply
from src.orchestrator import BudgetAssistant
from src.persona import Persona
from src.services.storage import ConnectionError, InMemoryAuditStorage, InMemoryBudgetStorage
from src.services.strategist import BudgetStrategist, OnboardingIncompleteError
from src.services.suggestions import SuggestionEngine


TOKYO = ZoneInfo("Asia/Tokyo")
PERSONA = Persona(currency="¥")


def at(day: int, hour: int = 12, minute: int = 0, month: int = 4) -> datetime:
    return datetime(2024, month, day, hour, minute, tzinfo=TOKYO)


def make_onboarded_profile(user_id: str = "U1") -> UserProfile:
    return UserProfile(
        user_id=user_id,
        nickname="Aki",
        payday=25,
        monthly_income=200000,
        fixed_costs=80000,
        savings_goal=30000,
        onboarding_stage=OnboardingStage.COMPLETE,
    )


class FailingEntriesStorage(InMemoryBudgetStorage):

    async def list_entries(self, user_id, date_from=None, date_to=None):
        raise ConnectionError("sheet unreachable")


class AssistantHarness:
    """Builds an assistant over in-memory storage and sends events to it."""

    def __init__(self, storage=None, **settings):
        self.storage = storage or InMemoryBudgetStorage()
        self.audit_storage = InMemoryAuditStorage()
        audit = AuditLogger(self.audit_storage)
        rng = np.random.default_rng(0)
        self.assistant = BudgetAssistant(
            self.storage,
            audit_logger=audit,
            persona=PERSONA,
            strategist=BudgetStrategist(
                self.storage,
                engine=ForecastEngine(ForecastSettings(trial_count=200), rng=rng),
                audit_logger=audit,
            ),
            suggestions=SuggestionEngine(rng=rng),
            settings=AppSettings(timezone="Asia/Tokyo", **settings),
        )

    def send(self, text, when, user_id="U1", **extra):
        event = ChatEvent(user_id=user_id, text=text, timestamp=when, **extra)
        return asyncio.run(self.assistant.handle_event(event))

    def onboard(self, user_id="U1"):
        asyncio.run(self.storage.create_profile(make_onboarded_profile(user_id)))

    def event_types(self):
        return [e.event_type for e in self.audit_storage.events]


def report_card(replies) -> BudgetReportCard:
    cards = [r.card for r in replies if isinstance(r, CardReply)]
    assert len(cards) == 1
    assert isinstance(cards[0], BudgetReportCard)
    return cards[0]


class TestScenarios:
    """The three reference conversations."""

    def test_scenario_c_onboarding_conversation(self):
        """Test first contact plus five answers reach COMPLETE, rejecting non-numbers."""
        harness = AssistantHarness()

        first = harness.send("hello!", at(25, 9))
        assert PERSONA.greeting() in first[0].text
        assert PERSONA.onboarding_prompt(OnboardingStage.NAME) in first[0].text

        harness.send("Aki", at(25, 9, 1))
        for bad, good in [("soon", "25"), ("plenty", "200000"), ("rent", "80000"), ("some", "30000")]:
            before = asyncio.run(harness.storage.get_profile("U1")).onboarding_stage
            harness.send(bad, at(25, 9, 2))
            assert asyncio.run(harness.storage.get_profile("U1")).onboarding_stage == before
            replies = harness.send(good, at(25, 9, 3))

        profile = asyncio.run(harness.storage.get_profile("U1"))
        assert profile.onboarding_stage == OnboardingStage.COMPLETE
        assert profile.disposable_income == 90000
        assert "¥90,000" in replies[0].text

        types = harness.event_types()
        assert types.count(AuditEventType.PROFILE_CREATED) == 1
        assert types.count(AuditEventType.ONBOARDING_ADVANCED) == 6
        assert types.count(AuditEventType.ONBOARDING_REJECTED) == 4
        assert types.count(AuditEventType.ONBOARDING_COMPLETED) == 1

    def test_scenario_a_fresh_period_is_tier_s(self):
        harness = AssistantHarness()
        for text in ["hi", "Aki", "25", "200000", "80000", "30000"]:
            harness.send(text, at(25, 9))

        replies = harness.send("status", at(25, 10))

        card = report_card(replies)
        assert card.tier == HealthTier.S
        assert card.remaining == 90000
        assert card.ruin_date is None
        assert "Rank: S" in replies[-1].text

    def test_scenario_b_overspend_is_tier_f(self):
        harness = AssistantHarness()
        harness.onboard()

        replies = harness.send("new laptop 95000", at(25, 10))
        assert replies[0].text == PERSONA.text("log_ack_strict").format(label="new laptop")

        card = report_card(harness.send("status", at(25, 11)))
        assert card.tier == HealthTier.F
        assert card.remaining == -5000
        assert card.bankruptcy_probability == 100


class TestLogging:
    """Tests for the LOG intent."""

    def test_first_log_acknowledges_and_unlocks_badge(self):
        harness = AssistantHarness()
        harness.onboard()

        replies = harness.send("lunch curry 800", at(26, 12))

        assert "lunch curry" in replies[0].text
        assert "¥800" in replies[0].text
        assert replies[1].text == PERSONA.badge_unlocked(BadgeId.FIRST_ENTRY)

        entries = asyncio.run(harness.storage.list_entries("U1"))
        assert [(e.label, e.price) for e in entries] == [("lunch curry", 800)]

        profile = asyncio.run(harness.storage.get_profile("U1"))
        assert profile.experience_points == 10
        assert profile.streak_count == 1

        types = harness.event_types()
        for expected in [
            AuditEventType.ENTRY_LOGGED,
            AuditEventType.STREAK_UPDATED,
            AuditEventType.BADGE_GRANTED,
            AuditEventType.FORECAST_COMPUTED,
        ]:
            assert expected in types

    def test_one_correlation_id_per_event(self):
        harness = AssistantHarness()
        harness.onboard()
        harness.send("lunch 800", at(26, 12))

        ids = {e.correlation_id for e in harness.audit_storage.events}
        assert len(ids) == 1

    def test_second_log_same_day_has_no_extras(self):
        harness = AssistantHarness()
        harness.onboard()
        harness.send("coffee 300", at(26, 9))

        replies = harness.send("lunch 800", at(26, 12))
        assert len(replies) == 1

    def test_utc_timestamp_is_localized(self):
        """Test that 15:30 UTC counts as 00:30 the next day in Tokyo."""
        harness = AssistantHarness()
        harness.onboard()

        harness.send(
            "midnight ramen 900",
            datetime(2024, 4, 25, 15, 30, tzinfo=timezone.utc),
        )

        [entry] = asyncio.run(harness.storage.list_entries("U1"))
        assert entry.local_date.isoformat() == "2024-04-26"
        assert entry.created_at.hour == 0
        badges = asyncio.run(harness.storage.owned_badges("U1"))
        assert {b.value for b in badges} == {"first_log", "early_bird"}

    def test_group_id_is_recorded(self):
        harness = AssistantHarness()
        harness.onboard()
        harness.send("snacks 400", at(26, 16), group_id="G1")

        [entry] = asyncio.run(harness.storage.list_entries("U1"))
        assert entry.group_id == "G1"

    def test_price_only_message_uses_placeholder_label(self):
        harness = AssistantHarness(empty_label_placeholder="(misc)")
        harness.onboard()
        harness.send("500", at(26, 12))

        [entry] = asyncio.run(harness.storage.list_entries("U1"))
        assert entry.label == "(misc)"
        assert entry.price == 500

    def test_three_day_streak_announces_record(self):
        harness = AssistantHarness()
        harness.onboard()
        harness.send("lunch 800", at(26, 12))
        harness.send("lunch 800", at(27, 12))

        replies = harness.send("lunch 800", at(28, 12))

        extras = replies[1].text
        assert PERSONA.badge_unlocked(BadgeId.STREAK_3) in extras
        assert PERSONA.new_record(3) in extras


class TestOtherIntents:
    """Tests for the read-only intents."""

    def test_help(self):
        harness = AssistantHarness()
        harness.onboard()
        assert harness.send("help", at(26))[0].text == PERSONA.text("help")

    def test_blank_message(self):
        harness = AssistantHarness()
        harness.onboard()
        assert harness.send("   ", at(26))[0].text == PERSONA.text("empty_message")

    def test_media_is_not_supported(self):
        harness = AssistantHarness()
        harness.onboard()
        replies = harness.send(None, at(26), media_id="img-1")
        assert replies[0].text == PERSONA.text("media_unsupported")

    def test_today_receipt(self):
        harness = AssistantHarness()
        harness.onboard()
        harness.send("lunch 800", at(26, 12))
        harness.send("dinner 1200", at(26, 19))
        harness.send("yesterday snack 100", at(25, 15))

        [reply] = harness.send("today", at(26, 21))

        assert isinstance(reply, CardReply)
        assert isinstance(reply.card, ReceiptCard)
        assert [row.label for row in reply.card.rows] == ["lunch", "dinner"]
        assert reply.card.total == 2000

    def test_today_without_entries(self):
        harness = AssistantHarness()
        harness.onboard()
        assert harness.send("today", at(26))[0].text == PERSONA.text("today_empty")

    def test_expired_entries_are_hidden(self):
        harness = AssistantHarness(activity_retention_hours=1)
        harness.onboard()
        harness.send("lunch 800", at(26, 12))

        assert harness.send("today", at(26, 14))[0].text == PERSONA.text("today_empty")

    def test_expired_entries_still_count_against_the_budget(self):
        harness = AssistantHarness(activity_retention_hours=1)
        harness.onboard()
        harness.send("lunch 800", at(25, 12))

        card = report_card(harness.send("status", at(25, 20)))
        assert card.remaining == 89200

    def test_summary(self):
        harness = AssistantHarness()
        harness.onboard()
        harness.send("coffee 300", at(26, 8))
        harness.send("lunch 800", at(26, 12))

        [reply] = harness.send("summary", at(26, 21))
        assert "2 entries" in reply.text
        assert "¥1,100" in reply.text

    def test_menu_is_strict_when_broke(self):
        harness = AssistantHarness()
        harness.onboard()
        harness.send("new laptop 95000", at(25, 10))

        [reply] = harness.send("menu", at(25, 12))
        assert reply.text.startswith(PERSONA.text("suggestion_intro_strict"))

    def test_unfinished_onboarding_routes_commands_to_onboarding(self):
        harness = AssistantHarness()
        harness.send("hi", at(25, 9))

        [reply] = harness.send("status", at(25, 9))
        assert isinstance(reply, TextReply)
        profile = asyncio.run(harness.storage.get_profile("U1"))
        assert profile.nickname == "status"
        assert profile.onboarding_stage == OnboardingStage.PAYDAY


class TestOversizedAmounts:
    """Tests that huge numbers never leave a user stuck."""

    def test_huge_number_in_log_is_kept_without_price(self):
        harness = AssistantHarness()
        harness.onboard()

        replies = harness.send("lunch " + "9" * 400, at(25, 12))
        assert replies[0].text != PERSONA.text("error")

        [entry] = asyncio.run(harness.storage.list_entries("U1"))
        assert entry.price is None

        card = report_card(harness.send("status", at(26, 9)))
        assert card.remaining == 90000

    def test_thousands_of_digits_do_not_crash(self):
        harness = AssistantHarness()
        harness.onboard()

        harness.send("9" * 5000, at(25, 12))
        harness.send("lunch 800", at(25, 13))

        card = report_card(harness.send("status", at(25, 14)))
        assert card.remaining == 89200

    def test_huge_income_answer_is_reprompted(self):
        harness = AssistantHarness()
        for text in ["hi", "Aki", "25"]:
            harness.send(text, at(25, 9))

        [reply] = harness.send("9" * 400, at(25, 9, 1))

        assert reply.text == PERSONA.onboarding_reprompt(OnboardingStage.INCOME)
        profile = asyncio.run(harness.storage.get_profile("U1"))
        assert profile.onboarding_stage == OnboardingStage.INCOME
        assert profile.monthly_income == 0

        for text in ["200000", "80000", "30000"]:
            harness.send(text, at(25, 9, 2))
        assert report_card(harness.send("status", at(25, 10))).remaining == 90000


class TestFailures:

    def test_storage_failure_replies_with_apology(self):
        harness = AssistantHarness(storage=FailingEntriesStorage())
        harness.onboard()

        replies = harness.send("status", at(26))

        assert replies == [TextReply(text=PERSONA.text("error"))]
        assert AuditEventType.SYSTEM_ERROR in harness.event_types()

    def test_strategist_refuses_unfinished_profile(self):
        storage = InMemoryBudgetStorage()
        strategist = BudgetStrategist(storage)
        with pytest.raises(OnboardingIncompleteError):
            asyncio.run(strategist.assess(UserProfile(user_id="U1"), at(25).date()))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
