"""
Main Orchestrator for Budget Strategist

This module ties together all the components and defines the end-to-end
flow for one inbound chat event:

    profile lookup -> onboarding (until COMPLETE) -> intent routing
        -> storage read/write -> forecast/classification -> replies

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is forecast for a profile that has not finished onboarding
- Every step is audited under one correlation id per event
- A storage failure answers the user with an apology, never crashes

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID
from zoneinfo import ZoneInfo

import numpy as np
import structlog

from src.audit import AuditLogger, create_correlation_id
from src.audit.logger import configure_logging
from src.config import AppSettings, get_settings
from src.engine import ForecastEngine
from src.intents import IntentKind, IntentRouter, ParsedIntent
from src.models.budget import LogEntry, UserProfile
from src.models.chat import (
    BudgetReportCard,
    CardReply,
    ChatEvent,
    ReceiptCard,
    Reply,
    TextReply,
)
from src.onboarding import OnboardingFlow, OnboardingStateMachine
from src.persona import Persona
from src.services.gamification import GamificationService
from src.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    NotFoundError,
    StorageError,
)
from src.services.strategist import BudgetStrategist
from src.services.suggestions import SuggestionEngine


logger = structlog.get_logger(__name__)


class BudgetAssistant:
    """
    Handles inbound chat events end to end.

    Flow:
    1. Resolve local time in the configured timezone
    2. Get or create the sender's profile
    3. Not onboarded -> OnboardingFlow
    4. Onboarded -> IntentRouter -> one handler per intent
    """

    def __init__(
        self,
        storage: BudgetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        persona: Optional[Persona] = None,
        router: Optional[IntentRouter] = None,
        strategist: Optional[BudgetStrategist] = None,
        gamification: Optional[GamificationService] = None,
        suggestions: Optional[SuggestionEngine] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().app
        self._audit = audit_logger or AuditLogger()
        self._persona = persona or Persona(self._settings.currency_symbol)
        self._router = router or IntentRouter(self._settings.empty_label_placeholder)
        self._onboarding = OnboardingFlow(
            storage,
            machine=OnboardingStateMachine(self._persona),
            audit_logger=self._audit,
        )
        self._strategist = strategist or BudgetStrategist(storage, audit_logger=self._audit)
        self._gamification = gamification or GamificationService(storage, self._audit)
        self._suggestions = suggestions or SuggestionEngine(count=self._settings.suggestion_count)
        self._tz = ZoneInfo(self._settings.timezone)

        self._handlers = {
            IntentKind.HELP: self._handle_help,
            IntentKind.EMPTY: self._handle_empty,
            IntentKind.TODAY: self._handle_today,
            IntentKind.SUMMARY: self._handle_summary,
            IntentKind.STATUS: self._handle_status,
            IntentKind.MENU: self._handle_menu,
            IntentKind.LOG: self._handle_log,
        }

    def local_time(self, timestamp: datetime) -> datetime:
        """Event time in the configured timezone (naive times are taken as local)."""
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=self._tz)
        return timestamp.astimezone(self._tz)

    async def handle_event(self, event: ChatEvent) -> list[Reply]:
        """
        Process one inbound chat event.

        Storage failures are audited and answered with a neutral apology.
        """
        correlation_id = create_correlation_id()
        try:
            return await self._dispatch(event, correlation_id)
        except StorageError as e:
            logger.error("event_failed", user_id=event.user_id, error=str(e))
            await self._audit.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"user_id": event.user_id},
                correlation_id=correlation_id,
            )
            return [TextReply(text=self._persona.text("error"))]

    async def _dispatch(self, event: ChatEvent, correlation_id: UUID) -> list[Reply]:
        now = self.local_time(event.timestamp)
        profile = await self._get_or_create_profile(event.user_id, correlation_id)

        if event.text is None and event.media_id is not None:
            return [TextReply(text=self._persona.text("media_unsupported"))]

        if not profile.is_onboarded:
            reply = await self._onboarding.handle(profile, event.text or "", correlation_id)
            return [TextReply(text=reply)]

        intent = self._router.route(event.text)
        handler = self._handlers[intent.kind]
        return await handler(profile, intent, event, now, correlation_id)

    async def _get_or_create_profile(self, user_id: str, correlation_id: UUID) -> UserProfile:
        profile = await self._storage.get_profile(user_id)
        if profile is not None:
            return profile

        try:
            profile = await self._storage.create_profile(UserProfile(user_id=user_id))
        except DuplicateError:
            # Another event created it first
            profile = await self._storage.get_profile(user_id)
            if profile is None:
                raise NotFoundError(f"Profile not found: {user_id}")
            return profile

        await self._audit.log_profile_created(user_id, correlation_id)
        return profile

    async def _todays_entries(self, user_id: str, now: datetime) -> list[LogEntry]:
        entries = await self._storage.list_entries(user_id, date_from=now.date(), date_to=now.date())
        return [entry for entry in entries if not entry.is_expired(now)]

    # -- handlers --------------------------------------------------------------

    async def _handle_help(self, profile, intent, event, now, correlation_id) -> list[Reply]:
        return [TextReply(text=self._persona.text("help"))]

    async def _handle_empty(self, profile, intent, event, now, correlation_id) -> list[Reply]:
        return [TextReply(text=self._persona.text("empty_message"))]

    async def _handle_today(self, profile, intent, event, now, correlation_id) -> list[Reply]:
        entries = await self._todays_entries(profile.user_id, now)
        if not entries:
            return [TextReply(text=self._persona.text("today_empty"))]
        title = self._persona.text("receipt_title")
        return [CardReply(alt_text=title, card=ReceiptCard.from_entries(entries, title))]

    async def _handle_summary(self, profile, intent, event, now, correlation_id) -> list[Reply]:
        entries = await self._todays_entries(profile.user_id, now)
        return [TextReply(text=self._persona.summary(entries))]

    async def _handle_status(self, profile, intent, event, now, correlation_id) -> list[Reply]:
        status = await self._strategist.assess(profile, now.date(), correlation_id)
        title = self._persona.text("report_title")
        return [
            CardReply(alt_text=title, card=BudgetReportCard.from_status(status, title)),
            TextReply(text=self._persona.status_report(status)),
        ]

    async def _handle_menu(self, profile, intent, event, now, correlation_id) -> list[Reply]:
        status = await self._strategist.assess(profile, now.date(), correlation_id)
        recent = await self._storage.list_recent_entries(
            profile.user_id, limit=self._settings.recent_entries_window
        )
        picks = self._suggestions.suggest(status.health_tier, [e.label for e in recent])
        return [TextReply(text=self._persona.suggestions(picks))]

    async def _handle_log(
        self,
        profile: UserProfile,
        intent: ParsedIntent,
        event: ChatEvent,
        now: datetime,
        correlation_id: UUID,
    ) -> list[Reply]:
        entry = LogEntry.create(
            user_id=profile.user_id,
            label=intent.label,
            price=intent.price,
            created_at=now,
            raw_text=intent.raw_text[:1000],
            group_id=event.group_id,
            retention_hours=self._settings.activity_retention_hours,
        )
        await self._storage.add_entry(entry)
        await self._audit.log_entry_logged(
            user_id=profile.user_id,
            entry_id=entry.id,
            label=entry.label,
            price=entry.price,
            correlation_id=correlation_id,
        )

        log_count_today = len(await self._storage.list_entries(
            profile.user_id, date_from=now.date(), date_to=now.date()
        ))
        outcome = await self._gamification.on_entry_logged(
            profile.user_id, now, log_count_today, correlation_id
        )
        status = await self._strategist.assess(outcome.profile, now.date(), correlation_id)

        replies: list[Reply] = [
            TextReply(text=self._persona.log_ack(entry, status.health_tier)),
        ]

        extras = [self._persona.badge_unlocked(badge) for badge in outcome.new_badges]
        streak = outcome.streak
        if streak.changed and streak.is_new_record and streak.state.current_streak > 1:
            extras.append(self._persona.new_record(streak.state.current_streak))
        if outcome.leveled_up:
            extras.append(self._persona.level_up(outcome.profile.level))
        if extras:
            replies.append(TextReply(text="\n".join(extras)))

        return replies


def create_app_components(
    settings: Optional[AppSettings] = None,
    rng: Optional[np.random.Generator] = None,
) -> BudgetAssistant:
    """
    Factory function to create the assistant with its configured backend.

    Args:
        settings: App settings (defaults to configured AppSettings)
        rng: Random source shared by forecasting and suggestions.
             Defaults to one seeded from FORECAST_SEED, if set.

    Returns:
        A ready BudgetAssistant
    """
    settings = settings or get_settings().app
    configure_logging(settings.log_level)

    storage: BudgetStorageInterface
    audit_storage: AuditStorageInterface
    if settings.storage_backend == "google_sheets":
        sheets_client = GoogleSheetsClient()
        storage = GoogleSheetsBudgetStorage(sheets_client)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    else:
        storage = InMemoryBudgetStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    forecast_settings = get_settings().forecast
    if rng is None:
        rng = np.random.default_rng(forecast_settings.seed)

    logger.info("assistant_created", storage_backend=settings.storage_backend)
    return BudgetAssistant(
        storage=storage,
        audit_logger=audit_logger,
        strategist=BudgetStrategist(
            storage,
            engine=ForecastEngine(forecast_settings, rng=rng),
            audit_logger=audit_logger,
        ),
        suggestions=SuggestionEngine(rng=rng, count=settings.suggestion_count),
        settings=settings,
    )
