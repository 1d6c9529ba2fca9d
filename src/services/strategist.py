"""
Budget Strategist

Glue between storage and the pure engine: fetches the entries of the
current period, runs the forecast and classifies it into a health tier.
"""

from collections.abc import Iterable
from datetime import date
from typing import Optional
from uuid import UUID

from src.audit import AuditLogger
from src.config import HealthSettings, get_settings
from src.engine import ForecastEngine, classify_health, resolve_period
from src.models.budget import FinancialStatus, LogEntry, UserProfile
from src.services.storage import EntryStorageInterface


class BudgetError(Exception):
    """Base exception for budget assessment."""
    pass


class OnboardingIncompleteError(BudgetError):
    """The profile does not have the data a forecast needs yet."""
    pass


class BudgetStrategist:
    """Produces a FinancialStatus for a profile on a given local day."""

    def __init__(
        self,
        storage: EntryStorageInterface,
        engine: Optional[ForecastEngine] = None,
        health_settings: Optional[HealthSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._engine = engine or ForecastEngine()
        self._health_settings = health_settings or get_settings().health
        self._audit = audit_logger or AuditLogger()

    def evaluate(
        self,
        profile: UserProfile,
        entries: Iterable[LogEntry],
        today: date,
    ) -> FinancialStatus:
        """Pure assessment over entries the caller already has."""
        if not profile.is_onboarded or profile.payday is None:
            raise OnboardingIncompleteError(
                f"Profile {profile.user_id} is still at {profile.onboarding_stage.value}"
            )

        result = self._engine.forecast(profile, entries, today)
        tier = classify_health(
            remaining=result.remaining,
            bankruptcy_probability=result.bankruptcy_probability,
            projected_end_balance=result.projected_end_balance,
            savings_goal=profile.savings_goal,
            settings=self._health_settings,
        )
        return FinancialStatus.from_forecast(result, tier)

    async def assess(
        self,
        profile: UserProfile,
        today: date,
        correlation_id: Optional[UUID] = None,
    ) -> FinancialStatus:
        """
        Fetch this period's entries and assess them.

        Raises:
            OnboardingIncompleteError: If the profile is not onboarded
            StorageError: If the entries cannot be read
        """
        if not profile.is_onboarded or profile.payday is None:
            raise OnboardingIncompleteError(
                f"Profile {profile.user_id} is still at {profile.onboarding_stage.value}"
            )

        period = resolve_period(profile.payday, today)
        entries = await self._storage.list_entries(
            profile.user_id,
            date_from=period.start,
            date_to=today,
        )
        status = self.evaluate(profile, entries, today)

        await self._audit.log_forecast_computed(
            user_id=profile.user_id,
            tier=status.health_tier.value,
            remaining=status.remaining,
            bankruptcy_probability=status.bankruptcy_probability,
            correlation_id=correlation_id,
        )
        return status
