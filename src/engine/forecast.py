"""
Forecast Engine

Projects the rest of the current budget period from the spending so far.

Two signals are produced:
1. A deterministic linear projection (burn rate x period length)
2. A Monte Carlo bankruptcy probability: many noisy forward simulations of
   the remaining days, counting how many run out of money

DESIGN DECISION: The random source is injected (numpy Generator).
Tests pass a seeded generator; production gets fresh entropy unless
FORECAST_SEED is set.
"""

import math
from collections.abc import Iterable
from datetime import date, timedelta
from typing import Optional

import numpy as np

from src.config import ForecastSettings, get_settings
from src.engine.period import resolve_period
from src.models.budget import ForecastResult, LogEntry, UserProfile


class ForecastEngine:
    """
    Monte Carlo budget forecaster.

    The engine assumes a complete profile; gating on onboarding is the
    caller's job.
    """

    def __init__(
        self,
        settings: Optional[ForecastSettings] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self._settings = settings or get_settings().forecast
        self._rng = rng if rng is not None else np.random.default_rng(self._settings.seed)

    @property
    def settings(self) -> ForecastSettings:
        return self._settings

    def simulate_bankruptcy_probability(
        self,
        remaining: float,
        avg_daily_burn: float,
        days_remaining: int,
    ) -> float:
        """
        Percentage (0-100) of simulated trials whose balance goes negative.

        Each simulated day spends `burn + (U - 0.5) * variance`, floored at
        zero, with U uniform in [0, 1). Spending is never negative, so a
        trial's balance only decreases and "ever negative" equals "ruined".
        """
        trials = self._settings.trial_count

        if remaining < 0:
            return 100.0
        if days_remaining <= 0:
            return 0.0

        variance = self._settings.variance_multiplier * avg_daily_burn
        draws = self._rng.random((trials, days_remaining))
        daily_spend = np.maximum(avg_daily_burn + (draws - 0.5) * variance, 0.0)
        balances = remaining - np.cumsum(daily_spend, axis=1)
        ruined = np.any(balances < 0, axis=1)

        return float(np.count_nonzero(ruined)) / trials * 100.0

    def forecast(
        self,
        profile: UserProfile,
        entries: Iterable[LogEntry],
        today: date,
    ) -> ForecastResult:
        """
        Forecast the period containing `today`.

        Args:
            profile: Onboarded profile (payday and targets set)
            entries: Log entries; only priced ones inside the period up to
                today are counted
            today: Local calendar date

        Raises:
            ValueError: If the profile has no payday
        """
        if profile.payday is None:
            raise ValueError(f"Profile {profile.user_id} has no payday")

        period = resolve_period(profile.payday, today)
        disposable = profile.disposable_income

        spent = sum(
            entry.price or 0
            for entry in entries
            if period.start <= entry.local_date <= today
        )
        remaining = disposable - spent

        days_total = period.days_total
        days_elapsed = period.days_elapsed(today)
        days_remaining = max(days_total - days_elapsed, 0)

        if days_elapsed > 0:
            avg_daily_burn = spent / days_elapsed
        else:
            # Neutral prior before any day has passed
            avg_daily_burn = max(disposable, 0) / days_total

        bankruptcy_probability = self.simulate_bankruptcy_probability(
            remaining, avg_daily_burn, days_remaining
        )

        projected_end_balance = disposable - avg_daily_burn * days_total

        if avg_daily_burn > 0:
            survival_days = math.floor(remaining / avg_daily_burn)
        else:
            survival_days = self._settings.no_burn_survival_days

        ruin_date = None
        if projected_end_balance < 0 and avg_daily_burn > 0:
            ruin_date = today + timedelta(days=math.floor(remaining / avg_daily_burn))

        return ForecastResult(
            period=period,
            disposable=disposable,
            total_spent=spent,
            remaining=remaining,
            days_total=days_total,
            days_elapsed=days_elapsed,
            days_remaining=days_remaining,
            avg_daily_burn=avg_daily_burn,
            projected_end_balance=projected_end_balance,
            survival_days=survival_days,
            bankruptcy_probability=bankruptcy_probability,
            ruin_date=ruin_date,
        )
