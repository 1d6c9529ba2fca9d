"""
Core Data Models for Budget Strategist

These models define the schemas for everything the budget core reads or
derives:
1. The user's profile and onboarding progress
2. Logged entries (immutable once created)
3. Streak and badge state for the gamification layer
4. The derived forecast / financial status (never persisted)

DESIGN DECISION: Money is kept in whole currency units (int).
Rates and projections are floats because they are averages, not amounts
anyone paid.
"""

from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# Largest amount any money field holds: twelve digits.
MAX_AMOUNT = 999_999_999_999


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class OnboardingStage(str, Enum):
    """
    Onboarding progress, in strict forward order.

    The order of declaration IS the order of the flow.
    """
    INIT = "INIT"
    NAME = "NAME"
    PAYDAY = "PAYDAY"
    INCOME = "INCOME"
    FIXED_COSTS = "FIXED_COSTS"
    SAVINGS_GOAL = "SAVINGS_GOAL"
    COMPLETE = "COMPLETE"


class TimeSlot(str, Enum):
    """Coarse time-of-day bucket, derived from the local hour at creation."""
    MORNING = "morning"
    NOON = "noon"
    SNACK = "snack"
    EVENING = "evening"
    LATE_NIGHT = "late_night"

    @classmethod
    def from_hour(cls, hour: int) -> "TimeSlot":
        if hour < 5 or hour >= 23:
            return cls.LATE_NIGHT
        if hour < 11:
            return cls.MORNING
        if hour < 15:
            return cls.NOON
        if hour < 18:
            return cls.SNACK
        return cls.EVENING


_TIER_ORDER = ["F", "D", "C", "B", "A", "S"]


class HealthTier(str, Enum):
    """
    Financial health tier.

    Totally ordered: F < D < C < B < A < S.
    D and F gate the restrictive suggestion set and the stern tone.
    """
    F = "F"
    D = "D"
    C = "C"
    B = "B"
    A = "A"
    S = "S"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self.value)

    @property
    def is_restricted(self) -> bool:
        return self in (HealthTier.D, HealthTier.F)

    def __lt__(self, other):
        if not isinstance(other, HealthTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, HealthTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, HealthTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, HealthTier):
            return NotImplemented
        return self.rank >= other.rank


class BadgeId(str, Enum):
    """Unlockable badges."""
    FIRST_ENTRY = "first_log"
    STREAK_3 = "streak_3"
    EARLY_BIRD = "early_bird"
    NIGHT_OWL = "night_owl"


# =============================================================================
# PROFILE
# =============================================================================

class UserProfile(BaseModel):
    """
    A chat user and their declared budget targets.

    `version` is bumped by storage on every successful update and is the
    compare-and-swap token for concurrent events from the same user.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="Chat identity of the user"
    )
    nickname: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Name given during onboarding"
    )
    payday: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Day of month the pay cycle starts"
    )
    monthly_income: int = Field(default=0, ge=0, le=MAX_AMOUNT)
    fixed_costs: int = Field(default=0, ge=0, le=MAX_AMOUNT)
    savings_goal: int = Field(default=0, ge=0, le=MAX_AMOUNT)
    onboarding_stage: OnboardingStage = Field(default=OnboardingStage.INIT)

    # Gamification
    experience_points: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    streak_count: int = Field(default=0, ge=0)

    version: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def disposable_income(self) -> int:
        """Income minus fixed costs minus savings goal. Never stored."""
        return self.monthly_income - self.fixed_costs - self.savings_goal

    @property
    def is_onboarded(self) -> bool:
        return self.onboarding_stage == OnboardingStage.COMPLETE


# =============================================================================
# LOG ENTRIES
# =============================================================================

class LogEntry(BaseModel):
    """
    A single logged message.

    CRITICAL: Entries are created, never updated. The model is frozen.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    group_id: Optional[str] = None
    label: str = Field(..., max_length=200)
    price: Optional[int] = Field(
        default=None,
        ge=0,
        le=MAX_AMOUNT,
        description="Price in currency units (None = no monetary cost)"
    )
    raw_text: str = Field(default="", max_length=1000)
    created_at: datetime = Field(
        ...,
        description="Local, timezone-aware creation time"
    )
    time_slot: Optional[TimeSlot] = None
    expires_at: Optional[datetime] = Field(
        default=None,
        description="Retention marker for activity-feed mode"
    )

    @model_validator(mode='before')
    @classmethod
    def derive_time_slot(cls, data):
        """Fill time_slot from the creation hour when not given."""
        if isinstance(data, dict) and data.get("time_slot") is None:
            created_at = data.get("created_at")
            if isinstance(created_at, datetime):
                data = {**data, "time_slot": TimeSlot.from_hour(created_at.hour)}
        return data

    @property
    def local_date(self) -> date:
        return self.created_at.date()

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    @classmethod
    def create(
        cls,
        user_id: str,
        label: str,
        price: Optional[int],
        created_at: datetime,
        raw_text: str = "",
        group_id: Optional[str] = None,
        retention_hours: Optional[int] = None,
    ) -> "LogEntry":
        expires_at = None
        if retention_hours:
            expires_at = created_at + timedelta(hours=retention_hours)
        return cls(
            user_id=user_id,
            group_id=group_id,
            label=label,
            price=price,
            raw_text=raw_text,
            created_at=created_at,
            expires_at=expires_at,
        )


# =============================================================================
# GAMIFICATION STATE
# =============================================================================

class StreakState(BaseModel):
    """Consecutive-day logging streak, one per user."""

    user_id: str = Field(..., min_length=1)
    current_streak: int = Field(default=1, ge=0)
    longest_streak: int = Field(default=1, ge=0)
    last_activity_date: date

    @model_validator(mode='after')
    def validate_longest(self) -> 'StreakState':
        if self.longest_streak < self.current_streak:
            raise ValueError("Longest streak cannot be shorter than current streak")
        return self


class BadgeGrant(BaseModel):
    """An idempotent (user, badge) unlock record."""
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    badge_id: BadgeId
    granted_at: datetime = Field(default_factory=_utcnow)


# =============================================================================
# DERIVED FINANCIAL STATE (never persisted)
# =============================================================================

class BudgetPeriod(BaseModel):
    """An inclusive [start, end] pay-cycle window."""
    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode='after')
    def validate_order(self) -> 'BudgetPeriod':
        if self.end < self.start:
            raise ValueError("Period end cannot be before start")
        return self

    @property
    def days_total(self) -> int:
        return (self.end - self.start).days + 1

    def days_elapsed(self, today: date) -> int:
        """Days from start up to and including today."""
        return (today - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


class ForecastResult(BaseModel):
    """Output of the forecast engine for one profile and one day."""

    period: BudgetPeriod
    disposable: int
    total_spent: int = Field(ge=0)
    remaining: int
    days_total: int = Field(ge=1)
    days_elapsed: int
    days_remaining: int = Field(ge=0)
    avg_daily_burn: float = Field(ge=0.0)
    projected_end_balance: float
    survival_days: int
    bankruptcy_probability: float = Field(ge=0.0, le=100.0)
    ruin_date: Optional[date] = None


class FinancialStatus(ForecastResult):
    """Forecast plus its health tier, as handed to persona and card builders."""

    health_tier: HealthTier

    @classmethod
    def from_forecast(cls, result: ForecastResult, tier: HealthTier) -> "FinancialStatus":
        return cls(**result.model_dump(), health_tier=tier)


class Suggestion(BaseModel):
    """A suggested spend option, gated by health tier."""

    label: str
    reason: str
    is_strict: bool = False
