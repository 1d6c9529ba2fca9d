"""Pure budget engine: periods, forecasting, health tiers, streaks, badges."""

from src.engine.badges import BadgeFacts, evaluate_badges
from src.engine.forecast import ForecastEngine
from src.engine.health import classify_health
from src.engine.period import resolve_period
from src.engine.streak import StreakUpdate, advance_streak

__all__ = [
    "BadgeFacts",
    "ForecastEngine",
    "StreakUpdate",
    "advance_streak",
    "classify_health",
    "evaluate_badges",
    "resolve_period",
]
