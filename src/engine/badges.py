"""
Badge Rule Engine

Each rule looks at a small set of facts supplied by the caller and may unlock
one badge. Every rule is evaluated on every call; badges already owned are
never returned again.
"""

from collections.abc import Iterable
from typing import NamedTuple, Optional

from src.config import GamificationSettings, get_settings
from src.models.budget import BadgeId


class BadgeFacts(NamedTuple):
    """Facts observed when an entry is logged."""
    log_count_today: int
    current_streak: int
    local_hour: int


def evaluate_badges(
    facts: BadgeFacts,
    owned: Iterable[BadgeId],
    settings: Optional[GamificationSettings] = None,
) -> list[BadgeId]:
    """
    Return badges newly unlocked by `facts`, in rule order.

    Args:
        facts: Today's log count, current streak and local hour
        owned: Badges the user already holds
        settings: Thresholds (defaults to configured GamificationSettings)
    """
    settings = settings or get_settings().gamification
    owned = set(owned)

    earned = []
    if facts.log_count_today == settings.first_entry_count:
        earned.append(BadgeId.FIRST_ENTRY)
    if facts.current_streak >= settings.streak_badge_days:
        earned.append(BadgeId.STREAK_3)
    if facts.local_hour < settings.early_bird_before_hour:
        earned.append(BadgeId.EARLY_BIRD)
    if settings.late_badge_enabled and facts.local_hour >= settings.night_owl_from_hour:
        earned.append(BadgeId.NIGHT_OWL)

    return [badge for badge in earned if badge not in owned]
