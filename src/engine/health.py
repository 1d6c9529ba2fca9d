"""
Health Tier Classification

First matching rule wins:
    remaining < 0                          -> F
    bankruptcy probability > critical      -> D
    bankruptcy probability > warning       -> C
    projected > goal * excellent ratio     -> S
    projected > goal * comfortable ratio   -> A
    otherwise                              -> B
"""

from typing import Optional

from src.config import HealthSettings, get_settings
from src.models.budget import HealthTier


def classify_health(
    remaining: float,
    bankruptcy_probability: float,
    projected_end_balance: float,
    savings_goal: float,
    settings: Optional[HealthSettings] = None,
) -> HealthTier:
    """Classify a forecast into a health tier."""
    settings = settings or get_settings().health

    if remaining < 0:
        return HealthTier.F
    if bankruptcy_probability > settings.critical_probability:
        return HealthTier.D
    if bankruptcy_probability > settings.warning_probability:
        return HealthTier.C
    if projected_end_balance > savings_goal * settings.excellent_buffer_ratio:
        return HealthTier.S
    if projected_end_balance > savings_goal * settings.comfortable_buffer_ratio:
        return HealthTier.A
    return HealthTier.B
