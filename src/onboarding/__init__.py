"""Onboarding: the stage machine and its persisting flow."""

from src.onboarding.flow import OnboardingFlow
from src.onboarding.state_machine import (
    TRANSITIONS,
    OnboardingResult,
    OnboardingStateMachine,
    parse_amount,
    parse_name,
    parse_payday,
)

__all__ = [
    "OnboardingFlow",
    "OnboardingResult",
    "OnboardingStateMachine",
    "TRANSITIONS",
    "parse_amount",
    "parse_name",
    "parse_payday",
]
