"""
Onboarding State Machine

    INIT -> NAME -> PAYDAY -> INCOME -> FIXED_COSTS -> SAVINGS_GOAL -> COMPLETE

Each stage except COMPLETE accepts exactly one message. A message is either
accepted (the value is written and the stage advances by one) or rejected
(same stage, re-prompt). There is no skipping and no going back.

DESIGN DECISION: The flow is data, not a chain of conditionals.
TRANSITIONS maps every stage to what it writes, how it parses and where it
goes next. The stage itself is persisted on the profile, so a restarted
process resumes exactly where the user left off.
"""

import re
from collections.abc import Callable
from typing import Any, NamedTuple, Optional

from src.models.budget import OnboardingStage, UserProfile
from src.persona import Persona


_PAYDAY_PATTERN = re.compile(r"^(\d{1,2})\s*(?:日|st|nd|rd|th)?$", re.IGNORECASE)
_AMOUNT_PATTERN = re.compile(
    r"^(\d{1,3}(?:,\d{3}){1,3}|\d{1,12})\s*(?:円|yen)?$",
    re.IGNORECASE,
)


def _accept_any(text: str) -> Any:
    return text


def parse_name(text: str) -> Optional[str]:
    """Any non-empty trimmed text."""
    name = text.strip()
    return name[:100] or None


def parse_payday(text: str) -> Optional[int]:
    """Integer day of month in 1-31."""
    match = _PAYDAY_PATTERN.match(text.strip())
    if not match:
        return None
    day = int(match.group(1))
    return day if 1 <= day <= 31 else None


def parse_amount(text: str) -> Optional[int]:
    """Non-negative whole amount of at most twelve digits; thousands separators and a currency token allowed."""
    match = _AMOUNT_PATTERN.match(text.strip())
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


class Transition(NamedTuple):
    """What a stage does with its one input."""
    field: Optional[str]
    parse: Callable[[str], Any]
    next_stage: OnboardingStage


TRANSITIONS: dict[OnboardingStage, Transition] = {
    OnboardingStage.INIT: Transition(None, _accept_any, OnboardingStage.NAME),
    OnboardingStage.NAME: Transition("nickname", parse_name, OnboardingStage.PAYDAY),
    OnboardingStage.PAYDAY: Transition("payday", parse_payday, OnboardingStage.INCOME),
    OnboardingStage.INCOME: Transition("monthly_income", parse_amount, OnboardingStage.FIXED_COSTS),
    OnboardingStage.FIXED_COSTS: Transition("fixed_costs", parse_amount, OnboardingStage.SAVINGS_GOAL),
    OnboardingStage.SAVINGS_GOAL: Transition("savings_goal", parse_amount, OnboardingStage.COMPLETE),
}


class OnboardingResult(NamedTuple):
    """Outcome of feeding one message to the machine."""
    profile: UserProfile
    reply: str
    advanced: bool
    previous_stage: OnboardingStage

    @property
    def completed(self) -> bool:
        return self.advanced and self.profile.onboarding_stage == OnboardingStage.COMPLETE


class OnboardingStateMachine:
    """Pure transition function over UserProfile.onboarding_stage."""

    def __init__(self, persona: Optional[Persona] = None):
        self._persona = persona or Persona()

    @property
    def persona(self) -> Persona:
        return self._persona

    @staticmethod
    def handles(profile: UserProfile) -> bool:
        """COMPLETE profiles bypass the machine."""
        return profile.onboarding_stage in TRANSITIONS

    def prompt_for(self, profile: UserProfile) -> str:
        """The question the user is expected to answer at their current stage."""
        stage = profile.onboarding_stage
        if stage == OnboardingStage.INIT:
            return self._persona.greeting()
        return self._persona.onboarding_prompt(stage, nickname=profile.nickname)

    def step(self, profile: UserProfile, text: str) -> OnboardingResult:
        """
        Feed one message to the machine.

        Returns:
            OnboardingResult holding an updated copy of the profile (or the
            same profile when the input was rejected) and the reply to send.

        Raises:
            ValueError: If the profile already completed onboarding
        """
        stage = profile.onboarding_stage
        if stage not in TRANSITIONS:
            raise ValueError(f"Profile {profile.user_id} has already completed onboarding")

        transition = TRANSITIONS[stage]
        value = transition.parse(text or "")
        if value is None:
            return OnboardingResult(
                profile=profile,
                reply=self._persona.onboarding_reprompt(stage),
                advanced=False,
                previous_stage=stage,
            )

        updates: dict[str, Any] = {"onboarding_stage": transition.next_stage}
        if transition.field is not None:
            updates[transition.field] = value
        updated = profile.model_copy(update=updates)

        if transition.next_stage == OnboardingStage.COMPLETE:
            reply = self._persona.onboarding_complete(updated.disposable_income)
        elif stage == OnboardingStage.INIT:
            reply = "\n\n".join([
                self._persona.greeting(),
                self._persona.onboarding_prompt(transition.next_stage),
            ])
        else:
            reply = self._persona.onboarding_prompt(
                transition.next_stage, nickname=updated.nickname
            )

        return OnboardingResult(
            profile=updated,
            reply=reply,
            advanced=True,
            previous_stage=stage,
        )
