"""
Persona Phrase Tables

All user-facing wording lives in data/phrases.json and data/suggestions.json.
This module only loads and fills them in; no logic depends on the wording.
"""

import json
from functools import lru_cache
from importlib import resources
from typing import Optional

from src.config import get_settings
from src.models.budget import (
    BadgeId,
    FinancialStatus,
    HealthTier,
    LogEntry,
    OnboardingStage,
    Suggestion,
    TimeSlot,
)


@lru_cache()
def load_table(name: str) -> dict:
    """Load a JSON table shipped in src/persona/data (cached)."""
    source = resources.files("src.persona").joinpath("data", f"{name}.json")
    return json.loads(source.read_text(encoding="utf-8"))


class Persona:
    """Renders replies in the assistant's voice."""

    def __init__(self, currency: Optional[str] = None):
        self._phrases = load_table("phrases")
        self._currency = currency or get_settings().app.currency_symbol

    def _render(self, key: str, **values) -> str:
        return self._phrases[key].format(currency=self._currency, **values)

    # -- onboarding ----------------------------------------------------------

    def greeting(self) -> str:
        return self._phrases["greeting"]

    def onboarding_prompt(self, stage: OnboardingStage, nickname: Optional[str] = None) -> str:
        template = self._phrases["onboarding_prompts"][stage.value]
        return template.format(nickname=nickname or "")

    def onboarding_reprompt(self, stage: OnboardingStage) -> str:
        return self._phrases["onboarding_reprompts"][stage.value]

    def onboarding_complete(self, disposable: int) -> str:
        return self._render("onboarding_complete", disposable=disposable)

    # -- logging -------------------------------------------------------------

    def log_ack(self, entry: LogEntry, tier: Optional[HealthTier]) -> str:
        if tier is not None and tier.is_restricted:
            return self._render("log_ack_strict", label=entry.label)
        price_text = ""
        if entry.price is not None:
            price_text = self._render("price_text", price=entry.price)
        return self._render("log_ack", label=entry.label, price_text=price_text).replace(" \n", "\n")

    def badge_unlocked(self, badge: BadgeId) -> str:
        return self._render("badge_unlocked", badge=self._phrases["badges"][badge.value])

    def new_record(self, streak: int) -> str:
        return self._render("new_record", streak=streak)

    def level_up(self, level: int) -> str:
        return self._render("level_up", level=level)

    # -- reports -------------------------------------------------------------

    def status_report(self, status: FinancialStatus) -> str:
        tier = status.health_tier
        if status.ruin_date is not None:
            prediction = self._render("prophecy", ruin_date=status.ruin_date)
        else:
            prediction = self._render("projection", projected=int(status.projected_end_balance))
        return self._render(
            "status_report",
            tier=tier.value,
            survival_days=status.survival_days,
            probability=status.bankruptcy_probability,
            comment=self._phrases["tier_comments"][tier.value],
            prediction=prediction,
        )

    def summary(self, entries: list[LogEntry]) -> str:
        if not entries:
            return self._phrases["summary_empty"]

        lines = []
        for slot in TimeSlot:
            in_slot = [e for e in entries if e.time_slot == slot]
            if not in_slot:
                continue
            lines.append(self._render(
                "summary_line",
                slot=self._phrases["time_slots"][slot.value],
                count=len(in_slot),
                total=sum(e.price or 0 for e in in_slot),
            ))
        return self._render(
            "summary",
            count=len(entries),
            total=sum(e.price or 0 for e in entries),
            lines="\n".join(lines),
        )

    def suggestions(self, suggestions: list[Suggestion]) -> str:
        strict = any(s.is_strict for s in suggestions)
        intro = self._phrases["suggestion_intro_strict" if strict else "suggestion_intro"]
        lines = [
            self._phrases["suggestion_line"].format(index=i, label=s.label, reason=s.reason)
            for i, s in enumerate(suggestions, start=1)
        ]
        return "\n".join([intro, "", *lines])

    def text(self, key: str) -> str:
        """Static phrase by key (help, today_empty, error, ...)."""
        return self._phrases[key]
