"""
Chat Boundary Models

The inbound event and the outbound reply payloads exchanged with the chat
transport. The transport itself (signature checks, delivery) is not part of
this package; it only has to produce a ChatEvent and deliver Replies.
"""

from datetime import date, datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from src.models.budget import FinancialStatus, HealthTier, LogEntry


TIER_COLORS: dict[HealthTier, str] = {
    HealthTier.S: "#1DB446",
    HealthTier.A: "#9ACD32",
    HealthTier.B: "#FFD700",
    HealthTier.C: "#FFA500",
    HealthTier.D: "#FF4500",
    HealthTier.F: "#FF0000",
}


class ChatEvent(BaseModel):
    """A normalized inbound chat event."""
    model_config = ConfigDict(str_strip_whitespace=False)

    user_id: str = Field(..., min_length=1)
    group_id: Optional[str] = None
    text: Optional[str] = None
    media_id: Optional[str] = None
    timestamp: datetime = Field(
        ...,
        description="When the message was sent (timezone-aware)"
    )


# =============================================================================
# CARDS
# =============================================================================

class CardRow(BaseModel):
    """One dated label row on a card."""

    day: date
    time: str
    label: str
    price: Optional[int] = None


class BudgetReportCard(BaseModel):
    """Structured status card: tier, balances and survival estimate."""

    kind: Literal["budget_report"] = "budget_report"
    title: str
    tier: HealthTier
    color: str
    remaining: int
    projected_end_balance: int
    survival_days: int
    bankruptcy_probability: float
    ruin_date: Optional[date] = None

    @classmethod
    def from_status(cls, status: FinancialStatus, title: str) -> "BudgetReportCard":
        return cls(
            title=title,
            tier=status.health_tier,
            color=TIER_COLORS[status.health_tier],
            remaining=status.remaining,
            projected_end_balance=int(status.projected_end_balance),
            survival_days=status.survival_days,
            bankruptcy_probability=status.bankruptcy_probability,
            ruin_date=status.ruin_date,
        )


class ReceiptCard(BaseModel):
    """Structured list of logged entries with their total."""

    kind: Literal["receipt"] = "receipt"
    title: str
    rows: list[CardRow] = Field(default_factory=list)
    total: int = 0

    @classmethod
    def from_entries(cls, entries: list[LogEntry], title: str) -> "ReceiptCard":
        rows = [
            CardRow(
                day=entry.local_date,
                time=entry.created_at.strftime("%H:%M"),
                label=entry.label,
                price=entry.price,
            )
            for entry in sorted(entries, key=lambda e: e.created_at)
        ]
        total = sum(entry.price or 0 for entry in entries)
        return cls(title=title, rows=rows, total=total)


Card = Annotated[Union[BudgetReportCard, ReceiptCard], Field(discriminator="kind")]


# =============================================================================
# REPLIES
# =============================================================================

class TextReply(BaseModel):
    """Plain text reply."""

    kind: Literal["text"] = "text"
    text: str


class CardReply(BaseModel):
    """Structured card reply, rendered by the transport's UI builder."""

    kind: Literal["card"] = "card"
    alt_text: str
    card: Card


Reply = Annotated[Union[TextReply, CardReply], Field(discriminator="kind")]
