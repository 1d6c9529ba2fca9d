"""
Data Models Package

This package contains all Pydantic models used in the Budget Strategist.
All data flowing through the system must conform to these schemas.
"""

from src.models.budget import (
    BadgeGrant,
    BadgeId,
    BudgetPeriod,
    FinancialStatus,
    ForecastResult,
    HealthTier,
    LogEntry,
    OnboardingStage,
    StreakState,
    Suggestion,
    TimeSlot,
    UserProfile,
)
from src.models.chat import (
    BudgetReportCard,
    CardReply,
    CardRow,
    ChatEvent,
    ReceiptCard,
    Reply,
    TextReply,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Budget models
    "BadgeGrant",
    "BadgeId",
    "BudgetPeriod",
    "FinancialStatus",
    "ForecastResult",
    "HealthTier",
    "LogEntry",
    "OnboardingStage",
    "StreakState",
    "Suggestion",
    "TimeSlot",
    "UserProfile",
    # Chat models
    "BudgetReportCard",
    "CardReply",
    "CardRow",
    "ChatEvent",
    "ReceiptCard",
    "Reply",
    "TextReply",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
