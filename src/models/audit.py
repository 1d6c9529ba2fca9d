"""
Audit Models for Budget Strategist

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of onboarding answers, logged entries and unlocks
2. Debugging information when things go wrong
3. Ability to reconstruct how a user's state evolved

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of the per-message pipeline has its own event type.
    """
    # Profile & onboarding
    PROFILE_CREATED = "profile_created"
    ONBOARDING_ADVANCED = "onboarding_advanced"
    ONBOARDING_REJECTED = "onboarding_rejected"
    ONBOARDING_COMPLETED = "onboarding_completed"

    # Logging
    ENTRY_LOGGED = "entry_logged"

    # Gamification
    STREAK_UPDATED = "streak_updated"
    BADGE_GRANTED = "badge_granted"

    # Forecasting
    FORECAST_COMPUTED = "forecast_computed"

    # Concurrency & system events
    CONCURRENT_UPDATE = "concurrent_update"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'profile', 'entry', 'badge')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - one inbound chat event
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate all events raised by one chat message"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user message?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Columns follow AUDIT_COLUMNS.
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_logged(user_id, entry_id, label, price, cid)
        event = AuditEventBuilder.badge_granted(user_id, "streak_3", cid)
    """

    @staticmethod
    def profile_created(
        user_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_CREATED,
            entity_type="profile",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="Profile created on first contact",
            is_user_action=True,
        )

    @staticmethod
    def onboarding_advanced(
        user_id: str,
        from_stage: str,
        to_stage: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ONBOARDING_ADVANCED,
            entity_type="profile",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Onboarding advanced: {from_stage} -> {to_stage}",
            details={
                "from_stage": from_stage,
                "to_stage": to_stage,
            },
            is_user_action=True,
        )

    @staticmethod
    def onboarding_rejected(
        user_id: str,
        stage: str,
        reason: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ONBOARDING_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="profile",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Onboarding input rejected at {stage}",
            details={
                "stage": stage,
                "reason": reason,
            },
            is_user_action=True,
        )

    @staticmethod
    def onboarding_completed(
        user_id: str,
        disposable_income: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ONBOARDING_COMPLETED,
            entity_type="profile",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="Onboarding completed",
            details={
                "disposable_income": disposable_income,
            },
        )

    @staticmethod
    def entry_logged(
        user_id: str,
        entry_id: UUID,
        label: str,
        price: Optional[int],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_LOGGED,
            entity_type="entry",
            entity_id=str(entry_id),
            correlation_id=correlation_id,
            description=f"Entry logged: {label}",
            details={
                "user_id": user_id,
                "label": label,
                "price": price,
            },
            is_user_action=True,
        )

    @staticmethod
    def streak_updated(
        user_id: str,
        current_streak: int,
        is_new_record: bool,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STREAK_UPDATED,
            entity_type="streak",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Streak is now {current_streak} days",
            details={
                "current_streak": current_streak,
                "is_new_record": is_new_record,
            },
        )

    @staticmethod
    def badge_granted(
        user_id: str,
        badge_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BADGE_GRANTED,
            entity_type="badge",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Badge unlocked: {badge_id}",
            details={
                "badge_id": badge_id,
            },
        )

    @staticmethod
    def forecast_computed(
        user_id: str,
        tier: str,
        remaining: int,
        bankruptcy_probability: float,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FORECAST_COMPUTED,
            entity_type="profile",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Forecast computed: tier {tier}",
            details={
                "tier": tier,
                "remaining": remaining,
                "bankruptcy_probability": bankruptcy_probability,
            },
        )

    @staticmethod
    def concurrent_update(
        user_id: str,
        entity_type: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONCURRENT_UPDATE,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Concurrent update detected on {entity_type}",
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
