"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability of how a user's budget state evolved
2. Debugging capability
3. A record of concurrent-update conflicts

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace all events raised by one chat message
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder
from src.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(ensure_ascii=False)
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog's stdlib loggers to stderr at the given level."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_profile_created(self, user_id: str, correlation_id: UUID) -> None:
        """Log first contact from a new user."""
        await self.log(AuditEventBuilder.profile_created(
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_onboarding_advanced(
        self,
        user_id: str,
        from_stage: str,
        to_stage: str,
        correlation_id: UUID,
    ) -> None:
        """Log an accepted onboarding answer."""
        await self.log(AuditEventBuilder.onboarding_advanced(
            user_id=user_id,
            from_stage=from_stage,
            to_stage=to_stage,
            correlation_id=correlation_id,
        ))

    async def log_onboarding_rejected(
        self,
        user_id: str,
        stage: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log a rejected onboarding answer."""
        await self.log(AuditEventBuilder.onboarding_rejected(
            user_id=user_id,
            stage=stage,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_onboarding_completed(
        self,
        user_id: str,
        disposable_income: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.onboarding_completed(
            user_id=user_id,
            disposable_income=disposable_income,
            correlation_id=correlation_id,
        ))

    async def log_entry_logged(
        self,
        user_id: str,
        entry_id: UUID,
        label: str,
        price: Optional[int],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.entry_logged(
            user_id=user_id,
            entry_id=entry_id,
            label=label,
            price=price,
            correlation_id=correlation_id,
        ))

    async def log_streak_updated(
        self,
        user_id: str,
        current_streak: int,
        is_new_record: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.streak_updated(
            user_id=user_id,
            current_streak=current_streak,
            is_new_record=is_new_record,
            correlation_id=correlation_id,
        ))

    async def log_badge_granted(
        self,
        user_id: str,
        badge_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.badge_granted(
            user_id=user_id,
            badge_id=badge_id,
            correlation_id=correlation_id,
        ))

    async def log_forecast_computed(
        self,
        user_id: str,
        tier: str,
        remaining: int,
        bankruptcy_probability: float,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.forecast_computed(
            user_id=user_id,
            tier=tier,
            remaining=remaining,
            bankruptcy_probability=bankruptcy_probability,
            correlation_id=correlation_id,
        ))

    async def log_concurrent_update(
        self,
        user_id: str,
        entity_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a conditional write that lost to another event."""
        await self.log(AuditEventBuilder.concurrent_update(
            user_id=user_id,
            entity_type=entity_type,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of handling one inbound chat event.
    Pass it through all subsequent operations.
    """
    return uuid4()
