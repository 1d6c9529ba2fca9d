"""
Onboarding Flow

Runs one message through the OnboardingStateMachine and persists the
outcome. The profile write is a version compare-and-swap: if another event
for the same user advanced the stage first, nothing is overwritten and the
user is asked the question for the stage that is actually stored.
"""

from typing import Optional
from uuid import UUID

from src.audit import AuditLogger
from src.models.budget import UserProfile
from src.onboarding.state_machine import OnboardingStateMachine
from src.services.storage import ConflictError, NotFoundError, ProfileStorageInterface


class OnboardingFlow:

    def __init__(
        self,
        storage: ProfileStorageInterface,
        machine: Optional[OnboardingStateMachine] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._machine = machine or OnboardingStateMachine()
        self._audit = audit_logger or AuditLogger()

    async def handle(
        self,
        profile: UserProfile,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Apply one onboarding answer.

        Returns:
            Reply text for the user

        Raises:
            StorageError: If the profile cannot be read or written
        """
        result = self._machine.step(profile, text)

        if not result.advanced:
            await self._audit.log_onboarding_rejected(
                user_id=profile.user_id,
                stage=result.previous_stage.value,
                reason="unparseable answer",
                correlation_id=correlation_id,
            )
            return result.reply

        try:
            stored = await self._storage.update_profile(result.profile)
        except ConflictError:
            await self._audit.log_concurrent_update(profile.user_id, "profile", correlation_id)
            current = await self._storage.get_profile(profile.user_id)
            if current is None:
                raise NotFoundError(f"Profile not found: {profile.user_id}")
            if not self._machine.handles(current):
                return self._machine.persona.text("busy_retry")
            return self._machine.prompt_for(current)

        await self._audit.log_onboarding_advanced(
            user_id=stored.user_id,
            from_stage=result.previous_stage.value,
            to_stage=stored.onboarding_stage.value,
            correlation_id=correlation_id,
        )
        if result.completed:
            await self._audit.log_onboarding_completed(
                user_id=stored.user_id,
                disposable_income=stored.disposable_income,
                correlation_id=correlation_id,
            )
        return result.reply
