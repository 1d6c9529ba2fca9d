"""
Day-Streak Tracking

A streak counts consecutive calendar days with at least one logged entry.
Logging again on the same day never changes it.
"""

from datetime import date
from typing import NamedTuple, Optional

from src.models.budget import StreakState


class StreakUpdate(NamedTuple):
    """Result of advancing a streak by one logging day."""
    state: StreakState
    changed: bool
    is_new_record: bool


def advance_streak(
    previous: Optional[StreakState],
    user_id: str,
    today: date,
) -> StreakUpdate:
    """
    Apply one logging day to a streak.

    Args:
        previous: Stored streak state, or None if the user never logged
        user_id: Owner of the streak
        today: Local calendar date of the new entry

    Returns:
        StreakUpdate with the new state. `changed` is False for a same-day
        repeat, in which case the state is returned untouched.
    """
    if previous is None:
        state = StreakState(
            user_id=user_id,
            current_streak=1,
            longest_streak=1,
            last_activity_date=today,
        )
        return StreakUpdate(state=state, changed=True, is_new_record=True)

    diff_days = abs((today - previous.last_activity_date).days)

    if diff_days == 0:
        return StreakUpdate(state=previous, changed=False, is_new_record=False)

    if diff_days == 1:
        current = previous.current_streak + 1
    else:
        current = 1

    is_new_record = current > previous.longest_streak
    longest = current if is_new_record else previous.longest_streak

    state = StreakState(
        user_id=user_id,
        current_streak=current,
        longest_streak=longest,
        last_activity_date=today,
    )
    return StreakUpdate(state=state, changed=True, is_new_record=is_new_record)
