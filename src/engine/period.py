"""
Budget Period Resolution

A pay cycle runs from one pay-day to the day before the next one. Pay-days
that do not exist in a month (31 in April, 30 in February) are clamped to the
month's last day, so every calendar date belongs to exactly one period.
"""

import calendar
from datetime import date, timedelta

from src.models.budget import BudgetPeriod


def _clamped(year: int, month: int, day: int) -> date:
    """Date with the given day-of-month, clamped to the month length."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def resolve_period(payday: int, today: date) -> BudgetPeriod:
    """
    Resolve the budget period containing `today`.

    Args:
        payday: Day of month the cycle starts (1-31)
        today: The current local date

    Returns:
        BudgetPeriod with start <= today <= end

    Raises:
        ValueError: If payday is outside 1-31
    """
    if not 1 <= payday <= 31:
        raise ValueError(f"Payday must be between 1 and 31, got {payday}")

    start = _clamped(today.year, today.month, payday)
    if start > today:
        year, month = _shift_month(today.year, today.month, -1)
        start = _clamped(year, month, payday)

    next_year, next_month = _shift_month(start.year, start.month, 1)
    next_payday = _clamped(next_year, next_month, payday)

    return BudgetPeriod(start=start, end=next_payday - timedelta(days=1))
