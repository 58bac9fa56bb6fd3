"""
Streak & Multiplier Engine

Pure functions turning an income-logging streak into a fertilizer boost.
The curve is linear from the base multiplier, one step per streak entry,
capped at the maximum. With the shipped policy (1.0 + 0.1 per entry, cap
2.0) a streak of 5 yields 1.5x and the cap is reached at a streak of 10.
"""

from decimal import Decimal
from typing import Optional

from farmledger.config import LedgerSettings


BASE_MULTIPLIER = Decimal("1.0")
STREAK_STEP = Decimal("0.1")
MAX_MULTIPLIER = Decimal("2.0")


def calculate_streak_multiplier(
    streak_count: int,
    base: Decimal = BASE_MULTIPLIER,
    step: Decimal = STREAK_STEP,
    cap: Decimal = MAX_MULTIPLIER,
) -> Decimal:
    """
    Multiplier for a streak of `streak_count` consecutive income logs.

    Monotonically non-decreasing in streak_count, never below `base`
    and never above `cap`.
    """
    if streak_count < 0:
        raise ValueError("streak_count cannot be negative")
    return min(max(base, base + step * streak_count), cap)


def calculate_fertilizer_boost(amount: Decimal, multiplier: Decimal) -> Decimal:
    """Boosted income: exactly amount * multiplier."""
    return amount * multiplier


def next_streak(current_streak: int) -> int:
    """Streak carried by the next income record."""
    return current_streak + 1


def multiplier_from_settings(
    streak_count: int,
    settings: Optional[LedgerSettings] = None,
) -> Decimal:
    """calculate_streak_multiplier using configured policy constants."""
    if settings is None:
        return calculate_streak_multiplier(streak_count)
    return calculate_streak_multiplier(
        streak_count,
        base=settings.streak_base_multiplier,
        step=settings.streak_step,
        cap=settings.streak_max_multiplier,
    )
