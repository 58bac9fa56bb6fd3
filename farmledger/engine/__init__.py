"""
Policy Engine Package

Pure, storage-free rules: streak multipliers, budget alert grading and the
savings goal state machine.
"""

from farmledger.engine.budget import (
    classify_spending,
    evaluate_threshold,
    month_bounds,
)
from farmledger.engine.goals import (
    apply_edit,
    apply_progress,
    can_transition,
    is_terminal,
)
from farmledger.engine.schedule import (
    add_months,
    next_allowance_payment,
    next_occurrence,
)
from farmledger.engine.streak import (
    calculate_fertilizer_boost,
    calculate_streak_multiplier,
    multiplier_from_settings,
    next_streak,
)

__all__ = [
    "add_months",
    "apply_edit",
    "apply_progress",
    "calculate_fertilizer_boost",
    "calculate_streak_multiplier",
    "can_transition",
    "classify_spending",
    "evaluate_threshold",
    "is_terminal",
    "month_bounds",
    "multiplier_from_settings",
    "next_allowance_payment",
    "next_occurrence",
    "next_streak",
]
