"""
Budget Alert Monitor

Grades period-to-date category spend against a monthly threshold.

Severity precedence:
    percentage >= 100                 -> exceeded
    percentage >= danger (90)         -> danger
    percentage >= warning_percentage  -> warning
    otherwise                         -> no alert

Alerts are always recomputed from current data and never stored.
"""

import calendar
import datetime as dt
from decimal import Decimal
from typing import Optional

from farmledger.models.financial import (
    AlertSeverity,
    BudgetAlert,
    BudgetThreshold,
)


DANGER_PERCENTAGE = Decimal("90")
EXCEEDED_PERCENTAGE = Decimal("100")


def month_bounds(today: dt.date) -> tuple[dt.date, dt.date]:
    """First and last day of the calendar month containing `today`."""
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def spending_percentage(spent: Decimal, monthly_limit: Decimal) -> Decimal:
    return spent / monthly_limit * 100


def classify_spending(
    percentage: Decimal,
    warning_percentage: Decimal,
    danger_percentage: Decimal = DANGER_PERCENTAGE,
) -> Optional[AlertSeverity]:
    if percentage >= EXCEEDED_PERCENTAGE:
        return AlertSeverity.EXCEEDED
    if percentage >= danger_percentage:
        return AlertSeverity.DANGER
    if percentage >= warning_percentage:
        return AlertSeverity.WARNING
    return None


def alert_message(category: str, percentage: Decimal, severity: AlertSeverity) -> str:
    if severity == AlertSeverity.EXCEEDED:
        overrun = float(percentage - EXCEEDED_PERCENTAGE)
        return f"You have exceeded your {category} budget by {overrun:.1f}%"
    return f"You have used {float(percentage):.1f}% of your {category} budget"


def evaluate_threshold(
    threshold: BudgetThreshold,
    spent: Decimal,
    danger_percentage: Decimal = DANGER_PERCENTAGE,
) -> Optional[BudgetAlert]:
    """
    Alert for `spent` against `threshold`, or None when under warning.

    Example: limit 500, warning 80 -> 420 is a warning at 84.0,
    460 is danger, 500 is exceeded.
    """
    percentage = spending_percentage(spent, threshold.monthly_limit)
    severity = classify_spending(percentage, threshold.warning_percentage, danger_percentage)
    if severity is None:
        return None

    category = threshold.category.value
    return BudgetAlert(
        category=threshold.category,
        current_spending=spent,
        limit=threshold.monthly_limit,
        percentage=float(percentage),
        severity=severity,
        message=alert_message(category, percentage, severity),
    )
