"""
Financial Insights

Simple advisory heuristics layered on ledger data. Insights are hints for
the user, not authoritative figures; callers treat an empty list as
"nothing to say".
"""

import datetime as dt
from decimal import Decimal
from typing import Iterable, Optional

from farmledger.config import LedgerSettings
from farmledger.models.financial import (
    AlertSeverity,
    BudgetAlert,
    FinancialInsight,
    InsightSeverity,
    InsightType,
    SavingsGoal,
)


def spending_trend_insight(
    recent_spending: Decimal,
    previous_spending: Decimal,
    threshold: Decimal,
) -> Optional[FinancialInsight]:
    """
    Compare spend in the latest window against the window before it.

    No insight when there is nothing to compare against or the swing is
    within `threshold` percent.
    """
    if previous_spending <= 0:
        return None

    change = (recent_spending - previous_spending) / previous_spending * 100
    if abs(change) <= threshold:
        return None

    increased = change > 0
    if change > 20:
        severity = InsightSeverity.WARNING
    elif change < -10:
        severity = InsightSeverity.SUCCESS
    else:
        severity = InsightSeverity.INFO

    return FinancialInsight(
        type=InsightType.SPENDING_TREND,
        title="Spending Increased" if increased else "Spending Decreased",
        description=(
            f"Your spending has {'increased' if increased else 'decreased'} "
            f"by {abs(float(change)):.1f}% compared to last month"
        ),
        severity=severity,
        actionable=increased,
        recommendation=(
            "Consider reviewing your recent expenses to identify areas "
            "where you can cut back"
        ) if increased else None,
    )


def income_streak_insight(streak: int, highlight: int) -> Optional[FinancialInsight]:
    if streak >= highlight:
        return FinancialInsight(
            type=InsightType.INCOME_STREAK,
            title="Great Income Streak!",
            description=f"You've been consistently logging income {streak} times in a row",
            severity=InsightSeverity.SUCCESS,
            actionable=False,
        )
    if streak == 0:
        return FinancialInsight(
            type=InsightType.INCOME_STREAK,
            title="Start Your Income Streak",
            description="Log your income regularly to build streaks and earn multiplier bonuses",
            severity=InsightSeverity.INFO,
            actionable=True,
            recommendation="Try to log any income you receive to start building your streak",
        )
    return None


def goal_insights(
    goals: Iterable[SavingsGoal],
    today: dt.date,
    risk_window_days: int,
    risk_progress: Decimal,
) -> list[FinancialInsight]:
    """At-risk and nearly-complete insights for active goals."""
    insights = []
    for goal in goals:
        progress = goal.progress_percentage
        days_left = (goal.deadline - today).days

        if days_left <= risk_window_days and progress < float(risk_progress):
            insights.append(FinancialInsight(
                type=InsightType.SAVINGS_PROGRESS,
                title=f"{goal.title} Deadline Approaching",
                description=f"Only {days_left} days left and you're {progress:.1f}% complete",
                severity=InsightSeverity.WARNING,
                actionable=True,
                recommendation=(
                    f"You need to save {goal.remaining_amount:.2f} more to reach your goal"
                ),
            ))
        elif progress >= float(risk_progress):
            insights.append(FinancialInsight(
                type=InsightType.SAVINGS_PROGRESS,
                title=f"Almost There: {goal.title}",
                description=f"You're {progress:.1f}% complete with your savings goal",
                severity=InsightSeverity.SUCCESS,
                actionable=False,
            ))
    return insights


def budget_alert_insight(alert: BudgetAlert) -> FinancialInsight:
    exceeded = alert.severity == AlertSeverity.EXCEEDED
    category = alert.category.value
    return FinancialInsight(
        type=InsightType.BUDGET_ALERT,
        title=f"Budget Alert: {category}",
        description=alert.message,
        severity=InsightSeverity.DANGER if exceeded else InsightSeverity(alert.severity.value),
        actionable=True,
        recommendation=(
            f"Consider reducing spending in {category} category"
            if exceeded
            else f"Monitor your {category} spending to stay within budget"
        ),
    )


def build_insights(
    recent_spending: Decimal,
    previous_spending: Decimal,
    current_streak: int,
    active_goals: Iterable[SavingsGoal],
    alerts: Iterable[BudgetAlert],
    today: dt.date,
    settings: LedgerSettings,
) -> list[FinancialInsight]:
    insights = []

    trend = spending_trend_insight(
        recent_spending, previous_spending, settings.spending_trend_threshold
    )
    if trend:
        insights.append(trend)

    streak = income_streak_insight(current_streak, settings.income_streak_highlight)
    if streak:
        insights.append(streak)

    insights.extend(goal_insights(
        active_goals,
        today,
        settings.goal_risk_window_days,
        settings.goal_risk_progress,
    ))
    insights.extend(budget_alert_insight(alert) for alert in alerts)
    return insights
