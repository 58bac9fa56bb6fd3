"""
Financial Summaries and Trends

DESIGN DECISION: Aggregation is DETERMINISTIC and storage-free.
The ledger fetches records; these functions only group and sum what they
are given. Income is always counted at its boosted value
(amount * multiplier).
"""

import datetime as dt
from decimal import ROUND_CEILING, Decimal
from typing import Iterable
from uuid import UUID

from farmledger.engine.schedule import add_months
from farmledger.models.financial import (
    CategorySpend,
    Expense,
    ExpenseCategory,
    FinancialSummary,
    GoalProgressSnapshot,
    GoalStatus,
    Income,
    IncomeSource,
    IncomeTrendPoint,
    SavingsGoal,
    SpendingTrendPoint,
    TimePeriod,
)


ZERO = Decimal("0")


def savings_rate(total_income: Decimal, total_expenses: Decimal) -> float:
    """Share of income kept, as a percentage clamped to [0, 100]."""
    if total_income <= 0:
        return 0.0
    rate = (total_income - total_expenses) / total_income * 100
    return float(min(max(rate, ZERO), Decimal("100")))


def build_financial_summary(
    user_id: UUID,
    period: TimePeriod,
    expenses: Iterable[Expense],
    income: Iterable[Income],
    goals: Iterable[SavingsGoal],
) -> FinancialSummary:
    expenses_by_category = {category: ZERO for category in ExpenseCategory}
    income_by_source = {source: ZERO for source in IncomeSource}

    for expense in expenses:
        expenses_by_category[expense.category] += expense.amount
    for record in income:
        income_by_source[record.source] += record.boosted_amount

    total_expenses = sum(expenses_by_category.values(), ZERO)
    total_income = sum(income_by_source.values(), ZERO)

    goals = list(goals)
    return FinancialSummary(
        user_id=user_id,
        period=period.type,
        start_date=period.start_date,
        end_date=period.end_date,
        total_income=total_income,
        total_expenses=total_expenses,
        net_amount=total_income - total_expenses,
        savings_rate=savings_rate(total_income, total_expenses),
        expenses_by_category=expenses_by_category,
        income_by_source=income_by_source,
        active_goals_count=sum(1 for g in goals if g.status == GoalStatus.ACTIVE),
        completed_goals_count=sum(1 for g in goals if g.status == GoalStatus.COMPLETED),
    )


def month_key(day: dt.date) -> str:
    return day.strftime("%Y-%m")


def trend_window_start(today: dt.date, months: int) -> dt.date:
    """Start of a trend window reaching `months` months back from today."""
    moment = dt.datetime.combine(today, dt.time())
    return add_months(moment, -months).date()


def spending_trends(expenses: Iterable[Expense]) -> list[SpendingTrendPoint]:
    """Monthly spend for months with data, newest month first."""
    totals: dict[str, Decimal] = {}
    for expense in expenses:
        key = month_key(expense.date)
        totals[key] = totals.get(key, ZERO) + expense.amount

    return [
        SpendingTrendPoint(month=month, amount=amount)
        for month, amount in sorted(totals.items(), reverse=True)
    ]


def income_trends(income: Iterable[Income]) -> list[IncomeTrendPoint]:
    """Monthly boosted income and average multiplier, newest month first."""
    groups: dict[str, list[Income]] = {}
    for record in income:
        groups.setdefault(month_key(record.date), []).append(record)

    points = []
    for month, records in sorted(groups.items(), reverse=True):
        points.append(IncomeTrendPoint(
            month=month,
            amount=sum((r.boosted_amount for r in records), ZERO),
            average_multiplier=sum((r.multiplier for r in records), ZERO) / len(records),
        ))
    return points


def days_to_goal(goal: SavingsGoal, today: dt.date) -> int:
    """
    Projected days until the goal is reached at its own saving pace.

    Pace is the amount saved so far over the days since the goal was
    created. Returns -1 when there is no pace to project from.
    """
    remaining = goal.target_amount - goal.current_amount
    if remaining <= 0:
        return 0

    elapsed = max((today - goal.created_at.date()).days, 1)
    daily_savings = goal.current_amount / elapsed
    if daily_savings <= 0:
        return -1

    days = remaining / daily_savings
    return int(days.to_integral_value(rounding=ROUND_CEILING))


def goal_progress(goals: Iterable[SavingsGoal], today: dt.date) -> list[GoalProgressSnapshot]:
    return [
        GoalProgressSnapshot(
            goal_id=goal.id,
            title=goal.title,
            progress=goal.progress_percentage,
            days_to_goal=days_to_goal(goal, today),
        )
        for goal in goals
    ]


def top_expense_categories(expenses: Iterable[Expense], limit: int = 5) -> list[CategorySpend]:
    """Categories with spend, largest first, each with its share of the total."""
    totals: dict[ExpenseCategory, Decimal] = {}
    for expense in expenses:
        totals[expense.category] = totals.get(expense.category, ZERO) + expense.amount

    overall = sum(totals.values(), ZERO)
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)[:limit]
    return [
        CategorySpend(
            category=category,
            amount=amount,
            percentage=float(amount / overall * 100) if overall > 0 else 0.0,
        )
        for category, amount in ranked
    ]
