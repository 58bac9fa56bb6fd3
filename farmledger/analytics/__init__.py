"""
Analytics Package

Deterministic aggregation over ledger records plus advisory insights.
"""

from farmledger.analytics.insights import build_insights
from farmledger.analytics.summary import (
    build_financial_summary,
    goal_progress,
    income_trends,
    savings_rate,
    spending_trends,
    top_expense_categories,
    trend_window_start,
)

__all__ = [
    "build_financial_summary",
    "build_insights",
    "goal_progress",
    "income_trends",
    "savings_rate",
    "spending_trends",
    "top_expense_categories",
    "trend_window_start",
]
