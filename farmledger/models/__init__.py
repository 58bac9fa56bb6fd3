"""
Data Models Package

This package contains all Pydantic models used by the Finance Farm ledger.
All data flowing through the engine must conform to these schemas.
"""

from farmledger.models.financial import (
    AlertSeverity,
    BudgetAlert,
    BudgetThreshold,
    CategorySpend,
    Expense,
    ExpenseCategory,
    ExpenseInput,
    ExpenseLogResult,
    ExpenseUpdate,
    FinancialInsight,
    FinancialSummary,
    GoalCategory,
    GoalProgressSnapshot,
    GoalStatus,
    Income,
    IncomeInput,
    IncomeSource,
    IncomeTrendPoint,
    IncomeUpdate,
    InsightSeverity,
    InsightType,
    PeriodType,
    RecurringPeriod,
    SavingsGoal,
    SavingsGoalInput,
    SavingsGoalUpdate,
    SpendingTrendPoint,
    TimePeriod,
    utc_now,
)
from farmledger.models.parental import (
    ActionType,
    AllowanceConfig,
    AllowanceConfigInput,
    AllowanceFrequency,
    AllowancePayment,
    ApprovalRequest,
    ApprovalStatus,
    ApprovalType,
    ChildActionOutcome,
    ChildActionStatus,
    ChildReport,
    Chore,
    ChoreInput,
    ChoreStats,
    ChoreStatus,
    ParentChildLink,
    PolicyDecision,
    RestrictionConfig,
    RestrictionType,
    UserAccount,
    UserMode,
)
from farmledger.models.activity import (
    ActivityEventBuilder,
    ActivitySummary,
    ActivityType,
    ChildActivity,
)

__all__ = [
    # Financial models
    "AlertSeverity",
    "BudgetAlert",
    "BudgetThreshold",
    "CategorySpend",
    "Expense",
    "ExpenseCategory",
    "ExpenseInput",
    "ExpenseLogResult",
    "ExpenseUpdate",
    "FinancialInsight",
    "FinancialSummary",
    "GoalCategory",
    "GoalProgressSnapshot",
    "GoalStatus",
    "Income",
    "IncomeInput",
    "IncomeSource",
    "IncomeTrendPoint",
    "IncomeUpdate",
    "InsightSeverity",
    "InsightType",
    "PeriodType",
    "RecurringPeriod",
    "SavingsGoal",
    "SavingsGoalInput",
    "SavingsGoalUpdate",
    "SpendingTrendPoint",
    "TimePeriod",
    "utc_now",
    # Parental models
    "ActionType",
    "AllowanceConfig",
    "AllowanceConfigInput",
    "AllowanceFrequency",
    "AllowancePayment",
    "ApprovalRequest",
    "ApprovalStatus",
    "ApprovalType",
    "ChildActionOutcome",
    "ChildActionStatus",
    "ChildReport",
    "Chore",
    "ChoreInput",
    "ChoreStats",
    "ChoreStatus",
    "ParentChildLink",
    "PolicyDecision",
    "RestrictionConfig",
    "RestrictionType",
    "UserAccount",
    "UserMode",
    # Activity models
    "ActivityEventBuilder",
    "ActivitySummary",
    "ActivityType",
    "ChildActivity",
]
