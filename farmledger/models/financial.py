"""
Financial Records for the Finance Farm Ledger

These models define the strict schemas for goals ("crops"), expenses
("weeds") and income ("fertilizer"), plus the derived, never-persisted
shapes the ledger hands back (budget alerts, summaries, insights).

DESIGN DECISION: Input models forbid unknown fields. Income in particular
never accepts a multiplier or streak count from the caller - those are
derived by the ledger at creation time.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> dt.datetime:
    """Current time as a timezone-aware UTC datetime."""
    return dt.datetime.now(dt.timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class GoalCategory(str, Enum):
    """Savings goal categories."""
    EMERGENCY_FUND = "emergency_fund"
    VACATION = "vacation"
    EDUCATION = "education"
    GADGET = "gadget"
    CLOTHING = "clothing"
    ENTERTAINMENT = "entertainment"
    OTHER = "other"


class GoalStatus(str, Enum):
    """
    Savings goal lifecycle.

    COMPLETED and CANCELLED are terminal.
    """
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class ExpenseCategory(str, Enum):
    """Expense categories."""
    FOOD = "food"
    TRANSPORT = "transport"
    ENTERTAINMENT = "entertainment"
    SHOPPING = "shopping"
    UTILITIES = "utilities"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    OTHER = "other"


class IncomeSource(str, Enum):
    """Income sources."""
    SALARY = "salary"
    ALLOWANCE = "allowance"
    CHORES = "chores"
    GIFT = "gift"
    BONUS = "bonus"
    INVESTMENT = "investment"
    OTHER = "other"


class RecurringPeriod(str, Enum):
    """How often a recurring record repeats."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


GOAL_PERIODS = frozenset({
    RecurringPeriod.WEEKLY, RecurringPeriod.MONTHLY, RecurringPeriod.YEARLY,
})
TRANSACTION_PERIODS = frozenset({
    RecurringPeriod.DAILY, RecurringPeriod.WEEKLY, RecurringPeriod.MONTHLY,
})


def check_recurrence(
    is_recurring: bool,
    period: Optional[RecurringPeriod],
    allowed: frozenset,
    label: str,
) -> None:
    """Enforce isRecurring => recurringPeriod, within the allowed periods."""
    if is_recurring and period is None:
        raise ValueError(f"Recurring {label} must have a recurring period")
    if period is not None and period not in allowed:
        options = ", ".join(sorted(p.value for p in allowed))
        raise ValueError(f"Recurring {label} period must be one of: {options}")


# =============================================================================
# SAVINGS GOALS
# =============================================================================

class SavingsGoalInput(BaseModel):
    """What a user supplies to plant a new crop."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    user_id: UUID
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    target_amount: Decimal = Field(..., gt=0, description="Amount to save")
    deadline: dt.date
    category: GoalCategory
    crop_type: str = Field(
        default="carrot",
        min_length=1,
        max_length=50,
        description="Cosmetic crop shown on the farm"
    )
    status: GoalStatus = GoalStatus.ACTIVE
    is_recurring: bool = False
    recurring_period: Optional[RecurringPeriod] = None

    @model_validator(mode='after')
    def validate_recurrence(self) -> 'SavingsGoalInput':
        check_recurrence(self.is_recurring, self.recurring_period, GOAL_PERIODS, "goals")
        return self


class SavingsGoal(SavingsGoalInput):
    """A persisted savings goal."""

    id: UUID = Field(default_factory=uuid4)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0)
    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)

    @property
    def progress_percentage(self) -> float:
        """Progress towards the target, capped at 100."""
        if self.target_amount == 0:
            return 0.0
        return float(min(self.current_amount / self.target_amount * 100, Decimal("100")))

    @property
    def remaining_amount(self) -> Decimal:
        return max(self.target_amount - self.current_amount, Decimal("0"))


class SavingsGoalUpdate(BaseModel):
    """Editable goal fields. Unset fields are left alone."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    target_amount: Optional[Decimal] = Field(default=None, gt=0)
    current_amount: Optional[Decimal] = Field(default=None, ge=0)
    deadline: Optional[dt.date] = None
    category: Optional[GoalCategory] = None
    crop_type: Optional[str] = Field(default=None, min_length=1, max_length=50)
    status: Optional[GoalStatus] = None
    is_recurring: Optional[bool] = None
    recurring_period: Optional[RecurringPeriod] = None


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseInput(BaseModel):
    """What a user supplies to pull a weed."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    user_id: UUID
    amount: Decimal = Field(..., gt=0)
    category: ExpenseCategory
    description: str = Field(..., min_length=1, max_length=200)
    date: dt.date
    receipt_image: Optional[str] = Field(
        default=None,
        max_length=1000,
        description="Reference to a stored receipt image"
    )
    is_recurring: bool = False
    recurring_period: Optional[RecurringPeriod] = None
    tags: list[str] = Field(default_factory=list)

    @field_validator('tags')
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        """Tags behave as a set: trimmed, lower-cased, no blanks or repeats."""
        seen = []
        for tag in v:
            cleaned = tag.strip().lower()
            if cleaned and cleaned not in seen:
                seen.append(cleaned)
        return seen

    @model_validator(mode='after')
    def validate_recurrence(self) -> 'ExpenseInput':
        check_recurrence(self.is_recurring, self.recurring_period, TRANSACTION_PERIODS, "expenses")
        return self


class Expense(ExpenseInput):
    """A persisted expense."""

    id: UUID = Field(default_factory=uuid4)
    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)


class ExpenseUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    amount: Optional[Decimal] = Field(default=None, gt=0)
    category: Optional[ExpenseCategory] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    date: Optional[dt.date] = None
    receipt_image: Optional[str] = Field(default=None, max_length=1000)
    is_recurring: Optional[bool] = None
    recurring_period: Optional[RecurringPeriod] = None
    tags: Optional[list[str]] = None


# =============================================================================
# INCOME
# =============================================================================

class IncomeInput(BaseModel):
    """
    What a user supplies to spread fertilizer.

    CRITICAL: multiplier and streak_count are NOT accepted here.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    user_id: UUID
    amount: Decimal = Field(..., gt=0)
    source: IncomeSource
    description: str = Field(..., min_length=1, max_length=200)
    date: dt.date
    is_recurring: bool = False
    recurring_period: Optional[RecurringPeriod] = None

    @model_validator(mode='after')
    def validate_recurrence(self) -> 'IncomeInput':
        check_recurrence(self.is_recurring, self.recurring_period, TRANSACTION_PERIODS, "income")
        return self


class Income(IncomeInput):
    """A persisted income record carrying its streak bonus."""

    id: UUID = Field(default_factory=uuid4)
    multiplier: Decimal = Field(default=Decimal("1"), ge=1)
    streak_count: int = Field(default=0, ge=0)
    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)

    @property
    def boosted_amount(self) -> Decimal:
        """Amount after the fertilizer boost."""
        return self.amount * self.multiplier


class IncomeUpdate(BaseModel):
    """Editable income fields. The streak bonus is not editable."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    amount: Optional[Decimal] = Field(default=None, gt=0)
    source: Optional[IncomeSource] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    date: Optional[dt.date] = None
    is_recurring: Optional[bool] = None
    recurring_period: Optional[RecurringPeriod] = None


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetThreshold(BaseModel):
    """A per-category monthly spending limit."""

    category: ExpenseCategory
    monthly_limit: Decimal = Field(..., gt=0)
    warning_percentage: Decimal = Field(default=Decimal("80"), ge=0, le=100)


class AlertSeverity(str, Enum):
    WARNING = "warning"
    DANGER = "danger"
    EXCEEDED = "exceeded"


class BudgetAlert(BaseModel):
    """
    A graded budget alert.

    Derived on demand from current ledger data. Never stored.
    """

    category: ExpenseCategory
    current_spending: Decimal
    limit: Decimal
    percentage: float
    severity: AlertSeverity
    message: str


class ExpenseLogResult(BaseModel):
    """A logged expense plus any budget alerts it triggered."""

    expense: Expense
    alerts: list[BudgetAlert] = Field(default_factory=list)


# =============================================================================
# SUMMARIES AND INSIGHTS
# =============================================================================

class PeriodType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class TimePeriod(BaseModel):
    """An inclusive reporting window."""

    type: PeriodType
    start_date: dt.date
    end_date: dt.date

    @model_validator(mode='after')
    def validate_bounds(self) -> 'TimePeriod':
        if self.end_date < self.start_date:
            raise ValueError("Period end cannot be before start")
        return self


class FinancialSummary(BaseModel):
    user_id: UUID
    period: PeriodType
    start_date: dt.date
    end_date: dt.date
    total_income: Decimal = Field(..., ge=0, description="Boosted income total")
    total_expenses: Decimal = Field(..., ge=0)
    net_amount: Decimal
    savings_rate: float = Field(..., ge=0, le=100)
    expenses_by_category: dict[ExpenseCategory, Decimal]
    income_by_source: dict[IncomeSource, Decimal]
    active_goals_count: int = Field(..., ge=0)
    completed_goals_count: int = Field(..., ge=0)
    generated_at: dt.datetime = Field(default_factory=utc_now)


class InsightType(str, Enum):
    SPENDING_TREND = "spending_trend"
    SAVINGS_PROGRESS = "savings_progress"
    INCOME_STREAK = "income_streak"
    BUDGET_ALERT = "budget_alert"


class InsightSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    SUCCESS = "success"
    DANGER = "danger"


class FinancialInsight(BaseModel):
    """Advisory observation about a user's finances."""

    type: InsightType
    title: str
    description: str
    severity: InsightSeverity
    actionable: bool
    recommendation: Optional[str] = None


class SpendingTrendPoint(BaseModel):
    month: str = Field(..., description="YYYY-MM")
    amount: Decimal


class IncomeTrendPoint(BaseModel):
    month: str = Field(..., description="YYYY-MM")
    amount: Decimal = Field(..., description="Boosted income for the month")
    average_multiplier: Decimal


class GoalProgressSnapshot(BaseModel):
    goal_id: UUID
    title: str
    progress: float
    days_to_goal: int = Field(..., description="-1 when the goal cannot be projected")


class CategorySpend(BaseModel):
    category: ExpenseCategory
    amount: Decimal
    percentage: float
