"""
Parental Control Records

Users, parent/child links, restrictions, approval requests, allowances
and chores. A child's spending, goals and income are ordinary ledger
records; these models describe the supervision layered on top.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator

from farmledger.models.financial import (
    BudgetAlert,
    Expense,
    RecurringPeriod,
    SavingsGoal,
    TRANSACTION_PERIODS,
    check_recurrence,
    utc_now,
)


class UserMode(str, Enum):
    ADULT = "adult"
    CHILD = "child"


class UserAccount(BaseModel):
    """A ledger user. Mode decides which side of a link they may take."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    display_name: str = Field(..., min_length=1, max_length=100)
    mode: UserMode
    created_at: dt.datetime = Field(default_factory=utc_now)


class ParentChildLink(BaseModel):
    """An adult supervising a child account."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    parent_id: UUID
    child_id: UUID
    is_active: bool = True
    nickname: Optional[str] = Field(default=None, max_length=50)
    created_at: dt.datetime = Field(default_factory=utc_now)


# =============================================================================
# RESTRICTIONS
# =============================================================================

class RestrictionType(str, Enum):
    SPENDING_LIMIT = "spending_limit"
    GOAL_AMOUNT_LIMIT = "goal_amount_limit"
    DAILY_USAGE_LIMIT = "daily_usage_limit"


class ActionType(str, Enum):
    """Child actions a restriction can gate."""
    EXPENSE = "expense"
    GOAL = "goal"
    USAGE = "usage"


ACTION_RESTRICTIONS = {
    ActionType.EXPENSE: RestrictionType.SPENDING_LIMIT,
    ActionType.GOAL: RestrictionType.GOAL_AMOUNT_LIMIT,
    ActionType.USAGE: RestrictionType.DAILY_USAGE_LIMIT,
}


class RestrictionConfig(BaseModel):
    """A parent-imposed limit. At most one active per (child, type)."""

    id: UUID = Field(default_factory=uuid4)
    child_id: UUID
    parent_id: UUID
    restriction_type: RestrictionType
    value: Decimal = Field(..., gt=0)
    is_active: bool = True
    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)


class PolicyDecision(BaseModel):
    """Outcome of checking a child action against restrictions."""

    allowed: bool
    reason: Optional[str] = None
    restriction_type: Optional[RestrictionType] = None
    limit: Optional[Decimal] = None
    restriction: Optional[RestrictionConfig] = None

    @classmethod
    def allow(cls) -> 'PolicyDecision':
        return cls(allowed=True)


# =============================================================================
# APPROVALS
# =============================================================================

class ApprovalType(str, Enum):
    GOAL = "goal"
    REWARD = "reward"
    EXPENSE = "expense"


class ApprovalStatus(str, Enum):
    """PENDING moves exactly once to APPROVED or REJECTED."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalRequest(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    child_id: UUID
    parent_id: UUID
    request_type: ApprovalType
    item_id: UUID = Field(default_factory=uuid4, description="Id the approved item will carry")
    request_data: dict[str, Any] = Field(default_factory=dict)
    status: ApprovalStatus = ApprovalStatus.PENDING
    requested_at: dt.datetime = Field(default_factory=utc_now)
    responded_at: Optional[dt.datetime] = None
    parent_response: Optional[str] = Field(default=None, max_length=500)
    expires_at: Optional[AwareDatetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING

    def is_expired(self, now: dt.datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now


# =============================================================================
# ALLOWANCES
# =============================================================================

class AllowanceFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class AllowanceConfigInput(BaseModel):
    """
    A recurring allowance schedule.

    day_of_week uses Python's convention (Monday=0). day_of_month past
    the end of a short month pays on that month's last day. Dates must
    carry a timezone.
    """
    model_config = ConfigDict(extra="forbid")

    child_id: UUID
    parent_id: UUID
    amount: Decimal = Field(..., gt=0)
    frequency: AllowanceFrequency
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    start_date: Optional[AwareDatetime] = None
    end_date: Optional[AwareDatetime] = None

    @model_validator(mode='after')
    def validate_schedule(self) -> 'AllowanceConfigInput':
        if self.frequency == AllowanceFrequency.WEEKLY and self.day_of_week is None:
            raise ValueError("Weekly allowances need day_of_week")
        if self.frequency == AllowanceFrequency.MONTHLY and self.day_of_month is None:
            raise ValueError("Monthly allowances need day_of_month")
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("Allowance end_date must be after start_date")
        return self


class AllowanceConfig(AllowanceConfigInput):
    id: UUID = Field(default_factory=uuid4)
    is_active: bool = True
    last_paid_at: Optional[dt.datetime] = None
    next_payment_at: dt.datetime
    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)


class AllowancePayment(BaseModel):
    """One allowance paid into the ledger."""

    allowance_id: UUID
    child_id: UUID
    income_id: UUID
    amount: Decimal
    paid_at: dt.datetime


# =============================================================================
# CHORES
# =============================================================================

class ChoreStatus(str, Enum):
    """unstarted -> completed -> approved; completed may fall back to unstarted."""
    UNSTARTED = "unstarted"
    COMPLETED = "completed"
    APPROVED = "approved"


class ChoreInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    child_id: UUID
    parent_id: UUID
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    reward: Decimal = Field(..., gt=0)
    due_date: Optional[AwareDatetime] = None
    is_recurring: bool = False
    recurring_period: Optional[RecurringPeriod] = None

    @model_validator(mode='after')
    def validate_recurrence(self) -> 'ChoreInput':
        check_recurrence(self.is_recurring, self.recurring_period, TRANSACTION_PERIODS, "chores")
        return self


class Chore(ChoreInput):
    id: UUID = Field(default_factory=uuid4)
    status: ChoreStatus = ChoreStatus.UNSTARTED
    completed_at: Optional[dt.datetime] = None
    approved_at: Optional[dt.datetime] = None
    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)


class ChoreStats(BaseModel):
    total: int = 0
    completed: int = 0
    approved: int = 0
    total_rewards: Decimal = Decimal("0")
    completion_rate: float = 0.0


# =============================================================================
# CHILD ACTION OUTCOMES AND REPORTS
# =============================================================================

class ChildActionStatus(str, Enum):
    RECORDED = "recorded"
    PENDING_APPROVAL = "pending_approval"


class ChildActionOutcome(BaseModel):
    """
    Result of a child submitting an expense or goal.

    Either the record was written directly, or an approval request was
    opened because a restriction denied it.
    """

    status: ChildActionStatus
    decision: PolicyDecision
    expense: Optional[Expense] = None
    goal: Optional[SavingsGoal] = None
    alerts: list[BudgetAlert] = Field(default_factory=list)
    approval_request: Optional[ApprovalRequest] = None


class ChildReport(BaseModel):
    """Parent-facing snapshot of one child's recent activity."""

    child_id: UUID
    start_date: dt.date
    end_date: dt.date
    total_income: Decimal
    total_expenses: Decimal
    active_goals: int
    completed_goals: int
    pending_approvals: int
    chore_stats: ChoreStats
    activity_count: int
