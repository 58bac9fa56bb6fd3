"""
Child Activity Models

Everything a supervised child does on the farm is recorded so a linked
parent can review it later. Activity records are append-only.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from farmledger.models.financial import utc_now


class ActivityType(str, Enum):
    """Types of child activity we record."""
    # Ledger
    GOAL_CREATED = "goal_created"
    GOAL_COMPLETED = "goal_completed"
    EXPENSE_LOGGED = "expense_logged"
    INCOME_LOGGED = "income_logged"

    # Rewards
    REWARD_CLAIMED = "reward_claimed"
    ALLOWANCE_RECEIVED = "allowance_received"
    CHORE_COMPLETED = "chore_completed"

    # Supervision
    APPROVAL_REQUESTED = "approval_requested"
    APPROVAL_RESOLVED = "approval_resolved"
    ACCOUNT_LINKED = "account_linked"
    ACCOUNT_UNLINKED = "account_unlinked"


class ChildActivity(BaseModel):
    """A single recorded child action."""

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique activity identifier"
    )
    child_id: UUID
    activity_type: ActivityType
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    amount: Optional[Decimal] = Field(
        default=None,
        description="Money involved, if any"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the goal, expense, chore, etc. this is about"
    )
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: dt.datetime = Field(
        default_factory=utc_now,
        description="When the activity happened (UTC)"
    )
    is_visible: bool = Field(
        default=True,
        description="Shown to the linked parent"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "activity_id": str(self.id),
            "timestamp": self.timestamp.isoformat(),
            "activity_type": self.activity_type.value,
            "child_id": str(self.child_id),
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "amount": str(self.amount) if self.amount is not None else None,
            "description": self.description,
            "details": self.details,
        }


class ActivitySummary(BaseModel):
    """Counts and totals of a child's activity over a window."""

    child_id: UUID
    days: int
    total_activities: int
    by_type: dict[ActivityType, int]
    total_amount: Decimal


class ActivityEventBuilder:
    """
    Helper class to build activity records with common patterns.

    Usage:
        activity = ActivityEventBuilder.expense_logged(child_id, expense_id, amount, "Snacks")
        activity = ActivityEventBuilder.chore_completed(child_id, chore_id, "Dishes")
    """

    @staticmethod
    def goal_created(
        child_id: UUID,
        goal_id: UUID,
        title: str,
        target_amount: Decimal,
    ) -> ChildActivity:
        return ChildActivity(
            child_id=child_id,
            activity_type=ActivityType.GOAL_CREATED,
            entity_id=goal_id,
            amount=target_amount,
            description=f"Planted a new crop: {title}",
            details={"title": title},
        )

    @staticmethod
    def goal_completed(
        child_id: UUID,
        goal_id: UUID,
        title: str,
        target_amount: Decimal,
    ) -> ChildActivity:
        return ChildActivity(
            child_id=child_id,
            activity_type=ActivityType.GOAL_COMPLETED,
            entity_id=goal_id,
            amount=target_amount,
            description=f"Harvested a crop: {title}",
            details={"title": title},
        )

    @staticmethod
    def expense_logged(
        child_id: UUID,
        expense_id: UUID,
        amount: Decimal,
        category: str,
    ) -> ChildActivity:
        return ChildActivity(
            child_id=child_id,
            activity_type=ActivityType.EXPENSE_LOGGED,
            entity_id=expense_id,
            amount=amount,
            description=f"Logged a {category} expense",
            details={"category": category},
        )

    @staticmethod
    def income_logged(
        child_id: UUID,
        income_id: UUID,
        amount: Decimal,
        source: str,
        streak_count: int,
    ) -> ChildActivity:
        return ChildActivity(
            child_id=child_id,
            activity_type=ActivityType.INCOME_LOGGED,
            entity_id=income_id,
            amount=amount,
            description=f"Logged {source} income",
            details={"source": source, "streak_count": streak_count},
        )

    @staticmethod
    def allowance_received(
        child_id: UUID,
        allowance_id: UUID,
        amount: Decimal,
    ) -> ChildActivity:
        return ChildActivity(
            child_id=child_id,
            activity_type=ActivityType.ALLOWANCE_RECEIVED,
            entity_id=allowance_id,
            amount=amount,
            description="Received allowance",
        )

    @staticmethod
    def chore_completed(
        child_id: UUID,
        chore_id: UUID,
        title: str,
    ) -> ChildActivity:
        return ChildActivity(
            child_id=child_id,
            activity_type=ActivityType.CHORE_COMPLETED,
            entity_id=chore_id,
            description=f"Finished a chore: {title}",
            details={"title": title},
        )

    @staticmethod
    def reward_claimed(
        child_id: UUID,
        chore_id: UUID,
        title: str,
        reward: Decimal,
    ) -> ChildActivity:
        return ChildActivity(
            child_id=child_id,
            activity_type=ActivityType.REWARD_CLAIMED,
            entity_id=chore_id,
            amount=reward,
            description=f"Earned a reward for: {title}",
            details={"title": title},
        )

    @staticmethod
    def approval_requested(
        child_id: UUID,
        request_id: UUID,
        request_type: str,
        reason: Optional[str],
    ) -> ChildActivity:
        return ChildActivity(
            child_id=child_id,
            activity_type=ActivityType.APPROVAL_REQUESTED,
            entity_id=request_id,
            description=f"Asked a parent to approve a {request_type}",
            details={"request_type": request_type, "reason": reason},
        )

    @staticmethod
    def approval_resolved(
        child_id: UUID,
        request_id: UUID,
        status: str,
        parent_response: Optional[str] = None,
    ) -> ChildActivity:
        return ChildActivity(
            child_id=child_id,
            activity_type=ActivityType.APPROVAL_RESOLVED,
            entity_id=request_id,
            description=f"Request {status}",
            details={"status": status, "parent_response": parent_response},
        )

    @staticmethod
    def account_linked(child_id: UUID, parent_id: UUID) -> ChildActivity:
        return ChildActivity(
            child_id=child_id,
            activity_type=ActivityType.ACCOUNT_LINKED,
            entity_id=parent_id,
            description="Linked to a parent account",
        )

    @staticmethod
    def account_unlinked(child_id: UUID, parent_id: UUID) -> ChildActivity:
        return ChildActivity(
            child_id=child_id,
            activity_type=ActivityType.ACCOUNT_UNLINKED,
            entity_id=parent_id,
            description="Unlinked from a parent account",
        )
