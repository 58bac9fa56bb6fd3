"""
Child Activity Logger

DESIGN DECISION: Everything a supervised child does is recorded.
This gives the linked parent:
1. A history of the child's ledger actions
2. Visibility into requests, chores and allowances
3. Material for the periodic child report

The activity logger:
- Is async to not block main flow
- Gracefully handles failures (a ledger or policy operation never fails
  because its activity record couldn't be written)
"""

import datetime as dt
import logging
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import structlog

from farmledger.models.activity import ActivityEventBuilder, ChildActivity
from farmledger.storage.interface import ActivityStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_log_level(level: str) -> None:
    """Route structured logs through the stdlib root logger at `level`."""
    logging.basicConfig(format="%(message)s", level=level.upper())


class ActivityLogger:
    """
    Central child activity recorder.

    Logs activity both to:
    1. Structured local log (for debugging)
    2. Activity storage (for the parent-facing history)
    """

    def __init__(
        self,
        storage: Optional[ActivityStorageInterface] = None,
        clock: Optional[Callable[[], dt.datetime]] = None,
    ):
        """
        Initialize activity logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            clock: Stamps activities when given, so they line up with the
                   ledger clock.
        """
        self._storage = storage
        self._clock = clock
        self._logger = structlog.get_logger(__name__)

    async def log(self, activity: ChildActivity) -> bool:
        """
        Record a child activity.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        if self._clock is not None:
            activity = activity.model_copy(update={"timestamp": self._clock()})

        self._logger.info("child_activity", **activity.to_log_dict())

        if self._storage:
            try:
                return await self._storage.append(activity)
            except Exception as e:
                self._logger.error(
                    "activity_storage_failed",
                    error=str(e),
                    activity_id=str(activity.id),
                )
                return False

        return True

    async def log_goal_created(
        self,
        child_id: UUID,
        goal_id: UUID,
        title: str,
        target_amount: Decimal,
    ) -> None:
        await self.log(ActivityEventBuilder.goal_created(
            child_id=child_id,
            goal_id=goal_id,
            title=title,
            target_amount=target_amount,
        ))

    async def log_goal_completed(
        self,
        child_id: UUID,
        goal_id: UUID,
        title: str,
        target_amount: Decimal,
    ) -> None:
        await self.log(ActivityEventBuilder.goal_completed(
            child_id=child_id,
            goal_id=goal_id,
            title=title,
            target_amount=target_amount,
        ))

    async def log_expense_logged(
        self,
        child_id: UUID,
        expense_id: UUID,
        amount: Decimal,
        category: str,
    ) -> None:
        await self.log(ActivityEventBuilder.expense_logged(
            child_id=child_id,
            expense_id=expense_id,
            amount=amount,
            category=category,
        ))

    async def log_income_logged(
        self,
        child_id: UUID,
        income_id: UUID,
        amount: Decimal,
        source: str,
        streak_count: int,
    ) -> None:
        await self.log(ActivityEventBuilder.income_logged(
            child_id=child_id,
            income_id=income_id,
            amount=amount,
            source=source,
            streak_count=streak_count,
        ))

    async def log_allowance_received(
        self,
        child_id: UUID,
        allowance_id: UUID,
        amount: Decimal,
    ) -> None:
        await self.log(ActivityEventBuilder.allowance_received(
            child_id=child_id,
            allowance_id=allowance_id,
            amount=amount,
        ))

    async def log_chore_completed(
        self,
        child_id: UUID,
        chore_id: UUID,
        title: str,
    ) -> None:
        await self.log(ActivityEventBuilder.chore_completed(
            child_id=child_id,
            chore_id=chore_id,
            title=title,
        ))

    async def log_reward_claimed(
        self,
        child_id: UUID,
        chore_id: UUID,
        title: str,
        reward: Decimal,
    ) -> None:
        await self.log(ActivityEventBuilder.reward_claimed(
            child_id=child_id,
            chore_id=chore_id,
            title=title,
            reward=reward,
        ))

    async def log_approval_requested(
        self,
        child_id: UUID,
        request_id: UUID,
        request_type: str,
        reason: Optional[str],
    ) -> None:
        await self.log(ActivityEventBuilder.approval_requested(
            child_id=child_id,
            request_id=request_id,
            request_type=request_type,
            reason=reason,
        ))

    async def log_approval_resolved(
        self,
        child_id: UUID,
        request_id: UUID,
        status: str,
        parent_response: Optional[str] = None,
    ) -> None:
        await self.log(ActivityEventBuilder.approval_resolved(
            child_id=child_id,
            request_id=request_id,
            status=status,
            parent_response=parent_response,
        ))

    async def log_account_linked(self, child_id: UUID, parent_id: UUID) -> None:
        await self.log(ActivityEventBuilder.account_linked(child_id, parent_id))

    async def log_account_unlinked(self, child_id: UUID, parent_id: UUID) -> None:
        await self.log(ActivityEventBuilder.account_unlinked(child_id, parent_id))
