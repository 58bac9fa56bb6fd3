"""
Abstract Storage Interfaces

DESIGN DECISION: The ledger and policy engine never touch a database
directly. Every entity has a narrow async interface with the same basic
contract:

    create(record) -> record
    update(id, changes) -> record | None
    delete(id) -> bool
    find_by_id(id) -> record | None

plus entity-specific finders. Not-found is reported as None / False /
empty list; only genuine infrastructure failures raise StorageError.

Operations that must not race (approving a request, claiming a chore or
an allowance payment) are conditional updates: they only apply if the
stored record is still in the expected state, and report None otherwise.
"""

import datetime as dt
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Generic, Optional, TypeVar
from uuid import UUID

from farmledger.models.activity import ChildActivity
from farmledger.models.financial import (
    BudgetThreshold,
    Expense,
    ExpenseCategory,
    GoalCategory,
    GoalStatus,
    Income,
    IncomeSource,
    SavingsGoal,
)
from farmledger.models.parental import (
    AllowanceConfig,
    ApprovalRequest,
    Chore,
    ParentChildLink,
    RestrictionConfig,
    RestrictionType,
    UserAccount,
)


RecordT = TypeVar("RecordT")


class EntityStorageInterface(ABC, Generic[RecordT]):
    """
    Basic persistence contract shared by every entity.
    """

    @abstractmethod
    async def create(self, record: RecordT) -> RecordT:
        """
        Persist a new record.

        Args:
            record: Fully built record, identity already assigned

        Returns:
            The stored record

        Raises:
            DuplicateError: If a record with the same id exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update(self, record_id: UUID, changes: dict[str, Any]) -> Optional[RecordT]:
        """
        Apply field changes to an existing record.

        Args:
            record_id: The record's unique identifier
            changes: Field name -> new value

        Returns:
            The updated record, or None if it doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, record_id: UUID) -> bool:
        """
        Delete a record by ID.

        Returns:
            True if a record was removed, False if it didn't exist
        """
        pass

    @abstractmethod
    async def find_by_id(self, record_id: UUID) -> Optional[RecordT]:
        """Retrieve a record by its ID, or None."""
        pass


class GoalStorageInterface(EntityStorageInterface[SavingsGoal]):
    """Savings goal persistence."""

    @abstractmethod
    async def find_by_user_id(self, user_id: UUID) -> list[SavingsGoal]:
        """All goals for a user, newest first."""
        pass

    @abstractmethod
    async def find_by_status(self, user_id: UUID, status: GoalStatus) -> list[SavingsGoal]:
        pass

    @abstractmethod
    async def find_by_category(self, user_id: UUID, category: GoalCategory) -> list[SavingsGoal]:
        pass

    @abstractmethod
    async def find_active_by_user_id(self, user_id: UUID) -> list[SavingsGoal]:
        pass

    @abstractmethod
    async def find_expiring_soon(self, user_id: UUID, before: dt.date) -> list[SavingsGoal]:
        """Active goals whose deadline falls on or before `before`."""
        pass


class ExpenseStorageInterface(EntityStorageInterface[Expense]):
    """Expense persistence."""

    @abstractmethod
    async def find_by_user_id(self, user_id: UUID) -> list[Expense]:
        """All expenses for a user, newest date first."""
        pass

    @abstractmethod
    async def find_by_date_range(
        self,
        user_id: UUID,
        start: dt.date,
        end: dt.date,
    ) -> list[Expense]:
        """Expenses dated within [start, end], inclusive."""
        pass

    @abstractmethod
    async def find_by_category(self, user_id: UUID, category: ExpenseCategory) -> list[Expense]:
        pass

    @abstractmethod
    async def find_by_tags(self, user_id: UUID, tags: list[str]) -> list[Expense]:
        """Expenses carrying any of `tags`."""
        pass

    @abstractmethod
    async def find_recurring(self, user_id: UUID) -> list[Expense]:
        pass

    @abstractmethod
    async def get_total_for_period(
        self,
        user_id: UUID,
        start: dt.date,
        end: dt.date,
        category: Optional[ExpenseCategory] = None,
    ) -> Decimal:
        """Sum of expense amounts in [start, end], optionally for one category."""
        pass


class IncomeStorageInterface(EntityStorageInterface[Income]):
    """Income persistence, including streak bookkeeping."""

    @abstractmethod
    async def find_by_user_id(self, user_id: UUID) -> list[Income]:
        pass

    @abstractmethod
    async def find_by_date_range(
        self,
        user_id: UUID,
        start: dt.date,
        end: dt.date,
    ) -> list[Income]:
        pass

    @abstractmethod
    async def find_by_source(self, user_id: UUID, source: IncomeSource) -> list[Income]:
        pass

    @abstractmethod
    async def find_recurring(self, user_id: UUID) -> list[Income]:
        pass

    @abstractmethod
    async def get_current_streak(self, user_id: UUID) -> int:
        """
        Streak carried by the user's most recently logged income.

        Returns:
            The streak count, or 0 if the user has never logged income
        """
        pass

    @abstractmethod
    async def get_latest_income(self, user_id: UUID) -> Optional[Income]:
        """The user's most recently logged income record, if any."""
        pass

    @abstractmethod
    async def update_streak(
        self,
        user_id: UUID,
        income_id: UUID,
        streak_count: int,
        multiplier: Decimal,
    ) -> Optional[Income]:
        """Overwrite the streak bonus on one of the user's income records."""
        pass

    @abstractmethod
    async def get_total_for_period(
        self,
        user_id: UUID,
        start: dt.date,
        end: dt.date,
    ) -> Decimal:
        """Sum of boosted income (amount * multiplier) in [start, end]."""
        pass


class BudgetThresholdStorageInterface(ABC):
    """Per-user budget threshold configuration."""

    @abstractmethod
    async def get_thresholds(self, user_id: UUID) -> list[BudgetThreshold]:
        """The user's thresholds, empty if none were configured."""
        pass

    @abstractmethod
    async def set_thresholds(self, user_id: UUID, thresholds: list[BudgetThreshold]) -> None:
        """Replace the user's thresholds wholesale."""
        pass


class UserStorageInterface(ABC):
    """Account lookup used for parent/child mode checks."""

    @abstractmethod
    async def create(self, user: UserAccount) -> UserAccount:
        pass

    @abstractmethod
    async def find_by_id(self, user_id: UUID) -> Optional[UserAccount]:
        pass


class LinkStorageInterface(ABC):
    """Parent/child link persistence."""

    @abstractmethod
    async def create(self, link: ParentChildLink) -> ParentChildLink:
        pass

    @abstractmethod
    async def find_by_id(self, link_id: UUID) -> Optional[ParentChildLink]:
        pass

    @abstractmethod
    async def get_children_by_parent_id(self, parent_id: UUID) -> list[ParentChildLink]:
        """Active links where `parent_id` is the parent."""
        pass

    @abstractmethod
    async def get_parent_by_child_id(self, child_id: UUID) -> Optional[ParentChildLink]:
        """The child's active link, if any."""
        pass

    @abstractmethod
    async def is_linked(self, parent_id: UUID, child_id: UUID) -> bool:
        pass

    @abstractmethod
    async def deactivate_link(self, parent_id: UUID, child_id: UUID) -> bool:
        pass

    @abstractmethod
    async def update_nickname(
        self,
        parent_id: UUID,
        child_id: UUID,
        nickname: Optional[str],
    ) -> Optional[ParentChildLink]:
        pass


class RestrictionStorageInterface(EntityStorageInterface[RestrictionConfig]):
    """Parent-imposed restriction persistence."""

    @abstractmethod
    async def get_active_restrictions_by_child_id(self, child_id: UUID) -> list[RestrictionConfig]:
        pass

    @abstractmethod
    async def get_restriction_by_type(
        self,
        child_id: UUID,
        restriction_type: RestrictionType,
    ) -> Optional[RestrictionConfig]:
        """The child's active restriction of this type, if any."""
        pass

    @abstractmethod
    async def deactivate(self, restriction_id: UUID) -> bool:
        pass


class ApprovalStorageInterface(EntityStorageInterface[ApprovalRequest]):
    """
    Approval request persistence.

    approve_request / reject_request only apply to pending requests, so of
    two concurrent resolutions exactly one succeeds.
    """

    @abstractmethod
    async def get_pending_requests_by_parent_id(self, parent_id: UUID) -> list[ApprovalRequest]:
        pass

    @abstractmethod
    async def get_requests_by_child_id(self, child_id: UUID) -> list[ApprovalRequest]:
        pass

    @abstractmethod
    async def get_request_by_item_id(self, item_id: UUID) -> Optional[ApprovalRequest]:
        pass

    @abstractmethod
    async def approve_request(
        self,
        request_id: UUID,
        responded_at: dt.datetime,
        parent_response: Optional[str] = None,
    ) -> Optional[ApprovalRequest]:
        """
        Move a pending request to approved.

        Returns:
            The approved request, or None if it was missing or no longer pending
        """
        pass

    @abstractmethod
    async def reject_request(
        self,
        request_id: UUID,
        responded_at: dt.datetime,
        parent_response: Optional[str] = None,
    ) -> Optional[ApprovalRequest]:
        """Move a pending request to rejected. None if not pending."""
        pass

    @abstractmethod
    async def reopen_request(self, request_id: UUID) -> bool:
        """Return an approved request to pending (compensation for a failed write)."""
        pass

    @abstractmethod
    async def auto_reject_expired_requests(self, now: dt.datetime, message: str) -> int:
        """
        Reject every pending request whose expires_at is before `now`.

        Returns:
            How many requests this call rejected
        """
        pass


class AllowanceStorageInterface(EntityStorageInterface[AllowanceConfig]):
    """Allowance schedule persistence."""

    @abstractmethod
    async def get_active_allowance_by_child_id(self, child_id: UUID) -> Optional[AllowanceConfig]:
        pass

    @abstractmethod
    async def get_allowances_by_parent_id(self, parent_id: UUID) -> list[AllowanceConfig]:
        pass

    @abstractmethod
    async def get_due_allowances(self, now: dt.datetime) -> list[AllowanceConfig]:
        """Active allowances due at `now` whose end date hasn't passed."""
        pass

    @abstractmethod
    async def mark_as_paid(
        self,
        allowance_id: UUID,
        expected_next_payment: dt.datetime,
        paid_at: dt.datetime,
        next_payment: dt.datetime,
    ) -> Optional[AllowanceConfig]:
        """
        Record a payment and advance the schedule.

        Only applies if next_payment_at still equals `expected_next_payment`,
        so one due payment is claimed at most once.
        """
        pass

    @abstractmethod
    async def update_amount(self, allowance_id: UUID, amount: Decimal) -> Optional[AllowanceConfig]:
        pass

    @abstractmethod
    async def deactivate(self, allowance_id: UUID) -> bool:
        pass


class ChoreStorageInterface(EntityStorageInterface[Chore]):
    """Chore persistence. Status moves are conditional on the current status."""

    @abstractmethod
    async def get_chores_by_child_id(self, child_id: UUID) -> list[Chore]:
        pass

    @abstractmethod
    async def get_pending_chores_by_child_id(self, child_id: UUID) -> list[Chore]:
        """Chores the child hasn't finished yet."""
        pass

    @abstractmethod
    async def get_chores_awaiting_approval(self, parent_id: UUID) -> list[Chore]:
        pass

    @abstractmethod
    async def mark_as_completed(self, chore_id: UUID, completed_at: dt.datetime) -> Optional[Chore]:
        """unstarted -> completed. None if the chore isn't unstarted."""
        pass

    @abstractmethod
    async def approve_chore(self, chore_id: UUID, approved_at: dt.datetime) -> Optional[Chore]:
        """completed -> approved. None if the chore isn't completed."""
        pass

    @abstractmethod
    async def reject_chore(self, chore_id: UUID, rejected_at: dt.datetime) -> Optional[Chore]:
        """completed -> unstarted. None if the chore isn't completed."""
        pass

    @abstractmethod
    async def revert_approval(self, chore_id: UUID) -> bool:
        """approved -> completed (compensation for a failed payout)."""
        pass

    @abstractmethod
    async def get_total_pending_rewards(self, child_id: UUID) -> Decimal:
        """Rewards for chores completed but not yet approved."""
        pass


class ActivityStorageInterface(ABC):
    """
    Child activity log storage.

    Activity logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append(self, activity: ChildActivity) -> bool:
        pass

    @abstractmethod
    async def get_activities_by_child_id(
        self,
        child_id: UUID,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ChildActivity]:
        """A page of the child's activity, newest first."""
        pass

    @abstractmethod
    async def get_activities_since(
        self,
        child_id: UUID,
        since: dt.datetime,
    ) -> list[ChildActivity]:
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
