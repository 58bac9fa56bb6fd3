"""
Document-backed Repositories

Concrete implementations of every storage interface on top of a
DocumentCollection. Records round-trip through pydantic's JSON mode, so
the same repository works for the in-memory and SQLite backends.
"""

import datetime as dt
from decimal import Decimal
from typing import Any, Callable, Generic, Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel

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
    utc_now,
)
from farmledger.models.parental import (
    AllowanceConfig,
    ApprovalRequest,
    ApprovalStatus,
    Chore,
    ChoreStatus,
    ParentChildLink,
    RestrictionConfig,
    RestrictionType,
    UserAccount,
)
from farmledger.storage.documents import DocumentCollection
from farmledger.storage.interface import (
    ActivityStorageInterface,
    AllowanceStorageInterface,
    ApprovalStorageInterface,
    BudgetThresholdStorageInterface,
    ChoreStorageInterface,
    ExpenseStorageInterface,
    GoalStorageInterface,
    IncomeStorageInterface,
    LinkStorageInterface,
    RestrictionStorageInterface,
    UserStorageInterface,
)


ModelT = TypeVar("ModelT", bound=BaseModel)


class DocumentRepository(Generic[ModelT]):
    """
    Shared create/update/delete/find plumbing.

    Subclasses set `model` and add their finders.
    """

    model: Type[ModelT]

    def __init__(
        self,
        collection: DocumentCollection,
        clock: Optional[Callable[[], dt.datetime]] = None,
    ):
        self._collection = collection
        self._clock = clock or utc_now

    def _to_document(self, record: ModelT) -> dict[str, Any]:
        return record.model_dump(mode="json")

    def _from_document(self, document: dict[str, Any]) -> ModelT:
        return self.model.model_validate(document)

    def _touch(self, changes: dict[str, Any]) -> dict[str, Any]:
        if "updated_at" in self.model.model_fields and "updated_at" not in changes:
            return {**changes, "updated_at": self._clock()}
        return changes

    async def _records(self) -> list[ModelT]:
        return [self._from_document(doc) for doc in await self._collection.all()]

    async def _filter(self, predicate: Callable[[ModelT], bool]) -> list[ModelT]:
        return [record for record in await self._records() if predicate(record)]

    async def create(self, record: ModelT) -> ModelT:
        await self._collection.insert(str(record.id), self._to_document(record))
        return record

    async def update(self, record_id: UUID, changes: dict[str, Any]) -> Optional[ModelT]:
        document = await self._collection.get(str(record_id))
        if document is None:
            return None
        updated = self._from_document(document).model_copy(update=self._touch(changes))
        if not await self._collection.replace(str(record_id), self._to_document(updated)):
            return None
        return updated

    async def delete(self, record_id: UUID) -> bool:
        return await self._collection.remove(str(record_id))

    async def find_by_id(self, record_id: UUID) -> Optional[ModelT]:
        document = await self._collection.get(str(record_id))
        return self._from_document(document) if document is not None else None

    async def _transition(
        self,
        record_id: UUID,
        field: str,
        expected: Any,
        changes: dict[str, Any],
    ) -> Optional[ModelT]:
        """
        Conditional update: apply `changes` only if `field` still equals
        `expected`. Returns None when the record is missing or has moved on.
        """
        document = await self._collection.get(str(record_id))
        if document is None:
            return None
        current = self._from_document(document)
        if getattr(current, field) != expected:
            return None

        updated = current.model_copy(update=self._touch(changes))
        claimed = await self._collection.replace_if(
            str(record_id),
            self._to_document(updated),
            field,
            document[field],
        )
        return updated if claimed else None


def _newest_first(records: list, key: Callable) -> list:
    return sorted(records, key=key, reverse=True)


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class DocumentGoalStorage(DocumentRepository[SavingsGoal], GoalStorageInterface):
    model = SavingsGoal

    async def find_by_user_id(self, user_id: UUID) -> list[SavingsGoal]:
        goals = await self._filter(lambda g: g.user_id == user_id)
        return _newest_first(goals, key=lambda g: g.created_at)

    async def find_by_status(self, user_id: UUID, status: GoalStatus) -> list[SavingsGoal]:
        return [g for g in await self.find_by_user_id(user_id) if g.status == status]

    async def find_by_category(self, user_id: UUID, category: GoalCategory) -> list[SavingsGoal]:
        return [g for g in await self.find_by_user_id(user_id) if g.category == category]

    async def find_active_by_user_id(self, user_id: UUID) -> list[SavingsGoal]:
        return await self.find_by_status(user_id, GoalStatus.ACTIVE)

    async def find_expiring_soon(self, user_id: UUID, before: dt.date) -> list[SavingsGoal]:
        goals = [g for g in await self.find_active_by_user_id(user_id) if g.deadline <= before]
        return sorted(goals, key=lambda g: g.deadline)


class DocumentExpenseStorage(DocumentRepository[Expense], ExpenseStorageInterface):
    model = Expense

    async def find_by_user_id(self, user_id: UUID) -> list[Expense]:
        expenses = await self._filter(lambda e: e.user_id == user_id)
        return _newest_first(expenses, key=lambda e: (e.date, e.created_at))

    async def find_by_date_range(
        self,
        user_id: UUID,
        start: dt.date,
        end: dt.date,
    ) -> list[Expense]:
        return [
            e for e in await self.find_by_user_id(user_id)
            if start <= e.date <= end
        ]

    async def find_by_category(self, user_id: UUID, category: ExpenseCategory) -> list[Expense]:
        return [e for e in await self.find_by_user_id(user_id) if e.category == category]

    async def find_by_tags(self, user_id: UUID, tags: list[str]) -> list[Expense]:
        wanted = {t.strip().lower() for t in tags}
        return [
            e for e in await self.find_by_user_id(user_id)
            if wanted.intersection(e.tags)
        ]

    async def find_recurring(self, user_id: UUID) -> list[Expense]:
        return [e for e in await self.find_by_user_id(user_id) if e.is_recurring]

    async def get_total_for_period(
        self,
        user_id: UUID,
        start: dt.date,
        end: dt.date,
        category: Optional[ExpenseCategory] = None,
    ) -> Decimal:
        expenses = await self.find_by_date_range(user_id, start, end)
        return sum(
            (e.amount for e in expenses if category is None or e.category == category),
            Decimal("0"),
        )


class DocumentIncomeStorage(DocumentRepository[Income], IncomeStorageInterface):
    model = Income

    async def find_by_user_id(self, user_id: UUID) -> list[Income]:
        income = await self._filter(lambda i: i.user_id == user_id)
        return _newest_first(income, key=lambda i: (i.date, i.created_at))

    async def find_by_date_range(
        self,
        user_id: UUID,
        start: dt.date,
        end: dt.date,
    ) -> list[Income]:
        return [
            i for i in await self.find_by_user_id(user_id)
            if start <= i.date <= end
        ]

    async def find_by_source(self, user_id: UUID, source: IncomeSource) -> list[Income]:
        return [i for i in await self.find_by_user_id(user_id) if i.source == source]

    async def find_recurring(self, user_id: UUID) -> list[Income]:
        return [i for i in await self.find_by_user_id(user_id) if i.is_recurring]

    async def _latest(self, user_id: UUID) -> Optional[Income]:
        # Logging order: created_at, then insertion order for equal timestamps
        logged = [
            (position, income)
            for position, income in enumerate(await self._records())
            if income.user_id == user_id
        ]
        if not logged:
            return None
        return max(logged, key=lambda pair: (pair[1].created_at, pair[0]))[1]

    async def get_current_streak(self, user_id: UUID) -> int:
        latest = await self._latest(user_id)
        return latest.streak_count if latest else 0

    async def get_latest_income(self, user_id: UUID) -> Optional[Income]:
        return await self._latest(user_id)

    async def update_streak(
        self,
        user_id: UUID,
        income_id: UUID,
        streak_count: int,
        multiplier: Decimal,
    ) -> Optional[Income]:
        income = await self.find_by_id(income_id)
        if income is None or income.user_id != user_id:
            return None
        return await self.update(income_id, {
            "streak_count": streak_count,
            "multiplier": multiplier,
        })

    async def get_total_for_period(
        self,
        user_id: UUID,
        start: dt.date,
        end: dt.date,
    ) -> Decimal:
        income = await self.find_by_date_range(user_id, start, end)
        return sum((i.boosted_amount for i in income), Decimal("0"))


class _ThresholdDocument(BaseModel):
    id: UUID
    thresholds: list[BudgetThreshold]


class DocumentBudgetThresholdStorage(BudgetThresholdStorageInterface):
    """One document per user holding the full threshold list."""

    def __init__(self, collection: DocumentCollection):
        self._collection = collection

    async def get_thresholds(self, user_id: UUID) -> list[BudgetThreshold]:
        document = await self._collection.get(str(user_id))
        if document is None:
            return []
        return _ThresholdDocument.model_validate(document).thresholds

    async def set_thresholds(self, user_id: UUID, thresholds: list[BudgetThreshold]) -> None:
        document = _ThresholdDocument(id=user_id, thresholds=thresholds).model_dump(mode="json")
        if not await self._collection.replace(str(user_id), document):
            await self._collection.insert(str(user_id), document)


# =============================================================================
# ACCOUNTS AND LINKS
# =============================================================================

class DocumentUserStorage(DocumentRepository[UserAccount], UserStorageInterface):
    model = UserAccount


class DocumentLinkStorage(DocumentRepository[ParentChildLink], LinkStorageInterface):
    model = ParentChildLink

    async def _active(self, parent_id: UUID, child_id: UUID) -> Optional[ParentChildLink]:
        links = await self._filter(
            lambda link: link.is_active and link.parent_id == parent_id and link.child_id == child_id
        )
        return links[0] if links else None

    async def get_children_by_parent_id(self, parent_id: UUID) -> list[ParentChildLink]:
        return await self._filter(lambda link: link.is_active and link.parent_id == parent_id)

    async def get_parent_by_child_id(self, child_id: UUID) -> Optional[ParentChildLink]:
        links = await self._filter(lambda link: link.is_active and link.child_id == child_id)
        return links[0] if links else None

    async def is_linked(self, parent_id: UUID, child_id: UUID) -> bool:
        return await self._active(parent_id, child_id) is not None

    async def deactivate_link(self, parent_id: UUID, child_id: UUID) -> bool:
        link = await self._active(parent_id, child_id)
        if link is None:
            return False
        return await self._transition(link.id, "is_active", True, {"is_active": False}) is not None

    async def update_nickname(
        self,
        parent_id: UUID,
        child_id: UUID,
        nickname: Optional[str],
    ) -> Optional[ParentChildLink]:
        link = await self._active(parent_id, child_id)
        if link is None:
            return None
        return await self.update(link.id, {"nickname": nickname})


# =============================================================================
# RESTRICTIONS AND APPROVALS
# =============================================================================

class DocumentRestrictionStorage(DocumentRepository[RestrictionConfig], RestrictionStorageInterface):
    model = RestrictionConfig

    async def get_active_restrictions_by_child_id(self, child_id: UUID) -> list[RestrictionConfig]:
        return await self._filter(lambda r: r.is_active and r.child_id == child_id)

    async def get_restriction_by_type(
        self,
        child_id: UUID,
        restriction_type: RestrictionType,
    ) -> Optional[RestrictionConfig]:
        for restriction in await self.get_active_restrictions_by_child_id(child_id):
            if restriction.restriction_type == restriction_type:
                return restriction
        return None

    async def deactivate(self, restriction_id: UUID) -> bool:
        deactivated = await self._transition(
            restriction_id, "is_active", True, {"is_active": False}
        )
        return deactivated is not None


class DocumentApprovalStorage(DocumentRepository[ApprovalRequest], ApprovalStorageInterface):
    model = ApprovalRequest

    async def get_pending_requests_by_parent_id(self, parent_id: UUID) -> list[ApprovalRequest]:
        requests = await self._filter(
            lambda r: r.parent_id == parent_id and r.status == ApprovalStatus.PENDING
        )
        return _newest_first(requests, key=lambda r: r.requested_at)

    async def get_requests_by_child_id(self, child_id: UUID) -> list[ApprovalRequest]:
        requests = await self._filter(lambda r: r.child_id == child_id)
        return _newest_first(requests, key=lambda r: r.requested_at)

    async def get_request_by_item_id(self, item_id: UUID) -> Optional[ApprovalRequest]:
        requests = await self._filter(lambda r: r.item_id == item_id)
        return requests[0] if requests else None

    async def _resolve(
        self,
        request_id: UUID,
        status: ApprovalStatus,
        responded_at: dt.datetime,
        parent_response: Optional[str],
    ) -> Optional[ApprovalRequest]:
        return await self._transition(request_id, "status", ApprovalStatus.PENDING, {
            "status": status,
            "responded_at": responded_at,
            "parent_response": parent_response,
        })

    async def approve_request(
        self,
        request_id: UUID,
        responded_at: dt.datetime,
        parent_response: Optional[str] = None,
    ) -> Optional[ApprovalRequest]:
        return await self._resolve(request_id, ApprovalStatus.APPROVED, responded_at, parent_response)

    async def reject_request(
        self,
        request_id: UUID,
        responded_at: dt.datetime,
        parent_response: Optional[str] = None,
    ) -> Optional[ApprovalRequest]:
        return await self._resolve(request_id, ApprovalStatus.REJECTED, responded_at, parent_response)

    async def reopen_request(self, request_id: UUID) -> bool:
        reopened = await self._transition(request_id, "status", ApprovalStatus.APPROVED, {
            "status": ApprovalStatus.PENDING,
            "responded_at": None,
            "parent_response": None,
        })
        return reopened is not None

    async def auto_reject_expired_requests(self, now: dt.datetime, message: str) -> int:
        expired = await self._filter(
            lambda r: r.status == ApprovalStatus.PENDING and r.is_expired(now)
        )
        rejected = 0
        for request in expired:
            if await self.reject_request(request.id, now, message) is not None:
                rejected += 1
        return rejected


# =============================================================================
# ALLOWANCES AND CHORES
# =============================================================================

class DocumentAllowanceStorage(DocumentRepository[AllowanceConfig], AllowanceStorageInterface):
    model = AllowanceConfig

    async def get_active_allowance_by_child_id(self, child_id: UUID) -> Optional[AllowanceConfig]:
        allowances = await self._filter(lambda a: a.is_active and a.child_id == child_id)
        return allowances[0] if allowances else None

    async def get_allowances_by_parent_id(self, parent_id: UUID) -> list[AllowanceConfig]:
        return await self._filter(lambda a: a.parent_id == parent_id)

    async def get_due_allowances(self, now: dt.datetime) -> list[AllowanceConfig]:
        return await self._filter(
            lambda a: a.is_active
            and a.next_payment_at <= now
            and (a.end_date is None or a.end_date > now)
        )

    async def mark_as_paid(
        self,
        allowance_id: UUID,
        expected_next_payment: dt.datetime,
        paid_at: dt.datetime,
        next_payment: dt.datetime,
    ) -> Optional[AllowanceConfig]:
        return await self._transition(allowance_id, "next_payment_at", expected_next_payment, {
            "last_paid_at": paid_at,
            "next_payment_at": next_payment,
        })

    async def update_amount(self, allowance_id: UUID, amount: Decimal) -> Optional[AllowanceConfig]:
        return await self.update(allowance_id, {"amount": amount})

    async def deactivate(self, allowance_id: UUID) -> bool:
        deactivated = await self._transition(
            allowance_id, "is_active", True, {"is_active": False}
        )
        return deactivated is not None


class DocumentChoreStorage(DocumentRepository[Chore], ChoreStorageInterface):
    model = Chore

    async def get_chores_by_child_id(self, child_id: UUID) -> list[Chore]:
        chores = await self._filter(lambda c: c.child_id == child_id)
        return _newest_first(chores, key=lambda c: c.created_at)

    async def get_pending_chores_by_child_id(self, child_id: UUID) -> list[Chore]:
        return [
            c for c in await self.get_chores_by_child_id(child_id)
            if c.status == ChoreStatus.UNSTARTED
        ]

    async def get_chores_awaiting_approval(self, parent_id: UUID) -> list[Chore]:
        chores = await self._filter(
            lambda c: c.parent_id == parent_id and c.status == ChoreStatus.COMPLETED
        )
        return sorted(chores, key=lambda c: c.completed_at or c.created_at)

    async def mark_as_completed(self, chore_id: UUID, completed_at: dt.datetime) -> Optional[Chore]:
        return await self._transition(chore_id, "status", ChoreStatus.UNSTARTED, {
            "status": ChoreStatus.COMPLETED,
            "completed_at": completed_at,
        })

    async def approve_chore(self, chore_id: UUID, approved_at: dt.datetime) -> Optional[Chore]:
        return await self._transition(chore_id, "status", ChoreStatus.COMPLETED, {
            "status": ChoreStatus.APPROVED,
            "approved_at": approved_at,
        })

    async def reject_chore(self, chore_id: UUID, rejected_at: dt.datetime) -> Optional[Chore]:
        return await self._transition(chore_id, "status", ChoreStatus.COMPLETED, {
            "status": ChoreStatus.UNSTARTED,
            "completed_at": None,
            "updated_at": rejected_at,
        })

    async def revert_approval(self, chore_id: UUID) -> bool:
        reverted = await self._transition(chore_id, "status", ChoreStatus.APPROVED, {
            "status": ChoreStatus.COMPLETED,
            "approved_at": None,
        })
        return reverted is not None

    async def get_total_pending_rewards(self, child_id: UUID) -> Decimal:
        chores = await self._filter(
            lambda c: c.child_id == child_id and c.status == ChoreStatus.COMPLETED
        )
        return sum((c.reward for c in chores), Decimal("0"))


# =============================================================================
# ACTIVITY
# =============================================================================

class DocumentActivityStorage(DocumentRepository[ChildActivity], ActivityStorageInterface):
    model = ChildActivity

    async def append(self, activity: ChildActivity) -> bool:
        await self.create(activity)
        return True

    async def _for_child(self, child_id: UUID) -> list[ChildActivity]:
        activities = await self._filter(lambda a: a.child_id == child_id)
        return _newest_first(activities, key=lambda a: a.timestamp)

    async def get_activities_by_child_id(
        self,
        child_id: UUID,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ChildActivity]:
        return (await self._for_child(child_id))[offset:offset + limit]

    async def get_activities_since(
        self,
        child_id: UUID,
        since: dt.datetime,
    ) -> list[ChildActivity]:
        return [a for a in await self._for_child(child_id) if a.timestamp >= since]
