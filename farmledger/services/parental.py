"""
Parental Control Policy Engine

A second policy layer over the ledger for supervised child accounts.

DESIGN DECISION: A child action that breaks a restriction is never
written straight to the ledger. It becomes a pending ApprovalRequest that
remembers the would-be record (request_data) and the id it will carry
(item_id). When a linked parent approves, the deferred write happens with
that id; if the write fails the request is reopened so nothing is left
approved-but-missing.

The same claim-then-compensate shape is used for money flowing in:
- Chore approval claims the chore (completed -> approved), pays the
  reward through the ledger, and reverts the claim if the payout fails
- Allowance processing claims one due payment by advancing the schedule,
  pays through the ledger, and restores the schedule if the payout fails

Every claim is a conditional storage update, so two concurrent attempts
cannot both succeed.

ERROR SURFACE:
- ValidationError passes through untouched
- LinkRejectedError: link rules refused a new link
- RelationshipError: the acting parent isn't (or is no longer) linked
- Not found is None / False / []
- Anything else becomes ParentalControlError("Failed to <operation>")
"""

import asyncio
import datetime as dt
import weakref
from collections import Counter
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Callable, Iterator, Optional, Type, TypeVar, Union
from uuid import UUID

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from farmledger.audit import ActivityLogger
from farmledger.config import ParentalSettings, get_settings
from farmledger.engine import next_allowance_payment, next_occurrence
from farmledger.models.activity import ActivitySummary, ActivityType, ChildActivity
from farmledger.models.financial import (
    ExpenseInput,
    GoalStatus,
    IncomeSource,
    SavingsGoalInput,
    utc_now,
)
from farmledger.models.parental import (
    ACTION_RESTRICTIONS,
    ActionType,
    AllowanceConfig,
    AllowanceConfigInput,
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
    UserMode,
)
from farmledger.services.ledger import FinancialDataManager
from farmledger.storage.interface import (
    ActivityStorageInterface,
    AllowanceStorageInterface,
    ApprovalStorageInterface,
    ChoreStorageInterface,
    LinkStorageInterface,
    RestrictionStorageInterface,
    UserStorageInterface,
)
from farmledger.validation import RecordValidator, ValidationError, ValidationIssue


logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ParentalControlError(Exception):
    """A policy operation failed."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class LinkRejectedError(ParentalControlError):
    """The accounts can't be linked (wrong modes, or already linked)."""
    pass


class RelationshipError(ParentalControlError):
    """The acting parent isn't actively linked to the child."""
    pass


def _parse(model: Type[ModelT], data: Union[BaseModel, dict[str, Any]]) -> ModelT:
    try:
        return model.model_validate(data.model_dump() if isinstance(data, BaseModel) else data)
    except SchemaError as e:
        raise ValidationError([
            ValidationIssue(
                field=".".join(str(p) for p in err["loc"]) or "record",
                issue_type=err["type"],
                message=err["msg"],
            )
            for err in e.errors()
        ]) from e


class ParentalControlService:
    """
    Links, restrictions, approvals, allowances and chores for child accounts.

    Money only reaches the ledger through `ledger`, so streaks, budget
    alerts and goal rules apply to children exactly as to adults.
    """

    def __init__(
        self,
        users: UserStorageInterface,
        links: LinkStorageInterface,
        restrictions: RestrictionStorageInterface,
        approvals: ApprovalStorageInterface,
        allowances: AllowanceStorageInterface,
        chores: ChoreStorageInterface,
        activities: ActivityStorageInterface,
        ledger: FinancialDataManager,
        activity_logger: Optional[ActivityLogger] = None,
        validator: Optional[RecordValidator] = None,
        settings: Optional[ParentalSettings] = None,
        clock: Optional[Callable[[], dt.datetime]] = None,
    ):
        self._users = users
        self._links = links
        self._restrictions = restrictions
        self._approvals = approvals
        self._allowances = allowances
        self._chores = chores
        self._activities = activities
        self._ledger = ledger
        self._clock = clock or utc_now
        self._activity = activity_logger or ActivityLogger(activities, clock=self._clock)
        self._validator = validator or RecordValidator(clock=self._clock)
        self._settings = settings or get_settings().parental
        self._locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = weakref.WeakValueDictionary()

    # =========================================================================
    # PLUMBING
    # =========================================================================

    @contextmanager
    def _operation(self, operation: str, **context: Any) -> Iterator[None]:
        try:
            yield
        except (ValidationError, ParentalControlError):
            raise
        except Exception as e:
            logger.error(
                "parental_operation_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                **{k: str(v) for k, v in context.items()},
            )
            raise ParentalControlError(f"Failed to {operation}") from e

    def _lock_for(self, key: UUID) -> asyncio.Lock:
        # Entries drop out once no caller holds or waits on the lock.
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _now(self) -> dt.datetime:
        return self._clock()

    async def _require_link(self, parent_id: UUID, child_id: UUID) -> None:
        if not await self._links.is_linked(parent_id, child_id):
            raise RelationshipError("Parent-child relationship not found")

    # =========================================================================
    # LINKS
    # =========================================================================

    async def link_child_account(
        self,
        parent_id: UUID,
        child_id: UUID,
        nickname: Optional[str] = None,
    ) -> ParentChildLink:
        """
        Put a child account under a parent's supervision.

        Raises:
            LinkRejectedError: If the parent isn't an adult account, the
                child isn't a child account, or the child is already linked
        """
        with self._operation("link child account", parent_id=parent_id, child_id=child_id):
            parent = await self._users.find_by_id(parent_id)
            if parent is None or parent.mode != UserMode.ADULT:
                raise LinkRejectedError("Only adult users can be parents")

            child = await self._users.find_by_id(child_id)
            if child is None or child.mode != UserMode.CHILD:
                raise LinkRejectedError("Only child users can be linked as children")

            async with self._lock_for(child_id):
                if await self._links.get_parent_by_child_id(child_id) is not None:
                    raise LinkRejectedError("Parent-child link already exists")
                link = await self._links.create(ParentChildLink(
                    parent_id=parent_id,
                    child_id=child_id,
                    nickname=nickname,
                    created_at=self._now(),
                ))

            logger.info("child_account_linked", parent_id=str(parent_id), child_id=str(child_id))
            await self._activity.log_account_linked(child_id, parent_id)
            return link

    async def unlink_child_account(self, parent_id: UUID, child_id: UUID) -> bool:
        """Deactivate the link. Links are never hard-deleted."""
        with self._operation("unlink child account", parent_id=parent_id, child_id=child_id):
            unlinked = await self._links.deactivate_link(parent_id, child_id)
            if unlinked:
                logger.info(
                    "child_account_unlinked",
                    parent_id=str(parent_id),
                    child_id=str(child_id),
                )
                await self._activity.log_account_unlinked(child_id, parent_id)
            return unlinked

    async def get_linked_children(self, parent_id: UUID) -> list[ParentChildLink]:
        with self._operation("get linked children", parent_id=parent_id):
            return await self._links.get_children_by_parent_id(parent_id)

    async def get_parent_for_child(self, child_id: UUID) -> Optional[ParentChildLink]:
        with self._operation("get parent for child", child_id=child_id):
            return await self._links.get_parent_by_child_id(child_id)

    async def update_child_nickname(
        self,
        parent_id: UUID,
        child_id: UUID,
        nickname: Optional[str],
    ) -> Optional[ParentChildLink]:
        with self._operation("update child nickname", parent_id=parent_id, child_id=child_id):
            if nickname is not None and len(nickname.strip()) > 50:
                raise ValidationError([ValidationIssue(
                    field="nickname",
                    issue_type="string_too_long",
                    message="Nickname must be at most 50 characters",
                )])
            return await self._links.update_nickname(parent_id, child_id, nickname)

    # =========================================================================
    # RESTRICTIONS
    # =========================================================================

    async def _set_restriction(
        self,
        child_id: UUID,
        parent_id: UUID,
        restriction_type: RestrictionType,
        value: Union[Decimal, int, str],
    ) -> RestrictionConfig:
        with self._operation("set restriction", child_id=child_id, type=restriction_type.value):
            await self._require_link(parent_id, child_id)
            value = Decimal(str(value))
            if value <= 0:
                raise ValidationError([ValidationIssue(
                    field="value",
                    issue_type="greater_than",
                    message="Restriction value must be greater than 0",
                )])

            async with self._lock_for(child_id):
                existing = await self._restrictions.get_restriction_by_type(child_id, restriction_type)
                if existing is not None:
                    restriction = await self._restrictions.update(existing.id, {
                        "parent_id": parent_id,
                        "value": value,
                    })
                else:
                    now = self._now()
                    restriction = await self._restrictions.create(RestrictionConfig(
                        child_id=child_id,
                        parent_id=parent_id,
                        restriction_type=restriction_type,
                        value=value,
                        created_at=now,
                        updated_at=now,
                    ))

            logger.info(
                "restriction_set",
                child_id=str(child_id),
                restriction_type=restriction_type.value,
                value=str(value),
            )
            return restriction

    async def set_spending_limit(
        self,
        child_id: UUID,
        parent_id: UUID,
        limit: Union[Decimal, int, str],
    ) -> RestrictionConfig:
        return await self._set_restriction(child_id, parent_id, RestrictionType.SPENDING_LIMIT, limit)

    async def set_goal_amount_limit(
        self,
        child_id: UUID,
        parent_id: UUID,
        limit: Union[Decimal, int, str],
    ) -> RestrictionConfig:
        return await self._set_restriction(child_id, parent_id, RestrictionType.GOAL_AMOUNT_LIMIT, limit)

    async def set_daily_usage_limit(
        self,
        child_id: UUID,
        parent_id: UUID,
        limit_minutes: Union[Decimal, int, str],
    ) -> RestrictionConfig:
        return await self._set_restriction(
            child_id, parent_id, RestrictionType.DAILY_USAGE_LIMIT, limit_minutes
        )

    async def get_child_restrictions(self, child_id: UUID) -> list[RestrictionConfig]:
        with self._operation("get child restrictions", child_id=child_id):
            return await self._restrictions.get_active_restrictions_by_child_id(child_id)

    async def remove_restriction(self, parent_id: UUID, restriction_id: UUID) -> bool:
        with self._operation("remove restriction", restriction_id=restriction_id):
            restriction = await self._restrictions.find_by_id(restriction_id)
            if restriction is None or not restriction.is_active:
                return False
            await self._require_link(parent_id, restriction.child_id)
            return await self._restrictions.deactivate(restriction_id)

    async def validate_child_action(
        self,
        child_id: UUID,
        action_type: ActionType,
        amount: Union[Decimal, int, str],
    ) -> PolicyDecision:
        """
        Check a proposed child action against the matching active restriction.

        A denial is returned, not raised; routing it into an approval
        request is the caller's job.
        """
        with self._operation("validate child action", child_id=child_id):
            restriction_type = ACTION_RESTRICTIONS[ActionType(action_type)]
            restriction = await self._restrictions.get_restriction_by_type(child_id, restriction_type)
            if restriction is None or Decimal(str(amount)) <= restriction.value:
                return PolicyDecision.allow()

            return PolicyDecision(
                allowed=False,
                reason=f"Action exceeds {ActionType(action_type).value} limit of {restriction.value}",
                restriction_type=restriction_type,
                limit=restriction.value,
                restriction=restriction,
            )

    async def check_restrictions(
        self,
        child_id: UUID,
        action_type: ActionType,
        amount: Union[Decimal, int, str],
    ) -> bool:
        """True if the action stays within the child's restrictions."""
        decision = await self.validate_child_action(child_id, action_type, amount)
        return decision.allowed

    # =========================================================================
    # APPROVALS
    # =========================================================================

    async def request_approval(
        self,
        child_id: UUID,
        request_type: ApprovalType,
        request_data: dict[str, Any],
        item_id: Optional[UUID] = None,
        expires_at: Optional[dt.datetime] = None,
        reason: Optional[str] = None,
    ) -> ApprovalRequest:
        """
        Open a pending request with the child's linked parent.

        Without an explicit `expires_at`, the configured default expiry (if
        any) applies.
        """
        with self._operation("request approval", child_id=child_id):
            link = await self._links.get_parent_by_child_id(child_id)
            if link is None:
                raise RelationshipError("Child is not linked to any parent")

            now = self._now()
            if expires_at is None and self._settings.approval_expiry_hours:
                expires_at = now + dt.timedelta(hours=self._settings.approval_expiry_hours)

            fields = {"item_id": item_id} if item_id is not None else {}
            request = await self._approvals.create(_parse(ApprovalRequest, dict(
                child_id=child_id,
                parent_id=link.parent_id,
                request_type=request_type,
                request_data=request_data,
                requested_at=now,
                expires_at=expires_at,
                **fields,
            )))

            logger.info(
                "approval_requested",
                request_id=str(request.id),
                child_id=str(child_id),
                request_type=request.request_type.value,
            )
            await self._activity.log_approval_requested(
                child_id, request.id, request.request_type.value, reason
            )
            return request

    async def _load_for_parent(self, request_id: UUID, parent_id: UUID) -> Optional[ApprovalRequest]:
        request = await self._approvals.find_by_id(request_id)
        if request is None:
            return None
        if request.parent_id != parent_id:
            raise RelationshipError("Request belongs to a different parent")
        await self._require_link(parent_id, request.child_id)
        return request

    async def _expire(self, request: ApprovalRequest) -> None:
        expired = await self._approvals.reject_request(
            request.id, self._now(), self._settings.auto_reject_message
        )
        if expired is not None:
            logger.info("approval_request_expired", request_id=str(request.id))
            await self._activity.log_approval_resolved(
                expired.child_id, expired.id, expired.status.value, expired.parent_response
            )

    async def _apply_approved_item(self, request: ApprovalRequest) -> None:
        """The ledger write an approved request was holding back."""
        if request.request_type == ApprovalType.EXPENSE:
            await self._ledger.log_expense(request.request_data, record_id=request.item_id)
        elif request.request_type == ApprovalType.GOAL:
            await self._ledger.create_savings_goal(request.request_data, record_id=request.item_id)

    async def approve_request(
        self,
        request_id: UUID,
        parent_id: UUID,
        parent_response: Optional[str] = None,
    ) -> Optional[ApprovalRequest]:
        """
        Approve a pending request and perform its deferred ledger write.

        Returns None if the request doesn't exist, was already resolved, or
        had expired (it is auto-rejected). If the ledger write fails the
        request goes back to pending and the error is raised.
        """
        with self._operation("approve request", request_id=request_id):
            request = await self._load_for_parent(request_id, parent_id)
            if request is None or not request.is_pending:
                return None
            if request.is_expired(self._now()):
                await self._expire(request)
                return None

            approved = await self._approvals.approve_request(request_id, self._now(), parent_response)
            if approved is None:
                return None

            try:
                await self._apply_approved_item(approved)
            except Exception:
                await self._approvals.reopen_request(request_id)
                logger.warning("approval_reopened", request_id=str(request_id))
                raise

            logger.info("approval_granted", request_id=str(request_id), parent_id=str(parent_id))
            await self._activity.log_approval_resolved(
                approved.child_id, approved.id, approved.status.value, parent_response
            )
            return approved

    async def reject_request(
        self,
        request_id: UUID,
        parent_id: UUID,
        parent_response: Optional[str] = None,
    ) -> Optional[ApprovalRequest]:
        """Reject a pending request. None if it doesn't exist or isn't pending."""
        with self._operation("reject request", request_id=request_id):
            request = await self._load_for_parent(request_id, parent_id)
            if request is None:
                return None

            rejected = await self._approvals.reject_request(request_id, self._now(), parent_response)
            if rejected is None:
                return None

            logger.info("approval_rejected", request_id=str(request_id), parent_id=str(parent_id))
            await self._activity.log_approval_resolved(
                rejected.child_id, rejected.id, rejected.status.value, parent_response
            )
            return rejected

    async def get_pending_approvals(self, parent_id: UUID) -> list[ApprovalRequest]:
        with self._operation("get pending approvals", parent_id=parent_id):
            return await self._approvals.get_pending_requests_by_parent_id(parent_id)

    async def needs_approval(self, item_id: UUID, request_type: ApprovalType) -> bool:
        """True while the item is waiting on a pending request."""
        with self._operation("check approval", item_id=item_id):
            request = await self._approvals.get_request_by_item_id(item_id)
            return (
                request is not None
                and request.request_type == request_type
                and request.is_pending
            )

    async def process_expired_requests(self) -> int:
        """Auto-reject pending requests past their expiry. Safe to repeat."""
        with self._operation("process expired requests"):
            rejected = await self._approvals.auto_reject_expired_requests(
                self._now(), self._settings.auto_reject_message
            )
            if rejected:
                logger.info("approval_requests_expired", count=rejected)
            return rejected

    # =========================================================================
    # CHILD SUBMISSIONS
    # =========================================================================

    async def submit_child_expense(
        self,
        data: Union[ExpenseInput, dict[str, Any]],
    ) -> ChildActionOutcome:
        """Record a child's expense, or route it to the parent if it's over the limit."""
        with self._operation("submit child expense"):
            expense = self._validator.validate_expense_input(data)
            decision = await self.validate_child_action(
                expense.user_id, ActionType.EXPENSE, expense.amount
            )
            if decision.allowed:
                result = await self._ledger.log_expense(expense)
                return ChildActionOutcome(
                    status=ChildActionStatus.RECORDED,
                    decision=decision,
                    expense=result.expense,
                    alerts=result.alerts,
                )

            request = await self.request_approval(
                expense.user_id,
                ApprovalType.EXPENSE,
                request_data=expense.model_dump(mode="json"),
                reason=decision.reason,
            )
            return ChildActionOutcome(
                status=ChildActionStatus.PENDING_APPROVAL,
                decision=decision,
                approval_request=request,
            )

    async def submit_child_goal(
        self,
        data: Union[SavingsGoalInput, dict[str, Any]],
    ) -> ChildActionOutcome:
        """Plant a child's goal, or route it to the parent if the target is over the limit."""
        with self._operation("submit child goal"):
            goal = self._validator.validate_goal_input(data)
            decision = await self.validate_child_action(
                goal.user_id, ActionType.GOAL, goal.target_amount
            )
            if decision.allowed:
                return ChildActionOutcome(
                    status=ChildActionStatus.RECORDED,
                    decision=decision,
                    goal=await self._ledger.create_savings_goal(goal),
                )

            request = await self.request_approval(
                goal.user_id,
                ApprovalType.GOAL,
                request_data=goal.model_dump(mode="json"),
                reason=decision.reason,
            )
            return ChildActionOutcome(
                status=ChildActionStatus.PENDING_APPROVAL,
                decision=decision,
                approval_request=request,
            )

    # =========================================================================
    # ALLOWANCES
    # =========================================================================

    async def setup_allowance(
        self,
        data: Union[AllowanceConfigInput, dict[str, Any]],
    ) -> AllowanceConfig:
        """
        Start paying a child an allowance. Replaces any active allowance.

        The first payment is the next scheduled day after now (or after
        start_date, if that is later).
        """
        with self._operation("setup allowance"):
            config = _parse(AllowanceConfigInput, data)

            await self._require_link(config.parent_id, config.child_id)

            async with self._lock_for(config.child_id):
                existing = await self._allowances.get_active_allowance_by_child_id(config.child_id)
                if existing is not None:
                    await self._allowances.deactivate(existing.id)

                now = self._now()
                anchor = max(now, config.start_date) if config.start_date else now
                allowance = await self._allowances.create(AllowanceConfig(
                    **config.model_dump(),
                    next_payment_at=next_allowance_payment(
                        config.frequency, anchor, config.day_of_week, config.day_of_month
                    ),
                    created_at=now,
                    updated_at=now,
                ))

            logger.info(
                "allowance_configured",
                allowance_id=str(allowance.id),
                child_id=str(allowance.child_id),
                frequency=allowance.frequency.value,
                next_payment_at=allowance.next_payment_at.isoformat(),
            )
            return allowance

    async def _pay_allowance(self, allowance: AllowanceConfig, now: dt.datetime) -> Optional[AllowancePayment]:
        next_payment = next_allowance_payment(
            allowance.frequency, now, allowance.day_of_week, allowance.day_of_month
        )
        claimed = await self._allowances.mark_as_paid(
            allowance.id, allowance.next_payment_at, now, next_payment
        )
        if claimed is None:
            return None

        try:
            income = await self._ledger.log_income({
                "user_id": allowance.child_id,
                "amount": allowance.amount,
                "source": IncomeSource.ALLOWANCE,
                "description": f"{allowance.frequency.value.capitalize()} allowance",
                "date": now.date(),
            })
        except Exception:
            await self._allowances.mark_as_paid(
                allowance.id, next_payment, allowance.last_paid_at, allowance.next_payment_at
            )
            raise

        await self._activity.log_allowance_received(allowance.child_id, allowance.id, allowance.amount)
        return AllowancePayment(
            allowance_id=allowance.id,
            child_id=allowance.child_id,
            income_id=income.id,
            amount=allowance.amount,
            paid_at=now,
        )

    async def process_due_allowances(self) -> list[AllowancePayment]:
        """
        Pay every allowance that has come due.

        A failed payout restores that allowance's schedule and is skipped,
        so the next run picks it up again.
        """
        with self._operation("process due allowances"):
            now = self._now()
            payments = []
            for allowance in await self._allowances.get_due_allowances(now):
                try:
                    payment = await self._pay_allowance(allowance, now)
                except Exception as e:
                    logger.error(
                        "allowance_payment_failed",
                        allowance_id=str(allowance.id),
                        error=str(e),
                    )
                    continue
                if payment is not None:
                    payments.append(payment)

            if payments:
                logger.info("allowances_paid", count=len(payments))
            return payments

    async def get_child_allowance(self, child_id: UUID) -> Optional[AllowanceConfig]:
        with self._operation("get child allowance", child_id=child_id):
            return await self._allowances.get_active_allowance_by_child_id(child_id)

    async def update_allowance_amount(
        self,
        allowance_id: UUID,
        amount: Union[Decimal, int, str],
    ) -> Optional[AllowanceConfig]:
        with self._operation("update allowance amount", allowance_id=allowance_id):
            amount = Decimal(str(amount))
            if amount <= 0:
                raise ValidationError([ValidationIssue(
                    field="amount",
                    issue_type="greater_than",
                    message="Allowance amount must be greater than 0",
                )])
            return await self._allowances.update_amount(allowance_id, amount)

    async def deactivate_allowance(self, allowance_id: UUID) -> bool:
        with self._operation("deactivate allowance", allowance_id=allowance_id):
            return await self._allowances.deactivate(allowance_id)

    # =========================================================================
    # CHORES
    # =========================================================================

    async def create_chore(self, data: Union[ChoreInput, dict[str, Any]]) -> Chore:
        with self._operation("create chore"):
            chore_input = _parse(ChoreInput, data)

            await self._require_link(chore_input.parent_id, chore_input.child_id)
            now = self._now()
            chore = await self._chores.create(Chore(
                **chore_input.model_dump(), created_at=now, updated_at=now
            ))
            logger.info("chore_created", chore_id=str(chore.id), child_id=str(chore.child_id))
            return chore

    async def complete_chore(self, chore_id: UUID, child_id: UUID) -> Optional[Chore]:
        """
        Child marks a chore done. No money moves until a parent approves.

        Returns None if the chore doesn't exist or isn't unstarted.
        """
        with self._operation("complete chore", chore_id=chore_id):
            chore = await self._chores.find_by_id(chore_id)
            if chore is None:
                return None
            if chore.child_id != child_id:
                raise RelationshipError("Chore belongs to a different child")

            completed = await self._chores.mark_as_completed(chore_id, self._now())
            if completed is not None:
                await self._activity.log_chore_completed(child_id, chore_id, completed.title)
            return completed

    async def approve_chore(self, chore_id: UUID, parent_id: UUID) -> Optional[Chore]:
        """
        Parent confirms a completed chore and the reward is paid.

        The payout is income through the ledger, so it counts toward the
        child's streak. A recurring chore gets its next instance, due one
        period from now. Returns None if the chore doesn't exist or isn't
        awaiting approval.
        """
        with self._operation("approve chore", chore_id=chore_id):
            chore = await self._chores.find_by_id(chore_id)
            if chore is None:
                return None
            if chore.parent_id != parent_id:
                raise RelationshipError("Chore belongs to a different parent")
            await self._require_link(parent_id, chore.child_id)

            now = self._now()
            approved = await self._chores.approve_chore(chore_id, now)
            if approved is None:
                return None

            try:
                await self._ledger.log_income({
                    "user_id": chore.child_id,
                    "amount": chore.reward,
                    "source": IncomeSource.CHORES,
                    "description": f"Reward for: {chore.title}",
                    "date": now.date(),
                })
            except Exception:
                await self._chores.revert_approval(chore_id)
                logger.warning("chore_approval_reverted", chore_id=str(chore_id))
                raise

            logger.info(
                "chore_approved",
                chore_id=str(chore_id),
                child_id=str(chore.child_id),
                reward=str(chore.reward),
            )
            await self._activity.log_reward_claimed(chore.child_id, chore_id, chore.title, chore.reward)

            if approved.is_recurring:
                await self._spawn_next_chore(approved, now)
            return approved

    async def _spawn_next_chore(self, chore: Chore, now: dt.datetime) -> None:
        try:
            spawned = await self._chores.create(Chore(
                **chore.model_dump(include=set(ChoreInput.model_fields) - {"due_date"}),
                due_date=next_occurrence(chore.recurring_period, now),
                created_at=now,
                updated_at=now,
            ))
        except Exception as e:
            logger.error("recurring_chore_spawn_failed", chore_id=str(chore.id), error=str(e))
            return
        logger.info("recurring_chore_spawned", chore_id=str(spawned.id), previous_id=str(chore.id))

    async def reject_chore(self, chore_id: UUID, parent_id: UUID) -> Optional[Chore]:
        """Send a completed chore back to unstarted."""
        with self._operation("reject chore", chore_id=chore_id):
            chore = await self._chores.find_by_id(chore_id)
            if chore is None:
                return None
            if chore.parent_id != parent_id:
                raise RelationshipError("Chore belongs to a different parent")
            return await self._chores.reject_chore(chore_id, self._now())

    async def get_child_chores(self, child_id: UUID) -> list[Chore]:
        with self._operation("get child chores", child_id=child_id):
            return await self._chores.get_chores_by_child_id(child_id)

    async def get_pending_chores(self, child_id: UUID) -> list[Chore]:
        with self._operation("get pending chores", child_id=child_id):
            return await self._chores.get_pending_chores_by_child_id(child_id)

    async def get_chores_awaiting_approval(self, parent_id: UUID) -> list[Chore]:
        with self._operation("get chores awaiting approval", parent_id=parent_id):
            return await self._chores.get_chores_awaiting_approval(parent_id)

    async def get_chore_stats(self, child_id: UUID, days: int = 30) -> ChoreStats:
        """Chores created in the last `days` days. Completed includes approved."""
        with self._operation("get chore stats", child_id=child_id):
            since = self._now() - dt.timedelta(days=days)
            chores = [
                c for c in await self._chores.get_chores_by_child_id(child_id)
                if c.created_at >= since
            ]
            completed = [c for c in chores if c.status != ChoreStatus.UNSTARTED]
            approved = [c for c in chores if c.status == ChoreStatus.APPROVED]
            return ChoreStats(
                total=len(chores),
                completed=len(completed),
                approved=len(approved),
                total_rewards=sum((c.reward for c in approved), Decimal("0")),
                completion_rate=len(completed) / len(chores) * 100 if chores else 0.0,
            )

    # =========================================================================
    # ACTIVITY AND REPORTS
    # =========================================================================

    async def log_child_activity(
        self,
        child_id: UUID,
        activity_type: ActivityType,
        description: str,
        amount: Optional[Union[Decimal, int, str]] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> ChildActivity:
        activity = ChildActivity(
            child_id=child_id,
            activity_type=activity_type,
            description=description,
            amount=Decimal(str(amount)) if amount is not None else None,
            details=details or {},
            timestamp=self._now(),
        )
        await self._activity.log(activity)
        return activity

    async def get_child_activity(
        self,
        child_id: UUID,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ChildActivity]:
        with self._operation("get child activity", child_id=child_id):
            return await self._activities.get_activities_by_child_id(child_id, limit, offset)

    async def get_activity_summary(self, child_id: UUID, days: int = 7) -> ActivitySummary:
        """Visible activity in the last `days` days, counted by type."""
        with self._operation("get activity summary", child_id=child_id):
            since = self._now() - dt.timedelta(days=days)
            activities = [
                a for a in await self._activities.get_activities_since(child_id, since)
                if a.is_visible
            ]
            return ActivitySummary(
                child_id=child_id,
                days=days,
                total_activities=len(activities),
                by_type=dict(Counter(a.activity_type for a in activities)),
                total_amount=sum(
                    (a.amount for a in activities if a.amount is not None), Decimal("0")
                ),
            )

    async def get_child_report(self, child_id: UUID, days: int = 30) -> Optional[ChildReport]:
        """Parent-facing snapshot of the last `days` days. None if the child is unknown."""
        with self._operation("get child report", child_id=child_id):
            child = await self._users.find_by_id(child_id)
            if child is None:
                return None

            now = self._now()
            end = now.date()
            start = end - dt.timedelta(days=days)
            expenses = await self._ledger.get_user_expenses(child_id, start, end)
            income = await self._ledger.get_user_income(child_id, start, end)
            goals = await self._ledger.get_user_savings_goals(child_id)
            requests = await self._approvals.get_requests_by_child_id(child_id)
            activities = await self._activities.get_activities_since(
                child_id, now - dt.timedelta(days=days)
            )

            return ChildReport(
                child_id=child_id,
                start_date=start,
                end_date=end,
                total_income=sum((i.boosted_amount for i in income), Decimal("0")),
                total_expenses=sum((e.amount for e in expenses), Decimal("0")),
                active_goals=sum(1 for g in goals if g.status == GoalStatus.ACTIVE),
                completed_goals=sum(1 for g in goals if g.status == GoalStatus.COMPLETED),
                pending_approvals=sum(1 for r in requests if r.status == ApprovalStatus.PENDING),
                chore_stats=await self.get_chore_stats(child_id, days),
                activity_count=len(activities),
            )
