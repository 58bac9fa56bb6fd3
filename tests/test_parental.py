"""
Tests for the parental control policy engine.
"""

import asyncio
import datetime as dt
from decimal import Decimal
from uuid import uuid4

import pytest

from farmledger.models.activity import ActivityType, ChildActivity
from farmledger.models.financial import (
    ExpenseCategory,
    GoalCategory,
    IncomeSource,
    RecurringPeriod,
)
from farmledger.models.parental import (
    ActionType,
    AllowanceFrequency,
    ApprovalStatus,
    ApprovalType,
    ChildActionStatus,
    ChoreStatus,
    RestrictionType,
    UserAccount,
    UserMode,
)
from farmledger.services import (
    LinkRejectedError,
    ParentalControlError,
    RelationshipError,
)
from farmledger.validation import ValidationError

from tests.conftest import NOW, TODAY


def child_expense(child_id, amount, **overrides):
    data = {
        "user_id": child_id,
        "amount": str(amount),
        "category": ExpenseCategory.ENTERTAINMENT,
        "description": "Game",
        "date": TODAY,
    }
    data.update(overrides)
    return data


def child_goal(child_id, target):
    return {
        "user_id": child_id,
        "title": "Console",
        "target_amount": str(target),
        "deadline": TODAY + dt.timedelta(days=120),
        "category": GoalCategory.GADGET,
    }


class FlakyLedgerCall:
    """Stands in for a ledger method that fails until told otherwise."""

    def __init__(self, real):
        self.real = real
        self.failing = True
        self.calls = 0

    async def __call__(self, *args, **kwargs):
        self.calls += 1
        if self.failing:
            raise RuntimeError("ledger unavailable")
        return await self.real(*args, **kwargs)


class TestLinks:
    """Tests for parent/child linking."""

    @pytest.mark.asyncio
    async def test_link_and_lookup(self, parental, adult, child):
        """Test a link is visible from both sides."""
        link = await parental.link_child_account(adult.id, child.id, nickname="Sammy")
        assert link.is_active
        children = await parental.get_linked_children(adult.id)
        assert [c.child_id for c in children] == [child.id]
        parent_link = await parental.get_parent_for_child(child.id)
        assert parent_link.parent_id == adult.id
        assert parent_link.nickname == "Sammy"

    @pytest.mark.asyncio
    async def test_parent_must_be_adult(self, parental, storage, child):
        """Only adult users can be parents."""
        other_child = await storage.users.create(UserAccount(display_name="Kit", mode=UserMode.CHILD))
        with pytest.raises(LinkRejectedError, match="Only adult users can be parents"):
            await parental.link_child_account(other_child.id, child.id)

    @pytest.mark.asyncio
    async def test_child_must_be_child(self, parental, storage, adult):
        """Only child users can be linked as children."""
        other_adult = await storage.users.create(UserAccount(display_name="Lee", mode=UserMode.ADULT))
        with pytest.raises(LinkRejectedError, match="Only child users"):
            await parental.link_child_account(adult.id, other_adult.id)

    @pytest.mark.asyncio
    async def test_child_has_one_parent(self, parental, storage, linked):
        """Test that a linked child can't be linked again."""
        _, child = linked
        other_adult = await storage.users.create(UserAccount(display_name="Lee", mode=UserMode.ADULT))
        with pytest.raises(LinkRejectedError, match="already exists"):
            await parental.link_child_account(other_adult.id, child.id)

    @pytest.mark.asyncio
    async def test_unlink_then_relink(self, parental, linked):
        """Test that unlinking frees the child for a new link."""
        adult, child = linked
        assert await parental.unlink_child_account(adult.id, child.id) is True
        assert await parental.unlink_child_account(adult.id, child.id) is False
        assert await parental.get_parent_for_child(child.id) is None
        link = await parental.link_child_account(adult.id, child.id)
        assert link.is_active

    @pytest.mark.asyncio
    async def test_link_recorded_as_activity(self, parental, linked):
        """Test that linking shows up in the child's activity."""
        _, child = linked
        activities = await parental.get_child_activity(child.id)
        assert [a.activity_type for a in activities] == [ActivityType.ACCOUNT_LINKED]

    @pytest.mark.asyncio
    async def test_nickname_update(self, parental, linked):
        """Test nickname edits and their length bound."""
        adult, child = linked
        link = await parental.update_child_nickname(adult.id, child.id, "Bean")
        assert link.nickname == "Bean"
        with pytest.raises(ValidationError):
            await parental.update_child_nickname(adult.id, child.id, "x" * 51)


class TestRestrictions:
    """Tests for restrictions and policy decisions."""

    @pytest.mark.asyncio
    async def test_over_limit_denied(self, parental, linked):
        """Test that 150 against a limit of 100 is denied with a reason."""
        adult, child = linked
        await parental.set_spending_limit(child.id, adult.id, 100)
        decision = await parental.validate_child_action(child.id, ActionType.EXPENSE, 150)
        assert not decision.allowed
        assert decision.reason == "Action exceeds expense limit of 100"
        restriction = (await parental.get_child_restrictions(child.id))[0]
        assert decision.restriction_type == RestrictionType.SPENDING_LIMIT
        assert decision.restriction.id == restriction.id
        assert decision.restriction.parent_id == adult.id
        assert decision.restriction.value == Decimal("100")

    @pytest.mark.asyncio
    async def test_within_limit_allowed(self, parental, linked):
        """Test amounts under or exactly at the limit are allowed."""
        adult, child = linked
        await parental.set_spending_limit(child.id, adult.id, 100)
        assert await parental.check_restrictions(child.id, ActionType.EXPENSE, 80)
        assert await parental.check_restrictions(child.id, ActionType.EXPENSE, 100)

    @pytest.mark.asyncio
    async def test_no_restriction_allows_everything(self, parental, linked):
        """Test that unrestricted actions are allowed."""
        _, child = linked
        assert await parental.check_restrictions(child.id, ActionType.GOAL, 10_000)

    @pytest.mark.asyncio
    async def test_setting_again_replaces_value(self, parental, linked):
        """Test one active restriction per type."""
        adult, child = linked
        first = await parental.set_spending_limit(child.id, adult.id, 100)
        second = await parental.set_spending_limit(child.id, adult.id, 40)
        assert second.id == first.id
        restrictions = await parental.get_child_restrictions(child.id)
        assert [(r.restriction_type, r.value) for r in restrictions] == [
            (RestrictionType.SPENDING_LIMIT, Decimal("40")),
        ]

    @pytest.mark.asyncio
    async def test_non_positive_limit_rejected(self, parental, linked):
        """Test that limits must be positive."""
        adult, child = linked
        with pytest.raises(ValidationError):
            await parental.set_goal_amount_limit(child.id, adult.id, 0)

    @pytest.mark.asyncio
    async def test_unlinked_parent_cannot_restrict(self, parental, adult, child):
        """Test that restrictions need an active link."""
        with pytest.raises(RelationshipError, match="relationship not found"):
            await parental.set_daily_usage_limit(child.id, adult.id, 60)

    @pytest.mark.asyncio
    async def test_remove_restriction(self, parental, linked):
        """Test that a removed restriction stops applying."""
        adult, child = linked
        restriction = await parental.set_spending_limit(child.id, adult.id, 10)
        assert await parental.remove_restriction(adult.id, restriction.id) is True
        assert await parental.remove_restriction(adult.id, restriction.id) is False
        assert await parental.check_restrictions(child.id, ActionType.EXPENSE, 50)


class TestApprovals:
    """Tests for approval requests and deferred ledger writes."""

    @pytest.mark.asyncio
    async def test_small_expense_recorded_directly(self, parental, ledger, linked):
        """Test that an allowed expense goes straight to the ledger."""
        adult, child = linked
        await parental.set_spending_limit(child.id, adult.id, 100)
        outcome = await parental.submit_child_expense(child_expense(child.id, 80))
        assert outcome.status == ChildActionStatus.RECORDED
        assert await ledger.get_expense(outcome.expense.id) is not None
        assert await parental.get_pending_approvals(adult.id) == []

    @pytest.mark.asyncio
    async def test_recorded_expense_carries_budget_alerts(self, parental, ledger, linked):
        """Test that budget alerts come back with a recorded child expense."""
        _, child = linked
        await ledger.set_budget_thresholds(child.id, [
            {"category": ExpenseCategory.ENTERTAINMENT, "monthly_limit": "20"},
        ])
        outcome = await parental.submit_child_expense(child_expense(child.id, 25))
        assert outcome.status == ChildActionStatus.RECORDED
        assert len(outcome.alerts) == 1

    @pytest.mark.asyncio
    async def test_large_expense_waits_for_approval(self, parental, ledger, linked):
        """Test an over-limit expense is deferred, then written on approval."""
        adult, child = linked
        await parental.set_spending_limit(child.id, adult.id, 100)

        outcome = await parental.submit_child_expense(child_expense(child.id, 150))
        assert outcome.status == ChildActionStatus.PENDING_APPROVAL
        request = outcome.approval_request
        assert request.parent_id == adult.id
        assert await parental.needs_approval(request.item_id, ApprovalType.EXPENSE)
        assert await ledger.get_user_expenses(child.id) == []

        approved = await parental.approve_request(request.id, adult.id, "OK this once")
        assert approved.status == ApprovalStatus.APPROVED
        expense = await ledger.get_expense(request.item_id)
        assert expense.amount == Decimal("150")
        assert not await parental.needs_approval(request.item_id, ApprovalType.EXPENSE)

    @pytest.mark.asyncio
    async def test_large_goal_waits_for_approval(self, parental, ledger, linked):
        """Test an over-limit goal is planted with the promised id on approval."""
        adult, child = linked
        await parental.set_goal_amount_limit(child.id, adult.id, 50)

        outcome = await parental.submit_child_goal(child_goal(child.id, 300))
        assert outcome.status == ChildActionStatus.PENDING_APPROVAL

        await parental.approve_request(outcome.approval_request.id, adult.id)
        goal = await ledger.get_savings_goal(outcome.approval_request.item_id)
        assert goal.target_amount == Decimal("300")

    @pytest.mark.asyncio
    async def test_small_goal_recorded_directly(self, parental, linked):
        """Test that a goal within the limit is planted at once."""
        adult, child = linked
        await parental.set_goal_amount_limit(child.id, adult.id, 500)
        outcome = await parental.submit_child_goal(child_goal(child.id, 300))
        assert outcome.status == ChildActionStatus.RECORDED
        assert outcome.goal.target_amount == Decimal("300")

    @pytest.mark.asyncio
    async def test_invalid_submission_never_reaches_parent(self, parental, linked):
        """Test that bad input is rejected before any request is opened."""
        adult, child = linked
        with pytest.raises(ValidationError):
            await parental.submit_child_expense(child_expense(child.id, -5))
        assert await parental.get_pending_approvals(adult.id) == []

    @pytest.mark.asyncio
    async def test_concurrent_approvals_write_once(self, parental, ledger, linked):
        """Two parents racing to approve: exactly one wins."""
        adult, child = linked
        await parental.set_spending_limit(child.id, adult.id, 10)
        outcome = await parental.submit_child_expense(child_expense(child.id, 30))
        request_id = outcome.approval_request.id

        results = await asyncio.gather(
            parental.approve_request(request_id, adult.id),
            parental.approve_request(request_id, adult.id),
        )
        assert sum(1 for r in results if r is not None) == 1
        assert len(await ledger.get_user_expenses(child.id)) == 1

    @pytest.mark.asyncio
    async def test_reject_request(self, parental, ledger, linked):
        """Test a rejected request writes nothing and can't be approved."""
        adult, child = linked
        await parental.set_spending_limit(child.id, adult.id, 10)
        outcome = await parental.submit_child_expense(child_expense(child.id, 30))
        request_id = outcome.approval_request.id

        rejected = await parental.reject_request(request_id, adult.id, "Too much")
        assert rejected.status == ApprovalStatus.REJECTED
        assert rejected.parent_response == "Too much"
        assert await parental.approve_request(request_id, adult.id) is None
        assert await ledger.get_user_expenses(child.id) == []

    @pytest.mark.asyncio
    async def test_other_parent_cannot_approve(self, parental, storage, linked):
        """Test that only the request's parent may answer it."""
        adult, child = linked
        await parental.set_spending_limit(child.id, adult.id, 10)
        outcome = await parental.submit_child_expense(child_expense(child.id, 30))
        stranger = await storage.users.create(UserAccount(display_name="Lee", mode=UserMode.ADULT))
        with pytest.raises(RelationshipError):
            await parental.approve_request(outcome.approval_request.id, stranger.id)

    @pytest.mark.asyncio
    async def test_unlinked_child_cannot_request(self, parental, child):
        """Test that a request needs a linked parent."""
        with pytest.raises(RelationshipError, match="not linked"):
            await parental.request_approval(child.id, ApprovalType.REWARD, {"reason": "please"})

    @pytest.mark.asyncio
    async def test_missing_request_returns_none(self, parental, linked):
        """Test approving an unknown request is None."""
        adult, _ = linked
        assert await parental.approve_request(uuid4(), adult.id) is None

    @pytest.mark.asyncio
    async def test_failed_write_reopens_request(self, parental, ledger, linked, monkeypatch):
        """A failed deferred write leaves the request pending, not approved."""
        adult, child = linked
        await parental.set_spending_limit(child.id, adult.id, 10)
        outcome = await parental.submit_child_expense(child_expense(child.id, 30))
        request = outcome.approval_request

        flaky = FlakyLedgerCall(ledger.log_expense)
        monkeypatch.setattr(ledger, "log_expense", flaky)
        with pytest.raises(ParentalControlError, match="Failed to approve request"):
            await parental.approve_request(request.id, adult.id)

        pending = await parental.get_pending_approvals(adult.id)
        assert [r.id for r in pending] == [request.id]
        assert await ledger.get_expense(request.item_id) is None

        flaky.failing = False
        approved = await parental.approve_request(request.id, adult.id)
        assert approved.status == ApprovalStatus.APPROVED
        assert await ledger.get_expense(request.item_id) is not None


class TestExpiry:
    """Tests for approval expiry."""

    @pytest.mark.asyncio
    async def test_sweep_rejects_once(self, parental, clock, linked):
        """Test the sweep counts each expired request exactly once."""
        adult, child = linked
        request = await parental.request_approval(
            child.id,
            ApprovalType.REWARD,
            {"reason": "extra"},
            expires_at=NOW + dt.timedelta(hours=1),
        )
        assert await parental.process_expired_requests() == 0

        clock.advance(hours=2)
        assert await parental.process_expired_requests() == 1
        assert await parental.process_expired_requests() == 0

        stored = (await parental.get_child_report(child.id)).pending_approvals
        assert stored == 0
        assert await parental.get_pending_approvals(adult.id) == []
        assert not await parental.needs_approval(request.item_id, ApprovalType.REWARD)

    @pytest.mark.asyncio
    async def test_expired_request_cannot_be_approved(self, parental, storage, clock, linked):
        """Test approving after expiry auto-rejects instead."""
        adult, child = linked
        request = await parental.request_approval(
            child.id,
            ApprovalType.REWARD,
            {},
            expires_at=NOW + dt.timedelta(minutes=5),
        )
        clock.advance(minutes=10)
        assert await parental.approve_request(request.id, adult.id) is None

        stored = await storage.approvals.find_by_id(request.id)
        assert stored.status == ApprovalStatus.REJECTED
        assert stored.parent_response == "Auto-rejected due to expiration"

    @pytest.mark.asyncio
    async def test_naive_expiry_rejected(self, parental, clock, linked):
        """Test a timezone-less expiry is refused and the sweep keeps working."""
        adult, child = linked
        with pytest.raises(ValidationError):
            await parental.request_approval(
                child.id,
                ApprovalType.REWARD,
                {},
                expires_at=dt.datetime(2020, 1, 1),
            )
        await parental.request_approval(
            child.id,
            ApprovalType.REWARD,
            {},
            expires_at=NOW + dt.timedelta(hours=1),
        )
        clock.advance(hours=2)
        assert await parental.process_expired_requests() == 1
        assert await parental.get_pending_approvals(adult.id) == []

    @pytest.mark.asyncio
    async def test_default_expiry_from_settings(self, parental, parental_settings, linked):
        """Test the configured default lifetime is applied."""
        _, child = linked
        parental_settings.approval_expiry_hours = 24
        request = await parental.request_approval(child.id, ApprovalType.REWARD, {})
        assert request.expires_at == NOW + dt.timedelta(hours=24)


class TestChores:
    """Tests for the chore lifecycle and payouts."""

    @pytest.fixture
    async def chore(self, parental, linked):
        adult, child = linked
        return await parental.create_chore({
            "child_id": child.id,
            "parent_id": adult.id,
            "title": "Feed the chickens",
            "reward": "5",
        })

    @pytest.mark.asyncio
    async def test_naive_due_date_rejected(self, parental, linked):
        """Test a chore due date must carry a timezone."""
        adult, child = linked
        with pytest.raises(ValidationError):
            await parental.create_chore({
                "child_id": child.id,
                "parent_id": adult.id,
                "title": "Rake leaves",
                "reward": "3",
                "due_date": "2026-10-20T12:00:00",
            })
        assert await parental.get_child_chores(child.id) == []

    @pytest.mark.asyncio
    async def test_complete_then_approve_pays_reward(self, parental, ledger, linked, chore):
        """Test the payout lands as chores income for the child."""
        adult, child = linked
        completed = await parental.complete_chore(chore.id, child.id)
        assert completed.status == ChoreStatus.COMPLETED
        assert [c.id for c in await parental.get_chores_awaiting_approval(adult.id)] == [chore.id]

        approved = await parental.approve_chore(chore.id, adult.id)
        assert approved.status == ChoreStatus.APPROVED

        income = await ledger.get_income_by_source(child.id, IncomeSource.CHORES)
        assert len(income) == 1
        assert income[0].amount == Decimal("5")
        assert income[0].description == "Reward for: Feed the chickens"
        assert income[0].streak_count == 1

    @pytest.mark.asyncio
    async def test_approve_requires_completion(self, parental, linked, chore):
        """Test an unstarted chore can't be approved."""
        adult, _ = linked
        assert await parental.approve_chore(chore.id, adult.id) is None

    @pytest.mark.asyncio
    async def test_reward_paid_once(self, parental, ledger, linked, chore):
        """Test a second approval pays nothing."""
        adult, child = linked
        await parental.complete_chore(chore.id, child.id)
        await parental.approve_chore(chore.id, adult.id)
        assert await parental.approve_chore(chore.id, adult.id) is None
        assert len(await ledger.get_user_income(child.id)) == 1

    @pytest.mark.asyncio
    async def test_only_assigned_child_completes(self, parental, storage, linked, chore):
        """Test a chore belongs to one child."""
        other = await storage.users.create(UserAccount(display_name="Kit", mode=UserMode.CHILD))
        with pytest.raises(RelationshipError):
            await parental.complete_chore(chore.id, other.id)

    @pytest.mark.asyncio
    async def test_reject_sends_back(self, parental, linked, chore):
        """Test a rejected chore goes back to unstarted."""
        adult, child = linked
        await parental.complete_chore(chore.id, child.id)
        rejected = await parental.reject_chore(chore.id, adult.id)
        assert rejected.status == ChoreStatus.UNSTARTED
        assert rejected.completed_at is None
        assert [c.id for c in await parental.get_pending_chores(child.id)] == [chore.id]

    @pytest.mark.asyncio
    async def test_failed_payout_reverts_approval(self, parental, ledger, linked, chore, monkeypatch):
        """A failed payout puts the chore back to awaiting approval."""
        adult, child = linked
        await parental.complete_chore(chore.id, child.id)

        flaky = FlakyLedgerCall(ledger.log_income)
        monkeypatch.setattr(ledger, "log_income", flaky)
        with pytest.raises(ParentalControlError, match="Failed to approve chore"):
            await parental.approve_chore(chore.id, adult.id)

        awaiting = await parental.get_chores_awaiting_approval(adult.id)
        assert [c.id for c in awaiting] == [chore.id]

        flaky.failing = False
        assert (await parental.approve_chore(chore.id, adult.id)).status == ChoreStatus.APPROVED

    @pytest.mark.asyncio
    async def test_recurring_chore_spawns_next(self, parental, linked):
        """Test approving a recurring chore creates the next one."""
        adult, child = linked
        chore = await parental.create_chore({
            "child_id": child.id,
            "parent_id": adult.id,
            "title": "Water plants",
            "reward": "1",
            "is_recurring": True,
            "recurring_period": RecurringPeriod.WEEKLY,
        })
        await parental.complete_chore(chore.id, child.id)
        await parental.approve_chore(chore.id, adult.id)

        pending = await parental.get_pending_chores(child.id)
        assert len(pending) == 1
        assert pending[0].id != chore.id
        assert pending[0].title == "Water plants"
        assert pending[0].due_date == NOW + dt.timedelta(days=7)

    @pytest.mark.asyncio
    async def test_chore_needs_link(self, parental, adult, child):
        """Test that chores can only be set for linked children."""
        with pytest.raises(RelationshipError):
            await parental.create_chore({
                "child_id": child.id,
                "parent_id": adult.id,
                "title": "Sweep",
                "reward": "2",
            })

    @pytest.mark.asyncio
    async def test_chore_stats(self, parental, linked, chore):
        """Test counts, rewards and completion rate."""
        adult, child = linked
        await parental.create_chore({
            "child_id": child.id,
            "parent_id": adult.id,
            "title": "Sweep",
            "reward": "2",
        })
        await parental.complete_chore(chore.id, child.id)
        await parental.approve_chore(chore.id, adult.id)

        stats = await parental.get_chore_stats(child.id)
        assert stats.total == 2
        assert stats.completed == 1
        assert stats.approved == 1
        assert stats.total_rewards == Decimal("5")
        assert stats.completion_rate == 50.0


class TestAllowances:
    """Tests for allowance scheduling and payouts."""

    @pytest.fixture
    def weekly(self, linked):
        adult, child = linked
        return {
            "child_id": child.id,
            "parent_id": adult.id,
            "amount": "10",
            "frequency": AllowanceFrequency.WEEKLY,
            "day_of_week": 0,
        }

    @pytest.mark.asyncio
    async def test_setup_schedules_first_payment(self, parental, weekly):
        """Test the first payment is the next Monday."""
        allowance = await parental.setup_allowance(weekly)
        assert allowance.next_payment_at.date() == dt.date(2026, 10, 19)
        assert allowance.last_paid_at is None

    @pytest.mark.asyncio
    async def test_setup_replaces_active_allowance(self, parental, weekly, linked):
        """Test one active allowance per child."""
        _, child = linked
        first = await parental.setup_allowance(weekly)
        second = await parental.setup_allowance({**weekly, "amount": "15"})
        current = await parental.get_child_allowance(child.id)
        assert current.id == second.id
        assert current.id != first.id

    @pytest.mark.asyncio
    async def test_setup_needs_link(self, parental, adult, child):
        """Test that allowances need an active link."""
        with pytest.raises(RelationshipError):
            await parental.setup_allowance({
                "child_id": child.id,
                "parent_id": adult.id,
                "amount": "10",
                "frequency": AllowanceFrequency.DAILY,
            })

    @pytest.mark.asyncio
    async def test_naive_dates_rejected(self, parental, weekly, linked):
        """Test allowance dates must carry a timezone."""
        _, child = linked
        with pytest.raises(ValidationError):
            await parental.setup_allowance({**weekly, "start_date": "2026-11-01T00:00:00"})
        with pytest.raises(ValidationError):
            await parental.setup_allowance({**weekly, "end_date": "2027-01-01T00:00:00"})
        assert await parental.get_child_allowance(child.id) is None

        allowance = await parental.setup_allowance({**weekly, "start_date": "2026-11-01T00:00:00+00:00"})
        assert allowance.next_payment_at >= dt.datetime(2026, 11, 1, tzinfo=dt.timezone.utc)

    @pytest.mark.asyncio
    async def test_nothing_due_yet(self, parental, weekly):
        """Test nothing is paid before the schedule says so."""
        await parental.setup_allowance(weekly)
        assert await parental.process_due_allowances() == []

    @pytest.mark.asyncio
    async def test_due_allowance_paid_once(self, parental, ledger, clock, weekly, linked):
        """Test a due allowance is paid as income and rescheduled."""
        _, child = linked
        allowance = await parental.setup_allowance(weekly)
        clock.advance(days=3)

        payments = await parental.process_due_allowances()
        assert [(p.allowance_id, p.amount) for p in payments] == [(allowance.id, Decimal("10"))]
        assert await parental.process_due_allowances() == []

        income = await ledger.get_income(payments[0].income_id)
        assert income.source == IncomeSource.ALLOWANCE
        assert income.description == "Weekly allowance"

        current = await parental.get_child_allowance(child.id)
        assert current.last_paid_at == clock.now
        assert current.next_payment_at.date() == dt.date(2026, 10, 26)

    @pytest.mark.asyncio
    async def test_failed_payout_restores_schedule(self, parental, ledger, clock, weekly, linked, monkeypatch):
        """A failed payout is retried on the next run."""
        _, child = linked
        allowance = await parental.setup_allowance(weekly)
        clock.advance(days=3)

        flaky = FlakyLedgerCall(ledger.log_income)
        monkeypatch.setattr(ledger, "log_income", flaky)
        assert await parental.process_due_allowances() == []

        current = await parental.get_child_allowance(child.id)
        assert current.next_payment_at == allowance.next_payment_at
        assert current.last_paid_at is None

        flaky.failing = False
        assert len(await parental.process_due_allowances()) == 1

    @pytest.mark.asyncio
    async def test_update_and_deactivate(self, parental, clock, weekly, linked):
        """Test amount edits and deactivation."""
        _, child = linked
        allowance = await parental.setup_allowance(weekly)
        updated = await parental.update_allowance_amount(allowance.id, "12.50")
        assert updated.amount == Decimal("12.50")
        with pytest.raises(ValidationError):
            await parental.update_allowance_amount(allowance.id, 0)

        assert await parental.deactivate_allowance(allowance.id) is True
        assert await parental.get_child_allowance(child.id) is None
        clock.advance(days=3)
        assert await parental.process_due_allowances() == []


class TestActivityAndReports:
    """Tests for the parent-facing activity views."""

    @pytest.mark.asyncio
    async def test_activity_summary_window(self, parental, clock, linked):
        """Test the summary covers only the requested window."""
        _, child = linked
        clock.advance(days=10)
        await parental.submit_child_expense(child_expense(child.id, 4, date=clock.now.date()))
        await parental.log_child_activity(child.id, ActivityType.REWARD_CLAIMED, "Bonus", amount="2")

        summary = await parental.get_activity_summary(child.id, days=7)
        assert summary.total_activities == 2
        assert summary.by_type == {
            ActivityType.EXPENSE_LOGGED: 1,
            ActivityType.REWARD_CLAIMED: 1,
        }
        assert summary.total_amount == Decimal("6")

    @pytest.mark.asyncio
    async def test_hidden_activity_not_summarized(self, parental, storage, linked):
        """Test activities hidden from parents are left out."""
        _, child = linked
        await storage.activities.append(ChildActivity(
            child_id=child.id,
            activity_type=ActivityType.INCOME_LOGGED,
            description="Private",
            timestamp=NOW,
            is_visible=False,
        ))
        summary = await parental.get_activity_summary(child.id)
        assert ActivityType.INCOME_LOGGED not in summary.by_type

    @pytest.mark.asyncio
    async def test_activity_paging(self, parental, clock, linked):
        """Test activity is newest first and pages with limit/offset."""
        _, child = linked
        for n in range(3):
            clock.advance(minutes=1)
            await parental.log_child_activity(child.id, ActivityType.REWARD_CLAIMED, f"Bonus {n}")

        page = await parental.get_child_activity(child.id, limit=2, offset=0)
        assert [a.description for a in page] == ["Bonus 2", "Bonus 1"]

    @pytest.mark.asyncio
    async def test_child_report(self, parental, linked):
        """Test the report totals."""
        adult, child = linked
        chore = await parental.create_chore({
            "child_id": child.id,
            "parent_id": adult.id,
            "title": "Dishes",
            "reward": "5",
        })
        await parental.complete_chore(chore.id, child.id)
        await parental.approve_chore(chore.id, adult.id)
        await parental.set_spending_limit(child.id, adult.id, 10)
        await parental.submit_child_expense(child_expense(child.id, 4))
        await parental.submit_child_expense(child_expense(child.id, 40))
        await parental.submit_child_goal(child_goal(child.id, 30))

        report = await parental.get_child_report(child.id)
        assert report.total_income == Decimal("5.5")
        assert report.total_expenses == Decimal("4")
        assert report.active_goals == 1
        assert report.pending_approvals == 1
        assert report.chore_stats.approved == 1
        assert report.end_date == TODAY

    @pytest.mark.asyncio
    async def test_report_for_unknown_child(self, parental):
        """Test an unknown child has no report."""
        assert await parental.get_child_report(uuid4()) is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
