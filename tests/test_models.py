"""
Tests for Finance Farm Ledger

Test strategy:
1. Unit tests for individual components (models, validators, engine rules)
2. Service tests against in-memory storage with a fixed clock
3. No network or external services in tests
"""

import datetime as dt
from decimal import Decimal
from uuid import uuid4

import pytest

from farmledger.models.activity import (
    ActivityEventBuilder,
    ActivityType,
    ChildActivity,
)
from farmledger.models.financial import (
    Expense,
    ExpenseCategory,
    ExpenseInput,
    GoalCategory,
    Income,
    IncomeInput,
    IncomeSource,
    RecurringPeriod,
    SavingsGoal,
    SavingsGoalInput,
    TimePeriod,
    PeriodType,
)
from farmledger.models.parental import (
    AllowanceConfigInput,
    AllowanceFrequency,
    ApprovalRequest,
    ApprovalType,
    ChoreInput,
)


class TestGoalModels:
    """Tests for savings goal models."""

    def test_goal_input_creation(self):
        """Test SavingsGoalInput creation with defaults."""
        goal = SavingsGoalInput(
            user_id=uuid4(),
            title="  New Bike  ",
            target_amount=Decimal("250.00"),
            deadline=dt.date(2027, 3, 1),
            category=GoalCategory.GADGET,
        )
        assert goal.title == "New Bike"
        assert goal.crop_type == "carrot"
        assert goal.is_recurring is False

    def test_goal_rejects_non_positive_target(self):
        """Test that a zero target is rejected."""
        with pytest.raises(ValueError):
            SavingsGoalInput(
                user_id=uuid4(),
                title="Nothing",
                target_amount=Decimal("0"),
                deadline=dt.date(2027, 3, 1),
                category=GoalCategory.OTHER,
            )

    def test_recurring_goal_needs_period(self):
        """Test that a recurring goal without a period is rejected."""
        with pytest.raises(ValueError, match="must have a recurring period"):
            SavingsGoalInput(
                user_id=uuid4(),
                title="Weekly jar",
                target_amount=Decimal("10"),
                deadline=dt.date(2027, 3, 1),
                category=GoalCategory.OTHER,
                is_recurring=True,
            )

    def test_goal_rejects_daily_period(self):
        """Goals recur weekly, monthly or yearly only."""
        with pytest.raises(ValueError, match="period must be one of"):
            SavingsGoalInput(
                user_id=uuid4(),
                title="Daily jar",
                target_amount=Decimal("10"),
                deadline=dt.date(2027, 3, 1),
                category=GoalCategory.OTHER,
                is_recurring=True,
                recurring_period=RecurringPeriod.DAILY,
            )

    def test_progress_percentage_is_capped(self):
        """Test that progress never reports above 100%."""
        goal = SavingsGoal(
            user_id=uuid4(),
            title="Overfilled",
            target_amount=Decimal("100"),
            current_amount=Decimal("150"),
            deadline=dt.date(2027, 3, 1),
            category=GoalCategory.OTHER,
        )
        assert goal.progress_percentage == 100.0
        assert goal.remaining_amount == Decimal("0")


class TestExpenseModels:
    """Tests for expense models."""

    def test_tags_are_normalized(self):
        """Tags are trimmed, lower-cased and de-duplicated."""
        expense = ExpenseInput(
            user_id=uuid4(),
            amount=Decimal("4.50"),
            category=ExpenseCategory.FOOD,
            description="Lunch",
            date=dt.date(2026, 10, 16),
            tags=[" School ", "school", "", "Snack"],
        )
        assert expense.tags == ["school", "snack"]

    def test_expense_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            ExpenseInput(
                user_id=uuid4(),
                amount=Decimal("-1"),
                category=ExpenseCategory.FOOD,
                description="Refund?",
                date=dt.date(2026, 10, 16),
            )

    def test_expense_rejects_blank_description(self):
        """Test that a whitespace-only description is rejected."""
        with pytest.raises(ValueError):
            ExpenseInput(
                user_id=uuid4(),
                amount=Decimal("1"),
                category=ExpenseCategory.FOOD,
                description="   ",
                date=dt.date(2026, 10, 16),
            )

    def test_expense_round_trips_through_json(self):
        """Stored documents load back into equal records."""
        expense = Expense(
            user_id=uuid4(),
            amount=Decimal("12.34"),
            category=ExpenseCategory.TRANSPORT,
            description="Bus pass",
            date=dt.date(2026, 10, 1),
        )
        assert Expense.model_validate(expense.model_dump(mode="json")) == expense


class TestIncomeModels:
    """Tests for income models."""

    def test_income_input_rejects_multiplier(self):
        """Callers can't supply their own streak bonus."""
        with pytest.raises(ValueError):
            IncomeInput(
                user_id=uuid4(),
                amount=Decimal("20"),
                source=IncomeSource.GIFT,
                description="Birthday",
                date=dt.date(2026, 10, 16),
                multiplier=Decimal("2.0"),
            )

    def test_boosted_amount(self):
        """Test boosted amount is amount * multiplier."""
        income = Income(
            user_id=uuid4(),
            amount=Decimal("20"),
            source=IncomeSource.GIFT,
            description="Birthday",
            date=dt.date(2026, 10, 16),
            multiplier=Decimal("1.5"),
            streak_count=5,
        )
        assert income.boosted_amount == Decimal("30.0")

    def test_multiplier_below_one_rejected(self):
        """Test that a multiplier below 1 is rejected."""
        with pytest.raises(ValueError):
            Income(
                user_id=uuid4(),
                amount=Decimal("20"),
                source=IncomeSource.GIFT,
                description="Birthday",
                date=dt.date(2026, 10, 16),
                multiplier=Decimal("0.5"),
            )


class TestParentalModels:
    """Tests for parental control models."""

    def test_weekly_allowance_needs_day_of_week(self):
        """Test that weekly allowances require day_of_week."""
        with pytest.raises(ValueError, match="day_of_week"):
            AllowanceConfigInput(
                child_id=uuid4(),
                parent_id=uuid4(),
                amount=Decimal("5"),
                frequency=AllowanceFrequency.WEEKLY,
            )

    def test_allowance_end_after_start(self):
        """Test that an allowance can't end before it starts."""
        start = dt.datetime(2026, 10, 1, tzinfo=dt.timezone.utc)
        with pytest.raises(ValueError, match="end_date must be after start_date"):
            AllowanceConfigInput(
                child_id=uuid4(),
                parent_id=uuid4(),
                amount=Decimal("5"),
                frequency=AllowanceFrequency.DAILY,
                start_date=start,
                end_date=start,
            )

    def test_recurring_chore_needs_period(self):
        """Test that recurring chores require a period."""
        with pytest.raises(ValueError, match="must have a recurring period"):
            ChoreInput(
                child_id=uuid4(),
                parent_id=uuid4(),
                title="Dishes",
                reward=Decimal("2"),
                is_recurring=True,
            )

    def test_approval_request_expiry(self):
        """A request expires strictly after expires_at."""
        expires = dt.datetime(2026, 10, 16, 12, tzinfo=dt.timezone.utc)
        request = ApprovalRequest(
            child_id=uuid4(),
            parent_id=uuid4(),
            request_type=ApprovalType.EXPENSE,
            expires_at=expires,
        )
        assert request.is_pending
        assert not request.is_expired(expires)
        assert request.is_expired(expires + dt.timedelta(seconds=1))

    def test_approval_request_without_expiry_never_expires(self):
        """Test that requests without expires_at never expire."""
        request = ApprovalRequest(
            child_id=uuid4(),
            parent_id=uuid4(),
            request_type=ApprovalType.GOAL,
        )
        assert not request.is_expired(dt.datetime(2100, 1, 1, tzinfo=dt.timezone.utc))


class TestActivityModels:
    """Tests for child activity records."""

    def test_activity_to_log_dict(self):
        """Test conversion to a structured log dict."""
        child_id = uuid4()
        activity = ActivityEventBuilder.expense_logged(
            child_id=child_id,
            expense_id=uuid4(),
            amount=Decimal("3.50"),
            category="food",
        )
        log_dict = activity.to_log_dict()
        assert log_dict["child_id"] == str(child_id)
        assert log_dict["activity_type"] == "expense_logged"

    def test_builder_chore_completed(self):
        """Test the chore completed builder."""
        activity = ActivityEventBuilder.chore_completed(uuid4(), uuid4(), "Dishes")
        assert isinstance(activity, ChildActivity)
        assert activity.activity_type == ActivityType.CHORE_COMPLETED
        assert "Dishes" in activity.description


class TestTimePeriod:
    """Tests for reporting windows."""

    def test_period_end_before_start_rejected(self):
        """Test that an inverted window is rejected."""
        with pytest.raises(ValueError, match="Period end cannot be before start"):
            TimePeriod(
                type=PeriodType.MONTHLY,
                start_date=dt.date(2026, 10, 31),
                end_date=dt.date(2026, 10, 1),
            )


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
