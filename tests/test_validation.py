"""
Tests for two-stage record validation.
"""

import datetime as dt
from decimal import Decimal
from uuid import uuid4

import pytest

from farmledger.config import LedgerSettings
from farmledger.models.financial import (
    ExpenseCategory,
    GoalCategory,
    GoalStatus,
    IncomeSource,
    SavingsGoal,
)
from farmledger.validation import RecordValidator, ValidationError

from tests.conftest import NOW, TODAY


@pytest.fixture
def validator():
    return RecordValidator(LedgerSettings(), clock=lambda: NOW)


def goal_data(**overrides):
    data = {
        "user_id": uuid4(),
        "title": "Tablet",
        "target_amount": "300",
        "deadline": TODAY + dt.timedelta(days=60),
        "category": GoalCategory.GADGET,
    }
    data.update(overrides)
    return data


def expense_data(**overrides):
    data = {
        "user_id": uuid4(),
        "amount": "12.50",
        "category": ExpenseCategory.FOOD,
        "description": "Pizza",
        "date": TODAY,
    }
    data.update(overrides)
    return data


class TestSchemaStage:
    """Stage 1: schema errors become one ValidationError."""

    def test_valid_goal(self, validator):
        """Test a valid goal passes."""
        goal = validator.validate_goal_input(goal_data())
        assert goal.target_amount == Decimal("300")

    def test_all_schema_issues_reported(self, validator):
        """Every bad field is listed, not just the first."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_goal_input(goal_data(title="", target_amount="-5"))
        assert set(exc_info.value.fields) == {"title", "target_amount"}

    def test_missing_field(self, validator):
        """Test that a missing required field is reported."""
        data = expense_data()
        del data["description"]
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_expense_input(data)
        assert "description" in exc_info.value.fields

    def test_unknown_field_rejected(self, validator):
        """Test that unknown fields are rejected."""
        with pytest.raises(ValidationError):
            validator.validate_expense_input(expense_data(color="red"))

    def test_recurring_without_period(self, validator):
        """Test the recurring-period rule surfaces as a ValidationError."""
        with pytest.raises(ValidationError, match="recurring period"):
            validator.validate_expense_input(expense_data(is_recurring=True))

    def test_income_multiplier_rejected(self, validator):
        """Callers cannot set their own multiplier."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_income_input({
                "user_id": uuid4(),
                "amount": "10",
                "source": IncomeSource.GIFT,
                "description": "Gift",
                "date": TODAY,
                "multiplier": "2.0",
            })
        assert "multiplier" in exc_info.value.fields


class TestSemanticStage:
    """Stage 2: rules that need more than the schema."""

    def test_active_goal_needs_future_deadline(self, validator):
        """Test that today's deadline is rejected for an active goal."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_goal_input(goal_data(deadline=TODAY))
        assert exc_info.value.issues[0].issue_type == "past_deadline"

    def test_paused_goal_may_have_past_deadline(self, validator):
        """Test that the deadline rule only applies to active goals."""
        goal = validator.validate_goal_input(
            goal_data(deadline=TODAY - dt.timedelta(days=1), status=GoalStatus.PAUSED)
        )
        assert goal.status == GoalStatus.PAUSED

    def test_new_goal_cannot_start_completed(self, validator):
        """Test that new goals start active or paused."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_goal_input(goal_data(status=GoalStatus.COMPLETED))
        assert exc_info.value.fields == ["status"]

    def test_too_many_tags(self, validator):
        """Test the tag count bound."""
        tags = [f"tag{i}" for i in range(11)]
        with pytest.raises(ValidationError, match="At most 10 tags"):
            validator.validate_expense_input(expense_data(tags=tags))

    def test_tag_too_long(self, validator):
        """Test the tag length bound."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_expense_input(expense_data(tags=["x" * 31]))
        assert exc_info.value.issues[0].issue_type == "too_long"


class TestUpdates:
    """Updates validate the merged record."""

    @pytest.fixture
    def goal(self):
        return SavingsGoal(
            user_id=uuid4(),
            title="Tablet",
            target_amount=Decimal("300"),
            current_amount=Decimal("120"),
            deadline=TODAY + dt.timedelta(days=30),
            category=GoalCategory.GADGET,
        )

    def test_target_below_progress_rejected(self, validator, goal):
        """Test that the target can't drop below what's saved."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_goal_update(goal, {"target_amount": "100"})
        assert exc_info.value.issues[0].issue_type == "below_progress"

    def test_untouched_deadline_not_rechecked(self, validator, goal):
        """An old deadline doesn't block unrelated edits."""
        stale = goal.model_copy(update={"deadline": TODAY - dt.timedelta(days=3)})
        merged = validator.validate_goal_update(stale, {"title": "iPad"})
        assert merged.title == "iPad"

    def test_moving_deadline_into_past_rejected(self, validator, goal):
        """Test that an edit can't give an active goal a past deadline."""
        with pytest.raises(ValidationError):
            validator.validate_goal_update(goal, {"deadline": TODAY - dt.timedelta(days=1)})

    def test_update_rejects_identity_fields(self, validator, goal):
        """Test that ids and owners can't be edited."""
        with pytest.raises(ValidationError):
            validator.validate_goal_update(goal, {"user_id": uuid4()})
