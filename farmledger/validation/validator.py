"""
Two-Stage Record Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Type checking, required fields, bounded lengths
- Positive amounts
- isRecurring => recurringPeriod
- Delegated to the pydantic models; their errors are translated here

STAGE 2 - SEMANTIC VALIDATION:
- Active goals must keep a future deadline
- Goal targets cannot drop below saved progress
- Tag count and length bounds

Stage 2 only runs when stage 1 passes. Either stage failing raises a
single ValidationError listing every issue found, before anything is
written. Validation NEVER silently fixes issues.
"""

import datetime as dt
from typing import Any, Callable, Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaError

from farmledger.config import LedgerSettings, get_settings
from farmledger.models.financial import (
    Expense,
    ExpenseInput,
    ExpenseUpdate,
    GoalStatus,
    Income,
    IncomeInput,
    IncomeUpdate,
    SavingsGoal,
    SavingsGoalInput,
    SavingsGoalUpdate,
    utc_now,
)


ModelT = TypeVar("ModelT", bound=BaseModel)


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'greater_than', 'past_deadline')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )


class ValidationError(Exception):
    """Input was malformed or inconsistent. Raised before any write."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        details = "; ".join(f"{i.field}: {i.message}" for i in issues)
        super().__init__(f"Validation failed: {details}")

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]


class GoalStateError(ValidationError):
    """An illegal goal lifecycle transition was attempted."""

    def __init__(self, message: str, field: str = "status"):
        super().__init__([ValidationIssue(
            field=field,
            issue_type="invalid_transition",
            message=message,
        )])


def _schema_issues(error: SchemaError) -> list[ValidationIssue]:
    issues = []
    for err in error.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "record"
        issues.append(ValidationIssue(
            field=location,
            issue_type=err.get("type", "invalid"),
            message=err.get("msg", "Invalid value"),
        ))
    return issues


def _as_dict(data: Union[BaseModel, dict[str, Any]], exclude_unset: bool = False) -> dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=exclude_unset)
    return dict(data)


class RecordValidator:
    """
    Validates goal, expense and income records for create and update.

    Create paths return the validated input model. Update paths merge the
    requested changes over the stored record and return the merged record,
    so cross-field rules hold for the result, not just the patch.
    """

    def __init__(
        self,
        settings: Optional[LedgerSettings] = None,
        clock: Optional[Callable[[], dt.datetime]] = None,
    ):
        self._settings = settings or get_settings().ledger
        self._clock = clock or utc_now

    def _parse(self, model: Type[ModelT], data: dict[str, Any]) -> ModelT:
        """Stage 1: schema validation."""
        try:
            return model.model_validate(data)
        except SchemaError as e:
            raise ValidationError(_schema_issues(e)) from e

    def _today(self) -> dt.date:
        return self._clock().date()

    # =========================================================================
    # GOALS
    # =========================================================================

    def _goal_issues(
        self,
        status: GoalStatus,
        deadline: dt.date,
        check_deadline: bool,
        target_amount=None,
        current_amount=None,
    ) -> list[ValidationIssue]:
        """Stage 2 for goals."""
        issues = []

        if check_deadline and status == GoalStatus.ACTIVE and deadline <= self._today():
            issues.append(ValidationIssue(
                field="deadline",
                issue_type="past_deadline",
                message="Active goals must have a deadline in the future",
            ))

        if (
            target_amount is not None
            and current_amount is not None
            and target_amount < current_amount
        ):
            issues.append(ValidationIssue(
                field="target_amount",
                issue_type="below_progress",
                message=(
                    f"Target ({target_amount}) cannot be below the amount "
                    f"already saved ({current_amount})"
                ),
            ))

        return issues

    def validate_goal_input(
        self,
        data: Union[SavingsGoalInput, dict[str, Any]],
    ) -> SavingsGoalInput:
        goal = self._parse(SavingsGoalInput, _as_dict(data))
        issues = self._goal_issues(goal.status, goal.deadline, check_deadline=True)
        if goal.status not in (GoalStatus.ACTIVE, GoalStatus.PAUSED):
            issues.append(ValidationIssue(
                field="status",
                issue_type="invalid_initial_status",
                message="New goals must start active or paused",
            ))
        if issues:
            raise ValidationError(issues)
        return goal

    def validate_goal_update(
        self,
        goal: SavingsGoal,
        changes: Union[SavingsGoalUpdate, dict[str, Any]],
    ) -> SavingsGoal:
        patch = self._parse(SavingsGoalUpdate, _as_dict(changes, exclude_unset=True))
        requested = patch.model_dump(exclude_unset=True)

        merged = self._parse(SavingsGoal, {**goal.model_dump(), **requested})

        touches_schedule = "deadline" in requested or "status" in requested
        issues = self._goal_issues(
            merged.status,
            merged.deadline,
            check_deadline=touches_schedule,
            target_amount=merged.target_amount,
            current_amount=merged.current_amount,
        )
        if issues:
            raise ValidationError(issues)
        return merged

    # =========================================================================
    # EXPENSES
    # =========================================================================

    def _tag_issues(self, tags: list[str]) -> list[ValidationIssue]:
        issues = []
        if len(tags) > self._settings.max_tags:
            issues.append(ValidationIssue(
                field="tags",
                issue_type="too_many",
                message=f"At most {self._settings.max_tags} tags are allowed",
            ))
        for tag in tags:
            if len(tag) > self._settings.max_tag_length:
                issues.append(ValidationIssue(
                    field="tags",
                    issue_type="too_long",
                    message=(
                        f"Tag '{tag[:10]}...' exceeds "
                        f"{self._settings.max_tag_length} characters"
                    ),
                ))
        return issues

    def validate_expense_input(
        self,
        data: Union[ExpenseInput, dict[str, Any]],
    ) -> ExpenseInput:
        expense = self._parse(ExpenseInput, _as_dict(data))
        issues = self._tag_issues(expense.tags)
        if issues:
            raise ValidationError(issues)
        return expense

    def validate_expense_update(
        self,
        expense: Expense,
        changes: Union[ExpenseUpdate, dict[str, Any]],
    ) -> Expense:
        patch = self._parse(ExpenseUpdate, _as_dict(changes, exclude_unset=True))
        merged = self._parse(
            Expense,
            {**expense.model_dump(), **patch.model_dump(exclude_unset=True)},
        )
        issues = self._tag_issues(merged.tags)
        if issues:
            raise ValidationError(issues)
        return merged

    # =========================================================================
    # INCOME
    # =========================================================================

    def validate_income_input(
        self,
        data: Union[IncomeInput, dict[str, Any]],
    ) -> IncomeInput:
        return self._parse(IncomeInput, _as_dict(data))

    def validate_income_update(
        self,
        income: Income,
        changes: Union[IncomeUpdate, dict[str, Any]],
    ) -> Income:
        patch = self._parse(IncomeUpdate, _as_dict(changes, exclude_unset=True))
        return self._parse(
            Income,
            {**income.model_dump(), **patch.model_dump(exclude_unset=True)},
        )
