"""
Ledger Core (Financial Data Manager)

Owns the canonical goals, expenses and income, and drives the pure engine
rules from one place:

- logging income reads the streak, bumps it and stores the bonus with the
  record, serialized per user
- logging an expense stores it, then grades the category budget
- adding goal progress runs the goal state machine

ERROR SURFACE:
- ValidationError (and GoalStateError) pass through untouched
- Not found is None / False / []
- Anything else becomes LedgerOperationError("Failed to <operation>"),
  chained to the original cause
- Analytics and insights are advisory and return [] on failure
"""

import asyncio
import datetime as dt
import weakref
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Callable, Iterator, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError as SchemaError

from farmledger.analytics import (
    build_financial_summary,
    build_insights,
    goal_progress,
    income_trends,
    spending_trends,
    top_expense_categories,
    trend_window_start,
)
from farmledger.audit import ActivityLogger
from farmledger.config import LedgerSettings, get_settings
from farmledger.engine import (
    apply_edit,
    apply_progress,
    calculate_fertilizer_boost,
    evaluate_threshold,
    month_bounds,
    multiplier_from_settings,
    next_streak,
)
from farmledger.models.financial import (
    BudgetAlert,
    BudgetThreshold,
    CategorySpend,
    Expense,
    ExpenseCategory,
    ExpenseInput,
    ExpenseLogResult,
    ExpenseUpdate,
    FinancialInsight,
    FinancialSummary,
    GoalCategory,
    GoalProgressSnapshot,
    GoalStatus,
    Income,
    IncomeInput,
    IncomeSource,
    IncomeTrendPoint,
    IncomeUpdate,
    SavingsGoal,
    SavingsGoalInput,
    SavingsGoalUpdate,
    SpendingTrendPoint,
    TimePeriod,
    utc_now,
)
from farmledger.models.parental import UserMode
from farmledger.storage.interface import (
    BudgetThresholdStorageInterface,
    ExpenseStorageInterface,
    GoalStorageInterface,
    IncomeStorageInterface,
    UserStorageInterface,
)
from farmledger.validation import RecordValidator, ValidationError, ValidationIssue


logger = structlog.get_logger(__name__)


class LedgerOperationError(Exception):
    """A ledger operation failed for a reason other than bad input."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Failed to {operation}")


class FinancialDataManager:
    """
    Orchestrates goal, expense and income bookkeeping for every user.

    All storage is injected. Budget thresholds live in their own
    repository so they survive restarts.
    """

    def __init__(
        self,
        goals: GoalStorageInterface,
        expenses: ExpenseStorageInterface,
        income: IncomeStorageInterface,
        budget_thresholds: BudgetThresholdStorageInterface,
        users: Optional[UserStorageInterface] = None,
        activity_logger: Optional[ActivityLogger] = None,
        validator: Optional[RecordValidator] = None,
        settings: Optional[LedgerSettings] = None,
        clock: Optional[Callable[[], dt.datetime]] = None,
    ):
        self._goals = goals
        self._expenses = expenses
        self._income = income
        self._thresholds = budget_thresholds
        self._users = users
        self._activity = activity_logger
        self._settings = settings or get_settings().ledger
        self._clock = clock or utc_now
        self._validator = validator or RecordValidator(self._settings, self._clock)
        self._locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = weakref.WeakValueDictionary()

    # =========================================================================
    # PLUMBING
    # =========================================================================

    @contextmanager
    def _operation(self, operation: str, **context: Any) -> Iterator[None]:
        try:
            yield
        except (ValidationError, LedgerOperationError):
            raise
        except Exception as e:
            logger.error(
                "ledger_operation_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                **{k: str(v) for k, v in context.items()},
            )
            raise LedgerOperationError(operation) from e

    def _lock_for(self, key: UUID) -> asyncio.Lock:
        # Entries drop out once no caller holds or waits on the lock.
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _now(self) -> dt.datetime:
        return self._clock()

    def _today(self) -> dt.date:
        return self._clock().date()

    def _identity(self, record_id: Optional[UUID]) -> dict[str, Any]:
        now = self._now()
        identity = {"created_at": now, "updated_at": now}
        if record_id is not None:
            identity["id"] = record_id
        return identity

    async def _is_child(self, user_id: UUID) -> bool:
        if self._activity is None or self._users is None:
            return False
        try:
            user = await self._users.find_by_id(user_id)
        except Exception as e:
            logger.warning("activity_user_lookup_failed", user_id=str(user_id), error=str(e))
            return False
        return user is not None and user.mode == UserMode.CHILD

    # =========================================================================
    # SAVINGS GOALS
    # =========================================================================

    async def create_savings_goal(
        self,
        data: Union[SavingsGoalInput, dict[str, Any]],
        record_id: Optional[UUID] = None,
    ) -> SavingsGoal:
        """
        Plant a new crop. Active goals need a future deadline.

        `record_id` pins the new goal's id, e.g. to the id promised by an
        approval request.
        """
        with self._operation("create savings goal"):
            validated = self._validator.validate_goal_input(data)
            goal = SavingsGoal(**validated.model_dump(), **self._identity(record_id))
            goal = await self._goals.create(goal)

            logger.info(
                "savings_goal_created",
                goal_id=str(goal.id),
                user_id=str(goal.user_id),
                target_amount=str(goal.target_amount),
            )
            if await self._is_child(goal.user_id):
                await self._activity.log_goal_created(
                    goal.user_id, goal.id, goal.title, goal.target_amount
                )
            return goal

    async def get_savings_goal(self, goal_id: UUID) -> Optional[SavingsGoal]:
        with self._operation("get savings goal", goal_id=goal_id):
            return await self._goals.find_by_id(goal_id)

    async def get_user_savings_goals(
        self,
        user_id: UUID,
        status: Optional[GoalStatus] = None,
    ) -> list[SavingsGoal]:
        with self._operation("get savings goals", user_id=user_id):
            if status is not None:
                return await self._goals.find_by_status(user_id, status)
            return await self._goals.find_by_user_id(user_id)

    async def get_goals_by_category(
        self,
        user_id: UUID,
        category: GoalCategory,
    ) -> list[SavingsGoal]:
        with self._operation("get savings goals", user_id=user_id):
            return await self._goals.find_by_category(user_id, category)

    async def update_savings_goal(
        self,
        goal_id: UUID,
        changes: Union[SavingsGoalUpdate, dict[str, Any]],
    ) -> Optional[SavingsGoal]:
        """
        Edit a goal.

        Returns None if the goal doesn't exist. The target may not drop
        below saved progress, and an active goal must keep a future deadline.
        """
        with self._operation("update savings goal", goal_id=goal_id):
            async with self._lock_for(goal_id):
                goal = await self._goals.find_by_id(goal_id)
                if goal is None:
                    return None

                merged = self._validator.validate_goal_update(goal, changes)
                settled = apply_edit(goal, merged, self._now())
                stored = await self._goals.update(
                    goal_id,
                    settled.model_dump(exclude={"id", "user_id", "created_at"}),
                )

            if stored is not None and stored.status != goal.status:
                await self._goal_status_changed(goal, stored)
            return stored

    async def update_goal_progress(
        self,
        goal_id: UUID,
        amount: Union[Decimal, int, str],
    ) -> Optional[SavingsGoal]:
        """
        Add saved money to an active goal.

        Reaching the target completes the goal in the same write. Returns
        None if the goal doesn't exist; raises GoalStateError if it isn't
        active.
        """
        with self._operation("update goal progress", goal_id=goal_id):
            async with self._lock_for(goal_id):
                goal = await self._goals.find_by_id(goal_id)
                if goal is None:
                    return None

                progressed = apply_progress(goal, Decimal(str(amount)), self._now())
                stored = await self._goals.update(goal_id, {
                    "current_amount": progressed.current_amount,
                    "status": progressed.status,
                    "updated_at": progressed.updated_at,
                })

            if stored is not None and stored.status != goal.status:
                await self._goal_status_changed(goal, stored)
            return stored

    async def _goal_status_changed(self, before: SavingsGoal, after: SavingsGoal) -> None:
        logger.info(
            "savings_goal_status_changed",
            goal_id=str(after.id),
            from_status=before.status.value,
            to_status=after.status.value,
        )
        if after.status == GoalStatus.COMPLETED and await self._is_child(after.user_id):
            await self._activity.log_goal_completed(
                after.user_id, after.id, after.title, after.target_amount
            )

    async def pause_goal(self, goal_id: UUID) -> Optional[SavingsGoal]:
        return await self.update_savings_goal(goal_id, {"status": GoalStatus.PAUSED})

    async def resume_goal(self, goal_id: UUID) -> Optional[SavingsGoal]:
        return await self.update_savings_goal(goal_id, {"status": GoalStatus.ACTIVE})

    async def cancel_goal(self, goal_id: UUID) -> Optional[SavingsGoal]:
        return await self.update_savings_goal(goal_id, {"status": GoalStatus.CANCELLED})

    async def delete_savings_goal(self, goal_id: UUID) -> bool:
        with self._operation("delete savings goal", goal_id=goal_id):
            return await self._goals.delete(goal_id)

    # =========================================================================
    # EXPENSES
    # =========================================================================

    async def log_expense(
        self,
        data: Union[ExpenseInput, dict[str, Any]],
        record_id: Optional[UUID] = None,
    ) -> ExpenseLogResult:
        """
        Pull a weed.

        The expense is written first; budget alerts for its category are
        computed afterwards and returned alongside it. A failed budget check
        never undoes the write.
        """
        with self._operation("log expense"):
            validated = self._validator.validate_expense_input(data)
            expense = Expense(**validated.model_dump(), **self._identity(record_id))
            expense = await self._expenses.create(expense)

            logger.info(
                "expense_logged",
                expense_id=str(expense.id),
                user_id=str(expense.user_id),
                category=expense.category.value,
                amount=str(expense.amount),
            )
            if await self._is_child(expense.user_id):
                await self._activity.log_expense_logged(
                    expense.user_id, expense.id, expense.amount, expense.category.value
                )

        try:
            alerts = await self.check_budget_thresholds(expense.user_id, expense.category)
        except Exception as e:
            logger.warning(
                "budget_check_failed",
                expense_id=str(expense.id),
                error=str(e),
            )
            alerts = []

        return ExpenseLogResult(expense=expense, alerts=alerts)

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        with self._operation("get expense", expense_id=expense_id):
            return await self._expenses.find_by_id(expense_id)

    async def get_user_expenses(
        self,
        user_id: UUID,
        start: Optional[dt.date] = None,
        end: Optional[dt.date] = None,
    ) -> list[Expense]:
        with self._operation("get expenses", user_id=user_id):
            if start is not None and end is not None:
                return await self._expenses.find_by_date_range(user_id, start, end)
            expenses = await self._expenses.find_by_user_id(user_id)
            return [
                e for e in expenses
                if (start is None or e.date >= start) and (end is None or e.date <= end)
            ]

    async def get_expenses_by_category(
        self,
        user_id: UUID,
        category: ExpenseCategory,
    ) -> list[Expense]:
        with self._operation("get expenses", user_id=user_id):
            return await self._expenses.find_by_category(user_id, category)

    async def get_expenses_by_tags(self, user_id: UUID, tags: list[str]) -> list[Expense]:
        with self._operation("get expenses", user_id=user_id):
            return await self._expenses.find_by_tags(user_id, tags)

    async def update_expense(
        self,
        expense_id: UUID,
        changes: Union[ExpenseUpdate, dict[str, Any]],
    ) -> Optional[Expense]:
        with self._operation("update expense", expense_id=expense_id):
            expense = await self._expenses.find_by_id(expense_id)
            if expense is None:
                return None
            merged = self._validator.validate_expense_update(expense, changes)
            return await self._expenses.update(
                expense_id,
                merged.model_dump(exclude={"id", "user_id", "created_at", "updated_at"}),
            )

    async def delete_expense(self, expense_id: UUID) -> bool:
        with self._operation("delete expense", expense_id=expense_id):
            return await self._expenses.delete(expense_id)

    # =========================================================================
    # INCOME AND STREAKS
    # =========================================================================

    async def log_income(
        self,
        data: Union[IncomeInput, dict[str, Any]],
    ) -> Income:
        """
        Spread fertilizer.

        The streak read, increment and write happen under a per-user lock,
        so concurrent calls for one user get consecutive streak counts.
        """
        with self._operation("log income"):
            validated = self._validator.validate_income_input(data)
            user_id = validated.user_id

            async with self._lock_for(user_id):
                streak = next_streak(await self._income.get_current_streak(user_id))
                multiplier = multiplier_from_settings(streak, self._settings)
                now = self._now()
                income = Income(
                    **validated.model_dump(),
                    multiplier=multiplier,
                    streak_count=streak,
                    created_at=now,
                    updated_at=now,
                )
                income = await self._income.create(income)

            logger.info(
                "income_logged",
                income_id=str(income.id),
                user_id=str(user_id),
                amount=str(income.amount),
                streak_count=streak,
                multiplier=str(multiplier),
            )
            if await self._is_child(user_id):
                await self._activity.log_income_logged(
                    user_id, income.id, income.boosted_amount, income.source.value, streak
                )
            return income

    async def get_income(self, income_id: UUID) -> Optional[Income]:
        with self._operation("get income", income_id=income_id):
            return await self._income.find_by_id(income_id)

    async def get_user_income(
        self,
        user_id: UUID,
        start: Optional[dt.date] = None,
        end: Optional[dt.date] = None,
    ) -> list[Income]:
        with self._operation("get income", user_id=user_id):
            if start is not None and end is not None:
                return await self._income.find_by_date_range(user_id, start, end)
            income = await self._income.find_by_user_id(user_id)
            return [
                i for i in income
                if (start is None or i.date >= start) and (end is None or i.date <= end)
            ]

    async def get_income_by_source(self, user_id: UUID, source: IncomeSource) -> list[Income]:
        with self._operation("get income", user_id=user_id):
            return await self._income.find_by_source(user_id, source)

    async def update_income(
        self,
        income_id: UUID,
        changes: Union[IncomeUpdate, dict[str, Any]],
    ) -> Optional[Income]:
        """Edit an income record. The streak bonus cannot be edited."""
        with self._operation("update income", income_id=income_id):
            income = await self._income.find_by_id(income_id)
            if income is None:
                return None
            merged = self._validator.validate_income_update(income, changes)
            return await self._income.update(
                income_id,
                merged.model_dump(include=set(IncomeUpdate.model_fields)),
            )

    async def delete_income(self, income_id: UUID) -> bool:
        with self._operation("delete income", income_id=income_id):
            return await self._income.delete(income_id)

    async def get_current_streak(self, user_id: UUID) -> int:
        with self._operation("get current streak", user_id=user_id):
            return await self._income.get_current_streak(user_id)

    async def reset_income_streak(self, user_id: UUID) -> None:
        """Start fresh: the next logged income carries a streak of 1."""
        with self._operation("reset income streak", user_id=user_id):
            async with self._lock_for(user_id):
                latest = await self._income.get_latest_income(user_id)
                if latest is None:
                    return
                await self._income.update_streak(
                    user_id,
                    latest.id,
                    0,
                    multiplier_from_settings(0, self._settings),
                )
            logger.info("income_streak_reset", user_id=str(user_id))

    async def calculate_fertilizer_effect(
        self,
        user_id: UUID,
        amount: Union[Decimal, int, str],
    ) -> Decimal:
        """What `amount` would be worth if logged as the user's next income."""
        with self._operation("calculate fertilizer effect", user_id=user_id):
            streak = next_streak(await self._income.get_current_streak(user_id))
            multiplier = multiplier_from_settings(streak, self._settings)
            return calculate_fertilizer_boost(Decimal(str(amount)), multiplier)

    # =========================================================================
    # BUDGETS
    # =========================================================================

    async def set_budget_thresholds(
        self,
        user_id: UUID,
        thresholds: list[Union[BudgetThreshold, dict[str, Any]]],
    ) -> list[BudgetThreshold]:
        """Replace the user's thresholds. One threshold per category."""
        with self._operation("set budget thresholds", user_id=user_id):
            parsed = []
            for index, raw in enumerate(thresholds):
                try:
                    parsed.append(BudgetThreshold.model_validate(
                        raw.model_dump() if isinstance(raw, BudgetThreshold) else raw
                    ))
                except SchemaError as e:
                    raise ValidationError([
                        ValidationIssue(
                            field=f"thresholds.{index}.{'.'.join(str(p) for p in err['loc'])}",
                            issue_type=err["type"],
                            message=err["msg"],
                        )
                        for err in e.errors()
                    ]) from e

            categories = [t.category for t in parsed]
            if len(categories) != len(set(categories)):
                raise ValidationError([ValidationIssue(
                    field="thresholds",
                    issue_type="duplicate",
                    message="Only one threshold per category is allowed",
                )])

            await self._thresholds.set_thresholds(user_id, parsed)
            return parsed

    async def get_budget_thresholds(self, user_id: UUID) -> list[BudgetThreshold]:
        with self._operation("get budget thresholds", user_id=user_id):
            return await self._thresholds.get_thresholds(user_id)

    async def _alert_for(
        self,
        user_id: UUID,
        threshold: BudgetThreshold,
    ) -> Optional[BudgetAlert]:
        start, end = month_bounds(self._today())
        spent = await self._expenses.get_total_for_period(user_id, start, end, threshold.category)
        alert = evaluate_threshold(threshold, spent, self._settings.budget_danger_percentage)
        if alert is not None:
            logger.info(
                "budget_alert_raised",
                user_id=str(user_id),
                category=alert.category.value,
                severity=alert.severity.value,
                percentage=alert.percentage,
            )
        return alert

    async def check_budget_thresholds(
        self,
        user_id: UUID,
        category: ExpenseCategory,
    ) -> list[BudgetAlert]:
        """Current-month alert for one category. Empty if no threshold is set."""
        with self._operation("check budget thresholds", user_id=user_id):
            for threshold in await self._thresholds.get_thresholds(user_id):
                if threshold.category == category:
                    alert = await self._alert_for(user_id, threshold)
                    return [alert] if alert else []
            return []

    async def get_budget_alerts(self, user_id: UUID) -> list[BudgetAlert]:
        with self._operation("get budget alerts", user_id=user_id):
            alerts = []
            for threshold in await self._thresholds.get_thresholds(user_id):
                alert = await self._alert_for(user_id, threshold)
                if alert:
                    alerts.append(alert)
            return alerts

    # =========================================================================
    # SUMMARIES AND ANALYTICS
    # =========================================================================

    async def generate_financial_summary(
        self,
        user_id: UUID,
        period: TimePeriod,
    ) -> FinancialSummary:
        """Boosted income, expenses, breakdowns and savings rate for a window."""
        with self._operation("generate financial summary", user_id=user_id):
            expenses = await self._expenses.find_by_date_range(
                user_id, period.start_date, period.end_date
            )
            income = await self._income.find_by_date_range(
                user_id, period.start_date, period.end_date
            )
            goals = await self._goals.find_by_user_id(user_id)
            return build_financial_summary(user_id, period, expenses, income, goals)

    async def get_financial_insights(self, user_id: UUID) -> list[FinancialInsight]:
        try:
            today = self._today()
            window = dt.timedelta(days=self._settings.insight_lookback_days)
            recent = await self._expenses.get_total_for_period(user_id, today - window, today)
            previous = await self._expenses.get_total_for_period(
                user_id, today - 2 * window, today - window - dt.timedelta(days=1)
            )
            return build_insights(
                recent_spending=recent,
                previous_spending=previous,
                current_streak=await self._income.get_current_streak(user_id),
                active_goals=await self._goals.find_active_by_user_id(user_id),
                alerts=await self.get_budget_alerts(user_id),
                today=today,
                settings=self._settings,
            )
        except Exception as e:
            logger.warning("insights_unavailable", user_id=str(user_id), error=str(e))
            return []

    async def get_spending_trends(self, user_id: UUID, months: int = 6) -> list[SpendingTrendPoint]:
        try:
            today = self._today()
            expenses = await self._expenses.find_by_date_range(
                user_id, trend_window_start(today, months), today
            )
            return spending_trends(expenses)
        except Exception as e:
            logger.warning("spending_trends_unavailable", user_id=str(user_id), error=str(e))
            return []

    async def get_income_trends(self, user_id: UUID, months: int = 6) -> list[IncomeTrendPoint]:
        try:
            today = self._today()
            income = await self._income.find_by_date_range(
                user_id, trend_window_start(today, months), today
            )
            return income_trends(income)
        except Exception as e:
            logger.warning("income_trends_unavailable", user_id=str(user_id), error=str(e))
            return []

    async def get_savings_goal_progress(self, user_id: UUID) -> list[GoalProgressSnapshot]:
        try:
            goals = await self._goals.find_active_by_user_id(user_id)
            return goal_progress(goals, self._today())
        except Exception as e:
            logger.warning("goal_progress_unavailable", user_id=str(user_id), error=str(e))
            return []

    async def get_top_expense_categories(
        self,
        user_id: UUID,
        limit: int = 5,
    ) -> list[CategorySpend]:
        """This month's biggest spending categories."""
        try:
            today = self._today()
            start, _ = month_bounds(today)
            expenses = await self._expenses.find_by_date_range(user_id, start, today)
            return top_expense_categories(expenses, limit)
        except Exception as e:
            logger.warning("top_categories_unavailable", user_id=str(user_id), error=str(e))
            return []
