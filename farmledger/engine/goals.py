"""
Goal Progress State Machine

    active -> completed | paused | cancelled
    paused -> active

completed and cancelled are terminal. Progress is only recorded on active
goals, and a goal whose saved amount reaches its target is completed in the
same update that recorded the progress.
"""

import datetime as dt
from decimal import Decimal

from farmledger.models.financial import GoalStatus, SavingsGoal
from farmledger.validation import GoalStateError, ValidationError, ValidationIssue


TRANSITIONS: dict[GoalStatus, frozenset] = {
    GoalStatus.ACTIVE: frozenset({
        GoalStatus.COMPLETED, GoalStatus.PAUSED, GoalStatus.CANCELLED,
    }),
    GoalStatus.PAUSED: frozenset({GoalStatus.ACTIVE}),
    GoalStatus.COMPLETED: frozenset(),
    GoalStatus.CANCELLED: frozenset(),
}


def is_terminal(status: GoalStatus) -> bool:
    return not TRANSITIONS[status]


def can_transition(current: GoalStatus, target: GoalStatus) -> bool:
    return target == current or target in TRANSITIONS[current]


def ensure_transition(current: GoalStatus, target: GoalStatus) -> None:
    if not can_transition(current, target):
        raise GoalStateError(
            f"Cannot move goal from {current.value} to {target.value}"
        )


def apply_progress(goal: SavingsGoal, amount: Decimal, now: dt.datetime) -> SavingsGoal:
    """
    Add `amount` to an active goal.

    Returns the updated copy; completes the goal if the target is reached.
    """
    if amount <= 0:
        raise ValidationError([ValidationIssue(
            field="amount",
            issue_type="greater_than",
            message="Progress amount must be greater than 0",
        )])
    if goal.status != GoalStatus.ACTIVE:
        raise GoalStateError(
            f"Cannot add progress to a {goal.status.value} goal"
        )

    current = goal.current_amount + amount
    status = GoalStatus.COMPLETED if current >= goal.target_amount else GoalStatus.ACTIVE
    return goal.model_copy(update={
        "current_amount": current,
        "status": status,
        "updated_at": now,
    })


def apply_edit(original: SavingsGoal, edited: SavingsGoal, now: dt.datetime) -> SavingsGoal:
    """
    Settle the status of an edited goal.

    `edited` is the already validated merge of the stored goal and the
    requested changes.
    """
    ensure_transition(original.status, edited.status)

    if is_terminal(original.status) and (
        edited.current_amount != original.current_amount
        or edited.target_amount != original.target_amount
    ):
        raise GoalStateError(
            f"Cannot change the amounts of a {original.status.value} goal"
        )

    if (
        edited.status == GoalStatus.COMPLETED
        and original.status != GoalStatus.COMPLETED
        and edited.current_amount < edited.target_amount
    ):
        raise GoalStateError("Goal cannot be completed before reaching its target")

    status = edited.status
    if status == GoalStatus.ACTIVE and edited.current_amount >= edited.target_amount:
        status = GoalStatus.COMPLETED

    return edited.model_copy(update={"status": status, "updated_at": now})
