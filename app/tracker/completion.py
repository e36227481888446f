"""Pure goal math: the completion predicate and the achievement/progress figures.

meets_goal is shared by the detector and the revalidator. Everything else here
is informational and never changes completion semantics.
"""

from __future__ import annotations

from datetime import datetime, timezone

from app.tracker.errors import InvalidGoalState
from app.tracker.models import Entry, Goal, GoalAchievement


def as_utc(dt: datetime) -> datetime:
    """Naive timestamps are taken as UTC so they compare with aware ones."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def check_goal(goal: Goal) -> None:
    """Raise InvalidGoalState when start_weight <= 0.

    With a zero start every goal reads as a gain goal and would complete on
    the first entry.
    """
    if goal.start_weight <= 0:
        raise InvalidGoalState(goal.id, goal.start_weight)


def meets_goal(entry_weight: float, goal: Goal) -> bool:
    """True when `entry_weight` reaches the goal's target in its direction.

    - loss goal (start > target): entry_weight <= target
    - gain goal (start < target): entry_weight >= target

    Raises InvalidGoalState for a goal that fails check_goal().
    """
    check_goal(goal)
    if goal.is_loss_goal:
        return entry_weight <= goal.target_weight
    return entry_weight >= goal.target_weight


def is_eligible(entry: Entry, goal: Goal) -> bool:
    """Entry can complete the goal: recorded on/after goal creation and meets it."""
    check_goal(goal)
    if as_utc(entry.recorded_at) < as_utc(goal.created_at):
        return False
    return meets_goal(entry.weight, goal)


def exceeded_by(actual_weight: float, goal: Goal) -> float:
    return abs(actual_weight - goal.target_weight)


def is_over_achieved(actual_weight: float, goal: Goal) -> bool:
    """Strictly past the target in the goal's direction."""
    if goal.is_loss_goal:
        return actual_weight < goal.target_weight
    return actual_weight > goal.target_weight


def progress_pct(current_weight: float | None, goal: Goal) -> float:
    """Share of the start→target distance covered, capped at 100.

    Distance is absolute, so movement away from the target also counts.
    Returns 0 without a current weight.
    """
    if current_weight is None:
        return 0.0
    total = abs(goal.target_weight - goal.start_weight)
    if total == 0.0:
        return 100.0
    covered = abs(current_weight - goal.start_weight)
    return min(100.0, (covered / total) * 100.0)


def remaining_weight(current_weight: float | None, goal: Goal) -> float:
    if current_weight is None:
        return 0.0
    return abs(current_weight - goal.target_weight)


def days_to_complete(goal: Goal) -> int | None:
    if goal.completed_at is None:
        return None
    return (as_utc(goal.completed_at) - as_utc(goal.created_at)).days


def achievement(goal: Goal, completing_entry: Entry | None) -> GoalAchievement:
    """Summary for a completed goal. Falls back to the target when the entry is gone."""
    actual = completing_entry.weight if completing_entry is not None else goal.target_weight
    return GoalAchievement(
        actual_weight=actual,
        exceeded_by=round(exceeded_by(actual, goal), 2),
        is_over_achieved=is_over_achieved(actual, goal),
        days_to_complete=days_to_complete(goal),
    )
