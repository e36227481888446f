"""Error taxonomy for the tracker.

Goal bookkeeping errors (InvalidGoalState, StoreError) are caught inside the
detector and revalidator; they never fail the entry operation that triggered
them. The rest are raised to the HTTP layer.
"""

from __future__ import annotations

from uuid import UUID


class TrackerError(Exception):
    """Base class for tracker errors."""


class InvalidGoalState(TrackerError):
    """A goal's start weight is non-positive, so its direction is meaningless."""

    def __init__(self, goal_id: UUID, start_weight: float):
        self.goal_id = goal_id
        self.start_weight = start_weight
        super().__init__(f"Goal {goal_id} has invalid start weight {start_weight}")


class StoreError(TrackerError):
    """Communication with the persistence layer failed."""


class StoreReadFailure(StoreError):
    pass


class StoreWriteFailure(StoreError):
    pass


class StoreConflict(StoreWriteFailure):
    """A write violated a store constraint (e.g. a second active goal)."""


class GoalValidationError(TrackerError):
    """A goal cannot be created for this user in the current state."""


class ActiveGoalExists(GoalValidationError):
    pass


class NotFound(TrackerError):
    pass