"""Goal completion detector, runs once per newly created entry.

Checks the new entry against the user's single active goal. Not retroactive:
historical entries are never scanned here. Never raises; entry creation must
succeed regardless of goal bookkeeping.
"""

from __future__ import annotations

import logging

from app.tracker.completion import is_eligible
from app.tracker.errors import InvalidGoalState, StoreError
from app.tracker.models import Entry, Goal, GoalStatus
from app.tracker.store import GoalStore

logger = logging.getLogger(__name__)


async def on_entry_created(store: GoalStore, entry: Entry, active_goal: Goal | None) -> Goal | None:
    """Complete `active_goal` if `entry` reaches its target.

    Returns the goal as written (completed) or None when nothing changed.
    completed_at is the entry's recorded_at, so backdated entries keep an
    accurate achievement timeline. An entry recorded before the goal existed
    never completes it.
    """
    if active_goal is None:
        return None

    try:
        achieved = is_eligible(entry, active_goal)
    except InvalidGoalState as exc:
        logger.warning("Skipping completion check for entry %s: %s", entry.id, exc)
        return None

    if not achieved:
        return None

    try:
        await store.update_goal_to_completed(
            entry.user_id, active_goal.id, entry.id, entry.recorded_at
        )
    except StoreError:
        logger.exception("Failed to complete goal %s with entry %s", active_goal.id, entry.id)
        return None

    logger.info("Goal %s completed by entry %s", active_goal.id, entry.id)
    return active_goal.model_copy(
        update={
            "status": GoalStatus.completed,
            "completed_entry_id": entry.id,
            "completed_at": entry.recorded_at,
        }
    )
