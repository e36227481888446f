"""Goal revalidator: re-derives completion after an entry is edited or deleted.

Only goals completed *by the affected entry* are touched. For each one:

1. The affected entry is replaced by its edited version (or dropped when it
   was deleted).
2. The eligible set is every entry recorded on/after the goal's creation
   whose weight meets the goal.
3. Empty set → the goal reverts to active. Otherwise the earliest eligible
   entry (by recorded_at, then id) becomes the completing entry; nothing is
   written when it already is.

Best effort: failures are logged per goal and never raised to the caller, so
the entry mutation that triggered the pass is never failed by it. Running it
twice without data changes performs no writes the second time.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum

from app.tracker.completion import as_utc, check_goal, is_eligible
from app.tracker.errors import InvalidGoalState, StoreError
from app.tracker.models import Entry, Goal
from app.tracker.store import GoalStore

logger = logging.getLogger(__name__)

DEFAULT_ENTRY_LIMIT = 1000


class RevalidationAction(str, Enum):
    unchanged = "unchanged"
    reverted = "reverted"
    reassigned = "reassigned"
    failed = "failed"


@dataclass(frozen=True, slots=True)
class RevalidationOutcome:
    goal_id: uuid.UUID
    action: RevalidationAction
    completed_entry_id: uuid.UUID | None = None


def _candidate_entries(
    entries: list[Entry],
    affected_entry_id: uuid.UUID,
    modified_entry: Entry | None,
) -> list[Entry]:
    """Current entries with the affected one swapped for its edited version."""
    candidates = [e for e in entries if e.id != affected_entry_id]
    if modified_entry is not None:
        candidates.append(modified_entry)
    return candidates


def earliest_eligible(goal: Goal, candidates: list[Entry]) -> Entry | None:
    """First entry, chronologically, that completes `goal`. Ties go to the lowest id."""
    eligible = [e for e in candidates if is_eligible(e, goal)]
    if not eligible:
        return None
    return min(eligible, key=lambda e: (as_utc(e.recorded_at), str(e.id)))


def _needs_update(goal: Goal, entry: Entry) -> bool:
    if goal.completed_entry_id != entry.id:
        return True
    if goal.completed_at is None:
        return True
    return as_utc(goal.completed_at) != as_utc(entry.recorded_at)


async def _revalidate_goal(
    store: GoalStore,
    user_id: uuid.UUID,
    goal: Goal,
    candidates: list[Entry],
) -> RevalidationOutcome:
    check_goal(goal)
    chosen = earliest_eligible(goal, candidates)

    if chosen is None:
        await store.revert_goal_to_active(user_id, goal.id)
        logger.info("Goal %s reverted to active: no qualifying entry remains", goal.id)
        return RevalidationOutcome(goal.id, RevalidationAction.reverted)

    if not _needs_update(goal, chosen):
        return RevalidationOutcome(goal.id, RevalidationAction.unchanged, chosen.id)

    await store.update_goal_completion_details(user_id, goal.id, chosen.id, chosen.recorded_at)
    logger.info("Goal %s completion reassigned to entry %s", goal.id, chosen.id)
    return RevalidationOutcome(goal.id, RevalidationAction.reassigned, chosen.id)


async def on_entry_mutated(
    store: GoalStore,
    user_id: uuid.UUID,
    affected_entry_id: uuid.UUID,
    modified_entry: Entry | None,
    *,
    entry_limit: int = DEFAULT_ENTRY_LIMIT,
) -> list[RevalidationOutcome]:
    """Revalidate goals completed by `affected_entry_id`.

    `modified_entry` is the post-edit entry, or None when it was deleted.
    Safe to run detached from the request that triggered it.
    """
    try:
        completed = await store.get_completed_goals(user_id)
    except StoreError:
        logger.exception("Revalidation for entry %s: could not load completed goals", affected_entry_id)
        return []

    affected = [g for g in completed if g.completed_entry_id == affected_entry_id]
    if not affected:
        return []

    try:
        entries = await store.get_entries(user_id, limit=entry_limit)
    except StoreError:
        logger.exception("Revalidation for entry %s: could not load entries", affected_entry_id)
        return [RevalidationOutcome(g.id, RevalidationAction.failed) for g in affected]

    candidates = _candidate_entries(entries, affected_entry_id, modified_entry)

    outcomes: list[RevalidationOutcome] = []
    for goal in affected:
        try:
            outcomes.append(await _revalidate_goal(store, user_id, goal, candidates))
        except InvalidGoalState as exc:
            logger.warning("Skipping revalidation of goal %s: %s", goal.id, exc)
            outcomes.append(RevalidationOutcome(goal.id, RevalidationAction.failed))
        except StoreError:
            logger.exception("Revalidation of goal %s failed; status left as is", goal.id)
            outcomes.append(RevalidationOutcome(goal.id, RevalidationAction.failed))
    return outcomes
