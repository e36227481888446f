"""Entry and goal operations: the layer that fires the goal hooks.

Entry mutations succeed or fail on their own; the detector and revalidator run
after them and swallow their own failures.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import settings
from app.tracker import completion, detector, revalidator
from app.tracker.errors import GoalValidationError, InvalidGoalState, NotFound, StoreError
from app.tracker.models import (
    CompletedGoalView,
    Entry,
    EntryCreate,
    EntryStats,
    EntryUpdate,
    Goal,
    GoalCreate,
    GoalProgress,
    Profile,
    ProfileUpdate,
)
from app.tracker.revalidator import RevalidationOutcome
from app.tracker.store import TrackerStore

logger = logging.getLogger(__name__)


async def list_entries(store: TrackerStore, user_id: uuid.UUID, limit: int) -> list[Entry]:
    return await store.get_entries(user_id, limit=limit)


async def add_entry(store: TrackerStore, user_id: uuid.UUID, data: EntryCreate) -> Entry:
    entry = await store.create_entry(
        Entry(
            user_id=user_id,
            weight=data.weight,
            recorded_at=data.recorded_at or datetime.now(timezone.utc),
        )
    )

    try:
        active_goal = await store.get_active_goal(user_id)
    except StoreError:
        logger.exception("Entry %s saved but active goal could not be loaded", entry.id)
        return entry

    await detector.on_entry_created(store, entry, active_goal)
    return entry


async def edit_entry(
    store: TrackerStore, user_id: uuid.UUID, entry_id: uuid.UUID, data: EntryUpdate
) -> Entry:
    """Update an entry. The caller runs revalidate_after() once this returns."""
    updated = await store.update_entry(user_id, entry_id, data.weight, data.recorded_at)
    if updated is None:
        raise NotFound(f"Entry {entry_id} not found")
    return updated


async def remove_entry(store: TrackerStore, user_id: uuid.UUID, entry_id: uuid.UUID) -> None:
    if not await store.delete_entry(user_id, entry_id):
        raise NotFound(f"Entry {entry_id} not found")


async def revalidate_after(
    store: TrackerStore,
    user_id: uuid.UUID,
    entry_id: uuid.UUID,
    modified_entry: Entry | None,
) -> list[RevalidationOutcome]:
    try:
        return await revalidator.on_entry_mutated(
            store,
            user_id,
            entry_id,
            modified_entry,
            entry_limit=settings.revalidation_entry_limit,
        )
    except Exception:
        logger.exception("Goal revalidation crashed after change to entry %s", entry_id)
        return []


async def set_goal(store: TrackerStore, user_id: uuid.UUID, data: GoalCreate) -> Goal:
    """Create the active goal. start_weight is the latest recorded weight."""
    latest = await store.get_latest_entry(user_id)
    if latest is None:
        raise GoalValidationError("You must add at least one weight entry before setting a goal")
    if latest.weight == data.target_weight:
        raise GoalValidationError("Target weight must be different from your current weight")

    return await store.create_goal(
        Goal(
            user_id=user_id,
            start_weight=latest.weight,
            target_weight=data.target_weight,
            target_date=data.target_date,
        )
    )


async def clear_goal(store: TrackerStore, user_id: uuid.UUID, goal_id: uuid.UUID) -> None:
    if not await store.delete_goal(user_id, goal_id):
        raise NotFound(f"Goal {goal_id} not found")


async def goal_progress(store: TrackerStore, user_id: uuid.UUID) -> GoalProgress | None:
    goal = await store.get_active_goal(user_id)
    if goal is None:
        return None

    latest = await store.get_latest_entry(user_id)
    current = latest.weight if latest is not None else None
    try:
        reached = current is not None and completion.meets_goal(current, goal)
        over_achieved = current is not None and completion.is_over_achieved(current, goal)
    except InvalidGoalState:
        reached = over_achieved = False

    return GoalProgress(
        goal=goal,
        current_weight=current,
        progress_pct=round(completion.progress_pct(current, goal), 1),
        remaining_weight=round(completion.remaining_weight(current, goal), 2),
        is_reached=reached,
        is_over_achieved=over_achieved,
    )


async def goal_history(store: TrackerStore, user_id: uuid.UUID) -> list[CompletedGoalView]:
    goals = await store.get_completed_goals(user_id)
    return [
        CompletedGoalView(goal=g, achievement=completion.achievement(g, g.completing_entry))
        for g in goals
    ]


# ---------------------------------------------------------------------------
# Profile and summary stats
# ---------------------------------------------------------------------------


async def get_profile(store: TrackerStore, user_id: uuid.UUID) -> Profile:
    """Stored preferences, or the defaults when the user never saved any."""
    profile = await store.get_profile(user_id)
    return profile if profile is not None else Profile(id=user_id)


async def update_profile(store: TrackerStore, user_id: uuid.UUID, data: ProfileUpdate) -> Profile:
    current = await get_profile(store, user_id)
    return await store.save_profile(current.model_copy(update=data.model_dump(exclude_none=True)))


def _profile_zone(profile: Profile) -> tzinfo:
    try:
        return ZoneInfo(profile.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Profile %s has unknown timezone %r; using UTC", profile.id, profile.timezone)
        return timezone.utc


def _local_date(recorded_at: datetime, zone: tzinfo) -> date:
    return completion.as_utc(recorded_at).astimezone(zone).date()


async def entry_stats(store: TrackerStore, user_id: uuid.UUID) -> EntryStats:
    profile = await get_profile(store, user_id)
    entries = await store.get_entries(user_id, limit=settings.stats_entry_limit)
    if not entries:
        return EntryStats(unit=profile.preferred_unit)

    zone = _profile_zone(profile)
    ordered = sorted(entries, key=lambda e: (completion.as_utc(e.recorded_at), str(e.id)))
    first, latest = ordered[0], ordered[-1]
    return EntryStats(
        total_entries=len(entries),
        days_tracked=len({_local_date(e.recorded_at, zone) for e in entries}),
        first_weight=first.weight,
        latest_weight=latest.weight,
        weight_change=round(latest.weight - first.weight, 2),
        unit=profile.preferred_unit,
    )
