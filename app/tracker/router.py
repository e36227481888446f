"""Tracker HTTP router for entries, goals, profile and stats."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import current_user_id
from app.config import settings
from app.db import get_session, session_scope
from app.tracker import service
from app.tracker.errors import ActiveGoalExists, GoalValidationError, NotFound, StoreError
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
from app.tracker.store import SqlGoalStore, TrackerStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tracker", tags=["tracker"])


async def get_store(session: AsyncSession = Depends(get_session)) -> TrackerStore:
    return SqlGoalStore(session)


@asynccontextmanager
async def detached_store() -> AsyncIterator[TrackerStore]:
    """Store on its own session, for work that runs after the response is sent."""
    async with session_scope() as session:
        yield SqlGoalStore(session)


async def _revalidate_detached(user_id: uuid.UUID, entry_id: uuid.UUID, modified: Entry | None) -> None:
    async with detached_store() as store:
        await service.revalidate_after(store, user_id, entry_id, modified)


async def _revalidate(
    store: TrackerStore,
    background: BackgroundTasks,
    user_id: uuid.UUID,
    entry_id: uuid.UUID,
    modified: Entry | None,
) -> None:
    if settings.revalidate_in_background:
        background.add_task(_revalidate_detached, user_id, entry_id, modified)
    else:
        await service.revalidate_after(store, user_id, entry_id, modified)


def _store_failure(exc: StoreError, action: str) -> HTTPException:
    logger.error("Could not %s: %s", action, exc)
    return HTTPException(status_code=500, detail=f"Could not {action}.")


# ---------------------------------------------------------------------------
# /tracker/entries
# ---------------------------------------------------------------------------


@router.get("/entries", response_model=list[Entry])
async def entries_list(
    store: TrackerStore = Depends(get_store),
    user_id: uuid.UUID = Depends(current_user_id),
    limit: int = Query(default=settings.entries_page_size, ge=1, le=settings.max_entries_page_size),
) -> list[Entry]:
    try:
        return await service.list_entries(store, user_id, limit)
    except StoreError as exc:
        raise _store_failure(exc, "load entries")


@router.post("/entries", response_model=Entry, status_code=201)
async def entry_create(
    body: EntryCreate,
    store: TrackerStore = Depends(get_store),
    user_id: uuid.UUID = Depends(current_user_id),
) -> Entry:
    try:
        return await service.add_entry(store, user_id, body)
    except StoreError as exc:
        raise _store_failure(exc, "save entry")


@router.patch("/entries/{entry_id}", response_model=Entry)
async def entry_update(
    entry_id: uuid.UUID,
    body: EntryUpdate,
    background: BackgroundTasks,
    store: TrackerStore = Depends(get_store),
    user_id: uuid.UUID = Depends(current_user_id),
) -> Entry:
    try:
        updated = await service.edit_entry(store, user_id, entry_id, body)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except StoreError as exc:
        raise _store_failure(exc, "update entry")

    await _revalidate(store, background, user_id, entry_id, updated)
    return updated


@router.delete("/entries/{entry_id}", status_code=204)
async def entry_delete(
    entry_id: uuid.UUID,
    background: BackgroundTasks,
    store: TrackerStore = Depends(get_store),
    user_id: uuid.UUID = Depends(current_user_id),
) -> Response:
    try:
        await service.remove_entry(store, user_id, entry_id)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except StoreError as exc:
        raise _store_failure(exc, "delete entry")

    await _revalidate(store, background, user_id, entry_id, None)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# /tracker/goals
# ---------------------------------------------------------------------------


@router.get("/goals/active", response_model=GoalProgress | None)
async def goal_active(
    store: TrackerStore = Depends(get_store),
    user_id: uuid.UUID = Depends(current_user_id),
) -> GoalProgress | None:
    try:
        return await service.goal_progress(store, user_id)
    except StoreError as exc:
        raise _store_failure(exc, "load goal")


@router.get("/goals/history", response_model=list[CompletedGoalView])
async def goal_history(
    store: TrackerStore = Depends(get_store),
    user_id: uuid.UUID = Depends(current_user_id),
) -> list[CompletedGoalView]:
    try:
        return await service.goal_history(store, user_id)
    except StoreError as exc:
        raise _store_failure(exc, "load goal history")


@router.post("/goals", response_model=Goal, status_code=201)
async def goal_create(
    body: GoalCreate,
    store: TrackerStore = Depends(get_store),
    user_id: uuid.UUID = Depends(current_user_id),
) -> Goal:
    try:
        return await service.set_goal(store, user_id, body)
    except ActiveGoalExists as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except GoalValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except StoreError as exc:
        raise _store_failure(exc, "save goal")


@router.delete("/goals/{goal_id}", status_code=204)
async def goal_delete(
    goal_id: uuid.UUID,
    store: TrackerStore = Depends(get_store),
    user_id: uuid.UUID = Depends(current_user_id),
) -> Response:
    try:
        await service.clear_goal(store, user_id, goal_id)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except StoreError as exc:
        raise _store_failure(exc, "delete goal")
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# /tracker/profile, /tracker/stats
# ---------------------------------------------------------------------------


@router.get("/profile", response_model=Profile)
async def profile_get(
    store: TrackerStore = Depends(get_store),
    user_id: uuid.UUID = Depends(current_user_id),
) -> Profile:
    try:
        return await service.get_profile(store, user_id)
    except StoreError as exc:
        raise _store_failure(exc, "load profile")


@router.patch("/profile", response_model=Profile)
async def profile_update(
    body: ProfileUpdate,
    store: TrackerStore = Depends(get_store),
    user_id: uuid.UUID = Depends(current_user_id),
) -> Profile:
    try:
        return await service.update_profile(store, user_id, body)
    except StoreError as exc:
        raise _store_failure(exc, "update preferences")


@router.get("/stats", response_model=EntryStats)
async def stats(
    store: TrackerStore = Depends(get_store),
    user_id: uuid.UUID = Depends(current_user_id),
) -> EntryStats:
    try:
        return await service.entry_stats(store, user_id)
    except StoreError as exc:
        raise _store_failure(exc, "load stats")
