"""Shared fixtures for the test suite."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app
from app.tracker.errors import ActiveGoalExists, StoreConflict, StoreReadFailure, StoreWriteFailure
from app.tracker.models import Entry, Goal, GoalStatus, GoalWithEntry, Profile
from app.tracker.router import get_store

USER_ID = uuid.UUID("00000000-0000-4000-8000-000000000001")
OTHER_USER_ID = uuid.UUID("00000000-0000-4000-8000-000000000002")

DAY0 = datetime(2026, 2, 1, 8, 0, tzinfo=timezone.utc)


def day(n: int, hours: int = 0) -> datetime:
    """Timestamp n days after DAY0."""
    return DAY0 + timedelta(days=n, hours=hours)


def make_entry(
    weight: float,
    recorded_at: datetime,
    user_id: uuid.UUID = USER_ID,
    entry_id: uuid.UUID | None = None,
) -> Entry:
    return Entry(
        id=entry_id or uuid.uuid4(),
        user_id=user_id,
        weight=weight,
        recorded_at=recorded_at,
        created_at=recorded_at,
    )


def make_goal(
    start: float,
    target: float,
    created_at: datetime = DAY0,
    user_id: uuid.UUID = USER_ID,
    completed_by: Entry | None = None,
) -> Goal:
    goal = Goal(user_id=user_id, start_weight=start, target_weight=target, created_at=created_at)
    if completed_by is not None:
        goal = goal.model_copy(
            update={
                "status": GoalStatus.completed,
                "completed_entry_id": completed_by.id,
                "completed_at": completed_by.recorded_at,
            }
        )
    return goal


# ---------------------------------------------------------------------------
# Fake store (no real Postgres needed)
# ---------------------------------------------------------------------------

class FakeStore:
    """In-memory TrackerStore with write logging and injectable failures.

    - `fail_methods`: method name → exception raised on call
    - `fail_goal_writes`: goal ids whose goal writes raise StoreWriteFailure
    - `writes`: (method, goal_id, entry_id) for every successful goal write
    """

    def __init__(self, entries: list[Entry] | None = None, goals: list[Goal] | None = None):
        self.entries: dict[uuid.UUID, Entry] = {e.id: e for e in entries or []}
        self.goals: dict[uuid.UUID, Goal] = {g.id: g for g in goals or []}
        self.profiles: dict[uuid.UUID, Profile] = {}
        self.fail_methods: dict[str, Exception] = {}
        self.fail_goal_writes: set[uuid.UUID] = set()
        self.writes: list[tuple[str, uuid.UUID, uuid.UUID | None]] = []

    def _check(self, method: str) -> None:
        if method in self.fail_methods:
            raise self.fail_methods[method]

    def _check_goal_write(self, goal_id: uuid.UUID) -> None:
        if goal_id in self.fail_goal_writes:
            raise StoreWriteFailure(f"write to goal {goal_id} failed")

    # goal contract ---------------------------------------------------------

    async def get_active_goal(self, user_id):
        self._check("get_active_goal")
        for g in self.goals.values():
            if g.user_id == user_id and g.status == GoalStatus.active:
                return g
        return None

    async def get_completed_goals(self, user_id):
        self._check("get_completed_goals")
        completed = [
            GoalWithEntry(
                **g.model_dump(),
                completing_entry=self.entries.get(g.completed_entry_id) if g.completed_entry_id else None,
            )
            for g in self.goals.values()
            if g.user_id == user_id and g.status == GoalStatus.completed
        ]
        return sorted(completed, key=lambda g: g.completed_at, reverse=True)

    async def get_entries(self, user_id, *, limit):
        self._check("get_entries")
        mine = [e for e in self.entries.values() if e.user_id == user_id]
        return sorted(mine, key=lambda e: e.recorded_at, reverse=True)[:limit]

    async def update_goal_to_completed(self, user_id, goal_id, entry_id, completed_at):
        self._check("update_goal_to_completed")
        self._check_goal_write(goal_id)
        self.goals[goal_id] = self.goals[goal_id].model_copy(
            update={
                "status": GoalStatus.completed,
                "completed_entry_id": entry_id,
                "completed_at": completed_at,
            }
        )
        self.writes.append(("update_goal_to_completed", goal_id, entry_id))

    async def revert_goal_to_active(self, user_id, goal_id):
        self._check("revert_goal_to_active")
        self._check_goal_write(goal_id)
        for g in self.goals.values():
            if g.user_id == user_id and g.status == GoalStatus.active and g.id != goal_id:
                raise StoreConflict("duplicate key value violates unique constraint idx_goals_user_active")
        self.goals[goal_id] = self.goals[goal_id].model_copy(
            update={"status": GoalStatus.active, "completed_entry_id": None, "completed_at": None}
        )
        self.writes.append(("revert_goal_to_active", goal_id, None))

    async def update_goal_completion_details(self, user_id, goal_id, entry_id, completed_at):
        self._check("update_goal_completion_details")
        self._check_goal_write(goal_id)
        self.goals[goal_id] = self.goals[goal_id].model_copy(
            update={"completed_entry_id": entry_id, "completed_at": completed_at}
        )
        self.writes.append(("update_goal_completion_details", goal_id, entry_id))

    # CRUD ------------------------------------------------------------------

    async def get_entry(self, user_id, entry_id):
        entry = self.entries.get(entry_id)
        return entry if entry is not None and entry.user_id == user_id else None

    async def get_latest_entry(self, user_id):
        entries = await self.get_entries(user_id, limit=1)
        return entries[0] if entries else None

    async def create_entry(self, entry):
        self._check("create_entry")
        self.entries[entry.id] = entry
        return entry

    async def update_entry(self, user_id, entry_id, weight, recorded_at):
        self._check("update_entry")
        entry = await self.get_entry(user_id, entry_id)
        if entry is None:
            return None
        update = {"weight": weight}
        if recorded_at is not None:
            update["recorded_at"] = recorded_at
        self.entries[entry_id] = entry.model_copy(update=update)
        return self.entries[entry_id]

    async def delete_entry(self, user_id, entry_id):
        self._check("delete_entry")
        if await self.get_entry(user_id, entry_id) is None:
            return False
        del self.entries[entry_id]
        return True

    async def create_goal(self, goal):
        self._check("create_goal")
        if await self.get_active_goal(goal.user_id) is not None:
            raise ActiveGoalExists("An active goal already exists")
        self.goals[goal.id] = goal
        return goal

    async def delete_goal(self, user_id, goal_id):
        goal = self.goals.get(goal_id)
        if goal is None or goal.user_id != user_id:
            return False
        del self.goals[goal_id]
        return True

    # profile ---------------------------------------------------------------

    async def get_profile(self, user_id):
        self._check("get_profile")
        return self.profiles.get(user_id)

    async def save_profile(self, profile):
        self._check("save_profile")
        existing = self.profiles.get(profile.id)
        if existing is not None:
            profile = profile.model_copy(update={"created_at": existing.created_at})
        self.profiles[profile.id] = profile
        return profile


def read_failure(method: str) -> StoreReadFailure:
    return StoreReadFailure(f"{method}: connection reset")


# ---------------------------------------------------------------------------
# Fake DB session for SqlGoalStore
# ---------------------------------------------------------------------------

class FakeResult:
    def __init__(self, rows: list[dict[str, Any]], rowcount: int | None = None):
        self._rows = rows
        self._keys = list(rows[0].keys()) if rows else []
        self.rowcount = len(rows) if rowcount is None else rowcount

    def keys(self):
        return self._keys

    def fetchall(self):
        return [tuple(r[k] for k in self._keys) for r in self._rows]


class FakeSession:
    """Minimal stand-in for AsyncSession. Records every statement it runs."""

    def __init__(self, rows: list[dict[str, Any]] | None = None, rowcount: int | None = None):
        self._rows = rows or []
        self._rowcount = rowcount
        self.error: Exception | None = None
        self.statements: list[tuple[str, dict[str, Any]]] = []
        self.commits = 0
        self.rollbacks = 0

    async def execute(self, stmt, params=None):
        self.statements.append((str(stmt), params or {}))
        if self.error is not None:
            raise self.error
        return FakeResult(self._rows, self._rowcount)

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def store():
    return FakeStore()


@pytest.fixture()
def override_store(store):
    """Override the FastAPI dependency so no real DB is needed."""
    async def _override():
        return store

    app.dependency_overrides[get_store] = _override
    yield store
    app.dependency_overrides.clear()


@pytest.fixture()
async def client(override_store):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-User-Id": str(USER_ID)},
    ) as ac:
        yield ac
