"""Store contract and the SQL-backed store.

GoalStore is what the detector and revalidator consume; TrackerStore adds the
entry/goal CRUD and profile reads/writes the service layer needs. SqlGoalStore implements both over an
AsyncSession with plain SQL. Every query is scoped to one user_id.

Read failures surface as StoreReadFailure and write failures as
StoreWriteFailure (after rolling back), so callers never see SQLAlchemy types.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.tracker.errors import (
    ActiveGoalExists,
    StoreConflict,
    StoreReadFailure,
    StoreWriteFailure,
)
from app.tracker.models import Entry, Goal, GoalStatus, GoalWithEntry, Profile, WeightUnit

logger = logging.getLogger(__name__)


class GoalStore(Protocol):
    async def get_active_goal(self, user_id: uuid.UUID) -> Goal | None: ...

    async def get_completed_goals(self, user_id: uuid.UUID) -> list[GoalWithEntry]: ...

    async def get_entries(self, user_id: uuid.UUID, *, limit: int) -> list[Entry]: ...

    async def update_goal_to_completed(
        self, user_id: uuid.UUID, goal_id: uuid.UUID, entry_id: uuid.UUID, completed_at: datetime
    ) -> None: ...

    async def revert_goal_to_active(self, user_id: uuid.UUID, goal_id: uuid.UUID) -> None: ...

    async def update_goal_completion_details(
        self, user_id: uuid.UUID, goal_id: uuid.UUID, entry_id: uuid.UUID, completed_at: datetime
    ) -> None: ...


class TrackerStore(GoalStore, Protocol):
    async def get_entry(self, user_id: uuid.UUID, entry_id: uuid.UUID) -> Entry | None: ...

    async def get_latest_entry(self, user_id: uuid.UUID) -> Entry | None: ...

    async def create_entry(self, entry: Entry) -> Entry: ...

    async def update_entry(
        self, user_id: uuid.UUID, entry_id: uuid.UUID, weight: float, recorded_at: datetime | None
    ) -> Entry | None: ...

    async def delete_entry(self, user_id: uuid.UUID, entry_id: uuid.UUID) -> bool: ...

    async def create_goal(self, goal: Goal) -> Goal: ...

    async def delete_goal(self, user_id: uuid.UUID, goal_id: uuid.UUID) -> bool: ...

    async def get_profile(self, user_id: uuid.UUID) -> Profile | None: ...

    async def save_profile(self, profile: Profile) -> Profile: ...


_ENTRY_COLUMNS = "id, user_id, weight, recorded_at, created_at"
_GOAL_COLUMNS = (
    "id, user_id, start_weight, target_weight, target_date, status, "
    "completed_at, completed_entry_id, created_at"
)
_PROFILE_COLUMNS = "id, preferred_unit, timezone, created_at"


class SqlGoalStore:
    """TrackerStore over an AsyncSession. Holds no state besides the session."""

    def __init__(self, session: AsyncSession):
        self._session = session

    # -----------------------------------------------------------------------
    # helpers
    # -----------------------------------------------------------------------

    async def _fetch(self, query: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            result = await self._session.execute(text(query), params)
        except SQLAlchemyError as exc:
            raise StoreReadFailure(str(exc)) from exc
        columns = result.keys()
        return [dict(zip(columns, row)) for row in result.fetchall()]

    async def _write(self, query: str, params: dict[str, Any], *, returning: bool = False) -> Any:
        """Execute and commit. Returns returned rows when `returning`, else the rowcount."""
        try:
            result = await self._session.execute(text(query), params)
            if returning:
                columns = result.keys()
                outcome: Any = [dict(zip(columns, row)) for row in result.fetchall()]
            else:
                outcome = result.rowcount
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            raise StoreConflict(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise StoreWriteFailure(str(exc)) from exc
        return outcome

    # -----------------------------------------------------------------------
    # goal contract
    # -----------------------------------------------------------------------

    async def get_active_goal(self, user_id: uuid.UUID) -> Goal | None:
        rows = await self._fetch(
            f"SELECT {_GOAL_COLUMNS} FROM goals "
            "WHERE user_id = :user_id AND status = 'active' LIMIT 1",
            {"user_id": user_id},
        )
        return Goal.model_validate(rows[0]) if rows else None

    async def get_completed_goals(self, user_id: uuid.UUID) -> list[GoalWithEntry]:
        goal_cols = ", ".join(f"g.{c.strip()}" for c in _GOAL_COLUMNS.split(","))
        rows = await self._fetch(
            f"SELECT {goal_cols}, "
            "e.id AS e_id, e.user_id AS e_user_id, e.weight AS e_weight, "
            "e.recorded_at AS e_recorded_at, e.created_at AS e_created_at "
            "FROM goals g "
            "LEFT JOIN entries e ON e.id = g.completed_entry_id AND e.user_id = g.user_id "
            "WHERE g.user_id = :user_id AND g.status = 'completed' "
            "ORDER BY g.completed_at DESC",
            {"user_id": user_id},
        )
        goals: list[GoalWithEntry] = []
        for row in rows:
            joined = {k[2:]: row.pop(k) for k in list(row) if k.startswith("e_")}
            entry = Entry.model_validate(joined) if joined.get("id") is not None else None
            goals.append(GoalWithEntry.model_validate({**row, "completing_entry": entry}))
        return goals

    async def get_entries(self, user_id: uuid.UUID, *, limit: int) -> list[Entry]:
        rows = await self._fetch(
            f"SELECT {_ENTRY_COLUMNS} FROM entries "
            "WHERE user_id = :user_id ORDER BY recorded_at DESC LIMIT :limit",
            {"user_id": user_id, "limit": limit},
        )
        return [Entry.model_validate(r) for r in rows]

    async def update_goal_to_completed(
        self, user_id: uuid.UUID, goal_id: uuid.UUID, entry_id: uuid.UUID, completed_at: datetime
    ) -> None:
        await self._write(
            "UPDATE goals SET status = 'completed', completed_at = :completed_at, "
            "completed_entry_id = :entry_id WHERE id = :goal_id AND user_id = :user_id",
            {"user_id": user_id, "goal_id": goal_id, "entry_id": entry_id, "completed_at": completed_at},
        )

    async def revert_goal_to_active(self, user_id: uuid.UUID, goal_id: uuid.UUID) -> None:
        await self._write(
            "UPDATE goals SET status = 'active', completed_at = NULL, completed_entry_id = NULL "
            "WHERE id = :goal_id AND user_id = :user_id",
            {"user_id": user_id, "goal_id": goal_id},
        )

    async def update_goal_completion_details(
        self, user_id: uuid.UUID, goal_id: uuid.UUID, entry_id: uuid.UUID, completed_at: datetime
    ) -> None:
        await self._write(
            "UPDATE goals SET completed_at = :completed_at, completed_entry_id = :entry_id "
            "WHERE id = :goal_id AND user_id = :user_id AND status = 'completed'",
            {"user_id": user_id, "goal_id": goal_id, "entry_id": entry_id, "completed_at": completed_at},
        )

    # -----------------------------------------------------------------------
    # entry / goal CRUD
    # -----------------------------------------------------------------------

    async def get_entry(self, user_id: uuid.UUID, entry_id: uuid.UUID) -> Entry | None:
        rows = await self._fetch(
            f"SELECT {_ENTRY_COLUMNS} FROM entries WHERE id = :entry_id AND user_id = :user_id",
            {"user_id": user_id, "entry_id": entry_id},
        )
        return Entry.model_validate(rows[0]) if rows else None

    async def get_latest_entry(self, user_id: uuid.UUID) -> Entry | None:
        entries = await self.get_entries(user_id, limit=1)
        return entries[0] if entries else None

    async def create_entry(self, entry: Entry) -> Entry:
        await self._write(
            f"INSERT INTO entries ({_ENTRY_COLUMNS}) "
            "VALUES (:id, :user_id, :weight, :recorded_at, :created_at)",
            entry.model_dump(),
        )
        return entry

    async def update_entry(
        self, user_id: uuid.UUID, entry_id: uuid.UUID, weight: float, recorded_at: datetime | None
    ) -> Entry | None:
        rows = await self._write(
            "UPDATE entries SET weight = :weight, "
            "recorded_at = COALESCE(:recorded_at, recorded_at) "
            "WHERE id = :entry_id AND user_id = :user_id "
            f"RETURNING {_ENTRY_COLUMNS}",
            {"user_id": user_id, "entry_id": entry_id, "weight": weight, "recorded_at": recorded_at},
            returning=True,
        )
        return Entry.model_validate(rows[0]) if rows else None

    async def delete_entry(self, user_id: uuid.UUID, entry_id: uuid.UUID) -> bool:
        deleted = await self._write(
            "DELETE FROM entries WHERE id = :entry_id AND user_id = :user_id",
            {"user_id": user_id, "entry_id": entry_id},
        )
        return deleted > 0

    async def create_goal(self, goal: Goal) -> Goal:
        params = goal.model_dump()
        params["status"] = GoalStatus(goal.status).value
        try:
            await self._write(
                f"INSERT INTO goals ({_GOAL_COLUMNS}) VALUES "
                "(:id, :user_id, :start_weight, :target_weight, :target_date, :status, "
                ":completed_at, :completed_entry_id, :created_at)",
                params,
            )
        except StoreConflict as exc:
            logger.info("Goal insert rejected for user %s: %s", goal.user_id, exc)
            raise ActiveGoalExists("An active goal already exists") from exc
        return goal

    async def delete_goal(self, user_id: uuid.UUID, goal_id: uuid.UUID) -> bool:
        deleted = await self._write(
            "DELETE FROM goals WHERE id = :goal_id AND user_id = :user_id",
            {"user_id": user_id, "goal_id": goal_id},
        )
        return deleted > 0

    # -----------------------------------------------------------------------
    # profile
    # -----------------------------------------------------------------------

    async def get_profile(self, user_id: uuid.UUID) -> Profile | None:
        rows = await self._fetch(
            f"SELECT {_PROFILE_COLUMNS} FROM profiles WHERE id = :user_id",
            {"user_id": user_id},
        )
        return Profile.model_validate(rows[0]) if rows else None

    async def save_profile(self, profile: Profile) -> Profile:
        """Insert or update preferences. created_at is kept from the first save."""
        params = profile.model_dump()
        params["preferred_unit"] = WeightUnit(profile.preferred_unit).value
        rows = await self._write(
            f"INSERT INTO profiles ({_PROFILE_COLUMNS}) "
            "VALUES (:id, :preferred_unit, :timezone, :created_at) "
            "ON CONFLICT (id) DO UPDATE SET preferred_unit = EXCLUDED.preferred_unit, "
            "timezone = EXCLUDED.timezone "
            f"RETURNING {_PROFILE_COLUMNS}",
            params,
            returning=True,
        )
        return Profile.model_validate(rows[0]) if rows else profile
