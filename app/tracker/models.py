"""Entry / Goal / Profile records and request bodies (Pydantic v2 models)."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from app.config import settings


class GoalStatus(str, Enum):
    active = "active"
    completed = "completed"


class WeightUnit(str, Enum):
    lbs = "lbs"
    kg = "kg"


class Entry(BaseModel):
    """One weight measurement. `recorded_at` may be backdated; `created_at` is the row time."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    user_id: uuid.UUID
    weight: float
    recorded_at: datetime
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Goal(BaseModel):
    """Target weight a user is pursuing.

    Direction is derived from start vs target, never stored. While active,
    completed_at and completed_entry_id are both None. Once completed,
    completed_at is the completing entry's recorded_at.
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    user_id: uuid.UUID
    start_weight: float
    target_weight: float
    target_date: date | None = None
    status: GoalStatus = GoalStatus.active
    completed_at: datetime | None = None
    completed_entry_id: uuid.UUID | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_loss_goal(self) -> bool:
        return self.start_weight > self.target_weight


class GoalWithEntry(Goal):
    """Completed goal joined with its completing entry (display only)."""

    completing_entry: Entry | None = None


class Profile(BaseModel):
    """Per-user display preferences.

    Weights are stored and compared in the preferred unit as entered; switching
    units relabels them and converts nothing.
    """

    id: uuid.UUID
    preferred_unit: WeightUnit = Field(default_factory=lambda: WeightUnit(settings.default_unit))
    timezone: str = Field(default_factory=lambda: settings.default_timezone)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


def _check_weight(value: float) -> float:
    # Stored as NUMERIC(6, 2).
    value = round(value, 2)
    if value < settings.min_weight:
        raise ValueError(f"Weight must be at least {settings.min_weight}")
    if value > settings.max_weight:
        raise ValueError(f"Weight cannot exceed {settings.max_weight}")
    return value


class EntryCreate(BaseModel):
    weight: float
    recorded_at: datetime | None = None  # None → now

    @field_validator("weight")
    @classmethod
    def check_weight(cls, value: float) -> float:
        return _check_weight(value)


class EntryUpdate(BaseModel):
    weight: float
    recorded_at: datetime | None = None  # None → keep current

    @field_validator("weight")
    @classmethod
    def check_weight(cls, value: float) -> float:
        return _check_weight(value)


class GoalCreate(BaseModel):
    target_weight: float
    target_date: date | None = None

    @field_validator("target_weight")
    @classmethod
    def check_target_weight(cls, value: float) -> float:
        return _check_weight(value)


class ProfileUpdate(BaseModel):
    preferred_unit: WeightUnit | None = None
    timezone: str | None = None  # IANA name, e.g. "Europe/Berlin"

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone {value!r}")
        return value


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


class GoalAchievement(BaseModel):
    actual_weight: float
    exceeded_by: float
    is_over_achieved: bool
    days_to_complete: int | None = None


class CompletedGoalView(BaseModel):
    goal: GoalWithEntry
    achievement: GoalAchievement


class GoalProgress(BaseModel):
    goal: Goal
    current_weight: float | None = None
    progress_pct: float = 0.0
    remaining_weight: float = 0.0
    is_reached: bool = False
    is_over_achieved: bool = False


class EntryStats(BaseModel):
    total_entries: int = 0
    days_tracked: int = 0  # distinct local dates in the profile's timezone
    first_weight: float | None = None
    latest_weight: float | None = None
    weight_change: float | None = None  # latest - first; negative is a loss
    unit: WeightUnit = WeightUnit.lbs
