"""Table definitions for profiles, entries and goals.

The store queries with plain SQL; this metadata only exists to create the
schema. goals.completed_entry_id deliberately has no foreign key: deleting the
completing entry must leave the id in place so revalidation can find the goal.
"""

from __future__ import annotations

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    MetaData,
    Numeric,
    String,
    Table,
    Uuid,
    text,
)
from sqlalchemy.ext.asyncio import AsyncEngine

metadata = MetaData()

profiles = Table(
    "profiles",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("preferred_unit", String(3), nullable=False, server_default="lbs"),
    Column("timezone", String(64), nullable=False, server_default="UTC"),
    Column("created_at", DateTime(timezone=True), nullable=False),
    CheckConstraint("preferred_unit IN ('lbs', 'kg')", name="check_profile_unit"),
)

entries = Table(
    "entries",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("user_id", Uuid, nullable=False),
    Column("weight", Numeric(6, 2), nullable=False),
    Column("recorded_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    CheckConstraint("weight > 0", name="check_entry_weight_positive"),
    Index("idx_entries_user_recorded_at", "user_id", "recorded_at"),
)

goals = Table(
    "goals",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("user_id", Uuid, nullable=False),
    Column("start_weight", Numeric(6, 2), nullable=False),
    Column("target_weight", Numeric(6, 2), nullable=False),
    Column("target_date", Date, nullable=True),
    Column("status", String(16), nullable=False, server_default="active"),
    Column("completed_at", DateTime(timezone=True), nullable=True),
    Column("completed_entry_id", Uuid, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    CheckConstraint("status IN ('active', 'completed')", name="check_goal_status"),
    CheckConstraint("start_weight > 0", name="check_valid_start_weight"),
    CheckConstraint("target_weight > 0", name="check_valid_target_weight"),
    CheckConstraint("start_weight != target_weight", name="check_different_weights"),
    # One active goal per user; completed goals accumulate.
    Index(
        "idx_goals_user_active",
        "user_id",
        unique=True,
        postgresql_where=text("status = 'active'"),
        sqlite_where=text("status = 'active'"),
    ),
    Index("idx_goals_user_completed_at", "user_id", "completed_at"),
)


async def create_all(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
