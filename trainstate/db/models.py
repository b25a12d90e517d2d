from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String, Table, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models."""


workout_categories = Table(
    "workout_categories",
    Base.metadata,
    Column("workout_id", String, ForeignKey("workouts.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", String, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)

workout_subcategories = Table(
    "workout_subcategories",
    Base.metadata,
    Column("workout_id", String, ForeignKey("workouts.id", ondelete="CASCADE"), primary_key=True),
    Column("subcategory_id", String, ForeignKey("subcategories.id", ondelete="CASCADE"), primary_key=True),
)


class WorkoutCategory(Base):
    """User-defined workout category (e.g. "Push day"), optionally bound to a workout type."""

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String, nullable=False, default="")
    color: Mapped[str] = mapped_column(String, nullable=False, default="#FF0000")  # hex string
    workout_type: Mapped[str | None] = mapped_column(String, nullable=True)

    subcategories: Mapped[list[WorkoutSubcategory]] = relationship(
        back_populates="category",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class WorkoutSubcategory(Base):
    """Subcategory belonging to at most one category."""

    __tablename__ = "subcategories"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String, nullable=False, default="")
    category_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("categories.id", ondelete="CASCADE"), nullable=True, index=True
    )

    category: Mapped[WorkoutCategory | None] = relationship(back_populates="subcategories")


class Workout(Base):
    """Logged workout.

    Schema:
    - id: UUID primary key (preserved across backup/restore)
    - type: ActivityType raw value ("Running", "Strength Training", ...)
    - start_date: start timestamp, stored as naive UTC
    - duration: seconds
    - external_id: identifier of the health-store record this workout was
      imported from; unique so an external record is never imported twice
    - hk_activity_type_raw: raw external activity code, kept for display
    """

    __tablename__ = "workouts"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    type: Mapped[str] = mapped_column(String, nullable=False, default="Other", index=True)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    duration: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    calories: Mapped[float | None] = mapped_column(Float, nullable=True)
    distance: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    external_id: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    hk_activity_type_raw: Mapped[int | None] = mapped_column(Integer, nullable=True)

    categories: Mapped[list[WorkoutCategory]] = relationship(secondary=workout_categories)
    subcategories: Mapped[list[WorkoutSubcategory]] = relationship(secondary=workout_subcategories)

    __table_args__ = (
        Index("idx_workouts_start_date", "start_date"),
    )
