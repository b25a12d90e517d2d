"""Domain records exchanged by backup/restore and health import.

Field aliases are the camelCase keys of the portable backup format, so a
record dumped with ``by_alias=True`` is exactly one backup array element.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_serializer


class ActivityType(str, Enum):
    """Local workout type. Values are the raw strings stored in backups."""

    STRENGTH = "Strength Training"
    CARDIO = "Cardio"
    YOGA = "Yoga"
    RUNNING = "Running"
    CYCLING = "Cycling"
    SWIMMING = "Swimming"
    OTHER = "Other"


def to_utc_second(value: datetime) -> datetime:
    """Normalize an aware timestamp to UTC with whole seconds."""
    return value.astimezone(timezone.utc).replace(microsecond=0)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps read back from the database."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def as_naive_utc(value: datetime) -> datetime:
    """Convert an aware timestamp to the naive UTC form stored in the database."""
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class _ExportModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class WorkoutRecord(_ExportModel):
    id: UUID
    type: ActivityType
    start_date: AwareDatetime = Field(alias="startDate")
    duration: float = Field(ge=0)
    calories: float | None = None
    distance: float | None = None
    notes: str | None = None
    category_ids: list[UUID] | None = Field(default=None, alias="categoryIds")
    subcategory_ids: list[UUID] | None = Field(default=None, alias="subcategoryIds")
    external_id: str | None = Field(default=None, alias="healthKitUUID")
    hk_activity_type_raw: int | None = Field(default=None, alias="hkActivityTypeRaw")

    @field_serializer("start_date")
    def _serialize_start_date(self, value: datetime) -> str:
        return to_utc_second(value).isoformat().replace("+00:00", "Z")


class CategoryRecord(_ExportModel):
    id: UUID
    name: str
    color: str
    workout_type: ActivityType | None = Field(default=None, alias="workoutType")


class SubcategoryRecord(_ExportModel):
    id: UUID
    name: str
    category_id: UUID | None = Field(default=None, alias="categoryId")
