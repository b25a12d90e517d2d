from __future__ import annotations

from typing import Any
from uuid import uuid4

from pydantic import AwareDatetime, BaseModel, Field, ValidationError

from trainstate.integrations.healthkit.activity_types import map_activity_code
from trainstate.integrations.healthkit.errors import RecordTranslationSkipped
from trainstate.models.records import WorkoutRecord, to_utc_second

IMPORTED_NOTE = "Imported from Apple Health"


class HealthWorkout(BaseModel):
    """One workout as delivered by the external health store."""

    uuid: str = Field(min_length=1)
    activity_type_code: int | None = None
    start_date: AwareDatetime
    duration: float = Field(ge=0)  # seconds
    calories: float | None = None  # kcal
    distance: float | None = None  # meters
    source_name: str | None = None


def map_health_workout(raw: dict[str, Any]) -> WorkoutRecord:
    """Translate a raw health-store workout into a new local workout record.

    Raises:
        RecordTranslationSkipped: the raw record is missing fields or carries
            invalid values
    """
    try:
        workout = HealthWorkout.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise RecordTranslationSkipped(raw.get("uuid") if isinstance(raw, dict) else None, f"{location}: {first['msg']}") from e

    return WorkoutRecord(
        id=uuid4(),
        type=map_activity_code(workout.activity_type_code),
        start_date=to_utc_second(workout.start_date),
        duration=workout.duration,
        calories=workout.calories,
        distance=workout.distance,
        notes=IMPORTED_NOTE,
        external_id=workout.uuid,
        hk_activity_type_raw=workout.activity_type_code,
    )
