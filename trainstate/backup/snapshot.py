"""Read the local store into backup records."""

from __future__ import annotations

from uuid import UUID

from loguru import logger

from trainstate.backup.codec import DecodedDocument, encode
from trainstate.db.models import Workout, WorkoutCategory, WorkoutSubcategory
from trainstate.db.repository import WorkoutStore
from trainstate.models.records import ActivityType, CategoryRecord, SubcategoryRecord, WorkoutRecord, as_utc


def _activity_type(raw: str | None) -> ActivityType:
    try:
        return ActivityType(raw)
    except ValueError:
        logger.warning(f"[SNAPSHOT] Unknown stored workout type {raw!r}, exporting as Other")
        return ActivityType.OTHER


def workout_to_record(workout: Workout) -> WorkoutRecord:
    return WorkoutRecord(
        id=UUID(workout.id),
        type=_activity_type(workout.type),
        start_date=as_utc(workout.start_date),
        duration=workout.duration,
        calories=workout.calories,
        distance=workout.distance,
        notes=workout.notes,
        category_ids=[UUID(c.id) for c in workout.categories],
        subcategory_ids=[UUID(s.id) for s in workout.subcategories],
        external_id=workout.external_id,
        hk_activity_type_raw=workout.hk_activity_type_raw,
    )


def category_to_record(category: WorkoutCategory) -> CategoryRecord:
    return CategoryRecord(
        id=UUID(category.id),
        name=category.name,
        color=category.color,
        workout_type=_activity_type(category.workout_type) if category.workout_type else None,
    )


def subcategory_to_record(subcategory: WorkoutSubcategory) -> SubcategoryRecord:
    return SubcategoryRecord(
        id=UUID(subcategory.id),
        name=subcategory.name,
        category_id=UUID(subcategory.category_id) if subcategory.category_id else None,
    )


def take_snapshot(store: WorkoutStore) -> DecodedDocument:
    """Read every workout, category and subcategory. Does not mutate the store."""
    return DecodedDocument(
        workouts=[workout_to_record(w) for w in store.workouts()],
        categories=[category_to_record(c) for c in store.categories()],
        subcategories=[subcategory_to_record(s) for s in store.subcategories()],
    )


def export_document(store: WorkoutStore) -> bytes:
    """Snapshot the store and encode it as a backup payload."""
    snapshot = take_snapshot(store)
    logger.info(
        f"[EXPORT] Exporting workouts={len(snapshot.workouts)}, "
        f"categories={len(snapshot.categories)}, subcategories={len(snapshot.subcategories)}"
    )
    return encode(snapshot.workouts, snapshot.categories, snapshot.subcategories)
