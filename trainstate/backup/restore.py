"""Destructive restore of a backup into the local store.

The document is fully decoded and validated before anything is deleted.
Deletion and re-insertion then happen in a single store transaction: any
write error rolls back to the previous dataset.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from trainstate.backup.codec import DecodedDocument, decode
from trainstate.backup.errors import PartialRestoreRisk, StoreWriteFailure
from trainstate.db.models import Workout, WorkoutCategory, WorkoutSubcategory
from trainstate.db.repository import WorkoutStore
from trainstate.models.records import as_naive_utc


@dataclass
class RestoreResult:
    deleted: int = 0
    workouts: int = 0
    categories: int = 0
    subcategories: int = 0
    dropped_references: int = 0


def _resolve(ids: list[UUID] | None, targets: dict[UUID, object], *, workout_id: UUID, kind: str) -> tuple[list, int]:
    """Map referenced ids to inserted entities, dropping ids the document lacks."""
    resolved = []
    dropped = 0
    for ref in ids or []:
        target = targets.get(ref)
        if target is None:
            logger.warning(f"[RESTORE] Workout {workout_id} references missing {kind} {ref}, dropping reference")
            dropped += 1
            continue
        if target not in resolved:
            resolved.append(target)
    return resolved, dropped


def _apply(document: DecodedDocument, store: WorkoutStore, result: RestoreResult) -> None:
    result.deleted = store.delete_all()
    store.flush()
    logger.debug(f"[RESTORE] Deleted {result.deleted} existing entities")

    categories: dict[UUID, WorkoutCategory] = {}
    for record in document.categories:
        category = WorkoutCategory(
            id=str(record.id),
            name=record.name,
            color=record.color,
            workout_type=record.workout_type.value if record.workout_type else None,
        )
        categories[record.id] = category
        store.add(category)

    subcategories: dict[UUID, WorkoutSubcategory] = {}
    for record in document.subcategories:
        subcategory = WorkoutSubcategory(id=str(record.id), name=record.name)
        if record.category_id is not None:
            parent = categories.get(record.category_id)
            if parent is None:
                logger.warning(f"[RESTORE] Subcategory {record.id} references missing category {record.category_id}")
                result.dropped_references += 1
            else:
                subcategory.category = parent
        subcategories[record.id] = subcategory
        store.add(subcategory)

    # Referenced rows must exist before any workout links to them
    store.flush()

    for record in document.workouts:
        linked_categories, dropped_c = _resolve(record.category_ids, categories, workout_id=record.id, kind="category")
        linked_subcategories, dropped_s = _resolve(
            record.subcategory_ids, subcategories, workout_id=record.id, kind="subcategory"
        )
        result.dropped_references += dropped_c + dropped_s
        store.add(
            Workout(
                id=str(record.id),
                type=record.type.value,
                start_date=as_naive_utc(record.start_date),
                duration=record.duration,
                calories=record.calories,
                distance=record.distance,
                notes=record.notes,
                external_id=record.external_id,
                hk_activity_type_raw=record.hk_activity_type_raw,
                categories=linked_categories,
                subcategories=linked_subcategories,
            )
        )

    result.categories = len(categories)
    result.subcategories = len(subcategories)
    result.workouts = len(document.workouts)
    store.commit()


def restore(document: bytes, store: WorkoutStore) -> RestoreResult:
    """Replace the whole local dataset with the contents of ``document``.

    Raises:
        MalformedDocument, MalformedSection: the document does not decode;
            nothing was deleted
        StoreWriteFailure: the store rejected a write; rolled back, the
            previous data is intact
        PartialRestoreRisk: the rollback itself failed; the store state is
            unknown
    """
    decoded = decode(document)
    logger.info(
        f"[RESTORE] Restoring workouts={len(decoded.workouts)}, "
        f"categories={len(decoded.categories)}, subcategories={len(decoded.subcategories)}"
    )

    result = RestoreResult()
    try:
        _apply(decoded, store, result)
    except SQLAlchemyError as e:
        logger.error(f"[RESTORE] Store write failed, rolling back: {e}")
        try:
            store.rollback()
        except SQLAlchemyError as rollback_error:
            logger.exception("[RESTORE] Rollback failed after store write error")
            raise PartialRestoreRisk(
                f"Restore failed and could not be rolled back ({rollback_error}). "
                "Local data may be incomplete; restore again from a backup."
            ) from e
        raise StoreWriteFailure(f"Restore failed, previous data kept: {e}") from e

    logger.info(
        f"[RESTORE] Restore complete: deleted={result.deleted}, workouts={result.workouts}, "
        f"categories={result.categories}, subcategories={result.subcategories}, "
        f"dropped_references={result.dropped_references}"
    )
    return result
