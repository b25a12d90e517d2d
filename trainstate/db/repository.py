"""Local workout store.

Thin repository over a SQLAlchemy session exposing the operations the
backup and import code needs: query-all, insert, delete, lookup by external
id, and explicit commit/rollback. Transaction boundaries belong to callers.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from trainstate.db.models import Workout, WorkoutCategory, WorkoutSubcategory


class WorkoutStore:
    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    def workouts(self) -> list[Workout]:
        stmt = (
            select(Workout)
            .options(selectinload(Workout.categories), selectinload(Workout.subcategories))
            .order_by(Workout.start_date.desc(), Workout.id)
        )
        return list(self._session.scalars(stmt))

    def categories(self) -> list[WorkoutCategory]:
        return list(self._session.scalars(select(WorkoutCategory).order_by(WorkoutCategory.name, WorkoutCategory.id)))

    def subcategories(self) -> list[WorkoutSubcategory]:
        return list(
            self._session.scalars(select(WorkoutSubcategory).order_by(WorkoutSubcategory.name, WorkoutSubcategory.id))
        )

    def add(self, entity: Workout | WorkoutCategory | WorkoutSubcategory) -> None:
        self._session.add(entity)

    def delete(self, entity: Workout | WorkoutCategory | WorkoutSubcategory) -> None:
        self._session.delete(entity)

    def delete_all(self) -> int:
        """Mark every workout, subcategory and category for deletion.

        Workouts go first so their association rows are removed before the
        categories they point to. Returns the number of entities deleted.
        """
        deleted = 0
        for group in (self.workouts(), self.subcategories(), self.categories()):
            for entity in group:
                self._session.delete(entity)
                deleted += 1
        return deleted

    def find_by_external_id(self, external_id: str) -> Workout | None:
        return self._session.scalars(select(Workout).where(Workout.external_id == external_id)).first()

    def external_ids(self) -> set[str]:
        rows = self._session.scalars(select(Workout.external_id).where(Workout.external_id.is_not(None)))
        return set(rows)

    def unlinked_workouts(self, workout_type: str) -> list[Workout]:
        """Workouts of ``workout_type`` that carry no external id yet."""
        stmt = select(Workout).where(Workout.type == workout_type, Workout.external_id.is_(None))
        return list(self._session.scalars(stmt))

    def flush(self) -> None:
        self._session.flush()

    def commit(self) -> None:
        self._session.commit()

    def rollback(self) -> None:
        self._session.rollback()
