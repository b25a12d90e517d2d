"""Import workouts from an external health store into the local store.

Upsert rule, keyed by the external record id:
- external id already stored: update timing and metrics in place, keep the
  user's categories and notes
- no external id match, but an unlinked local workout of the same type
  matches on start time, duration and (when known) calories and distance:
  link it to the external id
- otherwise insert a new workout

Upserts run in a worker thread, so ``on_progress`` is called from that thread.
Each upsert commits on its own. A source failure stops the batch but keeps
what was already written.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from trainstate.db.models import Workout
from trainstate.db.repository import WorkoutStore
from trainstate.integrations.healthkit.activity_types import activity_type_name
from trainstate.integrations.healthkit.client import HealthStore
from trainstate.integrations.healthkit.errors import AuthorizationDenied, RecordTranslationSkipped, SourceUnreachable
from trainstate.integrations.healthkit.schemas import map_health_workout
from trainstate.models.records import WorkoutRecord, as_naive_utc, as_utc

ProgressCallback = Callable[[float], None]

TIME_TOLERANCE_SECONDS = 5.0
DURATION_TOLERANCE_SECONDS = 5.0
CALORIES_TOLERANCE_KCAL = 50.0
DISTANCE_TOLERANCE_METERS = 100.0


@dataclass
class ImportResult:
    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    linked: int = 0
    already_imported: int = 0
    skipped: int = 0
    failed: int = 0
    # Inserted workouts per readable external activity name
    activities: dict[str, int] = field(default_factory=dict)


def _fuzzy_match(candidate: Workout, record: WorkoutRecord) -> bool:
    start_delta = abs((as_utc(candidate.start_date) - record.start_date).total_seconds())
    if start_delta >= TIME_TOLERANCE_SECONDS:
        return False
    if abs(candidate.duration - record.duration) >= DURATION_TOLERANCE_SECONDS:
        return False
    if candidate.calories is not None and record.calories is not None:
        if abs(candidate.calories - record.calories) >= CALORIES_TOLERANCE_KCAL:
            return False
    if candidate.distance is not None and record.distance is not None:
        if abs(candidate.distance - record.distance) >= DISTANCE_TOLERANCE_METERS:
            return False
    return True


class HealthImporter:
    def __init__(self, source: HealthStore) -> None:
        self._source = source

    async def check_authorization(self) -> bool:
        return await self._source.check_authorization()

    async def request_authorization(self) -> bool:
        """Prompt for read access. A denial returns False."""
        granted = await self._source.request_authorization()
        if not granted:
            logger.info("[HEALTH_IMPORT] Health data read access denied")
        return granted

    async def import_all(self, store: WorkoutStore, on_progress: ProgressCallback | None = None) -> ImportResult:
        """Upsert every workout the health store holds."""
        raw_workouts = await self._fetch()
        return await asyncio.to_thread(self._upsert_batch, store, raw_workouts, on_progress, skip_imported=False)

    async def import_unimported(self, store: WorkoutStore, on_progress: ProgressCallback | None = None) -> ImportResult:
        """Upsert only workouts whose external id is not stored yet."""
        raw_workouts = await self._fetch()
        return await asyncio.to_thread(self._upsert_batch, store, raw_workouts, on_progress, skip_imported=True)

    async def _fetch(self) -> list[dict[str, Any]]:
        if not await self._source.check_authorization():
            raise AuthorizationDenied()
        try:
            raw_workouts = await self._source.fetch_workouts()
        except SourceUnreachable:
            raise
        except Exception as e:
            raise SourceUnreachable(f"Unable to read workouts from the health store: {e}") from e
        logger.info(f"[HEALTH_IMPORT] Fetched {len(raw_workouts)} workouts from health store")
        return raw_workouts

    def _upsert_batch(
        self,
        store: WorkoutStore,
        raw_workouts: list[dict[str, Any]],
        on_progress: ProgressCallback | None,
        *,
        skip_imported: bool,
    ) -> ImportResult:
        result = ImportResult(fetched=len(raw_workouts))
        total = len(raw_workouts)
        exclude = store.external_ids() if skip_imported else set()

        for index, raw in enumerate(raw_workouts, start=1):
            try:
                record = map_health_workout(raw)
            except RecordTranslationSkipped as e:
                logger.warning(f"[HEALTH_IMPORT] {e}")
                result.skipped += 1
            else:
                if record.external_id in exclude:
                    result.already_imported += 1
                else:
                    self._upsert_one(store, record, result)
                    exclude.add(record.external_id)

            if on_progress is not None:
                on_progress(index / total)

        if total == 0 and on_progress is not None:
            on_progress(1.0)

        logger.info(
            f"[HEALTH_IMPORT] Import finished: fetched={result.fetched}, inserted={result.inserted}, "
            f"updated={result.updated}, linked={result.linked}, already_imported={result.already_imported}, "
            f"skipped={result.skipped}, failed={result.failed}"
        )
        return result

    def _upsert_one(self, store: WorkoutStore, record: WorkoutRecord, result: ImportResult) -> None:
        try:
            existing = store.find_by_external_id(record.external_id)
            if existing is not None:
                existing.type = record.type.value
                existing.start_date = as_naive_utc(record.start_date)
                existing.duration = record.duration
                existing.calories = record.calories if record.calories is not None else existing.calories
                existing.distance = record.distance if record.distance is not None else existing.distance
                existing.hk_activity_type_raw = record.hk_activity_type_raw
                store.commit()
                result.updated += 1
                return

            match = next(
                (c for c in store.unlinked_workouts(record.type.value) if _fuzzy_match(c, record)),
                None,
            )
            if match is not None:
                logger.debug(f"[HEALTH_IMPORT] Linking local workout {match.id} to {record.external_id}")
                match.external_id = record.external_id
                match.hk_activity_type_raw = record.hk_activity_type_raw
                if match.calories is None:
                    match.calories = record.calories
                if not match.distance:
                    match.distance = record.distance
                store.commit()
                result.linked += 1
                return

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
                )
            )
            store.commit()
            result.inserted += 1
            name = activity_type_name(record.hk_activity_type_raw) or record.type.value
            result.activities[name] = result.activities.get(name, 0) + 1
        except SQLAlchemyError as e:
            logger.error(f"[HEALTH_IMPORT] Failed to store workout {record.external_id}: {e}")
            store.rollback()
            result.failed += 1
