"""Root conftest for all tests.

This file makes shared fixtures available across all test modules.
"""

import base64
import json
from collections import namedtuple
from contextlib import contextmanager
from datetime import UTC, datetime

import pytest
from sqlalchemy.orm import sessionmaker

from trainstate.db.models import Base, Workout, WorkoutCategory, WorkoutSubcategory
from trainstate.db.repository import WorkoutStore
from trainstate.db.session import create_db_engine

SeedIds = namedtuple("SeedIds", ["workout", "category", "subcategory"])

SEED_IDS = SeedIds(
    workout="33333333-3333-4333-8333-333333333333",
    category="11111111-1111-4111-8111-111111111111",
    subcategory="22222222-2222-4222-8222-222222222222",
)


@pytest.fixture
def engine():
    """Isolated in-memory SQLite database per test, foreign keys enabled."""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Drop-in replacement for ``get_session`` bound to the test engine."""
    session_local = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    @contextmanager
    def factory():
        session = session_local()
        try:
            yield session
            if session.dirty or session.new or session.deleted:
                session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return factory


@pytest.fixture
def db_session(engine):
    """
    Provides a plain session on the test database.

    Tests commit and roll back for real; the database is thrown away with the
    engine afterwards.
    """
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def store(db_session) -> WorkoutStore:
    return WorkoutStore(db_session)


@pytest.fixture
def seed_ids() -> SeedIds:
    """Ids of the rows ``seeded_store`` creates."""
    return SEED_IDS


@pytest.fixture
def seeded_store(store: WorkoutStore) -> WorkoutStore:
    """Store holding one category, one subcategory and one linked workout."""
    category = WorkoutCategory(id=SEED_IDS.category, name="Push", color="#00FF00", workout_type="Strength Training")
    subcategory = WorkoutSubcategory(id=SEED_IDS.subcategory, name="Bench", category=category)
    workout = Workout(
        id=SEED_IDS.workout,
        type="Strength Training",
        start_date=datetime(2025, 1, 15, 8, 30, 12),
        duration=3600.0,
        calories=420.0,
        notes="Heavy day",
        categories=[category],
        subcategories=[subcategory],
    )
    store.add(category)
    store.add(subcategory)
    store.add(workout)
    store.commit()
    return store


def _make_document(**sections) -> bytes:
    """Build a backup payload from plain JSON-able section values."""
    document = {
        name: base64.b64encode(json.dumps(value).encode("utf-8")).decode("ascii")
        for name, value in sections.items()
    }
    return json.dumps(document).encode("utf-8")


def _workout_json(workout_id: str, **overrides) -> dict:
    data = {
        "id": workout_id,
        "type": "Running",
        "startDate": "2025-02-01T07:00:00Z",
        "duration": 1800.0,
        "calories": 300.0,
        "distance": 5000.0,
        "notes": None,
        "categoryIds": [],
        "subcategoryIds": [],
        "healthKitUUID": None,
    }
    data.update(overrides)
    return data


def _health_workout(uuid: str, **overrides) -> dict:
    """Raw workout as a health store delivers it."""
    data = {
        "uuid": uuid,
        "activity_type_code": 37,
        "start_date": datetime(2025, 3, 1, 6, 0, 0, 250000, tzinfo=UTC),
        "duration": 2400.0,
        "calories": 350.0,
        "distance": 6000.0,
        "source_name": "Apple Watch",
    }
    data.update(overrides)
    return data


class FakeHealthStore:
    def __init__(self, workouts=None, *, authorized=True, grant_on_request=False, error=None) -> None:
        self.workouts = list(workouts or [])
        self.authorized = authorized
        self.grant_on_request = grant_on_request
        self.error = error
        self.fetches = 0

    async def check_authorization(self) -> bool:
        return self.authorized

    async def request_authorization(self) -> bool:
        self.authorized = self.authorized or self.grant_on_request
        return self.authorized

    async def fetch_workouts(self):
        self.fetches += 1
        if self.error is not None:
            raise self.error
        return list(self.workouts)


@pytest.fixture
def make_document():
    """Builder for backup payloads from plain JSON-able section values."""
    return _make_document


@pytest.fixture
def workout_json():
    """Builder for one workout element of a backup's workouts section."""
    return _workout_json


@pytest.fixture
def health_workout():
    """Builder for raw health-store workouts."""
    return _health_workout


@pytest.fixture
def fake_health_store():
    """The ``FakeHealthStore`` class, for tests to instantiate with their own data."""
    return FakeHealthStore
