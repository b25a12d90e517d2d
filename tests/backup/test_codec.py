import base64
import json
from datetime import UTC, datetime, timedelta, timezone
from uuid import uuid4

import pytest

from trainstate.backup.codec import decode, decode_sections, encode
from trainstate.backup.errors import MalformedDocument, MalformedSection
from trainstate.models.records import ActivityType, CategoryRecord, SubcategoryRecord, WorkoutRecord


def _records():
    category = CategoryRecord(id=uuid4(), name="Legs", color="#0000FF", workout_type=ActivityType.STRENGTH)
    subcategory = SubcategoryRecord(id=uuid4(), name="Squat", category_id=category.id)
    workout = WorkoutRecord(
        id=uuid4(),
        type=ActivityType.STRENGTH,
        start_date=datetime(2025, 1, 15, 9, 30, 12, 987654, tzinfo=timezone(timedelta(hours=1))),
        duration=2700.0,
        calories=380.5,
        notes="Felt strong",
        category_ids=[category.id],
        subcategory_ids=[subcategory.id],
        external_id="HK-1",
        hk_activity_type_raw=50,
    )
    return workout, category, subcategory


def test_round_trip_keeps_records_at_second_precision():
    workout, category, subcategory = _records()

    decoded = decode(encode([workout], [category], [subcategory]))

    assert decoded.categories == [category]
    assert decoded.subcategories == [subcategory]
    restored = decoded.workouts[0]
    assert restored.start_date == datetime(2025, 1, 15, 8, 30, 12, tzinfo=UTC)
    assert restored.model_dump(exclude={"start_date"}) == workout.model_dump(exclude={"start_date"})


def test_encode_uses_portable_layout():
    workout, category, subcategory = _records()

    document = json.loads(encode([workout], [category], [subcategory]))

    assert set(document) == {"workouts", "categories", "subcategories"}
    workouts = json.loads(base64.b64decode(document["workouts"]))
    assert workouts[0]["startDate"] == "2025-01-15T08:30:12Z"
    assert workouts[0]["type"] == "Strength Training"
    assert workouts[0]["healthKitUUID"] == "HK-1"
    assert workouts[0]["categoryIds"] == [str(category.id)]
    categories = json.loads(base64.b64decode(document["categories"]))
    assert categories[0]["workoutType"] == "Strength Training"


def test_empty_store_round_trips_to_empty_lists():
    decoded = decode(encode([], [], []))

    assert decoded.workouts == []
    assert decoded.categories == []
    assert decoded.subcategories == []


def test_missing_section_decodes_as_empty(make_document, workout_json):
    workout_id = str(uuid4())
    decoded = decode(make_document(workouts=[workout_json(workout_id)], subcategories=[]))

    assert decoded.categories == []
    assert [str(w.id) for w in decoded.workouts] == [workout_id]


def test_unknown_record_fields_are_ignored(make_document, workout_json):
    decoded = decode(make_document(workouts=[workout_json(str(uuid4()), heartRate=150)]))

    assert len(decoded.workouts) == 1


@pytest.mark.parametrize(
    "payload",
    [
        b"not json at all",
        b"[1, 2, 3]",
        b'"workouts"',
        json.dumps({"workouts": 42}).encode(),
        json.dumps({"workouts": "%%% not base64 %%%"}).encode(),
        json.dumps({"sessions": base64.b64encode(b"[]").decode()}).encode(),
    ],
)
def test_malformed_outer_document_is_rejected(payload):
    with pytest.raises(MalformedDocument):
        decode(payload)


def test_decode_sections_returns_raw_blobs(make_document):
    sections = decode_sections(make_document(categories=[]))

    assert sections == {"categories": b"[]"}


def test_unknown_workout_type_names_the_section(make_document, workout_json):
    payload = make_document(workouts=[workout_json(str(uuid4()), type="Zumba")])

    with pytest.raises(MalformedSection) as exc_info:
        decode(payload)

    assert exc_info.value.section == "workouts"


def test_missing_required_field_is_malformed_section(make_document, workout_json):
    record = workout_json(str(uuid4()))
    del record["duration"]

    with pytest.raises(MalformedSection) as exc_info:
        decode(make_document(workouts=[record]))

    assert exc_info.value.section == "workouts"
    assert "duration" in exc_info.value.detail


def test_workout_without_type_is_malformed_section(make_document, workout_json):
    record = workout_json(str(uuid4()))
    del record["type"]

    with pytest.raises(MalformedSection) as exc_info:
        decode(make_document(workouts=[record]))

    assert exc_info.value.section == "workouts"
    assert "type" in exc_info.value.detail


def test_category_without_color_is_malformed_section(make_document):
    category = {"id": str(uuid4()), "name": "Legs", "workoutType": "Strength Training"}

    with pytest.raises(MalformedSection) as exc_info:
        decode(make_document(workouts=[], categories=[category]))

    assert exc_info.value.section == "categories"
    assert "color" in exc_info.value.detail


def test_timestamp_without_zone_is_rejected(make_document, workout_json):
    payload = make_document(workouts=[workout_json(str(uuid4()), startDate="2025-02-01T07:00:00")])

    with pytest.raises(MalformedSection):
        decode(payload)


def test_section_that_is_not_a_list_is_rejected(make_document):
    payload = make_document(workouts=[], categories={"id": str(uuid4()), "name": "Solo"})

    with pytest.raises(MalformedSection) as exc_info:
        decode(payload)

    assert exc_info.value.section == "categories"


def test_section_with_invalid_json_is_rejected():
    document = {"subcategories": base64.b64encode(b"[{broken").decode()}

    with pytest.raises(MalformedSection) as exc_info:
        decode(json.dumps(document).encode())

    assert exc_info.value.section == "subcategories"
