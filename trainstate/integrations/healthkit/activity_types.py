"""HealthKit workout activity codes and their mapping to local workout types.

Codes are the raw values of ``HKWorkoutActivityType``. Several granular
external codes collapse onto one local type; anything unlisted maps to Other.
"""

from __future__ import annotations

from trainstate.models.records import ActivityType

HK_ACTIVITY_CODES: dict[str, int] = {
    "americanFootball": 1,
    "archery": 2,
    "australianFootball": 3,
    "badminton": 4,
    "baseball": 5,
    "basketball": 6,
    "bowling": 7,
    "boxing": 8,
    "climbing": 9,
    "cricket": 10,
    "crossTraining": 11,
    "curling": 12,
    "cycling": 13,
    "dance": 14,
    "danceInspiredTraining": 15,
    "elliptical": 16,
    "equestrianSports": 17,
    "fencing": 18,
    "fishing": 19,
    "functionalStrengthTraining": 20,
    "golf": 21,
    "gymnastics": 22,
    "handball": 23,
    "hiking": 24,
    "hockey": 25,
    "hunting": 26,
    "lacrosse": 27,
    "martialArts": 28,
    "mindAndBody": 29,
    "mixedMetabolicCardioTraining": 30,
    "paddleSports": 31,
    "play": 32,
    "preparationAndRecovery": 33,
    "racquetball": 34,
    "rowing": 35,
    "rugby": 36,
    "running": 37,
    "sailing": 38,
    "skatingSports": 39,
    "snowSports": 40,
    "soccer": 41,
    "softball": 42,
    "squash": 43,
    "stairClimbing": 44,
    "surfingSports": 45,
    "swimming": 46,
    "tableTennis": 47,
    "tennis": 48,
    "trackAndField": 49,
    "traditionalStrengthTraining": 50,
    "volleyball": 51,
    "walking": 52,
    "waterFitness": 53,
    "waterPolo": 54,
    "waterSports": 55,
    "wrestling": 56,
    "yoga": 57,
    "barre": 58,
    "coreTraining": 59,
    "crossCountrySkiing": 60,
    "downhillSkiing": 61,
    "flexibility": 62,
    "highIntensityIntervalTraining": 63,
    "jumpRope": 64,
    "kickboxing": 65,
    "pilates": 66,
    "snowboarding": 67,
    "stairs": 68,
    "stepTraining": 69,
    "wheelchairWalkPace": 70,
    "wheelchairRunPace": 71,
    "taiChi": 72,
    "mixedCardio": 73,
    "handCycling": 74,
    "discSports": 75,
    "fitnessGaming": 76,
    "cardioDance": 77,
    "socialDance": 78,
    "pickleball": 79,
    "cooldown": 80,
    "swimBikeRun": 82,
    "transition": 83,
    "underwaterDiving": 84,
    "other": 3000,
}

_CODE_NAMES: dict[int, str] = {code: name for name, code in HK_ACTIVITY_CODES.items()}

# Export files spell codes as HKWorkoutActivityType + capitalized case name
_EXPORT_PREFIX = "HKWorkoutActivityType"
_EXPORT_NAMES: dict[str, int] = {f"{_EXPORT_PREFIX}{name[0].upper()}{name[1:]}": code for name, code in HK_ACTIVITY_CODES.items()}

_LOCAL_TYPES: dict[ActivityType, tuple[str, ...]] = {
    ActivityType.STRENGTH: ("traditionalStrengthTraining", "functionalStrengthTraining", "coreTraining"),
    ActivityType.RUNNING: ("running", "wheelchairRunPace"),
    ActivityType.CYCLING: ("cycling", "handCycling"),
    ActivityType.SWIMMING: ("swimming",),
    ActivityType.YOGA: ("yoga", "mindAndBody", "flexibility", "taiChi"),
    ActivityType.CARDIO: (
        "walking",
        "wheelchairWalkPace",
        "hiking",
        "elliptical",
        "rowing",
        "stairClimbing",
        "stairs",
        "stepTraining",
        "mixedCardio",
        "mixedMetabolicCardioTraining",
        "highIntensityIntervalTraining",
        "jumpRope",
        "kickboxing",
        "crossTraining",
        "barre",
        "pilates",
        "dance",
        "danceInspiredTraining",
        "cardioDance",
        "socialDance",
    ),
}

_CODE_TO_LOCAL: dict[int, ActivityType] = {
    HK_ACTIVITY_CODES[name]: local for local, names in _LOCAL_TYPES.items() for name in names
}


def map_activity_code(code: int | None) -> ActivityType:
    """Translate an external activity code into the local workout type."""
    if code is None:
        return ActivityType.OTHER
    return _CODE_TO_LOCAL.get(code, ActivityType.OTHER)


def code_from_export_name(name: str | None) -> int | None:
    """Resolve an export ``workoutActivityType`` attribute to its raw code."""
    if not name:
        return None
    return _EXPORT_NAMES.get(name.strip())


def activity_type_name(code: int | None) -> str | None:
    """Readable name for an external code, e.g. 50 -> "Traditional Strength Training"."""
    name = _CODE_NAMES.get(code) if code is not None else None
    if name is None:
        return None
    words: list[str] = []
    for char in name:
        if char.isupper() and words:
            words.append(" ")
        words.append(char)
    return "".join(words).title()
