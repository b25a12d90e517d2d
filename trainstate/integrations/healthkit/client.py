"""External health-store collaborators.

``HealthStore`` is the boundary the importer consumes. ``AppleHealthExportStore``
implements it over an Apple Health ``export.zip`` (or a bare ``export.xml``),
streaming ``<Workout>`` elements with a SAX parser so multi-gigabyte exports
never sit in memory.
"""

from __future__ import annotations

import asyncio
import uuid
import xml.sax
import xml.sax.handler
import zipfile
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from loguru import logger

from trainstate.integrations.healthkit.activity_types import code_from_export_name
from trainstate.integrations.healthkit.errors import SourceUnreachable

AuthorizationPrompt = Callable[[], Awaitable[bool]]

# Stable namespace for ids derived from export rows, which carry no UUID of their own
EXPORT_NAMESPACE = uuid.UUID("5b0c1f0e-8f4e-4a53-9a55-6f1f3b2f6d1c")

_DURATION_TO_SECONDS = {"s": 1.0, "sec": 1.0, "min": 60.0, "hr": 3600.0, "h": 3600.0}
_DISTANCE_TO_METERS = {"m": 1.0, "km": 1000.0, "mi": 1609.344, "yd": 0.9144, "ft": 0.3048}


class HealthStore(Protocol):
    async def check_authorization(self) -> bool: ...

    async def request_authorization(self) -> bool: ...

    async def fetch_workouts(self) -> list[dict[str, Any]]: ...


def _parse_date(value: str | None) -> datetime | None:
    """Parse Apple Health dates, e.g. ``2024-01-15 08:23:44 -0500``."""
    if not value:
        return None
    for fmt in ("%Y-%m-%d %H:%M:%S %z", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            return datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    return None


def _scaled(value: str | None, unit: str | None, table: dict[str, float], default_unit: str) -> float | None:
    if value in (None, ""):
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    factor = table.get((unit or default_unit).strip())
    if factor is None:
        return None
    return number * factor


def export_workout_id(attrs: dict[str, str]) -> str:
    """Stable identifier for an export row: same workout, same id, on every export."""
    key = "|".join(
        attrs.get(name, "") for name in ("workoutActivityType", "startDate", "endDate", "sourceName")
    )
    return str(uuid.uuid5(EXPORT_NAMESPACE, key))


class _WorkoutHandler(xml.sax.handler.ContentHandler):
    """Collects one raw mapping per ``<Workout>`` element."""

    def __init__(self) -> None:
        super().__init__()
        self.workouts: list[dict[str, Any]] = []

    def startElement(self, name: str, attrs) -> None:
        if name != "Workout":
            return
        values = {key: attrs.get(key) for key in attrs.getNames()}
        start = _parse_date(values.get("startDate"))
        self.workouts.append(
            {
                "uuid": export_workout_id(values),
                "activity_type_code": code_from_export_name(values.get("workoutActivityType")),
                "start_date": start,
                "duration": _scaled(values.get("duration"), values.get("durationUnit"), _DURATION_TO_SECONDS, "min"),
                "calories": _scaled(values.get("totalEnergyBurned"), None, {"kcal": 1.0}, "kcal"),
                "distance": _scaled(
                    values.get("totalDistance"), values.get("totalDistanceUnit"), _DISTANCE_TO_METERS, "km"
                ),
                "source_name": values.get("sourceName"),
            }
        )


def parse_export(path: Path) -> list[dict[str, Any]]:
    """Parse every workout in an Apple Health export.

    Raises:
        SourceUnreachable: the file is missing, unreadable, not a zip with an
            ``export.xml`` inside, or not well-formed XML
    """
    handler = _WorkoutHandler()
    try:
        if path.suffix.lower() == ".xml":
            with path.open("rb") as xml_file:
                xml.sax.parse(xml_file, handler)
        else:
            with zipfile.ZipFile(path, "r") as zf:
                xml_candidates = [n for n in zf.namelist() if n.endswith("export.xml")]
                if not xml_candidates:
                    raise SourceUnreachable(f"No export.xml found in {path}. Is this an Apple Health export?")
                with zf.open(xml_candidates[0]) as xml_file:
                    xml.sax.parse(xml_file, handler)
    except FileNotFoundError as e:
        raise SourceUnreachable(f"Health export not found: {path}") from e
    except zipfile.BadZipFile as e:
        raise SourceUnreachable(f"Health export is not a zip archive: {path}") from e
    except xml.sax.SAXParseException as e:
        raise SourceUnreachable(f"Health export XML is malformed: {e}") from e
    except OSError as e:
        raise SourceUnreachable(f"Health export could not be read: {e}") from e

    logger.info(f"[HEALTH_EXPORT] Parsed {len(handler.workouts)} workouts from {path}")
    return handler.workouts


class AppleHealthExportStore:
    """Health store backed by an Apple Health export file.

    Read authorization is a consent flag. It is either granted up front or
    obtained by awaiting ``prompt``, which resolves once the user answers.
    """

    def __init__(
        self,
        export_path: Path,
        *,
        prompt: AuthorizationPrompt | None = None,
        granted: bool = False,
    ) -> None:
        self._export_path = export_path.expanduser()
        self._prompt = prompt
        self._granted = granted

    @property
    def export_path(self) -> Path:
        return self._export_path

    async def check_authorization(self) -> bool:
        return self._granted

    async def request_authorization(self) -> bool:
        if self._granted:
            return True
        if self._prompt is None:
            logger.info("[HEALTH_EXPORT] No authorization prompt available, access stays denied")
            return False
        self._granted = bool(await self._prompt())
        logger.info(f"[HEALTH_EXPORT] Authorization {'granted' if self._granted else 'denied'} by user")
        return self._granted

    async def fetch_workouts(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(parse_export, self._export_path)
