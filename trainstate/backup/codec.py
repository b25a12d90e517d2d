"""Portable backup document codec.

A backup is a JSON object with up to three keys, ``workouts``,
``categories`` and ``subcategories``. Each value is a base64 string holding an
independently serialized JSON array of records (the JSON form of a
``{name: bytes}`` mapping). Timestamps are ISO-8601 UTC, truncated to the
second.
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Sequence
from typing import NamedTuple

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from trainstate.backup.errors import MalformedDocument, MalformedSection
from trainstate.models.records import CategoryRecord, SubcategoryRecord, WorkoutRecord

WORKOUTS = "workouts"
CATEGORIES = "categories"
SUBCATEGORIES = "subcategories"
SECTIONS = (WORKOUTS, CATEGORIES, SUBCATEGORIES)

_WORKOUTS_ADAPTER = TypeAdapter(list[WorkoutRecord])
_CATEGORIES_ADAPTER = TypeAdapter(list[CategoryRecord])
_SUBCATEGORIES_ADAPTER = TypeAdapter(list[SubcategoryRecord])

_ADAPTERS: dict[str, TypeAdapter] = {
    WORKOUTS: _WORKOUTS_ADAPTER,
    CATEGORIES: _CATEGORIES_ADAPTER,
    SUBCATEGORIES: _SUBCATEGORIES_ADAPTER,
}


class DecodedDocument(NamedTuple):
    workouts: list[WorkoutRecord]
    categories: list[CategoryRecord]
    subcategories: list[SubcategoryRecord]


def encode(
    workouts: Sequence[WorkoutRecord],
    categories: Sequence[CategoryRecord],
    subcategories: Sequence[SubcategoryRecord],
) -> bytes:
    """Serialize the three record sequences into one backup payload."""
    blobs = {
        WORKOUTS: _WORKOUTS_ADAPTER.dump_json(list(workouts), by_alias=True),
        CATEGORIES: _CATEGORIES_ADAPTER.dump_json(list(categories), by_alias=True),
        SUBCATEGORIES: _SUBCATEGORIES_ADAPTER.dump_json(list(subcategories), by_alias=True),
    }
    document = {name: base64.b64encode(blob).decode("ascii") for name, blob in blobs.items()}
    return json.dumps(document, sort_keys=True).encode("utf-8")


def decode_sections(data: bytes) -> dict[str, bytes]:
    """Decode the outer mapping only, returning the raw section blobs.

    Raises:
        MalformedDocument: payload is not a JSON object of section name to
            base64 string, or carries an unknown section name
    """
    try:
        document = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedDocument(f"Backup is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise MalformedDocument(f"Backup must be a JSON object, got {type(document).__name__}")

    unknown = sorted(set(document) - set(SECTIONS))
    if unknown:
        raise MalformedDocument(f"Backup has unknown sections: {', '.join(unknown)}")

    sections: dict[str, bytes] = {}
    for name, value in document.items():
        if not isinstance(value, str):
            raise MalformedDocument(f"Section '{name}' must be a base64 string, got {type(value).__name__}")
        try:
            sections[name] = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedDocument(f"Section '{name}' is not valid base64: {e}") from e
    return sections


def _decode_section(name: str, blob: bytes | None) -> list:
    if blob is None:
        logger.debug(f"[CODEC] Section '{name}' missing, treating as empty")
        return []
    try:
        return _ADAPTERS[name].validate_json(blob)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise MalformedSection(name, f"{first['msg']} at {location or 'root'}") from e


def decode(data: bytes) -> DecodedDocument:
    """Decode a backup payload into its three record lists.

    Every section is validated before anything is returned, so callers can
    rely on a successful decode before mutating the store.

    Raises:
        MalformedDocument: outer payload is not a valid section mapping
        MalformedSection: a section is not a list of valid records
    """
    sections = decode_sections(data)
    decoded = DecodedDocument(
        workouts=_decode_section(WORKOUTS, sections.get(WORKOUTS)),
        categories=_decode_section(CATEGORIES, sections.get(CATEGORIES)),
        subcategories=_decode_section(SUBCATEGORIES, sections.get(SUBCATEGORIES)),
    )
    logger.debug(
        f"[CODEC] Decoded backup: workouts={len(decoded.workouts)}, "
        f"categories={len(decoded.categories)}, subcategories={len(decoded.subcategories)}"
    )
    return decoded
