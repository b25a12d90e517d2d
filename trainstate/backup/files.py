from __future__ import annotations

from datetime import datetime
from pathlib import Path

from loguru import logger

BACKUP_PREFIX = "TrainState_Backup_"
BACKUP_SUFFIX = ".json"


def backup_filename(now: datetime | None = None) -> str:
    """Return the conventional backup filename, e.g. ``TrainState_Backup_2025-01-15_08-30.json``."""
    timestamp = (now or datetime.now()).strftime("%Y-%m-%d_%H-%M")
    return f"{BACKUP_PREFIX}{timestamp}{BACKUP_SUFFIX}"


def write_backup(directory: Path, payload: bytes, now: datetime | None = None) -> Path:
    """Write ``payload`` into ``directory`` under the conventional name."""
    directory = directory.expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / backup_filename(now)
    path.write_bytes(payload)
    logger.info(f"[BACKUP] Wrote {len(payload)} bytes to {path}")
    return path


def read_backup(path: Path) -> bytes:
    path = path.expanduser()
    payload = path.read_bytes()
    logger.info(f"[BACKUP] Read {len(payload)} bytes from {path}")
    return payload


def list_backups(directory: Path) -> list[Path]:
    """Backups in ``directory``, newest first."""
    directory = directory.expanduser()
    if not directory.exists():
        return []
    return sorted(directory.glob(f"{BACKUP_PREFIX}*{BACKUP_SUFFIX}"), reverse=True)
