"""Drives export, restore and health import on behalf of a UI.

The controller runs on an asyncio loop standing in for the UI thread. Store
work is pushed to a worker thread, and every outcome is published as an
``ExchangeEvent`` on ``events`` for a single UI consumer. One operation runs
at a time; requests made while busy are rejected with an info event.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Literal

from loguru import logger
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from trainstate.backup.errors import (
    BackupError,
    MalformedDocument,
    MalformedSection,
    PartialRestoreRisk,
    StoreWriteFailure,
)
from trainstate.backup.files import read_backup, write_backup
from trainstate.backup.restore import RestoreResult, restore
from trainstate.backup.snapshot import export_document
from trainstate.db.repository import WorkoutStore
from trainstate.db.session import get_session
from trainstate.ingestion.health_import import HealthImporter, ImportResult
from trainstate.integrations.healthkit.client import HealthStore
from trainstate.integrations.healthkit.errors import AuthorizationDenied, HealthImportError, SourceUnreachable

SessionFactory = Callable[[], AbstractContextManager[Session]]
BackupPicker = Callable[[], Awaitable[Path | None]]
Confirmation = Callable[[str], Awaitable[bool]]

RESTORE_WARNING = "This will replace all existing data. Are you sure?"


class ExchangeEvent(BaseModel):
    operation: Literal["export", "restore", "health_import"]
    kind: Literal["progress", "completed", "failed", "info"]
    message: str = ""
    progress: float | None = None
    count: int | None = None


def describe_error(error: Exception) -> str:
    """Human-readable message for a data-exchange failure."""
    if isinstance(error, MalformedDocument):
        return f"The selected file is not a TrainState backup. {error}"
    if isinstance(error, MalformedSection):
        return f"The backup is damaged and was not restored. {error}"
    if isinstance(error, StoreWriteFailure):
        return f"Failed to import data: {error}"
    if isinstance(error, PartialRestoreRisk):
        return f"Restore was interrupted and your data may be incomplete. {error}"
    if isinstance(error, AuthorizationDenied):
        return str(error)
    if isinstance(error, SourceUnreachable):
        return f"Unable to read workouts from Health. {error}"
    if isinstance(error, SQLAlchemyError):
        return f"The local database could not be read or written. {error}"
    return f"An unexpected error occurred: {error}"


class DataExchangeController:
    def __init__(
        self,
        *,
        session_factory: SessionFactory = get_session,
        health_store: HealthStore | None = None,
        backup_dir: Path | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._health_store = health_store
        self._backup_dir = backup_dir
        self._busy = False
        self.events: asyncio.Queue[ExchangeEvent] = asyncio.Queue()

    @property
    def busy(self) -> bool:
        return self._busy

    def _publish(self, event: ExchangeEvent) -> None:
        self.events.put_nowait(event)

    def _claim(self, operation: str) -> bool:
        if self._busy:
            logger.info(f"[CONTROLLER] Rejecting {operation}: another operation is in progress")
            self._publish(ExchangeEvent(operation=operation, kind="info", message="Another operation is in progress."))
            return False
        self._busy = True
        return True

    # Export

    def _export_blocking(self, directory: Path) -> Path:
        with self._session_factory() as session:
            payload = export_document(WorkoutStore(session))
        return write_backup(directory, payload)

    async def export_backup(self, directory: Path | None = None) -> Path | None:
        """Write a backup file and return its path, or None on failure."""
        if not self._claim("export"):
            return None
        target = directory or self._backup_dir
        try:
            if target is None:
                raise ValueError("No backup directory configured")
            path = await asyncio.to_thread(self._export_blocking, target)
        except (BackupError, SQLAlchemyError, OSError, ValueError) as e:
            logger.exception("[CONTROLLER] Export failed")
            self._publish(ExchangeEvent(operation="export", kind="failed", message=describe_error(e)))
            return None
        finally:
            self._busy = False
        self._publish(ExchangeEvent(operation="export", kind="completed", message=f"Backup saved to {path}"))
        return path

    # Restore

    def _restore_blocking(self, path: Path) -> RestoreResult:
        payload = read_backup(path)
        with self._session_factory() as session:
            return restore(payload, WorkoutStore(session))

    async def restore_backup(self, path: Path) -> RestoreResult | None:
        """Replace local data with the backup at ``path``."""
        if not self._claim("restore"):
            return None
        try:
            result = await asyncio.to_thread(self._restore_blocking, path)
        except (BackupError, SQLAlchemyError, OSError) as e:
            logger.error(f"[CONTROLLER] Restore failed: {e}")
            self._publish(ExchangeEvent(operation="restore", kind="failed", message=describe_error(e)))
            return None
        finally:
            self._busy = False
        self._publish(
            ExchangeEvent(
                operation="restore",
                kind="completed",
                message=f"Restored {result.workouts} workouts.",
                count=result.workouts,
            )
        )
        return result

    async def restore_from_picker(self, picker: BackupPicker, confirm: Confirmation) -> RestoreResult | None:
        """Let the user pick a backup, confirm, then restore it.

        ``picker`` and ``confirm`` are held only for the duration of this call.
        """
        path = await picker()
        if path is None:
            self._publish(ExchangeEvent(operation="restore", kind="info", message="No backup selected."))
            return None
        if not await confirm(RESTORE_WARNING):
            self._publish(ExchangeEvent(operation="restore", kind="info", message="Restore cancelled."))
            return None
        return await self.restore_backup(path)

    # Health import

    async def import_health(self, *, only_unimported: bool = True) -> ImportResult | None:
        """Import workouts from the health store, asking for access if needed."""
        if self._health_store is None:
            self._publish(ExchangeEvent(operation="health_import", kind="info", message="No health store configured."))
            return None
        if not self._claim("health_import"):
            return None

        importer = HealthImporter(self._health_store)
        loop = asyncio.get_running_loop()

        # Called from the importer's worker thread
        def on_progress(fraction: float) -> None:
            event = ExchangeEvent(operation="health_import", kind="progress", progress=fraction)
            loop.call_soon_threadsafe(self._publish, event)

        try:
            if not await importer.check_authorization() and not await importer.request_authorization():
                raise AuthorizationDenied()
            with self._session_factory() as session:
                store = WorkoutStore(session)
                if only_unimported:
                    result = await importer.import_unimported(store, on_progress)
                else:
                    result = await importer.import_all(store, on_progress)
        except AuthorizationDenied as e:
            self._publish(ExchangeEvent(operation="health_import", kind="info", message=describe_error(e)))
            return None
        except (HealthImportError, SQLAlchemyError) as e:
            logger.error(f"[CONTROLLER] Health import failed: {e}")
            self._publish(ExchangeEvent(operation="health_import", kind="failed", message=describe_error(e)))
            return None
        finally:
            self._busy = False

        self._publish(
            ExchangeEvent(
                operation="health_import",
                kind="completed",
                message=f"Imported {result.inserted} new workouts.",
                count=result.inserted,
            )
        )
        return result
