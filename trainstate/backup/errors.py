"""Errors raised while encoding, decoding and restoring backups."""


class BackupError(Exception):
    """Base exception for backup and restore errors."""


class MalformedDocument(BackupError):
    """Raised when the outer backup payload is not a mapping of section name to blob."""


class MalformedSection(BackupError):
    """Raised when one section does not decode into the expected record list."""

    def __init__(self, section: str, detail: str) -> None:
        super().__init__(f"Section '{section}' is malformed: {detail}")
        self.section = section
        self.detail = detail


class StoreWriteFailure(BackupError):
    """Raised when the store rejects a restore write. The previous data is intact."""


class PartialRestoreRisk(BackupError):
    """Raised when a failed restore could not be rolled back.

    The store may hold a partially restored dataset. Only a prior export can
    bring the previous data back.
    """
