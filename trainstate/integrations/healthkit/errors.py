"""Errors raised while importing from an external health store."""


class HealthImportError(Exception):
    """Base exception for health import errors."""


class AuthorizationDenied(HealthImportError):
    """Read access to the health store is not granted.

    An expected outcome rather than a fault: callers show it as information.
    """

    def __init__(self, message: str = "Health data access is denied. Grant workout read access and try again.") -> None:
        super().__init__(message)


class SourceUnreachable(HealthImportError):
    """The health store could not be queried at all."""


class RecordTranslationSkipped(HealthImportError):
    """One external record could not be translated into a local workout."""

    def __init__(self, external_id: str | None, detail: str) -> None:
        super().__init__(f"Skipped health record {external_id or '<unknown>'}: {detail}")
        self.external_id = external_id
        self.detail = detail
