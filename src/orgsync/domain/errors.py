"""Error taxonomy for the extraction and resolution pipelines."""

from __future__ import annotations

from orgsync.domain.model.enums import ErrorCode


class OrgSyncError(RuntimeError):
    """Base class for pipeline errors that are converted into error-log entries."""

    code: ErrorCode = ErrorCode.UNEXPECTED


class TransportError(OrgSyncError):
    """Raised when a warehouse call fails or returns a malformed envelope."""

    code = ErrorCode.TRANSPORT

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MappingError(OrgSyncError):
    """Raised when a raw row cannot be turned into a record."""

    def __init__(self, message: str, *, code: ErrorCode = ErrorCode.MISSING_EXTERNAL_KEY) -> None:
        super().__init__(message)
        self.code = code


class PersistenceError(OrgSyncError):
    """Raised when a bulk write fails as a whole."""

    code = ErrorCode.PERSISTENCE
