"""Custom exceptions for PyNeocities."""

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .sync.executor import Operation


class ErrorKind(str, Enum):
    """Kinds of error reported by the Neocities API.

    The API does not document these; the list mirrors the ``error_type``
    values it has been observed to return.
    """

    SITE_NOT_FOUND = "site_not_found"
    INVALID_AUTH = "invalid_auth"
    CANNOT_DELETE_INDEX = "cannot_delete_index"
    CANNOT_DELETE_SITE_DIRECTORY = "cannot_delete_site_directory"
    MISSING_FILES = "missing_files"
    INVALID_FILE_TYPE = "invalid_file_type"

    STATUS = "status"
    """4xx/5xx status with a body that is not an API envelope"""

    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ErrorKind":
        """Map an ``error_type`` string to an ErrorKind.

        ``status`` is never accepted from the wire; it is only generated
        locally.
        """
        if not value:
            return cls.UNKNOWN
        try:
            kind = cls(value)
        except ValueError:
            return cls.UNKNOWN
        if kind is cls.STATUS:
            return cls.UNKNOWN
        return kind


class NeocitiesError(Exception):
    """Base exception for all PyNeocities errors."""


class NeocitiesAPIError(NeocitiesError):
    """Error returned by the Neocities API."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.kind = kind
        self.status_code = status_code
        super().__init__(f"API error: {message} ({kind.value})")

    @property
    def retryable(self) -> bool:
        """Rate limiting and server errors without an API envelope."""
        if self.kind != ErrorKind.STATUS or self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class NeocitiesAuthenticationError(NeocitiesAPIError):
    """Authentication failed."""

    def __init__(self, message: str = "Invalid credentials or API key"):
        super().__init__(message, ErrorKind.INVALID_AUTH)


class NeocitiesNetworkError(NeocitiesError):
    """Network or transport error."""


class NeocitiesInvalidResponseError(NeocitiesError):
    """Server returned something that is not valid JSON."""


class NeocitiesConfigError(NeocitiesError):
    """Configuration error."""


# =============================================================================
# Sync errors
# =============================================================================


class SyncError(NeocitiesError):
    """Base exception for deploy planning and execution errors."""


class ScanError(SyncError):
    """A local path could not be read during the scan."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read {path}: {reason}")


class PolicyViolation(SyncError):
    """A local file has an extension the account tier does not allow.

    Informational only: the file is left out of the deploy.
    """

    def __init__(self, path: str, extension: str):
        self.path = path
        self.extension = extension
        shown = f".{extension}" if extension else "(no extension)"
        super().__init__(f"File type {shown} not allowed for free accounts: {path}")


class RemoteFetchError(SyncError):
    """The remote file list could not be retrieved."""


class OperationError(SyncError):
    """A single upload or delete failed."""

    def __init__(
        self,
        operation: "Operation",
        reason: str,
        cause: Optional[BaseException] = None,
    ):
        self.operation = operation
        self.reason = reason
        self.cause = cause
        super().__init__(f"Failed to {operation}: {reason}")

    @property
    def path(self) -> str:
        return self.operation.path

    @property
    def size(self) -> Optional[int]:
        return self.operation.size


class AggregateFailure(SyncError):
    """One or more operations failed while applying a plan."""

    def __init__(
        self,
        failures: list[OperationError],
        skipped: Optional[list["Operation"]] = None,
    ):
        self.failures = failures
        self.skipped = skipped or []
        message = f"{len(failures)} operation(s) failed"
        if self.skipped:
            message += f", {len(self.skipped)} skipped"
        super().__init__(message)
