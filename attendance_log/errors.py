from __future__ import annotations


class AttendanceLogError(Exception):
    """Base class for every error raised by this project."""


class ConfigError(AttendanceLogError):
    """A required configuration value is missing or invalid."""


class CredentialError(AttendanceLogError):
    """The service account key file is missing, unreadable or malformed."""


class AuthError(AttendanceLogError):
    """Credentials or the HTTP transport could not be turned into a client."""


class RemoteStoreError(AttendanceLogError):
    """A call to the remote spreadsheet failed."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.retryable = retryable


class RemoteTimeoutError(RemoteStoreError):
    """A call to the remote spreadsheet did not complete in time."""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=True)


class AllocationError(AttendanceLogError):
    """Reading the existing rows of a range failed."""

    def __init__(self, range_id: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Could not allocate a serial number for {range_id}: {cause}")
        self.range_id = range_id
        self.cause = cause


class AllocationTimeoutError(AllocationError):
    """Reading the existing rows of a range timed out."""


class AppendError(AttendanceLogError):
    """Appending a row failed; a retry allocates a fresh serial number."""

    def __init__(
        self,
        range_id: str,
        serial_number: int | None = None,
        cause: BaseException | None = None,
        *,
        message: str | None = None,
    ) -> None:
        if message is None:
            message = f"Could not append serial {serial_number} to {range_id}: {cause}"
        super().__init__(message)
        self.range_id = range_id
        self.serial_number = serial_number
        self.cause = cause


class AppendTimeoutError(AppendError):
    """The append call, or the wait for the range lock, timed out."""
