"""Error taxonomy for cloudpath.

Every failure that crosses the transport layer is mapped onto one of the
``ErrorKind`` values below. The kind decides the retry behavior:

    CONFIGURATION              never retried, fatal to the call
    ACCESS_DENIED              never retried
    REAUTHENTICATION_REQUIRED  never retried, caller restarts the operation
    TRANSIENT                  retried within the backoff policy
    CANCELLED                  not an error, the caller asked to stop
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any, ClassVar


class ErrorKind(StrEnum):
    CONFIGURATION = "configuration"
    ACCESS_DENIED = "access_denied"
    REAUTHENTICATION_REQUIRED = "reauthentication_required"
    TRANSIENT = "transient"
    CANCELLED = "cancelled"


class ApiError(Exception):
    """Base error for classified API failures."""

    kind: ClassVar[ErrorKind]

    def __init__(
        self,
        message: str,
        *,
        attempts: int = 1,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.attempts = attempts
        if cause is not None:
            self.__cause__ = cause


class ConfigurationError(ApiError):
    """Invalid endpoint setup or missing client certificate capability."""

    kind = ErrorKind.CONFIGURATION


class AccessDeniedError(ApiError):
    """The service rejected the caller's permissions."""

    kind = ErrorKind.ACCESS_DENIED


class ReauthenticationRequiredError(ApiError):
    """The credential expired or was revoked."""

    kind = ErrorKind.REAUTHENTICATION_REQUIRED


class TransientError(ApiError):
    """Network failure or server overload that outlived the retry budget."""

    kind = ErrorKind.TRANSIENT

    def __str__(self) -> str:
        return f"{self.message} (attempts={self.attempts})"


class OperationCancelledError(ApiError):
    """Cooperative cancellation was observed."""

    kind = ErrorKind.CANCELLED


_ERRORS_BY_KIND: dict[ErrorKind, type[ApiError]] = {
    ErrorKind.CONFIGURATION: ConfigurationError,
    ErrorKind.ACCESS_DENIED: AccessDeniedError,
    ErrorKind.REAUTHENTICATION_REQUIRED: ReauthenticationRequiredError,
    ErrorKind.TRANSIENT: TransientError,
    ErrorKind.CANCELLED: OperationCancelledError,
}


def error_for(
    kind: ErrorKind,
    message: str,
    *,
    attempts: int = 1,
    cause: BaseException | None = None,
) -> ApiError:
    """Build the ``ApiError`` subclass matching ``kind``."""
    return _ERRORS_BY_KIND[kind](message, attempts=attempts, cause=cause)


class BatchError(Exception):
    """One or more resources of a best-effort batch failed.

    ``results`` holds what succeeded, ``failures`` maps every failed
    resource id to its exception.
    """

    def __init__(
        self,
        results: Mapping[Any, Any],
        failures: Mapping[Any, BaseException],
    ) -> None:
        ids = ", ".join(str(key) for key in failures)
        super().__init__(f"Failed to load {len(failures)} resource(s): {ids}")
        self.results = dict(results)
        self.failures = dict(failures)
