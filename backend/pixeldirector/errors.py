"""Error taxonomy. Every failure carries its kind from the point it is raised."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    FATAL = "fatal"
    PARSE = "parse"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"
    CONFIGURATION = "configuration"


RETRYABLE_KINDS = frozenset({ErrorKind.TRANSIENT, ErrorKind.RATE_LIMITED})


class PixelDirectorError(Exception):
    """Base for all errors raised by the editing pipeline."""

    kind: ErrorKind = ErrorKind.FATAL

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class ValidationError(PixelDirectorError):
    kind = ErrorKind.VALIDATION


class NotFoundError(PixelDirectorError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, label: str, *, operation: str | None = None) -> None:
        super().__init__(f'could not find target "{label}"', operation=operation)
        self.label = label


class TransientServiceError(PixelDirectorError):
    kind = ErrorKind.TRANSIENT


class RateLimitedError(PixelDirectorError):
    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str = "rate limited",
        *,
        retry_after: float | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message, operation=operation)
        self.retry_after = retry_after


class FatalServiceError(PixelDirectorError):
    kind = ErrorKind.FATAL


class JobCanceledError(FatalServiceError):
    """A remote job ended in the ``canceled`` state."""


class ParseError(PixelDirectorError):
    kind = ErrorKind.PARSE

    def __init__(self, context: str, length: int, tail: str, reason: str = "") -> None:
        message = f"could not parse {context} response ({length} chars)"
        if reason:
            message += f": {reason}"
        message += f"; ends with: {tail!r}"
        super().__init__(message)
        self.context = context
        self.length = length
        self.tail = tail


class OperationTimeoutError(PixelDirectorError, TimeoutError):
    kind = ErrorKind.TIMEOUT


class UnsupportedOperationError(PixelDirectorError):
    kind = ErrorKind.UNSUPPORTED


class ConfigurationError(PixelDirectorError):
    kind = ErrorKind.CONFIGURATION
