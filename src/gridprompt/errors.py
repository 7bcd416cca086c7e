"""
Error taxonomy for gridprompt.

Run-level errors (invalid job, run already active, bad configuration) are
raised before any row starts. Call-level errors are raised by the remote
call boundary and are recorded per row by the scheduler; they never stop
a run.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class GridPromptError(Exception):
    """Base exception for all gridprompt errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class JobValidationError(GridPromptError):
    """Raised when a job cannot be started (missing or invalid parameters)."""

    def __init__(
        self,
        message: str,
        validation_errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(
            f"Invalid job: {message}",
            details={"validation_errors": validation_errors or []},
        )
        self.validation_errors = validation_errors or []


class ConfigError(GridPromptError):
    """Raised when configuration values are invalid or a credential is missing."""


class CallErrorType(str, Enum):
    """Classification of a failed remote call."""

    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    EMPTY_RESPONSE = "empty_response"


class CallError(GridPromptError):
    """A single remote call failed. Recorded as an error row, never fatal."""

    error_type: CallErrorType = CallErrorType.TRANSPORT

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, type={self.error_type.value})"


class CallTimeoutError(CallError):
    """The remote call did not settle before the deadline."""

    error_type = CallErrorType.TIMEOUT

    def __init__(self, timeout_s: float) -> None:
        super().__init__(
            f"Request timed out after {timeout_s:g}s",
            details={"timeout_s": timeout_s},
        )
        self.timeout_s = timeout_s


class TransportError(CallError):
    """Network failure or non-success HTTP status from the remote service."""

    error_type = CallErrorType.TRANSPORT

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if status_code is not None:
            details["status_code"] = status_code
        if cause is not None:
            details["cause_type"] = type(cause).__name__
        super().__init__(message, details)
        self.status_code = status_code
        self.cause = cause


class EmptyResponseError(CallError):
    """The remote service answered without any text."""

    error_type = CallErrorType.EMPTY_RESPONSE

    def __init__(self, message: str = "No response text returned") -> None:
        super().__init__(message)
