"""Error types for Constructor API clients."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for Constructor errors."""

    UNKNOWN = "unknown"
    CONFIGURATION = "configuration"
    FILE_NOT_FOUND = "file_not_found"
    RATE_LIMIT = "rate_limit"
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    PARSE = "parse"
    NOT_FOUND = "not_found"
    UPSTREAM = "upstream"
    TASK_TIMEOUT = "task_timeout"


class ConstructorError(Exception):
    """
    Base error for Constructor operations.

    Attributes:
        code: Error code identifying the type of error.
        message: Human-readable error message.
        details: Additional error details (optional).
    """

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str, details: str | None = None) -> None:
        """Initialize with a message and optional details."""
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code.value}: {self.message}"


class ConfigurationError(ConstructorError):
    """Raised when required setup is missing (credentials, agent domain)."""

    code = ErrorCode.CONFIGURATION


class CatalogFileNotFoundError(ConstructorError, FileNotFoundError):
    """Raised when a catalog source file is missing or unreadable."""

    code = ErrorCode.FILE_NOT_FOUND

    def __init__(self, path: str) -> None:
        """Initialize with the offending path."""
        self.path = path
        super().__init__(f"Catalog file not found or not readable: {path}")


class AuthenticationError(ConstructorError):
    """Raised on 401/403 responses."""

    code = ErrorCode.AUTHENTICATION

    def __init__(self, message: str = "Authentication failed", details: str | None = None) -> None:
        """Initialize with a message and the response body if any."""
        super().__init__(message, details)


class RateLimitError(ConstructorError):
    """Raised on 429 responses."""

    code = ErrorCode.RATE_LIMIT

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int | None = None,
    ) -> None:
        """Initialize with a message and the Retry-After value if any."""
        self.retry_after = retry_after
        super().__init__(message)


class NetworkError(ConstructorError):
    """Raised when the request never produced a response (timeout, connection)."""

    code = ErrorCode.NETWORK


class ParseError(ConstructorError):
    """Raised when a response body cannot be decoded."""

    code = ErrorCode.PARSE

    def __init__(
        self, message: str = "Failed to parse response", details: str | None = None
    ) -> None:
        """Initialize with a message and optional details."""
        super().__init__(message, details)


class UpstreamRequestError(ConstructorError):
    """
    Raised on any other non-2xx response.

    Attributes:
        status_code: HTTP status returned upstream.
        body: Response body (truncated).
    """

    code = ErrorCode.UPSTREAM

    def __init__(self, status_code: int, body: str = "", message: str | None = None) -> None:
        """Initialize with the HTTP status and response body."""
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"API returned status {status_code}", details=body or None)

    @property
    def is_not_found(self) -> bool:
        """Check if upstream answered 404."""
        return self.status_code == 404


class TaskTimeoutError(ConstructorError):
    """Raised when a catalog task does not complete within the polling budget."""

    code = ErrorCode.TASK_TIMEOUT

    def __init__(self, task_id: str, attempts: int) -> None:
        """Initialize with the task id and the number of polls performed."""
        self.task_id = task_id
        self.attempts = attempts
        super().__init__(f"Task {task_id} did not complete within {attempts} attempts")
