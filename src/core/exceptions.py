"""Structured exception hierarchy for consistent error handling.

This module defines the exception system shared by every layer of the
service. Each exception carries the HTTP status it should surface with, so
the error normalizer at the API boundary can classify failures without
knowing about individual domain modules.

Key components:
- **ErrorCode enum**: Standardized error identifiers for programmatic handling
- **OpticaError**: Base exception with status, context and cause
- **Specialized exceptions**: Type-specific errors (validation, auth, CORS, etc.)
- **ConfigurationError**: Startup-only failure raised while resolving settings
"""

from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes for the Optica API."""

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred in the system."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """The process configuration is missing or malformed."""

    # Request errors
    REQUEST_ERROR = "REQUEST_ERROR"
    """Generic client-side request failure without a more specific code."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Input validation failed due to invalid or malformed data."""

    NOT_FOUND = "NOT_FOUND"
    """The requested resource could not be found."""

    UNAUTHORIZED = "UNAUTHORIZED"
    """Authentication failed or is missing."""

    FORBIDDEN = "FORBIDDEN"
    """The caller is authenticated but not allowed to perform the action."""

    ORIGIN_NOT_ALLOWED = "ORIGIN_NOT_ALLOWED"
    """The browser origin of a cross-origin request is not trusted."""

    RATE_LIMITED = "RATE_LIMITED"
    """The caller exceeded the request budget of the current window."""


class OpticaError(Exception):
    """Base exception class for all application exceptions.

    Args:
        error_code: Unique identifier for the error type (string or ErrorCode enum)
        message: Human-readable error message
        status_code: HTTP status the error surfaces with (defaults to 500)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        status_code: int = 500,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.status_code = status_code
        self.context = context or {}
        self.cause = cause

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    @property
    def is_client_error(self) -> bool:
        """Whether the failure is attributed to the caller (4xx)."""
        return 400 <= self.status_code < 500  # noqa: PLR2004

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        context_str = f", context={self.context}" if self.context else ""
        return (
            f"{class_name}(error_code='{self.error_code}', "
            f"message='{self.message}', status_code={self.status_code}{context_str})"
        )


class ValidationError(OpticaError):
    """Exception raised when input validation fails."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.VALIDATION_ERROR,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, 400, context, cause)


class UnauthorizedError(OpticaError):
    """Exception raised when authentication fails or is missing."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.UNAUTHORIZED,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, 401, context, cause)


class ForbiddenError(OpticaError):
    """Exception raised when an authenticated caller lacks permission."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.FORBIDDEN,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, 403, context, cause)


class NotFoundError(OpticaError):
    """Exception raised when a requested resource cannot be found."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.NOT_FOUND,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, 404, context, cause)


class BusinessRuleError(OpticaError):
    """Exception raised when an operation violates a business rule.

    Domain handlers raise this for conflicts that are not plain input
    validation (an expired warranty, a sale on an inactive product...).
    """

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.REQUEST_ERROR,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, 422, context, cause)


class OriginNotAllowedError(OpticaError):
    """Exception raised when the origin policy denies a cross-origin caller.

    Args:
        origin: The raw Origin header sent by the browser.
    """

    def __init__(self, origin: str) -> None:
        super().__init__(
            ErrorCode.ORIGIN_NOT_ALLOWED,
            f"Not allowed by CORS: {origin}",
            403,
            {"origin": origin},
        )
        self.origin = origin


class ConfigurationError(OpticaError):
    """Exception raised when the process configuration is invalid.

    This is a startup-only failure: it never reaches an HTTP caller.

    Args:
        message: Summary of the failure
        problems: One human-readable line per invalid setting
        cause: The original validation exception
    """

    def __init__(
        self,
        message: str,
        problems: list[str] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.problems = problems or []
        super().__init__(
            ErrorCode.CONFIGURATION_ERROR,
            message,
            500,
            {"problems": self.problems},
            cause,
        )
