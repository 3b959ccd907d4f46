"""
Base exception classes for application-wide error handling.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Resource not found
    ├── PermissionDeniedError - Authorization failures
    └── ExternalServiceError - Third-party service failures (push gateways)

Usage:
    from core.exceptions import ValidationError

    raise ValidationError("Message content cannot be empty", error_code="EMPTY_CONTENT")

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=400)

Note:
    Services return ServiceResult for expected failures. These exceptions are
    for code paths that cannot return a result, such as the async chat
    session controller and the push channels.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API or websocket responses.

        Example:
            {
                "error": "Conversation not found",
                "error_code": "NOT_FOUND",
                "details": {"conversation_id": 123}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """Raised when input validation fails (empty content, bad pagination)."""

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """Raised when a requested resource does not exist."""

    default_error_code: str = "NOT_FOUND"


class PermissionDeniedError(BaseApplicationError):
    """Raised when a user acts on a conversation they are not part of."""

    default_error_code: str = "PERMISSION_DENIED"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when a third-party service fails.

    Attributes:
        service_name: Name of the failing service (e.g. "webpush", "expo")
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        service_name: str | None = None,
    ):
        super().__init__(message, error_code, details)
        self.service_name = service_name
        if service_name:
            self.details["service"] = service_name
