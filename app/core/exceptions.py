"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the application
- Machine-readable error codes for client handling
- Detailed error information for debugging

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Resource not found
    └── ExternalServiceError - Third-party service failures (SES, SNS, FCM)

Usage:
    from core.exceptions import NotFoundError

    raise NotFoundError(
        "Notification not found",
        error_code="NOTIFICATION_NOT_FOUND",
        details={"notification_id": str(notification_id)},
    )

    # Convert to dict for API response
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=404)

Note:
    These exceptions are for domain/business logic errors.
    DRF handles API-layer exceptions (serialization, authentication, etc.).
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
        Convert exception to dictionary for API response.

        Returns:
            Dict with error, error_code, and details keys

        Example:
            {
                "error": "Notification not found",
                "error_code": "NOTIFICATION_NOT_FOUND",
                "details": {"notification_id": "..."}
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
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails in the service layer.

    Example:
        raise ValidationError(
            "Unknown timezone",
            error_code="INVALID_TIMEZONE",
            details={"timezone": ["'Mars/Olympus' is not a valid timezone"]},
        )

    Note:
        For DRF serializer validation, use DRF's built-in validation.
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Use for single-resource lookups where existence is expected. Records
    owned by another user are reported the same way so their existence
    is not leaked.
    """

    default_error_code: str = "NOT_FOUND"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Use for provider failures (SES, SNS, FCM), network timeouts and
    unexpected provider responses. Log the original error for debugging
    but don't expose internal details to clients.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
