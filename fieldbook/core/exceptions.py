"""
Domain exceptions for the booking core.

Services raise these; the API layer converts them with
``to_http_exception()`` through a single exception handler.
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationError(DomainException):
    """Malformed or out-of-policy input. User-correctable."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidRangeError(ValidationError):
    """Requested time range violates the field's booking constraints."""


class DateBlockedError(ValidationError):
    """The date is blocked for maintenance or a holiday."""


class ConflictError(DomainException):
    """A concurrent writer won. Retryable by the caller."""

    status_code = status.HTTP_409_CONFLICT


class SlotConflictError(ConflictError):
    """Requested range overlaps an existing reservation."""


class NotFoundError(DomainException):
    """Unknown field, court, booking or schedule."""

    status_code = status.HTTP_404_NOT_FOUND


class FieldNotFoundError(NotFoundError):
    pass


class BookingNotFoundError(NotFoundError):
    pass


class AuthorizationError(DomainException):
    """Actor lacks the required role or ownership."""

    status_code = status.HTTP_403_FORBIDDEN


class ConfigurationError(DomainException):
    """Stored field configuration is inconsistent."""


class PricingConfigurationError(ConfigurationError):
    """No price segment covers a slot unit."""
