"""
Custom exceptions for the Portal TI application.
Services raise these; routers translate them into HTTP errors.
"""

from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class BusinessLogicError(Exception):
    """Base exception for business logic errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(BusinessLogicError):
    """Raised when input validation fails."""
    pass


class AuthenticationError(BusinessLogicError):
    """Raised when credentials or tokens are invalid."""
    pass


class PermissionDeniedError(BusinessLogicError):
    """Raised when the caller is authenticated but not allowed."""
    pass


class NotFoundError(BusinessLogicError):
    """Raised when a requested resource is not found."""
    pass


class ConflictError(BusinessLogicError):
    """Raised when there's a conflict with existing data."""
    pass


class InventoryError(BusinessLogicError):
    """Raised for inventory-specific business logic errors."""
    pass


_STATUS_BY_TYPE = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (InventoryError, status.HTTP_400_BAD_REQUEST),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
)


def business_exception_to_http(exc: BusinessLogicError) -> HTTPException:
    """Convert business logic exceptions to appropriate HTTP exceptions."""

    for exc_type, status_code in _STATUS_BY_TYPE:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status_code, detail={"message": exc.message, **exc.details})

    # Default to 500 for other business logic errors
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": exc.message, **exc.details},
    )


class ErrorHandler:
    """Centralized validation helpers used by the services."""

    @staticmethod
    def validate_required_fields(data: Dict[str, Any], required_fields: list[str]) -> None:
        """Validate that all required fields are present and not blank."""
        missing_fields = []
        for field in required_fields:
            value = data.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing_fields.append(field)

        if missing_fields:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing_fields)}",
                {"missing_fields": missing_fields}
            )

    @staticmethod
    def validate_positive_integer(value: Any, field_name: str) -> int:
        """Validate that a value is a positive integer."""
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ValidationError(
                f"{field_name} must be a positive integer",
                {"field": field_name, "value": value}
            )
        return value
