from typing import Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Error message", examples=["Equipment not found"])
    details: Optional[Any] = Field(None, description="Additional error details")


class MessageResponse(BaseModel):
    message: str


COMMON_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input data"},
    401: {"model": ErrorResponse, "description": "Authentication required"},
    403: {"model": ErrorResponse, "description": "Insufficient permissions"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
}
