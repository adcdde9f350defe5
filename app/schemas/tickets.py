"""
Pydantic schemas for ticket API endpoints.
Provides request/response models with validation and documentation.
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, conint, constr

from app.core.ticket_workflow import TicketPriority, TicketStatus


class CreateTicketRequest(BaseModel):
    """Request model for opening a ticket."""

    title: constr(min_length=1, max_length=200) = Field(  # type: ignore[valid-type]
        ...,
        description="Ticket title (required)",
        examples=["Notebook not turning on"],
    )
    description: constr(min_length=1) = Field(  # type: ignore[valid-type]
        ...,
        description="Detailed description of the issue",
        examples=["The notebook won't turn on when pressing the power button."],
    )
    type: Optional[constr(max_length=50)] = Field(  # type: ignore[valid-type]
        None,
        description="Ticket type (defaults to support)",
        examples=["support"],
    )
    priority: Optional[TicketPriority] = Field(
        None,
        description="Explicit priority; wins over urgency/impact",
    )
    urgency: Optional[conint(ge=1, le=3)] = Field(  # type: ignore[valid-type]
        None,
        description="Urgency from 1 to 3, scored with impact when no priority is given",
        examples=[2],
    )
    impact: Optional[conint(ge=1, le=3)] = Field(  # type: ignore[valid-type]
        None,
        description="Impact from 1 to 3",
        examples=[3],
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Notebook not turning on",
                "description": "No lights or sounds when pressing the power button.",
                "type": "support",
                "urgency": 3,
                "impact": 2,
            }
        }
    )


class UpdateTicketRequest(BaseModel):
    """Staff update; only the fields sent are applied."""

    status: Optional[TicketStatus] = Field(None, description="New status")
    priority: Optional[TicketPriority] = Field(None, description="New priority")
    assigned_to_id: Optional[int] = Field(None, description="Internal user to assign; null unassigns")


class CreateMessageRequest(BaseModel):
    message: constr(min_length=1, max_length=5000) = Field(  # type: ignore[valid-type]
        ...,
        description="Message text",
        examples=["Could you try another power outlet?"],
    )
    is_internal: bool = Field(False, description="Staff-only note, hidden from the requester")


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str


class TicketMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    message: str
    author_type: str
    author_id: int
    is_internal: bool
    created_at: datetime


class TicketResponse(BaseModel):
    """Ticket with its derived SLA fields."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Ticket ID", examples=[123])
    title: str
    description: str
    type: str
    status: TicketStatus
    priority: TicketPriority
    created_by_id: int
    created_by: Optional[UserSummary] = None
    assigned_to_id: Optional[int] = None
    assigned_to: Optional[UserSummary] = None
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    sla_deadline: Optional[datetime] = Field(None, description="Resolution deadline for the priority")
    sla_breached: bool = False
    message_count: int = 0


class TicketDetailResponse(TicketResponse):
    messages: List[TicketMessageResponse] = Field(default_factory=list)


class TicketListResponse(BaseModel):
    items: List[TicketResponse]
    total: int = Field(..., description="Total tickets matching the filters")
    limit: int
    offset: int


class TicketAuditResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    actor_id: Optional[int] = None
    action: str
    changes: Optional[Dict[str, Any]] = None
    created_at: datetime
