from __future__ import annotations
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import (
    AuthorizationContext, Permission, get_authorization_context, require_permission,
)
from app.core.exceptions import BusinessLogicError, business_exception_to_http
from app.core.ticket_workflow import TicketPriority, TicketStatus
from app.db.models import Ticket
from app.db.session import get_db
from app.schemas.common import COMMON_RESPONSES, ErrorResponse
from app.schemas.tickets import (
    CreateMessageRequest,
    CreateTicketRequest,
    TicketAuditResponse,
    TicketDetailResponse,
    TicketListResponse,
    TicketMessageResponse,
    TicketResponse,
    UpdateTicketRequest,
)
from app.services.ticket import TicketService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/tickets", tags=["tickets"])


def _ticket_response(svc: TicketService, ticket: Ticket, message_count: int = 0) -> TicketResponse:
    data = TicketResponse.model_validate(ticket).model_dump()
    data.update(svc.sla_info(ticket), message_count=message_count)
    return TicketResponse(**data)


@router.get(
    "",
    response_model=TicketListResponse,
    responses=COMMON_RESPONSES,
    summary="List tickets",
    description="Public requesters see their own tickets; staff see all tickets. Newest first.",
)
async def list_tickets(
    status_filter: Optional[TicketStatus] = Query(None, alias="status"),
    priority: Optional[TicketPriority] = None,
    assigned_to_id: Optional[int] = None,
    search: Optional[str] = Query(None, max_length=200),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(get_authorization_context),
) -> TicketListResponse:
    svc = TicketService()
    try:
        rows, total = await svc.list_tickets(
            session,
            auth_context,
            status=status_filter,
            priority=priority,
            assigned_to_id=assigned_to_id,
            search=search,
            limit=limit,
            offset=offset,
        )
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    return TicketListResponse(
        items=[_ticket_response(svc, t, count) for t, count in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    responses=COMMON_RESPONSES,
    summary="Open a ticket",
    description="Requires a public requester token. Priority defaults to medium, or is scored from urgency and impact.",
)
async def create_ticket(
    payload: CreateTicketRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(require_permission(Permission.CREATE_TICKETS, internal_only=False)),
) -> TicketResponse:
    svc = TicketService()
    try:
        ticket = await svc.create_ticket(
            session,
            requester=auth_context.user,
            title=payload.title,
            description=payload.description,
            type=payload.type,
            priority=payload.priority,
            urgency=payload.urgency,
            impact=payload.impact,
        )
        await session.commit()
        ticket = await svc.get_ticket(session, auth_context, ticket.id)
    except BusinessLogicError as e:
        logger.warning(f"Business logic error creating ticket: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        logger.exception(f"Unexpected error creating ticket: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while creating the ticket",
        )
    return _ticket_response(svc, ticket)


@router.get(
    "/{ticket_id}",
    response_model=TicketDetailResponse,
    responses={**COMMON_RESPONSES, 404: {"model": ErrorResponse, "description": "Ticket not found"}},
    summary="Get ticket details",
)
async def get_ticket(
    ticket_id: int,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(get_authorization_context),
) -> TicketDetailResponse:
    svc = TicketService()
    try:
        ticket = await svc.get_ticket(session, auth_context, ticket_id)
        messages = await svc.list_messages(session, auth_context, ticket_id)
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    base = _ticket_response(svc, ticket, len(messages))
    return TicketDetailResponse(
        **base.model_dump(),
        messages=[TicketMessageResponse.model_validate(m) for m in messages],
    )


@router.get(
    "/{ticket_id}/messages",
    response_model=List[TicketMessageResponse],
    responses={404: {"model": ErrorResponse, "description": "Ticket not found"}},
    summary="List ticket messages",
)
async def list_messages(
    ticket_id: int,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(get_authorization_context),
) -> List[TicketMessageResponse]:
    try:
        messages = await TicketService().list_messages(session, auth_context, ticket_id)
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    return [TicketMessageResponse.model_validate(m) for m in messages]


@router.post(
    "/{ticket_id}/messages",
    response_model=TicketMessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**COMMON_RESPONSES, 404: {"model": ErrorResponse, "description": "Ticket not found"}},
    summary="Add a message to a ticket",
)
async def add_message(
    ticket_id: int,
    payload: CreateMessageRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(get_authorization_context),
) -> TicketMessageResponse:
    try:
        message = await TicketService().add_message(
            session, auth_context, ticket_id, payload.message, is_internal=payload.is_internal
        )
        await session.commit()
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    return TicketMessageResponse.model_validate(message)


@router.patch(
    "/{ticket_id}",
    response_model=TicketResponse,
    responses={**COMMON_RESPONSES, 404: {"model": ErrorResponse, "description": "Ticket not found"}},
    summary="Update a ticket",
    description="Status, priority and assignee. Each change is recorded in the ticket history.",
)
async def update_ticket(
    ticket_id: int,
    payload: UpdateTicketRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(require_permission(Permission.UPDATE_TICKETS)),
) -> TicketResponse:
    svc = TicketService()
    try:
        ticket = await svc.update_ticket(session, auth_context, ticket_id, payload.model_dump(exclude_unset=True))
        await session.commit()
    except BusinessLogicError as e:
        logger.warning(f"Business logic error updating ticket {ticket_id}: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        logger.exception(f"Unexpected error updating ticket {ticket_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while updating the ticket",
        )
    return _ticket_response(svc, ticket)


@router.get(
    "/{ticket_id}/history",
    response_model=List[TicketAuditResponse],
    responses={**COMMON_RESPONSES, 404: {"model": ErrorResponse, "description": "Ticket not found"}},
    summary="Ticket change history",
)
async def ticket_history(
    ticket_id: int,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(require_permission(Permission.VIEW_ALL_TICKETS)),
) -> List[TicketAuditResponse]:
    try:
        rows = await TicketService().get_history(session, auth_context, ticket_id)
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    return [TicketAuditResponse.model_validate(r) for r in rows]
