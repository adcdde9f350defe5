from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import AuthorizationContext, Permission, ResourceOwnershipValidator
from app.core.exceptions import ErrorHandler, NotFoundError, PermissionDeniedError, ValidationError
from app.core.ticket_workflow import (
    TicketPriority, TicketStatus, TicketWorkflowEngine, calculate_priority,
)
from app.core.timeutils import utc_now
from app.db.models import PublicUser, Ticket, TicketAuditLog, TicketMessage
from app.repositories.ticket import TicketRepository
from app.repositories.user import InternalUserRepository

logger = logging.getLogger(__name__)

AUTHOR_PUBLIC = "public"
AUTHOR_IT_STAFF = "it_staff"
UPDATABLE_FIELDS = ("status", "priority", "assigned_to_id")


class TicketService:
    """Ticket intake, triage and messaging."""

    def __init__(self) -> None:
        self.repo = TicketRepository()
        self.user_repo = InternalUserRepository()
        self.workflow = TicketWorkflowEngine()

    def sla_info(self, ticket: Ticket, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Derived SLA fields for one ticket."""
        return {
            "sla_deadline": self.workflow.calculate_sla_deadline(ticket.priority, ticket.created_at),
            "sla_breached": self.workflow.is_sla_breached(ticket, now),
        }

    async def create_ticket(
        self,
        session: AsyncSession,
        requester: PublicUser,
        title: str,
        description: str,
        type: Optional[str] = None,
        priority: Optional[TicketPriority] = None,
        urgency: Optional[int] = None,
        impact: Optional[int] = None,
    ) -> Ticket:
        """
        Open a ticket on behalf of a public requester.

        Priority is taken as given; otherwise derived from urgency and impact
        when both are present; otherwise medium.

        Raises:
            ValidationError: For blank title/description or bad urgency/impact
        """
        ErrorHandler.validate_required_fields(
            {"title": title, "description": description}, ["title", "description"]
        )

        if priority is None and urgency is not None and impact is not None:
            priority = calculate_priority(urgency, impact)
        elif priority is None and (urgency is not None or impact is not None):
            raise ValidationError("urgency and impact must be provided together")

        ticket = await self.repo.create(
            session,
            created_by_id=requester.id,
            title=title.strip(),
            description=description.strip(),
            type=(type or "support").strip() or "support",
            priority=TicketPriority(priority or TicketPriority.MEDIUM).value,
            status=TicketStatus.OPEN.value,
        )
        await self.repo.add_audit(session, ticket.id, None, "created", {"priority": ticket.priority})
        logger.info("Created ticket %s for public user %s with priority %s", ticket.id, requester.id, ticket.priority)
        return ticket

    async def list_tickets(
        self,
        session: AsyncSession,
        auth_context: AuthorizationContext,
        status: Optional[TicketStatus] = None,
        priority: Optional[TicketPriority] = None,
        assigned_to_id: Optional[int] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Tuple[Ticket, int]], int]:
        """
        List tickets visible to the caller.

        Public requesters see only their own tickets; staff with the
        view-all permission see everything.

        Returns:
            ((ticket, message_count) pairs, total matching)
        """
        if auth_context.has_permission(Permission.VIEW_ALL_TICKETS):
            created_by_id = None
        elif auth_context.has_permission(Permission.VIEW_OWN_TICKETS):
            created_by_id = auth_context.user_id
        else:
            raise PermissionDeniedError("Not allowed to list tickets")

        tickets, total = await self.repo.list_filtered(
            session,
            created_by_id=created_by_id,
            status=status.value if status else None,
            priority=priority.value if priority else None,
            assigned_to_id=assigned_to_id,
            search=search,
            limit=limit,
            offset=offset,
        )
        counts = await self.repo.message_counts(
            session, [t.id for t in tickets], include_internal=not auth_context.is_public
        )
        return [(t, counts.get(t.id, 0)) for t in tickets], total

    async def get_ticket(self, session: AsyncSession, auth_context: AuthorizationContext, ticket_id: int) -> Ticket:
        """Fetch a ticket the caller may see; anything else is reported as missing."""
        ticket = await self.repo.get_by_id(session, ticket_id)
        if not ticket or not ResourceOwnershipValidator.can_view_ticket(auth_context, ticket.created_by_id):
            raise NotFoundError("Ticket not found", {"ticket_id": ticket_id})
        return ticket

    async def list_messages(self, session: AsyncSession, auth_context: AuthorizationContext, ticket_id: int) -> List[TicketMessage]:
        await self.get_ticket(session, auth_context, ticket_id)
        return await self.repo.list_messages(session, ticket_id, include_internal=not auth_context.is_public)

    async def add_message(
        self,
        session: AsyncSession,
        auth_context: AuthorizationContext,
        ticket_id: int,
        message: str,
        is_internal: bool = False,
    ) -> TicketMessage:
        """
        Append a message to a ticket.

        Public requesters always post public messages; staff may flag a
        message as internal, hiding it from the requester.
        """
        if not message or not message.strip():
            raise ValidationError("Message cannot be empty")

        ticket = await self.get_ticket(session, auth_context, ticket_id)
        if auth_context.is_public:
            author_type, internal = AUTHOR_PUBLIC, False
        else:
            author_type, internal = AUTHOR_IT_STAFF, bool(is_internal)

        entity = await self.repo.add_message(
            session,
            ticket_id=ticket.id,
            message=message.strip(),
            author_type=author_type,
            author_id=auth_context.user_id,
            is_internal=internal,
        )
        ticket.updated_at = utc_now()
        await session.flush()
        logger.info("Message %s added to ticket %s by %s %s", entity.id, ticket.id, author_type, auth_context.user_id)
        return entity

    async def update_ticket(
        self,
        session: AsyncSession,
        auth_context: AuthorizationContext,
        ticket_id: int,
        updates: Dict[str, Any],
    ) -> Ticket:
        """
        Apply a staff update (status, priority, assignee) with audit logging.

        Args:
            session: Database session
            auth_context: Caller; must hold the update permission
            ticket_id: Ticket to update
            updates: Only the keys present are applied

        Raises:
            ValidationError: No updatable field, or unknown assignee
            NotFoundError: Ticket not found
        """
        if not auth_context.has_permission(Permission.UPDATE_TICKETS):
            raise PermissionDeniedError("Only IT staff or admin can update tickets")

        fields = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS}
        # null status or priority means "unchanged"; a null assignee unassigns
        fields = {k: v for k, v in fields.items() if v is not None or k == "assigned_to_id"}
        if not fields:
            raise ValidationError("No fields to update", {"allowed": list(UPDATABLE_FIELDS)})

        ticket = await self.repo.get_by_id(session, ticket_id)
        if not ticket:
            raise NotFoundError("Ticket not found", {"ticket_id": ticket_id})

        now = utc_now()
        changes: Dict[str, Dict[str, Any]] = {}

        if "status" in fields and fields["status"] is not None:
            previous = ticket.status
            if self.workflow.apply_status_change(ticket, fields["status"], now):
                changes["status"] = {"from": previous, "to": ticket.status}

        if "priority" in fields and fields["priority"] is not None:
            new_priority = TicketPriority(fields["priority"]).value
            if new_priority != ticket.priority:
                changes["priority"] = {"from": ticket.priority, "to": new_priority}
                ticket.priority = new_priority

        if "assigned_to_id" in fields:
            assignee_id = fields["assigned_to_id"]
            if assignee_id is not None:
                assignee = await self.user_repo.get_by_id(session, assignee_id)
                if not assignee or not assignee.is_active:
                    raise ValidationError("Assigned user not found or inactive", {"assigned_to_id": assignee_id})
            if assignee_id != ticket.assigned_to_id:
                changes["assigned_to_id"] = {"from": ticket.assigned_to_id, "to": assignee_id}
                ticket.assigned_to_id = assignee_id

        ticket.updated_at = now
        for field, change in changes.items():
            await self.repo.add_audit(session, ticket.id, auth_context.user_id, f"{field}_changed", change)
        await session.flush()
        # assigned_to relationship may be stale after the FK change
        await session.refresh(ticket, ["assigned_to"])

        if changes:
            logger.info("Ticket %s updated by %s: %s", ticket.id, auth_context.user_id, changes)
        return ticket

    async def get_history(self, session: AsyncSession, auth_context: AuthorizationContext, ticket_id: int) -> List[TicketAuditLog]:
        if not auth_context.has_permission(Permission.VIEW_ALL_TICKETS):
            raise PermissionDeniedError("Only staff can view ticket history")
        await self.get_ticket(session, auth_context, ticket_id)
        return await self.repo.list_audit(session, ticket_id)
