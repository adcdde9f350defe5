from __future__ import annotations
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.db.models import Ticket, TicketAuditLog, TicketMessage


class TicketRepository:
    """Repository for tickets, their messages and audit rows."""

    async def get_by_id(self, session: AsyncSession, ticket_id: int, with_messages: bool = False) -> Optional[Ticket]:
        options = [selectinload(Ticket.created_by), selectinload(Ticket.assigned_to)]
        if with_messages:
            options.append(selectinload(Ticket.messages))
        stmt = select(Ticket).options(*options).where(Ticket.id == ticket_id)
        res = await session.execute(stmt)
        return res.scalar_one_or_none()

    async def list_filtered(
        self,
        session: AsyncSession,
        created_by_id: Optional[int] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to_id: Optional[int] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Ticket], int]:
        conditions = []
        if created_by_id is not None:
            conditions.append(Ticket.created_by_id == created_by_id)
        if status:
            conditions.append(Ticket.status == status)
        if priority:
            conditions.append(Ticket.priority == priority)
        if assigned_to_id is not None:
            conditions.append(Ticket.assigned_to_id == assigned_to_id)
        if search:
            like = f"%{search.strip()}%"
            conditions.append(or_(Ticket.title.ilike(like), Ticket.description.ilike(like)))

        count_stmt = select(func.count(Ticket.id)).where(*conditions)
        total = (await session.execute(count_stmt)).scalar_one()

        stmt = (
            select(Ticket)
            .options(selectinload(Ticket.created_by), selectinload(Ticket.assigned_to))
            .where(*conditions)
            .order_by(Ticket.created_at.desc(), Ticket.id.desc())
            .limit(limit)
            .offset(offset)
        )
        res = await session.execute(stmt)
        return list(res.scalars().all()), total

    async def message_counts(self, session: AsyncSession, ticket_ids: Sequence[int], include_internal: bool = True) -> Dict[int, int]:
        if not ticket_ids:
            return {}
        stmt = (
            select(TicketMessage.ticket_id, func.count(TicketMessage.id))
            .where(TicketMessage.ticket_id.in_(ticket_ids))
            .group_by(TicketMessage.ticket_id)
        )
        if not include_internal:
            stmt = stmt.where(TicketMessage.is_internal.is_(False))
        res = await session.execute(stmt)
        return {ticket_id: count for ticket_id, count in res.all()}

    async def create(
        self,
        session: AsyncSession,
        created_by_id: int,
        title: str,
        description: str,
        type: str,
        priority: str,
        status: str,
    ) -> Ticket:
        entity = Ticket(
            created_by_id=created_by_id,
            title=title,
            description=description,
            type=type,
            priority=priority,
            status=status,
        )
        session.add(entity)
        await session.flush()
        return entity

    async def list_messages(self, session: AsyncSession, ticket_id: int, include_internal: bool) -> List[TicketMessage]:
        stmt = select(TicketMessage).where(TicketMessage.ticket_id == ticket_id)
        if not include_internal:
            stmt = stmt.where(TicketMessage.is_internal.is_(False))
        stmt = stmt.order_by(TicketMessage.created_at, TicketMessage.id)
        res = await session.execute(stmt)
        return list(res.scalars().all())

    async def add_message(
        self,
        session: AsyncSession,
        ticket_id: int,
        message: str,
        author_type: str,
        author_id: int,
        is_internal: bool,
    ) -> TicketMessage:
        entity = TicketMessage(
            ticket_id=ticket_id,
            message=message,
            author_type=author_type,
            author_id=author_id,
            is_internal=is_internal,
        )
        session.add(entity)
        await session.flush()
        return entity

    async def add_audit(
        self,
        session: AsyncSession,
        ticket_id: int,
        actor_id: Optional[int],
        action: str,
        changes: Optional[dict] = None,
    ) -> TicketAuditLog:
        entity = TicketAuditLog(ticket_id=ticket_id, actor_id=actor_id, action=action, changes=changes)
        session.add(entity)
        await session.flush()
        return entity

    async def list_audit(self, session: AsyncSession, ticket_id: int) -> List[TicketAuditLog]:
        stmt = select(TicketAuditLog).where(TicketAuditLog.ticket_id == ticket_id).order_by(TicketAuditLog.id)
        res = await session.execute(stmt)
        return list(res.scalars().all())

    async def list_for_reports(
        self,
        session: AsyncSession,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to_id: Optional[int] = None,
    ) -> List[Ticket]:
        """Unpaginated ticket rows for aggregation and export, oldest first."""
        stmt = select(Ticket).options(selectinload(Ticket.created_by), selectinload(Ticket.assigned_to))
        if date_from is not None:
            stmt = stmt.where(Ticket.created_at >= date_from)
        if date_to is not None:
            stmt = stmt.where(Ticket.created_at < date_to)
        if status:
            stmt = stmt.where(Ticket.status == status)
        if priority:
            stmt = stmt.where(Ticket.priority == priority)
        if assigned_to_id is not None:
            stmt = stmt.where(Ticket.assigned_to_id == assigned_to_id)
        res = await session.execute(stmt.order_by(Ticket.created_at, Ticket.id))
        return list(res.scalars().all())

    async def first_staff_responses(self, session: AsyncSession, ticket_ids: Sequence[int], author_type: str) -> Dict[int, datetime]:
        """Earliest message time per ticket for the given author type."""
        if not ticket_ids:
            return {}
        stmt = (
            select(TicketMessage.ticket_id, func.min(TicketMessage.created_at))
            .where(TicketMessage.ticket_id.in_(ticket_ids), TicketMessage.author_type == author_type)
            .group_by(TicketMessage.ticket_id)
        )
        res = await session.execute(stmt)
        return {ticket_id: first for ticket_id, first in res.all()}
