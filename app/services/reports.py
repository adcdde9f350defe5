"""
Ticket reporting: overview, SLA compliance, technician performance, trends
and export. Aggregates are recomputed per request from the ticket rows.
"""

from __future__ import annotations

import csv
import io
import logging
from collections import Counter
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import UserRole
from app.core.exceptions import ValidationError
from app.core.ticket_workflow import FINISHED_STATUSES, TicketPriority, TicketStatus, TicketWorkflowEngine
from app.core.timeutils import hours_between, utc_today
from app.db.models import Ticket
from app.repositories.ticket import TicketRepository
from app.repositories.user import InternalUserRepository
from app.services.ticket import AUTHOR_IT_STAFF

logger = logging.getLogger(__name__)

TREND_PERIODS = {"7days": 7, "30days": 30, "90days": 90, "12months": 365}
EXPORT_COLUMNS = (
    "id", "title", "type", "status", "priority", "requester_name", "requester_email",
    "assigned_to_name", "created_at", "updated_at", "resolved_at",
)


def _percent(part: int, total: int) -> float:
    return round(part * 100 / total, 1) if total else 0.0


def _average(values: Sequence[float]) -> float:
    return round(sum(values) / len(values), 1) if values else 0.0


def _range(date_from: Optional[date], date_to: Optional[date]) -> tuple[Optional[datetime], Optional[datetime]]:
    """Inclusive calendar dates to a half-open datetime range."""
    if date_from and date_to and date_from > date_to:
        raise ValidationError("date_from must not be after date_to")
    start = datetime.combine(date_from, time.min) if date_from else None
    end = datetime.combine(date_to + timedelta(days=1), time.min) if date_to else None
    return start, end


def _month_key(value: datetime | date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


class ReportService:
    """Read-only ticket statistics."""

    def __init__(self) -> None:
        self.ticket_repo = TicketRepository()
        self.user_repo = InternalUserRepository()
        self.workflow = TicketWorkflowEngine()

    async def _tickets(self, session: AsyncSession, date_from: Optional[date] = None, date_to: Optional[date] = None, **filters: Any) -> List[Ticket]:
        start, end = _range(date_from, date_to)
        return await self.ticket_repo.list_for_reports(session, date_from=start, date_to=end, **filters)

    async def overview(self, session: AsyncSession, date_from: Optional[date] = None, date_to: Optional[date] = None) -> Dict[str, Any]:
        tickets = await self._tickets(session, date_from, date_to)
        first_responses = await self.ticket_repo.first_staff_responses(session, [t.id for t in tickets], AUTHOR_IT_STAFF)

        response_hours = [
            hours_between(t.created_at, first_responses[t.id]) for t in tickets if t.id in first_responses
        ]
        resolution_hours = [hours_between(t.created_at, t.resolved_at) for t in tickets if t.resolved_at]
        finished = sum(1 for t in tickets if t.status in FINISHED_STATUSES)

        today = utc_today()
        window_start = today - timedelta(days=29)
        per_day = Counter(t.created_at.date() for t in tickets if t.created_at.date() >= window_start)

        return {
            "total": len(tickets),
            "by_status": dict(Counter(t.status for t in tickets)),
            "by_priority": dict(Counter(t.priority for t in tickets)),
            "avg_first_response_hours": _average(response_hours),
            "avg_resolution_hours": _average(resolution_hours),
            "tickets_per_day": [
                {"date": (window_start + timedelta(days=i)).isoformat(), "count": per_day.get(window_start + timedelta(days=i), 0)}
                for i in range(30)
            ],
            "resolution_rate": {"resolved": finished, "total": len(tickets), "percentage": _percent(finished, len(tickets))},
        }

    async def sla(self, session: AsyncSession, date_from: Optional[date] = None, date_to: Optional[date] = None) -> Dict[str, Any]:
        """
        SLA compliance per priority.

        A ticket is within SLA when its first staff response and its
        resolution both met the targets for its priority; unresolved or
        unanswered tickets count as breached.
        """
        tickets = await self._tickets(session, date_from, date_to)
        first_responses = await self.ticket_repo.first_staff_responses(session, [t.id for t in tickets], AUTHOR_IT_STAFF)

        rows = []
        overall_total = overall_within = 0
        for priority in (TicketPriority.CRITICAL, TicketPriority.HIGH, TicketPriority.MEDIUM, TicketPriority.LOW):
            config = self.workflow.get_sla_config(priority)
            group = [t for t in tickets if t.priority == priority.value]
            within = sum(
                1
                for t in group
                if self.workflow.within_response_target(priority, t.created_at, first_responses.get(t.id))
                and self.workflow.within_resolution_target(priority, t.created_at, t.resolved_at)
            )
            overall_total += len(group)
            overall_within += within
            rows.append({
                "priority": priority.value,
                "response_time_hours": config.response_time_hours,
                "resolution_time_hours": config.resolution_time_hours,
                "total": len(group),
                "within_sla": within,
                "breached": len(group) - within,
                "compliance": _percent(within, len(group)),
            })

        return {
            "by_priority": rows,
            "overall": {
                "total": overall_total,
                "within_sla": overall_within,
                "breached": overall_total - overall_within,
                "compliance": _percent(overall_within, overall_total),
            },
        }

    async def technicians(self, session: AsyncSession, date_from: Optional[date] = None, date_to: Optional[date] = None) -> List[Dict[str, Any]]:
        staff = await self.user_repo.list_by_roles(session, [UserRole.IT_STAFF.value, UserRole.ADMIN.value])
        tickets = await self._tickets(session, date_from, date_to)

        stats = []
        for user in staff:
            assigned = [t for t in tickets if t.assigned_to_id == user.id]
            status_counts = Counter(t.status for t in assigned)
            finished = status_counts[TicketStatus.RESOLVED.value] + status_counts[TicketStatus.CLOSED.value]
            stats.append({
                "id": user.id,
                "name": user.name,
                "email": user.email,
                "role": user.role,
                "total_tickets": len(assigned),
                "resolved_tickets": status_counts[TicketStatus.RESOLVED.value],
                "closed_tickets": status_counts[TicketStatus.CLOSED.value],
                "in_progress_tickets": status_counts[TicketStatus.IN_PROGRESS.value],
                "avg_resolution_hours": _average(
                    [hours_between(t.created_at, t.resolved_at) for t in assigned if t.resolved_at]
                ),
                "resolution_rate": _percent(finished, len(assigned)),
            })
        stats.sort(key=lambda s: (-s["total_tickets"], s["name"].lower()))
        return stats

    async def trends(self, session: AsyncSession, period: str = "30days") -> Dict[str, Any]:
        """Created and resolved counts per day, or per month for ``12months``."""
        if period not in TREND_PERIODS:
            raise ValidationError("Invalid period", {"period": period, "allowed": list(TREND_PERIODS)})

        today = utc_today()
        monthly = period == "12months"
        if monthly:
            first = date(today.year - 1, today.month, 1)
            if first.month == 12:
                first = date(first.year + 1, 1, 1)
            else:
                first = date(first.year, first.month + 1, 1)
            buckets = []
            cursor = first
            while cursor <= today:
                buckets.append(_month_key(cursor))
                cursor = date(cursor.year + (cursor.month // 12), cursor.month % 12 + 1, 1)
            key = _month_key
        else:
            days = TREND_PERIODS[period]
            first = today - timedelta(days=days - 1)
            buckets = [(first + timedelta(days=i)).isoformat() for i in range(days)]

            def key(value: datetime) -> str:
                return value.date().isoformat()

        all_tickets = await self._tickets(session)
        tickets = [t for t in all_tickets if t.created_at.date() >= first]
        created = Counter(key(t.created_at) for t in tickets)
        # Resolved in the window, whenever they were opened
        resolved = Counter(
            key(t.resolved_at) for t in all_tickets if t.resolved_at and t.resolved_at.date() >= first
        )

        return {
            "period": period,
            "granularity": "month" if monthly else "day",
            "series": [{"bucket": b, "created": created.get(b, 0), "resolved": resolved.get(b, 0)} for b in buckets],
            "by_status": dict(Counter(t.status for t in tickets)),
            "by_priority": dict(Counter(t.priority for t in tickets)),
        }

    async def export_rows(
        self,
        session: AsyncSession,
        status: Optional[TicketStatus] = None,
        priority: Optional[TicketPriority] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        assigned_to_id: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        tickets = await self._tickets(
            session,
            date_from,
            date_to,
            status=status.value if status else None,
            priority=priority.value if priority else None,
            assigned_to_id=assigned_to_id,
        )
        rows = []
        for t in tickets:
            rows.append({
                "id": t.id,
                "title": t.title,
                "type": t.type,
                "status": t.status,
                "priority": t.priority,
                "requester_name": t.created_by.name if t.created_by else None,
                "requester_email": t.created_by.email if t.created_by else None,
                "assigned_to_name": t.assigned_to.name if t.assigned_to else None,
                "created_at": t.created_at.isoformat() if t.created_at else None,
                "updated_at": t.updated_at.isoformat() if t.updated_at else None,
                "resolved_at": t.resolved_at.isoformat() if t.resolved_at else None,
            })
        logger.info("Exported %d tickets", len(rows))
        return rows

    @staticmethod
    def iter_csv(rows: Iterable[Dict[str, Any]]) -> Iterator[str]:
        """Yield the CSV export line by line, header first."""
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS, extrasaction="ignore")

        def flush() -> str:
            chunk = buffer.getvalue()
            buffer.seek(0)
            buffer.truncate(0)
            return chunk

        writer.writeheader()
        yield flush()
        for row in rows:
            writer.writerow({k: ("" if v is None else v) for k, v in row.items()})
            yield flush()
