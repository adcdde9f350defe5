"""
Ticket workflow rules for Portal TI.
Holds the status/priority vocabularies, priority scoring and SLA tracking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional

from app.core.exceptions import ValidationError
from app.core.timeutils import hours_between, utc_now

if TYPE_CHECKING:
    from app.db.models import Ticket

logger = logging.getLogger(__name__)


class TicketStatus(str, Enum):
    """Ticket statuses. Any status may follow any other."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    WAITING_USER = "waiting_user"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(str, Enum):
    """Ticket priorities with SLA definitions."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


FINISHED_STATUSES = frozenset({TicketStatus.RESOLVED.value, TicketStatus.CLOSED.value})


@dataclass(frozen=True)
class SLAConfiguration:
    """SLA targets for one priority level."""
    priority: TicketPriority
    response_time_hours: int
    resolution_time_hours: int


def calculate_priority(urgency: int, impact: int) -> TicketPriority:
    """Score urgency x impact (each 1..3) into a priority.

    >= 9 critical, >= 6 high, >= 3 medium, anything lower is low.
    """

    for name, value in (("urgency", urgency), ("impact", impact)):
        if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 3:
            raise ValidationError(f"{name} must be an integer between 1 and 3", {"field": name, "value": value})

    score = urgency * impact
    if score >= 9:
        return TicketPriority.CRITICAL
    if score >= 6:
        return TicketPriority.HIGH
    if score >= 3:
        return TicketPriority.MEDIUM
    return TicketPriority.LOW


class TicketWorkflowEngine:
    """Applies status changes and tracks SLA deadlines."""

    SLA_CONFIGS: Dict[TicketPriority, SLAConfiguration] = {
        TicketPriority.CRITICAL: SLAConfiguration(TicketPriority.CRITICAL, 1, 4),
        TicketPriority.HIGH: SLAConfiguration(TicketPriority.HIGH, 4, 24),
        TicketPriority.MEDIUM: SLAConfiguration(TicketPriority.MEDIUM, 8, 72),
        TicketPriority.LOW: SLAConfiguration(TicketPriority.LOW, 24, 168),
    }

    def get_sla_config(self, priority: TicketPriority | str) -> SLAConfiguration:
        try:
            return self.SLA_CONFIGS[TicketPriority(priority)]
        except ValueError:
            logger.warning("Unknown priority %r, falling back to medium SLA", priority)
            return self.SLA_CONFIGS[TicketPriority.MEDIUM]

    def calculate_sla_deadline(self, priority: TicketPriority | str, created_at: datetime) -> datetime:
        """Resolution deadline: creation time plus the priority's resolution hours."""
        return created_at + timedelta(hours=self.get_sla_config(priority).resolution_time_hours)

    def calculate_sla_deadlines(self, priority: TicketPriority | str, created_at: datetime) -> Dict[str, datetime]:
        """
        Calculate response and resolution deadlines for a ticket.

        Args:
            priority: Ticket priority
            created_at: Ticket creation timestamp

        Returns:
            Dictionary with ``response_deadline`` and ``resolution_deadline``
        """
        config = self.get_sla_config(priority)
        return {
            "response_deadline": created_at + timedelta(hours=config.response_time_hours),
            "resolution_deadline": created_at + timedelta(hours=config.resolution_time_hours),
        }

    def is_sla_breached(self, ticket: "Ticket", current_time: Optional[datetime] = None) -> bool:
        """A finished ticket breached if it finished late; an open one if the deadline passed."""
        deadline = self.calculate_sla_deadline(ticket.priority, ticket.created_at)
        if ticket.status in FINISHED_STATUSES and ticket.resolved_at is not None:
            return ticket.resolved_at > deadline
        current_time = current_time or utc_now()
        return current_time > deadline

    def within_response_target(self, priority: TicketPriority | str, created_at: datetime, first_response_at: Optional[datetime]) -> bool:
        if first_response_at is None:
            return False
        hours = hours_between(created_at, first_response_at)
        return hours <= self.get_sla_config(priority).response_time_hours

    def within_resolution_target(self, priority: TicketPriority | str, created_at: datetime, resolved_at: Optional[datetime]) -> bool:
        if resolved_at is None:
            return False
        hours = hours_between(created_at, resolved_at)
        return hours <= self.get_sla_config(priority).resolution_time_hours

    def apply_status_change(self, ticket: "Ticket", new_status: TicketStatus | str, now: datetime) -> bool:
        """
        Set a new status on the ticket.

        Transitions are free-form. Entering resolved/closed stamps ``resolved_at``
        (kept when moving between the two); leaving them clears it.

        Returns:
            True when the status actually changed.
        """
        new_value = TicketStatus(new_status).value
        if ticket.status == new_value:
            return False

        if new_value in FINISHED_STATUSES:
            if ticket.resolved_at is None:
                ticket.resolved_at = now
        else:
            ticket.resolved_at = None

        ticket.status = new_value
        return True
