from __future__ import annotations
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import AuthorizationContext
from app.core.equipment_rules import RequisitionPriority, RequisitionStatus, can_transition_requisition
from app.core.exceptions import ErrorHandler, InventoryError, NotFoundError, ValidationError
from app.core.timeutils import utc_today
from app.db.models import PurchaseRequisition
from app.repositories.requisition import RequisitionRepository

logger = logging.getLogger(__name__)

REQUEST_FIELDS = (
    "requester_department", "requester_unit", "specifications", "reason", "needed_by_date", "estimated_value",
)
PURCHASE_FIELDS = ("actual_value", "supplier", "expected_delivery_date", "notes")


class RequisitionService:
    """Purchase requisitions: request, approval or rejection, purchase and receipt."""

    def __init__(self) -> None:
        self.repo = RequisitionRepository()

    async def list_requisitions(self, session: AsyncSession, status: Optional[str] = None) -> List[PurchaseRequisition]:
        return await self.repo.list_filtered(session, status=status)

    async def count_by_status(self, session: AsyncSession) -> Dict[str, int]:
        return await self.repo.count_by_status(session)

    async def get_requisition(self, session: AsyncSession, requisition_id: int, for_update: bool = False) -> PurchaseRequisition:
        requisition = await self.repo.get_by_id(session, requisition_id, for_update=for_update)
        if not requisition:
            raise NotFoundError("Requisition not found", {"requisition_id": requisition_id})
        return requisition

    async def create(self, session: AsyncSession, auth_context: AuthorizationContext, data: Dict[str, Any]) -> PurchaseRequisition:
        """
        Open a pending requisition numbered PED-<year>-<seq>.

        The requester defaults to the calling staff member.

        Raises:
            ValidationError: Missing item data, bad quantity or unknown priority
        """
        ErrorHandler.validate_required_fields(data, ["item_type", "item_description"])
        quantity = ErrorHandler.validate_positive_integer(data.get("quantity", 1), "quantity")
        try:
            priority = RequisitionPriority(data.get("priority") or RequisitionPriority.NORMAL).value
        except ValueError:
            raise ValidationError(
                "Invalid priority", {"priority": data.get("priority"), "allowed": [p.value for p in RequisitionPriority]}
            )

        today = utc_today()
        requisition = await self.repo.create(
            session,
            today.year,
            requested_by_id=auth_context.user_id,
            requester_name=(data.get("requester_name") or "").strip() or auth_context.user.name,
            item_type=data["item_type"].strip(),
            item_description=data["item_description"].strip(),
            quantity=quantity,
            priority=priority,
            status=RequisitionStatus.PENDING.value,
            **{k: data.get(k) for k in REQUEST_FIELDS},
        )
        # the equipment collection is read when the response is built
        await session.refresh(requisition, ["equipment"])
        logger.info("Requisition %s opened by %s", requisition.request_number, auth_context.user_id)
        return requisition

    async def _advance(self, session: AsyncSession, requisition_id: int, target: RequisitionStatus) -> PurchaseRequisition:
        requisition = await self.get_requisition(session, requisition_id, for_update=True)
        if not can_transition_requisition(requisition.status, target):
            raise InventoryError(
                f"Requisition cannot move from {requisition.status} to {target.value}",
                {"requisition_id": requisition.id, "current_status": requisition.status},
            )
        requisition.status = target.value
        return requisition

    async def approve(
        self, session: AsyncSession, auth_context: AuthorizationContext, requisition_id: int, notes: Optional[str] = None
    ) -> PurchaseRequisition:
        requisition = await self._advance(session, requisition_id, RequisitionStatus.APPROVED)
        requisition.approved_by_id = auth_context.user_id
        requisition.approved_by_name = auth_context.user.name
        requisition.approval_date = utc_today()
        if notes:
            requisition.notes = notes
        await session.flush()
        logger.info("Requisition %s approved by %s", requisition.request_number, auth_context.user_id)
        return requisition

    async def reject(
        self, session: AsyncSession, auth_context: AuthorizationContext, requisition_id: int, rejection_reason: str
    ) -> PurchaseRequisition:
        """
        Raises:
            ValidationError: Blank rejection reason
            InventoryError: Requisition is not pending
        """
        if not rejection_reason or not rejection_reason.strip():
            raise ValidationError("Rejection reason is required", {"field": "rejection_reason"})
        requisition = await self._advance(session, requisition_id, RequisitionStatus.REJECTED)
        requisition.approved_by_id = auth_context.user_id
        requisition.approved_by_name = auth_context.user.name
        requisition.approval_date = utc_today()
        requisition.rejection_reason = rejection_reason.strip()
        await session.flush()
        logger.info("Requisition %s rejected by %s", requisition.request_number, auth_context.user_id)
        return requisition

    async def register_purchase(self, session: AsyncSession, requisition_id: int, data: Dict[str, Any]) -> PurchaseRequisition:
        requisition = await self._advance(session, requisition_id, RequisitionStatus.PURCHASED)
        for field in PURCHASE_FIELDS:
            if data.get(field) is not None:
                setattr(requisition, field, data[field])
        requisition.purchase_date = data.get("purchase_date") or utc_today()
        await session.flush()
        logger.info("Purchase registered for requisition %s", requisition.request_number)
        return requisition

    async def receive(
        self,
        session: AsyncSession,
        auth_context: AuthorizationContext,
        requisition_id: int,
        equipment_ids: Iterable[int] = (),
        received_date: Optional[date] = None,
    ) -> PurchaseRequisition:
        """
        Mark a purchased requisition as received and link the registered items.

        Raises:
            ValidationError: Some equipment ids do not exist
            InventoryError: Requisition is not purchased
        """
        wanted = list(dict.fromkeys(equipment_ids))
        equipment = await self.repo.get_equipment(session, wanted)
        missing = sorted(set(wanted) - {e.id for e in equipment})
        if missing:
            raise ValidationError("Equipment not found", {"equipment_ids": missing})

        requisition = await self._advance(session, requisition_id, RequisitionStatus.RECEIVED)
        requisition.received_by_id = auth_context.user_id
        requisition.received_by_name = auth_context.user.name
        requisition.received_date = received_date or utc_today()
        requisition.actual_delivery_date = requisition.received_date
        linked = {e.id for e in requisition.equipment}
        requisition.equipment.extend(e for e in equipment if e.id not in linked)
        await session.flush()
        logger.info(
            "Requisition %s received by %s with %d item(s)",
            requisition.request_number, auth_context.user_id, len(requisition.equipment),
        )
        return requisition
