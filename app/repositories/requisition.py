from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.equipment_rules import REQUISITION_NUMBER_PREFIX, format_request_number
from app.db.models import Equipment, PurchaseRequisition


class RequisitionRepository:
    """Repository for `PurchaseRequisition` rows."""

    async def get_by_id(self, session: AsyncSession, requisition_id: int, for_update: bool = False) -> Optional[PurchaseRequisition]:
        stmt = (
            select(PurchaseRequisition)
            .options(selectinload(PurchaseRequisition.equipment))
            .where(PurchaseRequisition.id == requisition_id)
        )
        if for_update:
            stmt = stmt.with_for_update()
        res = await session.execute(stmt)
        return res.scalar_one_or_none()

    async def list_filtered(self, session: AsyncSession, status: Optional[str] = None) -> List[PurchaseRequisition]:
        stmt = select(PurchaseRequisition).options(selectinload(PurchaseRequisition.equipment))
        if status:
            stmt = stmt.where(PurchaseRequisition.status == status)
        stmt = stmt.order_by(PurchaseRequisition.created_at.desc(), PurchaseRequisition.id.desc())
        res = await session.execute(stmt)
        return list(res.scalars().all())

    async def next_number(self, session: AsyncSession, year: int) -> str:
        prefix = f"{REQUISITION_NUMBER_PREFIX}-{year}-"
        stmt = select(PurchaseRequisition.request_number).where(PurchaseRequisition.request_number.like(f"{prefix}%"))
        numbers = [int(n[len(prefix):]) for (n,) in (await session.execute(stmt)).all() if n[len(prefix):].isdigit()]
        return format_request_number(year, max(numbers, default=0) + 1)

    async def create(self, session: AsyncSession, year: int, **fields: Any) -> PurchaseRequisition:
        entity = PurchaseRequisition(request_number=await self.next_number(session, year), **fields)
        session.add(entity)
        await session.flush()
        return entity

    async def get_equipment(self, session: AsyncSession, equipment_ids: Sequence[int]) -> List[Equipment]:
        if not equipment_ids:
            return []
        res = await session.execute(select(Equipment).where(Equipment.id.in_(equipment_ids)))
        return list(res.scalars().all())

    async def count_by_status(self, session: AsyncSession) -> Dict[str, int]:
        stmt = select(PurchaseRequisition.status, func.count(PurchaseRequisition.id)).group_by(PurchaseRequisition.status)
        res = await session.execute(stmt)
        return {key: count for key, count in res.all()}
