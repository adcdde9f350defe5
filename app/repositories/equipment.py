from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.db.models import Equipment, EquipmentMovement, ResponsibilityTerm


class EquipmentRepository:
    """Repository for `Equipment` rows."""

    async def get_by_id(
        self,
        session: AsyncSession,
        equipment_id: int,
        for_update: bool = False,
        with_history: bool = False,
    ) -> Optional[Equipment]:
        stmt = select(Equipment).where(Equipment.id == equipment_id)
        if with_history:
            stmt = stmt.options(
                selectinload(Equipment.terms), selectinload(Equipment.movements)
            ).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        res = await session.execute(stmt)
        return res.scalar_one_or_none()

    async def get_by_code(self, session: AsyncSession, internal_code: str) -> Optional[Equipment]:
        res = await session.execute(select(Equipment).where(Equipment.internal_code == internal_code))
        return res.scalar_one_or_none()

    async def codes_with_prefix(self, session: AsyncSession, prefix: str) -> List[str]:
        stmt = select(Equipment.internal_code).where(Equipment.internal_code.like(f"{prefix}-%"))
        res = await session.execute(stmt)
        return [code for (code,) in res.all()]

    async def list_filtered(
        self,
        session: AsyncSession,
        status: Optional[str] = None,
        unit: Optional[str] = None,
        category: Optional[str] = None,
        type: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[Equipment], int]:
        conditions = []
        if status:
            conditions.append(Equipment.current_status == status)
        if unit:
            conditions.append(Equipment.current_unit == unit)
        if category:
            conditions.append(Equipment.category == category)
        if type:
            conditions.append(func.lower(Equipment.type) == type.strip().lower())
        if search:
            like = f"%{search.strip()}%"
            conditions.append(
                or_(
                    Equipment.internal_code.ilike(like),
                    Equipment.brand.ilike(like),
                    Equipment.model.ilike(like),
                    Equipment.serial_number.ilike(like),
                    Equipment.current_responsible_name.ilike(like),
                )
            )

        total = (await session.execute(select(func.count(Equipment.id)).where(*conditions))).scalar_one()
        stmt = (
            select(Equipment)
            .where(*conditions)
            .order_by(Equipment.internal_code)
            .limit(limit)
            .offset(offset)
        )
        res = await session.execute(stmt)
        return list(res.scalars().all()), total

    async def list_all(self, session: AsyncSession, status: Optional[str] = None) -> List[Equipment]:
        stmt = select(Equipment).order_by(Equipment.internal_code)
        if status:
            stmt = stmt.where(Equipment.current_status == status)
        res = await session.execute(stmt)
        return list(res.scalars().all())

    async def search(self, session: AsyncSession, term: str, limit: int = 20) -> List[Equipment]:
        like = f"%{term}%"
        stmt = (
            select(Equipment)
            .where(
                or_(
                    Equipment.internal_code.ilike(like),
                    Equipment.brand.ilike(like),
                    Equipment.model.ilike(like),
                    Equipment.serial_number.ilike(like),
                    Equipment.type.ilike(like),
                )
            )
            .order_by(Equipment.internal_code)
            .limit(limit)
        )
        res = await session.execute(stmt)
        return list(res.scalars().all())

    async def count_by(self, session: AsyncSession, column: Any, category: Optional[str] = None) -> Dict[str, int]:
        stmt = select(column, func.count(Equipment.id)).group_by(column)
        if category:
            stmt = stmt.where(Equipment.category == category)
        res = await session.execute(stmt)
        return {key: count for key, count in res.all()}

    async def create(self, session: AsyncSession, **fields: Any) -> Equipment:
        entity = Equipment(**fields)
        session.add(entity)
        await session.flush()
        return entity


class ResponsibilityTermRepository:
    """Repository for `ResponsibilityTerm` rows."""

    async def get_by_id(self, session: AsyncSession, term_id: int) -> Optional[ResponsibilityTerm]:
        stmt = (
            select(ResponsibilityTerm)
            .options(selectinload(ResponsibilityTerm.equipment))
            .where(ResponsibilityTerm.id == term_id)
        )
        res = await session.execute(stmt)
        return res.scalar_one_or_none()

    async def list_active_for_equipment(self, session: AsyncSession, equipment_id: int) -> List[ResponsibilityTerm]:
        stmt = (
            select(ResponsibilityTerm)
            .where(ResponsibilityTerm.equipment_id == equipment_id, ResponsibilityTerm.status == "active")
            .order_by(ResponsibilityTerm.issued_date.desc(), ResponsibilityTerm.id.desc())
        )
        res = await session.execute(stmt)
        return list(res.scalars().all())

    async def get_active_for_equipment(self, session: AsyncSession, equipment_id: int) -> Optional[ResponsibilityTerm]:
        terms = await self.list_active_for_equipment(session, equipment_id)
        return terms[0] if terms else None

    async def list_active(self, session: AsyncSession, search: Optional[str] = None) -> List[ResponsibilityTerm]:
        stmt = (
            select(ResponsibilityTerm)
            .options(selectinload(ResponsibilityTerm.equipment))
            .where(ResponsibilityTerm.status == "active")
        )
        if search:
            like = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    ResponsibilityTerm.responsible_name.ilike(like),
                    ResponsibilityTerm.responsible_cpf.ilike(like),
                    ResponsibilityTerm.responsible_department.ilike(like),
                    ResponsibilityTerm.responsible_unit.ilike(like),
                )
            )
        stmt = stmt.order_by(ResponsibilityTerm.responsible_name, ResponsibilityTerm.id)
        res = await session.execute(stmt)
        return list(res.scalars().all())

    async def count_for_equipment(self, session: AsyncSession, equipment_id: int) -> int:
        stmt = select(func.count(ResponsibilityTerm.id)).where(ResponsibilityTerm.equipment_id == equipment_id)
        return (await session.execute(stmt)).scalar_one()

    async def create(self, session: AsyncSession, **fields: Any) -> ResponsibilityTerm:
        entity = ResponsibilityTerm(**fields)
        session.add(entity)
        await session.flush()
        return entity


class MovementRepository:
    """Insert-only access to `EquipmentMovement` rows."""

    async def next_number(self, session: AsyncSession, year: int) -> str:
        prefix = f"MOV-{year}-"
        stmt = select(func.max(EquipmentMovement.movement_number)).where(
            EquipmentMovement.movement_number.like(f"{prefix}%")
        )
        current = (await session.execute(stmt)).scalar_one_or_none()
        sequence = int(current.rsplit("-", 1)[1]) + 1 if current else 1
        return f"{prefix}{sequence:06d}"

    async def create(self, session: AsyncSession, movement_date: datetime, **fields: Any) -> EquipmentMovement:
        number = await self.next_number(session, movement_date.year)
        entity = EquipmentMovement(movement_number=number, movement_date=movement_date, **fields)
        session.add(entity)
        await session.flush()
        return entity

    async def list_recent(self, session: AsyncSession, limit: int = 20) -> List[EquipmentMovement]:
        stmt = (
            select(EquipmentMovement)
            .options(selectinload(EquipmentMovement.equipment))
            .order_by(EquipmentMovement.movement_date.desc(), EquipmentMovement.id.desc())
            .limit(limit)
        )
        res = await session.execute(stmt)
        return list(res.scalars().all())

    async def count_for_equipment(self, session: AsyncSession, equipment_id: int) -> int:
        stmt = select(func.count(EquipmentMovement.id)).where(EquipmentMovement.equipment_id == equipment_id)
        return (await session.execute(stmt)).scalar_one()

    async def count_since(self, session: AsyncSession, since: datetime) -> int:
        stmt = select(func.count(EquipmentMovement.id)).where(EquipmentMovement.movement_date >= since)
        return (await session.execute(stmt)).scalar_one()

    async def search(self, session: AsyncSession, term: str, limit: int = 10) -> List[EquipmentMovement]:
        like = f"%{term}%"
        stmt = (
            select(EquipmentMovement)
            .join(Equipment, EquipmentMovement.equipment_id == Equipment.id)
            .options(selectinload(EquipmentMovement.equipment))
            .where(
                or_(
                    EquipmentMovement.movement_number.ilike(like),
                    EquipmentMovement.from_user_name.ilike(like),
                    EquipmentMovement.to_user_name.ilike(like),
                    Equipment.internal_code.ilike(like),
                )
            )
            .order_by(EquipmentMovement.movement_date.desc(), EquipmentMovement.id.desc())
            .limit(limit)
        )
        res = await session.execute(stmt)
        return list(res.scalars().all())
