from __future__ import annotations
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.equipment_rules import (
    EquipmentCategory, EquipmentStatus, MovementType, RETURN_DESTINATION_STATUS, ReturnDestination, TermStatus,
    age_in_years, calculate_depreciation, code_prefix_for, is_valid_equipment_code, next_equipment_code,
)
from app.core.exceptions import ConflictError, ErrorHandler, InventoryError, NotFoundError, ValidationError
from app.core.formatting import is_valid_cpf, normalize_cpf
from app.core.timeutils import utc_now, utc_today
from app.db.models import Equipment, EquipmentMovement, ResponsibilityTerm
from app.repositories.equipment import EquipmentRepository, MovementRepository, ResponsibilityTermRepository

logger = logging.getLogger(__name__)
settings = get_settings()

STOCK_LOCATION = "Estoque TI"
NO_UNIT_LABEL = "Sem unidade"
TRANSFER_DESTINATION = "transfer"
SEARCH_MIN_LENGTH = 2
SEARCH_LIMITS = {"equipment": 20, "people": 15, "movements": 10}

# Fields a plain edit may touch; custody and status only change through the flows
EDITABLE_FIELDS = (
    "type", "brand", "model", "description", "serial_number",
    "processor", "memory_ram", "storage", "screen_size", "operating_system",
    "physical_condition", "acquisition_date", "purchase_value", "warranty_expiration", "notes",
    "current_location", "current_unit",
)
CREATE_FIELDS = EDITABLE_FIELDS + ("internal_code",)
RESPONSIBLE_FIELDS = (
    "responsible_id", "responsible_name", "responsible_cpf", "responsible_email", "responsible_phone",
    "responsible_position", "responsible_department", "responsible_unit",
)


def _location_for(department: Optional[str], unit: Optional[str]) -> Optional[str]:
    parts = [p for p in (department, unit) if p]
    return " - ".join(parts) if parts else None


class InventoryService:
    """Equipment registry and custody flows (delivery, return, transfer, relocation)."""

    def __init__(self) -> None:
        self.equipment_repo = EquipmentRepository()
        self.term_repo = ResponsibilityTermRepository()
        self.movement_repo = MovementRepository()

    # Registry

    async def generate_internal_code(self, session: AsyncSession, category: EquipmentCategory | str, equipment_type: Optional[str]) -> str:
        prefix = code_prefix_for(category, equipment_type)
        existing = await self.equipment_repo.codes_with_prefix(session, prefix)
        return next_equipment_code(prefix, existing)

    async def create_equipment(self, session: AsyncSession, category: EquipmentCategory, data: Dict[str, Any]) -> Equipment:
        """
        Register a new equipment item in stock.

        Args:
            session: Database session
            category: NOTEBOOK or PERIPHERAL
            data: Equipment fields; ``internal_code`` is generated when missing

        Raises:
            ValidationError: Missing type or malformed code
            ConflictError: Code already in use
        """
        fields = {k: v for k, v in data.items() if k in CREATE_FIELDS and v is not None}
        ErrorHandler.validate_required_fields(fields, ["type"])

        code = (fields.pop("internal_code", None) or "").strip().upper()
        if code:
            if not is_valid_equipment_code(code):
                raise ValidationError("Invalid internal code format (expected AA-000)", {"internal_code": code})
            if await self.equipment_repo.get_by_code(session, code):
                raise ConflictError("Internal code already exists", {"internal_code": code})
        else:
            code = await self.generate_internal_code(session, category, fields.get("type"))

        if not fields.get("serial_number"):
            fields["serial_number"] = "S/N"

        try:
            equipment = await self.equipment_repo.create(
                session,
                internal_code=code,
                category=category.value,
                current_status=EquipmentStatus.IN_STOCK.value,
                status_changed_at=utc_now(),
                **fields,
            )
        except IntegrityError as exc:
            logger.warning("Integrity error creating equipment %s: %s", code, exc)
            raise ConflictError("Internal code already exists", {"internal_code": code})

        logger.info("Registered %s %s (%s)", category.value.lower(), equipment.internal_code, equipment.type)
        return equipment

    async def create_notebook(self, session: AsyncSession, data: Dict[str, Any]) -> Equipment:
        data = {"type": "Notebook", **{k: v for k, v in data.items() if v is not None}}
        return await self.create_equipment(session, EquipmentCategory.NOTEBOOK, data)

    async def create_peripheral(self, session: AsyncSession, data: Dict[str, Any]) -> Equipment:
        return await self.create_equipment(session, EquipmentCategory.PERIPHERAL, data)

    async def create_peripherals_batch(self, session: AsyncSession, items: Iterable[Dict[str, Any]]) -> List[Equipment]:
        """Register several peripherals in one transaction; any failure aborts them all."""
        created = []
        for index, item in enumerate(items):
            try:
                created.append(await self.create_peripheral(session, item))
            except (ValidationError, ConflictError) as exc:
                exc.details.setdefault("index", index)
                raise
        if not created:
            raise ValidationError("Batch must contain at least one item")
        return created

    async def list_equipment(
        self,
        session: AsyncSession,
        status: Optional[EquipmentStatus] = None,
        unit: Optional[str] = None,
        category: Optional[EquipmentCategory] = None,
        type: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[Equipment], int]:
        return await self.equipment_repo.list_filtered(
            session,
            status=status.value if status else None,
            unit=unit,
            category=category.value if category else None,
            type=type,
            search=search,
            limit=limit,
            offset=offset,
        )

    async def peripheral_stats(self, session: AsyncSession) -> Dict[str, Any]:
        by_type = await self.equipment_repo.count_by(session, Equipment.type, category=EquipmentCategory.PERIPHERAL.value)
        by_status = await self.equipment_repo.count_by(
            session, Equipment.current_status, category=EquipmentCategory.PERIPHERAL.value
        )
        return {"total": sum(by_type.values()), "by_type": by_type, "by_status": by_status}

    async def get_equipment(self, session: AsyncSession, equipment_id: int, with_history: bool = False) -> Equipment:
        equipment = await self.equipment_repo.get_by_id(session, equipment_id, with_history=with_history)
        if not equipment:
            raise NotFoundError("Equipment not found", {"equipment_id": equipment_id})
        return equipment

    def depreciation_for(self, equipment: Equipment, on: Optional[date] = None) -> Optional[Dict[str, Any]]:
        """Current book value; None when purchase data is missing."""
        if equipment.purchase_value is None or equipment.acquisition_date is None:
            return None
        on = on or utc_today()
        years = age_in_years(equipment.acquisition_date, on)
        useful_life = settings.EQUIPMENT_USEFUL_LIFE_YEARS
        current = calculate_depreciation(equipment.purchase_value, years, useful_life)
        return {
            "purchase_value": float(equipment.purchase_value),
            "age_years": round(years, 2),
            "useful_life_years": useful_life,
            "current_value": current,
            "fully_depreciated": current == 0,
        }

    async def update_equipment(self, session: AsyncSession, equipment_id: int, data: Dict[str, Any]) -> Equipment:
        equipment = await self.get_equipment(session, equipment_id)
        fields = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
        if not fields:
            raise ValidationError("No fields to update", {"allowed": list(EDITABLE_FIELDS)})
        for key, value in fields.items():
            setattr(equipment, key, value)
        await session.flush()
        logger.info("Updated equipment %s fields %s", equipment.internal_code, sorted(fields))
        return equipment

    async def delete_equipment(self, session: AsyncSession, equipment_id: int) -> None:
        """Delete an item that never left stock; anything with history must be retired instead."""
        equipment = await self.get_equipment(session, equipment_id)
        terms = await self.term_repo.count_for_equipment(session, equipment_id)
        movements = await self.movement_repo.count_for_equipment(session, equipment_id)
        if terms or movements:
            raise ConflictError(
                "Equipment has custody history and cannot be deleted",
                {"equipment_id": equipment_id, "terms": terms, "movements": movements},
            )
        await session.delete(equipment)
        await session.flush()
        logger.info("Deleted equipment %s", equipment.internal_code)

    # Custody flows

    def _set_status(self, equipment: Equipment, status: EquipmentStatus, now: datetime) -> None:
        if equipment.current_status != status.value:
            equipment.current_status = status.value
            equipment.status_changed_at = now

    def _validate_responsible(self, responsible: Dict[str, Any]) -> Dict[str, Any]:
        values = {k: responsible.get(k) for k in RESPONSIBLE_FIELDS}
        ErrorHandler.validate_required_fields(values, ["responsible_name", "responsible_cpf"])
        if not is_valid_cpf(values["responsible_cpf"]):
            raise ValidationError("CPF must have 11 digits", {"field": "responsible_cpf"})
        values["responsible_cpf"] = normalize_cpf(values["responsible_cpf"])
        values["responsible_name"] = values["responsible_name"].strip()
        if not values.get("responsible_id"):
            values["responsible_id"] = values["responsible_cpf"]
        return values

    async def _lock_equipment(self, session: AsyncSession, equipment_id: int) -> Equipment:
        equipment = await self.equipment_repo.get_by_id(session, equipment_id, for_update=True)
        if not equipment:
            raise NotFoundError("Equipment not found", {"equipment_id": equipment_id})
        return equipment

    async def _open_term(
        self,
        session: AsyncSession,
        equipment: Equipment,
        responsible: Dict[str, Any],
        issued_by_id: Optional[int],
        now: datetime,
        reason: Optional[str],
        notes: Optional[str],
    ) -> ResponsibilityTerm:
        try:
            return await self.term_repo.create(
                session,
                equipment_id=equipment.id,
                issued_date=now,
                delivery_reason=reason,
                delivery_notes=notes,
                issued_by_id=issued_by_id,
                status=TermStatus.ACTIVE.value,
                **responsible,
            )
        except IntegrityError as exc:
            # Partial unique index: a concurrent request won the race
            logger.warning("Active term race on equipment %s: %s", equipment.internal_code, exc)
            raise ConflictError(
                "Equipment already has an active responsibility term",
                {"equipment_id": equipment.id},
            )

    def _assign_custody(self, equipment: Equipment, term: ResponsibilityTerm, now: datetime) -> None:
        self._set_status(equipment, EquipmentStatus.IN_USE, now)
        equipment.current_responsible_id = term.responsible_id
        equipment.current_responsible_name = term.responsible_name
        equipment.current_location = _location_for(term.responsible_department, term.responsible_unit)
        equipment.current_unit = term.responsible_unit

    async def deliver(
        self,
        session: AsyncSession,
        equipment_id: int,
        responsible: Dict[str, Any],
        issued_by_id: Optional[int],
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Tuple[Equipment, ResponsibilityTerm, EquipmentMovement]:
        """
        Deliver an in-stock item to a responsible person.

        Creates the active term and the delivery movement and moves the item to
        in_use, all in the caller's transaction with the equipment row locked.

        Raises:
            NotFoundError: Unknown equipment
            InventoryError: Equipment is not in stock
            ConflictError: An active term already exists
        """
        responsible = self._validate_responsible(responsible)
        equipment = await self._lock_equipment(session, equipment_id)

        if equipment.current_status != EquipmentStatus.IN_STOCK.value:
            raise InventoryError(
                "Equipment is not available for delivery",
                {"equipment_id": equipment.id, "current_status": equipment.current_status},
            )
        if await self.term_repo.get_active_for_equipment(session, equipment.id):
            raise ConflictError(
                "Equipment already has an active responsibility term",
                {"equipment_id": equipment.id},
            )

        now = utc_now()
        from_location, from_unit = equipment.current_location, equipment.current_unit
        term = await self._open_term(session, equipment, responsible, issued_by_id, now, reason, notes)
        self._assign_custody(equipment, term, now)

        movement = await self.movement_repo.create(
            session,
            movement_date=now,
            equipment_id=equipment.id,
            term_id=term.id,
            movement_type=MovementType.DELIVERY.value,
            to_user_id=term.responsible_id,
            to_user_name=term.responsible_name,
            from_location=from_location,
            to_location=equipment.current_location,
            from_unit=from_unit,
            to_unit=equipment.current_unit,
            to_department=term.responsible_department,
            reason=reason,
            condition_before=equipment.physical_condition,
            condition_after=equipment.physical_condition,
            registered_by_id=issued_by_id,
        )
        await session.flush()
        logger.info("Delivered %s to %s (term %s)", equipment.internal_code, term.responsible_name, term.id)
        return equipment, term, movement

    async def return_equipment(
        self,
        session: AsyncSession,
        equipment_id: int,
        checklist: Dict[str, bool],
        destination: ReturnDestination,
        received_by_id: Optional[int],
        condition: Optional[str] = None,
        problems: Optional[str] = None,
        unit: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Tuple[Equipment, ResponsibilityTerm, EquipmentMovement]:
        """
        Close the active term of an in-use item and send it to ``destination``.

        Raises:
            InventoryError: Item not in use, no active term, or empty checklist
        """
        if not checklist:
            raise ValidationError("Return checklist is required")

        equipment = await self._lock_equipment(session, equipment_id)
        if equipment.current_status != EquipmentStatus.IN_USE.value:
            raise InventoryError(
                "Equipment is not in use",
                {"equipment_id": equipment.id, "current_status": equipment.current_status},
            )
        term = await self.term_repo.get_active_for_equipment(session, equipment.id)
        if not term:
            raise InventoryError("No active responsibility term for this equipment", {"equipment_id": equipment.id})

        now = utc_now()
        condition_before = equipment.physical_condition
        condition_after = condition or condition_before
        from_location, from_unit = equipment.current_location, equipment.current_unit

        term.status = TermStatus.RETURNED.value
        term.returned_date = now
        term.return_condition = condition_after
        term.return_checklist = {str(k): bool(v) for k, v in checklist.items()}
        term.return_problems = problems
        term.return_destination = destination.value
        term.received_by_id = received_by_id

        stock_unit = unit or equipment.current_unit
        self._set_status(equipment, RETURN_DESTINATION_STATUS[destination], now)
        equipment.current_responsible_id = None
        equipment.current_responsible_name = None
        equipment.current_location = f"{STOCK_LOCATION} - {stock_unit}" if stock_unit else STOCK_LOCATION
        equipment.current_unit = stock_unit
        equipment.physical_condition = condition_after

        movement = await self.movement_repo.create(
            session,
            movement_date=now,
            equipment_id=equipment.id,
            term_id=term.id,
            movement_type=MovementType.RETURN.value,
            from_user_id=term.responsible_id,
            from_user_name=term.responsible_name,
            from_location=from_location,
            to_location=equipment.current_location,
            from_unit=from_unit,
            to_unit=stock_unit,
            from_department=term.responsible_department,
            reason=reason or problems,
            condition_before=condition_before,
            condition_after=condition_after,
            registered_by_id=received_by_id,
        )
        await session.flush()
        logger.info(
            "Returned %s from %s to %s (term %s)",
            equipment.internal_code, term.responsible_name, destination.value, term.id,
        )
        return equipment, term, movement

    async def transfer_to_employee(
        self,
        session: AsyncSession,
        equipment_id: int,
        responsible: Dict[str, Any],
        registered_by_id: Optional[int],
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Tuple[Equipment, ResponsibilityTerm, EquipmentMovement]:
        """Hand an in-use item straight to another person, swapping the active term."""
        responsible = self._validate_responsible(responsible)
        equipment = await self._lock_equipment(session, equipment_id)
        if equipment.current_status != EquipmentStatus.IN_USE.value:
            raise InventoryError(
                "Only equipment in use can be transferred to another employee",
                {"equipment_id": equipment.id, "current_status": equipment.current_status},
            )
        old_term = await self.term_repo.get_active_for_equipment(session, equipment.id)
        if not old_term:
            raise InventoryError("No active responsibility term for this equipment", {"equipment_id": equipment.id})
        if old_term.responsible_cpf == responsible["responsible_cpf"]:
            raise ValidationError("Equipment is already with this person")

        now = utc_now()
        from_location, from_unit = equipment.current_location, equipment.current_unit

        old_term.status = TermStatus.RETURNED.value
        old_term.returned_date = now
        old_term.return_condition = equipment.physical_condition
        old_term.return_destination = TRANSFER_DESTINATION
        old_term.received_by_id = registered_by_id
        # Release the active slot before the new term takes it
        await session.flush()

        new_term = await self._open_term(session, equipment, responsible, registered_by_id, now, reason, notes)
        self._assign_custody(equipment, new_term, now)

        movement = await self.movement_repo.create(
            session,
            movement_date=now,
            equipment_id=equipment.id,
            term_id=new_term.id,
            movement_type=MovementType.TRANSFER.value,
            from_user_id=old_term.responsible_id,
            from_user_name=old_term.responsible_name,
            to_user_id=new_term.responsible_id,
            to_user_name=new_term.responsible_name,
            from_location=from_location,
            to_location=equipment.current_location,
            from_unit=from_unit,
            to_unit=equipment.current_unit,
            from_department=old_term.responsible_department,
            to_department=new_term.responsible_department,
            reason=reason,
            condition_before=equipment.physical_condition,
            condition_after=equipment.physical_condition,
            registered_by_id=registered_by_id,
        )
        await session.flush()
        logger.info(
            "Transferred %s from %s to %s", equipment.internal_code, old_term.responsible_name, new_term.responsible_name
        )
        return equipment, new_term, movement

    async def relocate(
        self,
        session: AsyncSession,
        equipment_id: int,
        location: str,
        unit: Optional[str],
        registered_by_id: Optional[int],
        reason: Optional[str] = None,
    ) -> Tuple[Equipment, EquipmentMovement]:
        """Move an item to another location/unit without changing who is responsible."""
        if not location or not location.strip():
            raise ValidationError("New location is required")
        equipment = await self._lock_equipment(session, equipment_id)
        if equipment.current_status not in (EquipmentStatus.IN_USE.value, EquipmentStatus.IN_STOCK.value):
            raise InventoryError(
                "Equipment cannot be relocated in its current status",
                {"equipment_id": equipment.id, "current_status": equipment.current_status},
            )

        now = utc_now()
        active = await self.term_repo.get_active_for_equipment(session, equipment.id)
        movement = await self.movement_repo.create(
            session,
            movement_date=now,
            equipment_id=equipment.id,
            term_id=active.id if active else None,
            movement_type=MovementType.RELOCATION.value,
            from_user_id=equipment.current_responsible_id,
            from_user_name=equipment.current_responsible_name,
            to_user_id=equipment.current_responsible_id,
            to_user_name=equipment.current_responsible_name,
            from_location=equipment.current_location,
            to_location=location.strip(),
            from_unit=equipment.current_unit,
            to_unit=unit or equipment.current_unit,
            reason=reason,
            condition_before=equipment.physical_condition,
            condition_after=equipment.physical_condition,
            registered_by_id=registered_by_id,
        )
        equipment.current_location = location.strip()
        equipment.current_unit = unit or equipment.current_unit
        await session.flush()
        logger.info("Relocated %s to %s", equipment.internal_code, equipment.current_location)
        return equipment, movement

    # Views

    async def list_responsibilities(self, session: AsyncSession, search: Optional[str] = None) -> List[ResponsibilityTerm]:
        return await self.term_repo.list_active(session, search=search)

    async def get_term(self, session: AsyncSession, term_id: int) -> ResponsibilityTerm:
        term = await self.term_repo.get_by_id(session, term_id)
        if not term:
            raise NotFoundError("Responsibility term not found", {"term_id": term_id})
        return term

    async def equipment_by_person(self, session: AsyncSession, search: Optional[str] = None) -> List[Dict[str, Any]]:
        """Active custody grouped by responsible person (keyed by CPF)."""
        groups: Dict[str, Dict[str, Any]] = {}
        for term in await self.term_repo.list_active(session, search=search):
            group = groups.setdefault(term.responsible_cpf, {
                "responsible_name": term.responsible_name,
                "responsible_cpf": term.responsible_cpf,
                "responsible_department": term.responsible_department,
                "responsible_unit": term.responsible_unit,
                "equipment": [],
            })
            group["equipment"].append({"term_id": term.id, "issued_date": term.issued_date, "equipment": term.equipment})
        return sorted(groups.values(), key=lambda g: g["responsible_name"].lower())

    async def equipment_by_unit(self, session: AsyncSession) -> List[Dict[str, Any]]:
        units: Dict[str, Dict[str, Any]] = {}
        for equipment in await self.equipment_repo.list_all(session):
            unit = equipment.current_unit or NO_UNIT_LABEL
            bucket = units.setdefault(unit, {"unit": unit, "total": 0, "by_status": defaultdict(int), "equipment": []})
            bucket["total"] += 1
            bucket["by_status"][equipment.current_status] += 1
            bucket["equipment"].append(equipment)
        for bucket in units.values():
            bucket["by_status"] = dict(bucket["by_status"])
        return sorted(units.values(), key=lambda b: b["unit"].lower())

    async def recent_movements(self, session: AsyncSession, limit: int = 20) -> List[EquipmentMovement]:
        return await self.movement_repo.list_recent(session, limit=limit)

    async def search(self, session: AsyncSession, query: str) -> Dict[str, Any]:
        """
        Search equipment, people with active custody and movements at once.

        Raises:
            ValidationError: Query shorter than SEARCH_MIN_LENGTH after trimming
        """
        term = (query or "").strip()
        if len(term) < SEARCH_MIN_LENGTH:
            raise ValidationError(
                f"Search query must be at least {SEARCH_MIN_LENGTH} characters", {"q": query}
            )

        equipment = await self.equipment_repo.search(session, term, limit=SEARCH_LIMITS["equipment"])
        people = [
            {**{k: v for k, v in group.items() if k != "equipment"}, "equipment_count": len(group["equipment"])}
            for group in await self.equipment_by_person(session, search=term)
        ][: SEARCH_LIMITS["people"]]
        movements = await self.movement_repo.search(session, term, limit=SEARCH_LIMITS["movements"])
        return {
            "query": term,
            "total_results": len(equipment) + len(people) + len(movements),
            "results": {"equipment": equipment, "people": people, "movements": movements},
        }

    async def dashboard(self, session: AsyncSession) -> Dict[str, Any]:
        now = utc_now()
        by_status = await self.equipment_repo.count_by(session, Equipment.current_status)
        by_category = await self.equipment_repo.count_by(session, Equipment.category)
        active_terms = await self.term_repo.list_active(session)
        issues = await self.check_consistency(session)
        return {
            "total_equipment": sum(by_status.values()),
            "by_status": by_status,
            "by_category": by_category,
            "active_terms": len(active_terms),
            "movements_last_30_days": await self.movement_repo.count_since(session, now - timedelta(days=30)),
            "in_use_without_term": sum(1 for i in issues if i["issue"] == "in_use_without_term"),
            "drift_count": len(issues),
            "recent_movements": await self.movement_repo.list_recent(session, limit=5),
        }

    async def alerts(self, session: AsyncSession, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """
        Items needing attention:

        - maintenance longer than MAINTENANCE_ALERT_DAYS (high past the high threshold)
        - in use under the same term longer than LONG_USE_ALERT_DAYS (high past the high threshold)
        - in use with no active term (always high)
        """
        now = now or utc_now()
        alerts: List[Dict[str, Any]] = []

        for equipment in await self.equipment_repo.list_all(session, status=EquipmentStatus.MAINTENANCE.value):
            since = equipment.status_changed_at or equipment.updated_at
            days = (now - since).days
            if days > settings.MAINTENANCE_ALERT_DAYS:
                alerts.append({
                    "type": "maintenance_overdue",
                    "severity": "high" if days > settings.MAINTENANCE_ALERT_HIGH_DAYS else "medium",
                    "equipment_id": equipment.id,
                    "internal_code": equipment.internal_code,
                    "days": days,
                    "message": f"{equipment.internal_code} in maintenance for {days} days",
                })

        with_term = set()
        for term in await self.term_repo.list_active(session):
            with_term.add(term.equipment_id)
            days = (now - term.issued_date).days
            if days > settings.LONG_USE_ALERT_DAYS:
                alerts.append({
                    "type": "long_use",
                    "severity": "high" if days > settings.LONG_USE_ALERT_HIGH_DAYS else "medium",
                    "equipment_id": term.equipment_id,
                    "internal_code": term.equipment.internal_code,
                    "days": days,
                    "message": f"{term.equipment.internal_code} with {term.responsible_name} for {days} days",
                })

        for equipment in await self.equipment_repo.list_all(session, status=EquipmentStatus.IN_USE.value):
            if equipment.id not in with_term:
                alerts.append({
                    "type": "missing_term",
                    "severity": "high",
                    "equipment_id": equipment.id,
                    "internal_code": equipment.internal_code,
                    "days": None,
                    "message": f"{equipment.internal_code} is in use without an active responsibility term",
                })

        severity_rank = {"high": 0, "medium": 1}
        alerts.sort(key=lambda a: (severity_rank.get(a["severity"], 2), -(a["days"] or 0)))
        return alerts

    # Consistency between custody fields and the term table

    async def check_consistency(self, session: AsyncSession) -> List[Dict[str, Any]]:
        """Report every equipment whose custody fields disagree with its active terms."""
        active_by_equipment: Dict[int, List[ResponsibilityTerm]] = defaultdict(list)
        for term in await self.term_repo.list_active(session):
            active_by_equipment[term.equipment_id].append(term)

        issues: List[Dict[str, Any]] = []
        for equipment in await self.equipment_repo.list_all(session):
            terms = sorted(active_by_equipment.get(equipment.id, []), key=lambda t: (t.issued_date, t.id), reverse=True)
            base = {"equipment_id": equipment.id, "internal_code": equipment.internal_code}
            if len(terms) > 1:
                issues.append({**base, "issue": "multiple_active_terms", "term_ids": [t.id for t in terms]})
            if not terms:
                if equipment.current_status == EquipmentStatus.IN_USE.value:
                    issues.append({**base, "issue": "in_use_without_term"})
                elif equipment.current_responsible_id or equipment.current_responsible_name:
                    issues.append({**base, "issue": "stale_responsible"})
                continue
            latest = terms[0]
            if equipment.current_status != EquipmentStatus.IN_USE.value:
                issues.append({**base, "issue": "active_term_not_in_use", "term_ids": [latest.id]})
            elif (
                equipment.current_responsible_id != latest.responsible_id
                or equipment.current_responsible_name != latest.responsible_name
            ):
                issues.append({**base, "issue": "responsible_mismatch", "term_ids": [latest.id]})
        return issues

    async def reconcile(self, session: AsyncSession, dry_run: bool = True) -> Dict[str, Any]:
        """
        Repair drift found by ``check_consistency``.

        - in use without a term: back to stock, responsible cleared
        - stale responsible on a non-custody item: responsible cleared
        - active term but not in use / wrong responsible: custody restored from the newest term
        - several active terms: newest kept, others cancelled
        """
        issues = await self.check_consistency(session)
        if dry_run or not issues:
            return {"dry_run": dry_run, "issues": issues, "fixed": 0}

        now = utc_now()
        fixed = 0
        for issue in issues:
            equipment = await self.equipment_repo.get_by_id(session, issue["equipment_id"], for_update=True)
            if equipment is None:
                continue
            kind = issue["issue"]
            if kind == "multiple_active_terms":
                terms = await self.term_repo.list_active_for_equipment(session, equipment.id)
                for stale in terms[1:]:
                    stale.status = TermStatus.CANCELLED.value
                    stale.returned_date = now
                fixed += 1
            elif kind in ("in_use_without_term", "stale_responsible"):
                if kind == "in_use_without_term":
                    self._set_status(equipment, EquipmentStatus.IN_STOCK, now)
                equipment.current_responsible_id = None
                equipment.current_responsible_name = None
                fixed += 1
            elif kind in ("active_term_not_in_use", "responsible_mismatch"):
                term = await self.term_repo.get_active_for_equipment(session, equipment.id)
                if term:
                    self._assign_custody(equipment, term, now)
                    fixed += 1
            logger.info("Reconciled %s: %s", equipment.internal_code, kind)
        await session.flush()
        return {"dry_run": False, "issues": issues, "fixed": fixed}
