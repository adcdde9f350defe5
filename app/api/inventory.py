from __future__ import annotations
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import AuthorizationContext, Permission, UserRole, require_permission, require_roles
from app.core.equipment_rules import EquipmentCategory, EquipmentStatus, RequisitionStatus
from app.core.exceptions import BusinessLogicError, ValidationError, business_exception_to_http
from app.db.models import EquipmentMovement
from app.db.session import get_db
from app.schemas.common import COMMON_RESPONSES, ErrorResponse
from app.schemas.inventory import (
    AlertResponse,
    ConsistencyIssue,
    CustodyResponse,
    DashboardResponse,
    DeliverRequest,
    EquipmentDetailResponse,
    EquipmentListResponse,
    EquipmentResponse,
    EquipmentUpdateRequest,
    MovementResponse,
    MovementWithEquipmentResponse,
    NotebookCreateRequest,
    PeripheralBatchRequest,
    PeripheralCreateRequest,
    PeripheralListResponse,
    PersonGroupResponse,
    PersonSearchResult,
    ReconcileResponse,
    RequisitionApproveRequest,
    RequisitionCreateRequest,
    RequisitionListResponse,
    RequisitionPurchaseRequest,
    RequisitionReceiveRequest,
    RequisitionRejectRequest,
    RequisitionResponse,
    ResponsibleData,
    ReturnRequest,
    SearchResponse,
    SearchResults,
    TermResponse,
    TermWithEquipmentResponse,
    TransferRequest,
    TransferType,
    UnitGroupResponse,
)
from app.services.inventory import InventoryService
from app.services.requisition import RequisitionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/inventory", tags=["inventory"])

NOT_FOUND = {404: {"model": ErrorResponse, "description": "Equipment not found"}}
CONFLICT = {409: {"model": ErrorResponse, "description": "Conflicting equipment state"}}

view_inventory = require_permission(Permission.VIEW_INVENTORY)
manage_inventory = require_permission(Permission.MANAGE_INVENTORY)


def _movement_with_code(movement: EquipmentMovement) -> MovementWithEquipmentResponse:
    data = MovementResponse.model_validate(movement).model_dump()
    return MovementWithEquipmentResponse(**data, internal_code=movement.equipment.internal_code if movement.equipment else None)


def _unexpected(action: str, e: Exception) -> HTTPException:
    logger.exception(f"Unexpected error during {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"An unexpected error occurred during {action}",
    )


# Registry

@router.post(
    "/notebooks",
    response_model=EquipmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**COMMON_RESPONSES, 409: {"model": ErrorResponse, "description": "Internal code already exists"}},
    summary="Register a notebook",
)
async def create_notebook(
    payload: NotebookCreateRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(manage_inventory),
) -> EquipmentResponse:
    try:
        equipment = await InventoryService().create_notebook(session, payload.model_dump())
        await session.commit()
    except BusinessLogicError as e:
        logger.warning(f"Business logic error registering notebook: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        raise _unexpected("notebook registration", e)
    logger.info(f"User {auth_context.user_id} registered notebook {equipment.internal_code}")
    return EquipmentResponse.model_validate(equipment)


@router.get("/notebooks", response_model=EquipmentListResponse, responses=COMMON_RESPONSES, summary="List notebooks")
async def list_notebooks(
    status_filter: Optional[EquipmentStatus] = Query(None, alias="status"),
    unit: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_inventory),
) -> EquipmentListResponse:
    items, total = await InventoryService().list_equipment(
        session, status=status_filter, unit=unit, category=EquipmentCategory.NOTEBOOK,
        search=search, limit=limit, offset=offset,
    )
    return EquipmentListResponse(
        items=[EquipmentResponse.model_validate(e) for e in items], total=total, limit=limit, offset=offset
    )


@router.post(
    "/peripherals",
    response_model=EquipmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**COMMON_RESPONSES, 409: {"model": ErrorResponse, "description": "Internal code already exists"}},
    summary="Register a peripheral",
)
async def create_peripheral(
    payload: PeripheralCreateRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(manage_inventory),
) -> EquipmentResponse:
    try:
        equipment = await InventoryService().create_peripheral(session, payload.model_dump())
        await session.commit()
    except BusinessLogicError as e:
        logger.warning(f"Business logic error registering peripheral: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        raise _unexpected("peripheral registration", e)
    return EquipmentResponse.model_validate(equipment)


@router.post(
    "/peripherals/batch",
    response_model=List[EquipmentResponse],
    status_code=status.HTTP_201_CREATED,
    responses={**COMMON_RESPONSES, 409: {"model": ErrorResponse, "description": "Internal code already exists"}},
    summary="Register several peripherals at once",
    description="All items are created in one transaction; any invalid item rejects the whole batch.",
)
async def create_peripherals_batch(
    payload: PeripheralBatchRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(manage_inventory),
) -> List[EquipmentResponse]:
    try:
        created = await InventoryService().create_peripherals_batch(session, [i.model_dump() for i in payload.items])
        await session.commit()
    except BusinessLogicError as e:
        # earlier items are already flushed
        await session.rollback()
        raise business_exception_to_http(e)
    except Exception as e:
        raise _unexpected("peripheral batch registration", e)
    return [EquipmentResponse.model_validate(e) for e in created]


@router.get(
    "/peripherals",
    response_model=PeripheralListResponse,
    responses=COMMON_RESPONSES,
    summary="List peripherals with per-type stats",
)
async def list_peripherals(
    type: Optional[str] = None,
    status_filter: Optional[EquipmentStatus] = Query(None, alias="status"),
    unit: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_inventory),
) -> PeripheralListResponse:
    svc = InventoryService()
    items, total = await svc.list_equipment(
        session, status=status_filter, unit=unit, category=EquipmentCategory.PERIPHERAL,
        type=type, search=search, limit=limit, offset=offset,
    )
    return PeripheralListResponse(
        items=[EquipmentResponse.model_validate(e) for e in items],
        total=total,
        limit=limit,
        offset=offset,
        stats=await svc.peripheral_stats(session),
    )


@router.get("/equipment", response_model=EquipmentListResponse, responses=COMMON_RESPONSES, summary="List equipment")
async def list_equipment(
    status_filter: Optional[EquipmentStatus] = Query(None, alias="status"),
    unit: Optional[str] = None,
    category: Optional[EquipmentCategory] = None,
    search: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_inventory),
) -> EquipmentListResponse:
    items, total = await InventoryService().list_equipment(
        session, status=status_filter, unit=unit, category=category, search=search, limit=limit, offset=offset
    )
    return EquipmentListResponse(
        items=[EquipmentResponse.model_validate(e) for e in items], total=total, limit=limit, offset=offset
    )


@router.get(
    "/equipment/{equipment_id}",
    response_model=EquipmentDetailResponse,
    responses={**COMMON_RESPONSES, **NOT_FOUND},
    summary="Equipment details with history and depreciation",
)
async def get_equipment(
    equipment_id: int,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_inventory),
) -> EquipmentDetailResponse:
    svc = InventoryService()
    try:
        equipment = await svc.get_equipment(session, equipment_id, with_history=True)
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    base = EquipmentResponse.model_validate(equipment).model_dump()
    return EquipmentDetailResponse(
        **base,
        terms=[TermResponse.model_validate(t) for t in equipment.terms],
        movements=[MovementResponse.model_validate(m) for m in reversed(equipment.movements)],
        depreciation=svc.depreciation_for(equipment),
    )


@router.put(
    "/equipment/{equipment_id}",
    response_model=EquipmentResponse,
    responses={**COMMON_RESPONSES, **NOT_FOUND},
    summary="Update descriptive equipment fields",
)
async def update_equipment(
    equipment_id: int,
    payload: EquipmentUpdateRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(manage_inventory),
) -> EquipmentResponse:
    try:
        equipment = await InventoryService().update_equipment(
            session, equipment_id, payload.model_dump(exclude_unset=True)
        )
        await session.commit()
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    except Exception as e:
        raise _unexpected("equipment update", e)
    return EquipmentResponse.model_validate(equipment)


@router.delete(
    "/equipment/{equipment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={**COMMON_RESPONSES, **NOT_FOUND, 409: {"model": ErrorResponse, "description": "Equipment has history"}},
    summary="Delete equipment without custody history",
)
async def delete_equipment(
    equipment_id: int,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(require_permission(Permission.DELETE_INVENTORY)),
) -> None:
    try:
        await InventoryService().delete_equipment(session, equipment_id)
        await session.commit()
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    logger.info(f"User {auth_context.user_id} deleted equipment {equipment_id}")


# Custody flows

@router.post(
    "/equipment/{equipment_id}/deliver",
    response_model=CustodyResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**COMMON_RESPONSES, **NOT_FOUND, **CONFLICT},
    summary="Deliver equipment to a responsible person",
    description="Opens a responsibility term and records a delivery movement. The item must be in stock.",
)
async def deliver_equipment(
    equipment_id: int,
    payload: DeliverRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(manage_inventory),
) -> CustodyResponse:
    responsible = payload.model_dump(include=set(ResponsibleData.model_fields))
    try:
        equipment, term, movement = await InventoryService().deliver(
            session,
            equipment_id,
            responsible,
            issued_by_id=auth_context.user_id,
            reason=payload.delivery_reason,
            notes=payload.delivery_notes,
        )
        await session.commit()
    except BusinessLogicError as e:
        logger.warning(f"Delivery of equipment {equipment_id} rejected: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        raise _unexpected("equipment delivery", e)
    return CustodyResponse(
        equipment=EquipmentResponse.model_validate(equipment),
        term=TermResponse.model_validate(term),
        movement=MovementResponse.model_validate(movement),
    )


@router.post(
    "/equipment/{equipment_id}/return",
    response_model=CustodyResponse,
    responses={**COMMON_RESPONSES, **NOT_FOUND},
    summary="Return equipment from its responsible person",
)
async def return_equipment(
    equipment_id: int,
    payload: ReturnRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(manage_inventory),
) -> CustodyResponse:
    try:
        equipment, term, movement = await InventoryService().return_equipment(
            session,
            equipment_id,
            checklist=payload.checklist,
            destination=payload.destination,
            received_by_id=auth_context.user_id,
            condition=payload.condition,
            problems=payload.problems,
            unit=payload.unit,
            reason=payload.reason,
        )
        await session.commit()
    except BusinessLogicError as e:
        logger.warning(f"Return of equipment {equipment_id} rejected: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        raise _unexpected("equipment return", e)
    return CustodyResponse(
        equipment=EquipmentResponse.model_validate(equipment),
        term=TermResponse.model_validate(term),
        movement=MovementResponse.model_validate(movement),
    )


@router.post(
    "/equipment/{equipment_id}/transfer",
    response_model=CustodyResponse,
    responses={**COMMON_RESPONSES, **NOT_FOUND, **CONFLICT},
    summary="Transfer equipment to another person or location",
)
async def transfer_equipment(
    equipment_id: int,
    payload: TransferRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(manage_inventory),
) -> CustodyResponse:
    svc = InventoryService()
    term = None
    try:
        if payload.transfer_type == TransferType.EMPLOYEE:
            if payload.responsible is None:
                raise ValidationError("responsible is required for an employee transfer")
            equipment, term, movement = await svc.transfer_to_employee(
                session,
                equipment_id,
                payload.responsible.model_dump(),
                registered_by_id=auth_context.user_id,
                reason=payload.reason,
                notes=payload.notes,
            )
        else:
            equipment, movement = await svc.relocate(
                session,
                equipment_id,
                location=payload.location or "",
                unit=payload.unit,
                registered_by_id=auth_context.user_id,
                reason=payload.reason,
            )
        await session.commit()
    except BusinessLogicError as e:
        logger.warning(f"Transfer of equipment {equipment_id} rejected: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        raise _unexpected("equipment transfer", e)
    return CustodyResponse(
        equipment=EquipmentResponse.model_validate(equipment),
        term=TermResponse.model_validate(term) if term else None,
        movement=MovementResponse.model_validate(movement),
    )


# Views

@router.get("/by-person", response_model=List[PersonGroupResponse], responses=COMMON_RESPONSES, summary="Equipment by responsible person")
async def equipment_by_person(
    search: Optional[str] = None,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_inventory),
) -> List[PersonGroupResponse]:
    groups = await InventoryService().equipment_by_person(session, search=search)
    return [
        PersonGroupResponse(
            **{k: v for k, v in g.items() if k != "equipment"},
            equipment=[
                {
                    "term_id": item["term_id"],
                    "issued_date": item["issued_date"],
                    "equipment": EquipmentResponse.model_validate(item["equipment"]),
                }
                for item in g["equipment"]
            ],
        )
        for g in groups
    ]


@router.get("/by-unit", response_model=List[UnitGroupResponse], responses=COMMON_RESPONSES, summary="Equipment by unit")
async def equipment_by_unit(
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_inventory),
) -> List[UnitGroupResponse]:
    groups = await InventoryService().equipment_by_unit(session)
    return [
        UnitGroupResponse(
            unit=g["unit"],
            total=g["total"],
            by_status=g["by_status"],
            equipment=[EquipmentResponse.model_validate(e) for e in g["equipment"]],
        )
        for g in groups
    ]


@router.get("/dashboard", response_model=DashboardResponse, responses=COMMON_RESPONSES, summary="Inventory dashboard")
async def dashboard(
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_inventory),
) -> DashboardResponse:
    data = await InventoryService().dashboard(session)
    data["recent_movements"] = [_movement_with_code(m) for m in data["recent_movements"]]
    return DashboardResponse(**data)


@router.get(
    "/movements/recent",
    response_model=List[MovementWithEquipmentResponse],
    responses=COMMON_RESPONSES,
    summary="Most recent movements",
)
async def recent_movements(
    limit: int = Query(20, ge=1, le=200),
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_inventory),
) -> List[MovementWithEquipmentResponse]:
    movements = await InventoryService().recent_movements(session, limit=limit)
    return [_movement_with_code(m) for m in movements]


@router.get(
    "/search",
    response_model=SearchResponse,
    responses=COMMON_RESPONSES,
    summary="Search the inventory",
    description="Matches equipment, people with active custody and movements. The query needs at least 2 characters.",
)
async def search_inventory(
    q: str = Query(..., description="Search text", examples=["NB-001"]),
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_inventory),
) -> SearchResponse:
    try:
        data = await InventoryService().search(session, q)
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    results = data["results"]
    return SearchResponse(
        query=data["query"],
        total_results=data["total_results"],
        results=SearchResults(
            equipment=[EquipmentResponse.model_validate(e) for e in results["equipment"]],
            people=[PersonSearchResult(**p) for p in results["people"]],
            movements=[_movement_with_code(m) for m in results["movements"]],
        ),
    )


@router.get("/alerts", response_model=List[AlertResponse], responses=COMMON_RESPONSES, summary="Equipment needing attention")
async def alerts(
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_inventory),
) -> List[AlertResponse]:
    return [AlertResponse(**a) for a in await InventoryService().alerts(session)]


@router.get(
    "/responsibilities",
    response_model=List[TermWithEquipmentResponse],
    responses=COMMON_RESPONSES,
    summary="Active responsibility terms",
)
async def list_responsibilities(
    search: Optional[str] = None,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_inventory),
) -> List[TermWithEquipmentResponse]:
    terms = await InventoryService().list_responsibilities(session, search=search)
    return [TermWithEquipmentResponse.model_validate(t) for t in terms]


@router.get(
    "/terms/{term_id}",
    response_model=TermWithEquipmentResponse,
    responses={**COMMON_RESPONSES, 404: {"model": ErrorResponse, "description": "Term not found"}},
    summary="Get a responsibility term",
)
async def get_term(
    term_id: int,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_inventory),
) -> TermWithEquipmentResponse:
    try:
        term = await InventoryService().get_term(session, term_id)
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    return TermWithEquipmentResponse.model_validate(term)


# Consistency

@router.get(
    "/consistency",
    response_model=List[ConsistencyIssue],
    responses=COMMON_RESPONSES,
    summary="Custody drift report",
)
async def consistency(
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(require_roles(UserRole.ADMIN)),
) -> List[ConsistencyIssue]:
    return [ConsistencyIssue(**i) for i in await InventoryService().check_consistency(session)]


@router.post(
    "/reconcile",
    response_model=ReconcileResponse,
    responses=COMMON_RESPONSES,
    summary="Repair custody drift",
    description="Dry run by default; pass dry_run=false to apply the fixes.",
)
async def reconcile(
    dry_run: bool = True,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(require_roles(UserRole.ADMIN)),
) -> ReconcileResponse:
    try:
        result = await InventoryService().reconcile(session, dry_run=dry_run)
        await session.commit()
    except Exception as e:
        raise _unexpected("reconciliation", e)
    logger.info(f"User {auth_context.user_id} ran reconciliation (dry_run={dry_run}): {result['fixed']} fixed")
    return ReconcileResponse(**result)


# Purchase requisitions

approve_requisitions = require_permission(Permission.APPROVE_REQUISITIONS)
REQUISITION_RESPONSES = {
    **COMMON_RESPONSES,
    404: {"model": ErrorResponse, "description": "Requisition not found"},
}


@router.get(
    "/requisitions",
    response_model=RequisitionListResponse,
    responses=COMMON_RESPONSES,
    summary="List purchase requisitions",
)
async def list_requisitions(
    status_filter: Optional[RequisitionStatus] = Query(None, alias="status"),
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(view_inventory),
) -> RequisitionListResponse:
    svc = RequisitionService()
    requisitions = await svc.list_requisitions(session, status=status_filter.value if status_filter else None)
    return RequisitionListResponse(
        requisitions=[RequisitionResponse.model_validate(r) for r in requisitions],
        total=len(requisitions),
        by_status=await svc.count_by_status(session),
    )


@router.post(
    "/requisitions",
    response_model=RequisitionResponse,
    status_code=status.HTTP_201_CREATED,
    responses=COMMON_RESPONSES,
    summary="Request a purchase",
)
async def create_requisition(
    payload: RequisitionCreateRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(manage_inventory),
) -> RequisitionResponse:
    try:
        requisition = await RequisitionService().create(session, auth_context, payload.model_dump())
        await session.commit()
    except BusinessLogicError as e:
        logger.warning(f"Business logic error creating requisition: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        raise _unexpected("requisition creation", e)
    return RequisitionResponse.model_validate(requisition)


@router.patch(
    "/requisitions/{requisition_id}/approve",
    response_model=RequisitionResponse,
    responses=REQUISITION_RESPONSES,
    summary="Approve a pending requisition",
)
async def approve_requisition(
    requisition_id: int,
    payload: Optional[RequisitionApproveRequest] = None,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(approve_requisitions),
) -> RequisitionResponse:
    try:
        requisition = await RequisitionService().approve(
            session, auth_context, requisition_id, notes=payload.notes if payload else None
        )
        await session.commit()
    except BusinessLogicError as e:
        logger.warning(f"Business logic error approving requisition {requisition_id}: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        raise _unexpected("requisition approval", e)
    return RequisitionResponse.model_validate(requisition)


@router.patch(
    "/requisitions/{requisition_id}/reject",
    response_model=RequisitionResponse,
    responses=REQUISITION_RESPONSES,
    summary="Reject a pending requisition",
)
async def reject_requisition(
    requisition_id: int,
    payload: RequisitionRejectRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(approve_requisitions),
) -> RequisitionResponse:
    try:
        requisition = await RequisitionService().reject(session, auth_context, requisition_id, payload.rejection_reason)
        await session.commit()
    except BusinessLogicError as e:
        logger.warning(f"Business logic error rejecting requisition {requisition_id}: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        raise _unexpected("requisition rejection", e)
    return RequisitionResponse.model_validate(requisition)


@router.patch(
    "/requisitions/{requisition_id}/purchase",
    response_model=RequisitionResponse,
    responses=REQUISITION_RESPONSES,
    summary="Register the purchase of an approved requisition",
)
async def register_purchase(
    requisition_id: int,
    payload: RequisitionPurchaseRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(manage_inventory),
) -> RequisitionResponse:
    try:
        requisition = await RequisitionService().register_purchase(session, requisition_id, payload.model_dump())
        await session.commit()
    except BusinessLogicError as e:
        logger.warning(f"Business logic error registering purchase {requisition_id}: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        raise _unexpected("purchase registration", e)
    return RequisitionResponse.model_validate(requisition)


@router.patch(
    "/requisitions/{requisition_id}/receive",
    response_model=RequisitionResponse,
    responses=REQUISITION_RESPONSES,
    summary="Receive a purchased requisition",
    description="Links the registered equipment items that arrived with the purchase.",
)
async def receive_requisition(
    requisition_id: int,
    payload: RequisitionReceiveRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(manage_inventory),
) -> RequisitionResponse:
    try:
        requisition = await RequisitionService().receive(
            session, auth_context, requisition_id, payload.equipment_ids, payload.received_date
        )
        await session.commit()
    except BusinessLogicError as e:
        logger.warning(f"Business logic error receiving requisition {requisition_id}: {e}")
        raise business_exception_to_http(e)
    except Exception as e:
        raise _unexpected("requisition receipt", e)
    logger.info(f"User {auth_context.user_id} received requisition {requisition.request_number}")
    return RequisitionResponse.model_validate(requisition)
