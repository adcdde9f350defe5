"""
Pydantic schemas for the equipment inventory endpoints.
"""

from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, conlist, constr

from app.core.equipment_rules import RequisitionPriority, ReturnDestination


class EquipmentBase(BaseModel):
    """Descriptive equipment fields shared by create and update."""

    brand: Optional[constr(max_length=100)] = Field(None, examples=["Dell"])  # type: ignore[valid-type]
    model: Optional[constr(max_length=100)] = Field(None, examples=["Latitude 5420"])  # type: ignore[valid-type]
    description: Optional[str] = None
    serial_number: Optional[constr(max_length=100)] = Field(  # type: ignore[valid-type]
        None, description="Manufacturer serial (S/N when unknown)", examples=["BR0X1234"]
    )
    physical_condition: Optional[constr(max_length=50)] = Field(None, examples=["good"])  # type: ignore[valid-type]
    current_location: Optional[str] = None
    current_unit: Optional[str] = Field(None, examples=["Matriz"])
    acquisition_date: Optional[date] = None
    purchase_value: Optional[Decimal] = Field(None, ge=0, examples=["4500.00"])
    warranty_expiration: Optional[date] = None
    notes: Optional[str] = None


class NotebookSpecs(BaseModel):
    processor: Optional[str] = Field(None, examples=["Intel Core i5-1145G7"])
    memory_ram: Optional[str] = Field(None, examples=["16GB"])
    storage: Optional[str] = Field(None, examples=["512GB SSD"])
    screen_size: Optional[str] = Field(None, examples=["14\""])
    operating_system: Optional[str] = Field(None, examples=["Windows 11 Pro"])


class NotebookCreateRequest(EquipmentBase, NotebookSpecs):
    """Register a notebook; the internal code is generated (NB-001...) when omitted."""

    internal_code: Optional[str] = Field(None, description="Code in AA-000 format", examples=["NB-001"])


class PeripheralCreateRequest(EquipmentBase):
    """Register a peripheral; its type picks the code prefix (MS, KB, MN...)."""

    type: constr(min_length=1, max_length=100) = Field(..., examples=["Mouse"])  # type: ignore[valid-type]
    internal_code: Optional[str] = Field(None, description="Code in AA-000 format", examples=["MS-001"])


class PeripheralBatchRequest(BaseModel):
    items: conlist(PeripheralCreateRequest, min_length=1, max_length=200)  # type: ignore[valid-type]


class EquipmentUpdateRequest(EquipmentBase, NotebookSpecs):
    """Descriptive fields only; status and custody change through the custody endpoints."""

    type: Optional[constr(min_length=1, max_length=100)] = None  # type: ignore[valid-type]


class ResponsibleData(BaseModel):
    """Person taking custody of an item."""

    responsible_id: Optional[str] = Field(None, description="Free-text reference such as an employee number")
    responsible_name: constr(min_length=1, max_length=255) = Field(..., examples=["Maria Souza"])  # type: ignore[valid-type]
    responsible_cpf: constr(min_length=11, max_length=14) = Field(..., examples=["123.456.789-01"])  # type: ignore[valid-type]
    responsible_email: Optional[str] = None
    responsible_phone: Optional[str] = None
    responsible_position: Optional[str] = None
    responsible_department: Optional[str] = Field(None, examples=["Financeiro"])
    responsible_unit: Optional[str] = Field(None, examples=["Matriz"])


class DeliverRequest(ResponsibleData):
    delivery_reason: Optional[str] = Field(None, examples=["New hire"])
    delivery_notes: Optional[str] = None


class ReturnRequest(BaseModel):
    checklist: Dict[str, bool] = Field(
        ...,
        description="Items checked on return",
        examples=[{"charger": True, "bag": False, "screen_ok": True}],
    )
    destination: ReturnDestination = Field(ReturnDestination.AVAILABLE, description="Where the item goes")
    condition: Optional[str] = Field(None, examples=["good"])
    problems: Optional[str] = None
    unit: Optional[str] = Field(None, description="Stock unit receiving the item")
    reason: Optional[str] = None


class TransferType(str, Enum):
    EMPLOYEE = "employee"
    LOCATION = "location"


class TransferRequest(BaseModel):
    """``employee`` needs ``responsible``; ``location`` needs ``location``."""

    transfer_type: TransferType = Field(..., examples=["employee"])
    responsible: Optional[ResponsibleData] = None
    location: Optional[str] = None
    unit: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None


class EquipmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    internal_code: str
    category: str
    type: str
    brand: Optional[str] = None
    model: Optional[str] = None
    description: Optional[str] = None
    serial_number: str
    processor: Optional[str] = None
    memory_ram: Optional[str] = None
    storage: Optional[str] = None
    screen_size: Optional[str] = None
    operating_system: Optional[str] = None
    physical_condition: str
    current_status: str
    current_location: Optional[str] = None
    current_unit: Optional[str] = None
    current_responsible_id: Optional[str] = None
    current_responsible_name: Optional[str] = None
    status_changed_at: Optional[datetime] = None
    acquisition_date: Optional[date] = None
    purchase_value: Optional[Decimal] = None
    warranty_expiration: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class EquipmentListResponse(BaseModel):
    items: List[EquipmentResponse]
    total: int
    limit: int
    offset: int


class PeripheralListResponse(EquipmentListResponse):
    stats: Dict[str, Any]


class TermResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    equipment_id: int
    responsible_id: Optional[str] = None
    responsible_name: str
    responsible_cpf: str
    responsible_email: Optional[str] = None
    responsible_phone: Optional[str] = None
    responsible_position: Optional[str] = None
    responsible_department: Optional[str] = None
    responsible_unit: Optional[str] = None
    issued_date: datetime
    delivery_reason: Optional[str] = None
    delivery_notes: Optional[str] = None
    issued_by_id: Optional[int] = None
    returned_date: Optional[datetime] = None
    return_condition: Optional[str] = None
    return_checklist: Optional[Dict[str, bool]] = None
    return_problems: Optional[str] = None
    return_destination: Optional[str] = None
    received_by_id: Optional[int] = None
    status: str


class TermWithEquipmentResponse(TermResponse):
    equipment: EquipmentResponse


class MovementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    movement_number: str
    equipment_id: int
    term_id: Optional[int] = None
    movement_type: str
    movement_date: datetime
    from_user_id: Optional[str] = None
    from_user_name: Optional[str] = None
    to_user_id: Optional[str] = None
    to_user_name: Optional[str] = None
    from_location: Optional[str] = None
    to_location: Optional[str] = None
    from_unit: Optional[str] = None
    to_unit: Optional[str] = None
    from_department: Optional[str] = None
    to_department: Optional[str] = None
    reason: Optional[str] = None
    condition_before: Optional[str] = None
    condition_after: Optional[str] = None
    registered_by_id: Optional[int] = None


class MovementWithEquipmentResponse(MovementResponse):
    internal_code: Optional[str] = None


class DepreciationInfo(BaseModel):
    purchase_value: float
    age_years: float
    useful_life_years: int
    current_value: float
    fully_depreciated: bool


class EquipmentDetailResponse(EquipmentResponse):
    terms: List[TermResponse] = Field(default_factory=list)
    movements: List[MovementResponse] = Field(default_factory=list, description="Newest first")
    depreciation: Optional[DepreciationInfo] = None


class CustodyResponse(BaseModel):
    """Result of a delivery, return or transfer."""

    equipment: EquipmentResponse
    term: Optional[TermResponse] = None
    movement: MovementResponse


class PersonEquipmentItem(BaseModel):
    term_id: int
    issued_date: datetime
    equipment: EquipmentResponse


class PersonGroupResponse(BaseModel):
    responsible_name: str
    responsible_cpf: str
    responsible_department: Optional[str] = None
    responsible_unit: Optional[str] = None
    equipment: List[PersonEquipmentItem]


class UnitGroupResponse(BaseModel):
    unit: str
    total: int
    by_status: Dict[str, int]
    equipment: List[EquipmentResponse]


class DashboardResponse(BaseModel):
    total_equipment: int
    by_status: Dict[str, int]
    by_category: Dict[str, int]
    active_terms: int
    movements_last_30_days: int
    in_use_without_term: int
    drift_count: int
    recent_movements: List[MovementWithEquipmentResponse]


class AlertResponse(BaseModel):
    type: str
    severity: str
    equipment_id: int
    internal_code: str
    days: Optional[int] = None
    message: str


class ConsistencyIssue(BaseModel):
    equipment_id: int
    internal_code: str
    issue: str
    term_ids: List[int] = Field(default_factory=list)


class ReconcileResponse(BaseModel):
    dry_run: bool
    issues: List[ConsistencyIssue]
    fixed: int


class PersonSearchResult(BaseModel):
    responsible_name: str
    responsible_cpf: str
    responsible_department: Optional[str] = None
    responsible_unit: Optional[str] = None
    equipment_count: int


class SearchResults(BaseModel):
    equipment: List[EquipmentResponse]
    people: List[PersonSearchResult]
    movements: List[MovementWithEquipmentResponse]


class SearchResponse(BaseModel):
    """Combined inventory search."""

    query: str
    total_results: int
    results: SearchResults


class RequisitionCreateRequest(BaseModel):
    """Purchase request. The requester defaults to the logged-in staff member."""

    requester_name: Optional[constr(max_length=255)] = None  # type: ignore[valid-type]
    requester_department: Optional[str] = Field(None, examples=["Financeiro"])
    requester_unit: Optional[str] = Field(None, examples=["Matriz"])
    item_type: constr(min_length=1, max_length=100) = Field(..., examples=["Notebook"])  # type: ignore[valid-type]
    item_description: constr(min_length=1) = Field(..., examples=["Notebook i5 16GB"])  # type: ignore[valid-type]
    specifications: Optional[str] = None
    quantity: int = Field(1, description="Units requested", examples=[2])
    priority: RequisitionPriority = RequisitionPriority.NORMAL
    reason: Optional[str] = Field(None, examples=["New hires in March"])
    needed_by_date: Optional[date] = None
    estimated_value: Optional[Decimal] = Field(None, examples=["4500.00"])


class RequisitionApproveRequest(BaseModel):
    notes: Optional[str] = None


class RequisitionRejectRequest(BaseModel):
    rejection_reason: constr(min_length=1) = Field(..., examples=["Budget frozen"])  # type: ignore[valid-type]


class RequisitionPurchaseRequest(BaseModel):
    supplier: Optional[constr(max_length=255)] = Field(None, examples=["Dell Brasil"])  # type: ignore[valid-type]
    actual_value: Optional[Decimal] = Field(None, examples=["4300.00"])
    purchase_date: Optional[date] = Field(None, description="Defaults to today")
    expected_delivery_date: Optional[date] = None
    notes: Optional[str] = None


class RequisitionReceiveRequest(BaseModel):
    equipment_ids: List[int] = Field(default_factory=list, description="Registered items that arrived with this purchase")
    received_date: Optional[date] = Field(None, description="Defaults to today")


class RequisitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    request_number: str = Field(..., examples=["PED-2026-001"])
    requested_by_id: Optional[int] = None
    requester_name: str
    requester_department: Optional[str] = None
    requester_unit: Optional[str] = None
    item_type: str
    item_description: str
    specifications: Optional[str] = None
    quantity: int
    priority: str
    reason: Optional[str] = None
    needed_by_date: Optional[date] = None
    estimated_value: Optional[Decimal] = None
    status: str
    approved_by_id: Optional[int] = None
    approved_by_name: Optional[str] = None
    approval_date: Optional[date] = None
    rejection_reason: Optional[str] = None
    actual_value: Optional[Decimal] = None
    supplier: Optional[str] = None
    purchase_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    actual_delivery_date: Optional[date] = None
    received_by_id: Optional[int] = None
    received_by_name: Optional[str] = None
    received_date: Optional[date] = None
    notes: Optional[str] = None
    equipment: List[EquipmentResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class RequisitionListResponse(BaseModel):
    requisitions: List[RequisitionResponse]
    total: int
    by_status: Dict[str, int]
