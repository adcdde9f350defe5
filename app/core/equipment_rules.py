"""
Equipment vocabularies and pure inventory rules: internal code format and
generation, return destinations, linear depreciation and the purchase
requisition workflow.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

EQUIPMENT_CODE_RE = re.compile(r"^[A-Z]{2}-\d{3,}$")


class EquipmentCategory(str, Enum):
    NOTEBOOK = "NOTEBOOK"
    PERIPHERAL = "PERIPHERAL"


class EquipmentStatus(str, Enum):
    IN_STOCK = "in_stock"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"


class TermStatus(str, Enum):
    ACTIVE = "active"
    RETURNED = "returned"
    CANCELLED = "cancelled"


class MovementType(str, Enum):
    DELIVERY = "delivery"
    RETURN = "return"
    TRANSFER = "transfer"
    RELOCATION = "relocation"


class ReturnDestination(str, Enum):
    """Where a returned item goes; see RETURN_DESTINATION_STATUS."""
    AVAILABLE = "available"
    STORAGE = "storage"
    MAINTENANCE = "maintenance"
    DISPOSAL = "disposal"


RETURN_DESTINATION_STATUS = {
    ReturnDestination.AVAILABLE: EquipmentStatus.IN_STOCK,
    ReturnDestination.STORAGE: EquipmentStatus.IN_STOCK,
    ReturnDestination.MAINTENANCE: EquipmentStatus.MAINTENANCE,
    ReturnDestination.DISPOSAL: EquipmentStatus.RETIRED,
}


class RequisitionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PURCHASED = "purchased"
    RECEIVED = "received"


class RequisitionPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


# Rejected and received are final
REQUISITION_TRANSITIONS = {
    RequisitionStatus.PENDING: (RequisitionStatus.APPROVED, RequisitionStatus.REJECTED),
    RequisitionStatus.APPROVED: (RequisitionStatus.PURCHASED,),
    RequisitionStatus.PURCHASED: (RequisitionStatus.RECEIVED,),
}
REQUISITION_NUMBER_PREFIX = "PED"

# Checked in order; first keyword found in the peripheral type wins
PERIPHERAL_PREFIXES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("mouse",), "MS"),
    (("teclado", "keyboard"), "KB"),
    (("monitor",), "MN"),
    (("carregador", "charger"), "CH"),
    (("webcam",), "WC"),
    (("fone", "headset"), "HS"),
)
NOTEBOOK_PREFIX = "NB"
PERIPHERAL_DEFAULT_PREFIX = "PR"
GENERIC_PREFIX = "EQ"


def is_valid_equipment_code(code: Optional[str]) -> bool:
    return bool(code) and EQUIPMENT_CODE_RE.match(code) is not None


def code_prefix_for(category: EquipmentCategory | str, equipment_type: Optional[str] = None) -> str:
    """Two-letter prefix used when generating an internal code."""

    category_value = category.value if isinstance(category, EquipmentCategory) else str(category).upper()
    if category_value == EquipmentCategory.NOTEBOOK.value:
        return NOTEBOOK_PREFIX
    if category_value == EquipmentCategory.PERIPHERAL.value:
        normalized = (equipment_type or "").strip().lower()
        for keywords, prefix in PERIPHERAL_PREFIXES:
            if any(keyword in normalized for keyword in keywords):
                return prefix
        return PERIPHERAL_DEFAULT_PREFIX
    return GENERIC_PREFIX


def format_equipment_code(prefix: str, number: int) -> str:
    return f"{prefix}-{number:03d}"


def parse_code_number(code: str, prefix: str) -> Optional[int]:
    """Numeric part of ``code`` when it is a well-formed code for ``prefix``."""

    if not is_valid_equipment_code(code) or not code.startswith(f"{prefix}-"):
        return None
    return int(code.split("-", 1)[1])


def next_equipment_code(prefix: str, existing_codes: Iterable[str]) -> str:
    """Next free code for ``prefix`` given the codes already in use."""

    highest = 0
    for code in existing_codes:
        number = parse_code_number(code, prefix)
        if number is not None and number > highest:
            highest = number
    return format_equipment_code(prefix, highest + 1)


def calculate_depreciation(
    purchase_value: float | Decimal,
    age_in_years: float,
    useful_life_years: int = 5,
) -> float:
    """Linear book value after ``age_in_years``, never below zero."""

    if useful_life_years <= 0:
        raise ValueError("useful_life_years must be positive")
    value = float(purchase_value)
    annual = value / useful_life_years
    depreciated = annual * min(max(age_in_years, 0.0), useful_life_years)
    return round(max(0.0, value - depreciated), 2)


def age_in_years(acquired: date, on: date) -> float:
    return max((on - acquired).days, 0) / 365.25


def can_transition_requisition(current: RequisitionStatus | str, target: RequisitionStatus | str) -> bool:
    return RequisitionStatus(target) in REQUISITION_TRANSITIONS.get(RequisitionStatus(current), ())


def format_request_number(year: int, sequence: int) -> str:
    return f"{REQUISITION_NUMBER_PREFIX}-{year}-{sequence:03d}"
