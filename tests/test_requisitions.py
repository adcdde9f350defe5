"""
Tests for purchase requisitions: numbering, the approval workflow and receipt.
"""

import pytest
from httpx import AsyncClient
from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import build_context
from app.core.equipment_rules import RequisitionStatus, can_transition_requisition, format_request_number
from app.core.exceptions import InventoryError, ValidationError
from app.core.timeutils import utc_today
from app.services.requisition import RequisitionService

BASE = "/api/inventory/requisitions"
ITEM = {"item_type": "Notebook", "item_description": "Notebook i5 16GB", "quantity": 2, "requester_unit": "Matriz"}


async def _requisition(client: AsyncClient, headers: dict, **fields) -> dict:
    response = await client.post(BASE, headers=headers, json={**ITEM, **fields})
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


@pytest.mark.unit
class TestRequisitionRules:

    @pytest.mark.parametrize("current,target", [
        ("pending", "approved"),
        ("pending", "rejected"),
        ("approved", "purchased"),
        ("purchased", "received"),
    ])
    def test_allowed_transitions(self, current, target):
        assert can_transition_requisition(current, target)

    @pytest.mark.parametrize("current,target", [
        ("pending", "purchased"),
        ("pending", "received"),
        ("approved", "rejected"),
        ("approved", "received"),
        ("rejected", "approved"),
        ("received", "purchased"),
        ("purchased", "purchased"),
    ])
    def test_blocked_transitions(self, current, target):
        assert not can_transition_requisition(current, target)

    def test_request_number_format(self):
        assert format_request_number(2026, 7) == "PED-2026-007"
        assert format_request_number(2026, 1234) == "PED-2026-1234"


@pytest.mark.unit
class TestRequisitionService:
    """Unit tests for RequisitionService."""

    async def test_numbers_are_sequential(self, db_session: AsyncSession, staff_user: dict):
        svc = RequisitionService()
        ctx = build_context(staff_user["user"])
        first = await svc.create(db_session, ctx, dict(ITEM))
        second = await svc.create(db_session, ctx, dict(ITEM, requester_name="Ana Lima"))

        year = utc_today().year
        assert (first.request_number, second.request_number) == (f"PED-{year}-001", f"PED-{year}-002")
        assert first.status == RequisitionStatus.PENDING.value
        assert first.priority == "normal"
        assert first.requester_name == "Técnico"
        assert second.requester_name == "Ana Lima"

    @pytest.mark.parametrize("quantity", [0, -1, True, "3"])
    async def test_quantity_must_be_positive_integer(self, db_session: AsyncSession, staff_user: dict, quantity):
        with pytest.raises(ValidationError):
            await RequisitionService().create(db_session, build_context(staff_user["user"]), dict(ITEM, quantity=quantity))

    async def test_reject_needs_reason(self, db_session: AsyncSession, manager_user: dict):
        svc = RequisitionService()
        ctx = build_context(manager_user["user"])
        requisition = await svc.create(db_session, ctx, dict(ITEM))

        with pytest.raises(ValidationError):
            await svc.reject(db_session, ctx, requisition.id, "   ")

    async def test_purchase_requires_approval(self, db_session: AsyncSession, staff_user: dict):
        svc = RequisitionService()
        requisition = await svc.create(db_session, build_context(staff_user["user"]), dict(ITEM))

        with pytest.raises(InventoryError):
            await svc.register_purchase(db_session, requisition.id, {"supplier": "Dell Brasil"})


@pytest.mark.integration
class TestRequisitionAPI:
    """Integration tests for /api/inventory/requisitions."""

    async def test_full_workflow(self, client: AsyncClient, staff_user: dict, manager_user: dict):
        created = await _requisition(client, staff_user["headers"], priority="high", estimated_value="9000.00")
        assert created["status"] == "pending"
        assert created["request_number"] == f"PED-{utc_today().year}-001"
        assert created["requested_by_id"] == staff_user["user"].id
        assert created["quantity"] == 2
        assert created["equipment"] == []

        response = await client.patch(f"{BASE}/{created['id']}/approve", headers=manager_user["headers"], json={"notes": "Ok"})
        assert response.status_code == status.HTTP_200_OK
        approved = response.json()
        assert approved["status"] == "approved"
        assert approved["approved_by_name"] == "Gestor"
        assert approved["approval_date"] == utc_today().isoformat()

        response = await client.patch(
            f"{BASE}/{created['id']}/purchase",
            headers=staff_user["headers"],
            json={"supplier": "Dell Brasil", "actual_value": "8600.00", "expected_delivery_date": "2030-01-15"},
        )
        assert response.status_code == status.HTTP_200_OK
        purchased = response.json()
        assert purchased["status"] == "purchased"
        assert purchased["supplier"] == "Dell Brasil"
        assert purchased["purchase_date"] == utc_today().isoformat()

        notebooks = []
        for _ in range(2):
            response = await client.post("/api/inventory/notebooks", headers=staff_user["headers"], json={"brand": "Dell"})
            notebooks.append(response.json()["id"])

        response = await client.patch(
            f"{BASE}/{created['id']}/receive",
            headers=staff_user["headers"],
            json={"equipment_ids": notebooks + [notebooks[0]], "received_date": "2030-01-20"},
        )
        assert response.status_code == status.HTTP_200_OK
        received = response.json()
        assert received["status"] == "received"
        assert received["received_by_name"] == "Técnico"
        assert received["received_date"] == received["actual_delivery_date"] == "2030-01-20"
        assert [e["internal_code"] for e in received["equipment"]] == ["NB-001", "NB-002"]

        response = await client.get(BASE, headers=manager_user["headers"], params={"status": "received"})
        data = response.json()
        assert data["total"] == 1
        assert data["by_status"] == {"received": 1}
        assert len(data["requisitions"][0]["equipment"]) == 2

    async def test_rejection_is_final(self, client: AsyncClient, staff_user: dict, admin_user: dict):
        created = await _requisition(client, staff_user["headers"])

        response = await client.patch(f"{BASE}/{created['id']}/reject", headers=admin_user["headers"], json={})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        response = await client.patch(
            f"{BASE}/{created['id']}/reject", headers=admin_user["headers"], json={"rejection_reason": "Budget frozen"}
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "rejected"
        assert response.json()["rejection_reason"] == "Budget frozen"

        response = await client.patch(f"{BASE}/{created['id']}/approve", headers=admin_user["headers"])
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["details"]["current_status"] == "rejected"

    async def test_out_of_order_steps(self, client: AsyncClient, staff_user: dict, admin_user: dict):
        created = await _requisition(client, staff_user["headers"])

        response = await client.patch(f"{BASE}/{created['id']}/purchase", headers=staff_user["headers"], json={})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["details"]["current_status"] == "pending"

        response = await client.patch(f"{BASE}/{created['id']}/receive", headers=staff_user["headers"], json={})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        await client.patch(f"{BASE}/{created['id']}/approve", headers=admin_user["headers"])
        response = await client.patch(f"{BASE}/{created['id']}/approve", headers=admin_user["headers"])
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["details"]["current_status"] == "approved"

    async def test_receive_unknown_equipment(self, client: AsyncClient, staff_user: dict, admin_user: dict):
        created = await _requisition(client, staff_user["headers"])
        await client.patch(f"{BASE}/{created['id']}/approve", headers=admin_user["headers"])
        await client.patch(f"{BASE}/{created['id']}/purchase", headers=staff_user["headers"], json={"supplier": "Kabum"})

        response = await client.patch(
            f"{BASE}/{created['id']}/receive", headers=staff_user["headers"], json={"equipment_ids": [9999]}
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["details"]["equipment_ids"] == [9999]

        response = await client.get(BASE, headers=staff_user["headers"], params={"status": "purchased"})
        assert response.json()["total"] == 1

    async def test_invalid_payloads(self, client: AsyncClient, staff_user: dict):
        response = await client.post(BASE, headers=staff_user["headers"], json={**ITEM, "quantity": 0})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["details"]["field"] == "quantity"

        response = await client.post(BASE, headers=staff_user["headers"], json={**ITEM, "priority": "whenever"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        response = await client.post(BASE, headers=staff_user["headers"], json={"item_type": "Mouse"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["details"][0]["field"] == "item_description"

    async def test_not_found(self, client: AsyncClient, admin_user: dict):
        response = await client.patch(f"{BASE}/9999/approve", headers=admin_user["headers"])
        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.security
class TestRequisitionPermissions:
    """IT staff request and receive purchases; admins and managers decide on them."""

    async def test_it_staff_cannot_approve(self, client: AsyncClient, staff_user: dict):
        created = await _requisition(client, staff_user["headers"])

        response = await client.patch(f"{BASE}/{created['id']}/approve", headers=staff_user["headers"])
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = await client.patch(
            f"{BASE}/{created['id']}/reject", headers=staff_user["headers"], json={"rejection_reason": "No"}
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    async def test_manager_reads_but_cannot_request(self, client: AsyncClient, manager_user: dict):
        response = await client.post(BASE, headers=manager_user["headers"], json=ITEM)
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = await client.get(BASE, headers=manager_user["headers"])
        assert response.status_code == status.HTTP_200_OK

    async def test_public_token_rejected(self, client: AsyncClient, public_user: dict):
        response = await client.get(BASE, headers=public_user["headers"])
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
