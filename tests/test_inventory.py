"""
Tests for the equipment inventory: registry, custody flows, views and drift checks.
"""

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from fastapi import status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.equipment_rules import ReturnDestination
from app.core.exceptions import ConflictError, InventoryError, ValidationError
from app.core.timeutils import utc_now
from app.db.models import ResponsibilityTerm
from app.services.inventory import InventoryService

CHECKLIST = {"charger": True, "bag": True, "screen_ok": True}


async def _notebook(client: AsyncClient, headers: dict, **fields) -> dict:
    response = await client.post("/api/inventory/notebooks", headers=headers, json={"brand": "Dell", **fields})
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


async def _deliver(client: AsyncClient, headers: dict, equipment_id: int, responsible: dict) -> dict:
    response = await client.post(f"/api/inventory/equipment/{equipment_id}/deliver", headers=headers, json=responsible)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


@pytest.mark.unit
class TestInventoryService:
    """Unit tests for InventoryService."""

    async def test_codes_are_sequential_per_prefix(self, db_session: AsyncSession):
        svc = InventoryService()
        first = await svc.create_notebook(db_session, {"brand": "Dell"})
        second = await svc.create_notebook(db_session, {"brand": "Lenovo"})
        mouse = await svc.create_peripheral(db_session, {"type": "Mouse"})

        assert (first.internal_code, second.internal_code, mouse.internal_code) == ("NB-001", "NB-002", "MS-001")
        assert first.serial_number == "S/N"
        assert first.current_status == "in_stock"
        assert first.status_changed_at is not None

    async def test_given_code_is_normalized(self, db_session: AsyncSession):
        equipment = await InventoryService().create_notebook(db_session, {"internal_code": "nb-042"})
        assert equipment.internal_code == "NB-042"

        # generation continues after the highest existing number
        following = await InventoryService().create_notebook(db_session, {})
        assert following.internal_code == "NB-043"

    async def test_duplicate_code(self, db_session: AsyncSession, test_factory):
        await test_factory.create_equipment(db_session, internal_code="NB-001")
        with pytest.raises(ConflictError):
            await InventoryService().create_notebook(db_session, {"internal_code": "NB-001"})

    async def test_peripheral_requires_type(self, db_session: AsyncSession):
        with pytest.raises(ValidationError):
            await InventoryService().create_peripheral(db_session, {"brand": "Logitech"})

    async def test_deliver_requires_valid_cpf(self, db_session: AsyncSession, test_factory):
        equipment = await test_factory.create_equipment(db_session)
        with pytest.raises(ValidationError):
            await InventoryService().deliver(
                db_session, equipment.id, {"responsible_name": "Ana", "responsible_cpf": "111.111.111-11"}, None
            )

    async def test_deliver_only_from_stock(self, db_session: AsyncSession, test_factory, responsible_data):
        equipment = await test_factory.create_equipment(db_session, status="maintenance")
        with pytest.raises(InventoryError):
            await InventoryService().deliver(db_session, equipment.id, responsible_data, None)

    async def test_return_requires_checklist(self, db_session: AsyncSession, test_factory):
        equipment = await test_factory.create_equipment(db_session, status="in_use")
        with pytest.raises(ValidationError):
            await InventoryService().return_equipment(db_session, equipment.id, {}, ReturnDestination.AVAILABLE, None)

    async def test_depreciation(self, db_session: AsyncSession, test_factory):
        svc = InventoryService()
        old = await test_factory.create_equipment(
            db_session, internal_code="NB-001", purchase_value=Decimal("5000.00"), acquisition_date=date(2018, 1, 1)
        )
        missing = await test_factory.create_equipment(db_session, internal_code="NB-002")

        info = svc.depreciation_for(old, on=date(2026, 1, 1))
        assert info["current_value"] == 0.0
        assert info["fully_depreciated"] is True
        assert info["useful_life_years"] == 5
        assert svc.depreciation_for(missing) is None

        recent = await test_factory.create_equipment(
            db_session, internal_code="NB-003", purchase_value=Decimal("5000.00"), acquisition_date=date(2025, 1, 1)
        )
        info = svc.depreciation_for(recent, on=date(2025, 1, 1))
        assert info["current_value"] == 5000.0
        assert info["fully_depreciated"] is False

    async def test_one_active_term_per_equipment(self, db_session: AsyncSession, test_factory):
        equipment = await test_factory.create_equipment(db_session, status="in_use")
        await test_factory.create_term(db_session, equipment.id)
        # closed terms do not count against the index
        await test_factory.create_term(db_session, equipment.id, name="Ex Responsável", status="returned")

        db_session.add(
            ResponsibilityTerm(
                equipment_id=equipment.id,
                responsible_id="98765432100",
                responsible_name="João Lima",
                responsible_cpf="98765432100",
                status="active",
            )
        )
        with pytest.raises(IntegrityError):
            await db_session.flush()
        await db_session.rollback()

    async def test_concurrent_delivery_maps_to_conflict(
        self, db_session: AsyncSession, test_factory, responsible_data, monkeypatch
    ):
        equipment = await test_factory.create_equipment(db_session)
        await test_factory.create_term(db_session, equipment.id, name="Outra Pessoa")
        svc = InventoryService()
        # the pre-check misses the term, as it does when another request commits first
        monkeypatch.setattr(svc.term_repo, "get_active_for_equipment", AsyncMock(return_value=None))

        with pytest.raises(ConflictError):
            await svc.deliver(db_session, equipment.id, responsible_data, None)
        await db_session.rollback()


@pytest.mark.integration
class TestEquipmentRegistryAPI:
    """Registry endpoints."""

    async def test_create_notebook(self, client: AsyncClient, staff_user: dict):
        data = await _notebook(
            client, staff_user["headers"], model="Latitude 5420", processor="i5", memory_ram="16GB",
            purchase_value="4500.00", current_unit="Matriz",
        )

        assert data["internal_code"] == "NB-001"
        assert data["category"] == "NOTEBOOK"
        assert data["type"] == "Notebook"
        assert data["current_status"] == "in_stock"
        assert data["serial_number"] == "S/N"
        assert Decimal(data["purchase_value"]) == Decimal("4500.00")

    async def test_duplicate_and_invalid_codes(self, client: AsyncClient, staff_user: dict):
        await _notebook(client, staff_user["headers"], internal_code="NB-001")

        response = await client.post(
            "/api/inventory/notebooks", headers=staff_user["headers"], json={"internal_code": "NB-001"}
        )
        assert response.status_code == status.HTTP_409_CONFLICT

        response = await client.post(
            "/api/inventory/notebooks", headers=staff_user["headers"], json={"internal_code": "NOTE-1"}
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["details"]["internal_code"] == "NOTE-1"

    async def test_peripheral_prefixes(self, client: AsyncClient, staff_user: dict):
        codes = []
        for type_ in ("Mouse", "Teclado ABNT2", "Monitor 24", "Cabo HDMI"):
            response = await client.post("/api/inventory/peripherals", headers=staff_user["headers"], json={"type": type_})
            assert response.status_code == status.HTTP_201_CREATED
            codes.append(response.json()["internal_code"])
        assert codes == ["MS-001", "KB-001", "MN-001", "PR-001"]

        response = await client.get("/api/inventory/peripherals", headers=staff_user["headers"])
        data = response.json()
        assert data["total"] == 4
        assert data["stats"]["total"] == 4
        assert data["stats"]["by_type"]["Mouse"] == 1
        assert data["stats"]["by_status"] == {"in_stock": 4}

    async def test_peripheral_batch(self, client: AsyncClient, staff_user: dict):
        response = await client.post(
            "/api/inventory/peripherals/batch",
            headers=staff_user["headers"],
            json={"items": [{"type": "Mouse"}, {"type": "Mouse"}, {"type": "Headset"}]},
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert [e["internal_code"] for e in response.json()] == ["MS-001", "MS-002", "HS-001"]

    async def test_peripheral_batch_is_all_or_nothing(self, client: AsyncClient, staff_user: dict):
        response = await client.post(
            "/api/inventory/peripherals/batch",
            headers=staff_user["headers"],
            json={"items": [{"type": "Mouse"}, {"type": "Mouse", "internal_code": "BAD"}]},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["details"]["index"] == 1

        response = await client.get("/api/inventory/peripherals", headers=staff_user["headers"])
        assert response.json()["total"] == 0

    async def test_empty_batch_rejected(self, client: AsyncClient, staff_user: dict):
        response = await client.post("/api/inventory/peripherals/batch", headers=staff_user["headers"], json={"items": []})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    async def test_list_and_filter(self, client: AsyncClient, db_session: AsyncSession, staff_user: dict, test_factory):
        await test_factory.create_equipment(db_session, internal_code="NB-001", brand="Dell", current_unit="Matriz")
        await test_factory.create_equipment(db_session, internal_code="NB-002", brand="Lenovo", status="maintenance")
        await test_factory.create_equipment(db_session, internal_code="MS-001", category="PERIPHERAL", type="Mouse")
        await db_session.commit()

        response = await client.get("/api/inventory/equipment", headers=staff_user["headers"])
        assert response.json()["total"] == 3

        response = await client.get("/api/inventory/notebooks", headers=staff_user["headers"])
        assert [e["internal_code"] for e in response.json()["items"]] == ["NB-001", "NB-002"]

        response = await client.get(
            "/api/inventory/equipment", headers=staff_user["headers"], params={"status": "maintenance"}
        )
        assert [e["internal_code"] for e in response.json()["items"]] == ["NB-002"]

        response = await client.get("/api/inventory/equipment", headers=staff_user["headers"], params={"search": "dell"})
        assert [e["internal_code"] for e in response.json()["items"]] == ["NB-001"]

        response = await client.get("/api/inventory/equipment", headers=staff_user["headers"], params={"unit": "Matriz"})
        assert response.json()["total"] == 1

    async def test_update_equipment(self, client: AsyncClient, staff_user: dict):
        created = await _notebook(client, staff_user["headers"])

        response = await client.put(
            f"/api/inventory/equipment/{created['id']}",
            headers=staff_user["headers"],
            json={"memory_ram": "32GB", "notes": "Upgrade"},
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["memory_ram"] == "32GB"
        assert response.json()["current_status"] == "in_stock"

        response = await client.put(f"/api/inventory/equipment/{created['id']}", headers=staff_user["headers"], json={})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    async def test_detail_with_depreciation(self, client: AsyncClient, staff_user: dict):
        acquired = (utc_now() - timedelta(days=365 * 6)).date().isoformat()
        created = await _notebook(client, staff_user["headers"], purchase_value="5000.00", acquisition_date=acquired)

        response = await client.get(f"/api/inventory/equipment/{created['id']}", headers=staff_user["headers"])
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["terms"] == []
        assert data["movements"] == []
        assert data["depreciation"]["current_value"] == 0.0
        assert data["depreciation"]["fully_depreciated"] is True

    async def test_detail_not_found(self, client: AsyncClient, staff_user: dict):
        response = await client.get("/api/inventory/equipment/9999", headers=staff_user["headers"])
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "Equipment not found"

    async def test_delete_rules(self, client: AsyncClient, admin_user: dict, staff_user: dict, responsible_data: dict):
        spare = await _notebook(client, admin_user["headers"])
        used = await _notebook(client, admin_user["headers"])
        await _deliver(client, admin_user["headers"], used["id"], responsible_data)

        response = await client.delete(f"/api/inventory/equipment/{spare['id']}", headers=staff_user["headers"])
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = await client.delete(f"/api/inventory/equipment/{used['id']}", headers=admin_user["headers"])
        assert response.status_code == status.HTTP_409_CONFLICT

        response = await client.delete(f"/api/inventory/equipment/{spare['id']}", headers=admin_user["headers"])
        assert response.status_code == status.HTTP_204_NO_CONTENT

        response = await client.get(f"/api/inventory/equipment/{spare['id']}", headers=admin_user["headers"])
        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.integration
class TestCustodyAPI:
    """Delivery, return and transfer flows."""

    async def test_deliver(self, client: AsyncClient, staff_user: dict, responsible_data: dict):
        created = await _notebook(client, staff_user["headers"])

        data = await _deliver(client, staff_user["headers"], created["id"], {**responsible_data, "delivery_reason": "Admissão"})

        equipment, term, movement = data["equipment"], data["term"], data["movement"]
        assert equipment["current_status"] == "in_use"
        assert equipment["current_location"] == "Financeiro - Matriz"
        assert equipment["current_unit"] == "Matriz"
        assert equipment["current_responsible_id"] == "12345678901"
        assert equipment["current_responsible_name"] == "Maria Souza"
        assert term["status"] == "active"
        assert term["responsible_cpf"] == "12345678901"
        assert term["issued_by_id"] == staff_user["user"].id
        assert movement["movement_type"] == "delivery"
        assert movement["movement_number"] == f"MOV-{utc_now().year}-000001"
        assert movement["to_user_name"] == "Maria Souza"
        assert movement["reason"] == "Admissão"

    async def test_second_delivery_rejected(self, client: AsyncClient, staff_user: dict, responsible_data: dict):
        created = await _notebook(client, staff_user["headers"])
        await _deliver(client, staff_user["headers"], created["id"], responsible_data)

        response = await client.post(
            f"/api/inventory/equipment/{created['id']}/deliver", headers=staff_user["headers"], json=responsible_data
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["details"]["current_status"] == "in_use"

    async def test_deliver_missing_equipment(self, client: AsyncClient, staff_user: dict, responsible_data: dict):
        response = await client.post("/api/inventory/equipment/9999/deliver", headers=staff_user["headers"], json=responsible_data)
        assert response.status_code == status.HTTP_404_NOT_FOUND

    async def test_return_to_stock(self, client: AsyncClient, staff_user: dict, responsible_data: dict):
        created = await _notebook(client, staff_user["headers"])
        await _deliver(client, staff_user["headers"], created["id"], responsible_data)

        response = await client.post(
            f"/api/inventory/equipment/{created['id']}/return",
            headers=staff_user["headers"],
            json={"checklist": CHECKLIST, "condition": "fair"},
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["equipment"]["current_status"] == "in_stock"
        assert data["equipment"]["current_location"] == "Estoque TI - Matriz"
        assert data["equipment"]["current_responsible_id"] is None
        assert data["equipment"]["physical_condition"] == "fair"
        assert data["term"]["status"] == "returned"
        assert data["term"]["return_checklist"] == CHECKLIST
        assert data["term"]["return_destination"] == "available"
        assert data["movement"]["movement_type"] == "return"
        assert data["movement"]["condition_before"] == "good"
        assert data["movement"]["condition_after"] == "fair"

        # back in stock, it can be delivered again
        await _deliver(client, staff_user["headers"], created["id"], responsible_data)

    @pytest.mark.parametrize(
        "destination,expected",
        [("maintenance", "maintenance"), ("disposal", "retired"), ("storage", "in_stock")],
    )
    async def test_return_destinations(
        self, client: AsyncClient, staff_user: dict, responsible_data: dict, destination, expected
    ):
        created = await _notebook(client, staff_user["headers"])
        await _deliver(client, staff_user["headers"], created["id"], responsible_data)

        response = await client.post(
            f"/api/inventory/equipment/{created['id']}/return",
            headers=staff_user["headers"],
            json={"checklist": CHECKLIST, "destination": destination, "unit": "Filial"},
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["equipment"]["current_status"] == expected
        assert response.json()["equipment"]["current_location"] == "Estoque TI - Filial"

    async def test_return_rules(self, client: AsyncClient, staff_user: dict, responsible_data: dict):
        created = await _notebook(client, staff_user["headers"])

        response = await client.post(
            f"/api/inventory/equipment/{created['id']}/return", headers=staff_user["headers"], json={"checklist": CHECKLIST}
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        await _deliver(client, staff_user["headers"], created["id"], responsible_data)
        response = await client.post(
            f"/api/inventory/equipment/{created['id']}/return", headers=staff_user["headers"], json={"checklist": {}}
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    async def test_transfer_to_employee(self, client: AsyncClient, staff_user: dict, responsible_data: dict):
        created = await _notebook(client, staff_user["headers"])
        first = await _deliver(client, staff_user["headers"], created["id"], responsible_data)

        response = await client.post(
            f"/api/inventory/equipment/{created['id']}/transfer",
            headers=staff_user["headers"],
            json={
                "transfer_type": "employee",
                "responsible": {
                    "responsible_name": "João Lima",
                    "responsible_cpf": "98765432100",
                    "responsible_department": "Compras",
                    "responsible_unit": "Filial",
                },
                "reason": "Mudança de setor",
            },
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["equipment"]["current_responsible_name"] == "João Lima"
        assert data["equipment"]["current_location"] == "Compras - Filial"
        assert data["term"]["status"] == "active"
        assert data["term"]["id"] != first["term"]["id"]
        assert data["movement"]["movement_type"] == "transfer"
        assert data["movement"]["from_user_name"] == "Maria Souza"
        assert data["movement"]["to_user_name"] == "João Lima"

        response = await client.get(f"/api/inventory/equipment/{created['id']}", headers=staff_user["headers"])
        detail = response.json()
        assert [t["status"] for t in detail["terms"]] == ["returned", "active"]
        assert detail["terms"][0]["return_destination"] == "transfer"
        assert [m["movement_type"] for m in detail["movements"]] == ["transfer", "delivery"]

    async def test_transfer_to_same_person(self, client: AsyncClient, staff_user: dict, responsible_data: dict):
        created = await _notebook(client, staff_user["headers"])
        await _deliver(client, staff_user["headers"], created["id"], responsible_data)

        response = await client.post(
            f"/api/inventory/equipment/{created['id']}/transfer",
            headers=staff_user["headers"],
            json={"transfer_type": "employee", "responsible": responsible_data},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    async def test_transfer_to_location(self, client: AsyncClient, staff_user: dict, responsible_data: dict):
        created = await _notebook(client, staff_user["headers"])
        await _deliver(client, staff_user["headers"], created["id"], responsible_data)

        response = await client.post(
            f"/api/inventory/equipment/{created['id']}/transfer",
            headers=staff_user["headers"],
            json={"transfer_type": "location", "location": "Sala 12", "unit": "Filial"},
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["term"] is None
        assert data["equipment"]["current_status"] == "in_use"
        assert data["equipment"]["current_location"] == "Sala 12"
        assert data["equipment"]["current_unit"] == "Filial"
        assert data["equipment"]["current_responsible_name"] == "Maria Souza"
        assert data["movement"]["movement_type"] == "relocation"

    async def test_transfer_validation(self, client: AsyncClient, staff_user: dict, responsible_data: dict):
        created = await _notebook(client, staff_user["headers"])
        url = f"/api/inventory/equipment/{created['id']}/transfer"

        response = await client.post(url, headers=staff_user["headers"], json={"transfer_type": "teleport"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        response = await client.post(url, headers=staff_user["headers"], json={"transfer_type": "employee"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        response = await client.post(url, headers=staff_user["headers"], json={"transfer_type": "location"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        # in stock: not transferable to an employee
        response = await client.post(
            url, headers=staff_user["headers"], json={"transfer_type": "employee", "responsible": responsible_data}
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.integration
class TestInventoryViewsAPI:
    """Dashboard, grouping and alert endpoints."""

    async def test_dashboard_and_groupings(self, client: AsyncClient, staff_user: dict, responsible_data: dict):
        first = await _notebook(client, staff_user["headers"])
        second = await _notebook(client, staff_user["headers"])
        await _notebook(client, staff_user["headers"], current_unit="Filial")
        await _deliver(client, staff_user["headers"], first["id"], responsible_data)
        await _deliver(client, staff_user["headers"], second["id"], responsible_data)

        response = await client.get("/api/inventory/dashboard", headers=staff_user["headers"])
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total_equipment"] == 3
        assert data["by_status"] == {"in_use": 2, "in_stock": 1}
        assert data["by_category"] == {"NOTEBOOK": 3}
        assert data["active_terms"] == 2
        assert data["movements_last_30_days"] == 2
        assert data["drift_count"] == 0
        assert data["recent_movements"][0]["internal_code"] == "NB-002"

        response = await client.get("/api/inventory/by-person", headers=staff_user["headers"])
        groups = response.json()
        assert len(groups) == 1
        assert groups[0]["responsible_cpf"] == "12345678901"
        assert [item["equipment"]["internal_code"] for item in groups[0]["equipment"]] == ["NB-001", "NB-002"]

        response = await client.get("/api/inventory/by-unit", headers=staff_user["headers"])
        units = {g["unit"]: g for g in response.json()}
        assert units["Matriz"]["total"] == 2
        assert units["Matriz"]["by_status"] == {"in_use": 2}
        assert units["Filial"]["by_status"] == {"in_stock": 1}

        response = await client.get("/api/inventory/responsibilities", headers=staff_user["headers"])
        terms = response.json()
        assert len(terms) == 2
        assert {t["equipment"]["internal_code"] for t in terms} == {"NB-001", "NB-002"}

        response = await client.get(f"/api/inventory/terms/{terms[0]['id']}", headers=staff_user["headers"])
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["responsible_name"] == "Maria Souza"

        response = await client.get("/api/inventory/movements/recent", headers=staff_user["headers"], params={"limit": 1})
        assert len(response.json()) == 1

    async def test_unassigned_equipment_grouped_without_unit(
        self, client: AsyncClient, db_session: AsyncSession, staff_user: dict, test_factory
    ):
        await test_factory.create_equipment(db_session)
        await db_session.commit()

        response = await client.get("/api/inventory/by-unit", headers=staff_user["headers"])
        assert [g["unit"] for g in response.json()] == ["Sem unidade"]

    async def test_term_not_found(self, client: AsyncClient, staff_user: dict):
        response = await client.get("/api/inventory/terms/9999", headers=staff_user["headers"])
        assert response.status_code == status.HTTP_404_NOT_FOUND

    async def test_search_minimum_length(self, client: AsyncClient, staff_user: dict):
        for q in ("a", " a ", ""):
            response = await client.get("/api/inventory/search", headers=staff_user["headers"], params={"q": q})
            assert response.status_code == status.HTTP_400_BAD_REQUEST
            assert "error" in response.json()

        response = await client.get("/api/inventory/search", headers=staff_user["headers"])
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        response = await client.get("/api/inventory/search", headers=staff_user["headers"], params={"q": "ab"})
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "query": "ab",
            "total_results": 0,
            "results": {"equipment": [], "people": [], "movements": []},
        }

    async def test_search(self, client: AsyncClient, staff_user: dict, responsible_data: dict):
        notebook = await _notebook(client, staff_user["headers"], model="Latitude 5420")
        await _notebook(client, staff_user["headers"], brand="Lenovo")
        await _deliver(client, staff_user["headers"], notebook["id"], responsible_data)

        response = await client.get("/api/inventory/search", headers=staff_user["headers"], params={"q": " latitude "})
        data = response.json()
        assert data["query"] == "latitude"
        assert [e["internal_code"] for e in data["results"]["equipment"]] == ["NB-001"]
        assert data["total_results"] == 1

        response = await client.get("/api/inventory/search", headers=staff_user["headers"], params={"q": "nb-00"})
        results = response.json()["results"]
        assert [e["internal_code"] for e in results["equipment"]] == ["NB-001", "NB-002"]
        assert [m["internal_code"] for m in results["movements"]] == ["NB-001"]

        response = await client.get("/api/inventory/search", headers=staff_user["headers"], params={"q": "Maria"})
        results = response.json()["results"]
        assert results["equipment"] == []
        assert results["people"] == [
            {
                "responsible_name": "Maria Souza",
                "responsible_cpf": "12345678901",
                "responsible_department": "Financeiro",
                "responsible_unit": "Matriz",
                "equipment_count": 1,
            }
        ]
        assert results["movements"][0]["movement_type"] == "delivery"

    async def test_alerts(self, client: AsyncClient, db_session: AsyncSession, staff_user: dict, test_factory):
        now = utc_now()
        await test_factory.create_equipment(
            db_session, internal_code="NB-001", status="maintenance", status_changed_at=now - timedelta(days=20)
        )
        await test_factory.create_equipment(
            db_session, internal_code="NB-002", status="maintenance", status_changed_at=now - timedelta(days=40)
        )
        await test_factory.create_equipment(
            db_session, internal_code="NB-003", status="maintenance", status_changed_at=now - timedelta(days=3)
        )
        await test_factory.create_equipment(db_session, internal_code="NB-004", status="in_use")
        long_use = await test_factory.create_equipment(db_session, internal_code="NB-005", status="in_use")
        await test_factory.create_term(db_session, long_use.id, issued_date=now - timedelta(days=200))
        await db_session.commit()

        response = await client.get("/api/inventory/alerts", headers=staff_user["headers"])
        assert response.status_code == status.HTTP_200_OK
        alerts = response.json()

        found = {(a["type"], a["internal_code"], a["severity"]) for a in alerts}
        assert found == {
            ("maintenance_overdue", "NB-001", "medium"),
            ("maintenance_overdue", "NB-002", "high"),
            ("missing_term", "NB-004", "high"),
            ("long_use", "NB-005", "medium"),
        }
        severities = [a["severity"] for a in alerts]
        assert severities == sorted(severities, key=lambda s: 0 if s == "high" else 1)

    async def test_manager_reads_but_cannot_write(self, client: AsyncClient, manager_user: dict):
        response = await client.get("/api/inventory/equipment", headers=manager_user["headers"])
        assert response.status_code == status.HTTP_200_OK

        response = await client.post("/api/inventory/notebooks", headers=manager_user["headers"], json={})
        assert response.status_code == status.HTTP_403_FORBIDDEN

    async def test_public_token_rejected(self, client: AsyncClient, public_user: dict):
        response = await client.get("/api/inventory/equipment", headers=public_user["headers"])
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.integration
class TestConsistencyAPI:
    """Drift report and reconciliation."""

    async def _drift(self, session: AsyncSession, factory):
        await factory.create_equipment(session, internal_code="NB-001", status="in_use")
        idle = await factory.create_equipment(session, internal_code="NB-002")
        await factory.create_term(session, idle.id)
        await factory.create_equipment(session, internal_code="NB-003", current_responsible_name="Fulano")
        mismatch = await factory.create_equipment(
            session, internal_code="NB-004", status="in_use", current_responsible_id="x", current_responsible_name="Outro"
        )
        await factory.create_term(session, mismatch.id, name="Maria Souza")
        await session.commit()

    async def test_consistency_report(self, client: AsyncClient, db_session: AsyncSession, admin_user: dict, test_factory):
        await self._drift(db_session, test_factory)

        response = await client.get("/api/inventory/consistency", headers=admin_user["headers"])
        assert response.status_code == status.HTTP_200_OK
        assert {(i["internal_code"], i["issue"]) for i in response.json()} == {
            ("NB-001", "in_use_without_term"),
            ("NB-002", "active_term_not_in_use"),
            ("NB-003", "stale_responsible"),
            ("NB-004", "responsible_mismatch"),
        }

    async def test_reconcile(self, client: AsyncClient, db_session: AsyncSession, admin_user: dict, test_factory):
        await self._drift(db_session, test_factory)

        response = await client.post("/api/inventory/reconcile", headers=admin_user["headers"])
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["dry_run"] is True
        assert data["fixed"] == 0
        assert len(data["issues"]) == 4

        response = await client.post("/api/inventory/reconcile", headers=admin_user["headers"], params={"dry_run": "false"})
        data = response.json()
        assert data["dry_run"] is False
        assert data["fixed"] == 4

        response = await client.get("/api/inventory/consistency", headers=admin_user["headers"])
        assert response.json() == []

        response = await client.get("/api/inventory/equipment", headers=admin_user["headers"])
        by_code = {e["internal_code"]: e for e in response.json()["items"]}
        assert by_code["NB-001"]["current_status"] == "in_stock"
        assert by_code["NB-002"]["current_status"] == "in_use"
        assert by_code["NB-002"]["current_responsible_id"] == "12345678901"
        assert by_code["NB-003"]["current_responsible_name"] is None
        assert by_code["NB-004"]["current_responsible_name"] == "Maria Souza"

    async def test_deliver_blocked_by_stale_term(
        self, client: AsyncClient, db_session: AsyncSession, staff_user: dict, responsible_data: dict, test_factory
    ):
        await self._drift(db_session, test_factory)
        response = await client.get("/api/inventory/equipment", headers=staff_user["headers"], params={"search": "NB-002"})
        idle = response.json()["items"][0]
        assert idle["current_status"] == "in_stock"

        response = await client.post(
            f"/api/inventory/equipment/{idle['id']}/deliver", headers=staff_user["headers"], json=responsible_data
        )
        assert response.status_code == status.HTTP_409_CONFLICT

    async def test_admin_only(self, client: AsyncClient, staff_user: dict):
        response = await client.get("/api/inventory/consistency", headers=staff_user["headers"])
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = await client.post("/api/inventory/reconcile", headers=staff_user["headers"])
        assert response.status_code == status.HTTP_403_FORBIDDEN
