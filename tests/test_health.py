"""
Health check and global error handling.
"""

import pytest
from httpx import AsyncClient
from fastapi import status

from app.core.database import EXPECTED_TABLES


@pytest.mark.integration
class TestHealth:

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "ok"
        assert data["env"]
        assert data["database"]["checks"]["connectivity"]["status"] == "pass"
        assert data["database"]["checks"]["schema"]["missing_tables"] == []

    def test_expected_tables(self):
        assert {"tickets", "inventory_equipment", "responsibility_terms", "equipment_movements"} <= set(EXPECTED_TABLES)

    async def test_unknown_route_uses_error_body(self, client: AsyncClient):
        response = await client.get("/api/unknown")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"error": "Not Found"}
