"""
Test configuration and fixtures for the Portal TI test suite.
Provides database setup, authentication, and common test utilities.
"""

from datetime import datetime
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.authorization import UserRole
from app.db import models  # noqa: F401
from app.db.base import Base
from app.db.session import get_db
from app.services.auth import AuthService

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Create test engine
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False,
)

# Create test session maker
TestSessionLocal = async_sessionmaker(
    autoflush=False,
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    # Create all tables
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Create session
    async with TestSessionLocal() as session:
        yield session

    # Drop all tables after test
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def _staff(session: AsyncSession, email: str, name: str, role: UserRole) -> dict:
    auth_service = AuthService()
    if role == UserRole.ADMIN:
        user, _ = await auth_service.ensure_admin(session, email=email, name=name, password="secret123")
    else:
        user = await auth_service.register_internal(
            session, UserRole.ADMIN, email=email, name=name, password="secret123", role=role
        )
    await session.commit()
    token, _ = auth_service.issue_internal_token(user)
    return {"user": user, "token": token, "headers": {"Authorization": f"Bearer {token}"}}


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession):
    """Create an admin test user."""
    return await _staff(db_session, "admin@portalti.com.br", "Admin User", UserRole.ADMIN)


@pytest_asyncio.fixture
async def staff_user(db_session: AsyncSession):
    """Create an IT staff test user."""
    return await _staff(db_session, "tecnico@portalti.com.br", "Técnico", UserRole.IT_STAFF)


@pytest_asyncio.fixture
async def manager_user(db_session: AsyncSession):
    """Create a manager test user."""
    return await _staff(db_session, "gestor@portalti.com.br", "Gestor", UserRole.MANAGER)


async def _public(session: AsyncSession, email: str, name: str) -> dict:
    user, _ = await AuthService().request_public_access(session, email=email, name=name, department="Financeiro", unit="Matriz")
    await session.commit()
    return {"user": user, "token": user.user_token, "headers": {"x-user-token": user.user_token}}


@pytest_asyncio.fixture
async def public_user(db_session: AsyncSession):
    """Create a public requester."""
    return await _public(db_session, "maria@empresa.com.br", "Maria Souza")


@pytest_asyncio.fixture
async def other_public_user(db_session: AsyncSession):
    """A second requester, for ownership checks."""
    return await _public(db_session, "joao@empresa.com.br", "João Lima")


@pytest.fixture
def responsible_data():
    """Person receiving equipment."""
    return {
        "responsible_name": "Maria Souza",
        "responsible_cpf": "123.456.789-01",
        "responsible_email": "maria@empresa.com.br",
        "responsible_department": "Financeiro",
        "responsible_unit": "Matriz",
    }


class TestDataFactory:
    """Factory class for creating test data directly in the database."""

    @staticmethod
    async def create_equipment(
        session: AsyncSession,
        internal_code: str = "NB-001",
        category: str = "NOTEBOOK",
        type: str = "Notebook",
        status: str = "in_stock",
        **fields,
    ):
        """Create an equipment row, bypassing the service rules."""
        equipment = models.Equipment(
            internal_code=internal_code,
            category=category,
            type=type,
            current_status=status,
            **fields,
        )
        session.add(equipment)
        await session.flush()
        return equipment

    @staticmethod
    async def create_term(session: AsyncSession, equipment_id: int, name: str = "Maria Souza", cpf: str = "12345678901", issued_date: Optional[datetime] = None, **fields):
        """Create an active responsibility term row."""
        term = models.ResponsibilityTerm(
            equipment_id=equipment_id,
            responsible_id=cpf,
            responsible_name=name,
            responsible_cpf=cpf,
            status=fields.pop("status", "active"),
            **({"issued_date": issued_date} if issued_date else {}),
            **fields,
        )
        session.add(term)
        await session.flush()
        return term

    @staticmethod
    async def create_ticket(
        session: AsyncSession,
        created_by_id: int,
        title: str = "Test Ticket",
        priority: str = "medium",
        status: str = "open",
        created_at: Optional[datetime] = None,
        **fields,
    ):
        """Create a ticket row with an optional backdated creation time."""
        ticket = models.Ticket(
            created_by_id=created_by_id,
            title=title,
            description="Test ticket description",
            priority=priority,
            status=status,
            **({"created_at": created_at} if created_at else {}),
            **fields,
        )
        session.add(ticket)
        await session.flush()
        return ticket

    @staticmethod
    async def create_message(session: AsyncSession, ticket_id: int, author_type: str, author_id: int, created_at: Optional[datetime] = None, is_internal: bool = False):
        message = models.TicketMessage(
            ticket_id=ticket_id,
            message="Reply",
            author_type=author_type,
            author_id=author_id,
            is_internal=is_internal,
            **({"created_at": created_at} if created_at else {}),
        )
        session.add(message)
        await session.flush()
        return message


@pytest.fixture
def test_factory():
    """Provide access to test data factory."""
    return TestDataFactory
