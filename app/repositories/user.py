from typing import List, Optional
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.models import InternalUser, PublicUser


class PublicUserRepository:
    """Repository for `PublicUser` operations."""

    async def get_by_id(self, session: AsyncSession, user_id: int) -> Optional[PublicUser]:
        return await session.get(PublicUser, user_id)

    async def get_by_email(self, session: AsyncSession, email: str) -> Optional[PublicUser]:
        """Fetch a public user by email, case-insensitively.

        Args:
            session: Async database session.
            email: Email to search.

        Returns:
            Optional[PublicUser]: Found user or None.
        """

        stmt = select(PublicUser).where(func.lower(PublicUser.email) == email.strip().lower())
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_token(self, session: AsyncSession, token: str) -> Optional[PublicUser]:
        stmt = select(PublicUser).where(PublicUser.user_token == token)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        session: AsyncSession,
        email: str,
        name: str,
        user_token: str,
        department: Optional[str] = None,
        unit: Optional[str] = None,
    ) -> PublicUser:
        entity = PublicUser(
            email=email.strip().lower(),
            name=name.strip(),
            user_token=user_token,
            department=department,
            unit=unit,
            is_active=True,
        )
        session.add(entity)
        await session.flush()
        return entity


class InternalUserRepository:
    """Repository for `InternalUser` operations."""

    async def get_by_id(self, session: AsyncSession, user_id: int) -> Optional[InternalUser]:
        return await session.get(InternalUser, user_id)

    async def get_by_email(self, session: AsyncSession, email: str) -> Optional[InternalUser]:
        stmt = select(InternalUser).where(func.lower(InternalUser.email) == email.strip().lower())
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_users(self, session: AsyncSession, role: Optional[str] = None, active_only: bool = False) -> List[InternalUser]:
        stmt = select(InternalUser).order_by(InternalUser.name)
        if role:
            stmt = stmt.where(InternalUser.role == role)
        if active_only:
            stmt = stmt.where(InternalUser.is_active.is_(True))
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_roles(self, session: AsyncSession, roles: List[str]) -> List[InternalUser]:
        stmt = (
            select(InternalUser)
            .where(InternalUser.role.in_(roles), InternalUser.is_active.is_(True))
            .order_by(InternalUser.name)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, session: AsyncSession, email: str, name: str, password_hash: str, role: str) -> InternalUser:
        """Create a new internal (staff) user.

        Args:
            session: Async database session.
            email: Login email.
            name: Display name.
            password_hash: Hashed password.
            role: One of admin, it_staff, manager.

        Returns:
            InternalUser: Persisted entity.
        """

        entity = InternalUser(
            email=email.strip().lower(),
            name=name.strip(),
            password_hash=password_hash,
            role=role,
            is_active=True,
        )
        session.add(entity)
        await session.flush()
        return entity
