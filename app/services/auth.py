import logging
from typing import List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.authorization import INTERNAL_ROLES, UserRole
from app.core.config import get_settings
from app.core.exceptions import (
    AuthenticationError, ConflictError, NotFoundError, PermissionDeniedError, ValidationError,
)
from app.core.formatting import is_valid_email
from app.core.security import (
    INTERNAL_TOKEN_TYPE, create_jwt_token, generate_public_token, hash_password, verify_password,
)
from app.core.timeutils import utc_now
from app.db.models import InternalUser, PublicUser
from app.repositories.user import InternalUserRepository, PublicUserRepository

logger = logging.getLogger(__name__)
settings = get_settings()


class AuthService:
    """Authentication flows for public requesters and internal staff."""

    def __init__(self) -> None:
        self.public_repo = PublicUserRepository()
        self.internal_repo = InternalUserRepository()

    # Public requesters

    async def request_public_access(
        self,
        session: AsyncSession,
        email: str,
        name: str,
        department: Optional[str] = None,
        unit: Optional[str] = None,
    ) -> Tuple[PublicUser, bool]:
        """Return the requester's token, creating the user on first access.

        Args:
            session: Async database session.
            email: Requester email.
            name: Requester name.
            department: Optional department.
            unit: Optional unit.

        Returns:
            Tuple of the user and whether it was just created.
        """

        if not is_valid_email(email):
            raise ValidationError("Invalid email", {"field": "email"})

        user = await self.public_repo.get_by_email(session, email)
        if user:
            if not user.is_active:
                raise PermissionDeniedError("User is inactive")
            user.last_access = utc_now()
            if department and not user.department:
                user.department = department
            if unit and not user.unit:
                user.unit = unit
            await session.flush()
            return user, False

        user = await self.public_repo.create(
            session,
            email=email,
            name=name,
            user_token=generate_public_token(),
            department=department,
            unit=unit,
        )
        user.last_access = utc_now()
        await session.flush()
        logger.info("Created public user %s", user.id)
        return user, True

    async def verify_public_token(self, session: AsyncSession, token: str) -> PublicUser:
        user = await self.public_repo.get_by_token(session, token)
        if not user or not user.is_active:
            raise NotFoundError("Invalid token")
        user.last_access = utc_now()
        await session.flush()
        return user

    async def get_public_user(self, session: AsyncSession, token: str) -> PublicUser:
        user = await self.public_repo.get_by_token(session, token)
        if not user:
            raise NotFoundError("User not found")
        return user

    # Internal staff

    def issue_internal_token(self, user: InternalUser) -> Tuple[str, int]:
        """Sign a staff access token carrying the user's identity and role."""

        expires_in = settings.ACCESS_EXPIRES_MIN * 60
        token = create_jwt_token(
            subject=str(user.id),
            expires_in=expires_in,
            claims={
                "id": user.id,
                "email": user.email,
                "name": user.name,
                "role": user.role,
                "type": INTERNAL_TOKEN_TYPE,
            },
        )
        return token, expires_in

    async def authenticate_internal(self, session: AsyncSession, email: str, password: str) -> Tuple[str, int, InternalUser]:
        """Authenticate staff credentials and issue a token.

        Args:
            session: Async database session.
            email: Login email.
            password: Plain password.

        Returns:
            Tuple of access token, lifetime in seconds, and the user.
        """

        user = await self.internal_repo.get_by_email(session, email)
        if not user or not verify_password(password, user.password_hash):
            logger.warning("Failed internal login for %s", email)
            raise AuthenticationError("Invalid credentials")
        if not user.is_active:
            raise AuthenticationError("User inactive")

        token, expires_in = self.issue_internal_token(user)
        logger.info("Internal user %s logged in", user.id)
        return token, expires_in, user

    async def register_internal(
        self,
        session: AsyncSession,
        creator_role: UserRole,
        email: str,
        name: str,
        password: str,
        role: UserRole = UserRole.IT_STAFF,
    ) -> InternalUser:
        """Create a staff account on behalf of an admin or IT staff member.

        IT staff may only create IT staff accounts.
        """

        if role not in INTERNAL_ROLES:
            raise ValidationError("Invalid role", {"role": role.value})
        if creator_role not in (UserRole.ADMIN, UserRole.IT_STAFF):
            raise PermissionDeniedError("Only admin or IT staff can create users")
        if creator_role == UserRole.IT_STAFF and role != UserRole.IT_STAFF:
            raise PermissionDeniedError("IT staff can only create IT staff users")

        if await self.internal_repo.get_by_email(session, email):
            raise ConflictError("User already exists", {"email": email})

        user = await self.internal_repo.create(
            session,
            email=email,
            name=name,
            password_hash=hash_password(password),
            role=role.value,
        )
        logger.info("Created internal user %s with role %s", user.id, role.value)
        return user

    async def list_internal_users(self, session: AsyncSession, role: Optional[UserRole] = None) -> List[InternalUser]:
        return await self.internal_repo.list_users(session, role=role.value if role else None)

    async def ensure_admin(self, session: AsyncSession, email: str, name: str, password: str) -> Tuple[InternalUser, bool]:
        """Create the bootstrap admin if it does not exist yet."""

        existing = await self.internal_repo.get_by_email(session, email)
        if existing:
            return existing, False
        user = await self.internal_repo.create(
            session, email=email, name=name, password_hash=hash_password(password), role=UserRole.ADMIN.value
        )
        return user, True
