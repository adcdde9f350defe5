"""
Role-based authorization for Portal TI.

Internal staff authenticate with a bearer JWT; public requesters with the
``x-user-token`` header. Both resolve to an ``AuthorizationContext``.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional, Union

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import INTERNAL_TOKEN_TYPE, verify_jwt_token
from app.db.models import InternalUser, PublicUser
from app.db.session import get_db
from app.repositories.user import InternalUserRepository, PublicUserRepository

logger = logging.getLogger(__name__)

PUBLIC_TOKEN_HEADER = "x-user-token"


class UserRole(str, Enum):
    """User roles in the system."""
    ADMIN = "admin"
    IT_STAFF = "it_staff"
    MANAGER = "manager"
    FINAL_USER = "final_user"


INTERNAL_ROLES = (UserRole.ADMIN, UserRole.IT_STAFF, UserRole.MANAGER)


class Permission(str, Enum):
    """System permissions."""
    # Requester
    CREATE_TICKETS = "create_tickets"
    VIEW_OWN_TICKETS = "view_own_tickets"

    # Helpdesk
    VIEW_ALL_TICKETS = "view_all_tickets"
    UPDATE_TICKETS = "update_tickets"
    MANAGE_KNOWLEDGE = "manage_knowledge"

    # Inventory
    VIEW_INVENTORY = "view_inventory"
    MANAGE_INVENTORY = "manage_inventory"
    DELETE_INVENTORY = "delete_inventory"
    APPROVE_REQUISITIONS = "approve_requisitions"

    # Management
    VIEW_REPORTS = "view_reports"
    CREATE_STAFF = "create_staff"
    MANAGE_USERS = "manage_users"


ROLE_PERMISSIONS = {
    UserRole.ADMIN: [
        Permission.VIEW_ALL_TICKETS,
        Permission.UPDATE_TICKETS,
        Permission.MANAGE_KNOWLEDGE,
        Permission.VIEW_INVENTORY,
        Permission.MANAGE_INVENTORY,
        Permission.DELETE_INVENTORY,
        Permission.APPROVE_REQUISITIONS,
        Permission.VIEW_REPORTS,
        Permission.CREATE_STAFF,
        Permission.MANAGE_USERS,
    ],
    UserRole.IT_STAFF: [
        Permission.VIEW_ALL_TICKETS,
        Permission.UPDATE_TICKETS,
        Permission.MANAGE_KNOWLEDGE,
        Permission.VIEW_INVENTORY,
        Permission.MANAGE_INVENTORY,
        Permission.CREATE_STAFF,
    ],
    UserRole.MANAGER: [
        Permission.VIEW_ALL_TICKETS,
        Permission.VIEW_INVENTORY,
        Permission.APPROVE_REQUISITIONS,
        Permission.VIEW_REPORTS,
    ],
    UserRole.FINAL_USER: [
        Permission.CREATE_TICKETS,
        Permission.VIEW_OWN_TICKETS,
    ],
}


class AuthorizationContext:
    """Authorization context for the caller of the current request."""

    def __init__(
        self,
        user: Union[InternalUser, PublicUser],
        role: UserRole,
        permissions: List[Permission],
    ):
        self.user = user
        self.role = role
        self.permissions = permissions

    @property
    def is_public(self) -> bool:
        return self.role == UserRole.FINAL_USER

    @property
    def user_id(self) -> int:
        return self.user.id

    def has_permission(self, permission: Permission) -> bool:
        """Check if the user has a specific permission."""
        return permission in self.permissions


def build_context(user: Union[InternalUser, PublicUser]) -> AuthorizationContext:
    if isinstance(user, PublicUser):
        role = UserRole.FINAL_USER
    else:
        try:
            role = UserRole(user.role)
        except ValueError:
            logger.warning("Internal user %s has unknown role %r", user.id, user.role)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unknown user role")
        if role == UserRole.FINAL_USER:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unknown user role")
    return AuthorizationContext(user=user, role=role, permissions=ROLE_PERMISSIONS.get(role, []))


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
        return token or None
    return None


async def resolve_internal_user(session: AsyncSession, token: str) -> InternalUser:
    """Resolve an active internal user from a bearer JWT or raise 401."""

    payload = verify_jwt_token(token)
    if not payload or payload.get("type") != INTERNAL_TOKEN_TYPE:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user = await InternalUserRepository().get_by_id(session, user_id)
    if not user or not user.is_active:
        logger.warning("Token subject %s not found or inactive", user_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return user


async def resolve_public_user(session: AsyncSession, token: str) -> PublicUser:
    """Resolve an active public user from an access token or raise 401."""

    user = await PublicUserRepository().get_by_token(session, token)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user token")
    return user


async def get_authorization_context(
    session: AsyncSession = Depends(get_db),
    authorization: Optional[str] = Header(None),
    x_user_token: Optional[str] = Header(None, alias=PUBLIC_TOKEN_HEADER),
) -> AuthorizationContext:
    """Resolve the caller from the bearer JWT, falling back to ``x-user-token``."""

    token = _bearer_token(authorization)
    if token:
        return build_context(await resolve_internal_user(session, token))
    if x_user_token:
        return build_context(await resolve_public_user(session, x_user_token))
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")


async def get_internal_context(
    session: AsyncSession = Depends(get_db),
    authorization: Optional[str] = Header(None),
) -> AuthorizationContext:
    """Require a staff bearer token."""

    token = _bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    return build_context(await resolve_internal_user(session, token))


def require_permission(permission: Permission, internal_only: bool = True) -> Callable:
    """Dependency factory requiring ``permission`` on the caller."""

    source = get_internal_context if internal_only else get_authorization_context

    async def dependency(auth_context: AuthorizationContext = Depends(source)) -> AuthorizationContext:
        if not auth_context.has_permission(permission):
            logger.warning(
                "User %s with role %s attempted to access endpoint requiring %s",
                auth_context.user_id, auth_context.role.value, permission.value,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {permission.value}",
            )
        return auth_context

    return dependency


def require_roles(*roles: UserRole) -> Callable:
    """Dependency factory requiring one of ``roles`` on a staff caller."""

    async def dependency(auth_context: AuthorizationContext = Depends(get_internal_context)) -> AuthorizationContext:
        if auth_context.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role required: {', '.join(r.value for r in roles)}",
            )
        return auth_context

    return dependency


class ResourceOwnershipValidator:
    """Ownership checks for resources that public users may reach."""

    @staticmethod
    def can_view_ticket(auth_context: AuthorizationContext, ticket_created_by_id: int) -> bool:
        if auth_context.has_permission(Permission.VIEW_ALL_TICKETS):
            return True
        if auth_context.has_permission(Permission.VIEW_OWN_TICKETS):
            return ticket_created_by_id == auth_context.user_id
        return False
