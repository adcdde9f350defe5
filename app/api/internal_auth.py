import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import (
    AuthorizationContext, Permission, UserRole, get_internal_context, require_permission, require_roles,
)
from app.core.exceptions import BusinessLogicError, business_exception_to_http
from app.db.session import get_db
from app.schemas.auth import (
    InternalUserResponse, LoginRequest, RegisterRequest, RegisterResponse, TokenResponse, VerifyInternalResponse,
)
from app.schemas.common import ErrorResponse
from app.services.auth import AuthService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/internal-auth", tags=["internal-auth"])


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid credentials"}},
    summary="Staff login",
)
async def login(payload: LoginRequest, session: AsyncSession = Depends(get_db)) -> TokenResponse:
    try:
        token, expires_in, user = await AuthService().authenticate_internal(session, payload.email, payload.password)
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    return TokenResponse(token=token, expires_in=expires_in, user=InternalUserResponse.model_validate(user))


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ErrorResponse, "description": "Not allowed to create this role"},
        409: {"model": ErrorResponse, "description": "User already exists"},
    },
    summary="Create a staff account",
    description="Admin may create any staff role; IT staff may only create IT staff.",
)
async def register(
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(require_permission(Permission.CREATE_STAFF)),
) -> RegisterResponse:
    try:
        user = await AuthService().register_internal(
            session,
            creator_role=auth_context.role,
            email=payload.email,
            name=payload.name,
            password=payload.password,
            role=payload.role,
        )
        await session.commit()
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    except Exception as e:
        logger.exception(f"Unexpected error creating internal user: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")

    logger.info(f"User {auth_context.user_id} created internal user {user.id}")
    return RegisterResponse(user=InternalUserResponse.model_validate(user))


@router.get(
    "/verify",
    response_model=VerifyInternalResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid token"}},
    summary="Verify a staff token",
)
async def verify(auth_context: AuthorizationContext = Depends(get_internal_context)) -> VerifyInternalResponse:
    return VerifyInternalResponse(user=InternalUserResponse.model_validate(auth_context.user))


@router.get(
    "/users",
    response_model=List[InternalUserResponse],
    summary="List staff accounts",
)
async def list_users(
    role: Optional[UserRole] = None,
    session: AsyncSession = Depends(get_db),
    auth_context: AuthorizationContext = Depends(require_roles(UserRole.ADMIN, UserRole.IT_STAFF, UserRole.MANAGER)),
) -> List[InternalUserResponse]:
    users = await AuthService().list_internal_users(session, role=role)
    return [InternalUserResponse.model_validate(u) for u in users]
