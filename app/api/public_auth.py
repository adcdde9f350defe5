import logging
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BusinessLogicError, business_exception_to_http
from app.db.session import get_db
from app.schemas.auth import (
    PublicAccessRequest, PublicAccessResponse, PublicUserEnvelope, PublicUserResponse, VerifyTokenRequest,
)
from app.schemas.common import ErrorResponse
from app.services.auth import AuthService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/public-auth", tags=["public-auth"])


@router.post(
    "/access",
    response_model=PublicAccessResponse,
    responses={
        200: {"description": "Existing requester, token returned"},
        201: {"description": "New requester created"},
        400: {"model": ErrorResponse, "description": "Invalid input data"},
        403: {"model": ErrorResponse, "description": "Requester is inactive"},
    },
    summary="Request public access",
)
async def request_access(
    payload: PublicAccessRequest,
    response: Response,
    session: AsyncSession = Depends(get_db),
) -> PublicAccessResponse:
    """Return the requester's access token, creating the requester on first access."""
    svc = AuthService()
    try:
        user, created = await svc.request_public_access(
            session,
            email=payload.email,
            name=payload.name,
            department=payload.department,
            unit=payload.unit,
        )
        await session.commit()
    except BusinessLogicError as e:
        raise business_exception_to_http(e)

    if created:
        response.status_code = status.HTTP_201_CREATED
    return PublicAccessResponse(
        user_token=user.user_token,
        user=PublicUserResponse.model_validate(user),
        message="Access granted" if created else "Welcome back!",
    )


@router.post(
    "/verify-token",
    response_model=PublicUserEnvelope,
    responses={404: {"model": ErrorResponse, "description": "Invalid or expired token"}},
    summary="Verify a public access token",
)
async def verify_token(payload: VerifyTokenRequest, session: AsyncSession = Depends(get_db)) -> PublicUserEnvelope:
    try:
        user = await AuthService().verify_public_token(session, payload.token)
        await session.commit()
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    return PublicUserEnvelope(user=PublicUserResponse.model_validate(user))


@router.get(
    "/user/{token}",
    response_model=PublicUserEnvelope,
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
    summary="Get a public user by token",
)
async def get_user(token: str, session: AsyncSession = Depends(get_db)) -> PublicUserEnvelope:
    try:
        user = await AuthService().get_public_user(session, token)
    except BusinessLogicError as e:
        raise business_exception_to_http(e)
    return PublicUserEnvelope(user=PublicUserResponse.model_validate(user))
