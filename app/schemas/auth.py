from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, constr

from app.core.authorization import UserRole


class PublicAccessRequest(BaseModel):
    """Public access payload.

    Attributes:
        email: Requester email; identifies the requester.
        name: Requester name, used on first access.
        department: Optional department.
        unit: Optional unit.
    """

    email: EmailStr
    name: constr(min_length=1, max_length=255)  # type: ignore[valid-type]
    department: Optional[str] = None
    unit: Optional[str] = None


class PublicUserResponse(BaseModel):
    """Public requester profile."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    department: Optional[str] = None
    unit: Optional[str] = None
    user_token: str
    is_active: bool
    last_access: Optional[datetime] = None


class PublicAccessResponse(BaseModel):
    """Token handed to a public requester.

    Attributes:
        user_token: Token to send in the ``x-user-token`` header.
        user: Requester profile.
        message: Welcome message.
    """

    user_token: str
    user: PublicUserResponse
    message: str


class VerifyTokenRequest(BaseModel):
    token: constr(min_length=1)  # type: ignore[valid-type]


class PublicUserEnvelope(BaseModel):
    user: PublicUserResponse
    authenticated: bool = True


class LoginRequest(BaseModel):
    """Staff login payload with email and password.

    Attributes:
        email: User email address.
        password: Plain password.
    """

    email: EmailStr
    password: constr(min_length=1)  # type: ignore[valid-type]


class InternalUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: str
    is_active: bool = True


class TokenResponse(BaseModel):
    """JWT token response payload.

    Attributes:
        token: Signed access token.
        token_type: OAuth2 token type, defaults to 'bearer'.
        expires_in: Lifetime in seconds.
        user: Authenticated staff member.
    """

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: InternalUserResponse


class RegisterRequest(BaseModel):
    """Staff registration payload.

    Attributes:
        email: Login email.
        name: Full name.
        password: Plain password.
        role: Staff role; defaults to it_staff.
    """

    email: EmailStr
    name: constr(min_length=2, max_length=255)  # type: ignore[valid-type]
    password: constr(min_length=6)  # type: ignore[valid-type]
    role: UserRole = UserRole.IT_STAFF


class RegisterResponse(BaseModel):
    user: InternalUserResponse
    message: str = "User created successfully"


class VerifyInternalResponse(BaseModel):
    user: InternalUserResponse
    authenticated: bool = True
