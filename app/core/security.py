import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import get_settings

settings = get_settings()


logger = logging.getLogger(__name__)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

JWT_ALGORITHM = "HS256"
INTERNAL_TOKEN_TYPE = "internal"


def hash_password(password: str) -> str:
    """Hash a plain password using bcrypt.

    Args:
        password: Plain text password.

    Returns:
        Hashed password string.
    """

    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password.

    Args:
        plain_password: Plain text password.
        hashed_password: Previously hashed password.

    Returns:
        True if password matches; False otherwise.
    """

    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Malformed or legacy hash
        return False


def create_jwt_token(subject: str, expires_in: int, claims: Optional[Dict[str, Any]] = None) -> str:
    """Create a signed JWT token.

    Args:
        subject: Token subject (e.g., user id).
        expires_in: Expiration time in seconds.
        claims: Optional claims to include.

    Returns:
        Signed JWT token string.
    """

    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {"sub": subject, "iat": now, "exp": now + timedelta(seconds=expires_in)}
    if claims:
        payload.update(claims)
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_jwt_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify a JWT token and return its payload if valid.

    Args:
        token: JWT token string.

    Returns:
        Decoded payload dict if valid; None otherwise.
    """

    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as exc:
        logger.warning("JWT verification failed: %s", exc)
        return None


def generate_public_token() -> str:
    """Random 64-char hex token identifying a public requester."""

    return secrets.token_hex(32)
