"""JWT token creation and validation.

Access tokens identify the user behind HTTP requests and websocket
handshakes. Accounts themselves are managed elsewhere.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fraudwatch_shared.schemas import UserProfile
from jose import JWTError, jwt
from pydantic import BaseModel

from fraudwatch_api.config import AuthSettings
from fraudwatch_api.errors import AuthenticationError
from fraudwatch_api.services import Services, get_services
from fraudwatch_api.stores.base import UserProfileStore


class TokenPayload(BaseModel):
    """JWT token payload structure."""

    sub: str  # User ID
    type: str  # "access"
    exp: datetime
    iat: datetime


# Security scheme for Swagger UI
security = HTTPBearer(auto_error=False)


def create_access_token(
    user_id: str,
    settings: AuthSettings,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a short-lived access token.

    Args:
        user_id: The user's id.
        settings: Secret, algorithm and default lifetime.
        expires_delta: Optional custom expiration time.

    Returns:
        Encoded JWT access token.
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    now = datetime.now(timezone.utc)
    expire = now + expires_delta

    to_encode: dict[str, Any] = {
        "sub": str(user_id),
        "type": "access",
        "exp": expire,
        "iat": now,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.algorithm)


def decode_token(token: str, settings: AuthSettings) -> TokenPayload:
    """Decode and validate a JWT token.

    Raises:
        AuthenticationError: If the token is invalid, expired or not an
            access token.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.algorithm])
        token_data = TokenPayload(
            sub=payload["sub"],
            type=payload["type"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        )
    except (JWTError, KeyError) as e:
        raise AuthenticationError(f"Invalid token: {e!s}") from e

    if token_data.type != "access":
        raise AuthenticationError("Invalid token type")
    return token_data


async def authenticate_channel(
    token: str | None, users: UserProfileStore, settings: AuthSettings
) -> UserProfile:
    """Resolve the user behind a token presented at channel open.

    Raises:
        AuthenticationError: If the token is missing or invalid, or the user
            no longer exists.
    """
    if not token:
        raise AuthenticationError("Authentication required")

    token_data = decode_token(token, settings)
    user = await users.get_user(token_data.sub)
    if user is None:
        raise AuthenticationError("User not found")
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    services: Services = Depends(get_services),
) -> UserProfile:
    """FastAPI dependency to get the current authenticated user.

    Raises:
        HTTPException: 401 if not authenticated or token invalid.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return await authenticate_channel(
            credentials.credentials, services.storage.users, services.settings.auth
        )
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_current_user_optional(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    services: Services = Depends(get_services),
) -> UserProfile | None:
    """FastAPI dependency to optionally get the current user.

    Returns None if not authenticated instead of raising an exception.
    """
    if credentials is None:
        return None

    try:
        return await get_current_user(credentials, services)
    except HTTPException:
        return None
