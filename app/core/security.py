from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from app.core.config import settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class AuthUser(BaseModel):
    """Authenticated caller identity"""
    id: int


def create_access_token(user_id: int, expires_in: Optional[timedelta] = None) -> str:
    """
    Issue a signed access token for a user

    Args:
        user_id: Identity placed in the "sub" claim
        expires_in: Token lifetime, no expiry when omitted

    Returns:
        Encoded JWT string
    """
    payload = {"sub": str(user_id), "iat": datetime.now(timezone.utc)}
    if expires_in is not None:
        payload["exp"] = datetime.now(timezone.utc) + expires_in

    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthUser:
    """Resolve the caller from the bearer token or reject the request"""
    if credentials is None:
        raise _unauthorized("Missing Authorization Header")

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("The token has expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Rejected token: {e}")
        raise _unauthorized("Invalid token")

    try:
        return AuthUser(id=int(payload["sub"]))
    except (KeyError, TypeError, ValueError):
        raise _unauthorized("Invalid token")
