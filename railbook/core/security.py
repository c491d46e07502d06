"""
Caller identity at the service boundary.

Access tokens are issued by the user service; this service only verifies them
and extracts the user id from the `sub` claim. Internal (service-to-service)
routes authenticate with a shared token and trust the caller-supplied user id.
"""

import hmac
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from railbook.core.config import get_settings
from railbook.core.exceptions import Unauthorized

bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        raise Unauthorized("Invalid or expired token") from e


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Mint a token the same way the user service does. Used by tests and load scripts."""
    settings = get_settings()
    to_encode = data.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None:
        raise Unauthorized()
    payload = decode_access_token(credentials.credentials)
    subject = payload.get("sub")
    if not subject:
        raise Unauthorized("Token has no subject")
    return str(subject)


async def require_internal_caller(x_internal_token: Optional[str] = Header(default=None)) -> None:
    expected = get_settings().INTERNAL_API_TOKEN
    if x_internal_token is None or not hmac.compare_digest(x_internal_token, expected):
        raise Unauthorized("Internal token missing or invalid")


async def get_internal_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Identity asserted by a trusted internal caller."""
    if not x_user_id:
        raise Unauthorized("X-User-Id header is required on internal routes")
    return x_user_id
