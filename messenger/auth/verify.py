"""
verify.py
---------
Purpose:
    JWT verification for both the realtime channel and the REST routes.

Notes:
    - Tokens are issued by the auth service and signed with JWT_SECRET.
    - The user id is read from `sub`, falling back to the legacy `id` claim.
    - `verify_token` is used once per WebSocket connection; it is synchronous
      so a connection is either authenticated at handshake time or dropped.
    - `auth_dependency` protects HTTP routes.
"""

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from messenger.config import settings
from messenger.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

_security = HTTPBearer()


class InvalidCredential(Exception):
    """Raised when a bearer token is missing, malformed, expired or has no user id."""


def decode_token(token: str | None) -> dict:
    if not token:
        raise InvalidCredential("No token provided")

    options = {"verify_exp": True, "verify_aud": settings.JWT_AUDIENCE is not None}
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options=options,
        )
    except jwt.PyJWTError as e:
        raise InvalidCredential(f"Invalid token: {e}") from e


def verify_token(token: str | None) -> str:
    """Validate a bearer token and return the stable user id it was issued for."""
    claims = decode_token(token)
    user_id = claims.get("sub") or claims.get("id")
    if not user_id:
        raise InvalidCredential("Invalid token payload - missing user id")
    return str(user_id)


def auth_dependency(credentials: HTTPAuthorizationCredentials = Depends(_security)) -> str:
    try:
        return verify_token(credentials.credentials)
    except InvalidCredential as e:
        logger.info("Rejected HTTP credential", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
