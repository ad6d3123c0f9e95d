"""
verify.py
---------
Purpose:
    Access-token verification shared by HTTP routes and the realtime handshake.

Notes:
    - Tokens are HS256 JWTs signed with JWT_ACCESS_SECRET by the auth service.
    - The subject (`userId`, falling back to `sub`) must resolve to an existing user.
    - Provides `auth_dependency` for protected routes.
"""

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.user_domain import AuthenticatedUser
from app.repositories.user_repository import UserRepository

logger = get_logger(__name__)

_security = HTTPBearer(auto_error=False)


class AuthenticationError(Exception):
    """Missing, malformed, expired or unknown-subject credential."""


def verify_access_token(token: str | None) -> dict:
    if not token:
        raise AuthenticationError("Token not provided")

    try:
        return jwt.decode(
            token,
            settings.JWT_ACCESS_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": True},
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(f"Invalid token: {e}") from e


async def resolve_identity(token: str | None) -> AuthenticatedUser:
    """Verify the token and load the identity it names."""
    claims = verify_access_token(token)

    user_id = claims.get("userId") or claims.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token: missing user id")

    user = await UserRepository.get_identity(str(user_id))
    if user is None:
        logger.warning("Token subject not found", user_id=user_id)
        raise AuthenticationError("User not found")

    return user


async def auth_dependency(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> AuthenticatedUser:
    token = credentials.credentials if credentials else None
    try:
        user = await resolve_identity(token)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    request.state.user_id = user.user_id
    return user
