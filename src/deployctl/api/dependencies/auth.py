"""Authentication dependencies for FastAPI."""

from __future__ import annotations

from collections.abc import Callable, Coroutine
from typing import Annotated, Any

from fastapi import (
    Depends,
    HTTPException,
    Security,
    status,
)
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from deployctl.config import get_settings
from deployctl.domain.models.user import Permission, Principal, Role
from deployctl.infrastructure.auth.jwt_handler import InvalidTokenError, JWTHandler


security = HTTPBearer()


def get_jwt_handler() -> JWTHandler:
    settings = get_settings()
    return JWTHandler(settings.auth)


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Security(security)],
    jwt_handler: Annotated[JWTHandler, Depends(get_jwt_handler)],
) -> Principal:
    """Extract and validate the caller from the bearer token."""
    try:
        payload = jwt_handler.decode_token(credentials.credentials)
    except InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    if payload.get("type") != "access" or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
        )

    try:
        role = Role(payload.get("role", Role.VIEWER.value))
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role: {payload.get('role')}",
        ) from e

    return Principal(subject=payload["sub"], role=role)


def require_permission(
    *permissions: Permission,
) -> Callable[..., Coroutine[Any, Any, Principal]]:
    """Dependency factory that requires specific permissions."""

    async def check_permissions(
        principal: Annotated[Principal, Depends(get_current_principal)],
    ) -> Principal:
        if not principal.has_any_permission(*permissions):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {[p.value for p in permissions]}",
            )
        return principal

    return check_permissions
