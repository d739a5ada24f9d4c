"""JWT authentication handler."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, cast

from jose import jwt, JWTError

from deployctl.config import AuthSettings


class JWTHandler:
    """Issues and validates bearer tokens carrying a subject and a role."""

    def __init__(self, settings: AuthSettings) -> None:
        self._settings = settings

    def create_access_token(
        self,
        subject: str,
        role: str,
        expires_in: timedelta | None = None,
        extra: dict[str, Any] | None = None,
    ) -> str:
        """Create a JWT access token."""
        expire = datetime.now(timezone.utc) + (
            expires_in or timedelta(minutes=self._settings.access_token_expire_minutes)
        )
        payload: dict[str, Any] = {
            "sub": subject,
            "role": role,
            "exp": expire,
            "type": "access",
        }
        if extra:
            payload.update(extra)
        encoded: str = cast(
            str,
            jwt.encode(
                payload, self._settings.secret_key, algorithm=self._settings.algorithm
            ),
        )
        return encoded

    def decode_token(self, token: str) -> dict[str, Any]:
        """Decode and validate a JWT token."""
        try:
            payload = jwt.decode(
                token, self._settings.secret_key, algorithms=[self._settings.algorithm]
            )
        except JWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e
        else:
            return cast(dict[str, Any], payload)


class InvalidTokenError(Exception):
    """Raised when a JWT token is invalid."""
