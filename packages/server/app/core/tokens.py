"""
Session token issuance and verification.

Tokens are stateless HS256 JWTs embedding a user snapshot:

    {"user": {"id", "email", "name", "isSystemAdmin"}, "iat": ..., "exp": ...}

Nothing is persisted server-side; validity is signature + expiry only.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Union

import jwt
import pydantic

from app.core.config import Settings
from app.models.user import User
from teamd_shared.schemas.users import TokenUser


class InvalidTokenError(Exception):
    """Raised for any token that must not be trusted (malformed, tampered, expired)."""


class TokenService:
    """Issues and verifies session tokens with a process-wide secret."""

    def __init__(self, secret: str, algorithm: str = "HS256", lifetime: timedelta = timedelta(hours=24)):
        self._secret = secret
        self._algorithm = algorithm
        self.lifetime = lifetime

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            settings.jwt_secret,
            settings.jwt_algorithm,
            timedelta(hours=settings.jwt_expire_hours),
        )

    def issue(
        self,
        user: Union[User, TokenUser],
        *,
        expires_delta: timedelta | None = None,
        **extra_claims: Any,
    ) -> str:
        """Create a signed token for `user`, expiring after the configured lifetime."""
        snapshot = TokenUser.model_validate(user, from_attributes=True)
        now = datetime.now(timezone.utc)
        payload = {
            **extra_claims,
            "user": snapshot.model_dump(by_alias=True),
            "iat": now,
            "exp": now + (expires_delta if expires_delta is not None else self.lifetime),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenUser:
        """Return the embedded user. Raises InvalidTokenError on any failure."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp"]},
            )
        except jwt.PyJWTError as exc:
            raise InvalidTokenError(str(exc)) from exc

        claims = payload.get("user")
        if not isinstance(claims, dict):
            raise InvalidTokenError("Token carries no user")
        try:
            return TokenUser.model_validate(claims)
        except pydantic.ValidationError as exc:
            raise InvalidTokenError("Token user is malformed") from exc
