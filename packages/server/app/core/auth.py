"""
Authentication and Authorization for the Team D API.

Supports:
- Session token from the `auth-token` cookie (browsers, primary)
- Session token from `Authorization: Bearer <token>` (mobile, secondary)
- Session cookie issue/clear helpers
- Role dependencies: require_auth, require_admin (system admin flag only)
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import Settings
from app.core.errors import ForbiddenError, UnauthorizedError
from app.core.tokens import InvalidTokenError, TokenService
from app.models.user import User
from teamd_shared.schemas.users import TokenUser

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Application-scoped components
# ---------------------------------------------------------------------------

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


# ---------------------------------------------------------------------------
# Session cookie
# ---------------------------------------------------------------------------

def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    """Set the HTTP-only session cookie shared by the portals."""
    response.set_cookie(
        key=settings.cookie_name,
        value=token,
        httponly=True,
        secure=settings.is_production,  # allow non-HTTPS in dev
        samesite="lax",
        path="/",
        max_age=settings.token_lifetime_seconds,
        domain=settings.session_cookie_domain,
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.cookie_name,
        path="/",
        domain=settings.session_cookie_domain,
        secure=settings.is_production,
        httponly=True,
        samesite="lax",
    )


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

class AuthenticatedUser:
    """Container for the verified token user and the credential it came from."""

    def __init__(self, user: TokenUser, token: str):
        self.user = user
        self.token = token
        self.user_id = user.id
        self.email = user.email
        self.is_system_admin = user.is_system_admin


def get_token(request: Request, cookie_name: str = "auth-token") -> Optional[str]:
    """Session token from the cookie first, then the Authorization header."""
    cookie_token = request.cookies.get(cookie_name)
    if cookie_token:
        return cookie_token

    authorization = request.headers.get("Authorization", "")
    if authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None


async def require_auth(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    tokens: TokenService = Depends(get_token_service),
) -> AuthenticatedUser:
    """Main authentication dependency. Any valid session token passes."""
    token = get_token(request, settings.cookie_name)
    if not token:
        raise UnauthorizedError("Authentication required")

    try:
        user = tokens.verify(token)
    except InvalidTokenError as exc:
        # Expired and malformed tokens look identical to the client
        log.info("auth.invalid_token", reason=str(exc), path=request.url.path)
        raise UnauthorizedError("Invalid or expired token")

    auth = AuthenticatedUser(user=user, token=token)
    request.state.auth = auth
    return auth


async def require_admin(
    auth: AuthenticatedUser = Depends(require_auth),
) -> AuthenticatedUser:
    """Requires the global system-admin flag."""
    if not auth.is_system_admin:
        log.info("auth.admin_required", email=auth.email)
        raise ForbiddenError("Admin access required")
    return auth


async def resolve_user_id(auth: AuthenticatedUser, session: AsyncSession) -> int:
    """Database id of the caller; tokens without an id are matched by email."""
    if auth.user_id is not None:
        return auth.user_id

    result = await session.execute(select(User.id).where(User.email == auth.email))
    user_id = result.scalar_one_or_none()
    if user_id is None:
        raise UnauthorizedError("User not authenticated")
    return user_id
