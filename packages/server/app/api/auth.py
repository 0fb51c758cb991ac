"""
Authentication endpoints.

- Email-only login (no password verification) issuing a session token
- Logout (clears the session cookie)
- Current user / current token for cookie, bearer and handoff clients
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    AuthenticatedUser,
    clear_session_cookie,
    get_app_settings,
    get_token_service,
    require_auth,
    set_session_cookie,
)
from app.core.config import Settings
from app.core.database import get_session
from app.core.errors import InternalError
from app.core.tokens import TokenService
from app.services import users as user_service
from teamd_shared.schemas.common import ApiResponse, ErrorCode, MessageData
from teamd_shared.schemas.users import (
    CurrentUserData,
    LoginData,
    LoginRequest,
    TokenData,
    UserResponse,
)

log = structlog.get_logger()
router = APIRouter()


@router.post("/login", response_model=ApiResponse[LoginData])
async def login(
    body: LoginRequest,
    response: Response,
    settings: Settings = Depends(get_app_settings),
    tokens: TokenService = Depends(get_token_service),
    session: AsyncSession = Depends(get_session),
):
    """Log in by email and receive a session token (cookie + body)."""
    try:
        user = await user_service.resolve_login_user(body.email, settings.login_policy, session)
    except SQLAlchemyError:
        log.exception("auth.login_error", email=body.email)
        raise InternalError("Login failed", code=ErrorCode.LOGIN_ERROR)

    token = tokens.issue(user)
    set_session_cookie(response, token, settings)

    log.info("auth.login_success", user_id=user.id, email=user.email)
    return ApiResponse(
        success=True,
        data=LoginData(user=UserResponse.model_validate(user), token=token),
    )


@router.post("/logout", response_model=ApiResponse[MessageData])
async def logout(response: Response, settings: Settings = Depends(get_app_settings)):
    """Clear the session cookie. Always succeeds."""
    clear_session_cookie(response, settings)
    return ApiResponse(success=True, data=MessageData(message="Logged out successfully"))


@router.get("/me", response_model=ApiResponse[CurrentUserData])
async def me(auth: AuthenticatedUser = Depends(require_auth)):
    """The user embedded in the caller's token."""
    return ApiResponse(success=True, data=CurrentUserData(user=auth.user))


@router.get("/token", response_model=ApiResponse[TokenData])
async def current_token(auth: AuthenticatedUser = Depends(require_auth)):
    """Echo the credential used for this request (mobile and portal handoff)."""
    return ApiResponse(success=True, data=TokenData(token=auth.token))
