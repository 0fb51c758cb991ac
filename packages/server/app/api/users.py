"""
User Management API endpoints.

GET    /api/users               — List all users (system admin)
GET    /api/users/me/profile    — Own profile (any authenticated user)
GET    /api/users/{userId}      — Get a user (system admin)
DELETE /api/users/{userId}      — Delete a user (system admin)
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.params import parse_id
from app.core.auth import AuthenticatedUser, require_admin, require_auth, resolve_user_id
from app.core.database import get_session
from app.core.errors import InternalError
from app.services import users as user_service
from teamd_shared.schemas.common import ApiResponse
from teamd_shared.schemas.users import (
    ProfileData,
    UserData,
    UserDeletedData,
    UserListData,
    UserResponse,
)

log = structlog.get_logger()
router = APIRouter()


@router.get("", response_model=ApiResponse[UserListData])
async def list_users(
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """List all users (admin only)."""
    try:
        users = await user_service.list_users(session)
    except SQLAlchemyError:
        log.exception("users.list_failed")
        raise InternalError("Failed to fetch users")
    items = [UserResponse.model_validate(u) for u in users]
    return ApiResponse(success=True, data=UserListData(users=items, count=len(items)))


@router.get("/me/profile", response_model=ApiResponse[ProfileData])
async def get_own_profile(
    auth: AuthenticatedUser = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    """The caller's own user record."""
    try:
        user_id = await resolve_user_id(auth, session)
        user = await user_service.get_user(user_id, session, missing="Profile not found")
    except SQLAlchemyError:
        log.exception("users.profile_failed", email=auth.email)
        raise InternalError("Failed to fetch profile")
    return ApiResponse(success=True, data=ProfileData(profile=UserResponse.model_validate(user)))


@router.get("/{userId}", response_model=ApiResponse[UserData])
async def get_user(
    userId: str,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Get a specific user (admin only)."""
    user_id = parse_id(userId, "Invalid user ID")
    try:
        user = await user_service.get_user(user_id, session)
    except SQLAlchemyError:
        log.exception("users.get_failed", user_id=user_id)
        raise InternalError("Failed to fetch user")
    return ApiResponse(success=True, data=UserData(user=UserResponse.model_validate(user)))


@router.delete("/{userId}", response_model=ApiResponse[UserDeletedData])
async def delete_user(
    userId: str,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Delete a user (admin only). Their grants and memberships are removed with them."""
    user_id = parse_id(userId, "Invalid user ID")
    try:
        user = await user_service.delete_user(user_id, session)
    except SQLAlchemyError:
        log.exception("users.delete_failed", user_id=user_id)
        raise InternalError("Failed to delete user")
    return ApiResponse(
        success=True,
        data=UserDeletedData(
            message="User deleted successfully",
            user=UserResponse.model_validate(user),
        ),
    )
