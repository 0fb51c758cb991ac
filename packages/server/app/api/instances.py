"""
Instance API endpoints.

GET    /api/instances                          — Instances the caller holds a grant on
GET    /api/instances/{instanceId}             — One instance (403 before 404)
GET    /api/instances/{instanceId}/access      — Grants on an instance (managers)
POST   /api/instances/{instanceId}/access      — Grant access (managers)
DELETE /api/instances/{instanceId}/access/{userId} — Revoke access (managers)

Managers are system admins and organization admins of the owning organization.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.params import parse_id
from app.core.auth import AuthenticatedUser, require_auth, resolve_user_id
from app.core.database import get_session
from app.core.errors import ForbiddenError, InternalError, NotFoundError
from app.models.instance import Instance
from app.services import instances as instance_service
from teamd_shared.schemas.common import ApiResponse
from teamd_shared.schemas.instances import (
    AccessGrantData,
    AccessGrantListData,
    AccessGrantRequest,
    AccessGrantResponse,
    AccessRevokedData,
    InstanceData,
    InstanceListData,
    InstanceResponse,
)

log = structlog.get_logger()
router = APIRouter()


async def _managed_instance(
    instance_id: int, auth: AuthenticatedUser, session: AsyncSession
) -> tuple[int, Instance]:
    """Caller id and the instance, or 403/404 when the caller can't manage it."""
    user_id = await resolve_user_id(auth, session)
    instance = await instance_service.find_instance(instance_id, session)
    if not instance:
        if not auth.is_system_admin:
            raise ForbiddenError("Instance management access required")
        raise NotFoundError("Instance not found")
    if not await instance_service.can_manage_instance(
        user_id, auth.is_system_admin, instance, session
    ):
        log.info("instances.manage_denied", user_id=user_id, instance_id=instance_id)
        raise ForbiddenError("Instance management access required")
    return user_id, instance


@router.get("", response_model=ApiResponse[InstanceListData])
async def list_instances(
    auth: AuthenticatedUser = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    """All instances the caller has been granted, with their access level."""
    try:
        user_id = await resolve_user_id(auth, session)
        rows = await instance_service.list_accessible_instances(user_id, session)
    except SQLAlchemyError:
        log.exception("instances.list_failed", email=auth.email)
        raise InternalError("Failed to fetch instances")
    items = [InstanceResponse.model_validate(r) for r in rows]
    return ApiResponse(success=True, data=InstanceListData(instances=items, count=len(items)))


@router.get("/{instanceId}", response_model=ApiResponse[InstanceData])
async def get_instance(
    instanceId: str,
    auth: AuthenticatedUser = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    instance_id = parse_id(instanceId, "Invalid instance ID")
    try:
        user_id = await resolve_user_id(auth, session)
        row = await instance_service.get_instance(user_id, instance_id, session)
    except SQLAlchemyError:
        log.exception("instances.get_failed", instance_id=instance_id)
        raise InternalError("Failed to fetch instance")
    return ApiResponse(success=True, data=InstanceData(instance=InstanceResponse.model_validate(row)))


# ---------------------------------------------------------------------------
# Access grants
# ---------------------------------------------------------------------------

@router.get("/{instanceId}/access", response_model=ApiResponse[AccessGrantListData])
async def list_access(
    instanceId: str,
    auth: AuthenticatedUser = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    instance_id = parse_id(instanceId, "Invalid instance ID")
    try:
        await _managed_instance(instance_id, auth, session)
        rows = await instance_service.list_instance_access(instance_id, session)
    except SQLAlchemyError:
        log.exception("instances.access_list_failed", instance_id=instance_id)
        raise InternalError("Failed to fetch access grants")
    grants = [AccessGrantResponse.model_validate(r) for r in rows]
    return ApiResponse(success=True, data=AccessGrantListData(grants=grants, count=len(grants)))


@router.post("/{instanceId}/access", response_model=ApiResponse[AccessGrantData])
async def grant_access(
    instanceId: str,
    body: AccessGrantRequest,
    auth: AuthenticatedUser = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    """Grant a user access. Organization admins may only grant to members."""
    instance_id = parse_id(instanceId, "Invalid instance ID")
    try:
        granted_by, _ = await _managed_instance(instance_id, auth, session)
        row = await instance_service.grant_instance_access(
            instance_id,
            body.user_id,
            body.access_level,
            session,
            granted_by=granted_by,
            enforce_membership=not auth.is_system_admin,
        )
    except SQLAlchemyError:
        log.exception("instances.grant_failed", instance_id=instance_id, user_id=body.user_id)
        raise InternalError("Failed to grant access")
    return ApiResponse(success=True, data=AccessGrantData(grant=AccessGrantResponse.model_validate(row)))


@router.delete("/{instanceId}/access/{userId}", response_model=ApiResponse[AccessRevokedData])
async def revoke_access(
    instanceId: str,
    userId: str,
    auth: AuthenticatedUser = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    instance_id = parse_id(instanceId, "Invalid instance ID")
    user_id = parse_id(userId, "Invalid user ID")
    try:
        await _managed_instance(instance_id, auth, session)
        row = await instance_service.revoke_instance_access(instance_id, user_id, session)
    except SQLAlchemyError:
        log.exception("instances.revoke_failed", instance_id=instance_id, user_id=user_id)
        raise InternalError("Failed to revoke access")
    return ApiResponse(
        success=True,
        data=AccessRevokedData(
            message="Access revoked successfully",
            grant=AccessGrantResponse.model_validate(row),
        ),
    )
