"""
Instance access service — answers "which instances can this user see",
"can this user open instance X", and manages the grants behind both.

Authorization reads only `user_instance_access`. Organization membership is an
eligibility pool for grants and never implies access.
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import (
    AccessDeniedError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.models.instance import Instance
from app.models.instance_access import UserInstanceAccess
from app.models.organization import Organization
from app.models.user import User
from app.models.user_org import UserOrganization
from teamd_shared.schemas.common import AccessLevel

log = structlog.get_logger()


def _instance_summary(
    instance_id: int,
    name: str,
    access_level: str,
    org: Organization,
) -> dict:
    return {
        "id": instance_id,
        "name": name,
        "access_level": access_level,
        "owner_organization": {
            "id": org.id,
            "name": org.name,
            "acronym": org.acronym,
        },
    }


def _grant_info(access: UserInstanceAccess, user: Optional[User] = None) -> dict:
    return {
        "user_id": access.user_id,
        "instance_id": access.instance_id,
        "email": user.email if user else None,
        "name": user.name if user else None,
        "access_level": access.access_level,
        "granted_by": access.granted_by,
        "granted_at": access.granted_at,
    }


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------

async def list_accessible_instances(user_id: int, session: AsyncSession) -> list[dict]:
    """All instances the user holds a grant on, with the caller's access level."""
    result = await session.execute(
        select(UserInstanceAccess.access_level, Instance.id, Instance.name, Organization)
        .join(Instance, UserInstanceAccess.instance_id == Instance.id)
        .join(Organization, Instance.owner_organization_id == Organization.id)
        .where(UserInstanceAccess.user_id == user_id)
        .order_by(Instance.id)
    )
    return [
        _instance_summary(instance_id, name, access_level, org)
        for access_level, instance_id, name, org in result.all()
    ]


async def get_access(
    user_id: int, instance_id: int, session: AsyncSession
) -> Optional[UserInstanceAccess]:
    result = await session.execute(
        select(UserInstanceAccess).where(
            UserInstanceAccess.user_id == user_id,
            UserInstanceAccess.instance_id == instance_id,
        )
    )
    return result.scalar_one_or_none()


async def get_instance(user_id: int, instance_id: int, session: AsyncSession) -> dict:
    """Instance detail for a user.

    The grant is checked before existence: without a grant the caller gets 403
    whether or not the instance exists.
    """
    access = await get_access(user_id, instance_id, session)
    if not access:
        log.info("instances.access_denied", user_id=user_id, instance_id=instance_id)
        raise AccessDeniedError()

    result = await session.execute(
        select(Instance, Organization)
        .join(Organization, Instance.owner_organization_id == Organization.id)
        .where(Instance.id == instance_id)
    )
    row = result.one_or_none()
    if not row:
        raise NotFoundError("Instance not found")

    instance, org = row
    return _instance_summary(instance.id, instance.name, access.access_level, org)


# ---------------------------------------------------------------------------
# Grant management
# ---------------------------------------------------------------------------

async def find_instance(instance_id: int, session: AsyncSession) -> Optional[Instance]:
    result = await session.execute(select(Instance).where(Instance.id == instance_id))
    return result.scalar_one_or_none()


async def is_organization_member(
    user_id: int, organization_id: int, session: AsyncSession, *, admin: bool = False
) -> bool:
    query = select(UserOrganization.id).where(
        UserOrganization.user_id == user_id,
        UserOrganization.organization_id == organization_id,
    )
    if admin:
        query = query.where(UserOrganization.is_organization_admin.is_(True))
    result = await session.execute(query)
    return result.first() is not None


async def can_manage_instance(
    user_id: int, is_system_admin: bool, instance: Instance, session: AsyncSession
) -> bool:
    """System admins manage every instance; org admins manage their org's instances."""
    if is_system_admin:
        return True
    return await is_organization_member(
        user_id, instance.owner_organization_id, session, admin=True
    )


async def list_instance_access(instance_id: int, session: AsyncSession) -> list[dict]:
    result = await session.execute(
        select(UserInstanceAccess, User)
        .join(User, UserInstanceAccess.user_id == User.id)
        .where(UserInstanceAccess.instance_id == instance_id)
        .order_by(User.id)
    )
    return [_grant_info(access, user) for access, user in result.all()]


async def grant_instance_access(
    instance_id: int,
    user_id: int,
    access_level: AccessLevel,
    session: AsyncSession,
    *,
    granted_by: Optional[int] = None,
    enforce_membership: bool = True,
) -> dict:
    """Insert a single grant row. Existing grants are never overwritten."""
    instance = await find_instance(instance_id, session)
    if not instance:
        raise NotFoundError("Instance not found")

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")

    if enforce_membership and not await is_organization_member(
        user_id, instance.owner_organization_id, session
    ):
        raise ValidationError("User is not a member of the instance's owning organization")

    if await get_access(user_id, instance_id, session):
        raise ConflictError("User already has access to this instance")

    access = UserInstanceAccess(
        user_id=user_id,
        instance_id=instance_id,
        access_level=AccessLevel(access_level).value,
        granted_by=granted_by,
    )
    session.add(access)
    await session.flush()

    log.info(
        "instances.access_granted",
        instance_id=instance_id,
        user_id=user_id,
        access_level=access.access_level,
        granted_by=granted_by,
    )
    return _grant_info(access, user)


async def revoke_instance_access(
    instance_id: int, user_id: int, session: AsyncSession
) -> dict:
    """Delete a grant. There is no persisted "none" level; no row means no access."""
    access = await get_access(user_id, instance_id, session)
    if not access:
        raise NotFoundError("Access grant not found")

    info = _grant_info(access)
    await session.delete(access)
    await session.flush()
    log.info("instances.access_revoked", instance_id=instance_id, user_id=user_id)
    return info
