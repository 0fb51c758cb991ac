"""
User service — business logic for login lookup and user administration.
"""

from __future__ import annotations

import re
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import NotFoundError, UserNotFoundError, ValidationError
from app.models.user import User

log = structlog.get_logger()

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

LOGIN_POLICY_PREPROVISIONED = "preprovisioned"
LOGIN_POLICY_AUTO_CREATE = "auto_create"


def validate_email(email: Optional[str]) -> str:
    """Return the trimmed email or raise a 400 validation error."""
    if not email or not email.strip():
        raise ValidationError("Email is required")
    email = email.strip()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email format")
    return email


async def find_user_by_email(email: str, session: AsyncSession) -> Optional[User]:
    result = await session.execute(
        select(User).where(func.lower(User.email) == email.lower())
    )
    return result.scalars().first()


async def create_user(
    email: str,
    session: AsyncSession,
    *,
    name: Optional[str] = None,
    is_system_admin: bool = False,
) -> User:
    user = User(
        email=email,
        name=name if name is not None else email.split("@")[0],
        is_system_admin=is_system_admin,
    )
    session.add(user)
    await session.flush()
    log.info("users.created", user_id=user.id, email=email, is_system_admin=is_system_admin)
    return user


async def resolve_login_user(
    email: Optional[str], policy: str, session: AsyncSession
) -> User:
    """Find the account for a login attempt according to the login policy."""
    email = validate_email(email)
    user = await find_user_by_email(email, session)
    if user:
        return user

    if policy == LOGIN_POLICY_AUTO_CREATE:
        return await create_user(email, session)

    log.info("auth.login_unknown_email", email=email)
    raise UserNotFoundError()


async def list_users(session: AsyncSession) -> list[User]:
    result = await session.execute(select(User).order_by(User.id))
    return list(result.scalars().all())


async def get_user(user_id: int, session: AsyncSession, *, missing: str = "User not found") -> User:
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError(missing)
    return user


async def delete_user(user_id: int, session: AsyncSession) -> User:
    """Delete a user. Their memberships and grants go with them."""
    user = await get_user(user_id, session)
    await session.delete(user)
    await session.flush()
    log.info("users.deleted", user_id=user_id, email=user.email)
    return user
