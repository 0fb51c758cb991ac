"""
Script to create (or promote) a user for local testing.

Login is by email only, so no password is involved.
"""

import argparse
import asyncio
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import Database
from app.core.logging import configure_logging
from app.models.user import User
from app.services import users as user_service

log = structlog.get_logger()


async def ensure_user(
    email: str,
    session: AsyncSession,
    *,
    name: Optional[str] = None,
    system_admin: bool = False,
) -> User:
    """Create the user if missing; promote an existing one when `system_admin` is set."""
    email = user_service.validate_email(email)
    user = await user_service.find_user_by_email(email, session)
    if not user:
        return await user_service.create_user(
            email, session, name=name, is_system_admin=system_admin
        )

    log.info("users.exists", user_id=user.id, email=user.email)
    if system_admin and not user.is_system_admin:
        user.is_system_admin = True
        session.add(user)
        await session.flush()
        log.info("users.promoted", user_id=user.id, email=user.email)
    return user


async def main(email: str, name: Optional[str], system_admin: bool) -> None:
    settings = get_settings()
    configure_logging(settings.log_level, "text")
    db = Database.from_settings(settings)
    try:
        async with db.session() as session:
            await ensure_user(email, session, name=name, system_admin=system_admin)
    finally:
        await db.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--name", help="Display name (defaults to the email's local part)")
    parser.add_argument(
        "--system-admin", action="store_true", help="Grant the global system-admin flag"
    )

    args = parser.parse_args()

    asyncio.run(main(args.email, args.name, args.system_admin))
