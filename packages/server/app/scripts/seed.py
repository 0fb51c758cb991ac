"""
Seed the database with the reference organizations, instances, users and grants.

    python -m app.scripts.seed [--create-tables]

Users are created or reused by email. Organizations, instances, memberships and
grants are inserted as-is, so run it against an empty database.
"""

import argparse
import asyncio

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import Database
from app.core.logging import configure_logging
from app.models.instance import Instance
from app.models.organization import Organization
from app.models.user_org import UserOrganization
from app.services import instances as instance_service
from app.services import users as user_service
from teamd_shared.schemas.common import AccessLevel

log = structlog.get_logger()

ORGANIZATIONS = [
    ("Canadian Federation of Engineering Students", "CFES"),
    ("Conference on Advocacy and Leadership in Engineering", "CALE"),
    ("McMaster Engineering Society", "MES"),
]

# (instance name, owning organization acronym)
INSTANCES = [
    ("MES Dashboard", "MES"),
    ("Fireball", "MES"),
    ("Toga", "MES"),
    ("Grad", "MES"),
    ("Graffiti", "MES"),
    ("CALE 2026", "CALE"),
    ("National Survey", "CFES"),
]

MES_INSTANCES = ["MES Dashboard", "Fireball", "Toga", "Grad", "Graffiti"]

SYSTEM_ADMIN_EMAIL = "admin@system.com"

# (email, name, is_system_admin)
USERS = [
    (SYSTEM_ADMIN_EMAIL, "System Administrator", True),
    ("admin@mes.dev", "MES Admin", False),
    ("admin@cfes.dev", "CFES Admin", False),
    ("admin@cale.dev", "CALE Admin", False),
    ("admin@fireball.dev", "Fireball Admin", False),
    ("admin@toga.dev", "Toga Admin", False),
    ("admin@grad.dev", "Grad Admin", False),
    ("admin@graffiti.dev", "Graffiti Admin", False),
    ("admin@natsurvey.dev", "NatSurvey Admin", False),
    ("admin@cale2026.dev", "CALE 2026 Admin", False),
    ("user@mes.dev", "MES User", False),
    ("user@cfes.dev", "CFES User", False),
    ("user@cale.dev", "CALE User", False),
]

# (email, organization acronym, is_organization_admin)
MEMBERSHIPS = [
    ("admin@mes.dev", "MES", True),
    ("admin@cfes.dev", "CFES", True),
    ("admin@cale.dev", "CALE", True),
    ("user@mes.dev", "MES", False),
    ("user@cfes.dev", "CFES", False),
    ("user@cale.dev", "CALE", False),
    ("admin@fireball.dev", "MES", False),
    ("admin@toga.dev", "MES", False),
    ("admin@grad.dev", "MES", False),
    ("admin@graffiti.dev", "MES", False),
    ("admin@natsurvey.dev", "CFES", False),
    ("admin@cale2026.dev", "CALE", False),
]

# (email, instance name, access level, granted by email)
GRANTS = (
    [(SYSTEM_ADMIN_EMAIL, name, AccessLevel.BOTH, None) for name, _ in INSTANCES]
    + [("admin@mes.dev", name, AccessLevel.BOTH, SYSTEM_ADMIN_EMAIL) for name in MES_INSTANCES]
    + [
        ("admin@cfes.dev", "National Survey", AccessLevel.BOTH, SYSTEM_ADMIN_EMAIL),
        ("admin@cale.dev", "CALE 2026", AccessLevel.BOTH, SYSTEM_ADMIN_EMAIL),
        ("admin@fireball.dev", "Fireball", AccessLevel.WEB_ADMIN, "admin@mes.dev"),
        ("admin@toga.dev", "Toga", AccessLevel.WEB_ADMIN, "admin@mes.dev"),
        ("admin@grad.dev", "Grad", AccessLevel.WEB_ADMIN, "admin@mes.dev"),
        ("admin@graffiti.dev", "Graffiti", AccessLevel.WEB_ADMIN, "admin@mes.dev"),
        ("admin@natsurvey.dev", "National Survey", AccessLevel.WEB_ADMIN, "admin@cfes.dev"),
        ("admin@cale2026.dev", "CALE 2026", AccessLevel.WEB_ADMIN, "admin@cale.dev"),
    ]
    + [("user@mes.dev", name, AccessLevel.WEB_USER, "admin@mes.dev") for name in MES_INSTANCES]
    + [
        ("user@cfes.dev", "National Survey", AccessLevel.WEB_USER, "admin@cfes.dev"),
        ("user@cale.dev", "CALE 2026", AccessLevel.WEB_USER, "admin@cale.dev"),
    ]
)


async def seed_database(session: AsyncSession) -> dict[str, dict[str, int]]:
    """Insert the reference data set. Returns ids keyed by acronym, instance name and email."""
    orgs: dict[str, int] = {}
    for name, acronym in ORGANIZATIONS:
        org = Organization(name=name, acronym=acronym)
        session.add(org)
        await session.flush()
        orgs[acronym] = org.id

    instances: dict[str, int] = {}
    for name, acronym in INSTANCES:
        instance = Instance(name=name, owner_organization_id=orgs[acronym])
        session.add(instance)
        await session.flush()
        instances[name] = instance.id

    users: dict[str, int] = {}
    for email, name, is_system_admin in USERS:
        user = await user_service.find_user_by_email(email, session)
        if user:
            log.info("seed.user_exists", email=email)
        else:
            user = await user_service.create_user(
                email, session, name=name, is_system_admin=is_system_admin
            )
        users[email] = user.id

    for email, acronym, is_admin in MEMBERSHIPS:
        session.add(
            UserOrganization(
                user_id=users[email],
                organization_id=orgs[acronym],
                is_organization_admin=is_admin,
            )
        )
    await session.flush()

    for email, instance_name, level, granted_by in GRANTS:
        await instance_service.grant_instance_access(
            instances[instance_name],
            users[email],
            level,
            session,
            granted_by=users[granted_by] if granted_by else None,
            enforce_membership=False,
        )

    log.info(
        "seed.completed",
        organizations=len(orgs),
        instances=len(instances),
        users=len(users),
        memberships=len(MEMBERSHIPS),
        grants=len(GRANTS),
    )
    return {"organizations": orgs, "instances": instances, "users": users}


async def main(create_tables: bool) -> None:
    settings = get_settings()
    configure_logging(settings.log_level, "text")
    db = Database.from_settings(settings)
    try:
        if create_tables:
            await db.create_all()
        async with db.session() as session:
            await seed_database(session)
    finally:
        await db.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Team D database.")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before seeding (local development)",
    )
    args = parser.parse_args()

    asyncio.run(main(args.create_tables))
