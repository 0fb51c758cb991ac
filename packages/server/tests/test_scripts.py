"""
Tests for the seed and local-admin scripts.
"""

from __future__ import annotations

from sqlalchemy import func
from sqlmodel import select

from app.models.instance import Instance
from app.models.instance_access import UserInstanceAccess
from app.models.organization import Organization
from app.models.user import User
from app.models.user_org import UserOrganization
from app.scripts.create_local_admin import ensure_user


async def _count(session, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


async def test_seed_counts(app, seeded):
    async with app.state.db.session() as session:
        assert await _count(session, Organization) == 3
        assert await _count(session, Instance) == 7
        assert await _count(session, User) == 13
        assert await _count(session, UserOrganization) == 12
        assert await _count(session, UserInstanceAccess) == 27


async def test_seed_system_admin_grants_have_no_granter(app, seeded):
    admin_id = seeded["users"]["admin@system.com"]
    async with app.state.db.session() as session:
        result = await session.execute(
            select(UserInstanceAccess).where(UserInstanceAccess.user_id == admin_id)
        )
        grants = result.scalars().all()
    assert len(grants) == 7
    assert {g.granted_by for g in grants} == {None}
    assert {g.access_level for g in grants} == {"both"}


async def test_ensure_user_creates(app):
    async with app.state.db.session() as session:
        user = await ensure_user("ops@large-event.com", session)
    assert user.id is not None
    assert user.name == "ops"
    assert user.is_system_admin is False


async def test_ensure_user_promotes_existing(app, seeded):
    async with app.state.db.session() as session:
        user = await ensure_user("user@cale.dev", session, system_admin=True)
    assert user.id == seeded["users"]["user@cale.dev"]
    assert user.is_system_admin is True

    async with app.state.db.session() as session:
        again = await ensure_user("user@cale.dev", session)
    assert again.is_system_admin is True
