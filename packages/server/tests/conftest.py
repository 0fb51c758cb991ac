"""
Shared fixtures for API server tests.

Every test gets its own SQLite database file, a fresh application and an
httpx client bound to it in-process.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import Settings
from app.main import create_app
from app.scripts.seed import SYSTEM_ADMIN_EMAIL, seed_database
from teamd_shared.schemas.users import TokenUser


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'teamd.db'}",
        log_level="warning",
        log_format="text",
    )


@pytest.fixture
async def app(settings):
    app = create_app(settings)
    await app.state.db.create_all()
    yield app
    await app.state.db.dispose()


@pytest.fixture
async def seeded(app) -> dict:
    async with app.state.db.session() as session:
        ids = await seed_database(session)
    return ids


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers(app, seeded):
    """Bearer headers for a seeded user, issued without going through /login."""

    def _headers(email: str) -> dict:
        user = TokenUser(
            id=seeded["users"][email],
            email=email,
            is_system_admin=email == SYSTEM_ADMIN_EMAIL,
        )
        return {"Authorization": f"Bearer {app.state.tokens.issue(user)}"}

    return _headers
