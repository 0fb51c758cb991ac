"""
Shared fixtures for portal tests.

FakeApi answers the Team D endpoints the portal uses through an
httpx.MockTransport, issuing real (HS256) tokens so client-side decoding works.
"""

from __future__ import annotations

import json
import time

import httpx
import jwt
import pytest

from teamd_portal.browser import Browser
from teamd_portal.config import ApiConfig, PortalConfig

SECRET = "portal-test-secret"
API_URL = "http://teamd.test/api"

USERS = {
    "admin@system.com": {"id": 1, "email": "admin@system.com", "name": "System Administrator", "isSystemAdmin": True},
    "user@mes.dev": {"id": 11, "email": "user@mes.dev", "name": "MES User", "isSystemAdmin": False},
}

MES = {"id": 3, "name": "McMaster Engineering Society", "acronym": "MES"}


def _instance(instance_id: int, name: str, level: str) -> dict:
    return {"id": instance_id, "name": name, "accessLevel": level, "ownerOrganization": MES}


GRANTS = {
    "admin@system.com": [_instance(1, "MES Dashboard", "both"), _instance(2, "Fireball", "both")],
    "user@mes.dev": [_instance(1, "MES Dashboard", "web_user"), _instance(2, "Fireball", "web_user")],
}


def make_token(email: str, *, expires_in: int = 3600, secret: str = SECRET) -> str:
    now = int(time.time())
    return jwt.encode(
        {"user": USERS[email], "iat": now, "exp": now + expires_in},
        secret,
        algorithm="HS256",
    )


def _ok(data) -> httpx.Response:
    return httpx.Response(200, json={"success": True, "data": data})


def _fail(status: int, message: str, code: str) -> httpx.Response:
    return httpx.Response(status, json={"success": False, "error": {"message": message, "code": code}})


class FakeApi:
    """Minimal in-memory Team D API."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.grants = {email: list(items) for email, items in GRANTS.items()}
        self.rejected_tokens: set[str] = set()

    def _user(self, request: httpx.Request):
        auth = request.headers.get("Authorization", "")
        if not auth.startswith("Bearer ") or auth[7:] in self.rejected_tokens:
            return None
        try:
            payload = jwt.decode(auth[7:], SECRET, algorithms=["HS256"])
        except jwt.PyJWTError:
            return None
        return payload["user"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")

        if path == "/auth/login":
            email = json.loads(request.content or b"{}").get("email")
            if email not in USERS:
                return _fail(404, "Account not found. Please contact an administrator.", "USER_NOT_FOUND")
            return _ok({"user": USERS[email], "token": make_token(email)})
        if path == "/auth/logout":
            return _ok({"message": "Logged out successfully"})
        if path == "/health":
            return _ok({"status": "healthy", "service": "team-d-api", "timestamp": "2026-01-01T00:00:00+00:00", "uptime": 1.5})

        user = self._user(request)
        if user is None:
            return _fail(401, "Authentication required", "UNAUTHORIZED")

        if path == "/auth/me":
            return _ok({"user": user})
        if path == "/auth/token":
            return _ok({"token": request.headers["Authorization"][7:]})
        if path == "/users/me/profile":
            return _ok({"profile": {**user, "createdAt": "2026-01-01T00:00:00"}})
        if path == "/instances":
            items = self.grants.get(user["email"], [])
            return _ok({"instances": items, "count": len(items)})
        if path.startswith("/instances/"):
            instance_id = int(path.rsplit("/", 1)[1])
            for item in self.grants.get(user["email"], []):
                if item["id"] == instance_id:
                    return _ok({"instance": item})
            return _fail(403, "Access denied to this instance", "FORBIDDEN")
        return _fail(404, "Not Found", "NOT_FOUND")


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def transport(fake_api) -> httpx.MockTransport:
    return httpx.MockTransport(fake_api.handler)


@pytest.fixture
def config() -> PortalConfig:
    return PortalConfig(api=ApiConfig(url=API_URL))


@pytest.fixture
def browser() -> Browser:
    return Browser()


@pytest.fixture
def token_for():
    """Issue a token for one of the fake API's users."""
    return make_token
