"""User and authentication schemas shared by the API server and portal client."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from .common import CamelModel


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class LoginRequest(BaseModel):
    """Email-only login. `password` is accepted and ignored."""
    email: Optional[str] = None
    password: Optional[str] = None


# ---------------------------------------------------------------------------
# Token snapshot
# ---------------------------------------------------------------------------

class TokenUser(CamelModel):
    """User snapshot embedded in a session token.

    Mobile and local-dev tokens may omit `id`, `name` and `isSystemAdmin`.
    """
    id: Optional[int] = None
    email: str
    name: Optional[str] = None
    is_system_admin: bool = False


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserResponse(CamelModel):
    id: int
    email: str
    name: Optional[str] = None
    is_system_admin: bool = False
    created_at: Optional[datetime] = None


class LoginData(BaseModel):
    user: UserResponse
    token: str


class CurrentUserData(BaseModel):
    user: TokenUser


class TokenData(BaseModel):
    token: str


class UserData(BaseModel):
    user: UserResponse


class UserListData(BaseModel):
    users: List[UserResponse]
    count: int


class ProfileData(BaseModel):
    profile: UserResponse


class UserDeletedData(BaseModel):
    message: str
    user: UserResponse
