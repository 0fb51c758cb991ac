"""User model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, IntIdMixin


class User(IntIdMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(nullable=False, unique=True, index=True)
    name: Optional[str] = None
    is_system_admin: bool = Field(default=False, nullable=False)
