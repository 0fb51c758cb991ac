"""Organization model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, IntIdMixin


class Organization(IntIdMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    name: str = Field(nullable=False, index=True)
    acronym: Optional[str] = None
