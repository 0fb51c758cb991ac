"""User-Organization membership (eligibility pool, never access by itself)."""

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, IntIdMixin


class UserOrganization(IntIdMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "user_organizations"
    __table_args__ = (sa.UniqueConstraint("user_id", "organization_id"),)

    user_id: int = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False, index=True)
    organization_id: int = Field(
        foreign_key="organizations.id", ondelete="CASCADE", nullable=False, index=True
    )
    is_organization_admin: bool = Field(default=False, nullable=False)
