"""Per-user instance access grants: the single source of truth for authorization."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import IntIdMixin, _utcnow


class UserInstanceAccess(IntIdMixin, SQLModel, table=True):
    __tablename__ = "user_instance_access"
    __table_args__ = (sa.UniqueConstraint("user_id", "instance_id"),)

    user_id: int = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False, index=True)
    instance_id: int = Field(
        foreign_key="instances.id", ondelete="CASCADE", nullable=False, index=True
    )
    access_level: str = Field(nullable=False)  # web_user | web_admin | both
    granted_by: Optional[int] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    granted_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )
