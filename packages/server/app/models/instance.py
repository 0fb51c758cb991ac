"""Instance model: a switchable workspace owned by one organization."""

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, IntIdMixin


class Instance(IntIdMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "instances"

    name: str = Field(nullable=False)
    owner_organization_id: int = Field(
        foreign_key="organizations.id", ondelete="CASCADE", nullable=False, index=True
    )
