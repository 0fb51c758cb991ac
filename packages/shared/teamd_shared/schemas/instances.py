"""
Instance and access-grant schemas shared between server and portal client.

Covers: instance listings/detail as seen by a user, owning-organization
summaries, and the grant management requests/responses.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from .common import AccessLevel, CamelModel


class OrganizationSummary(CamelModel):
    id: int
    name: str
    acronym: Optional[str] = None


class InstanceResponse(CamelModel):
    """An instance as seen by one user, carrying that user's access level."""
    id: int
    name: str
    access_level: AccessLevel
    owner_organization: OrganizationSummary


class InstanceListData(BaseModel):
    instances: List[InstanceResponse]
    count: int


class InstanceData(BaseModel):
    instance: InstanceResponse


# ---------------------------------------------------------------------------
# Access grants
# ---------------------------------------------------------------------------

class AccessGrantRequest(CamelModel):
    user_id: int
    access_level: AccessLevel


class AccessGrantResponse(CamelModel):
    user_id: int
    instance_id: int
    email: Optional[str] = None
    name: Optional[str] = None
    access_level: AccessLevel
    granted_by: Optional[int] = None
    granted_at: Optional[datetime] = None


class AccessGrantListData(BaseModel):
    grants: List[AccessGrantResponse]
    count: int


class AccessGrantData(BaseModel):
    grant: AccessGrantResponse


class AccessRevokedData(BaseModel):
    message: str
    grant: AccessGrantResponse
