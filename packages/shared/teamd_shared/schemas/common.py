from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    LOGIN_ERROR = "LOGIN_ERROR"


class AccessLevel(str, Enum):
    WEB_USER = "web_user"
    WEB_ADMIN = "web_admin"
    BOTH = "both"


class CamelModel(BaseModel):
    """Base for wire models: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorDetail(BaseModel):
    message: str
    code: Optional[str] = None
    details: Optional[Any] = None


class ApiResponse(BaseModel, Generic[T]):
    """Standard envelope wrapping every API response."""

    success: bool
    data: Optional[T] = None
    error: Optional[ErrorDetail] = None


class MessageData(BaseModel):
    message: str


class HealthData(BaseModel):
    status: str
    service: str
    timestamp: str
    uptime: float


class DetailedHealthData(HealthData):
    environment: str
    version: str
    database: str
