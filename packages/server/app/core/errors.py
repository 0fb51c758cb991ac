"""
API error taxonomy and the handlers that render every failure as the
standard `{success: false, error: {...}}` envelope.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from teamd_shared.schemas.common import ErrorCode

log = structlog.get_logger()


class APIError(HTTPException):
    """HTTPException carrying a machine-readable error code."""

    status_code = 500
    code = ErrorCode.INTERNAL_ERROR
    default_message = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[ErrorCode] = None,
        details: Any = None,
    ):
        super().__init__(status_code=self.status_code, detail=message or self.default_message)
        if code is not None:
            self.code = code
        self.details = details

    @property
    def message(self) -> str:
        return self.detail


class ValidationError(APIError):
    status_code = 400
    code = ErrorCode.VALIDATION_ERROR
    default_message = "Validation error"


class UnauthorizedError(APIError):
    status_code = 401
    code = ErrorCode.UNAUTHORIZED
    default_message = "Unauthorized"


class ForbiddenError(APIError):
    status_code = 403
    code = ErrorCode.FORBIDDEN
    default_message = "Forbidden"


class AccessDeniedError(ForbiddenError):
    default_message = "Access denied to this instance"


class NotFoundError(APIError):
    status_code = 404
    code = ErrorCode.NOT_FOUND
    default_message = "Not found"


class UserNotFoundError(NotFoundError):
    code = ErrorCode.USER_NOT_FOUND
    default_message = "Account not found. Please contact an administrator."


class ConflictError(APIError):
    status_code = 409
    code = ErrorCode.CONFLICT
    default_message = "Conflict"


class InternalError(APIError):
    pass


# Status codes raised as plain HTTPException (by FastAPI/Starlette itself)
_STATUS_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
}


def error_response(
    status_code: int,
    message: str,
    code: Optional[str] = None,
    details: Any = None,
) -> JSONResponse:
    error: dict[str, Any] = {"message": message, "code": code}
    if details is not None:
        error["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

async def _api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("api.error", path=request.url.path, code=exc.code.value, message=exc.message)
    return error_response(exc.status_code, exc.message, exc.code.value, exc.details)


async def _http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code = _STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    return error_response(exc.status_code, str(exc.detail), code.value)


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return error_response(400, "Validation error", ErrorCode.VALIDATION_ERROR.value, errors)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("api.unhandled_error", path=request.url.path, method=request.method)
    return error_response(500, "Internal server error", ErrorCode.INTERNAL_ERROR.value)


def register_exception_handlers(app: FastAPI) -> None:
    """Install envelope-producing handlers for every error path."""
    app.add_exception_handler(APIError, _api_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
