"""
Health check endpoints for liveness probes and operators.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.auth import get_app_settings
from app.core.config import Settings
from teamd_shared.schemas.common import ApiResponse, DetailedHealthData, HealthData

log = structlog.get_logger()
router = APIRouter()


def _base(request: Request, settings: Settings) -> dict:
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    return {
        "status": "healthy",
        "service": settings.service_name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - started_at, 3),
    }


@router.get("", response_model=ApiResponse[HealthData])
async def health(request: Request, settings: Settings = Depends(get_app_settings)):
    """Liveness probe. Never touches the database."""
    return ApiResponse(success=True, data=HealthData(**_base(request, settings)))


@router.get("/detailed", response_model=ApiResponse[DetailedHealthData])
async def health_detailed(request: Request, settings: Settings = Depends(get_app_settings)):
    """Liveness plus environment, version and database connectivity."""
    database = "connected"
    try:
        async with request.app.state.db.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError):
        log.exception("health.database_unreachable")
        database = "disconnected"

    data = _base(request, settings)
    if database != "connected":
        data["status"] = "degraded"
    return ApiResponse(
        success=True,
        data=DetailedHealthData(
            **data,
            environment=settings.environment,
            version=settings.version,
            database=database,
        ),
    )
