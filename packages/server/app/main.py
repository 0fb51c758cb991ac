"""
Team D API Server

Entry point for the FastAPI application.
"""

import time
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import router as api_router
from app.core.config import Settings, get_settings
from app.core.database import Database
from app.core.errors import register_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from app.core.tokens import TokenService

log = structlog.get_logger()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Team D API",
        description="Authentication and instance access control for the Large Event platform.",
        version=settings.version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings
    app.state.db = Database.from_settings(settings)
    app.state.tokens = TokenService.from_settings(settings)
    app.state.started_at = time.monotonic()

    # Middleware (last added runs outermost)
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_exception_handlers(app)

    app.include_router(api_router, prefix="/api")

    @app.get("/", tags=["System"])
    async def service_info():
        """Service name, version and the endpoint groups it serves."""
        return {
            "success": True,
            "data": {
                "service": settings.service_name,
                "version": settings.version,
                "endpoints": ["/api/auth", "/api/instances", "/api/users", "/api/health"],
            },
        }

    @app.on_event("startup")
    async def on_startup():
        log.info(
            "server.starting",
            service=settings.service_name,
            environment=settings.environment,
            port=settings.port,
        )

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("server.shutting_down", service=settings.service_name)
        await app.state.db.dispose()

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


app = create_app()
