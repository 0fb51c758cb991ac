"""
API Router

Everything is served under /api.
"""

from fastapi import APIRouter

from . import auth, health, instances, users

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(instances.router, prefix="/instances", tags=["Instances"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(health.router, prefix="/health", tags=["System"])
