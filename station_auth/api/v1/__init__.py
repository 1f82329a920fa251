"""
API v1 package.

Contains versioned API routes for the station account and event API.
"""

from fastapi import APIRouter

from station_auth.api.v1 import admin, auth, events

router = APIRouter()
router.include_router(auth.router)
router.include_router(admin.router)
router.include_router(events.router)

__all__ = ["router"]
