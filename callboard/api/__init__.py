"""
Callboard API package initialization.

This package contains FastAPI router modules for the live-update service:
- session: live filter session (filters, search, refresh)
- notifications: active alert and dismissal
- calls: per-call detail grouping
"""

from fastapi import APIRouter

# Import router modules
from callboard.api.session import router as session_router
from callboard.api.notifications import router as notifications_router
from callboard.api.calls import router as calls_router

# Create main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(session_router, prefix="/session", tags=["session"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["notifications"])
api_router.include_router(calls_router, prefix="/calls", tags=["calls"])

# Export all routers for selective imports
__all__ = [
    "api_router",
    "session_router",
    "notifications_router",
    "calls_router",
]
