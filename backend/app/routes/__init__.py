"""API routes."""

from .commerce import jobs_router, milestones_router
from .notifications import router as notifications_router

__all__ = [
    "jobs_router",
    "milestones_router",
    "notifications_router",
]
