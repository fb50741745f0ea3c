"""Job marketplace API routes."""

from .jobs import router as jobs_router
from .milestones import router as milestones_router

__all__ = ["jobs_router", "milestones_router"]
