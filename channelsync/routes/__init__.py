"""API route modules for the channel sync backend.

Routers:
- sync: manual triggers, cancellation, run status and progress
- schedules: per-channel schedule registration and the trigger listing
"""

from .limits import limiter
from .schedules import router as schedules_router
from .sync import router as sync_router

__all__ = ["sync_router", "schedules_router", "limiter"]
