"""FastAPI backend for the channel sync scheduler."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .channels import ChannelStore
from .config import (
    CORS_ORIGINS,
    DB_PATH,
    LOG_LEVEL,
    SYNC_CRON,
    SYNC_PIPELINE,
    YOUTUBE_API_KEY,
    YOUTUBE_CHANNEL_ID,
)
from .routes import limiter, schedules_router, sync_router
from .scheduler import (
    RunLogStore,
    ScheduleManager,
    SyncOrchestrator,
    SyncPipeline,
    SyncScheduler,
    load_pipeline,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_schedule_manager(
    db_path: str = DB_PATH,
    pipeline: SyncPipeline | None = None,
) -> ScheduleManager:
    """Wire the stores, orchestrator and scheduler together.

    Args:
        db_path: SQLite database shared by the channel store and run log
        pipeline: Sync pipeline; loaded from SYNC_PIPELINE if omitted

    Returns:
        ScheduleManager whose scheduler has not been started yet
    """
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    channels = ChannelStore(db_path)
    run_log = RunLogStore(db_path)
    orchestrator = SyncOrchestrator(run_log, pipeline or load_pipeline(SYNC_PIPELINE))
    return ScheduleManager(channels, orchestrator, SyncScheduler())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the scheduler on startup and stop every trigger on shutdown."""
    manager: ScheduleManager | None = getattr(app.state, "schedule_manager", None)
    if manager is None:
        manager = build_schedule_manager()
        app.state.schedule_manager = manager

    manager.channels.import_from_env(YOUTUBE_CHANNEL_ID, YOUTUBE_API_KEY, SYNC_CRON)

    # Runs left open by a previous process would block their channels
    manager.orchestrator.reconcile_interrupted()

    manager.scheduler.start()
    manager.initialize()

    yield

    manager.stop_all()
    manager.scheduler.shutdown(wait=False)
    manager.orchestrator.shutdown(wait=True)
    logger.info("Scheduler shutdown complete")


app = FastAPI(
    title="Channel Sync",
    description="Scheduling and orchestration of channel sync runs",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sync_router)
app.include_router(schedules_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
