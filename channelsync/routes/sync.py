"""Sync control routes.

Manual triggers return immediately; the run record they open can be
polled through the status, progress and run endpoints.
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from ..config import SYNC_STATUS_LIMIT, SYNC_TRIGGER_RATE_LIMIT
from ..scheduler import (
    ChannelNotFoundError,
    ScheduleManager,
    SyncAlreadyRunningError,
    SyncMode,
)
from .limits import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["sync"])


class SyncTriggerRequest(BaseModel):
    """Request body for starting a manual sync."""

    model_config = ConfigDict(populate_by_name=True)

    sync_type: SyncMode = Field(default=SyncMode.INCREMENTAL, alias="syncType")
    channel_id: str | None = Field(default=None, alias="channelId")


class ChannelSyncRequest(BaseModel):
    """Request body for syncing one channel."""

    model_config = ConfigDict(populate_by_name=True)

    sync_type: SyncMode = Field(default=SyncMode.INCREMENTAL, alias="syncType")


class CancelRequest(BaseModel):
    """Request body for cancelling syncs; no channel cancels all."""

    model_config = ConfigDict(populate_by_name=True)

    channel_id: str | None = Field(default=None, alias="channelId")


def get_schedule_manager(request: Request) -> ScheduleManager:
    """Get the schedule manager registered on the app."""
    manager = getattr(request.app.state, "schedule_manager", None)
    if manager is None:
        raise HTTPException(status_code=500, detail="Scheduler not initialized")
    return manager


def _start_sync(
    manager: ScheduleManager, mode: SyncMode, channel_id: str | None
) -> dict[str, Any]:
    try:
        run_id = manager.submit_manual(mode, channel_id)
    except ChannelNotFoundError:
        raise HTTPException(status_code=404, detail="Channel not found")
    except SyncAlreadyRunningError as e:
        logger.warning(f"Rejected manual sync for {e.channel_id}: already running")
        raise HTTPException(
            status_code=409,
            detail=f"A sync is already running for channel {e.channel_id}",
        )

    if channel_id is not None:
        return {
            "message": f"{mode.value} sync started for channel {channel_id}",
            "channel_id": channel_id,
            "sync_type": mode.value,
            "run_id": run_id,
        }
    return {"message": f"{mode.value} sync started", "sync_type": mode.value}


@router.post("/sync/trigger")
@limiter.limit(SYNC_TRIGGER_RATE_LIMIT)
async def trigger_sync(request: Request, trigger: SyncTriggerRequest):
    """Trigger a manual sync for one channel or every enabled channel."""
    manager = get_schedule_manager(request)
    return _start_sync(manager, trigger.sync_type, trigger.channel_id)


@router.post("/channels/{channel_id}/sync")
@limiter.limit(SYNC_TRIGGER_RATE_LIMIT)
async def trigger_channel_sync(
    request: Request,
    channel_id: str,
    trigger: ChannelSyncRequest | None = None,
):
    """Trigger a manual sync for a specific channel."""
    manager = get_schedule_manager(request)
    mode = trigger.sync_type if trigger else SyncMode.INCREMENTAL
    return _start_sync(manager, mode, channel_id)


@router.get("/sync/status")
async def get_sync_status(
    request: Request,
    limit: int = Query(default=SYNC_STATUS_LIMIT, ge=1, le=200),
):
    """Get the latest sync runs, newest first."""
    manager = get_schedule_manager(request)
    return manager.orchestrator.run_log.latest(limit)


@router.get("/sync/progress")
async def get_sync_progress(request: Request, channel_id: str | None = None):
    """Get currently running syncs."""
    manager = get_schedule_manager(request)
    runs = manager.orchestrator.run_log.running_for(channel_id)
    return {"running": bool(runs), "runs": runs}


@router.get("/sync/runs/{run_id}")
async def get_sync_run(request: Request, run_id: str):
    """Get a single sync run."""
    manager = get_schedule_manager(request)
    run = manager.orchestrator.run_log.get(run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Sync run not found")
    return run


@router.post("/sync/cancel")
async def cancel_sync(request: Request, cancel: CancelRequest | None = None):
    """Request cancellation of a channel's sync, or of all syncs."""
    manager = get_schedule_manager(request)
    channel_id = cancel.channel_id if cancel else None
    result = manager.orchestrator.cancel_sync(channel_id)
    return {
        "message": "Sync cancellation requested",
        "channel_id": channel_id,
        "signalled": result.signalled,
        "reconciled": result.reconciled,
    }
