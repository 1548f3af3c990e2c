"""Schedule hooks called after channel settings change."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from ..scheduler import InvalidCronExpressionError, ScheduleManager
from .sync import get_schedule_manager

router = APIRouter(prefix="/api", tags=["schedules"])


def _apply(manager: ScheduleManager, channel_id: str, action: str) -> dict:
    if manager.channels.get(channel_id) is None:
        raise HTTPException(status_code=404, detail="Channel not found")

    try:
        if action == "register":
            trigger = manager.register(channel_id)
        else:
            trigger = manager.update(channel_id)
    except InvalidCronExpressionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "channel_id": channel_id,
        "scheduled": trigger is not None,
        "cron_expression": trigger.cron_expression if trigger else None,
    }


@router.post("/channels/{channel_id}/schedule")
async def register_schedule(request: Request, channel_id: str):
    """Start the recurring schedule for a channel."""
    return _apply(get_schedule_manager(request), channel_id, "register")


@router.put("/channels/{channel_id}/schedule")
async def update_schedule(request: Request, channel_id: str):
    """Re-read a channel's schedule and enable flag."""
    return _apply(get_schedule_manager(request), channel_id, "update")


@router.delete("/channels/{channel_id}/schedule")
async def unregister_schedule(request: Request, channel_id: str):
    """Stop the recurring schedule for a channel."""
    manager = get_schedule_manager(request)
    removed = manager.unregister(channel_id)
    return {"channel_id": channel_id, "removed": removed}


@router.get("/scheduler/jobs")
async def list_scheduled_jobs(request: Request):
    """List active triggers with their next run time."""
    manager = get_schedule_manager(request)
    triggers = manager.get_triggers()
    return {
        "scheduler_running": manager.scheduler.is_running,
        "jobs": triggers,
        "total_jobs": len(triggers),
    }
