"""Schedule manager mapping channels to recurring sync triggers.

Every enabled channel gets its own cron trigger so cadences stay
independent. Changes are applied by reconciliation (stop the old trigger,
build a new one) rather than by mutating a live trigger.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from apscheduler.jobstores.base import JobLookupError

from ..channels import Channel, ChannelStore
from ..config import DEFAULT_SYNC_SCHEDULE
from .errors import ChannelNotFoundError, SyncAlreadyRunningError, SyncFailedError
from .orchestrator import RunOutcome, SyncOrchestrator
from .run_log import RunStatus, SyncMode
from .scheduler import SyncScheduler

logger = logging.getLogger(__name__)


@dataclass
class ScheduledTrigger:
    """An armed cron trigger bound to one channel."""

    channel_id: str
    cron_expression: str
    handle: Any

    def stop(self) -> None:
        try:
            self.handle.remove()
        except JobLookupError:
            logger.debug(f"Trigger for {self.channel_id} was already removed")


@dataclass
class BatchResult:
    """Outcome of a manual sync over every enabled channel."""

    attempted: int = 0
    outcomes: list[RunOutcome] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)


class ScheduleManager:
    """Owns the channel ID to trigger mapping and starts every sync run.

    Register, unregister and update are serialized by one lock; trigger
    callbacks never touch the mapping.
    """

    def __init__(
        self,
        channels: ChannelStore,
        orchestrator: SyncOrchestrator,
        scheduler: SyncScheduler,
        default_schedule: str = DEFAULT_SYNC_SCHEDULE,
    ) -> None:
        self.channels = channels
        self.orchestrator = orchestrator
        self.scheduler = scheduler
        self.default_schedule = default_schedule
        self._triggers: dict[str, ScheduledTrigger] = {}
        self._lock = threading.RLock()

    def initialize(self) -> int:
        """Register a trigger for every enabled channel.

        A channel that fails to register is logged and skipped.

        Returns:
            Number of channels with an active trigger
        """
        logger.info("Initializing scheduler with channels from database...")

        registered = 0
        for channel in self.channels.list_enabled():
            try:
                if self.register(channel.id) is not None:
                    registered += 1
            except Exception as e:
                logger.error(f"Error registering channel {channel.id}: {e}")

        logger.info(f"Scheduler initialized with {registered} channels")
        return registered

    def register(self, channel_id: str) -> ScheduledTrigger | None:
        """Arm a trigger for a channel from its stored schedule.

        Missing and disabled channels are skipped.

        Returns:
            The new trigger, or None if the channel was skipped

        Raises:
            InvalidCronExpressionError: If the stored schedule is invalid
        """
        with self._lock:
            channel = self.channels.get(channel_id)
            if channel is None:
                logger.warning(f"Channel {channel_id} not found, skipping registration")
                return None

            self._stop(channel_id)

            if not channel.sync_enabled:
                logger.info(f"Channel {channel_id} sync is disabled, skipping registration")
                return None

            cron_expression = channel.sync_schedule or self.default_schedule
            logger.info(f"Scheduling channel {channel_id} with cron: {cron_expression}")

            handle = self.scheduler.add_job(
                job_id=f"sync_{channel_id}",
                func=self._fire,
                cron_expression=cron_expression,
                args=(channel_id,),
            )
            trigger = ScheduledTrigger(channel_id, cron_expression, handle)
            self._triggers[channel_id] = trigger
            return trigger

    def unregister(self, channel_id: str) -> bool:
        """Stop a channel's trigger.

        Returns:
            True if a trigger was removed
        """
        with self._lock:
            removed = self._stop(channel_id)
        if removed:
            logger.info(f"Channel {channel_id} unregistered from scheduled syncing")
        return removed

    def update(self, channel_id: str) -> ScheduledTrigger | None:
        """Re-register a channel after its schedule or enable flag changed."""
        with self._lock:
            self.unregister(channel_id)
            return self.register(channel_id)

    def trigger_manual(
        self,
        mode: SyncMode = SyncMode.INCREMENTAL,
        channel_id: str | None = None,
    ) -> RunOutcome | BatchResult:
        """Run a sync now, outside the recurring schedule.

        With a channel ID the channel runs once whether or not it is
        enabled, and errors propagate. Without one, every enabled channel
        runs in turn and failures are collected instead of raised.

        Raises:
            ChannelNotFoundError: If the channel does not exist
            SyncAlreadyRunningError: If the channel is already syncing
            SyncFailedError: If the pipeline failed
        """
        mode = SyncMode(mode)

        if channel_id is not None:
            logger.info(f"Triggering manual {mode.value} sync for channel {channel_id}...")
            channel = self._load(channel_id)
            return self.orchestrator.run(channel, mode)

        logger.info(f"Triggering manual {mode.value} sync for all enabled channels...")
        result = BatchResult()
        for channel in self.channels.list_enabled():
            result.attempted += 1
            try:
                result.outcomes.append(self.orchestrator.run(channel, mode))
            except SyncFailedError as e:
                result.outcomes.append(
                    RunOutcome(e.run_id, channel.id, mode, RunStatus.FAILED, str(e))
                )
            except Exception as e:
                logger.error(f"Manual sync failed for channel {channel.id}: {e}")
                result.errors[channel.id] = str(e)

        logger.info(f"Manual {mode.value} sync finished for {result.attempted} channels")
        return result

    def submit_manual(
        self,
        mode: SyncMode = SyncMode.INCREMENTAL,
        channel_id: str | None = None,
    ) -> str | None:
        """Start a manual sync in the background.

        Returns:
            Run ID to poll for a single channel; None for the batch

        Raises:
            ChannelNotFoundError: If the channel does not exist
            SyncAlreadyRunningError: If the channel is already syncing
        """
        mode = SyncMode(mode)

        if channel_id is not None:
            run_id, _ = self.orchestrator.submit(self._load(channel_id), mode)
            return run_id

        self.orchestrator.spawn(self.trigger_manual, mode)
        return None

    def get_triggers(self) -> list[dict[str, Any]]:
        """Snapshot of active triggers."""
        with self._lock:
            triggers = list(self._triggers.values())

        return [
            {
                "channel_id": trigger.channel_id,
                "cron_expression": trigger.cron_expression,
                "next_run_time": _isoformat(getattr(trigger.handle, "next_run_time", None)),
            }
            for trigger in triggers
        ]

    def has_trigger(self, channel_id: str) -> bool:
        with self._lock:
            return channel_id in self._triggers

    def stop_all(self) -> None:
        """Stop every trigger; used at shutdown."""
        with self._lock:
            for channel_id, trigger in self._triggers.items():
                trigger.stop()
                logger.info(f"Stopped scheduled job for channel {channel_id}")
            self._triggers.clear()
        logger.info("All scheduled jobs stopped")

    def _stop(self, channel_id: str) -> bool:
        trigger = self._triggers.pop(channel_id, None)
        if trigger is None:
            return False
        trigger.stop()
        return True

    def _load(self, channel_id: str) -> Channel:
        channel = self.channels.get(channel_id)
        if channel is None:
            raise ChannelNotFoundError(channel_id)
        return channel

    def _fire(self, channel_id: str) -> None:
        """Trigger callback: run an incremental sync and never raise."""
        logger.info(f"Starting scheduled incremental sync for {channel_id}...")
        try:
            channel = self.channels.get(channel_id)
            if channel is None:
                logger.warning(f"Scheduled channel {channel_id} no longer exists")
                return
            outcome = self.orchestrator.run(channel, SyncMode.INCREMENTAL)
            logger.info(
                f"Scheduled sync for {channel_id} finished: {outcome.status.value}"
            )
        except SyncAlreadyRunningError:
            logger.warning(f"Scheduled sync skipped for {channel_id}: already running")
        except Exception as e:
            logger.error(f"Scheduled sync failed for {channel_id}: {e}")


def _isoformat(value: Any) -> str | None:
    return value.isoformat() if value else None
