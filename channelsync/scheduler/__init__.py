"""Background scheduling and execution of channel sync runs.

Uses APScheduler for per-channel cron triggers, a thread pool for run
execution, and SQLite for the run log.
"""

from .cancellation import CancellationRegistry
from .errors import (
    ChannelNotFoundError,
    CredentialsUnavailableError,
    InvalidCronExpressionError,
    InvalidRunTransitionError,
    RunLogInconsistencyError,
    RunNotFoundError,
    SyncAlreadyRunningError,
    SyncCancelled,
    SyncError,
    SyncFailedError,
)
from .manager import BatchResult, ScheduledTrigger, ScheduleManager
from .orchestrator import CancelResult, RunOutcome, SyncOrchestrator
from .pipeline import DryRunPipeline, StepPipeline, SyncPipeline, load_pipeline
from .run_log import RunLogStore, RunStatus, SyncMode
from .scheduler import SyncScheduler

__all__ = [
    "CancellationRegistry",
    "RunLogStore",
    "RunStatus",
    "SyncMode",
    "SyncOrchestrator",
    "RunOutcome",
    "CancelResult",
    "ScheduleManager",
    "ScheduledTrigger",
    "BatchResult",
    "SyncScheduler",
    # Pipeline contract
    "SyncPipeline",
    "StepPipeline",
    "DryRunPipeline",
    "load_pipeline",
    # Errors
    "SyncError",
    "ChannelNotFoundError",
    "CredentialsUnavailableError",
    "SyncAlreadyRunningError",
    "SyncFailedError",
    "SyncCancelled",
    "RunLogInconsistencyError",
    "RunNotFoundError",
    "InvalidRunTransitionError",
    "InvalidCronExpressionError",
]
