"""Exceptions raised by the sync scheduling subsystem."""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for sync errors."""

    def __init__(self, message: str, channel_id: str | None = None) -> None:
        super().__init__(message)
        self.channel_id = channel_id


class ChannelNotFoundError(SyncError):
    """Referenced channel does not exist."""

    def __init__(self, channel_id: str) -> None:
        super().__init__(f"Channel {channel_id} not found", channel_id)


class SyncAlreadyRunningError(SyncError):
    """A run for the channel is already in progress."""

    def __init__(self, channel_id: str, run_id: str | None = None) -> None:
        super().__init__(
            f"A sync is already running for channel {channel_id}", channel_id
        )
        self.run_id = run_id


class SyncFailedError(SyncError):
    """The fetch/download pipeline raised during a run."""

    def __init__(self, channel_id: str, run_id: str, message: str) -> None:
        super().__init__(message, channel_id)
        self.run_id = run_id


class CredentialsUnavailableError(SyncError):
    """The channel's stored API key could not be decrypted."""

    def __init__(self, channel_id: str, reason: str) -> None:
        super().__init__(
            f"API key unavailable for channel {channel_id}: {reason}", channel_id
        )


class SyncCancelled(SyncError):
    """Raised at a checkpoint when cancellation was requested.

    Control-flow signal between the pipeline and the orchestrator. It is
    never surfaced to callers.
    """

    def __init__(self, channel_id: str) -> None:
        super().__init__(f"Sync cancelled for channel {channel_id}", channel_id)


class RunLogInconsistencyError(SyncError):
    """Run log bookkeeping defect."""

    pass


class RunNotFoundError(RunLogInconsistencyError):
    """Run record does not exist."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Sync run {run_id} not found")
        self.run_id = run_id


class InvalidRunTransitionError(RunLogInconsistencyError):
    """Attempt to move a run out of a terminal state."""

    def __init__(self, run_id: str, status: str) -> None:
        super().__init__(f"Sync run {run_id} is already {status}")
        self.run_id = run_id
        self.status = status


class InvalidCronExpressionError(ValueError):
    """Cron expression could not be parsed."""

    pass
