"""Sync orchestrator for executing channel sync runs.

Owns the run state machine: a run is opened as ``running`` and closed
exactly once as ``completed``, ``failed`` or ``cancelled``. At most one
run per channel may be running; runs for different channels execute
concurrently on a thread pool.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, TYPE_CHECKING

from ..config import SYNC_MAX_WORKERS
from .cancellation import CancellationRegistry
from .errors import (
    CredentialsUnavailableError,
    SyncAlreadyRunningError,
    SyncCancelled,
    SyncFailedError,
)
from .pipeline import Checkpoint, SyncPipeline
from .run_log import CANCELLED_BY_USER, RunLogStore, RunStatus, SyncMode

if TYPE_CHECKING:
    from ..channels.store import Channel

logger = logging.getLogger(__name__)

INTERRUPTED_BY_RESTART = "Interrupted by restart"


@dataclass
class RunOutcome:
    """Terminal result of one sync run."""

    run_id: str
    channel_id: str
    mode: SyncMode
    status: RunStatus
    error: str | None = None


@dataclass
class CancelResult:
    """What a cancellation request touched."""

    signalled: list[str] = field(default_factory=list)
    reconciled: int = 0


class SyncOrchestrator:
    """Runs the sync pipeline for one channel at a time per channel.

    Coordinates the run log, the cancellation registry and the external
    pipeline. The pipeline polls cancellation through the checkpoint it is
    handed; the orchestrator resolves the run once the pipeline returns.
    """

    def __init__(
        self,
        run_log: RunLogStore,
        pipeline: SyncPipeline,
        cancellations: CancellationRegistry | None = None,
        max_workers: int = SYNC_MAX_WORKERS,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            run_log: Run log store
            pipeline: Fetch/download pipeline
            cancellations: Cancellation registry (a new one if omitted)
            max_workers: Thread pool size for submitted runs
        """
        self.run_log = run_log
        self.pipeline = pipeline
        self.cancellations = cancellations or CancellationRegistry()
        self._active: dict[str, str] = {}
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="sync"
        )

    def begin(self, channel_id: str, mode: SyncMode) -> str:
        """Open a run record for a channel.

        Args:
            channel_id: Channel to sync
            mode: INCREMENTAL or FULL

        Returns:
            New run ID

        Raises:
            SyncAlreadyRunningError: If the channel has a running record
        """
        mode = SyncMode(mode)
        with self._lock:
            running = self.run_log.running_for(channel_id)
            if running or channel_id in self._active:
                run_id = running[0]["id"] if running else self._active[channel_id]
                raise SyncAlreadyRunningError(channel_id, run_id)

            # A flag left over from an earlier run must not cancel this one
            self.cancellations.consume(channel_id)
            run_id = self.run_log.open(channel_id, mode)
            self._active[channel_id] = run_id

        return run_id

    def execute(self, run_id: str, channel: Channel, mode: SyncMode) -> RunOutcome:
        """Run the pipeline for an opened run and close the record.

        Returns:
            Outcome of a completed or cancelled run

        Raises:
            SyncFailedError: If the pipeline raised
        """
        mode = SyncMode(mode)
        logger.info(f"Starting {mode.value} sync for channel {channel.id} (run {run_id})")

        # Set once a checkpoint honors a request, even if the pipeline
        # later wraps or swallows the SyncCancelled it raised
        observed = threading.Event()
        checkpoint = self._checkpoint(channel.id, observed)
        cancelled = False
        error: Exception | None = None

        try:
            checkpoint()
            if channel.credentials_error:
                raise CredentialsUnavailableError(channel.id, channel.credentials_error)
            self.pipeline.run(channel.id, channel.api_key, mode, checkpoint)
        except SyncCancelled:
            cancelled = True
        except Exception as e:
            error = e

        outcome = self._finish(
            run_id, channel.id, mode, cancelled or observed.is_set(), error
        )

        if outcome.status == RunStatus.FAILED:
            logger.error(f"Sync run {run_id} for channel {channel.id} failed: {outcome.error}")
            raise SyncFailedError(channel.id, run_id, outcome.error or "") from error

        logger.info(
            f"Sync run {run_id} for channel {channel.id} finished: {outcome.status.value}"
        )
        return outcome

    def run(self, channel: Channel, mode: SyncMode) -> RunOutcome:
        """Run a sync synchronously in the calling thread."""
        run_id = self.begin(channel.id, mode)
        return self.execute(run_id, channel, mode)

    def submit(self, channel: Channel, mode: SyncMode) -> tuple[str, Future]:
        """Open a run and execute it on the worker pool.

        The run record exists when this returns, so callers can poll it.

        Returns:
            Tuple of (run_id, future resolving to the RunOutcome)
        """
        run_id = self.begin(channel.id, mode)
        future = self._executor.submit(self.execute, run_id, channel, mode)
        future.add_done_callback(self._log_unexpected_error)
        return run_id, future

    def spawn(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Run an arbitrary task on the worker pool."""
        future = self._executor.submit(func, *args, **kwargs)
        future.add_done_callback(self._log_unexpected_error)
        return future

    def cancel_sync(self, channel_id: str | None = None) -> CancelResult:
        """Request cancellation of one channel's run, or of every run.

        Live runs are flagged and resolve themselves at their next
        checkpoint. Records still ``running`` with no live run behind them
        are moved to ``cancelled`` directly.

        Args:
            channel_id: Channel to cancel; all channels if omitted

        Returns:
            CancelResult with signalled channels and reconciled record count
        """
        result = CancelResult()

        with self._lock:
            if channel_id is not None:
                if channel_id in self._active:
                    self.cancellations.request(channel_id)
                    result.signalled.append(channel_id)
                else:
                    self.cancellations.consume(channel_id)
                    result.reconciled = self.run_log.cancel_running(channel_id)
            else:
                result.signalled = list(self._active)
                self.cancellations.request_all(result.signalled)
                result.reconciled = self._cancel_stale(CANCELLED_BY_USER)

        logger.info(
            f"Cancellation: signalled {len(result.signalled)} live run(s), "
            f"reconciled {result.reconciled} stale record(s)"
        )
        return result

    def reconcile_interrupted(self) -> int:
        """Cancel running records left behind by a previous process.

        Returns:
            Number of records moved to ``cancelled``
        """
        with self._lock:
            count = self._cancel_stale(INTERRUPTED_BY_RESTART)
        if count:
            logger.warning(f"Reconciled {count} interrupted sync run(s)")
        return count

    def is_running(self, channel_id: str) -> bool:
        with self._lock:
            return channel_id in self._active

    def active_runs(self) -> dict[str, str]:
        """Snapshot of channel ID to run ID for live runs."""
        with self._lock:
            return dict(self._active)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work and optionally wait for submitted runs."""
        self._executor.shutdown(wait=wait)

    def _checkpoint(self, channel_id: str, observed: threading.Event) -> Checkpoint:
        def checkpoint() -> None:
            if self.cancellations.consume(channel_id):
                observed.set()
                raise SyncCancelled(channel_id)

        return checkpoint

    def _finish(
        self,
        run_id: str,
        channel_id: str,
        mode: SyncMode,
        cancelled: bool,
        error: Exception | None,
    ) -> RunOutcome:
        """Resolve the terminal status and close the record.

        Held under the lock so a cancellation request cannot land between
        the final flag check and the run leaving the active map.
        """
        with self._lock:
            try:
                # Cancellation takes precedence over completion and failure
                if self.cancellations.consume(channel_id) or cancelled:
                    status, detail = RunStatus.CANCELLED, CANCELLED_BY_USER
                elif error is not None:
                    status, detail = RunStatus.FAILED, str(error) or type(error).__name__
                else:
                    status, detail = RunStatus.COMPLETED, None

                self.run_log.close(run_id, status, detail)
            finally:
                self._active.pop(channel_id, None)

        return RunOutcome(run_id, channel_id, mode, status, detail)

    def _cancel_stale(self, error: str) -> int:
        stale = {
            record["channel_id"]
            for record in self.run_log.running_for()
            if record["channel_id"] not in self._active
        }
        return sum(self.run_log.cancel_running(cid, error=error) for cid in stale)

    @staticmethod
    def _log_unexpected_error(future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        # Failed runs are already logged and recorded
        if exc is not None and not isinstance(exc, SyncFailedError):
            logger.error(f"Sync task raised: {exc}", exc_info=exc)
