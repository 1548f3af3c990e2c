"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Callable

import pytest

# Add project root to path for imports
project_root = str(Path(__file__).parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Set test database path before importing the app
_temp_dir = tempfile.mkdtemp(prefix="channelsync-")
os.environ.setdefault("DB_PATH", os.path.join(_temp_dir, "test.db"))
os.environ.pop("CREDENTIAL_ENCRYPTION_KEY", None)
os.environ.pop("YOUTUBE_CHANNEL_ID", None)
os.environ.pop("YOUTUBE_API_KEY", None)

from channelsync.channels import ChannelStore  # noqa: E402
from channelsync.scheduler import (  # noqa: E402
    CancellationRegistry,
    RunLogStore,
    ScheduleManager,
    SyncMode,
    SyncOrchestrator,
    SyncScheduler,
)


class ScriptedPipeline:
    """Pipeline that records calls and raises configured errors."""

    def __init__(self, failures: dict[str, Exception] | None = None) -> None:
        self.failures = failures or {}
        self.calls: list[tuple[str, str | None, SyncMode]] = []
        self._lock = threading.Lock()

    def run(self, channel_id, credentials, mode, checkpoint) -> None:
        with self._lock:
            self.calls.append((channel_id, credentials, mode))
        checkpoint()
        if channel_id in self.failures:
            raise self.failures[channel_id]
        checkpoint()


class BlockingPipeline:
    """Pipeline that parks inside a step until released.

    ``after_release`` runs once the step resumes, before the next
    checkpoint, so tests can make the pipeline finish or fail without
    polling cancellation again.
    """

    def __init__(self, after_release: Callable[[], None] | None = None) -> None:
        self.started = threading.Event()
        self.release = threading.Event()
        self.after_release = after_release
        self.steps_run = 0

    def run(self, channel_id, credentials, mode, checkpoint) -> None:
        checkpoint()
        self.started.set()
        self.release.wait(timeout=10)
        self.steps_run += 1
        if self.after_release:
            self.after_release()
            return
        checkpoint()
        self.steps_run += 1


class FakeScheduler:
    """Stand-in for SyncScheduler that records trigger lifecycle events."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []
        self.is_running = True

    def add_job(self, job_id, func, cron_expression, args=None, kwargs=None):
        from unittest.mock import Mock

        handle = Mock(name=job_id)
        handle.next_run_time = None
        handle.remove.side_effect = lambda: self.events.append(("stop", cron_expression))
        self.events.append(("create", cron_expression))
        return handle


def wait_for(predicate: Callable[[], Any], timeout: float = 5.0) -> Any:
    """Poll until predicate returns a truthy value."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        result = predicate()
        if result:
            return result
        time.sleep(0.02)
    raise AssertionError("Condition not met before timeout")


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Temporary SQLite database path."""
    return str(tmp_path / "channelsync.db")


@pytest.fixture
def run_log(db_path: str) -> RunLogStore:
    return RunLogStore(db_path)


@pytest.fixture
def channel_store(db_path: str) -> ChannelStore:
    return ChannelStore(db_path)


@pytest.fixture
def cancellations() -> CancellationRegistry:
    return CancellationRegistry()


@pytest.fixture
def pipeline() -> ScriptedPipeline:
    return ScriptedPipeline()


@pytest.fixture
def orchestrator(run_log, pipeline, cancellations):
    orchestrator = SyncOrchestrator(run_log, pipeline, cancellations, max_workers=4)
    yield orchestrator
    orchestrator.shutdown(wait=True)


@pytest.fixture
def sync_scheduler():
    """Started scheduler with in-memory jobs."""
    scheduler = SyncScheduler(timezone="UTC", max_workers=2)
    scheduler.start()
    yield scheduler
    scheduler.shutdown(wait=False)


@pytest.fixture
def manager(channel_store, orchestrator, sync_scheduler) -> ScheduleManager:
    manager = ScheduleManager(channel_store, orchestrator, sync_scheduler)
    yield manager
    manager.stop_all()
