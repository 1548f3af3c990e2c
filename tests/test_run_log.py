"""Tests for the sync run log."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from channelsync.scheduler import (
    InvalidRunTransitionError,
    RunLogStore,
    RunNotFoundError,
    RunStatus,
    SyncMode,
)


class TestOpenAndClose:
    """Tests for the run lifecycle."""

    def test_open_creates_running_record(self, run_log: RunLogStore) -> None:
        """A new run is running with no completion time."""
        run_id = run_log.open("chan-a", SyncMode.INCREMENTAL)
        record = run_log.get(run_id)

        assert record is not None
        assert record["channel_id"] == "chan-a"
        assert record["mode"] == "incremental"
        assert record["status"] == "running"
        assert record["started_at"] is not None
        assert record["completed_at"] is None
        assert record["error"] is None

    def test_open_returns_uuid(self, run_log: RunLogStore) -> None:
        run_id = run_log.open("chan-a", SyncMode.FULL)

        assert len(run_id) == 36

    @pytest.mark.parametrize(
        "status", [RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED]
    )
    def test_close_sets_completed_at(self, run_log: RunLogStore, status) -> None:
        """completed_at is set exactly when the run leaves running."""
        run_id = run_log.open("chan-a", SyncMode.FULL)

        run_log.close(run_id, status, error="boom" if status != RunStatus.COMPLETED else None)
        record = run_log.get(run_id)

        assert record["status"] == status.value
        assert record["completed_at"] is not None

    def test_close_records_error(self, run_log: RunLogStore) -> None:
        run_id = run_log.open("chan-a", SyncMode.FULL)

        run_log.close(run_id, RunStatus.FAILED, "quota exceeded")

        assert run_log.get(run_id)["error"] == "quota exceeded"

    def test_close_unknown_run_raises(self, run_log: RunLogStore) -> None:
        """Closing a missing record is a bookkeeping defect."""
        with pytest.raises(RunNotFoundError):
            run_log.close("does-not-exist", RunStatus.COMPLETED)

    def test_close_terminal_run_raises(self, run_log: RunLogStore) -> None:
        """Terminal states are final."""
        run_id = run_log.open("chan-a", SyncMode.FULL)
        run_log.close(run_id, RunStatus.COMPLETED)

        with pytest.raises(InvalidRunTransitionError) as exc_info:
            run_log.close(run_id, RunStatus.FAILED, "late failure")

        assert exc_info.value.status == "completed"
        assert run_log.get(run_id)["status"] == "completed"

    def test_close_as_running_rejected(self, run_log: RunLogStore) -> None:
        run_id = run_log.open("chan-a", SyncMode.FULL)

        with pytest.raises(ValueError):
            run_log.close(run_id, RunStatus.RUNNING)


class TestQueries:
    """Tests for latest and running_for."""

    def test_latest_newest_first(self, run_log: RunLogStore) -> None:
        first = run_log.open("chan-a", SyncMode.FULL)
        second = run_log.open("chan-b", SyncMode.FULL)
        third = run_log.open("chan-a", SyncMode.INCREMENTAL)

        ids = [record["id"] for record in run_log.latest(10)]

        assert ids == [third, second, first]

    def test_latest_respects_limit(self, run_log: RunLogStore) -> None:
        for _ in range(5):
            run_log.open("chan-a", SyncMode.FULL)

        assert len(run_log.latest(3)) == 3

    def test_running_for_scoped_to_channel(self, run_log: RunLogStore) -> None:
        a_run = run_log.open("chan-a", SyncMode.FULL)
        run_log.open("chan-b", SyncMode.FULL)
        done = run_log.open("chan-a", SyncMode.FULL)
        run_log.close(done, RunStatus.COMPLETED)

        running = run_log.running_for("chan-a")

        assert [record["id"] for record in running] == [a_run]

    def test_running_for_all_channels(self, run_log: RunLogStore) -> None:
        run_log.open("chan-a", SyncMode.FULL)
        run_log.open("chan-b", SyncMode.FULL)

        channels = {record["channel_id"] for record in run_log.running_for()}

        assert channels == {"chan-a", "chan-b"}

    def test_get_missing_returns_none(self, run_log: RunLogStore) -> None:
        assert run_log.get("missing") is None


class TestMaintenance:
    """Tests for forced cancellation and cleanup."""

    def test_cancel_running_for_channel(self, run_log: RunLogStore) -> None:
        a_run = run_log.open("chan-a", SyncMode.FULL)
        b_run = run_log.open("chan-b", SyncMode.FULL)

        updated = run_log.cancel_running("chan-a")

        assert updated == 1
        record = run_log.get(a_run)
        assert record["status"] == "cancelled"
        assert record["error"] == "Cancelled by user"
        assert record["completed_at"] is not None
        assert run_log.get(b_run)["status"] == "running"

    def test_cancel_running_all(self, run_log: RunLogStore) -> None:
        run_log.open("chan-a", SyncMode.FULL)
        run_log.open("chan-b", SyncMode.FULL)

        assert run_log.cancel_running() == 2
        assert run_log.running_for() == []

    def test_cleanup_old_runs(self, run_log: RunLogStore, db_path: str) -> None:
        """Only terminal runs older than the cutoff are deleted."""
        old = run_log.open("chan-a", SyncMode.FULL)
        run_log.close(old, RunStatus.COMPLETED)
        recent = run_log.open("chan-a", SyncMode.FULL)
        run_log.close(recent, RunStatus.COMPLETED)
        running = run_log.open("chan-b", SyncMode.FULL)

        long_ago = (datetime.now(timezone.utc) - timedelta(days=60)).isoformat()
        conn = sqlite3.connect(db_path)
        try:
            conn.execute(
                "UPDATE sync_log SET completed_at = ? WHERE id = ?", (long_ago, old)
            )
            conn.commit()
        finally:
            conn.close()

        deleted = run_log.cleanup_old_runs(days=30)

        assert deleted == 1
        assert run_log.get(old) is None
        assert run_log.get(recent) is not None
        assert run_log.get(running) is not None
