"""Sync run log for tracking run lifecycle and history.

Provides database persistence for sync runs: one record per attempt,
opened as ``running`` and closed exactly once with a terminal status.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from .errors import InvalidRunTransitionError, RunNotFoundError

logger = logging.getLogger(__name__)

CANCELLED_BY_USER = "Cancelled by user"


class RunStatus(str, Enum):
    """Sync run status values."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not RunStatus.RUNNING


class SyncMode(str, Enum):
    """Sync run mode."""

    INCREMENTAL = "incremental"
    FULL = "full"


TERMINAL_STATUSES = (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RunLogStore:
    """Durable log of sync run attempts.

    Uses SQLite with a connection per operation so it can be shared by
    concurrently executing runs.
    """

    def __init__(self, db_path: str) -> None:
        """Initialize the run log.

        Args:
            db_path: Path to SQLite database
        """
        self.db_path = db_path
        self._ensure_tables()

    def _get_conn(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        """Ensure the sync log table exists."""
        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS sync_log (
                    id TEXT PRIMARY KEY,
                    channel_id TEXT NOT NULL,
                    mode TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'running',
                    started_at TEXT NOT NULL,
                    completed_at TEXT,
                    error TEXT
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_sync_log_channel
                ON sync_log(channel_id)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_sync_log_status
                ON sync_log(status)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_sync_log_started_at
                ON sync_log(started_at DESC)
            """)
            conn.commit()
        finally:
            conn.close()

    def open(self, channel_id: str, mode: SyncMode) -> str:
        """Insert a ``running`` record.

        Args:
            channel_id: Channel being synced
            mode: INCREMENTAL or FULL

        Returns:
            New run ID
        """
        run_id = str(uuid.uuid4())

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO sync_log (id, channel_id, mode, status, started_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    run_id,
                    channel_id,
                    SyncMode(mode).value,
                    RunStatus.RUNNING.value,
                    _now(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

        logger.info(f"Opened {SyncMode(mode).value} sync run {run_id} for {channel_id}")
        return run_id

    def close(
        self,
        run_id: str,
        status: RunStatus,
        error: str | None = None,
    ) -> None:
        """Move a running record to a terminal status.

        Args:
            run_id: Run ID to close
            status: COMPLETED, FAILED or CANCELLED
            error: Error detail for failed or cancelled runs

        Raises:
            RunNotFoundError: If the run does not exist
            InvalidRunTransitionError: If the run is already terminal
        """
        status = RunStatus(status)
        if not status.is_terminal:
            raise ValueError(f"Cannot close run {run_id} as {status.value}")

        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE sync_log
                SET status = ?, completed_at = ?, error = ?
                WHERE id = ? AND status = ?
                """,
                (status.value, _now(), error, run_id, RunStatus.RUNNING.value),
            )
            conn.commit()

            if cursor.rowcount == 0:
                cursor.execute("SELECT status FROM sync_log WHERE id = ?", (run_id,))
                row = cursor.fetchone()
                if row is None:
                    raise RunNotFoundError(run_id)
                raise InvalidRunTransitionError(run_id, row["status"])
        finally:
            conn.close()

        logger.info(f"Closed sync run {run_id} with status {status.value}")

    def cancel_running(
        self,
        channel_id: str | None = None,
        error: str = CANCELLED_BY_USER,
    ) -> int:
        """Force every running record to ``cancelled``.

        Args:
            channel_id: Restrict to one channel
            error: Error detail written on each record

        Returns:
            Number of records updated
        """
        query = """
            UPDATE sync_log
            SET status = ?, completed_at = ?, error = ?
            WHERE status = ?
        """
        params: list[Any] = [
            RunStatus.CANCELLED.value,
            _now(),
            error,
            RunStatus.RUNNING.value,
        ]
        if channel_id is not None:
            query += " AND channel_id = ?"
            params.append(channel_id)

        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(query, params)
            conn.commit()
            updated = cursor.rowcount
        finally:
            conn.close()

        if updated:
            logger.info(f"Marked {updated} running sync run(s) as cancelled")
        return updated

    def get(self, run_id: str) -> dict[str, Any] | None:
        """Get a run record.

        Args:
            run_id: Run ID

        Returns:
            Run dict or None
        """
        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM sync_log WHERE id = ?", (run_id,))
            row = cursor.fetchone()
            return dict(row) if row else None
        finally:
            conn.close()

    def latest(self, limit: int = 10) -> list[dict[str, Any]]:
        """Get the most recent runs across all channels, newest first.

        Args:
            limit: Maximum results

        Returns:
            List of run dicts
        """
        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT * FROM sync_log
                ORDER BY started_at DESC, rowid DESC
                LIMIT ?
                """,
                (limit,),
            )
            return [dict(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def running_for(self, channel_id: str | None = None) -> list[dict[str, Any]]:
        """Get currently running records.

        Args:
            channel_id: Optional channel filter

        Returns:
            List of running run dicts, newest first
        """
        query = "SELECT * FROM sync_log WHERE status = ?"
        params: list[Any] = [RunStatus.RUNNING.value]
        if channel_id is not None:
            query += " AND channel_id = ?"
            params.append(channel_id)
        query += " ORDER BY started_at DESC, rowid DESC"

        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def cleanup_old_runs(self, days: int = 30) -> int:
        """Delete terminal runs that completed before the cutoff.

        Args:
            days: Age threshold in days

        Returns:
            Number of runs deleted
        """
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                DELETE FROM sync_log
                WHERE completed_at < ? AND status IN (?, ?, ?)
                """,
                (cutoff, *(status.value for status in TERMINAL_STATUSES)),
            )
            deleted = cursor.rowcount
            conn.commit()
        finally:
            conn.close()

        logger.info(f"Cleaned up {deleted} old sync runs")
        return deleted
