"""SQLite store for configured channels.

Holds the fields the scheduler reads: the cron schedule, the enable flag
and the API key handed to the sync pipeline. The key is encrypted at rest
when a credential encryption key is configured.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from ..security import CredentialManager

logger = logging.getLogger(__name__)

_UNSET: Any = object()


@dataclass
class Channel:
    """A channel configured for syncing.

    ``credentials_error`` is set when the stored API key could not be
    decrypted; ``api_key`` is then None and runs for the channel fail.
    """

    id: str
    api_key: str | None
    sync_enabled: bool = True
    sync_schedule: str | None = None
    title: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    credentials_error: str | None = None


class ChannelStore:
    """Durable record of configured channels."""

    def __init__(
        self,
        db_path: str,
        credentials: CredentialManager | None = None,
    ) -> None:
        """Initialize the channel store.

        Args:
            db_path: Path to SQLite database
            credentials: Credential manager used for the API key column
        """
        self.db_path = db_path
        self.credentials = credentials or CredentialManager()
        if not self.credentials.encryption_enabled:
            logger.warning("Credential encryption disabled - API keys stored as given")
        self._ensure_tables()

    def _get_conn(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        """Ensure the channel table exists."""
        conn = self._get_conn()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS channel (
                    id TEXT PRIMARY KEY,
                    title TEXT,
                    api_key TEXT,
                    api_key_encrypted INTEGER NOT NULL DEFAULT 0,
                    sync_enabled INTEGER NOT NULL DEFAULT 1,
                    sync_schedule TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_channel_sync_enabled
                ON channel(sync_enabled)
            """)
            conn.commit()
        finally:
            conn.close()

    def _to_channel(self, row: sqlite3.Row) -> Channel:
        api_key, credentials_error = None, None
        try:
            api_key = self.credentials.unseal(
                row["api_key"], bool(row["api_key_encrypted"])
            )
        except ValueError as e:
            logger.error(f"Cannot decrypt API key for channel {row['id']}: {e}")
            credentials_error = str(e)

        return Channel(
            id=row["id"],
            api_key=api_key,
            credentials_error=credentials_error,
            sync_enabled=bool(row["sync_enabled"]),
            sync_schedule=row["sync_schedule"],
            title=row["title"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def add(
        self,
        channel_id: str,
        api_key: str | None,
        sync_schedule: str | None = None,
        sync_enabled: bool = True,
        title: str | None = None,
    ) -> Channel:
        """Insert a channel.

        Raises:
            sqlite3.IntegrityError: If the channel already exists
        """
        now = datetime.now(timezone.utc).isoformat()
        stored_key, encrypted = self.credentials.seal(api_key)

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO channel (
                    id, title, api_key, api_key_encrypted, sync_enabled,
                    sync_schedule, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    channel_id,
                    title,
                    stored_key,
                    encrypted,
                    int(sync_enabled),
                    sync_schedule,
                    now,
                    now,
                ),
            )
            conn.commit()
        finally:
            conn.close()

        logger.info(f"Added channel {channel_id}")
        return Channel(
            id=channel_id,
            api_key=api_key,
            sync_enabled=sync_enabled,
            sync_schedule=sync_schedule,
            title=title,
            created_at=now,
            updated_at=now,
        )

    def update(
        self,
        channel_id: str,
        sync_enabled: bool | None = None,
        sync_schedule: str | None = _UNSET,
        api_key: str | None = None,
    ) -> bool:
        """Update sync settings of a channel.

        ``sync_schedule=None`` clears the schedule so the default applies.

        Returns:
            True if the channel exists
        """
        updates = []
        params: list[Any] = []

        if sync_enabled is not None:
            updates.append("sync_enabled = ?")
            params.append(int(sync_enabled))
        if sync_schedule is not _UNSET:
            updates.append("sync_schedule = ?")
            params.append(sync_schedule)
        if api_key is not None:
            stored_key, encrypted = self.credentials.seal(api_key)
            updates.extend(["api_key = ?", "api_key_encrypted = ?"])
            params.extend([stored_key, encrypted])

        updates.append("updated_at = ?")
        params.append(datetime.now(timezone.utc).isoformat())
        params.append(channel_id)

        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                f"UPDATE channel SET {', '.join(updates)} WHERE id = ?",
                params,
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def delete(self, channel_id: str) -> bool:
        """Delete a channel.

        Returns:
            True if a channel was deleted
        """
        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM channel WHERE id = ?", (channel_id,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def get(self, channel_id: str) -> Channel | None:
        """Get a channel or None."""
        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM channel WHERE id = ?", (channel_id,))
            row = cursor.fetchone()
            return self._to_channel(row) if row else None
        finally:
            conn.close()

    def list_enabled(self) -> list[Channel]:
        """Get channels with sync enabled, oldest first."""
        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT * FROM channel
                WHERE sync_enabled = 1
                ORDER BY created_at ASC, rowid ASC
                """
            )
            return [self._to_channel(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def import_from_env(
        self,
        channel_id: str | None,
        api_key: str | None,
        sync_schedule: str | None = None,
    ) -> Channel | None:
        """Seed a channel from environment configuration.

        An existing channel gets the new key and schedule and is enabled.

        Returns:
            The channel, or None if either value is missing
        """
        if not channel_id or not api_key:
            return None

        if self.get(channel_id) is None:
            logger.info(f"Importing channel {channel_id} from environment")
            return self.add(channel_id, api_key, sync_schedule=sync_schedule)

        logger.info(f"Channel {channel_id} exists, updating API key and schedule")
        self.update(
            channel_id,
            sync_enabled=True,
            sync_schedule=sync_schedule,
            api_key=api_key,
        )
        return self.get(channel_id)
