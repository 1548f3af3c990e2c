"""Process-wide registry of channels flagged for cancellation.

Running syncs poll the registry at their checkpoints. ``consume`` checks
and clears a flag under one lock so that a single request is honored by
exactly one observer.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Iterable

logger = logging.getLogger(__name__)


class CancellationRegistry:
    """Thread-safe set of channel IDs with a pending cancellation."""

    def __init__(self) -> None:
        self._flags: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def request(self, channel_id: str) -> None:
        """Flag a channel for cancellation."""
        with self._lock:
            self._flags.setdefault(channel_id, datetime.now(timezone.utc))
        logger.info(f"Cancellation requested for channel {channel_id}")

    def request_all(self, channel_ids: Iterable[str]) -> int:
        """Flag every given channel.

        Returns:
            Number of channels flagged
        """
        now = datetime.now(timezone.utc)
        count = 0
        with self._lock:
            for channel_id in channel_ids:
                self._flags.setdefault(channel_id, now)
                count += 1
        logger.info(f"Cancellation requested for {count} channel(s)")
        return count

    def consume(self, channel_id: str) -> bool:
        """Check and clear the flag for a channel.

        Returns:
            True if a cancellation was pending
        """
        with self._lock:
            return self._flags.pop(channel_id, None) is not None

    def is_requested(self, channel_id: str) -> bool:
        with self._lock:
            return channel_id in self._flags

    def pending(self) -> dict[str, datetime]:
        """Snapshot of pending flags with their request times."""
        with self._lock:
            return dict(self._flags)
