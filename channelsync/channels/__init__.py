"""Channel configuration storage."""

from .store import Channel, ChannelStore

__all__ = ["Channel", "ChannelStore"]
