"""
Thread-safe set of connected subscriber channels.
"""

import logging
import threading

from handcast.server.channels import Channel

logger = logging.getLogger(__name__)


class SubscriberRegistry:
    """
    Subscriber channels keyed by channel id.

    Membership may change from connection handlers while a broadcast is running.
    Broadcasts iterate over `snapshot()`, which copies the members under the lock
    and returns them so that sends happen without holding it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._channels: dict[str, Channel] = {}

    def add(self, channel: Channel) -> None:
        """Register a channel. Re-adding the same id replaces the old entry."""
        with self._lock:
            previous = self._channels.get(channel.channel_id)
            self._channels[channel.channel_id] = channel
            count = len(self._channels)
        if previous is not None and previous is not channel:
            logger.warning(
                f"Subscriber {channel.channel_id} replaced an existing connection"
            )
        logger.info(f"Subscriber {channel.channel_id} connected ({count} total)")

    def remove(self, channel: Channel) -> bool:
        """
        Deregister a channel.

        Removing a channel that is not registered is a no-op. A different channel
        registered under the same id is left in place.

        Returns:
            True if the channel was registered.
        """
        with self._lock:
            removed = self._channels.get(channel.channel_id) is channel
            if removed:
                del self._channels[channel.channel_id]
            count = len(self._channels)
        if removed:
            logger.info(
                f"Subscriber {channel.channel_id} disconnected ({count} remaining)"
            )
        return removed

    def snapshot(self) -> list[Channel]:
        """Get a copy of the current members."""
        with self._lock:
            return list(self._channels.values())

    def clear(self) -> None:
        """Drop every channel."""
        with self._lock:
            self._channels.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    def __contains__(self, channel: object) -> bool:
        channel_id = getattr(channel, "channel_id", None)
        with self._lock:
            return self._channels.get(channel_id) is channel
