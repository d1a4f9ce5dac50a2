import logging
import threading
import time

from handcast.server.channels import Channel, ChannelSendError
from handcast.server.registry import SubscriberRegistry
from handcast.shared.constants import STATS_INTERVAL_S
from handcast.shared.types import HandState

logger = logging.getLogger(__name__)


def encode_hand_state(state: HandState) -> str:
    """
    Encode a HandState as the wire message.

    Produces the compact object {"closed":<bool>,"posX":<float>,"posY":<float>}
    with no other fields.
    """
    return state.model_dump_json(by_alias=True)


class BroadcastDispatcher:
    """
    Pushes encoded HandStates to every registered subscriber.

    Public Attributes:
        registry: SubscriberRegistry holding the current channels

    Private Attributes:
        _stats_lock: Guards the counters below
        _messages_sent: Total successful deliveries
        _interval_count: Deliveries since the last rate log
        _last_stats_time: Timestamp of the last rate log
    """

    def __init__(self, registry: SubscriberRegistry):
        self.registry = registry

        self._stats_lock = threading.Lock()
        self._messages_sent = 0
        self._interval_count = 0
        self._last_stats_time = time.time()

    def _record_sent(self, count: int) -> None:
        with self._stats_lock:
            self._messages_sent += count
            self._interval_count += count

            # Performance monitoring
            elapsed = time.time() - self._last_stats_time
            if elapsed >= STATS_INTERVAL_S:
                logger.debug(f"Dispatch rate: {self._interval_count / elapsed:.1f} msg/s")
                self._interval_count = 0
                self._last_stats_time = time.time()

    def _drop(self, channel: Channel) -> None:
        """Deregister a failed channel and close its connection."""
        self.registry.remove(channel)
        try:
            channel.close()
        except Exception as e:
            logger.error(f"Error closing subscriber {channel.channel_id}: {e}")

    def publish(self, state: HandState) -> int:
        """
        Encode a HandState once and send it to every current subscriber.

        A failing channel is removed from the registry and closed, and does not
        stop delivery to the others.

        Args:
            state: HandState snapshot to broadcast

        Returns:
            Number of subscribers the message was delivered to.
        """
        message = encode_hand_state(state)
        channels = self.registry.snapshot()

        delivered = 0
        for channel in channels:
            try:
                channel.send(message)
                delivered += 1
            except ChannelSendError as e:
                logger.warning(f"Dropping subscriber {channel.channel_id}: {e}")
                self._drop(channel)
            except Exception as e:
                logger.error(
                    f"Unexpected error sending to {channel.channel_id}: {e}"
                )
                self._drop(channel)

        self._record_sent(delivered)
        logger.debug(f"Published {message} to {delivered}/{len(channels)} subscribers")
        return delivered

    @property
    def messages_sent(self) -> int:
        """Total number of messages delivered."""
        with self._stats_lock:
            return self._messages_sent
