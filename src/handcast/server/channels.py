"""
Output channels that deliver one text message at a time to a subscriber.
"""

import asyncio
import concurrent.futures
import logging
import uuid
from typing import Protocol, runtime_checkable

from fastapi import WebSocket, WebSocketDisconnect, status

from handcast.shared.constants import DEFAULT_SEND_TIMEOUT_S

logger = logging.getLogger(__name__)

# Close code sent to a subscriber that was dropped after a failed send
DROPPED_CLOSE_CODE = status.WS_1013_TRY_AGAIN_LATER


class ChannelSendError(Exception):
    """Raised when a message could not be delivered to a channel."""


@runtime_checkable
class Channel(Protocol):
    """
    A subscriber connection that can synchronously send one text message.

    `send` raises ChannelSendError if the message could not be delivered.
    `close` ends the connection without waiting for it to finish.
    """

    channel_id: str

    def send(self, message: str) -> None: ...

    def close(self) -> None: ...


class WebSocketChannel:
    """
    Channel backed by a FastAPI websocket served on an asyncio event loop.

    `send` is called from sensor threads: it schedules `send_text` on the loop that
    owns the websocket and waits at most `send_timeout` seconds for it. It must not
    be called from the loop's own thread.

    Public Attributes:
        channel_id: Unique id of this connection
        send_timeout: Upper bound for a single send (seconds)
    """

    def __init__(
        self,
        websocket: WebSocket,
        loop: asyncio.AbstractEventLoop,
        send_timeout: float = DEFAULT_SEND_TIMEOUT_S,
        channel_id: str | None = None,
    ):
        self.channel_id = channel_id or uuid.uuid4().hex
        self.send_timeout = send_timeout

        self._websocket = websocket
        self._loop = loop

    async def _close(self, code: int) -> None:
        try:
            await self._websocket.close(code=code)
        except (RuntimeError, OSError, WebSocketDisconnect) as e:
            logger.debug(f"Channel {self.channel_id} was already closed: {e}")

    def send(self, message: str) -> None:
        """Send a text message, raising ChannelSendError on any failure."""
        if self._loop.is_closed():
            raise ChannelSendError(f"Event loop for {self.channel_id} is closed")

        future = asyncio.run_coroutine_threadsafe(
            self._websocket.send_text(message), self._loop
        )
        try:
            future.result(timeout=self.send_timeout)
        except concurrent.futures.TimeoutError as e:
            future.cancel()
            raise ChannelSendError(
                f"Send to {self.channel_id} timed out after {self.send_timeout}s"
            ) from e
        except Exception as e:
            raise ChannelSendError(f"Send to {self.channel_id} failed: {e}") from e

    def close(self, code: int = DROPPED_CLOSE_CODE) -> None:
        """
        Schedule closing the websocket on its loop and return immediately.

        The endpoint serving this connection sees the disconnect and finishes.
        """
        if self._loop.is_closed():
            return
        coro = self._close(code)
        try:
            asyncio.run_coroutine_threadsafe(coro, self._loop)
        except RuntimeError as e:
            coro.close()
            logger.debug(f"Could not close {self.channel_id}: {e}")

    def __repr__(self) -> str:
        return f"WebSocketChannel({self.channel_id!r})"
