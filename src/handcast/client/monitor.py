"""
Console subscriber for the HANDCAST broadcast.
"""

import logging
from collections.abc import Callable

import pydantic
import websockets
from pydantic import BaseModel, ConfigDict, Field

from handcast.shared.types import HandState

logger = logging.getLogger(__name__)


class WireHandState(BaseModel):
    """Exact shape of a broadcast message: closed, posX and posY, nothing else."""

    model_config = ConfigDict(extra="forbid")

    closed: bool
    pos_x: float = Field(alias="posX")
    pos_y: float = Field(alias="posY")


def decode_hand_state(message: str | bytes) -> HandState:
    """
    Decode one wire message.

    Raises:
        pydantic.ValidationError: If the message is not exactly a hand state
                                  object.
    """
    wire = WireHandState.model_validate_json(message)
    return HandState(closed=wire.closed, pos_x=wire.pos_x, pos_y=wire.pos_y)


async def monitor(
    url: str,
    on_state: Callable[[HandState], None],
    max_messages: int | None = None,
) -> int:
    """
    Subscribe to a HANDCAST server and report every hand state.

    Args:
        url: Websocket URL of the server, e.g. ws://127.0.0.1:8181/
        on_state: Called with each decoded HandState
        max_messages: Stop after this many states (None = until the server closes)

    Returns:
        Number of states received.
    """
    received = 0

    async with websockets.connect(url) as websocket:
        logger.info(f"Connected to {url}")

        async for message in websocket:
            try:
                state = decode_hand_state(message)
            except pydantic.ValidationError as e:
                logger.warning(f"Ignoring undecodable message {message!r}: {e}")
                continue

            on_state(state)
            received += 1
            if max_messages is not None and received >= max_messages:
                break

    logger.info(f"Disconnected after {received} messages")
    return received
