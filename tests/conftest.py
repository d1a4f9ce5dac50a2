"""
Pytest fixtures for HANDCAST tests.

Provides in-memory channels and factories for sensor events so the tracking
pipeline can be tested without a sensor or a network.
"""

import json
import threading

import pytest

from handcast.server.channels import ChannelSendError
from handcast.server.dispatcher import BroadcastDispatcher
from handcast.server.registry import SubscriberRegistry
from handcast.server.tracker import HandTracker
from handcast.shared.types import (
    BodyFrame,
    HandState,
    HandType,
    PointerEvent,
    SensorHandState,
    TrackedBody,
)

# =============================================================================
# Fake Channels
# =============================================================================


class FakeChannel:
    """Channel that records every message it is sent and whether it was closed."""

    def __init__(self, channel_id: str):
        self.channel_id = channel_id
        self.messages: list[str] = []
        self.closed = False
        self._lock = threading.Lock()

    def send(self, message: str) -> None:
        with self._lock:
            self.messages.append(message)

    def close(self) -> None:
        self.closed = True

    @property
    def decoded(self) -> list[dict]:
        return [json.loads(m) for m in self.messages]


class BrokenChannel(FakeChannel):
    """Channel whose connection has gone away."""

    def send(self, message: str) -> None:
        raise ChannelSendError(f"{self.channel_id} is closed")


class CrashingChannel(FakeChannel):
    """Channel that fails with an error that is not a ChannelSendError."""

    def send(self, message: str) -> None:
        raise RuntimeError("transport exploded")


# =============================================================================
# Sensor Event Factories
# =============================================================================


def make_pointer(
    is_engaged: bool = True,
    x: float = 0.5,
    y: float = 0.5,
    body_id: int = 7,
    hand_type: HandType | str | int = HandType.RIGHT,
    frame_timestamp: float = 0.0,
) -> PointerEvent:
    """Create a pointer-moved event."""
    return PointerEvent(
        is_engaged=is_engaged,
        x=x,
        y=y,
        body_id=body_id,
        hand_type=hand_type,
        frame_timestamp=frame_timestamp,
    )


def make_body(
    tracking_id: int = 7,
    left: SensorHandState | str = SensorHandState.OPEN,
    right: SensorHandState | str = SensorHandState.OPEN,
    is_tracked: bool = True,
) -> TrackedBody:
    """Create a single tracked body observation."""
    return TrackedBody(
        tracking_id=tracking_id,
        is_tracked=is_tracked,
        left_hand_state=left,
        right_hand_state=right,
    )


def make_frame(*bodies: TrackedBody) -> BodyFrame:
    """Create a body frame from body observations."""
    return BodyFrame(bodies=list(bodies))


# =============================================================================
# Pipeline Fixtures
# =============================================================================


@pytest.fixture
def published() -> list[HandState]:
    """List collecting every HandState a tracker publishes."""
    return []


@pytest.fixture
def tracker(published) -> HandTracker:
    """Tracker whose publisher appends to `published`."""
    return HandTracker(publisher=published.append)


@pytest.fixture
def registry() -> SubscriberRegistry:
    """Empty subscriber registry."""
    return SubscriberRegistry()


@pytest.fixture
def dispatcher(registry) -> BroadcastDispatcher:
    """Dispatcher over the `registry` fixture."""
    return BroadcastDispatcher(registry)


@pytest.fixture
def subscribers(registry) -> list[FakeChannel]:
    """Three recording channels registered with the `registry` fixture."""
    channels = [FakeChannel(f"sub-{i}") for i in range(3)]
    for channel in channels:
        registry.add(channel)
    return channels


@pytest.fixture
def pipeline(dispatcher) -> HandTracker:
    """Tracker wired to the real dispatcher."""
    return HandTracker(publisher=dispatcher.publish)
