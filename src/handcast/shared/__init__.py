"""
Shared types, constants, and wire models for HANDCAST.

This module contains shared definitions used by both the server and the client.
"""

from handcast.shared.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_SEND_TIMEOUT_S,
    DEFAULT_WS_PATH,
)
from handcast.shared.types import (
    BodyFrame,
    EngagementState,
    HandState,
    HandType,
    PointerEvent,
    SensorHandState,
    ServerSettings,
    TrackedBody,
)

__all__ = [
    # Constants
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "DEFAULT_SEND_TIMEOUT_S",
    "DEFAULT_WS_PATH",
    # Types
    "BodyFrame",
    "EngagementState",
    "HandState",
    "HandType",
    "PointerEvent",
    "SensorHandState",
    "ServerSettings",
    "TrackedBody",
]
