"""
Type definitions and Pydantic models for HANDCAST.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from handcast.shared.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_SEND_TIMEOUT_S,
    DEFAULT_SENSOR,
    DEFAULT_SENSOR_RATE_HZ,
    DEFAULT_WS_PATH,
)

# ====================================================================================
# Sensor Enums
# ====================================================================================


class HandType(str, Enum):
    """Which hand of a tracked body produced a pointer."""

    NONE = "none"
    LEFT = "left"
    RIGHT = "right"

    @classmethod
    def coerce(cls, value: Any) -> "HandType":
        """
        Convert a raw sensor value to a HandType.

        Accepts members, names/values in any case, and the sensor's integer codes
        (0=none, 1=left, 2=right). Anything else maps to NONE.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if member.value == key:
                    return member
            return cls.NONE
        if isinstance(value, int) and not isinstance(value, bool):
            members = list(cls)
            if 0 <= value < len(members):
                return members[value]
        return cls.NONE


class SensorHandState(str, Enum):
    """Openness of a single hand as reported in a body frame."""

    UNKNOWN = "unknown"
    NOT_TRACKED = "not_tracked"
    OPEN = "open"
    CLOSED = "closed"
    LASSO = "lasso"

    @classmethod
    def coerce(cls, value: Any) -> "SensorHandState":
        """
        Convert a raw sensor value to a SensorHandState.

        Accepts members, names in snake or camel case ("not_tracked", "NotTracked")
        and the sensor's integer codes (0-4). Anything else maps to UNKNOWN.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().replace("_", "").lower()
            for member in cls:
                if member.value.replace("_", "") == key:
                    return member
            return cls.UNKNOWN
        if isinstance(value, int) and not isinstance(value, bool):
            members = list(cls)
            if 0 <= value < len(members):
                return members[value]
        return cls.UNKNOWN


# ====================================================================================
# Inbound Sensor Models
# ====================================================================================


class PointerEvent(BaseModel):
    """
    A single pointer-moved event from the sensor.

    Several pointer events share one frame_timestamp when more than one hand is
    visible in the same body frame.
    """

    is_engaged: bool = Field(..., description="True if this pointer is engaged")
    x: float = Field(..., description="Normalized screen-space X position")
    y: float = Field(..., description="Normalized screen-space Y position")
    body_id: int = Field(0, ge=0, description="Tracking id of the owning body")
    hand_type: HandType = Field(HandType.NONE, description="Hand that owns the pointer")
    frame_timestamp: float = Field(
        0.0, description="Body frame time counter in seconds"
    )

    @field_validator("hand_type", mode="before")
    @classmethod
    def coerce_hand_type(cls, value: Any) -> HandType:
        return HandType.coerce(value)


class TrackedBody(BaseModel):
    """
    A single body observation inside a body frame.
    """

    tracking_id: int = Field(..., ge=0, description="Sensor tracking id")
    is_tracked: bool = Field(True, description="False for empty body slots")
    left_hand_state: SensorHandState = SensorHandState.UNKNOWN
    right_hand_state: SensorHandState = SensorHandState.UNKNOWN

    @field_validator("left_hand_state", "right_hand_state", mode="before")
    @classmethod
    def coerce_hand_state(cls, value: Any) -> SensorHandState:
        return SensorHandState.coerce(value)

    def hand_state(self, hand_type: HandType) -> SensorHandState:
        """Get the openness of the given hand, UNKNOWN for HandType.NONE."""
        if hand_type is HandType.LEFT:
            return self.left_hand_state
        if hand_type is HandType.RIGHT:
            return self.right_hand_state
        return SensorHandState.UNKNOWN


class BodyFrame(BaseModel):
    """
    All body observations delivered by the sensor for one frame.
    """

    bodies: list[TrackedBody] = Field(default_factory=list)


# ===================================================================================
# Runtime State Models
# ===================================================================================


class HandState(BaseModel):
    """
    State of the engaged hand as broadcast to subscribers.

    Instances are immutable; every change produces a new instance. Serializing
    by alias yields the wire object {"closed": ..., "posX": ..., "posY": ...}.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    closed: bool = False
    pos_x: float = Field(0.0, alias="posX")
    pos_y: float = Field(0.0, alias="posY")


@dataclass
class EngagementState:
    """
    Which body and hand currently own the pointer.

    Attributes:
        engaged_body_id: Tracking id of the engaged body, None before first engagement
        engaged_hand_type: Hand of that body that is engaged
        last_frame_timestamp: Time counter of the most recent pointer batch
    """

    engaged_body_id: int | None = None
    engaged_hand_type: HandType = HandType.NONE
    last_frame_timestamp: float | None = None

    @property
    def is_engaged(self) -> bool:
        """Check if any body has engaged yet."""
        return self.engaged_body_id is not None


class TrackingSnapshot(BaseModel):
    """
    Read-out of the tracker state, served by the debug endpoint.
    """

    hand: HandState
    engaged_body_id: int | None = None
    engaged_hand_type: HandType = HandType.NONE
    last_frame_timestamp: float | None = None
    subscribers: int = 0


# ===================================================================================
# Configuration Models
# ===================================================================================


class ServerSettings(BaseModel):
    """
    Runtime settings for the broadcast server.
    """

    host: str = Field(DEFAULT_HOST, description="Interface to bind to")
    port: int = Field(DEFAULT_PORT, ge=0, le=65535, description="Port to bind to")
    ws_path: str = Field(
        DEFAULT_WS_PATH, pattern=r"^/", description="Websocket endpoint path"
    )
    send_timeout_s: float = Field(
        DEFAULT_SEND_TIMEOUT_S,
        gt=0.0,
        description="Upper bound for a single send to one subscriber",
    )
    sensor: Literal["simulated", "replay", "none"] = Field(
        DEFAULT_SENSOR, description="Source of raw sensor events"
    )
    replay_path: str | None = Field(
        None, description="JSON-lines recording used by the replay sensor"
    )
    sensor_rate_hz: float = Field(
        DEFAULT_SENSOR_RATE_HZ, gt=0.0, le=240.0, description="Sensor event rate"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
