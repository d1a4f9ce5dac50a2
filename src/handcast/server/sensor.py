"""
Sensor sources feeding raw pointer and body-frame events into the tracker.

The device driver itself is not part of this package. The sources here either
synthesize a plausible engaged hand (simulation mode) or replay a JSON-lines
recording of events captured elsewhere.
"""

import logging
import threading
import time
from pathlib import Path
from typing import Annotated, Literal

import numpy as np
from pydantic import Field, TypeAdapter, ValidationError

from handcast.server.tracker import HandTracker
from handcast.shared.constants import (
    DEFAULT_SENSOR_RATE_HZ,
    SIMULATED_BODY_ID,
    SIMULATED_BYSTANDER_ID,
    SIMULATED_GRIP_PERIOD_S,
)
from handcast.shared.types import (
    BodyFrame,
    HandType,
    PointerEvent,
    SensorHandState,
    ServerSettings,
    TrackedBody,
)

logger = logging.getLogger(__name__)


class SensorSource:
    """
    Base class for sources that push events into a HandTracker at a fixed rate.

    Subclasses implement `_tick`, which emits one frame worth of events and
    returns False once the source is exhausted.

    Public Attributes:
        tracker: HandTracker receiving the events
        rate_hz: Frames per second

    Private Attributes:
        _running: Flag indicating if the source thread is running
        _thread: Background thread driving `_tick`
        _frames: Number of frames emitted
    """

    def __init__(self, tracker: HandTracker, rate_hz: float = DEFAULT_SENSOR_RATE_HZ):
        self.tracker = tracker
        self.rate_hz = rate_hz

        self._running = False
        self._thread: threading.Thread | None = None
        self._frames = 0

    def _tick(self) -> bool:
        raise NotImplementedError

    def _run_loop(self) -> None:
        """Background loop that emits frames at a fixed rate."""
        interval = 1.0 / self.rate_hz

        while self._running:
            loop_start = time.time()
            try:
                if not self._tick():
                    logger.info(f"{type(self).__name__} exhausted after {self._frames} frames")
                    break
            except Exception:
                logger.exception(f"{type(self).__name__} failed to emit frame")
            self._frames += 1

            # Sleep to maintain frame rate
            elapsed = time.time() - loop_start
            sleep_time = interval - elapsed
            if sleep_time > 0:
                time.sleep(sleep_time)

        self._running = False

    def start(self) -> None:
        """Start emitting events in a background thread."""
        if self._running:
            return

        self._running = True
        self._thread = threading.Thread(
            target=self._run_loop, name=type(self).__name__, daemon=True
        )
        self._thread.start()
        logger.info(f"{type(self).__name__} started at {self.rate_hz}Hz")

    def stop(self) -> None:
        """Stop the background thread."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None
        logger.info(f"{type(self).__name__} stopped")

    @property
    def is_running(self) -> bool:
        """Check if the source is emitting events."""
        return self._running

    @property
    def frames(self) -> int:
        """Number of frames emitted so far."""
        return self._frames


class SimulatedSensor(SensorSource):
    """
    Synthetic sensor with one engaged right hand and an optional bystander.

    The engaged hand traces a Lissajous figure over the screen and closes for the
    second half of every grip period. The bystander reports a disengaged left-hand
    pointer, which must never take over the engagement.
    """

    def __init__(
        self,
        tracker: HandTracker,
        rate_hz: float = DEFAULT_SENSOR_RATE_HZ,
        grip_period_s: float = SIMULATED_GRIP_PERIOD_S,
        bystander: bool = True,
    ):
        super().__init__(tracker, rate_hz)
        self.grip_period_s = grip_period_s
        self.bystander = bystander

    def generate(self, step: int) -> tuple[list[PointerEvent], BodyFrame]:
        """
        Build the events for one frame.

        Args:
            step: Frame index since the sensor started

        Returns:
            Pointer events of the frame and the matching body frame.
        """
        t = step / self.rate_hz
        x, y = np.clip(
            [
                0.5 + 0.35 * np.sin(2.0 * np.pi * 0.20 * t),
                0.5 + 0.35 * np.sin(2.0 * np.pi * 0.30 * t + np.pi / 2.0),
            ],
            0.01,
            0.99,
        )
        closed = (t % self.grip_period_s) >= self.grip_period_s / 2.0

        pointers = [
            PointerEvent(
                is_engaged=True,
                x=float(x),
                y=float(y),
                body_id=SIMULATED_BODY_ID,
                hand_type=HandType.RIGHT,
                frame_timestamp=t,
            )
        ]
        bodies = [
            TrackedBody(
                tracking_id=SIMULATED_BODY_ID,
                left_hand_state=SensorHandState.OPEN,
                right_hand_state=(
                    SensorHandState.CLOSED if closed else SensorHandState.OPEN
                ),
            )
        ]

        if self.bystander:
            pointers.append(
                PointerEvent(
                    is_engaged=False,
                    x=float(1.0 - x),
                    y=float(y),
                    body_id=SIMULATED_BYSTANDER_ID,
                    hand_type=HandType.LEFT,
                    frame_timestamp=t,
                )
            )
            bodies.append(
                TrackedBody(
                    tracking_id=SIMULATED_BYSTANDER_ID,
                    left_hand_state=SensorHandState.CLOSED,
                    right_hand_state=SensorHandState.LASSO,
                )
            )

        # Empty body slot, as reported by the sensor for unused indices
        bodies.append(TrackedBody(tracking_id=0, is_tracked=False))

        return pointers, BodyFrame(bodies=bodies)

    def _tick(self) -> bool:
        pointers, frame = self.generate(self._frames)
        for event in pointers:
            self.tracker.on_pointer_moved(event)
        self.tracker.on_body_frame(frame)
        return True


# ====================================================================================
# Replay
# ====================================================================================


class PointerRecord(PointerEvent):
    type: Literal["pointer"] = "pointer"


class BodyFrameRecord(BodyFrame):
    type: Literal["body_frame"] = "body_frame"


ReplayRecord = Annotated[PointerRecord | BodyFrameRecord, Field(discriminator="type")]

_record_adapter: TypeAdapter[PointerRecord | BodyFrameRecord] = TypeAdapter(
    ReplayRecord
)


def load_recording(filepath: str) -> list[PointerRecord | BodyFrameRecord]:
    """
    Load a JSON-lines recording.

    Each non-blank line holds one object with "type" set to "pointer" (fields of
    PointerEvent) or "body_frame" (fields of BodyFrame). Invalid lines are logged
    and skipped.

    Raises:
        FileNotFoundError: If the recording does not exist.
    """
    records: list[PointerRecord | BodyFrameRecord] = []

    with open(Path(filepath)) as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(_record_adapter.validate_json(line))
            except ValidationError as e:
                logger.warning(
                    f"Skipping invalid record on line {line_no} of {filepath}: "
                    f"{e.error_count()} error(s)"
                )

    logger.info(f"Loaded {len(records)} records from {filepath}")
    return records


class ReplaySensor(SensorSource):
    """
    Replays a recording, one frame per tick.

    A frame is every pointer record up to and including the next body frame
    record. With `loop` set the recording restarts when it runs out.
    """

    def __init__(
        self,
        tracker: HandTracker,
        records: list[PointerRecord | BodyFrameRecord],
        rate_hz: float = DEFAULT_SENSOR_RATE_HZ,
        loop: bool = False,
    ):
        super().__init__(tracker, rate_hz)
        self.records = records
        self.loop = loop

        self._position = 0

    @classmethod
    def from_file(
        cls,
        tracker: HandTracker,
        filepath: str,
        rate_hz: float = DEFAULT_SENSOR_RATE_HZ,
        loop: bool = False,
    ) -> "ReplaySensor":
        return cls(tracker, load_recording(filepath), rate_hz=rate_hz, loop=loop)

    def _tick(self) -> bool:
        if self._position >= len(self.records):
            if not self.loop or not self.records:
                return False
            self._position = 0

        while self._position < len(self.records):
            record = self.records[self._position]
            self._position += 1

            if isinstance(record, PointerRecord):
                self.tracker.on_pointer_moved(record)
            else:
                self.tracker.on_body_frame(record)
                break

        return True


def build_sensor(settings: ServerSettings, tracker: HandTracker) -> SensorSource | None:
    """
    Create the sensor source selected in the settings.

    Returns:
        The source, or None when the sensor is disabled.

    Raises:
        ValueError: If the replay sensor is selected without a recording path.
    """
    match settings.sensor:
        case "simulated":
            return SimulatedSensor(tracker, rate_hz=settings.sensor_rate_hz)
        case "replay":
            if not settings.replay_path:
                raise ValueError("The replay sensor requires replay_path")
            return ReplaySensor.from_file(
                tracker, settings.replay_path, rate_hz=settings.sensor_rate_hz
            )
        case _:
            return None
