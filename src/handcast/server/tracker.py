import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from handcast.shared.types import (
    BodyFrame,
    EngagementState,
    HandState,
    HandType,
    PointerEvent,
    SensorHandState,
    TrackingSnapshot,
)

logger = logging.getLogger(__name__)

# Receives every HandState that should reach subscribers
Publisher = Callable[[HandState], object]


class PublishSequencer:
    """
    Runs publishes in the order their states were produced.

    A ticket is taken while the state lock is held, so ticket order matches the
    order of state changes. `turn(ticket)` then blocks, without the state lock,
    until every earlier ticket has finished publishing.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._next_ticket = 0
        self._now_serving = 0

    def ticket(self) -> int:
        """Take the next ticket. Call while holding the state lock."""
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1
            return ticket

    @contextmanager
    def turn(self, ticket: int) -> Iterator[None]:
        """Wait for `ticket` to come up, then hold the turn until the block exits."""
        with self._cond:
            while self._now_serving != ticket:
                self._cond.wait()
        try:
            yield
        finally:
            with self._cond:
                self._now_serving += 1
                self._cond.notify_all()


@dataclass
class TrackingContext:
    """
    Mutable tracking state shared by the tracker and the change detector.

    Every read or write of `engagement` and `hand` must happen while holding
    `lock`. One context exists per server process.

    Attributes:
        engagement: Which body/hand currently owns the pointer
        hand: Last HandState handed to the publisher
        lock: Guards both of the above
        sequencer: Keeps publishes in the order the states were produced
    """

    engagement: EngagementState = field(default_factory=EngagementState)
    hand: HandState = field(default_factory=HandState)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    sequencer: PublishSequencer = field(default_factory=PublishSequencer, repr=False)


class ChangeDetector:
    """
    Turns raw observations into an edge-triggered notification stream.

    Position observations always notify. Closedness observations notify only when
    they differ from the stored value. Callers must hold `context.lock`.
    """

    def __init__(self, context: TrackingContext):
        self.context = context

    def observe_position(self, x: float, y: float) -> bool:
        """Store a new position of the engaged hand. Always notifies."""
        self.context.hand = self.context.hand.model_copy(
            update={"pos_x": x, "pos_y": y}
        )
        return True

    def observe_closedness(self, closed: bool) -> bool:
        """Store the closed flag, returning True only if it changed."""
        if self.context.hand.closed == closed:
            return False

        self.context.hand = self.context.hand.model_copy(update={"closed": closed})
        logger.debug(f"Hand {'closed' if closed else 'opened'}")
        return True


class HandTracker:
    """
    Decides which body/hand is engaged and publishes its state changes.

    Sensor callbacks may arrive concurrently from several threads. Each call
    mutates the shared context under its lock, takes a snapshot of the HandState
    and a publish ticket, and only calls the publisher after the lock is released.
    Publishes run one at a time in ticket order, so every subscriber sees the same
    sequence of states, while state updates continue during a slow broadcast.

    Public Attributes:
        context: TrackingContext holding engagement and hand state
        detector: ChangeDetector working on the same context
        publisher: Callable receiving every HandState that should be broadcast

    Private Attributes:
        _pointer_batches: Number of distinct pointer frame timestamps seen
    """

    def __init__(
        self,
        publisher: Publisher,
        context: TrackingContext | None = None,
    ):
        """
        Initialize the tracker.

        Args:
            publisher: Receives each HandState to broadcast, outside the lock
            context: Shared tracking context, a fresh one if not provided
        """
        self.context = context if context is not None else TrackingContext()
        self.detector = ChangeDetector(self.context)
        self.publisher = publisher

        self._pointer_batches = 0

    # =============================================================================== #
    # Private Methods
    # =============================================================================== #

    def _closedness_for(self, body_hand_state: SensorHandState) -> bool:
        """Only an explicit CLOSED reading counts as closed."""
        return body_hand_state is SensorHandState.CLOSED

    def _publish(self, states: list[HandState], ticket: int) -> None:
        """Hand snapshots to the publisher in ticket order. Call without the lock."""
        with self.context.sequencer.turn(ticket):
            for state in states:
                self.publisher(state)

    # ============================================================================== #
    # PUBLIC API
    # ============================================================================== #

    def on_pointer_moved(self, event: PointerEvent) -> bool:
        """
        Process a pointer-moved event.

        An engaged pointer always becomes the engaged one, replacing any previous
        engagement, and its position is published. A disengaged pointer never
        changes the engagement.

        Returns:
            True if a HandState was published.
        """
        with self.context.lock:
            engagement = self.context.engagement
            if engagement.last_frame_timestamp != event.frame_timestamp:
                engagement.last_frame_timestamp = event.frame_timestamp
                self._pointer_batches += 1
                logger.debug(f"New pointer batch at t={event.frame_timestamp:.3f}")

            if not event.is_engaged:
                return False

            if (
                engagement.engaged_body_id != event.body_id
                or engagement.engaged_hand_type is not event.hand_type
            ):
                logger.info(
                    f"Engaged body {event.body_id} ({event.hand_type.value} hand)"
                )
            engagement.engaged_body_id = event.body_id
            engagement.engaged_hand_type = event.hand_type

            notify = self.detector.observe_position(event.x, event.y)
            snapshot = self.context.hand
            ticket = self.context.sequencer.ticket()

        self._publish([snapshot], ticket)
        return notify

    def on_body_frame(self, frame: BodyFrame) -> bool:
        """
        Process a body frame.

        Only the tracked body matching the engaged body id is considered. Its
        engaged hand's openness is fed to the change detector; with no engaged
        hand type the hand counts as open. Frames without the engaged body leave
        the engagement as it is.

        Returns:
            True if a HandState was published.
        """
        snapshots: list[HandState] = []

        with self.context.lock:
            engagement = self.context.engagement
            if not engagement.is_engaged:
                return False

            for body in frame.bodies:
                if not body.is_tracked or body.tracking_id != engagement.engaged_body_id:
                    continue

                if engagement.engaged_hand_type is HandType.NONE:
                    closed = False
                else:
                    closed = self._closedness_for(
                        body.hand_state(engagement.engaged_hand_type)
                    )

                if self.detector.observe_closedness(closed):
                    snapshots.append(self.context.hand)

            if not snapshots:
                return False
            ticket = self.context.sequencer.ticket()

        self._publish(snapshots, ticket)
        return True

    def snapshot(self) -> TrackingSnapshot:
        """Get a consistent copy of the engagement and hand state."""
        with self.context.lock:
            engagement = self.context.engagement
            return TrackingSnapshot(
                hand=self.context.hand,
                engaged_body_id=engagement.engaged_body_id,
                engaged_hand_type=engagement.engaged_hand_type,
                last_frame_timestamp=engagement.last_frame_timestamp,
            )

    @property
    def pointer_batches(self) -> int:
        """Number of distinct pointer frame timestamps processed."""
        return self._pointer_batches
