"""Signal sources and the ingestor that turns their events into samples.

Both sources push into one :class:`asyncio.Queue`. A single consumer task
drains it, so motion and brightness events are handled one at a time in
delivery order and only that task touches the buffer and state machine.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol

from sleepsense.buffer import MovementBuffer, MovementSample
from sleepsense.config import MonitorConfig
from sleepsense.errors import SensorUnavailableError
from sleepsense.events import BrightnessEvent, MotionEvent, SampleEvent
from sleepsense.machine import SleepStateMachine, Transition

logger = logging.getLogger(__name__)

Emit = Callable[[SampleEvent], None]


class Subscription:
    """Cancellable handle returned by :meth:`SignalSource.subscribe`."""

    def __init__(self, source_name: str, on_cancel: Callable[[], None] | None = None) -> None:
        self.source_name = source_name
        self._on_cancel = on_cancel
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"Subscription({self.source_name}, {state})"


class SignalSource(Protocol):
    """A push source of sensor events.

    ``subscribe`` raises :class:`SensorUnavailableError` when the sensor is
    missing or permission is denied.
    """

    name: str

    async def subscribe(self, emit: Emit) -> Subscription: ...


class QueueSource:
    """Synthetic source: events are pushed by hand.

    Used by tests and by capture replay in place of a real sensor stream.
    """

    def __init__(self, name: str = "synthetic", available: bool = True) -> None:
        self.name = name
        self.available = available
        self._emit: Emit | None = None

    @property
    def is_subscribed(self) -> bool:
        return self._emit is not None

    async def subscribe(self, emit: Emit) -> Subscription:
        if not self.available:
            raise SensorUnavailableError(f"{self.name} sensor unavailable")
        self._emit = emit
        return Subscription(self.name, self._detach)

    def _detach(self) -> None:
        self._emit = None

    def push(self, event: SampleEvent) -> bool:
        """Deliver one event. Returns False if nobody is subscribed."""
        if self._emit is None:
            return False
        self._emit(event)
        return True


class SignalIngestor:
    """Subscribes to the motion and brightness sources and feeds the classifier.

    Args:
        motion_source: 3-axis accelerometer source.
        brightness_source: Normalized (0-1) ambient brightness source.
        buffer: Movement buffer the samples are appended to.
        machine: State machine stepped once per event.
        config: Thresholds (movement threshold, significance mode).
        on_transition: Called with every Transition the machine produces.
    """

    def __init__(
        self,
        motion_source: SignalSource,
        brightness_source: SignalSource,
        buffer: MovementBuffer,
        machine: SleepStateMachine,
        config: MonitorConfig | None = None,
        on_transition: Callable[[Transition], None] | None = None,
    ) -> None:
        self.motion_source = motion_source
        self.brightness_source = brightness_source
        self.buffer = buffer
        self.machine = machine
        self.config = config or MonitorConfig()
        self.on_transition = on_transition

        self._queue: asyncio.Queue[SampleEvent] | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._subscriptions: list[Subscription] = []
        self._last_magnitude: float | None = None
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._consumer is not None

    # ------------------------------------------------------------------
    # Sample conversion
    # ------------------------------------------------------------------

    def to_sample(self, event: MotionEvent) -> MovementSample:
        """Reduce an accelerometer event to a MovementSample.

        In ``raw`` mode the magnitude itself is compared to the threshold. In
        ``delta`` mode the change from the previous sample's magnitude is,
        which cancels the constant gravity component of a resting device.
        """
        magnitude = event.magnitude
        if self.config.significance == "delta":
            previous = self._last_magnitude
            movement = abs(magnitude - previous) if previous is not None else 0.0
        else:
            movement = magnitude
        self._last_magnitude = magnitude
        return MovementSample(
            timestamp=event.timestamp,
            magnitude=magnitude,
            is_significant=movement > self.config.movement_threshold,
        )

    def handle(self, event: SampleEvent) -> Transition | None:
        """Process one event synchronously: buffer it, then step the machine."""
        if isinstance(event, MotionEvent):
            self.buffer.append(self.to_sample(event))
        transition = self.machine.step(event)
        if transition is not None and self.on_transition is not None:
            self.on_transition(transition)
        return transition

    # ------------------------------------------------------------------
    # Subscription lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """Subscribe to both sources. Returns False if either fails to start."""
        if self.running:
            return True

        queue: asyncio.Queue[SampleEvent] = asyncio.Queue()
        subscriptions: list[Subscription] = []
        for source in (self.motion_source, self.brightness_source):
            try:
                subscriptions.append(await source.subscribe(queue.put_nowait))
                continue
            except (SensorUnavailableError, OSError) as e:
                logger.warning("Could not start %s source: %s", source.name, e)
            except Exception:
                logger.exception("Could not start %s source", source.name)
            for sub in subscriptions:
                sub.cancel()
            return False

        self._queue = queue
        self._subscriptions = subscriptions
        self._last_magnitude = None
        self._consumer = asyncio.create_task(self._consume(queue))
        logger.info("Subscribed to %s", ", ".join(s.source_name for s in subscriptions))
        return True

    async def stop(self) -> None:
        """Cancel both subscriptions and the consumer. Queued events are dropped."""
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions = []

        consumer, self._consumer = self._consumer, None
        self._queue = None
        if consumer is not None:
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass
            logger.info("Signal sources unsubscribed")

    async def join(self) -> None:
        """Wait until every event queued so far has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def _consume(self, queue: asyncio.Queue[SampleEvent]) -> None:
        while True:
            event = await queue.get()
            try:
                self.handle(event)
            except Exception:
                self.dropped += 1
                logger.exception("Dropping %r after processing error", event)
            finally:
                queue.task_done()
