"""Streaming sleep/wake classifier.

The state machine consumes one :data:`~sleepsense.events.SampleEvent` at a
time. Falling asleep is judged over a 10-minute window and waking over a
5-minute window, so onset is slow to declare and waking is quick:

  MONITORING → ASLEEP   brightness < 0.1 and fewer than 2 significant
                        movements in the last 10 minutes
  ASLEEP → MONITORING   more than 3 significant movements in the last
                        5 minutes, or brightness > 0.3

Manual sessions bypass both rules until the user stops them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

from sleepsense.buffer import MovementBuffer, MovementSample
from sleepsense.config import MonitorConfig
from sleepsense.constants import INITIAL_BRIGHTNESS
from sleepsense.errors import SessionError
from sleepsense.events import BrightnessEvent, MotionEvent, SampleEvent
from sleepsense.scoring import QualityResult, manual_quality, score_session
from sleepsense.session import MonitoringState, SleepSession

logger = logging.getLogger(__name__)

Scorer = Callable[[datetime, datetime, Iterable[MovementSample], MonitorConfig], QualityResult]


@dataclass(frozen=True)
class Transition:
    """A state change produced by the state machine.

    ``session`` is the newly opened session when sleep starts, and the
    finalized session when it ends.
    """

    previous: MonitoringState
    current: MonitoringState
    session: SleepSession

    @property
    def sleep_started(self) -> bool:
        return self.current == MonitoringState.ASLEEP

    @property
    def sleep_ended(self) -> bool:
        return self.previous == MonitoringState.ASLEEP and self.session.is_finalized


def _count_significant(samples: Iterable[MovementSample]) -> int:
    return sum(1 for s in samples if s.is_significant)


class SleepStateMachine:
    """Decides whether the user is asleep from the movement buffer and brightness.

    The machine only reads the buffer; the ingestor appends the motion sample
    before handing its event to :meth:`step`.
    """

    def __init__(
        self,
        buffer: MovementBuffer,
        config: MonitorConfig | None = None,
        scorer: Scorer = score_session,
    ) -> None:
        self.buffer = buffer
        self.config = config or MonitorConfig()
        self.scorer = scorer
        self.state = MonitoringState.IDLE
        self.brightness = INITIAL_BRIGHTNESS
        self.session: SleepSession | None = None
        self._resume_state = MonitoringState.IDLE

    def __repr__(self) -> str:
        return (
            f"SleepStateMachine(state={self.state.value}, "
            f"brightness={self.brightness:.2f}, session={self.session!r})"
        )

    @property
    def in_manual_session(self) -> bool:
        return self.session is not None and self.session.is_manual

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Enter MONITORING. No-op if already monitoring or asleep.

        Starting while a manual session is open makes the manual stop land in
        MONITORING instead of IDLE.
        """
        if self.state == MonitoringState.IDLE:
            self.state = MonitoringState.MONITORING
            self.brightness = INITIAL_BRIGHTNESS
        elif self.in_manual_session:
            self._resume_state = MonitoringState.MONITORING

    def stop(self) -> SleepSession | None:
        """Return to IDLE, discarding any open session unscored.

        Returns the discarded session, if there was one.
        """
        discarded = self.session
        if discarded is not None:
            logger.info("Monitoring stopped; discarding open session from %s",
                        discarded.sleep_start.isoformat())
        self.state = MonitoringState.IDLE
        self.session = None
        self._resume_state = MonitoringState.IDLE
        return discarded

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def step(self, event: SampleEvent) -> Transition | None:
        """Evaluate one event. Returns a Transition if the state changed."""
        if isinstance(event, BrightnessEvent):
            self.brightness = event.value
            if (
                self.state == MonitoringState.ASLEEP
                and not self.in_manual_session
                and event.value > self.config.wake_check_brightness
            ):
                return self._check_wake(event.timestamp)
            return None

        if not isinstance(event, MotionEvent):
            raise TypeError(f"Unsupported event type: {type(event).__name__}")

        if self.state == MonitoringState.MONITORING:
            return self._check_onset(event.timestamp)
        if self.state == MonitoringState.ASLEEP and not self.in_manual_session:
            return self._check_wake(event.timestamp)
        return None

    def _check_onset(self, now: datetime) -> Transition | None:
        if len(self.buffer) < self.config.min_samples:
            return None
        if self.brightness >= self.config.dark_brightness:
            return None

        recent = self.buffer.window_since(self.config.onset_window, now)
        if _count_significant(recent) >= self.config.onset_max_significant:
            return None

        self.session = SleepSession(sleep_start=now)
        self.state = MonitoringState.ASLEEP
        logger.info("Sleep detected at %s", now.isoformat())
        return Transition(MonitoringState.MONITORING, MonitoringState.ASLEEP, self.session)

    def _check_wake(self, now: datetime) -> Transition | None:
        recent = self.buffer.window_since(self.config.wake_window, now)
        restless = _count_significant(recent) > self.config.wake_min_significant
        if not restless and self.brightness <= self.config.bright_brightness:
            return None
        return self._end_sleep(now)

    def _end_sleep(self, now: datetime) -> Transition:
        session = self.session
        if session is None:
            raise SessionError("ASLEEP without an open session")
        start = session.sleep_start
        result = self.scorer(start, now, self.buffer.between(start, now), self.config)
        finalized = session.finalize(
            now,
            quality=result.quality,
            total_movements=result.total_movements,
            restless_periods=result.restless_periods,
        )
        self.session = None
        self.state = MonitoringState.MONITORING
        logger.info("Wake detected at %s: %r", now.isoformat(), finalized)
        return Transition(MonitoringState.ASLEEP, MonitoringState.MONITORING, finalized)

    # ------------------------------------------------------------------
    # Manual mode
    # ------------------------------------------------------------------

    def start_manual(self, now: datetime) -> Transition:
        """Open a manual session, bypassing the detection thresholds."""
        if self.session is not None:
            raise SessionError("A sleep session is already open")
        previous = self.state
        self._resume_state = previous
        self.session = SleepSession(sleep_start=now, is_manual=True)
        self.state = MonitoringState.ASLEEP
        logger.info("Manual sleep started at %s", now.isoformat())
        return Transition(previous, MonitoringState.ASLEEP, self.session)

    def stop_manual(self, now: datetime) -> Transition:
        """Close the open manual session and score it on duration alone."""
        session = self.session
        if session is None or not session.is_manual:
            raise SessionError("No manual sleep session is open")
        hours = (now - session.sleep_start).total_seconds() // 60 / 60.0
        finalized = session.finalize(now, quality=manual_quality(hours))
        self.session = None
        self.state = self._resume_state
        logger.info("Manual sleep stopped at %s: %r", now.isoformat(), finalized)
        return Transition(MonitoringState.ASLEEP, self.state, finalized)
