"""The sleep monitor: one explicitly constructed object per user.

A :class:`SleepMonitor` owns its movement buffer, state machine, ingestor and
recorder. Nothing is shared between monitor instances.

Automatically detected sessions are saved with a fire-and-forget task when
the user wakes; the monitor keeps a reference to each task until it finishes,
and :meth:`drain` waits for the stragglers. A manual stop awaits its write
and reports the result.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

from sleepsense.buffer import MovementBuffer
from sleepsense.config import MonitorConfig
from sleepsense.ingest import SignalIngestor, SignalSource
from sleepsense.machine import SleepStateMachine, Transition
from sleepsense.recorder import SessionRecorder, SessionStore
from sleepsense.session import MonitoringState, SleepSession

logger = logging.getLogger(__name__)


class SleepMonitor:
    """Detects, scores and records sleep for one user.

    Args:
        user_id: Owner of the recorded sessions.
        motion_source: Accelerometer source.
        brightness_source: Ambient brightness source.
        store: Session store collaborator.
        config: Thresholds; defaults to ``MonitorConfig()``.
        clock: Current time for manual start/stop. Automatic detection uses
            event timestamps instead.
        on_session: Called with every finalized session, automatic or manual.
            Exceptions it raises are logged and do not affect the save.
    """

    def __init__(
        self,
        user_id: str,
        motion_source: SignalSource,
        brightness_source: SignalSource,
        store: SessionStore,
        config: MonitorConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        on_session: Callable[[SleepSession], None] | None = None,
    ) -> None:
        self.user_id = user_id
        self.config = config or MonitorConfig()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.on_session = on_session

        self.buffer = MovementBuffer(self.config.retention)
        self.machine = SleepStateMachine(self.buffer, self.config)
        self.recorder = SessionRecorder(store, tz=self.config.tz, clock=self.clock)
        self.ingestor = SignalIngestor(
            motion_source,
            brightness_source,
            self.buffer,
            self.machine,
            self.config,
            on_transition=self._on_transition,
        )

        self.last_session: SleepSession | None = None
        self._saves: set[asyncio.Task[bool]] = set()
        self._save_results: list[bool] = []

    def __repr__(self) -> str:
        return f"SleepMonitor(user={self.user_id!r}, state={self.state.value})"

    @property
    def state(self) -> MonitoringState:
        return self.machine.state

    @property
    def current_session(self) -> SleepSession | None:
        return self.machine.session

    @property
    def brightness(self) -> float:
        return self.machine.brightness

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    async def start_monitoring(self) -> bool:
        """Subscribe to the signal sources and begin detection.

        Returns False (and stays IDLE) if a sensor cannot be started.
        """
        if self.ingestor.running:
            return True
        if not await self.ingestor.start():
            logger.warning("Sleep monitoring unavailable for %s", self.user_id)
            return False
        self.machine.start()
        logger.info("Sleep monitoring started for %s", self.user_id)
        return True

    async def stop_monitoring(self) -> None:
        """Unsubscribe and return to IDLE. An open session is discarded.

        In-flight saves are left to finish on their own.
        """
        await self.ingestor.stop()
        self.machine.stop()
        self.buffer.clear()
        logger.info("Sleep monitoring stopped for %s", self.user_id)

    def _on_transition(self, transition: Transition) -> None:
        if transition.sleep_ended and not transition.session.is_manual:
            self._schedule_save(transition.session)
            self._closed(transition.session)

    def _closed(self, session: SleepSession) -> None:
        self.last_session = session
        if self.on_session is None:
            return
        try:
            self.on_session(session)
        except Exception:
            logger.exception("on_session callback failed for %r", session)

    @property
    def pending_saves(self) -> int:
        return len(self._saves)

    def _schedule_save(self, session: SleepSession) -> None:
        task = asyncio.get_running_loop().create_task(
            self.recorder.finalize(self.user_id, session)
        )
        self._saves.add(task)
        task.add_done_callback(self._save_done)

    def _save_done(self, task: asyncio.Task[bool]) -> None:
        self._saves.discard(task)
        if task.cancelled():
            ok = False
        elif task.exception() is not None:
            logger.error("Sleep session save crashed", exc_info=task.exception())
            ok = False
        else:
            ok = task.result()
        self._save_results.append(ok)

    async def drain(self) -> list[bool]:
        """Wait for pending saves to finish.

        Returns the result of every save completed since the last drain, in
        completion order.
        """
        if self._saves:
            await asyncio.gather(*self._saves, return_exceptions=True)
        results, self._save_results = self._save_results, []
        return results

    # ------------------------------------------------------------------
    # Manual mode
    # ------------------------------------------------------------------

    def start_manual_sleep(self) -> SleepSession:
        """Open a manual session now. Raises SessionError if one is open."""
        return self.machine.start_manual(self.clock()).session

    async def stop_manual_sleep(self) -> bool:
        """Close the manual session and save it.

        Returns whether the save succeeded; the session is closed either way.
        Raises SessionError if no manual session is open.
        """
        session = self.machine.stop_manual(self.clock()).session
        self._closed(session)
        return await self.recorder.finalize(self.user_id, session)
