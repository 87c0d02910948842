"""Tests for sleepsense.machine -- sleep/wake state machine."""

from __future__ import annotations

import pytest

from sleepsense.buffer import MovementSample
from sleepsense.config import MonitorConfig
from sleepsense.errors import SessionError
from sleepsense.events import MotionEvent
from sleepsense.machine import SleepStateMachine, Transition
from sleepsense.session import MonitoringState

from tests.conftest import at, light, moving, still


def feed(machine: SleepStateMachine, event) -> Transition | None:
    """Buffer a motion event (raw significance) and step the machine."""
    if isinstance(event, MotionEvent):
        machine.buffer.append(MovementSample(event.timestamp, event.magnitude, event.magnitude > 0.5))
    return machine.step(event)


def fall_asleep(machine: SleepStateMachine, minute: float = 1.0) -> Transition:
    feed(machine, light(minute - 0.5, 0.05))
    transition = feed(machine, still(minute))
    assert transition is not None
    return transition


class TestLifecycle:
    def test_initial_state_is_idle(self, buffer):
        m = SleepStateMachine(buffer)
        assert m.state == MonitoringState.IDLE
        assert m.brightness == 1.0
        assert m.session is None

    def test_start_enters_monitoring(self, machine):
        assert machine.state == MonitoringState.MONITORING

    def test_idle_ignores_motion(self, buffer):
        m = SleepStateMachine(buffer)
        feed(m, light(0, 0.0))
        assert feed(m, still(1)) is None
        assert m.state == MonitoringState.IDLE

    def test_stop_discards_open_session(self, machine):
        fall_asleep(machine)
        discarded = machine.stop()
        assert discarded is not None
        assert discarded.sleep_end is None
        assert machine.state == MonitoringState.IDLE
        assert machine.session is None

    def test_stop_from_monitoring(self, machine):
        assert machine.stop() is None
        assert machine.state == MonitoringState.IDLE


class TestOnset:
    def test_dark_and_still_falls_asleep(self, machine):
        feed(machine, light(0, 0.05))
        transition = feed(machine, still(1))
        assert transition is not None
        assert transition.sleep_started
        assert transition.previous == MonitoringState.MONITORING
        assert machine.state == MonitoringState.ASLEEP
        assert machine.session.sleep_start == at(1)
        assert machine.session.sleep_end is None

    def test_bright_room_stays_awake(self, machine):
        feed(machine, light(0, 0.5))
        assert feed(machine, still(1)) is None
        assert machine.state == MonitoringState.MONITORING

    def test_initial_brightness_blocks_onset(self, machine):
        assert feed(machine, still(1)) is None

    def test_brightness_exactly_at_threshold_stays_awake(self, machine):
        feed(machine, light(0, 0.1))
        assert feed(machine, still(1)) is None

    def test_one_significant_movement_still_falls_asleep(self, machine):
        feed(machine, light(0, 0.05))
        feed(machine, moving(0.5))  # one significant sample in the window
        assert machine.state == MonitoringState.ASLEEP

    def test_two_significant_movements_block_onset(self, machine):
        feed(machine, moving(0))
        feed(machine, moving(1))
        feed(machine, light(2, 0.05))
        assert feed(machine, still(3)) is None
        assert machine.state == MonitoringState.MONITORING

    def test_old_movements_outside_window_ignored(self, machine):
        feed(machine, moving(0))
        feed(machine, moving(1))
        feed(machine, light(5, 0.05))
        transition = feed(machine, still(12))  # movements now > 10 min old
        assert transition is not None
        assert machine.session.sleep_start == at(12)

    def test_brightness_alone_does_not_start_sleep(self, machine):
        feed(machine, still(0))
        assert feed(machine, light(1, 0.0)) is None
        assert machine.state == MonitoringState.MONITORING

    def test_min_samples_warm_up(self, buffer):
        m = SleepStateMachine(buffer, MonitorConfig(min_samples=10))
        m.start()
        feed(m, light(0, 0.0))
        for minute in range(1, 10):
            assert feed(m, still(minute)) is None
        assert feed(m, still(10)) is not None


class TestWake:
    def test_bright_light_alone_wakes(self, machine):
        fall_asleep(machine)
        transition = feed(machine, light(60, 0.35))
        assert transition is not None
        assert transition.sleep_ended
        assert machine.state == MonitoringState.MONITORING
        assert transition.session.sleep_end == at(60)

    def test_dim_light_does_not_wake(self, machine):
        fall_asleep(machine)
        assert feed(machine, light(60, 0.2)) is None
        assert machine.state == MonitoringState.ASLEEP

    def test_four_significant_movements_wake(self, machine):
        fall_asleep(machine)
        for minute in (100, 101, 102):
            assert feed(machine, moving(minute)) is None
        transition = feed(machine, moving(103))
        assert transition is not None
        assert transition.session.sleep_end == at(103)

    def test_movements_spread_beyond_window_do_not_wake(self, machine):
        fall_asleep(machine)
        for minute in (100, 103, 106, 109, 112):
            assert feed(machine, moving(minute)) is None
        assert machine.state == MonitoringState.ASLEEP

    def test_wake_scores_session(self, machine):
        fall_asleep(machine, minute=1)
        transition = feed(machine, light(481, 0.9))
        session = transition.session
        # only the onset sample sits in the buffer, and it is not strictly inside
        assert session.total_movements == 0
        assert session.quality == pytest.approx(100.0)
        assert session.duration_hours == pytest.approx(8.0)

    def test_short_session_scores_zero(self, machine):
        fall_asleep(machine, minute=1)
        transition = feed(machine, light(21, 0.9))
        assert transition.session.quality == 0.0

    def test_custom_scorer_invoked_once(self, buffer):
        calls = []

        def scorer(start, end, samples, config):
            from sleepsense.scoring import score_session
            calls.append((start, end))
            return score_session(start, end, samples, config)

        m = SleepStateMachine(buffer, scorer=scorer)
        m.start()
        fall_asleep(m)
        feed(m, light(100, 1.0))
        feed(m, light(101, 1.0))
        assert calls == [(at(1), at(100))]

    def test_stop_never_scores(self, buffer):
        calls = []
        m = SleepStateMachine(buffer, scorer=lambda *a: calls.append(a))
        m.start()
        fall_asleep(m)
        m.stop()
        assert calls == []

    def test_asleep_without_session_raises_session_error(self, machine):
        machine.state = MonitoringState.ASLEEP
        with pytest.raises(SessionError):
            feed(machine, light(5, 1.0))


class TestManual:
    def test_manual_from_idle(self, buffer):
        m = SleepStateMachine(buffer)
        t = m.start_manual(at(0))
        assert t.previous == MonitoringState.IDLE
        assert m.state == MonitoringState.ASLEEP
        assert m.session.is_manual

        t = m.stop_manual(at(7 * 60 + 30))
        assert m.state == MonitoringState.IDLE
        assert t.sleep_ended
        assert t.session.quality == 90.0
        assert t.session.total_movements == 0
        assert t.session.restless_periods == 0
        assert t.session.is_manual

    def test_manual_bypasses_thresholds(self, machine):
        machine.start_manual(at(0))
        for minute in range(1, 10):
            assert feed(machine, moving(minute)) is None
        assert feed(machine, light(10, 1.0)) is None
        assert machine.state == MonitoringState.ASLEEP

    def test_manual_stop_returns_to_monitoring(self, machine):
        machine.start_manual(at(0))
        machine.stop_manual(at(10))
        assert machine.state == MonitoringState.MONITORING

    def test_start_monitoring_during_manual_session(self, buffer):
        m = SleepStateMachine(buffer)
        m.start_manual(at(0))
        m.start()
        m.stop_manual(at(60))
        assert m.state == MonitoringState.MONITORING

    def test_manual_while_asleep_rejected(self, machine):
        fall_asleep(machine)
        with pytest.raises(SessionError):
            machine.start_manual(at(5))

    def test_stop_manual_without_session_rejected(self, machine):
        with pytest.raises(SessionError):
            machine.stop_manual(at(5))

    def test_stop_manual_does_not_close_automatic_session(self, machine):
        fall_asleep(machine)
        with pytest.raises(SessionError):
            machine.stop_manual(at(5))
        assert machine.state == MonitoringState.ASLEEP


def test_unsupported_event_type(machine):
    with pytest.raises(TypeError):
        machine.step("not an event")  # type: ignore[arg-type]
