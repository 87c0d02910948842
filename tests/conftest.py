"""Shared fixtures and helpers for the sleepsense test suite."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from sleepsense.buffer import MovementBuffer, MovementSample
from sleepsense.config import MonitorConfig
from sleepsense.events import BrightnessEvent, MotionEvent
from sleepsense.machine import SleepStateMachine
from sleepsense.recorder import InMemorySessionStore

# Midnight, 13 Feb 2026 (a Friday), UTC
T0 = datetime(2026, 2, 13, 0, 0, tzinfo=timezone.utc)


def at(minutes: float = 0.0, base: datetime = T0) -> datetime:
    """Timestamp ``minutes`` after ``base``."""
    return base + timedelta(minutes=minutes)


# ---------------------------------------------------------------------------
# Event/sample builders
# ---------------------------------------------------------------------------


def still(minutes: float) -> MotionEvent:
    """A motion event of a device lying still (magnitude 0.1)."""
    return MotionEvent(at(minutes), 0.0, 0.0, 0.1)


def moving(minutes: float) -> MotionEvent:
    """A motion event with magnitude 2.0 (significant)."""
    return MotionEvent(at(minutes), 2.0, 0.0, 0.0)


def light(minutes: float, value: float) -> BrightnessEvent:
    return BrightnessEvent(at(minutes), value)


def sample(minutes: float, significant: bool = False, magnitude: float | None = None) -> MovementSample:
    if magnitude is None:
        magnitude = 2.0 if significant else 0.1
    return MovementSample(timestamp=at(minutes), magnitude=magnitude, is_significant=significant)


# ---------------------------------------------------------------------------
# JSONL capture helpers
# ---------------------------------------------------------------------------


def event_entry(event: MotionEvent | BrightnessEvent) -> dict:
    """Serialize an event to a capture-file entry."""
    if isinstance(event, MotionEvent):
        return {"timestamp": event.timestamp.isoformat(), "type": "motion",
                "x": event.x, "y": event.y, "z": event.z}
    return {"timestamp": event.timestamp.isoformat(), "type": "brightness", "value": event.value}


def write_jsonl(path: Path, entries: list[dict]) -> Path:
    """Write a list of dicts as JSONL to the given path."""
    with open(path, "w") as f:
        for entry in entries:
            f.write(json.dumps(entry) + "\n")
    return path


def night_events(wake_at: float = 490.0) -> list:
    """Dark, quiet night: lights off at minute 0, still samples every minute,
    lights back on (0.8) at ``wake_at``."""
    events: list = [light(0, 0.02)]
    minute = 1.0
    while minute < wake_at:
        events.append(still(minute))
        minute += 1.0
    events.append(light(wake_at, 0.8))
    return events


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def config() -> MonitorConfig:
    return MonitorConfig(timezone="UTC")


@pytest.fixture
def buffer() -> MovementBuffer:
    return MovementBuffer()


@pytest.fixture
def machine(buffer: MovementBuffer, config: MonitorConfig) -> SleepStateMachine:
    m = SleepStateMachine(buffer, config)
    m.start()
    return m


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture(autouse=True)
def _quiet_cli_logging(monkeypatch):
    # CliRunner swaps stderr per invocation; keep the CLI from binding
    # handlers to a stream that is closed afterwards.
    monkeypatch.setattr("sleepsense.logging_config._logging_configured", True)
