"""Replay recorded sensor events through a monitor for offline analysis.

Capture files are JSONL, one event per line::

    {"timestamp": "2026-02-13T23:10:00+00:00", "type": "motion", "x": 0.01, "y": 0.0, "z": 0.02}
    {"timestamp": "2026-02-13T23:10:05+00:00", "type": "brightness", "value": 0.04}

Invalid lines are skipped with a warning.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Iterator

from sleepsense.config import MonitorConfig
from sleepsense.events import BrightnessEvent, MotionEvent, SampleEvent
from sleepsense.ingest import QueueSource
from sleepsense.monitor import SleepMonitor
from sleepsense.recorder import SessionStore
from sleepsense.session import SleepSession

logger = logging.getLogger(__name__)


@dataclass
class ReplayResult:
    """What a replay produced."""

    events: int = 0
    skipped: int = 0
    sessions: list[SleepSession] = field(default_factory=list)
    saved: list[bool] = field(default_factory=list)
    open_session: SleepSession | None = None  # still asleep at end of capture

    def __repr__(self) -> str:
        return (
            f"ReplayResult(events={self.events}, skipped={self.skipped}, "
            f"sessions={len(self.sessions)}, saved={sum(self.saved)})"
        )


def parse_event(entry: dict[str, Any]) -> SampleEvent:
    """Turn one decoded JSON object into an event. Raises ValueError/KeyError."""
    timestamp = datetime.fromisoformat(entry["timestamp"])
    kind = entry.get("type")
    if kind == "motion":
        return MotionEvent(timestamp, float(entry["x"]), float(entry["y"]), float(entry["z"]))
    if kind == "brightness":
        return BrightnessEvent(timestamp, float(entry["value"]))
    raise ValueError(f"unknown event type {kind!r}")


def iter_events(lines: Iterable[str], stats: ReplayResult | None = None) -> Iterator[SampleEvent]:
    """Parse JSONL lines into events, skipping blank and invalid lines."""
    for line_num, line in enumerate(lines, 1):
        line = line.strip()
        if not line:
            continue
        try:
            event = parse_event(json.loads(line))
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            logger.warning("line %d: skipping invalid event (%s)", line_num, e)
            if stats is not None:
                stats.skipped += 1
            continue
        yield event


def load_events(path: str | Path, stats: ReplayResult | None = None) -> list[SampleEvent]:
    """Read every valid event from a JSONL capture file."""
    with open(path) as f:
        return list(iter_events(f, stats))


async def replay_events(
    events: Iterable[SampleEvent],
    user_id: str,
    store: SessionStore,
    config: MonitorConfig | None = None,
    result: ReplayResult | None = None,
) -> ReplayResult:
    """Feed events, in order, through a fresh monitor.

    Sessions detected along the way are saved to ``store``. A session still
    open at the end is reported in ``open_session`` and not saved.
    """
    result = result or ReplayResult()
    motion = QueueSource("motion")
    brightness = QueueSource("brightness")
    monitor = SleepMonitor(
        user_id,
        motion,
        brightness,
        store,
        config=config,
        on_session=result.sessions.append,
    )

    if not await monitor.start_monitoring():
        return result

    for event in events:
        source = motion if isinstance(event, MotionEvent) else brightness
        source.push(event)
        result.events += 1

    await monitor.ingestor.join()
    result.saved = await monitor.drain()
    result.open_session = monitor.current_session
    await monitor.stop_monitoring()

    logger.info("Replayed %d events: %r", result.events, result)
    return result


async def replay_file(
    path: str | Path,
    user_id: str,
    store: SessionStore,
    config: MonitorConfig | None = None,
) -> ReplayResult:
    """Replay a JSONL capture file. See :func:`replay_events`."""
    result = ReplayResult()
    events = load_events(path, result)
    return await replay_events(events, user_id, store, config, result)
