"""Session persistence boundary.

Finalized sessions are written to a keyed document store, one document per
``(user_id, calendar day)``. Writes are single best-effort calls: a failure
is logged and reported as ``False`` and never retried.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Any, Callable, Protocol

from sleepsense.errors import SessionError
from sleepsense.session import SleepSession

logger = logging.getLogger(__name__)


def date_key(day: date) -> str:
    """Document key for a calendar day (``YYYY-MM-DD``)."""
    return day.isoformat()


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class SessionStore(Protocol):
    """Keyed document store for finalized sessions."""

    async def write(self, user_id: str, key: str, record: dict[str, Any]) -> bool: ...

    async def read(self, user_id: str, key: str) -> dict[str, Any] | None: ...


class InMemorySessionStore:
    """Dict-backed store, one document per (user, day)."""

    def __init__(self) -> None:
        self.documents: dict[tuple[str, str], dict[str, Any]] = {}

    async def write(self, user_id: str, key: str, record: dict[str, Any]) -> bool:
        self.documents[(user_id, key)] = dict(record)
        return True

    async def read(self, user_id: str, key: str) -> dict[str, Any] | None:
        doc = self.documents.get((user_id, key))
        return dict(doc) if doc is not None else None


class JsonFileSessionStore:
    """Stores each document as ``<root>/<user_id>/<key>.json``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _path(self, user_id: str, key: str) -> Path:
        if not user_id or "/" in user_id or user_id.startswith("."):
            raise ValueError(f"Invalid user id: {user_id!r}")
        return self.root / user_id / f"{key}.json"

    async def write(self, user_id: str, key: str, record: dict[str, Any]) -> bool:
        path = self._path(user_id, key)
        await asyncio.to_thread(self._write_file, path, record)
        return True

    async def read(self, user_id: str, key: str) -> dict[str, Any] | None:
        path = self._path(user_id, key)
        return await asyncio.to_thread(self._read_file, path)

    # File I/O runs in a worker thread so the event loop keeps consuming events.

    @staticmethod
    def _write_file(path: Path, record: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w") as f:
            json.dump(record, f, indent=2)
        tmp.replace(path)

    @staticmethod
    def _read_file(path: Path) -> dict[str, Any] | None:
        if not path.exists():
            return None
        with open(path) as f:
            return json.load(f)


# ---------------------------------------------------------------------------
# Weekly rollup
# ---------------------------------------------------------------------------


@dataclass
class DailySleep:
    """One day of the weekly rollup. Days without data keep the zero defaults."""

    date: str  # ISO date
    duration: float = 0.0  # hours
    quality: float = 0.0
    sleep_start: str | None = None
    sleep_end: str | None = None

    @property
    def has_data(self) -> bool:
        return self.sleep_start is not None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def __repr__(self) -> str:
        return f"DailySleep({self.date}: {self.duration:.1f}h, quality={self.quality:.0f})"


def week_days(today: date) -> list[date]:
    """Monday through Sunday of the week containing ``today``."""
    monday = today - timedelta(days=today.weekday())
    return [monday + timedelta(days=i) for i in range(7)]


def weekly_averages(rows: list[DailySleep]) -> dict[str, float]:
    """Mean duration (hours) and quality across the rollup's seven days."""
    if not rows:
        return {"duration": 0.0, "quality": 0.0}
    return {
        "duration": sum(r.duration for r in rows) / len(rows),
        "quality": sum(r.quality for r in rows) / len(rows),
    }


# ---------------------------------------------------------------------------
# Recorder
# ---------------------------------------------------------------------------


class SessionRecorder:
    """Hands finalized sessions to the store and reads them back.

    Args:
        store: The session-store collaborator.
        tz: Timezone used to pick a session's calendar day. ``None`` uses the
            system local timezone.
        clock: Returns the current time (``updatedAt`` and "this week").
    """

    def __init__(
        self,
        store: SessionStore,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.tz = tz
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def session_day(self, session: SleepSession) -> date:
        """Local calendar day a session is filed under (the day it ended)."""
        moment = session.sleep_end or session.sleep_start
        if moment.tzinfo is None:
            return moment.date()
        return moment.astimezone(self.tz).date()

    async def finalize(self, user_id: str, session: SleepSession) -> bool:
        """Write one finalized session. Returns False if the store call fails."""
        if not session.is_finalized:
            raise SessionError("Cannot record a session that has not been finalized")

        day = self.session_day(session)
        record = session.to_record(day, updated_at=self.clock())
        try:
            ok = await self.store.write(user_id, date_key(day), record)
        except Exception:
            logger.exception("Failed to save sleep session for %s on %s", user_id, day)
            return False

        if ok:
            logger.info("Saved sleep session for %s on %s: %r", user_id, day, session)
        else:
            logger.warning("Store rejected sleep session for %s on %s", user_id, day)
        return bool(ok)

    async def get_session(self, user_id: str, day: date) -> SleepSession | None:
        """Read the session stored for a day.

        Returns None if there is none, or if the read fails or the stored
        document is malformed (the failure is logged).
        """
        try:
            record = await self.store.read(user_id, date_key(day))
            if record is None:
                return None
            return SleepSession.from_record(record)
        except Exception:
            logger.exception("Failed to read sleep session for %s on %s", user_id, day)
            return None

    async def _daily(self, user_id: str, day: date) -> DailySleep:
        row = DailySleep(date=day.isoformat())
        try:
            record = await self.store.read(user_id, date_key(day))
        except Exception:
            logger.exception("Failed to read sleep data for %s on %s", user_id, day)
            return row
        if record is None:
            return row
        row.duration = float(record.get("duration", 0.0))
        row.quality = float(record.get("quality", 0.0))
        row.sleep_start = record.get("sleepStart")
        row.sleep_end = record.get("sleepEnd")
        return row

    async def get_weekly_sessions(self, user_id: str, today: date | None = None) -> list[DailySleep]:
        """Seven rows, Monday to Sunday of the current week.

        Days are read concurrently; missing days and failed reads become
        zeroed rows.
        """
        if today is None:
            today = self.clock().astimezone(self.tz).date()
        return list(await asyncio.gather(*(self._daily(user_id, d) for d in week_days(today))))
