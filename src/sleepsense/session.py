"""Sleep session record and monitor state."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Any

from sleepsense.errors import SessionError
from sleepsense.scoring import session_minutes


class MonitoringState(str, Enum):
    """Which phase a monitor is in."""

    IDLE = "idle"  # not subscribed to any source
    MONITORING = "monitoring"  # subscribed, user awake
    ASLEEP = "asleep"  # subscribed, session open


@dataclass(frozen=True)
class SleepSession:
    """One night (or nap) of sleep.

    An open session only has ``sleep_start``. :meth:`finalize` returns a new,
    closed copy carrying the end time and score; a closed session cannot be
    finalized again, so its quality never changes.
    """

    sleep_start: datetime
    sleep_end: datetime | None = None
    duration_hours: float = 0.0
    quality: float = 0.0
    total_movements: int = 0
    restless_periods: int = 0
    is_manual: bool = False

    @property
    def is_finalized(self) -> bool:
        return self.sleep_end is not None

    def finalize(
        self,
        sleep_end: datetime,
        quality: float,
        total_movements: int = 0,
        restless_periods: int = 0,
    ) -> SleepSession:
        """Close the session. Raises SessionError if it is already closed."""
        if self.is_finalized:
            raise SessionError(f"Session starting {self.sleep_start} is already finalized")
        if sleep_end < self.sleep_start:
            raise SessionError("sleep_end precedes sleep_start")
        minutes = session_minutes(self.sleep_start, sleep_end)
        return replace(
            self,
            sleep_end=sleep_end,
            duration_hours=minutes / 60.0,
            quality=quality,
            total_movements=total_movements,
            restless_periods=restless_periods,
        )

    def to_record(self, day: date, updated_at: datetime) -> dict[str, Any]:
        """Serialize to the session-store document layout."""
        if self.sleep_end is None:
            raise SessionError("Only finalized sessions can be stored")
        return {
            "sleepStart": self.sleep_start.isoformat(),
            "sleepEnd": self.sleep_end.isoformat(),
            "duration": self.duration_hours,
            "quality": self.quality,
            "totalMovements": self.total_movements,
            "restlessPeriods": self.restless_periods,
            "isManual": self.is_manual,
            "date": day.isoformat(),
            "updatedAt": updated_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> SleepSession:
        """Rebuild a finalized session from a stored document."""
        end = record.get("sleepEnd")
        return cls(
            sleep_start=datetime.fromisoformat(record["sleepStart"]),
            sleep_end=datetime.fromisoformat(end) if end else None,
            duration_hours=float(record.get("duration", 0.0)),
            quality=float(record.get("quality", 0.0)),
            total_movements=int(record.get("totalMovements", 0)),
            restless_periods=int(record.get("restlessPeriods", 0)),
            is_manual=bool(record.get("isManual", False)),
        )

    def __repr__(self) -> str:
        kind = "manual" if self.is_manual else "auto"
        if self.sleep_end is None:
            return f"SleepSession({kind}, open since {self.sleep_start.isoformat()})"
        return (
            f"SleepSession({kind}, {self.duration_hours:.1f}h, "
            f"quality={self.quality:.1f}, movements={self.total_movements}, "
            f"restless={self.restless_periods})"
        )
