"""Time-bounded log of recent movement samples."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from itertools import pairwise
from typing import Iterator

from sleepsense.constants import RETENTION


@dataclass(frozen=True)
class MovementSample:
    """One accelerometer reading reduced to a magnitude."""

    timestamp: datetime
    magnitude: float
    is_significant: bool

    def __repr__(self) -> str:
        flag = "!" if self.is_significant else ""
        return f"Movement({self.timestamp:%H:%M:%S}, {self.magnitude:.3f}{flag})"


class MovementBuffer:
    """Insertion-ordered movement samples with a sliding retention horizon.

    After every :meth:`append`, no retained sample is older than the newest
    sample's timestamp minus ``retention``. Samples are never modified once
    stored; window queries hand out lazy iterators over the live buffer.
    """

    def __init__(self, retention: timedelta = RETENTION) -> None:
        self.retention = retention
        self._samples: deque[MovementSample] = deque()
        self._newest: datetime | None = None
        self._ordered = True  # timestamps non-decreasing front to back

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[MovementSample]:
        return iter(self._samples)

    def __repr__(self) -> str:
        return f"MovementBuffer({len(self._samples)} samples, retention={self.retention})"

    @property
    def latest(self) -> MovementSample | None:
        """Most recently appended sample."""
        return self._samples[-1] if self._samples else None

    @property
    def newest(self) -> datetime | None:
        """Largest timestamp seen since the buffer was last cleared."""
        return self._newest

    def append(self, sample: MovementSample) -> None:
        """Store a sample, then evict everything older than the horizon.

        The horizon is measured from the newest timestamp seen, so a late
        arrival never moves it backwards.
        """
        if self._newest is not None and sample.timestamp < self._newest:
            self._ordered = False
        else:
            self._newest = sample.timestamp
        self._samples.append(sample)

        cutoff = self._newest - self.retention
        if self._ordered:
            while self._samples and self._samples[0].timestamp < cutoff:
                self._samples.popleft()
        else:
            # stale entries may sit anywhere behind a late arrival
            self._samples = deque(s for s in self._samples if s.timestamp >= cutoff)
            self._ordered = all(
                a.timestamp <= b.timestamp for a, b in pairwise(self._samples)
            )

    def window_since(
        self, duration: timedelta, now: datetime | None = None
    ) -> Iterator[MovementSample]:
        """Yield samples newer than ``now - duration``.

        ``now`` defaults to the newest timestamp seen.
        """
        if now is None:
            if not self._samples:
                return iter(())
            now = self._newest
        cutoff = now - duration
        return (s for s in self._samples if s.timestamp > cutoff)

    def between(self, start: datetime, end: datetime) -> Iterator[MovementSample]:
        """Yield samples strictly inside ``(start, end)``."""
        return (s for s in self._samples if start < s.timestamp < end)

    def clear(self) -> None:
        self._samples.clear()
        self._newest = None
        self._ordered = True
