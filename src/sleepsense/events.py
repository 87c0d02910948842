"""Typed sensor events delivered by the signal sources.

Both sources feed a single ordered stream of :data:`SampleEvent` values, so
the state machine sees motion and brightness changes in one sequence.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Union


@dataclass(frozen=True)
class MotionEvent:
    """A single 3-axis accelerometer reading."""

    timestamp: datetime
    x: float
    y: float
    z: float

    @property
    def magnitude(self) -> float:
        return math.sqrt(self.x ** 2 + self.y ** 2 + self.z ** 2)

    def __repr__(self) -> str:
        return (
            f"Motion({self.timestamp:%H:%M:%S}, x={self.x:.3f}, y={self.y:.3f}, "
            f"z={self.z:.3f}, mag={self.magnitude:.3f})"
        )


@dataclass(frozen=True)
class BrightnessEvent:
    """A normalized ambient brightness reading (0.0 dark – 1.0 bright)."""

    timestamp: datetime
    value: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.value <= 1.0:
            raise ValueError(f"brightness must be within [0, 1], got {self.value}")

    def __repr__(self) -> str:
        return f"Brightness({self.timestamp:%H:%M:%S}, {self.value:.2f})"


SampleEvent = Union[MotionEvent, BrightnessEvent]
