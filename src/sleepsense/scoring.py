"""Sleep-quality scoring for finalized sessions.

The score blends two components:

  - a movement penalty (70%): 100 minus 0.5 per recorded movement and
    2 per restless period, floored at 0
  - a duration component (30%): linear up to 8 hours, capped at 100

Restless periods are bursts of significant movement. A burst continues while
significant samples follow each other less than 5 minutes apart, so a run of
small motions only costs one restless period.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Sequence

import numpy as np

from sleepsense.buffer import MovementSample
from sleepsense.config import MonitorConfig
from sleepsense.constants import (
    CLUSTER_GAP,
    DURATION_WEIGHT,
    MOVEMENT_PENALTY,
    MOVEMENT_WEIGHT,
    RESTLESS_PENALTY,
)


@dataclass(frozen=True)
class QualityResult:
    """Outcome of scoring one session."""

    quality: float  # 0-100
    total_movements: int
    restless_periods: int
    duration_minutes: int

    def __repr__(self) -> str:
        return (
            f"QualityResult(quality={self.quality:.1f}, "
            f"movements={self.total_movements}, restless={self.restless_periods}, "
            f"duration={self.duration_minutes}min)"
        )


def session_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes elapsed between two timestamps (truncated)."""
    return int((end - start).total_seconds() // 60)


def count_restless_periods(
    samples: Sequence[MovementSample], gap: timedelta = CLUSTER_GAP
) -> int:
    """Count clusters of significant movement.

    Walking the samples in order, a significant sample opens a new cluster
    unless the sample right before it was also significant and less than
    ``gap`` earlier.
    """
    if len(samples) == 0:
        return 0

    significant = np.fromiter((s.is_significant for s in samples), dtype=bool, count=len(samples))
    seconds = np.fromiter(
        ((s.timestamp - samples[0].timestamp).total_seconds() for s in samples),
        dtype=np.float64,
        count=len(samples),
    )

    continues = np.zeros(len(samples), dtype=bool)
    continues[1:] = significant[:-1] & (np.diff(seconds) < gap.total_seconds())
    return int(np.count_nonzero(significant & ~continues))


def combine_scores(
    duration_minutes: float,
    total_movements: int,
    restless_periods: int,
    full_minutes: float = 480,
) -> float:
    """Blend the movement and duration components into a 0-100 score."""
    movement_score = max(
        0.0,
        100.0 - total_movements * MOVEMENT_PENALTY - restless_periods * RESTLESS_PENALTY,
    )
    duration_score = min(100.0, duration_minutes / full_minutes * 100.0)
    quality = movement_score * MOVEMENT_WEIGHT + duration_score * DURATION_WEIGHT
    return float(np.clip(quality, 0.0, 100.0))


def score_session(
    sleep_start: datetime,
    sleep_end: datetime,
    samples: Iterable[MovementSample],
    config: MonitorConfig | None = None,
) -> QualityResult:
    """Score a finalized session from the movement samples inside it.

    Args:
        sleep_start: Session start.
        sleep_end: Session end.
        samples: Movement samples recorded between start and end, in order.
        config: Thresholds; defaults to ``MonitorConfig()``.

    Returns:
        QualityResult. Sessions shorter than the minimum length score 0
        and report no movements.
    """
    config = config or MonitorConfig()
    minutes = session_minutes(sleep_start, sleep_end)
    if minutes < config.min_session_minutes:
        return QualityResult(quality=0.0, total_movements=0, restless_periods=0,
                             duration_minutes=minutes)

    window = [s for s in samples if sleep_start < s.timestamp < sleep_end]
    total = len(window)
    restless = count_restless_periods(window, config.cluster_gap)
    quality = combine_scores(minutes, total, restless, config.full_session_minutes)

    return QualityResult(
        quality=quality,
        total_movements=total,
        restless_periods=restless,
        duration_minutes=minutes,
    )


# ---------------------------------------------------------------------------
# Manual sessions and labels
# ---------------------------------------------------------------------------

# (minimum hours, quality) from best to worst
MANUAL_QUALITY_LADDER = [
    (8.0, 100.0),
    (7.0, 90.0),
    (6.0, 80.0),
    (5.0, 70.0),
    (4.0, 60.0),
]

QUALITY_LABELS = [
    (90.0, "Excellent"),
    (80.0, "Very Good"),
    (70.0, "Good"),
    (60.0, "Fair"),
    (50.0, "Poor"),
]


def manual_quality(duration_hours: float) -> float:
    """Duration-only quality for sessions the user started and stopped by hand."""
    if duration_hours < 0.5:
        return 0.0
    for min_hours, quality in MANUAL_QUALITY_LADDER:
        if duration_hours >= min_hours:
            return quality
    return 50.0


def quality_label(quality: float) -> str:
    """Human-readable band for a quality score."""
    for floor, label in QUALITY_LABELS:
        if quality >= floor:
            return label
    return "Very Poor"
