"""Detection and scoring thresholds shared across sleepsense modules."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

# ---------------------------------------------------------------------------
# Movement classification
# ---------------------------------------------------------------------------

MOVEMENT_THRESHOLD = 0.5  # magnitude above this is a significant movement
RETENTION = timedelta(hours=2)  # movement buffer horizon

# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

ONSET_WINDOW = timedelta(minutes=10)
WAKE_WINDOW = timedelta(minutes=5)
DARK_BRIGHTNESS = 0.1  # onset requires brightness below this
BRIGHT_BRIGHTNESS = 0.3  # brightness above this ends sleep on its own
WAKE_CHECK_BRIGHTNESS = 0.1  # brightness update above this triggers a wake check
ONSET_MAX_SIGNIFICANT = 2  # fewer than this in the onset window → asleep
WAKE_MIN_SIGNIFICANT = 3  # more than this in the wake window → awake
INITIAL_BRIGHTNESS = 1.0

# ---------------------------------------------------------------------------
# Quality scoring
# ---------------------------------------------------------------------------

MIN_SESSION_MINUTES = 30
FULL_SESSION_MINUTES = 480  # 8h scores 100 on duration
CLUSTER_GAP = timedelta(minutes=5)
MOVEMENT_PENALTY = 0.5
RESTLESS_PENALTY = 2.0
MOVEMENT_WEIGHT = 0.7
DURATION_WEIGHT = 0.3

# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

DEFAULT_CONFIG_DIR = Path.home() / ".sleepsense"
DEFAULT_CONFIG_FILE = "config.toml"
DEFAULT_STORE_DIR = DEFAULT_CONFIG_DIR / "sessions"
DEFAULT_LOG_FILE = "sleepsense.log"
DEFAULT_LOG_BACKUP_COUNT = 3
