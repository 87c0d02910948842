"""On-device sleep detection and scoring from motion and ambient light.

Modules:
    events    -- Typed motion/brightness events
    buffer    -- Sliding 2-hour movement log
    ingest    -- Signal sources, subscriptions and the sample ingestor
    machine   -- Monitoring/asleep state machine
    scoring   -- Session quality score and restless-period counting
    recorder  -- Session store boundary and weekly rollup
    monitor   -- Per-user monitor tying the pieces together
    replay    -- Offline replay of JSONL sensor captures
"""

from sleepsense.buffer import MovementBuffer, MovementSample
from sleepsense.config import MonitorConfig, load_config
from sleepsense.errors import (
    ConfigError,
    SensorUnavailableError,
    SessionError,
    SleepSenseError,
)
from sleepsense.events import BrightnessEvent, MotionEvent, SampleEvent
from sleepsense.ingest import QueueSource, SignalIngestor, SignalSource, Subscription
from sleepsense.machine import SleepStateMachine, Transition
from sleepsense.monitor import SleepMonitor
from sleepsense.recorder import (
    DailySleep,
    InMemorySessionStore,
    JsonFileSessionStore,
    SessionRecorder,
    SessionStore,
)
from sleepsense.scoring import (
    QualityResult,
    count_restless_periods,
    manual_quality,
    quality_label,
    score_session,
)
from sleepsense.session import MonitoringState, SleepSession

__all__ = [
    # events / buffer
    "MotionEvent",
    "BrightnessEvent",
    "SampleEvent",
    "MovementSample",
    "MovementBuffer",
    # ingest
    "SignalSource",
    "Subscription",
    "QueueSource",
    "SignalIngestor",
    # state machine
    "SleepStateMachine",
    "Transition",
    "MonitoringState",
    "SleepSession",
    # scoring
    "score_session",
    "count_restless_periods",
    "manual_quality",
    "quality_label",
    "QualityResult",
    # persistence
    "SessionStore",
    "SessionRecorder",
    "InMemorySessionStore",
    "JsonFileSessionStore",
    "DailySleep",
    # monitor / config
    "SleepMonitor",
    "MonitorConfig",
    "load_config",
    # errors
    "SleepSenseError",
    "SensorUnavailableError",
    "SessionError",
    "ConfigError",
]
