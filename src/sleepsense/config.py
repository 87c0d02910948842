"""Monitor configuration.

Every threshold the classifier and scorer use lives on :class:`MonitorConfig`.
Defaults come from :mod:`sleepsense.constants`; a ``[monitor]`` table in
``~/.sleepsense/config.toml`` (or an explicit file) overrides them.
Durations in the TOML file are given in minutes.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, fields, replace
from datetime import timedelta, tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sleepsense import constants
from sleepsense.errors import ConfigError

logger = logging.getLogger(__name__)

SIGNIFICANCE_MODES = ("raw", "delta")


@dataclass(frozen=True)
class MonitorConfig:
    """Thresholds for sleep detection and quality scoring."""

    movement_threshold: float = constants.MOVEMENT_THRESHOLD
    significance: str = "raw"  # "raw" magnitude or "delta" from previous sample
    retention: timedelta = constants.RETENTION
    onset_window: timedelta = constants.ONSET_WINDOW
    wake_window: timedelta = constants.WAKE_WINDOW
    dark_brightness: float = constants.DARK_BRIGHTNESS
    bright_brightness: float = constants.BRIGHT_BRIGHTNESS
    wake_check_brightness: float = constants.WAKE_CHECK_BRIGHTNESS
    onset_max_significant: int = constants.ONSET_MAX_SIGNIFICANT
    wake_min_significant: int = constants.WAKE_MIN_SIGNIFICANT
    min_samples: int = 1
    min_session_minutes: int = constants.MIN_SESSION_MINUTES
    full_session_minutes: int = constants.FULL_SESSION_MINUTES
    cluster_gap: timedelta = constants.CLUSTER_GAP
    timezone: str | None = None  # IANA name; None = system local time

    def __post_init__(self) -> None:
        if self.significance not in SIGNIFICANCE_MODES:
            raise ConfigError(
                f"significance must be one of {SIGNIFICANCE_MODES}, got {self.significance!r}"
            )
        if self.movement_threshold < 0:
            raise ConfigError("movement_threshold must be >= 0")
        for name in ("retention", "onset_window", "wake_window", "cluster_gap"):
            if getattr(self, name) <= timedelta(0):
                raise ConfigError(f"{name} must be positive")
        if self.onset_window > self.retention or self.wake_window > self.retention:
            raise ConfigError("detection windows cannot exceed the retention horizon")
        if self.full_session_minutes <= 0:
            raise ConfigError("full_session_minutes must be positive")
        if self.min_samples < 0:
            raise ConfigError("min_samples must be >= 0")
        if self.timezone is not None:
            try:
                ZoneInfo(self.timezone)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ConfigError(f"Unknown timezone {self.timezone!r}") from e

    @property
    def tz(self) -> tzinfo | None:
        """Timezone used to bucket sessions into calendar days."""
        return ZoneInfo(self.timezone) if self.timezone else None


_DURATION_FIELDS = {"retention", "onset_window", "wake_window", "cluster_gap"}


def get_config_path() -> Path:
    """Return the default config path (``~/.sleepsense/config.toml``)."""
    return constants.DEFAULT_CONFIG_DIR / constants.DEFAULT_CONFIG_FILE


def config_from_dict(values: dict[str, Any], base: MonitorConfig | None = None) -> MonitorConfig:
    """Build a MonitorConfig from a plain mapping (e.g. a TOML table).

    Args:
        values: Field overrides. Duration fields are in minutes.
        base: Config to override; defaults to ``MonitorConfig()``.

    Raises:
        ConfigError: On unknown keys or invalid values.
    """
    known = {f.name for f in fields(MonitorConfig)}
    unknown = set(values) - known
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    overrides: dict[str, Any] = {}
    for key, value in values.items():
        if key in _DURATION_FIELDS:
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ConfigError(f"{key} must be a number of minutes")
            overrides[key] = timedelta(minutes=value)
        else:
            overrides[key] = value

    try:
        return replace(base or MonitorConfig(), **overrides)
    except TypeError as e:
        raise ConfigError(str(e)) from e


def load_config(path: str | Path | None = None) -> MonitorConfig:
    """Load the ``[monitor]`` table from a TOML config file.

    A missing default file yields the default config. An explicit path that
    does not exist, or a file that cannot be parsed, raises ConfigError.
    """
    explicit = path is not None
    config_path = Path(path) if explicit else get_config_path()

    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {config_path}")
        return MonitorConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse {config_path}: {e}") from e

    table = data.get("monitor", {})
    if not isinstance(table, dict):
        raise ConfigError("[monitor] must be a table")

    logger.debug("Loaded monitor config from %s: %s", config_path, table)
    return config_from_dict(table)
