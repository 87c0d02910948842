"""Exception hierarchy for sleepsense."""


class SleepSenseError(Exception):
    """Base class for all sleepsense errors."""


class SensorUnavailableError(SleepSenseError):
    """A signal source could not be started (permission denied, no sensor)."""


class SessionError(SleepSenseError):
    """A sleep session was used in a way its lifecycle does not allow."""


class ConfigError(SleepSenseError):
    """Configuration file or values are invalid."""
