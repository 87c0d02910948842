"""Tests for sleepsense.logging_config."""

import logging

from sleepsense import logging_config
from sleepsense.logging_config import _build_logging_config, setup_logging


class TestBuildLoggingConfig:
    def test_console_only_by_default(self):
        config = _build_logging_config()
        assert set(config["handlers"]) == {"console"}
        assert config["handlers"]["console"]["level"] == "INFO"
        assert config["loggers"]["sleepsense"]["handlers"] == ["console"]

    def test_verbose_console(self):
        config = _build_logging_config(verbose=True)
        assert config["handlers"]["console"]["level"] == "DEBUG"

    def test_log_dir_adds_rotating_file(self, tmp_path):
        config = _build_logging_config(log_dir=tmp_path / "logs")
        assert (tmp_path / "logs").is_dir()
        assert config["handlers"]["file"]["class"] == "logging.handlers.RotatingFileHandler"
        assert config["loggers"]["sleepsense"]["handlers"] == ["console", "file"]


class TestSetupLogging:
    def test_configures_once(self, monkeypatch, tmp_path):
        monkeypatch.setattr(logging_config, "_logging_configured", False)
        logger = logging.getLogger("sleepsense")
        saved = logger.handlers[:], logger.propagate
        try:
            setup_logging(log_dir=tmp_path)
            handlers = logger.handlers[:]
            assert len(handlers) == 2
            setup_logging(verbose=True)
            assert logger.handlers == handlers
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers, logger.propagate = saved
