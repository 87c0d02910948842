"""Logging setup for the sleepsense command line."""

from __future__ import annotations

import logging
import logging.config
import sys
from pathlib import Path
from typing import Any

from sleepsense.constants import DEFAULT_LOG_BACKUP_COUNT, DEFAULT_LOG_FILE

_logging_configured = False

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _build_logging_config(verbose: bool = False, log_dir: Path | None = None) -> dict[str, Any]:
    """Build the dictConfig dictionary.

    Args:
        verbose: Console at DEBUG instead of INFO.
        log_dir: If set, also write a rotating log file there.
    """
    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": LOG_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": "DEBUG" if verbose else "INFO",
                "formatter": "default",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "sleepsense": {
                "level": "DEBUG",
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "DEBUG",
            "formatter": "default",
            "filename": str(log_dir / DEFAULT_LOG_FILE),
            "maxBytes": 5 * 1024 * 1024,
            "backupCount": DEFAULT_LOG_BACKUP_COUNT,
            "encoding": "utf-8",
        }
        config["loggers"]["sleepsense"]["handlers"].append("file")

    return config


def setup_logging(*, verbose: bool = False, log_dir: Path | None = None) -> None:
    """Configure the ``sleepsense`` logger tree once per process."""
    global _logging_configured

    if _logging_configured:
        return

    try:
        logging.config.dictConfig(_build_logging_config(verbose=verbose, log_dir=log_dir))
    except (ValueError, OSError) as e:
        sys.stderr.write(f"WARNING: Failed to configure logging: {e}\n")
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format="%(levelname)s: %(message)s",
        )

    _logging_configured = True
