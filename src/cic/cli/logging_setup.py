"""Root logger configuration for CLI processes."""

from __future__ import annotations

import json
import logging
import os
import sys


class _CloudFormatter(logging.Formatter):
    """JSON formatter emitting Cloud Logging-compatible entries."""

    _LEVEL_MAP = {
        "DEBUG": "DEBUG",
        "INFO": "INFO",
        "WARNING": "WARNING",
        "ERROR": "ERROR",
        "CRITICAL": "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "severity": self._LEVEL_MAP.get(record.levelname, "DEFAULT"),
            "message": record.getMessage(),
            "logger": record.name,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(verbose: bool = False) -> None:
    """Set up logging for a CLI process.

    Outside ``CIC_ENV=local`` emits JSON-structured logs compatible with
    Cloud Logging severity parsing::

        {"severity": "INFO", "message": "...", "logger": "..."}

    Locally, uses a human-readable plain-text format.  The level comes from
    ``CIC_LOG_LEVEL`` (``DEBUG`` when *verbose*).
    """
    log_level = "DEBUG" if verbose else os.environ.get("CIC_LOG_LEVEL", "WARNING").upper()
    env = os.environ.get("CIC_ENV", "local").strip()
    level = getattr(logging, log_level, logging.WARNING)

    if env != "local":
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(_CloudFormatter())
        logging.root.handlers.clear()
        logging.root.addHandler(handler)
        logging.root.setLevel(level)
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            stream=sys.stderr,
        )

    # Playwright's driver is chatty at DEBUG.
    logging.getLogger("asyncio").setLevel(logging.WARNING)
