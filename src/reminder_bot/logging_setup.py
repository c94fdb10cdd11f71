# src/reminder_bot/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

SCHEDULER_LOGGER = "reminder_bot.tasks.task_scheduler"
MATRIX_LOGGER_PREFIX = "reminder_bot.connectors.matrix_"

APP_LOG_NAME = "reminder.log"
DELIVERY_LOG_NAME = "deliveries.log"

# A destination that always fails is retried (and logged) on every scan,
# so file logs rotate instead of growing forever.
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the interactive prompt readable:
    - reminder_bot logs pass at the handler level
    - background components (scheduler, Matrix) only WARNING+, so failed
      deliveries still show up but successful ones do not interleave with input
    - third-party loggers (nio, aiohttp, py.warnings) only ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == SCHEDULER_LOGGER or name.startswith(MATRIX_LOGGER_PREFIX):
            return record.levelno >= logging.WARNING
        if name.startswith("reminder_bot."):
            return True
        return record.levelno >= logging.ERROR


class _DeliveryFilter(logging.Filter):
    """Only scheduler records: delivered / failed / retried reminders."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name == SCHEDULER_LOGGER


def _rotating(path: Path, level: int, fmt: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        str(path), maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(fmt)
    return handler


def setup_logging(
    *,
    log_dir: str | Path = ".local/reminder",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Configure logging with:
    - console: filtered for interactive use
    - <log_dir>/reminder.log: everything at file_level
    - <log_dir>/deliveries.log: the scheduler's delivery history (INFO+),
      the place to look when a destination keeps failing

    Call this ONCE, very early. Returns the log directory.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    root.addHandler(_rotating(log_dir / APP_LOG_NAME, file_level, fmt))

    deliveries = _rotating(log_dir / DELIVERY_LOG_NAME, logging.INFO, fmt)
    deliveries.addFilter(_DeliveryFilter())
    root.addHandler(deliveries)

    # Route warnings.warn(...) into logging as 'py.warnings'
    logging.captureWarnings(True)
    return log_dir
