# src/daily/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "daily.log"

# Loggers of the service thread; their INFO lines would interleave with the REPL prompt.
_BACKGROUND_LOGGERS = (
    "daily.notifications.local_center",
    "daily.connectors.background",
    "daily.tasks.reset_scheduler",
)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the interactive console readable:
    - daily.* logs pass, except the background loops below WARNING
    - captured Python warnings and third-party loggers only from ERROR up
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("daily."):
            return record.levelno >= logging.ERROR
        if name.startswith(_BACKGROUND_LOGGERS):
            return record.levelno >= logging.WARNING
        return True


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    """Map "debug"/"INFO"/... to a logging level; unknown names give default."""
    level = logging.getLevelName(str(name or "").strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/daily",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Configure root logging once at startup.

    Console: short lines on stderr, filtered for interactive use.
    File: everything from file_level up, rotated at max_bytes.

    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", "%H:%M:%S"))
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s",
            "%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
