# src/tasksync/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Below WARNING these write on every store round-trip; the notifier already reports outcomes.
_QUIET_PREFIXES = ("tasksync.storage.",)


class _ConsoleNoiseFilter(logging.Filter):
    """Console gets tasksync logs (minus adapter chatter) and only errors from everyone else."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not record.name.startswith("tasksync."):
            # Third-party loggers and captured 'py.warnings'.
            return record.levelno >= logging.ERROR
        if record.name.startswith(_QUIET_PREFIXES):
            return record.levelno >= logging.WARNING
        return True


def parse_level(value: str | int | None, default: int = logging.WARNING) -> int:
    """Accept 'info', 'DEBUG', 20 or None; unknown names fall back to default."""
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value or "").strip().upper())
    return level if isinstance(level, int) else default


def _handler(handler: logging.Handler, level: int, fmt: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(fmt)
    return handler


def setup_logging(
    *,
    log_dir: str | Path = ".local/tasksync",
    console_level: str | int = logging.WARNING,
    file_level: str | int = logging.DEBUG,
) -> Path:
    """
    Install a filtered stderr handler and a full file handler on the root logger.

    Replaces existing root handlers, so call it once at startup. Returns the
    log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "tasksync.log"

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = _handler(logging.StreamHandler(sys.stderr), parse_level(console_level), fmt)
    console.addFilter(_ConsoleNoiseFilter())
    logfile = _handler(
        logging.FileHandler(str(log_file), encoding="utf-8"),
        parse_level(file_level, logging.DEBUG),
        fmt,
    )

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(logging.DEBUG)
    root.addHandler(console)
    root.addHandler(logfile)

    logging.captureWarnings(True)
    return log_file
