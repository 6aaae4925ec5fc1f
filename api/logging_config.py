"""
Logging configuration for the Umzug Watcher.
Coloured console output plus rotating log files; module loggers propagate
to the root logger configured here.
"""

import os
import sys
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

CONSOLE_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s:%(lineno)d %(message)s"

logger = logging.getLogger("umzug_watcher")


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        original = record.levelname
        color = self.COLORS.get(original, self.RESET)
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(name: str = "", log_dir: Optional[Path] = None, level: Optional[str] = None) -> logging.Logger:
    """
    Attach console and rotating file handlers.

    Args:
        name: Logger name (default: root, so every module logger is covered)
        log_dir: Directory for the rotating log files (default: LOG_DIR)
        level: Log level name (default: LOG_LEVEL)

    Returns:
        The configured logger
    """
    target = logging.getLogger(name or None)
    if any(getattr(h, "_umzug_watcher", False) for h in target.handlers):
        return target

    target.setLevel(getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO))

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))

    log_dir = Path(log_dir or LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    file_format = logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers = [
        console,
        _rotating_handler(log_dir / "umzug_watcher.log", logging.DEBUG, file_format),
        _rotating_handler(log_dir / "umzug_watcher_errors.log", logging.ERROR, file_format),
    ]
    for handler in handlers:
        handler._umzug_watcher = True
        target.addHandler(handler)

    return target


def log_tick(result):
    """Log the outcome of one watcher tick."""
    if result.need_login:
        logger.warning("[WATCHER] listing bounced to login")
        return
    message = (
        f"[WATCHER] tick accepted={result.accepted} tried={result.tried} "
        f"errors={result.errors}"
    )
    if result.tried or result.errors:
        logger.info(message)
    else:
        logger.debug(message)


def log_accept(key: str, accepted: bool, reason: str = None):
    """Log an accept attempt."""
    if accepted:
        logger.info(f"[WATCHER] accepted {key}")
    else:
        logger.warning(f"[WATCHER] accept {key} failed: {reason}" if reason else f"[WATCHER] accept {key} failed")


def log_session_event(event: str, details: str = None):
    """Log a session lifecycle event."""
    logger.info(f"Session {event}: {details}" if details else f"Session {event}")
